"""CLI command groups for tasktree.

This package contains individual command groups that are registered
with the main Typer app. Each module provides a set of related commands.

Command groups:
- project: Project management (init, list, stats, check)
- task: Task hierarchy management (add, list, move, reparent, ...)
- breakdown: Proposed subtask batches (validate, commit)

Each command group is a Typer app that gets registered
with the main app using app.add_typer().
"""

from tasktree.interfaces.cli.commands import breakdown, project, task

__all__ = ["project", "task", "breakdown"]
