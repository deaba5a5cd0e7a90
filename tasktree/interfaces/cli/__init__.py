"""CLI interface for tasktree using Typer.

Usage:
    tasktree project init acme           # Initialize a project
    tasktree task add -p acme "Checkout" --size m
    tasktree task list -p acme           # Show the hierarchy
    tasktree breakdown validate plan.json --parent 1 -p acme

The CLI is structured as:
- app: Main Typer application
- commands/: Individual command groups (project, task, breakdown)
- common.py: Shared utilities for CLI commands
- main.py: Entry point that runs the app
"""

import logging
from typing import Optional

import typer

from tasktree import __version__
from tasktree.interfaces.cli.commands import breakdown, project, task

app = typer.Typer(
    name="tasktree",
    help="Task hierarchy and breakdown governance",
    add_completion=False,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"tasktree version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine activity to stderr"),
) -> None:
    """tasktree - keep task hierarchies and AI breakdowns consistent.

    Enforces priority inheritance, size-bounded Fibonacci story points and
    sibling-scoped ordering on every change.
    """
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


# =============================================================================
# Register Command Groups
# =============================================================================

app.add_typer(project.app, name="project")
app.add_typer(task.app, name="task")
app.add_typer(breakdown.app, name="breakdown")


__all__ = ["app"]
