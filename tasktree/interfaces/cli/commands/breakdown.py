"""Breakdown CLI commands.

Validate and commit a batch of proposed subtasks read from a JSON file.
The file holds either a list of subtask objects or an object with a
"tasks" (or "subtasks") list, as produced by an AI breakdown.
"""

import json
from pathlib import Path
from typing import Any, Optional

import typer

from tasktree.application import BreakdownValidation, TaskView
from tasktree.domain.shared import StaleValidationError
from tasktree.interfaces.cli.common import (
    format_task_line,
    get_project_id,
    get_service,
    print_error,
    print_success,
    print_warning,
    project_option,
    unwrap,
)

app = typer.Typer(help="Validate and commit proposed subtasks")


def _read_batch(path: Path) -> list[dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print_error(f"Cannot read {path}: {e}")
        raise typer.Exit(1) from None
    if isinstance(data, dict):
        data = data.get("tasks", data.get("subtasks"))
    if not isinstance(data, list):
        print_error(f"{path} must contain a list of subtasks")
        raise typer.Exit(1)
    return data


def _report(validation: BreakdownValidation) -> None:
    if validation.accepted:
        print_success(f"{len(validation.tasks)} subtask(s) accepted")
        for item in validation.tasks:
            due = item.due_date.isoformat() if item.due_date else "none"
            pts = item.story_points if item.story_points is not None else "-"
            typer.echo(f"  - {item.title} ({item.priority.value}, {pts} pts, due {due})")
        return
    print_error(validation.error or "Breakdown rejected")
    for message in validation.violations:
        typer.echo(f"  - {message}", err=True)


@app.command("validate")
def validate(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file of proposed subtasks"),
    parent: int = typer.Option(..., "--parent", help="Task to break down"),
    project: Optional[str] = project_option(),
) -> None:
    """Check proposed subtasks against the parent's constraints."""
    project_id = get_project_id(project)
    validation = unwrap(get_service().validate_breakdown(project_id, parent, _read_batch(file)))
    _report(validation)
    if not validation.accepted:
        raise typer.Exit(1)


@app.command("commit")
def commit(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file of proposed subtasks"),
    parent: int = typer.Option(..., "--parent", help="Task to break down"),
    project: Optional[str] = project_option(),
) -> None:
    """Validate proposed subtasks and add them under the parent."""
    project_id = get_project_id(project)
    service = get_service()
    validation = unwrap(service.validate_breakdown(project_id, parent, _read_batch(file)))
    if not validation.accepted:
        _report(validation)
        raise typer.Exit(1)

    try:
        created = unwrap(service.commit_breakdown(validation))
    except StaleValidationError as e:
        print_warning(str(e))
        raise typer.Exit(1) from None

    print_success(f"Added {len(created)} subtask(s) under task #{parent}")
    for node in created:
        typer.echo(format_task_line(TaskView.from_node(node), indent=False))
