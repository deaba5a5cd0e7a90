"""Task management CLI commands.

Commands for adding, listing, updating, moving and deleting tasks in a
project's hierarchy.
"""

from datetime import datetime
from typing import Optional

import typer

from tasktree.domain.task import Priority, TaskSize, TaskStatus
from tasktree.interfaces.cli.common import (
    format_task_line,
    get_project_id,
    get_service,
    print_error,
    print_header,
    print_success,
    print_warning,
    project_option,
    unwrap,
)

app = typer.Typer(help="Task management commands")

FILTERS = ("all", "top-level", "leaf")


@app.command("add")
def add(
    title: str = typer.Argument(..., help="Task title"),
    parent: Optional[int] = typer.Option(None, "--parent", help="Parent task ID"),
    description: str = typer.Option("", "--description", "-d", help="Task description"),
    priority: Optional[Priority] = typer.Option(None, "--priority", help="Defaults to the parent's"),
    size: Optional[TaskSize] = typer.Option(None, "--size", help="T-shirt size (bounds subtask points)"),
    points: Optional[int] = typer.Option(None, "--points", help="Story points (Fibonacci)"),
    due: Optional[datetime] = typer.Option(None, "--due", formats=["%Y-%m-%d"], help="Due date"),
    iteration: Optional[str] = typer.Option(None, "--iteration", help="Iteration ID"),
    project: Optional[str] = project_option(),
) -> None:
    """Add a task, top-level or under --parent."""
    project_id = get_project_id(project)
    node = unwrap(
        get_service().create_task(
            project_id,
            title,
            parent,
            description=description,
            priority=priority,
            size=size,
            story_points=points,
            due_date=due.date() if due else None,
            iteration_id=iteration,
        )
    )
    print_success(f"Added task #{node.id}: {node.title}")


@app.command("list")
def list_tasks(
    filter_mode: str = typer.Option("all", "--filter", "-f", help="all, top-level or leaf"),
    project: Optional[str] = project_option(),
) -> None:
    """List tasks in display order."""
    if filter_mode not in FILTERS:
        print_error(f"Unknown filter '{filter_mode}' (expected one of: {', '.join(FILTERS)})")
        raise typer.Exit(1)
    project_id = get_project_id(project)
    views = unwrap(get_service().list_tasks(project_id, filter_mode))
    if not views:
        typer.echo("No tasks.")
        return
    for position, view in enumerate(views, start=1):
        line = format_task_line(view, indent=filter_mode == "all")
        typer.echo(f"{position:>3}. {line}")


@app.command("show")
def show(
    task_id: int = typer.Argument(..., help="Task ID"),
    project: Optional[str] = project_option(),
) -> None:
    """Show a task's details."""
    project_id = get_project_id(project)
    view = unwrap(get_service().task_view(project_id, task_id))

    print_header(f"Task #{view.id}: {view.title}")
    if view.description:
        typer.echo(view.description)
        typer.echo("")
    for key, value in view.model_dump(mode="json", exclude={"id", "title", "description"}).items():
        typer.echo(f"{key:>26}: {value}")


@app.command("status")
def status(
    task_id: int = typer.Argument(..., help="Task ID"),
    new_status: TaskStatus = typer.Argument(..., help="pending, in_progress or completed"),
    project: Optional[str] = project_option(),
) -> None:
    """Set the status of a leaf task."""
    project_id = get_project_id(project)
    node = unwrap(get_service().set_status(project_id, task_id, new_status))
    print_success(f"Task #{node.id} is now {node.status.value}")


@app.command("points")
def points(
    task_id: int = typer.Argument(..., help="Task ID"),
    value: int = typer.Argument(..., help="Story points (Fibonacci)"),
    project: Optional[str] = project_option(),
) -> None:
    """Set a task's story points."""
    project_id = get_project_id(project)
    node = unwrap(get_service().update_story_points(project_id, task_id, value))
    print_success(
        f"Task #{node.id} has {node.current_story_points} story points "
        f"(initial {node.initial_story_points}, {node.story_points_change_count} change(s))"
    )


@app.command("priority")
def priority(
    task_id: int = typer.Argument(..., help="Task ID"),
    value: Priority = typer.Argument(..., help="low, medium or high"),
    project: Optional[str] = project_option(),
) -> None:
    """Set a task's priority."""
    project_id = get_project_id(project)
    node = unwrap(get_service().update_priority(project_id, task_id, value))
    print_success(f"Task #{node.id} priority is {node.priority.value}")


@app.command("size")
def size(
    task_id: int = typer.Argument(..., help="Task ID"),
    value: Optional[TaskSize] = typer.Argument(None, help="xs, s, m, l or xl (omit to clear)"),
    project: Optional[str] = project_option(),
) -> None:
    """Set or clear a task's size."""
    project_id = get_project_id(project)
    node = unwrap(get_service().update_size(project_id, task_id, value))
    shown = node.size.value if node.size else "none"
    print_success(f"Task #{node.id} size is {shown}")


@app.command("move")
def move(
    task_id: int = typer.Argument(..., help="Task ID"),
    position: int = typer.Argument(..., help="1-based position in 'task list' order"),
    confirm: bool = typer.Option(False, "--confirm", help="Adopt the neighbors' priority"),
    project: Optional[str] = project_option(),
) -> None:
    """Move a task within its sibling group."""
    project_id = get_project_id(project)
    result = unwrap(get_service().reorder(project_id, task_id, position, confirm))
    if not result.success:
        print_error(result.message)
        raise typer.Exit(1)
    if result.notice is not None and not result.priority_changed:
        neighbors = ", ".join(p.value for p in result.notice.neighbor_priorities)
        print_warning(
            f"Task #{task_id} ({result.notice.task_priority.value}) now sits next to "
            f"{neighbors} priority tasks; rerun with --confirm to adopt "
            f"{result.notice.suggested_priority.value}"
        )
    print_success(result.message)


@app.command("reparent")
def reparent(
    task_id: int = typer.Argument(..., help="Task ID"),
    parent: Optional[int] = typer.Option(None, "--parent", help="New parent ID (omit for top level)"),
    project: Optional[str] = project_option(),
) -> None:
    """Move a task and its subtasks under another parent."""
    project_id = get_project_id(project)
    node = unwrap(get_service().reparent(project_id, task_id, parent))
    where = f"task #{node.parent_id}" if node.parent_id else "the top level"
    print_success(f"Task #{node.id} moved to {where}")


@app.command("delete")
def delete(
    task_id: int = typer.Argument(..., help="Task ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    project: Optional[str] = project_option(),
) -> None:
    """Delete a task and all of its subtasks."""
    project_id = get_project_id(project)
    service = get_service()
    view = unwrap(service.task_view(project_id, task_id))
    if not yes and view.has_children:
        typer.confirm(f"Delete task #{task_id} and all of its subtasks?", abort=True)
    removed = unwrap(service.delete(project_id, task_id))
    print_success(f"Deleted {len(removed)} task(s)")
