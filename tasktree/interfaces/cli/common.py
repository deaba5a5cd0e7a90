"""Shared utilities for tasktree CLI commands.

This module provides common utilities used across CLI commands:
- Project resolution and environment handling
- Service construction from the global configuration
- Formatted output helpers (error, success, info)
- Task formatting for display
"""

import os
from typing import Optional, TypeVar

import typer

from tasktree.application import TaskService, TaskView
from tasktree.config import load_config
from tasktree.domain.shared import Err, Result
from tasktree.domain.task import TaskStatus
from tasktree.infrastructure.storage import TaskTreeRepository

T = TypeVar("T")

PROJECT_ENV_VAR = "TASKTREE_PROJECT"

STATUS_MARKERS = {
    TaskStatus.PENDING: "[ ]",
    TaskStatus.IN_PROGRESS: "[~]",
    TaskStatus.COMPLETED: "[x]",
}


def project_option() -> Optional[str]:
    """Reusable -p/--project option.

    Usage: def my_command(project: Optional[str] = project_option()) -> None:
    """
    return typer.Option(
        None,
        "--project",
        "-p",
        help=f"Project ID (or set {PROJECT_ENV_VAR} env var)",
        envvar=PROJECT_ENV_VAR,
    )


def get_project_id(explicit_project: str | None = None) -> str:
    """Get the project ID, raising an error if not found.

    Resolution order:
    1. Explicit project parameter (from -p/--project CLI option)
    2. TASKTREE_PROJECT environment variable

    Raises:
        typer.Exit: If no project can be determined.
    """
    if explicit_project:
        return explicit_project

    env_project = os.environ.get(PROJECT_ENV_VAR)
    if env_project:
        return env_project

    print_error("No project specified.")
    typer.echo("")
    typer.echo("Specify a project using one of:")
    typer.echo("  1. Use -p/--project option: tasktree task list -p my-project")
    typer.echo(f"  2. Set {PROJECT_ENV_VAR} env var: export {PROJECT_ENV_VAR}=my-project")
    typer.echo("")
    typer.echo("List available projects with: tasktree project list")
    raise typer.Exit(1)


def get_service() -> TaskService:
    """Build a TaskService over the configured data directory."""
    config = load_config()
    return TaskService(TaskTreeRepository(config.resolved_data_dir()), config)


def unwrap(result: Result[T, str]) -> T:
    """Return the value of ``result`` or print its error and exit 1."""
    if isinstance(result, Err):
        print_error(result.error)
        raise typer.Exit(1)
    return result.value


def print_error(msg: str) -> None:
    typer.echo(typer.style(f"Error: {msg}", fg=typer.colors.RED), err=True)


def print_success(msg: str) -> None:
    typer.echo(typer.style(msg, fg=typer.colors.GREEN))


def print_info(msg: str) -> None:
    typer.echo(typer.style(msg, fg=typer.colors.BLUE))


def print_warning(msg: str) -> None:
    typer.echo(typer.style(f"Warning: {msg}", fg=typer.colors.YELLOW), err=True)


def print_separator(char: str = "=", width: int = 60) -> None:
    typer.echo(char * width)


def print_header(title: str, width: int = 60) -> None:
    """Print a formatted header with separators."""
    print_separator("=", width)
    typer.echo(title)
    print_separator("=", width)


def format_task_line(view: TaskView, indent: bool = True) -> str:
    """One-line summary of a task: marker, id, title and key figures."""
    prefix = "  " * view.depth if indent else ""
    details = [view.priority.value]
    if view.size is not None:
        details.append(f"size {view.size.value}")
    if view.current_story_points is not None:
        details.append(f"{view.current_story_points} pts")
    if view.has_children:
        details.append(f"{view.completion_percentage:g}%")
    if view.due_date is not None:
        details.append(f"due {view.due_date.isoformat()}")
    return f"{prefix}{STATUS_MARKERS[view.status]} #{view.id} {view.title} ({', '.join(details)})"
