"""Project management CLI commands.

Commands for creating and listing projects and showing their progress.
"""

from typing import Optional

import typer

from tasktree.interfaces.cli.common import (
    get_project_id,
    get_service,
    print_error,
    print_header,
    print_info,
    print_success,
    project_option,
    unwrap,
)

app = typer.Typer(help="Project management commands")


@app.command("init")
def init(
    project_id: str = typer.Argument(..., help="Project ID (letters, digits, '-', '_', '.')"),
) -> None:
    """Initialize an empty project."""
    service = get_service()
    unwrap(service.create_project(project_id))
    print_success(f"Created project '{project_id}'")
    print_info(f"Use it with: tasktree task add -p {project_id} \"First task\"")


@app.command("list")
def list_projects() -> None:
    """List all projects."""
    projects = unwrap(get_service().list_projects())
    if not projects:
        typer.echo("No projects found. Create one with: tasktree project init <id>")
        return
    for project_id in projects:
        typer.echo(project_id)


@app.command("stats")
def stats(project: Optional[str] = project_option()) -> None:
    """Show leaf task progress for a project."""
    project_id = get_project_id(project)
    service = get_service()
    tree_stats = unwrap(service.tree_stats(project_id))

    print_header(f"Project: {project_id}")
    typer.echo(f"Tasks (leaves): {tree_stats.total}")
    typer.echo(f"  Completed:    {tree_stats.completed}")
    typer.echo(f"  In progress:  {tree_stats.in_progress}")
    typer.echo(f"  Pending:      {tree_stats.pending}")
    typer.echo(f"Story points:   {tree_stats.completed_points}/{tree_stats.total_points}")
    typer.echo(f"Progress:       {tree_stats.progress_percent}%")


@app.command("check")
def check(project: Optional[str] = project_option()) -> None:
    """Audit the project's tree against the hierarchy invariants."""
    project_id = get_project_id(project)
    problems = unwrap(get_service().audit(project_id))
    if not problems:
        print_success(f"Project '{project_id}' is consistent")
        return
    for problem in problems:
        print_error(problem)
    raise typer.Exit(1)
