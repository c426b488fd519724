"""Catalog reporting commands: list, show, history."""

import json

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from foliotrack.catalog.models import ProjectStatus, ProjectType
from foliotrack.cli.error_handler import cli_errors
from foliotrack.cli.helpers import (
    format_size,
    format_time,
    get_context,
    open_store,
    styled_status,
)

console = Console()

_STATUS_CHOICES = [s.value for s in ProjectStatus]
_TYPE_CHOICES = [t.value for t in ProjectType]


@click.command("list")
@click.option("--status", type=click.Choice(_STATUS_CHOICES), default=None, help="Filter by status")
@click.option("--type", "project_type", type=click.Choice(_TYPE_CHOICES), default=None,
              help="Filter by project type")
@click.option("--limit", "-n", type=int, default=None, help="Maximum number of projects")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def list_projects(
    ctx: click.Context,
    status: str | None,
    project_type: str | None,
    limit: int | None,
    json_output: bool,
) -> None:
    """List cataloged projects, most recently updated first."""
    cli = get_context(ctx)
    with cli_errors(json_output), open_store(cli) as store:
        projects = store.list_projects(
            status=ProjectStatus(status) if status else None,
            project_type=ProjectType(project_type) if project_type else None,
            limit=limit,
        )

    if json_output:
        click.echo(json.dumps([p.to_dict() for p in projects], indent=2))
        return

    if not projects:
        console.print("[dim]No projects found. Run 'foliotrack scan <root>' first.[/]")
        return

    table = Table(title=f"Projects ({len(projects)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Type")
    table.add_column("Technologies")
    table.add_column("Updated", style="dim")

    for project in projects:
        names = [t.name for t in project.technologies]
        techs = ", ".join(names[:4]) + (f" +{len(names) - 4}" if len(names) > 4 else "")
        table.add_row(
            escape(project.id),
            escape(project.name),
            styled_status(project.status),
            project.type.value,
            techs or "[dim]-[/]",
            format_time(project.updated_at),
        )

    console.print(table)


@click.command("show")
@click.argument("project_id")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def show(ctx: click.Context, project_id: str, json_output: bool) -> None:
    """Show one project with its evolution events."""
    cli = get_context(ctx)
    with cli_errors(json_output), open_store(cli) as store:
        project = store.get(project_id)
        events = store.list_events(project_id) if project else []

    if project is None:
        if json_output:
            click.echo(json.dumps({"error": "not found", "project_id": project_id}), err=True)
        else:
            console.print(f"[red]Project not found:[/red] {escape(project_id)}")
        raise SystemExit(1)

    if json_output:
        data = project.to_dict()
        data["events"] = [e.to_dict() for e in events]
        click.echo(json.dumps(data, indent=2))
        return

    repo = project.repository
    evo = project.evolution
    lines = [
        f"[bold]Name:[/] {escape(project.name)}",
        f"[bold]Status:[/] {styled_status(project.status)}",
        f"[bold]Type:[/] {project.type.value}",
        f"[bold]Path:[/] {escape(str(project.path))}",
    ]
    if project.description:
        lines.append(f"[bold]Description:[/] {escape(project.description)}")
    if repo and repo.is_git_repo:
        lines.append(
            f"[bold]Repository:[/] {escape(repo.branch or '-')} · {repo.commit_count} commits · "
            f"{len(repo.contributors)} contributors"
        )
    if project.deployment:
        lines.append(
            f"[bold]Deployment:[/] {project.deployment.platform} "
            f"({project.deployment.environment}, {project.deployment.status})"
        )
    lines.extend([
        f"[bold]Files:[/] {evo.total_files} ({format_size(evo.total_size)})",
        f"[bold]Growth:[/] {evo.growth_rate} commits/month",
        f"[bold]Last activity:[/] {format_time(evo.last_activity)}",
        f"[bold]Created:[/] {format_time(project.created_at)}",
        f"[bold]Last scanned:[/] {format_time(project.last_scanned)}",
    ])
    console.print(Panel("\n".join(lines), title=escape(project.id), border_style="cyan"))

    if project.technologies:
        table = Table(title="Technologies")
        table.add_column("Name")
        table.add_column("Category", style="dim")
        for tech in project.technologies:
            table.add_row(tech.name, tech.category.value)
        console.print(table)

    if events:
        table = Table(title="Evolution")
        table.add_column("When", style="dim")
        table.add_column("Type")
        table.add_column("Description")
        for event in events:
            table.add_row(
                format_time(event.timestamp), event.type.value, escape(event.description)
            )
        console.print(table)


@click.command("history")
@click.option("--limit", "-n", type=int, default=10, help="Number of scan runs")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def history(ctx: click.Context, limit: int, json_output: bool) -> None:
    """Show recent scan runs."""
    cli = get_context(ctx)
    with cli_errors(json_output), open_store(cli) as store:
        scans = store.list_scans(limit)

    if json_output:
        click.echo(json.dumps([s.to_dict() for s in scans], indent=2))
        return

    if not scans:
        console.print("[dim]No scans recorded yet.[/]")
        return

    table = Table(title="Scan history")
    table.add_column("#", style="dim")
    table.add_column("When")
    table.add_column("Found", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Changes", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Duration", justify="right", style="dim")

    for result in scans:
        table.add_row(
            str(result.id),
            format_time(result.timestamp),
            str(result.projects_found),
            str(result.projects_updated),
            str(len(result.new_projects)),
            str(len(result.status_changes)),
            f"[red]{len(result.errors)}[/]" if result.errors else "0",
            f"{result.duration_ms} ms",
        )

    console.print(table)
