"""Scan command: reconcile a directory tree with the project store."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from foliotrack.catalog.models import ScanOptions, ScanResult
from foliotrack.catalog.store import ProjectStore
from foliotrack.cli.error_handler import cli_errors
from foliotrack.cli.helpers import get_context, open_store, styled_status
from foliotrack.foundation.logging import configure_logging
from foliotrack.scanner.orchestrator import ProjectScanner

console = Console()


@click.command("scan")
@click.argument("root", type=click.Path(path_type=Path), default=".")
@click.option(
    "--recursive/--flat",
    default=True,
    help="Treat ROOT as a directory of buckets (default) or as a single bucket",
)
@click.option(
    "--include-obsolete/--skip-obsolete",
    default=True,
    help="Scan buckets whose name marks them obsolete",
)
@click.option(
    "--force-refresh",
    is_flag=True,
    help="Do not carry over stored descriptions missing from manifests",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Log per-project progress")
@click.pass_context
def scan(
    ctx: click.Context,
    root: Path,
    recursive: bool,
    include_obsolete: bool,
    force_refresh: bool,
    json_output: bool,
    verbose: bool,
) -> None:
    """Scan ROOT and update the project catalog.

    \b
    Examples:
        foliotrack scan ~/work
        foliotrack scan ~/work --skip-obsolete
        foliotrack scan ./clients --flat --json
    """
    cli = get_context(ctx)
    if verbose and not cli.verbose:
        configure_logging(debug=cli.debug, verbose=True, persist=cli.log_file)

    options = ScanOptions(
        root_path=root,
        recursive=recursive,
        include_obsolete=include_obsolete,
        force_refresh=force_refresh,
        verbose=verbose or cli.verbose,
    )

    with cli_errors(json_output), open_store(cli) as store:
        if json_output:
            result = ProjectScanner(store, cli.config).scan(options)
        else:
            with console.status(f"[bold]Scanning {root}...[/]"):
                result = ProjectScanner(store, cli.config).scan(options)

        if json_output:
            click.echo(json.dumps(result.to_dict(), indent=2))
            return

        _print_result(result, store)


def _print_result(result: ScanResult, store: ProjectStore) -> None:
    lines = [
        f"[bold]Projects found:[/] {result.projects_found}",
        f"[bold]Projects updated:[/] {result.projects_updated}",
        f"[bold]New projects:[/] {len(result.new_projects)}",
        f"[bold]Status changes:[/] {len(result.status_changes)}",
        f"[bold]Duration:[/] {result.duration_ms} ms",
    ]
    style = "red" if result.errors else "green"
    console.print(Panel("\n".join(lines), title="Scan complete", border_style=style))

    if result.new_projects:
        table = Table(title="New projects")
        table.add_column("ID", style="cyan")
        table.add_column("Type")
        table.add_column("Status")
        for project_id in result.new_projects:
            project = store.get(project_id)
            if project is None:
                continue
            table.add_row(escape(project.id), project.type.value, styled_status(project.status))
        console.print(table)

    if result.status_changes:
        table = Table(title="Status changes")
        table.add_column("ID", style="cyan")
        table.add_column("From")
        table.add_column("To")
        for change in result.status_changes:
            table.add_row(
                escape(change.project_id),
                styled_status(change.old_status),
                styled_status(change.new_status),
            )
        console.print(table)

    if result.errors:
        console.print(f"\n[red]{len(result.errors)} error(s):[/]")
        for error in result.errors:
            console.print(f"  [red]✗[/] {escape(error)}")
