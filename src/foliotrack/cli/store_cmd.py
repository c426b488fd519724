"""Store maintenance commands: stats, backup."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from foliotrack.cli.error_handler import cli_errors
from foliotrack.cli.helpers import format_size, get_context, open_store

console = Console()


@click.command("stats")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def stats(ctx: click.Context, json_output: bool) -> None:
    """Show catalog counts and technology usage."""
    cli = get_context(ctx)
    with cli_errors(json_output), open_store(cli) as store:
        counts = store.stats()
        summary = store.technology_summary()

    if json_output:
        data = counts.to_dict()
        data["technologies_by_category"] = summary
        click.echo(json.dumps(data, indent=2))
        return

    lines = [
        f"[bold]Projects:[/] {counts.projects}",
        f"[bold]Technologies:[/] {counts.technologies}",
        f"[bold]Evolution events:[/] {counts.evolution_events}",
        f"[bold]Scans:[/] {counts.scans}",
        f"[bold]Database size:[/] {format_size(counts.database_size)}",
    ]
    console.print(Panel("\n".join(lines), title=str(cli.db_path), border_style="blue"))

    if summary:
        table = Table(title="Technologies by category")
        table.add_column("Category", style="cyan")
        table.add_column("Technology")
        table.add_column("Projects", justify="right")
        for category, techs in summary.items():
            for name, count in techs.items():
                table.add_row(category, name, str(count))
        console.print(table)


@click.command("backup")
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Snapshot file (default: <backup_dir>/backup-<timestamp>.db)",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def backup(ctx: click.Context, output: Path | None, json_output: bool) -> None:
    """Copy the project store to a timestamped snapshot."""
    cli = get_context(ctx)
    with cli_errors(json_output), open_store(cli) as store:
        target = store.backup(output)

    if json_output:
        click.echo(json.dumps({"backup": str(target)}))
        return

    console.print(f"[green]✓[/green] Backup written to {target}")
