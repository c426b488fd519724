"""Main CLI entry point.

    foliotrack scan ~/work          # catalog every project under ~/work
    foliotrack list --status production
    foliotrack show my-app
    foliotrack stats
    foliotrack history
    foliotrack backup
"""

from pathlib import Path

import click

from foliotrack import __version__
from foliotrack.cli.catalog_cmd import history, list_projects, show
from foliotrack.cli.error_handler import cli_errors
from foliotrack.cli.helpers import CliContext
from foliotrack.cli.scan_cmd import scan
from foliotrack.cli.store_cmd import backup, stats
from foliotrack.foundation.config import load_config
from foliotrack.foundation.logging import configure_logging


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: .foliotrack/config.yaml, then ~/.foliotrack/config.yaml)",
)
@click.option(
    "--db", "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Project store file (default: store.path from config)",
)
@click.option("--debug", is_flag=True, help="Enable DEBUG logging")
@click.option("--verbose", "-v", is_flag=True, help="Log per-project progress")
@click.option("--log-file", is_flag=True, help="Also write logs to .foliotrack/logs/")
@click.version_option(__version__, prog_name="foliotrack")
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    db_path: Path | None,
    debug: bool,
    verbose: bool,
    log_file: bool,
) -> None:
    """Catalog a directory tree of software projects."""
    with cli_errors():
        config = load_config(config_path)

    debug = debug or config.debug
    verbose = verbose or config.verbose
    configure_logging(debug=debug, verbose=verbose, persist=log_file)

    ctx.obj = CliContext(
        config=config,
        db_path=db_path or Path(config.store.path),
        backup_dir=Path(config.store.backup_dir),
        debug=debug,
        verbose=verbose,
        log_file=log_file,
    )


main.add_command(scan)
main.add_command(list_projects)
main.add_command(show)
main.add_command(history)
main.add_command(stats)
main.add_command(backup)
