"""Shared CLI helpers: run context, store access and formatting."""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import click

from foliotrack.catalog.models import ProjectStatus
from foliotrack.catalog.store import ProjectStore
from foliotrack.foundation.config import FolioConfig

STATUS_STYLES = {
    ProjectStatus.DEVELOPMENT: "yellow",
    ProjectStatus.PRODUCTION: "green",
    ProjectStatus.OBSOLETE: "dim",
    ProjectStatus.ARCHIVED: "dim",
}


@dataclass(frozen=True, slots=True)
class CliContext:
    """Values resolved by the top-level group."""

    config: FolioConfig
    db_path: Path
    backup_dir: Path
    debug: bool = False
    verbose: bool = False
    log_file: bool = False


def get_context(ctx: click.Context) -> CliContext:
    obj = ctx.find_object(CliContext)
    if obj is None:
        raise click.UsageError("foliotrack commands must run under the main group")
    return obj


@contextmanager
def open_store(cli: CliContext) -> Iterator[ProjectStore]:
    """Open the configured store for the duration of a command."""
    store = ProjectStore(cli.db_path, backup_dir=cli.backup_dir)
    try:
        yield store
    finally:
        store.close()


def format_size(size: int) -> str:
    """Human-readable byte size."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def format_time(dt: datetime | None) -> str:
    return dt.strftime("%Y-%m-%d %H:%M") if dt else "-"


def styled_status(status: ProjectStatus) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"
