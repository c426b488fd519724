"""CLI Error Handler.

Unified error output for the CLI:
- Human-readable output (default), rendered with rich on stderr
- JSON output for scripting (`--json`)
"""

import json
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import NoReturn

from rich.console import Console
from rich.text import Text

from foliotrack.foundation.errors import FolioError

_ICONS = {
    "config": "⚙",
    "scan": "🔍",
    "store": "📁",
}


def handle_error(error: FolioError, json_output: bool = False) -> NoReturn:
    """Report an error and exit with status 1.

    Args:
        error: The error to report
        json_output: Emit a JSON object on stderr instead of styled text

    Raises:
        SystemExit: Always exits with code 1
    """
    if json_output:
        error_dict = error.to_dict()
        if error.cause:
            error_dict["cause"] = str(error.cause)
        print(json.dumps(error_dict), file=sys.stderr)
        sys.exit(1)

    _print_human_error(error)
    sys.exit(1)


def _print_human_error(error: FolioError) -> None:
    console = Console(stderr=True)

    header = Text()
    header.append(f"{_ICONS.get(error.category, '✗')} ", style="bold")
    header.append(error.error_id, style="bold red")
    header.append(f" {error.message}")
    console.print(header)

    hints = error.recovery_hints
    if hints:
        console.print("\n[bold]What you can do:[/]")
        for i, hint in enumerate(hints, 1):
            console.print(f"  {i}. {hint}")


@contextmanager
def cli_errors(json_output: bool = False) -> Iterator[None]:
    """Turn FolioError raised inside the block into a clean exit."""
    try:
        yield
    except FolioError as e:
        handle_error(e, json_output=json_output)
