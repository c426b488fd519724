"""Command-line interface for foliotrack."""

from foliotrack.cli.main import main

__all__ = ["main"]
