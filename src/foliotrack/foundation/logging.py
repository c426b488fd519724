"""Root logger setup for the foliotrack CLI.

Scans are quiet by default: only warnings reach the console. `-v` adds one
INFO line per analyzed project, `--debug` adds timestamps and store traffic.
Two environment variables win over the flags so CI jobs can turn up the
noise without editing command lines:

- FOLIOTRACK_LOG_LEVEL: any level name or number
- FOLIOTRACK_DEBUG: true/1/yes

With `--log-file` every record, whatever the console level, is also written
to `.foliotrack/logs/session_<timestamp>.log`; older session files beyond
the retention count are pruned when a new one starts.
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

_DEBUG_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"
_DEFAULT_FORMAT = "%(name)s: %(message)s"

_MAX_LOG_SESSIONS = 10

_TRUTHY = ("true", "1", "yes")


def resolve_level(
    *, debug: bool = False, verbose: bool = False, level: int | str | None = None
) -> int:
    """Pick the console level: explicit level, then env vars, then flags."""
    if level is not None:
        return _parse_level(level)
    if env_level := os.environ.get("FOLIOTRACK_LOG_LEVEL"):
        return _parse_level(env_level)
    if debug or os.environ.get("FOLIOTRACK_DEBUG", "").lower() in _TRUTHY:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    return logging.WARNING


def _session_log_dir(base: Path | None) -> Path:
    log_dir = (base or Path.cwd()) / ".foliotrack" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _prune_sessions(log_dir: Path, keep: int = _MAX_LOG_SESSIONS) -> None:
    """Delete all but the `keep` newest session logs."""
    sessions = sorted(log_dir.glob("session_*.log"), key=lambda p: p.stat().st_mtime)
    for stale in sessions[: max(0, len(sessions) - keep)]:
        stale.unlink(missing_ok=True)


def configure_logging(
    *,
    debug: bool = False,
    verbose: bool = False,
    level: int | str | None = None,
    stream: object = None,
    persist: bool = False,
    log_base: Path | None = None,
) -> None:
    """Replace the root handlers with a console handler and, optionally, a session file.

    Args:
        debug: DEBUG level with timestamps
        verbose: INFO level
        level: Explicit level, overriding flags and environment
        stream: Console stream (default: stderr)
        persist: Also write a DEBUG session log
        log_base: Directory that holds `.foliotrack/` (default: cwd)
    """
    console_level = resolve_level(debug=debug, verbose=verbose, level=level)

    root = logging.getLogger()
    root.handlers.clear()
    # The session file records DEBUG even when the console is quieter
    root.setLevel(logging.DEBUG if persist else console_level)

    console = logging.StreamHandler(stream or sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(
        logging.Formatter(_DEBUG_FORMAT if console_level <= logging.DEBUG else _DEFAULT_FORMAT)
    )
    root.addHandler(console)

    if persist:
        try:
            log_dir = _session_log_dir(log_base)
            _prune_sessions(log_dir)
            stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
            session = logging.FileHandler(
                log_dir / f"session_{stamp}.log", mode="w", encoding="utf-8"
            )
        except OSError as e:
            sys.stderr.write(f"Warning: session log disabled: {e}\n")
        else:
            session.setLevel(logging.DEBUG)
            session.setFormatter(logging.Formatter(_DEBUG_FORMAT))
            root.addHandler(session)

    logging.getLogger(__name__).debug(
        "Console level %s, session log %s",
        logging.getLevelName(console_level),
        "on" if persist else "off",
    )


def _parse_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    named = logging.getLevelName(level.upper())
    if isinstance(named, int):
        return named
    return int(level) if level.isdigit() else logging.WARNING
