"""Filesystem prober.

Answers existence, listing and read queries about a directory without ever
raising. Every answer is a `ProbeResult` whose `outcome` says whether the
thing was found, is absent, or exists but could not be read, so callers can
degrade explicitly instead of catching exceptions.
"""

import json
import logging
import os
import tomllib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProbeOutcome(Enum):
    """Result of a single probe."""

    FOUND = "found"
    ABSENT = "absent"
    UNREADABLE = "unreadable"


class EntryKind(Enum):
    FILE = "file"
    DIRECTORY = "directory"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class ProbeResult(Generic[T]):
    """Outcome of a probe plus its value when found."""

    outcome: ProbeOutcome
    value: T | None = None
    detail: str | None = None
    """Reason for UNREADABLE outcomes."""

    @property
    def found(self) -> bool:
        return self.outcome is ProbeOutcome.FOUND

    @classmethod
    def absent(cls) -> "ProbeResult[T]":
        return cls(ProbeOutcome.ABSENT)

    @classmethod
    def unreadable(cls, detail: str) -> "ProbeResult[T]":
        return cls(ProbeOutcome.UNREADABLE, detail=detail)


@dataclass(frozen=True, slots=True)
class ChildEntry:
    """An immediate child of a directory."""

    name: str
    kind: EntryKind

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE


class FilesystemProber:
    """Side-effect-free queries against the filesystem."""

    def check(self, directory: Path, name: str) -> ProbeResult[EntryKind]:
        """Whether `directory/name` exists, and what kind of entry it is."""
        target = directory / name
        try:
            if target.is_dir():
                return ProbeResult(ProbeOutcome.FOUND, EntryKind.DIRECTORY)
            if target.is_file():
                return ProbeResult(ProbeOutcome.FOUND, EntryKind.FILE)
            target.lstat()
            return ProbeResult(ProbeOutcome.FOUND, EntryKind.OTHER)
        except (FileNotFoundError, NotADirectoryError):
            return ProbeResult.absent()
        except OSError as e:
            logger.debug("Cannot probe %s: %s", target, e)
            return ProbeResult.unreadable(str(e))

    def list_children(self, directory: Path) -> ProbeResult[tuple[ChildEntry, ...]]:
        """Immediate children of a directory, sorted by name."""
        try:
            with os.scandir(directory) as it:
                entries = [ChildEntry(entry.name, _entry_kind(entry)) for entry in it]
        except (FileNotFoundError, NotADirectoryError):
            return ProbeResult.absent()
        except OSError as e:
            logger.debug("Cannot list %s: %s", directory, e)
            return ProbeResult.unreadable(str(e))
        entries.sort(key=lambda c: c.name)
        return ProbeResult(ProbeOutcome.FOUND, tuple(entries))

    def read_text(self, path: Path) -> ProbeResult[str]:
        """Read a UTF-8 text file."""
        try:
            return ProbeResult(ProbeOutcome.FOUND, path.read_text(encoding="utf-8"))
        except (FileNotFoundError, NotADirectoryError):
            return ProbeResult.absent()
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Cannot read %s: %s", path, e)
            return ProbeResult.unreadable(str(e))

    def read_json(self, path: Path) -> ProbeResult[dict[str, Any]]:
        """Read a JSON object. Malformed content is UNREADABLE."""
        text = self.read_text(path)
        if not text.found:
            return ProbeResult(text.outcome, detail=text.detail)
        try:
            data = json.loads(text.value or "")
        except json.JSONDecodeError as e:
            logger.debug("Malformed JSON in %s: %s", path, e)
            return ProbeResult.unreadable(str(e))
        if not isinstance(data, dict):
            return ProbeResult.unreadable("expected a JSON object")
        return ProbeResult(ProbeOutcome.FOUND, data)

    def read_toml(self, path: Path) -> ProbeResult[dict[str, Any]]:
        """Read a TOML document. Malformed content is UNREADABLE."""
        text = self.read_text(path)
        if not text.found:
            return ProbeResult(text.outcome, detail=text.detail)
        try:
            return ProbeResult(ProbeOutcome.FOUND, tomllib.loads(text.value or ""))
        except tomllib.TOMLDecodeError as e:
            logger.debug("Malformed TOML in %s: %s", path, e)
            return ProbeResult.unreadable(str(e))


def _entry_kind(entry: os.DirEntry) -> EntryKind:
    try:
        if entry.is_dir():
            return EntryKind.DIRECTORY
        if entry.is_file():
            return EntryKind.FILE
    except OSError:
        pass
    return EntryKind.OTHER
