"""Pytest fixtures for foliotrack tests."""

import json
import logging
import os
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from foliotrack.catalog.models import (
    EvolutionHistory,
    Project,
    ProjectStatus,
    ProjectType,
    TechCategory,
    Technology,
)
from foliotrack.catalog.store import ProjectStore
from foliotrack.foundation.config import FolioConfig, reset_config

ZERO_SHA = "0" * 40
SHA = "a" * 40

TreeWriter = Callable[[Path, dict[str, str | dict | None]], Path]


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep config discovery and env overrides away from the real machine."""
    home = tmp_path / "_home"
    work = tmp_path / "_cwd"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    for key in list(os.environ):
        if key.startswith("FOLIOTRACK_"):
            monkeypatch.delenv(key)
    root_logger = logging.getLogger()
    handlers, level = root_logger.handlers[:], root_logger.level
    reset_config()
    yield
    reset_config()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def write_tree() -> TreeWriter:
    """Create files under a directory.

    Keys are relative paths. A dict value is written as JSON, a string as
    text, and None creates a directory.
    """

    def _write(base: Path, files: dict[str, str | dict | None]) -> Path:
        base.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            target = base / rel
            if content is None:
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, dict):
                target.write_text(json.dumps(content), encoding="utf-8")
            else:
                target.write_text(content, encoding="utf-8")
        return base

    return _write


@pytest.fixture
def reflog_line() -> Callable[..., str]:
    """Build one `.git/logs/HEAD` entry."""

    def _line(email: str, timestamp: int, message: str = "commit: update") -> str:
        name = email.split("@", 1)[0].title()
        return f"{ZERO_SHA} {SHA} {name} <{email}> {timestamp} +0000\t{message}"

    return _line


@pytest.fixture
def git_files() -> Callable[..., dict[str, str]]:
    """Files for a minimal `.git` directory with the given reflog entries."""

    def _files(*lines: str, branch: str = "main") -> dict[str, str]:
        files = {".git/HEAD": f"ref: refs/heads/{branch}\n"}
        if lines:
            files[".git/logs/HEAD"] = "\n".join(lines) + "\n"
        return files

    return _files


@pytest.fixture
def config() -> FolioConfig:
    """Default configuration."""
    return FolioConfig()


@pytest.fixture
def store(tmp_path: Path) -> Iterator[ProjectStore]:
    """An open project store in a temp directory."""
    project_store = ProjectStore(tmp_path / "db" / "projects.db")
    yield project_store
    project_store.close()


@pytest.fixture
def make_project() -> Callable[..., Project]:
    """Build a Project with sensible defaults; keyword arguments override fields."""

    def _make(project_id: str = "dev-app", **overrides: object) -> Project:
        when = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
        fields: dict[str, object] = {
            "id": project_id,
            "name": project_id,
            "status": ProjectStatus.DEVELOPMENT,
            "type": ProjectType.WEB_APP,
            "path": Path("/work") / project_id,
            "technologies": (Technology("React", TechCategory.FRONTEND, "^18.0.0"),),
            "evolution": EvolutionHistory(total_files=3, total_size=120, last_activity=when),
            "last_scanned": when,
            "created_at": when,
            "updated_at": when,
        }
        fields.update(overrides)
        return Project(**fields)  # type: ignore[arg-type]

    return _make
