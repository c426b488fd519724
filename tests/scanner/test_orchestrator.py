"""Tests for scan orchestration against a real store."""

import shutil
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

import pytest

from foliotrack.catalog.models import (
    EventType,
    ProjectMetrics,
    ProjectStatus,
    ProjectType,
    ScanOptions,
    TechCategory,
    Technology,
)
from foliotrack.catalog.store import ProjectStore
from foliotrack.foundation.config import FolioConfig, ScanConfig
from foliotrack.foundation.errors import ErrorCode, FolioError
from foliotrack.scanner.orchestrator import ProjectScanner

REACT_APP = {"package.json": {"dependencies": {"react": "^18.0.0"}, "description": "Shop"}}


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """An empty scan root."""
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def react_repo(write_tree, git_files, reflog_line) -> Callable[[Path], Path]:
    """Write a React project with two commits at the given path."""

    def _write(path: Path) -> Path:
        return write_tree(path, {
            **REACT_APP,
            **git_files(
                reflog_line("ana@example.com", 1700000000, "commit (initial): start"),
                reflog_line("bo@example.com", 1700003600),
            ),
        })

    return _write


def _scan(store: ProjectStore, config: FolioConfig, root: Path, **options):
    return ProjectScanner(store, config).scan(ScanOptions(root_path=root, **options))


class TestScanLifecycle:
    """End-to-end scans of a small tree."""

    def test_first_scan(
        self, store: ProjectStore, config: FolioConfig, root: Path, react_repo
    ) -> None:
        """A new repository is discovered, classified and stored."""
        react_repo(root / "devdir" / "myapp")

        result = _scan(store, config, root)

        assert result.projects_found == 1
        assert result.projects_updated == 1
        assert result.new_projects == ("myapp",)
        assert result.status_changes == ()
        assert result.errors == ()
        assert result.id is not None

        project = store.get("myapp")
        assert project is not None
        assert project.type is ProjectType.WEB_APP
        assert project.status is ProjectStatus.DEVELOPMENT
        assert project.description == "Shop"
        assert Technology("React", TechCategory.FRONTEND, "^18.0.0") in project.technologies
        assert Technology("Git", TechCategory.DEPLOYMENT) in project.technologies
        assert project.evolution.total_commits == 2
        assert project.repository is not None
        assert project.repository.contributors == ("ana@example.com", "bo@example.com")

    def test_created_event(
        self, store: ProjectStore, config: FolioConfig, root: Path, react_repo
    ) -> None:
        """A new project gets a created event alongside the repository event."""
        react_repo(root / "devdir" / "myapp")

        _scan(store, config, root)

        types = [e.type for e in store.list_events("myapp")]
        assert sorted(t.value for t in types) == ["created", "updated"]

    def test_rescan_is_quiet(
        self, store: ProjectStore, config: FolioConfig, root: Path, react_repo
    ) -> None:
        """Rescanning an unchanged tree updates but reports no changes."""
        react_repo(root / "devdir" / "myapp")
        _scan(store, config, root)

        result = _scan(store, config, root)

        assert result.projects_found == 1
        assert result.projects_updated == 1
        assert result.new_projects == ()
        assert result.status_changes == ()
        assert result.has_changes is False
        assert len(store.list_events("myapp")) == 2

    def test_move_to_production(
        self, store: ProjectStore, config: FolioConfig, root: Path, react_repo
    ) -> None:
        """Moving a project into a production bucket keeps its identity."""
        react_repo(root / "devdir" / "myapp")
        _scan(store, config, root)
        (root / "prod").mkdir()
        shutil.move(str(root / "devdir" / "myapp"), str(root / "prod" / "myapp"))

        result = _scan(store, config, root)

        assert result.new_projects == ()
        assert len(result.status_changes) == 1
        change = result.status_changes[0]
        assert change.project_id == "myapp"
        assert change.old_status is ProjectStatus.DEVELOPMENT
        assert change.new_status is ProjectStatus.PRODUCTION
        assert store.get_status("myapp") is ProjectStatus.PRODUCTION
        events = [e for e in store.list_events("myapp") if e.type is EventType.STATUS_CHANGED]
        assert len(events) == 1
        assert events[0].metadata == {"from": "development", "to": "production"}

    def test_preserved_fields(
        self, store: ProjectStore, config: FolioConfig, root: Path, write_tree
    ) -> None:
        """created_at, metrics and curated descriptions survive a rescan."""
        write_tree(root / "dev" / "tool", {"README.md": "# tool"})
        _scan(store, config, root)
        stored = store.get("tool")
        assert stored is not None
        store.upsert_project(
            replace(stored, description="Curated", metrics=ProjectMetrics(users=3))
        )

        _scan(store, config, root)

        rescanned = store.get("tool")
        assert rescanned is not None
        assert rescanned.created_at == stored.created_at
        assert rescanned.description == "Curated"
        assert rescanned.metrics == ProjectMetrics(users=3)
        assert rescanned.last_scanned >= stored.last_scanned

    def test_force_refresh_drops_curated_description(
        self, store: ProjectStore, config: FolioConfig, root: Path, write_tree
    ) -> None:
        """force_refresh recomputes the description from manifests."""
        write_tree(root / "dev" / "tool", {"README.md": "# tool"})
        _scan(store, config, root)
        stored = store.get("tool")
        assert stored is not None
        store.upsert_project(replace(stored, description="Curated"))

        _scan(store, config, root, force_refresh=True)

        rescanned = store.get("tool")
        assert rescanned is not None
        assert rescanned.description is None

    def test_scan_recorded(self, store: ProjectStore, config: FolioConfig, root: Path) -> None:
        """Every run leaves a scan record, even with nothing found."""
        result = _scan(store, config, root)

        (recorded,) = store.list_scans()
        assert recorded.id == result.id
        assert recorded.projects_found == 0

    def test_missing_root(self, store: ProjectStore, config: FolioConfig, root: Path) -> None:
        """A missing root is a configuration error and records nothing."""
        with pytest.raises(FolioError) as exc_info:
            _scan(store, config, root / "nope")

        assert exc_info.value.code is ErrorCode.CONFIG_PATH_MISSING
        assert store.list_scans() == []

    def test_deterministic(
        self, tmp_path: Path, config: FolioConfig, root: Path, react_repo
    ) -> None:
        """Two stores scanning the same tree classify identically."""
        react_repo(root / "devdir" / "myapp")
        projects = []
        for name in ("a.db", "b.db"):
            with ProjectStore(tmp_path / name) as store:
                _scan(store, config, root)
                projects.append(store.get("myapp"))

        first, second = projects
        assert first is not None and second is not None
        assert (first.type, first.status, first.technologies, first.dependencies) == (
            second.type, second.status, second.technologies, second.dependencies
        )

    def test_scripts_requirements_only_is_tool(
        self, store: ProjectStore, config: FolioConfig, root: Path, write_tree
    ) -> None:
        """Helper-script dependencies add technologies but do not decide the type."""
        write_tree(root / "dev" / "toolbox", {"scripts/requirements.txt": "pandas\n"})

        _scan(store, config, root)

        project = store.get("toolbox")
        assert project is not None
        assert project.type is ProjectType.TOOL
        assert Technology("Pandas", TechCategory.AI_ML) in project.technologies


class TestDiscovery:
    """Tests for bucket and candidate discovery."""

    def test_non_project_dirs_skipped(
        self, store: ProjectStore, config: FolioConfig, root: Path, write_tree
    ) -> None:
        """Directories without markers or subdirectories are not projects."""
        write_tree(root / "dev", {"empty": None, "notes/todo.txt": "x", "api/Dockerfile": ""})

        result = _scan(store, config, root)

        assert result.new_projects == ("api",)

    def test_hidden_dirs_skipped(
        self, store: ProjectStore, config: FolioConfig, root: Path, write_tree
    ) -> None:
        """Hidden buckets and hidden project directories are ignored."""
        write_tree(root, {".cache/app/README.md": "", "dev/.tmp/README.md": ""})

        assert _scan(store, config, root).projects_found == 0

    def test_flat_scan(
        self, store: ProjectStore, config: FolioConfig, root: Path, write_tree
    ) -> None:
        """A flat scan treats the root itself as the only bucket."""
        write_tree(root, {"one/README.md": "", "two/pyproject.toml": ""})

        result = _scan(store, config, root, recursive=False)

        assert sorted(result.new_projects) == ["one", "two"]

    def test_skip_obsolete(
        self, store: ProjectStore, config: FolioConfig, root: Path, write_tree
    ) -> None:
        """Obsolete buckets are skipped when asked."""
        write_tree(root, {"dev/app/README.md": "", "Obsolete/old/README.md": ""})

        included = _scan(store, config, root)
        assert store.get_status("old") is ProjectStatus.OBSOLETE

        skipped = _scan(store, config, root, include_obsolete=False)

        assert included.projects_found == 2
        assert skipped.projects_found == 1

    def test_configured_buckets(
        self, store: ProjectStore, root: Path, write_tree
    ) -> None:
        """Configured buckets limit discovery; missing ones are skipped."""
        write_tree(root, {"1 - DEV/app/README.md": "", "other/tool/README.md": ""})
        config = FolioConfig(scan=ScanConfig(buckets=("1 - DEV", "2 - PROD")))

        result = _scan(store, config, root)

        assert result.new_projects == ("app",)
        assert result.errors == ()

    def test_duplicate_identity(
        self, store: ProjectStore, config: FolioConfig, root: Path, write_tree
    ) -> None:
        """Two directories with the same identity: first wins, second is an error."""
        write_tree(root, {"a/My App/README.md": "", "b/my-app/README.md": ""})

        result = _scan(store, config, root)

        assert result.new_projects == ("my-app",)
        assert result.projects_found == 1
        assert len(result.errors) == 1
        assert "Duplicate project identity 'my-app'" in result.errors[0]
        stored = store.get("my-app")
        assert stored is not None
        assert stored.name == "My App"


class TestFailureIsolation:
    """Per-project failures do not abort a scan."""

    def test_analysis_failure_recorded(
        self,
        store: ProjectStore,
        config: FolioConfig,
        root: Path,
        write_tree,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A project that fails analysis becomes an error string."""
        write_tree(root, {"dev/good/README.md": "", "dev/bad/README.md": ""})
        scanner = ProjectScanner(store, config)
        original = scanner.analyze

        def flaky(candidate, now):
            if candidate.project_id == "bad":
                raise RuntimeError("disk on fire")
            return original(candidate, now)

        monkeypatch.setattr(scanner, "analyze", flaky)

        result = scanner.scan(ScanOptions(root_path=root))

        assert result.projects_found == 2
        assert result.new_projects == ("good",)
        assert len(result.errors) == 1
        assert "Failed to process" in result.errors[0]
        assert "disk on fire" in result.errors[0]
        assert not store.exists("bad")

    def test_write_failure_recorded(
        self,
        store: ProjectStore,
        config: FolioConfig,
        root: Path,
        write_tree,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A failed upsert is reported and the project is not counted as new."""
        write_tree(root, {"dev/app/README.md": ""})

        def failing(project):
            raise FolioError(
                code=ErrorCode.STORE_WRITE_FAILED,
                context={"project_id": project.id, "detail": "disk full"},
            )

        monkeypatch.setattr(store, "upsert_project", failing)

        result = _scan(store, config, root)

        assert result.projects_found == 1
        assert result.projects_updated == 0
        assert result.new_projects == ()
        assert result.errors == ("Failed to save project 'app': disk full",)

    def test_store_unavailable_propagates(
        self, tmp_path: Path, config: FolioConfig, root: Path, write_tree
    ) -> None:
        """A closed store aborts the scan."""
        write_tree(root, {"dev/app/README.md": ""})
        closed = ProjectStore(tmp_path / "closed.db")
        closed.close()

        with pytest.raises(FolioError) as exc_info:
            _scan(closed, config, root)

        assert exc_info.value.code is ErrorCode.STORE_UNAVAILABLE

    def test_single_worker(
        self, store: ProjectStore, root: Path, write_tree
    ) -> None:
        """A pool of one worker processes every candidate."""
        write_tree(root, {f"dev/p{i}/README.md": "" for i in range(5)})
        config = FolioConfig(scan=ScanConfig(max_workers=1))

        result = _scan(store, config, root)

        assert result.new_projects == ("p0", "p1", "p2", "p3", "p4")
