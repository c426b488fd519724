"""Tests for catalog record encoding and validation."""

import json
from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from foliotrack.catalog.models import (
    Dependency,
    DeploymentInfo,
    EventType,
    EvolutionEvent,
    EvolutionHistory,
    Project,
    ProjectMetrics,
    ProjectStatus,
    RepositoryMetadata,
    ScanResult,
    StatusChange,
    TechCategory,
    Technology,
)
from foliotrack.foundation.errors import ErrorCode, FolioError

WHEN = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def full_project(make_project: Callable[..., Project]) -> Project:
    """A project with every optional record filled in."""
    return make_project(
        "clients-shop",
        description="Storefront",
        technologies=(
            Technology("React", TechCategory.FRONTEND, "^18.0.0"),
            Technology("Git", TechCategory.DEPLOYMENT),
        ),
        repository=RepositoryMetadata(
            is_git_repo=True,
            branch="main",
            commit_count=2,
            last_commit=WHEN,
            contributors=("ana@example.com", "bo@example.com"),
            url="git@example.com:shop.git",
        ),
        deployment=DeploymentInfo(platform="vercel", status="active", environment="production"),
        dependencies=(
            Dependency("react", "^18.0.0", "npm"),
            Dependency("vitest", "^1.0.0", "npm", is_dev=True),
        ),
        metrics=ProjectMetrics(users=120, uptime=99.9),
        evolution=EvolutionHistory(
            events=(
                EvolutionEvent(
                    id="clients-shop-repository",
                    timestamp=WHEN,
                    type=EventType.UPDATED,
                    description="Repository has 2 commits by 2 contributors",
                    metadata={"branch": "main", "contributors": 2},
                ),
            ),
            total_commits=2,
            total_files=10,
            total_size=2048,
            growth_rate=2.0,
            last_activity=WHEN,
        ),
    )


class TestProjectEncoding:
    """Tests for Project dict and row encoding."""

    def test_dict_round_trip(self, full_project: Project) -> None:
        """Decoding an encoded project yields an equal project."""
        assert Project.from_dict(full_project.to_dict()) == full_project

    def test_row_round_trip(self, full_project: Project) -> None:
        """Row encoding stores nested records as JSON text."""
        row = full_project.to_row()

        assert isinstance(row["technologies"], str)
        assert json.loads(row["repository"])["branch"] == "main"
        assert Project.from_row(row) == full_project

    def test_optional_records_stay_null(self, make_project: Callable[..., Project]) -> None:
        """Absent repository, deployment and metrics are encoded as null."""
        row = make_project().to_row()

        assert row["repository"] is None
        assert row["deployment"] is None
        assert row["metrics"] is None
        assert row["dependencies"] == "[]"

    def test_unknown_status_rejected(self, make_project: Callable[..., Project]) -> None:
        """An unknown enum value fails with a decode error naming the record."""
        data = make_project("broken").to_dict()
        data["status"] = "paused"

        with pytest.raises(FolioError) as exc_info:
            Project.from_dict(data)

        assert exc_info.value.code is ErrorCode.STORE_DECODE_FAILED
        assert exc_info.value.context["record"] == "projects/broken"

    def test_missing_key_rejected(self, make_project: Callable[..., Project]) -> None:
        """A payload missing a required field fails to decode."""
        data = make_project().to_dict()
        del data["evolution"]

        with pytest.raises(FolioError) as exc_info:
            Project.from_dict(data)

        assert exc_info.value.code is ErrorCode.STORE_DECODE_FAILED

    def test_malformed_json_column(self, make_project: Callable[..., Project]) -> None:
        """Corrupt JSON in a row is a decode error, not a crash."""
        row = make_project().to_row()
        row["technologies"] = "[{not json"

        with pytest.raises(FolioError) as exc_info:
            Project.from_row(row)

        assert exc_info.value.code is ErrorCode.STORE_DECODE_FAILED

    def test_bad_technology_category(self, make_project: Callable[..., Project]) -> None:
        """Technology categories are validated on decode."""
        data = make_project().to_dict()
        data["technologies"] = [{"name": "Cobol", "category": "mainframe"}]

        with pytest.raises(FolioError):
            Project.from_dict(data)


class TestNestedRecords:
    """Tests for the nested record types."""

    def test_deployment_rejects_unknown_platform(self) -> None:
        """Deployment platforms are a closed set."""
        with pytest.raises(ValueError):
            DeploymentInfo.from_dict(
                {"platform": "heroku", "status": "active", "environment": "production"}
            )

    def test_event_metadata_must_be_object(self) -> None:
        """Event metadata is a mapping when present."""
        with pytest.raises(ValueError):
            EvolutionEvent.from_dict({
                "id": "e1",
                "timestamp": "2024-03-01T12:00:00+00:00",
                "type": "created",
                "description": "x",
                "metadata": [1, 2],
            })

    def test_technology_version_omitted_when_unknown(self) -> None:
        """Version-less technologies encode without a version key."""
        assert Technology("Git", TechCategory.DEPLOYMENT).to_dict() == {
            "name": "Git",
            "category": "deployment",
        }

    def test_dependency_type_checked(self) -> None:
        """Dependency kinds are validated."""
        with pytest.raises(ValueError):
            Dependency.from_dict({"name": "x", "version": "1", "type": "cargo"})


class TestScanResult:
    """Tests for ScanResult encoding."""

    def test_row_round_trip(self) -> None:
        """A saved scan row decodes to the same result plus its id."""
        result = ScanResult(
            timestamp=WHEN,
            duration_ms=42,
            projects_found=3,
            projects_updated=2,
            errors=("Failed to process /x: boom",),
            new_projects=("dev-app",),
            status_changes=(
                StatusChange("dev-api", ProjectStatus.DEVELOPMENT, ProjectStatus.PRODUCTION),
            ),
        )
        row = {"id": 7, **result.to_row()}

        decoded = ScanResult.from_row(row)

        assert decoded.id == 7
        assert decoded.status_changes == result.status_changes
        assert decoded.errors == result.errors
        assert decoded.has_changes is True

    def test_no_changes(self) -> None:
        """A result without new projects or status changes has no changes."""
        result = ScanResult(timestamp=WHEN, duration_ms=1, projects_found=1, projects_updated=1)

        assert result.has_changes is False

    def test_decode_failure(self) -> None:
        """A corrupt scan row raises a decode error."""
        row = {
            "id": 1,
            "timestamp": "yesterday",
            "duration_ms": 1,
            "projects_found": 0,
            "projects_updated": 0,
            "errors": "[]",
            "new_projects": "[]",
            "status_changes": "[]",
        }

        with pytest.raises(FolioError) as exc_info:
            ScanResult.from_row(row)

        assert exc_info.value.context["record"] == "scans/1"
