"""Catalog data models.

Typed records for projects, their technologies, repository metadata and
evolution history, plus the per-run ScanResult. Nested records are encoded
to JSON only at the storage boundary (`to_dict` / `from_dict`, `to_row` /
`from_row`); decoding validates enum values and required keys.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from foliotrack.foundation.errors import ErrorCode, FolioError
from foliotrack.foundation.utils import from_iso, to_iso

DependencyKind = Literal["npm", "pip", "other"]
DeploymentPlatform = Literal["coolify", "vercel", "n8n", "other"]
DeploymentStatus = Literal["active", "inactive", "error"]
DeploymentEnvironment = Literal["production", "staging", "development"]

_DEPENDENCY_KINDS = frozenset({"npm", "pip", "other"})
_PLATFORMS = frozenset({"coolify", "vercel", "n8n", "other"})
_DEPLOYMENT_STATUSES = frozenset({"active", "inactive", "error"})
_ENVIRONMENTS = frozenset({"production", "staging", "development"})

# Project columns holding JSON-encoded nested records
_JSON_COLUMNS = ("technologies", "repository", "deployment", "dependencies", "metrics", "evolution")


class ProjectStatus(Enum):
    """Lifecycle status of a project."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    OBSOLETE = "obsolete"
    ARCHIVED = "archived"


class ProjectType(Enum):
    """What kind of project a directory holds."""

    WEB_APP = "web-app"
    AI_AGENT = "ai-agent"
    AUTOMATION = "automation"
    DATA_ANALYSIS = "data-analysis"
    LIBRARY = "library"
    API = "api"
    TOOL = "tool"


class TechCategory(Enum):
    """Category of a technology tag."""

    FRONTEND = "frontend"
    BACKEND = "backend"
    DATABASE = "database"
    DEPLOYMENT = "deployment"
    AUTOMATION = "automation"
    AI_ML = "ai-ml"


class EventType(Enum):
    """Kind of evolution event."""

    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    DEPLOYED = "deployed"
    ARCHIVED = "archived"


def _check_choice(value: str, choices: frozenset[str], name: str) -> str:
    if value not in choices:
        raise ValueError(f"invalid {name}: {value!r}")
    return value


def _optional_iso(value: datetime | None) -> str | None:
    return to_iso(value) if value else None


def _optional_datetime(value: str | None) -> datetime | None:
    return from_iso(value) if value else None


@dataclass(frozen=True, slots=True)
class Technology:
    """A technology tag attached to a project."""

    name: str
    category: TechCategory
    version: str | None = None

    @property
    def key(self) -> tuple[str, TechCategory]:
        """Per-project deduplication key."""
        return (self.name, self.category)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"name": self.name, "category": self.category.value}
        if self.version:
            data["version"] = self.version
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Technology":
        return cls(
            name=data["name"],
            category=TechCategory(data["category"]),
            version=data.get("version"),
        )


@dataclass(frozen=True, slots=True)
class RepositoryMetadata:
    """Version-control facts derived from a project directory.

    Recomputed fully on every scan; never edited by hand.
    """

    is_git_repo: bool
    branch: str | None = None
    commit_count: int = 0
    last_commit: datetime | None = None
    contributors: tuple[str, ...] = ()
    url: str | None = None

    def to_dict(self) -> dict:
        return {
            "is_git_repo": self.is_git_repo,
            "branch": self.branch,
            "commit_count": self.commit_count,
            "last_commit": _optional_iso(self.last_commit),
            "contributors": list(self.contributors),
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RepositoryMetadata":
        return cls(
            is_git_repo=bool(data["is_git_repo"]),
            branch=data.get("branch"),
            commit_count=int(data.get("commit_count", 0)),
            last_commit=_optional_datetime(data.get("last_commit")),
            contributors=tuple(data.get("contributors", ())),
            url=data.get("url"),
        )


@dataclass(frozen=True, slots=True)
class DeploymentInfo:
    """Where and how a project is deployed."""

    platform: DeploymentPlatform
    status: DeploymentStatus
    environment: DeploymentEnvironment
    url: str | None = None
    last_deployed: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "platform": self.platform,
            "status": self.status,
            "environment": self.environment,
            "url": self.url,
            "last_deployed": _optional_iso(self.last_deployed),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DeploymentInfo":
        return cls(
            platform=_check_choice(data["platform"], _PLATFORMS, "platform"),
            status=_check_choice(data["status"], _DEPLOYMENT_STATUSES, "deployment status"),
            environment=_check_choice(data["environment"], _ENVIRONMENTS, "environment"),
            url=data.get("url"),
            last_deployed=_optional_datetime(data.get("last_deployed")),
        )


@dataclass(frozen=True, slots=True)
class Dependency:
    """A declared package dependency."""

    name: str
    version: str
    type: DependencyKind
    is_dev: bool = False

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "type": self.type,
            "is_dev": self.is_dev,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Dependency":
        return cls(
            name=data["name"],
            version=data.get("version", ""),
            type=_check_choice(data["type"], _DEPENDENCY_KINDS, "dependency type"),
            is_dev=bool(data.get("is_dev", False)),
        )


@dataclass(frozen=True, slots=True)
class ProjectMetrics:
    """Business metrics. Never computed by a scan; kept for manual curation."""

    users: int | None = None
    posts: int | None = None
    revenue: float | None = None
    uptime: float | None = None
    response_time: float | None = None

    def to_dict(self) -> dict:
        return {
            "users": self.users,
            "posts": self.posts,
            "revenue": self.revenue,
            "uptime": self.uptime,
            "response_time": self.response_time,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectMetrics":
        return cls(
            users=data.get("users"),
            posts=data.get("posts"),
            revenue=data.get("revenue"),
            uptime=data.get("uptime"),
            response_time=data.get("response_time"),
        )


@dataclass(frozen=True, slots=True)
class EvolutionEvent:
    """A single, immutable entry in a project's history."""

    id: str
    timestamp: datetime
    type: EventType
    description: str
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": to_iso(self.timestamp),
            "type": self.type.value,
            "description": self.description,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EvolutionEvent":
        metadata = data.get("metadata")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValueError("event metadata must be an object")
        return cls(
            id=data["id"],
            timestamp=from_iso(data["timestamp"]),
            type=EventType(data["type"]),
            description=data["description"],
            metadata=metadata,
        )


@dataclass(frozen=True, slots=True)
class EvolutionHistory:
    """Events plus aggregate counters, recomputed on every scan."""

    events: tuple[EvolutionEvent, ...] = ()
    total_commits: int = 0
    total_files: int = 0
    total_size: int = 0
    growth_rate: float = 0.0
    last_activity: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "events": [e.to_dict() for e in self.events],
            "total_commits": self.total_commits,
            "total_files": self.total_files,
            "total_size": self.total_size,
            "growth_rate": self.growth_rate,
            "last_activity": _optional_iso(self.last_activity),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EvolutionHistory":
        return cls(
            events=tuple(EvolutionEvent.from_dict(e) for e in data.get("events", ())),
            total_commits=int(data.get("total_commits", 0)),
            total_files=int(data.get("total_files", 0)),
            total_size=int(data.get("total_size", 0)),
            growth_rate=float(data.get("growth_rate", 0.0)),
            last_activity=_optional_datetime(data.get("last_activity")),
        )


@dataclass(frozen=True, slots=True)
class Project:
    """A cataloged project.

    `id` is derived from the project's path and never changes once assigned.
    """

    id: str
    name: str
    status: ProjectStatus
    type: ProjectType
    path: Path
    technologies: tuple[Technology, ...]
    evolution: EvolutionHistory
    last_scanned: datetime
    created_at: datetime
    updated_at: datetime
    description: str | None = None
    repository: RepositoryMetadata | None = None
    deployment: DeploymentInfo | None = None
    dependencies: tuple[Dependency, ...] = ()
    metrics: ProjectMetrics | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "type": self.type.value,
            "path": str(self.path),
            "technologies": [t.to_dict() for t in self.technologies],
            "repository": self.repository.to_dict() if self.repository else None,
            "deployment": self.deployment.to_dict() if self.deployment else None,
            "dependencies": [d.to_dict() for d in self.dependencies],
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "evolution": self.evolution.to_dict(),
            "last_scanned": to_iso(self.last_scanned),
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        """Decode and validate a project payload.

        Raises:
            FolioError: STORE_DECODE_FAILED if the payload does not validate.
        """
        try:
            return cls(
                id=data["id"],
                name=data["name"],
                description=data.get("description"),
                status=ProjectStatus(data["status"]),
                type=ProjectType(data["type"]),
                path=Path(data["path"]),
                technologies=tuple(Technology.from_dict(t) for t in data["technologies"]),
                repository=(
                    RepositoryMetadata.from_dict(data["repository"])
                    if data.get("repository") else None
                ),
                deployment=(
                    DeploymentInfo.from_dict(data["deployment"])
                    if data.get("deployment") else None
                ),
                dependencies=tuple(
                    Dependency.from_dict(d) for d in data.get("dependencies", ())
                ),
                metrics=ProjectMetrics.from_dict(data["metrics"]) if data.get("metrics") else None,
                evolution=EvolutionHistory.from_dict(data["evolution"]),
                last_scanned=from_iso(data["last_scanned"]),
                created_at=from_iso(data["created_at"]),
                updated_at=from_iso(data["updated_at"]),
            )
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise FolioError(
                code=ErrorCode.STORE_DECODE_FAILED,
                context={"record": f"projects/{_row_id(data)}", "detail": str(e)},
                cause=e,
            ) from e

    def to_row(self) -> dict[str, Any]:
        """Encode as a `projects` table row; nested records become JSON text."""
        row = self.to_dict()
        for column in _JSON_COLUMNS:
            if row[column] is not None:
                row[column] = json.dumps(row[column])
        return row

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Project":
        """Decode a `projects` table row.

        Raises:
            FolioError: STORE_DECODE_FAILED if the row does not validate.
        """
        try:
            data = {key: row[key] for key in row.keys()}
            for column in _JSON_COLUMNS:
                if data.get(column):
                    data[column] = json.loads(data[column])
        except (KeyError, ValueError, TypeError) as e:
            raise FolioError(
                code=ErrorCode.STORE_DECODE_FAILED,
                context={"record": f"projects/{_row_id(row)}", "detail": str(e)},
                cause=e,
            ) from e
        return cls.from_dict(data)


@dataclass(frozen=True, slots=True)
class StatusChange:
    """A lifecycle transition detected during a scan."""

    project_id: str
    old_status: ProjectStatus
    new_status: ProjectStatus

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "old_status": self.old_status.value,
            "new_status": self.new_status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StatusChange":
        return cls(
            project_id=data["project_id"],
            old_status=ProjectStatus(data["old_status"]),
            new_status=ProjectStatus(data["new_status"]),
        )


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Summary of one scan run. Written once, never mutated."""

    timestamp: datetime
    duration_ms: int
    projects_found: int
    projects_updated: int
    errors: tuple[str, ...] = ()
    new_projects: tuple[str, ...] = ()
    status_changes: tuple[StatusChange, ...] = ()
    id: int | None = None

    @property
    def has_changes(self) -> bool:
        return bool(self.new_projects or self.status_changes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": to_iso(self.timestamp),
            "duration_ms": self.duration_ms,
            "projects_found": self.projects_found,
            "projects_updated": self.projects_updated,
            "errors": list(self.errors),
            "new_projects": list(self.new_projects),
            "status_changes": [c.to_dict() for c in self.status_changes],
        }

    def to_row(self) -> dict[str, Any]:
        """Encode as a `scans` table row (without the autoincrement id)."""
        return {
            "timestamp": to_iso(self.timestamp),
            "duration_ms": self.duration_ms,
            "projects_found": self.projects_found,
            "projects_updated": self.projects_updated,
            "errors": json.dumps(list(self.errors)),
            "new_projects": json.dumps(list(self.new_projects)),
            "status_changes": json.dumps([c.to_dict() for c in self.status_changes]),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ScanResult":
        try:
            return cls(
                id=row["id"],
                timestamp=from_iso(row["timestamp"]),
                duration_ms=int(row["duration_ms"]),
                projects_found=int(row["projects_found"]),
                projects_updated=int(row["projects_updated"]),
                errors=tuple(json.loads(row["errors"] or "[]")),
                new_projects=tuple(json.loads(row["new_projects"] or "[]")),
                status_changes=tuple(
                    StatusChange.from_dict(c) for c in json.loads(row["status_changes"] or "[]")
                ),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise FolioError(
                code=ErrorCode.STORE_DECODE_FAILED,
                context={"record": f"scans/{_row_id(row)}", "detail": str(e)},
                cause=e,
            ) from e


@dataclass(frozen=True, slots=True)
class ScanOptions:
    """Caller-supplied settings for one scan run."""

    root_path: Path
    recursive: bool = True
    include_obsolete: bool = True
    force_refresh: bool = False
    verbose: bool = False


@dataclass(frozen=True, slots=True)
class StoreStats:
    """Row counts and file size of a project store."""

    projects: int
    technologies: int
    evolution_events: int
    scans: int
    database_size: int

    def to_dict(self) -> dict:
        return {
            "projects": self.projects,
            "technologies": self.technologies,
            "evolution_events": self.evolution_events,
            "scans": self.scans,
            "database_size": self.database_size,
        }


@dataclass(frozen=True, slots=True)
class PreservedFields:
    """Stored values a rescan carries over instead of recomputing."""

    created_at: datetime
    description: str | None = None
    metrics: ProjectMetrics | None = None


def _row_id(row: Mapping[str, Any]) -> str:
    try:
        return str(row["id"])
    except (KeyError, IndexError):
        return "?"


__all__ = [
    "Dependency",
    "DeploymentInfo",
    "EventType",
    "EvolutionEvent",
    "EvolutionHistory",
    "PreservedFields",
    "Project",
    "ProjectMetrics",
    "ProjectStatus",
    "ProjectType",
    "RepositoryMetadata",
    "ScanOptions",
    "ScanResult",
    "StatusChange",
    "StoreStats",
    "TechCategory",
    "Technology",
]
