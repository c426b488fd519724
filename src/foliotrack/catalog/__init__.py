"""Catalog - typed project records and the SQLite project store."""

from foliotrack.catalog.models import (
    Dependency,
    DeploymentInfo,
    EventType,
    EvolutionEvent,
    EvolutionHistory,
    PreservedFields,
    Project,
    ProjectMetrics,
    ProjectStatus,
    ProjectType,
    RepositoryMetadata,
    ScanOptions,
    ScanResult,
    StatusChange,
    StoreStats,
    TechCategory,
    Technology,
)
from foliotrack.catalog.store import ProjectStore

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
    "ProjectStore",
    "RepositoryMetadata",
    "ScanOptions",
    "ScanResult",
    "StatusChange",
    "StoreStats",
    "TechCategory",
    "Technology",
]
