"""Scan orchestration.

One scan run: Discover -> Analyze -> Diff -> Persist -> Summarize.

Analysis of independent project directories runs in a bounded thread pool;
diffing and persisting happen on the calling thread, one project at a time,
so the existence and status lookups for an identity always precede its
upsert.

Example:
    >>> with ProjectStore(Path(".foliotrack/projects.db")) as store:
    ...     result = ProjectScanner(store).scan(ScanOptions(root_path=Path("~/work")))
    >>> result.projects_found
    12
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path

from foliotrack.catalog.models import (
    EventType,
    EvolutionEvent,
    PreservedFields,
    Project,
    ProjectStatus,
    ScanOptions,
    ScanResult,
    StatusChange,
)
from foliotrack.catalog.store import ProjectStore
from foliotrack.foundation.config import FolioConfig, get_config
from foliotrack.foundation.errors import ErrorCode, FolioError
from foliotrack.foundation.utils import path_slug, to_iso, utc_now
from foliotrack.scanner.classifier import Classifier, StatusRule, detect_deployment
from foliotrack.scanner.evolution import EvolutionBuilder
from foliotrack.scanner.probe import FilesystemProber, ProbeOutcome
from foliotrack.scanner.repository import RepositoryAnalyzer
from foliotrack.scanner.signals import gather_markers, read_manifests

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Candidate:
    """A discovered project directory, not yet analyzed."""

    path: Path
    project_id: str
    segments: tuple[str, ...]
    """Path relative to the scan root, bucket included."""


@dataclass(frozen=True, slots=True)
class Analysis:
    """Outcome of analyzing one candidate."""

    candidate: Candidate
    project: Project | None = None
    error: str | None = None


class ProjectScanner:
    """Reconciles a directory tree of projects with a project store.

    The store handle is owned by the caller. Concurrent scans against the
    same store file must be serialized by the caller.
    """

    def __init__(
        self,
        store: ProjectStore,
        config: FolioConfig | None = None,
        prober: FilesystemProber | None = None,
    ) -> None:
        self.store = store
        self.config = config or get_config()
        self.prober = prober or FilesystemProber()
        self.classifier = Classifier(self.config.classifier)
        self.repository = RepositoryAnalyzer(self.config.repository, self.prober)
        self.evolution = EvolutionBuilder(self.config.scan.excluded_dirs)

    def scan(self, options: ScanOptions) -> ScanResult:
        """Run one full scan and record it.

        Returns:
            The persisted ScanResult, with its id set.

        Raises:
            FolioError: CONFIG_PATH_MISSING if the root is not a directory;
                STORE_UNAVAILABLE if the store cannot be read or the scan
                record cannot be written.
        """
        root = options.root_path.expanduser().resolve()
        if not root.is_dir():
            raise FolioError(
                code=ErrorCode.CONFIG_PATH_MISSING, context={"path": str(root)}
            )

        started = time.perf_counter()
        now = utc_now()
        progress = logging.INFO if options.verbose else logging.DEBUG

        candidates, errors = self.discover(root, options)
        logger.log(progress, "Discovered %d projects under %s", len(candidates), root)

        analyses = self._analyze_all(candidates, now)

        new_projects: list[str] = []
        status_changes: list[StatusChange] = []
        updated = 0

        for analysis in analyses:
            if analysis.error is not None:
                errors.append(analysis.error)
                continue

            project = analysis.project
            is_new = not self.store.exists(project.id)
            old_status = None if is_new else self.store.get_status(project.id)
            preserved = None if is_new else self.store.get_preserved(project.id)

            change = None
            if old_status is not None and old_status is not project.status:
                change = StatusChange(project.id, old_status, project.status)

            project = self._reconcile(project, preserved, is_new, change, now, options)

            try:
                self.store.upsert_project(project)
            except FolioError as e:
                if e.code is not ErrorCode.STORE_WRITE_FAILED:
                    raise
                logger.warning("%s", e.message)
                errors.append(e.message)
                continue

            updated += 1
            if is_new:
                new_projects.append(project.id)
                logger.log(progress, "New project %s (%s)", project.id, project.type.value)
            if change is not None:
                status_changes.append(change)
                logger.log(
                    progress, "Status of %s changed: %s -> %s",
                    project.id, change.old_status.value, change.new_status.value,
                )

        result = ScanResult(
            timestamp=now,
            duration_ms=int((time.perf_counter() - started) * 1000),
            projects_found=len(candidates),
            projects_updated=updated,
            errors=tuple(errors),
            new_projects=tuple(new_projects),
            status_changes=tuple(status_changes),
        )
        scan_id = self.store.save_scan(result)
        logger.log(
            progress,
            "Scan finished: %d found, %d updated, %d errors in %dms",
            result.projects_found, result.projects_updated,
            len(result.errors), result.duration_ms,
        )
        return replace(result, id=scan_id)

    # =========================================================================
    # Discover
    # =========================================================================

    def buckets(self, root: Path, options: ScanOptions) -> list[Path]:
        """Top-level directories whose children are candidate projects."""
        if not options.recursive:
            return [root]

        if self.config.scan.buckets:
            names = list(self.config.scan.buckets)
        else:
            listing = self.prober.list_children(root)
            names = [
                c.name for c in (listing.value or ())
                if c.is_dir and not c.name.startswith(".")
            ]

        if not options.include_obsolete:
            obsolete = StatusRule(
                "obsolete", self.config.classifier.obsolete_keywords, ProjectStatus.OBSOLETE
            )
            names = [n for n in names if not obsolete.matches([n])]

        return [root / name for name in names]

    def discover(self, root: Path, options: ScanOptions) -> tuple[list[Candidate], list[str]]:
        """Find candidate project directories.

        Returns:
            Candidates in discovery order, and error strings for unreadable
            buckets and duplicate identities.
        """
        candidates: list[Candidate] = []
        errors: list[str] = []
        seen: dict[str, Path] = {}

        for bucket in self.buckets(root, options):
            listing = self.prober.list_children(bucket)
            if listing.outcome is ProbeOutcome.ABSENT:
                logger.debug("Bucket %s does not exist, skipping", bucket)
                continue
            if listing.outcome is ProbeOutcome.UNREADABLE:
                errors.append(_failure(bucket, listing.detail or "unreadable"))
                continue

            for child in listing.value or ():
                if not child.is_dir or child.name.startswith("."):
                    continue
                path = bucket / child.name
                if not self.is_project_dir(path):
                    continue

                project_id = path_slug(path.relative_to(bucket))
                if project_id in seen:
                    errors.append(
                        f"Duplicate project identity '{project_id}': {path} "
                        f"(already found at {seen[project_id]})"
                    )
                    continue
                seen[project_id] = path
                candidates.append(Candidate(
                    path=path,
                    project_id=project_id,
                    segments=path.relative_to(root).parts,
                ))

        return candidates, errors

    def is_project_dir(self, path: Path) -> bool:
        """A marker file is present, or the directory has a subdirectory."""
        listing = self.prober.list_children(path)
        if not listing.found:
            return False
        markers = set(self.config.scan.project_markers)
        return any(c.name in markers or c.is_dir for c in listing.value or ())

    # =========================================================================
    # Analyze
    # =========================================================================

    def _analyze_all(self, candidates: list[Candidate], now: datetime) -> list[Analysis]:
        if not candidates:
            return []
        workers = min(self.config.scan.max_workers, len(candidates))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda c: self._analyze_safe(c, now), candidates))

    def _analyze_safe(self, candidate: Candidate, now: datetime) -> Analysis:
        try:
            return Analysis(candidate, project=self.analyze(candidate, now))
        except Exception as e:
            logger.warning("Failed to process %s: %s", candidate.path, e)
            logger.debug("Analysis failure for %s", candidate.path, exc_info=True)
            return Analysis(candidate, error=_failure(candidate.path, str(e)))

    def analyze(self, candidate: Candidate, now: datetime) -> Project:
        """Build a fresh candidate Project for one directory."""
        path = candidate.path
        markers = gather_markers(path, self.prober)
        manifests = read_manifests(path, self.prober)
        classification = self.classifier.classify(markers, manifests, candidate.segments)
        repository = self.repository.analyze(path)
        evolution = self.evolution.build(
            path, repository, project_id=candidate.project_id, now=now
        )

        return Project(
            id=candidate.project_id,
            name=path.name,
            description=manifests.description,
            status=classification.status,
            type=classification.type,
            path=path,
            technologies=classification.technologies,
            repository=repository,
            deployment=detect_deployment(markers),
            dependencies=manifests.dependencies(),
            evolution=evolution,
            last_scanned=now,
            created_at=now,
            updated_at=now,
        )

    # =========================================================================
    # Diff
    # =========================================================================

    @staticmethod
    def _reconcile(
        project: Project,
        preserved: PreservedFields | None,
        is_new: bool,
        change: StatusChange | None,
        now: datetime,
        options: ScanOptions,
    ) -> Project:
        """Carry over stored fields and append scanner events."""
        events = list(project.evolution.events)
        if is_new:
            events.append(EvolutionEvent(
                id=f"{project.id}-created",
                timestamp=now,
                type=EventType.CREATED,
                description=f"Project discovered at {project.path}",
                metadata={"type": project.type.value, "status": project.status.value},
            ))
        if change is not None:
            events.append(EvolutionEvent(
                id=f"{project.id}-status-{to_iso(now)}",
                timestamp=now,
                type=EventType.STATUS_CHANGED,
                description=(
                    f"Status changed from {change.old_status.value} "
                    f"to {change.new_status.value}"
                ),
                metadata={"from": change.old_status.value, "to": change.new_status.value},
            ))

        created_at = project.created_at
        description = project.description
        metrics = project.metrics
        if preserved is not None:
            created_at = preserved.created_at
            metrics = preserved.metrics
            if description is None and not options.force_refresh:
                description = preserved.description

        return replace(
            project,
            created_at=created_at,
            description=description,
            metrics=metrics,
            evolution=replace(project.evolution, events=tuple(events)),
        )


def _failure(path: Path, detail: str) -> str:
    return FolioError(
        code=ErrorCode.SCAN_PROJECT_FAILED,
        context={"path": str(path), "detail": detail},
    ).message
