"""Evolution history builder.

File statistics, growth rate and the synthetic repository event, recomputed
from scratch on every scan.
"""

import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from foliotrack.catalog.models import (
    EventType,
    EvolutionEvent,
    EvolutionHistory,
    RepositoryMetadata,
)
from foliotrack.foundation.utils import utc_now

logger = logging.getLogger(__name__)

_SECONDS_PER_MONTH = 60 * 60 * 24 * 30


@dataclass(frozen=True, slots=True)
class FileStats:
    """Aggregate file counts for a directory tree."""

    files: int
    size: int
    newest_mtime: datetime | None = None


DEGRADED_STATS = FileStats(files=1, size=0)


class EvolutionBuilder:
    """Builds an EvolutionHistory for one project directory."""

    def __init__(self, excluded_dirs: tuple[str, ...] = ("node_modules",)) -> None:
        self.excluded_dirs = frozenset(excluded_dirs)

    def build(
        self,
        path: Path,
        repository: RepositoryMetadata,
        *,
        project_id: str,
        now: datetime | None = None,
    ) -> EvolutionHistory:
        """Compute the evolution history.

        Args:
            path: Project directory.
            repository: Freshly analyzed repository metadata.
            project_id: Identity used to derive stable event ids.
            now: Reference time (default: current UTC time).
        """
        now = now or utc_now()
        stats = self.file_stats(path)

        if not repository.is_git_repo:
            return EvolutionHistory(
                events=(),
                total_commits=0,
                total_files=stats.files,
                total_size=stats.size,
                growth_rate=0.0,
                last_activity=stats.newest_mtime or now,
            )

        last_commit = repository.last_commit or now
        events = (
            EvolutionEvent(
                id=f"{project_id}-repository",
                timestamp=last_commit,
                type=EventType.UPDATED,
                description=(
                    f"Repository has {repository.commit_count} commits "
                    f"by {len(repository.contributors)} contributors"
                ),
                metadata={
                    "branch": repository.branch,
                    "contributors": len(repository.contributors),
                },
            ),
        )
        return EvolutionHistory(
            events=events,
            total_commits=repository.commit_count,
            total_files=stats.files,
            total_size=stats.size,
            growth_rate=growth_rate(repository.commit_count, last_commit, now),
            last_activity=last_commit,
        )

    def file_stats(self, path: Path) -> FileStats:
        """Count files and bytes, skipping hidden and dependency-cache directories.

        Symlinked directories are not followed. Any traversal error degrades
        to one file of zero bytes.
        """
        files = 0
        size = 0
        newest = 0.0
        pending = [path]
        try:
            while pending:
                current = pending.pop()
                with os.scandir(current) as it:
                    for entry in it:
                        if entry.is_dir(follow_symlinks=False):
                            if entry.name.startswith(".") or entry.name in self.excluded_dirs:
                                continue
                            pending.append(Path(entry.path))
                        elif entry.is_file(follow_symlinks=False):
                            st = entry.stat(follow_symlinks=False)
                            files += 1
                            size += st.st_size
                            newest = max(newest, st.st_mtime)
        except OSError as e:
            logger.debug("File statistics failed for %s: %s", path, e)
            return DEGRADED_STATS

        return FileStats(
            files=files,
            size=size,
            newest_mtime=datetime.fromtimestamp(newest, tz=UTC) if newest else None,
        )


def growth_rate(commit_count: int, last_commit: datetime, now: datetime) -> float:
    """Commits per month of age, where age runs from the last commit to now."""
    months = max(1.0, (now - last_commit).total_seconds() / _SECONDS_PER_MONTH)
    return round(commit_count / months, 2)
