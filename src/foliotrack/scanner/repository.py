"""Repository metadata from VCS internals.

Reads `.git/HEAD`, `.git/logs/HEAD` and `.git/config` directly; no git
binary is needed. VCS problems never abort a scan: an unreadable log is
reported as one commit by an "unknown" contributor.
"""

import logging
import re
from datetime import UTC, datetime
from pathlib import Path

from foliotrack.catalog.models import RepositoryMetadata
from foliotrack.foundation.config import RepositoryConfig
from foliotrack.foundation.utils import utc_now
from foliotrack.scanner.probe import EntryKind, FilesystemProber, ProbeOutcome

logger = logging.getLogger(__name__)

_HEAD_REF_PREFIX = "ref: refs/heads/"

# "<email> <unix seconds> <tz offset>" inside a reflog line
_LOG_ENTRY_RE = re.compile(r"<([^>]*)>\s+(\d+)\s+[+-]\d{4}")
_EMAIL_RE = re.compile(r"<([^>]+)>")

_DEFAULT_BRANCH_RE = re.compile(
    r"^\[init\]\s*$(?:(?!^\[).)*?^\s*defaultBranch\s*=\s*(\S+)", re.M | re.S
)
_ORIGIN_URL_RE = re.compile(
    r'^\[remote "origin"\]\s*$(?:(?!^\[).)*?^\s*url\s*=\s*(\S+)', re.M | re.S
)

UNKNOWN_CONTRIBUTOR = "unknown"


class RepositoryAnalyzer:
    """Derives RepositoryMetadata for a project directory."""

    def __init__(
        self,
        config: RepositoryConfig | None = None,
        prober: FilesystemProber | None = None,
    ) -> None:
        self.config = config or RepositoryConfig()
        self.prober = prober or FilesystemProber()

    def analyze(self, path: Path) -> RepositoryMetadata:
        """Analyze the VCS directory of a project, if any."""
        git_dir = self._resolve_git_dir(path)
        if git_dir is None:
            return RepositoryMetadata(is_git_repo=False)

        git_config = self.prober.read_text(git_dir / "config")
        config_text = git_config.value if git_config.found else ""

        branch = self._read_branch(git_dir, config_text or "")
        commit_count, contributors, last_commit = self._read_log(git_dir)

        url_match = _ORIGIN_URL_RE.search(config_text or "")

        return RepositoryMetadata(
            is_git_repo=True,
            branch=branch,
            commit_count=commit_count,
            last_commit=last_commit,
            contributors=contributors,
            url=url_match.group(1) if url_match else None,
        )

    def _resolve_git_dir(self, path: Path) -> Path | None:
        """The VCS directory, following a `gitdir:` pointer file."""
        marker = self.prober.check(path, ".git")
        if not marker.found:
            return None
        if marker.value is EntryKind.DIRECTORY:
            return path / ".git"

        pointer = self.prober.read_text(path / ".git")
        if pointer.found and (pointer.value or "").startswith("gitdir:"):
            target = Path((pointer.value or "")[len("gitdir:"):].strip())
            return target if target.is_absolute() else path / target
        return path / ".git"

    def _read_branch(self, git_dir: Path, config_text: str) -> str:
        head = self.prober.read_text(git_dir / "HEAD")
        if head.found:
            content = (head.value or "").strip()
            if content.startswith(_HEAD_REF_PREFIX):
                branch = content[len(_HEAD_REF_PREFIX):].strip()
                if branch:
                    return branch
        elif head.outcome is ProbeOutcome.UNREADABLE:
            logger.debug("Unreadable HEAD in %s: %s", git_dir, head.detail)

        match = _DEFAULT_BRANCH_RE.search(config_text)
        return match.group(1) if match else self.config.default_branch

    def _read_log(self, git_dir: Path) -> tuple[int, tuple[str, ...], datetime]:
        """Commit count, contributors and last-commit time from the HEAD reflog."""
        log = self.prober.read_text(git_dir / "logs" / "HEAD")

        if log.outcome is ProbeOutcome.ABSENT:
            return 0, (), utc_now()
        if log.outcome is ProbeOutcome.UNREADABLE:
            logger.debug("Unreadable VCS log in %s: %s", git_dir, log.detail)
            return 1, (UNKNOWN_CONTRIBUTOR,), utc_now()

        lines = [line for line in (log.value or "").splitlines() if line.strip()]
        return len(lines), parse_contributors(lines), parse_last_commit(lines)


def parse_contributors(lines: list[str]) -> tuple[str, ...]:
    """Unique `<email>` identities across reflog lines, in first-seen order."""
    seen: dict[str, None] = {}
    for line in lines:
        match = _EMAIL_RE.search(line)
        if match:
            seen.setdefault(match.group(1), None)
    return tuple(seen)


def parse_last_commit(lines: list[str]) -> datetime:
    """Timestamp of the last reflog entry, or now when it has none."""
    if lines:
        match = _LOG_ENTRY_RE.search(lines[-1])
        if match:
            try:
                return datetime.fromtimestamp(int(match.group(2)), tz=UTC)
            except (OverflowError, OSError, ValueError):
                logger.debug("Bad reflog timestamp: %s", match.group(2))
    return utc_now()
