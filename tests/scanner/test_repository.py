"""Tests for repository metadata extraction."""

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from foliotrack.foundation.config import RepositoryConfig
from foliotrack.scanner.repository import (
    UNKNOWN_CONTRIBUTOR,
    RepositoryAnalyzer,
    parse_contributors,
    parse_last_commit,
)


class TestRepositoryAnalyzer:
    """Tests for RepositoryAnalyzer.analyze()."""

    def test_not_a_repository(self, tmp_path: Path) -> None:
        """Without a .git entry only is_git_repo is set."""
        metadata = RepositoryAnalyzer().analyze(tmp_path)

        assert metadata.is_git_repo is False
        assert metadata.commit_count == 0
        assert metadata.branch is None

    def test_reads_reflog(
        self,
        tmp_path: Path,
        write_tree,
        git_files: Callable[..., dict[str, str]],
        reflog_line: Callable[..., str],
    ) -> None:
        """Commits, contributors and last commit come from the HEAD reflog."""
        project = write_tree(tmp_path / "app", git_files(
            reflog_line("ana@example.com", 1700000000, "commit (initial): start"),
            reflog_line("bo@example.com", 1700003600),
            reflog_line("ana@example.com", 1700007200),
            branch="feature/login",
        ))

        metadata = RepositoryAnalyzer().analyze(project)

        assert metadata.is_git_repo is True
        assert metadata.branch == "feature/login"
        assert metadata.commit_count == 3
        assert metadata.contributors == ("ana@example.com", "bo@example.com")
        assert metadata.last_commit == datetime.fromtimestamp(1700007200, tz=UTC)

    def test_missing_log(self, tmp_path: Path, write_tree, git_files) -> None:
        """A repository without a reflog has no commits."""
        project = write_tree(tmp_path / "app", git_files())

        metadata = RepositoryAnalyzer().analyze(project)

        assert metadata.is_git_repo is True
        assert metadata.commit_count == 0
        assert metadata.contributors == ()
        assert metadata.last_commit is not None

    def test_unreadable_log(self, tmp_path: Path, write_tree, git_files) -> None:
        """An unreadable reflog degrades to one commit by an unknown contributor."""
        project = write_tree(tmp_path / "app", {**git_files(), ".git/logs/HEAD": None})

        metadata = RepositoryAnalyzer().analyze(project)

        assert metadata.commit_count == 1
        assert metadata.contributors == (UNKNOWN_CONTRIBUTOR,)

    def test_detached_head_uses_init_default(self, tmp_path: Path, write_tree) -> None:
        """A detached HEAD falls back to init.defaultBranch."""
        project = write_tree(tmp_path / "app", {
            ".git/HEAD": "a" * 40 + "\n",
            ".git/config": (
                "[core]\n\tbare = false\n"
                "[init]\n\tdefaultBranch = trunk\n"
                '[remote "origin"]\n\turl = git@example.com:team/app.git\n'
            ),
        })

        metadata = RepositoryAnalyzer().analyze(project)

        assert metadata.branch == "trunk"
        assert metadata.url == "git@example.com:team/app.git"

    def test_configured_default_branch(self, tmp_path: Path, write_tree) -> None:
        """Without HEAD or init config the configured default applies."""
        project = write_tree(tmp_path / "app", {".git": None})

        metadata = RepositoryAnalyzer(RepositoryConfig(default_branch="master")).analyze(project)

        assert metadata.is_git_repo is True
        assert metadata.branch == "master"
        assert metadata.url is None

    def test_gitdir_pointer(
        self, tmp_path: Path, write_tree, git_files, reflog_line
    ) -> None:
        """A .git file pointing elsewhere is followed."""
        write_tree(tmp_path / "real", {
            key.removeprefix(".git/"): value
            for key, value in git_files(reflog_line("ana@example.com", 1700000000)).items()
        })
        project = write_tree(tmp_path / "worktree", {".git": f"gitdir: {tmp_path / 'real'}\n"})

        metadata = RepositoryAnalyzer().analyze(project)

        assert metadata.commit_count == 1
        assert metadata.contributors == ("ana@example.com",)


class TestReflogParsing:
    """Tests for the reflog helpers."""

    def test_contributors_first_seen_order(self, reflog_line) -> None:
        """Contributors are unique and keep first-seen order."""
        lines = [
            reflog_line("b@example.com", 1),
            reflog_line("a@example.com", 2),
            reflog_line("b@example.com", 3),
        ]

        assert parse_contributors(lines) == ("b@example.com", "a@example.com")

    def test_last_commit_without_timestamp(self) -> None:
        """A line without a timestamp falls back to now."""
        before = datetime.now(UTC)

        result = parse_last_commit(["garbage"])

        assert result >= before

    def test_last_commit_uses_last_line(self, reflog_line) -> None:
        """The final reflog entry is the last commit."""
        lines = [reflog_line("a@example.com", 100), reflog_line("a@example.com", 200)]

        assert parse_last_commit(lines) == datetime.fromtimestamp(200, tz=UTC)
