"""SQLite-backed project store.

Owns all durable catalog state: projects, the global technology catalog,
evolution events and scan-run records.

Storage location: `.foliotrack/projects.db`

Example:
    >>> with ProjectStore(Path(".foliotrack/projects.db")) as store:
    ...     store.upsert_project(project)
    ...     store.get_status(project.id)
    <ProjectStatus.DEVELOPMENT: 'development'>
"""

import json
import logging
import shutil
import sqlite3
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from foliotrack.catalog.models import (
    EvolutionEvent,
    PreservedFields,
    Project,
    ProjectMetrics,
    ProjectStatus,
    ProjectType,
    ScanResult,
    StoreStats,
)
from foliotrack.foundation.errors import ErrorCode, FolioError, store_error
from foliotrack.foundation.utils import from_iso, utc_now

logger = logging.getLogger(__name__)


def _enum_check(values: Iterable[Any]) -> str:
    return ", ".join(f"'{v.value}'" for v in values)


class ProjectStore:
    """Project catalog persisted in SQLite.

    Schema:
    - projects: id -> denormalized project row (nested records as JSON)
    - technologies: global catalog, unique by name
    - project_technologies: project <-> technology junction
    - evolution_events: per-project events, replaced by event id
    - scans: one immutable row per scan run

    A store handle is opened by the caller and closed by the caller; writes
    are serialized through one lock.
    """

    SCHEMA_VERSION = 1

    # fmt: off
    SCHEMA = f"""
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        status TEXT NOT NULL CHECK (status IN ({_enum_check(ProjectStatus)})),
        type TEXT NOT NULL CHECK (type IN ({_enum_check(ProjectType)})),
        path TEXT NOT NULL,
        technologies TEXT NOT NULL,
        repository TEXT,
        deployment TEXT,
        dependencies TEXT NOT NULL,
        metrics TEXT,
        evolution TEXT NOT NULL,
        last_scanned TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_projects_status ON projects(status);
    CREATE INDEX IF NOT EXISTS idx_projects_type ON projects(type);
    CREATE INDEX IF NOT EXISTS idx_projects_last_scanned ON projects(last_scanned);

    CREATE TABLE IF NOT EXISTS technologies (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        category TEXT NOT NULL CHECK (
            category IN ('frontend', 'backend', 'database', 'deployment', 'automation', 'ai-ml')
        )
    );

    CREATE TABLE IF NOT EXISTS project_technologies (
        project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        technology_id INTEGER NOT NULL REFERENCES technologies(id) ON DELETE CASCADE,
        version TEXT,
        PRIMARY KEY (project_id, technology_id)
    );

    CREATE TABLE IF NOT EXISTS evolution_events (
        id TEXT PRIMARY KEY,
        project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        timestamp TEXT NOT NULL,
        type TEXT NOT NULL CHECK (
            type IN ('created', 'updated', 'status_changed', 'deployed', 'archived')
        ),
        description TEXT NOT NULL,
        metadata TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_events_project ON evolution_events(project_id);
    CREATE INDEX IF NOT EXISTS idx_events_timestamp ON evolution_events(timestamp);

    CREATE TABLE IF NOT EXISTS scans (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        duration_ms INTEGER NOT NULL,
        projects_found INTEGER NOT NULL,
        projects_updated INTEGER NOT NULL,
        errors TEXT NOT NULL,
        new_projects TEXT NOT NULL,
        status_changes TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_scans_timestamp ON scans(timestamp);

    CREATE TABLE IF NOT EXISTS metadata (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    );
    """
    # fmt: on

    def __init__(self, db_path: Path, backup_dir: Path | None = None) -> None:
        """Open (and create if needed) the store at the given path.

        Args:
            db_path: Path to SQLite database file.
            backup_dir: Directory for `backup()` snapshots
                (default: a `backups` directory next to the database).

        Raises:
            FolioError: STORE_UNAVAILABLE if the database cannot be opened.
        """
        self.db_path = Path(db_path)
        self.backup_dir = Path(backup_dir) if backup_dir else self.db_path.parent / "backups"
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(self.SCHEMA)
            conn.commit()
        except (OSError, sqlite3.Error) as e:
            logger.error("Cannot open project store %s: %s", self.db_path, e)
            raise store_error(
                ErrorCode.STORE_UNAVAILABLE, str(e), e, path=str(self.db_path)
            ) from e

        self._conn = conn
        self._set_metadata("schema_version", str(self.SCHEMA_VERSION))
        logger.debug("Opened project store %s", self.db_path)

    def close(self) -> None:
        """Close the database connection. Safe to call twice."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def __enter__(self) -> "ProjectStore":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise store_error(
                ErrorCode.STORE_UNAVAILABLE, "store is closed", path=str(self.db_path)
            )
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for transactions.

        Automatically commits on success, rolls back on exception.
        """
        conn = self.conn
        with self._lock:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def _set_metadata(self, key: str, value: str) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)", (key, value)
            )

    def get_metadata(self, key: str) -> str | None:
        row = self._query_one("SELECT value FROM metadata WHERE key = ?", (key,))
        return row["value"] if row else None

    def _query_one(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        try:
            return self.conn.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            logger.error("Store query failed: %s", e)
            raise store_error(
                ErrorCode.STORE_UNAVAILABLE, str(e), e, path=str(self.db_path)
            ) from e

    def _query_all(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error("Store query failed: %s", e)
            raise store_error(
                ErrorCode.STORE_UNAVAILABLE, str(e), e, path=str(self.db_path)
            ) from e

    # =========================================================================
    # Projects
    # =========================================================================

    def exists(self, project_id: str) -> bool:
        """Whether a project with this identity is stored."""
        return self._query_one("SELECT 1 FROM projects WHERE id = ?", (project_id,)) is not None

    def get_status(self, project_id: str) -> ProjectStatus | None:
        """Stored status for a project, or None if the project is unknown."""
        row = self._query_one("SELECT status FROM projects WHERE id = ?", (project_id,))
        if not row:
            return None
        try:
            return ProjectStatus(row["status"])
        except ValueError as e:
            raise store_error(
                ErrorCode.STORE_DECODE_FAILED, str(e), e, record=f"projects/{project_id}"
            ) from e

    def get(self, project_id: str) -> Project | None:
        """Load one project, or None if not found."""
        row = self._query_one("SELECT * FROM projects WHERE id = ?", (project_id,))
        return Project.from_row(row) if row else None

    def get_preserved(self, project_id: str) -> PreservedFields | None:
        """Stored fields a rescan carries over, or None if the project is unknown."""
        row = self._query_one(
            "SELECT created_at, description, metrics FROM projects WHERE id = ?",
            (project_id,),
        )
        if not row:
            return None
        try:
            return PreservedFields(
                created_at=from_iso(row["created_at"]),
                description=row["description"],
                metrics=(
                    ProjectMetrics.from_dict(json.loads(row["metrics"]))
                    if row["metrics"] else None
                ),
            )
        except (ValueError, TypeError) as e:
            raise store_error(
                ErrorCode.STORE_DECODE_FAILED, str(e), e, record=f"projects/{project_id}"
            ) from e

    def list_projects(
        self,
        status: ProjectStatus | None = None,
        project_type: ProjectType | None = None,
        limit: int | None = None,
    ) -> list[Project]:
        """List projects, most recently updated first.

        Args:
            status: Only projects with this status.
            project_type: Only projects of this type.
            limit: Maximum number of projects.
        """
        sql = "SELECT * FROM projects WHERE 1=1"
        params: list[Any] = []
        if status is not None:
            sql += " AND status = ?"
            params.append(status.value)
        if project_type is not None:
            sql += " AND type = ?"
            params.append(project_type.value)
        sql += " ORDER BY updated_at DESC, id"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [Project.from_row(row) for row in self._query_all(sql, tuple(params))]

    def upsert_project(self, project: Project) -> None:
        """Insert or fully replace a project row.

        Also syncs the global technology catalog and the project's junction
        rows, and upserts the project's evolution events, in one transaction.

        Raises:
            FolioError: STORE_WRITE_FAILED if the write fails.
        """
        row = project.to_row()
        columns = list(row)
        placeholders = ", ".join("?" for _ in columns)
        updates = ", ".join(f"{c} = excluded.{c}" for c in columns if c != "id")

        try:
            with self.transaction() as conn:
                conn.execute(
                    f"""
                    INSERT INTO projects ({", ".join(columns)})
                    VALUES ({placeholders})
                    ON CONFLICT(id) DO UPDATE SET {updates}
                    """,
                    tuple(row.values()),
                )

                conn.execute(
                    "DELETE FROM project_technologies WHERE project_id = ?", (project.id,)
                )
                for tech in project.technologies:
                    conn.execute(
                        "INSERT OR IGNORE INTO technologies (name, category) VALUES (?, ?)",
                        (tech.name, tech.category.value),
                    )
                    conn.execute(
                        """
                        INSERT OR IGNORE INTO project_technologies
                            (project_id, technology_id, version)
                        SELECT ?, id, ? FROM technologies WHERE name = ?
                        """,
                        (project.id, tech.version, tech.name),
                    )

                self._write_events(conn, project.id, project.evolution.events)
        except sqlite3.Error as e:
            logger.error("Failed to save project %s: %s", project.id, e)
            raise store_error(
                ErrorCode.STORE_WRITE_FAILED, str(e), e, project_id=project.id
            ) from e

    # =========================================================================
    # Evolution events
    # =========================================================================

    @staticmethod
    def _write_events(
        conn: sqlite3.Connection, project_id: str, events: Iterable[EvolutionEvent]
    ) -> None:
        for event in events:
            data = event.to_dict()
            conn.execute(
                """
                INSERT INTO evolution_events
                    (id, project_id, timestamp, type, description, metadata)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    project_id = excluded.project_id,
                    timestamp = excluded.timestamp,
                    type = excluded.type,
                    description = excluded.description,
                    metadata = excluded.metadata
                """,
                (
                    data["id"],
                    project_id,
                    data["timestamp"],
                    data["type"],
                    data["description"],
                    _json_or_none(data["metadata"]),
                ),
            )

    def upsert_events(self, project_id: str, events: Iterable[EvolutionEvent]) -> None:
        """Insert events, replacing any with the same event id.

        The project must already be stored.
        """
        try:
            with self.transaction() as conn:
                self._write_events(conn, project_id, events)
        except sqlite3.Error as e:
            raise store_error(
                ErrorCode.STORE_WRITE_FAILED, str(e), e, project_id=project_id
            ) from e

    def list_events(self, project_id: str) -> list[EvolutionEvent]:
        """Events for a project, oldest first."""
        rows = self._query_all(
            "SELECT * FROM evolution_events WHERE project_id = ? ORDER BY timestamp, id",
            (project_id,),
        )
        events = []
        for row in rows:
            try:
                events.append(EvolutionEvent.from_dict({
                    "id": row["id"],
                    "timestamp": row["timestamp"],
                    "type": row["type"],
                    "description": row["description"],
                    "metadata": json.loads(row["metadata"]) if row["metadata"] else None,
                }))
            except (KeyError, ValueError, TypeError) as e:
                raise store_error(
                    ErrorCode.STORE_DECODE_FAILED, str(e), e,
                    record=f"evolution_events/{row['id']}",
                ) from e
        return events

    # =========================================================================
    # Scan runs
    # =========================================================================

    def save_scan(self, result: ScanResult) -> int:
        """Persist a scan-run record and return its id.

        Raises:
            FolioError: STORE_UNAVAILABLE if the record cannot be written.
        """
        row = result.to_row()
        try:
            with self.transaction() as conn:
                cursor = conn.execute(
                    f"""
                    INSERT INTO scans ({", ".join(row)})
                    VALUES ({", ".join("?" for _ in row)})
                    """,
                    tuple(row.values()),
                )
                return int(cursor.lastrowid)
        except sqlite3.Error as e:
            logger.error("Failed to record scan run: %s", e)
            raise store_error(
                ErrorCode.STORE_UNAVAILABLE, str(e), e, path=str(self.db_path)
            ) from e

    def list_scans(self, limit: int = 10) -> list[ScanResult]:
        """Most recent scan runs first."""
        rows = self._query_all(
            "SELECT * FROM scans ORDER BY timestamp DESC, id DESC LIMIT ?", (limit,)
        )
        return [ScanResult.from_row(row) for row in rows]

    # =========================================================================
    # Reporting
    # =========================================================================

    def technology_summary(self) -> dict[str, dict[str, int]]:
        """Project counts per technology, grouped by category.

        Returns:
            ``{category: {technology name: project count}}``
        """
        rows = self._query_all(
            """
            SELECT t.category AS category, t.name AS name, COUNT(pt.project_id) AS projects
            FROM technologies t
            JOIN project_technologies pt ON pt.technology_id = t.id
            GROUP BY t.id
            ORDER BY t.category, projects DESC, t.name
            """
        )
        summary: dict[str, dict[str, int]] = {}
        for row in rows:
            summary.setdefault(row["category"], {})[row["name"]] = row["projects"]
        return summary

    def stats(self) -> StoreStats:
        """Row counts and database file size."""
        counts = {}
        for table in ("projects", "technologies", "evolution_events", "scans"):
            row = self._query_one(f"SELECT COUNT(*) AS total FROM {table}")
            counts[table] = row["total"] if row else 0

        try:
            size = self.db_path.stat().st_size
        except OSError:
            size = 0

        return StoreStats(
            projects=counts["projects"],
            technologies=counts["technologies"],
            evolution_events=counts["evolution_events"],
            scans=counts["scans"],
            database_size=size,
        )

    def backup(self, destination: Path | None = None) -> Path:
        """Copy the database file to a timestamped snapshot.

        Args:
            destination: Target file or existing directory
                (default: `<backup_dir>/backup-<UTC timestamp>.db`).

        Returns:
            Path of the written snapshot.

        Raises:
            FolioError: BACKUP_FAILED if the copy fails.
        """
        if destination is None:
            stamp = utc_now().strftime("%Y-%m-%dT%H-%M-%S-%fZ")
            destination = self.backup_dir / f"backup-{stamp}.db"

        try:
            with self._lock:
                self.conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                destination.parent.mkdir(parents=True, exist_ok=True)
                written = Path(shutil.copy2(self.db_path, destination))
        except (OSError, sqlite3.Error) as e:
            logger.error("Backup of %s failed: %s", self.db_path, e)
            raise FolioError(
                code=ErrorCode.BACKUP_FAILED,
                context={"path": str(self.db_path), "detail": str(e)},
                cause=e,
            ) from e

        logger.info("Backed up %s to %s", self.db_path, written)
        return written


def _json_or_none(value: Any) -> str | None:
    return json.dumps(value) if value is not None else None
