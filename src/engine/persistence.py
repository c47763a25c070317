"""
Job store for the job engine.

- SQLite with WAL mode
- One keyed table of Job records (jobs)
- Owner registry for live recurring chains (active_chains), at most one
  row per owner

Only JobEngine writes here. Every mutation is a single transaction so
readers always see a whole record.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .entities import Job, JobKind, ScheduleRef, now_iso
from .errors import AlreadyActiveError, ConcurrentUpdateError, NotFoundError


logger = logging.getLogger(__name__)


class JobStore:
    """
    SQLite-based persistence for Job records.

    - Does NOT contain business logic
    - Does NOT check authorization
    - Serialization of read-modify-write per job is the engine's job;
      save_job only refuses a write based on a stale version
    """

    def __init__(self, db_path: str | Path):
        """
        Initialize the job store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with WAL mode enabled."""
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = self._get_connection()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS jobs (
                    job_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    interval_seconds INTEGER NOT NULL CHECK (interval_seconds > 0),
                    next_fire_time INTEGER NOT NULL,
                    trigger_count INTEGER NOT NULL DEFAULT 0,
                    active INTEGER NOT NULL DEFAULT 1,
                    pending_schedule_ref TEXT,
                    last_triggered_at INTEGER,
                    version INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_jobs_owner
                ON jobs (owner_id, active)
            """)

            # One live recurring chain per owner
            conn.execute("""
                CREATE TABLE IF NOT EXISTS active_chains (
                    owner_id TEXT PRIMARY KEY,
                    job_id INTEGER NOT NULL,
                    FOREIGN KEY (job_id) REFERENCES jobs(job_id)
                )
            """)

    # =========================================================================
    # Job Operations
    # =========================================================================

    def create_job(self, job: Job) -> Job:
        """
        Insert a new job and assign its id.

        Recurring jobs also claim the owner's slot in active_chains within
        the same transaction.

        Raises:
            AlreadyActiveError: owner already holds a recurring chain
        """
        with self._transaction() as conn:
            if job.kind == JobKind.RECURRING:
                row = conn.execute(
                    "SELECT job_id FROM active_chains WHERE owner_id = ?",
                    (job.owner_id,),
                ).fetchone()
                if row is not None:
                    raise AlreadyActiveError(job.owner_id, row["job_id"])

            cursor = conn.execute(
                """
                INSERT INTO jobs
                (owner_id, kind, interval_seconds, next_fire_time, trigger_count, active,
                 pending_schedule_ref, last_triggered_at, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.owner_id,
                    job.kind.value,
                    job.interval_seconds,
                    job.next_fire_time,
                    job.trigger_count,
                    1 if job.active else 0,
                    job.pending_schedule_ref.value if job.pending_schedule_ref else None,
                    job.last_triggered_at,
                    job.created_at,
                    job.updated_at,
                ),
            )
            job.job_id = cursor.lastrowid

            if job.kind == JobKind.RECURRING:
                try:
                    conn.execute(
                        "INSERT INTO active_chains (owner_id, job_id) VALUES (?, ?)",
                        (job.owner_id, job.job_id),
                    )
                except sqlite3.IntegrityError:
                    # Another process claimed the slot after our SELECT
                    row = conn.execute(
                        "SELECT job_id FROM active_chains WHERE owner_id = ?",
                        (job.owner_id,),
                    ).fetchone()
                    job.job_id = None
                    raise AlreadyActiveError(
                        job.owner_id, row["job_id"] if row is not None else -1
                    )

        return job

    def get_job(self, job_id: int) -> Optional[Job]:
        """Get a job by ID."""
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM jobs WHERE job_id = ?",
                (job_id,),
            ).fetchone()

        if row is None:
            return None

        return self._row_to_job(row)

    def _row_to_job(self, row: sqlite3.Row) -> Job:
        """Convert database row to Job entity."""
        ref = row["pending_schedule_ref"]
        return Job(
            job_id=row["job_id"],
            owner_id=row["owner_id"],
            kind=JobKind(row["kind"]),
            interval_seconds=row["interval_seconds"],
            next_fire_time=row["next_fire_time"],
            trigger_count=row["trigger_count"],
            active=bool(row["active"]),
            pending_schedule_ref=ScheduleRef(ref) if ref is not None else None,
            last_triggered_at=row["last_triggered_at"],
            version=row["version"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def save_job(self, job: Job, release_chain: bool = False) -> Job:
        """
        Write back every mutable field of a job (compare-and-set on version).

        The row is only updated while its version still equals job.version,
        so a write based on a stale read never overwrites a newer one, even
        from another process. On success job.version is bumped.

        Args:
            job: Job with its new state
            release_chain: Also drop the owner's active_chains row for this job

        Raises:
            NotFoundError: job_id does not exist
            ConcurrentUpdateError: the row changed since job was read
        """
        updated_at = now_iso()

        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE jobs SET
                    next_fire_time = ?,
                    trigger_count = ?,
                    active = ?,
                    pending_schedule_ref = ?,
                    last_triggered_at = ?,
                    version = version + 1,
                    updated_at = ?
                WHERE job_id = ? AND version = ?
                """,
                (
                    job.next_fire_time,
                    job.trigger_count,
                    1 if job.active else 0,
                    job.pending_schedule_ref.value if job.pending_schedule_ref else None,
                    job.last_triggered_at,
                    updated_at,
                    job.job_id,
                    job.version,
                ),
            )
            if cursor.rowcount == 0:
                exists = conn.execute(
                    "SELECT 1 FROM jobs WHERE job_id = ?", (job.job_id,)
                ).fetchone()
                if exists is None:
                    raise NotFoundError(job.job_id)
                raise ConcurrentUpdateError(job.job_id)

            if release_chain:
                conn.execute(
                    "DELETE FROM active_chains WHERE owner_id = ? AND job_id = ?",
                    (job.owner_id, job.job_id),
                )

        job.version += 1
        job.updated_at = updated_at
        return job

    def list_jobs(
        self,
        owner_id: Optional[str] = None,
        active: Optional[bool] = None,
        limit: int = 100,
    ) -> list[Job]:
        """List jobs, newest first, optionally filtered by owner and active flag."""
        clauses = []
        values: list = []

        if owner_id is not None:
            clauses.append("owner_id = ?")
            values.append(owner_id)
        if active is not None:
            clauses.append("active = ?")
            values.append(1 if active else 0)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        values.append(limit)

        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM jobs {where} ORDER BY job_id DESC LIMIT ?",
                values,
            ).fetchall()

        return [self._row_to_job(row) for row in rows]

    def list_stalled(self, now: int) -> list[Job]:
        """
        Active jobs with no pending registration whose fire time has passed.
        """
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM jobs
                WHERE active = 1
                  AND pending_schedule_ref IS NULL
                  AND next_fire_time <= ?
                ORDER BY next_fire_time ASC
                """,
                (now,),
            ).fetchall()

        return [self._row_to_job(row) for row in rows]

    # =========================================================================
    # Owner Chain Registry
    # =========================================================================

    def get_active_chain(self, owner_id: str) -> Optional[int]:
        """Return the job_id of the owner's live recurring chain, if any."""
        with self._connection() as conn:
            row = conn.execute(
                "SELECT job_id FROM active_chains WHERE owner_id = ?",
                (owner_id,),
            ).fetchone()

        return row["job_id"] if row is not None else None
