# src/streaklane/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from datetime import date
from pathlib import Path
from typing import Any

from ..core.errors import TransientStoreError
from ..core.models import Badge, Severity, Streak, Task

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite record store for tasks, streaks and badges.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each transaction opens its own SQLite connection
    - write transactions start with BEGIN IMMEDIATE, so two writers for the same
      database are serialized by SQLite before either reads anything
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3", *, timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = float(timeout)
        self._ensure_schema()
        try:
            total = self.count_all_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        # isolation_level=None: we issue BEGIN/COMMIT ourselves.
        conn = sqlite3.connect(str(self._db_path), timeout=self._timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    due_date REAL,
                    severity TEXT NOT NULL DEFAULT 'MEDIUM',
                    position INTEGER NOT NULL DEFAULT 0,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    completed_at REAL,
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS streaks (
                    user_id TEXT PRIMARY KEY,
                    current_streak INTEGER NOT NULL DEFAULT 0,
                    longest_streak INTEGER NOT NULL DEFAULT 0,
                    last_active_date TEXT
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS badges (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    image_url TEXT NOT NULL DEFAULT '',
                    earned_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("description", "TEXT")
            add_col("due_date", "REAL")
            add_col("completed_at", "REAL")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_lane "
                "ON tasks(user_id, severity, is_completed, position)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_completed ON tasks(user_id, completed_at)"
            )
            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_badges_user_name ON badges(user_id, name)"
            )

            cur.execute("COMMIT")
        finally:
            conn.close()

    # ---- public API ----

    @contextlib.contextmanager
    def transaction(self, user_id: str, *, write: bool = True) -> Iterator[TaskStoreTx]:
        """
        Open a unit of work for one user.

        Commits when the block exits normally, rolls back on any exception.
        sqlite3 failures (locked database, I/O errors, constraint violations)
        surface as TransientStoreError; other exceptions propagate unchanged.
        """
        try:
            conn = self._get_conn()
        except sqlite3.Error as exc:
            raise TransientStoreError(f"Could not open task store: {exc}") from exc

        try:
            try:
                conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            except sqlite3.Error as exc:
                raise TransientStoreError(f"Could not start transaction: {exc}") from exc

            try:
                yield TaskStoreTx(conn, user_id)
            except BaseException as exc:
                with contextlib.suppress(sqlite3.Error):
                    conn.execute("ROLLBACK")
                logger.debug("Transaction rolled back user=%s (%s)", user_id, exc.__class__.__name__)
                if isinstance(exc, sqlite3.Error):
                    raise TransientStoreError(f"Task store write failed: {exc}") from exc
                raise

            try:
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                with contextlib.suppress(sqlite3.Error):
                    conn.execute("ROLLBACK")
                raise TransientStoreError(f"Could not commit transaction: {exc}") from exc
        finally:
            conn.close()

    def count_all_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        title=str(row["title"] or ""),
        description=row["description"],
        due_date=float(row["due_date"]) if row["due_date"] is not None else None,
        severity=Severity(row["severity"]),
        position=int(row["position"]),
        is_completed=bool(row["is_completed"]),
        completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
        created_at=float(row["created_at"] or 0.0),
    )


def _row_to_badge(row: sqlite3.Row) -> Badge:
    return Badge(
        id=int(row["id"]),
        user_id=str(row["user_id"]),
        name=str(row["name"]),
        description=str(row["description"] or ""),
        image_url=str(row["image_url"] or ""),
        earned_at=float(row["earned_at"]),
    )


class TaskStoreTx:
    """Operations available inside TaskStore.transaction(); every query is scoped to user_id."""

    def __init__(self, conn: sqlite3.Connection, user_id: str) -> None:
        self._conn = conn
        self.user_id = user_id

    # ---- tasks ----

    def get_task(self, task_id: str) -> Task | None:
        """Fetch by id regardless of owner; callers compare user_id to tell 'foreign' from 'missing'."""
        row = self._conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(row) if row else None

    def list_tasks(
        self,
        *,
        completed: bool | None = None,
        severity: Severity | None = None,
    ) -> list[Task]:
        where = ["user_id = ?"]
        params: list[Any] = [self.user_id]
        if completed is not None:
            where.append("is_completed = ?")
            params.append(1 if completed else 0)
        if severity is not None:
            where.append("severity = ?")
            params.append(severity.value)

        sql = (
            f"SELECT * FROM tasks WHERE {' AND '.join(where)} "
            "ORDER BY position ASC, created_at DESC"
        )
        return [_row_to_task(r) for r in self._conn.execute(sql, params).fetchall()]

    def max_lane_position(self, severity: Severity) -> int:
        (value,) = self._conn.execute(
            """
            SELECT MAX(position)
            FROM tasks
            WHERE user_id = ? AND severity = ? AND is_completed = 0
            """,
            (self.user_id, severity.value),
        ).fetchone()
        return -1 if value is None else int(value)

    def insert_task(self, task: Task) -> None:
        self._conn.execute(
            """
            INSERT INTO tasks(
                id, user_id, title, description, due_date,
                severity, position, is_completed, completed_at, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.id,
                task.user_id,
                task.title,
                task.description,
                task.due_date,
                task.severity.value,
                int(task.position),
                1 if task.is_completed else 0,
                task.completed_at,
                task.created_at,
            ),
        )
        logger.debug(
            "Task inserted id=%s user=%s severity=%s position=%s",
            task.id,
            task.user_id,
            task.severity.value,
            task.position,
        )

    def update_task(self, task: Task) -> None:
        self._conn.execute(
            """
            UPDATE tasks
            SET title = ?,
                description = ?,
                due_date = ?,
                severity = ?,
                position = ?,
                is_completed = ?,
                completed_at = ?
            WHERE id = ? AND user_id = ?
            """,
            (
                task.title,
                task.description,
                task.due_date,
                task.severity.value,
                int(task.position),
                1 if task.is_completed else 0,
                task.completed_at,
                task.id,
                self.user_id,
            ),
        )

    def set_placement(self, task_id: str, *, position: int, severity: Severity) -> None:
        cur = self._conn.execute(
            "UPDATE tasks SET position = ?, severity = ? WHERE id = ? AND user_id = ?",
            (int(position), severity.value, task_id, self.user_id),
        )
        if cur.rowcount != 1:
            raise sqlite3.IntegrityError(f"placement update touched {cur.rowcount} rows (task {task_id})")

    def delete_task(self, task_id: str) -> None:
        self._conn.execute(
            "DELETE FROM tasks WHERE id = ? AND user_id = ?", (task_id, self.user_id)
        )

    def count_tasks(
        self,
        *,
        completed: bool | None = None,
        completed_since: float | None = None,
    ) -> int:
        where = ["user_id = ?"]
        params: list[Any] = [self.user_id]
        if completed is not None:
            where.append("is_completed = ?")
            params.append(1 if completed else 0)
        if completed_since is not None:
            where.append("completed_at >= ?")
            params.append(float(completed_since))
        (n,) = self._conn.execute(
            f"SELECT COUNT(*) FROM tasks WHERE {' AND '.join(where)}", params
        ).fetchone()
        return int(n)

    # ---- streak ----

    def get_streak(self) -> Streak | None:
        row = self._conn.execute(
            "SELECT * FROM streaks WHERE user_id = ?", (self.user_id,)
        ).fetchone()
        if row is None:
            return None
        raw_date = row["last_active_date"]
        return Streak(
            user_id=self.user_id,
            current_streak=int(row["current_streak"] or 0),
            longest_streak=int(row["longest_streak"] or 0),
            last_active_date=date.fromisoformat(raw_date) if raw_date else None,
        )

    def save_streak(self, streak: Streak) -> None:
        self._conn.execute(
            """
            INSERT INTO streaks(user_id, current_streak, longest_streak, last_active_date)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                current_streak = excluded.current_streak,
                longest_streak = excluded.longest_streak,
                last_active_date = excluded.last_active_date
            """,
            (
                self.user_id,
                int(streak.current_streak),
                int(streak.longest_streak),
                streak.last_active_date.isoformat() if streak.last_active_date else None,
            ),
        )

    # ---- badges ----

    def has_badge(self, name: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM badges WHERE user_id = ? AND name = ? LIMIT 1",
            (self.user_id, name),
        ).fetchone()
        return row is not None

    def insert_badge(self, badge: Badge) -> Badge:
        cur = self._conn.execute(
            """
            INSERT INTO badges(user_id, name, description, image_url, earned_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (self.user_id, badge.name, badge.description, badge.image_url, badge.earned_at),
        )
        rowid = cur.lastrowid
        if rowid is None:
            raise RuntimeError("SQLite did not return lastrowid for badges insert")
        return Badge(
            id=int(rowid),
            user_id=self.user_id,
            name=badge.name,
            description=badge.description,
            image_url=badge.image_url,
            earned_at=badge.earned_at,
        )

    def list_badges(self) -> list[Badge]:
        rows = self._conn.execute(
            "SELECT * FROM badges WHERE user_id = ? ORDER BY earned_at DESC, id DESC",
            (self.user_id,),
        ).fetchall()
        return [_row_to_badge(r) for r in rows]

    @contextlib.contextmanager
    def savepoint(self, name: str) -> Iterator[None]:
        """
        Nested scope inside the transaction: on error only the savepoint's writes
        are undone and the exception propagates to the caller (sqlite3 errors as
        TransientStoreError).
        """
        self._conn.execute(f"SAVEPOINT {name}")
        try:
            yield
        except BaseException as exc:
            self._conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
            self._conn.execute(f"RELEASE SAVEPOINT {name}")
            if isinstance(exc, sqlite3.Error):
                raise TransientStoreError(f"Savepoint {name} rolled back: {exc}") from exc
            raise
        self._conn.execute(f"RELEASE SAVEPOINT {name}")
