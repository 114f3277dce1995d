# src/streaklane/tasks/task_service.py

"""
Task service: the operations exposed to front-ends.

Each call validates its input first, then runs one store transaction for the
requesting user. Calls for the same user are serialized in-process by a
per-user lock; across processes the store's write transactions serialize them.
"""

from __future__ import annotations

import logging
import threading
import uuid
import weakref
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from ..core.dates import local_now, start_of_week, truncate_to_day
from ..core.errors import NotFoundError, OwnershipError, ValidationError
from ..core.models import (
    Badge,
    LaneMove,
    Severity,
    Streak,
    Suggestion,
    Task,
    TaskCounts,
    TaskCreate,
    TaskPatch,
    UserStats,
    parse_moves,
)
from ..core.ports import RecordStore, StoreTransaction, SuggestionRanker
from ..lanes.ordering import LaneOrderingEngine
from ..streaks.badges import BadgeAwarder
from ..streaks.engine import StreakEngine

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class _UserLocks:
    """
    One lock per user id; different users never wait on each other.

    Entries live only while some caller holds or waits on the lock.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, Any] = weakref.WeakValueDictionary()

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[user_id] = lock
        with lock:
            yield


def _require_user(user_id: str) -> str:
    uid = (user_id or "").strip()
    if not uid:
        raise ValidationError("user_id is required")
    return uid


def _load_owned(tx: StoreTransaction, task_id: str) -> Task:
    task = tx.get_task(task_id)
    if task is None:
        raise NotFoundError(f"Task not found: {task_id}")
    if task.user_id != tx.user_id:
        logger.warning("Access to task %s denied for user=%s", task_id, tx.user_id)
        raise OwnershipError(f"Task not found: {task_id}")
    return task


class TaskService:
    def __init__(
        self,
        store: RecordStore,
        *,
        ranker: SuggestionRanker | None = None,
        lanes: LaneOrderingEngine | None = None,
        streaks: StreakEngine | None = None,
        badges: BadgeAwarder | None = None,
        clock: Clock = local_now,
        week_start_day: int = 6,
        suggestion_limit: int = 3,
    ) -> None:
        self._store = store
        self._ranker = ranker
        self._lanes = lanes or LaneOrderingEngine()
        self._streaks = streaks or StreakEngine()
        self._badges = badges or BadgeAwarder()
        self._clock = clock
        self._week_start_day = int(week_start_day)
        self._suggestion_limit = max(1, int(suggestion_limit))
        self._locks = _UserLocks()

    # ---- reads ----

    def list_tasks(
        self,
        user_id: str,
        *,
        completed: bool | None = None,
        severity: Severity | str | None = None,
    ) -> list[Task]:
        uid = _require_user(user_id)
        sev = Severity.parse(severity) if severity else None
        with self._store.transaction(uid, write=False) as tx:
            return tx.list_tasks(completed=completed, severity=sev)

    def get_task(self, user_id: str, task_id: str) -> Task:
        uid = _require_user(user_id)
        with self._store.transaction(uid, write=False) as tx:
            return _load_owned(tx, task_id)

    def get_user_stats(self, user_id: str) -> UserStats:
        uid = _require_user(user_id)
        week_start = start_of_week(self._clock(), self._week_start_day)

        with self._store.transaction(uid, write=False) as tx:
            streak = tx.get_streak() or Streak(user_id=uid)
            badges = tx.list_badges()
            counts = TaskCounts(
                total_tasks=tx.count_tasks(),
                completed_tasks=tx.count_tasks(completed=True),
                tasks_this_week=tx.count_tasks(
                    completed=True, completed_since=week_start.timestamp()
                ),
            )
        return UserStats(streak=streak, badges=badges, counts=counts)

    def suggest_tasks(self, user_id: str, *, limit: int | None = None) -> list[Suggestion]:
        """
        Ask the ranker which open tasks to do first.

        Ranker failures are logged and produce an empty list; ids the ranker made
        up are dropped.
        """
        uid = _require_user(user_id)
        limit = self._suggestion_limit if limit is None else max(1, int(limit))
        if self._ranker is None:
            return []

        with self._store.transaction(uid, write=False) as tx:
            open_tasks = tx.list_tasks(completed=False)
        if not open_tasks:
            return []

        try:
            picks = self._ranker.rank(open_tasks, limit=limit)
        except Exception:
            logger.exception("Suggestion ranker failed user=%s", uid)
            return []

        by_id = {t.id: t for t in open_tasks}
        out: list[Suggestion] = []
        for task_id, reason in picks:
            task = by_id.pop(task_id, None)
            if task is None:
                logger.debug("Ranker returned unknown or repeated task id=%s", task_id)
                continue
            out.append(Suggestion(task=task, reason=reason))
            if len(out) >= limit:
                break
        return out

    # ---- writes ----

    def create_task(self, user_id: str, fields: TaskCreate | Mapping[str, Any]) -> Task:
        uid = _require_user(user_id)
        data = fields if isinstance(fields, TaskCreate) else TaskCreate.from_payload(fields)

        with self._locks.hold(uid), self._store.transaction(uid) as tx:
            task = Task(
                id=uuid.uuid4().hex,
                user_id=uid,
                title=data.title,
                description=data.description,
                due_date=data.due_date,
                severity=data.severity,
                position=self._lanes.append_to_lane(tx, data.severity),
                created_at=self._clock().timestamp(),
            )
            tx.insert_task(task)

        logger.info(
            "Task created id=%s user=%s severity=%s position=%s",
            task.id,
            uid,
            task.severity.value,
            task.position,
        )
        return task

    def update_task(
        self, user_id: str, task_id: str, patch: TaskPatch | Mapping[str, Any]
    ) -> Task:
        """
        Apply a partial update.

        Completing a task (false -> true) stamps completed_at and advances the
        user's streak in the same transaction; badges are awarded inside a
        savepoint so a failed award never undoes the completion or the streak.
        Re-opening a task (true -> false) clears completed_at, puts the task back
        at the end of its lane and leaves the streak alone.
        """
        uid = _require_user(user_id)
        p = patch if isinstance(patch, TaskPatch) else TaskPatch.from_payload(patch)

        with self._locks.hold(uid), self._store.transaction(uid) as tx:
            task = _load_owned(tx, task_id)
            now = self._clock()
            was_completed = task.is_completed

            if p.is_set("title"):
                task.title = p.title
            if p.is_set("description"):
                task.description = p.description
            if p.is_set("due_date"):
                task.due_date = p.due_date

            completing = p.is_set("is_completed") and p.is_completed and not was_completed
            reopening = p.is_set("is_completed") and not p.is_completed and was_completed
            if completing:
                task.is_completed = True
                task.completed_at = now.timestamp()
            elif reopening:
                task.is_completed = False
                task.completed_at = None

            new_severity = p.severity if p.is_set("severity") else task.severity
            if not task.is_completed and (reopening or new_severity != task.severity):
                task.position = self._lanes.append_to_lane(tx, new_severity)
            task.severity = new_severity

            tx.update_task(task)

            if completing:
                update = self._streaks.record_completion(tx, truncate_to_day(now))
                if update.increased:
                    self._award_badges(tx, update.current_streak, now.timestamp())

        logger.info(
            "Task updated id=%s user=%s completed=%s severity=%s",
            task.id,
            uid,
            task.is_completed,
            task.severity.value,
        )
        return task

    def delete_task(self, user_id: str, task_id: str) -> None:
        uid = _require_user(user_id)
        with self._locks.hold(uid), self._store.transaction(uid) as tx:
            _load_owned(tx, task_id)
            tx.delete_task(task_id)
        logger.info("Task deleted id=%s user=%s", task_id, uid)

    def reorder_tasks(
        self, user_id: str, moves: list[LaneMove] | Mapping[str, Any]
    ) -> list[Task]:
        uid = _require_user(user_id)
        move_list = list(moves) if isinstance(moves, list) else parse_moves(moves)
        LaneOrderingEngine.check_move_shape(move_list)

        with self._locks.hold(uid), self._store.transaction(uid) as tx:
            return self._lanes.apply_reorder(tx, move_list)

    # ---- internals ----

    def _award_badges(self, tx: StoreTransaction, current_streak: int, now_ts: float) -> list[Badge]:
        try:
            with tx.savepoint("award_badges"):
                return self._badges.award(tx, current_streak, now_ts=now_ts)
        except Exception:
            logger.exception(
                "Badge award failed user=%s streak=%s; completion kept", tx.user_id, current_streak
            )
            return []
