# src/streaklane/core/models.py

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any

from .dates import parse_timestamp, to_iso
from .errors import ValidationError

_UNSET: Any = object()


class Severity(StrEnum):
    """Severity lane of a task. Wire values are the uppercase names."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @classmethod
    def parse(cls, raw: object) -> Severity:
        if isinstance(raw, Severity):
            return raw
        s = str(raw or "").strip().upper()
        try:
            return cls(s)
        except ValueError:
            raise ValidationError(f"Unknown severity: {raw!r} (expected LOW, MEDIUM or HIGH)") from None


@dataclass(slots=True)
class Task:
    id: str
    user_id: str
    title: str
    severity: Severity
    position: int
    created_at: float

    description: str | None = None
    due_date: float | None = None
    is_completed: bool = False
    completed_at: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description,
            "dueDate": to_iso(self.due_date),
            "severity": self.severity.value,
            "position": self.position,
            "isCompleted": self.is_completed,
            "completedAt": to_iso(self.completed_at),
            "createdAt": to_iso(self.created_at),
        }


@dataclass(slots=True)
class Streak:
    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "lastActiveDate": self.last_active_date.isoformat() if self.last_active_date else None,
        }


@dataclass(slots=True, frozen=True)
class Badge:
    user_id: str
    name: str
    description: str
    image_url: str
    earned_at: float
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "imageUrl": self.image_url,
            "earnedAt": to_iso(self.earned_at),
        }


# ---- operation inputs ----


def _check_keys(payload: Mapping[str, Any], allowed: set[str], what: str) -> None:
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(f"Unknown field(s) for {what}: {', '.join(unknown)}")


def _clean_title(raw: object) -> str:
    title = str(raw or "").strip()
    if not title:
        raise ValidationError("title is required")
    return title


def _clean_description(raw: object) -> str | None:
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def _clean_due(raw: object) -> float | None:
    try:
        return parse_timestamp(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"dueDate is not an ISO-8601 timestamp: {raw!r}") from None


@dataclass(slots=True, frozen=True)
class TaskCreate:
    title: str
    severity: Severity
    description: str | None = None
    due_date: float | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> TaskCreate:
        _check_keys(payload, {"title", "description", "dueDate", "severity"}, "create")
        if "severity" not in payload:
            raise ValidationError("severity is required")
        return cls(
            title=_clean_title(payload.get("title")),
            severity=Severity.parse(payload["severity"]),
            description=_clean_description(payload.get("description")),
            due_date=_clean_due(payload.get("dueDate")),
        )


@dataclass(slots=True, frozen=True)
class TaskPatch:
    """
    Partial update of one task. Fields left as _UNSET are not touched;
    description/due_date may be set to None to clear them.
    """

    title: Any = _UNSET
    description: Any = _UNSET
    due_date: Any = _UNSET
    severity: Any = _UNSET
    is_completed: Any = _UNSET

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> TaskPatch:
        _check_keys(
            payload, {"title", "description", "dueDate", "severity", "isCompleted"}, "update"
        )
        kwargs: dict[str, Any] = {}
        if "title" in payload:
            kwargs["title"] = _clean_title(payload["title"])
        if "description" in payload:
            kwargs["description"] = _clean_description(payload["description"])
        if "dueDate" in payload:
            kwargs["due_date"] = _clean_due(payload["dueDate"])
        if "severity" in payload:
            kwargs["severity"] = Severity.parse(payload["severity"])
        if "isCompleted" in payload:
            raw = payload["isCompleted"]
            if not isinstance(raw, bool):
                raise ValidationError("isCompleted must be a boolean")
            kwargs["is_completed"] = raw
        return cls(**kwargs)

    def is_set(self, name: str) -> bool:
        return getattr(self, name) is not _UNSET


@dataclass(slots=True, frozen=True)
class LaneMove:
    """Target placement of one task: its new position, and its new lane if it changes."""

    task_id: str
    position: int
    severity: Severity | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> LaneMove:
        _check_keys(payload, {"id", "position", "severity"}, "move")
        task_id = str(payload.get("id") or "").strip()
        if not task_id:
            raise ValidationError("move is missing a task id")
        position = payload.get("position")
        if isinstance(position, bool) or not isinstance(position, int):
            raise ValidationError(f"position must be an integer (task {task_id})")
        raw_sev = payload.get("severity")
        severity = Severity.parse(raw_sev) if raw_sev else None
        return cls(task_id=task_id, position=position, severity=severity)


def parse_moves(payload: Mapping[str, Any]) -> list[LaneMove]:
    """Parse a reorder body: {"moves": [...]} (older clients send the list under "tasks")."""
    raw = payload.get("moves", payload.get("tasks"))
    if not isinstance(raw, list):
        raise ValidationError("reorder body must contain a list under 'moves'")
    moves: list[LaneMove] = []
    for item in raw:
        if not isinstance(item, Mapping):
            raise ValidationError("each move must be an object")
        moves.append(LaneMove.from_payload(item))
    return moves


# ---- read models ----


@dataclass(slots=True, frozen=True)
class TaskCounts:
    total_tasks: int
    completed_tasks: int
    tasks_this_week: int

    @property
    def completion_rate(self) -> float:
        if self.total_tasks <= 0:
            return 0.0
        return self.completed_tasks / self.total_tasks * 100.0


@dataclass(slots=True)
class UserStats:
    streak: Streak
    badges: list[Badge] = field(default_factory=list)
    counts: TaskCounts = field(default_factory=lambda: TaskCounts(0, 0, 0))

    def to_dict(self) -> dict[str, Any]:
        return {
            "streak": self.streak.to_dict(),
            "badges": [b.to_dict() for b in self.badges],
            "stats": {
                "totalTasks": self.counts.total_tasks,
                "completedTasks": self.counts.completed_tasks,
                "completionRate": self.counts.completion_rate,
                "tasksThisWeek": self.counts.tasks_this_week,
            },
        }


@dataclass(slots=True, frozen=True)
class Suggestion:
    task: Task
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {**self.task.to_dict(), "reason": self.reason}
