# src/streaklane/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The engines and the service depend on Protocols instead of concrete implementations.
This keeps the record store and the suggestion provider swappable and makes testing easier.
"""

from contextlib import AbstractContextManager
from typing import Protocol

from .models import Badge, Severity, Streak, Task

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.

RankedPick = tuple[str, str]
# (task_id, reason) as returned by a suggestion ranker.


class StoreTransaction(Protocol):
    """
    One open, all-or-nothing unit of work scoped to a single user.

    Reads see the transaction's own writes. Nothing is visible to other
    connections until the owning context manager exits without an error.
    """

    user_id: str

    # Tasks
    def get_task(self, task_id: str) -> Task | None: ...
    def list_tasks(
            self,
            *,
            completed: bool | None = None,
            severity: Severity | None = None,
    ) -> list[Task]: ...
    def max_lane_position(self, severity: Severity) -> int: ...
    def insert_task(self, task: Task) -> None: ...
    def update_task(self, task: Task) -> None: ...
    def set_placement(self, task_id: str, *, position: int, severity: Severity) -> None: ...
    def delete_task(self, task_id: str) -> None: ...
    def count_tasks(
            self,
            *,
            completed: bool | None = None,
            completed_since: float | None = None,
    ) -> int: ...

    # Streak
    def get_streak(self) -> Streak | None: ...
    def save_streak(self, streak: Streak) -> None: ...

    # Badges
    def has_badge(self, name: str) -> bool: ...
    def insert_badge(self, badge: Badge) -> Badge: ...
    def list_badges(self) -> list[Badge]: ...

    def savepoint(self, name: str) -> AbstractContextManager[None]: ...


class RecordStore(Protocol):
    def transaction(
            self, user_id: str, *, write: bool = True
    ) -> AbstractContextManager[StoreTransaction]: ...


class LLMClient(Protocol):
    """Chat completion client (OpenAI-compatible)."""
    def complete(self, messages: list[ChatMessage], system_prompt: str) -> str: ...


class SuggestionRanker(Protocol):
    """Picks the open tasks worth doing first; returns (task_id, reason) pairs, best first."""
    def rank(self, tasks: list[Task], *, limit: int) -> list[RankedPick]: ...
