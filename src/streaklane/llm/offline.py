# src/streaklane/llm/offline.py

from __future__ import annotations

from ..core.dates import to_iso
from ..core.models import Severity, Task
from ..core.ports import RankedPick

_SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


class OfflineSuggestionRanker:
    """
    Deterministic ranker used when no external LLM is configured.

    Order: soonest due date first (undated last), then HIGH > MEDIUM > LOW,
    then lane position.
    """

    def rank(self, tasks: list[Task], *, limit: int) -> list[RankedPick]:
        open_tasks = [t for t in tasks if not t.is_completed]
        open_tasks.sort(
            key=lambda t: (
                t.due_date is None,
                t.due_date or 0.0,
                _SEVERITY_RANK[t.severity],
                t.position,
            )
        )
        return [(t.id, self._reason(t)) for t in open_tasks[: max(0, limit)]]

    @staticmethod
    def _reason(task: Task) -> str:
        due = to_iso(task.due_date)
        sev = task.severity.value.lower()
        if due:
            return f"Due {due[:10]}; {sev} severity."
        return f"No due date; {sev} severity."
