# src/streaklane/tasks/suggestions.py

from __future__ import annotations

import json
import logging
import re
from typing import Any

from ..core.dates import to_iso
from ..core.models import Task
from ..core.ports import LLMClient, RankedPick

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an assistant that helps users prioritize their tasks. "
    "Consider due dates (prioritize tasks due soon) and severity levels, "
    "and give a brief reason for each suggestion. "
    "Respond with a JSON array only, nothing else."
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def build_prompt(tasks: list[Task], limit: int) -> str:
    data = [
        {
            "id": t.id,
            "title": t.title,
            "description": t.description or "",
            "dueDate": to_iso(t.due_date) or "No due date",
            "severity": t.severity.value,
        }
        for t in tasks
    ]
    return (
        f"Based on the following tasks, suggest which {limit} tasks should be prioritized today.\n\n"
        f"Tasks: {json.dumps(data, ensure_ascii=False, indent=2)}\n\n"
        "Respond with a JSON array of objects with this structure:\n"
        '[{"id": "task-id", "reason": "Brief explanation of why this task should be prioritized"}]'
    )


def parse_picks(text: str) -> list[RankedPick]:
    """Parse the model's JSON answer; raises ValueError when it is not a list of {id, reason}."""
    raw = _FENCE_RE.sub("", (text or "").strip())
    data: Any = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("suggestion response is not a JSON array")

    picks: list[RankedPick] = []
    for item in data:
        if not isinstance(item, dict) or not item.get("id"):
            continue
        picks.append((str(item["id"]), str(item.get("reason") or "").strip()))
    return picks


class LLMSuggestionRanker:
    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    def rank(self, tasks: list[Task], *, limit: int) -> list[RankedPick]:
        open_tasks = [t for t in tasks if not t.is_completed]
        if not open_tasks:
            return []
        prompt = build_prompt(open_tasks, limit)
        answer = self._llm.complete([{"role": "user", "content": prompt}], SYSTEM_PROMPT)
        picks = parse_picks(answer)
        logger.debug("LLM ranked %d of %d open task(s)", len(picks), len(open_tasks))
        return picks
