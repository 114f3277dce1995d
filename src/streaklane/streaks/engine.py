# src/streaklane/streaks/engine.py

from __future__ import annotations

"""
Streak state machine.

Per user: Uninitialized (no record, or a record that was never active) or
Active(current, longest, last_active_date). Only a task completion moves it,
and only forward; un-completing a task never reaches this module.
"""

import logging
from dataclasses import dataclass
from datetime import date

from ..core.dates import whole_days_between
from ..core.models import Streak
from ..core.ports import StoreTransaction

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class StreakUpdate:
    current_streak: int
    longest_streak: int
    increased: bool


def advance(streak: Streak | None, user_id: str, day: date) -> tuple[Streak, bool]:
    """
    Pure transition for one completion on `day`.

    Returns the resulting streak and whether current_streak went up.
    """
    if streak is None or streak.last_active_date is None:
        longest = max(1, streak.longest_streak if streak is not None else 0)
        return Streak(user_id, current_streak=1, longest_streak=longest, last_active_date=day), True

    diff = whole_days_between(streak.last_active_date, day)

    if diff == 0:
        return streak, False

    if diff < 0:
        logger.warning(
            "Completion dated %s precedes last active day %s for user=%s; streak left unchanged",
            day,
            streak.last_active_date,
            user_id,
        )
        return streak, False

    if diff == 1:
        current = streak.current_streak + 1
        longest = max(streak.longest_streak, current)
        return Streak(user_id, current, longest, day), True

    # Gap of two or more days: the streak restarts today.
    return Streak(user_id, 1, streak.longest_streak, day), streak.current_streak < 1


class StreakEngine:
    def record_completion(self, tx: StoreTransaction, day: date) -> StreakUpdate:
        """Apply one completion on `day` for tx.user_id and persist the result in `tx`."""
        before = tx.get_streak()
        after, increased = advance(before, tx.user_id, day)

        if after is not before:
            tx.save_streak(after)
            logger.info(
                "Streak user=%s current=%s longest=%s last_active=%s",
                tx.user_id,
                after.current_streak,
                after.longest_streak,
                after.last_active_date,
            )

        return StreakUpdate(
            current_streak=after.current_streak,
            longest_streak=after.longest_streak,
            increased=increased,
        )
