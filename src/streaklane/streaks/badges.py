# src/streaklane/streaks/badges.py

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ..core.models import Badge
from ..core.ports import StoreTransaction

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class BadgeRule:
    threshold: int
    name: str
    description: str

    @property
    def image_url(self) -> str:
        slug = re.sub(r"\s+", "-", self.name.lower())
        return f"/badges/{slug}.svg"


STREAK_BADGES: tuple[BadgeRule, ...] = (
    BadgeRule(3, "3-Day Streak", "Completed tasks for 3 consecutive days"),
    BadgeRule(7, "Week Warrior", "Completed tasks for 7 consecutive days"),
    BadgeRule(30, "Monthly Master", "Completed tasks for 30 consecutive days"),
)


class BadgeAwarder:
    """
    Grants a catalog badge the moment a streak lands exactly on its threshold.

    A streak that jumps past a threshold without landing on it does not earn
    that badge. A user never holds two badges with the same name.
    """

    def __init__(self, catalog: tuple[BadgeRule, ...] = STREAK_BADGES) -> None:
        self._catalog = catalog

    @property
    def catalog(self) -> tuple[BadgeRule, ...]:
        return self._catalog

    def award(self, tx: StoreTransaction, current_streak: int, *, now_ts: float) -> list[Badge]:
        earned: list[Badge] = []
        for rule in self._catalog:
            if rule.threshold != current_streak:
                continue
            if tx.has_badge(rule.name):
                logger.debug("Badge %r already held by user=%s", rule.name, tx.user_id)
                continue
            badge = tx.insert_badge(
                Badge(
                    user_id=tx.user_id,
                    name=rule.name,
                    description=rule.description,
                    image_url=rule.image_url,
                    earned_at=now_ts,
                )
            )
            logger.info("Badge awarded user=%s name=%r", tx.user_id, rule.name)
            earned.append(badge)
        return earned
