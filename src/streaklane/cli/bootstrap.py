# src/streaklane/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the store, the suggestion ranker and the task service into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import SuggestionRanker
from ..core.state import AppState
from ..llm.client import OpenAICompatibleClient, friendly_llm_error_message
from ..llm.offline import OfflineSuggestionRanker
from ..tasks.suggestions import LLMSuggestionRanker
from ..tasks.task_service import TaskService
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def build_ranker(settings) -> tuple[SuggestionRanker | None, str]:
    """Pick the suggestion ranker: the configured LLM, else the offline heuristic."""
    if not getattr(settings, "suggestions_enabled", True):
        return None, "disabled"
    try:
        return LLMSuggestionRanker(OpenAICompatibleClient(settings)), "llm"
    except RuntimeError as e:
        # Fallback for demos / local runs without external services.
        logger.info("Using offline suggestions: %s", friendly_llm_error_message(e))
        return OfflineSuggestionRanker(), "offline"


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.tasks_db_path, timeout=getattr(settings, "store_timeout", 30.0))
    ranker, source = build_ranker(settings)

    service = TaskService(
        store,
        ranker=ranker,
        week_start_day=settings.week_start_day,
        suggestion_limit=settings.suggestion_limit,
    )

    return AppState(
        settings=settings,
        store=store,
        service=service,
        user_id=settings.user_id,
        suggestions_source=source,
    )
