# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from streaklane.core.state import AppState
from streaklane.tasks.task_service import TaskService
from streaklane.tasks.task_store import TaskStore

from .fakes import FakeClock, FakeRanker


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="streaklane-test",
        user_id="alice",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        store_timeout=5.0,
        week_start_day=6,
        suggestions_enabled=True,
        suggestion_limit=3,
        openai_api_key=None,
        openai_base_url="",
        llm_models=[],
        llm_connect_timeout=1.0,
        llm_read_timeout=1.0,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path, timeout=settings.store_timeout)


@pytest.fixture()
def clock() -> FakeClock:
    # Monday 2026-03-02, mid-morning local time.
    return FakeClock(datetime(2026, 3, 2, 10, 0).astimezone())


@pytest.fixture()
def ranker() -> FakeRanker:
    return FakeRanker()


@pytest.fixture()
def service(store: TaskStore, clock: FakeClock, ranker: FakeRanker) -> TaskService:
    return TaskService(store, ranker=ranker, clock=clock, week_start_day=6, suggestion_limit=3)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, service: TaskService) -> AppState:
    """
    AppState wired with a real SQLite store and a fake clock/ranker.

    The store is real because its transactional behavior is part of what we test.
    """
    return AppState(
        settings=settings,
        store=store,
        service=service,
        user_id=settings.user_id,
        suggestions_source="fake",
    )
