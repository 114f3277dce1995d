# src/streaklane/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.task_service import TaskService
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Settings are kept on the state for easy access in command handlers.
    settings: Any

    store: TaskStore
    service: TaskService

    # Identity of the console user (an authenticator would supply this per request).
    user_id: str
    suggestions_source: str = "offline"
