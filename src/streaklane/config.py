# src/streaklane/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ENV_PREFIX = "STREAKLANE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


_WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


def _env_weekday(name: str, default: int) -> int:
    """Accept a weekday name ("sunday") or an index 0..6 (Monday=0)."""
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    if raw in _WEEKDAYS:
        return _WEEKDAYS[raw]
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if 0 <= value <= 6 else default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Console identity (stands in for an authenticator) ----
    user_id: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    store_timeout: float

    # ---- Stats ----
    week_start_day: int

    # ---- Suggestions / LLM ----
    suggestions_enabled: bool
    suggestion_limit: int
    openai_api_key: Optional[str]
    openai_base_url: str
    llm_models: List[str]
    llm_connect_timeout: float
    llm_read_timeout: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "streaklane") or "streaklane"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        user_id = (_first_env(_k("USER_ID"), "USER", default="local") or "local").strip()

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/streaklane"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        store_timeout = _env_float(_k("STORE_TIMEOUT_SECONDS"), 30.0)

        week_start_day = _env_weekday(_k("WEEK_START"), 6)

        suggestions_enabled = _env_bool(_k("SUGGESTIONS_ENABLED"), True)
        suggestion_limit = max(1, _env_int(_k("SUGGESTION_LIMIT"), 3))
        openai_api_key = _first_env(_k("OPENAI_API_KEY"), "OPENAI_API_KEY", default=None)
        openai_base_url = _env(_k("OPENAI_BASE_URL"), "https://api.openai.com/v1")
        llm_models = _env_list(_k("LLM_MODELS"), ["gpt-4o-mini", "gpt-3.5-turbo"])

        llm_connect_timeout = _env_float(_k("LLM_CONNECT_TIMEOUT_SECONDS"), 5.0)
        # keep read >= connect as a sane baseline
        llm_read_timeout = max(
            _env_float(_k("LLM_READ_TIMEOUT_SECONDS"), 30.0), llm_connect_timeout
        )

        return Settings(
            app_name=app_name,
            log_level=log_level,
            user_id=user_id,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            store_timeout=store_timeout,
            week_start_day=week_start_day,
            suggestions_enabled=suggestions_enabled,
            suggestion_limit=suggestion_limit,
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url,
            llm_models=llm_models,
            llm_connect_timeout=llm_connect_timeout,
            llm_read_timeout=llm_read_timeout,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
