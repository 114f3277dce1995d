# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "STREAKLANE_APP_NAME": "App display name (default: streaklane).",
    "STREAKLANE_LOG_LEVEL": "Console logging level (default: INFO).",
    # Identity
    "STREAKLANE_USER_ID": "User id the console acts as (default: $USER, else 'local').",
    # Paths (gitignored)
    "STREAKLANE_DATA_DIR": "Local data directory (default: .local/streaklane).",
    "STREAKLANE_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    "STREAKLANE_STORE_TIMEOUT_SECONDS": "How long a write waits for the database lock (default: 30).",
    # Stats
    "STREAKLANE_WEEK_START": "First day of the week for weekly stats: name or 0..6, Monday=0 (default: sunday).",
    # Suggestions / LLM
    "STREAKLANE_SUGGESTIONS_ENABLED": "Enable /suggest (true/false, default: true).",
    "STREAKLANE_SUGGESTION_LIMIT": "How many tasks to suggest (default: 3).",
    "STREAKLANE_OPENAI_API_KEY": "API key for the OpenAI-compatible endpoint (OPENAI_API_KEY also works).",
    "STREAKLANE_OPENAI_BASE_URL": "Endpoint base URL (default: https://api.openai.com/v1).",
    "STREAKLANE_LLM_MODELS": "Comma/space separated list of models to try in order.",
    "STREAKLANE_LLM_CONNECT_TIMEOUT_SECONDS": "Connect timeout (default: 5).",
    "STREAKLANE_LLM_READ_TIMEOUT_SECONDS": "Read timeout (default: 30).",
}
