"""
Task subsystem.

Components:
- task_store.py: SQLite-backed record store (tasks, streaks, badges) with per-user transactions
- task_service.py: the operations front-ends call (create/update/delete/reorder/stats/suggest)
- suggestions.py: LLM-backed ranking of open tasks
"""
