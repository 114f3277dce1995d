"""
Streak subsystem.

- engine.py: per-user streak state machine driven by task completions
- badges.py: one-time badges awarded when a streak lands on a threshold
"""
