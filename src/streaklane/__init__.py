"""Personal task tracker with severity lanes, daily streaks and badges."""

__version__ = "0.1.0"
