"""Reading streaks module."""

from .engine import (
    StreakEngine,
    StreakState,
    StreakStatus,
    advance_streak,
    streak_status,
)

__all__ = [
    "StreakEngine",
    "StreakState",
    "StreakStatus",
    "advance_streak",
    "streak_status",
]
