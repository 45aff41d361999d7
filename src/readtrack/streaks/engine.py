"""Consecutive-day reading streaks.

A streak counts calendar days, in the configured reference timezone, on
which the user did qualifying reading (start, progress, resume, complete).
State lives in the per-user aggregate and is read and written through the
ConsistencySynchronizer.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from ..config import Config, get_config
from ..sync.synchronizer import ConsistencySynchronizer
from ..utils import reference_date

logger = logging.getLogger(__name__)


class StreakStatus(str, Enum):
    """Status of a streak."""

    ACTIVE = "active"
    ENDED = "ended"
    AT_RISK = "at_risk"  # No reading today yet


@dataclass(frozen=True)
class StreakState:
    """Streak counters for one user."""

    current_streak: int = 0
    longest_streak: int = 0
    last_reading_date: Optional[date] = None


def advance_streak(state: StreakState, day: date) -> StreakState:
    """Apply reading activity on a day to a streak.

    Args:
        state: Current streak state
        day: Calendar day of the activity

    Returns:
        New streak state. Same-day repeats and past-dated activity
        leave the state unchanged.

    Example:
        >>> s = advance_streak(StreakState(), date(2025, 1, 1))
        >>> advance_streak(s, date(2025, 1, 2)).current_streak
        2
    """
    last = state.last_reading_date

    if last is not None and day <= last:
        return state

    if last is not None and day == last + timedelta(days=1):
        current = state.current_streak + 1
    else:
        current = 1

    return replace(
        state,
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        last_reading_date=day,
    )


def streak_status(state: StreakState, today: date) -> StreakStatus:
    """Classify a streak relative to today.

    Args:
        state: Streak state
        today: Today in the reference timezone

    Returns:
        ACTIVE if read today, AT_RISK if last read yesterday, ENDED otherwise
    """
    last = state.last_reading_date
    if last is None or state.current_streak == 0:
        return StreakStatus.ENDED
    if last >= today:
        return StreakStatus.ACTIVE
    if last == today - timedelta(days=1):
        return StreakStatus.AT_RISK
    return StreakStatus.ENDED


class StreakEngine:
    """Maintains per-user reading streaks."""

    def __init__(
        self,
        synchronizer: ConsistencySynchronizer,
        config: Optional[Config] = None,
    ):
        """Initialize streak engine.

        Args:
            synchronizer: Owner of the per-user aggregate
            config: Configuration (reference timezone)
        """
        self.sync = synchronizer
        self.config = config or get_config()

    def get_state(self, user_id: str) -> StreakState:
        """Get a user's stored streak state."""
        stats = self.sync.get_user_stats(user_id)
        return StreakState(
            current_streak=stats.current_streak,
            longest_streak=stats.longest_streak,
            last_reading_date=stats.last_reading_date,
        )

    def record_activity(self, user_id: str, at: datetime) -> StreakState:
        """Record qualifying reading activity.

        Args:
            user_id: Reader
            at: Moment of the activity

        Returns:
            Streak state after the activity
        """
        day = reference_date(at, self.config.timezone)
        state = self.get_state(user_id)
        updated = advance_streak(state, day)

        if updated != state:
            self.sync.record_streak(
                user_id,
                updated.current_streak,
                updated.longest_streak,
                updated.last_reading_date,
            )
            logger.debug(
                "Streak for user %s on %s: %s (longest %s)",
                user_id,
                day,
                updated.current_streak,
                updated.longest_streak,
            )
        return updated

    def get_status(self, user_id: str, now: datetime) -> StreakStatus:
        """Get a user's streak status as of a moment."""
        return streak_status(self.get_state(user_id), reference_date(now, self.config.timezone))
