"""Reading statistics and goals."""

from .aggregator import (
    AuthorCount,
    DailyActivity,
    GenreCount,
    ReadingStatistics,
    StatsAggregator,
)
from .goals import GoalPeriod, GoalTracker, GoalType, ReadingGoal
from .models import ReadingGoalSetting
from .schemas import GoalSettings, GoalUpdate

__all__ = [
    "AuthorCount",
    "DailyActivity",
    "GenreCount",
    "ReadingStatistics",
    "StatsAggregator",
    "GoalPeriod",
    "GoalTracker",
    "GoalType",
    "ReadingGoal",
    "ReadingGoalSetting",
    "GoalSettings",
    "GoalUpdate",
]
