"""Reading goals tracking.

Supports yearly and monthly book and page goals with progress tracking.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import Config, get_config
from ..db.sqlite import Database, get_db
from ..sessions.models import ReadingSession
from ..sessions.schemas import SessionStatus, validate_request
from ..sync.synchronizer import counted_pages
from ..utils import percentage, to_iso, utc_now
from .models import ReadingGoalSetting
from .schemas import GoalSettings, GoalUpdate


class GoalType(str, Enum):
    """Type of reading goal."""

    BOOKS = "books"  # Number of books to finish
    PAGES = "pages"  # Number of pages to read


class GoalPeriod(str, Enum):
    """Window a goal is measured over."""

    YEARLY = "yearly"
    MONTHLY = "monthly"


@dataclass
class ReadingGoal:
    """A reading goal with its progress in the current period."""

    goal_type: GoalType
    period: GoalPeriod
    target: int
    period_start: date
    current: int = 0

    @property
    def progress_percent(self) -> float:
        """Calculate progress percentage."""
        return percentage(self.current, self.target)

    @property
    def remaining(self) -> int:
        """Calculate remaining to reach goal."""
        return max(0, self.target - self.current)

    @property
    def is_complete(self) -> bool:
        """Check if goal is complete."""
        return self.current >= self.target

    @property
    def period_label(self) -> str:
        """Get human-readable period label."""
        if self.period == GoalPeriod.MONTHLY:
            return f"{calendar.month_name[self.period_start.month]} {self.period_start.year}"
        return str(self.period_start.year)


class GoalTracker:
    """Tracks and manages reading goals."""

    def __init__(
        self,
        db: Optional[Database] = None,
        config: Optional[Config] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize goal tracker.

        Args:
            db: Database instance
            config: Configuration (reference timezone for period starts)
            clock: Callable returning the current aware datetime
        """
        self.db = db or get_db()
        self.config = config or get_config()
        self.clock = clock or utc_now

    def set_goals(
        self,
        user_id: str,
        books_per_year: Optional[int] = None,
        books_per_month: Optional[int] = None,
        pages_per_day: Optional[int] = None,
        minutes_per_day: Optional[int] = None,
    ) -> GoalSettings:
        """Set a user's reading goals.

        Only the given values change; the rest keep their current value.

        Returns:
            The updated goals

        Raises:
            ValidationFailure: If a target is out of range
        """
        update = validate_request(
            GoalUpdate,
            books_per_year=books_per_year,
            books_per_month=books_per_month,
            pages_per_day=pages_per_day,
            minutes_per_day=minutes_per_day,
        )

        with self.db.get_session() as session:
            setting = session.get(ReadingGoalSetting, user_id)
            if setting is None:
                defaults = GoalSettings(user_id=user_id)
                setting = ReadingGoalSetting(**defaults.model_dump())
                session.add(setting)

            for field, value in update.model_dump(exclude_none=True).items():
                setattr(setting, field, value)

            session.flush()
            return GoalSettings.model_validate(setting)

    def get_goals(self, user_id: str) -> GoalSettings:
        """Get a user's goals, defaults when none were set."""
        with self.db.get_session() as session:
            setting = session.get(ReadingGoalSetting, user_id)
            if setting is None:
                return GoalSettings(user_id=user_id)
            return GoalSettings.model_validate(setting)

    def get_progress(self, user_id: str, session: Optional[Session] = None) -> list[ReadingGoal]:
        """Get progress on a user's yearly and monthly goals.

        Counts completed sessions with completed_at in [period start, now).

        Args:
            user_id: Reader
            session: Optional open database session

        Returns:
            Yearly books, yearly pages, monthly books and monthly pages goals
        """
        now = self.clock()
        local_now = now.astimezone(ZoneInfo(self.config.timezone))
        year_start = local_now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
        month_start = local_now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        days_in_month = calendar.monthrange(local_now.year, local_now.month)[1]

        def _progress(s: Session) -> list[ReadingGoal]:
            setting = s.get(ReadingGoalSetting, user_id)
            goals = (
                GoalSettings.model_validate(setting) if setting else GoalSettings(user_id=user_id)
            )
            stmt = select(ReadingSession).where(
                ReadingSession.user_id == user_id,
                ReadingSession.status == SessionStatus.COMPLETED.value,
                ReadingSession.completed_at >= to_iso(year_start),
                ReadingSession.completed_at < to_iso(now),
            )
            finished = [
                (r.completed_at, counted_pages(r.pages_read, r.current_page, r.start_page))
                for r in s.execute(stmt).scalars().all()
            ]
            month_cutoff = to_iso(month_start)
            this_month = [pages for completed_at, pages in finished if completed_at >= month_cutoff]

            return [
                ReadingGoal(
                    GoalType.BOOKS,
                    GoalPeriod.YEARLY,
                    goals.books_per_year,
                    year_start.date(),
                    current=len(finished),
                ),
                ReadingGoal(
                    GoalType.PAGES,
                    GoalPeriod.YEARLY,
                    goals.pages_per_day * 365,
                    year_start.date(),
                    current=sum(pages for _, pages in finished),
                ),
                ReadingGoal(
                    GoalType.BOOKS,
                    GoalPeriod.MONTHLY,
                    goals.monthly_books_target,
                    month_start.date(),
                    current=len(this_month),
                ),
                ReadingGoal(
                    GoalType.PAGES,
                    GoalPeriod.MONTHLY,
                    goals.pages_per_day * days_in_month,
                    month_start.date(),
                    current=sum(this_month),
                ),
            ]

        if session:
            return _progress(session)
        else:
            with self.db.get_session() as s:
                return _progress(s)
