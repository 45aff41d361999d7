"""Reading statistics.

Read-path statistics over a user's completed sessions. Computation runs
repair-on-read first, is retried on database errors, and falls back to the
last good result (marked stale) rather than failing the caller.
"""

import logging
from collections import Counter, OrderedDict
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ..catalog import BookCatalog, DatabaseBookCatalog
from ..config import Config, get_config
from ..db.sqlite import Database, get_db
from ..sessions.models import ReadingSession
from ..sessions.schemas import OPEN_STATUSES, SessionStatus
from ..streaks.engine import StreakState, StreakStatus, streak_status
from ..sync.synchronizer import ConsistencySynchronizer, counted_pages
from ..utils import from_iso, reference_date, to_iso, utc_now
from .goals import GoalTracker, ReadingGoal

logger = logging.getLogger(__name__)

FAVORITES_LIMIT = 5
RECENT_ACTIVITY_DAYS = 30
STALE_CACHE_SIZE = 256


@dataclass
class GenreCount:
    """How many finished books carry a genre."""

    genre: str
    count: int


@dataclass
class AuthorCount:
    """How many finished books an author wrote."""

    author: str
    count: int


@dataclass
class DailyActivity:
    """Sessions read on one day."""

    day: date
    sessions: int = 0
    pages_read: int = 0


@dataclass
class ReadingStatistics:
    """A user's reading statistics."""

    user_id: str
    total_books_read: int = 0
    total_pages_read: int = 0
    total_reading_time: int = 0  # seconds
    average_rating: float = 0.0
    average_reading_speed: float = 0.0  # pages/hour
    favorite_genres: list[GenreCount] = field(default_factory=list)
    favorite_authors: list[AuthorCount] = field(default_factory=list)
    current_sessions: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    streak_status: StreakStatus = StreakStatus.ENDED
    goals: list[ReadingGoal] = field(default_factory=list)
    recent_activity: list[DailyActivity] = field(default_factory=list)
    computed_at: Optional[datetime] = None
    stale: bool = False

    @property
    def total_reading_hours(self) -> float:
        """Total reading time in hours."""
        return round(self.total_reading_time / 3600, 1)


def top_counts(counter: Counter, limit: int = FAVORITES_LIMIT) -> list[tuple[str, int]]:
    """Most frequent items, ties kept in first-seen order.

    Example:
        >>> top_counts(Counter(["b", "a", "a", "b", "c"]), 2)
        [('b', 2), ('a', 2)]
    """
    # sorted() is stable and Counter keeps insertion order
    return sorted(counter.items(), key=lambda item: -item[1])[:limit]


class StatsAggregator:
    """Calculates reading statistics for a user."""

    def __init__(
        self,
        db: Optional[Database] = None,
        catalog: Optional[BookCatalog] = None,
        synchronizer: Optional[ConsistencySynchronizer] = None,
        goals: Optional[GoalTracker] = None,
        config: Optional[Config] = None,
        clock: Optional[Callable[[], datetime]] = None,
        cache_size: int = STALE_CACHE_SIZE,
    ):
        """Initialize aggregator.

        Args:
            db: Database instance
            catalog: Book lookups for genres and authors
            synchronizer: Owner of the per-user aggregate
            goals: Goal tracker
            config: Configuration
            clock: Callable returning the current aware datetime
            cache_size: Users whose last good statistics are kept for fallback
        """
        self.db = db or get_db()
        self.config = config or get_config()
        self.clock = clock or utc_now
        self.catalog = catalog or DatabaseBookCatalog(self.db)
        self.sync = synchronizer or ConsistencySynchronizer(self.db, clock=self.clock)
        self.goals = goals or GoalTracker(self.db, self.config, clock=self.clock)
        self.cache_size = max(1, cache_size)
        # Least recently computed first
        self._last_good: OrderedDict[str, ReadingStatistics] = OrderedDict()

    def get_statistics(self, user_id: str) -> ReadingStatistics:
        """Get a user's reading statistics.

        Failed computations are retried; if they keep failing, the last
        good statistics (or empty ones) are returned with stale=True.
        """
        attempts = 1 + max(0, self.config.stats_retries)
        for attempt in range(1, attempts + 1):
            try:
                stats = self._compute(user_id)
            except SQLAlchemyError as e:
                logger.warning(
                    "Statistics for user %s failed (attempt %d of %d): %s",
                    user_id,
                    attempt,
                    attempts,
                    e,
                )
                continue
            self._remember(user_id, stats)
            return stats

        cached = self._last_good.get(user_id)
        if cached is not None:
            return replace(cached, stale=True)
        return ReadingStatistics(user_id=user_id, stale=True)

    def _remember(self, user_id: str, stats: ReadingStatistics) -> None:
        self._last_good[user_id] = stats
        self._last_good.move_to_end(user_id)
        while len(self._last_good) > self.cache_size:
            self._last_good.popitem(last=False)

    def _compute(self, user_id: str) -> ReadingStatistics:
        self.sync.reconcile(user_id)
        now = self.clock()
        tz = self.config.timezone

        with self.db.get_session() as s:
            completed = s.execute(
                select(ReadingSession)
                .where(
                    ReadingSession.user_id == user_id,
                    ReadingSession.status == SessionStatus.COMPLETED.value,
                )
                .order_by(ReadingSession.completed_at, ReadingSession.id)
            ).scalars().all()
            finished = [
                (
                    r.book_id,
                    counted_pages(r.pages_read, r.current_page, r.start_page),
                    r.total_reading_time,
                    r.final_rating,
                    r.reading_speed,
                )
                for r in completed
            ]

            current_sessions = s.execute(
                select(func.count())
                .select_from(ReadingSession)
                .where(
                    ReadingSession.user_id == user_id,
                    ReadingSession.status.in_(OPEN_STATUSES),
                )
            ).scalar_one()

            window_start = to_iso(now - timedelta(days=RECENT_ACTIVITY_DAYS))
            recent = s.execute(
                select(ReadingSession.last_read_at, ReadingSession.pages_read).where(
                    ReadingSession.user_id == user_id,
                    ReadingSession.status != SessionStatus.VIEWED.value,
                    ReadingSession.last_read_at >= window_start,
                )
            ).all()

            goals = self.goals.get_progress(user_id, session=s)

        aggregate = self.sync.get_user_stats(user_id)
        streak = StreakState(
            aggregate.current_streak, aggregate.longest_streak, aggregate.last_reading_date
        )

        # Catalog lookups happen outside the open database session
        genres: Counter = Counter()
        authors: Counter = Counter()
        for book_id, *_ in finished:
            genres.update(self.catalog.genres(book_id))
            authors.update(self.catalog.authors(book_id))

        ratings = [rating for *_, rating, _ in finished if rating is not None]
        speeds = [speed for *_, speed in finished if speed > 0]

        activity: dict[date, DailyActivity] = {}
        for last_read_at, pages in recent:
            day = reference_date(from_iso(last_read_at), tz)
            entry = activity.setdefault(day, DailyActivity(day=day))
            entry.sessions += 1
            entry.pages_read += pages

        return ReadingStatistics(
            user_id=user_id,
            total_books_read=len(finished),
            total_pages_read=sum(pages for _, pages, *_ in finished),
            total_reading_time=sum(seconds for _, _, seconds, *_ in finished),
            average_rating=round(sum(ratings) / len(ratings), 1) if ratings else 0.0,
            average_reading_speed=round(sum(speeds) / len(speeds), 1) if speeds else 0.0,
            favorite_genres=[GenreCount(g, c) for g, c in top_counts(genres)],
            favorite_authors=[AuthorCount(a, c) for a, c in top_counts(authors)],
            current_sessions=current_sessions,
            current_streak=streak.current_streak,
            longest_streak=streak.longest_streak,
            streak_status=streak_status(streak, reference_date(now, tz)),
            goals=goals,
            recent_activity=[activity[day] for day in sorted(activity)],
            computed_at=now,
        )
