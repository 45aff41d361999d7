"""Propagation of session outcomes into the per-user aggregate.

The aggregate (currently-reading shelf, finished shelf, counters) is a
denormalized view of the sessions table. Writes to it happen after the
session write has committed and are fire-and-confirm: a failure is
logged and reported, never raised, and never undoes the session write.
Every aggregate read first runs ``reconcile`` which repairs any drift.
"""

import logging
from datetime import date
from typing import Callable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.sqlite import Database, get_db
from ..sessions.models import ReadingSession
from ..sessions.schemas import OPEN_STATUSES, SessionResponse, SessionStatus
from ..utils import to_iso, utc_now
from .models import CurrentlyReading, FinishedBook, UserStats
from .schemas import (
    Bookshelf,
    ConsistencyRepair,
    CurrentlyReadingResponse,
    FinishedBookResponse,
    RepairKind,
    UserStatsResponse,
)

logger = logging.getLogger(__name__)


def counted_pages(pages_read: int, current_page: int, start_page: int) -> int:
    """Pages a finished session contributes to the user's total."""
    return pages_read or max(0, current_page - start_page)


class ConsistencySynchronizer:
    """Keeps the per-user aggregate in step with reading sessions."""

    def __init__(
        self,
        db: Optional[Database] = None,
        clock: Optional[Callable] = None,
    ):
        """Initialize synchronizer.

        Args:
            db: Database instance
            clock: Callable returning the current aware datetime
        """
        self.db = db or get_db()
        self.clock = clock or utc_now

    def _now(self) -> str:
        return to_iso(self.clock())

    def _confirm(self, operation: str, user_id: str, fn: Callable[[Session], None]) -> bool:
        """Run an aggregate write in its own transaction.

        Returns:
            True if the write committed, False if it failed
        """
        try:
            with self.db.get_session() as s:
                fn(s)
            return True
        except SQLAlchemyError as e:
            logger.warning(
                "Aggregate %s failed for user %s; repair-on-read will fix it: %s",
                operation,
                user_id,
                e,
            )
            return False

    def _ensure_stats(self, s: Session, user_id: str) -> UserStats:
        stats = s.get(UserStats, user_id)
        if stats is None:
            stats = UserStats(
                user_id=user_id,
                books_read=0,
                pages_read=0,
                total_reading_time=0,
                current_streak=0,
                longest_streak=0,
            )
            s.add(stats)
            s.flush()
        return stats

    # -------------------------------------------------------------------------
    # Lifecycle propagation
    # -------------------------------------------------------------------------

    def on_start(self, session: SessionResponse) -> bool:
        """Put the session's book on the currently-reading shelf."""
        now = self._now()

        def _start(s: Session) -> None:
            self._upsert_current(s, session)
            self._ensure_stats(s, session.user_id).last_activity_at = now

        return self._confirm("start", session.user_id, _start)

    def on_progress(self, session: SessionResponse) -> bool:
        """Refresh the currently-reading entry with the session's position."""
        now = self._now()

        def _progress(s: Session) -> None:
            self._upsert_current(s, session)
            self._ensure_stats(s, session.user_id).last_activity_at = now

        return self._confirm("progress", session.user_id, _progress)

    def on_complete(self, session: SessionResponse) -> bool:
        """Move the book from currently-reading to finished and count it.

        Counters are only incremented when the finished entry is newly
        inserted, so delivering the same completion twice counts it once.
        """
        return self._confirm(
            "complete", session.user_id, lambda s: self._apply_complete(s, session)
        )

    def on_activity(self, user_id: str) -> bool:
        """Refresh the user's last activity timestamp (pause/resume/abandon)."""
        now = self._now()

        def _touch(s: Session) -> None:
            self._ensure_stats(s, user_id).last_activity_at = now

        return self._confirm("activity", user_id, _touch)

    def _upsert_current(self, s: Session, session: SessionResponse) -> None:
        stmt = select(CurrentlyReading).where(
            CurrentlyReading.user_id == session.user_id,
            CurrentlyReading.book_id == session.book_id,
        )
        entry = s.execute(stmt).scalar_one_or_none()
        if entry is None:
            entry = CurrentlyReading(
                user_id=session.user_id,
                book_id=session.book_id,
                started_at=to_iso(session.start_time),
            )
            s.add(entry)
        entry.session_id = session.id
        entry.current_page = session.current_page
        entry.progress = session.progress
        entry.last_read_at = to_iso(session.last_read_at)

    def _apply_complete(self, s: Session, session: SessionResponse) -> bool:
        """Apply a completion. Returns True if the finished entry is new."""
        s.execute(
            delete(CurrentlyReading).where(
                CurrentlyReading.user_id == session.user_id,
                CurrentlyReading.book_id == session.book_id,
            )
        )

        stmt = select(FinishedBook.id).where(
            FinishedBook.user_id == session.user_id,
            FinishedBook.book_id == session.book_id,
        )
        if s.execute(stmt).first() is not None:
            logger.debug(
                "Book %s already finished for user %s, not counting again",
                session.book_id,
                session.user_id,
            )
            return False

        pages = counted_pages(session.pages_read, session.current_page, session.start_page)
        s.add(
            FinishedBook(
                user_id=session.user_id,
                book_id=session.book_id,
                session_id=session.id,
                completed_at=to_iso(session.completed_at or self.clock()),
                rating=session.final_rating,
                review=session.final_review,
                reading_time=session.total_reading_time,
                pages_read=pages,
            )
        )
        self._ensure_stats(s, session.user_id)
        s.flush()

        s.execute(
            update(UserStats)
            .where(UserStats.user_id == session.user_id)
            .values(
                books_read=UserStats.books_read + 1,
                pages_read=UserStats.pages_read + pages,
                total_reading_time=UserStats.total_reading_time + session.total_reading_time,
                last_activity_at=self._now(),
            )
            .execution_options(synchronize_session=False)
        )
        return True

    # -------------------------------------------------------------------------
    # Streak state
    # -------------------------------------------------------------------------

    def get_user_stats(self, user_id: str) -> UserStatsResponse:
        """Read the user's counters without repairing them."""
        with self.db.get_session() as s:
            stats = s.get(UserStats, user_id)
            if stats is None:
                return UserStatsResponse(user_id=user_id)
            return UserStatsResponse.model_validate(stats)

    def record_streak(
        self,
        user_id: str,
        current_streak: int,
        longest_streak: int,
        last_reading_date: Optional[date],
    ) -> bool:
        """Persist streak state computed by the streak engine."""
        now = self._now()

        def _record(s: Session) -> None:
            stats = self._ensure_stats(s, user_id)
            stats.current_streak = current_streak
            stats.longest_streak = longest_streak
            stats.last_reading_date = (
                last_reading_date.isoformat() if last_reading_date else None
            )
            stats.last_activity_at = now

        return self._confirm("streak", user_id, _record)

    # -------------------------------------------------------------------------
    # Repair-on-read
    # -------------------------------------------------------------------------

    def reconcile(self, user_id: str) -> list[ConsistencyRepair]:
        """Repair drift between the user's sessions and their aggregate.

        Args:
            user_id: User to reconcile

        Returns:
            Repairs made, empty when the aggregate was consistent

        Raises:
            SQLAlchemyError: If the repair transaction fails
        """
        with self.db.get_session() as s:
            repairs = self._reconcile(s, user_id)

        for repair in repairs:
            logger.warning("Consistency repair %s", repair)
        return repairs

    def _reconcile(self, s: Session, user_id: str) -> list[ConsistencyRepair]:
        stmt = (
            select(ReadingSession)
            .where(ReadingSession.user_id == user_id)
            .order_by(ReadingSession.last_read_at.desc())
        )
        sessions = s.execute(stmt).scalars().all()

        open_by_book: dict[str, ReadingSession] = {}
        completed_by_book: dict[str, ReadingSession] = {}
        for record in sessions:
            if record.status in OPEN_STATUSES:
                open_by_book.setdefault(record.book_id, record)
            elif record.status == SessionStatus.COMPLETED.value:
                earliest = completed_by_book.get(record.book_id)
                if earliest is None or (record.completed_at or "") < (earliest.completed_at or ""):
                    completed_by_book[record.book_id] = record

        current = {
            e.book_id: e
            for e in s.execute(
                select(CurrentlyReading).where(CurrentlyReading.user_id == user_id)
            ).scalars()
        }
        finished = {
            e.book_id: e
            for e in s.execute(
                select(FinishedBook).where(FinishedBook.user_id == user_id)
            ).scalars()
        }

        stats = self._ensure_stats(s, user_id)
        repairs: list[ConsistencyRepair] = []

        for book_id, entry in current.items():
            if book_id in completed_by_book:
                s.delete(entry)
                if book_id not in finished:
                    record = completed_by_book[book_id]
                    finished[book_id] = self._add_finished(s, stats, record)
                repairs.append(
                    ConsistencyRepair(RepairKind.MOVED_TO_FINISHED, user_id, book_id, entry.session_id)
                )
            elif book_id not in open_by_book:
                s.delete(entry)
                repairs.append(
                    ConsistencyRepair(
                        RepairKind.REMOVED_STALE_CURRENT, user_id, book_id, entry.session_id
                    )
                )

        for book_id, record in open_by_book.items():
            if book_id in current or book_id in completed_by_book:
                continue
            s.add(
                CurrentlyReading(
                    user_id=user_id,
                    book_id=book_id,
                    session_id=record.id,
                    started_at=record.start_time,
                    last_read_at=record.last_read_at,
                    current_page=record.current_page,
                    progress=record.progress,
                )
            )
            repairs.append(
                ConsistencyRepair(RepairKind.ADDED_MISSING_CURRENT, user_id, book_id, record.id)
            )

        for book_id, record in completed_by_book.items():
            if book_id in finished:
                continue
            finished[book_id] = self._add_finished(s, stats, record)
            repairs.append(
                ConsistencyRepair(RepairKind.ADDED_MISSING_FINISHED, user_id, book_id, record.id)
            )

        for book_id, entry in finished.items():
            if book_id in completed_by_book:
                continue
            s.delete(entry)
            stats.books_read = max(0, stats.books_read - 1)
            stats.pages_read = max(0, stats.pages_read - (entry.pages_read or 0))
            stats.total_reading_time = max(
                0, stats.total_reading_time - (entry.reading_time or 0)
            )
            repairs.append(
                ConsistencyRepair(
                    RepairKind.REMOVED_ORPHAN_FINISHED, user_id, book_id, entry.session_id
                )
            )

        return repairs

    def _add_finished(self, s: Session, stats: UserStats, record: ReadingSession) -> FinishedBook:
        pages = counted_pages(record.pages_read, record.current_page, record.start_page)
        entry = FinishedBook(
            user_id=record.user_id,
            book_id=record.book_id,
            session_id=record.id,
            completed_at=record.completed_at or record.last_read_at,
            rating=record.final_rating,
            review=record.final_review,
            reading_time=record.total_reading_time,
            pages_read=pages,
        )
        s.add(entry)
        stats.books_read += 1
        stats.pages_read += pages
        stats.total_reading_time += record.total_reading_time
        return entry

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_bookshelf(self, user_id: str) -> Bookshelf:
        """Get the user's shelves and counters after repair."""
        repairs = self.reconcile(user_id)

        with self.db.get_session() as s:
            current = s.execute(
                select(CurrentlyReading)
                .where(CurrentlyReading.user_id == user_id)
                .order_by(CurrentlyReading.last_read_at.desc())
            ).scalars().all()
            finished = s.execute(
                select(FinishedBook)
                .where(FinishedBook.user_id == user_id)
                .order_by(FinishedBook.completed_at.desc())
            ).scalars().all()
            stats = s.get(UserStats, user_id)

            return Bookshelf(
                user_id=user_id,
                currently_reading=[CurrentlyReadingResponse.model_validate(e) for e in current],
                finished=[FinishedBookResponse.model_validate(e) for e in finished],
                stats=(
                    UserStatsResponse.model_validate(stats)
                    if stats
                    else UserStatsResponse(user_id=user_id)
                ),
                repairs=len(repairs),
            )

    def delete_user_aggregate(self, user_id: str, session: Optional[Session] = None) -> None:
        """Delete every aggregate row of a user."""

        def _delete(s: Session) -> None:
            s.execute(delete(CurrentlyReading).where(CurrentlyReading.user_id == user_id))
            s.execute(delete(FinishedBook).where(FinishedBook.user_id == user_id))
            s.execute(delete(UserStats).where(UserStats.user_id == user_id))

        if session:
            _delete(session)
        else:
            with self.db.get_session() as s:
                _delete(s)
