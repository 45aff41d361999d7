"""Reading session lifecycle.

SessionManager is the caller-facing surface of the engine. Each mutating
operation validates its request, applies a legal transition to the session
in one transaction, and only after that transaction commits propagates the
outcome to the streak engine and the per-user aggregate. Failures in those
follow-up writes are logged and repaired on the next aggregate read.
"""

import logging
import math
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..catalog import BookCatalog, DatabaseBookCatalog
from ..config import Config, get_config
from ..db.sqlite import Database, get_db
from ..errors import AlreadyCompletedError, InvalidStateError, NotFoundError
from ..reading.progress import ProgressTracker, calculate_progress, clamp_page
from ..sessions.annotations import AnnotationManager
from ..sessions.models import ReadingSession
from ..sessions.schemas import (
    OPEN_STATUSES,
    HistoryFilter,
    HistoryPage,
    ProgressUpdate,
    SessionComplete,
    SessionResponse,
    SessionStart,
    SessionStatus,
    validate_request,
)
from ..sessions.transitions import SessionAction, is_redelivery, resolve_transition
from ..stats.models import ReadingGoalSetting
from ..streaks.engine import StreakEngine
from ..sync.schemas import ConsistencyRepair
from ..sync.synchronizer import ConsistencySynchronizer
from ..utils import to_iso, utc_now

logger = logging.getLogger(__name__)


class SessionManager:
    """Manages the lifecycle of reading sessions."""

    def __init__(
        self,
        db: Optional[Database] = None,
        catalog: Optional[BookCatalog] = None,
        synchronizer: Optional[ConsistencySynchronizer] = None,
        streaks: Optional[StreakEngine] = None,
        progress: Optional[ProgressTracker] = None,
        config: Optional[Config] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize session manager.

        Args:
            db: Database instance
            catalog: Book lookups (default: local books table)
            synchronizer: Owner of the per-user aggregate
            streaks: Streak engine
            progress: Progress tracker
            config: Configuration
            clock: Callable returning the current aware datetime
        """
        self.db = db or get_db()
        self.config = config or get_config()
        self.clock = clock or utc_now
        self.catalog = catalog or DatabaseBookCatalog(self.db)
        self.sync = synchronizer or ConsistencySynchronizer(self.db, clock=self.clock)
        self.streaks = streaks or StreakEngine(self.sync, self.config)
        self.progress = progress or ProgressTracker(self.config.completion_threshold)
        self.annotations = AnnotationManager(self.db, clock=self.clock)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _get_record(self, s: Session, session_id: str) -> ReadingSession:
        record = s.get(ReadingSession, session_id)
        if record is None:
            raise NotFoundError("session", session_id)
        return record

    def _book_of(self, session_id: str) -> str:
        """Look up a session's book before opening the write transaction."""
        with self.db.get_session() as s:
            book_id = s.execute(
                select(ReadingSession.book_id).where(ReadingSession.id == session_id)
            ).scalar_one_or_none()
        if book_id is None:
            raise NotFoundError("session", session_id)
        return book_id

    def _find_active(self, s: Session, user_id: str, book_id: str) -> Optional[ReadingSession]:
        stmt = select(ReadingSession).where(
            ReadingSession.user_id == user_id,
            ReadingSession.book_id == book_id,
            ReadingSession.status == SessionStatus.ACTIVE.value,
        )
        return s.execute(stmt).scalars().first()

    def _find_paused(self, s: Session, user_id: str, book_id: str) -> Optional[str]:
        stmt = (
            select(ReadingSession.id)
            .where(
                ReadingSession.user_id == user_id,
                ReadingSession.book_id == book_id,
                ReadingSession.status == SessionStatus.PAUSED.value,
            )
            .order_by(ReadingSession.last_read_at.desc())
        )
        return s.execute(stmt).scalars().first()

    def _has_completed(self, s: Session, user_id: str, book_id: str) -> bool:
        stmt = select(ReadingSession.id).where(
            ReadingSession.user_id == user_id,
            ReadingSession.book_id == book_id,
            ReadingSession.status == SessionStatus.COMPLETED.value,
        )
        return s.execute(stmt).first() is not None

    def _complete(
        self,
        record: ReadingSession,
        now: str,
        page_count: Optional[int],
        rating: Optional[int] = None,
        review: Optional[str] = None,
    ) -> None:
        """Move a session to completed. Completion always reports 100%."""
        record.status = resolve_transition(
            record.id, record.status_enum, SessionAction.COMPLETE
        ).value
        record.progress = 100
        if page_count is not None:
            record.page_count = page_count
            record.current_page = max(record.start_page, page_count)
        record.end_time = now
        record.completed_at = now
        record.last_read_at = now
        record.updated_at = now
        record.final_rating = rating
        record.final_review = review

    def _resume(self, record: ReadingSession, now: str) -> None:
        record.resumed_at = now
        record.last_read_at = now
        record.updated_at = now
        record.session_count += 1

    def _record_streak(self, user_id: str, at: datetime) -> None:
        try:
            self.streaks.record_activity(user_id, at)
        except SQLAlchemyError as e:
            logger.warning("Streak update failed for user %s: %s", user_id, e)

    def _reconcile(self, user_id: str) -> list[ConsistencyRepair]:
        try:
            return self.sync.reconcile(user_id)
        except SQLAlchemyError as e:
            logger.warning("Repair-on-read failed for user %s: %s", user_id, e)
            return []

    def _transition(
        self,
        session_id: str,
        action: SessionAction,
        request_id: Optional[str],
        mutate: Callable[[ReadingSession, str], None],
    ) -> tuple[SessionResponse, bool]:
        """Apply a simple status transition.

        Returns:
            (session, applied) where applied is False for a re-delivered request
        """
        now = to_iso(self.clock())

        with self.db.get_session() as s:
            record = self._get_record(s, session_id)
            if is_redelivery(record.last_request_id, request_id):
                return SessionResponse.model_validate(record), False

            previous = record.status
            record.status = resolve_transition(record.id, record.status_enum, action).value
            if action is SessionAction.RESUME and self._has_completed(
                s, record.user_id, record.book_id
            ):
                raise AlreadyCompletedError(record.user_id, record.book_id)
            mutate(record, now)
            record.updated_at = now
            if request_id is not None:
                record.last_request_id = request_id
            try:
                s.flush()
            except IntegrityError:
                # Another session for the same book is already active
                s.rollback()
                raise InvalidStateError(
                    session_id, previous, action.value, "another session for this book is active"
                ) from None
            response = SessionResponse.model_validate(record)

        logger.debug("Session %s: %s -> %s (%s)", session_id, previous, response.status.value, action.value)
        return response, True

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start_session(
        self,
        user_id: str,
        book_id: str,
        start_page: int = 0,
        request_id: Optional[str] = None,
    ) -> SessionResponse:
        """Start reading a book.

        Returns the existing active session for the (user, book) pair if
        there is one, including when a concurrent start won the race. A
        paused session for the pair is resumed instead of opening a second
        one.

        Args:
            user_id: Reader
            book_id: Book to read
            start_page: Page reading starts from
            request_id: Caller request id for re-delivery detection

        Returns:
            The active session

        Raises:
            ValidationFailure: If the request is malformed
            NotFoundError: If the book isn't in the catalog
            AlreadyCompletedError: If the user already finished this book
        """
        request = validate_request(
            SessionStart, user_id=user_id, book_id=book_id, start_page=start_page
        )
        if not self.catalog.exists(request.book_id):
            raise NotFoundError("book", request.book_id)
        page_count = self.catalog.page_count(request.book_id)

        moment = self.clock()
        now = to_iso(moment)

        with self.db.get_session() as s:
            existing = self._find_active(s, request.user_id, request.book_id)
            if existing is not None:
                return SessionResponse.model_validate(existing)
            if self._has_completed(s, request.user_id, request.book_id):
                raise AlreadyCompletedError(request.user_id, request.book_id)

            paused_id = self._find_paused(s, request.user_id, request.book_id)
            if paused_id is not None:
                record = self._get_record(s, paused_id)
                record.status = resolve_transition(
                    record.id, record.status_enum, SessionAction.RESUME
                ).value
                self._resume(record, now)
                if request_id is not None:
                    record.last_request_id = request_id
                s.flush()
                response = SessionResponse.model_validate(record)
            else:
                page = clamp_page(request.start_page, 0, page_count)
                record = ReadingSession(
                    user_id=request.user_id,
                    book_id=request.book_id,
                    status=SessionStatus.ACTIVE.value,
                    start_time=now,
                    last_read_at=now,
                    start_page=page,
                    current_page=page,
                    progress=calculate_progress(page, page_count),
                    page_count=page_count,
                    total_reading_time=0,
                    pages_read=0,
                    session_count=1,
                    reading_speed=0.0,
                    view_count=0,
                    last_request_id=request_id,
                    created_at=now,
                    updated_at=now,
                )
                s.add(record)
                try:
                    s.flush()
                except IntegrityError:
                    # Lost the race against a concurrent start for the same pair
                    s.rollback()
                    winner = self._find_active(s, request.user_id, request.book_id)
                    if winner is None:
                        raise
                    logger.debug(
                        "Concurrent start for user %s book %s resolved to %s",
                        request.user_id,
                        request.book_id,
                        winner.id,
                    )
                    return SessionResponse.model_validate(winner)
                response = SessionResponse.model_validate(record)

        if paused_id is not None:
            logger.debug("Start resumed paused session %s for user %s", response.id, user_id)
            self.sync.on_activity(response.user_id)
        else:
            logger.debug("Started session %s for user %s book %s", response.id, user_id, book_id)
            self.sync.on_start(response)
        self._record_streak(response.user_id, moment)
        return response

    def update_progress(
        self,
        session_id: str,
        current_page: Optional[int] = None,
        pages_read_delta: Optional[int] = None,
        reading_time_delta: int = 0,
        note: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> SessionResponse:
        """Record reading progress.

        A progress update that reaches the completion threshold completes
        the session.

        Args:
            session_id: Session ID
            current_page: Absolute page reached
            pages_read_delta: Pages read since the last update
            reading_time_delta: Seconds read since the last update
            note: Optional note anchored at the resulting page
            request_id: Caller request id for re-delivery detection

        Returns:
            Updated session

        Raises:
            ValidationFailure: If the request is malformed
            NotFoundError: If the session doesn't exist
            InvalidStateError: If the session is not active
            SessionTerminalError: If the session is finished
        """
        request = validate_request(
            ProgressUpdate,
            current_page=current_page,
            pages_read_delta=pages_read_delta,
            reading_time_delta=reading_time_delta,
            note=note,
        )
        page_count = self.catalog.page_count(self._book_of(session_id))

        moment = self.clock()
        now = to_iso(moment)

        with self.db.get_session() as s:
            record = self._get_record(s, session_id)
            if is_redelivery(record.last_request_id, request_id):
                return SessionResponse.model_validate(record)

            resolve_transition(record.id, record.status_enum, SessionAction.PROGRESS)
            result = self.progress.resolve(record, request, page_count)
            self.progress.apply(s, record, result, request, now, request_id)

            if result.reaches_completion:
                logger.debug(
                    "Session %s reached %s%%, completing", record.id, result.progress
                )
                self._complete(record, now, page_count)
            s.flush()
            response = SessionResponse.model_validate(record)

        if response.status == SessionStatus.COMPLETED:
            self.sync.on_complete(response)
        else:
            self.sync.on_progress(response)
        self._record_streak(response.user_id, moment)
        return response

    def pause_session(self, session_id: str, request_id: Optional[str] = None) -> SessionResponse:
        """Pause an active session.

        Raises:
            NotFoundError: If the session doesn't exist
            InvalidStateError: If the session is not active
            SessionTerminalError: If the session is finished
        """

        def _pause(record: ReadingSession, now: str) -> None:
            record.paused_at = now
            record.last_read_at = now

        response, applied = self._transition(session_id, SessionAction.PAUSE, request_id, _pause)
        if applied:
            self.sync.on_activity(response.user_id)
        return response

    def resume_session(self, session_id: str, request_id: Optional[str] = None) -> SessionResponse:
        """Resume a paused session.

        Raises:
            NotFoundError: If the session doesn't exist
            InvalidStateError: If the session is not paused, or another session
                for the book is active
            SessionTerminalError: If the session is finished
            AlreadyCompletedError: If the book was finished in another session
        """
        response, applied = self._transition(
            session_id, SessionAction.RESUME, request_id, self._resume
        )
        if applied:
            self.sync.on_activity(response.user_id)
            self._record_streak(response.user_id, self.clock())
        return response

    def complete_session(
        self,
        session_id: str,
        rating: Optional[int] = None,
        review: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> SessionResponse:
        """Finish a book.

        Args:
            session_id: Session ID
            rating: Optional rating 1-5
            review: Optional review text

        Returns:
            Completed session (progress 100)

        Raises:
            ValidationFailure: If rating or review is invalid
            NotFoundError: If the session doesn't exist
            SessionTerminalError: If the session is already finished
        """
        request = validate_request(SessionComplete, rating=rating, review=review)
        page_count = self.catalog.page_count(self._book_of(session_id))

        moment = self.clock()
        now = to_iso(moment)

        with self.db.get_session() as s:
            record = self._get_record(s, session_id)
            if is_redelivery(record.last_request_id, request_id):
                return SessionResponse.model_validate(record)

            previous = record.status
            self._complete(record, now, page_count, request.rating, request.review)
            if request_id is not None:
                record.last_request_id = request_id
            s.flush()
            response = SessionResponse.model_validate(record)

        logger.debug("Session %s: %s -> completed", session_id, previous)
        self.sync.on_complete(response)
        self._record_streak(response.user_id, moment)
        return response

    def abandon_session(self, session_id: str, request_id: Optional[str] = None) -> SessionResponse:
        """Stop reading a book without finishing it.

        Raises:
            NotFoundError: If the session doesn't exist
            SessionTerminalError: If the session is already finished
        """

        def _abandon(record: ReadingSession, now: str) -> None:
            record.end_time = now

        response, applied = self._transition(session_id, SessionAction.ABANDON, request_id, _abandon)
        if applied:
            self.sync.on_activity(response.user_id)
        return response

    def record_view(self, user_id: str, book_id: str) -> SessionResponse:
        """Record that a user opened a book without starting to read it.

        Repeated views update the same viewed session.
        """
        request = validate_request(SessionStart, user_id=user_id, book_id=book_id)
        if not self.catalog.exists(request.book_id):
            raise NotFoundError("book", request.book_id)
        page_count = self.catalog.page_count(request.book_id)
        now = to_iso(self.clock())

        with self.db.get_session() as s:
            stmt = (
                select(ReadingSession)
                .where(
                    ReadingSession.user_id == request.user_id,
                    ReadingSession.book_id == request.book_id,
                    ReadingSession.status == SessionStatus.VIEWED.value,
                )
                .order_by(ReadingSession.last_viewed_at.desc())
            )
            record = s.execute(stmt).scalars().first()
            if record is None:
                record = ReadingSession(
                    user_id=request.user_id,
                    book_id=request.book_id,
                    status=SessionStatus.VIEWED.value,
                    start_time=now,
                    last_read_at=now,
                    start_page=0,
                    current_page=0,
                    progress=0,
                    page_count=page_count,
                    total_reading_time=0,
                    pages_read=0,
                    session_count=1,
                    reading_speed=0.0,
                    view_count=0,
                    created_at=now,
                )
                s.add(record)
            record.view_count += 1
            record.last_viewed_at = now
            record.updated_at = now
            s.flush()
            return SessionResponse.model_validate(record)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_session(self, session_id: str) -> SessionResponse:
        """Get a session by ID.

        Raises:
            NotFoundError: If the session doesn't exist
        """
        with self.db.get_session() as s:
            return SessionResponse.model_validate(self._get_record(s, session_id))

    def get_current_sessions(
        self, user_id: str, limit: Optional[int] = None
    ) -> list[SessionResponse]:
        """Get a user's active and paused sessions, most recently read first."""
        self._reconcile(user_id)
        limit = limit or self.config.current_sessions_limit

        with self.db.get_session() as s:
            stmt = (
                select(ReadingSession)
                .where(
                    ReadingSession.user_id == user_id,
                    ReadingSession.status.in_(OPEN_STATUSES),
                )
                .order_by(ReadingSession.last_read_at.desc(), ReadingSession.id)
                .limit(limit)
            )
            return [SessionResponse.model_validate(r) for r in s.execute(stmt).scalars().all()]

    def get_history(
        self,
        user_id: str,
        status: Optional[SessionStatus] = None,
        sort_by: str = "last_read_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: Optional[int] = None,
    ) -> HistoryPage:
        """Get a page of a user's reading history.

        Args:
            user_id: Reader
            status: Only sessions in this status
            sort_by: last_read_at, start_time, completed_at or progress
            sort_order: asc or desc
            page: 1-based page number
            limit: Page size (default from config)

        Returns:
            HistoryPage with the sessions and pagination facts

        Raises:
            ValidationFailure: If a filter value is invalid
        """
        query = validate_request(
            HistoryFilter,
            status=status,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit or self.config.history_page_size,
        )
        self._reconcile(user_id)

        conditions = [ReadingSession.user_id == user_id]
        if query.status is not None:
            conditions.append(ReadingSession.status == query.status.value)

        column = getattr(ReadingSession, query.sort_by)
        ordering = column.asc() if query.sort_order == "asc" else column.desc()

        with self.db.get_session() as s:
            total = s.execute(
                select(func.count()).select_from(ReadingSession).where(*conditions)
            ).scalar_one()

            stmt = (
                select(ReadingSession)
                .where(*conditions)
                .order_by(ordering.nulls_last(), ReadingSession.start_time, ReadingSession.id)
                .offset((query.page - 1) * query.limit)
                .limit(query.limit)
            )
            sessions = [SessionResponse.model_validate(r) for r in s.execute(stmt).scalars().all()]

        pages = math.ceil(total / query.limit) if total else 0
        return HistoryPage(
            sessions=sessions,
            page=query.page,
            pages=pages,
            total=total,
            has_next=query.page < pages,
            has_prev=query.page > 1,
        )

    # -------------------------------------------------------------------------
    # Account
    # -------------------------------------------------------------------------

    def delete_user_data(self, user_id: str) -> int:
        """Delete everything stored for a user.

        Removes sessions with their notes, bookmarks and highlights, the
        user's aggregate rows and goal settings.

        Returns:
            Number of sessions deleted
        """
        with self.db.get_session() as s:
            records = s.execute(
                select(ReadingSession).where(ReadingSession.user_id == user_id)
            ).scalars().all()
            for record in records:
                s.delete(record)
            self.sync.delete_user_aggregate(user_id, session=s)
            s.execute(delete(ReadingGoalSetting).where(ReadingGoalSetting.user_id == user_id))

        logger.info("Deleted %d sessions for user %s", len(records), user_id)
        return len(records)


# Global session manager instance
_session_manager: Optional[SessionManager] = None


def get_session_manager(db: Optional[Database] = None) -> SessionManager:
    """Get or create the global session manager instance."""
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager(db)
    return _session_manager


def reset_session_manager() -> None:
    """Reset the global session manager. Used for testing."""
    global _session_manager
    _session_manager = None
