"""Reading progress tracking.

Derives page, percentage and reading speed from progress updates and
writes them to a session. Accumulators (pages read, reading time) are
written as additive SQL deltas so concurrent updates to the same session
never lose increments; page, percentage and timestamp are last-write-wins.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..sessions.models import ReadingSession, SessionNote
from ..sessions.schemas import ProgressUpdate
from ..utils import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_COMPLETION_THRESHOLD = 95


@dataclass
class ProgressResult:
    """Outcome of resolving a progress update against a session."""

    previous_page: int
    current_page: int
    progress: int
    page_count: Optional[int]
    pages_delta: int = 0
    time_delta: int = 0
    reaches_completion: bool = False


def clamp_page(page: int, start_page: int, page_count: Optional[int]) -> int:
    """Clamp a page into [start_page, page_count].

    The upper bound only applies when the page count is known.
    """
    page = max(start_page, page)
    if page_count is not None:
        page = min(page_count, page)
    return page


def calculate_progress(current_page: int, page_count: Optional[int]) -> int:
    """Calculate progress percentage (0-100).

    Returns 0 when the page count is unknown or zero.

    Example:
        >>> calculate_progress(150, 300)
        50
        >>> calculate_progress(10, None)
        0
    """
    if not page_count or page_count <= 0:
        return 0
    return max(0, min(100, round_half_up(current_page / page_count * 100)))


def calculate_reading_speed(pages: int, seconds: int) -> float:
    """Calculate reading speed in pages per hour.

    Args:
        pages: Number of pages read
        seconds: Time spent reading

    Returns:
        Pages per hour, 0.0 when no time was recorded
    """
    if seconds <= 0:
        return 0.0
    return round(pages / (seconds / 3600), 2)


class ProgressTracker:
    """Tracks and applies reading progress."""

    def __init__(self, completion_threshold: int = DEFAULT_COMPLETION_THRESHOLD):
        """Initialize progress tracker.

        Args:
            completion_threshold: Progress percentage that finishes a book
        """
        self.completion_threshold = completion_threshold

    def resolve(
        self,
        record: ReadingSession,
        request: ProgressUpdate,
        page_count: Optional[int],
    ) -> ProgressResult:
        """Work out the effect of a progress update without writing it.

        Args:
            record: Session being updated
            request: Validated progress update
            page_count: Book's page count, None if unknown

        Returns:
            ProgressResult describing the new page, percentage and deltas
        """
        previous = record.current_page
        if request.current_page is not None:
            target = request.current_page
        else:
            target = previous + (request.pages_read_delta or 0)

        target = clamp_page(target, record.start_page, page_count)
        progress = calculate_progress(target, page_count)

        return ProgressResult(
            previous_page=previous,
            current_page=target,
            progress=progress,
            page_count=page_count,
            pages_delta=max(0, target - previous),
            time_delta=max(0, request.reading_time_delta),
            reaches_completion=progress >= self.completion_threshold,
        )

    def apply(
        self,
        session: Session,
        record: ReadingSession,
        result: ProgressResult,
        request: ProgressUpdate,
        now: str,
        request_id: Optional[str] = None,
    ) -> None:
        """Write a resolved progress update to the session.

        Args:
            session: Open database session (caller commits)
            record: Session record being updated
            result: Output of resolve()
            request: The originating update (for its note)
            now: Current time in storage format
            request_id: Caller request id, recorded for re-delivery detection
        """
        values = {
            "current_page": result.current_page,
            "progress": result.progress,
            "page_count": result.page_count,
            "last_read_at": now,
            "updated_at": now,
        }
        if result.pages_delta > 0:
            values["pages_read"] = ReadingSession.pages_read + result.pages_delta
        if result.time_delta > 0:
            values["total_reading_time"] = (
                ReadingSession.total_reading_time + result.time_delta
            )
        if request_id is not None:
            values["last_request_id"] = request_id

        session.execute(
            update(ReadingSession)
            .where(ReadingSession.id == record.id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if request.note:
            session.add(
                SessionNote(
                    session_id=record.id,
                    page=result.current_page,
                    content=request.note,
                )
            )

        session.flush()
        session.refresh(record)

        # Speed depends on the accumulated totals after every concurrent delta
        record.reading_speed = calculate_reading_speed(
            record.pages_read, record.total_reading_time
        )

        logger.debug(
            "Progress for session %s: page %s -> %s (%s%%), +%s pages, +%ss",
            record.id,
            result.previous_page,
            result.current_page,
            result.progress,
            result.pages_delta,
            result.time_delta,
        )
