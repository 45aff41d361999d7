"""Notes, bookmarks and highlights on reading sessions.

Annotations can only be added to or changed on open (active or paused)
sessions; finished sessions are read-only.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.sqlite import Database, get_db
from ..errors import NotFoundError
from ..utils import to_iso, utc_now
from .models import Bookmark, Highlight, ReadingSession, SessionNote
from .schemas import (
    BookmarkCreate,
    BookmarkResponse,
    HighlightCreate,
    HighlightResponse,
    NoteCreate,
    NoteResponse,
    validate_request,
)
from .transitions import SessionAction, resolve_transition

logger = logging.getLogger(__name__)


class AnnotationManager:
    """Manages notes, bookmarks and highlights of reading sessions."""

    def __init__(self, db: Optional[Database] = None, clock=None):
        """Initialize annotation manager.

        Args:
            db: Database instance
            clock: Callable returning the current aware datetime
        """
        self.db = db or get_db()
        self.clock = clock or utc_now

    def _open_session(self, s: Session, session_id: str) -> ReadingSession:
        record = s.get(ReadingSession, session_id)
        if record is None:
            raise NotFoundError("session", session_id)
        resolve_transition(record.id, record.status_enum, SessionAction.ANNOTATE)
        return record

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    def add_note(self, session_id: str, content: str, page: Optional[int] = None) -> NoteResponse:
        """Add a note to a session.

        Args:
            session_id: Session ID
            content: Note text
            page: Page the note refers to (default: the session's current page)

        Returns:
            Created note

        Raises:
            ValidationFailure: If the note is blank or too long
            NotFoundError: If the session doesn't exist
            SessionTerminalError: If the session is finished
        """
        request = validate_request(NoteCreate, content=content, page=page)
        now = to_iso(self.clock())

        with self.db.get_session() as s:
            record = self._open_session(s, session_id)
            note = SessionNote(
                session_id=record.id,
                page=record.current_page if request.page is None else request.page,
                content=request.content,
                created_at=now,
                updated_at=now,
            )
            s.add(note)
            s.flush()
            return NoteResponse.model_validate(note)

    def update_note(self, note_id: str, content: str) -> NoteResponse:
        """Replace the content of a note."""
        request = validate_request(NoteCreate, content=content)

        with self.db.get_session() as s:
            note = s.get(SessionNote, note_id)
            if note is None:
                raise NotFoundError("note", note_id)
            self._open_session(s, note.session_id)
            note.content = request.content
            note.updated_at = to_iso(self.clock())
            s.flush()
            return NoteResponse.model_validate(note)

    def delete_note(self, note_id: str) -> bool:
        """Delete a note. Returns False if it didn't exist."""
        with self.db.get_session() as s:
            note = s.get(SessionNote, note_id)
            if note is None:
                return False
            self._open_session(s, note.session_id)
            s.delete(note)
            return True

    def list_notes(self, session_id: str) -> list[NoteResponse]:
        """List a session's notes, ordered by page."""
        with self.db.get_session() as s:
            if s.get(ReadingSession, session_id) is None:
                raise NotFoundError("session", session_id)
            stmt = (
                select(SessionNote)
                .where(SessionNote.session_id == session_id)
                .order_by(SessionNote.page, SessionNote.created_at)
            )
            return [NoteResponse.model_validate(n) for n in s.execute(stmt).scalars().all()]

    # -------------------------------------------------------------------------
    # Bookmarks
    # -------------------------------------------------------------------------

    def add_bookmark(
        self, session_id: str, page: int, note: Optional[str] = None
    ) -> BookmarkResponse:
        """Bookmark a page, replacing any existing bookmark on that page."""
        request = validate_request(BookmarkCreate, page=page, note=note)

        with self.db.get_session() as s:
            record = self._open_session(s, session_id)
            stmt = select(Bookmark).where(
                Bookmark.session_id == record.id,
                Bookmark.page == request.page,
            )
            bookmark = s.execute(stmt).scalar_one_or_none()
            if bookmark is None:
                bookmark = Bookmark(session_id=record.id, page=request.page)
                s.add(bookmark)
            else:
                logger.debug("Replacing bookmark on page %s of %s", request.page, record.id)
            bookmark.note = request.note
            bookmark.created_at = to_iso(self.clock())
            s.flush()
            return BookmarkResponse.model_validate(bookmark)

    def remove_bookmark(self, session_id: str, page: int) -> bool:
        """Remove the bookmark on a page. Returns False if there was none."""
        with self.db.get_session() as s:
            record = self._open_session(s, session_id)
            stmt = select(Bookmark).where(
                Bookmark.session_id == record.id,
                Bookmark.page == page,
            )
            bookmark = s.execute(stmt).scalar_one_or_none()
            if bookmark is None:
                return False
            s.delete(bookmark)
            return True

    # -------------------------------------------------------------------------
    # Highlights
    # -------------------------------------------------------------------------

    def add_highlight(
        self,
        session_id: str,
        page: int,
        text: str,
        color: str = "#FFEB3B",
        note: Optional[str] = None,
    ) -> HighlightResponse:
        """Highlight a passage."""
        request = validate_request(HighlightCreate, page=page, text=text, color=color, note=note)

        with self.db.get_session() as s:
            record = self._open_session(s, session_id)
            highlight = Highlight(
                session_id=record.id,
                page=request.page,
                text=request.text,
                color=request.color.upper(),
                note=request.note,
                created_at=to_iso(self.clock()),
            )
            s.add(highlight)
            s.flush()
            return HighlightResponse.model_validate(highlight)

    def remove_highlight(self, highlight_id: str) -> bool:
        """Remove a highlight. Returns False if it didn't exist."""
        with self.db.get_session() as s:
            highlight = s.get(Highlight, highlight_id)
            if highlight is None:
                return False
            self._open_session(s, highlight.session_id)
            s.delete(highlight)
            return True
