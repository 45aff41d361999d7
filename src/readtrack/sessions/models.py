"""SQLAlchemy models for reading sessions.

Tables:
- reading_sessions: One attempt by one user to read one book
- session_notes: Page-anchored notes
- session_bookmarks: At most one bookmark per page
- session_highlights: Highlighted passages
"""

from typing import Optional

from sqlalchemy import (
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.models import Base, generate_uuid, now_iso
from .schemas import SessionStatus


class ReadingSession(Base):
    """Reading session model - the authoritative record of a reading attempt."""

    __tablename__ = "reading_sessions"
    __table_args__ = (
        # At most one active session per (user, book). A losing concurrent
        # insert fails here and falls back to the winner.
        Index(
            "uq_reading_sessions_active",
            "user_id",
            "book_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        Index("ix_reading_sessions_user_status", "user_id", "status"),
        Index("ix_reading_sessions_user_book", "user_id", "book_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    book_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(20), default=SessionStatus.ACTIVE.value, nullable=False
    )

    # Timing (ISO UTC strings)
    start_time: Mapped[str] = mapped_column(String(32), default=now_iso, nullable=False)
    end_time: Mapped[Optional[str]] = mapped_column(String(32))
    paused_at: Mapped[Optional[str]] = mapped_column(String(32))
    resumed_at: Mapped[Optional[str]] = mapped_column(String(32))
    last_read_at: Mapped[str] = mapped_column(String(32), default=now_iso, index=True)
    completed_at: Mapped[Optional[str]] = mapped_column(String(32), index=True)

    # Progress
    start_page: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_page: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # 0-100

    # Accumulators
    total_reading_time: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # seconds
    pages_read: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    session_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    reading_speed: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)  # pages/hour

    # Outcome
    final_rating: Mapped[Optional[int]] = mapped_column(Integer)
    final_review: Mapped[Optional[str]] = mapped_column(Text)

    # Views
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_viewed_at: Mapped[Optional[str]] = mapped_column(String(32))

    # Last applied caller request, for re-delivery detection
    last_request_id: Mapped[Optional[str]] = mapped_column(String(64))

    # Denominator snapshot at the last progress computation
    page_count: Mapped[Optional[int]] = mapped_column(Integer)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=now_iso, onupdate=now_iso)

    # Relationships
    notes: Mapped[list["SessionNote"]] = relationship(
        "SessionNote",
        back_populates="session",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SessionNote.created_at",
    )
    bookmarks: Mapped[list["Bookmark"]] = relationship(
        "Bookmark",
        back_populates="session",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Bookmark.page",
    )
    highlights: Mapped[list["Highlight"]] = relationship(
        "Highlight",
        back_populates="session",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Highlight.created_at",
    )

    def __repr__(self) -> str:
        return (
            f"<ReadingSession(id={self.id}, user={self.user_id}, "
            f"book={self.book_id}, status={self.status})>"
        )

    @property
    def status_enum(self) -> SessionStatus:
        """Status as the closed enum."""
        return SessionStatus(self.status)

    @property
    def pages_remaining(self) -> Optional[int]:
        """Pages left to the end of the book, None if page count unknown."""
        if self.page_count is None:
            return None
        return max(0, self.page_count - self.current_page)


class SessionNote(Base):
    """A note anchored to a page of a reading session."""

    __tablename__ = "session_notes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("reading_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    page: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=now_iso, onupdate=now_iso)

    session: Mapped["ReadingSession"] = relationship("ReadingSession", back_populates="notes")

    def __repr__(self) -> str:
        return f"<SessionNote(id={self.id}, page={self.page})>"


class Bookmark(Base):
    """A bookmark on a page of a reading session."""

    __tablename__ = "session_bookmarks"
    __table_args__ = (UniqueConstraint("session_id", "page", name="uq_bookmark_page"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("reading_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    page: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(String(200))

    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)

    session: Mapped["ReadingSession"] = relationship("ReadingSession", back_populates="bookmarks")

    def __repr__(self) -> str:
        return f"<Bookmark(session={self.session_id}, page={self.page})>"


class Highlight(Base):
    """A highlighted passage in a reading session."""

    __tablename__ = "session_highlights"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("reading_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    page: Mapped[int] = mapped_column(Integer, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    color: Mapped[str] = mapped_column(String(7), default="#FFEB3B")
    note: Mapped[Optional[str]] = mapped_column(String(500))

    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)

    session: Mapped["ReadingSession"] = relationship("ReadingSession", back_populates="highlights")

    def __repr__(self) -> str:
        return f"<Highlight(id={self.id}, page={self.page}, color={self.color})>"
