"""SQLAlchemy models for the per-user aggregate.

Tables:
- user_stats: Denormalized per-user counters and streak state
- user_currently_reading: Books with an open session
- user_finished_books: Books the user has completed

Only the ConsistencySynchronizer writes these tables.
"""

from typing import Optional

from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ..db.models import Base, generate_uuid, now_iso


class UserStats(Base):
    """Per-user counters and streak state."""

    __tablename__ = "user_stats"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    books_read: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    pages_read: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_reading_time: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # seconds

    # Streak
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_reading_date: Mapped[Optional[str]] = mapped_column(String(10))  # ISO date

    last_activity_at: Mapped[Optional[str]] = mapped_column(String(32))

    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=now_iso, onupdate=now_iso)

    def __repr__(self) -> str:
        return (
            f"<UserStats(user={self.user_id}, books={self.books_read}, "
            f"streak={self.current_streak})>"
        )


class CurrentlyReading(Base):
    """A book on the user's currently-reading shelf."""

    __tablename__ = "user_currently_reading"
    __table_args__ = (
        UniqueConstraint("user_id", "book_id", name="uq_currently_reading_user_book"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    book_id: Mapped[str] = mapped_column(String(36), nullable=False)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False)

    started_at: Mapped[str] = mapped_column(String(32), default=now_iso)
    last_read_at: Mapped[str] = mapped_column(String(32), default=now_iso)
    current_page: Mapped[int] = mapped_column(Integer, default=0)
    progress: Mapped[int] = mapped_column(Integer, default=0)

    def __repr__(self) -> str:
        return f"<CurrentlyReading(user={self.user_id}, book={self.book_id})>"


class FinishedBook(Base):
    """A book the user has completed."""

    __tablename__ = "user_finished_books"
    __table_args__ = (
        UniqueConstraint("user_id", "book_id", name="uq_finished_books_user_book"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    book_id: Mapped[str] = mapped_column(String(36), nullable=False)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False)

    completed_at: Mapped[str] = mapped_column(String(32), nullable=False)
    rating: Mapped[Optional[int]] = mapped_column(Integer)
    review: Mapped[Optional[str]] = mapped_column(Text)
    reading_time: Mapped[int] = mapped_column(Integer, default=0)
    pages_read: Mapped[int] = mapped_column(Integer, default=0)

    def __repr__(self) -> str:
        return f"<FinishedBook(user={self.user_id}, book={self.book_id})>"
