"""SQLAlchemy ORM base and catalog models for local SQLite database.

Tables:
- books: Local catalog of books (page count, genres, authors)

Session, aggregate and goal tables live beside the code that owns them
(sessions.models, sync.models, stats.models) and register on the same Base.
"""

import json
from typing import Optional
from uuid import uuid4

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..utils import to_iso, utc_now


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def now_iso() -> str:
    """Current UTC time in storage format."""
    return to_iso(utc_now())


class Book(Base):
    """Book model - read-only catalog facts used as denominators and groupings."""

    __tablename__ = "books"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(500), nullable=False, index=True)

    # None when the page count is unknown
    page_count: Mapped[Optional[int]] = mapped_column(Integer)

    genres: Mapped[Optional[str]] = mapped_column(Text)  # JSON array
    authors: Mapped[Optional[str]] = mapped_column(Text)  # JSON array

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=now_iso, onupdate=now_iso)

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title}', author='{self.author}')>"

    # Helper methods for JSON fields
    def get_genres(self) -> list[str]:
        """Get genres as list."""
        if self.genres:
            return json.loads(self.genres)
        return []

    def set_genres(self, genres: list[str]) -> None:
        """Set genres from list."""
        self.genres = json.dumps(genres) if genres else None

    def get_authors(self) -> list[str]:
        """Get all authors as list, falling back to the primary author."""
        if self.authors:
            return json.loads(self.authors)
        return [self.author] if self.author else []

    def set_authors(self, authors: list[str]) -> None:
        """Set authors from list."""
        self.authors = json.dumps(authors) if authors else None
