"""SQLAlchemy models for reading goals.

Tables:
- reading_goals: Per-user reading targets
"""

from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..db.models import Base, now_iso

DEFAULT_BOOKS_PER_YEAR = 12
DEFAULT_PAGES_PER_DAY = 20
DEFAULT_MINUTES_PER_DAY = 30


class ReadingGoalSetting(Base):
    """A user's reading goals."""

    __tablename__ = "reading_goals"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    books_per_year: Mapped[int] = mapped_column(Integer, default=DEFAULT_BOOKS_PER_YEAR)
    books_per_month: Mapped[Optional[int]] = mapped_column(Integer)  # None = derived from yearly
    pages_per_day: Mapped[int] = mapped_column(Integer, default=DEFAULT_PAGES_PER_DAY)
    minutes_per_day: Mapped[int] = mapped_column(Integer, default=DEFAULT_MINUTES_PER_DAY)

    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=now_iso, onupdate=now_iso)

    def __repr__(self) -> str:
        return f"<ReadingGoalSetting(user={self.user_id}, books_per_year={self.books_per_year})>"
