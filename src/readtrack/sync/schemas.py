"""Schemas for the per-user aggregate and consistency repairs."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RepairKind(str, Enum):
    """Kinds of drift fixed by repair-on-read."""

    MOVED_TO_FINISHED = "moved_to_finished"
    REMOVED_STALE_CURRENT = "removed_stale_current"
    ADDED_MISSING_CURRENT = "added_missing_current"
    ADDED_MISSING_FINISHED = "added_missing_finished"
    REMOVED_ORPHAN_FINISHED = "removed_orphan_finished"


@dataclass
class ConsistencyRepair:
    """Record of one drift between sessions and the aggregate being fixed."""

    kind: RepairKind
    user_id: str
    book_id: str
    session_id: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.kind.value}: user={self.user_id} book={self.book_id}"


class UserStatsResponse(BaseModel):
    """Schema for per-user aggregate counters."""

    user_id: str
    books_read: int = 0
    pages_read: int = 0
    total_reading_time: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_reading_date: Optional[date] = None
    last_activity_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CurrentlyReadingResponse(BaseModel):
    """Schema for a currently-reading shelf entry."""

    book_id: str
    session_id: str
    started_at: datetime
    last_read_at: datetime
    current_page: int
    progress: int

    model_config = {"from_attributes": True}


class FinishedBookResponse(BaseModel):
    """Schema for a finished shelf entry."""

    book_id: str
    session_id: str
    completed_at: datetime
    rating: Optional[int]
    review: Optional[str]
    reading_time: int
    pages_read: int

    model_config = {"from_attributes": True}


class Bookshelf(BaseModel):
    """A user's shelves and counters, read after repair."""

    user_id: str
    currently_reading: list[CurrentlyReadingResponse] = Field(default_factory=list)
    finished: list[FinishedBookResponse] = Field(default_factory=list)
    stats: UserStatsResponse
    repairs: int = 0
