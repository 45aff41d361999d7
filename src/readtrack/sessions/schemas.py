"""Pydantic schemas for reading sessions.

Request schemas are the input boundary: a request that fails them is
rejected with ValidationFailure before any lifecycle logic runs.
"""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..errors import ValidationFailure


class SessionStatus(str, Enum):
    """Status of a reading session."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    VIEWED = "viewed"  # Book opened but reading not started

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ABANDONED)

    @property
    def is_open(self) -> bool:
        """Active or paused: the book is still being read."""
        return self in (SessionStatus.ACTIVE, SessionStatus.PAUSED)


OPEN_STATUSES = (SessionStatus.ACTIVE.value, SessionStatus.PAUSED.value)


def _strip_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# ============================================================================
# Requests
# ============================================================================


class SessionStart(BaseModel):
    """Schema for starting a reading session."""

    user_id: str = Field(..., min_length=1, max_length=64)
    book_id: str = Field(..., min_length=1, max_length=36)
    start_page: int = Field(0, ge=0)


class ProgressUpdate(BaseModel):
    """Schema for a progress update.

    Exactly one of current_page (absolute) or pages_read_delta (relative)
    must be given.
    """

    current_page: Optional[int] = Field(None, ge=0)
    pages_read_delta: Optional[int] = Field(None, ge=0)
    reading_time_delta: int = Field(0, ge=0, description="Seconds read since last update")
    note: Optional[str] = Field(None, max_length=1000)

    @field_validator("note")
    @classmethod
    def strip_note(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)

    @model_validator(mode="after")
    def one_page_source(self) -> "ProgressUpdate":
        if (self.current_page is None) == (self.pages_read_delta is None):
            raise ValueError("Provide exactly one of current_page or pages_read_delta")
        return self


class SessionComplete(BaseModel):
    """Schema for explicitly completing a session."""

    rating: Optional[int] = Field(None, ge=1, le=5, description="Rating 1-5")
    review: Optional[str] = Field(None, max_length=2000)

    @field_validator("review")
    @classmethod
    def strip_review(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)


class HistoryFilter(BaseModel):
    """Schema for filtering and paging reading history."""

    status: Optional[SessionStatus] = None
    sort_by: Literal["last_read_at", "start_time", "completed_at", "progress"] = "last_read_at"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


class NoteCreate(BaseModel):
    """Schema for adding a note. Page defaults to the session's current page."""

    content: str = Field(..., min_length=1, max_length=1000)
    page: Optional[int] = Field(None, ge=0)

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Note content cannot be blank")
        return v


class BookmarkCreate(BaseModel):
    """Schema for adding a bookmark."""

    page: int = Field(..., ge=0)
    note: Optional[str] = Field(None, max_length=200)

    @field_validator("note")
    @classmethod
    def strip_note(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)


class HighlightCreate(BaseModel):
    """Schema for adding a highlight."""

    page: int = Field(..., ge=0)
    text: str = Field(..., min_length=1, max_length=1000)
    color: str = Field("#FFEB3B", pattern=r"^#[0-9A-Fa-f]{6}$")
    note: Optional[str] = Field(None, max_length=500)

    @field_validator("note")
    @classmethod
    def strip_note(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)

    @field_validator("text")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Highlight text cannot be blank")
        return v


RequestT = TypeVar("RequestT", bound=BaseModel)


def validate_request(schema: type[RequestT], **data) -> RequestT:
    """Validate request data against a schema.

    Raises:
        ValidationFailure: If the data does not satisfy the schema
    """
    try:
        return schema(**data)
    except ValidationError as e:
        raise ValidationFailure.from_pydantic(e) from e


# ============================================================================
# Responses
# ============================================================================


class NoteResponse(BaseModel):
    """Schema for note response."""

    id: str
    page: int
    content: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookmarkResponse(BaseModel):
    """Schema for bookmark response."""

    id: str
    page: int
    note: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class HighlightResponse(BaseModel):
    """Schema for highlight response."""

    id: str
    page: int
    text: str
    color: str
    note: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class SessionResponse(BaseModel):
    """Schema for reading session response."""

    id: str
    user_id: str
    book_id: str
    status: SessionStatus

    start_time: datetime
    end_time: Optional[datetime]
    paused_at: Optional[datetime]
    resumed_at: Optional[datetime]
    last_read_at: datetime
    completed_at: Optional[datetime]

    start_page: int
    current_page: int
    progress: int
    page_count: Optional[int]
    pages_remaining: Optional[int]

    total_reading_time: int
    pages_read: int
    session_count: int
    reading_speed: float

    final_rating: Optional[int]
    final_review: Optional[str]

    view_count: int
    last_viewed_at: Optional[datetime]

    notes: list[NoteResponse] = Field(default_factory=list)
    bookmarks: list[BookmarkResponse] = Field(default_factory=list)
    highlights: list[HighlightResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}

    @property
    def notes_count(self) -> int:
        return len(self.notes)

    @property
    def bookmarks_count(self) -> int:
        return len(self.bookmarks)

    @property
    def highlights_count(self) -> int:
        return len(self.highlights)


class HistoryPage(BaseModel):
    """A page of reading history with pagination facts."""

    sessions: list[SessionResponse]
    page: int
    pages: int
    total: int
    has_next: bool
    has_prev: bool
