"""Reading session store, state machine and annotations."""

from .annotations import AnnotationManager
from .models import Bookmark, Highlight, ReadingSession, SessionNote
from .schemas import (
    BookmarkResponse,
    HighlightResponse,
    HistoryFilter,
    HistoryPage,
    NoteResponse,
    ProgressUpdate,
    SessionComplete,
    SessionResponse,
    SessionStart,
    SessionStatus,
)
from .transitions import (
    TRANSITIONS,
    SessionAction,
    allowed_actions,
    is_redelivery,
    resolve_transition,
)

__all__ = [
    "AnnotationManager",
    "Bookmark",
    "Highlight",
    "ReadingSession",
    "SessionNote",
    "BookmarkResponse",
    "HighlightResponse",
    "HistoryFilter",
    "HistoryPage",
    "NoteResponse",
    "ProgressUpdate",
    "SessionComplete",
    "SessionResponse",
    "SessionStart",
    "SessionStatus",
    "TRANSITIONS",
    "SessionAction",
    "allowed_actions",
    "is_redelivery",
    "resolve_transition",
]
