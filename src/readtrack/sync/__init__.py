"""Per-user aggregate ownership and repair-on-read."""

from .models import CurrentlyReading, FinishedBook, UserStats
from .schemas import (
    Bookshelf,
    ConsistencyRepair,
    CurrentlyReadingResponse,
    FinishedBookResponse,
    RepairKind,
    UserStatsResponse,
)
from .synchronizer import ConsistencySynchronizer, counted_pages

__all__ = [
    "ConsistencySynchronizer",
    "counted_pages",
    "CurrentlyReading",
    "FinishedBook",
    "UserStats",
    "Bookshelf",
    "ConsistencyRepair",
    "CurrentlyReadingResponse",
    "FinishedBookResponse",
    "RepairKind",
    "UserStatsResponse",
]
