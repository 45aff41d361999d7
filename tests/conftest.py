"""Pytest configuration and shared fixtures.

This module provides fixtures for testing readtrack, including a temporary
database, a controllable clock, catalog books and a wired-up session manager.
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator

import pytest

from readtrack.catalog import DatabaseBookCatalog
from readtrack.config import Config, reset_config
from readtrack.db.models import Book
from readtrack.db.schemas import BookCreate
from readtrack.db.sqlite import Database, reset_db
from readtrack.lifecycle import SessionManager, reset_session_manager
from readtrack.stats import GoalTracker, StatsAggregator
from readtrack.streaks import StreakEngine
from readtrack.sync import ConsistencySynchronizer


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a test database instance."""
    # Reset any global state
    reset_db()
    reset_config()
    reset_session_manager()

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    # Cleanup
    database.engine.dispose()
    reset_db()


@pytest.fixture
def config(temp_db_path: Path) -> Config:
    """Configuration with defaults, pointing at the test database."""
    return Config(
        db_path=temp_db_path,
        completion_threshold=95,
        timezone="UTC",
        history_page_size=20,
        current_sessions_limit=10,
        stats_retries=1,
        log_level="WARNING",
    )


@pytest.fixture
def clock() -> FakeClock:
    """Clock fixed at 2025-03-10 12:00 UTC."""
    return FakeClock(datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc))


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def catalog(db: Database) -> DatabaseBookCatalog:
    """Catalog backed by the test database."""
    return DatabaseBookCatalog(db)


@pytest.fixture
def sync(db: Database, clock: FakeClock) -> ConsistencySynchronizer:
    """Synchronizer on the test database."""
    return ConsistencySynchronizer(db, clock=clock)


@pytest.fixture
def streaks(sync: ConsistencySynchronizer, config: Config) -> StreakEngine:
    """Streak engine on the test database."""
    return StreakEngine(sync, config)


@pytest.fixture
def manager(
    db: Database,
    catalog: DatabaseBookCatalog,
    sync: ConsistencySynchronizer,
    streaks: StreakEngine,
    config: Config,
    clock: FakeClock,
) -> SessionManager:
    """Session manager wired to the test database and clock."""
    return SessionManager(
        db,
        catalog=catalog,
        synchronizer=sync,
        streaks=streaks,
        config=config,
        clock=clock,
    )


@pytest.fixture
def goals(db: Database, config: Config, clock: FakeClock) -> GoalTracker:
    """Goal tracker on the test database."""
    return GoalTracker(db, config, clock=clock)


@pytest.fixture
def aggregator(
    db: Database,
    catalog: DatabaseBookCatalog,
    sync: ConsistencySynchronizer,
    goals: GoalTracker,
    config: Config,
    clock: FakeClock,
) -> StatsAggregator:
    """Stats aggregator on the test database."""
    return StatsAggregator(
        db,
        catalog=catalog,
        synchronizer=sync,
        goals=goals,
        config=config,
        clock=clock,
    )


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_book_data() -> BookCreate:
    """Create sample book data for testing."""
    return BookCreate(
        title="Dune",
        author="Frank Herbert",
        page_count=300,
        genres=["Science Fiction", "Classic"],
    )


@pytest.fixture
def book(db: Database, sample_book_data: BookCreate) -> Book:
    """A 300-page book in the catalog."""
    return db.create_book(sample_book_data)


@pytest.fixture
def unknown_length_book(db: Database) -> Book:
    """A book whose page count is unknown."""
    return db.create_book(BookCreate(title="Untitled Draft", author="Anonymous"))


@pytest.fixture
def library(db: Database) -> list[Book]:
    """Several books with overlapping genres and authors."""
    books_data = [
        BookCreate(
            title="The Left Hand of Darkness",
            author="Ursula K. Le Guin",
            page_count=200,
            genres=["Science Fiction", "Classic"],
        ),
        BookCreate(
            title="A Wizard of Earthsea",
            author="Ursula K. Le Guin",
            page_count=180,
            genres=["Fantasy", "Classic"],
        ),
        BookCreate(
            title="Good Omens",
            author="Terry Pratchett",
            page_count=400,
            genres=["Fantasy", "Humor"],
            authors=["Terry Pratchett", "Neil Gaiman"],
        ),
        BookCreate(
            title="Neuromancer",
            author="William Gibson",
            page_count=270,
            genres=["Science Fiction"],
        ),
    ]
    return [db.create_book(data) for data in books_data]

