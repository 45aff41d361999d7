"""Tests for the CLI interface."""

import tempfile
from pathlib import Path

import pytest
from typer.testing import CliRunner

from readtrack.cli import app, format_duration, progress_bar
from readtrack.config import reset_config
from readtrack.db.sqlite import get_db, reset_db
from readtrack.lifecycle import SessionManager, reset_session_manager


@pytest.fixture(autouse=True)
def setup_test_db(monkeypatch):
    """Set up a test database for each test."""
    reset_db()
    reset_config()
    reset_session_manager()

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    monkeypatch.setenv("READTRACK_DB_PATH", db_path)
    monkeypatch.setenv("READTRACK_USER", "alice")

    yield

    # Cleanup
    get_db().engine.dispose()
    reset_db()
    reset_config()
    reset_session_manager()
    if Path(db_path).exists():
        Path(db_path).unlink()


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def book_id(runner):
    """Add a 300-page book through the CLI and return its ID."""
    result = runner.invoke(
        app, ["book", "add", "Dune", "--author", "Frank Herbert", "--pages", "300", "-g", "SF"]
    )
    assert result.exit_code == 0
    return get_db().get_all_books()[0].id


@pytest.fixture
def session_id(runner, book_id):
    """Start reading the book and return the session ID."""
    result = runner.invoke(app, ["start", book_id])
    assert result.exit_code == 0
    return SessionManager(get_db()).get_current_sessions("alice")[0].id


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        """Test that help command works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Track reading sessions" in result.stdout

    def test_version(self, runner: CliRunner):
        """Test version command."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout


class TestBookCommands:
    """Tests for the book command group."""

    def test_add_book(self, runner: CliRunner):
        """Test adding a book."""
        result = runner.invoke(app, ["book", "add", "Dune", "--author", "Frank Herbert"])

        assert result.exit_code == 0
        assert "Added: Dune by Frank Herbert" in result.stdout
        assert "Book ID:" in result.stdout

    def test_list_empty(self, runner: CliRunner):
        """Test listing an empty catalog."""
        result = runner.invoke(app, ["book", "list"])

        assert result.exit_code == 0
        assert "No books in the catalog" in result.stdout

    def test_list_books(self, runner: CliRunner, book_id):
        """Test listing books."""
        result = runner.invoke(app, ["book", "list"])

        assert result.exit_code == 0
        assert "Dune" in result.stdout

    def test_update_page_count(self, runner: CliRunner, session_id, book_id):
        """Test that a corrected page count drives later progress."""
        result = runner.invoke(app, ["book", "update", book_id, "--pages", "200"])
        progress = runner.invoke(app, ["progress", session_id, "--page", "100"])

        assert result.exit_code == 0
        assert "Updated: Dune by Frank Herbert" in result.stdout
        assert "50%" in progress.stdout

    def test_update_nothing(self, runner: CliRunner, book_id):
        """Test that an update needs at least one field."""
        result = runner.invoke(app, ["book", "update", book_id])

        assert result.exit_code == 1
        assert "Nothing to update" in result.stdout

    def test_update_missing_book(self, runner: CliRunner):
        """Test updating an unknown book."""
        result = runner.invoke(app, ["book", "update", "missing", "--pages", "10"])

        assert result.exit_code == 1
        assert "Book not found: missing" in result.stdout


class TestLifecycleCommands:
    """Tests for session lifecycle commands."""

    def test_start(self, runner: CliRunner, book_id):
        """Test starting a session."""
        result = runner.invoke(app, ["start", book_id])

        assert result.exit_code == 0
        assert "Reading session started" in result.stdout
        assert "active" in result.stdout

    def test_start_unknown_book(self, runner: CliRunner):
        """Test that errors exit with code 1."""
        result = runner.invoke(app, ["start", "missing"])

        assert result.exit_code == 1
        assert "Book not found: missing" in result.stdout

    def test_start_requires_user(self, runner: CliRunner, book_id, monkeypatch):
        """Test that a user is required."""
        monkeypatch.delenv("READTRACK_USER")

        result = runner.invoke(app, ["start", book_id])

        assert result.exit_code != 0

    def test_progress(self, runner: CliRunner, session_id):
        """Test recording progress."""
        result = runner.invoke(app, ["progress", session_id, "--page", "150", "--minutes", "30"])

        assert result.exit_code == 0
        assert "Progress saved" in result.stdout
        assert "50%" in result.stdout

    def test_progress_completes(self, runner: CliRunner, session_id):
        """Test that reaching the end finishes the book."""
        result = runner.invoke(app, ["progress", session_id, "--page", "290"])

        assert result.exit_code == 0
        assert "Finished the book!" in result.stdout

    def test_progress_needs_one_page_source(self, runner: CliRunner, session_id):
        """Test that progress without a page fails validation."""
        result = runner.invoke(app, ["progress", session_id])

        assert result.exit_code == 1
        assert "Error:" in result.stdout

    def test_pause_resume(self, runner: CliRunner, session_id):
        """Test pausing and resuming."""
        paused = runner.invoke(app, ["pause", session_id])
        again = runner.invoke(app, ["pause", session_id])
        resumed = runner.invoke(app, ["resume", session_id])

        assert paused.exit_code == 0
        assert "Session paused" in paused.stdout
        assert again.exit_code == 1
        assert "Cannot pause" in again.stdout
        assert resumed.exit_code == 0
        assert "Session resumed" in resumed.stdout

    def test_complete(self, runner: CliRunner, session_id):
        """Test completing with a rating."""
        result = runner.invoke(app, ["complete", session_id, "--rating", "5", "--review", "Great"])

        assert result.exit_code == 0
        assert "Book completed" in result.stdout
        assert "100%" in result.stdout

    def test_abandon(self, runner: CliRunner, session_id):
        """Test abandoning and then trying to resume."""
        result = runner.invoke(app, ["abandon", session_id])
        resumed = runner.invoke(app, ["resume", session_id])

        assert result.exit_code == 0
        assert "Session abandoned" in result.stdout
        assert resumed.exit_code == 1

    def test_view(self, runner: CliRunner, book_id):
        """Test recording views."""
        runner.invoke(app, ["view", book_id])
        result = runner.invoke(app, ["view", book_id])

        assert result.exit_code == 0
        assert "Viewed 2 time(s)" in result.stdout


class TestReadCommands:
    """Tests for read commands."""

    def test_current_empty(self, runner: CliRunner):
        """Test current with nothing being read."""
        result = runner.invoke(app, ["current"])

        assert result.exit_code == 0
        assert "No books currently being read" in result.stdout

    def test_current(self, runner: CliRunner, session_id):
        """Test listing current sessions."""
        result = runner.invoke(app, ["current"])

        assert result.exit_code == 0
        assert "Dune" in result.stdout

    def test_history(self, runner: CliRunner, session_id):
        """Test history with a status filter."""
        runner.invoke(app, ["complete", session_id])

        result = runner.invoke(app, ["history", "--status", "completed"])

        assert result.exit_code == 0
        assert "Dune" in result.stdout
        assert "Page 1 of 1 (1 sessions)" in result.stdout

    def test_history_bad_sort(self, runner: CliRunner, session_id):
        """Test that an unknown sort field is an error."""
        result = runner.invoke(app, ["history", "--sort", "title"])

        assert result.exit_code == 1

    def test_stats(self, runner: CliRunner, session_id):
        """Test the statistics table."""
        runner.invoke(app, ["complete", session_id, "--rating", "4"])

        result = runner.invoke(app, ["stats"])

        assert result.exit_code == 0
        assert "Reading Statistics" in result.stdout
        assert "Books read" in result.stdout
        assert "SF (1)" in result.stdout

    def test_shelf(self, runner: CliRunner, session_id):
        """Test the bookshelf panel."""
        result = runner.invoke(app, ["shelf"])

        assert result.exit_code == 0
        assert "Currently reading" in result.stdout
        assert "Dune" in result.stdout


class TestAnnotationCommands:
    """Tests for annotation commands."""

    def test_note(self, runner: CliRunner, session_id):
        """Test adding a note at the current page."""
        runner.invoke(app, ["progress", session_id, "--page", "42"])

        result = runner.invoke(app, ["note", session_id, "Great chapter"])

        assert result.exit_code == 0
        assert "Note added on page 42" in result.stdout

    def test_bookmark_and_remove(self, runner: CliRunner, session_id):
        """Test bookmarking and removing."""
        added = runner.invoke(app, ["bookmark", session_id, "12", "--note", "Map"])
        removed = runner.invoke(app, ["bookmark", session_id, "12", "--remove"])
        missing = runner.invoke(app, ["bookmark", session_id, "12", "--remove"])

        assert "Bookmarked page 12" in added.stdout
        assert "Bookmark on page 12 removed" in removed.stdout
        assert "No bookmark on page 12" in missing.stdout

    def test_highlight_bad_color(self, runner: CliRunner, session_id):
        """Test that invalid colors are rejected."""
        result = runner.invoke(app, ["highlight", session_id, "5", "Fear is the mind-killer", "-c", "red"])

        assert result.exit_code == 1

    def test_note_on_finished_session(self, runner: CliRunner, session_id):
        """Test that finished sessions can't be annotated."""
        runner.invoke(app, ["complete", session_id])

        result = runner.invoke(app, ["note", session_id, "Too late"])

        assert result.exit_code == 1
        assert "Error: Session" in result.stdout


class TestGoalCommands:
    """Tests for the goals command group."""

    def test_set_goals(self, runner: CliRunner):
        """Test setting goals."""
        result = runner.invoke(app, ["goals", "set", "--books-per-year", "24"])

        assert result.exit_code == 0
        assert "24 books/year, 2 books/month" in result.stdout

    def test_set_invalid_goal(self, runner: CliRunner):
        """Test an invalid goal."""
        result = runner.invoke(app, ["goals", "set", "--books-per-year", "0"])

        assert result.exit_code == 1

    def test_show_goals(self, runner: CliRunner):
        """Test showing goal progress."""
        result = runner.invoke(app, ["goals", "show"])

        assert result.exit_code == 0
        assert "Reading Goals" in result.stdout


class TestHelpers:
    """Tests for CLI formatting helpers."""

    def test_progress_bar(self):
        """Test the text progress bar."""
        assert progress_bar(50) == "█████░░░░░"
        assert progress_bar(150) == "██████████"

    def test_format_duration(self):
        """Test duration formatting."""
        assert format_duration(65 * 60) == "1h 5m"
        assert format_duration(12 * 60) == "12m"
