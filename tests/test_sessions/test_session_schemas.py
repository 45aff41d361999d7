"""Tests for session request schemas."""

import pytest
from pydantic import ValidationError

from readtrack.errors import ValidationFailure
from readtrack.sessions.schemas import (
    HighlightCreate,
    HistoryFilter,
    NoteCreate,
    ProgressUpdate,
    SessionComplete,
    SessionStart,
    SessionStatus,
    validate_request,
)


class TestSessionStatus:
    """Tests for SessionStatus."""

    def test_terminal(self):
        """Test terminal statuses."""
        assert SessionStatus.COMPLETED.is_terminal
        assert SessionStatus.ABANDONED.is_terminal
        assert not SessionStatus.PAUSED.is_terminal

    def test_open(self):
        """Test open statuses."""
        assert SessionStatus.ACTIVE.is_open
        assert SessionStatus.PAUSED.is_open
        assert not SessionStatus.VIEWED.is_open


class TestProgressUpdate:
    """Tests for ProgressUpdate."""

    def test_absolute(self):
        """Test an absolute page update."""
        update = ProgressUpdate(current_page=10)

        assert update.current_page == 10
        assert update.reading_time_delta == 0

    def test_relative(self):
        """Test a relative update."""
        assert ProgressUpdate(pages_read_delta=5).pages_read_delta == 5

    def test_both_sources(self):
        """Test that giving both page sources fails."""
        with pytest.raises(ValidationError):
            ProgressUpdate(current_page=10, pages_read_delta=5)

    def test_no_source(self):
        """Test that giving neither page source fails."""
        with pytest.raises(ValidationError):
            ProgressUpdate()

    def test_negative_values(self):
        """Test that negative pages and times fail."""
        with pytest.raises(ValidationError):
            ProgressUpdate(current_page=-1)
        with pytest.raises(ValidationError):
            ProgressUpdate(current_page=1, reading_time_delta=-60)

    def test_blank_note_is_dropped(self):
        """Test that a whitespace note becomes None."""
        assert ProgressUpdate(current_page=1, note="   ").note is None


class TestOtherRequests:
    """Tests for the remaining request schemas."""

    def test_start_requires_ids(self):
        """Test that empty ids fail."""
        with pytest.raises(ValidationError):
            SessionStart(user_id="", book_id="b1")

    def test_complete_rating_bounds(self):
        """Test rating bounds."""
        assert SessionComplete(rating=1).rating == 1
        assert SessionComplete(rating=5).rating == 5
        with pytest.raises(ValidationError):
            SessionComplete(rating=6)

    def test_history_defaults(self):
        """Test history filter defaults."""
        query = HistoryFilter()

        assert query.sort_by == "last_read_at"
        assert query.sort_order == "desc"
        assert query.page == 1
        assert query.limit == 20

    def test_history_rejects_unknown_sort(self):
        """Test that only known sort fields are accepted."""
        with pytest.raises(ValidationError):
            HistoryFilter(sort_by="title")

    def test_history_limit_bounds(self):
        """Test history page size bounds."""
        with pytest.raises(ValidationError):
            HistoryFilter(limit=0)
        with pytest.raises(ValidationError):
            HistoryFilter(limit=101)

    def test_note_blank_content(self):
        """Test that a blank note fails."""
        with pytest.raises(ValidationError):
            NoteCreate(content="   ")

    def test_highlight_color(self):
        """Test highlight color validation."""
        assert HighlightCreate(page=1, text="x").color == "#FFEB3B"
        with pytest.raises(ValidationError):
            HighlightCreate(page=1, text="x", color="yellow")


class TestValidateRequest:
    """Tests for validate_request."""

    def test_valid(self):
        """Test that valid data returns the model."""
        request = validate_request(SessionComplete, rating=3, review=" ok ")

        assert request.rating == 3
        assert request.review == "ok"

    def test_invalid_raises_validation_failure(self):
        """Test that pydantic errors become ValidationFailure."""
        with pytest.raises(ValidationFailure) as exc_info:
            validate_request(SessionComplete, rating=9)

        assert "rating" in str(exc_info.value)
        assert exc_info.value.errors
