"""Tests for the consistency synchronizer."""

import logging

import pytest
from sqlalchemy.exc import OperationalError

from readtrack.sync.models import CurrentlyReading, FinishedBook, UserStats
from readtrack.sync.schemas import RepairKind
from readtrack.sync.synchronizer import counted_pages


def disk_error(*args, **kwargs):
    raise OperationalError("UPDATE user_stats", {}, Exception("disk I/O error"))


class TestCountedPages:
    """Tests for counted_pages."""

    def test_uses_pages_read(self):
        """Test that recorded pages win."""
        assert counted_pages(120, 300, 0) == 120

    def test_falls_back_to_position(self):
        """Test a book completed without progress updates."""
        assert counted_pages(0, 300, 100) == 200

    def test_never_negative(self):
        """Test a position before the start page."""
        assert counted_pages(0, 10, 20) == 0


class TestPropagation:
    """Tests for aggregate writes driven by lifecycle operations."""

    def test_start_then_complete(self, manager, sync, book):
        """Test the shelf moving from currently-reading to finished."""
        session = manager.start_session("alice", book.id)
        assert len(sync.get_bookshelf("alice").currently_reading) == 1

        manager.complete_session(session.id, rating=4)
        shelf = sync.get_bookshelf("alice")

        assert shelf.currently_reading == []
        assert shelf.finished[0].session_id == session.id
        assert shelf.stats.books_read == 1
        assert shelf.stats.pages_read == 300

    def test_redelivered_completion_counts_once(self, manager, sync, book):
        """Test that applying the same completion twice doesn't double count."""
        session = manager.start_session("alice", book.id)
        completed = manager.complete_session(session.id)

        assert sync.on_complete(completed) is True
        stats = sync.get_user_stats("alice")

        assert stats.books_read == 1
        assert stats.pages_read == 300

    def test_activity_touches_last_activity(self, manager, sync, clock, book):
        """Test that pause refreshes last_activity_at."""
        session = manager.start_session("alice", book.id)
        later = clock.advance(hours=3)

        manager.pause_session(session.id)

        assert sync.get_user_stats("alice").last_activity_at == later

    def test_get_user_stats_for_unknown_user(self, sync):
        """Test reading counters of a user with no rows."""
        stats = sync.get_user_stats("nobody")

        assert stats.books_read == 0
        assert stats.last_reading_date is None


class TestFailedWrites:
    """Tests for aggregate writes that fail after the session committed."""

    def test_failed_complete_does_not_fail_the_caller(self, manager, sync, book, monkeypatch):
        """Test that the session write stands when the aggregate write fails."""
        session = manager.start_session("alice", book.id)
        monkeypatch.setattr(sync, "_apply_complete", disk_error)

        completed = manager.complete_session(session.id)

        assert completed.status.value == "completed"
        assert manager.get_session(session.id).status.value == "completed"

    def test_failed_complete_is_repaired_on_read(self, manager, sync, book, monkeypatch, caplog):
        """Test the session completed, aggregate failed, then repaired on read."""
        session = manager.start_session("alice", book.id)
        manager.update_progress(session.id, current_page=100, reading_time_delta=3600)
        with monkeypatch.context() as m:
            m.setattr(sync, "_apply_complete", disk_error)
            manager.complete_session(session.id, rating=5)

        with caplog.at_level(logging.WARNING, logger="readtrack.sync.synchronizer"):
            shelf = sync.get_bookshelf("alice")

        assert shelf.repairs == 1
        assert shelf.currently_reading == []
        assert [e.book_id for e in shelf.finished] == [book.id]
        assert shelf.finished[0].rating == 5
        assert shelf.stats.books_read == 1
        assert shelf.stats.pages_read == 100
        assert shelf.stats.total_reading_time == 3600
        assert "moved_to_finished" in caplog.text

    def test_failed_write_is_logged(self, sync, manager, book, monkeypatch, caplog):
        """Test that a failed aggregate write is logged as a warning."""
        session = manager.start_session("alice", book.id)
        monkeypatch.setattr(sync, "_apply_complete", disk_error)

        with caplog.at_level(logging.WARNING, logger="readtrack.sync.synchronizer"):
            manager.complete_session(session.id)

        assert "Aggregate complete failed for user alice" in caplog.text

    def test_retry_after_failure_counts_once(self, manager, sync, book, monkeypatch):
        """Test that a retried completion after a failure still counts once."""
        session = manager.start_session("alice", book.id)
        with monkeypatch.context() as m:
            m.setattr(sync, "_apply_complete", disk_error)
            completed = manager.complete_session(session.id)

        assert sync.on_complete(completed) is True
        assert sync.on_complete(completed) is True

        assert sync.get_bookshelf("alice").stats.books_read == 1

    def test_failed_start_is_repaired_on_read(self, manager, sync, book, monkeypatch):
        """Test a missing currently-reading entry being added back."""
        with monkeypatch.context() as m:
            m.setattr(sync, "_upsert_current", disk_error)
            session = manager.start_session("alice", book.id)

        repairs = sync.reconcile("alice")

        assert [r.kind for r in repairs] == [RepairKind.ADDED_MISSING_CURRENT]
        assert repairs[0].session_id == session.id

    def test_confirm_reports_failure(self, sync, monkeypatch):
        """Test that _confirm returns False instead of raising."""
        assert sync._confirm("test", "alice", disk_error) is False


class TestReconcile:
    """Tests for repair-on-read."""

    def test_consistent_user_needs_no_repairs(self, manager, sync, library):
        """Test a user whose aggregate matches their sessions."""
        manager.start_session("alice", library[0].id)
        done = manager.start_session("alice", library[1].id)
        manager.complete_session(done.id)

        assert sync.reconcile("alice") == []

    def test_repairs_are_idempotent(self, manager, sync, book):
        """Test that a second reconcile finds nothing left to fix."""
        session = manager.start_session("alice", book.id)
        manager.abandon_session(session.id)

        first = sync.reconcile("alice")
        second = sync.reconcile("alice")

        assert [r.kind for r in first] == [RepairKind.REMOVED_STALE_CURRENT]
        assert second == []

    def test_missing_finished_entry(self, manager, sync, db, book):
        """Test a completed session with no finished entry at all."""
        session = manager.start_session("alice", book.id)
        manager.complete_session(session.id)
        with db.get_session() as s:
            s.query(FinishedBook).delete()
            s.query(UserStats).update({UserStats.books_read: 0, UserStats.pages_read: 0})

        repairs = sync.reconcile("alice")
        stats = sync.get_user_stats("alice")

        assert [r.kind for r in repairs] == [RepairKind.ADDED_MISSING_FINISHED]
        assert stats.books_read == 1
        assert stats.pages_read == 300

    def test_orphan_finished_entry(self, sync, db, book):
        """Test a finished entry with no completed session behind it."""
        with db.get_session() as s:
            s.add(
                FinishedBook(
                    user_id="alice",
                    book_id=book.id,
                    session_id="gone",
                    completed_at="2025-03-01T10:00:00.000000+00:00",
                    reading_time=600,
                    pages_read=50,
                )
            )
            s.add(
                UserStats(
                    user_id="alice",
                    books_read=1,
                    pages_read=50,
                    total_reading_time=600,
                    current_streak=0,
                    longest_streak=0,
                )
            )

        repairs = sync.reconcile("alice")
        stats = sync.get_user_stats("alice")

        assert [r.kind for r in repairs] == [RepairKind.REMOVED_ORPHAN_FINISHED]
        assert stats.books_read == 0
        assert stats.pages_read == 0
        assert stats.total_reading_time == 0

    def test_orphan_removal_never_goes_negative(self, sync, db, book):
        """Test counters are floored at zero."""
        with db.get_session() as s:
            s.add(
                FinishedBook(
                    user_id="alice",
                    book_id=book.id,
                    session_id="gone",
                    completed_at="2025-03-01T10:00:00.000000+00:00",
                    reading_time=600,
                    pages_read=50,
                )
            )

        sync.reconcile("alice")
        stats = sync.get_user_stats("alice")

        assert stats.books_read == 0
        assert stats.pages_read == 0

    def test_stale_current_entry_for_other_session(self, manager, sync, db, library):
        """Test that only the user's own rows are touched."""
        manager.start_session("alice", library[0].id)
        bob = manager.start_session("bob", library[1].id)
        manager.abandon_session(bob.id)

        assert sync.reconcile("alice") == []
        assert [r.kind for r in sync.reconcile("bob")] == [RepairKind.REMOVED_STALE_CURRENT]

    def test_current_entry_pointing_at_old_session(self, manager, sync, db, book):
        """Test a restarted book keeps its shelf entry."""
        first = manager.start_session("alice", book.id)
        manager.abandon_session(first.id)
        second = manager.start_session("alice", book.id)

        shelf = sync.get_bookshelf("alice")

        assert shelf.repairs == 0
        assert shelf.currently_reading[0].session_id == second.id

    def test_reconcile_failure_raises(self, sync, monkeypatch):
        """Test that a failing repair transaction propagates."""
        monkeypatch.setattr(sync, "_reconcile", disk_error)

        with pytest.raises(OperationalError):
            sync.reconcile("alice")


class TestDeleteUserAggregate:
    """Tests for delete_user_aggregate."""

    def test_deletes_rows(self, manager, sync, db, book):
        """Test that every aggregate row of the user is removed."""
        manager.start_session("alice", book.id)

        sync.delete_user_aggregate("alice")

        with db.get_session() as s:
            assert s.query(CurrentlyReading).count() == 0
            assert s.get(UserStats, "alice") is None
