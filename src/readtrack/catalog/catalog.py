"""Book catalog interface and local implementation.

The session engine only needs a handful of read-only facts about a book:
whether it exists, its page count, and its genres/authors. Any catalog
that answers these questions can be plugged into the engine.
"""

from typing import Optional, Protocol, runtime_checkable

from ..db.sqlite import Database, get_db


@runtime_checkable
class BookCatalog(Protocol):
    """Protocol for read-only book lookups."""

    def exists(self, book_id: str) -> bool:
        """Check whether a book is known to the catalog."""
        ...

    def page_count(self, book_id: str) -> Optional[int]:
        """Total pages, or None when unknown."""
        ...

    def genres(self, book_id: str) -> list[str]:
        """Genres of a book, empty when unknown."""
        ...

    def authors(self, book_id: str) -> list[str]:
        """Authors of a book, empty when unknown."""
        ...


class DatabaseBookCatalog:
    """BookCatalog backed by the local ``books`` table."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize catalog.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def exists(self, book_id: str) -> bool:
        return self.db.get_book(book_id) is not None

    def page_count(self, book_id: str) -> Optional[int]:
        book = self.db.get_book(book_id)
        return book.page_count if book else None

    def genres(self, book_id: str) -> list[str]:
        book = self.db.get_book(book_id)
        return book.get_genres() if book else []

    def authors(self, book_id: str) -> list[str]:
        book = self.db.get_book(book_id)
        return book.get_authors() if book else []

    def title(self, book_id: str) -> Optional[str]:
        """Book title for display, None if unknown."""
        book = self.db.get_book(book_id)
        return book.title if book else None
