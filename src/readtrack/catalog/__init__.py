"""Read-only book catalog lookups."""

from .catalog import BookCatalog, DatabaseBookCatalog

__all__ = [
    "BookCatalog",
    "DatabaseBookCatalog",
]
