"""Pydantic schemas for catalog data validation."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class BookCreate(BaseModel):
    """Schema for adding a book to the local catalog."""

    title: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Primary author")
    page_count: Optional[int] = Field(None, ge=0)
    genres: list[str] = Field(default_factory=list)
    authors: list[str] = Field(default_factory=list, description="All credited authors")

    @field_validator("genres", "authors")
    @classmethod
    def strip_blank(cls, values: list[str]) -> list[str]:
        """Drop blank entries and surrounding whitespace."""
        return [v.strip() for v in values if v and v.strip()]


class BookUpdate(BaseModel):
    """Schema for updating catalog facts. All fields optional."""

    title: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = Field(None, min_length=1)
    page_count: Optional[int] = Field(None, ge=0)
    genres: Optional[list[str]] = None
    authors: Optional[list[str]] = None


class BookResponse(BaseModel):
    """Schema for book responses."""

    id: str
    title: str
    author: str
    page_count: Optional[int]
    genres: list[str]
    authors: list[str]

    @classmethod
    def from_book(cls, book) -> "BookResponse":
        """Build from a Book ORM instance."""
        return cls(
            id=book.id,
            title=book.title,
            author=book.author,
            page_count=book.page_count,
            genres=book.get_genres(),
            authors=book.get_authors(),
        )
