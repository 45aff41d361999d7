"""Pydantic schemas for reading goals."""

import math
from typing import Optional

from pydantic import BaseModel, Field

from .models import DEFAULT_BOOKS_PER_YEAR, DEFAULT_MINUTES_PER_DAY, DEFAULT_PAGES_PER_DAY


class GoalUpdate(BaseModel):
    """Schema for changing goals. Unset fields keep their value."""

    books_per_year: Optional[int] = Field(None, ge=1, le=1000)
    books_per_month: Optional[int] = Field(None, ge=1, le=100)
    pages_per_day: Optional[int] = Field(None, ge=1, le=5000)
    minutes_per_day: Optional[int] = Field(None, ge=1, le=1440)


class GoalSettings(BaseModel):
    """A user's reading goals."""

    user_id: str
    books_per_year: int = DEFAULT_BOOKS_PER_YEAR
    books_per_month: Optional[int] = None
    pages_per_day: int = DEFAULT_PAGES_PER_DAY
    minutes_per_day: int = DEFAULT_MINUTES_PER_DAY

    model_config = {"from_attributes": True}

    @property
    def monthly_books_target(self) -> int:
        """Monthly book target, derived from the yearly one when unset."""
        if self.books_per_month is not None:
            return self.books_per_month
        return math.ceil(self.books_per_year / 12)
