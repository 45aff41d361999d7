"""Reading progress derivation."""

from .progress import (
    DEFAULT_COMPLETION_THRESHOLD,
    ProgressResult,
    ProgressTracker,
    calculate_progress,
    calculate_reading_speed,
    clamp_page,
)

__all__ = [
    "DEFAULT_COMPLETION_THRESHOLD",
    "ProgressResult",
    "ProgressTracker",
    "calculate_progress",
    "calculate_reading_speed",
    "clamp_page",
]
