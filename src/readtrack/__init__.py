"""Reading session lifecycle and statistics synchronization engine."""

__version__ = "0.1.0"
