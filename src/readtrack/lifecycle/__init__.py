"""Caller-facing reading session operations."""

from .manager import SessionManager, get_session_manager, reset_session_manager

__all__ = [
    "SessionManager",
    "get_session_manager",
    "reset_session_manager",
]
