"""Exceptions raised by the reading session engine.

All of these are recoverable caller errors. They carry enough context
for a front end to render a useful message.
"""

from typing import Optional

from pydantic import ValidationError


class ReadingError(Exception):
    """Base class for reading session errors."""

    pass


class NotFoundError(ReadingError):
    """A session or book does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} not found: {identifier}")


class InvalidStateError(ReadingError):
    """The requested transition is illegal from the session's current status."""

    def __init__(self, session_id: str, status: str, action: str, reason: Optional[str] = None):
        self.session_id = session_id
        self.status = status
        self.action = action
        self.reason = reason
        message = f"Cannot {action} session {session_id} while it is {status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SessionTerminalError(ReadingError):
    """A mutation was attempted on a completed or abandoned session."""

    def __init__(self, session_id: str, status: str, action: str):
        self.session_id = session_id
        self.status = status
        self.action = action
        super().__init__(
            f"Session {session_id} is {status}; '{action}' is not allowed on a finished session"
        )


class AlreadyCompletedError(ReadingError):
    """The user has already completed this book."""

    def __init__(self, user_id: str, book_id: str):
        self.user_id = user_id
        self.book_id = book_id
        super().__init__(f"User {user_id} has already completed book {book_id}")


class ValidationFailure(ReadingError):
    """A request was rejected before reaching the core."""

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        self.errors = errors or []
        super().__init__(message)

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationFailure":
        """Build from a pydantic ValidationError."""
        details = exc.errors()
        parts = []
        for err in details:
            loc = ".".join(str(p) for p in err.get("loc", ())) or "request"
            parts.append(f"{loc}: {err.get('msg')}")
        return cls("; ".join(parts) or "Invalid request", details)
