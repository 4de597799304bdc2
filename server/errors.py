"""Exceptions raised inside an invocation.

Any exception exposing an integer ``status`` attribute is mapped to that
status code at the invocation boundary; everything else becomes a 500.
"""

from typing import Optional

DEFAULT_ERROR_MESSAGE = "Internal Server Error"


class HTTPException(Exception):
    """Raised by application code to return a specific error status."""

    def __init__(self, status: int, message: Optional[str] = None) -> None:
        self.status = status
        self.message = message or DEFAULT_ERROR_MESSAGE
        super().__init__(self.message)


class InvocationTimeoutError(Exception):
    """Raised when the application does not respond within the configured timeout.

    Carries no status, so it surfaces as a 500.
    """

    def __init__(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(f"Request processing timed out after {timeout_ms}ms")


class InvalidEventError(Exception):
    """Raised when an invocation payload is not an HTTP event."""

    status = 400

    def __init__(self, message: str = "Only HTTP requests are supported") -> None:
        super().__init__(message)
