"""Base exception classes for the live telemetry library."""
from __future__ import annotations


class GenmonError(Exception):
    """Base error for the library."""


class TransportError(GenmonError):
    """Raised when the push channel transport fails or goes silent."""


class StompProtocolError(TransportError):
    """Raised when a STOMP frame is malformed or the broker reports an ERROR."""


class QueryError(GenmonError):
    """Raised when a history or prediction REST call fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
