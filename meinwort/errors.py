"""
Error types shared by the engine and its collaborators.

Endpoint failures carry a classification so the retry engine and the
user-facing messages can treat rate limits, server faults and network
outages differently.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    BAD_INPUT = "bad_input"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


class MeinWortError(Exception):
    """Base class for all MeinWort errors."""


class CaptureError(MeinWortError):
    """Microphone could not be opened, started or read."""


class EndpointError(MeinWortError):
    """A remote transcription or rewrite call failed."""

    def __init__(self, kind: ErrorKind, message: str = "", status_code: Optional[int] = None):
        super().__init__(message or kind.value)
        self.kind = kind
        self.status_code = status_code

    @classmethod
    def from_status(cls, status_code: int, message: str = "") -> "EndpointError":
        """Classify an HTTP status code."""
        if status_code in (400, 413, 415, 422):
            kind = ErrorKind.BAD_INPUT
        elif status_code == 429:
            kind = ErrorKind.RATE_LIMITED
        elif status_code >= 500:
            kind = ErrorKind.SERVER_ERROR
        else:
            kind = ErrorKind.UNKNOWN
        return cls(kind, message or f"HTTP {status_code}", status_code=status_code)


class EmptyTranscriptionError(EndpointError):
    """Endpoint answered, but without usable text. Retried like a transport error."""

    def __init__(self, message: str = "Empty or invalid transcription response"):
        super().__init__(ErrorKind.UNKNOWN, message)


class RewriteError(MeinWortError):
    """No rewrite provider could apply the command."""


_KIND_MESSAGES = {
    ErrorKind.BAD_INPUT: "Ungültiges Audio-Format oder -inhalt",
    ErrorKind.RATE_LIMITED: "Zu viele Anfragen. Bitte warten Sie einen Moment.",
    ErrorKind.SERVER_ERROR: "Server-Fehler. Bitte versuchen Sie es später erneut.",
    ErrorKind.NETWORK_ERROR: "Keine Internetverbindung verfügbar",
}


def describe_error(error: BaseException) -> str:
    """Turn an exception into a short message for the status display."""
    if isinstance(error, EndpointError) and error.kind in _KIND_MESSAGES:
        return _KIND_MESSAGES[error.kind]
    message = str(error).strip()
    return message or type(error).__name__
