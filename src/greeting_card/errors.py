"""
Error taxonomy for remote generation calls.

The transport layer classifies every failure once, into an ``ErrorKind``, so
callers branch on the kind instead of sniffing message text.
"""

from __future__ import annotations

from enum import Enum

# Substrings the backend (or the model vendor behind it) uses when the API
# credential is missing, revoked or lacks permission.
CREDENTIAL_MARKERS: tuple[str, ...] = (
    "Requested entity was not found",
    "403",
    "PERMISSION_DENIED",
    "API key not valid",
)

CREDENTIAL_STATUS_CODES = frozenset({401, 403})


class ErrorKind(str, Enum):
    NETWORK = "network"
    HTTP_STATUS = "http_status"
    CREDENTIAL_INVALID = "credential_invalid"
    MALFORMED = "malformed"


def mentions_credential_failure(*messages: str | None) -> bool:
    """Return True if any message carries a credential-failure marker."""
    return any(
        marker in message for message in messages if message for marker in CREDENTIAL_MARKERS
    )


def classify_status(
    status_code: int,
    message: str | None = None,
    details: str | None = None,
) -> ErrorKind:
    """Map a non-success HTTP response to an error kind."""
    if status_code in CREDENTIAL_STATUS_CODES or mentions_credential_failure(message, details):
        return ErrorKind.CREDENTIAL_INVALID
    return ErrorKind.HTTP_STATUS


class GenerationError(Exception):
    """Raised when a remote generation call fails.

    Attributes:
        kind:        Classified failure kind.
        status_code: HTTP status, when a response was received.
        details:     Extra diagnostic text from the response body, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind = ErrorKind.HTTP_STATUS,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code
        self.details = details

    @property
    def is_credential_error(self) -> bool:
        return self.kind is ErrorKind.CREDENTIAL_INVALID

    def __repr__(self) -> str:
        return (
            f"GenerationError({self.message!r}, kind={self.kind.value}, "
            f"status_code={self.status_code})"
        )


class InvalidTransitionError(RuntimeError):
    """Raised when the session status machine is driven out of order."""
