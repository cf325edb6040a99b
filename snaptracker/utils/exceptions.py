"""Exception hierarchy for snaptracker.

Every error raised by the tracker derives from :class:`SnapTrackerError` so the
announce state machine can turn any of them into a ``failure reason`` string.
"""

from __future__ import annotations

from typing import Any


class SnapTrackerError(Exception):
    """Base exception for all snaptracker errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize snaptracker error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ProtocolError(SnapTrackerError):
    """Tracker protocol errors."""


class ParseError(ProtocolError):
    """Malformed or missing announce query parameter."""


class ThrottleRejection(ProtocolError):
    """Announce refused because the peer updated too recently."""


class ValidationError(SnapTrackerError):
    """Data validation errors."""


class IdentifierError(ValidationError):
    """Info hash or peer id has the wrong length."""


class ConfigurationError(ValidationError):
    """Configuration validation errors."""


class BencodeError(ValidationError):
    """Bencode encoding/decoding errors."""


class BencodeEncodeError(BencodeError):
    """Value cannot be bencoded."""


class BencodeDecodeError(BencodeError):
    """Input is not valid bencode."""


class StoreError(SnapTrackerError):
    """Key-value store errors."""


class KeyNotFoundError(StoreError):
    """Requested key is not present in the store."""


class SerializationError(SnapTrackerError):
    """Encoding or decoding of persisted or wire data failed."""
