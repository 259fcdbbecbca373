# backend/errors.py
"""
Typed failures for the commit pipeline.

Every error carries an ErrorKind so callers (HTTP layer, runner, scheduler)
can branch on the kind instead of matching message text.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    NOT_CONFIGURED = "not_configured"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    STORAGE = "storage"
    INTERNAL = "internal"


class PulseError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind.value)
        self.message = message or self.kind.value


class ConfigurationError(PulseError):
    """A required credential or setting is missing or rejected. Not retryable."""
    kind = ErrorKind.CONFIGURATION


class NotConfiguredError(PulseError):
    """The project exists without a GitHub URL, or does not exist at all."""
    kind = ErrorKind.NOT_CONFIGURED


class NotFoundError(PulseError):
    kind = ErrorKind.NOT_FOUND


class RateLimitedError(PulseError):
    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str = "", retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class TransportError(PulseError):
    kind = ErrorKind.TRANSPORT


class FetchTimeoutError(TransportError):
    kind = ErrorKind.TIMEOUT


class StorageError(PulseError):
    kind = ErrorKind.STORAGE
