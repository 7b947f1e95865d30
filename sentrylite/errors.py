"""
sentrylite Errors

Exception hierarchy for the SDK. Only ConfigurationError ever reaches
application code; everything else is raised and caught inside the
telemetry path and ends up as a debug log line.
"""

from __future__ import annotations


class SentryLiteError(Exception):
    """Base class for all SDK errors."""


class ConfigurationError(SentryLiteError, ValueError):
    """Conflicting or out-of-range options passed to init()."""


class DsnError(SentryLiteError):
    """A DSN string that does not match the expected structure."""

    def __init__(self, dsn: str, reason: str = "does not fit the expected format"):
        self.dsn = dsn
        self.reason = reason
        super().__init__(f"Invalid DSN {dsn!r}: {reason}")


class EnvelopeError(SentryLiteError):
    """A payload could not be serialized into an envelope."""


class TransportError(SentryLiteError):
    """The HTTP request for an envelope failed, or the transport is closed."""


class TransactionStateError(SentryLiteError):
    """A transaction or span was finished twice or never started."""
