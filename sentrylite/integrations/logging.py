"""
stdlib logging integration.

SentryHandler forwards log records that carry an exception to
capture_exception(). Records without one are ignored.

Usage:
    import logging
    from sentrylite.integrations.logging import SentryHandler

    logging.getLogger().addHandler(SentryHandler(level=logging.ERROR))
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sentrylite.core.hub import Hub, get_hub


def resolve_exception(record: logging.LogRecord) -> Optional[Any]:
    """
    Pick the exception to report for a record.

    exc_info wins; a ``exception`` entry passed through ``extra`` is used
    otherwise (an exception, an (exception, traceback) pair or a string).
    """
    if record.exc_info and record.exc_info[1] is not None:
        return record.exc_info

    exception = getattr(record, "exception", None)
    if isinstance(exception, (BaseException, str)):
        return exception
    if isinstance(exception, tuple) and exception and isinstance(exception[0], (BaseException, str)):
        return exception

    return None


class SentryHandler(logging.Handler):
    """Logging handler that reports exceptions through the hub."""

    def __init__(self, level: int = logging.NOTSET, hub: Optional[Hub] = None):
        super().__init__(level)
        self._hub = hub

    @property
    def hub(self) -> Hub:
        return self._hub or get_hub()

    def emit(self, record: logging.LogRecord) -> None:
        # Records produced by the SDK itself would loop back
        if record.name.startswith("sentrylite"):
            return

        exception = resolve_exception(record)
        if exception is None:
            return

        try:
            self.hub.capture_exception(
                exception,
                tags={"logger": record.name, "log_level": record.levelname.lower()},
            )
        except Exception:
            self.handleError(record)
