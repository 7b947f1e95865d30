"""
Exception normalization.

normalize_exception() is the single, total conversion from whatever the
caller passes to capture_exception() into ExceptionRecords:

- an exception instance (its chain of causes is included, oldest first)
- an (exception, traceback) pair
- an exc_info triple (type, value, traceback)
- a string (recorded as a synthetic "Error" without frames)
- a list or tuple of any of the above
- None (the exception currently being handled, if any)

Anything else yields an empty list and the event is dropped by the caller.
An exception without a traceback is still recorded, with no frames.
"""

from __future__ import annotations

import sys
import traceback
from types import TracebackType
from typing import Any, List, Optional

from sentrylite.types import ExceptionRecord, Frame

# Guard against cyclic __cause__/__context__ chains
MAX_CHAIN_LENGTH = 10


def frames_from_traceback(tb: Optional[TracebackType]) -> List[Frame]:
    """Frames of a traceback, oldest call first."""
    if tb is None:
        return []
    return [
        Frame(file=summary.filename, function=summary.name, line=summary.lineno)
        for summary in traceback.extract_tb(tb)
    ]


def record_from_exception(
    exc: BaseException,
    tb: Optional[TracebackType] = None,
) -> ExceptionRecord:
    """Build a record for one exception (without its chain)."""
    kind = type(exc)
    module = kind.__module__
    if module == "builtins":
        module = ""
    return ExceptionRecord(
        kind=kind.__qualname__,
        message=str(exc),
        module=module,
        frames=frames_from_traceback(tb if tb is not None else exc.__traceback__),
    )


def _chain(exc: BaseException, tb: Optional[TracebackType]) -> List[ExceptionRecord]:
    records = [record_from_exception(exc, tb)]
    seen = {id(exc)}
    current = exc

    while len(records) < MAX_CHAIN_LENGTH:
        if current.__cause__ is not None:
            nxt = current.__cause__
        elif current.__context__ is not None and not current.__suppress_context__:
            nxt = current.__context__
        else:
            break
        if id(nxt) in seen:
            break
        seen.add(id(nxt))
        records.append(record_from_exception(nxt))
        current = nxt

    records.reverse()
    return records


def normalize_exception(value: Any = None) -> List[ExceptionRecord]:
    """
    Convert a captured error of any accepted shape into ExceptionRecords.

    Returns:
        Records ordered oldest (root cause) first; empty if nothing usable
    """
    if value is None:
        exc_type, exc, tb = sys.exc_info()
        if exc is None:
            return []
        return _chain(exc, tb)

    if isinstance(value, BaseException):
        return _chain(value, None)

    if isinstance(value, str):
        return [ExceptionRecord(kind="Error", message=value)]

    if isinstance(value, tuple):
        # exc_info triple
        if len(value) == 3 and (value[0] is None or isinstance(value[0], type)):
            _, exc, tb = value
            if isinstance(exc, BaseException):
                return _chain(exc, tb)
            return []
        # (exception, traceback) pair
        if (
            len(value) == 2
            and isinstance(value[0], (BaseException, str))
            and (value[1] is None or isinstance(value[1], TracebackType))
        ):
            exc, tb = value
            if isinstance(exc, str):
                return [ExceptionRecord(kind="Error", message=exc, frames=frames_from_traceback(tb))]
            return _chain(exc, tb)

    if isinstance(value, (list, tuple)):
        records: List[ExceptionRecord] = []
        for item in value:
            records.extend(normalize_exception(item) if item is not None else [])
        return records

    return []
