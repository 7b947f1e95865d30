"""
sentrylite Types

Dataclasses for everything that travels through the delivery pipeline:
events, exception records, spans and transactions. An Event or a
Transaction is the only thing ever placed on the delivery queue.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import structlog

logger = structlog.get_logger(__name__)


# === Helpers ===

def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ISO 8601 with a trailing Z (UTC)."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def generate_event_id() -> str:
    """Generate an event/trace ID (32 hex chars)."""
    return uuid.uuid4().hex


def generate_span_id() -> str:
    """Generate a span ID (16 hex chars)."""
    return uuid.uuid4().hex[:16]


# === Events ===

class Level(str, Enum):
    """Severity of an event, as named on the wire."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"

    @classmethod
    def coerce(cls, value: Union["Level", str, int]) -> "Level":
        """
        Convert a Level, a level name or a stdlib logging level number.

        Numbers map to the nearest level at or below them; unknown names
        fall back to INFO.
        """
        if isinstance(value, Level):
            return value

        if isinstance(value, int):
            if value >= logging.CRITICAL:
                return cls.FATAL
            if value >= logging.ERROR:
                return cls.ERROR
            if value >= logging.WARNING:
                return cls.WARNING
            if value >= logging.INFO:
                return cls.INFO
            return cls.DEBUG

        name = str(value).strip().lower()
        aliases = {"warn": cls.WARNING, "critical": cls.FATAL, "err": cls.ERROR}
        if name in aliases:
            return aliases[name]
        try:
            return cls(name)
        except ValueError:
            logger.debug("Unknown event level, using info", level=value)
            return cls.INFO


@dataclass
class Frame:
    """One stack frame of a captured exception."""
    file: str
    function: str
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "filename": self.file,
            "function": self.function,
        }
        if self.line is not None:
            data["lineno"] = self.line
        return data


@dataclass
class ExceptionRecord:
    """Normalized representation of a raised error."""
    kind: str
    message: str
    module: str = ""
    frames: List[Frame] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind, "value": self.message}
        if self.module:
            data["module"] = self.module
        data["stacktrace"] = {"frames": [f.to_dict() for f in self.frames]}
        return data


@dataclass
class Event:
    """A single error or message report."""
    level: Level = Level.INFO
    message: Optional[str] = None
    exception: Optional[List[ExceptionRecord]] = None
    tags: Dict[str, str] = field(default_factory=dict)
    attachments: List[Any] = field(default_factory=list)

    event_id: str = field(default_factory=generate_event_id)
    timestamp: datetime = field(default_factory=utc_now)
    platform: str = "python"


# === Tracing ===

@dataclass
class Span:
    """
    A timed sub-operation within a transaction.

    A span whose timestamp is None is still open. Spans are context
    managers: entering binds the span as the innermost span of the
    calling context, leaving finishes it.
    """
    op: str = ""
    description: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)

    span_id: str = field(default_factory=generate_span_id)
    parent_span_id: Optional[str] = None

    start_timestamp: datetime = field(default_factory=utc_now)
    timestamp: Optional[datetime] = None

    transaction: Optional["Transaction"] = field(default=None, repr=False, compare=False)

    # Context tokens pushed by __enter__, popped by __exit__
    _tokens: List[Any] = field(default_factory=list, repr=False, compare=False)
    _started: bool = field(default=False, repr=False, compare=False)

    @property
    def trace_id(self) -> Optional[str]:
        return self.transaction.trace_id if self.transaction else None

    @property
    def sampled(self) -> bool:
        return bool(self.transaction and self.transaction.sampled)

    @property
    def is_finished(self) -> bool:
        return self.timestamp is not None

    def set_tag(self, key: str, value: str) -> None:
        """Set a tag. Finished spans are frozen and ignore the call."""
        if self.is_finished:
            logger.debug("Ignoring tag on finished span", op=self.op, tag=key)
            return
        self.tags[key] = str(value)

    def __enter__(self) -> "Span":
        from sentrylite.tracing.engine import enter_scope
        return enter_scope(self)

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        from sentrylite.tracing.engine import exit_scope
        exit_scope(self, exc_val)

    async def __aenter__(self) -> "Span":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


@dataclass
class Transaction:
    """
    Root performance-trace record.

    Wraps the root span. Child spans are appended to ``spans`` as they
    complete, so the list is in completion order. Spans still open when
    the transaction finishes are tracked in ``_open_spans`` and serialized
    after the completed ones.
    """
    root_span: Span
    name: Optional[str] = None
    trace_id: str = field(default_factory=generate_event_id)
    sampled: bool = False

    event_id: str = field(default_factory=generate_event_id)
    spans: List[Span] = field(default_factory=list)

    # Hub the transaction reports to when finished
    hub: Optional[Any] = field(default=None, repr=False, compare=False)

    _open_spans: Dict[str, Span] = field(default_factory=dict, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self):
        self.root_span.transaction = self

    # Root span passthroughs
    @property
    def span_id(self) -> str:
        return self.root_span.span_id

    @property
    def parent_span_id(self) -> Optional[str]:
        return self.root_span.parent_span_id

    @property
    def op(self) -> str:
        return self.root_span.op

    @property
    def tags(self) -> Dict[str, str]:
        return self.root_span.tags

    @property
    def start_timestamp(self) -> datetime:
        return self.root_span.start_timestamp

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.root_span.timestamp

    @property
    def is_finished(self) -> bool:
        return self.root_span.is_finished

    def set_tag(self, key: str, value: str) -> None:
        self.root_span.set_tag(key, value)

    def open_span(self, span: Span) -> None:
        """Register a child span that has started but not finished."""
        with self._lock:
            self._open_spans[span.span_id] = span

    def complete_span(self, span: Span) -> None:
        """Move a finished child span into the completed list."""
        with self._lock:
            self._open_spans.pop(span.span_id, None)
            self.spans.append(span)

    def child_spans(self) -> List[Span]:
        """Completed children in completion order, then any still open."""
        with self._lock:
            return list(self.spans) + list(self._open_spans.values())

    def __enter__(self) -> "Transaction":
        from sentrylite.tracing.engine import enter_scope
        return enter_scope(self)

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        from sentrylite.tracing.engine import exit_scope
        exit_scope(self, exc_val)

    async def __aenter__(self) -> "Transaction":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


# Only these ever reach the delivery queue
TaskPayload = Union[Event, Transaction]
