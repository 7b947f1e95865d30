"""
Public module-level API.

Every function here acts on the process hub (see get_hub()) and never
raises because of delivery problems. Only init() can raise, for
conflicting options.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from sentrylite.core.hub import get_hub
from sentrylite.tracing.context import set_task_transaction as _set_task_transaction
from sentrylite.tracing.engine import Traceable
from sentrylite.tracing.engine import finish_transaction as _finish_transaction
from sentrylite.tracing.engine import start_transaction as _start_transaction
from sentrylite.types import Level, TaskPayload


def init(
    dsn: Optional[str] = None,
    *,
    release: Optional[str] = None,
    environment: Optional[str] = None,
    traces_sample_rate: Optional[float] = None,
    traces_sampler: Any = None,
    debug: Optional[bool] = None,
    dry_mode: Optional[bool] = None,
    **options: Any,
) -> bool:
    """
    Initialize the SDK once per process.

    Usage:
        import sentrylite

        sentrylite.init("https://key@o1.ingest.example.io/42", release="app@1.2.0",
                        traces_sample_rate=0.2)
    """
    return get_hub().init(
        dsn,
        release=release,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        traces_sampler=traces_sampler,
        debug=debug,
        dry_mode=dry_mode,
        **options,
    )


def is_initialized() -> bool:
    return get_hub().initialised


def set_tag(name: str, value: str) -> bool:
    """Set a tag sent with every subsequent event and transaction."""
    return get_hub().set_tag(name, value)


def capture_event(payload: TaskPayload) -> Optional[str]:
    return get_hub().capture_event(payload)


def capture_message(
    message: str,
    level: Union[Level, str, int] = Level.INFO,
    *,
    tags: Optional[Dict[str, str]] = None,
    attachments: Optional[List[Any]] = None,
) -> Optional[str]:
    """
    Report a message.

    ``level`` may be a Level, a name ("warning", "warn") or a logging
    level number (logging.WARNING).

    Returns:
        The event id if the event was queued
    """
    return get_hub().capture_message(message, level, tags=tags, attachments=attachments)


def capture_exception(
    error: Any = None,
    *,
    tags: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """
    Report an exception.

    Without arguments, reports the exception currently being handled:

        try:
            ...
        except Exception:
            sentrylite.capture_exception()

    Returns:
        The event id if the event was queued
    """
    return get_hub().capture_exception(error, tags=tags)


def start_transaction(
    name: Optional[str] = None,
    op: str = "",
    description: Optional[str] = None,
    tags: Optional[Dict[str, str]] = None,
    trace_id: Optional[str] = None,
    parent_span_id: Optional[str] = None,
) -> Traceable:
    return _start_transaction(
        name=name,
        op=op,
        description=description,
        tags=tags,
        trace_id=trace_id,
        parent_span_id=parent_span_id,
    )


def finish_transaction(target: Traceable) -> bool:
    return _finish_transaction(target)


def set_task_transaction(target: Optional[Traceable]) -> None:
    _set_task_transaction(target)


def flush(timeout: Optional[float] = None) -> bool:
    """Block until queued events are sent or ``timeout`` expires."""
    return get_hub().flush(timeout)


def shutdown(timeout: Optional[float] = None) -> int:
    """Drain and stop the delivery worker. Returns the undelivered count."""
    return get_hub().shutdown(timeout)
