"""
sentrylite Tracing Engine

start_transaction() creates a root Transaction when the calling task has
none active, and a child Span of the innermost active span otherwise.
The returned object works both ways:

    with start_transaction(name="checkout", op="http.server"):
        with start_transaction(op="db.query"):
            ...

    transaction = start_transaction(name="job", op="task")
    ...
    finish_transaction(transaction)

Finishing a root transaction hands it to the hub for delivery when it
was sampled.
"""

from __future__ import annotations

import functools
import inspect
from typing import Callable, Dict, Optional, TypeVar, Union

import structlog

from sentrylite.core.hub import Hub, get_hub
from sentrylite.errors import TransactionStateError
from sentrylite.tracing.context import (
    _current_transaction, bind, get_current_span, reset,
)
from sentrylite.tracing.sampling import SamplingContext
from sentrylite.types import Span, Transaction, generate_event_id, utc_now

logger = structlog.get_logger(__name__)

T = TypeVar('T')

Traceable = Union[Transaction, Span]


def start_transaction(
    name: Optional[str] = None,
    op: str = "",
    description: Optional[str] = None,
    tags: Optional[Dict[str, str]] = None,
    trace_id: Optional[str] = None,
    parent_span_id: Optional[str] = None,
    hub: Optional[Hub] = None,
) -> Traceable:
    """
    Start a transaction, or a child span if one is already active.

    Args:
        name: Transaction name (used as the description of a child span)
        op: Operation name of the root or child span
        description: Optional longer description
        tags: Initial tags
        trace_id: Continue an existing trace instead of starting a new one
        parent_span_id: Remote parent of the root span
        hub: Hub to report to (defaults to the process hub)

    Returns:
        A Transaction or a Span, usable as a (sync or async) context
        manager. Without ``with`` it must be passed to finish_transaction().
    """
    hub = hub or get_hub()
    tags = {k: str(v) for k, v in (tags or {}).items()}

    active = _current_transaction.get()
    if active is not None and not active.is_finished:
        parent = get_current_span()
        if parent is None or parent.transaction is not active or parent.is_finished:
            parent = active.root_span

        span = Span(
            op=op,
            description=description or name,
            tags=tags,
            parent_span_id=parent.span_id,
            transaction=active,
        )
        span._started = True
        active.open_span(span)
        return span

    tid = trace_id or generate_event_id()
    sampled = hub.sample(SamplingContext(
        trace_id=tid,
        op=op,
        name=name,
        parent_span_id=parent_span_id,
        tags=dict(tags),
    ))

    root = Span(
        op=op,
        description=description,
        tags=tags,
        parent_span_id=parent_span_id,
    )
    root._started = True

    transaction = Transaction(
        root_span=root,
        name=name,
        trace_id=tid,
        sampled=sampled,
        hub=hub,
    )
    if hub.debug:
        logger.debug(
            "Transaction started",
            name=name,
            op=op,
            trace_id=tid,
            sampled=sampled,
        )
    return transaction


def finish_transaction(target: Traceable, hub: Optional[Hub] = None) -> bool:
    """
    Finish a transaction or span started without ``with``.

    Must be called exactly once per object. Misuse (finishing twice,
    finishing something start_transaction() never produced) is logged and
    otherwise ignored.

    Returns:
        True if the object was finished by this call
    """
    return _finish(target, hub or _hub_of(target))


def enter_scope(target: Traceable) -> Traceable:
    """Bind ``target`` as the active transaction/span of the calling task."""
    span = target.root_span if isinstance(target, Transaction) else target
    transaction = target if isinstance(target, Transaction) else target.transaction

    if span.is_finished:
        logger.warning("Entering an already finished span", op=span.op)

    span._tokens.append(bind(transaction, span))
    return target


def exit_scope(target: Traceable, error: Optional[BaseException] = None) -> None:
    """Restore the previous binding and finish ``target``."""
    span = target.root_span if isinstance(target, Transaction) else target
    hub = _hub_of(target)

    if span._tokens:
        reset(span._tokens.pop())

    if error is not None and not span.is_finished:
        span.tags.setdefault("status", "internal_error")

    _finish(target, hub)


def _hub_of(target: Traceable) -> Hub:
    transaction = target if isinstance(target, Transaction) else target.transaction
    if transaction is not None and transaction.hub is not None:
        return transaction.hub
    return get_hub()


def _finish(target: Traceable, hub: Hub) -> bool:
    span = target.root_span if isinstance(target, Transaction) else target

    try:
        if not span._started:
            raise TransactionStateError(
                f"finishing '{span.op}' which was never started"
            )
        if span.is_finished:
            raise TransactionStateError(f"'{span.op}' was already finished")
        if isinstance(target, Span) and target.transaction and target.transaction.is_finished:
            raise TransactionStateError(
                f"span '{span.op}' finished after its transaction was sent"
            )
    except TransactionStateError as e:
        if hub.debug:
            logger.debug("Inconsistent transaction state", error=str(e))
        return False

    span.timestamp = utc_now()

    if isinstance(target, Span):
        if target.transaction is not None:
            target.transaction.complete_span(target)
        return True

    if target.sampled:
        hub.capture_event(target)
    elif hub.debug:
        logger.debug("Transaction not sampled, dropping", name=target.name)
    return True


# === Decorators ===

def traced(
    op: Optional[str] = None,
    name: Optional[str] = None,
    tags: Optional[Dict[str, str]] = None,
):
    """
    Decorator to run a function inside a transaction (or child span).

    Usage:
        @traced(op="task")
        async def process(item):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        span_op = op or "function"
        span_name = name or func.__qualname__

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                async with start_transaction(name=span_name, op=span_op, tags=tags):
                    return await func(*args, **kwargs)

            return async_wrapper
        else:
            @functools.wraps(func)
            def sync_wrapper(*args, **kwargs):
                with start_transaction(name=span_name, op=span_op, tags=tags):
                    return func(*args, **kwargs)

            return sync_wrapper

    return decorator
