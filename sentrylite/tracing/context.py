"""
sentrylite Trace Context

Task-local binding of the active transaction and its innermost span.
Built on contextvars: threads never see each other's bindings, asyncio
tasks start from a copy of their creator's context. set_task_transaction()
re-establishes a binding explicitly after a handoff.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar, Union

import structlog

from sentrylite.types import Span, Transaction

logger = structlog.get_logger(__name__)

T = TypeVar('T')


# === Context Variables ===

# Transaction the calling task is currently inside of
_current_transaction: ContextVar[Optional[Transaction]] = ContextVar(
    'current_transaction', default=None
)

# Innermost open span (the root span when no child is open)
_current_span: ContextVar[Optional[Span]] = ContextVar('current_span', default=None)


ScopeTokens = Tuple[Token, Token]


def get_current_transaction() -> Optional[Transaction]:
    """Get the transaction bound to the calling task."""
    return _current_transaction.get()


def get_current_span() -> Optional[Span]:
    """Get the innermost open span of the calling task."""
    span = _current_span.get()
    if span is not None:
        return span
    transaction = _current_transaction.get()
    return transaction.root_span if transaction else None


def bind(transaction: Optional[Transaction], span: Optional[Span]) -> ScopeTokens:
    """Bind a transaction and innermost span, returning reset tokens."""
    return (_current_transaction.set(transaction), _current_span.set(span))


def reset(tokens: ScopeTokens) -> None:
    """Restore the bindings that were active before bind()."""
    transaction_token, span_token = tokens
    try:
        _current_span.reset(span_token)
        _current_transaction.reset(transaction_token)
    except ValueError:
        # Token created in another context (scope exited on a different
        # task than it was entered on); fall back to clearing.
        logger.debug("Trace scope exited outside its creating context")
        _current_span.set(None)
        _current_transaction.set(None)


def set_task_transaction(target: Optional[Union[Transaction, Span]]) -> None:
    """
    Make ``target`` the active transaction of the calling task.

    Use after handing a transaction to a thread or task that does not
    share the creator's context. Passing a Span binds its transaction
    with that span as the innermost one. Passing None clears the binding.
    """
    if target is None:
        clear()
        return

    if isinstance(target, Transaction):
        _current_transaction.set(target)
        _current_span.set(target.root_span)
        return

    if target.transaction is None:
        logger.warning("Span has no transaction, cannot bind it", op=target.op)
        return

    _current_transaction.set(target.transaction)
    _current_span.set(target)


def clear() -> None:
    """Clear the binding for the calling task."""
    _current_transaction.set(None)
    _current_span.set(None)


def run_with_transaction(
    transaction: Optional[Union[Transaction, Span]],
    func: Callable[..., T],
    *args: Any,
    **kwargs: Any,
) -> T:
    """
    Call ``func`` with ``transaction`` bound, restoring the old binding after.

    Handy as a thread or executor target.
    """
    tokens = bind(_current_transaction.get(), _current_span.get())
    try:
        set_task_transaction(transaction)
        return func(*args, **kwargs)
    finally:
        reset(tokens)


def copy_context_to_task(coro: Awaitable[T]) -> Awaitable[T]:
    """
    Wrap a coroutine so it runs with the caller's current transaction.

    Use when the coroutine is scheduled somewhere that does not copy
    contextvars (e.g. another event loop or a thread).
    """
    captured_transaction = _current_transaction.get()
    captured_span = _current_span.get()

    async def wrapped():
        if captured_transaction is not None:
            _current_transaction.set(captured_transaction)
            _current_span.set(captured_span)
        return await coro

    return wrapped()
