"""
sentrylite - Lightweight Sentry client

Reports errors and performance traces to a Sentry-compatible backend:
- Error and message events
- Transactions with nested spans, propagated per task
- Envelope wire protocol, gzip-compressed
- Background delivery that never blocks the caller

Usage:
    import sentrylite

    sentrylite.init("https://<key>@<host>/<project>", traces_sample_rate=1.0)

    sentrylite.set_tag("region", "eu-west-1")
    sentrylite.capture_message("hello", "warning")

    with sentrylite.start_transaction(name="checkout", op="http.server"):
        with sentrylite.start_transaction(op="db.query"):
            ...
"""

__version__ = "0.3.0"

from sentrylite.api import (
    init,
    is_initialized,
    set_tag,
    capture_event,
    capture_message,
    capture_exception,
    start_transaction,
    finish_transaction,
    set_task_transaction,
    flush,
    shutdown,
)
from sentrylite.core.hub import Hub, get_hub, set_hub
from sentrylite.errors import ConfigurationError, SentryLiteError
from sentrylite.tracing.context import get_current_span, get_current_transaction
from sentrylite.tracing.engine import traced
from sentrylite.tracing.sampling import (
    Sampler,
    SamplingContext,
    NoSamples,
    RatioSampler,
    PredicateSampler,
)
from sentrylite.types import Event, Level, Span, Transaction

__all__ = [
    "__version__",
    # API
    "init",
    "is_initialized",
    "set_tag",
    "capture_event",
    "capture_message",
    "capture_exception",
    "start_transaction",
    "finish_transaction",
    "set_task_transaction",
    "flush",
    "shutdown",
    "traced",
    "get_current_span",
    "get_current_transaction",
    # Hub
    "Hub",
    "get_hub",
    "set_hub",
    # Sampling
    "Sampler",
    "SamplingContext",
    "NoSamples",
    "RatioSampler",
    "PredicateSampler",
    # Types
    "Event",
    "Level",
    "Span",
    "Transaction",
    # Errors
    "ConfigurationError",
    "SentryLiteError",
]
