"""
sentrylite Tracing

Samplers and task-local trace context. The transaction engine lives in
sentrylite.tracing.engine.
"""

from sentrylite.tracing.sampling import (
    Sampler,
    SamplingContext,
    AlwaysSample,
    NoSamples,
    RatioSampler,
    PredicateSampler,
    create_sampler,
)
from sentrylite.tracing.context import (
    get_current_transaction,
    get_current_span,
    set_task_transaction,
    run_with_transaction,
    copy_context_to_task,
)

__all__ = [
    # Sampling
    "Sampler",
    "SamplingContext",
    "AlwaysSample",
    "NoSamples",
    "RatioSampler",
    "PredicateSampler",
    "create_sampler",
    # Context
    "get_current_transaction",
    "get_current_span",
    "set_task_transaction",
    "run_with_transaction",
    "copy_context_to_task",
]
