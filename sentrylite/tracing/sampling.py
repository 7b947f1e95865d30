"""
sentrylite Trace Sampling Strategies

A sampler decides once, when a transaction is created, whether it is
recorded at all. Child spans inherit that decision.

- Always on / off
- Fixed ratio (random)
- Custom predicate
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

import structlog

from sentrylite.errors import ConfigurationError

logger = structlog.get_logger(__name__)


@dataclass
class SamplingContext:
    """What a sampler gets to look at."""
    trace_id: str
    op: str = ""
    name: Optional[str] = None
    parent_span_id: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)


class Sampler(ABC):
    """Base class for transaction samplers."""

    @abstractmethod
    def should_sample(self, context: SamplingContext) -> bool:
        """
        Determine if a transaction should be recorded.

        Args:
            context: Trace identifiers and root span metadata

        Returns:
            True to record and send the transaction
        """
        pass

    @property
    def description(self) -> str:
        """Human-readable description of the sampler."""
        return self.__class__.__name__


class AlwaysSample(Sampler):
    """Record every transaction."""

    def should_sample(self, context: SamplingContext) -> bool:
        return True


class NoSamples(Sampler):
    """Never record any transaction."""

    def should_sample(self, context: SamplingContext) -> bool:
        return False


class RatioSampler(Sampler):
    """Record transactions with a fixed probability."""

    def __init__(self, ratio: float = 1.0, rng: Optional[random.Random] = None):
        if not 0.0 <= ratio <= 1.0:
            raise ConfigurationError("Ratio must be between 0.0 and 1.0")
        self.ratio = ratio
        self._rng = rng or random.Random()

    def should_sample(self, context: SamplingContext) -> bool:
        if self.ratio >= 1.0:
            return True
        if self.ratio <= 0.0:
            return False
        return self._rng.random() < self.ratio

    @property
    def description(self) -> str:
        return f"RatioSampler(ratio={self.ratio})"


class PredicateSampler(Sampler):
    """
    Delegate the decision to a user callable.

    The callable receives the SamplingContext and returns either a bool
    (record or not) or a float in [0, 1] used as a sampling ratio. A
    predicate that raises or returns anything else samples nothing.
    """

    def __init__(self, predicate: Callable[[SamplingContext], Union[bool, float]]):
        self.predicate = predicate
        self._rng = random.Random()

    def should_sample(self, context: SamplingContext) -> bool:
        try:
            result = self.predicate(context)
        except Exception as e:
            logger.debug("Sampling predicate raised, not sampling", error=str(e))
            return False

        if isinstance(result, bool):
            return result
        if isinstance(result, (int, float)) and 0.0 <= result <= 1.0:
            return self._rng.random() < result

        logger.debug("Sampling predicate returned an invalid value", value=result)
        return False

    @property
    def description(self) -> str:
        name = getattr(self.predicate, "__name__", repr(self.predicate))
        return f"PredicateSampler({name})"


def create_sampler(
    traces_sample_rate: Optional[float] = None,
    traces_sampler: Any = None,
) -> Sampler:
    """
    Create the hub sampler from init() options.

    At most one of the two options may be given:
        create_sampler()                      -> NoSamples
        create_sampler(traces_sample_rate=.2) -> RatioSampler(0.2)
        create_sampler(traces_sampler=fn)     -> PredicateSampler(fn)
        create_sampler(traces_sampler=obj)    -> obj (a Sampler instance)

    Raises:
        ConfigurationError: both options given, or an unusable sampler
    """
    if traces_sample_rate is not None and traces_sampler is not None:
        raise ConfigurationError(
            "Only one of traces_sample_rate and traces_sampler may be set"
        )

    if traces_sample_rate is not None:
        return RatioSampler(float(traces_sample_rate))

    if traces_sampler is None:
        return NoSamples()

    if isinstance(traces_sampler, Sampler):
        return traces_sampler

    if callable(traces_sampler):
        return PredicateSampler(traces_sampler)

    raise ConfigurationError(f"Unusable traces_sampler: {traces_sampler!r}")
