"""
sentrylite Configuration

Typed SDK settings loaded from environment variables and/or explicit
init() arguments. Environment variables are prefixed with SENTRY_
(e.g. SENTRY_DSN, SENTRY_RELEASE, SENTRY_DRY_MODE). Explicit arguments
always win over the environment.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from sentrylite.errors import ConfigurationError


class SDKSettings(BaseSettings):
    """
    SDK configuration.

    Everything here is read once by Hub.init() and never changes
    afterwards.
    """

    dsn: Optional[str] = None
    release: Optional[str] = None
    environment: Optional[str] = None

    debug: bool = False
    dry_mode: bool = False

    traces_sample_rate: Optional[float] = None

    # Delivery
    max_queue_size: int = Field(default=1000, ge=0)  # 0 = unbounded
    shutdown_timeout: float = Field(default=2.0, ge=0.0)
    http_timeout: float = Field(default=10.0, gt=0.0)

    model_config = {
        "env_prefix": "SENTRY_",
        "case_sensitive": False,
        # SENTRY_DRY_MODE= counts as not set
        "env_ignore_empty": True,
        "extra": "ignore",
    }

    @field_validator("dsn", "release", "environment", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("traces_sample_rate")
    @classmethod
    def check_rate(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not 0.0 <= v <= 1.0:
            raise ValueError("traces_sample_rate must be between 0.0 and 1.0")
        return v


def load_settings(**overrides: Any) -> SDKSettings:
    """
    Build settings from the environment plus explicit overrides.

    Overrides set to None are dropped so the environment can fill them in.

    Raises:
        ConfigurationError: if a value fails validation
    """
    explicit: Dict[str, Any] = {k: v for k, v in overrides.items() if v is not None}
    try:
        return SDKSettings(**explicit)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
