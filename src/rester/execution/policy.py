"""
Retry and Timeout Policy

Timeouts apply per attempt, so the worst-case latency of one request is
roughly max_attempts * timeout_seconds plus the backoff delays in between.
"""

import random
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.config import ExecutionConfig


class BackoffStrategy(str, Enum):
    """Delay growth between attempts."""

    FIXED = "fixed"
    EXPONENTIAL = "exponential"


class PolicyOverride(BaseModel):
    """Per-request overrides declared in a definition's ``retry`` block."""

    max_attempts: Optional[int] = Field(default=None, ge=1)
    backoff: Optional[BackoffStrategy] = None
    base_delay: Optional[float] = Field(default=None, ge=0)
    multiplier: Optional[float] = Field(default=None, ge=1)
    max_delay: Optional[float] = Field(default=None, ge=0)
    jitter: Optional[float] = Field(default=None, ge=0, le=1)
    retry_on_server_error: Optional[bool] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class ExecutionPolicy(BaseModel):
    """Effective retry/timeout policy for one request."""

    max_attempts: int = Field(default=1, ge=1, description="Dispatch attempts")
    backoff: BackoffStrategy = Field(default=BackoffStrategy.EXPONENTIAL)
    base_delay: float = Field(default=0.5, ge=0, description="Initial delay (s)")
    multiplier: float = Field(default=2.0, ge=1, description="Exponential factor")
    max_delay: float = Field(default=10.0, ge=0, description="Delay ceiling (s)")
    jitter: float = Field(default=0.1, ge=0, le=1, description="Jitter ratio")
    retry_on_server_error: bool = Field(
        default=False, description="Retry 5xx responses"
    )
    timeout_seconds: float = Field(default=30.0, description="Per-attempt timeout")

    model_config = ConfigDict(frozen=True)

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Invalid timeout: {v}. Must be greater than 0")
        return v

    @classmethod
    def from_config(cls, config: ExecutionConfig) -> "ExecutionPolicy":
        return cls(
            max_attempts=config.max_attempts,
            backoff=BackoffStrategy(config.backoff),
            base_delay=config.base_delay,
            multiplier=config.multiplier,
            max_delay=config.max_delay,
            jitter=config.jitter,
            retry_on_server_error=config.retry_on_server_error,
            timeout_seconds=config.timeout_seconds,
        )

    def merged(
        self,
        override: Optional[PolicyOverride] = None,
        timeout_seconds: Optional[float] = None,
    ) -> "ExecutionPolicy":
        """
        Apply per-request overrides on top of this policy.

        Args:
            override: Declared retry overrides
            timeout_seconds: Declared per-attempt timeout

        Returns:
            New ExecutionPolicy
        """
        updates = override.model_dump(exclude_none=True) if override else {}
        if timeout_seconds is not None:
            updates["timeout_seconds"] = timeout_seconds
        if not updates:
            return self
        return self.model_validate({**self.model_dump(), **updates})

    def delay_for(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """
        Backoff delay after a failed attempt.

        Args:
            attempt: 1-based number of the attempt that just failed
            rng: Random source for jitter

        Returns:
            Seconds to wait before the next attempt
        """
        if self.backoff == BackoffStrategy.FIXED:
            delay = self.base_delay
        else:
            delay = self.base_delay * (self.multiplier ** (attempt - 1))
        delay = min(delay, self.max_delay)
        if self.jitter and delay > 0:
            delay += (rng or random).uniform(0, delay * self.jitter)
        return delay
