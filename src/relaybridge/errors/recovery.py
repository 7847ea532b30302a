"""Retry and backoff policies.

These are consumed by the job queue: a job carries a :class:`RetryPolicy`
and the queue asks its backoff for the delay before the next attempt.
"""

import random
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class BackoffStrategy:
    """Backoff strategy configuration."""

    strategy_type: str = "exponential"  # exponential, linear, fixed
    base_delay: float = 5.0
    max_delay: float = 3600.0
    multiplier: float = 2.0
    jitter: bool = False

    def get_delay(self, attempt: int) -> float:
        """Get the delay to wait after the given failed attempt (1-based)."""
        if attempt <= 0:
            return 0.0

        if self.strategy_type == "exponential":
            delay = self.base_delay * (self.multiplier ** (attempt - 1))
        elif self.strategy_type == "linear":
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay

        delay = min(delay, self.max_delay)

        if self.jitter:
            delay *= random.uniform(0.5, 1.5)

        return delay

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.strategy_type,
            "delay": self.base_delay,
            "max_delay": self.max_delay,
            "multiplier": self.multiplier,
            "jitter": self.jitter,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BackoffStrategy":
        return cls(
            strategy_type=data.get("type", "exponential"),
            base_delay=float(data.get("delay", 5.0)),
            max_delay=float(data.get("max_delay", 3600.0)),
            multiplier=float(data.get("multiplier", 2.0)),
            jitter=bool(data.get("jitter", False)),
        )


@dataclass
class RetryPolicy:
    """Bounded retry budget for a queued job."""

    max_attempts: int = 3
    backoff: BackoffStrategy = field(default_factory=BackoffStrategy)

    def should_retry(self, attempts_made: int) -> bool:
        """Whether another attempt is allowed after ``attempts_made`` failures."""
        return attempts_made < self.max_attempts

    def get_delay(self, attempts_made: int) -> float:
        return self.backoff.get_delay(attempts_made)
