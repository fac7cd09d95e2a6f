"""
Retry policy shared by load-balanced upstream calls.
"""

import random
import time
from typing import Optional

BACKOFF_STRATEGIES = ("fixed", "linear", "exponential")
EXPONENTIAL_BASE = 2.0


class RetryConfig:
    """Configuration for retry behavior.

    ``max_retries`` counts additional attempts after the first one, so a
    request is tried at most ``max_retries + 1`` times.
    """

    def __init__(self,
                 max_retries: int = 10,
                 base_delay: float = 0.0,
                 max_delay: float = 5.0,
                 jitter: bool = False,
                 backoff_strategy: str = "fixed"):
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if backoff_strategy not in BACKOFF_STRATEGIES:
            raise ValueError(f"Unknown backoff strategy: {backoff_strategy}")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self.backoff_strategy = backoff_strategy

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay before the attempt following ``attempt``."""
    if config.base_delay <= 0:
        return 0.0

    if config.backoff_strategy == "exponential":
        delay = config.base_delay * (EXPONENTIAL_BASE ** (attempt - 1))
    elif config.backoff_strategy == "linear":
        delay = config.base_delay * attempt
    else:
        delay = config.base_delay

    # Apply max delay cap
    delay = min(delay, config.max_delay)

    # Add jitter if enabled
    if config.jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay += random.uniform(-jitter_amount, jitter_amount)

    return max(0.0, delay)


def remaining_time(deadline: Optional[float]) -> Optional[float]:
    """Seconds left until a ``time.monotonic()`` deadline, or None."""
    if deadline is None:
        return None
    return deadline - time.monotonic()


def deadline_after(seconds: Optional[float]) -> Optional[float]:
    """Monotonic deadline ``seconds`` from now."""
    if seconds is None:
        return None
    return time.monotonic() + seconds
