"""
stateform Retry Utilities

Bounded retries with configurable backoff for provider calls.
"""

import time
import random
import logging
from typing import Callable, Optional, TypeVar
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackoffStrategy(Enum):
    """Backoff strategies for retries"""
    CONSTANT = "constant"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class RetryError(Exception):
    """Raised when all retry attempts fail"""

    def __init__(self, message: str, last_exception: Optional[Exception] = None, attempts: int = 0):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


@dataclass
class RetryConfig:
    """Configuration for retry behavior"""
    max_attempts: int = 4
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    backoff_factor: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.1

    def calculate_delay(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt"""
        if self.backoff_strategy == BackoffStrategy.CONSTANT:
            delay = self.initial_delay
        elif self.backoff_strategy == BackoffStrategy.LINEAR:
            delay = self.initial_delay * attempt
        else:
            delay = self.initial_delay * (self.backoff_factor ** (attempt - 1))

        delay = min(delay, self.max_delay)

        if self.jitter and self.jitter_range > 0:
            jitter = delay * random.uniform(-self.jitter_range, self.jitter_range)
            delay = max(0, delay + jitter)

        return delay

    @classmethod
    def from_execution_config(cls, execution) -> "RetryConfig":
        """Build from an ExecutionConfig; max_retries counts retries, not attempts"""
        return cls(
            max_attempts=execution.max_retries + 1,
            initial_delay=execution.retry_initial_delay,
            max_delay=execution.retry_max_delay,
            backoff_factor=execution.retry_backoff_factor,
        )


def call_with_retry(
        func: Callable[[], T],
        config: RetryConfig,
        should_retry: Callable[[Exception], bool] = lambda e: True,
        on_retry: Optional[Callable[[Exception, int, float], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        description: Optional[str] = None
) -> T:
    """
    Call ``func`` until it succeeds, a non-retryable error occurs or the
    attempts run out.

    Non-retryable errors propagate unchanged. Exhausting the attempts
    raises RetryError carrying the last exception and the attempt count.

    Example:
        call_with_retry(
            lambda: provider.update(arn, attrs),
            RetryConfig(max_attempts=3, initial_delay=0.5),
            should_retry=lambda e: getattr(e, "retryable", False),
        )
    """
    name = description or getattr(func, "__name__", "call")

    for attempt in range(1, config.max_attempts + 1):
        try:
            return func()
        except Exception as e:
            if not should_retry(e):
                raise

            if attempt == config.max_attempts:
                raise RetryError(
                    f"{name} failed after {attempt} attempts",
                    last_exception=e,
                    attempts=attempt
                ) from e

            delay = config.calculate_delay(attempt)
            if on_retry:
                on_retry(e, attempt, delay)

            logger.debug(
                f"Retry {attempt}/{config.max_attempts} for {name} "
                f"after {e.__class__.__name__}, waiting {delay:.2f}s"
            )
            sleep(delay)

    raise RetryError(f"{name} was never attempted", attempts=0)
