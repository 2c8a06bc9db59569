"""stateform utilities"""

from .retry import BackoffStrategy, RetryConfig, RetryError, call_with_retry

__all__ = ["BackoffStrategy", "RetryConfig", "RetryError", "call_with_retry"]
