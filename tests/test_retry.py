"""
Tests for retry utilities
"""
from unittest.mock import Mock

import pytest

from stateform.core.config import ExecutionConfig
from stateform.utils.retry import BackoffStrategy, RetryConfig, RetryError, call_with_retry


class TestRetryConfig:

    def test_exponential(self):
        config = RetryConfig(initial_delay=1.0, backoff_factor=2.0, jitter=False)

        assert [config.calculate_delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_delay(self):
        config = RetryConfig(initial_delay=10.0, max_delay=15.0, jitter=False)

        assert config.calculate_delay(3) == 15.0

    def test_constant_and_linear(self):
        constant = RetryConfig(initial_delay=0.5, backoff_strategy=BackoffStrategy.CONSTANT, jitter=False)
        linear = RetryConfig(initial_delay=0.5, backoff_strategy=BackoffStrategy.LINEAR, jitter=False)

        assert constant.calculate_delay(3) == 0.5
        assert linear.calculate_delay(3) == 1.5

    def test_jitter_stays_in_range(self):
        config = RetryConfig(initial_delay=1.0, jitter=True, jitter_range=0.1)

        for _ in range(50):
            assert 0.9 <= config.calculate_delay(1) <= 1.1

    def test_from_execution_config(self):
        config = RetryConfig.from_execution_config(
            ExecutionConfig(max_retries=2, retry_initial_delay=0.25, retry_max_delay=5.0)
        )

        assert config.max_attempts == 3
        assert config.initial_delay == 0.25
        assert config.max_delay == 5.0


class TestCallWithRetry:
    """Tests for call_with_retry"""

    def setup_method(self):
        self.config = RetryConfig(max_attempts=3, initial_delay=0.1, jitter=False)
        self.sleeps = []

    def test_success_first_try(self):
        func = Mock(return_value="ok")

        assert call_with_retry(func, self.config, sleep=self.sleeps.append) == "ok"
        assert func.call_count == 1
        assert self.sleeps == []

    def test_success_after_failures(self):
        func = Mock(side_effect=[ConnectionError(), ConnectionError(), "ok"])
        on_retry = Mock()

        result = call_with_retry(func, self.config, on_retry=on_retry, sleep=self.sleeps.append)

        assert result == "ok"
        assert func.call_count == 3
        assert self.sleeps == [0.1, 0.2]
        assert [c.args[1] for c in on_retry.call_args_list] == [1, 2]

    def test_non_retryable_propagates(self):
        func = Mock(side_effect=ValueError("bad input"))

        with pytest.raises(ValueError):
            call_with_retry(func, self.config, should_retry=lambda e: isinstance(e, ConnectionError),
                            sleep=self.sleeps.append)
        assert func.call_count == 1

    def test_exhausted(self):
        error = ConnectionError("down")
        func = Mock(side_effect=error)

        with pytest.raises(RetryError) as exc_info:
            call_with_retry(func, self.config, sleep=self.sleeps.append, description="create repo")

        assert exc_info.value.attempts == 3
        assert exc_info.value.last_exception is error
        assert "create repo" in str(exc_info.value)
        assert len(self.sleeps) == 2
