"""
Unit tests for the retry policy helpers.
"""

import time

import pytest

from shared.retry import RetryConfig, calculate_delay, deadline_after, remaining_time


class TestRetryConfig:

    def test_attempts_are_retries_plus_one(self):
        assert RetryConfig(max_retries=10).max_attempts == 11
        assert RetryConfig(max_retries=0).max_attempts == 1

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError):
            RetryConfig(max_retries=-1)

    def test_unknown_backoff_strategy_rejected(self):
        with pytest.raises(ValueError):
            RetryConfig(backoff_strategy="random")


class TestCalculateDelay:

    def test_default_policy_does_not_wait(self):
        assert calculate_delay(3, RetryConfig()) == 0.0

    def test_fixed_delay(self):
        config = RetryConfig(base_delay=0.5)
        assert calculate_delay(1, config) == 0.5
        assert calculate_delay(4, config) == 0.5

    def test_exponential_delay_capped(self):
        config = RetryConfig(base_delay=1.0, max_delay=3.0, backoff_strategy="exponential")
        assert [calculate_delay(attempt, config) for attempt in (1, 2, 3)] == [1.0, 2.0, 3.0]

    def test_linear_delay(self):
        config = RetryConfig(base_delay=0.2, backoff_strategy="linear")
        assert calculate_delay(3, config) == pytest.approx(0.6)

    def test_jitter_stays_near_delay(self):
        config = RetryConfig(base_delay=1.0, jitter=True)
        assert 0.9 <= calculate_delay(1, config) <= 1.1


class TestDeadlines:

    def test_no_deadline(self):
        assert deadline_after(None) is None
        assert remaining_time(None) is None

    def test_remaining_time_counts_down(self):
        deadline = deadline_after(10)
        assert 9 < remaining_time(deadline) <= 10

    def test_past_deadline_is_negative(self):
        assert remaining_time(time.monotonic() - 1) < 0
