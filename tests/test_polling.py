"""Tests for lesnek.polling."""
from unittest import mock

import pytest

from lesnek.errors import PollTimeoutError
from lesnek.polling import RetryPolicy


@pytest.mark.parametrize("backoff,delays", [
    ("fixed", [2, 2, 2, 2]),
    ("linear", [2, 4, 6, 8]),
    ("exponential", [2, 4, 8, 10]),
])
def test_delay(backoff, delays):
    policy = RetryPolicy(interval=2, backoff=backoff, max_interval=10)
    assert [policy.delay(attempt) for attempt in range(1, 5)] == delays


def test_unbounded_by_default(mock_sleep):
    policy = RetryPolicy()
    for attempt in range(1, 1000):
        policy.wait(attempt, started=0)
    assert mock_sleep.call_count == 999


def test_max_attempts(mock_sleep):
    policy = RetryPolicy(max_attempts=3)
    policy.wait(1, started=0)
    policy.wait(2, started=0)
    with pytest.raises(PollTimeoutError, match="3 attempts"):
        policy.wait(3, started=0)
    assert mock_sleep.call_count == 2


def test_deadline(mock_sleep):
    policy = RetryPolicy(interval=5, deadline=60)
    with mock.patch("time.monotonic", return_value=50):
        policy.wait(1, started=0)
    with mock.patch("time.monotonic", return_value=58):
        with pytest.raises(PollTimeoutError):
            policy.wait(2, started=0)
    mock_sleep.assert_called_once_with(5)
