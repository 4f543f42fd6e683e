from __future__ import annotations

from datetime import datetime, timedelta, timezone
import random

import pytest

from core import QueueItem
from orchestrator.breaker import CircuitBreaker
from orchestrator.retry import RetryPolicy


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def test_backoff_without_jitter_doubles_and_caps() -> None:
    policy = RetryPolicy(base_delay=5, max_delay=300, jitter=0)

    delays = [policy.backoff_delay(k) for k in range(8)]

    assert delays[:6] == [5, 10, 20, 40, 80, 160]
    assert delays[6:] == [300, 300]


@pytest.mark.parametrize("seed", [0, 1, 7, 42, 1234])
def test_backoff_is_monotonic_with_jitter(seed: int) -> None:
    policy = RetryPolicy(base_delay=5, max_delay=300, jitter=0.2, rng=random.Random(seed))

    delays = [policy.backoff_delay(k) for k in range(10)]

    assert all(later >= earlier for earlier, later in zip(delays, delays[1:]))
    assert all(4.0 <= d <= 300 for d in delays)
    assert 4.0 <= delays[0] <= 6.0


def test_retry_policy_rejects_bad_parameters() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=0)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=10, max_delay=5)
    with pytest.raises(ValueError):
        RetryPolicy(jitter=1.5)


def test_retry_count_never_exceeds_retry_attempts() -> None:
    policy = RetryPolicy(jitter=0)
    item = QueueItem(url="https://example.com/flaky")

    first = policy.on_failure(item, "timeout", retry_attempts=2)
    second = policy.on_failure(item, "timeout again", retry_attempts=2)
    final = policy.on_failure(item, "still failing", retry_attempts=2)

    assert (first.requeue, first.delay_seconds, first.attempt) == (True, 5, 1)
    assert (second.requeue, second.delay_seconds, second.attempt) == (True, 10, 2)
    assert final.requeue is False
    assert item.retry_count == 2
    assert item.last_error == "still failing"


def test_zero_retry_attempts_finalizes_immediately() -> None:
    decision = RetryPolicy().on_failure(QueueItem(url="https://example.com/x"), "boom", retry_attempts=0)
    assert decision.requeue is False


def test_breaker_opens_at_threshold_and_blocks() -> None:
    clock = _Clock()
    breaker = CircuitBreaker(threshold=5, cooldown_seconds=600, clock=clock)

    opened = [breaker.record_failure() for _ in range(5)]

    assert opened == [False, False, False, False, True]
    assert breaker.is_open() is True
    assert breaker.remaining_seconds() == 600


def test_breaker_success_resets_counter() -> None:
    breaker = CircuitBreaker(threshold=3, clock=_Clock())

    breaker.record_failure()
    breaker.record_failure()
    breaker.record_success()
    breaker.record_failure()
    breaker.record_failure()

    assert breaker.consecutive_failures == 2
    assert breaker.is_open() is False


def test_breaker_auto_closes_after_cooldown() -> None:
    clock = _Clock()
    breaker = CircuitBreaker(threshold=2, cooldown_seconds=600, clock=clock)
    breaker.record_failure()
    breaker.record_failure()

    clock.advance(599)
    assert breaker.is_open() is True

    clock.advance(1)
    assert breaker.is_open() is False
    assert breaker.consecutive_failures == 0
    assert breaker.open_until is None


def test_breaker_has_no_public_reset() -> None:
    assert not hasattr(CircuitBreaker, "reset")
