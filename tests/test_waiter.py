"""Tests for the polling waiter."""

import pytest

from eks_bootstrap.utils.errors import WaitCancelledError, WaitFailedError, WaitTimeoutError
from eks_bootstrap.utils.waiter import Waiter, WaitOutcome


def statuses(*values):
    it = iter(values)
    last = [None]

    def status_fn():
        last[0] = next(it, last[0])
        return last[0]
    return status_fn


def test_ready_stops_polling(waiter, clock):
    result = waiter.wait_for(statuses("CREATING", "CREATING", "ACTIVE"), success="ACTIVE",
                             failures=["FAILED"], timeout=600, interval=30)

    assert result.outcome == WaitOutcome.READY
    assert result.ready
    assert result.polls == 3
    assert clock.sleeps == [30, 30]
    assert result.elapsed == 60


def test_failure_status_ends_wait_immediately(waiter, clock):
    result = waiter.wait_for(statuses("CREATING", "FAILED", "ACTIVE"), success="ACTIVE",
                             failures=["FAILED"], timeout=600, interval=30)

    assert result.outcome == WaitOutcome.FAILED
    assert result.last_status == "FAILED"
    assert result.polls == 2
    with pytest.raises(WaitFailedError) as exc_info:
        result.raise_for_outcome("demo-cluster", "eks-cluster")
    assert exc_info.value.last_status == "FAILED"
    assert exc_info.value.context.resource_id == "demo-cluster"


def test_timeout_last_poll_starts_at_bound(waiter, clock):
    result = waiter.wait_for(lambda: "CREATING", success="ACTIVE", timeout=100, interval=30)

    assert result.outcome == WaitOutcome.TIMED_OUT
    assert result.last_status == "CREATING"
    assert result.elapsed == 100
    assert clock.sleeps == [30, 30, 30, 10]
    with pytest.raises(WaitTimeoutError):
        result.raise_for_outcome("demo-cluster")


def test_timeout_counts_time_spent_polling(waiter, clock):
    def slow_status():
        clock.now += 5
        return "CREATING"

    result = waiter.wait_for(slow_status, success="ACTIVE", timeout=76, interval=30)

    assert result.outcome == WaitOutcome.TIMED_OUT
    assert clock.sleeps == [30, 30, 1]
    assert result.elapsed == 81
    assert result.elapsed <= 76 + 30


def test_ready_on_last_poll_is_ready(waiter, clock):
    result = waiter.wait_for(
        statuses("CREATING", "CREATING", "CREATING", "CREATING", "ACTIVE"),
        success="ACTIVE", timeout=100, interval=30,
    )

    assert result.outcome == WaitOutcome.READY
    assert result.elapsed == 100


def test_on_poll_receives_status_and_elapsed(waiter):
    seen = []
    waiter.wait_for(statuses("CREATING", "ACTIVE"), success="ACTIVE", timeout=600, interval=10,
                    on_poll=lambda status, elapsed: seen.append((status, elapsed)))

    assert seen == [("CREATING", 0)]


def test_cancel_before_wait(waiter):
    calls = []
    waiter.cancel()

    result = waiter.wait_for(lambda: calls.append(1) or "CREATING", success="ACTIVE")

    assert result.outcome == WaitOutcome.CANCELLED
    assert calls == []
    with pytest.raises(WaitCancelledError):
        result.raise_for_outcome("demo-cluster")


def test_cancel_during_wait(waiter):
    result = waiter.wait_for(lambda: "CREATING", success="ACTIVE", timeout=600, interval=30,
                             on_poll=lambda status, elapsed: waiter.cancel())

    assert result.outcome == WaitOutcome.CANCELLED
    assert result.polls == 1


def test_reset_clears_cancellation(waiter):
    waiter.cancel()
    assert waiter.cancelled
    waiter.reset()

    result = waiter.wait_for(lambda: "ACTIVE", success="ACTIVE")

    assert result.ready


def test_pause_returns_false_when_cancelled():
    waiter = Waiter()
    waiter.cancel()

    assert waiter.pause(30) is False


def test_pause_zero_seconds_completes():
    assert Waiter().pause(0) is True
