"""
Resilient Caller Tests
----------------------
Tests for retry classification, backoff and cancellation.

Tests cover:
- 503 twice then success: 3 attempts, non-decreasing capped delays
- 401 attempted exactly once
- 429 honours Retry-After (capped)
- Non-idempotent actions are not repeated after ambiguous failures
- Cancellation cuts backoff short
"""

import random
import threading
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import FlakyAction, RecordingSleeper, remote_error
from elevenlabs_cli.api.retry import (
    Failure, FailureClass, ResilientCaller, RetryConfig, Success, classify_failure,
)
from elevenlabs_cli.core.errors import ErrorKind, RemoteError, RemoteErrorReason


def _network(reason: RemoteErrorReason) -> RemoteError:
    return RemoteError("network", reason=reason)


class TestClassification:
    """Failure classification."""

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_5xx_retryable_when_idempotent(self, status):
        assert classify_failure(remote_error(status)) == FailureClass.RETRYABLE

    def test_5xx_unsafe_when_not_idempotent(self):
        assert classify_failure(remote_error(503), idempotent=False) == FailureClass.UNSAFE_TO_REPEAT

    def test_429_always_retryable(self):
        assert classify_failure(remote_error(429), idempotent=False) == FailureClass.RETRYABLE

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_other_4xx_terminal(self, status):
        assert classify_failure(remote_error(status)) == FailureClass.TERMINAL

    def test_connect_failure_retryable_even_when_not_idempotent(self):
        error = _network(RemoteErrorReason.CONNECT)
        assert classify_failure(error, idempotent=False) == FailureClass.RETRYABLE

    def test_timeout_depends_on_idempotency(self):
        error = _network(RemoteErrorReason.TIMEOUT)
        assert classify_failure(error, idempotent=True) == FailureClass.RETRYABLE
        assert classify_failure(error, idempotent=False) == FailureClass.UNSAFE_TO_REPEAT

    @pytest.mark.parametrize("reason", [
        RemoteErrorReason.DECODE, RemoteErrorReason.MISSING_API_KEY, RemoteErrorReason.LOCAL_IO,
    ])
    def test_local_and_decode_failures_terminal(self, reason):
        assert classify_failure(_network(reason)) == FailureClass.TERMINAL


class TestRetrySchedule:
    """Backoff behaviour."""

    def test_503_twice_then_success(self, caller, sleeper):
        action = FlakyAction([remote_error(503), remote_error(503)], result={"voices": []})

        outcome = caller.execute(action)

        assert isinstance(outcome, Success)
        assert outcome.payload == {"voices": []}
        assert outcome.attempts == 3
        assert action.calls == 3
        assert len(sleeper.delays) == 2
        assert sleeper.delays == sorted(sleeper.delays)
        assert all(d <= caller.config.max_delay for d in sleeper.delays)

    def test_401_attempted_once(self, caller, sleeper):
        action = FlakyAction([remote_error(401)])

        outcome = caller.execute(action)

        assert isinstance(outcome, Failure)
        assert outcome.kind == ErrorKind.TERMINAL
        assert outcome.retryable is False
        assert outcome.attempt == 1
        assert action.calls == 1
        assert sleeper.delays == []

    def test_exhausted_returns_last_cause(self, caller):
        last = remote_error(502)
        action = FlakyAction([remote_error(503), remote_error(500), last])

        outcome = caller.execute(action)

        assert outcome.kind == ErrorKind.TRANSIENT
        assert outcome.retryable is True
        assert outcome.attempt == 3
        assert outcome.cause is last
        assert outcome.message == last.message

    def test_delays_capped_with_jitter(self, sleeper):
        caller = ResilientCaller(
            RetryConfig(base_delay=1.0, max_delay=1.5, jitter=1.0, max_attempts=5),
            sleeper=sleeper,
            rng=random.Random(42),
        )
        caller.execute(FlakyAction([remote_error(503)] * 4))

        assert len(sleeper.delays) == 4
        assert all(1.0 <= d <= 1.5 for d in sleeper.delays)

    def test_exponential_without_jitter(self, caller):
        assert [caller.compute_delay(n) for n in (1, 2, 3, 4, 5, 6)] == [0.5, 1.0, 2.0, 4.0, 8.0, 8.0]

    def test_retry_after_lower_bounds_delay(self, caller, sleeper):
        caller.execute(FlakyAction([remote_error(429, retry_after=5.0)]))

        assert sleeper.delays == [5.0]

    def test_retry_after_is_capped(self, sleeper):
        caller = ResilientCaller(RetryConfig(jitter=0.0, max_retry_after=10.0), sleeper=sleeper)
        caller.execute(FlakyAction([remote_error(429, retry_after=3600.0)]))

        assert sleeper.delays == [10.0]

    def test_total_delay_budget(self, sleeper):
        caller = ResilientCaller(
            RetryConfig(base_delay=4.0, max_delay=8.0, jitter=0.0, max_attempts=10, max_total_delay=10.0),
            sleeper=sleeper,
        )
        outcome = caller.execute(FlakyAction([remote_error(503)] * 10))

        assert outcome.kind == ErrorKind.TRANSIENT
        assert sum(sleeper.delays) <= 10.0

    def test_other_exceptions_propagate(self, caller):
        def broken():
            raise KeyError("bug")

        with pytest.raises(KeyError):
            caller.execute(broken)

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)
        with pytest.raises(ValueError):
            RetryConfig(jitter=2.0)


class TestIdempotency:
    """Non-idempotent actions must not be repeated after ambiguous failures."""

    def test_timeout_not_retried_for_creation(self, caller):
        action = FlakyAction([_network(RemoteErrorReason.TIMEOUT)])

        outcome = caller.execute(action, idempotent=False)

        assert outcome.kind == ErrorKind.TERMINAL
        assert action.calls == 1

    def test_5xx_not_retried_for_creation(self, caller):
        action = FlakyAction([remote_error(500)])

        assert caller.execute(action, idempotent=False).kind == ErrorKind.TERMINAL
        assert action.calls == 1

    def test_connect_failure_retried_for_creation(self, caller):
        action = FlakyAction([_network(RemoteErrorReason.CONNECT)], result="created")

        outcome = caller.execute(action, idempotent=False)

        assert outcome.ok
        assert outcome.attempts == 2


class TestCancellation:
    """Session shutdown interrupts backoff."""

    def test_interrupted_sleep_returns_cancelled(self):
        caller = ResilientCaller(RetryConfig(jitter=0.0), sleeper=RecordingSleeper(interrupt_after=1))
        action = FlakyAction([remote_error(503), remote_error(503)])

        outcome = caller.execute(action)

        assert outcome.kind == ErrorKind.CANCELLED
        assert action.calls == 1

    def test_cancel_before_start(self, caller):
        caller.cancel()
        action = FlakyAction([])

        assert caller.execute(action).kind == ErrorKind.CANCELLED
        assert action.calls == 0

    def test_cancel_wakes_real_wait(self):
        """cancel() from another thread ends a long backoff promptly."""
        caller = ResilientCaller(RetryConfig(base_delay=30.0, max_delay=30.0, jitter=0.0))
        action = FlakyAction([remote_error(503)] * 3)
        outcome = {}

        worker = threading.Thread(target=lambda: outcome.setdefault("value", caller.execute(action)))
        worker.start()
        while action.calls == 0:
            threading.Event().wait(0.01)
        caller.cancel()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert outcome["value"].kind == ErrorKind.CANCELLED
