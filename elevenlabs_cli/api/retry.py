"""
Resilient Caller
----------------
Retry with exponential backoff and jitter around a single remote call.

The caller never knows which operation it is retrying; it only looks at
the shape of the failure (RemoteError) and the action's idempotency flag.

Classification:
- 5xx              → retryable (idempotent actions only)
- 429              → retryable, Retry-After lower-bounds the next delay
- other 4xx        → terminal
- connect failure  → retryable (nothing reached the server)
- timeout / reset  → retryable (idempotent actions only)
- decode failure   → terminal
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Generic, List, Optional, TypeVar, Union
import logging
import random
import threading

from elevenlabs_cli.core.errors import ErrorKind, RemoteError, RemoteErrorReason

T = TypeVar('T')


class FailureClass(Enum):
    """How a failure may be handled."""
    RETRYABLE = auto()
    UNSAFE_TO_REPEAT = auto()  # Transient, but the action might have taken effect
    TERMINAL = auto()


def classify_failure(error: RemoteError, idempotent: bool = True) -> FailureClass:
    """Classify a remote failure for the given action idempotency."""
    reason = error.reason

    if reason == RemoteErrorReason.HTTP_STATUS:
        status = error.status_code or 0
        if status == 429:
            # Rejected before processing, safe even for non-idempotent actions
            return FailureClass.RETRYABLE
        if status >= 500:
            return FailureClass.RETRYABLE if idempotent else FailureClass.UNSAFE_TO_REPEAT
        return FailureClass.TERMINAL

    if reason == RemoteErrorReason.CONNECT:
        return FailureClass.RETRYABLE

    if reason in (RemoteErrorReason.TIMEOUT, RemoteErrorReason.NETWORK):
        return FailureClass.RETRYABLE if idempotent else FailureClass.UNSAFE_TO_REPEAT

    return FailureClass.TERMINAL


@dataclass(frozen=True)
class RetryConfig:
    """Backoff schedule configuration."""
    base_delay: float = 0.5         # Seconds before the first retry
    max_delay: float = 8.0          # Cap per inter-attempt delay
    max_attempts: int = 3           # 1 initial try + 2 retries
    jitter: float = 0.25            # Random fraction added to each delay (0..1)
    max_retry_after: float = 30.0   # Cap on server-provided Retry-After hints
    max_total_delay: float = 60.0   # Cap on total time spent waiting

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0 and 1")
        if self.base_delay < 0 or self.max_delay < self.base_delay:
            raise ValueError("delays must satisfy 0 <= base_delay <= max_delay")


@dataclass
class RetryState:
    """Per-call retry bookkeeping. Never shared between calls."""
    attempt_number: int = 1
    accumulated_delay: float = 0.0
    last_error: Optional[RemoteError] = None
    delays: List[float] = field(default_factory=list)


@dataclass
class Success(Generic[T]):
    """Remote call succeeded."""
    payload: T
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return True


@dataclass
class Failure:
    """Remote call failed for good."""
    kind: ErrorKind
    message: str
    attempt: int
    retryable: bool
    cause: Optional[RemoteError] = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def status_code(self) -> Optional[int]:
        return self.cause.status_code if self.cause else None


CallOutcome = Union[Success, Failure]


class ResilientCaller:
    """
    Generic retry combinator.

    One instance is shared by every dispatch in a session; all per-call
    state lives in a RetryState local to `execute`. Backoff waits block
    only the calling thread and are cut short by `cancel()`.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        cancel_event: Optional[threading.Event] = None,
        sleeper: Optional[Callable[[float], bool]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or RetryConfig()
        self._cancel_event = cancel_event or threading.Event()
        # sleeper(delay) -> True if the wait was interrupted
        self._sleep = sleeper or self._cancel_event.wait
        self._rng = rng or random.Random()
        self._logger = logging.getLogger("elevenlabs.api.retry")

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Abandon all pending backoff waits."""
        self._cancel_event.set()

    def compute_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """
        Delay to wait after failed attempt `attempt` (1-based).

        min(base * 2^(attempt-1) * (1 + jitter * U[0,1)), max_delay),
        raised to the server's Retry-After hint when one is given.
        """
        exponential = self.config.base_delay * (2 ** (attempt - 1))
        jittered = exponential * (1.0 + self.config.jitter * self._rng.random())
        delay = min(jittered, self.config.max_delay)

        if retry_after is not None and retry_after > 0:
            delay = max(delay, min(retry_after, self.config.max_retry_after))

        return delay

    def execute(
        self,
        action: Callable[[], T],
        idempotent: bool = True,
        label: str = "",
    ) -> CallOutcome:
        """
        Run `action` until it succeeds, fails terminally, or the attempt
        budget is spent.

        `action` signals failure by raising RemoteError; any other exception
        propagates unchanged.
        """
        state = RetryState()
        name = label or getattr(action, "__name__", "action")

        while True:
            if self.cancelled:
                return self._cancelled(state, name)

            try:
                payload = action()
            except RemoteError as e:
                state.last_error = e
            else:
                if state.attempt_number > 1:
                    self._logger.info(f"{name}: succeeded on attempt {state.attempt_number}")
                return Success(payload=payload, attempts=state.attempt_number)

            error = state.last_error
            failure_class = classify_failure(error, idempotent)

            if failure_class == FailureClass.TERMINAL:
                self._logger.error(f"{name}: terminal failure on attempt {state.attempt_number}: {error.message}")
                return Failure(
                    kind=ErrorKind.TERMINAL,
                    message=error.message,
                    attempt=state.attempt_number,
                    retryable=False,
                    cause=error,
                )

            if failure_class == FailureClass.UNSAFE_TO_REPEAT:
                self._logger.error(
                    f"{name}: not retrying non-idempotent action after {error.reason.name}: {error.message}"
                )
                return Failure(
                    kind=ErrorKind.TERMINAL,
                    message=error.message,
                    attempt=state.attempt_number,
                    retryable=False,
                    cause=error,
                )

            if state.attempt_number >= self.config.max_attempts:
                return self._exhausted(state, name)

            delay = self.compute_delay(state.attempt_number, error.retry_after)
            if state.accumulated_delay + delay > self.config.max_total_delay:
                self._logger.warning(f"{name}: total wait budget exhausted")
                return self._exhausted(state, name)

            self._logger.warning(
                f"{name}: attempt {state.attempt_number} failed ({error.message}), "
                f"retrying in {delay:.2f}s"
            )
            state.delays.append(delay)
            state.accumulated_delay += delay

            if self._sleep(delay):
                return self._cancelled(state, name)

            state.attempt_number += 1

    def _exhausted(self, state: RetryState, name: str) -> Failure:
        error = state.last_error
        self._logger.error(f"{name}: giving up after {state.attempt_number} attempts: {error.message}")
        return Failure(
            kind=ErrorKind.TRANSIENT,
            message=error.message,
            attempt=state.attempt_number,
            retryable=True,
            cause=error,
        )

    def _cancelled(self, state: RetryState, name: str) -> Failure:
        self._logger.warning(f"{name}: cancelled during attempt {state.attempt_number}")
        return Failure(
            kind=ErrorKind.CANCELLED,
            message="Cancelled by session shutdown",
            attempt=state.attempt_number,
            retryable=False,
            cause=state.last_error,
        )
