"""
Session State Machine
---------------------
Lifecycle of one tool-server session with validated transitions.
All state transitions are logged.

    IDLE → SERVING → DRAINING → STOPPED
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Dict, List, Optional, Set
import logging
import threading


class SessionState(Enum):
    """Valid states for a tool-server session."""
    IDLE = auto()      # Started, nothing read yet
    SERVING = auto()   # Accepting and dispatching invocations
    DRAINING = auto()  # No new invocations, waiting for in-flight ones
    STOPPED = auto()   # Terminal


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_state: SessionState
    to_state: SessionState
    timestamp: datetime
    reason: str
    metadata: Dict = field(default_factory=dict)

    def __repr__(self) -> str:
        return (
            f"StateTransition({self.from_state.name} → {self.to_state.name}, "
            f"reason='{self.reason}')"
        )


VALID_TRANSITIONS: Dict[SessionState, Set[SessionState]] = {
    SessionState.IDLE: {SessionState.SERVING, SessionState.DRAINING},  # DRAINING on empty input
    SessionState.SERVING: {SessionState.DRAINING},
    SessionState.DRAINING: {SessionState.STOPPED},
    SessionState.STOPPED: set(),
}


class SessionStateMachine:
    """
    Thread-safe state holder for a server session.

    The reader thread and shutdown paths (signals, `shutdown` requests) may
    race to move the session forward, so transitions are taken under a lock
    and `advance()` is a no-op when the target was already reached.
    """

    def __init__(self, initial_state: SessionState = SessionState.IDLE):
        self._state = initial_state
        self._history: List[StateTransition] = []
        self._lock = threading.Lock()
        self._logger = logging.getLogger("elevenlabs.server.state")

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def history(self) -> List[StateTransition]:
        with self._lock:
            return self._history.copy()

    @property
    def accepting(self) -> bool:
        """Whether new invocations may be started."""
        return self._state in (SessionState.IDLE, SessionState.SERVING)

    def can_transition(self, to_state: SessionState) -> bool:
        return to_state in VALID_TRANSITIONS.get(self._state, set())

    def transition(
        self,
        to_state: SessionState,
        reason: str,
        metadata: Optional[Dict] = None
    ) -> StateTransition:
        """
        Transition to a new state.

        Raises:
            ValueError: If transition is not valid
        """
        with self._lock:
            return self._transition_locked(to_state, reason, metadata)

    def advance(self, to_state: SessionState, reason: str) -> bool:
        """
        Move to `to_state` unless the session is already there or beyond.

        Returns True if a transition happened.
        """
        with self._lock:
            if self._state == to_state or self._state.value > to_state.value:
                return False
            self._transition_locked(to_state, reason, None)
            return True

    def _transition_locked(
        self,
        to_state: SessionState,
        reason: str,
        metadata: Optional[Dict]
    ) -> StateTransition:
        if not self.can_transition(to_state):
            valid_names = [s.name for s in VALID_TRANSITIONS.get(self._state, set())]
            raise ValueError(
                f"Invalid transition: {self._state.name} → {to_state.name}. "
                f"Valid targets: {valid_names}"
            )

        transition = StateTransition(
            from_state=self._state,
            to_state=to_state,
            timestamp=datetime.now(timezone.utc),
            reason=reason,
            metadata=metadata or {}
        )
        self._state = to_state
        self._history.append(transition)

        self._logger.info(
            f"Session state: {transition.from_state.name} → {to_state.name} "
            f"(reason: {reason})"
        )

        return transition
