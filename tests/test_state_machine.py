"""
Session State Machine Tests
---------------------------
Tests for the tool-server lifecycle.
"""

import threading
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from elevenlabs_cli.core.state_machine import SessionState, SessionStateMachine


class TestTransitions:
    """Valid and invalid transitions."""

    def test_full_lifecycle(self):
        machine = SessionStateMachine()

        machine.transition(SessionState.SERVING, "first request")
        machine.transition(SessionState.DRAINING, "end of input")
        machine.transition(SessionState.STOPPED, "drained")

        assert machine.state == SessionState.STOPPED
        assert [t.reason for t in machine.history] == ["first request", "end of input", "drained"]

    def test_cannot_skip_draining(self):
        machine = SessionStateMachine()
        machine.transition(SessionState.SERVING, "start")

        with pytest.raises(ValueError):
            machine.transition(SessionState.STOPPED, "abrupt")

    def test_cannot_resume_serving(self):
        machine = SessionStateMachine()
        machine.transition(SessionState.DRAINING, "empty input")

        with pytest.raises(ValueError):
            machine.transition(SessionState.SERVING, "late request")

    def test_accepting(self):
        machine = SessionStateMachine()
        assert machine.accepting
        machine.transition(SessionState.SERVING, "start")
        assert machine.accepting
        machine.transition(SessionState.DRAINING, "stop")
        assert not machine.accepting


class TestAdvance:
    """Idempotent forward moves used by racing shutdown paths."""

    def test_advance_is_noop_when_reached(self):
        machine = SessionStateMachine()

        assert machine.advance(SessionState.SERVING, "first")
        assert not machine.advance(SessionState.SERVING, "again")
        assert machine.advance(SessionState.DRAINING, "stop")
        assert not machine.advance(SessionState.SERVING, "too late")
        assert len(machine.history) == 2

    def test_concurrent_advance_records_one_transition(self):
        machine = SessionStateMachine()
        machine.advance(SessionState.SERVING, "start")

        threads = [
            threading.Thread(target=machine.advance, args=(SessionState.DRAINING, f"t{i}"))
            for i in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert [t.to_state for t in machine.history].count(SessionState.DRAINING) == 1
