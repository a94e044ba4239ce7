"""
Tool Server Tests
-----------------
Tests for the stdio JSON-RPC session.

Tests cover:
- initialize / tools/list / tools/call / ping
- Malformed input never ends the session
- Notifications get no response
- Lifecycle IDLE → SERVING → DRAINING → STOPPED
- Shutdown cancels in-flight retries
"""

import io
import json
import threading
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import remote_error
from elevenlabs_cli.api.retry import ResilientCaller, RetryConfig
from elevenlabs_cli.core.state_machine import SessionState
from elevenlabs_cli.infra.server import PROTOCOL_VERSION, ToolServer
from elevenlabs_cli.tools.dispatcher import Dispatcher
from elevenlabs_cli.tools.policy import PolicyConfig, PolicyEngine


def _lines(*messages) -> io.StringIO:
    text = "".join((m if isinstance(m, str) else json.dumps(m)) + "\n" for m in messages)
    return io.StringIO(text)


def _call(request_id, name, arguments=None):
    params = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    return {"jsonrpc": "2.0", "id": request_id, "method": "tools/call", "params": params}


def _run(dispatcher, *messages, max_workers=1):
    output = io.StringIO()
    server = ToolServer(dispatcher, input_stream=_lines(*messages), output_stream=output,
                        max_workers=max_workers)
    server.serve()
    responses = [json.loads(line) for line in output.getvalue().splitlines()]
    return server, responses


def _payload(response):
    return json.loads(response["result"]["content"][0]["text"])


class TestProtocol:
    """JSON-RPC methods."""

    def test_initialize(self, make_dispatcher):
        _, responses = _run(make_dispatcher(), {"jsonrpc": "2.0", "id": 1, "method": "initialize"})

        result = responses[0]["result"]
        assert responses[0]["id"] == 1
        assert result["protocolVersion"] == PROTOCOL_VERSION
        assert "tools" in result["capabilities"]
        assert result["serverInfo"]["name"] == "elevenlabs"

    def test_tools_list_reflects_policy(self, make_dispatcher):
        dispatcher = make_dispatcher(PolicyConfig(read_only=True))
        _, responses = _run(dispatcher, {"jsonrpc": "2.0", "id": 2, "method": "tools/list"})

        names = [tool["name"] for tool in responses[0]["result"]["tools"]]
        assert names == ["tts", "stt", "list_voices"]

    def test_tools_call_success(self, make_dispatcher, fake_client):
        fake_client.responses = [{"voices": [{"voice_id": "v1"}]}]
        _, responses = _run(make_dispatcher(), _call(3, "list_voices"))

        assert responses[0]["id"] == 3
        assert responses[0]["result"]["isError"] is False
        assert _payload(responses[0]) == {"success": {"voices": [{"voice_id": "v1"}]}}

    def test_tools_call_error_is_a_result(self, make_dispatcher):
        _, responses = _run(make_dispatcher(PolicyConfig(disable_admin=True)),
                            _call(4, "delete_voice", {"voice_id": "v1"}))

        assert responses[0]["result"]["isError"] is True
        error = _payload(responses[0])["error"]
        assert error["kind"] == "Forbidden"
        assert error["category"] == "destructive"

    def test_ping(self, make_dispatcher):
        _, responses = _run(make_dispatcher(), {"jsonrpc": "2.0", "id": "p", "method": "ping"})
        assert responses == [{"jsonrpc": "2.0", "id": "p", "result": {}}]

    def test_unknown_method(self, make_dispatcher):
        _, responses = _run(make_dispatcher(), {"jsonrpc": "2.0", "id": 5, "method": "resources/list"})
        assert responses[0]["error"]["code"] == -32601


class TestRobustness:
    """Bad input never ends the session."""

    def test_parse_error_then_continue(self, make_dispatcher):
        _, responses = _run(make_dispatcher(), "{not json", {"jsonrpc": "2.0", "id": 6, "method": "ping"})

        assert responses[0]["error"]["code"] == -32700
        assert responses[0]["error"]["data"]["error"]["kind"] == "InvalidArguments"
        assert responses[1]["id"] == 6

    def test_invalid_utf8_then_continue(self, make_dispatcher):
        ping = json.dumps({"jsonrpc": "2.0", "id": 9, "method": "ping"}).encode()
        output = io.StringIO()
        server = ToolServer(make_dispatcher(), input_stream=io.BytesIO(b"\xff\xfe garbage\n" + ping + b"\n"),
                            output_stream=output, max_workers=1)
        server.serve()
        responses = [json.loads(line) for line in output.getvalue().splitlines()]

        assert responses[0]["id"] is None
        assert responses[0]["error"]["code"] == -32700
        assert responses[0]["error"]["data"]["error"]["kind"] == "InvalidArguments"
        assert responses[1]["id"] == 9
        assert server.state == SessionState.STOPPED

    def test_deeply_nested_json_then_continue(self, make_dispatcher):
        _, responses = _run(make_dispatcher(), "[" * 100000, {"jsonrpc": "2.0", "id": 10, "method": "ping"})

        assert responses[0]["error"]["code"] == -32700
        assert responses[1]["id"] == 10
        assert responses[1]["result"] == {}

    def test_unexpected_handler_failure_then_continue(self, make_dispatcher, monkeypatch):
        server = ToolServer(make_dispatcher(), input_stream=_lines("first", "second"),
                            output_stream=io.StringIO(), max_workers=1)
        seen = []

        def flaky(line):
            seen.append(line)
            if len(seen) == 1:
                raise RuntimeError("boom")
            server._send({"jsonrpc": "2.0", "id": 11, "result": {}})

        monkeypatch.setattr(server, "handle_line", flaky)
        server.serve()
        responses = [json.loads(line) for line in server._output.getvalue().splitlines()]

        assert responses[0]["error"]["code"] == -32603
        assert responses[1]["id"] == 11

    def test_invalid_request(self, make_dispatcher):
        _, responses = _run(make_dispatcher(), [1, 2], {"jsonrpc": "2.0", "id": 7})

        assert [r["error"]["code"] for r in responses] == [-32600, -32600]

    def test_malformed_call_params(self, make_dispatcher):
        _, responses = _run(make_dispatcher(),
                            {"jsonrpc": "2.0", "id": 8, "method": "tools/call", "params": {"arguments": {}}})

        error = _payload(responses[0])["error"]
        assert error["kind"] == "InvalidArguments"
        assert error["parameter"] == "name"

    def test_session_survives_failed_call(self, make_dispatcher, fake_client):
        fake_client.responses = [remote_error(401), {"voices": []}]
        _, responses = _run(make_dispatcher(), _call(1, "list_voices"), _call(2, "list_voices"))

        assert _payload(responses[0])["error"]["kind"] == "Terminal"
        assert _payload(responses[1]) == {"success": {"voices": []}}

    def test_blank_lines_ignored(self, make_dispatcher):
        _, responses = _run(make_dispatcher(), "", "   ", {"jsonrpc": "2.0", "id": 1, "method": "ping"})
        assert len(responses) == 1

    def test_notifications_get_no_response(self, make_dispatcher):
        _, responses = _run(make_dispatcher(),
                            {"jsonrpc": "2.0", "method": "notifications/initialized"},
                            {"jsonrpc": "2.0", "id": 1, "method": "ping"})
        assert [r["id"] for r in responses] == [1]


class TestLifecycle:
    """Session states and shutdown."""

    def test_end_of_input_drains_and_stops(self, make_dispatcher):
        server, _ = _run(make_dispatcher(), {"jsonrpc": "2.0", "id": 1, "method": "ping"})

        states = [t.to_state for t in server.state_machine.history]
        assert states == [SessionState.SERVING, SessionState.DRAINING, SessionState.STOPPED]
        assert server.state == SessionState.STOPPED

    def test_empty_input_stops(self, make_dispatcher):
        server, responses = _run(make_dispatcher())

        assert responses == []
        assert server.state == SessionState.STOPPED

    def test_shutdown_stops_reading(self, make_dispatcher):
        server, responses = _run(
            make_dispatcher(),
            {"jsonrpc": "2.0", "id": 1, "method": "shutdown"},
            {"jsonrpc": "2.0", "id": 2, "method": "ping"},
        )

        assert [r["id"] for r in responses] == [1]
        assert server.state == SessionState.STOPPED

    def test_exit_notification_stops(self, make_dispatcher):
        _, responses = _run(
            make_dispatcher(),
            {"jsonrpc": "2.0", "method": "exit"},
            {"jsonrpc": "2.0", "id": 2, "method": "ping"},
        )
        assert responses == []

    def test_in_flight_calls_finish_on_end_of_input(self, make_dispatcher, fake_client):
        fake_client.responses = [{"n": 1}, {"n": 2}, {"n": 3}]
        _, responses = _run(make_dispatcher(), _call(1, "list_voices"), _call(2, "list_voices"),
                            _call(3, "list_voices"), max_workers=3)

        assert sorted(r["id"] for r in responses) == [1, 2, 3]
        assert all(r["result"]["isError"] is False for r in responses)

    def test_sequential_mode_preserves_order(self, make_dispatcher):
        _, responses = _run(make_dispatcher(), *[_call(i, "list_voices") for i in range(5)], max_workers=1)

        assert [r["id"] for r in responses] == [0, 1, 2, 3, 4]

    def test_shutdown_cancels_backoff(self, small_catalog, fake_client):
        """A call stuck in a long backoff returns Cancelled once shutdown arrives."""
        fake_client.responses = [remote_error(503)] * 3
        caller = ResilientCaller(RetryConfig(base_delay=30.0, max_delay=30.0, jitter=0.0))
        dispatcher = Dispatcher(small_catalog, PolicyEngine(PolicyConfig(), small_catalog), caller, fake_client)

        reader, writer = _pipe()
        output = io.StringIO()
        server = ToolServer(dispatcher, input_stream=reader, output_stream=output, max_workers=2)
        thread = threading.Thread(target=server.serve)
        thread.start()

        writer.write(json.dumps(_call(1, "list_voices")) + "\n")
        writer.flush()
        while fake_client.call_count == 0:
            threading.Event().wait(0.01)
        writer.write(json.dumps({"jsonrpc": "2.0", "id": 2, "method": "shutdown"}) + "\n")
        writer.flush()
        thread.join(timeout=5)
        writer.close()
        reader.close()

        assert not thread.is_alive()
        responses = {r["id"]: r for r in (json.loads(l) for l in output.getvalue().splitlines())}
        assert responses[2]["result"] == {}
        assert _payload(responses[1])["error"]["kind"] == "Cancelled"
        assert server.state == SessionState.STOPPED

    def test_invalid_worker_count(self, make_dispatcher):
        with pytest.raises(ValueError):
            ToolServer(make_dispatcher(), max_workers=0)


def _pipe():
    import os
    read_fd, write_fd = os.pipe()
    return os.fdopen(read_fd, "r"), os.fdopen(write_fd, "w")
