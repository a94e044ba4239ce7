"""
Tool Server
-----------
Serves the operation catalog to agent clients over stdio.

Protocol: line-delimited JSON-RPC 2.0 (the MCP stdio convention).
- initialize  → protocol version, tool capability, server info
- tools/list  → allowed operations with their input schemas
- tools/call  → dispatch; result text is {"success": ...} or {"error": {...}}
- ping        → {}
- shutdown    → acknowledged, then in-flight retries are cancelled and drained
- notifications (no id) never get a response; `exit` stops the session

Scheduling: tools/call requests run on a thread pool and may complete out
of order; every response carries its request id and is written as one
whole line under a lock. max_workers=1 gives strictly sequential,
in-order processing.

Lifecycle: IDLE → SERVING → DRAINING → STOPPED. End of input drains
gracefully (in-flight calls finish); an explicit shutdown or a signal
also cancels pending backoff waits so draining is prompt.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, IO, Optional
import json
import signal
import sys
import threading

from elevenlabs_cli import __version__
from elevenlabs_cli.core.errors import ArgumentError, DispatchError, ErrorKind
from elevenlabs_cli.core.state_machine import SessionState, SessionStateMachine
from elevenlabs_cli.tools.dispatcher import Dispatcher, DispatchResult, Invocation

from .logging import RequestContext, get_logger

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "elevenlabs"

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


def _rpc_error(request_id: Any, code: int, message: str, data: Optional[Dict] = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


def _rpc_result(request_id: Any, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def tool_result(result: DispatchResult) -> Dict[str, Any]:
    """MCP tools/call result body for a dispatch outcome."""
    return {
        "content": [{"type": "text", "text": json.dumps(result.to_message(), indent=2, default=str)}],
        "isError": not result.success,
    }


class ToolServer:
    """
    One tool-server session.

    Usage:
        server = ToolServer(dispatcher, max_workers=4)
        server.serve()  # returns when input closes or shutdown is requested
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        input_stream: Optional[IO] = None,
        output_stream: Optional[IO[str]] = None,
        max_workers: int = 4,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.dispatcher = dispatcher
        self.max_workers = max_workers
        # Lines read as bytes are decoded one at a time in serve()
        self._input = input_stream if input_stream is not None else sys.stdin.buffer
        self._output = output_stream if output_stream is not None else sys.stdout
        self._machine = SessionStateMachine()
        self._write_lock = threading.Lock()
        self._stop_requested = threading.Event()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._logger = get_logger("server")

        self.stats = {"requests": 0, "calls": 0, "call_errors": 0}
        self._stats_lock = threading.Lock()

    @property
    def state(self) -> SessionState:
        return self._machine.state

    @property
    def state_machine(self) -> SessionStateMachine:
        return self._machine

    # Lifecycle

    def serve(self) -> None:
        """Read and handle requests until input closes or a stop is requested."""
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="dispatch")
        self._logger.info(
            f"Tool server started: {len(self.dispatcher.policy.allowed_names)} operations, "
            f"max_workers={self.max_workers}"
        )
        reason = "end of input"
        try:
            while not self._stop_requested.is_set():
                raw = self._input.readline()
                if not raw:
                    break
                self._machine.advance(SessionState.SERVING, "first request")
                if isinstance(raw, bytes):
                    try:
                        raw = raw.decode("utf-8")
                    except UnicodeDecodeError as e:
                        self._logger.warning(f"Undecodable request line: {e}")
                        with self._stats_lock:
                            self.stats["requests"] += 1
                        self._send(_rpc_error(
                            None, PARSE_ERROR, "Parse error: request is not valid UTF-8",
                            self._invalid(f"Request is not valid UTF-8: {e}"),
                        ))
                        continue
                line = raw.strip()
                if not line:
                    continue
                try:
                    self.handle_line(line)
                except Exception as e:
                    # A failure in one request must not end the session
                    self._logger.exception(f"Unhandled error while handling request: {e}")
                    self._send(_rpc_error(None, INTERNAL_ERROR, f"Internal error: {e}"))
            else:
                reason = "shutdown requested"
        except KeyboardInterrupt:
            reason = "interrupted"
            self.dispatcher.caller.cancel()
        finally:
            self._drain(reason)

    def request_stop(self, cancel: bool = True) -> None:
        """Stop accepting requests; optionally cancel pending retry waits."""
        self._stop_requested.set()
        if cancel:
            self.dispatcher.caller.cancel()

    def _drain(self, reason: str) -> None:
        self._machine.advance(SessionState.DRAINING, reason)
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        self._machine.advance(SessionState.STOPPED, "in-flight calls completed")
        self._logger.info(f"Tool server stopped ({reason}): {self.stats}")

    def install_signal_handlers(self) -> None:
        """Treat SIGTERM like Ctrl+C. Only possible from the main thread."""
        if threading.current_thread() is not threading.main_thread():
            return
        signal.signal(signal.SIGTERM, signal.default_int_handler)

    # Request handling

    def handle_line(self, line: str) -> None:
        with self._stats_lock:
            self.stats["requests"] += 1
        try:
            request = json.loads(line)
        except (ValueError, RecursionError) as e:
            # RecursionError: nesting too deep for the decoder
            self._logger.warning(f"Unparseable request: {e}")
            self._send(_rpc_error(None, PARSE_ERROR, f"Parse error: {e}", self._invalid(str(e))))
            return

        if not isinstance(request, dict) or not isinstance(request.get("method"), str):
            self._send(_rpc_error(
                request.get("id") if isinstance(request, dict) else None,
                INVALID_REQUEST,
                "Invalid request",
                self._invalid("Request must be an object with a string 'method'"),
            ))
            return

        method = request["method"]
        params = request.get("params") or {}

        # Notifications do not include an id and must not receive responses
        if "id" not in request:
            self._handle_notification(method)
            return

        request_id = request["id"]
        if method == "tools/call":
            if not self._machine.accepting:
                self._send(self._call_response(request_id, DispatchResult(
                    operation=str(params.get("name", "")) if isinstance(params, dict) else "",
                    error=DispatchError(ErrorKind.CANCELLED, "Server is shutting down"),
                )))
                return
            self._executor.submit(self._run_call, request_id, params)
            return

        self._send(self._handle_method(request_id, method))

    def _handle_notification(self, method: str) -> None:
        if method == "exit":
            self._logger.info("Exit notification received")
            self.request_stop(cancel=True)
        else:
            self._logger.debug(f"Ignoring notification: {method}")

    def _handle_method(self, request_id: Any, method: str) -> Dict[str, Any]:
        if method == "initialize":
            return _rpc_result(request_id, {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": SERVER_NAME, "version": __version__},
            })
        if method == "tools/list":
            return _rpc_result(request_id, {"tools": self.dispatcher.list_operations()})
        if method == "ping":
            return _rpc_result(request_id, {})
        if method == "shutdown":
            self._logger.info("Shutdown requested by client")
            self.request_stop(cancel=True)
            return _rpc_result(request_id, {})
        return _rpc_error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

    def _run_call(self, request_id: Any, params: Any) -> None:
        with RequestContext():
            try:
                try:
                    invocation = Invocation.from_message(params)
                except ArgumentError as e:
                    result = DispatchResult(
                        operation="",
                        error=DispatchError(ErrorKind.INVALID_ARGUMENTS, str(e), parameter=e.parameter),
                    )
                else:
                    result = self.dispatcher.dispatch(invocation)
                response = self._call_response(request_id, result)
            except Exception as e:
                self._logger.exception(f"Internal error handling request {request_id}")
                response = _rpc_error(request_id, INTERNAL_ERROR, f"Internal error: {e}")
            self._send(response)

    def _call_response(self, request_id: Any, result: DispatchResult) -> Dict[str, Any]:
        with self._stats_lock:
            self.stats["calls"] += 1
            if not result.success:
                self.stats["call_errors"] += 1
        return _rpc_result(request_id, tool_result(result))

    @staticmethod
    def _invalid(message: str) -> Dict[str, Any]:
        return {"error": DispatchError(ErrorKind.INVALID_ARGUMENTS, message).to_dict()}

    def _send(self, response: Dict[str, Any]) -> None:
        line = json.dumps(response, default=str)
        with self._write_lock:
            self._output.write(line + "\n")
            self._output.flush()
