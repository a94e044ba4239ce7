"""
Dispatcher
----------
Single entry point for running an operation by name.

Checks run cheapest first and fail fast with no remote call:
1. lookup in the catalog          → NotFound
2. policy gate                    → Forbidden (naming the rule and category)
3. schema validation              → InvalidArguments (naming the parameter)
4. handler via the ResilientCaller → Transient / Terminal / Cancelled

The dispatcher holds no per-call state; one instance serves every
concurrent invocation of a session.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
import logging

from elevenlabs_cli.core.errors import ArgumentError, DispatchError, ErrorKind, RemoteError
from elevenlabs_cli.api.retry import Failure, ResilientCaller

from .policy import PolicyEngine
from .registry import OperationCatalog, OperationDescriptor


@dataclass(frozen=True)
class Invocation:
    """One request to run an operation. Arguments are unvalidated."""
    operation_name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_message(cls, message: Any) -> "Invocation":
        """
        Build from a decoded `{"name": ..., "arguments": {...}}` message.

        Raises ArgumentError if the message has the wrong shape.
        """
        if not isinstance(message, dict):
            raise ArgumentError("params", "Request params must be an object")
        name = message.get("name", message.get("operationName"))
        if not isinstance(name, str) or not name:
            raise ArgumentError("name", "Request must name an operation")
        arguments = message.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ArgumentError("arguments", "arguments must be an object")
        return cls(operation_name=name, arguments=arguments)


@dataclass
class DispatchResult:
    """Outcome of one dispatch: either a payload or a DispatchError."""
    operation: str
    payload: Any = None
    error: Optional[DispatchError] = None
    attempts: int = 0
    execution_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None

    def to_message(self) -> Dict[str, Any]:
        """Wire shape: {"success": payload} or {"error": {...}}."""
        if self.error is not None:
            return {"error": self.error.to_dict()}
        return {"success": self.payload}

    def __repr__(self) -> str:
        status = "✓" if self.success else "✗"
        return f"DispatchResult({status} {self.operation}: {self.error or 'ok'})"


class Dispatcher:
    """
    Routes invocations through policy, validation and the retry layer.

    Usage:
        dispatcher = Dispatcher(catalog, policy, caller, client)
        result = dispatcher.dispatch(Invocation("list_voices"))
    """

    def __init__(
        self,
        catalog: OperationCatalog,
        policy: PolicyEngine,
        caller: ResilientCaller,
        client: Any,
    ):
        self.catalog = catalog
        self.policy = policy
        self.caller = caller
        self.client = client
        self._logger = logging.getLogger("elevenlabs.tools.dispatcher")

    def list_operations(self) -> List[Dict[str, Any]]:
        """Listing entries for every operation the policy allows."""
        return [d.to_listing() for d in self.policy.allowed_operations()]

    def dispatch(self, invocation: Invocation) -> DispatchResult:
        start_time = datetime.now(timezone.utc)
        result = self._dispatch(invocation)
        result.execution_time_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

        if result.success:
            self._logger.info(
                f"{invocation.operation_name}: ok in {result.execution_time_ms:.0f}ms "
                f"({result.attempts} attempt{'s' if result.attempts != 1 else ''})"
            )
        else:
            self._logger.info(f"{invocation.operation_name}: {result.error.kind.value}: {result.error.message}")
        return result

    def _dispatch(self, invocation: Invocation) -> DispatchResult:
        name = invocation.operation_name

        descriptor = self.catalog.lookup(name)
        if descriptor is None:
            return self._fail(name, ErrorKind.NOT_FOUND, f"Unknown operation: {name}")

        decision = self.policy.check(name)
        if not decision.allowed:
            return self._fail(
                name,
                ErrorKind.FORBIDDEN,
                decision.reason,
                rule=decision.rule.value,
                category=descriptor.category.value,
            )

        problem = descriptor.schema.validate(invocation.arguments)
        if problem is not None:
            return self._fail(name, ErrorKind.INVALID_ARGUMENTS, problem.message, parameter=problem.parameter)

        args = descriptor.schema.with_defaults(invocation.arguments)
        return self._invoke(descriptor, args)

    def _invoke(self, descriptor: OperationDescriptor, args: Dict[str, Any]) -> DispatchResult:
        name = descriptor.name
        try:
            outcome = self.caller.execute(
                lambda: descriptor.invoke(self.client, args),
                idempotent=descriptor.idempotent,
                label=name,
            )
        except ArgumentError as e:
            return self._fail(name, ErrorKind.INVALID_ARGUMENTS, str(e), parameter=e.parameter)
        except Exception as e:
            # Handler bugs surface as Terminal failures
            self._logger.exception(f"{name}: handler raised {type(e).__name__}")
            return self._fail(name, ErrorKind.TERMINAL, f"Internal error: {e}", attempts=1)

        if isinstance(outcome, Failure):
            return DispatchResult(
                operation=name,
                error=self._from_failure(name, outcome),
                attempts=outcome.attempt,
            )
        return DispatchResult(operation=name, payload=outcome.payload, attempts=outcome.attempts)

    @staticmethod
    def _from_failure(name: str, failure: Failure) -> DispatchError:
        cause: Optional[RemoteError] = failure.cause
        details: Dict[str, Any] = {}
        if cause is not None:
            details["reason"] = cause.reason.name
            if cause.body is not None:
                details["body"] = cause.body
        return DispatchError(
            kind=failure.kind,
            message=failure.message,
            operation=name,
            retryable=failure.retryable,
            attempts=failure.attempt,
            status_code=failure.status_code,
            details=details,
        )

    def _fail(self, name: str, kind: ErrorKind, message: str, attempts: int = 0, **extra) -> DispatchResult:
        error = DispatchError(kind=kind, message=message, operation=name, attempts=attempts, **extra)
        return DispatchResult(operation=name, error=error, attempts=attempts)
