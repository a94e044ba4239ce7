# Core module - error taxonomy and session lifecycle
# Every failure that reaches a caller is one of the ErrorKind values

from .errors import (
    ErrorKind, RemoteError, RemoteErrorReason, DispatchError, ErrorHandler,
    CatalogError, DuplicateOperationError, ArgumentError,
)
from .state_machine import SessionStateMachine, SessionState, StateTransition

__all__ = [
    "ErrorKind", "RemoteError", "RemoteErrorReason", "DispatchError", "ErrorHandler",
    "CatalogError", "DuplicateOperationError", "ArgumentError",
    "SessionStateMachine", "SessionState", "StateTransition",
]
