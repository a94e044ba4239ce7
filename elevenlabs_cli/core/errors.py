"""
Error Handling Module
---------------------
Typed errors with classification for dispatch and remote calls.

Taxonomy (what a caller of the dispatcher can see):
- NOT_FOUND: operation absent from the catalog
- FORBIDDEN: operation excluded by policy
- INVALID_ARGUMENTS: schema violation or malformed request
- TRANSIENT: retryable remote failure that exhausted its retry budget
- TERMINAL: non-retryable remote failure
- CANCELLED: session shutdown interrupted the call
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Optional
import logging


class ErrorKind(str, Enum):
    """Kinds of dispatch failure surfaced to callers."""
    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"
    INVALID_ARGUMENTS = "InvalidArguments"
    TRANSIENT = "Transient"
    TERMINAL = "Terminal"
    CANCELLED = "Cancelled"


class RemoteErrorReason(Enum):
    """Why a remote call failed."""
    HTTP_STATUS = auto()      # Server answered with a non-2xx status
    CONNECT = auto()          # Connection never established, nothing was sent
    TIMEOUT = auto()          # Request may or may not have reached the server
    NETWORK = auto()          # Connection reset / protocol failure mid-request
    DECODE = auto()           # 2xx response with an unparseable body
    MISSING_API_KEY = auto()  # No credential, request not attempted
    LOCAL_IO = auto()         # Reading or writing a local file failed


class RemoteError(Exception):
    """
    Failure of a single call to the remote service.

    Carries enough information for the retry layer to classify it without
    knowing which operation produced it.
    """

    def __init__(
        self,
        message: str,
        reason: RemoteErrorReason = RemoteErrorReason.HTTP_STATUS,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        body: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.status_code = status_code
        self.retry_after = retry_after
        self.body = body

    @classmethod
    def from_status(
        cls,
        status_code: int,
        detail: str = "",
        retry_after: Optional[float] = None,
        body: Optional[Any] = None,
    ) -> "RemoteError":
        """Build an error for a non-2xx HTTP response."""
        if status_code == 401:
            message = "Invalid API key"
        elif status_code == 403:
            message = f"Permission denied: {detail}" if detail else "Permission denied"
        elif status_code == 404:
            message = f"Not found: {detail}" if detail else "Not found"
        elif status_code == 429:
            message = "Rate limited"
        elif status_code >= 500:
            message = f"Server error {status_code}: {detail}"
        else:
            message = f"HTTP {status_code}: {detail}"
        return cls(
            message.rstrip(": "),
            reason=RemoteErrorReason.HTTP_STATUS,
            status_code=status_code,
            retry_after=retry_after,
            body=body,
        )

    def __repr__(self) -> str:
        return f"RemoteError({self.reason.name}, status={self.status_code}: {self.message})"


class ArgumentError(ValueError):
    """Arguments passed the schema but are still unusable (raised by handlers)."""

    def __init__(self, parameter: str, message: str):
        self.parameter = parameter
        super().__init__(message)


class CatalogError(Exception):
    """Raised when the operation catalog cannot be built."""


class DuplicateOperationError(CatalogError):
    """Two operations registered under the same name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate operation name: {name}")


@dataclass
class DispatchError:
    """
    Structured failure returned by the dispatcher.

    Decorates the underlying cause rather than replacing it: `retryable`
    and `attempts` come straight from the retry layer.
    """
    kind: ErrorKind
    message: str
    operation: str = ""
    retryable: bool = False
    attempts: int = 0
    rule: Optional[str] = None        # Policy rule that denied the call
    category: Optional[str] = None    # Category of a denied operation
    parameter: Optional[str] = None   # Offending parameter
    status_code: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the wire, dropping empty fields."""
        data: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.operation:
            data["operation"] = self.operation
        if self.kind in (ErrorKind.TRANSIENT, ErrorKind.TERMINAL, ErrorKind.CANCELLED):
            data["retryable"] = self.retryable
            data["attempts"] = self.attempts
        for key in ("rule", "category", "parameter", "status_code"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.details:
            data["details"] = self.details
        return data

    def __repr__(self) -> str:
        return f"DispatchError({self.kind.value}: {self.message})"


class ErrorHandler:
    """
    Turns dispatch failures into guidance for people at a terminal.
    """

    API_KEYS_URL = "https://elevenlabs.io/app/settings/api-keys"

    def __init__(self):
        self._logger = logging.getLogger("elevenlabs.errors")

    def handle(self, error: DispatchError) -> str:
        """Log the error and return a user-friendly message."""
        level = logging.WARNING if error.kind in (
            ErrorKind.NOT_FOUND, ErrorKind.FORBIDDEN, ErrorKind.INVALID_ARGUMENTS
        ) else logging.ERROR
        self._logger.log(level, f"{error.kind.value}: {error.message}")
        return self.user_message(error)

    def user_message(self, error: DispatchError) -> str:
        """Generate a user-friendly error message."""
        status = error.status_code
        if error.details.get("reason") == RemoteErrorReason.MISSING_API_KEY.name:
            return (
                "API key is required.\n"
                "Set ELEVENLABS_API_KEY, pass --api-key, or run "
                "'elevenlabs config set api_key <key>'.\n"
                f"Get a key from: {self.API_KEYS_URL}"
            )
        if status == 401:
            return (
                "Invalid API key. Your key may be invalid or expired.\n"
                f"Get a new key from: {self.API_KEYS_URL}"
            )
        if status == 403:
            return (
                "Permission denied. Your API key doesn't have permission for this feature.\n"
                "Check your subscription tier at: https://elevenlabs.io/app/settings"
            )
        if status == 404:
            return "Resource not found. It doesn't exist or has been deleted."
        if status == 429:
            return "Rate limited. Too many requests, please wait a moment and try again."
        if error.kind == ErrorKind.TRANSIENT and status is None:
            return (
                "Network error. Could not connect to the ElevenLabs API.\n"
                "Check your internet connection and try again."
            )
        if error.kind == ErrorKind.CANCELLED:
            return "Cancelled."
        return error.message
