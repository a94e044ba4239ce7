"""
API Client
----------
HTTP client for the ElevenLabs API with error classification.

Rules:
- The API key is sent as the `xi-api-key` header and never logged
- Every failure becomes a RemoteError the retry layer can classify
- No retrying here; that is the ResilientCaller's job
"""

from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional
import logging

import httpx

from elevenlabs_cli import __version__
from elevenlabs_cli.api.rate_limiter import RateLimiter
from elevenlabs_cli.core.errors import RemoteError, RemoteErrorReason

DEFAULT_BASE_URL = "https://api.elevenlabs.io"
DEFAULT_TIMEOUT_SECS = 300.0
DEFAULT_CONNECT_TIMEOUT_SECS = 30.0


@dataclass
class APIConfig:
    """Configuration for the API client."""
    api_key: Optional[str]
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECS
    connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECS
    headers: Dict[str, str] = field(default_factory=dict)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header (delta-seconds or HTTP date) into seconds."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    now = datetime.now(when.tzinfo)
    return max(0.0, (when - now).total_seconds())


def _error_detail(response: httpx.Response) -> tuple[str, Any]:
    """Pull a readable message out of an error response body."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:200], text

    detail = body
    if isinstance(body, dict):
        detail = body.get("detail", body)
        if isinstance(detail, dict):
            detail = detail.get("message") or detail.get("status") or detail
    return str(detail)[:200], body


class ElevenLabsClient:
    """
    Synchronous API client shared by every invocation of a session.

    httpx.Client keeps its own connection pool and is safe to use from
    several threads.
    """

    def __init__(
        self,
        config: APIConfig,
        transport: Optional[httpx.BaseTransport] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.config = config
        self._logger = logging.getLogger("elevenlabs.api.client")
        self._rate_limiter = rate_limiter
        self._http = httpx.Client(
            base_url=config.base_url,
            timeout=httpx.Timeout(
                config.timeout_seconds,
                connect=config.connect_timeout_seconds,
            ),
            headers=self._get_headers(),
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        """Check if an API key is available."""
        return bool(self.config.api_key)

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": f"elevenlabs-cli/{__version__}",
            "Accept": "application/json",
        }
        headers.update(self.config.headers)
        if self.config.api_key:
            headers["xi-api-key"] = self.config.api_key
        return headers

    def get(self, path: str, params: Optional[Dict] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> Any:
        return self.request("POST", path, json=json, **kwargs)

    def patch(self, path: str, json: Optional[Dict] = None) -> Any:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict] = None,
        json: Optional[Dict] = None,
        data: Optional[Dict] = None,
        files: Optional[Any] = None,
        expect_bytes: bool = False,
    ) -> Any:
        """
        Perform one HTTP request.

        Returns decoded JSON (or raw bytes when `expect_bytes`), None for an
        empty body. Raises RemoteError on any failure.
        """
        if not self.is_configured:
            raise RemoteError("API key is required", reason=RemoteErrorReason.MISSING_API_KEY)

        if self._rate_limiter is not None and not self._rate_limiter.acquire():
            raise RemoteError("Local rate limit wait timed out", reason=RemoteErrorReason.CONNECT)

        if params:
            params = {k: v for k, v in params.items() if v is not None}

        self._logger.debug(f"{method} {path}")
        start_time = datetime.now()

        try:
            response = self._http.request(
                method,
                path,
                params=params or None,
                json=json,
                data=data,
                files=files,
            )
        except httpx.ConnectError as e:
            raise RemoteError(f"Network error: {e}", reason=RemoteErrorReason.CONNECT) from e
        except httpx.ConnectTimeout as e:
            # Connect timed out: the request was never sent
            raise RemoteError(f"Connection timed out: {e}", reason=RemoteErrorReason.CONNECT) from e
        except httpx.TimeoutException as e:
            raise RemoteError(f"Request timed out: {e}", reason=RemoteErrorReason.TIMEOUT) from e
        except httpx.TransportError as e:
            raise RemoteError(f"Network error: {e}", reason=RemoteErrorReason.NETWORK) from e

        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
        self._logger.debug(f"{method} {path} -> {response.status_code} ({elapsed_ms:.0f}ms)")

        if not response.is_success:
            detail, body = _error_detail(response)
            raise RemoteError.from_status(
                response.status_code,
                detail=detail,
                retry_after=parse_retry_after(response.headers.get("retry-after")),
                body=body,
            )

        if expect_bytes:
            return response.content

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(
                f"Invalid JSON in response from {path}: {e}",
                reason=RemoteErrorReason.DECODE,
                status_code=response.status_code,
            ) from e

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ElevenLabsClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()
