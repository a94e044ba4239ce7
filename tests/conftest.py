"""
Test Configuration
------------------
Shared fixtures and configuration for all tests.

No test touches the network: remote calls go to a FakeClient or to an
httpx.MockTransport.
"""

import logging
import random
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from elevenlabs_cli.api.client import APIConfig, ElevenLabsClient
from elevenlabs_cli.api.retry import ResilientCaller, RetryConfig
from elevenlabs_cli.core.errors import RemoteError
from elevenlabs_cli.tools.dispatcher import Dispatcher
from elevenlabs_cli.tools.policy import PolicyConfig, PolicyEngine
from elevenlabs_cli.tools.registry import (
    CatalogBuilder, OperationCatalog, OperationCategory, ParameterType, ToolParameter,
)


# =============================================================================
# Test Isolation: Block Side Effects
# =============================================================================

@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Never read the user's real config file or API key."""
    monkeypatch.setenv("ELEVENLABS_CONFIG", str(tmp_path / "config.yaml"))
    monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo configure_logging() so caplog keeps seeing records."""
    yield
    from elevenlabs_cli.infra import logging as app_logging
    root = logging.getLogger(app_logging.ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
    root.setLevel(logging.NOTSET)
    app_logging._logging_initialized = False


# =============================================================================
# Fakes
# =============================================================================

class FakeClient:
    """
    Stands in for ElevenLabsClient.

    `responses` is consumed one item per request: an Exception instance is
    raised, anything else is returned.
    """

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.requests: List[Dict[str, Any]] = []

    def request(self, method: str, path: str, **kwargs) -> Any:
        self.requests.append({"method": method, "path": path, **kwargs})
        if not self.responses:
            return {"ok": True}
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def call_count(self) -> int:
        return len(self.requests)


class RecordingSleeper:
    """Sleeper for ResilientCaller that records delays instead of waiting."""

    def __init__(self, interrupt_after: Optional[int] = None):
        self.delays: List[float] = []
        self._interrupt_after = interrupt_after

    def __call__(self, delay: float) -> bool:
        self.delays.append(delay)
        return self._interrupt_after is not None and len(self.delays) >= self._interrupt_after


class FlakyAction:
    """Raises the given errors in order, then returns `result`."""

    def __init__(self, errors: List[Exception], result: Any = "ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self) -> Any:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def _forward(method: str, path: str) -> Callable:
    def handler(client, args: Dict[str, Any]) -> Any:
        return client.request(method, path.format(**args), json=args or None)
    return handler


def build_small_catalog() -> OperationCatalog:
    text = ToolParameter(name="text", type=ParameterType.STRING, description="Text")
    voice_id = ToolParameter(name="voice_id", type=ParameterType.STRING, description="Voice")
    return (
        CatalogBuilder()
        .add("tts", "Text to speech", OperationCategory.SAFE,
             _forward("POST", "/v1/text-to-speech"), [text])
        .add("stt", "Speech to text", OperationCategory.SAFE,
             _forward("POST", "/v1/speech-to-text"),
             [ToolParameter(name="language", type=ParameterType.STRING,
                            description="Language", required=False, default="en")])
        .add("list_voices", "List voices", OperationCategory.SAFE,
             _forward("GET", "/v1/voices"))
        .add("create_voice", "Create a voice", OperationCategory.ADMIN,
             _forward("POST", "/v1/voices/add"),
             [ToolParameter(name="name", type=ParameterType.STRING, description="Name")],
             idempotent=False)
        .add("delete_voice", "Delete a voice", OperationCategory.DESTRUCTIVE,
             _forward("DELETE", "/v1/voices/{voice_id}"), [voice_id])
        .build()
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def project_root():
    """Return the project root path."""
    return PROJECT_ROOT


@pytest.fixture
def small_catalog() -> OperationCatalog:
    return build_small_catalog()


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def caller(sleeper) -> ResilientCaller:
    """Caller with no jitter and an instant sleeper."""
    return ResilientCaller(
        RetryConfig(base_delay=0.5, max_delay=8.0, jitter=0.0),
        sleeper=sleeper,
        rng=random.Random(0),
    )


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def make_dispatcher(small_catalog, caller, fake_client):
    """Factory: make_dispatcher(PolicyConfig(...)) over the small catalog."""
    def factory(policy_config: Optional[PolicyConfig] = None, catalog: Optional[OperationCatalog] = None) -> Dispatcher:
        catalog = catalog or small_catalog
        return Dispatcher(catalog, PolicyEngine(policy_config or PolicyConfig(), catalog), caller, fake_client)
    return factory


@pytest.fixture
def make_http_client():
    """Factory: make_http_client(handler) -> ElevenLabsClient over a MockTransport."""
    clients = []

    def factory(handler: Callable[[httpx.Request], httpx.Response], api_key: Optional[str] = "test-key") -> ElevenLabsClient:
        client = ElevenLabsClient(APIConfig(api_key=api_key), transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


def remote_error(status: int, retry_after: Optional[float] = None) -> RemoteError:
    return RemoteError.from_status(status, detail="test", retry_after=retry_after)
