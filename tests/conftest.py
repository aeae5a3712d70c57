"""
Shared pytest fixtures and configuration for all tests.
"""
import json
import os
from typing import Any, Callable, Optional

import httpx
import pytest

# Hypothesis configuration for property-based testing
from hypothesis import settings, Verbosity, Phase

from resilient_data_client.config.settings import ClientSettings, Environment

# Configure Hypothesis profiles for different environments
# Default profile: balanced for local development
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,  # Disable deadline for async tests
    print_blob=True,  # Print failing examples for debugging
)

# CI profile: more thorough testing for continuous integration
settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,  # Reproducible results in CI
)

# Debug profile: minimal examples for quick debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],  # Skip shrinking for speed
)

# Fast profile: quick smoke tests
settings.register_profile(
    "fast",
    max_examples=20,
    verbosity=Verbosity.normal,
    deadline=None,
)

# Load profile from environment variable HYPOTHESIS_PROFILE, default to "default"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


PRIMARY_URL = "http://primary.test/api"
SECONDARY_URL = "http://secondary.test"
SECONDARY_KEY = "anon-key"


class FakeClock:
    """Manually advanced monotonic clock for cache expiry tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport:
    """
    Collects requests and answers them from a handler.

    Wraps `httpx.MockTransport` so tests can count network attempts and
    inspect the headers of each one.
    """

    def __init__(self, handler: Callable[[httpx.Request], Any]):
        self.requests: list[httpx.Request] = []
        self._handler = handler
        self.transport = httpx.MockTransport(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        result = self._handler(request)
        if hasattr(result, "__await__"):
            result = await result
        return result

    @property
    def calls(self) -> int:
        return len(self.requests)


def envelope_response(
    data: Any = None,
    status_code: int = 200,
    success: bool = True,
    error: Optional[dict] = None,
) -> httpx.Response:
    """Build a primary-backend response with an envelope body."""
    body: dict[str, Any] = {"success": success, "timestamp": "2024-01-15T10:30:00Z"}
    if success:
        body["data"] = data
    else:
        body["error"] = error or {"message": "Request failed"}
    return httpx.Response(status_code, json=body)


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    """Build a raw JSON response (secondary backend style)."""
    return httpx.Response(
        status_code,
        content=json.dumps(payload).encode(),
        headers={"Content-Type": "application/json"},
    )


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path):
    """Keep tests independent of the developer's environment and files."""
    for name in (
        "ENVIRONMENT",
        "API_BASE_URL",
        "SECONDARY_URL",
        "SECONDARY_API_KEY",
        "USE_SECONDARY",
        "TOKEN_STORAGE_TYPE",
        "TOKEN_STORAGE_PATH",
        "REDIS_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_recorder() -> Callable[[Callable[[httpx.Request], Any]], RecordingTransport]:
    """Factory for request-recording mock transports."""
    return RecordingTransport


@pytest.fixture
def envelope_body() -> Callable[..., httpx.Response]:
    """Factory for primary-backend envelope responses."""
    return envelope_response


@pytest.fixture
def raw_json() -> Callable[..., httpx.Response]:
    """Factory for raw JSON responses."""
    return json_response


@pytest.fixture
def client_settings(tmp_path) -> ClientSettings:
    """Settings for the primary backend with fast retries and in-memory tokens."""
    return ClientSettings(
        environment=Environment.DEVELOPMENT,
        api_base_url=PRIMARY_URL,
        request_timeout_seconds=0.5,
        cache_ttl_seconds=30.0,
        max_retries=3,
        retry_initial_delay_seconds=0.001,
        token_storage_type="memory",
        token_storage_path=tmp_path / "tokens.json",
    )


@pytest.fixture
def secondary_settings(client_settings) -> ClientSettings:
    """Settings with the secondary backend configured and selected."""
    return client_settings.model_copy(update={
        "secondary_url": SECONDARY_URL,
        "secondary_api_key": SECONDARY_KEY,
        "use_secondary": True,
    })


@pytest.fixture
def sample_article() -> dict:
    """Sample article as returned by the primary backend."""
    return {
        "id": "a1",
        "title": "Harbour Expansion Approved",
        "slug": "harbour-expansion-approved",
        "status": "PUBLISHED",
        "category": {"id": "c1", "name": "Local"},
        "author": {"id": "u1", "name": "Ama Mensah"},
        "tags": [{"id": "t1", "name": "infrastructure"}],
    }
