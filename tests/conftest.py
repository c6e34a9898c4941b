"""
Test configuration and fixtures for wave-cli tests.

Provides shared fixtures for:
- Sample build context directories
- Build status payloads
- Fast retry and poll configurations
- Stubbed Wave service transports
- Environment variable isolation
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List

import httpx
import pytest

from wave_cli.config import ClientConfig, PollConfig, RetryConfig

WAVE_TEST_ENDPOINT = "https://wave.test"


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """Remove Wave and platform settings inherited from the host environment."""
    for name in (
        "WAVE_ENDPOINT",
        "WAVE_LOG_LEVEL",
        "WAVE_POLL_INTERVAL",
        "WAVE_RETRY_DELAY",
        "WAVE_RETRY_JITTER",
        "WAVE_RETRY_MAX_ATTEMPTS",
        "WAVE_RETRY_MAX_DELAY",
        "TOWER_ACCESS_TOKEN",
        "TOWER_API_ENDPOINT",
        "TOWER_WORKSPACE_ID",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def context_dir(tmp_path: Path) -> Path:
    """Provide a small build context.

    Layout::

        a.txt
        b.log
        sub/c.log
    """
    root = tmp_path / "context"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("hello\n")
    (root / "b.log").write_text("log line\n")
    (root / "sub" / "c.log").write_text("nested log\n")
    return root


@pytest.fixture
def status_payload() -> Callable[..., Dict[str, Any]]:
    """Provide a factory for build status payloads as sent by the service."""

    def factory(status: str = "PENDING", **extra: Any) -> Dict[str, Any]:
        payload = {"id": "bd-1234_1", "status": status}
        payload.update(extra)
        return payload

    return factory


@pytest.fixture
def fast_retry() -> RetryConfig:
    """Provide a retry configuration without backoff delays."""
    return RetryConfig(initial_delay=0.0, max_delay=0.0, max_attempts=3, jitter=0.0)


@pytest.fixture
def fast_poll() -> PollConfig:
    """Provide a poll configuration with a tiny interval."""
    return PollConfig(interval=0.01, timeout=5.0)


@pytest.fixture
def client_config(fast_retry, fast_poll) -> ClientConfig:
    """Provide a client configuration pointing at the stub service."""
    return ClientConfig(endpoint=WAVE_TEST_ENDPOINT, retry=fast_retry, poll=fast_poll)


@pytest.fixture
def recorded_requests() -> List[httpx.Request]:
    """Collect requests received by a stub transport."""
    return []


@pytest.fixture
def stub_transport(recorded_requests) -> Callable[..., httpx.MockTransport]:
    """Provide a factory building a transport that replays canned responses.

    Each response is either an ``httpx.Response``, a ``(status, body)`` tuple
    (dict bodies are sent as JSON) or an exception to raise. The last entry is
    repeated once the list is exhausted.
    """

    def factory(*responses: Any) -> httpx.MockTransport:
        queue = list(responses)

        def handler(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            item = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(item, Exception):
                raise item
            if isinstance(item, httpx.Response):
                return item
            status, body = item
            if isinstance(body, (dict, list)):
                return httpx.Response(status, content=json.dumps(body).encode())
            return httpx.Response(status, text=body)

        return httpx.MockTransport(handler)

    return factory
