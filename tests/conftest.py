"""
Shared fixtures.

Every test gets a clean environment and an empty trace context. Tests
that need a configured SDK use ``hub`` (real delivery pipeline against an
httpx MockTransport) or ``captured`` (enqueued payloads collected in a list
instead of being sent).
"""

import threading
from typing import List

import httpx
import pytest

from sentrylite.core.hub import Hub, set_hub
from sentrylite.tracing.context import clear

DSN = "https://pk123@example.ingest.sentry.io/42"

SENTRY_ENV_VARS = (
    "SENTRY_DSN",
    "SENTRY_RELEASE",
    "SENTRY_ENVIRONMENT",
    "SENTRY_DEBUG",
    "SENTRY_DRY_MODE",
    "SENTRY_TRACES_SAMPLE_RATE",
    "SENTRY_MAX_QUEUE_SIZE",
    "SENTRY_SHUTDOWN_TIMEOUT",
    "SENTRY_HTTP_TIMEOUT",
)


class RecordingBackend:
    """httpx MockTransport handler that records every request."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.headers = {}
        self.fail = False
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        if self.fail:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(self.status_code, headers=self.headers, text='{"id": "ok"}')


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in SENTRY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    clear()
    yield
    clear()


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def http_client(backend):
    client = httpx.Client(transport=httpx.MockTransport(backend))
    yield client
    client.close()


@pytest.fixture
def hub(http_client):
    """A fresh, not yet initialized hub installed as the process hub."""
    hub = Hub(client=http_client, server_name="test-host")
    previous = set_hub(hub)
    yield hub
    hub.shutdown(timeout=2.0)
    set_hub(previous)


@pytest.fixture
def captured(hub):
    """Initialize the hub and collect enqueued payloads instead of sending them."""
    hub.init(DSN, release="app@1.0.0", traces_sample_rate=1.0, install_atexit=False)
    payloads = []

    def submit(payload):
        payloads.append(payload)
        return True

    hub.worker.submit = submit
    return payloads
