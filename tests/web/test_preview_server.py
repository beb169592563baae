"""
Tests for the reference preview server.

Covers the ownership arbiter, the FastAPI endpoints, and an end-to-end
contention scenario with two coordinators sharing one display.
"""

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from signpreview.core import PreviewSessionConfig, PreviewSessionCoordinator, SessionState
from signpreview.network import PreviewConflictError, PreviewSessionLostError, PreviewTransport
from signpreview.web import PreviewArbiter, create_app
from signpreview.web.preview_server import (
    NoPreviewSessionError,
    NotPreviewOwnerError,
    PreviewArbiterError,
    PreviewBusyError,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ArbiterTransport(PreviewTransport):
    """In-process transport talking straight to an arbiter."""

    def __init__(self, arbiter: PreviewArbiter):
        self.arbiter = arbiter

    async def start(self, payload):
        try:
            return self.arbiter.start(payload)
        except PreviewBusyError as e:
            raise PreviewConflictError(str(e)) from e

    async def update(self, session_id, payload):
        try:
            self.arbiter.update(session_id, payload)
        except PreviewArbiterError as e:
            raise PreviewSessionLostError(str(e)) from e

    async def ping(self, session_id):
        try:
            self.arbiter.ping(session_id)
        except PreviewArbiterError as e:
            raise PreviewSessionLostError(str(e)) from e

    async def check_ownership(self, session_id):
        return self.arbiter.is_owner(session_id)

    async def stop(self, session_id):
        try:
            self.arbiter.stop(session_id)
        except NoPreviewSessionError:
            pass

    async def is_active(self):
        return self.arbiter.active


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def arbiter(clock):
    return PreviewArbiter(session_timeout_seconds=5.0, clock=clock)


@pytest.fixture
def client(arbiter):
    return TestClient(create_app(arbiter=arbiter))


# =============================================================================
# Arbiter Tests
# =============================================================================


class TestPreviewArbiter:
    """Test server-side ownership and expiry."""

    def test_start_and_owner(self, arbiter, text_payload):
        session_id = arbiter.start(text_payload)

        assert arbiter.active
        assert arbiter.is_owner(session_id)
        assert not arbiter.is_owner("someone-else")
        assert arbiter.current_item == text_payload

    def test_second_start_busy(self, arbiter, text_payload):
        arbiter.start(text_payload)
        with pytest.raises(PreviewBusyError):
            arbiter.start(text_payload)

    def test_session_expires_after_timeout(self, arbiter, clock, text_payload):
        session_id = arbiter.start(text_payload)

        clock.advance(5.0)
        assert arbiter.active

        clock.advance(0.1)
        assert not arbiter.active
        assert not arbiter.is_owner(session_id)
        assert arbiter.current_item is None

    def test_ping_extends_session(self, arbiter, clock, text_payload):
        session_id = arbiter.start(text_payload)

        for _ in range(5):
            clock.advance(4.0)
            arbiter.ping(session_id)

        assert arbiter.is_owner(session_id)
        assert arbiter.seconds_remaining() == 5.0

    def test_takeover_after_expiry(self, arbiter, clock, text_payload, other_text_payload):
        first = arbiter.start(text_payload)
        clock.advance(6.0)

        second = arbiter.start(other_text_payload)

        assert second != first
        with pytest.raises(NotPreviewOwnerError):
            arbiter.update(first, text_payload)

    def test_update_without_session(self, arbiter, text_payload):
        with pytest.raises(NoPreviewSessionError):
            arbiter.update("abc", text_payload)

    def test_stop(self, arbiter, text_payload):
        session_id = arbiter.start(text_payload)
        arbiter.stop(session_id)

        assert not arbiter.active
        assert arbiter.seconds_remaining() is None


# =============================================================================
# API Endpoint Tests
# =============================================================================


class TestPreviewEndpoints:
    """Test the HTTP API."""

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_start_and_status(self, client, text_payload):
        response = client.post("/api/preview", json={"item": text_payload.to_dict()})

        assert response.status_code == 200
        assert response.json()["session_id"]

        status = client.get("/api/preview/status").json()
        assert status["active"] is True
        assert status["expires_in"] == 5.0

    def test_start_conflict(self, client, text_payload):
        client.post("/api/preview", json={"item": text_payload.to_dict()})

        response = client.post("/api/preview", json={"item": text_payload.to_dict()})

        assert response.status_code == 403

    def test_invalid_item(self, client):
        response = client.post("/api/preview", json={"item": {"content": {"type": "Text", "data": {}}}})
        assert response.status_code == 422

    def test_update_and_current(self, client, text_payload, other_text_payload):
        session_id = client.post("/api/preview", json={"item": text_payload.to_dict()}).json()["session_id"]

        response = client.put("/api/preview", json={"item": other_text_payload.to_dict(), "session_id": session_id})

        assert response.status_code == 200
        assert response.json()["item"] == other_text_payload.to_dict()
        current = client.get("/api/preview/current").json()["item"]
        assert current["content"]["data"]["text"] == "World"

    def test_update_wrong_session(self, client, text_payload):
        client.post("/api/preview", json={"item": text_payload.to_dict()})

        response = client.put("/api/preview", json={"item": text_payload.to_dict(), "session_id": "intruder"})

        assert response.status_code == 403

    def test_update_without_session(self, client, text_payload):
        response = client.put("/api/preview", json={"item": text_payload.to_dict(), "session_id": "abc"})
        assert response.status_code == 404

    def test_ping_and_ownership(self, client, text_payload):
        session_id = client.post("/api/preview", json={"item": text_payload.to_dict()}).json()["session_id"]

        assert client.post("/api/preview/ping", json={"session_id": session_id}).json() == {"status": "ok"}
        assert client.post("/api/preview/ownership", json={"session_id": session_id}).json() == {"is_owner": True}
        assert client.post("/api/preview/ownership", json={"session_id": "x"}).json() == {"is_owner": False}

    def test_stop(self, client, text_payload):
        session_id = client.post("/api/preview", json={"item": text_payload.to_dict()}).json()["session_id"]

        response = client.request("DELETE", "/api/preview", json={"session_id": session_id})

        assert response.status_code == 200
        assert client.get("/api/preview/status").json() == {"active": False, "expires_in": None}
        assert client.get("/api/preview/current").json() == {"item": None}

    def test_expired_session_rejected(self, client, clock, text_payload):
        session_id = client.post("/api/preview", json={"item": text_payload.to_dict()}).json()["session_id"]
        clock.advance(10.0)

        response = client.post("/api/preview/ping", json={"session_id": session_id})

        assert response.status_code == 404


# =============================================================================
# Contention Integration Tests
# =============================================================================


class TestTwoEditorsContention:
    """Two coordinators (two browser tabs) competing for one display."""

    @pytest.fixture
    def slow_config(self):
        return PreviewSessionConfig(ping_interval_seconds=0.5, server_session_timeout_seconds=1.0, debounce_seconds=0.05)

    @pytest.mark.asyncio
    async def test_second_coordinator_conflicts(self, arbiter, slow_config, text_payload):
        first = PreviewSessionCoordinator(ArbiterTransport(arbiter), slow_config)
        second = PreviewSessionCoordinator(ArbiterTransport(arbiter), slow_config)

        assert (await first.ensure_started(text_payload)).success
        result = await second.ensure_started(text_payload)

        assert isinstance(result.error, PreviewConflictError)
        assert second.state == SessionState.INACTIVE
        await first.shutdown()

    @pytest.mark.asyncio
    async def test_takeover_expires_previous_owner(self, arbiter, clock, slow_config, text_payload, other_text_payload):
        first = PreviewSessionCoordinator(ArbiterTransport(arbiter), slow_config)
        second = PreviewSessionCoordinator(ArbiterTransport(arbiter), slow_config)
        expired = []
        first.add_expired_listener(lambda: expired.append(True))

        await first.ensure_started(text_payload)
        clock.advance(6.0)
        assert (await second.ensure_started(other_text_payload)).success

        result = await first.update(text_payload)

        assert not result.success
        assert first.state == SessionState.EXPIRED
        assert expired == [True]
        assert arbiter.current_item == other_text_payload
        await second.shutdown()

    @pytest.mark.asyncio
    async def test_foreground_detects_takeover(self, arbiter, clock, slow_config, text_payload):
        first = PreviewSessionCoordinator(ArbiterTransport(arbiter), slow_config)
        second = PreviewSessionCoordinator(ArbiterTransport(arbiter), slow_config)

        await first.ensure_started(text_payload)
        first.notify_background()
        clock.advance(6.0)
        await second.ensure_started(text_payload)

        assert not await first.notify_foreground()
        assert first.state == SessionState.EXPIRED
        await second.shutdown()

    @pytest.mark.asyncio
    async def test_stop_frees_display(self, arbiter, slow_config, text_payload):
        first = PreviewSessionCoordinator(ArbiterTransport(arbiter), slow_config)
        second = PreviewSessionCoordinator(ArbiterTransport(arbiter), slow_config)

        await first.ensure_started(text_payload)
        await first.shutdown()

        assert (await second.ensure_started(text_payload)).success
        await second.shutdown()
        assert not arbiter.active
