# pylint: disable=missing-module-docstring,missing-function-docstring

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

from fastapi.testclient import TestClient

from config import AppConfig
from hud.events import ConnectionChanged, HudEventType
from hud.state import HudStore
from server.app import create_app
from session.connection_status import SessionState
from session.errors import CaptureError, HandshakeError, SessionStateError


class FakeProtocol:
    """Stands in for SessionProtocol; no devices, no network."""

    def __init__(self, hud: HudStore, *, error: Exception | None = None) -> None:
        self.hud = hud
        self.error = error
        self.state = SessionState.DISCONNECTED
        self.last_error: str | None = None
        self.credentials: list[str] = []
        self.close_reasons: list[str] = []

    async def connect(self, credential: str) -> Any:
        if self.state is not SessionState.DISCONNECTED:
            raise SessionStateError("busy")
        self.credentials.append(credential)
        if self.error is not None:
            self.last_error = str(self.error)
            raise self.error
        self.state = SessionState.OPEN
        self._connection(True)
        return SimpleNamespace(session_id="sess_test")

    async def close(self, reason: str = "local_close") -> None:
        self.close_reasons.append(reason)
        if self.state is SessionState.OPEN:
            self.state = SessionState.DISCONNECTED
            self._connection(False)

    def _connection(self, up: bool) -> None:
        self.hud.apply(
            ConnectionChanged(
                event_type=HudEventType.CONNECTION_CHANGED,
                is_connected=up,
                is_listening=up,
            )
        )


def _client(*, api_key: str | None = "k", error: Exception | None = None) -> tuple[TestClient, FakeProtocol]:
    hud = HudStore()
    protocol = FakeProtocol(hud, error=error)
    app = create_app(
        AppConfig(api_key=api_key),
        hud=hud,
        protocol=protocol,  # type: ignore[arg-type]
    )
    return TestClient(app), protocol


def test_health():
    client, _ = _client()
    with client:
        assert client.get("/health").json() == {"status": "ok"}


def test_connect_then_close():
    client, protocol = _client(api_key="the-key")
    with client:
        resp = client.post("/session/connect")
        assert resp.status_code == 200
        assert resp.json() == {"sessionId": "sess_test", "state": "OPEN"}
        assert protocol.credentials == ["the-key"]

        hud = client.get("/hud").json()
        assert hud["isConnected"] is True
        assert hud["session"] == {"state": "OPEN", "lastError": None}

        assert client.post("/session/close").json() == {"state": "DISCONNECTED"}
        assert client.get("/hud").json()["isConnected"] is False


def test_connect_twice_conflicts():
    client, _ = _client()
    with client:
        client.post("/session/connect")
        assert client.post("/session/connect").status_code == 409


def test_missing_credential_is_bad_request():
    client, protocol = _client(api_key=None)
    with client:
        assert client.post("/session/connect").status_code == 400
        assert protocol.credentials == []


def test_capture_and_handshake_failures_are_unavailable():
    for error in (CaptureError("no mic"), HandshakeError("timeout")):
        client, _ = _client(error=error)
        with client:
            resp = client.post("/session/connect")
            assert resp.status_code == 503
            assert type(error).__name__ in resp.json()["detail"]
            assert client.get("/hud").json()["session"]["lastError"] == str(error)


def test_hud_stream_pushes_snapshots_on_change():
    client, _ = _client()
    with client:
        with client.websocket_connect("/hud/stream") as ws:
            first = ws.receive_json()
            assert first["isConnected"] is False

            client.post("/session/connect")

            second = ws.receive_json()
            assert second["isConnected"] is True
            assert second["session"]["state"] == "OPEN"


def test_shutdown_closes_session():
    client, protocol = _client()
    with client:
        client.post("/session/connect")

    assert protocol.close_reasons[-1] == "server_shutdown"
    assert protocol.state is SessionState.DISCONNECTED
