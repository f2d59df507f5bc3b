"""Tests for the HTTP and WebSocket service surface."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from holdover.api.session import create_preferences_router
from holdover.config import Settings
from holdover.domain.preferences import FixedConfiguration
from holdover.main import create_app
from holdover.publish.channel import PushBudget
from holdover.publish.memory import InMemoryDisplayChannel
from holdover.reference.table import HoldoverTableEntry, TableThresholdSource

from tests.test_reference import _valid_entry


def _start_body(**overrides) -> dict:
    """Return a valid start-session request body, with optional overrides."""
    base = {
        "assured_seconds": 1080,
        "limit_seconds": 1560,
        "fluid_type": "Type II",
        "fluid_percentage": 75,
        "precipitation_type": "Light Snow",
        "weather_condition": "Snow",
        "temperature": -5,
    }
    base.update(overrides)
    return base


def _settings(**kw) -> Settings:
    # Long tick period: tests drive the controller, not the background loop
    kw.setdefault("tick_period_seconds", 3600.0)
    return Settings(**kw)


@pytest.fixture
def channel() -> InMemoryDisplayChannel:
    return InMemoryDisplayChannel(PushBudget(pushes=60, window_seconds=3600.0))


@pytest.fixture
def client(channel: InMemoryDisplayChannel):
    source = TableThresholdSource([HoldoverTableEntry.model_validate(_valid_entry())])
    app = create_app(settings=_settings(), channel=channel, threshold_source=source)
    with TestClient(app) as c:
        yield c


class TestSessionRoutes:
    def test_start(self, client: TestClient) -> None:
        resp = client.post("/api/session", json=_start_body())
        assert resp.status_code == 200
        snap = resp.json()["snapshot"]
        assert snap["version"] == 1
        assert snap["zone"] == "safe"
        assert snap["waterPercentage"] == 25.0
        assert snap["temperatureUnit"] == "C"

    def test_invalid_thresholds_422(self, client: TestClient) -> None:
        resp = client.post("/api/session", json=_start_body(limit_seconds=1000))
        assert resp.status_code == 422
        assert client.get("/api/session").json()["phase"] == "idle"

    def test_missing_thresholds_422(self, client: TestClient) -> None:
        body = _start_body()
        body.pop("limit_seconds")
        assert client.post("/api/session", json=body).status_code == 422

    def test_invalid_metadata_422(self, client: TestClient) -> None:
        resp = client.post("/api/session", json=_start_body(fluid_type="Type IX"))
        assert resp.status_code == 422

    def test_start_twice_409(self, client: TestClient) -> None:
        client.post("/api/session", json=_start_body())
        assert client.post("/api/session", json=_start_body()).status_code == 409

    def test_start_from_reference(self, client: TestClient) -> None:
        body = _start_body(use_reference=True)
        body.pop("assured_seconds")
        body.pop("limit_seconds")
        resp = client.post("/api/session", json=body)
        assert resp.status_code == 200
        assert resp.json()["snapshot"]["limitTimeSeconds"] == 1560.0

    def test_reference_miss_422(self, client: TestClient) -> None:
        body = _start_body(use_reference=True, precipitation_type="Freezing Fog")
        assert client.post("/api/session", json=body).status_code == 422

    def test_pause_resume_end_reset(self, client: TestClient, channel: InMemoryDisplayChannel) -> None:
        client.post("/api/session", json=_start_body())
        resp = client.post("/api/session/pause")
        assert resp.status_code == 200
        assert resp.json()["snapshot"]["isRunning"] is False

        assert client.post("/api/session/resume").json()["status"] == "running"

        resp = client.post("/api/session/end", json={"immediate": True})
        assert resp.status_code == 200
        assert resp.json()["snapshot"]["isFinal"] is True
        assert channel.ended[0].policy.grace_seconds == 0.0

        assert client.post("/api/session/reset").json() == {"status": "idle"}
        assert client.get("/api/session").json()["session_id"] is None

    def test_end_with_grace_override(self, client: TestClient, channel: InMemoryDisplayChannel) -> None:
        client.post("/api/session", json=_start_body())
        client.post("/api/session/end", json={"grace_seconds": 30})
        assert channel.ended[0].policy.grace_seconds == 30.0

    def test_end_uses_configured_grace(self, client: TestClient, channel: InMemoryDisplayChannel) -> None:
        client.post("/api/session", json=_start_body())
        client.post("/api/session/end")
        assert channel.ended[0].policy.grace_seconds == 120.0

    def test_state_errors_409(self, client: TestClient) -> None:
        assert client.post("/api/session/pause").status_code == 409
        assert client.post("/api/session/resume").status_code == 409
        assert client.post("/api/session/end").status_code == 409
        client.post("/api/session", json=_start_body())
        assert client.post("/api/session/resume").status_code == 409
        assert client.post("/api/session/reset").status_code == 409

    def test_status(self, client: TestClient) -> None:
        client.post("/api/session", json=_start_body())
        status = client.get("/api/session").json()
        assert status["phase"] == "running"
        assert status["zone"] == "safe"
        assert status["publication"]["degraded"] is False


class TestPreferences:
    def test_read(self, client: TestClient) -> None:
        assert client.get("/api/preferences").json() == {
            "data_source": "FAA",
            "temperature_unit": "C",
            "writable": True,
        }

    def test_update(self, client: TestClient) -> None:
        resp = client.put("/api/preferences", json={"data_source": "TCA", "temperature_unit": "F"})
        assert resp.status_code == 200
        assert resp.json()["data_source"] == "TCA"

    def test_update_feeds_new_sessions(self, client: TestClient) -> None:
        client.put("/api/preferences", json={"data_source": "TCA"})
        snap = client.post("/api/session", json=_start_body()).json()["snapshot"]
        assert snap["dataSource"] == "TCA"

    def test_unknown_value_422(self, client: TestClient) -> None:
        assert client.put("/api/preferences", json={"data_source": "EASA"}).status_code == 422

    def test_read_only_405(self) -> None:
        app = FastAPI()
        app.include_router(create_preferences_router(FixedConfiguration(data_source="TCA")))
        with TestClient(app) as c:
            assert c.get("/api/preferences").json() == {
                "data_source": "TCA",
                "temperature_unit": "C",
                "writable": False,
            }
            assert c.put("/api/preferences", json={"data_source": "TCA"}).status_code == 405


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["phase"] == "idle"
        assert body["tick_loop_running"] is True
        assert body["reference"] == "table:FAA"


class TestSurfaceSocket:
    def test_ping_pong(self) -> None:
        app = create_app(settings=_settings())
        with TestClient(app) as c:
            with c.websocket_connect("/ws/surface") as ws:
                ws.send_text("ping")
                assert ws.receive_text() == "pong"

    def test_start_broadcasts_snapshot(self) -> None:
        app = create_app(settings=_settings())
        with TestClient(app) as c:
            with c.websocket_connect("/ws/surface") as ws:
                c.post("/api/session", json=_start_body())
                message = ws.receive_json()
                assert message["type"] == "snapshot"
                assert message["snapshot"]["version"] == 1
                assert message["snapshot"]["assuredTimeSeconds"] == 1080.0
