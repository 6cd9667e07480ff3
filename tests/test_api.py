"""HTTP inspection API and request logging."""

import pytest
from fastapi.testclient import TestClient

from agentfield import main
from agentfield.main import MAX_LOG_LINE, app, format_request_log


@pytest.fixture
def client():
    # No context manager: startup hooks (and the websocket listener) stay off.
    return TestClient(app)


class TestApi:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_state(self, client):
        payload = client.get("/api/state").json()
        assert payload["agents"] == len(main.service.world)
        assert payload["connections"] == 0
        assert set(payload["runtime"]) == {"last_tick_ms", "avg_tick_ms"}
        assert payload["messages_sent"] == main.service.broadcaster.messages_sent
        assert set(payload["tasks"]) == {"sim-clock", "sim-broadcast", "sim-heartbeat"}
        assert all(set(counters) == {"runs", "failures"} for counters in payload["tasks"].values())

    def test_agents_list(self, client):
        payload = client.get("/api/agents").json()
        assert len(payload) == len(main.service.world)
        assert "lastUpdated" in payload[0]["characteristics"]

    def test_single_agent(self, client):
        payload = client.get("/api/agents/agent-0").json()
        assert payload["id"] == "agent-0"
        assert payload["connections"] == []

    def test_unknown_agent(self, client):
        response = client.get("/api/agents/nobody")
        assert response.status_code == 404
        assert response.json() == {"detail": "agent not found"}


class TestRequestLog:
    def test_short_line_untouched(self):
        assert format_request_log("GET", "/api/health", 200, 1.2, b'{"status": "ok"}') == (
            'GET /api/health 200 in 1ms :: {"status":"ok"}'
        )

    def test_long_line_truncated(self):
        line = format_request_log("GET", "/api/agents", 200, 3.0, b'[' + b'{"id": "agent-0"},' * 20 + b'{}]')
        assert len(line) == MAX_LOG_LINE
        assert line.endswith("…")

    def test_non_json_body_skipped(self):
        assert format_request_log("GET", "/api/x", 500, 0.4, b"oops") == "GET /api/x 500 in 0ms"
