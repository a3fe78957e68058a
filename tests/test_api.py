"""
Synapse Router - HTTP API Tests

Exercises the FastAPI app with an injected Orchestrator (fake provider
client, tmp stores):
- /v1/messages routing envelope
- /admin/* envelopes and error mapping
- /health, /metrics, request ids
"""

import json

import pytest
from fastapi.testclient import TestClient

from synapse_router.core.errors import ProviderRequestError
from synapse_router.server import create_app

MESSAGE = {
    "model": "claude-3-5-sonnet-20241022",
    "max_tokens": 64,
    "messages": [{"role": "user", "content": "Hello"}],
}


@pytest.fixture
def client(orchestrator):
    app = create_app(orchestrator=orchestrator)
    with TestClient(app) as test_client:
        yield test_client


# ============================================================
# Messages
# ============================================================

class TestMessages:

    def test_routed_response(self, client, mock_openai_response):
        response = client.post("/v1/messages", json=MESSAGE)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["model"] == "model-a"
        assert data["routingReason"] == "primary"
        assert data["provider"] in ("p1", "p2")
        assert data["id"] == mock_openai_response["id"]
        assert "latency" in data and "totalLatency" in data

    def test_routing_headers(self, client):
        response = client.post(
            "/v1/messages",
            json=MESSAGE,
            headers={"X-Synapse-Agent-Type": "reasoning", "X-Synapse-Project-Id": "proj"},
        )

        assert response.json()["model"] == "model-think"

        usage = client.get("/admin/usage", params={"projectId": "proj"}).json()["usage"]
        assert usage["totalRequests"] == 1
        assert usage["agentBreakdown"] == {"reasoning": 1}

    def test_forwarded_payload(self, client, fake_client):
        client.post("/v1/messages", json={**MESSAGE, "temperature": 0.2})

        provider, _, model, payload = fake_client.chat_completion.await_args.args
        assert model == "model-a"
        assert payload["temperature"] == 0.2
        assert payload["messages"] == MESSAGE["messages"]
        assert "system" not in payload

    def test_invalid_body_is_400(self, client):
        response = client.post("/v1/messages", json={"messages": []})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["code"] == "invalid_request"
        assert data["details"]

    def test_exhausted_fallback(self, client, fake_client):
        fake_client.chat_completion.side_effect = ProviderRequestError("p1", "HTTP 500: boom", status_code=500)

        response = client.post("/v1/messages", json=MESSAGE)

        assert response.status_code == 500
        data = response.json()
        assert data["code"] == "fallback_exhausted"
        assert data["type"] == "infra_error"
        assert data["fallback_attempted"] is True
        assert len(data["details"]) == 2
        assert sorted(data["providers_tried"]) == ["p1", "p2"]
        assert response.headers["X-Error-Code"] == "fallback_exhausted"

    def test_request_id_echoed(self, client):
        response = client.post("/v1/messages", json=MESSAGE, headers={"X-Request-Id": "req-abc"})
        assert response.headers["X-Request-Id"] == "req-abc"

    def test_request_id_generated(self, client):
        response = client.get("/health")
        assert response.headers["X-Request-Id"].startswith("req_")


# ============================================================
# Admin
# ============================================================

class TestAdminConfig:

    def test_get_config(self, client):
        response = client.get("/admin/config")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["config"]["models"]["longContext"] == "model-long"
        assert set(data["config"]["providers"]) == {"p1", "p2"}

    def test_update_config(self, client):
        patch = {"routing": {"enabled": True, "fallbackEnabled": False, "retryAttempts": 1}}

        response = client.post("/admin/config", json=patch)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Configuration updated successfully"}
        assert client.get("/admin/config").json()["config"]["routing"] == patch["routing"]

    def test_invalid_update_lists_every_error(self, client):
        response = client.post("/admin/config", json={"models": {"default": ""}})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["code"] == "invalid_configuration"
        assert len(data["details"]) == 6
        assert "Model cannot be empty: default" in data["details"]

    def test_malformed_json_body(self, client):
        response = client.post(
            "/admin/config",
            content="{models:",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "parse_error"


class TestAdminHealthAndUsage:

    def test_health(self, client):
        response = client.get("/admin/health")

        assert response.status_code == 200
        health = response.json()["health"]
        assert health["healthy"] is True
        assert health["score"] == 1.0
        assert {p["provider"] for p in health["providers"]} == {"p1", "p2"}

    def test_usage_empty(self, client):
        response = client.get("/admin/usage")

        assert response.status_code == 200
        assert response.json()["usage"]["totalRequests"] == 0

    def test_usage_time_range(self, client):
        client.post("/v1/messages", json=MESSAGE)

        past = json.dumps({"start": "2000-01-01T00:00:00Z", "end": "2000-01-02T00:00:00Z"})
        open_ended = json.dumps({"start": "2000-01-01T00:00:00Z"})

        assert client.get("/admin/usage", params={"timeRange": past}).json()["usage"]["totalRequests"] == 0
        assert client.get("/admin/usage", params={"timeRange": open_ended}).json()["usage"]["totalRequests"] == 1

    def test_malformed_time_range(self, client):
        response = client.get("/admin/usage", params={"timeRange": "{start"})

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "parse_error"
        assert data["error"] == "Malformed JSON in field: timeRange"


class TestAdminTestModel:

    def test_success(self, client):
        response = client.post("/admin/test-model", json={"provider": "p1", "model": "model-a"})

        assert response.status_code == 200
        result = response.json()["result"]
        assert result["success"] is True
        assert result["provider"] == "p1"
        assert result["model"] == "model-a"

    def test_missing_fields(self, client):
        response = client.post("/admin/test-model", json={"provider": "p1"})

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Provider and model are required"
        assert data["details"] == ["model"]

    def test_unknown_provider(self, client):
        response = client.post("/admin/test-model", json={"provider": "ghost", "model": "m"})

        assert response.status_code == 404
        assert response.json()["error"] == "Provider ghost not found"


# ============================================================
# Service endpoints
# ============================================================

class TestServiceEndpoints:

    def test_liveness(self, client, fake_client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        fake_client.probe_health.assert_not_called()

    def test_metrics(self, client):
        client.post("/v1/messages", json=MESSAGE)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "synapse_requests_total" in response.text
        assert "synapse_provider_healthy" in response.text

    def test_unknown_route(self, client):
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.json()["code"] == "http_error"

    def test_uninitialized_router_is_503(self):
        app = create_app()
        test_client = TestClient(app)

        response = test_client.get("/admin/config")

        assert response.status_code == 503
        assert response.json()["code"] == "service_unavailable"
