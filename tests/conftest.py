"""
Synapse Router - Pytest Configuration

Shared fixtures:
- Isolated SYNAPSE_ROUTER_HOME per test
- Sample router configuration (two providers serving the same model)
- Config / usage stores in tmp directories
- Fake ProviderClient (AsyncMock based, no network)
- Private metrics collector
"""

import json
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest

from synapse_router.config.store import ConfigStore
from synapse_router.core.http_client import HttpResponse, ModelTestResult, ProviderClient
from synapse_router.core.models import ProviderHealth, RouterConfig
from synapse_router.observability.metrics import MetricsCollector
from synapse_router.orchestrator import Orchestrator
from synapse_router.routing.fallback import FallbackRouter
from synapse_router.routing.health import HealthMonitor
from synapse_router.usage.storage import UsageStore


# ============================================================
# Environment
# ============================================================

@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.synapse-router."""
    home = tmp_path / "synapse-home"
    monkeypatch.setenv("SYNAPSE_ROUTER_HOME", str(home))
    return home


# ============================================================
# Configuration
# ============================================================

@pytest.fixture
def sample_config_dict() -> Dict[str, Any]:
    return {
        "models": {
            "default": "model-a",
            "coder": "model-coder",
            "tool": "model-tool",
            "think": "model-think",
            "fast": "model-fast",
            "longContext": "model-long",
        },
        "providers": {
            "p1": {
                "apiKey": "key-1",
                "baseUrl": "https://p1.example.com/v1",
                "models": ["model-a", "model-coder", "model-long"],
            },
            "p2": {
                "apiKey": "key-2",
                "baseUrl": "https://p2.example.com/v1/",
                "models": ["model-a", "model-think"],
            },
        },
        "routing": {"enabled": True, "fallbackEnabled": True, "retryAttempts": 3},
        "monitoring": {"usageTracking": True, "healthChecks": True, "costTracking": True},
    }


@pytest.fixture
def sample_config(sample_config_dict) -> RouterConfig:
    return RouterConfig.from_dict(sample_config_dict)


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.json"


@pytest.fixture
def config_store(config_path, sample_config_dict) -> ConfigStore:
    config_path.write_text(json.dumps(sample_config_dict), encoding="utf-8")
    return ConfigStore(config_path)


@pytest.fixture
def usage_store(tmp_path) -> UsageStore:
    return UsageStore(tmp_path / "usage.json", cap=100)


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


# ============================================================
# Mock Provider Client
# ============================================================

@pytest.fixture
def mock_openai_response():
    """Standard mock OpenAI-style chat response."""
    return {
        "id": "chatcmpl-test123",
        "object": "chat.completion",
        "model": "model-a",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": "Hello from the mock."},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 8, "total_tokens": 18},
    }


def healthy(provider: str, latency_ms: float = 10.0) -> ProviderHealth:
    return ProviderHealth(provider=provider, healthy=True, latency_ms=latency_ms, status=200)


def unhealthy(provider: str, error: str = "HTTP 503") -> ProviderHealth:
    return ProviderHealth(provider=provider, healthy=False, latency_ms=5.0, status=503, error=error)


@pytest.fixture
def fake_client(mock_openai_response):
    """
    ProviderClient double.

    Probes report healthy with 10ms latency, dispatch returns
    mock_openai_response. Override side effects per test.
    """
    client = MagicMock(spec=ProviderClient)

    async def probe(name, config, timeout=None):
        return healthy(name)

    client.probe_health = AsyncMock(side_effect=probe)
    client.chat_completion = AsyncMock(
        return_value=HttpResponse(status_code=200, data=mock_openai_response, latency_ms=12.5)
    )
    client.test_model = AsyncMock(
        side_effect=lambda name, config, model: ModelTestResult(
            success=True, latency_ms=3.0, model=model, provider=name
        )
    )
    client.close = AsyncMock()
    return client


# ============================================================
# Orchestrator
# ============================================================

@pytest.fixture
def orchestrator(config_store, usage_store, fake_client, metrics) -> Orchestrator:
    """Orchestrator over tmp stores and the fake client; no background watchdog."""
    health = HealthMonitor(fake_client, metrics=metrics)
    return Orchestrator(
        config_store=config_store,
        usage_store=usage_store,
        client=fake_client,
        health=health,
        router=FallbackRouter(fake_client, health, metrics=metrics),
        metrics=metrics,
        health_sweep_enabled=False,
    )
