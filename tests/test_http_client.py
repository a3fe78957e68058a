"""
Synapse Router - Provider HTTP Client Tests

Dispatch and test prompts against httpx.MockTransport.
"""

import json

import httpx
import pytest

from synapse_router.core.errors import ProviderRequestError
from synapse_router.core.http_client import ProviderClient
from synapse_router.core.models import ProviderConfig

CONFIG = ProviderConfig(api_key="sk-test", base_url="https://api.example.com/v1", models=["m"])


def make_client(handler) -> ProviderClient:
    return ProviderClient(transport=httpx.MockTransport(handler))


class TestChatCompletion:

    @pytest.mark.asyncio
    async def test_model_replaced_and_auth_sent(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "ok"})

        client = make_client(handler)
        response = await client.chat_completion(
            "prov", CONFIG, "upstream-model", {"model": "asked", "messages": [], "top_p": 0.9}
        )
        await client.close()

        assert response.status_code == 200
        assert response.data == {"id": "ok"}
        assert response.latency_ms >= 0
        assert captured["url"] == "https://api.example.com/v1/chat/completions"
        assert captured["auth"] == "Bearer sk-test"
        assert captured["body"] == {"model": "upstream-model", "messages": [], "top_p": 0.9}

    @pytest.mark.asyncio
    async def test_error_status(self):
        client = make_client(lambda r: httpx.Response(429, text="slow down"))

        with pytest.raises(ProviderRequestError) as exc_info:
            await client.chat_completion("prov", CONFIG, "m", {"messages": []})
        await client.close()

        assert exc_info.value.upstream_status == 429
        assert exc_info.value.provider == "prov"
        assert exc_info.value.error.message == "Request to prov failed: HTTP 429: slow down"

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = make_client(lambda r: httpx.Response(200, text="<html>"))

        with pytest.raises(ProviderRequestError, match="invalid JSON response"):
            await client.chat_completion("prov", CONFIG, "m", {"messages": []})
        await client.close()

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler)

        with pytest.raises(ProviderRequestError) as exc_info:
            await client.chat_completion("prov", CONFIG, "m", {"messages": []})
        await client.close()

        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)
        assert exc_info.value.upstream_status == 0


class TestModelProbe:

    @pytest.mark.asyncio
    async def test_test_prompt(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": []})

        client = make_client(handler)
        result = await client.test_model("prov", CONFIG, "m")
        await client.close()

        assert result.success is True
        assert result.to_dict()["model"] == "m"
        assert "error" not in result.to_dict()
        assert captured["body"]["max_tokens"] == 10
        assert captured["body"]["messages"] == [{"role": "user", "content": "Test message"}]

    @pytest.mark.asyncio
    async def test_failure_is_reported(self):
        client = make_client(lambda r: httpx.Response(401, text="bad key"))

        result = await client.test_model("prov", CONFIG, "m")
        await client.close()

        assert result.success is False
        assert "HTTP 401" in result.error
