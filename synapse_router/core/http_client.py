"""
Synapse Router - Provider HTTP Client

Thin httpx wrapper for talking to upstream providers:
- Health probes: GET {baseUrl}/health
- Chat dispatch: POST {baseUrl}/chat/completions
- Model smoke tests for the admin surface

There is no retry here. Retry and fallback across providers belong to the
FallbackRouter, which needs to re-probe health between attempts.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..observability.logging import get_logger
from .errors import ProviderRequestError
from .models import ProviderConfig, ProviderHealth, utcnow

logger = get_logger(__name__)

# Upstream error bodies are truncated to this many characters in messages
ERROR_PREVIEW_CHARS = 200


@dataclass
class HttpResponse:
    """Successful upstream response with metadata."""
    status_code: int
    data: Any
    latency_ms: float


@dataclass
class ModelTestResult:
    """Outcome of sending a tiny test prompt to one provider/model."""
    success: bool
    latency_ms: float
    model: str
    provider: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": self.success,
            "latency": round(self.latency_ms, 2),
            "model": self.model,
            "provider": self.provider,
        }
        if self.error:
            result["error"] = self.error
        return result


def _preview(response: httpx.Response) -> str:
    try:
        return response.text[:ERROR_PREVIEW_CHARS]
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        return ""


class ProviderClient:
    """
    Async HTTP client shared by health probes and dispatch.

    A single httpx.AsyncClient is created lazily and reused; pass `transport`
    (e.g. httpx.MockTransport) to run without a network.
    """

    def __init__(
        self,
        timeout: float = 60.0,
        health_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.health_timeout = health_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    @staticmethod
    def _headers(config: ProviderConfig) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }

    async def probe_health(
        self,
        name: str,
        config: ProviderConfig,
        timeout: Optional[float] = None,
    ) -> ProviderHealth:
        """
        Probe `{baseUrl}/health`.

        Never raises: transport failures and non-2xx statuses yield an
        unhealthy ProviderHealth carrying the error text.
        """
        client = await self._get_client()
        url = f"{config.base_url}/health"
        start = time.perf_counter()

        try:
            response = await client.get(
                url,
                headers=self._headers(config),
                timeout=timeout if timeout is not None else self.health_timeout,
            )
        except httpx.HTTPError as e:
            latency_ms = (time.perf_counter() - start) * 1000
            return ProviderHealth(
                provider=name,
                healthy=False,
                latency_ms=latency_ms,
                last_check=utcnow(),
                error=str(e) or type(e).__name__,
            )

        latency_ms = (time.perf_counter() - start) * 1000
        healthy = response.is_success
        return ProviderHealth(
            provider=name,
            healthy=healthy,
            latency_ms=latency_ms,
            last_check=utcnow(),
            status=response.status_code,
            error=None if healthy else f"HTTP {response.status_code}",
        )

    async def chat_completion(
        self,
        name: str,
        config: ProviderConfig,
        model: str,
        payload: Dict[str, Any],
    ) -> HttpResponse:
        """
        POST the payload to `{baseUrl}/chat/completions` with `model` replaced.

        Raises:
            ProviderRequestError: on transport failure, non-2xx status or a
                response body that is not JSON
        """
        client = await self._get_client()
        url = f"{config.base_url}/chat/completions"
        body = {**payload, "model": model}

        logger.debug(
            "Dispatching request",
            provider=name,
            model=model,
            url=url,
            message_count=len(body.get("messages") or []),
        )

        start = time.perf_counter()
        try:
            response = await client.post(url, json=body, headers=self._headers(config))
        except httpx.HTTPError as e:
            raise ProviderRequestError(name, str(e) or type(e).__name__, model=model) from e

        latency_ms = (time.perf_counter() - start) * 1000

        if not response.is_success:
            raise ProviderRequestError(
                name,
                f"HTTP {response.status_code}: {_preview(response)}",
                status_code=response.status_code,
                model=model,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderRequestError(
                name,
                "invalid JSON response",
                status_code=response.status_code,
                model=model,
            ) from e

        return HttpResponse(
            status_code=response.status_code,
            data=data,
            latency_ms=latency_ms,
        )

    async def test_model(self, name: str, config: ProviderConfig, model: str) -> ModelTestResult:
        """Send a ten-token test prompt; failures are reported, not raised."""
        payload = {
            "messages": [{"role": "user", "content": "Test message"}],
            "max_tokens": 10,
        }
        start = time.perf_counter()
        try:
            await self.chat_completion(name, config, model, payload)
        except ProviderRequestError as e:
            return ModelTestResult(
                success=False,
                latency_ms=(time.perf_counter() - start) * 1000,
                model=model,
                provider=name,
                error=e.error.message,
            )

        return ModelTestResult(
            success=True,
            latency_ms=(time.perf_counter() - start) * 1000,
            model=model,
            provider=name,
        )
