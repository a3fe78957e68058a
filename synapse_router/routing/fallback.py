"""
Synapse Router - Fallback Routing

Dispatches one request to a healthy provider backing the target model,
retrying on other (or re-probed) providers when a dispatch fails.

Flow:
1. Candidates = providers whose model list contains the target model.
   A "provider,model" target naming a configured provider pins that provider.
2. Never-probed or stale candidates are probed first, concurrently.
3. Up to max_attempts sequential dispatches. Each attempt picks the fastest
   healthy candidate not yet tried; a failed provider is re-probed and
   excluded from the attempts that follow.
4. No healthy candidate before any dispatch -> NoHealthyProviderError.
   Attempts used up, or every healthy candidate failed ->
   FallbackExhaustedError wrapping the last failure. A bound of zero
   dispatches nothing.

Attempts are never issued in parallel, so one request never produces
duplicate upstream calls.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from ..core.errors import FallbackExhaustedError, NoHealthyProviderError, ProviderRequestError
from ..core.http_client import ProviderClient
from ..core.models import ProviderConfig, RoutingReason
from ..observability.logging import get_logger
from ..observability.metrics import MetricsCollector
from .health import HealthMonitor

logger = get_logger(__name__)


@dataclass
class FallbackAttempt:
    """One failed dispatch."""
    provider: str
    model: str
    error: str
    status_code: int = 0

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "provider": self.provider,
            "model": self.model,
            "error": self.error,
        }
        if self.status_code:
            result["status_code"] = self.status_code
        return result


@dataclass
class RouteResult:
    """Successful dispatch plus the failures that preceded it."""
    response: Any
    provider: str
    model: str
    routing_reason: RoutingReason
    latency_ms: float
    attempts: List[FallbackAttempt] = field(default_factory=list)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts) + 1


def resolve_target(target_model: str, providers: Mapping[str, ProviderConfig]) -> Tuple[str, List[str]]:
    """
    Map a target model to (model to dispatch, candidate providers).

    "provider,model" with a configured provider pins that provider;
    anything else matches providers listing the model verbatim.
    """
    if "," in target_model:
        provider, _, model = target_model.partition(",")
        provider, model = provider.strip(), model.strip()
        if provider in providers and model:
            return model, [provider]

    return target_model, [
        name for name, config in providers.items()
        if config.supports(target_model)
    ]


class FallbackRouter:
    """Health-aware dispatcher with bounded sequential fallback."""

    def __init__(
        self,
        client: ProviderClient,
        health: HealthMonitor,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.client = client
        self.health = health
        self.metrics = metrics

    async def route(
        self,
        request: Dict[str, Any],
        target_model: str,
        providers: Mapping[str, ProviderConfig],
        max_attempts: int,
    ) -> RouteResult:
        """
        Dispatch `request` for `target_model`.

        Raises:
            NoHealthyProviderError: no candidate is healthy at the first attempt
            FallbackExhaustedError: max_attempts dispatches failed, every
                healthy candidate failed once, or max_attempts is zero
        """
        model, candidates = resolve_target(target_model, providers)
        if not candidates:
            logger.warning("No provider serves model", target_model=target_model)
            raise NoHealthyProviderError(model, [])

        unprobed = [name for name in candidates if self.health.needs_probe(name)]
        if unprobed:
            await self.health.probe_many(providers, unprobed)

        attempts: List[FallbackAttempt] = []
        last_error: Optional[ProviderRequestError] = None
        excluded: Set[str] = set()

        for attempt in range(max_attempts):
            provider = self.health.select_healthy(
                [name for name in candidates if name not in excluded]
            )
            if provider is None and attempts:
                logger.error(
                    "Every healthy provider failed",
                    target_model=model,
                    providers_tried=sorted(excluded),
                    attempt=attempt + 1,
                )
                break
            if provider is None:
                logger.error(
                    "No healthy provider available",
                    target_model=model,
                    candidates=candidates,
                    attempt=attempt + 1,
                )
                raise NoHealthyProviderError(model, candidates)

            config = providers[provider]
            start = time.perf_counter()
            try:
                response = await self.client.chat_completion(provider, config, model, request)
            except ProviderRequestError as e:
                self._record(provider, success=False)
                attempts.append(
                    FallbackAttempt(
                        provider=provider,
                        model=model,
                        error=e.error.message,
                        status_code=e.upstream_status,
                    )
                )
                last_error = e
                logger.warning(
                    "Dispatch attempt failed",
                    provider=provider,
                    target_model=model,
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    error=e.error.message,
                )
                excluded.add(provider)
                await self.health.probe(provider, config)
                continue

            self._record(provider, success=True)
            reason = RoutingReason.PRIMARY if attempt == 0 else RoutingReason.FALLBACK
            logger.info(
                "Request routed",
                provider=provider,
                target_model=model,
                routing_reason=reason.value,
                attempt=attempt + 1,
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            return RouteResult(
                response=response.data,
                provider=provider,
                model=model,
                routing_reason=reason,
                latency_ms=response.latency_ms,
                attempts=attempts,
            )

        raise FallbackExhaustedError(
            model,
            len(attempts),
            last_error=last_error,
            providers_tried=[a.provider for a in attempts],
            attempt_log=[a.to_dict() for a in attempts],
        )

    def _record(self, provider: str, success: bool):
        if self.metrics is not None:
            self.metrics.record_dispatch(provider, success)
