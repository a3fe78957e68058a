"""
Synapse Router - Orchestrator

Composition root for the routing engine. One instance per process, built
from Settings and held by the FastAPI app.

Per request:
    headers -> ContextExtractor -> (token estimate) -> ConfigStore.load
            -> ModelSelector -> FallbackRouter.route -> UsageTracker -> response

Failures are recorded as usage with routingReason=default and success=false,
then re-raised as the typed error.
"""

import dataclasses
import time
import uuid
from typing import Any, Dict, Mapping, Optional

from .config.settings import Settings, load_settings
from .config.store import ConfigStore
from .core.errors import NotFoundError
from .core.http_client import ModelTestResult, ProviderClient
from .core.models import AgentContext, RouterConfig, RoutingReason
from .observability.logging import LogContext, TimedOperation, get_logger
from .observability.metrics import MetricsCollector, get_metrics
from .routing.context import ContextExtractor, has_routing_hints
from .routing.fallback import FallbackRouter
from .routing.health import HealthMonitor
from .routing.selector import ModelSelection, ModelSelector
from .usage.aggregator import UsageStats, aggregate
from .usage.estimator import TokenEstimator
from .usage.storage import UsageFilters, UsageStore
from .usage.tracker import UsageTracker

logger = get_logger(__name__)

UNKNOWN = "unknown"


class Orchestrator:
    """Wires the routing components together and runs one request end to end."""

    def __init__(
        self,
        config_store: ConfigStore,
        usage_store: UsageStore,
        client: ProviderClient,
        health: HealthMonitor,
        router: FallbackRouter,
        selector: Optional[ModelSelector] = None,
        extractor: Optional[ContextExtractor] = None,
        estimator: Optional[TokenEstimator] = None,
        tracker: Optional[UsageTracker] = None,
        metrics: Optional[MetricsCollector] = None,
        health_sweep_enabled: bool = True,
    ):
        self.config_store = config_store
        self.usage_store = usage_store
        self.client = client
        self.health = health
        self.router = router
        self.selector = selector or ModelSelector()
        self.extractor = extractor or ContextExtractor()
        self.estimator = estimator or TokenEstimator()
        self.metrics = metrics
        self.tracker = tracker or UsageTracker(usage_store, metrics=metrics)
        self.health_sweep_enabled = health_sweep_enabled

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> "Orchestrator":
        """Build every component from process settings."""
        settings = settings or load_settings()
        metrics = metrics or get_metrics()

        client = ProviderClient(
            timeout=settings.dispatch_timeout_seconds,
            health_timeout=settings.health_timeout_seconds,
        )
        health = HealthMonitor(
            client,
            interval_seconds=settings.health_interval_seconds,
            timeout_seconds=settings.health_timeout_seconds,
            metrics=metrics,
        )
        usage_store = UsageStore(
            settings.usage_path,
            cap=settings.usage_retention,
            flush_interval_seconds=settings.usage_flush_interval_seconds,
        )

        return cls(
            config_store=ConfigStore(settings.config_path),
            usage_store=usage_store,
            client=client,
            health=health,
            router=FallbackRouter(client, health, metrics=metrics),
            selector=ModelSelector(
                long_context_threshold=settings.long_context_threshold,
                fast_model_pattern=settings.fast_model_pattern,
            ),
            estimator=(
                TokenEstimator.for_encoding(settings.tokenizer_encoding)
                if settings.tokenizer_encoding
                else None
            ),
            metrics=metrics,
            health_sweep_enabled=settings.health_sweep_enabled,
        )

    # ============================================================
    # Lifecycle
    # ============================================================

    async def start(self):
        await self.usage_store.start_background_flush()
        if self.health_sweep_enabled:
            await self.health.start(refresh=self._refresh_health)

    async def stop(self):
        await self.health.stop()
        await self.usage_store.stop_background_flush()
        await self.client.close()

    async def _refresh_health(self):
        config = self.config_store.load()
        if not config.monitoring.health_checks:
            return

        async with TimedOperation("health_refresh", logger, extra={"provider_count": len(config.providers)}):
            await self.health.probe_all(config.providers)

    # ============================================================
    # Request routing
    # ============================================================

    def _select(self, context: AgentContext, config: RouterConfig, body: Dict[str, Any]) -> ModelSelection:
        requested = body.get("model")
        requested = requested if isinstance(requested, str) else None

        if not config.routing.enabled:
            return self.selector.passthrough(config, requested)

        return self.selector.select(
            context,
            config,
            requested_model=requested,
            thinking=bool(body.get("thinking")),
        )

    async def handle_message(
        self,
        headers: Mapping[str, str],
        body: Dict[str, Any],
        request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Route one chat request and return the response envelope.

        Raises:
            NoHealthyProviderError: no provider for the selected model is healthy
            FallbackExhaustedError: every dispatch attempt failed
        """
        start = time.perf_counter()
        context = self.extractor.extract(headers)

        request_id = request_id or headers.get("x-request-id") or f"req_{uuid.uuid4().hex[:12]}"
        log_ctx = LogContext(
            request_id=request_id,
            project_id=context.project_id or "",
            agent_id=context.agent_id or "",
            agent_type=context.agent_type.value if context.agent_type else "",
            endpoint="/v1/messages",
        )
        LogContext.set_current(log_ctx)

        selection: Optional[ModelSelection] = None
        config = self.config_store.load()
        try:
            if context.estimated_tokens == 0:
                context = dataclasses.replace(
                    context,
                    estimated_tokens=self.estimator.estimate_request_tokens(body),
                )

            selection = self._select(context, config, body)
            log_ctx.update(model=selection.model)
            if self.metrics is not None:
                self.metrics.record_selection(selection.rule, selection.model)

            logger.info(
                "Routing request",
                selected_model=selection.model,
                rule=selection.rule,
                estimated_tokens=context.estimated_tokens,
                routing_hints=has_routing_hints(context),
            )

            result = await self.router.route(
                body,
                selection.model,
                config.providers,
                config.routing.max_attempts,
            )
        except Exception as e:
            total_ms = (time.perf_counter() - start) * 1000
            model = selection.model if selection and selection.model else UNKNOWN
            self._record_failure(context, config, model, total_ms)
            logger.error("Request failed", error=str(e), total_latency_ms=round(total_ms, 2))
            LogContext.clear()
            raise

        total_ms = (time.perf_counter() - start) * 1000
        log_ctx.update(provider=result.provider, model=result.model)

        if config.monitoring.usage_tracking:
            self.tracker.track_request(
                context,
                model=result.model,
                provider=result.provider,
                response=result.response if isinstance(result.response, dict) else None,
                latency_ms=total_ms,
                success=True,
                routing_reason=result.routing_reason,
                cost_tracking=config.monitoring.cost_tracking,
            )

        if self.metrics is not None:
            self.metrics.record_request(
                result.model,
                result.provider,
                result.routing_reason.value,
                success=True,
                duration_seconds=total_ms / 1000,
            )

        LogContext.clear()

        envelope = dict(result.response) if isinstance(result.response, dict) else {"response": result.response}
        envelope.update(
            {
                "success": True,
                "provider": result.provider,
                "model": result.model,
                "routingReason": result.routing_reason.value,
                "latency": round(result.latency_ms, 2),
                "totalLatency": round(total_ms, 2),
            }
        )
        return envelope

    def _record_failure(self, context: AgentContext, config: RouterConfig, model: str, total_ms: float):
        if config.monitoring.usage_tracking:
            self.tracker.track_request(
                context,
                model=model,
                provider=UNKNOWN,
                response=None,
                latency_ms=total_ms,
                success=False,
                routing_reason=RoutingReason.DEFAULT,
                cost_tracking=config.monitoring.cost_tracking,
            )

        if self.metrics is not None:
            self.metrics.record_request(
                model,
                UNKNOWN,
                RoutingReason.DEFAULT.value,
                success=False,
                duration_seconds=total_ms / 1000,
            )

    # ============================================================
    # Admin operations
    # ============================================================

    def get_config(self) -> RouterConfig:
        return self.config_store.load()

    def update_config(self, patch: Dict[str, Any]) -> RouterConfig:
        return self.config_store.save(patch)

    async def get_health(self) -> Dict[str, Any]:
        """Probe every provider (when health checks are on) and aggregate."""
        config = self.config_store.load()
        if config.monitoring.health_checks:
            await self.health.probe_all(config.providers)
        return self.health.get_overall_health()

    def get_usage(self, filters: Optional[UsageFilters] = None) -> UsageStats:
        return aggregate(self.usage_store, filters)

    async def test_model(self, provider: str, model: str) -> ModelTestResult:
        """
        Send a test prompt to one provider/model.

        Raises:
            NotFoundError: if the provider is not configured
        """
        config = self.config_store.load()
        provider_config = config.providers.get(provider)
        if provider_config is None:
            raise NotFoundError(f"Provider {provider} not found", provider=provider, model=model)

        result = await self.client.test_model(provider, provider_config, model)
        logger.info(
            "Model test finished",
            provider=provider,
            test_model=model,
            success=result.success,
            latency_ms=round(result.latency_ms, 2),
        )
        return result
