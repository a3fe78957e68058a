"""
Synapse Router - Provider Health Monitoring

Probe-driven health tracking for upstream providers:
- Probes hit GET {baseUrl}/health; HEALTHY iff the status is 2xx
- One ProviderHealth per provider, overwritten on every probe
- Selection picks the lowest-latency healthy candidate
- A background watchdog marks providers whose last probe is older than
  twice the interval as unhealthy ("Health check timeout")

State machine per provider:
    UNKNOWN --probe--> HEALTHY | UNHEALTHY
    HEALTHY --probe fails / watchdog sweep--> UNHEALTHY
    UNHEALTHY --probe succeeds--> HEALTHY
"""

import asyncio
import dataclasses
from datetime import datetime, timedelta
from threading import Lock
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from ..core.http_client import ProviderClient
from ..core.models import HealthState, ProviderConfig, ProviderHealth, utcnow
from ..observability.logging import get_logger
from ..observability.metrics import MetricsCollector

logger = get_logger(__name__)

STALE_ERROR = "Health check timeout"

RefreshCallback = Callable[[], Awaitable[Any]]


class HealthMonitor:
    """
    Registry of per-provider health, fed by probes.

    The status map is guarded by a lock; probes run on the event loop but
    readers (admin endpoints, selection) may come from any task.
    """

    def __init__(
        self,
        client: ProviderClient,
        interval_seconds: float = 30.0,
        timeout_seconds: float = 10.0,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.client = client
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self.metrics = metrics
        self._clock = clock

        self._status: Dict[str, ProviderHealth] = {}
        self._lock = Lock()

        self._task: Optional[asyncio.Task] = None
        self._refresh: Optional[RefreshCallback] = None

    @property
    def stale_after(self) -> timedelta:
        return timedelta(seconds=self.interval_seconds * 2)

    # ------------------------------------------------------------
    # Probing
    # ------------------------------------------------------------

    async def probe(self, provider: str, config: ProviderConfig) -> ProviderHealth:
        """Probe one provider and store the result. Never raises."""
        try:
            health = await self.client.probe_health(provider, config, timeout=self.timeout_seconds)
        except Exception as e:
            health = ProviderHealth(
                provider=provider,
                healthy=False,
                latency_ms=0.0,
                last_check=self._clock(),
                error=str(e) or type(e).__name__,
            )

        self._store(health)

        if health.healthy:
            logger.debug("Provider healthy", provider=provider, latency_ms=round(health.latency_ms, 2))
        else:
            logger.warning(
                "Provider unhealthy",
                provider=provider,
                status=health.status,
                error=health.error,
            )
        return health

    async def probe_all(self, providers: Mapping[str, ProviderConfig]) -> Dict[str, ProviderHealth]:
        """
        Probe every configured provider concurrently.

        Entries for providers absent from `providers` are dropped.
        """
        names = list(providers.keys())
        results = await asyncio.gather(*(self.probe(name, providers[name]) for name in names))
        self._prune(set(names))
        return dict(zip(names, results))

    async def probe_many(self, providers: Mapping[str, ProviderConfig], names: Sequence[str]):
        """Probe a subset of providers concurrently, without pruning."""
        await asyncio.gather(*(self.probe(name, providers[name]) for name in names if name in providers))

    def _store(self, health: ProviderHealth):
        with self._lock:
            self._status[health.provider] = health

        if self.metrics is not None:
            self.metrics.set_provider_health(health.provider, health.healthy, health.latency_ms)

    def _prune(self, keep: set):
        with self._lock:
            removed = [name for name in self._status if name not in keep]
            for name in removed:
                del self._status[name]

        for name in removed:
            logger.info("Dropped health entry for removed provider", provider=name)
            if self.metrics is not None:
                self.metrics.remove_provider(name)

    # ------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------

    def get_status(self, provider: str) -> Optional[ProviderHealth]:
        with self._lock:
            health = self._status.get(provider)
            return dataclasses.replace(health) if health else None

    def get_state(self, provider: str) -> HealthState:
        health = self.get_status(provider)
        return health.state if health else HealthState.UNKNOWN

    def get_all_status(self) -> Dict[str, ProviderHealth]:
        with self._lock:
            return {name: dataclasses.replace(h) for name, h in self._status.items()}

    def needs_probe(self, provider: str) -> bool:
        """True when the provider was never probed or its last probe is stale."""
        health = self.get_status(provider)
        if health is None:
            return True
        return self._clock() - health.last_check > self.stale_after

    def select_healthy(self, candidates: Sequence[str]) -> Optional[str]:
        """
        Pick the healthy candidate with the lowest probe latency.

        Ties keep candidate order. Returns None when no candidate is healthy.
        """
        with self._lock:
            healthy = [
                (self._status[name].latency_ms, index, name)
                for index, name in enumerate(candidates)
                if name in self._status and self._status[name].healthy
            ]

        if not healthy:
            return None
        return min(healthy)[2]

    def get_overall_health(self) -> Dict[str, Any]:
        """
        Aggregate view over every tracked provider.

        score is healthy/total, 0 when nothing has been probed.
        """
        statuses = list(self.get_all_status().values())
        healthy_count = sum(1 for h in statuses if h.healthy)
        total = len(statuses)

        return {
            "healthy": healthy_count > 0,
            "score": healthy_count / total if total else 0.0,
            "providers": [h.to_dict() for h in statuses],
            "lastUpdated": self._clock().isoformat(),
        }

    # ------------------------------------------------------------
    # Watchdog
    # ------------------------------------------------------------

    def sweep_stale(self) -> List[str]:
        """
        Mark providers not probed within twice the interval as unhealthy.

        The last check time is kept, so swept providers still need a probe.
        Returns the providers that were healthy before the sweep.
        """
        now = self._clock()
        swept: List[ProviderHealth] = []

        with self._lock:
            for name, health in self._status.items():
                if now - health.last_check <= self.stale_after:
                    continue
                if health.healthy or health.error != STALE_ERROR:
                    updated = dataclasses.replace(health, healthy=False, error=STALE_ERROR)
                    self._status[name] = updated
                    if health.healthy:
                        swept.append(updated)

        for health in swept:
            logger.warning("Provider health check timed out", provider=health.provider)
            if self.metrics is not None:
                self.metrics.set_provider_health(health.provider, False, health.latency_ms)

        return [h.provider for h in swept]

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, refresh: Optional[RefreshCallback] = None):
        """
        Start the periodic watchdog task.

        When `refresh` is given it is awaited on every tick before the sweep
        (typically a full probe_all over the current configuration).
        """
        if self.is_running:
            return

        self._refresh = refresh

        async def watchdog_loop():
            while True:
                await asyncio.sleep(self.interval_seconds)
                try:
                    if self._refresh is not None:
                        await self._refresh()
                    self.sweep_stale()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error("Health watchdog tick failed", error=str(e))

        self._task = asyncio.create_task(watchdog_loop())
        logger.info(
            "Health watchdog started",
            interval_seconds=self.interval_seconds,
            refresh=refresh is not None,
        )

    async def stop(self):
        """Cancel the watchdog and wait for it to finish."""
        if self._task is None:
            return

        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        logger.info("Health watchdog stopped")
