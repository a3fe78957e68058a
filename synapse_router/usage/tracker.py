"""
Synapse Router - Usage Tracker

Builds a UsageRecord for every completed (or failed) request and appends it
to the UsageStore.

Token counts come from the upstream response `usage` block, in either form:
- OpenAI:    prompt_tokens / completion_tokens / total_tokens
- Anthropic: input_tokens / output_tokens
"""

from typing import Any, Dict, Optional

from ..core.models import AgentContext, RoutingReason
from ..observability.logging import get_logger
from ..observability.metrics import MetricsCollector
from .pricing import PricingCatalog, get_pricing_catalog
from .storage import TokenUsage, UsageRecord, UsageStore

logger = get_logger(__name__)


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def extract_token_usage(response: Optional[Dict[str, Any]]) -> TokenUsage:
    """Token usage reported by the provider; zeros when absent."""
    if not isinstance(response, dict):
        return TokenUsage()

    usage = response.get("usage")
    if not isinstance(usage, dict):
        return TokenUsage()

    input_tokens = _as_int(usage.get("prompt_tokens", usage.get("input_tokens", 0)))
    output_tokens = _as_int(usage.get("completion_tokens", usage.get("output_tokens", 0)))
    total = usage.get("total_tokens")
    return TokenUsage.of(input_tokens, output_tokens, _as_int(total) if total is not None else None)


class UsageTracker:
    """Records request usage into a UsageStore."""

    def __init__(
        self,
        store: UsageStore,
        pricing: Optional[PricingCatalog] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.pricing = pricing or get_pricing_catalog()
        self.metrics = metrics

    def track_request(
        self,
        context: AgentContext,
        model: str,
        provider: str,
        response: Optional[Dict[str, Any]],
        latency_ms: float,
        success: bool,
        routing_reason: RoutingReason,
        cost_tracking: bool = True,
    ) -> UsageRecord:
        """
        Build and append a record for one request.

        Cost is 0 when cost tracking is off or the request failed without
        reporting usage.
        """
        tokens = extract_token_usage(response)
        cost = 0.0
        if cost_tracking and (tokens.input or tokens.output):
            cost = self.pricing.calculate_cost(model, tokens.input, tokens.output)

        record = UsageRecord(
            project_id=context.project_id,
            agent_id=context.agent_id,
            agent_type=context.agent_type.value if context.agent_type else None,
            model=model,
            provider=provider,
            tokens=tokens,
            cost=cost,
            latency_ms=latency_ms,
            success=success,
            routing_reason=routing_reason,
        )
        self.store.append(record)

        if self.metrics is not None and success:
            self.metrics.record_usage(provider, model, tokens.input, tokens.output, cost)

        logger.debug(
            "Usage recorded",
            record_id=record.id,
            total_tokens=tokens.total,
            cost_usd=cost,
            success=success,
        )
        return record
