"""
Synapse Router - Usage Aggregation

Summary statistics over usage records, computed on demand from a query.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .storage import UsageFilters, UsageRecord, UsageStore

UNKNOWN_AGENT = "unknown"


@dataclass
class UsageStats:
    """Aggregated usage statistics."""
    total_requests: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    average_latency: float = 0.0
    success_rate: float = 0.0  # 0.0-1.0
    model_breakdown: Dict[str, int] = field(default_factory=dict)
    agent_breakdown: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "totalTokens": self.total_tokens,
            "totalCost": round(self.total_cost, 6),
            "averageLatency": round(self.average_latency, 2),
            "successRate": round(self.success_rate, 4),
            "modelBreakdown": dict(self.model_breakdown),
            "agentBreakdown": dict(self.agent_breakdown),
        }


def aggregate_records(records: Iterable[UsageRecord]) -> UsageStats:
    """Summarize records; an empty input yields all-zero stats."""
    records: List[UsageRecord] = list(records)
    if not records:
        return UsageStats()

    count = len(records)
    return UsageStats(
        total_requests=count,
        total_tokens=sum(r.tokens.total for r in records),
        total_cost=sum(r.cost for r in records),
        average_latency=sum(r.latency_ms for r in records) / count,
        success_rate=sum(1 for r in records if r.success) / count,
        model_breakdown=dict(Counter(r.model for r in records)),
        agent_breakdown=dict(Counter(r.agent_type or UNKNOWN_AGENT for r in records)),
    )


def aggregate(store: UsageStore, filters: Optional[UsageFilters] = None) -> UsageStats:
    """Query the store and summarize the matching records."""
    return aggregate_records(store.query(filters))
