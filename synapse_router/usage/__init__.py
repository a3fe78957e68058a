"""
Synapse Router - Usage Module

Usage ledger, aggregation, pricing and token estimation.
"""

from .aggregator import UsageStats, aggregate, aggregate_records
from .estimator import TokenEstimator, estimate_request_tokens
from .pricing import ModelPrice, PricingCatalog, calculate_cost, get_pricing_catalog
from .storage import (
    TimeRange,
    TokenUsage,
    UsageFilters,
    UsageRecord,
    UsageStore,
    parse_time_range,
)
from .tracker import UsageTracker, extract_token_usage

__all__ = [
    "ModelPrice",
    "PricingCatalog",
    "TimeRange",
    "TokenEstimator",
    "TokenUsage",
    "UsageFilters",
    "UsageRecord",
    "UsageStats",
    "UsageStore",
    "UsageTracker",
    "aggregate",
    "aggregate_records",
    "calculate_cost",
    "estimate_request_tokens",
    "extract_token_usage",
    "get_pricing_catalog",
    "parse_time_range",
]
