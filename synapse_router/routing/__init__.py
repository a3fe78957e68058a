"""
Synapse Router - Routing Module

Context extraction, model selection, provider health and fallback dispatch.
"""

from .context import ContextExtractor, has_routing_hints
from .fallback import FallbackAttempt, FallbackRouter, RouteResult, resolve_target
from .health import HealthMonitor
from .selector import ModelSelection, ModelSelector, SelectionRule

__all__ = [
    "ContextExtractor",
    "FallbackAttempt",
    "FallbackRouter",
    "HealthMonitor",
    "ModelSelection",
    "ModelSelector",
    "RouteResult",
    "SelectionRule",
    "has_routing_hints",
    "resolve_target",
]
