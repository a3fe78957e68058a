"""
Synapse Router - Core Data Models

Typed models shared by the routing core:
- AgentContext: routing hints extracted from one request
- RouterConfig: models / providers / routing / monitoring configuration
- ProviderHealth: latest probe result for one provider

Persisted and wire forms use camelCase keys; attributes are snake_case.
Unknown keys are ignored when building models from dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================
# Enums
# ============================================================

class AgentType(str, Enum):
    """Kind of agent issuing the request."""
    CODING = "coding"
    ANALYSIS = "analysis"
    REASONING = "reasoning"
    GENERAL = "general"


class RoutingReason(str, Enum):
    """Why a response came from the provider that served it."""
    PRIMARY = "primary"
    FALLBACK = "fallback"
    DEFAULT = "default"


class HealthState(str, Enum):
    """Per-provider health state machine."""
    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


# Required keys of the `models` section, in wire form
MODEL_KEYS = ("default", "coder", "tool", "think", "fast", "longContext")

MONITORING_KEYS = ("usageTracking", "healthChecks", "costTracking")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# Request Context
# ============================================================

@dataclass(frozen=True)
class CostLimits:
    """Caller-declared spending limits (informational)."""
    daily: Optional[float] = None
    monthly: Optional[float] = None

    def to_dict(self) -> Dict[str, float]:
        result = {}
        if self.daily is not None:
            result["daily"] = self.daily
        if self.monthly is not None:
            result["monthly"] = self.monthly
        return result


@dataclass(frozen=True)
class AgentContext:
    """
    Routing hints for a single request.

    Built at request entry and discarded once the response is written;
    only the identifying fields survive inside the UsageRecord.
    """
    project_id: Optional[str] = None
    agent_id: Optional[str] = None
    agent_type: Optional[AgentType] = None
    task_type: Optional[str] = None
    estimated_tokens: int = 0
    cost_limits: Optional[CostLimits] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projectId": self.project_id,
            "agentId": self.agent_id,
            "agentType": self.agent_type.value if self.agent_type else None,
            "taskType": self.task_type,
            "estimatedTokens": self.estimated_tokens,
            "costLimits": self.cost_limits.to_dict() if self.cost_limits else None,
        }


# ============================================================
# Router Configuration
# ============================================================

@dataclass
class ModelsConfig:
    """Logical model slots. An empty string means the slot is unconfigured."""
    default: str = ""
    coder: str = ""
    tool: str = ""
    think: str = ""
    fast: str = ""
    long_context: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelsConfig":
        return cls(
            default=str(data.get("default") or ""),
            coder=str(data.get("coder") or ""),
            tool=str(data.get("tool") or ""),
            think=str(data.get("think") or ""),
            fast=str(data.get("fast") or ""),
            long_context=str(data.get("longContext") or ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "default": self.default,
            "coder": self.coder,
            "tool": self.tool,
            "think": self.think,
            "fast": self.fast,
            "longContext": self.long_context,
        }


@dataclass
class ProviderConfig:
    """Credentials, base endpoint and supported models of one provider."""
    api_key: str
    base_url: str
    models: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderConfig":
        models = data.get("models") or []
        return cls(
            api_key=str(data.get("apiKey") or ""),
            base_url=str(data.get("baseUrl") or "").rstrip("/"),
            models=[str(m) for m in models] if isinstance(models, list) else [],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "apiKey": self.api_key,
            "baseUrl": self.base_url,
            "models": list(self.models),
        }

    def supports(self, model: str) -> bool:
        return model in self.models


@dataclass
class RoutingSettings:
    enabled: bool = True
    fallback_enabled: bool = True
    retry_attempts: int = 3

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoutingSettings":
        return cls(
            enabled=bool(data.get("enabled", True)),
            fallback_enabled=bool(data.get("fallbackEnabled", True)),
            retry_attempts=int(data.get("retryAttempts", 3)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "fallbackEnabled": self.fallback_enabled,
            "retryAttempts": self.retry_attempts,
        }

    @property
    def max_attempts(self) -> int:
        """Total dispatch attempts for one request, first attempt included."""
        if not self.fallback_enabled:
            return min(1, self.retry_attempts)
        return self.retry_attempts


@dataclass
class MonitoringSettings:
    usage_tracking: bool = True
    health_checks: bool = True
    cost_tracking: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MonitoringSettings":
        return cls(
            usage_tracking=bool(data.get("usageTracking", True)),
            health_checks=bool(data.get("healthChecks", True)),
            cost_tracking=bool(data.get("costTracking", True)),
        )

    def to_dict(self) -> Dict[str, bool]:
        return {
            "usageTracking": self.usage_tracking,
            "healthChecks": self.health_checks,
            "costTracking": self.cost_tracking,
        }


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Return a config section; absent or null means empty."""
    section = data.get(key)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise TypeError(f"{key} must be an object")
    return section


@dataclass
class RouterConfig:
    """Full routing / provider / monitoring configuration."""
    models: ModelsConfig = field(default_factory=ModelsConfig)
    providers: Dict[str, ProviderConfig] = field(default_factory=dict)
    routing: RoutingSettings = field(default_factory=RoutingSettings)
    monitoring: MonitoringSettings = field(default_factory=MonitoringSettings)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RouterConfig":
        """
        Build a config from its persisted form.

        Raises:
            TypeError / ValueError: if a section has the wrong shape
        """
        if not isinstance(data, dict):
            raise TypeError("configuration document must be a JSON object")

        providers_raw = _section(data, "providers")

        return cls(
            models=ModelsConfig.from_dict(_section(data, "models")),
            providers={
                name: ProviderConfig.from_dict(entry)
                for name, entry in providers_raw.items()
                if isinstance(entry, dict)
            },
            routing=RoutingSettings.from_dict(_section(data, "routing")),
            monitoring=MonitoringSettings.from_dict(_section(data, "monitoring")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "models": self.models.to_dict(),
            "providers": {
                name: provider.to_dict()
                for name, provider in self.providers.items()
            },
            "routing": self.routing.to_dict(),
            "monitoring": self.monitoring.to_dict(),
        }


# ============================================================
# Health
# ============================================================

@dataclass
class ProviderHealth:
    """Latest probed health status for one provider."""
    provider: str
    healthy: bool
    latency_ms: float
    last_check: datetime = field(default_factory=utcnow)
    status: Optional[int] = None
    error: Optional[str] = None

    @property
    def state(self) -> HealthState:
        return HealthState.HEALTHY if self.healthy else HealthState.UNHEALTHY

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "provider": self.provider,
            "healthy": self.healthy,
            "latency": round(self.latency_ms, 2),
            "lastCheck": self.last_check.isoformat(),
        }
        if self.status is not None:
            result["status"] = self.status
        if self.error:
            result["error"] = self.error
        return result
