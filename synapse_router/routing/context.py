"""
Synapse Router - Agent Context Extraction

Builds an AgentContext from request metadata (HTTP headers). Hints are
best-effort: malformed values are dropped, never raised.

Recognized headers (case-insensitive):
    x-synapse-project-id      project identifier
    x-synapse-agent-id        agent identifier
    x-synapse-agent-type      coding | analysis | reasoning | general
    x-synapse-task-type       free-form task label
    x-synapse-token-estimate  non-negative integer
    x-synapse-cost-limits     JSON object {"daily": n, "monthly": n}
"""

import json
from typing import Any, Mapping, Optional

from ..core.models import AgentContext, AgentType, CostLimits
from ..observability.logging import get_logger

logger = get_logger(__name__)

HEADER_PREFIX = "x-synapse-"
PROJECT_ID_HEADER = "x-synapse-project-id"
AGENT_ID_HEADER = "x-synapse-agent-id"
AGENT_TYPE_HEADER = "x-synapse-agent-type"
TASK_TYPE_HEADER = "x-synapse-task-type"
TOKEN_ESTIMATE_HEADER = "x-synapse-token-estimate"
COST_LIMITS_HEADER = "x-synapse-cost-limits"


def _number(value: Any) -> Optional[float]:
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class ContextExtractor:
    """Turns request metadata into an AgentContext."""

    def extract(self, metadata: Optional[Mapping[str, str]]) -> AgentContext:
        headers = {
            str(key).lower(): value
            for key, value in (metadata or {}).items()
            if str(key).lower().startswith(HEADER_PREFIX)
        }

        return AgentContext(
            project_id=self._text(headers.get(PROJECT_ID_HEADER)),
            agent_id=self._text(headers.get(AGENT_ID_HEADER)),
            agent_type=self._parse_agent_type(headers.get(AGENT_TYPE_HEADER)),
            task_type=self._text(headers.get(TASK_TYPE_HEADER)),
            estimated_tokens=self._parse_token_estimate(headers.get(TOKEN_ESTIMATE_HEADER)),
            cost_limits=self._parse_cost_limits(headers.get(COST_LIMITS_HEADER)),
        )

    @staticmethod
    def _text(value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @staticmethod
    def _parse_agent_type(value: Optional[str]) -> Optional[AgentType]:
        if not value:
            return None
        try:
            return AgentType(value.strip().lower())
        except ValueError:
            logger.debug("Ignoring unknown agent type", agent_type_hint=value)
            return None

    @staticmethod
    def _parse_token_estimate(value: Optional[str]) -> int:
        if not value:
            return 0
        try:
            tokens = int(value.strip())
        except ValueError:
            logger.debug("Ignoring unparsable token estimate", token_estimate=value)
            return 0
        return tokens if tokens >= 0 else 0

    @staticmethod
    def _parse_cost_limits(value: Optional[str]) -> Optional[CostLimits]:
        if not value:
            return None

        try:
            raw = json.loads(value)
        except ValueError as e:
            logger.warning("Malformed cost limits header", error=str(e))
            return None

        if not isinstance(raw, dict):
            logger.warning("Cost limits header is not a JSON object")
            return None

        daily = _number(raw.get("daily"))
        monthly = _number(raw.get("monthly"))
        if (raw.get("daily") is not None and daily is None) or (
            raw.get("monthly") is not None and monthly is None
        ):
            logger.warning("Cost limits must be numeric")
            return None

        return CostLimits(daily=daily, monthly=monthly)


def has_routing_hints(context: AgentContext) -> bool:
    """True if the caller identified its project, agent or agent type."""
    return any((context.project_id, context.agent_id, context.agent_type))
