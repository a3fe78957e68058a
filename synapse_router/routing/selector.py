"""
Synapse Router - Model Selection

Resolves the logical model for a request. Precedence, first match wins:

1. explicit     requested model contains a comma ("provider,model")
2. agent_type   coding->coder, analysis->tool, reasoning->think, general->default
3. long_context estimated tokens above the threshold and longContext set
4. fast         requested model matches the background pattern and fast set
5. think        thinking requested and think set
6. default      models.default
"""

import re
from dataclasses import dataclass
from typing import Optional, Pattern, Union

from ..core.models import AgentContext, AgentType, ModelsConfig, RouterConfig
from ..observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LONG_CONTEXT_THRESHOLD = 60_000
DEFAULT_FAST_MODEL_PATTERN = r"^claude-3-5-haiku"


class SelectionRule:
    EXPLICIT = "explicit"
    LONG_CONTEXT = "long_context"
    AGENT_TYPE = "agent_type"
    FAST = "fast"
    THINK = "think"
    DEFAULT = "default"
    # routing disabled: the requested model is used as-is
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True)
class ModelSelection:
    """Chosen model and the precedence rule that chose it."""
    model: str
    rule: str


def _agent_slot(models: ModelsConfig, agent_type: AgentType) -> str:
    return {
        AgentType.CODING: models.coder,
        AgentType.ANALYSIS: models.tool,
        AgentType.REASONING: models.think,
        AgentType.GENERAL: models.default,
    }[agent_type]


class ModelSelector:
    """Applies the model precedence policy."""

    def __init__(
        self,
        long_context_threshold: int = DEFAULT_LONG_CONTEXT_THRESHOLD,
        fast_model_pattern: Union[str, Pattern[str]] = DEFAULT_FAST_MODEL_PATTERN,
    ):
        self.long_context_threshold = long_context_threshold
        self.fast_model_pattern = re.compile(fast_model_pattern)

    def select(
        self,
        context: AgentContext,
        config: RouterConfig,
        requested_model: Optional[str] = None,
        thinking: bool = False,
    ) -> ModelSelection:
        selection = self._select(context, config.models, requested_model, thinking)
        logger.debug(
            "Model selected",
            selected_model=selection.model,
            rule=selection.rule,
            requested_model=requested_model,
        )
        return selection

    def passthrough(self, config: RouterConfig, requested_model: Optional[str] = None) -> ModelSelection:
        """Selection used while routing is disabled."""
        return ModelSelection(requested_model or config.models.default, SelectionRule.PASSTHROUGH)

    def _select(
        self,
        context: AgentContext,
        models: ModelsConfig,
        requested_model: Optional[str],
        thinking: bool,
    ) -> ModelSelection:
        if requested_model and "," in requested_model:
            return ModelSelection(requested_model, SelectionRule.EXPLICIT)

        if context.agent_type is not None:
            model = _agent_slot(models, context.agent_type) or models.default
            return ModelSelection(model, SelectionRule.AGENT_TYPE)

        if context.estimated_tokens > self.long_context_threshold and models.long_context:
            return ModelSelection(models.long_context, SelectionRule.LONG_CONTEXT)

        if (
            requested_model
            and models.fast
            and self.fast_model_pattern.search(requested_model)
        ):
            return ModelSelection(models.fast, SelectionRule.FAST)

        if thinking and models.think:
            return ModelSelection(models.think, SelectionRule.THINK)

        return ModelSelection(models.default, SelectionRule.DEFAULT)
