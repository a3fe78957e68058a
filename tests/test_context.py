"""
Synapse Router - Context Extraction and Model Selection Tests

Verifies:
- Header parsing into AgentContext (case-insensitive, best-effort)
- Token estimates and cost limits degrade to defaults, never raise
- Model selection precedence
"""

import logging

import pytest

from synapse_router.core.models import AgentContext, AgentType, CostLimits, RouterConfig
from synapse_router.routing.context import ContextExtractor, has_routing_hints
from synapse_router.routing.selector import ModelSelector, SelectionRule


# ============================================================
# ContextExtractor
# ============================================================

class TestContextExtractor:
    """Test header -> AgentContext extraction."""

    def setup_method(self):
        self.extractor = ContextExtractor()

    def test_empty_metadata(self):
        context = self.extractor.extract({})

        assert context == AgentContext()
        assert context.estimated_tokens == 0
        assert context.project_id is None
        assert context.cost_limits is None

    def test_none_metadata(self):
        assert self.extractor.extract(None) == AgentContext()

    def test_all_headers(self):
        context = self.extractor.extract({
            "x-synapse-project-id": "proj-1",
            "x-synapse-agent-id": "agent-7",
            "x-synapse-agent-type": "coding",
            "x-synapse-task-type": "refactor",
            "x-synapse-token-estimate": "1200",
            "x-synapse-cost-limits": '{"daily": 5, "monthly": 100.5}',
        })

        assert context.project_id == "proj-1"
        assert context.agent_id == "agent-7"
        assert context.agent_type == AgentType.CODING
        assert context.task_type == "refactor"
        assert context.estimated_tokens == 1200
        assert context.cost_limits == CostLimits(daily=5.0, monthly=100.5)

    def test_header_names_are_case_insensitive(self):
        context = self.extractor.extract({
            "X-Synapse-Project-Id": "proj-1",
            "X-SYNAPSE-AGENT-TYPE": "Reasoning",
        })

        assert context.project_id == "proj-1"
        assert context.agent_type == AgentType.REASONING

    @pytest.mark.parametrize("raw", ["abc", "", "12.5", "-40"])
    def test_bad_token_estimate_is_zero(self, raw):
        context = self.extractor.extract({"x-synapse-token-estimate": raw})
        assert context.estimated_tokens == 0

    def test_malformed_cost_limits_is_absent(self, caplog):
        with caplog.at_level(logging.WARNING):
            context = self.extractor.extract({"x-synapse-cost-limits": "{daily: 5"})

        assert context.cost_limits is None
        assert any("cost limits" in r.getMessage().lower() for r in caplog.records)

    @pytest.mark.parametrize("raw", ["[1, 2]", '"text"', '{"daily": "five"}', '{"monthly": true}'])
    def test_wrong_shape_cost_limits_is_absent(self, raw):
        context = self.extractor.extract({"x-synapse-cost-limits": raw})
        assert context.cost_limits is None

    def test_partial_cost_limits(self):
        context = self.extractor.extract({"x-synapse-cost-limits": '{"daily": 2}'})
        assert context.cost_limits == CostLimits(daily=2.0)
        assert context.cost_limits.to_dict() == {"daily": 2.0}

    def test_unknown_agent_type_is_absent(self):
        context = self.extractor.extract({"x-synapse-agent-type": "poet"})
        assert context.agent_type is None

    def test_unrelated_headers_ignored(self):
        context = self.extractor.extract({
            "content-type": "application/json",
            "x-synapse-unknown": "value",
        })
        assert context == AgentContext()

    def test_has_routing_hints(self):
        assert not has_routing_hints(AgentContext(estimated_tokens=50))
        assert has_routing_hints(AgentContext(project_id="p"))
        assert has_routing_hints(AgentContext(agent_type=AgentType.GENERAL))


# ============================================================
# ModelSelector
# ============================================================

class TestModelSelector:
    """Test the model precedence policy."""

    def setup_method(self):
        self.selector = ModelSelector()

    def test_comma_model_passes_through(self, sample_config):
        selection = self.selector.select(
            AgentContext(agent_type=AgentType.CODING, estimated_tokens=100_000),
            sample_config,
            requested_model="p2,model-think",
        )
        assert selection.model == "p2,model-think"
        assert selection.rule == SelectionRule.EXPLICIT

    @pytest.mark.parametrize("tokens", [0, 10, 60_001, 500_000])
    def test_coding_agent_gets_coder_regardless_of_tokens(self, sample_config, tokens):
        selection = self.selector.select(
            AgentContext(agent_type=AgentType.CODING, estimated_tokens=tokens),
            sample_config,
        )
        assert selection.model == "model-coder"
        assert selection.rule == SelectionRule.AGENT_TYPE

    @pytest.mark.parametrize("agent_type,expected", [
        (AgentType.CODING, "model-coder"),
        (AgentType.ANALYSIS, "model-tool"),
        (AgentType.REASONING, "model-think"),
        (AgentType.GENERAL, "model-a"),
    ])
    def test_agent_type_table(self, sample_config, agent_type, expected):
        selection = self.selector.select(AgentContext(agent_type=agent_type), sample_config)
        assert selection.model == expected

    def test_unset_agent_slot_falls_back_to_default(self, sample_config):
        sample_config.models.coder = ""
        selection = self.selector.select(AgentContext(agent_type=AgentType.CODING), sample_config)
        assert selection.model == "model-a"

    def test_long_context_without_agent_type(self, sample_config):
        selection = self.selector.select(AgentContext(estimated_tokens=60_001), sample_config)
        assert selection.model == "model-long"
        assert selection.rule == SelectionRule.LONG_CONTEXT

    def test_threshold_is_exclusive(self, sample_config):
        selection = self.selector.select(AgentContext(estimated_tokens=60_000), sample_config)
        assert selection.model == "model-a"

    def test_long_context_unset_uses_default(self, sample_config):
        sample_config.models.long_context = ""
        selection = self.selector.select(AgentContext(estimated_tokens=90_000), sample_config)
        assert selection.model == "model-a"
        assert selection.rule == SelectionRule.DEFAULT

    def test_fast_pattern(self, sample_config):
        selection = self.selector.select(
            AgentContext(),
            sample_config,
            requested_model="claude-3-5-haiku-20241022",
        )
        assert selection.model == "model-fast"
        assert selection.rule == SelectionRule.FAST

    def test_custom_fast_pattern(self, sample_config):
        selector = ModelSelector(fast_model_pattern=r"mini$")
        selection = selector.select(AgentContext(), sample_config, requested_model="gpt-4o-mini")
        assert selection.model == "model-fast"

    def test_thinking_flag(self, sample_config):
        selection = self.selector.select(AgentContext(), sample_config, thinking=True)
        assert selection.model == "model-think"
        assert selection.rule == SelectionRule.THINK

    def test_default(self, sample_config):
        selection = self.selector.select(
            AgentContext(), sample_config, requested_model="claude-3-5-sonnet-20241022"
        )
        assert selection.model == "model-a"
        assert selection.rule == SelectionRule.DEFAULT

    def test_custom_threshold(self, sample_config):
        selector = ModelSelector(long_context_threshold=1000)
        selection = selector.select(AgentContext(estimated_tokens=1001), sample_config)
        assert selection.model == "model-long"

    def test_passthrough(self):
        config = RouterConfig()
        config.models.default = "fallback-model"

        assert self.selector.passthrough(config, "asked-for").model == "asked-for"
        assert self.selector.passthrough(config, None).model == "fallback-model"
        assert self.selector.passthrough(config).rule == SelectionRule.PASSTHROUGH
