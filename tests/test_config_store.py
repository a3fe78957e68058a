"""
Synapse Router - Configuration Store Tests

Verifies:
- Default configuration when nothing is persisted
- Patch validation (every violation reported)
- Shallow merge + atomic persistence
"""

import json

import pytest

from synapse_router.config.store import ConfigStore, default_config
from synapse_router.config.validation import extract_patch, validate_config_patch
from synapse_router.core.errors import ValidationError
from synapse_router.core.models import RoutingSettings


VALID_MODELS = {
    "default": "m-default",
    "coder": "m-coder",
    "tool": "m-tool",
    "think": "m-think",
    "fast": "m-fast",
    "longContext": "m-long",
}


# ============================================================
# Loading
# ============================================================

class TestLoad:
    """Test reading the persisted document."""

    def test_missing_file_yields_default(self, config_path):
        store = ConfigStore(config_path)

        config = store.load()

        assert config == default_config()
        assert config.models.default == "claude-3-5-sonnet-20241022"
        assert "openrouter" in config.providers
        assert not config_path.exists()

    def test_default_reads_openrouter_key_from_env(self, config_path, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-env")
        assert ConfigStore(config_path).load().providers["openrouter"].api_key == "sk-env"

    @pytest.mark.parametrize("content", [
        "",
        "{not json",
        "[1, 2]",
        '{"routing": {"retryAttempts": "many"}}',
        '{"models": ["x"]}',
        '{"routing": true}',
        '{"monitoring": "on"}',
        '{"providers": []}',
    ])
    def test_unreadable_file_yields_default(self, config_path, content):
        config_path.write_text(content)
        assert ConfigStore(config_path).load() == default_config()

    def test_repeated_loads_are_identical(self, config_store):
        first = config_store.load()
        second = config_store.load()

        assert first == second
        assert first is not second

    def test_loaded_config_is_a_copy(self, config_store):
        config = config_store.load()
        config.models.default = "mutated"

        assert config_store.load().models.default == "model-a"

    def test_reload_after_external_edit(self, config_store, config_path, sample_config_dict):
        assert config_store.load().models.default == "model-a"

        sample_config_dict["models"]["default"] = "edited-externally-model"
        config_path.write_text(json.dumps(sample_config_dict))

        assert config_store.load().models.default == "edited-externally-model"

    def test_provider_base_url_trailing_slash_dropped(self, config_store):
        assert config_store.load().providers["p2"].base_url == "https://p2.example.com/v1"

    @pytest.mark.parametrize("fallback_enabled, retry_attempts, expected", [
        (True, 3, 3),
        (True, 0, 0),
        (False, 3, 1),
        (False, 0, 0),
    ])
    def test_attempt_bound(self, fallback_enabled, retry_attempts, expected):
        routing = RoutingSettings(fallback_enabled=fallback_enabled, retry_attempts=retry_attempts)
        assert routing.max_attempts == expected


# ============================================================
# Validation
# ============================================================

class TestValidation:
    """Test patch validation."""

    def test_empty_patch_is_valid(self):
        assert validate_config_patch({}).valid

    def test_non_object_patch(self):
        result = validate_config_patch(["models"])
        assert not result.valid
        assert result.errors == ["Configuration update must be a JSON object"]

    def test_models_reports_every_violation(self):
        result = validate_config_patch({"models": {"default": ""}})

        assert not result.valid
        missing = [e for e in result.errors if e.startswith("Missing required model")]
        assert len(missing) == 5
        assert "Model cannot be empty: default" in result.errors
        assert len(result.errors) == 6

    def test_provider_violations(self):
        result = validate_config_patch({
            "providers": {
                "bad": {"apiKey": "", "models": []},
                "worse": "not-an-object",
                "ok": {"apiKey": "k", "baseUrl": "https://x", "models": ["m"]},
            }
        })

        assert result.errors == [
            "Missing API key for provider: bad",
            "Missing base URL for provider: bad",
            "Invalid models array for provider: bad",
            "Provider config must be an object: worse",
        ]

    def test_routing_violations(self):
        result = validate_config_patch({
            "routing": {"enabled": "yes", "fallbackEnabled": True, "retryAttempts": -1}
        })

        assert result.errors == [
            "routing.enabled must be a boolean",
            "routing.retryAttempts must be a non-negative integer",
        ]

    def test_retry_attempts_rejects_bool(self):
        result = validate_config_patch({
            "routing": {"enabled": True, "fallbackEnabled": True, "retryAttempts": True}
        })
        assert "routing.retryAttempts must be a non-negative integer" in result.errors

    def test_monitoring_violations(self):
        result = validate_config_patch({"monitoring": {"usageTracking": True}})

        assert result.errors == [
            "monitoring.healthChecks must be a boolean",
            "monitoring.costTracking must be a boolean",
        ]

    def test_violations_across_sections_are_combined(self):
        result = validate_config_patch({"models": [], "routing": "fast", "monitoring": 1})

        assert result.errors == [
            "models must be an object",
            "routing must be an object",
            "monitoring must be an object",
        ]

    def test_extract_patch_ignores_unknown_and_null_sections(self):
        patch = extract_patch({"models": VALID_MODELS, "routing": None, "extra": {"a": 1}})
        assert patch == {"models": VALID_MODELS}


# ============================================================
# Saving
# ============================================================

class TestSave:
    """Test validated, merged, atomic persistence."""

    def test_invalid_patch_raises_with_all_errors(self, config_store, config_path):
        before = config_path.read_text()

        with pytest.raises(ValidationError) as exc_info:
            config_store.save({"models": {"default": ""}})

        assert exc_info.value.status_code == 400
        assert len(exc_info.value.errors) == 6
        assert exc_info.value.error.details == exc_info.value.errors
        assert config_path.read_text() == before

    def test_section_replaces_existing_section(self, config_store):
        saved = config_store.save({
            "providers": {"p3": {"apiKey": "k3", "baseUrl": "https://p3.example.com", "models": ["m"]}}
        })

        assert set(saved.providers) == {"p3"}
        # untouched sections survive
        assert saved.models.default == "model-a"
        assert saved.routing.retry_attempts == 3

    def test_save_then_load(self, config_store, config_path):
        config_store.save({"models": VALID_MODELS})

        loaded = config_store.load()
        on_disk = json.loads(config_path.read_text())

        assert loaded.models.long_context == "m-long"
        assert on_disk["models"] == VALID_MODELS
        assert set(on_disk["providers"]) == {"p1", "p2"}

    def test_save_creates_missing_file(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        store = ConfigStore(path)

        store.save({"routing": {"enabled": False, "fallbackEnabled": False, "retryAttempts": 0}})

        assert path.exists()
        loaded = store.load()
        assert loaded.routing.enabled is False
        assert loaded.routing.max_attempts == 0
        # defaults filled the other sections
        assert loaded.models == default_config().models

    def test_no_temp_files_left_behind(self, config_store, tmp_path):
        config_store.save({"models": VALID_MODELS})
        config_store.save({"monitoring": {"usageTracking": False, "healthChecks": True, "costTracking": True}})

        assert list(tmp_path.glob("*.tmp")) == []
        assert list(tmp_path.glob(".*.tmp")) == []
