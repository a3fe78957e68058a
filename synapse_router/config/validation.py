"""
Synapse Router - Configuration Validation

Validates partial RouterConfig updates. Every violation is collected and
reported together; validation never stops at the first problem.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..core.models import MODEL_KEYS, MONITORING_KEYS

# Top-level sections accepted in a patch; anything else is ignored
PATCH_SECTIONS = ("models", "providers", "routing", "monitoring")


@dataclass
class ValidationResult:
    """Outcome of validating a configuration patch."""
    valid: bool
    errors: List[str] = field(default_factory=list)


def _is_bool(value: Any) -> bool:
    return isinstance(value, bool)


def _is_non_negative_int(value: Any) -> bool:
    # bool is an int subclass; `true` is not a valid attempt count
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _validate_models(models: Any, errors: List[str]):
    if not isinstance(models, dict):
        errors.append("models must be an object")
        return

    for key in MODEL_KEYS:
        value = models.get(key)
        if value is None:
            errors.append(f"Missing required model: {key}")
        elif not isinstance(value, str):
            errors.append(f"Model must be a string: {key}")
        elif not value.strip():
            errors.append(f"Model cannot be empty: {key}")


def _validate_providers(providers: Any, errors: List[str]):
    if not isinstance(providers, dict):
        errors.append("providers must be an object")
        return

    for name, entry in providers.items():
        if not isinstance(entry, dict):
            errors.append(f"Provider config must be an object: {name}")
            continue

        if not _non_empty_string(entry.get("apiKey")):
            errors.append(f"Missing API key for provider: {name}")
        if not _non_empty_string(entry.get("baseUrl")):
            errors.append(f"Missing base URL for provider: {name}")

        models = entry.get("models")
        if (
            not isinstance(models, list)
            or not models
            or not all(_non_empty_string(m) for m in models)
        ):
            errors.append(f"Invalid models array for provider: {name}")


def _validate_routing(routing: Any, errors: List[str]):
    if not isinstance(routing, dict):
        errors.append("routing must be an object")
        return

    if not _is_bool(routing.get("enabled")):
        errors.append("routing.enabled must be a boolean")
    if not _is_bool(routing.get("fallbackEnabled")):
        errors.append("routing.fallbackEnabled must be a boolean")
    if not _is_non_negative_int(routing.get("retryAttempts")):
        errors.append("routing.retryAttempts must be a non-negative integer")


def _validate_monitoring(monitoring: Any, errors: List[str]):
    if not isinstance(monitoring, dict):
        errors.append("monitoring must be an object")
        return

    for key in MONITORING_KEYS:
        if not _is_bool(monitoring.get(key)):
            errors.append(f"monitoring.{key} must be a boolean")


def validate_config_patch(patch: Any) -> ValidationResult:
    """
    Validate a partial configuration update.

    Sections that are absent (or null) are not checked. A supplied section
    must be complete: `models` needs all six slots, `routing` and
    `monitoring` need every field with the right type.

    Returns:
        ValidationResult listing every violation found
    """
    if not isinstance(patch, dict):
        return ValidationResult(valid=False, errors=["Configuration update must be a JSON object"])

    errors: List[str] = []

    if patch.get("models") is not None:
        _validate_models(patch["models"], errors)
    if patch.get("providers") is not None:
        _validate_providers(patch["providers"], errors)
    if patch.get("routing") is not None:
        _validate_routing(patch["routing"], errors)
    if patch.get("monitoring") is not None:
        _validate_monitoring(patch["monitoring"], errors)

    return ValidationResult(valid=not errors, errors=errors)


def extract_patch(body: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only the recognized, non-null top-level sections of a request body."""
    return {
        key: body[key]
        for key in PATCH_SECTIONS
        if body.get(key) is not None
    }
