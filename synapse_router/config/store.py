"""
Synapse Router - Configuration Store

Loads, validates and persists the routing configuration.

- load() never raises: a missing or unreadable document yields the built-in
  default configuration.
- save(patch) validates first, then shallow-merges the supplied top-level
  sections over the current configuration and writes atomically.
- Parsed documents are cached by file signature (mtime, size), so repeated
  loads of an unchanged file do not re-parse it.
"""

import copy
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from ..core.errors import PersistenceError, ValidationError
from ..core.models import (
    ModelsConfig,
    MonitoringSettings,
    ProviderConfig,
    RouterConfig,
    RoutingSettings,
)
from ..core.persistence import JsonFileStore
from ..observability.logging import get_logger
from .validation import ValidationResult, extract_patch, validate_config_patch

logger = get_logger(__name__)


def default_config() -> RouterConfig:
    """Built-in configuration used when nothing has been persisted yet."""
    return RouterConfig(
        models=ModelsConfig(
            default="claude-3-5-sonnet-20241022",
            coder="deepseek-chat",
            tool="qwen-max-2025-01-25",
            think="deepseek-reasoner",
            fast="claude-3-5-haiku-20241022",
            long_context="claude-3-5-sonnet-20241022",
        ),
        providers={
            "openrouter": ProviderConfig(
                api_key=os.getenv("OPENROUTER_API_KEY", ""),
                base_url="https://openrouter.ai/api/v1",
                models=["claude-3-5-sonnet-20241022", "claude-3-5-haiku-20241022"],
            ),
        },
        routing=RoutingSettings(enabled=True, fallback_enabled=True, retry_attempts=3),
        monitoring=MonitoringSettings(usage_tracking=True, health_checks=True, cost_tracking=True),
    )


class ConfigStore:
    """File-backed RouterConfig store."""

    def __init__(self, path: Union[str, Path]):
        self._file = JsonFileStore(path)
        self._lock = threading.RLock()
        self._cache: Optional[Tuple[Tuple[int, int], RouterConfig]] = None

    @property
    def path(self) -> Path:
        return self._file.path

    def load(self) -> RouterConfig:
        """
        Return the current configuration.

        Falls back to default_config() when the document is absent, empty
        or malformed; the failure is logged, never raised.
        """
        with self._lock:
            try:
                signature = self._file.signature()
                if signature is None:
                    return default_config()

                if self._cache is not None and self._cache[0] == signature:
                    return copy.deepcopy(self._cache[1])

                data = self._file.load()
                if data is None:
                    return default_config()

                config = RouterConfig.from_dict(data)
            except (OSError, ValueError, TypeError) as e:
                # json.JSONDecodeError is a ValueError
                logger.warning(
                    "Failed to load config, using defaults",
                    path=str(self.path),
                    error=str(e),
                )
                return default_config()

            self._cache = (signature, config)
            return copy.deepcopy(config)

    def validate(self, patch: Any) -> ValidationResult:
        return validate_config_patch(patch)

    def save(self, patch: Dict[str, Any]) -> RouterConfig:
        """
        Validate and persist a partial configuration.

        Each supplied top-level section replaces the existing one entirely.

        Raises:
            ValidationError: with every violation when the patch is invalid
            PersistenceError: when the document cannot be written
        """
        result = self.validate(patch)
        if not result.valid:
            raise ValidationError(result.errors)

        sections = extract_patch(patch)

        with self._lock:
            merged_dict = self.load().to_dict()
            merged_dict.update(sections)
            merged = RouterConfig.from_dict(merged_dict)

            try:
                self._file.write(merged.to_dict())
            except (OSError, TypeError) as e:
                raise PersistenceError(
                    f"Failed to save configuration: {e}",
                    path=str(self.path),
                ) from e
            finally:
                self._cache = None

        logger.info(
            "Configuration updated",
            sections=sorted(sections.keys()),
            providers=sorted(merged.providers.keys()),
        )
        return copy.deepcopy(merged)
