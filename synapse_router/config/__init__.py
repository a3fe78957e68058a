"""
Synapse Router - Configuration

- settings: process settings from the environment
- store: persisted routing configuration (models, providers, routing, monitoring)
- validation: batch validation of configuration patches
"""

from .settings import Settings, get_home_dir, load_settings
from .store import ConfigStore, default_config
from .validation import ValidationResult, extract_patch, validate_config_patch

__all__ = [
    "ConfigStore",
    "Settings",
    "ValidationResult",
    "default_config",
    "extract_patch",
    "get_home_dir",
    "load_settings",
    "validate_config_patch",
]
