"""
Synapse Router - Process Settings

Environment-driven settings for the running process. Routing configuration
(models, providers, routing and monitoring flags) is not here: it lives in
the ConfigStore document and is editable through the admin API.
"""

import os
from dataclasses import dataclass
from pathlib import Path


def _is_truthy(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def get_home_dir() -> Path:
    """
    Directory holding config.json and usage.json.

    SYNAPSE_ROUTER_HOME overrides the default of ~/.synapse-router.
    """
    override = os.getenv("SYNAPSE_ROUTER_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".synapse-router"


@dataclass
class Settings:
    """Snapshot of the process settings."""
    home_dir: Path
    log_level: str = "INFO"
    log_json: bool = True
    health_interval_seconds: float = 30.0
    health_timeout_seconds: float = 10.0
    health_sweep_enabled: bool = True
    dispatch_timeout_seconds: float = 60.0
    usage_retention: int = 10_000
    usage_flush_interval_seconds: float = 5.0
    long_context_threshold: int = 60_000
    tokenizer_encoding: str = ""
    fast_model_pattern: str = r"^claude-3-5-haiku"
    host: str = "127.0.0.1"
    port: int = 3456

    @property
    def config_path(self) -> Path:
        return self.home_dir / "config.json"

    @property
    def usage_path(self) -> Path:
        return self.home_dir / "usage.json"


def load_settings() -> Settings:
    """
    Read settings from the environment.

    Raises:
        ValueError: if a numeric variable cannot be parsed
    """
    return Settings(
        home_dir=get_home_dir(),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=os.getenv("LOG_FORMAT", "json").lower() == "json",
        health_interval_seconds=_env_float("SYNAPSE_HEALTH_INTERVAL", 30.0),
        health_timeout_seconds=_env_float("SYNAPSE_HEALTH_TIMEOUT", 10.0),
        health_sweep_enabled=_is_truthy(os.getenv("SYNAPSE_HEALTH_SWEEP", "true")),
        dispatch_timeout_seconds=_env_float("SYNAPSE_DISPATCH_TIMEOUT", 60.0),
        usage_retention=_env_int("SYNAPSE_USAGE_RETENTION", 10_000),
        usage_flush_interval_seconds=_env_float("SYNAPSE_USAGE_FLUSH_INTERVAL", 5.0),
        long_context_threshold=_env_int("SYNAPSE_LONG_CONTEXT_THRESHOLD", 60_000),
        tokenizer_encoding=os.getenv("SYNAPSE_TOKENIZER_ENCODING", "").strip(),
        fast_model_pattern=os.getenv("SYNAPSE_FAST_MODEL_PATTERN", r"^claude-3-5-haiku"),
        host=os.getenv("HOST", "127.0.0.1"),
        port=_env_int("PORT", 3456),
    )
