"""Resolve the runtime configuration dict from YAML plus Settings.

Configuration is layered, later layers winning:

    1. config/config.yaml  — static defaults (chunking, queue routing)
    2. .env file           — local developer overrides
    3. environment vars    — deploy-time values

``load_config`` reads the YAML, then deep-merges the values resolved by
:class:`Settings` on top.
"""

from __future__ import annotations

from pathlib import Path

import yaml

from ragkit.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Return the YAML defaults with the resolved Settings merged on top.

    Args:
        path: Path to the YAML configuration file.  A missing file yields
            the environment values only.
        settings: Pre-built settings; read from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "providers": {
            "embedding": settings.embedding_provider,
            "llm": settings.llm_provider,
            "available_llm": settings.get_available_llm_providers(),
        },
        "resilience": {
            "max_retries": settings.provider_max_retries,
            "retry_delay_ms": settings.provider_retry_delay_ms,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Merge *overrides* into *base* in place; nested dicts merge key by key."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
