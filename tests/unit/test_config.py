"""Unit tests for settings and the YAML config loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from ragkit.config.loader import _deep_merge, load_config
from ragkit.config.settings import Settings

_SHIPPED_CONFIG = Path(__file__).resolve().parents[2] / "config" / "config.yaml"


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.ollama_base_url == "http://localhost:11434"
        assert settings.provider_max_retries == 3
        assert settings.embedding_cache_enabled is True

    def test_environment_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("EMBEDDING_PROVIDER", "openai")
        monkeypatch.setenv("PROVIDER_MAX_RETRIES", "7")
        settings = Settings(_env_file=None)
        assert settings.embedding_provider == "openai"
        assert settings.provider_max_retries == 7

    def test_available_llm_providers(self) -> None:
        settings = Settings(
            _env_file=None,
            openai_api_key="",
            anthropic_api_key="sk-ant",
            google_api_key="",
            ollama_base_url="",
        )
        assert settings.get_available_llm_providers() == ["anthropic"]


class TestLoadConfig:
    def test_yaml_merged_with_settings(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "chunking:\n  chunk_size: 800\n"
            "logging:\n  level: DEBUG\n  format: json\n"
            "queue:\n  stages:\n    embed:\n      max_attempts: 9\n",
            encoding="utf-8",
        )
        settings = Settings(_env_file=None, log_level="WARNING", llm_provider="anthropic")

        config = load_config(str(path), settings=settings)

        assert config["chunking"] == {"chunk_size": 800}
        assert config["logging"] == {"level": "WARNING", "format": "json"}
        assert config["providers"]["llm"] == "anthropic"
        assert config["queue"]["stages"]["embed"]["max_attempts"] == 9

    def test_missing_file(self, tmp_path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), settings=Settings(_env_file=None))
        assert "chunking" not in config
        assert config["resilience"]["max_retries"] == 3

    def test_shipped_config(self) -> None:
        config = load_config(str(_SHIPPED_CONFIG), settings=Settings(_env_file=None))
        assert config["chunking"]["strategy"] == "recursive"
        assert config["queue"]["dead_letter"] == "kb.failed"
        assert config["queue"]["stages"]["embed"]["retry_delay_ms"] == 10000


@pytest.mark.parametrize(
    ("base", "overrides", "expected"),
    [
        ({"a": {"b": 1, "c": 2}}, {"a": {"b": 3}}, {"a": {"b": 3, "c": 2}}),
        ({"a": 1}, {"a": {"b": 2}}, {"a": {"b": 2}}),
        ({}, {"x": [1]}, {"x": [1]}),
    ],
)
def test_deep_merge(base, overrides, expected) -> None:
    _deep_merge(base, overrides)
    assert base == expected
