"""Unit tests for the embedding and LLM provider factories."""

from __future__ import annotations

import pytest

from ragkit.config.settings import Settings
from ragkit.models.agent import AgentLLMConfig
from ragkit.models.providers import (
    EmbeddingProviderConfig,
    EmbeddingProviderKind,
    LLMProviderConfig,
    LLMProviderKind,
)
from ragkit.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from ragkit.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragkit.providers.factory import EmbeddingProviderFactory, LLMProviderFactory
from ragkit.providers.llm.anthropic_provider import AnthropicLLMProvider
from ragkit.providers.llm.ollama_provider import OllamaLLMProvider
from ragkit.utils.errors import ConfigurationError


def _settings(**overrides) -> Settings:
    defaults = {"openai_api_key": "", "anthropic_api_key": "", "google_api_key": ""}
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


# ======================================================================
# Embedding factory
# ======================================================================


class TestEmbeddingProviderFactory:
    def test_openai_requires_api_key(self) -> None:
        config = EmbeddingProviderConfig(
            provider=EmbeddingProviderKind.OPENAI, default_model="text-embedding-3-small", dimensions=1536
        )
        with pytest.raises(ConfigurationError) as exc_info:
            EmbeddingProviderFactory.create(config)
        assert exc_info.value.code == "MISSING_API_KEY"

    def test_ollama_needs_no_key(self) -> None:
        provider = EmbeddingProviderFactory().create_from_settings(_settings(embedding_provider="ollama"))
        assert isinstance(provider, OllamaEmbeddingProvider)
        assert provider.dimensions == 768

    def test_unknown_provider(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            EmbeddingProviderFactory().create_from_settings(_settings(), "cohere")
        assert exc_info.value.code == "UNKNOWN_PROVIDER"

    def test_instances_are_cached_by_kind_and_model(self) -> None:
        factory = EmbeddingProviderFactory()
        settings = _settings(openai_api_key="sk-test")

        first = factory.create_from_settings(settings, "openai")
        second = factory.create_from_settings(settings, EmbeddingProviderKind.OPENAI)

        assert isinstance(first, OpenAIEmbeddingProvider)
        assert first is second

        factory.clear_cache()
        assert factory.create_from_settings(settings, "openai") is not first

    def test_config_from_settings(self) -> None:
        config = EmbeddingProviderFactory.config_from_settings(
            _settings(openai_api_key="sk-test", openai_base_url="", provider_max_retries=5), "openai"
        )
        assert config.base_url is None
        assert config.max_retries == 5
        assert config.max_batch_size == 2048

    @pytest.mark.asyncio
    async def test_aclose_closes_cached_providers(self) -> None:
        factory = EmbeddingProviderFactory()
        settings = _settings(embedding_provider="ollama")
        provider = factory.create_from_settings(settings)

        await factory.aclose()

        assert provider._http.is_closed
        assert factory.create_from_settings(settings) is not provider


# ======================================================================
# LLM factory
# ======================================================================


class TestLLMProviderFactory:
    @pytest.mark.parametrize("kind", ["openai", "anthropic", "google"])
    def test_hosted_providers_require_key(self, kind: str) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            LLMProviderFactory().create_from_settings(_settings(), kind)
        assert exc_info.value.code == "MISSING_API_KEY"

    def test_create_requires_key(self) -> None:
        config = LLMProviderConfig(provider=LLMProviderKind.ANTHROPIC, default_model="claude-test")
        with pytest.raises(ConfigurationError):
            LLMProviderFactory.create(config)

    def test_ollama(self) -> None:
        provider = LLMProviderFactory().create_from_settings(_settings(), "ollama")
        assert isinstance(provider, OllamaLLMProvider)

    def test_unknown_provider(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            LLMProviderFactory().create_from_settings(_settings(llm_provider="mistral"))
        assert exc_info.value.code == "UNKNOWN_PROVIDER"

    def test_create_for_agent_uses_agent_model(self) -> None:
        factory = LLMProviderFactory()
        settings = _settings(anthropic_api_key="sk-ant")
        agent_config = AgentLLMConfig(provider=LLMProviderKind.ANTHROPIC, model="claude-custom")

        provider = factory.create_for_agent(agent_config, settings)

        assert isinstance(provider, AnthropicLLMProvider)
        assert provider.default_model == "claude-custom"
        assert factory.create_for_agent(agent_config, settings) is provider
        assert factory.create_from_settings(settings, "anthropic") is not provider

    def test_organization_only_for_openai(self) -> None:
        settings = _settings(openai_api_key="sk", anthropic_api_key="sk-ant", openai_organization="org-1")
        assert LLMProviderFactory.config_from_settings(settings, "openai").organization == "org-1"
        assert LLMProviderFactory.config_from_settings(settings, "anthropic").organization is None

    @pytest.mark.asyncio
    async def test_aclose_closes_cached_providers(self) -> None:
        factory = LLMProviderFactory()
        provider = factory.create_from_settings(_settings(llm_provider="ollama"))

        await factory.aclose()

        assert isinstance(provider, OllamaLLMProvider)
        assert provider._http.is_closed
