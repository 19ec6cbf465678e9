"""Provider factories.

Map a provider kind to its adapter class through a registration table,
check that the credentials the adapter needs are present, and cache
built providers by ``{kind}:{model}`` so repeated lookups share one
client (and one connection pool).
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import TypeVar

import structlog

from ragkit.config.settings import Settings
from ragkit.interfaces.embedding_provider import IEmbeddingProvider
from ragkit.interfaces.llm_provider import ILLMProvider
from ragkit.models.agent import AgentLLMConfig
from ragkit.models.providers import (
    EmbeddingProviderConfig,
    EmbeddingProviderKind,
    LLMProviderConfig,
    LLMProviderKind,
)
from ragkit.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from ragkit.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragkit.providers.llm.anthropic_provider import AnthropicLLMProvider
from ragkit.providers.llm.google_provider import GoogleLLMProvider
from ragkit.providers.llm.ollama_provider import OllamaLLMProvider
from ragkit.providers.llm.openai_provider import OpenAILLMProvider
from ragkit.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

_K = TypeVar("_K", bound=Enum)


def _parse_kind(kind_cls: type[_K], value: str | _K) -> _K:
    try:
        return kind_cls(value)
    except ValueError as exc:
        known = ", ".join(member.value for member in kind_cls)
        raise ConfigurationError(
            f"Unknown provider '{value}' (expected one of: {known})",
            provider_name="factory",
            code="UNKNOWN_PROVIDER",
        ) from exc


def _optional(value: str) -> str | None:
    return value or None


# ---------------------------------------------------------------------------
# Embedding providers
# ---------------------------------------------------------------------------


class EmbeddingProviderFactory:
    """Builds and caches :class:`IEmbeddingProvider` instances."""

    _BUILDERS: dict[EmbeddingProviderKind, Callable[[EmbeddingProviderConfig], IEmbeddingProvider]] = {
        EmbeddingProviderKind.OLLAMA: OllamaEmbeddingProvider,
        EmbeddingProviderKind.OPENAI: OpenAIEmbeddingProvider,
    }
    _REQUIRES_API_KEY = frozenset({EmbeddingProviderKind.OPENAI})

    def __init__(self) -> None:
        self._providers: dict[str, IEmbeddingProvider] = {}

    @classmethod
    def create(cls, config: EmbeddingProviderConfig) -> IEmbeddingProvider:
        """Build a new provider for *config* (never cached).

        Raises
        ------
        ConfigurationError
            ``UNKNOWN_PROVIDER`` if no adapter is registered for the kind,
            ``MISSING_API_KEY`` if the adapter needs a key and none is set.
        """
        kind = _parse_kind(EmbeddingProviderKind, config.provider)
        builder = cls._BUILDERS.get(kind)
        if builder is None:
            raise ConfigurationError(
                f"No embedding provider registered for '{kind.value}'",
                provider_name="factory",
                code="UNKNOWN_PROVIDER",
            )
        if kind in cls._REQUIRES_API_KEY and not config.api_key:
            raise ConfigurationError(
                f"An API key is required for the {kind.value} embedding provider",
                provider_name=kind.value,
                code="MISSING_API_KEY",
            )
        logger.info("embedding_provider_created", provider=kind.value, model=config.default_model)
        return builder(config)

    def get_or_create(self, config: EmbeddingProviderConfig) -> IEmbeddingProvider:
        key = f"{config.provider.value}:{config.default_model}"
        if key not in self._providers:
            self._providers[key] = self.create(config)
        return self._providers[key]

    def create_from_settings(
        self,
        settings: Settings,
        kind: str | EmbeddingProviderKind | None = None,
    ) -> IEmbeddingProvider:
        """Return the provider named by *kind* (default: ``settings.embedding_provider``)."""
        return self.get_or_create(self.config_from_settings(settings, kind))

    @staticmethod
    def config_from_settings(
        settings: Settings,
        kind: str | EmbeddingProviderKind | None = None,
    ) -> EmbeddingProviderConfig:
        resolved = _parse_kind(EmbeddingProviderKind, kind or settings.embedding_provider)
        if resolved is EmbeddingProviderKind.OPENAI:
            return EmbeddingProviderConfig(
                provider=resolved,
                api_key=_optional(settings.openai_api_key),
                base_url=_optional(settings.openai_base_url),
                default_model=settings.openai_embedding_model,
                dimensions=settings.openai_embedding_dimensions,
                max_batch_size=2048,
                max_retries=settings.provider_max_retries,
                retry_delay_ms=settings.provider_retry_delay_ms,
                timeout_ms=settings.embedding_timeout_ms,
            )
        return EmbeddingProviderConfig(
            provider=resolved,
            base_url=_optional(settings.ollama_base_url),
            default_model=settings.ollama_embedding_model,
            dimensions=settings.ollama_embedding_dimensions,
            max_batch_size=settings.ollama_embedding_batch_size,
            max_retries=settings.provider_max_retries,
            retry_delay_ms=settings.provider_retry_delay_ms,
            timeout_ms=settings.ollama_embedding_timeout_ms,
        )

    def clear_cache(self) -> None:
        self._providers.clear()

    async def aclose(self) -> None:
        """Close every cached provider and forget it."""
        for provider in self._providers.values():
            await provider.aclose()
        self._providers.clear()


# ---------------------------------------------------------------------------
# LLM providers
# ---------------------------------------------------------------------------


class LLMProviderFactory:
    """Builds and caches :class:`ILLMProvider` instances."""

    _BUILDERS: dict[LLMProviderKind, Callable[[LLMProviderConfig], ILLMProvider]] = {
        LLMProviderKind.OPENAI: OpenAILLMProvider,
        LLMProviderKind.ANTHROPIC: AnthropicLLMProvider,
        LLMProviderKind.GOOGLE: GoogleLLMProvider,
        LLMProviderKind.OLLAMA: OllamaLLMProvider,
    }
    _REQUIRES_API_KEY = frozenset({LLMProviderKind.OPENAI, LLMProviderKind.ANTHROPIC, LLMProviderKind.GOOGLE})

    def __init__(self) -> None:
        self._providers: dict[str, ILLMProvider] = {}

    @classmethod
    def create(cls, config: LLMProviderConfig) -> ILLMProvider:
        """Build a new provider for *config* (never cached).

        Raises
        ------
        ConfigurationError
            ``UNKNOWN_PROVIDER`` or ``MISSING_API_KEY``.
        """
        kind = _parse_kind(LLMProviderKind, config.provider)
        builder = cls._BUILDERS.get(kind)
        if builder is None:
            raise ConfigurationError(
                f"No LLM provider registered for '{kind.value}'",
                provider_name="factory",
                code="UNKNOWN_PROVIDER",
            )
        if kind in cls._REQUIRES_API_KEY and not config.api_key:
            raise ConfigurationError(
                f"An API key is required for the {kind.value} LLM provider",
                provider_name=kind.value,
                code="MISSING_API_KEY",
            )
        logger.info("llm_provider_created", provider=kind.value, model=config.default_model)
        return builder(config)

    def get_or_create(self, config: LLMProviderConfig) -> ILLMProvider:
        key = f"{config.provider.value}:{config.default_model}"
        if key not in self._providers:
            self._providers[key] = self.create(config)
        return self._providers[key]

    def create_from_settings(
        self,
        settings: Settings,
        kind: str | LLMProviderKind | None = None,
        model: str | None = None,
    ) -> ILLMProvider:
        """Return the provider named by *kind* (default: ``settings.llm_provider``)."""
        return self.get_or_create(self.config_from_settings(settings, kind, model))

    def create_for_agent(self, llm_config: AgentLLMConfig, settings: Settings) -> ILLMProvider:
        """Return the provider an agent is configured to use, with the agent's model."""
        return self.create_from_settings(settings, llm_config.provider, llm_config.model)

    @staticmethod
    def config_from_settings(
        settings: Settings,
        kind: str | LLMProviderKind | None = None,
        model: str | None = None,
    ) -> LLMProviderConfig:
        resolved = _parse_kind(LLMProviderKind, kind or settings.llm_provider)
        per_kind = {
            LLMProviderKind.OPENAI: (
                settings.openai_api_key,
                settings.openai_base_url,
                settings.openai_llm_model,
                settings.llm_timeout_ms,
            ),
            LLMProviderKind.ANTHROPIC: (
                settings.anthropic_api_key,
                settings.anthropic_base_url,
                settings.anthropic_llm_model,
                settings.llm_timeout_ms,
            ),
            LLMProviderKind.GOOGLE: (
                settings.google_api_key,
                settings.google_base_url,
                settings.google_llm_model,
                settings.llm_timeout_ms,
            ),
            LLMProviderKind.OLLAMA: (
                "",
                settings.ollama_base_url,
                settings.ollama_llm_model,
                settings.ollama_llm_timeout_ms,
            ),
        }
        api_key, base_url, default_model, timeout_ms = per_kind[resolved]
        return LLMProviderConfig(
            provider=resolved,
            api_key=_optional(api_key),
            base_url=_optional(base_url),
            organization=_optional(settings.openai_organization) if resolved is LLMProviderKind.OPENAI else None,
            default_model=model or default_model,
            max_retries=settings.provider_max_retries,
            retry_delay_ms=settings.provider_retry_delay_ms,
            timeout_ms=timeout_ms,
        )

    def clear_cache(self) -> None:
        self._providers.clear()

    async def aclose(self) -> None:
        """Close every cached provider and forget it."""
        for provider in self._providers.values():
            await provider.aclose()
        self._providers.clear()
