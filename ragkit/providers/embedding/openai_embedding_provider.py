"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Inputs larger than ``max_batch_size`` (2048 for OpenAI) are split into
sequential sub-batches and merged back in input order.
"""

from __future__ import annotations

import openai
import structlog

from ragkit.interfaces.embedding_provider import IEmbeddingProvider
from ragkit.models.providers import (
    EmbeddingProviderConfig,
    EmbeddingResponse,
    EmbeddingResult,
    EmbeddingUsage,
)
from ragkit.providers.llm.openai_provider import translate_openai_error
from ragkit.utils.batching import merge_embedding_responses, process_in_batches
from ragkit.utils.errors import EmbeddingError, EmptyInputError
from ragkit.utils.resilience import EMBEDDING_MAX_DELAY_MS, ResilienceExecutor, RetryPolicy

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MODEL = "text-embedding-3-small"
DEFAULT_BATCH_LIMIT = 2048
DEFAULT_TIMEOUT_MS = 30_000

# Known embedding model dimensions.
MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API."""

    def __init__(self, config: EmbeddingProviderConfig) -> None:
        self._config = config
        client_kwargs: dict = {
            "api_key": config.api_key,
            "timeout": config.timeout_ms / 1000,
            "max_retries": 0,
        }
        if config.base_url:
            client_kwargs["base_url"] = config.base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._executor = ResilienceExecutor(
            self.name,
            RetryPolicy.from_config(config, EMBEDDING_MAX_DELAY_MS),
        )

    @property
    def name(self) -> str:
        return "openai"

    @property
    def model(self) -> str:
        return self._config.default_model

    @property
    def dimensions(self) -> int:
        return self._config.dimensions

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        if not text.strip():
            raise EmptyInputError("Cannot embed empty text", provider_name=self.name)
        response = await self.embed_batch([text])
        return response.embeddings[0].embedding

    async def embed_batch(self, texts: list[str]) -> EmbeddingResponse:
        if not texts:
            return EmbeddingResponse(model=self.model, dimensions=self.dimensions)

        responses = await process_in_batches(texts, self._config.max_batch_size, self._embed_native)
        return merge_embedding_responses(responses, provider_name=self.name)

    async def aclose(self) -> None:
        await self._client.close()

    async def health_check(self) -> bool:
        async def _ping() -> None:
            await self._client.models.list()

        try:
            await self._executor.with_timeout(_ping)
        except Exception as exc:  # noqa: BLE001
            logger.warning("openai_embedding_health_check_failed", error=str(exc))
            return False
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _embed_native(self, batch: list[str]) -> EmbeddingResponse:
        async def _call() -> EmbeddingResponse:
            try:
                response = await self._client.embeddings.create(
                    input=batch,
                    model=self.model,
                    encoding_format="float",
                )
            except openai.APIError as exc:
                raise translate_openai_error(self.name, exc, fallback=EmbeddingError) from exc

            results = sorted(
                (EmbeddingResult(embedding=list(item.embedding), index=item.index) for item in response.data),
                key=lambda result: result.index,
            )
            if len(results) != len(batch):
                raise EmbeddingError(
                    f"Expected {len(batch)} embeddings, received {len(results)}",
                    provider_name=self.name,
                    code="BATCH_SIZE_MISMATCH",
                )
            usage = None
            if response.usage:
                usage = EmbeddingUsage(
                    prompt_tokens=response.usage.prompt_tokens,
                    total_tokens=response.usage.total_tokens,
                )
            return EmbeddingResponse(
                embeddings=results,
                model=response.model,
                dimensions=len(results[0].embedding) if results else self.dimensions,
                usage=usage,
            )

        response = await self._executor.run(_call, description="embed_batch")
        logger.info(
            "openai_embedding_batch",
            model=self.model,
            batch_size=len(batch),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return response
