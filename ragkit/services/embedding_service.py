"""Embedding service: normalisation and caching in front of an embedding provider.

Texts are trimmed, whitespace-collapsed and capped at 8000 characters
before they reach the provider.  An optional :class:`ICacheProvider`
stores vectors under ``{provider}:{sha256(text)}`` so identical text is
embedded once per provider.  Cached values are immutable tuples.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

import structlog

from ragkit.models.providers import EmbeddingResponse, EmbeddingResult
from ragkit.utils.batching import merge_embedding_responses, process_in_batches
from ragkit.utils.errors import EmptyInputError

if TYPE_CHECKING:
    from ragkit.interfaces.cache_provider import ICacheProvider
    from ragkit.interfaces.embedding_provider import IEmbeddingProvider
    from ragkit.models.knowledge_base import StoredChunk

logger = structlog.get_logger(logger_name=__name__)

MAX_TEXT_LENGTH = 8000
DEFAULT_BATCH_SIZE = 100

_WHITESPACE = re.compile(r"\s+")

ProgressCallback = Callable[[int, int], None]


class EmbeddingService:
    """Embeds text through one provider, with an optional vector cache.

    Parameters
    ----------
    provider:
        The embedding provider every call is routed to.
    cache:
        Optional cache; ``None`` disables caching.
    cache_ttl:
        TTL in seconds for cached vectors (``None`` = cache default).
    batch_size:
        Texts per provider call; progress is reported after each call.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        cache: ICacheProvider | None = None,
        cache_ttl: int | None = None,
        max_text_length: int = MAX_TEXT_LENGTH,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._max_text_length = max_text_length
        self._batch_size = batch_size

    @property
    def provider_name(self) -> str:
        return self._provider.name

    @property
    def dimensions(self) -> int:
        return self._provider.dimensions

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    async def embed(self, text: str, skip_cache: bool = False) -> list[float]:
        normalized = self.normalize_text(text)
        if not normalized:
            raise EmptyInputError("Cannot embed empty text", provider_name=self.provider_name)

        if self._cache is not None and not skip_cache:
            cached = await self._cache.get(self._cache_key(normalized))
            if cached is not None:
                return list(cached)

        embedding = await self._provider.embed(normalized)
        await self._remember(normalized, embedding)
        return embedding

    async def embed_batch(
        self,
        texts: Sequence[str],
        continue_on_error: bool = False,
        skip_cache: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> EmbeddingResponse:
        """Embed *texts*; each result's ``index`` is its position in *texts*.

        Cached vectors are served without a provider call; the rest go to
        the provider in slices of ``batch_size``.  *on_progress* receives
        ``(done, total)`` after each slice, or once when every text was
        cached.  With *continue_on_error*, empty texts are skipped (their
        index is absent from the result) instead of raising
        :class:`EmptyInputError`.
        """
        if not texts:
            return EmbeddingResponse(model=self._provider.model, dimensions=self.dimensions)

        pending: list[tuple[int, str]] = []
        results: list[EmbeddingResult] = []

        for index, text in enumerate(texts):
            normalized = self.normalize_text(text)
            if not normalized:
                if continue_on_error:
                    logger.warning("embedding_empty_text_skipped", index=index)
                    continue
                raise EmptyInputError(
                    f"Cannot embed empty text at index {index}",
                    provider_name=self.provider_name,
                )

            if self._cache is not None and not skip_cache:
                cached = await self._cache.get(self._cache_key(normalized))
                if cached is not None:
                    results.append(EmbeddingResult(embedding=list(cached), index=index))
                    continue

            pending.append((index, normalized))

        async def embed_slice(batch: list[tuple[int, str]]) -> EmbeddingResponse:
            response = await self._provider.embed_batch([text for _, text in batch])
            for result in response.embeddings:
                original_index, normalized = batch[result.index]
                await self._remember(normalized, result.embedding)
                results.append(
                    EmbeddingResult(
                        embedding=result.embedding,
                        index=original_index,
                        token_count=result.token_count,
                    )
                )
            if on_progress is not None:
                on_progress(len(results), len(texts))
            return response

        model = self._provider.model
        dimensions = self.dimensions
        usage = None
        if pending:
            responses = await process_in_batches(pending, self._batch_size, embed_slice)
            merged = merge_embedding_responses(responses, provider_name=self.provider_name)
            model, dimensions, usage = merged.model, merged.dimensions, merged.usage
        elif on_progress is not None:
            on_progress(len(results), len(texts))

        results.sort(key=lambda result: result.index)

        logger.info(
            "embedding_batch_completed",
            provider=self.provider_name,
            total=len(texts),
            cached=len(results) - len(pending),
            embedded=len(pending),
        )
        return EmbeddingResponse(embeddings=results, model=model, dimensions=dimensions, usage=usage)

    async def embed_chunks(
        self,
        chunks: Sequence[StoredChunk],
        continue_on_error: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> list[tuple[StoredChunk, list[float]]]:
        """Embed stored chunks, pairing each chunk with its vector."""
        response = await self.embed_batch(
            [chunk.record.content for chunk in chunks],
            continue_on_error=continue_on_error,
            on_progress=on_progress,
        )
        return [(chunks[result.index], result.embedding) for result in response.embeddings]

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def health_check(self) -> dict[str, Any]:
        healthy = await self._provider.health_check()
        return {"healthy": healthy, "provider": self.provider_name, "dimensions": self.dimensions}

    async def clear_cache(self) -> None:
        if self._cache is not None:
            await self._cache.clear()

    def cache_stats(self) -> dict[str, Any]:
        return {
            "enabled": self._cache is not None,
            "size": self._cache.size() if self._cache is not None else 0,
        }

    def normalize_text(self, text: str) -> str:
        return _WHITESPACE.sub(" ", text.strip())[: self._max_text_length]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _cache_key(self, normalized: str) -> str:
        digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
        return f"{self.provider_name}:{digest}"

    async def _remember(self, normalized: str, embedding: list[float]) -> None:
        if self._cache is not None:
            await self._cache.set(self._cache_key(normalized), tuple(embedding), ttl=self._cache_ttl)
