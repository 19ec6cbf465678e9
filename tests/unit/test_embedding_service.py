"""Unit tests for EmbeddingService — normalisation, caching and index mapping."""

from __future__ import annotations

import pytest

from ragkit.models.chunking import ChunkRecord
from ragkit.models.knowledge_base import StoredChunk
from ragkit.providers.cache.memory_cache import MemoryCacheProvider
from ragkit.services.embedding_service import EmbeddingService
from ragkit.utils.errors import EmptyInputError


def _stored(index: int, content: str) -> StoredChunk:
    return StoredChunk(
        id=f"chunk-{index}",
        knowledge_base_id="kb-1",
        agent_id="agent-1",
        chunk_index=index,
        record=ChunkRecord(content=content),
    )


class TestEmbed:
    @pytest.mark.asyncio
    async def test_text_is_normalized(self, fake_embedder) -> None:
        service = EmbeddingService(fake_embedder, max_text_length=10)
        vector = await service.embed("  hello \n\n  world, again  ")

        assert fake_embedder.calls == [["hello worl"]]
        assert vector == fake_embedder.vector_for("hello worl")

    @pytest.mark.asyncio
    async def test_empty_text_raises(self, fake_embedder) -> None:
        with pytest.raises(EmptyInputError):
            await EmbeddingService(fake_embedder).embed("   ")

    @pytest.mark.asyncio
    async def test_cache_hit_skips_provider(self, fake_embedder) -> None:
        service = EmbeddingService(fake_embedder, cache=MemoryCacheProvider())

        first = await service.embed("cached text")
        second = await service.embed("cached   text")

        assert first == second
        assert len(fake_embedder.calls) == 1
        assert service.cache_stats() == {"enabled": True, "size": 1}

    @pytest.mark.asyncio
    async def test_skip_cache(self, fake_embedder) -> None:
        service = EmbeddingService(fake_embedder, cache=MemoryCacheProvider())
        await service.embed("text")
        await service.embed("text", skip_cache=True)
        assert len(fake_embedder.calls) == 2


class TestEmbedBatch:
    @pytest.mark.asyncio
    async def test_cached_and_fresh_results_keep_input_positions(self, fake_embedder) -> None:
        service = EmbeddingService(fake_embedder, cache=MemoryCacheProvider())
        await service.embed("bb")

        response = await service.embed_batch(["a", "bb", "ccc"])

        assert fake_embedder.calls[-1] == ["a", "ccc"]
        assert [result.index for result in response.embeddings] == [0, 1, 2]
        assert [result.embedding[0] for result in response.embeddings] == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_all_cached_makes_no_provider_call(self, fake_embedder) -> None:
        service = EmbeddingService(fake_embedder, cache=MemoryCacheProvider())
        await service.embed_batch(["x", "y"])
        calls = len(fake_embedder.calls)

        response = await service.embed_batch(["y", "x"])

        assert len(fake_embedder.calls) == calls
        assert response.model == "fake-embed"
        assert len(response.embeddings) == 2

    @pytest.mark.asyncio
    async def test_empty_text_raises_with_index(self, fake_embedder) -> None:
        with pytest.raises(EmptyInputError, match="index 1"):
            await EmbeddingService(fake_embedder).embed_batch(["ok", " "])

    @pytest.mark.asyncio
    async def test_continue_on_error_skips_empty(self, fake_embedder) -> None:
        progress: list[tuple[int, int]] = []
        response = await EmbeddingService(fake_embedder).embed_batch(
            ["ok", " ", "fine"],
            continue_on_error=True,
            on_progress=lambda done, total: progress.append((done, total)),
        )

        assert [result.index for result in response.embeddings] == [0, 2]
        assert progress == [(2, 3)]

    @pytest.mark.asyncio
    async def test_progress_is_reported_per_provider_call(self, fake_embedder) -> None:
        progress: list[tuple[int, int]] = []
        service = EmbeddingService(fake_embedder, batch_size=2)

        response = await service.embed_batch(
            ["one", "two", "three", "four", "five"],
            on_progress=lambda done, total: progress.append((done, total)),
        )

        assert fake_embedder.calls == [["one", "two"], ["three", "four"], ["five"]]
        assert progress == [(2, 5), (4, 5), (5, 5)]
        assert [result.index for result in response.embeddings] == [0, 1, 2, 3, 4]
        assert [result.embedding[0] for result in response.embeddings] == [3.0, 3.0, 5.0, 4.0, 4.0]

    @pytest.mark.asyncio
    async def test_progress_counts_cached_texts(self, fake_embedder) -> None:
        progress: list[tuple[int, int]] = []
        service = EmbeddingService(fake_embedder, cache=MemoryCacheProvider(), batch_size=1)
        await service.embed_batch(["x", "y"])

        await service.embed_batch(
            ["x", "y", "z"],
            on_progress=lambda done, total: progress.append((done, total)),
        )
        await service.embed_batch(
            ["y", "x"],
            on_progress=lambda done, total: progress.append((done, total)),
        )

        assert progress == [(3, 3), (2, 2)]

    @pytest.mark.asyncio
    async def test_empty_batch(self, fake_embedder) -> None:
        response = await EmbeddingService(fake_embedder).embed_batch([])
        assert response.embeddings == []
        assert fake_embedder.calls == []

    @pytest.mark.asyncio
    async def test_embed_chunks_pairs_chunks_with_vectors(self, fake_embedder) -> None:
        chunks = [_stored(0, "first"), _stored(1, "second chunk")]
        pairs = await EmbeddingService(fake_embedder).embed_chunks(chunks)

        assert [chunk.id for chunk, _ in pairs] == ["chunk-0", "chunk-1"]
        assert [vector[0] for _, vector in pairs] == [5.0, 12.0]


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_health_check(self, fake_embedder) -> None:
        fake_embedder.healthy = False
        health = await EmbeddingService(fake_embedder).health_check()
        assert health == {"healthy": False, "provider": "fake", "dimensions": 3}

    @pytest.mark.asyncio
    async def test_clear_cache(self, fake_embedder) -> None:
        service = EmbeddingService(fake_embedder, cache=MemoryCacheProvider())
        await service.embed("text")
        await service.clear_cache()
        assert service.cache_stats()["size"] == 0

    def test_cache_disabled(self, fake_embedder) -> None:
        assert EmbeddingService(fake_embedder).cache_stats() == {"enabled": False, "size": 0}
