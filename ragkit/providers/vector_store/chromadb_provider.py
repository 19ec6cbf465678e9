"""ChromaDB vector store provider adapter.

Wraps `chromadb.PersistentClient` to implement :class:`IVectorStoreProvider`.
Every collection uses cosine distance; scores are reported as
``1 - distance`` clamped to ``[0, 1]``.  Fully local, no external service
required.
"""

from __future__ import annotations

import json
import os
from typing import Any

# ChromaDB ships PostHog telemetry; a version mismatch between its bundled
# client and the installed one floods the log with capture() errors.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from ragkit.interfaces.vector_store_provider import IVectorStoreProvider
from ragkit.models.rag import ScoredPoint, SearchFilter, VectorPoint
from ragkit.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_UPSERT_BATCH_SIZE = 500
_CONTENT_KEY = "content"


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that is never called.

    Vectors are always computed by an :class:`IEmbeddingProvider` before
    they reach the store.  Passing this stops ChromaDB from downloading its
    default ONNX model when a collection is created.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("ragkit stores pre-computed embeddings only")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence."""

    def __init__(self, persist_directory: str = "./data/chromadb") -> None:
        self._persist_directory = persist_directory
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collections: dict[str, Any] = {}

    @property
    def name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert(self, collection: str, points: list[VectorPoint]) -> int:
        if not points:
            return 0
        try:
            target = self._collection(collection)
            for start in range(0, len(points), _UPSERT_BATCH_SIZE):
                batch = points[start : start + _UPSERT_BATCH_SIZE]
                target.upsert(
                    ids=[point.id for point in batch],
                    embeddings=[point.vector for point in batch],
                    documents=[str(point.payload.get(_CONTENT_KEY, "")) for point in batch],
                    metadatas=[self._payload_to_metadata(point.payload) for point in batch],
                )
        except Exception as exc:
            raise VectorStoreError(
                f"ChromaDB upsert failed: {exc}",
                provider_name=self.name,
                original_error=exc,
            ) from exc

        logger.info("chromadb_upsert", collection=collection, count=len(points))
        return len(points)

    async def search(
        self,
        collection: str,
        query_vector: list[float],
        limit: int = 5,
        search_filter: SearchFilter | None = None,
        score_threshold: float | None = None,
    ) -> list[ScoredPoint]:
        try:
            target = self._collection(collection)
            count = target.count()
            if count == 0 or limit <= 0:
                return []

            kwargs: dict[str, Any] = {
                "query_embeddings": [query_vector],
                "n_results": min(limit, count),
            }
            where = self.translate_filter(search_filter)
            if where:
                kwargs["where"] = where
            results = target.query(**kwargs)
        except Exception as exc:
            raise VectorStoreError(
                f"ChromaDB query failed: {exc}",
                provider_name=self.name,
                original_error=exc,
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results.get("documents") else [""] * len(ids)
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
        distances = results["distances"][0] if results.get("distances") else [0.0] * len(ids)

        hits: list[ScoredPoint] = []
        for point_id, document, meta, distance in zip(ids, documents, metadatas, distances, strict=True):
            score = max(0.0, min(1.0, 1.0 - distance))
            if score_threshold is not None and score < score_threshold:
                continue
            payload = self._metadata_to_payload(meta or {})
            payload[_CONTENT_KEY] = document or ""
            hits.append(ScoredPoint(id=point_id, score=score, payload=payload))

        hits.sort(key=lambda hit: hit.score, reverse=True)
        logger.info(
            "chromadb_query",
            collection=collection,
            raw_results=len(ids),
            results_count=len(hits),
            top_score=hits[0].score if hits else 0.0,
        )
        return hits

    async def delete_points(self, collection: str, search_filter: SearchFilter) -> int:
        where = self.translate_filter(search_filter)
        if not where:
            raise VectorStoreError(
                "Refusing to delete points without a filter",
                provider_name=self.name,
                code="EMPTY_FILTER",
            )
        try:
            target = self._collection(collection)
            existing = target.get(where=where, include=[])
            count = len(existing["ids"]) if existing["ids"] else 0
            if count:
                target.delete(ids=existing["ids"])
        except Exception as exc:
            raise VectorStoreError(
                f"ChromaDB delete failed: {exc}",
                provider_name=self.name,
                original_error=exc,
            ) from exc

        logger.info("chromadb_delete_points", collection=collection, deleted_count=count)
        return count

    async def delete_collection(self, collection: str) -> None:
        try:
            existing = {c if isinstance(c, str) else c.name for c in self._client.list_collections()}
            if collection in existing:
                self._client.delete_collection(collection)
        except Exception as exc:
            raise VectorStoreError(
                f"ChromaDB delete_collection failed: {exc}",
                provider_name=self.name,
                original_error=exc,
            ) from exc
        self._collections.pop(collection, None)
        logger.info("chromadb_delete_collection", collection=collection)

    async def health_check(self) -> bool:
        try:
            self._client.heartbeat()
        except Exception as exc:  # noqa: BLE001
            logger.warning("chromadb_health_check_failed", error=str(exc))
            return False
        return True

    # ------------------------------------------------------------------
    # Filter translation
    # ------------------------------------------------------------------

    @staticmethod
    def translate_filter(search_filter: SearchFilter | None) -> dict[str, Any] | None:
        """Translate a :class:`SearchFilter` into a ChromaDB ``where`` clause.

        ``must`` conditions are ANDed, ``should`` conditions ORed together
        (as one clause), and ``must_not`` conditions negated with
        ``$ne`` / ``$nin``.
        """
        if search_filter is None or search_filter.is_empty():
            return None

        clauses: list[dict[str, Any]] = [
            ChromaDBProvider._condition(condition, negate=False) for condition in search_filter.must
        ]
        should = [ChromaDBProvider._condition(condition, negate=False) for condition in search_filter.should]
        if len(should) == 1:
            clauses.append(should[0])
        elif should:
            clauses.append({"$or": should})
        clauses.extend(
            ChromaDBProvider._condition(condition, negate=True) for condition in search_filter.must_not
        )

        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    @staticmethod
    def _condition(condition: dict[str, Any], negate: bool) -> dict[str, Any]:
        key = condition.get("key")
        match = condition.get("match") or {}
        if not key:
            raise VectorStoreError("Filter condition has no key", provider_name="chromadb", code="INVALID_FILTER")
        if "any" in match:
            return {key: {"$nin" if negate else "$in": list(match["any"])}}
        if "value" in match:
            return {key: {"$ne" if negate else "$eq": match["value"]}}
        raise VectorStoreError(
            f"Unsupported match on '{key}': {match}",
            provider_name="chromadb",
            code="INVALID_FILTER",
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _collection(self, name: str) -> Any:
        cached = self._collections.get(name)
        if cached is not None:
            return cached
        # Collections created by an older ChromaDB keep their persisted
        # embedding function and reject a different one with ValueError.
        try:
            collection = self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            collection = self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
            )
        self._collections[name] = collection
        return collection

    @staticmethod
    def _payload_to_metadata(payload: dict[str, Any]) -> dict[str, str | int | float | bool]:
        """Flatten a payload into ChromaDB metadata.

        Values must be str, int, float or bool.  ``None`` is dropped and
        anything structured is stored as JSON text.
        """
        meta: dict[str, str | int | float | bool] = {}
        for key, value in payload.items():
            if key == _CONTENT_KEY or value is None:
                continue
            if isinstance(value, (str, int, float, bool)):
                meta[key] = value
            else:
                meta[key] = json.dumps(value, default=str)
        return meta

    @staticmethod
    def _metadata_to_payload(meta: dict[str, Any]) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for key, value in meta.items():
            if isinstance(value, str) and value[:1] in ("{", "["):
                try:
                    payload[key] = json.loads(value)
                    continue
                except json.JSONDecodeError:
                    pass
            payload[key] = value
        return payload
