"""Ollama embedding provider adapter.

Generates embeddings with a locally-running Ollama server
(``nomic-embed-text`` by default, 768 dimensions):

    POST /api/embed       {model, input: [...]}  → {embeddings: [[...]]}
    POST /api/embeddings  {model, prompt}        → {embedding: [...]}
    GET  /api/tags                               → installed models

Batches go to the native ``/api/embed`` endpoint first.  Older servers
lack it, so any failure there falls back to one ``/api/embeddings`` call
per text, each with its own retry budget.
"""

from __future__ import annotations

import httpx
import structlog

from ragkit.interfaces.embedding_provider import IEmbeddingProvider
from ragkit.models.providers import (
    EmbeddingProviderConfig,
    EmbeddingResponse,
    EmbeddingResult,
    EmbeddingUsage,
)
from ragkit.providers.http_errors import classify_status, error_message, translate_transport_error
from ragkit.utils.batching import merge_embedding_responses, process_in_batches
from ragkit.utils.errors import EmbeddingError, EmptyInputError, ProviderError
from ragkit.utils.resilience import EMBEDDING_MAX_DELAY_MS, ResilienceExecutor, RetryPolicy

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "nomic-embed-text"
DEFAULT_DIMENSIONS = 768
DEFAULT_BATCH_SIZE = 32
DEFAULT_TIMEOUT_MS = 60_000


class OllamaEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by a local Ollama server."""

    def __init__(
        self,
        config: EmbeddingProviderConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=config.timeout_ms / 1000)
        self._owns_http = http_client is None
        self._executor = ResilienceExecutor(
            self.name,
            RetryPolicy.from_config(config, EMBEDDING_MAX_DELAY_MS),
        )

    @property
    def name(self) -> str:
        return "ollama"

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

        async def _call() -> list[float]:
            data = await self._post("/api/embeddings", {"model": self.model, "prompt": text})
            embedding = data.get("embedding")
            if not embedding:
                raise EmbeddingError(
                    "Response contained no embedding",
                    provider_name=self.name,
                    code="EMPTY_RESPONSE",
                )
            return [float(value) for value in embedding]

        return await self._executor.run(_call, description="embed")

    async def embed_batch(self, texts: list[str]) -> EmbeddingResponse:
        if not texts:
            return EmbeddingResponse(model=self.model, dimensions=self.dimensions)

        responses = await process_in_batches(texts, self._config.max_batch_size, self._embed_sub_batch)
        return merge_embedding_responses(responses, provider_name=self.name)

    async def aclose(self) -> None:
        # An injected client belongs to the caller.
        if self._owns_http:
            await self._http.aclose()

    async def health_check(self) -> bool:
        async def _tags() -> httpx.Response:
            return await self._http.get(f"{self._base_url}/api/tags")

        try:
            response = await self._executor.with_timeout(_tags)
            if response.status_code != 200:
                return False
            names = [model.get("name", "") for model in response.json().get("models", [])]
        except Exception as exc:  # noqa: BLE001
            logger.warning("ollama_embedding_health_check_failed", base_url=self._base_url, error=str(exc))
            return False
        return any(name == self.model or name.startswith(f"{self.model}:") for name in names)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _embed_sub_batch(self, batch: list[str]) -> EmbeddingResponse:
        try:
            return await self._embed_native(batch)
        except ProviderError as exc:
            logger.warning(
                "ollama_batch_fallback",
                model=self.model,
                batch_size=len(batch),
                error=str(exc),
            )
            return await self._embed_sequential(batch)

    async def _embed_native(self, batch: list[str]) -> EmbeddingResponse:
        async def _call() -> EmbeddingResponse:
            data = await self._post("/api/embed", {"model": self.model, "input": batch})
            embeddings = data.get("embeddings") or []
            if len(embeddings) != len(batch):
                raise EmbeddingError(
                    f"Expected {len(batch)} embeddings, received {len(embeddings)}",
                    provider_name=self.name,
                    code="BATCH_SIZE_MISMATCH",
                )
            prompt_tokens = data.get("prompt_eval_count")
            return EmbeddingResponse(
                embeddings=[
                    EmbeddingResult(embedding=[float(v) for v in vector], index=i)
                    for i, vector in enumerate(embeddings)
                ],
                model=self.model,
                dimensions=len(embeddings[0]) if embeddings else self.dimensions,
                usage=(
                    EmbeddingUsage(prompt_tokens=prompt_tokens, total_tokens=prompt_tokens)
                    if prompt_tokens is not None
                    else None
                ),
            )

        return await self._executor.run(_call, description="embed_batch")

    async def _embed_sequential(self, batch: list[str]) -> EmbeddingResponse:
        results = []
        for index, text in enumerate(batch):
            results.append(EmbeddingResult(embedding=await self.embed(text), index=index))
        return EmbeddingResponse(
            embeddings=results,
            model=self.model,
            dimensions=len(results[0].embedding) if results else self.dimensions,
        )

    async def _post(self, path: str, body: dict) -> dict:
        try:
            response = await self._http.post(f"{self._base_url}{path}", json=body)
        except httpx.TransportError as exc:
            raise translate_transport_error(self.name, exc) from exc
        if response.status_code >= 400:
            raise classify_status(self.name, response.status_code, error_message(response))
        return response.json()
