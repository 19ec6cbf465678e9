"""ragkit composition root.

Wires providers, services and the job worker together.  Loads
configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging.  Nothing here runs at import time; callers build a
container with :func:`build_container` and keep it for the process
lifetime.

Running the module starts one consumer loop per pipeline stage against
the in-memory queue until interrupted.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any

import structlog

from ragkit.config.loader import load_config
from ragkit.config.settings import Settings
from ragkit.models.chunking import ChunkingOptions
from ragkit.models.jobs import JobType
from ragkit.pipeline.job_worker import JobWorker, stage_policies_from_config
from ragkit.providers.cache.memory_cache import MemoryCacheProvider
from ragkit.providers.factory import EmbeddingProviderFactory, LLMProviderFactory
from ragkit.providers.queue.memory_queue import MemoryJobQueue
from ragkit.providers.storage.local_storage import LocalFileStorage
from ragkit.providers.store.memory_store import MemoryKnowledgeBaseStore
from ragkit.providers.vector_store.chromadb_provider import ChromaDBProvider
from ragkit.services.chunking.chunking_service import ChunkingService
from ragkit.services.embedding_service import EmbeddingService
from ragkit.services.llm_service import LLMService
from ragkit.services.parsing.document_parser import DocumentParser
from ragkit.services.rag_service import RAGService
from ragkit.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def _queue_names(queue_config: dict[str, Any]) -> dict[JobType, str]:
    stages = queue_config.get("stages") or {}
    return {
        job_type: stages[job_type.value]["queue"]
        for job_type in JobType
        if job_type.value in stages and stages[job_type.value].get("queue")
    }


def build_container(
    custom_settings: Settings | None = None,
    config_path: str = "config/config.yaml",
) -> dict[str, Any]:
    """Construct every provider and service instance.

    Parameters
    ----------
    custom_settings:
        Application settings.  Read from the environment if not provided.
    config_path:
        YAML file with chunking, retrieval and queue defaults.

    Returns
    -------
    dict
        Named components keyed by role.
    """
    settings = custom_settings or Settings()
    config = load_config(config_path, settings=settings)

    configure_logging(
        log_level=settings.log_level,
        json_output=(settings.app_env == "production"),
    )

    # -- Collaborators --
    store = MemoryKnowledgeBaseStore()
    queue_config = config.get("queue", {})
    queue = MemoryJobQueue(
        queue_names=_queue_names(queue_config),
        dead_letter_name=queue_config.get("dead_letter", "kb.failed"),
    )
    storage = LocalFileStorage(settings.upload_dir)

    # -- Providers --
    embedding_factory = EmbeddingProviderFactory()
    llm_factory = LLMProviderFactory()
    embedding_provider = embedding_factory.create_from_settings(settings)
    vector_store = ChromaDBProvider(persist_directory=settings.chromadb_persist_dir)

    cache = None
    if settings.embedding_cache_enabled:
        cache = MemoryCacheProvider(
            max_size=settings.embedding_cache_max_size,
            ttl=settings.embedding_cache_ttl_seconds,
        )

    # -- Services --
    chunking_config = config.get("chunking", {})
    chunking_service = ChunkingService(
        store,
        default_options=ChunkingOptions(**chunking_config) if chunking_config else None,
    )
    embedding_service = EmbeddingService(
        embedding_provider,
        cache=cache,
        max_text_length=config.get("embedding", {}).get("max_text_length", 8000),
        batch_size=config.get("embedding", {}).get("batch_size", 100),
    )
    rag_service = RAGService(
        embedding_service,
        vector_store,
        default_score_threshold=config.get("rag", {}).get("score_threshold"),
    )
    llm_service = LLMService(llm_factory, settings)
    parser = DocumentParser()

    worker = JobWorker(
        queue=queue,
        store=store,
        storage=storage,
        parser=parser,
        chunking_service=chunking_service,
        embedding_service=embedding_service,
        rag_service=rag_service,
        policies=stage_policies_from_config(queue_config),
    )

    _logger.info(
        "container_built",
        embedding_provider=embedding_provider.name,
        llm_provider=settings.llm_provider,
        cache_enabled=cache is not None,
    )

    return {
        "settings": settings,
        "config": config,
        "store": store,
        "queue": queue,
        "storage": storage,
        "embedding_factory": embedding_factory,
        "llm_factory": llm_factory,
        "vector_store": vector_store,
        "cache": cache,
        "parser": parser,
        "chunking_service": chunking_service,
        "embedding_service": embedding_service,
        "rag_service": rag_service,
        "llm_service": llm_service,
        "worker": worker,
    }


async def run_workers(container: dict[str, Any]) -> None:
    """Run a consumer loop for every stage until the worker is stopped."""
    worker: JobWorker = container["worker"]
    try:
        await asyncio.gather(*(worker.run(job_type) for job_type in JobType))
    finally:
        await shutdown(container)


async def shutdown(container: dict[str, Any]) -> None:
    """Stop the worker and close the providers' HTTP clients."""
    container["worker"].stop()
    await container["embedding_factory"].aclose()
    await container["llm_factory"].aclose()
    _logger.info("container_shutdown")


def main() -> None:
    container = build_container()
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run_workers(container))


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
