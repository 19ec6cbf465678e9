"""Public interface definitions for every external collaborator.

Business logic depends only on these abstract base classes; concrete
adapters live in ``ragkit/providers/`` and are wired together in
``ragkit/main.py``.

    Interface              →  Concrete implementations
    ─────────────────────────────────────────────────────────────
    ILLMProvider           →  OpenAILLMProvider, AnthropicLLMProvider,
                              GoogleLLMProvider, OllamaLLMProvider
    IEmbeddingProvider     →  OllamaEmbeddingProvider, OpenAIEmbeddingProvider
    ICacheProvider         →  MemoryCacheProvider
    IVectorStoreProvider   →  ChromaDBProvider
    IKnowledgeBaseStore    →  MemoryKnowledgeBaseStore
    IJobQueue              →  MemoryJobQueue
    IFileStorage           →  LocalFileStorage
"""

from ragkit.interfaces.cache_provider import ICacheProvider
from ragkit.interfaces.embedding_provider import IEmbeddingProvider
from ragkit.interfaces.job_queue import IFileStorage, IJobQueue
from ragkit.interfaces.knowledge_base_store import IKnowledgeBaseStore
from ragkit.interfaces.llm_provider import ILLMProvider
from ragkit.interfaces.vector_store_provider import IVectorStoreProvider, collection_name_for_agent

__all__ = [
    "ICacheProvider",
    "IEmbeddingProvider",
    "IFileStorage",
    "IJobQueue",
    "IKnowledgeBaseStore",
    "ILLMProvider",
    "IVectorStoreProvider",
    "collection_name_for_agent",
]
