"""Embedding provider adapters.

Two concrete implementations of IEmbeddingProvider:
    - OllamaEmbeddingProvider — local Ollama server (nomic-embed-text, 768 dims),
      native batch endpoint with sequential fallback
    - OpenAIEmbeddingProvider — OpenAI embeddings API (text-embedding-3-small,
      1536 dims), sub-batched at 2048 inputs
"""

from ragkit.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from ragkit.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OllamaEmbeddingProvider", "OpenAIEmbeddingProvider"]
