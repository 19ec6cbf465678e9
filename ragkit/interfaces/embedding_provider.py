"""Abstract base class for text-embedding providers.

An embedding provider converts text into dense float vectors for semantic
similarity search.  Implementations wrap a local Ollama server or the
OpenAI embeddings API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragkit.models.providers import EmbeddingResponse


# Concrete implementations: OllamaEmbeddingProvider, OpenAIEmbeddingProvider
# Located in: ragkit/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for services that turn text into embedding vectors."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short provider identifier used in cache keys and logs."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Embedding model name."""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Length of every vector this provider returns."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Raises
        ------
        ragkit.utils.errors.EmptyInputError
            If *text* is empty.
        ragkit.utils.errors.ProviderError
            If the provider fails after retries.
        """

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> EmbeddingResponse:
        """Embed many texts, preserving input order.

        Parameters
        ----------
        texts:
            The texts to embed.  An empty list returns an empty response
            without calling the provider.

        Returns
        -------
        EmbeddingResponse
            ``embeddings[i].index == i`` for every input position ``i``.
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` if the provider is reachable and the model exists.

        Never raises.
        """

    async def aclose(self) -> None:
        """Release the network client held by the provider.  The default does nothing."""
