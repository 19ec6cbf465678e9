"""Knowledge-base persistence providers."""

from ragkit.providers.store.memory_store import MemoryKnowledgeBaseStore

__all__ = ["MemoryKnowledgeBaseStore"]
