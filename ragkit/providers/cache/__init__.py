"""Cache providers.

MemoryCacheProvider backs the embedding service's vector cache (keys are
``{provider}:{sha256}``).  Entries live in one process only; a shared
deployment plugs in another ICacheProvider implementation.
"""

from ragkit.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
