"""Job queue providers."""

from ragkit.providers.queue.memory_queue import MemoryJobQueue

__all__ = ["MemoryJobQueue"]
