"""File storage providers."""

from ragkit.providers.storage.local_storage import LocalFileStorage

__all__ = ["LocalFileStorage"]
