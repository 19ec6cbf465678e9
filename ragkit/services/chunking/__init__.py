"""Chunking engine: four pure strategies and the orchestrating service.

    - fixed.py      — sliding window with sentence-aware break points
    - recursive.py  — separator hierarchy, merge and overlap seeding
    - semantic.py   — section / paragraph / sentence grouping
    - page.py       — one chunk per page, fixed windows for long pages
"""

from ragkit.services.chunking.chunking_service import ChunkingService
from ragkit.services.chunking.fixed import fixed_chunk
from ragkit.services.chunking.page import page_chunk
from ragkit.services.chunking.recursive import recursive_chunk
from ragkit.services.chunking.semantic import semantic_chunk

__all__ = ["ChunkingService", "fixed_chunk", "page_chunk", "recursive_chunk", "semantic_chunk"]
