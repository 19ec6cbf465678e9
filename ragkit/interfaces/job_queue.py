"""Abstract base classes for the job-queue and file-storage collaborators.

The processing pipeline publishes one job per stage (uploaded, parse,
chunk, embed).  A job that fails fatally or exhausts ``max_attempts`` is
handed to :meth:`IJobQueue.dead_letter` instead of being retried forever.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragkit.models.jobs import DeadLetter, JobPayload, JobType


class IJobQueue(ABC):
    """Contract for stage-routed job delivery with a dead-letter destination."""

    @abstractmethod
    async def publish(self, payload: JobPayload, delay_ms: int = 0) -> None:
        """Enqueue *payload* on the queue of its stage, optionally after *delay_ms*."""

    @abstractmethod
    async def consume(self, job_type: JobType) -> JobPayload:
        """Wait for and return the next payload of *job_type*."""

    @abstractmethod
    async def dead_letter(self, payload: JobPayload, reason: str, code: str | None = None) -> DeadLetter:
        """Route *payload* to the dead-letter destination."""


class IFileStorage(ABC):
    """Contract for reading uploaded files by storage key."""

    @abstractmethod
    async def read(self, storage_key: str) -> bytes:
        """Return the bytes stored under *storage_key*.

        Raises
        ------
        FileNotFoundError
            If nothing is stored under the key.
        """
