"""In-process job queue built on ``asyncio.Queue``.

One queue per stage; dead-lettered jobs are kept in a list for
inspection.  Suitable for tests and single-process workers; a broker
adapter (RabbitMQ, SQS) implements the same :class:`IJobQueue`.
"""

from __future__ import annotations

import asyncio

import structlog

from ragkit.interfaces.job_queue import IJobQueue
from ragkit.models.jobs import DeadLetter, JobPayload, JobType

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_QUEUE_NAMES: dict[JobType, str] = {
    JobType.UPLOADED: "kb.file.upload",
    JobType.PARSE: "kb.parse",
    JobType.CHUNK: "kb.chunk",
    JobType.EMBED: "kb.embed",
}


class MemoryJobQueue(IJobQueue):
    """Stage-routed in-memory queue with a dead-letter list.

    Parameters
    ----------
    queue_names:
        Optional override of the per-stage queue names (used in log
        events only).
    dead_letter_name:
        Name of the dead-letter destination.
    """

    def __init__(
        self,
        queue_names: dict[JobType, str] | None = None,
        dead_letter_name: str = "kb.failed",
    ) -> None:
        self._queue_names = {**DEFAULT_QUEUE_NAMES, **(queue_names or {})}
        self._dead_letter_name = dead_letter_name
        self._queues: dict[JobType, asyncio.Queue[JobPayload]] = {}
        self._delayed: set[asyncio.Task[None]] = set()
        self.dead_letters: list[DeadLetter] = []

    # ------------------------------------------------------------------
    # IJobQueue implementation
    # ------------------------------------------------------------------

    async def publish(self, payload: JobPayload, delay_ms: int = 0) -> None:
        job_type = payload.job_type
        logger.info(
            "job_published",
            queue=self._queue_names[job_type],
            job_id=payload.job_id,
            attempt=payload.attempt,
            delay_ms=delay_ms,
        )
        if delay_ms <= 0:
            await self._queue(job_type).put(payload)
            return

        task = asyncio.create_task(self._publish_later(payload, delay_ms))
        self._delayed.add(task)
        task.add_done_callback(self._delayed.discard)

    async def consume(self, job_type: JobType) -> JobPayload:
        return await self._queue(JobType(job_type)).get()

    async def dead_letter(self, payload: JobPayload, reason: str, code: str | None = None) -> DeadLetter:
        letter = DeadLetter(payload=payload.model_dump(mode="json"), reason=reason, code=code)
        self.dead_letters.append(letter)
        logger.warning(
            "job_dead_lettered",
            queue=self._dead_letter_name,
            job_id=payload.job_id,
            job_type=payload.job_type.value,
            attempt=payload.attempt,
            reason=reason,
            code=code,
        )
        return letter

    # ------------------------------------------------------------------
    # Inspection helpers
    # ------------------------------------------------------------------

    def pending(self, job_type: JobType) -> int:
        """Return the number of jobs waiting on the *job_type* queue."""
        return self._queue(JobType(job_type)).qsize()

    def get_nowait(self, job_type: JobType) -> JobPayload:
        """Pop the next *job_type* job without waiting (raises ``asyncio.QueueEmpty``)."""
        return self._queue(JobType(job_type)).get_nowait()

    async def drain_delayed(self) -> None:
        """Wait until every delayed publish has landed on its queue."""
        if self._delayed:
            await asyncio.gather(*self._delayed)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _queue(self, job_type: JobType) -> asyncio.Queue[JobPayload]:
        if job_type not in self._queues:
            self._queues[job_type] = asyncio.Queue()
        return self._queues[job_type]

    async def _publish_later(self, payload: JobPayload, delay_ms: int) -> None:
        await asyncio.sleep(delay_ms / 1000)
        await self._queue(payload.job_type).put(payload)
