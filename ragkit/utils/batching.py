"""Sub-batching helpers for embedding providers with request-size limits."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

import structlog

from ragkit.models.providers import EmbeddingResponse, EmbeddingResult, EmbeddingUsage
from ragkit.utils.errors import EmptyInputError

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")
_R = TypeVar("_R")


async def process_in_batches(
    items: Sequence[_T],
    max_batch_size: int,
    processor: Callable[[list[_T]], Awaitable[_R]],
) -> list[_R]:
    """Run *processor* over consecutive slices of *items*, one slice at a time.

    Parameters
    ----------
    items:
        Input sequence, partitioned in order.
    max_batch_size:
        Largest slice handed to *processor*.
    processor:
        Coroutine function invoked once per slice.

    Returns
    -------
    list
        One result per slice, in input order.
    """
    if max_batch_size <= 0:
        raise ValueError("max_batch_size must be positive")

    results: list[_R] = []
    total_batches = (len(items) + max_batch_size - 1) // max_batch_size
    for batch_number, offset in enumerate(range(0, len(items), max_batch_size), start=1):
        batch = list(items[offset:offset + max_batch_size])
        logger.debug("processing_batch", batch=batch_number, total_batches=total_batches, size=len(batch))
        results.append(await processor(batch))
    return results


def merge_embedding_responses(
    responses: Sequence[EmbeddingResponse],
    provider_name: str | None = None,
) -> EmbeddingResponse:
    """Concatenate sub-batch responses into one, re-indexing 0..N-1.

    Token usage is summed across sub-batches when any of them reported it.
    """
    if not responses:
        raise EmptyInputError("No embedding responses to merge", provider_name=provider_name)
    if len(responses) == 1:
        return responses[0]

    embeddings: list[EmbeddingResult] = []
    for response in responses:
        for result in sorted(response.embeddings, key=lambda r: r.index):
            embeddings.append(result.model_copy(update={"index": len(embeddings)}))

    usage = None
    reported = [r.usage for r in responses if r.usage is not None]
    if reported:
        usage = EmbeddingUsage(
            prompt_tokens=sum(u.prompt_tokens for u in reported),
            total_tokens=sum(u.total_tokens for u in reported),
        )

    first = responses[0]
    return EmbeddingResponse(
        embeddings=embeddings,
        model=first.model,
        dimensions=first.dimensions,
        usage=usage,
    )
