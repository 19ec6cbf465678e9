"""Unit tests for the retry/backoff executor and the batching helpers."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from ragkit.models.providers import EmbeddingResponse, EmbeddingResult, EmbeddingUsage
from ragkit.utils.batching import merge_embedding_responses, process_in_batches
from ragkit.utils.errors import (
    AuthenticationError,
    EmptyInputError,
    MaxRetriesExceededError,
    ProviderTimeoutError,
    RateLimitError,
    RequestCancelledError,
    ServerError,
)
from ragkit.utils.resilience import ResilienceExecutor, RetryPolicy


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _executor(sleep: _RecordingSleep, **policy) -> ResilienceExecutor:
    defaults = {"max_retries": 3, "retry_delay_ms": 100, "timeout_ms": 1000, "max_delay_ms": 5000}
    defaults.update(policy)
    return ResilienceExecutor("test", RetryPolicy(**defaults), sleep=sleep)


# ======================================================================
# Retry policy
# ======================================================================


class TestRetryPolicy:
    def test_exponential_backoff(self) -> None:
        policy = RetryPolicy(retry_delay_ms=1000, max_delay_ms=30_000)
        assert policy.backoff_ms(0, 0) == 1000
        assert policy.backoff_ms(2, 0) == 4000
        assert policy.backoff_ms(1, 250) == 2250

    def test_backoff_is_capped(self) -> None:
        policy = RetryPolicy(retry_delay_ms=1000, max_delay_ms=30_000)
        assert policy.backoff_ms(10, 0) == 30_000


# ======================================================================
# Executor
# ======================================================================


class TestResilienceExecutor:
    @pytest.mark.asyncio
    async def test_success_first_try(self) -> None:
        sleep = _RecordingSleep()
        operation = AsyncMock(return_value="ok")

        assert await _executor(sleep).run(operation) == "ok"
        assert operation.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retry_bound(self) -> None:
        sleep = _RecordingSleep()
        cause = ServerError("boom", provider_name="test")
        operation = AsyncMock(side_effect=cause)

        with pytest.raises(MaxRetriesExceededError) as exc_info:
            await _executor(sleep, max_retries=3).run(operation)

        assert operation.await_count == 4
        assert len(sleep.delays) == 3
        assert exc_info.value.original_error is cause
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_backoff_grows_between_attempts(self) -> None:
        sleep = _RecordingSleep()
        operation = AsyncMock(side_effect=ServerError("boom"))

        with pytest.raises(MaxRetriesExceededError):
            await _executor(sleep, retry_delay_ms=100, max_delay_ms=10_000).run(operation)

        # base * 2**step plus jitter in [0, base]
        assert 0.1 <= sleep.delays[0] <= 0.2
        assert 0.2 <= sleep.delays[1] <= 0.3
        assert 0.4 <= sleep.delays[2] <= 0.5

    @pytest.mark.asyncio
    async def test_fatal_error_is_not_retried_or_wrapped(self) -> None:
        sleep = _RecordingSleep()
        cause = AuthenticationError("bad key", provider_name="test")
        operation = AsyncMock(side_effect=cause)

        with pytest.raises(AuthenticationError) as exc_info:
            await _executor(sleep).run(operation)

        assert exc_info.value is cause
        assert operation.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_rate_limit_retry_after_is_honoured(self) -> None:
        sleep = _RecordingSleep()
        operation = AsyncMock(side_effect=[RateLimitError("slow down", retry_after_ms=500), "ok"])

        assert await _executor(sleep).run(operation) == "ok"
        assert sleep.delays == [0.5]

    @pytest.mark.asyncio
    async def test_unclassified_errors_are_retried(self) -> None:
        sleep = _RecordingSleep()
        operation = AsyncMock(side_effect=[ValueError("glitch"), "ok"])

        assert await _executor(sleep).run(operation) == "ok"
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_timeout_surfaces_as_provider_timeout(self) -> None:
        sleep = _RecordingSleep()

        async def _hang() -> str:
            await asyncio.sleep(5)
            return "late"

        with pytest.raises(ProviderTimeoutError):
            await _executor(sleep, timeout_ms=20).with_timeout(_hang)

    @pytest.mark.asyncio
    async def test_timeouts_are_retried_then_exhausted(self) -> None:
        sleep = _RecordingSleep()

        async def _hang() -> str:
            await asyncio.sleep(5)
            return "late"

        with pytest.raises(MaxRetriesExceededError) as exc_info:
            await _executor(sleep, max_retries=1, timeout_ms=20).run(_hang)

        assert isinstance(exc_info.value.original_error, ProviderTimeoutError)

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self) -> None:
        sleep = _RecordingSleep()
        operation = AsyncMock(return_value="ok")
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(RequestCancelledError):
            await _executor(sleep).run(operation, cancel_event=cancel)

        operation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_aborts_in_flight_attempt(self) -> None:
        sleep = _RecordingSleep()
        cancel = asyncio.Event()
        calls = 0

        async def _slow() -> str:
            nonlocal calls
            calls += 1
            await asyncio.sleep(5)
            return "late"

        asyncio.get_running_loop().call_later(0.01, cancel.set)

        with pytest.raises(RequestCancelledError):
            await _executor(sleep, timeout_ms=10_000).run(_slow, cancel_event=cancel)

        assert calls == 1
        assert sleep.delays == []


# ======================================================================
# Batching
# ======================================================================


def _response(vectors: list[list[float]], tokens: int | None = None) -> EmbeddingResponse:
    return EmbeddingResponse(
        embeddings=[EmbeddingResult(embedding=v, index=i) for i, v in enumerate(vectors)],
        model="m",
        dimensions=1,
        usage=EmbeddingUsage(prompt_tokens=tokens, total_tokens=tokens) if tokens is not None else None,
    )


class TestBatching:
    @pytest.mark.asyncio
    async def test_process_in_batches_partitions_in_order(self) -> None:
        seen: list[list[int]] = []

        async def _processor(batch: list[int]) -> int:
            seen.append(batch)
            return sum(batch)

        results = await process_in_batches([1, 2, 3, 4, 5], 2, _processor)

        assert seen == [[1, 2], [3, 4], [5]]
        assert results == [3, 7, 5]

    @pytest.mark.asyncio
    async def test_process_in_batches_rejects_bad_size(self) -> None:
        with pytest.raises(ValueError):
            await process_in_batches([1], 0, AsyncMock())

    def test_merge_reindexes_and_sums_usage(self) -> None:
        merged = merge_embedding_responses(
            [_response([[1.0], [2.0]], tokens=3), _response([[3.0]], tokens=4)]
        )

        assert [r.index for r in merged.embeddings] == [0, 1, 2]
        assert [r.embedding for r in merged.embeddings] == [[1.0], [2.0], [3.0]]
        assert merged.usage is not None
        assert merged.usage.total_tokens == 7

    def test_merge_without_usage(self) -> None:
        merged = merge_embedding_responses([_response([[1.0]]), _response([[2.0]])])
        assert merged.usage is None

    def test_merge_nothing(self) -> None:
        with pytest.raises(EmptyInputError):
            merge_embedding_responses([])
