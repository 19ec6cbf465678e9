"""Stream accumulation shared by the LLM adapters.

Every adapter decodes its vendor's fragments and feeds them into a
:class:`StreamAccumulator`, which forwards content deltas to the caller's
callback and rebuilds the final :class:`ChatCompletionResponse`.
:func:`run_stream` wraps an attempt with the provider's deadline and
retry policy; once any delta has reached the caller, a failure is raised
as :class:`StreamInterruptedError` and not retried, so callers never
receive the same text twice.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable

from ragkit.models.providers import (
    ChatCompletionResponse,
    FinishReason,
    StreamCallback,
    StreamChunk,
    TokenUsage,
)
from ragkit.utils.errors import StreamInterruptedError
from ragkit.utils.resilience import ResilienceExecutor


async def emit(callback: StreamCallback, chunk: StreamChunk) -> None:
    """Invoke *callback*, awaiting it when it is a coroutine function."""
    result = callback(chunk)
    if inspect.isawaitable(result):
        await result


class StreamAccumulator:
    """Collects deltas, finish reason and usage counters from one stream."""

    def __init__(self, callback: StreamCallback, model: str) -> None:
        self._callback = callback
        self._parts: list[str] = []
        self._finished = False
        self.model = model
        self.finish_reason: FinishReason | None = None
        self.prompt_tokens = 0
        self.completion_tokens = 0
        self.total_tokens: int | None = None

    @property
    def emitted(self) -> bool:
        return bool(self._parts)

    async def add(self, text: str | None) -> None:
        if not text:
            return
        self._parts.append(text)
        await emit(self._callback, StreamChunk(content=text))

    async def finish(self) -> None:
        """Send the single terminal ``done`` chunk."""
        if self._finished:
            return
        self._finished = True
        await emit(self._callback, StreamChunk(done=True, finish_reason=self.finish_reason))

    def response(self) -> ChatCompletionResponse:
        total = self.total_tokens
        if total is None:
            total = self.prompt_tokens + self.completion_tokens
        return ChatCompletionResponse(
            content="".join(self._parts),
            model=self.model,
            finish_reason=self.finish_reason,
            usage=TokenUsage(
                prompt_tokens=self.prompt_tokens,
                completion_tokens=self.completion_tokens,
                total_tokens=total,
            ),
        )


async def run_stream(
    executor: ResilienceExecutor,
    provider_name: str,
    model: str,
    on_chunk: StreamCallback,
    attempt: Callable[[StreamAccumulator], Awaitable[None]],
) -> ChatCompletionResponse:
    """Run *attempt* under the executor and return the accumulated response.

    Parameters
    ----------
    executor:
        The provider's resilience executor.
    provider_name:
        Used for :class:`StreamInterruptedError`.
    model:
        Model name reported if the stream never names one.
    on_chunk:
        Caller's callback.
    attempt:
        Coroutine function that opens the vendor stream and feeds a fresh
        accumulator.
    """

    async def operation() -> ChatCompletionResponse:
        accumulator = StreamAccumulator(on_chunk, model)
        try:
            await executor.with_timeout(lambda: attempt(accumulator))
        except Exception as exc:
            if accumulator.emitted:
                raise StreamInterruptedError(
                    f"Stream failed after partial output: {exc}",
                    provider_name=provider_name,
                    original_error=exc,
                ) from exc
            raise
        await accumulator.finish()
        return accumulator.response()

    return await executor.run(operation, description="stream", enforce_timeout=False)
