"""Retry, backoff and timeout executor shared by every outbound provider call.

Each provider owns one :class:`ResilienceExecutor` and routes its network
calls through :meth:`ResilienceExecutor.run`.  All retry state (attempt
number, backoff step, last error) lives in locals of ``run``, so one
executor can serve any number of concurrent calls.

Per call::

    Attempting ──ok──────────────▶ Success
        │
        ├─ fatal error ──────────▶ re-raised unchanged
        ├─ rate limit + retry-after ─ sleep exactly that ─▶ Attempting
        ├─ other retryable ───── exponential backoff ────▶ Attempting
        └─ attempts exhausted ───▶ MaxRetriesExceededError
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from ragkit.models.providers import ProviderConfig
from ragkit.utils.errors import (
    MaxRetriesExceededError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    RequestCancelledError,
)

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

# Backoff ceilings.
EMBEDDING_MAX_DELAY_MS = 30_000
LLM_MAX_DELAY_MS = 60_000

SleepFunction = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and timing for one provider.

    ``max_retries`` counts retries, so a call makes at most
    ``max_retries + 1`` attempts.
    """

    max_retries: int = 3
    retry_delay_ms: int = 1000
    timeout_ms: int = 60_000
    max_delay_ms: int = LLM_MAX_DELAY_MS

    @classmethod
    def from_config(cls, config: ProviderConfig, max_delay_ms: int) -> RetryPolicy:
        return cls(
            max_retries=config.max_retries,
            retry_delay_ms=config.retry_delay_ms,
            timeout_ms=config.timeout_ms,
            max_delay_ms=max_delay_ms,
        )

    def backoff_ms(self, step: int, jitter_ms: float) -> float:
        """Exponential delay for the *step*-th backoff (0-based), capped."""
        return min(self.retry_delay_ms * (2**step) + jitter_ms, self.max_delay_ms)


class ResilienceExecutor:
    """Runs provider operations with timeouts, retries and backoff.

    Parameters
    ----------
    provider_name:
        Used in error messages and log events.
    policy:
        Retry budget, base delay, per-attempt timeout and backoff cap.
    sleep:
        Coroutine used for backoff pauses; injectable for tests.
    """

    def __init__(
        self,
        provider_name: str,
        policy: RetryPolicy,
        sleep: SleepFunction = asyncio.sleep,
    ) -> None:
        self._provider_name = provider_name
        self._policy = policy
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def run(
        self,
        operation: Callable[[], Awaitable[_T]],
        description: str = "request",
        cancel_event: asyncio.Event | None = None,
        enforce_timeout: bool = True,
    ) -> _T:
        """Run *operation* until it succeeds, fails fatally or the budget runs out.

        Parameters
        ----------
        operation:
            Zero-argument callable returning a fresh awaitable per attempt.
        description:
            Short label for log events (``"embed_batch"``, ``"chat"``).
        cancel_event:
            When set, the in-flight attempt is abandoned and no further
            attempt starts.
        enforce_timeout:
            Apply the per-attempt deadline.  Callers that already bound
            the attempt themselves (streams) pass ``False``.

        Raises
        ------
        ProviderError
            The original error if it is not retryable.
        MaxRetriesExceededError
            After ``max_retries + 1`` failed attempts, wrapping the last error.
        RequestCancelledError
            If *cancel_event* fires.
        """
        total_attempts = self._policy.max_retries + 1
        backoff_step = 0
        last_error: BaseException | None = None

        for attempt in range(1, total_attempts + 1):
            self._raise_if_cancelled(cancel_event)
            try:
                attempt_call = self.with_timeout(operation) if enforce_timeout else operation()
                return await self._until_cancelled(attempt_call, cancel_event)
            except ProviderError as exc:
                if not exc.retryable:
                    raise
                last_error = exc
            except Exception as exc:  # noqa: BLE001
                # Unclassified failures count as transient.
                last_error = exc

            if attempt == total_attempts:
                break

            if isinstance(last_error, RateLimitError) and last_error.retry_after_ms is not None:
                delay_ms = float(last_error.retry_after_ms)
            else:
                jitter = random.uniform(0, self._policy.retry_delay_ms)
                delay_ms = self._policy.backoff_ms(backoff_step, jitter)
                backoff_step += 1

            logger.warning(
                "provider_retry",
                provider=self._provider_name,
                operation=description,
                attempt=attempt,
                max_attempts=total_attempts,
                delay_ms=round(delay_ms),
                error=str(last_error),
            )
            await self._until_cancelled(self._sleep(delay_ms / 1000), cancel_event)

        raise MaxRetriesExceededError(
            f"Failed after {total_attempts} attempts: {last_error}",
            provider_name=self._provider_name,
            original_error=last_error,
        ) from last_error

    async def with_timeout(self, operation: Callable[[], Awaitable[_T]]) -> _T:
        """Run one attempt of *operation* under the policy's hard deadline."""
        timeout_ms = self._policy.timeout_ms
        try:
            return await asyncio.wait_for(operation(), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            raise ProviderTimeoutError(
                f"Request timed out after {timeout_ms}ms",
                provider_name=self._provider_name,
                original_error=exc,
            ) from exc

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def _raise_if_cancelled(self, cancel_event: asyncio.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise RequestCancelledError("Request cancelled", provider_name=self._provider_name)

    async def _until_cancelled(
        self,
        awaitable: Awaitable[_T],
        cancel_event: asyncio.Event | None,
    ) -> _T:
        """Await *awaitable*, abandoning it if *cancel_event* fires first."""
        if cancel_event is None:
            return await awaitable

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (task, waiter):
                if not pending.done():
                    pending.cancel()

        if task in done:
            return task.result()
        raise RequestCancelledError("Request cancelled", provider_name=self._provider_name)
