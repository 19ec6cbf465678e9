"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.

Key differences from the OpenAI adapter:
    - System prompt is a separate ``system`` parameter, not a message
    - The conversation must open with a user turn
    - ``max_tokens`` is mandatory (defaults to 1024 here)
    - Stream usage is split: input tokens arrive in ``message_start``,
      output tokens in ``message_delta``
"""

from __future__ import annotations

import anthropic
import structlog

from ragkit.interfaces.llm_provider import ILLMProvider
from ragkit.models.providers import (
    ChatCompletionOptions,
    ChatCompletionResponse,
    ChatMessage,
    FinishReason,
    LLMProviderConfig,
    StreamCallback,
    TokenUsage,
)
from ragkit.providers.http_errors import classify_status
from ragkit.providers.llm.messages import split_system_prompt
from ragkit.providers.llm.streaming import StreamAccumulator, run_stream
from ragkit.utils.errors import (
    ContextLengthError,
    LLMError,
    ProviderConnectionError,
    ProviderError,
    ProviderTimeoutError,
)
from ragkit.utils.resilience import LLM_MAX_DELAY_MS, ResilienceExecutor, RetryPolicy

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_MAX_TOKENS = 1024

_FINISH_REASONS: dict[str, FinishReason] = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "refusal": "content_filter",
}


def _translate_error(exc: anthropic.APIError) -> ProviderError:
    if isinstance(exc, anthropic.APITimeoutError):
        return ProviderTimeoutError(str(exc), provider_name="anthropic", original_error=exc)
    if isinstance(exc, anthropic.APIConnectionError):
        return ProviderConnectionError(str(exc), provider_name="anthropic", original_error=exc)
    if isinstance(exc, anthropic.APIStatusError):
        if isinstance(exc, anthropic.BadRequestError) and "token" in exc.message.lower():
            return ContextLengthError(exc.message, provider_name="anthropic", original_error=exc)
        return classify_status(
            "anthropic",
            exc.status_code,
            exc.message,
            retry_after=exc.response.headers.get("retry-after"),
            original_error=exc,
        )
    return LLMError(f"Anthropic API error: {exc}", provider_name="anthropic", original_error=exc)


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Messages API."""

    def __init__(self, config: LLMProviderConfig) -> None:
        self._config = config
        client_kwargs: dict = {
            "api_key": config.api_key,
            "timeout": config.timeout_ms / 1000,
            "max_retries": 0,
        }
        if config.base_url:
            client_kwargs["base_url"] = config.base_url
        self._client = anthropic.AsyncAnthropic(**client_kwargs)
        self._executor = ResilienceExecutor(
            self.name,
            RetryPolicy.from_config(config, LLM_MAX_DELAY_MS),
        )

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return self._config.default_model

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        messages: list[ChatMessage],
        options: ChatCompletionOptions | None = None,
    ) -> ChatCompletionResponse:
        request = self._build_request(messages, options)

        async def _call() -> ChatCompletionResponse:
            try:
                response = await self._client.messages.create(**request)
            except anthropic.APIError as exc:
                raise _translate_error(exc) from exc

            # Content is a list of blocks; only text blocks carry output.
            text = "".join(
                block.text for block in response.content if getattr(block, "type", None) == "text"
            )
            return ChatCompletionResponse(
                content=text,
                model=response.model,
                finish_reason=_FINISH_REASONS.get(response.stop_reason or ""),
                usage=TokenUsage(
                    prompt_tokens=response.usage.input_tokens,
                    completion_tokens=response.usage.output_tokens,
                    total_tokens=response.usage.input_tokens + response.usage.output_tokens,
                ),
            )

        result = await self._executor.run(_call, description="complete")
        logger.info(
            "anthropic_completion",
            model=result.model,
            input_tokens=result.usage.prompt_tokens,
            output_tokens=result.usage.completion_tokens,
        )
        return result

    async def stream(
        self,
        messages: list[ChatMessage],
        on_chunk: StreamCallback,
        options: ChatCompletionOptions | None = None,
    ) -> ChatCompletionResponse:
        request = self._build_request(messages, options)
        request["stream"] = True

        async def _attempt(accumulator: StreamAccumulator) -> None:
            try:
                stream = await self._client.messages.create(**request)
                async for event in stream:
                    await self._handle_event(event, accumulator)
            except anthropic.APIError as exc:
                raise _translate_error(exc) from exc

        return await run_stream(self._executor, self.name, request["model"], on_chunk, _attempt)

    async def aclose(self) -> None:
        await self._client.close()

    async def health_check(self) -> bool:
        async def _ping() -> None:
            await self._client.messages.create(
                model=self._config.default_model,
                max_tokens=1,
                messages=[{"role": "user", "content": "ping"}],
            )

        try:
            await self._executor.with_timeout(_ping)
        except Exception as exc:  # noqa: BLE001
            logger.warning("anthropic_health_check_failed", error=str(exc))
            return False
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _handle_event(event: object, accumulator: StreamAccumulator) -> None:
        event_type = getattr(event, "type", None)
        if event_type == "message_start":
            message = event.message  # type: ignore[attr-defined]
            accumulator.model = message.model or accumulator.model
            accumulator.prompt_tokens = message.usage.input_tokens
        elif event_type == "content_block_delta":
            delta = event.delta  # type: ignore[attr-defined]
            if getattr(delta, "type", None) == "text_delta":
                await accumulator.add(delta.text)
        elif event_type == "message_delta":
            stop_reason = event.delta.stop_reason  # type: ignore[attr-defined]
            if stop_reason:
                accumulator.finish_reason = _FINISH_REASONS.get(stop_reason)
            usage = getattr(event, "usage", None)
            if usage is not None:
                accumulator.completion_tokens = usage.output_tokens

    def _build_request(
        self,
        messages: list[ChatMessage],
        options: ChatCompletionOptions | None,
    ) -> dict:
        options = options or ChatCompletionOptions()
        system_prompt, conversation = split_system_prompt(messages)

        request: dict = {
            "model": options.model or self._config.default_model,
            "messages": [{"role": m.role, "content": m.content} for m in conversation],
            "max_tokens": options.max_tokens or DEFAULT_MAX_TOKENS,
        }
        if system_prompt:
            request["system"] = system_prompt
        if options.temperature is not None:
            request["temperature"] = options.temperature
        if options.top_p is not None:
            request["top_p"] = options.top_p
        if options.stop:
            request["stop_sequences"] = options.stop
        return request
