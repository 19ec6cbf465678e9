"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
When ``base_url`` is configured the client talks to any OpenAI-compatible
endpoint (TogetherAI, Groq, Fireworks, a local vLLM) instead.

The SDK's own retry loop is disabled (``max_retries=0``); retries, backoff
and deadlines are owned by the provider's :class:`ResilienceExecutor`.
"""

from __future__ import annotations

import openai
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
from ragkit.providers.llm.streaming import StreamAccumulator, run_stream
from ragkit.utils.errors import (
    ContentFilterError,
    ContextLengthError,
    LLMError,
    ProviderConnectionError,
    ProviderError,
    ProviderTimeoutError,
)
from ragkit.utils.resilience import LLM_MAX_DELAY_MS, ResilienceExecutor, RetryPolicy

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MODEL = "gpt-4o-mini"

_FINISH_REASONS: dict[str, FinishReason] = {
    "stop": "stop",
    "length": "length",
    "content_filter": "content_filter",
}

_OPTION_FIELDS = (
    "temperature",
    "max_tokens",
    "top_p",
    "stop",
    "frequency_penalty",
    "presence_penalty",
    "user",
)


def translate_openai_error(
    provider_name: str,
    exc: openai.APIError,
    fallback: type[ProviderError] = LLMError,
) -> ProviderError:
    """Map an ``openai`` SDK exception onto the provider error taxonomy.

    Exceptions without a status code or transport cause become *fallback*.
    """
    if isinstance(exc, openai.APITimeoutError):
        return ProviderTimeoutError(str(exc), provider_name=provider_name, original_error=exc)
    if isinstance(exc, openai.APIConnectionError):
        return ProviderConnectionError(str(exc), provider_name=provider_name, original_error=exc)
    if isinstance(exc, openai.APIStatusError):
        if exc.code == "context_length_exceeded":
            return ContextLengthError(exc.message, provider_name=provider_name, original_error=exc)
        if exc.code in ("content_filter", "content_policy_violation"):
            return ContentFilterError(exc.message, provider_name=provider_name, original_error=exc)
        return classify_status(
            provider_name,
            exc.status_code,
            exc.message,
            retry_after=exc.response.headers.get("retry-after"),
            original_error=exc,
        )
    return fallback(f"OpenAI API error: {exc}", provider_name=provider_name, original_error=exc)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat completions API."""

    def __init__(self, config: LLMProviderConfig) -> None:
        self._config = config
        client_kwargs: dict = {
            "api_key": config.api_key,
            "timeout": config.timeout_ms / 1000,
            "max_retries": 0,
        }
        if config.base_url:
            client_kwargs["base_url"] = config.base_url
        if config.organization:
            client_kwargs["organization"] = config.organization

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._provider_label = "openai-compatible" if config.base_url else "openai"
        self._executor = ResilienceExecutor(
            self._provider_label,
            RetryPolicy.from_config(config, LLM_MAX_DELAY_MS),
        )

    @property
    def name(self) -> str:
        return "openai"

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
                response = await self._client.chat.completions.create(**request)
            except openai.APIError as exc:
                raise translate_openai_error(self._provider_label, exc) from exc

            if not response.choices:
                raise LLMError(
                    "OpenAI returned no choices",
                    provider_name=self._provider_label,
                    code="EMPTY_RESPONSE",
                )
            choice = response.choices[0]
            usage = response.usage
            return ChatCompletionResponse(
                content=choice.message.content or "",
                model=response.model,
                finish_reason=_FINISH_REASONS.get(choice.finish_reason or ""),
                usage=TokenUsage(
                    prompt_tokens=usage.prompt_tokens if usage else 0,
                    completion_tokens=usage.completion_tokens if usage else 0,
                    total_tokens=usage.total_tokens if usage else 0,
                ),
            )

        result = await self._executor.run(_call, description="complete")
        logger.info(
            "openai_completion",
            model=result.model,
            provider=self._provider_label,
            tokens=result.usage.total_tokens,
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
        request["stream_options"] = {"include_usage": True}

        async def _attempt(accumulator: StreamAccumulator) -> None:
            try:
                stream = await self._client.chat.completions.create(**request)
                async for chunk in stream:
                    if chunk.model:
                        accumulator.model = chunk.model
                    if chunk.usage:
                        accumulator.prompt_tokens = chunk.usage.prompt_tokens
                        accumulator.completion_tokens = chunk.usage.completion_tokens
                        accumulator.total_tokens = chunk.usage.total_tokens
                    for choice in chunk.choices:
                        await accumulator.add(choice.delta.content if choice.delta else None)
                        if choice.finish_reason:
                            accumulator.finish_reason = _FINISH_REASONS.get(choice.finish_reason)
            except openai.APIError as exc:
                raise translate_openai_error(self._provider_label, exc) from exc

        return await run_stream(
            self._executor, self._provider_label, request["model"], on_chunk, _attempt
        )

    async def aclose(self) -> None:
        await self._client.close()

    async def health_check(self) -> bool:
        async def _ping() -> None:
            await self._client.models.list()

        try:
            await self._executor.with_timeout(_ping)
        except Exception as exc:  # noqa: BLE001
            logger.warning("openai_health_check_failed", provider=self._provider_label, error=str(exc))
            return False
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_request(
        self,
        messages: list[ChatMessage],
        options: ChatCompletionOptions | None,
    ) -> dict:
        options = options or ChatCompletionOptions()
        request: dict = {
            "model": options.model or self._config.default_model,
            "messages": [m.model_dump(exclude_none=True) for m in messages],
        }
        for field in _OPTION_FIELDS:
            value = getattr(options, field)
            if value is not None:
                request[field] = value
        return request
