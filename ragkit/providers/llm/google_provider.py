"""Google Gemini LLM provider adapter.

Talks to the Generative Language REST API directly through ``httpx``:

    POST {base}/models/{model}:generateContent?key=...
    POST {base}/models/{model}:streamGenerateContent?key=...&alt=sse

Gemini names the assistant role ``model``, takes the system prompt as a
top-level ``systemInstruction`` and reports finish reasons in upper case
(``STOP``, ``MAX_TOKENS``, ``SAFETY``, ``RECITATION``).
"""

from __future__ import annotations

import json
from typing import Any

import httpx
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
from ragkit.providers.http_errors import classify_status, error_message, translate_transport_error
from ragkit.providers.llm.messages import split_system_prompt
from ragkit.providers.llm.streaming import StreamAccumulator, run_stream
from ragkit.utils.errors import ContentFilterError, ContextLengthError, LLMError, ProviderError
from ragkit.utils.resilience import LLM_MAX_DELAY_MS, ResilienceExecutor, RetryPolicy

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-1.5-flash"

_FINISH_REASONS: dict[str, FinishReason] = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
    "BLOCKLIST": "content_filter",
    "PROHIBITED_CONTENT": "content_filter",
}


class GoogleLLMProvider(ILLMProvider):
    """LLM provider backed by the Google Gemini REST API."""

    def __init__(
        self,
        config: LLMProviderConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=config.timeout_ms / 1000)
        self._owns_http = http_client is None
        self._executor = ResilienceExecutor(
            self.name,
            RetryPolicy.from_config(config, LLM_MAX_DELAY_MS),
        )

    @property
    def name(self) -> str:
        return "google"

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
        model, body = self._build_request(messages, options)
        url = f"{self._base_url}/models/{model}:generateContent"

        async def _call() -> ChatCompletionResponse:
            try:
                response = await self._http.post(url, params={"key": self._config.api_key}, json=body)
            except httpx.TransportError as exc:
                raise translate_transport_error(self.name, exc) from exc
            if response.status_code >= 400:
                raise self._status_error(response)

            data = response.json()
            candidate = self._first_candidate(data)
            usage = data.get("usageMetadata", {})
            prompt_tokens = usage.get("promptTokenCount", 0)
            completion_tokens = usage.get("candidatesTokenCount", 0)
            return ChatCompletionResponse(
                content=self._candidate_text(candidate),
                model=data.get("modelVersion") or model,
                finish_reason=_FINISH_REASONS.get(candidate.get("finishReason", "")),
                usage=TokenUsage(
                    prompt_tokens=prompt_tokens,
                    completion_tokens=completion_tokens,
                    total_tokens=usage.get("totalTokenCount", prompt_tokens + completion_tokens),
                ),
            )

        result = await self._executor.run(_call, description="complete")
        logger.info("google_completion", model=result.model, tokens=result.usage.total_tokens)
        return result

    async def stream(
        self,
        messages: list[ChatMessage],
        on_chunk: StreamCallback,
        options: ChatCompletionOptions | None = None,
    ) -> ChatCompletionResponse:
        model, body = self._build_request(messages, options)
        url = f"{self._base_url}/models/{model}:streamGenerateContent"
        params = {"key": self._config.api_key, "alt": "sse"}

        async def _attempt(accumulator: StreamAccumulator) -> None:
            try:
                async with self._http.stream("POST", url, params=params, json=body) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        raise self._status_error(response)
                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        payload = line[len("data:"):].strip()
                        if payload:
                            await self._handle_fragment(json.loads(payload), accumulator)
            except httpx.TransportError as exc:
                raise translate_transport_error(self.name, exc) from exc

        return await run_stream(self._executor, self.name, model, on_chunk, _attempt)

    async def aclose(self) -> None:
        # An injected client belongs to the caller.
        if self._owns_http:
            await self._http.aclose()

    async def health_check(self) -> bool:
        async def _ping() -> httpx.Response:
            return await self._http.get(
                f"{self._base_url}/models", params={"key": self._config.api_key}
            )

        try:
            response = await self._executor.with_timeout(_ping)
        except Exception as exc:  # noqa: BLE001
            logger.warning("google_health_check_failed", error=str(exc))
            return False
        return response.status_code == 200

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_request(
        self,
        messages: list[ChatMessage],
        options: ChatCompletionOptions | None,
    ) -> tuple[str, dict[str, Any]]:
        options = options or ChatCompletionOptions()
        system_prompt, conversation = split_system_prompt(messages)

        body: dict[str, Any] = {
            "contents": [
                {
                    "role": "model" if m.role == "assistant" else "user",
                    "parts": [{"text": m.content}],
                }
                for m in conversation
            ],
        }
        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        generation_config = {
            key: value
            for key, value in (
                ("temperature", options.temperature),
                ("maxOutputTokens", options.max_tokens),
                ("topP", options.top_p),
                ("stopSequences", options.stop),
            )
            if value is not None
        }
        if generation_config:
            body["generationConfig"] = generation_config

        return options.model or self._config.default_model, body

    def _first_candidate(self, data: dict[str, Any]) -> dict[str, Any]:
        candidates = data.get("candidates") or []
        if candidates:
            return candidates[0]
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise ContentFilterError(f"Prompt blocked: {block_reason}", provider_name=self.name)
        raise LLMError("No candidates in response", provider_name=self.name, code="NO_CANDIDATES")

    @staticmethod
    def _candidate_text(candidate: dict[str, Any]) -> str:
        parts = (candidate.get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)

    async def _handle_fragment(self, data: dict[str, Any], accumulator: StreamAccumulator) -> None:
        if data.get("modelVersion"):
            accumulator.model = data["modelVersion"]
        usage = data.get("usageMetadata")
        if usage:
            accumulator.prompt_tokens = usage.get("promptTokenCount", accumulator.prompt_tokens)
            accumulator.completion_tokens = usage.get(
                "candidatesTokenCount", accumulator.completion_tokens
            )
            if "totalTokenCount" in usage:
                accumulator.total_tokens = usage["totalTokenCount"]

        candidates = data.get("candidates") or []
        if not candidates:
            return
        candidate = candidates[0]
        await accumulator.add(self._candidate_text(candidate))
        if candidate.get("finishReason"):
            accumulator.finish_reason = _FINISH_REASONS.get(candidate["finishReason"])

    def _status_error(self, response: httpx.Response) -> ProviderError:
        message = error_message(response)
        if "SAFETY" in message or "blocked" in message.lower():
            return ContentFilterError(message, provider_name=self.name)
        lowered = message.lower()
        if response.status_code == 400 and "token" in lowered and "exceed" in lowered:
            return ContextLengthError(message, provider_name=self.name)
        return classify_status(
            self.name,
            response.status_code,
            message,
            retry_after=response.headers.get("retry-after"),
        )
