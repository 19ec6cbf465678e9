"""Ollama LLM provider adapter for locally-hosted models.

Talks to the Ollama REST API via ``httpx``:

    POST /api/chat   — chat completion (JSON, or NDJSON when streaming)
    GET  /api/tags   — installed models (health check, ``list_models``)

Ollama runs entirely locally, so there is no API key.  A 404 from
``/api/chat`` means the model has not been pulled; it is not retried.
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
from ragkit.providers.llm.streaming import StreamAccumulator, run_stream
from ragkit.utils.errors import LLMError, ProviderError
from ragkit.utils.resilience import LLM_MAX_DELAY_MS, ResilienceExecutor, RetryPolicy

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3.2"
DEFAULT_TIMEOUT_MS = 120_000

_FINISH_REASONS: dict[str, FinishReason] = {
    "stop": "stop",
    "length": "length",
}


class OllamaLLMProvider(ILLMProvider):
    """LLM provider backed by a local Ollama server."""

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
        return "ollama"

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
        body = self._build_request(messages, options, stream=False)

        async def _call() -> ChatCompletionResponse:
            try:
                response = await self._http.post(f"{self._base_url}/api/chat", json=body)
            except httpx.TransportError as exc:
                raise translate_transport_error(self.name, exc) from exc
            if response.status_code >= 400:
                raise self._status_error(response, body["model"])

            data = response.json()
            if data.get("error"):
                raise LLMError(str(data["error"]), provider_name=self.name)
            prompt_tokens = data.get("prompt_eval_count", 0)
            completion_tokens = data.get("eval_count", 0)
            return ChatCompletionResponse(
                content=(data.get("message") or {}).get("content", ""),
                model=data.get("model") or body["model"],
                finish_reason=_FINISH_REASONS.get(data.get("done_reason") or "stop"),
                usage=TokenUsage(
                    prompt_tokens=prompt_tokens,
                    completion_tokens=completion_tokens,
                    total_tokens=prompt_tokens + completion_tokens,
                ),
            )

        result = await self._executor.run(_call, description="complete")
        logger.info("ollama_completion", model=result.model, tokens=result.usage.total_tokens)
        return result

    async def stream(
        self,
        messages: list[ChatMessage],
        on_chunk: StreamCallback,
        options: ChatCompletionOptions | None = None,
    ) -> ChatCompletionResponse:
        body = self._build_request(messages, options, stream=True)

        async def _attempt(accumulator: StreamAccumulator) -> None:
            try:
                async with self._http.stream("POST", f"{self._base_url}/api/chat", json=body) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        raise self._status_error(response, body["model"])
                    async for line in response.aiter_lines():
                        if line.strip():
                            await self._handle_line(json.loads(line), accumulator)
            except httpx.TransportError as exc:
                raise translate_transport_error(self.name, exc) from exc

        return await run_stream(self._executor, self.name, body["model"], on_chunk, _attempt)

    async def aclose(self) -> None:
        # An injected client belongs to the caller.
        if self._owns_http:
            await self._http.aclose()

    async def health_check(self) -> bool:
        try:
            await self._executor.with_timeout(self.list_models)
        except Exception as exc:  # noqa: BLE001
            logger.warning("ollama_health_check_failed", base_url=self._base_url, error=str(exc))
            return False
        return True

    async def list_models(self) -> list[str]:
        """Return the names of the models installed on the Ollama server."""
        try:
            response = await self._http.get(f"{self._base_url}/api/tags")
        except httpx.TransportError as exc:
            raise translate_transport_error(self.name, exc) from exc
        if response.status_code >= 400:
            raise classify_status(self.name, response.status_code, error_message(response))
        return [model["name"] for model in response.json().get("models", [])]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_request(
        self,
        messages: list[ChatMessage],
        options: ChatCompletionOptions | None,
        stream: bool,
    ) -> dict[str, Any]:
        options = options or ChatCompletionOptions()
        body: dict[str, Any] = {
            "model": options.model or self._config.default_model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "stream": stream,
        }
        model_options = {
            key: value
            for key, value in (
                ("temperature", options.temperature),
                ("num_predict", options.max_tokens),
                ("top_p", options.top_p),
                ("stop", options.stop),
            )
            if value is not None
        }
        if model_options:
            body["options"] = model_options
        return body

    async def _handle_line(self, data: dict[str, Any], accumulator: StreamAccumulator) -> None:
        if data.get("error"):
            raise LLMError(str(data["error"]), provider_name=self.name)
        if data.get("model"):
            accumulator.model = data["model"]
        await accumulator.add((data.get("message") or {}).get("content"))
        if data.get("done"):
            accumulator.finish_reason = _FINISH_REASONS.get(data.get("done_reason") or "stop")
            accumulator.prompt_tokens = data.get("prompt_eval_count", 0)
            accumulator.completion_tokens = data.get("eval_count", 0)

    def _status_error(self, response: httpx.Response, model: str) -> ProviderError:
        message = error_message(response)
        if response.status_code == 404:
            return LLMError(
                f"Model '{model}' not found: {message}",
                provider_name=self.name,
                code="MODEL_NOT_FOUND",
            )
        return classify_status(self.name, response.status_code, message)
