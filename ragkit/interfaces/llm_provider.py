"""Abstract base class for LLM service providers.

Defines the contract for chat-completion backends (OpenAI, Anthropic,
Google Gemini, Ollama).  Every call-site talks to :class:`ILLMProvider`,
so swapping vendors never touches business logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragkit.models.providers import (
    ChatCompletionOptions,
    ChatCompletionResponse,
    ChatMessage,
    StreamCallback,
)


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider,
# GoogleLLMProvider, OllamaLLMProvider.  Located in: ragkit/providers/llm/
class ILLMProvider(ABC):
    """Contract for chat-completion services."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short provider identifier, e.g. ``"anthropic"``."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Model used when the request options do not name one."""

    @abstractmethod
    async def complete(
        self,
        messages: list[ChatMessage],
        options: ChatCompletionOptions | None = None,
    ) -> ChatCompletionResponse:
        """Generate a single (non-streamed) completion.

        Parameters
        ----------
        messages:
            The conversation so far, oldest first.  ``system`` messages are
            translated to the vendor's system-prompt mechanism.
        options:
            Generation parameters; ``None`` uses vendor defaults.

        Returns
        -------
        ChatCompletionResponse
            Text, model, normalised finish reason and token usage.

        Raises
        ------
        ragkit.utils.errors.ProviderError
            Any failure after retries, classified by kind (rate limit,
            context length, content filter, auth, ...).
        """

    @abstractmethod
    async def stream(
        self,
        messages: list[ChatMessage],
        on_chunk: StreamCallback,
        options: ChatCompletionOptions | None = None,
    ) -> ChatCompletionResponse:
        """Stream a completion, invoking *on_chunk* for every content delta.

        *on_chunk* is called exactly once per content delta and exactly once
        more with ``done=True`` when the stream ends.  It may be a plain
        function or a coroutine function.

        Returns
        -------
        ChatCompletionResponse
            The full response reconstructed from the accumulated stream.
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` if the provider answers a lightweight request.

        Never raises; any failure is reported as ``False``.
        """

    async def aclose(self) -> None:
        """Release the network client held by the provider.  The default does nothing."""
