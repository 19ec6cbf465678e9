"""Provider configuration and request/response models.

These models are the vendor-neutral vocabulary spoken by every embedding
and LLM adapter.  Vendor payloads are translated to and from them inside
``ragkit/providers/``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class EmbeddingProviderKind(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    OLLAMA = "ollama"
    OPENAI = "openai"


class LLMProviderKind(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    OLLAMA = "ollama"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ProviderConfig(BaseModel):
    """Connection and retry settings shared by every provider."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = Field(default=None, repr=False)
    base_url: str | None = None
    default_model: str
    max_retries: int = Field(default=3, ge=0)
    retry_delay_ms: int = Field(default=1000, gt=0)
    timeout_ms: int = Field(default=60000, gt=0)


class EmbeddingProviderConfig(ProviderConfig):
    provider: EmbeddingProviderKind
    dimensions: int = Field(gt=0)
    max_batch_size: int = Field(default=32, gt=0)


class LLMProviderConfig(ProviderConfig):
    provider: LLMProviderKind
    organization: str | None = None


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


class EmbeddingResult(BaseModel):
    """One vector, tied back to its position in the caller's input list."""

    model_config = ConfigDict(frozen=True)

    embedding: list[float]
    index: int = Field(ge=0)
    token_count: int | None = None


class EmbeddingUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    total_tokens: int = 0


class EmbeddingResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    embeddings: list[EmbeddingResult] = Field(default_factory=list)
    model: str
    dimensions: int
    usage: EmbeddingUsage | None = None


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

Role = Literal["system", "user", "assistant"]
FinishReason = Literal["stop", "length", "content_filter", "error"]


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    name: str | None = None


class ChatCompletionOptions(BaseModel):
    """Per-request generation parameters.  ``None`` means "vendor default"."""

    model_config = ConfigDict(frozen=True)

    model: str | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    stop: list[str] | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    user: str | None = None


class TokenUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    model: str
    finish_reason: FinishReason | None = None
    usage: TokenUsage = Field(default_factory=TokenUsage)


class StreamChunk(BaseModel):
    """One streamed delta, or the terminal marker when ``done`` is set."""

    model_config = ConfigDict(frozen=True)

    content: str = ""
    done: bool = False
    finish_reason: FinishReason | None = None


StreamCallback = Callable[[StreamChunk], "Awaitable[None] | None"]
