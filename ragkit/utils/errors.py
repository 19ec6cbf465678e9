"""Custom exception hierarchy for ragkit.

All application exceptions inherit from :class:`RagkitError`, which carries
an optional ``provider_name`` so error handlers can identify which external
service (e.g. "openai", "ollama", "chromadb") caused the failure.

Provider-facing failures derive from :class:`ProviderError` and add three
structured fields that drive retry decisions:

    RagkitError
    +-- ConfigurationError        (startup / missing config / unknown provider)
    +-- ChunkingError             (chunking orchestration)
    +-- PipelineError             (job pipeline stages)
    +-- ParsingError              (unsupported or unreadable documents)
    +-- ProviderError             (code, retryable, original_error)
        +-- RateLimitError            retryable, optional retry_after_ms
        +-- ProviderTimeoutError      retryable
        +-- ProviderConnectionError   retryable
        +-- ServerError               retryable (HTTP 5xx)
        +-- AuthenticationError       fatal (401 / 403)
        +-- ContextLengthError        fatal
        +-- ContentFilterError        fatal
        +-- ClientError               fatal (other HTTP 4xx)
        +-- MaxRetriesExceededError   fatal, wraps the last cause
        +-- EmptyInputError           fatal (validation)
        +-- RequestCancelledError     fatal
        +-- StreamInterruptedError    fatal
        +-- EmbeddingError            vendor-specific embedding failures
        +-- LLMError                  vendor-specific LLM failures
        +-- VectorStoreError          vector store read / write failures

The resilience executor never inspects exception types to decide whether
to retry; it reads ``retryable``.
"""

from __future__ import annotations


class RagkitError(Exception):
    """Base exception for all ragkit errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider name in brackets,
    e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


class ConfigurationError(RagkitError):
    """Raised when configuration is missing or invalid at startup.

    ``code`` is ``MISSING_API_KEY``, ``UNKNOWN_PROVIDER`` or
    ``NOT_SUPPORTED`` for factory failures.
    """

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
        code: str = "CONFIGURATION_ERROR",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._code = code

    @property
    def code(self) -> str:
        return self._code


class ChunkingError(RagkitError):
    """Raised when a knowledge base cannot be chunked (missing source, store failure)."""

    def __init__(
        self,
        message: str = "Chunking failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PipelineError(RagkitError):
    """Raised when a job pipeline stage fails or receives an invalid payload."""

    def __init__(
        self,
        message: str = "Pipeline stage failed",
        provider_name: str | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._stage = stage

    @property
    def stage(self) -> str | None:
        return self._stage


class ParsingError(RagkitError):
    """Raised when a document's bytes cannot be turned into text."""

    def __init__(
        self,
        message: str = "Document could not be parsed",
        provider_name: str | None = None,
        code: str = "PARSE_ERROR",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._code = code

    @property
    def code(self) -> str:
        return self._code


# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------


class ProviderError(RagkitError):
    """Base class for failures raised by embedding, LLM and vector-store providers.

    Parameters
    ----------
    message:
        Human-readable description.
    provider_name:
        Provider that raised the error (``"openai"``, ``"ollama"``, ...).
    code:
        Stable machine-readable code such as ``RATE_LIMIT`` or ``HTTP_502``.
    retryable:
        Whether the resilience executor may attempt the call again.
    original_error:
        The underlying exception, when one exists.
    """

    default_code = "PROVIDER_ERROR"
    default_retryable = False

    def __init__(
        self,
        message: str = "Provider request failed",
        provider_name: str | None = None,
        code: str | None = None,
        retryable: bool | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._code = code or self.default_code
        self._retryable = self.default_retryable if retryable is None else retryable
        self._original_error = original_error

    @property
    def code(self) -> str:
        return self._code

    @property
    def retryable(self) -> bool:
        return self._retryable

    @property
    def original_error(self) -> BaseException | None:
        return self._original_error


class RateLimitError(ProviderError):
    """Raised when a provider rejects a request because of rate limiting.

    ``retry_after_ms`` is set when the provider told us how long to wait
    (``retry-after`` header); the executor then sleeps exactly that long.
    """

    default_code = "RATE_LIMIT"
    default_retryable = True

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
        retry_after_ms: int | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(
            message=message,
            provider_name=provider_name,
            original_error=original_error,
        )
        self._retry_after_ms = retry_after_ms

    @property
    def retry_after_ms(self) -> int | None:
        return self._retry_after_ms


class ProviderTimeoutError(ProviderError):
    """Raised when a provider call exceeds its hard deadline."""

    default_code = "TIMEOUT"
    default_retryable = True


class ProviderConnectionError(ProviderError):
    """Raised when the provider cannot be reached at the network level."""

    default_code = "NETWORK_ERROR"
    default_retryable = True


class ServerError(ProviderError):
    """Raised on HTTP 5xx responses."""

    default_code = "SERVER_ERROR"
    default_retryable = True


class AuthenticationError(ProviderError):
    """Raised on HTTP 401 / 403 responses.  Never retried."""

    default_code = "AUTH_ERROR"


class ContextLengthError(ProviderError):
    """Raised when the prompt exceeds the model's context window."""

    default_code = "CONTEXT_LENGTH"


class ContentFilterError(ProviderError):
    """Raised when the provider refuses the request on content-policy grounds."""

    default_code = "CONTENT_FILTER"


class ClientError(ProviderError):
    """Raised on HTTP 4xx responses that have no more specific kind."""

    default_code = "CLIENT_ERROR"


class MaxRetriesExceededError(ProviderError):
    """Raised once every attempt allowed by the retry policy has failed."""

    default_code = "MAX_RETRIES_EXCEEDED"


class EmptyInputError(ProviderError):
    """Raised when a provider operation receives nothing to work on."""

    default_code = "EMPTY_INPUT"


class RequestCancelledError(ProviderError):
    """Raised when the caller's cancellation signal aborts a call."""

    default_code = "CANCELLED"


class StreamInterruptedError(ProviderError):
    """Raised when a stream fails after content was already delivered to the caller."""

    default_code = "STREAM_INTERRUPTED"


class EmbeddingError(ProviderError):
    """Raised for embedding failures that have no more specific kind."""

    default_code = "EMBEDDING_ERROR"


class LLMError(ProviderError):
    """Raised for LLM failures that have no more specific kind (e.g. ``NO_CANDIDATES``)."""

    default_code = "LLM_ERROR"


class VectorStoreError(ProviderError):
    """Raised when the vector store rejects a read or write."""

    default_code = "VECTOR_STORE_ERROR"
