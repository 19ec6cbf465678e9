"""Translate HTTP-level failures into the provider error taxonomy.

Used by the adapters that speak HTTP directly through ``httpx`` (Ollama,
Google Gemini) and by the SDK adapters for status codes the SDKs do not
name.
"""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx

from ragkit.utils.errors import (
    AuthenticationError,
    ClientError,
    ProviderConnectionError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    ServerError,
)


def parse_retry_after_ms(value: str | None) -> int | None:
    """Convert a ``retry-after`` header (seconds or HTTP date) to milliseconds."""
    if not value:
        return None
    try:
        return max(0, int(float(value) * 1000))
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    delta = retry_at - datetime.now(tz=timezone.utc)
    return max(0, int(delta.total_seconds() * 1000))


def classify_status(
    provider_name: str,
    status_code: int,
    message: str,
    retry_after: str | None = None,
    original_error: BaseException | None = None,
) -> ProviderError:
    """Map an HTTP status to the matching error kind.

    429 is a rate limit (carrying ``retry-after`` when sent), 401/403 are
    authentication failures, 5xx are retryable server errors and every
    other status is a fatal client error.
    """
    if status_code == 429:
        return RateLimitError(
            message or "Rate limit exceeded",
            provider_name=provider_name,
            retry_after_ms=parse_retry_after_ms(retry_after),
            original_error=original_error,
        )
    if status_code in (401, 403):
        return AuthenticationError(
            message or "Authentication failed",
            provider_name=provider_name,
            code=f"HTTP_{status_code}",
            original_error=original_error,
        )
    if status_code >= 500:
        return ServerError(
            message or f"Server error {status_code}",
            provider_name=provider_name,
            code=f"HTTP_{status_code}",
            original_error=original_error,
        )
    return ClientError(
        message or f"Request rejected with status {status_code}",
        provider_name=provider_name,
        code=f"HTTP_{status_code}",
        original_error=original_error,
    )


def translate_transport_error(provider_name: str, exc: httpx.TransportError) -> ProviderError:
    """Separate timeouts from other network failures."""
    if isinstance(exc, httpx.TimeoutException):
        return ProviderTimeoutError(
            f"Request timed out: {exc}",
            provider_name=provider_name,
            original_error=exc,
        )
    return ProviderConnectionError(
        f"Network error: {exc}",
        provider_name=provider_name,
        original_error=exc,
    )


def error_message(response: httpx.Response) -> str:
    """Extract the vendor's error message from a (read) error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if error:
            return str(error)
        if body.get("message"):
            return str(body["message"])
    return response.text.strip() or response.reason_phrase
