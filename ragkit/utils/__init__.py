"""Utility modules for ragkit.

- **errors** -- exception hierarchy rooted at RagkitError; provider errors
  carry ``code`` and ``retryable``.
- **resilience** -- per-call retry / backoff / timeout executor shared by
  all embedding and LLM providers.
- **batching** -- sub-batch partitioning and embedding-response merging.
- **text_utils** -- sentence, paragraph and section splitting, break-point
  search and token estimation for the chunkers.
- **logging** -- structlog setup with console and JSON renderers.
"""

from ragkit.utils.errors import (
    ConfigurationError,
    PipelineError,
    ProviderError,
    RagkitError,
)

__all__ = [
    "ConfigurationError",
    "PipelineError",
    "ProviderError",
    "RagkitError",
]
