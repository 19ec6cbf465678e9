"""ragkit domain models, re-exported from their submodules.

    - chunking.py        — chunk records, chunking options and results
    - providers.py       — provider configs, embedding and chat payloads
    - knowledge_base.py  — knowledge-base records and processing status
    - jobs.py            — queue payloads for the processing pipeline
    - rag.py             — vector points, search hits, assembled context
    - agent.py           — agent LLM settings and personality
"""

from __future__ import annotations

from ragkit.models.agent import AgentContext, AgentLLMConfig, AgentPersonality, AgentTone, ResponseStyle
from ragkit.models.chunking import (
    ChunkingOptions,
    ChunkingResult,
    ChunkingStats,
    ChunkingStrategy,
    ChunkMetadata,
    ChunkRecord,
    PageContent,
)
from ragkit.models.jobs import (
    JOB_PAYLOAD_ADAPTER,
    ChunkJob,
    ChunkJobOptions,
    DeadLetter,
    EmbedJob,
    EmbedJobOptions,
    FileUploadedJob,
    JobPayload,
    JobResult,
    JobStatus,
    JobType,
    ParseJob,
    UploadedFile,
)
from ragkit.models.knowledge_base import (
    ChunkingSummary,
    DocumentMetadata,
    DocumentContent,
    KnowledgeBase,
    ParsedDocument,
    ProcessingError,
    ProcessingState,
    ProcessingStatus,
    SourceType,
    StoredChunk,
)
from ragkit.models.providers import (
    ChatCompletionOptions,
    ChatCompletionResponse,
    ChatMessage,
    EmbeddingProviderConfig,
    EmbeddingProviderKind,
    EmbeddingResponse,
    EmbeddingResult,
    EmbeddingUsage,
    LLMProviderConfig,
    LLMProviderKind,
    ProviderConfig,
    StreamCallback,
    StreamChunk,
    TokenUsage,
)
from ragkit.models.rag import RAGContext, RAGSearchResult, ScoredPoint, SearchFilter, VectorPoint

__all__ = [
    "JOB_PAYLOAD_ADAPTER",
    "AgentContext",
    "AgentLLMConfig",
    "AgentPersonality",
    "AgentTone",
    "ChatCompletionOptions",
    "ChatCompletionResponse",
    "ChatMessage",
    "ChunkJob",
    "ChunkJobOptions",
    "ChunkMetadata",
    "ChunkRecord",
    "ChunkingOptions",
    "ChunkingResult",
    "ChunkingStats",
    "ChunkingStrategy",
    "ChunkingSummary",
    "DeadLetter",
    "DocumentContent",
    "DocumentMetadata",
    "EmbedJob",
    "EmbedJobOptions",
    "EmbeddingProviderConfig",
    "EmbeddingProviderKind",
    "EmbeddingResponse",
    "EmbeddingResult",
    "EmbeddingUsage",
    "FileUploadedJob",
    "JobPayload",
    "JobResult",
    "JobStatus",
    "JobType",
    "KnowledgeBase",
    "LLMProviderConfig",
    "LLMProviderKind",
    "PageContent",
    "ParsedDocument",
    "ParseJob",
    "ProcessingError",
    "ProcessingState",
    "ProcessingStatus",
    "ProviderConfig",
    "RAGContext",
    "RAGSearchResult",
    "ResponseStyle",
    "ScoredPoint",
    "SearchFilter",
    "SourceType",
    "StoredChunk",
    "StreamCallback",
    "StreamChunk",
    "TokenUsage",
    "UploadedFile",
    "VectorPoint",
]
