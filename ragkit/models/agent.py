"""Agent profile as seen by the LLM layer: model choice and personality."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ragkit.models.providers import LLMProviderKind


class AgentTone(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    FORMAL = "formal"
    CASUAL = "casual"
    FRIENDLY = "friendly"
    PROFESSIONAL = "professional"
    PLAYFUL = "playful"


class ResponseStyle(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    CONCISE = "concise"
    DETAILED = "detailed"
    BALANCED = "balanced"


class AgentLLMConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: LLMProviderKind = LLMProviderKind.OPENAI
    model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1024, gt=0)


class AgentPersonality(BaseModel):
    model_config = ConfigDict(frozen=True)

    tone: AgentTone = AgentTone.FRIENDLY
    response_style: ResponseStyle = ResponseStyle.BALANCED


class AgentContext(BaseModel):
    """Everything the LLM service needs to answer as a given agent."""

    model_config = ConfigDict(frozen=True)

    agent_id: str
    name: str
    system_prompt: str = Field(max_length=10_000)
    llm_config: AgentLLMConfig = Field(default_factory=AgentLLMConfig)
    personality: AgentPersonality | None = None
