"""LLM service: prompt composition for agents on top of the LLM providers.

Builds the message list for an agent conversation (system prompt,
personality instructions, retrieved context, history, user turn), picks
the provider the agent is configured for through the factory, and runs a
completion or a stream.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import structlog

from ragkit.models.agent import AgentContext, AgentPersonality, AgentTone, ResponseStyle
from ragkit.models.providers import (
    ChatCompletionOptions,
    ChatCompletionResponse,
    ChatMessage,
    LLMProviderKind,
    StreamCallback,
)
from ragkit.utils.errors import ConfigurationError
from ragkit.utils.text_utils import estimate_tokens

if TYPE_CHECKING:
    from ragkit.config.settings import Settings
    from ragkit.interfaces.llm_provider import ILLMProvider
    from ragkit.providers.factory import LLMProviderFactory

logger = structlog.get_logger(logger_name=__name__)

_TONE_INSTRUCTIONS: dict[AgentTone, str] = {
    AgentTone.FORMAL: "Maintain a formal, professional tone.",
    AgentTone.CASUAL: "Use a casual, conversational tone.",
    AgentTone.FRIENDLY: "Be warm and friendly in your responses.",
    AgentTone.PROFESSIONAL: "Keep a professional and business-like demeanor.",
    AgentTone.PLAYFUL: "Be playful and engaging with humor when appropriate.",
}

_STYLE_INSTRUCTIONS: dict[ResponseStyle, str] = {
    ResponseStyle.CONCISE: "Keep responses brief and to the point.",
    ResponseStyle.DETAILED: "Provide comprehensive, detailed responses.",
    ResponseStyle.BALANCED: "Balance detail with clarity.",
}


class LLMService:
    """High-level chat entry point used by the chat surface and the agents."""

    def __init__(self, factory: LLMProviderFactory, settings: Settings) -> None:
        self._factory = factory
        self._settings = settings

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        provider: str | LLMProviderKind | None = None,
        options: ChatCompletionOptions | None = None,
        context: str | None = None,
        history: Sequence[ChatMessage] | None = None,
        stream: bool = False,
        on_chunk: StreamCallback | None = None,
    ) -> ChatCompletionResponse:
        """Run a plain chat completion, optionally grounded in *context*.

        *history* is prepended to *messages*; *context* is folded into the
        system message.  Streaming happens only when both *stream* and
        *on_chunk* are given.
        """
        final = list(messages)
        if context:
            final = self.inject_context(final, context)
        if history:
            final = [*history, *final]

        llm = self._factory.create_from_settings(self._settings, provider, options.model if options else None)
        return await self._run(llm, final, options, stream, on_chunk)

    async def chat_with_agent(
        self,
        agent: AgentContext,
        user_message: str,
        context: str | None = None,
        history: Sequence[ChatMessage] | None = None,
        stream: bool = False,
        on_chunk: StreamCallback | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ChatCompletionResponse:
        """Answer *user_message* as *agent*.

        *temperature* and *max_tokens* override the agent's own settings.
        """
        messages = self.build_agent_messages(agent, user_message, history or [], context)
        options = ChatCompletionOptions(
            model=agent.llm_config.model,
            temperature=temperature if temperature is not None else agent.llm_config.temperature,
            max_tokens=max_tokens if max_tokens is not None else agent.llm_config.max_tokens,
            user=agent.agent_id,
        )
        llm = self._factory.create_for_agent(agent.llm_config, self._settings)
        logger.info(
            "agent_chat",
            agent_id=agent.agent_id,
            provider=llm.name,
            model=options.model,
            history=len(history or []),
            has_context=bool(context),
        )
        return await self._run(llm, messages, options, stream, on_chunk)

    # ------------------------------------------------------------------
    # Prompt composition
    # ------------------------------------------------------------------

    def build_agent_messages(
        self,
        agent: AgentContext,
        user_message: str,
        history: Sequence[ChatMessage],
        context: str | None = None,
    ) -> list[ChatMessage]:
        """System prompt (+ personality, + context), prior turns, then the user turn.

        System messages inside *history* are dropped; the agent's prompt is
        the only system message.
        """
        system_prompt = agent.system_prompt
        if agent.personality is not None:
            system_prompt += self.personality_instructions(agent.personality)
        if context:
            system_prompt += self.context_instructions(context)

        messages = [ChatMessage(role="system", content=system_prompt)]
        messages.extend(message for message in history if message.role != "system")
        messages.append(ChatMessage(role="user", content=user_message))
        return messages

    @staticmethod
    def personality_instructions(personality: AgentPersonality) -> str:
        return (
            "\n\n## Communication Style\n"
            f"{_TONE_INSTRUCTIONS.get(personality.tone, '')}\n"
            f"{_STYLE_INSTRUCTIONS.get(personality.response_style, '')}"
        )

    @staticmethod
    def context_instructions(context: str) -> str:
        return (
            "\n\n## Reference Information\n"
            "Use the following information to answer the user's question. "
            "If the answer is not in this information, say so honestly.\n\n"
            f"<context>\n{context}\n</context>\n\n"
            "Only answer from the context above. Decline questions it does not cover "
            "and do not fall back on general knowledge."
        )

    def inject_context(self, messages: Sequence[ChatMessage], context: str) -> list[ChatMessage]:
        """Append *context* to the first system message, or prepend one."""
        result = list(messages)
        for i, message in enumerate(result):
            if message.role == "system":
                result[i] = message.model_copy(
                    update={"content": message.content + self.context_instructions(context)}
                )
                return result
        return [ChatMessage(role="system", content=f"Answer based on the following context:\n\n{context}"), *result]

    def truncate_history(
        self,
        messages: Sequence[ChatMessage],
        max_tokens: int,
        preserve_system: bool = True,
    ) -> list[ChatMessage]:
        """Keep the newest messages that fit in *max_tokens* (estimated).

        With *preserve_system* the first system message is always kept and
        counts against the budget.  Order is preserved.
        """
        kept: list[ChatMessage] = []
        used = 0

        system = None
        if preserve_system:
            system = next((m for m in messages if m.role == "system"), None)
            if system is not None:
                used += self.estimate_tokens(system.content)

        for message in reversed([m for m in messages if m.role != "system"]):
            cost = self.estimate_tokens(message.content)
            if used + cost > max_tokens:
                break
            kept.append(message)
            used += cost

        kept.reverse()
        return [system, *kept] if system is not None else kept

    @staticmethod
    def estimate_tokens(text: str) -> int:
        return estimate_tokens(text)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def health_check(self, provider: str | LLMProviderKind) -> dict[str, Any]:
        name = provider.value if isinstance(provider, LLMProviderKind) else provider
        try:
            llm = self._factory.create_from_settings(self._settings, provider)
        except ConfigurationError as exc:
            logger.warning("llm_health_check_unconfigured", provider=name, error=str(exc))
            return {"provider": name, "healthy": False}
        return {"provider": name, "healthy": await llm.health_check()}

    async def health_check_all(self) -> list[dict[str, Any]]:
        """Check every provider that has the credentials it needs."""
        providers = self._settings.get_available_llm_providers()
        return list(await asyncio.gather(*(self.health_check(name) for name in providers)))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _run(
        llm: ILLMProvider,
        messages: list[ChatMessage],
        options: ChatCompletionOptions | None,
        stream: bool,
        on_chunk: StreamCallback | None,
    ) -> ChatCompletionResponse:
        if stream and on_chunk is not None:
            return await llm.stream(messages, on_chunk, options)
        return await llm.complete(messages, options)
