"""Unit tests for LLMService prompt composition and provider routing."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from ragkit.config.settings import Settings
from ragkit.models.agent import AgentContext, AgentLLMConfig, AgentPersonality, AgentTone, ResponseStyle
from ragkit.models.providers import ChatCompletionResponse, ChatMessage, LLMProviderKind
from ragkit.providers.factory import LLMProviderFactory
from ragkit.services.llm_service import LLMService


@pytest.fixture
def agent() -> AgentContext:
    return AgentContext(
        agent_id="agent-1",
        name="Helper",
        system_prompt="You are Helper.",
        llm_config=AgentLLMConfig(provider=LLMProviderKind.ANTHROPIC, model="claude-test", temperature=0.3),
        personality=AgentPersonality(tone=AgentTone.FORMAL, response_style=ResponseStyle.CONCISE),
    )


@pytest.fixture
def llm() -> MagicMock:
    provider = MagicMock()
    provider.name = "anthropic"
    response = ChatCompletionResponse(content="answer", model="claude-test")
    provider.complete = AsyncMock(return_value=response)
    provider.stream = AsyncMock(return_value=response)
    provider.health_check = AsyncMock(return_value=True)
    return provider


@pytest.fixture
def factory(llm: MagicMock) -> MagicMock:
    mock_factory = MagicMock()
    mock_factory.create_for_agent.return_value = llm
    mock_factory.create_from_settings.return_value = llm
    return mock_factory


# ======================================================================
# Prompt composition
# ======================================================================


class TestBuildAgentMessages:
    def test_layout(self, agent: AgentContext) -> None:
        service = LLMService(MagicMock(), Settings(_env_file=None))
        history = [
            ChatMessage(role="system", content="stale system"),
            ChatMessage(role="user", content="earlier"),
            ChatMessage(role="assistant", content="reply"),
        ]

        messages = service.build_agent_messages(agent, "question", history, context="Facts.")

        assert [m.role for m in messages] == ["system", "user", "assistant", "user"]
        system = messages[0].content
        assert system.startswith("You are Helper.")
        assert "Maintain a formal, professional tone." in system
        assert "Keep responses brief and to the point." in system
        assert "<context>\nFacts.\n</context>" in system
        assert messages[-1].content == "question"

    def test_without_personality_or_context(self) -> None:
        plain = AgentContext(agent_id="a", name="Plain", system_prompt="Be plain.")
        messages = LLMService(MagicMock(), Settings(_env_file=None)).build_agent_messages(plain, "hi", [])
        assert messages[0].content == "Be plain."


class TestInjectContext:
    def test_appends_to_existing_system_message(self) -> None:
        service = LLMService(MagicMock(), Settings(_env_file=None))
        messages = [ChatMessage(role="system", content="Base."), ChatMessage(role="user", content="q")]

        result = service.inject_context(messages, "ctx")

        assert result[0].content.startswith("Base.")
        assert "<context>\nctx\n</context>" in result[0].content
        assert messages[0].content == "Base."

    def test_prepends_system_message_when_missing(self) -> None:
        service = LLMService(MagicMock(), Settings(_env_file=None))
        result = service.inject_context([ChatMessage(role="user", content="q")], "ctx")
        assert result[0].role == "system"
        assert result[0].content.endswith("ctx")


class TestTruncateHistory:
    def test_keeps_newest_and_system(self) -> None:
        service = LLMService(MagicMock(), Settings(_env_file=None))
        messages = [
            ChatMessage(role="system", content="s" * 8),
            ChatMessage(role="user", content="a" * 40),
            ChatMessage(role="assistant", content="b" * 8),
            ChatMessage(role="user", content="c" * 8),
        ]
        # system 2 tokens + c 2 + b 2 fit in 6; a (10) does not.
        result = service.truncate_history(messages, max_tokens=6)
        assert [m.content[0] for m in result] == ["s", "b", "c"]

    def test_without_preserving_system(self) -> None:
        service = LLMService(MagicMock(), Settings(_env_file=None))
        messages = [ChatMessage(role="system", content="s" * 8), ChatMessage(role="user", content="c" * 8)]
        assert [m.role for m in service.truncate_history(messages, 2, preserve_system=False)] == ["user"]


# ======================================================================
# Provider routing
# ======================================================================


class TestChat:
    @pytest.mark.asyncio
    async def test_chat_with_agent_uses_agent_config(self, agent, factory, llm) -> None:
        service = LLMService(factory, Settings(_env_file=None))

        result = await service.chat_with_agent(agent, "question", max_tokens=200)

        assert result.content == "answer"
        factory.create_for_agent.assert_called_once_with(agent.llm_config, service._settings)
        messages, options = llm.complete.await_args.args
        assert messages[-1].content == "question"
        assert options.model == "claude-test"
        assert options.temperature == 0.3
        assert options.max_tokens == 200
        assert options.user == "agent-1"

    @pytest.mark.asyncio
    async def test_stream_needs_callback(self, agent, factory, llm) -> None:
        service = LLMService(factory, Settings(_env_file=None))
        chunks: list = []

        await service.chat_with_agent(agent, "q", stream=True)
        llm.complete.assert_awaited_once()

        await service.chat_with_agent(agent, "q", stream=True, on_chunk=chunks.append)
        llm.stream.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_chat_with_context_and_history(self, factory, llm) -> None:
        service = LLMService(factory, Settings(_env_file=None))
        history = [ChatMessage(role="user", content="before")]

        await service.chat([ChatMessage(role="user", content="now")], provider="openai", context="ctx", history=history)

        messages = llm.complete.await_args.args[0]
        assert [m.role for m in messages] == ["user", "system", "user"]
        factory.create_from_settings.assert_called_once_with(service._settings, "openai", None)


class TestHealth:
    @pytest.mark.asyncio
    async def test_unconfigured_provider_is_unhealthy(self) -> None:
        service = LLMService(LLMProviderFactory(), Settings(_env_file=None, openai_api_key=""))
        assert await service.health_check("openai") == {"provider": "openai", "healthy": False}

    @pytest.mark.asyncio
    async def test_health_check_all_covers_configured_providers(self, factory) -> None:
        settings = Settings(_env_file=None, openai_api_key="sk-test", anthropic_api_key="", google_api_key="")
        results = await LLMService(factory, settings).health_check_all()
        assert [result["provider"] for result in results] == ["openai", "ollama"]
        assert all(result["healthy"] for result in results)
