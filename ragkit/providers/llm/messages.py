"""Message translation for vendors with a top-level system prompt.

Anthropic and Google take the system prompt outside the message list and
require the conversation to open with a user turn.
"""

from __future__ import annotations

from ragkit.models.providers import ChatMessage

# Synthetic opener prepended when a conversation starts with a non-user turn.
PLACEHOLDER_USER_TURN = ChatMessage(role="user", content="Hello")


def split_system_prompt(messages: list[ChatMessage]) -> tuple[str | None, list[ChatMessage]]:
    """Return ``(system_prompt, conversation)`` for a system-prompt vendor.

    All ``system`` messages are joined with blank lines.  If the remaining
    conversation does not start with a ``user`` message a minimal user
    turn is prepended.
    """
    system_parts = [m.content for m in messages if m.role == "system"]
    conversation = [m for m in messages if m.role != "system"]

    if conversation and conversation[0].role != "user":
        conversation.insert(0, PLACEHOLDER_USER_TURN)

    system_prompt = "\n\n".join(system_parts) if system_parts else None
    return system_prompt, conversation
