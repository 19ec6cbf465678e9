"""LLM provider adapters.

Four concrete implementations of ILLMProvider (ragkit/interfaces/llm_provider.py):
    - OpenAILLMProvider    — OpenAI SDK (also OpenAI-compatible endpoints)
    - AnthropicLLMProvider — Anthropic SDK, Messages API
    - GoogleLLMProvider    — Gemini REST API over httpx
    - OllamaLLMProvider    — local Ollama server over httpx

All of them route network calls through a ResilienceExecutor and are
constructed by LLMProviderFactory (ragkit/providers/factory.py).
"""

from ragkit.providers.llm.anthropic_provider import AnthropicLLMProvider
from ragkit.providers.llm.google_provider import GoogleLLMProvider
from ragkit.providers.llm.ollama_provider import OllamaLLMProvider
from ragkit.providers.llm.openai_provider import OpenAILLMProvider

__all__ = [
    "AnthropicLLMProvider",
    "GoogleLLMProvider",
    "OllamaLLMProvider",
    "OpenAILLMProvider",
]
