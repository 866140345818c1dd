from collections.abc import AsyncIterator, Sequence
from typing import Protocol, runtime_checkable

from streamchat.accumulator import Fragment
from streamchat.parts import HistoryTurn, Part


@runtime_checkable
class ChatHandle(Protocol):
    def send_message_stream(self, parts: Sequence[Part]) -> AsyncIterator[Fragment]:
        """Send one turn and yield response fragments as they arrive.

        The returned iterator is single-use. Errors raised by the transport or
        the backend propagate out of the iteration.
        """
        ...


@runtime_checkable
class ChatBackend(Protocol):
    def create_chat(self, history: Sequence[HistoryTurn]) -> ChatHandle:
        """Open a conversation seeded with ``history`` (oldest first)."""
        ...


def create_backend(
    provider_name: str,
    api_key: str,
    *,
    model: str,
    system_instruction: str,
    max_tokens: int = 8192,
    temperature: float = 1.0,
    search_grounding: bool = True,
) -> ChatBackend:
    """Factory: create a ChatBackend by name."""
    name = provider_name.strip().lower()
    if name == "gemini":
        from streamchat.providers.gemini_provider import GeminiBackend
        return GeminiBackend(
            api_key,
            model=model,
            system_instruction=system_instruction,
            temperature=temperature,
            search_grounding=search_grounding,
        )
    if name == "anthropic":
        from streamchat.providers.anthropic_provider import AnthropicBackend
        return AnthropicBackend(
            api_key,
            model=model,
            system_instruction=system_instruction,
            max_tokens=max_tokens,
            temperature=temperature,
        )
    if name == "openai":
        from streamchat.providers.openai_provider import OpenAIBackend
        return OpenAIBackend(
            api_key,
            model=model,
            system_instruction=system_instruction,
            max_tokens=max_tokens,
            temperature=temperature,
        )
    raise ValueError(f"Unknown provider: {provider_name!r}. Supported: 'gemini', 'anthropic', 'openai'")
