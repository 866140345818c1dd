from collections.abc import AsyncIterator, Sequence

import anthropic
from loguru import logger

from streamchat.accumulator import Fragment
from streamchat.parts import HistoryTurn, InlineAttachmentPart, Part

_ROLE_MAP = {"user": "user", "model": "assistant"}


def _to_anthropic_block(part: Part) -> dict:
    if isinstance(part, InlineAttachmentPart):
        source = {"type": "base64", "media_type": part.mime_type, "data": part.data}
        if part.mime_type.startswith("image/"):
            return {"type": "image", "source": source}
        if part.mime_type == "application/pdf":
            return {"type": "document", "source": source}
        raise ValueError(f"Unsupported attachment type for Anthropic: {part.mime_type}")
    return {"type": "text", "text": part.value}


def _to_anthropic_messages(history: Sequence[HistoryTurn]) -> list[dict]:
    """Convert history turns to Anthropic messages (model -> assistant)."""
    return [
        {
            "role": _ROLE_MAP[turn.role],
            "content": [_to_anthropic_block(p) for p in turn.parts],
        }
        for turn in history
    ]


class AnthropicChatHandle:
    def __init__(
        self,
        client: anthropic.AsyncAnthropic,
        *,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
        messages: list[dict],
    ):
        self._client = client
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._system_prompt = system_prompt
        self._messages = messages

    @property
    def messages(self) -> list[dict]:
        return list(self._messages)

    async def send_message_stream(self, parts: Sequence[Part]) -> AsyncIterator[Fragment]:
        request_messages = [
            *self._messages,
            {"role": "user", "content": [_to_anthropic_block(p) for p in parts]},
        ]
        text_parts: list[str] = []

        logger.debug(
            f"API request: model={self._model}, max_tokens={self._max_tokens}, "
            f"messages={len(request_messages)}"
        )
        async with self._client.messages.stream(
            model=self._model,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            system=self._system_prompt,
            messages=request_messages,
        ) as stream:
            async for event in stream:
                if event.type == "content_block_delta" and event.delta.type == "text_delta":
                    text_parts.append(event.delta.text)
                    yield Fragment(text_delta=event.delta.text)

        # Only a completed exchange becomes part of the conversation.
        reply = "".join(text_parts)
        self._messages = request_messages
        if reply:
            self._messages.append({"role": "assistant", "content": [{"type": "text", "text": reply}]})
        logger.debug(f"API response: text_len={len(reply)}")


class AnthropicBackend:
    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        system_instruction: str,
        max_tokens: int = 8192,
        temperature: float = 1.0,
    ):
        self._api_key = api_key
        self._model = model
        self._system_instruction = system_instruction
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client: anthropic.AsyncAnthropic | None = None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    def create_chat(self, history: Sequence[HistoryTurn]) -> AnthropicChatHandle:
        return AnthropicChatHandle(
            self._get_client(),
            model=self._model,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            system_prompt=self._system_instruction,
            messages=_to_anthropic_messages(history),
        )
