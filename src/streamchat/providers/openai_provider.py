from collections.abc import AsyncIterator, Sequence

import openai
from loguru import logger

from streamchat.accumulator import Fragment
from streamchat.parts import HistoryTurn, InlineAttachmentPart, Part, TextPart


def _to_openai_user_content(parts: Sequence[Part]) -> list[dict]:
    content: list[dict] = []
    for part in parts:
        if isinstance(part, TextPart):
            content.append({"type": "text", "text": part.value})
        elif part.mime_type.startswith("image/"):
            content.append({
                "type": "image_url",
                "image_url": {"url": f"data:{part.mime_type};base64,{part.data}"},
            })
        else:
            raise ValueError(f"Unsupported attachment type for OpenAI: {part.mime_type}")
    return content


def _to_openai_messages(system_prompt: str, history: Sequence[HistoryTurn]) -> list[dict]:
    """Convert history turns to OpenAI chat format."""
    out: list[dict] = []

    if system_prompt:
        out.append({"role": "system", "content": system_prompt})

    for turn in history:
        if turn.role == "model":
            # Assistant messages carry text only
            text = "\n".join(p.value for p in turn.parts if isinstance(p, TextPart))
            if any(isinstance(p, InlineAttachmentPart) for p in turn.parts):
                logger.warning("Dropping attachments from a model turn; OpenAI accepts text only")
            out.append({"role": "assistant", "content": text})
        else:
            out.append({"role": "user", "content": _to_openai_user_content(turn.parts)})

    return out


class OpenAIChatHandle:
    def __init__(
        self,
        client: openai.AsyncOpenAI,
        *,
        model: str,
        max_tokens: int,
        temperature: float,
        messages: list[dict],
    ):
        self._client = client
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._messages = messages

    @property
    def messages(self) -> list[dict]:
        return list(self._messages)

    async def send_message_stream(self, parts: Sequence[Part]) -> AsyncIterator[Fragment]:
        request_messages = [*self._messages, {"role": "user", "content": _to_openai_user_content(parts)}]
        text_content = ""

        logger.debug(
            f"API request: model={self._model}, max_tokens={self._max_tokens}, "
            f"messages={len(request_messages)}"
        )
        stream = await self._client.chat.completions.create(
            model=self._model,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            messages=request_messages,
            stream=True,
        )

        async for chunk in stream:
            choice = chunk.choices[0] if chunk.choices else None
            if choice is None or choice.delta is None:
                continue
            if choice.delta.content:
                text_content += choice.delta.content
                yield Fragment(text_delta=choice.delta.content)

        self._messages = request_messages
        if text_content:
            self._messages.append({"role": "assistant", "content": text_content})
        logger.debug(f"API response: text_len={len(text_content)}")


class OpenAIBackend:
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
        self._client: openai.AsyncOpenAI | None = None

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self._api_key)
        return self._client

    def create_chat(self, history: Sequence[HistoryTurn]) -> OpenAIChatHandle:
        return OpenAIChatHandle(
            self._get_client(),
            model=self._model,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            messages=_to_openai_messages(self._system_instruction, history),
        )
