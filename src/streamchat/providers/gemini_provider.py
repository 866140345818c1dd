from collections.abc import AsyncIterator, Sequence

from google import genai
from google.genai import types
from loguru import logger

from streamchat.accumulator import Fragment
from streamchat.models import GroundingChunk, GroundingMetadata, WebSource
from streamchat.parts import HistoryTurn, InlineAttachmentPart, Part, TextPart


def _to_gemini_part(part: Part) -> types.Part:
    if isinstance(part, InlineAttachmentPart):
        return types.Part.from_bytes(data=part.raw_bytes(), mime_type=part.mime_type)
    return types.Part.from_text(text=part.value)


def _to_gemini_content(turn: HistoryTurn) -> types.Content:
    return types.Content(role=turn.role, parts=[_to_gemini_part(p) for p in turn.parts])


def _grounding_from_chunk(chunk) -> GroundingMetadata | None:
    """Extract ``candidates[0].grounding_metadata`` from a streamed chunk."""
    candidates = getattr(chunk, "candidates", None)
    if not candidates:
        return None
    raw = getattr(candidates[0], "grounding_metadata", None)
    if raw is None:
        return None

    chunks: list[GroundingChunk] = []
    for item in raw.grounding_chunks or []:
        web = getattr(item, "web", None)
        if web is None:
            chunks.append(GroundingChunk())
        else:
            chunks.append(GroundingChunk(web=WebSource(uri=web.uri or "", title=web.title or "")))

    supports: list[dict] = []
    for support in raw.grounding_supports or []:
        if hasattr(support, "model_dump"):
            supports.append(support.model_dump(mode="json", exclude_none=True))
        elif isinstance(support, dict):
            supports.append(support)

    return GroundingMetadata(
        grounding_chunks=tuple(chunks),
        grounding_supports=tuple(supports),
        web_search_queries=tuple(raw.web_search_queries or ()),
    )


class GeminiChatHandle:
    def __init__(self, chat):
        self._chat = chat

    async def send_message_stream(self, parts: Sequence[Part]) -> AsyncIterator[Fragment]:
        message = [_to_gemini_part(p) for p in parts]
        logger.debug(f"Gemini stream request: parts={len(message)}")
        stream = await self._chat.send_message_stream(message=message)
        chunk_count = 0
        async for chunk in stream:
            chunk_count += 1
            yield Fragment(
                text_delta=chunk.text or "",
                grounding_metadata=_grounding_from_chunk(chunk),
            )
        logger.debug(f"Gemini stream finished: chunks={chunk_count}")


class GeminiBackend:
    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        system_instruction: str,
        temperature: float = 1.0,
        search_grounding: bool = True,
    ):
        self._api_key = api_key
        self._model = model
        self._system_instruction = system_instruction
        self._temperature = temperature
        self._search_grounding = search_grounding
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        # Built on first use: a missing key fails the first send, not start-up.
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def _build_config(self) -> types.GenerateContentConfig:
        tools = [types.Tool(google_search=types.GoogleSearch())] if self._search_grounding else None
        return types.GenerateContentConfig(
            system_instruction=self._system_instruction,
            temperature=self._temperature,
            tools=tools,
        )

    def create_chat(self, history: Sequence[HistoryTurn]) -> GeminiChatHandle:
        contents = [_to_gemini_content(turn) for turn in history]
        logger.debug(
            f"Creating Gemini chat: model={self._model}, history_turns={len(contents)}, "
            f"search_grounding={self._search_grounding}"
        )
        chat = self._get_client().aio.chats.create(
            model=self._model,
            config=self._build_config(),
            history=contents,
        )
        return GeminiChatHandle(chat)
