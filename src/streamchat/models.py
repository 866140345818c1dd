from __future__ import annotations

import base64
import json
import time
from dataclasses import dataclass, field
from typing import Any, Literal
from uuid import uuid4

Role = Literal["user", "model"]

NEW_CHAT_TITLE = "New Chat"
ATTACHMENT_ONLY_TITLE = "Image Analysis"
TITLE_MAX_CHARS = 30


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid4())


def derive_title(text: str) -> str:
    """Title for a session, taken from the text of its first user message."""
    if not text:
        return ATTACHMENT_ONLY_TITLE
    if len(text) > TITLE_MAX_CHARS:
        return text[:TITLE_MAX_CHARS] + "..."
    return text


@dataclass(frozen=True)
class Attachment:
    mime_type: str
    data: str  # base64
    name: str | None = None

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str, name: str | None = None) -> Attachment:
        return cls(mime_type=mime_type, data=base64.b64encode(raw).decode("ascii"), name=name)

    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.data, validate=True)

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"mimeType": self.mime_type, "data": self.data}
        if self.name is not None:
            out["name"] = self.name
        return out

    @classmethod
    def from_dict(cls, raw: dict) -> Attachment:
        return cls(mime_type=raw["mimeType"], data=raw["data"], name=raw.get("name"))


@dataclass(frozen=True)
class WebSource:
    uri: str
    title: str


@dataclass(frozen=True)
class GroundingChunk:
    web: WebSource | None = None


@dataclass(frozen=True)
class GroundingMetadata:
    grounding_chunks: tuple[GroundingChunk, ...] = ()
    grounding_supports: tuple[dict, ...] = ()
    web_search_queries: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.grounding_chunks or self.grounding_supports or self.web_search_queries)

    def web_sources(self) -> list[WebSource]:
        return [c.web for c in self.grounding_chunks if c.web is not None]

    def to_dict(self) -> dict:
        chunks: list[dict] = []
        for chunk in self.grounding_chunks:
            if chunk.web is None:
                chunks.append({})
            else:
                chunks.append({"web": {"uri": chunk.web.uri, "title": chunk.web.title}})
        out: dict[str, Any] = {"groundingChunks": chunks}
        if self.grounding_supports:
            out["groundingSupports"] = list(self.grounding_supports)
        if self.web_search_queries:
            out["webSearchQueries"] = list(self.web_search_queries)
        return out

    @classmethod
    def from_dict(cls, raw: dict) -> GroundingMetadata:
        if not isinstance(raw, dict):
            raise ValueError(f"Grounding metadata must be an object, got {type(raw).__name__}")
        chunks: list[GroundingChunk] = []
        for chunk in raw.get("groundingChunks") or []:
            if not isinstance(chunk, dict):
                raise ValueError(f"Grounding chunk must be an object, got {type(chunk).__name__}")
            web = chunk.get("web")
            if not web:
                chunks.append(GroundingChunk())
                continue
            if not isinstance(web, dict):
                raise ValueError(f"Grounding web source must be an object, got {type(web).__name__}")
            chunks.append(GroundingChunk(web=WebSource(uri=web.get("uri", ""), title=web.get("title", ""))))
        return cls(
            grounding_chunks=tuple(chunks),
            grounding_supports=tuple(raw.get("groundingSupports") or ()),
            web_search_queries=tuple(raw.get("webSearchQueries") or ()),
        )


@dataclass(frozen=True)
class Message:
    """One entry of a session transcript.

    Messages are values: a streaming model reply is updated by swapping in a
    new ``Message`` with the same ``id`` at the same position.
    """

    id: str
    role: Role
    text: str
    timestamp: int
    attachments: tuple[Attachment, ...] = ()
    grounding_metadata: GroundingMetadata | None = None
    is_streaming: bool = False

    @classmethod
    def user(cls, text: str, attachments: tuple[Attachment, ...] | list[Attachment] = ()) -> Message:
        return cls(id=new_id(), role="user", text=text, timestamp=now_ms(), attachments=tuple(attachments))

    @classmethod
    def placeholder(cls) -> Message:
        return cls(id=new_id(), role="model", text="", timestamp=now_ms(), is_streaming=True)

    def to_dict(self) -> dict:
        out: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "text": self.text,
            "timestamp": self.timestamp,
        }
        if self.attachments:
            out["attachments"] = [a.to_dict() for a in self.attachments]
        if self.grounding_metadata is not None:
            out["groundingMetadata"] = self.grounding_metadata.to_dict()
        if self.is_streaming:
            out["isStreaming"] = True
        return out

    @classmethod
    def from_dict(cls, raw: dict) -> Message:
        role = raw["role"]
        if role not in ("user", "model"):
            raise ValueError(f"Unknown message role: {role!r}")
        metadata = raw.get("groundingMetadata")
        return cls(
            id=str(raw["id"]),
            role=role,
            text=raw.get("text") or "",
            timestamp=int(raw["timestamp"]),
            attachments=tuple(Attachment.from_dict(a) for a in raw.get("attachments") or ()),
            grounding_metadata=GroundingMetadata.from_dict(metadata) if metadata else None,
            is_streaming=bool(raw.get("isStreaming", False)),
        )


@dataclass
class ChatSession:
    id: str
    title: str
    created_at: int
    messages: list[Message] = field(default_factory=list)

    @classmethod
    def create(cls) -> ChatSession:
        return cls(id=new_id(), title=NEW_CHAT_TITLE, created_at=now_ms())

    def append(self, message: Message) -> int:
        """Append a message and return its (permanent) index."""
        self.messages.append(message)
        return len(self.messages) - 1

    def replace_at(self, index: int, message: Message) -> None:
        current = self.messages[index]
        if current.id != message.id:
            raise ValueError(f"Message at index {index} is {current.id}, not {message.id}")
        self.messages[index] = message

    def streaming_messages(self) -> list[Message]:
        return [m for m in self.messages if m.is_streaming]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> ChatSession:
        return cls(
            id=str(raw["id"]),
            title=str(raw.get("title") or NEW_CHAT_TITLE),
            created_at=int(raw["createdAt"]),
            messages=[Message.from_dict(m) for m in raw.get("messages") or []],
        )


def sessions_to_json(sessions: list[ChatSession]) -> str:
    return json.dumps([s.to_dict() for s in sessions], ensure_ascii=True)


def sessions_from_json(raw: str) -> list[ChatSession]:
    parsed = json.loads(raw)
    if not isinstance(parsed, list):
        raise ValueError("Persisted sessions must be a JSON list")
    return [ChatSession.from_dict(item) for item in parsed]
