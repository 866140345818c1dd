from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from streamchat.models import Attachment, Message, Role


class HistoryReplayError(ValueError):
    """A stored message cannot be converted into backend history."""


@dataclass(frozen=True)
class InlineAttachmentPart:
    mime_type: str
    data: str  # base64

    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.data, validate=True)


@dataclass(frozen=True)
class TextPart:
    value: str


Part = InlineAttachmentPart | TextPart


@dataclass(frozen=True)
class HistoryTurn:
    role: Role
    parts: tuple[Part, ...]


def message_parts(text: str, attachments: Iterable[Attachment] = ()) -> tuple[Part, ...]:
    # Attachments always precede the text part.
    parts: list[Part] = [InlineAttachmentPart(mime_type=a.mime_type, data=a.data) for a in attachments]
    if text:
        parts.append(TextPart(value=text))
    return tuple(parts)


def _check_attachment(message: Message, attachment: Attachment) -> None:
    if not attachment.mime_type:
        raise HistoryReplayError(f"Attachment without MIME type in message {message.id}")
    try:
        attachment.raw_bytes()
    except (binascii.Error, ValueError) as ex:
        raise HistoryReplayError(f"Attachment in message {message.id} is not valid base64: {ex}") from ex


def history_to_turns(messages: Sequence[Message]) -> list[HistoryTurn]:
    turns: list[HistoryTurn] = []
    for message in messages:
        for attachment in message.attachments:
            _check_attachment(message, attachment)
        parts = message_parts(message.text, message.attachments)
        if not parts:
            continue
        turns.append(HistoryTurn(role=message.role, parts=parts))
    return turns
