import unittest

from streamchat.models import Attachment, Message
from streamchat.parts import HistoryReplayError, InlineAttachmentPart, TextPart, history_to_turns, message_parts


class MessagePartsTests(unittest.TestCase):
    def test_attachments_precede_text(self) -> None:
        first = Attachment.from_bytes(b"one", "image/png")
        second = Attachment.from_bytes(b"two", "image/jpeg")

        parts = message_parts("compare these", [first, second])

        self.assertEqual(
            (
                InlineAttachmentPart(mime_type="image/png", data=first.data),
                InlineAttachmentPart(mime_type="image/jpeg", data=second.data),
                TextPart(value="compare these"),
            ),
            parts,
        )

    def test_empty_text_adds_no_text_part(self) -> None:
        parts = message_parts("", [Attachment.from_bytes(b"x", "image/png")])
        self.assertEqual(1, len(parts))
        self.assertIsInstance(parts[0], InlineAttachmentPart)


class HistoryToTurnsTests(unittest.TestCase):
    def test_turns_keep_roles_and_order(self) -> None:
        messages = [
            Message(id="1", role="user", text="hello", timestamp=1),
            Message(id="2", role="model", text="hi!", timestamp=2),
        ]

        turns = history_to_turns(messages)

        self.assertEqual(["user", "model"], [t.role for t in turns])
        self.assertEqual((TextPart(value="hi!"),), turns[1].parts)

    def test_message_without_parts_is_skipped(self) -> None:
        messages = [
            Message(id="1", role="user", text="hello", timestamp=1),
            Message(id="2", role="model", text="", timestamp=2),
        ]
        self.assertEqual(1, len(history_to_turns(messages)))

    def test_invalid_attachment_data_raises(self) -> None:
        bad = Message(
            id="1",
            role="user",
            text="look",
            timestamp=1,
            attachments=(Attachment(mime_type="image/png", data="%%%"),),
        )
        with self.assertRaises(HistoryReplayError):
            history_to_turns([bad])

    def test_missing_mime_type_raises(self) -> None:
        bad = Message(
            id="1",
            role="user",
            text="look",
            timestamp=1,
            attachments=(Attachment(mime_type="", data="aGk="),),
        )
        with self.assertRaises(HistoryReplayError):
            history_to_turns([bad])


if __name__ == "__main__":
    unittest.main()
