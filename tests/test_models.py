import unittest

from streamchat.models import (
    ATTACHMENT_ONLY_TITLE,
    Attachment,
    ChatSession,
    Message,
    derive_title,
    sessions_from_json,
    sessions_to_json,
)


class DeriveTitleTests(unittest.TestCase):
    def test_long_text_is_truncated_with_ellipsis(self) -> None:
        title = derive_title("Explain quantum tunnelling in simple terms for a curious teenager")
        self.assertEqual("Explain quantum tunnelling in ...", title)

    def test_short_text_is_kept(self) -> None:
        self.assertEqual("Hello there", derive_title("Hello there"))
        self.assertEqual("x" * 30, derive_title("x" * 30))

    def test_empty_text_uses_fallback(self) -> None:
        self.assertEqual(ATTACHMENT_ONLY_TITLE, derive_title(""))


class MessageTests(unittest.TestCase):
    def test_placeholder_is_empty_streaming_model_message(self) -> None:
        placeholder = Message.placeholder()
        self.assertEqual("model", placeholder.role)
        self.assertEqual("", placeholder.text)
        self.assertTrue(placeholder.is_streaming)

    def test_ids_are_unique(self) -> None:
        ids = {Message.placeholder().id for _ in range(50)}
        self.assertEqual(50, len(ids))

    def test_optional_fields_are_omitted_when_empty(self) -> None:
        encoded = Message.user("hi").to_dict()
        self.assertEqual({"id", "role", "text", "timestamp"}, set(encoded))

    def test_unknown_role_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Message.from_dict({"id": "1", "role": "system", "text": "", "timestamp": 0})

    def test_attachment_bytes_round_trip(self) -> None:
        attachment = Attachment.from_bytes(b"\x00binary\xff", "application/pdf", name="doc.pdf")
        self.assertEqual(b"\x00binary\xff", attachment.raw_bytes())
        self.assertEqual(attachment, Attachment.from_dict(attachment.to_dict()))


class ChatSessionTests(unittest.TestCase):
    def test_replace_at_requires_same_message(self) -> None:
        session = ChatSession.create()
        index = session.append(Message.placeholder())
        with self.assertRaises(ValueError):
            session.replace_at(index, Message.placeholder())

    def test_json_uses_camel_case_keys(self) -> None:
        session = ChatSession.create()
        session.append(Message.user("hello", [Attachment.from_bytes(b"a", "image/png")]))

        raw = sessions_to_json([session])

        self.assertIn('"createdAt"', raw)
        self.assertIn('"mimeType"', raw)
        self.assertEqual([session], sessions_from_json(raw))

    def test_decoding_accepts_camel_case_snapshot(self) -> None:
        raw = (
            '[{"id":"1700000000000","title":"Image Analysis","createdAt":1700000000000,'
            '"messages":[{"id":"1700000000001","role":"user","text":"","timestamp":1700000000001,'
            '"attachments":[{"mimeType":"image/png","data":"aGk=","name":"a.png"}]},'
            '{"id":"1700000000002","role":"model","text":"A picture.","timestamp":1700000000002,'
            '"isStreaming":false,"groundingMetadata":{"groundingChunks":[{"web":{"uri":"u","title":"t"}}]}}]}]'
        )

        sessions = sessions_from_json(raw)

        message = sessions[0].messages[1]
        self.assertEqual("A picture.", message.text)
        self.assertFalse(message.is_streaming)
        self.assertEqual("u", message.grounding_metadata.web_sources()[0].uri)
        self.assertEqual(b"hi", sessions[0].messages[0].attachments[0].raw_bytes())


if __name__ == "__main__":
    unittest.main()
