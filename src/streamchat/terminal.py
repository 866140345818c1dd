from __future__ import annotations

import mimetypes
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import TextIO

from loguru import logger

from streamchat.commands.router import CommandRouter
from streamchat.controller import ConversationController
from streamchat.models import Attachment, ChatSession, Message

_SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"


class Spinner:
    """Thread-based spinner that renders on the current line using \\r."""

    def __init__(self, prefix: str = "", label: str = " Thinking...", out: TextIO | None = None):
        self._prefix = prefix
        self._label = label
        self._out = out or sys.stdout
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._frame_width = 1 + len(label)

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._stop.is_set():
            return
        self._stop.set()
        if self._thread:
            self._thread.join()
        clear = self._prefix + " " * self._frame_width
        self._out.write("\r" + clear + "\r" + self._prefix)
        self._out.flush()

    def _run(self) -> None:
        i = 0
        try:
            while not self._stop.is_set():
                frame = _SPINNER_FRAMES[i % len(_SPINNER_FRAMES)] + self._label
                self._out.write("\r" + self._prefix + frame)
                self._out.flush()
                self._stop.wait(0.08)
                i += 1
        except (UnicodeEncodeError, OSError):
            pass  # Terminal doesn't support these characters


def short_id(value: str, length: int = 8) -> str:
    return value if len(value) <= length else value[:length]


def format_session_list_entry(position: int, session: ChatSession, *, active_session_id: str | None) -> str:
    marker = "*" if session.id == active_session_id else " "
    created = datetime.fromtimestamp(session.created_at / 1000).strftime("%Y-%m-%d %H:%M")
    return (
        f"{marker} {position}. {session.title} [{short_id(session.id)}] "
        f"({len(session.messages)} messages, created {created})"
    )


def resolve_session_ref(sessions: list[ChatSession], ref: str) -> ChatSession | None:
    """Find a session by 1-based list position, full id, or unique id prefix."""
    ref = ref.strip()
    if not ref:
        return None
    if ref.isdigit():
        position = int(ref)
        if 1 <= position <= len(sessions):
            return sessions[position - 1]
        return None
    for session in sessions:
        if session.id == ref:
            return session
    matches = [s for s in sessions if s.id.startswith(ref)]
    if len(matches) > 1:
        raise ValueError(f"Session reference is ambiguous: {ref}")
    return matches[0] if matches else None


def load_attachment(path: str) -> Attachment:
    file_path = Path(path).expanduser()
    mime_type, _ = mimetypes.guess_type(file_path.name)
    return Attachment.from_bytes(
        file_path.read_bytes(),
        mime_type or "application/octet-stream",
        name=file_path.name,
    )


class TerminalRenderer:
    """Session listener that prints the streaming reply of the active session."""

    def __init__(self, controller: ConversationController, *, line_prefix: str = "model> ", out: TextIO | None = None):
        self._controller = controller
        self._line_prefix = line_prefix
        self._out = out or sys.stdout
        self._printed: dict[str, str] = {}
        self._settled: set[str] = set()
        self._spinner: Spinner | None = None

    def __call__(self, session: ChatSession) -> None:
        if session.id != self._controller.active_session_id or not session.messages:
            return
        message = session.messages[-1]
        if message.role != "model" or message.id in self._settled:
            return
        # Replies that finished before this renderer saw them are not output.
        if message.id not in self._printed and not message.is_streaming:
            return

        if message.id not in self._printed:
            self._printed[message.id] = ""
            self._out.write(self._line_prefix)
            self._out.flush()
            if message.is_streaming and not message.text:
                self._spinner = Spinner(prefix=self._line_prefix, out=self._out)
                self._spinner.start()

        self._render_text(message)
        if not message.is_streaming:
            self._settle(message)

    def _render_text(self, message: Message) -> None:
        printed = self._printed[message.id]
        if message.text == printed:
            return
        self._stop_spinner()
        if message.text.startswith(printed):
            self._out.write(message.text[len(printed):])
        else:
            # Replaced rather than extended (error reply)
            self._out.write("\n" + self._line_prefix + message.text)
        self._out.flush()
        self._printed[message.id] = message.text

    def _settle(self, message: Message) -> None:
        self._stop_spinner()
        self._settled.add(message.id)
        self._out.write("\n")
        if message.grounding_metadata is not None:
            sources = message.grounding_metadata.web_sources()
            if sources:
                self._out.write("Sources:\n")
                for i, source in enumerate(sources, start=1):
                    self._out.write(f"  [{i}] {source.title} - {source.uri}\n")
        self._out.write("\n")
        self._out.flush()

    def _stop_spinner(self) -> None:
        if self._spinner is not None:
            self._spinner.stop()
            self._spinner = None


class ChatRepl:
    _HELP_LINES = [
        "/new                 start a new chat",
        "/list                list chats (* marks the active one)",
        "/switch <n|id>       switch to a chat by list position or id",
        "/delete [n|id]       delete a chat (default: the active one)",
        "/attach <path>       attach a file to the next message",
        "/send                send pending attachments without text",
        "exit                 quit",
    ]

    def __init__(self, controller: ConversationController, *, out: TextIO | None = None):
        self._controller = controller
        self._out = out or sys.stdout
        self._pending_attachments: list[Attachment] = []
        self._router = CommandRouter(
            on_help=self._on_help,
            on_new=self._on_new,
            on_list=self._on_list,
            on_switch=self._on_switch,
            on_delete=self._on_delete,
            on_attach=self._on_attach,
            on_unknown=self._on_unknown,
        )

    @property
    def pending_attachments(self) -> list[Attachment]:
        return list(self._pending_attachments)

    async def handle_input(self, user_input: str) -> None:
        trimmed = user_input.strip()
        if trimmed == "/send":
            await self._send("")
            return
        if self._router.try_handle(trimmed):
            return
        await self._send(trimmed)

    async def _send(self, text: str) -> None:
        attachments = self._pending_attachments
        if not text and not attachments:
            self._print("Nothing to send.")
            return
        self._pending_attachments = []
        self._print()
        await self._controller.send(text, attachments, self._controller.active_session_id)

    def _print(self, line: str = "") -> None:
        self._out.write(line + "\n")
        self._out.flush()

    def _on_help(self) -> None:
        self._print("Commands:")
        for line in self._HELP_LINES:
            self._print(f"  {line}")

    def _on_new(self) -> None:
        session = self._controller.new_chat()
        self._print(f"Started new chat [{short_id(session.id)}]")

    def _on_list(self) -> None:
        active_id = self._controller.active_session_id
        for position, session in enumerate(self._controller.sessions, start=1):
            self._print(format_session_list_entry(position, session, active_session_id=active_id))

    def _resolve(self, ref: str) -> ChatSession | None:
        try:
            session = resolve_session_ref(self._controller.sessions, ref)
        except ValueError as ex:
            self._print(str(ex))
            return None
        if session is None:
            self._print(f"No chat matches: {ref}")
        return session

    def _on_switch(self, ref: str) -> None:
        if not ref:
            self._print("Usage: /switch <n|id>")
            return
        session = self._resolve(ref)
        if session is None:
            return
        self._controller.select_session(session.id)
        self._print(f"Switched to: {session.title} [{short_id(session.id)}]")
        for message in session.messages:
            label = "you" if message.role == "user" else "model"
            extra = f" (+{len(message.attachments)} attachments)" if message.attachments else ""
            self._print(f"{label}> {message.text}{extra}")

    def _on_delete(self, ref: str) -> None:
        if ref:
            session = self._resolve(ref)
        else:
            session = self._controller.active_session
        if session is None:
            return
        self._controller.delete_session(session.id)
        active = self._controller.active_session
        self._print(f"Deleted: {session.title}")
        if active is not None:
            self._print(f"Active chat: {active.title} [{short_id(active.id)}]")

    def _on_attach(self, path: str) -> None:
        if not path:
            self._print("Usage: /attach <path>")
            return
        try:
            attachment = load_attachment(path)
        except OSError as ex:
            logger.warning(f"Could not read attachment {path}: {ex}")
            self._print(f"Could not read {path}: {ex}")
            return
        self._pending_attachments.append(attachment)
        self._print(f"Attached {attachment.name} ({attachment.mime_type}); it will be sent with your next message.")

    def _on_unknown(self, command: str) -> None:
        self._print(f"Unknown local command: {command}. Type /help for commands.")
