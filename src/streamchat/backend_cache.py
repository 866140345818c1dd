from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from streamchat.models import Message
from streamchat.parts import history_to_turns
from streamchat.provider import ChatBackend, ChatHandle


class BackendSessionCache:
    """Holds the backend conversation for the most recently used session.

    A cached handle keeps the backend's own running context, so history is only
    replayed when a different session is requested.
    """

    def __init__(self, backend: ChatBackend):
        self._backend = backend
        self._session_id: str | None = None
        self._handle: ChatHandle | None = None

    @property
    def cached_session_id(self) -> str | None:
        return self._session_id

    def get_or_create(self, session_id: str, history: Sequence[Message]) -> ChatHandle:
        if self._handle is not None and self._session_id == session_id:
            return self._handle

        self.invalidate()
        turns = history_to_turns(history)
        handle = self._backend.create_chat(turns)
        self._session_id = session_id
        self._handle = handle
        logger.info(f"Backend conversation rebuilt for session {session_id} ({len(turns)} turns replayed)")
        return handle

    def invalidate(self, session_id: str | None = None) -> None:
        if session_id is not None and session_id != self._session_id:
            return
        self._session_id = None
        self._handle = None
