from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace
from enum import Enum

from loguru import logger

from streamchat.accumulator import StreamAccumulator
from streamchat.backend_cache import BackendSessionCache
from streamchat.models import Attachment, ChatSession, Message, derive_title
from streamchat.parts import message_parts
from streamchat.store import PersistenceError, SessionStore

ERROR_MESSAGE = (
    "Sorry, I encountered an error processing your request. "
    "Please check your connection, API key, or file format."
)

SessionListener = Callable[[ChatSession], None]


class TurnOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class ConversationController:
    """Owns the session collection and drives one streamed turn at a time.

    Every state change is persisted as a full snapshot and then published to
    subscribers. Only one send may be in flight per controller; a send issued
    while busy is ignored.
    """

    def __init__(self, store: SessionStore, cache: BackendSessionCache):
        self._store = store
        self._cache = cache
        self._sessions: list[ChatSession] = []
        self._active_session_id: str | None = None
        self._busy = False
        self._listeners: list[SessionListener] = []

    @property
    def sessions(self) -> list[ChatSession]:
        return list(self._sessions)

    @property
    def active_session_id(self) -> str | None:
        return self._active_session_id

    @property
    def active_session(self) -> ChatSession | None:
        if self._active_session_id is None:
            return None
        return self.get_session(self._active_session_id)

    @property
    def is_busy(self) -> bool:
        return self._busy

    def get_session(self, session_id: str) -> ChatSession | None:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        self._sessions = self._store.load()
        if self._sessions:
            self._active_session_id = self._sessions[0].id
            logger.info(f"Resumed {len(self._sessions)} sessions (active: {self._active_session_id})")
        else:
            self.new_chat()

    def new_chat(self) -> ChatSession:
        session = ChatSession.create()
        self._sessions.insert(0, session)
        self._active_session_id = session.id
        logger.info(f"Started new session {session.id}")
        self._commit(session)
        return session

    def select_session(self, session_id: str) -> ChatSession:
        session = self.get_session(session_id)
        if session is None:
            raise ValueError(f"Session does not exist: {session_id}")
        self._active_session_id = session_id
        self._publish(session)
        return session

    def delete_session(self, session_id: str) -> None:
        session = self.get_session(session_id)
        if session is None:
            raise ValueError(f"Session does not exist: {session_id}")

        self._sessions = [s for s in self._sessions if s.id != session_id]
        self._cache.invalidate(session_id)
        logger.info(f"Deleted session {session_id}")

        if self._active_session_id != session_id:
            self._persist()
            return
        if self._sessions:
            self._active_session_id = self._sessions[0].id
            self._persist()
            self._publish(self._sessions[0])
        else:
            self.new_chat()

    async def send(
        self,
        text: str,
        attachments: Sequence[Attachment] = (),
        session_id: str | None = None,
    ) -> Message | None:
        """Run one turn against ``session_id`` and return the settled reply.

        Returns None when the send is ignored: no target session, nothing to
        send, or another turn still in flight.
        """
        if session_id is None:
            return None
        if not text and not attachments:
            return None
        if self._busy:
            logger.warning(f"Ignoring send to session {session_id}: another response is still streaming")
            return None
        session = self.get_session(session_id)
        if session is None:
            logger.warning(f"Ignoring send to unknown session {session_id}")
            return None

        with self._turn_in_flight():
            history = list(session.messages)

            if not session.messages:
                session.title = derive_title(text)
            session.append(Message.user(text, attachments))
            self._commit(session)

            placeholder = Message.placeholder()
            index = session.append(placeholder)
            self._commit(session)

            try:
                outcome = await self._stream_reply(session, index, history, text, attachments)
                logger.info(f"Turn {outcome.value} in session {session.id} (message {placeholder.id})")
            finally:
                self._update(session, index, is_streaming=False)

            return session.messages[index]

    async def _stream_reply(
        self,
        session: ChatSession,
        index: int,
        history: list[Message],
        text: str,
        attachments: Sequence[Attachment],
    ) -> TurnOutcome:
        accumulator = StreamAccumulator()
        try:
            handle = self._cache.get_or_create(session.id, history)
            fragments = handle.send_message_stream(message_parts(text, attachments))
            async for snapshot in accumulator.fold(fragments):
                self._update(
                    session,
                    index,
                    text=snapshot.text,
                    grounding_metadata=snapshot.grounding_metadata,
                )
        except Exception as ex:
            logger.error(
                f"Failed to generate response in session {session.id} "
                f"after {accumulator.fragment_count} fragments: {type(ex).__name__}: {ex}"
            )
            self._update(session, index, text=ERROR_MESSAGE)
            return TurnOutcome.FAILURE
        return TurnOutcome.SUCCESS

    @contextmanager
    def _turn_in_flight(self) -> Iterator[None]:
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    def _update(self, session: ChatSession, index: int, **changes) -> None:
        session.replace_at(index, replace(session.messages[index], **changes))
        self._commit(session)

    def _commit(self, session: ChatSession) -> None:
        self._persist()
        self._publish(session)

    def _persist(self) -> None:
        try:
            self._store.save_all(self._sessions)
        except PersistenceError as ex:
            logger.error(f"Session snapshot not saved: {ex}")

    def _publish(self, session: ChatSession) -> None:
        for listener in self._listeners:
            listener(session)
