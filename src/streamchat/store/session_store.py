from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from dataclasses import replace

from loguru import logger

from streamchat.models import ChatSession, sessions_from_json, sessions_to_json
from streamchat.store.kv_store import KeyValueStore

DEFAULT_KEY = "chat_sessions"


class PersistenceError(Exception):
    pass


class SessionStore:
    """Durable snapshot of the whole session collection under one key."""

    def __init__(self, kv: KeyValueStore, key: str = DEFAULT_KEY):
        self._kv = kv
        self._key = key

    def load(self) -> list[ChatSession]:
        raw = self._kv.get(self._key)
        if raw is None:
            return []
        try:
            sessions = sessions_from_json(raw)
        except (ValueError, KeyError, TypeError) as ex:
            logger.warning(f"Discarding unreadable session snapshot '{self._key}': {ex}")
            return []

        for session in sessions:
            for index, message in enumerate(session.messages):
                if message.is_streaming:
                    logger.warning(
                        f"Settling message {message.id} in session {session.id} left streaming by a previous run"
                    )
                    session.messages[index] = replace(message, is_streaming=False)

        logger.info(f"Loaded {len(sessions)} persisted sessions")
        return sessions

    def save_all(self, sessions: Sequence[ChatSession]) -> None:
        payload = sessions_to_json(list(sessions))
        try:
            self._kv.put(self._key, payload)
        except sqlite3.Error as ex:
            raise PersistenceError(f"Failed to save {len(sessions)} sessions: {ex}") from ex
