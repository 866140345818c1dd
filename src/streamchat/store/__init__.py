from streamchat.store.kv_store import KeyValueStore
from streamchat.store.session_store import PersistenceError, SessionStore

__all__ = [
    "KeyValueStore",
    "PersistenceError",
    "SessionStore",
]
