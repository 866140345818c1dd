from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from streamchat.app_config import AppConfig, RuntimeEnv
from streamchat.backend_cache import BackendSessionCache
from streamchat.controller import ConversationController
from streamchat.logging_config import setup_logging
from streamchat.provider import create_backend
from streamchat.store import KeyValueStore, SessionStore
from streamchat.system_prompt import get_system_instruction


@dataclass
class AppRuntime:
    controller: ConversationController
    kv_store: KeyValueStore
    search_grounding: bool
    log_descriptions: list[str]

    def close(self) -> None:
        self.kv_store.close()


def bootstrap_runtime(app: AppConfig, env: RuntimeEnv) -> AppRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers)

    # Only the Gemini backend has a search tool.
    search_grounding = app.search_grounding and app.provider_name == "gemini"
    if app.search_grounding and not search_grounding:
        logger.info(f"Search grounding is not available for provider {app.provider_name!r}")

    backend = create_backend(
        app.provider_name,
        env.provider_api_key,
        model=app.model,
        system_instruction=get_system_instruction(search_grounding),
        max_tokens=app.max_tokens,
        temperature=app.temperature,
        search_grounding=search_grounding,
    )

    db_path = Path(app.store_db_path)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    kv_store = KeyValueStore(str(db_path))

    controller = ConversationController(
        SessionStore(kv_store, key=app.store_key),
        BackendSessionCache(backend),
    )
    controller.start()

    return AppRuntime(
        controller=controller,
        kv_store=kv_store,
        search_grounding=search_grounding,
        log_descriptions=log_descriptions,
    )
