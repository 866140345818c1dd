from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

_API_KEY_ENV_VARS = {
    "gemini": "GEMINI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}

_DEFAULT_MODELS = {
    "gemini": "gemini-3-pro-preview",
    "anthropic": "claude-sonnet-4-5-20250929",
    "openai": "gpt-4o",
}


@dataclass
class RuntimeEnv:
    provider_api_key: str
    provider_env_var: str


@dataclass
class AppConfig:
    provider_name: str
    model: str
    max_tokens: int
    temperature: float
    search_grounding: bool
    store_db_path: str
    store_key: str
    log_level: str
    log_consumers: list | None


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def parse_app_config(config: dict) -> AppConfig:
    provider_name = str(config.get("Provider", "gemini")).strip().lower()
    return AppConfig(
        provider_name=provider_name,
        model=config.get("Model", _DEFAULT_MODELS.get(provider_name, _DEFAULT_MODELS["gemini"])),
        max_tokens=int(config.get("MaxTokens", 8192)),
        temperature=float(config.get("Temperature", 1.0)),
        search_grounding=_to_bool(config.get("SearchGrounding", True), default=True),
        store_db_path=str(config.get("StoreDbPath", ".streamchat/sessions.db")),
        store_key=str(config.get("StoreKey", "chat_sessions")),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env(provider_name: str) -> RuntimeEnv:
    # A missing key is not an error here; the first send reports it.
    env_var = _API_KEY_ENV_VARS.get(provider_name, _API_KEY_ENV_VARS["gemini"])
    return RuntimeEnv(
        provider_api_key=os.environ.get(env_var, ""),
        provider_env_var=env_var,
    )
