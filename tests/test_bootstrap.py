import shutil
import sys
import unittest
from pathlib import Path
from uuid import uuid4

from loguru import logger

from streamchat.app_config import RuntimeEnv, parse_app_config
from streamchat.bootstrap import bootstrap_runtime
from streamchat.provider import create_backend
from streamchat.providers.anthropic_provider import AnthropicBackend
from streamchat.providers.gemini_provider import GeminiBackend

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class CreateBackendTests(unittest.TestCase):
    def test_known_providers(self) -> None:
        gemini = create_backend("Gemini", "", model="m", system_instruction="s")
        anthropic = create_backend("anthropic", "", model="m", system_instruction="s")
        self.assertIsInstance(gemini, GeminiBackend)
        self.assertIsInstance(anthropic, AnthropicBackend)

    def test_unknown_provider_raises(self) -> None:
        with self.assertRaises(ValueError):
            create_backend("llama", "", model="m", system_instruction="s")


class BootstrapRuntimeTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp_dir = PROJECT_ROOT / ".test-artifacts" / f"bootstrap-{uuid4().hex}"
        self._tmp_dir.mkdir(parents=True, exist_ok=True)

    def tearDown(self) -> None:
        logger.remove()
        logger.add(sys.stderr)
        shutil.rmtree(self._tmp_dir, ignore_errors=True)

    def _config(self, **overrides) -> dict:
        config = {
            "StoreDbPath": str(self._tmp_dir / "sessions.db"),
            "LogConsumers": [],
        }
        config.update(overrides)
        return config

    def test_starts_with_one_session_and_reopens_it(self) -> None:
        app = parse_app_config(self._config())
        env = RuntimeEnv(provider_api_key="", provider_env_var="GEMINI_API_KEY")

        runtime = bootstrap_runtime(app, env)
        first_id = runtime.controller.active_session_id
        runtime.close()
        reopened = bootstrap_runtime(app, env)
        self.addCleanup(reopened.close)

        self.assertTrue(runtime.search_grounding)
        self.assertEqual(first_id, reopened.controller.active_session_id)
        self.assertEqual(1, len(reopened.controller.sessions))

    def test_search_is_gemini_only(self) -> None:
        app = parse_app_config(self._config(Provider="anthropic"))
        runtime = bootstrap_runtime(app, RuntimeEnv(provider_api_key="", provider_env_var="ANTHROPIC_API_KEY"))
        self.addCleanup(runtime.close)
        self.assertFalse(runtime.search_grounding)


if __name__ == "__main__":
    unittest.main()
