from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from autoheal.config.schema import HealerConfig

API_KEY_VARIABLES = {
    "gemini": "GEMINI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}

MODEL_VARIABLES = {
    "gemini_models": "GEMINI_MODEL",
    "anthropic_models": "ANTHROPIC_MODEL",
    "openai_models": "OPENAI_MODEL",
    "ollama_models": "OLLAMA_MODEL",
}


class ConfigLoader:
    """Loads and validates the healer configuration."""

    @staticmethod
    def load(path: str | Path) -> HealerConfig:
        config_path = Path(path)
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return HealerConfig.model_validate(payload)

    @staticmethod
    def from_env(dotenv_path: str | Path | None = None, **overrides: Any) -> HealerConfig:
        """Builds a config from environment variables, reading ``.env`` first.

        Values already present in the environment win over the ``.env`` file,
        and keyword overrides win over both.
        """

        env_file = Path(dotenv_path) if dotenv_path else Path.cwd() / ".env"
        if env_file.exists():
            load_dotenv(dotenv_path=env_file)

        payload: dict[str, Any] = {}
        provider = os.getenv("AI_PROVIDER")
        if provider:
            payload["ai_provider"] = provider
        key_variable = API_KEY_VARIABLES.get((provider or "ollama").strip().lower())
        if key_variable and os.getenv(key_variable):
            payload["api_key"] = os.environ[key_variable]
        for field_name, variable in MODEL_VARIABLES.items():
            value = os.getenv(variable)
            if value:
                payload[field_name] = [item for item in value.split(",") if item.strip()]
        if os.getenv("OLLAMA_BASE_URL"):
            payload["ollama_base_url"] = os.environ["OLLAMA_BASE_URL"]
        if os.getenv("AUTOHEAL_PROJECT_PATH"):
            payload["project_path"] = os.environ["AUTOHEAL_PROJECT_PATH"]
        payload.update(overrides)
        return HealerConfig.model_validate(payload)
