from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

log = logging.getLogger(__name__)

Provider = Literal["gemini", "ollama", "anthropic", "openai"]


class HealerConfig(BaseModel):
    ai_provider: Provider = "ollama"
    api_key: str = ""
    gemini_models: list[str] = Field(default_factory=lambda: ["gemini-2.5-flash"])
    anthropic_models: list[str] = Field(default_factory=lambda: ["claude-3-5-sonnet-latest"])
    openai_models: list[str] = Field(default_factory=lambda: ["gpt-4o-mini"])
    ollama_models: list[str] = Field(default_factory=lambda: ["hhao/qwen2.5-coder-tools:7b"])
    ollama_base_url: str = "http://localhost:11434"
    project_path: Path = Field(default_factory=Path.cwd)
    max_retries: int = Field(default=1, ge=1)
    action_timeout_seconds: float = Field(default=5, gt=0)
    validation_timeout_seconds: float = Field(default=2, gt=0)
    request_timeout_seconds: float = Field(default=30, gt=0)
    dom_char_limit: int = Field(default=10000, gt=0)
    browser_matrix: list[str] = Field(default_factory=lambda: ["chrome"])
    headless: bool = True

    @field_validator("ai_provider", mode="before")
    @classmethod
    def normalize_provider(cls, value: str) -> str:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("gemini_models", "anthropic_models", "openai_models", "ollama_models")
    @classmethod
    def validate_models(cls, value: list[str]) -> list[str]:
        models = [item.strip() for item in value if item and item.strip()]
        if not models:
            raise ValueError("at least one model name is required")
        return models

    @field_validator("ollama_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("browser_matrix")
    @classmethod
    def validate_browsers(cls, value: list[str]) -> list[str]:
        allowed = {"chrome", "firefox"}
        normalized = [item.lower() for item in value]
        invalid = [item for item in normalized if item not in allowed]
        if invalid:
            raise ValueError(f"Unsupported browsers: {', '.join(invalid)}")
        return normalized

    @model_validator(mode="after")
    def warn_on_extra_retries(self) -> HealerConfig:
        if self.max_retries > 1:
            log.warning(
                "max_retries=%d requested; only one suggestion is requested per failed action",
                self.max_retries,
            )
        return self

    def models_for_provider(self) -> list[str]:
        return {
            "gemini": self.gemini_models,
            "anthropic": self.anthropic_models,
            "openai": self.openai_models,
            "ollama": self.ollama_models,
        }[self.ai_provider]

    @property
    def scratch_root(self) -> Path:
        return self.project_path / ".autoheal" / "temp"

    @property
    def ledger_path(self) -> Path:
        return self.scratch_root / "healing-results.json"

    @property
    def prompt_path(self) -> Path:
        return self.scratch_root / "last-prompt.txt"

    @property
    def snapshot_root(self) -> Path:
        return self.project_path / "healer-logs"

    @property
    def report_root(self) -> Path:
        return self.project_path / "auto-heal-recommendations"
