from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from urllib import error, request

from autoheal.config.schema import HealerConfig
from autoheal.core.exceptions import (
    BackendUnavailable,
    ConfigurationError,
    ModelNotFound,
    QuotaExceeded,
    SuggestionUnavailable,
)
from autoheal.core.metadata import SuggestionRequest
from autoheal.llm.parser import clean_selector_response
from autoheal.llm.prompts import SYSTEM_PROMPT, build_user_prompt

log = logging.getLogger(__name__)

_QUOTA_MARKERS = ("quota", "rate limit", "rate_limit", "resource_exhausted", "too many requests")


class SuggestionClient(ABC):
    """Provider-neutral interface for selector suggestions.

    Subclasses only implement ``_generate``; prompt construction, model
    fallback and response cleanup are shared.
    """

    provider_name = "unknown"

    def __init__(
        self,
        models: list[str],
        *,
        max_chars: int = 10000,
        prompt_path: str | Path | None = None,
        timeout: float = 30,
    ) -> None:
        if not models:
            raise ConfigurationError(f"{self.provider_name} needs at least one model name")
        self.models = list(models)
        self.max_chars = max_chars
        self.prompt_path = Path(prompt_path) if prompt_path else None
        self.timeout = timeout

    def suggest(self, suggestion_request: SuggestionRequest) -> str:
        """Returns one bare selector string, or an empty string when the model had nothing."""

        user_prompt = build_user_prompt(suggestion_request, self.max_chars)
        self._record_prompt(f"{SYSTEM_PROMPT}\n\n{user_prompt}")
        missing: list[ModelNotFound] = []
        for model in self.models:
            try:
                raw = self._generate(model, user_prompt)
            except ModelNotFound as exc:
                log.warning("%s model %s is not available, trying the next variant", self.provider_name, model)
                missing.append(exc)
                continue
            return clean_selector_response(raw)
        # models is never empty, so every variant was missing.
        raise missing[-1]

    @abstractmethod
    def _generate(self, model: str, user_prompt: str) -> str:
        raise NotImplementedError

    def _record_prompt(self, prompt: str) -> None:
        if self.prompt_path is None:
            return
        try:
            self.prompt_path.parent.mkdir(parents=True, exist_ok=True)
            self.prompt_path.write_text(prompt, encoding="utf-8")
        except OSError as exc:
            log.warning("Could not write prompt to %s: %s", self.prompt_path, exc)


class OpenAISuggestionClient(SuggestionClient):
    provider_name = "openai"
    endpoint = "https://api.openai.com/v1/chat/completions"

    def __init__(self, api_key: str, models: list[str], **kwargs: Any) -> None:
        super().__init__(models, **kwargs)
        self.api_key = api_key

    def _generate(self, model: str, user_prompt: str) -> str:
        body = {
            "model": model,
            "temperature": 0,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
        }
        response = _post_json(
            self.endpoint,
            body,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        choices = response.get("choices") or []
        if not choices:
            return ""
        return choices[0].get("message", {}).get("content") or ""


class AnthropicSuggestionClient(SuggestionClient):
    provider_name = "anthropic"
    endpoint = "https://api.anthropic.com/v1/messages"

    def __init__(self, api_key: str, models: list[str], **kwargs: Any) -> None:
        super().__init__(models, **kwargs)
        self.api_key = api_key

    def _generate(self, model: str, user_prompt: str) -> str:
        body = {
            "model": model,
            "max_tokens": 128,
            "temperature": 0,
            "system": SYSTEM_PROMPT,
            "messages": [
                {"role": "user", "content": user_prompt},
            ],
        }
        response = _post_json(
            self.endpoint,
            body,
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": "2023-06-01",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        blocks = response.get("content") or []
        return "".join(block.get("text", "") for block in blocks if isinstance(block, dict))


class GeminiSuggestionClient(SuggestionClient):
    provider_name = "gemini"
    endpoint_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def __init__(self, api_key: str, models: list[str], **kwargs: Any) -> None:
        super().__init__(models, **kwargs)
        self.api_key = api_key

    def _generate(self, model: str, user_prompt: str) -> str:
        body = {
            "system_instruction": {
                "parts": [
                    {"text": SYSTEM_PROMPT},
                ]
            },
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": user_prompt},
                    ],
                }
            ],
            "generationConfig": {
                "temperature": 0,
            },
        }
        response = _post_json(
            self.endpoint_template.format(model=model.removeprefix("models/")),
            body,
            headers={
                "x-goog-api-key": self.api_key,
                "x-goog-api-client": "autoheal-selenium/0.1.0",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        candidates = response.get("candidates", [])
        if not candidates:
            return ""
        parts = candidates[0].get("content", {}).get("parts", [])
        text_parts = [part.get("text", "") for part in parts if isinstance(part, dict)]
        return "".join(text_parts)


class OllamaSuggestionClient(SuggestionClient):
    """Talks to a locally running Ollama daemon; no credentials involved."""

    provider_name = "ollama"

    def __init__(self, base_url: str, models: list[str], **kwargs: Any) -> None:
        super().__init__(models, **kwargs)
        self.base_url = base_url.rstrip("/")

    def _generate(self, model: str, user_prompt: str) -> str:
        body = {
            "model": model,
            "system": SYSTEM_PROMPT,
            "prompt": user_prompt,
            "stream": False,
            "options": {"temperature": 0},
        }
        response = _post_json(
            f"{self.base_url}/api/generate",
            body,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        return response.get("response") or ""


def create_suggestion_client(config: HealerConfig) -> SuggestionClient:
    options = {
        "max_chars": config.dom_char_limit,
        "prompt_path": config.prompt_path,
        "timeout": config.request_timeout_seconds,
    }
    provider = config.ai_provider
    models = config.models_for_provider()
    if provider == "ollama":
        return OllamaSuggestionClient(config.ollama_base_url, models, **options)
    if not config.api_key:
        raise ConfigurationError(f"An API key is required when AI_PROVIDER={provider}")
    if provider == "gemini":
        return GeminiSuggestionClient(config.api_key, models, **options)
    if provider == "anthropic":
        return AnthropicSuggestionClient(config.api_key, models, **options)
    if provider == "openai":
        return OpenAISuggestionClient(config.api_key, models, **options)
    raise ConfigurationError(f"Unsupported LLM provider: {provider}")


def _post_json(url: str, payload: dict[str, Any], headers: dict[str, str], timeout: float = 30) -> dict[str, Any]:
    encoded = json.dumps(payload).encode("utf-8")
    req = request.Request(url, data=encoded, headers=headers, method="POST")
    try:
        with request.urlopen(req, timeout=timeout) as response:
            raw = response.read().decode("utf-8")
    except error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")
        raise _classify_http_error(exc.code, detail) from exc
    except error.URLError as exc:
        raise BackendUnavailable(f"LLM request could not be completed: {exc.reason}") from exc
    except TimeoutError as exc:
        raise BackendUnavailable(f"LLM request timed out after {timeout}s") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SuggestionUnavailable(f"LLM returned malformed JSON: {raw[:200]}") from exc


def _classify_http_error(status: int, detail: str) -> SuggestionUnavailable:
    lowered = detail.lower()
    if status == 429 or any(marker in lowered for marker in _QUOTA_MARKERS):
        return QuotaExceeded(
            f"Quota exceeded: the provider reported a rate or quota limit (status {status}): {detail}"
        )
    if status in (401, 403):
        return BackendUnavailable(f"LLM request was rejected with status {status}: {detail}")
    if status == 404 or ("model" in lowered and "not found" in lowered):
        return ModelNotFound(f"Model not found (status {status}): {detail}")
    return SuggestionUnavailable(f"LLM request failed with status {status}: {detail}")
