from __future__ import annotations

import io
import json
from urllib import error

import pytest
from pydantic import ValidationError

from autoheal.config.loader import ConfigLoader
from autoheal.config.schema import HealerConfig
from autoheal.core.exceptions import (
    BackendUnavailable,
    ConfigurationError,
    ModelNotFound,
    QuotaExceeded,
    SuggestionUnavailable,
)
from autoheal.core.metadata import SuggestionRequest
from autoheal.llm import client as client_module
from autoheal.llm.client import (
    AnthropicSuggestionClient,
    GeminiSuggestionClient,
    OllamaSuggestionClient,
    OpenAISuggestionClient,
    create_suggestion_client,
)
from autoheal.llm.parser import classify_selector, clean_selector_response, infer_selector_type
from autoheal.utils.dom_extract import ELLIPSIS, extract_body, truncate_dom
from tests.helpers import LOGIN_PAGE, StubSuggestionClient


def test_config_loader_validates_json(tmp_path):
    config_path = tmp_path / "healer.json"
    config_path.write_text(
        json.dumps(
            {
                "ai_provider": "Anthropic",
                "api_key": "secret",
                "anthropic_models": ["claude-a", "claude-b"],
                "project_path": str(tmp_path),
                "browser_matrix": ["Chrome", "firefox"],
            }
        ),
        encoding="utf-8",
    )
    config = ConfigLoader.load(config_path)
    assert config.ai_provider == "anthropic"
    assert config.models_for_provider() == ["claude-a", "claude-b"]
    assert config.browser_matrix == ["chrome", "firefox"]
    assert config.ledger_path == tmp_path / ".autoheal" / "temp" / "healing-results.json"


def test_config_rejects_unknown_provider_and_bad_retries(tmp_path):
    with pytest.raises(ValidationError):
        HealerConfig(ai_provider="watson", project_path=tmp_path)
    with pytest.raises(ValidationError):
        HealerConfig(max_retries=0, project_path=tmp_path)


def test_extra_retries_are_accepted_with_warning(tmp_path, caplog):
    config = HealerConfig(max_retries=3, project_path=tmp_path)
    assert config.max_retries == 3
    assert "only one suggestion" in caplog.text


def test_config_from_env_reads_dotenv(tmp_path, monkeypatch):
    for name in ("AI_PROVIDER", "GEMINI_API_KEY", "GEMINI_MODEL", "AUTOHEAL_PROJECT_PATH"):
        # setenv first so values loaded from .env are rolled back afterwards
        monkeypatch.setenv(name, "unset")
        monkeypatch.delenv(name)
    env_file = tmp_path / ".env"
    env_file.write_text(
        "AI_PROVIDER=gemini\nGEMINI_API_KEY=from-dotenv\nGEMINI_MODEL=gemini-pro, gemini-flash\n",
        encoding="utf-8",
    )
    config = ConfigLoader.from_env(env_file, project_path=tmp_path)
    assert config.ai_provider == "gemini"
    assert config.api_key == "from-dotenv"
    assert config.gemini_models == ["gemini-pro", "gemini-flash"]
    assert config.project_path == tmp_path


def test_selector_parsing_helpers():
    assert infer_selector_type("#login-button") == "css"
    assert infer_selector_type("//button[@type='submit']") == "xpath"
    assert infer_selector_type("(//button)[1]") == "xpath"
    assert infer_selector_type("text=Sign in") == "text"


@pytest.mark.parametrize(
    ("response", "expected"),
    [
        ("#username", "#username"),
        ("  `#username`  ", "#username"),
        ("```css\n#username\n```", "#username"),
        ("Here is the selector:\n[data-testid=\"login\"]\nIt matches the button.", '[data-testid="login"]'),
        ("Selector: //input[@name='q']", "//input[@name='q']"),
        ("'#username'", "#username"),
        ("", ""),
        ("```\n```", ""),
        ("Here is the selector: #username", "#username"),
        ("The new selector is `#username`.", "#username"),
        ("The new selector is #username.", "#username"),
        ("Locator: [data-testid=\"login\"]", '[data-testid="login"]'),
        ("text=Selector is here", "text=Selector is here"),
    ],
)
def test_suggestion_decoration_is_stripped(response, expected):
    assert clean_selector_response(response) == expected


@pytest.mark.parametrize(
    ("selector", "expected"),
    [
        ("[role='button']", "getByRole"),
        ("[aria-label=Close]", "getByRole"),
        ("label[for=email]", "getByLabel"),
        ("[placeholder='Email']", "getByPlaceholder"),
        ('[data-testid="login"]', "getByTestId"),
        ("[data-cy=submit]", "getByTestId"),
        ("[title=Help]", "getByTitle"),
        ("text=Sign in", "getByText"),
        ("button:has-text('Go')", "getByText"),
        ("#username", "cssSelector"),
        ("", "unknown"),
        (None, "unknown"),
        ("//div", "unknown"),
    ],
)
def test_selector_classification(selector, expected):
    assert classify_selector(selector) == expected


def test_truncation_is_bounded_prefix_of_body():
    body = "<div>" + "x" * 500 + "</div>"
    page = f"<html><head><title>t</title></head><body class='a'>{body}</body></html>"
    truncated = truncate_dom(page, max_chars=100)
    assert len(truncated) <= 100 + len(ELLIPSIS)
    assert truncated.endswith(ELLIPSIS)
    assert body.startswith(truncated[: -len(ELLIPSIS)])


def test_short_body_is_not_truncated():
    assert truncate_dom(LOGIN_PAGE, max_chars=10000) == extract_body(LOGIN_PAGE)
    assert "<title>" not in extract_body(LOGIN_PAGE)
    assert truncate_dom("<p>fragment</p>") == "<p>fragment</p>"


def test_unclosed_body_keeps_content_after_opening_tag():
    assert extract_body("<html><body><p>cut") == "<p>cut"


def test_client_factory_selects_backend(tmp_path):
    def build(provider, **extra):
        config = HealerConfig(ai_provider=provider, api_key="k", project_path=tmp_path, **extra)
        return create_suggestion_client(config)

    assert isinstance(build("gemini"), GeminiSuggestionClient)
    assert isinstance(build("anthropic"), AnthropicSuggestionClient)
    assert isinstance(build("openai"), OpenAISuggestionClient)
    ollama = build("ollama", ollama_base_url="http://ollama:11434/")
    assert isinstance(ollama, OllamaSuggestionClient)
    assert ollama.base_url == "http://ollama:11434"
    assert ollama.provider_name == "ollama"


def test_hosted_backend_requires_api_key(tmp_path):
    config = HealerConfig(ai_provider="gemini", api_key="", project_path=tmp_path)
    with pytest.raises(ConfigurationError):
        create_suggestion_client(config)


def test_missing_model_falls_back_to_next_variant():
    client = StubSuggestionClient(ModelNotFound("no such model"), "#username", models=["big", "small"])
    assert client.suggest(SuggestionRequest("#user", LOGIN_PAGE)) == "#username"
    assert [model for model, _ in client.generated] == ["big", "small"]


def test_exhausted_variants_raise_model_not_found():
    client = StubSuggestionClient(ModelNotFound("a"), ModelNotFound("b"), models=["a", "b"])
    with pytest.raises(ModelNotFound, match="b"):
        client.suggest(SuggestionRequest("#user", LOGIN_PAGE))
    assert client.call_count == 2


def test_quota_error_does_not_try_other_variants():
    client = StubSuggestionClient(QuotaExceeded("quota"), "#username", models=["a", "b"])
    with pytest.raises(QuotaExceeded):
        client.suggest(SuggestionRequest("#user", LOGIN_PAGE))
    assert client.call_count == 1


def test_prompt_is_recorded_for_debugging(tmp_path):
    prompt_path = tmp_path / "scratch" / "last-prompt.txt"
    client = StubSuggestionClient("#username", prompt_path=prompt_path, max_chars=50)
    client.suggest(SuggestionRequest("#user-broken", LOGIN_PAGE))
    recorded = prompt_path.read_text(encoding="utf-8")
    assert '"#user-broken" failed' in recorded
    assert "Return exactly one selector" in recorded


def test_prompt_write_failure_does_not_block(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")
    client = StubSuggestionClient("#username", prompt_path=blocker / "nested" / "prompt.txt")
    assert client.suggest(SuggestionRequest("#user", LOGIN_PAGE)) == "#username"


def _http_error(status: int, body: str) -> error.HTTPError:
    return error.HTTPError("http://llm", status, "error", {}, io.BytesIO(body.encode("utf-8")))


@pytest.mark.parametrize(
    ("status", "body", "expected"),
    [
        (429, "slow down", QuotaExceeded),
        (400, '{"error": "RESOURCE_EXHAUSTED: quota"}', QuotaExceeded),
        (401, "bad key", BackendUnavailable),
        (404, "model gemini-x not found", ModelNotFound),
        (500, "boom", SuggestionUnavailable),
    ],
)
def test_http_errors_are_classified(monkeypatch, status, body, expected):
    def fake_urlopen(req, timeout):
        raise _http_error(status, body)

    monkeypatch.setattr(client_module.request, "urlopen", fake_urlopen)
    with pytest.raises(expected) as excinfo:
        client_module._post_json("http://llm", {}, headers={})
    assert type(excinfo.value) is expected


def test_connection_errors_mean_backend_unavailable(monkeypatch):
    def fake_urlopen(req, timeout):
        raise error.URLError("connection refused")

    monkeypatch.setattr(client_module.request, "urlopen", fake_urlopen)
    with pytest.raises(BackendUnavailable, match="connection refused"):
        client_module._post_json("http://llm", {}, headers={})


def test_ollama_backend_round_trip(monkeypatch):
    sent = {}

    def fake_post(url, payload, headers, timeout=30):
        sent.update(url=url, payload=payload)
        return {"response": "```\n#username\n```"}

    monkeypatch.setattr(client_module, "_post_json", fake_post)
    client = OllamaSuggestionClient("http://localhost:11434", ["qwen"])
    assert client.suggest(SuggestionRequest("#user", LOGIN_PAGE)) == "#username"
    assert sent["url"] == "http://localhost:11434/api/generate"
    assert sent["payload"]["model"] == "qwen"
    assert sent["payload"]["stream"] is False


def test_gemini_without_candidates_returns_empty(monkeypatch):
    monkeypatch.setattr(client_module, "_post_json", lambda *args, **kwargs: {"candidates": []})
    client = GeminiSuggestionClient("key", ["gemini-2.5-flash"])
    assert client.suggest(SuggestionRequest("#user", LOGIN_PAGE)) == ""
