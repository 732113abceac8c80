from __future__ import annotations

from selenium.common.exceptions import TimeoutException

from autoheal.core.page import PageHandle
from autoheal.llm.client import SuggestionClient

LOGIN_PAGE = """<!DOCTYPE html>
<html>
  <head><title>Login</title></head>
  <body class="login">
    <form id="login-form">
      <input id="username" name="username" placeholder="Username">
      <input id="password" name="password" type="password">
      <button id="login-button" data-testid="login" type="submit">Sign in</button>
    </form>
  </body>
</html>
"""


class FakePage(PageHandle):
    """In-memory page: a selector resolves when it is in ``present``."""

    def __init__(self, present: set[str] | None = None, markup: str = LOGIN_PAGE) -> None:
        self.present = set(present or ())
        self.markup = markup
        self.calls: list[tuple] = []
        self.values: dict[str, str] = {}

    def content(self) -> str:
        self.calls.append(("content",))
        return self.markup

    def _resolve(self, action: str, selector: str, timeout: float | None) -> None:
        self.calls.append((action, selector, timeout))
        if selector not in self.present:
            raise TimeoutException(f"Timed out after {timeout}s waiting for {selector!r}")

    def wait_for(self, selector: str, timeout: float | None = None) -> None:
        self._resolve("wait_for", selector, timeout)

    def click(self, selector: str, timeout: float | None = None) -> None:
        self._resolve("click", selector, timeout)

    def fill(self, selector: str, value: str, timeout: float | None = None) -> None:
        self._resolve("fill", selector, timeout)
        self.values[selector] = value

    def type(self, selector: str, value: str, timeout: float | None = None) -> None:
        self._resolve("type", selector, timeout)
        self.values[selector] = self.values.get(selector, "") + value

    def actions_on(self, selector: str) -> list[str]:
        return [call[0] for call in self.calls if len(call) > 1 and call[1] == selector]


class StubSuggestionClient(SuggestionClient):
    """Replies from a script instead of a model; an Exception in the script is raised."""

    provider_name = "stub"

    def __init__(self, *replies, models: list[str] | None = None, **kwargs) -> None:
        super().__init__(models or ["stub-model"], **kwargs)
        self.replies = list(replies)
        self.generated: list[tuple[str, str]] = []

    def _generate(self, model: str, user_prompt: str) -> str:
        self.generated.append((model, user_prompt))
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def call_count(self) -> int:
        return len(self.generated)
