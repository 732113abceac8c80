from __future__ import annotations

import re

_FENCE = re.compile(r"```[a-zA-Z0-9_-]*\s*(.*?)```", re.DOTALL)
_INLINE_CODE = re.compile(r"`([^`]+)`")
_MARKER = re.compile(r"\b(?:selector|locator)\b(?:\s*:|\s+is\s*:?)\s*", re.IGNORECASE)

_CLASSIFICATION_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^\[role=[\"']?|role=", re.IGNORECASE), "getByRole"),
    (re.compile(r"^\[aria-label=[\"']?|aria-label=", re.IGNORECASE), "getByRole"),
    (re.compile(r"^\[for=[\"']?|label\[", re.IGNORECASE), "getByLabel"),
    (re.compile(r"^\[placeholder=[\"']?|placeholder=", re.IGNORECASE), "getByPlaceholder"),
    (re.compile(r"^\[data-testid=[\"']?|data-testid=", re.IGNORECASE), "getByTestId"),
    (re.compile(r"^\[data-test=[\"']?|data-test=", re.IGNORECASE), "getByTestId"),
    (re.compile(r"^\[data-cy=[\"']?|data-cy=", re.IGNORECASE), "getByTestId"),
    (re.compile(r"^\[title=[\"']?|title=", re.IGNORECASE), "getByTitle"),
    (re.compile(r"^text=|:has-text\(|:text\(", re.IGNORECASE), "getByText"),
    (re.compile(r"^#|^\.|^\[|^[a-z]+", re.IGNORECASE), "cssSelector"),
)


def infer_selector_type(selector: str) -> str:
    stripped = selector.strip()
    if stripped.startswith("/") or stripped.startswith("("):
        return "xpath"
    if stripped.lower().startswith("text="):
        return "text"
    return "css"


def classify_selector(selector: str | None) -> str:
    """Buckets a selector by the locator strategy it most resembles, for reporting."""

    if not selector:
        return "unknown"
    for pattern, label in _CLASSIFICATION_RULES:
        if pattern.search(selector):
            return label
    return "unknown"


def clean_selector_response(response: str | None) -> str:
    """Strips code fences, labels and quoting from a model reply, leaving one selector line.

    Returns an empty string when nothing selector-like remains.
    """

    if not response:
        return ""
    text = response.strip()
    fenced = _FENCE.search(text)
    if fenced:
        text = fenced.group(1)
    text = text.replace("```", "")
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    # Lead-in prose such as "Here is the selector:" is dropped.
    lines = [line for line in lines if not line.endswith(":")]
    if not lines:
        return ""
    selector = lines[0]
    inline = _INLINE_CODE.search(selector)
    markers = list(_MARKER.finditer(selector))
    if inline:
        selector = inline.group(1).strip()
    elif markers and infer_selector_type(selector) == "css":
        # "Here is the selector: #x" or "The new selector is #x."
        selector = selector[markers[-1].end() :].strip().rstrip(".").strip()
    if len(selector) >= 2 and selector[0] == selector[-1] and selector[0] in "`'\"":
        selector = selector[1:-1].strip()
    return selector.strip("`").strip()
