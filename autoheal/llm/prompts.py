from __future__ import annotations

from autoheal.core.metadata import SuggestionRequest
from autoheal.utils.dom_extract import truncate_dom

SYSTEM_PROMPT = """You repair browser-automation selectors. Return exactly one selector string and nothing else.
Rules:
1. Use only elements present in the provided page markup.
2. Do not invent tags, attributes, text, or hierarchy.
3. Prefer simple, stable selectors: data-testid, id, name, or visible text.
4. If a CSS selector cannot safely identify the element, return a valid XPath.
5. Output must be a single line with no explanation, no quotes, no markdown, and no code fence."""


def build_user_prompt(request: SuggestionRequest, max_chars: int = 10000) -> str:
    """Formats the failed selector and page markup for the model."""

    sections = [
        f'The CSS/XPath selector "{request.broken_selector}" failed to find an element.',
        f"Current page DOM:\n{truncate_dom(request.current_snapshot, max_chars)}",
    ]
    if request.historical_snapshot:
        sections.append(
            "Historical DOM (when the selector last worked):\n"
            f"{truncate_dom(request.historical_snapshot, max_chars)}"
        )
    sections.append(
        "Find a new selector for the same element. Respond ONLY with the selector, no explanation."
    )
    return "\n\n".join(sections)
