from __future__ import annotations

import re

ELLIPSIS = "..."

_BODY_OPEN = re.compile(r"<body[^>]*>", re.IGNORECASE)
_BODY_CLOSE = re.compile(r"</body\s*>", re.IGNORECASE)


def extract_body(page_source: str) -> str:
    """Returns the markup between the body tags, or the whole document when there is none."""

    opening = _BODY_OPEN.search(page_source)
    if not opening:
        return page_source
    closing = _BODY_CLOSE.search(page_source, opening.end())
    end = closing.start() if closing else len(page_source)
    return page_source[opening.end() : end]


def truncate_dom(page_source: str, max_chars: int = 10000) -> str:
    """Bounds the body content handed to a model to ``max_chars`` plus an ellipsis marker."""

    content = extract_body(page_source)
    if len(content) > max_chars:
        return content[:max_chars] + ELLIPSIS
    return content
