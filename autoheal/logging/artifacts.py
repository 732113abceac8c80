from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path

log = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^a-zA-Z0-9]")


class SnapshotStore:
    """Keeps the page markup captured when a selector was last healed, one file per selector."""

    def __init__(self, root: str | Path = "healer-logs", max_stem_length: int = 50) -> None:
        self.root = Path(root)
        self.max_stem_length = max_stem_length

    def path_for(self, selector: str) -> Path:
        safe = _UNSAFE.sub("_", selector)[: self.max_stem_length]
        # Different selectors can flatten to the same stem; the digest keeps them apart.
        digest = hashlib.sha1(selector.encode("utf-8")).hexdigest()[:8]
        return self.root / f"{safe}_{digest}_dom.html"

    def save(self, selector: str, page_source: str) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(selector)
        path.write_text(page_source, encoding="utf-8")
        log.debug("Saved DOM snapshot for %r to %s", selector, path)
        return path

    def load(self, selector: str) -> str | None:
        path = self.path_for(selector)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

