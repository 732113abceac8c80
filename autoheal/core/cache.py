from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CacheEntry:
    new_selector: str | None
    success: bool


class HealingCache:
    """Remembers how each selector fared the first time it was healed in this run.

    One instance lives as long as the automation process and is shared by every
    HealingPage created in it; nothing is written to disk.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def get(self, selector: str) -> CacheEntry | None:
        return self._entries.get(selector)

    def record(self, selector: str, new_selector: str | None, success: bool) -> CacheEntry:
        entry = CacheEntry(new_selector=new_selector, success=success)
        self._entries[selector] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()

