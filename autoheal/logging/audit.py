from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from threading import Lock

from autoheal.core.metadata import LedgerEntry

log = logging.getLogger(__name__)

_write_lock = Lock()


class HealingLedger:
    """Persists every healing attempt as a JSON array for the reporting step.

    Appends are read-modify-write. They are serialized within one process,
    but two worker processes appending at once can still lose an entry.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def append(self, entry: LedgerEntry) -> None:
        with _write_lock:
            payload = self._read_payload()
            payload.append(entry.to_payload())
            self._write_payload(payload)

    def read_all(self) -> list[LedgerEntry]:
        entries: list[LedgerEntry] = []
        for item in self._read_payload():
            if not isinstance(item, dict):
                log.warning("Skipping malformed ledger entry %r: not a JSON object", item)
                continue
            try:
                entries.append(LedgerEntry.from_payload(item))
            except (KeyError, TypeError, ValueError) as exc:
                log.warning("Skipping malformed ledger entry %r: %s", item, exc)
        return entries

    def clear(self) -> None:
        with _write_lock:
            self.path.unlink(missing_ok=True)

    def consume(self) -> list[LedgerEntry]:
        """Reads every entry and removes the file so the next run starts empty."""

        entries = self.read_all()
        self.clear()
        return entries

    def _read_payload(self) -> list[dict]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            log.warning("Ledger %s is not valid JSON, starting over: %s", self.path, exc)
            return []
        if not isinstance(payload, list):
            log.warning("Ledger %s does not hold a JSON array, starting over", self.path)
            return []
        return payload

    def _write_payload(self, payload: list[dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)
