from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Literal

LedgerStatus = Literal["healed", "failed"]


@dataclass(frozen=True, slots=True)
class SuggestionRequest:
    broken_selector: str
    current_snapshot: str
    historical_snapshot: str | None = None

    def __post_init__(self) -> None:
        if not self.broken_selector:
            raise ValueError("broken_selector must not be empty")


@dataclass(frozen=True, slots=True)
class HealingOutcome:
    success: bool
    original_selector: str
    new_selector: str | None = None
    error: str | None = None
    suggestion: str | None = None


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    file: str
    line: int
    original_selector: str
    status: LedgerStatus
    timestamp: str
    new_selector: str | None = None
    selector_type: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> LedgerEntry:
        status = payload.get("status")
        if status not in ("healed", "failed"):
            raise ValueError(f"Unknown ledger status: {status!r}")
        return cls(
            file=str(payload.get("file", "auto-detected")),
            line=int(payload.get("line", 0)),
            original_selector=payload["original_selector"],
            status=status,
            timestamp=payload.get("timestamp", ""),
            new_selector=payload.get("new_selector"),
            selector_type=payload.get("selector_type"),
        )


@dataclass(frozen=True, slots=True)
class HealedSelector:
    original: str
    healed: str
    timestamp: datetime
