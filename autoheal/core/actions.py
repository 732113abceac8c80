from __future__ import annotations

import logging
import traceback
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable

from autoheal.config.loader import ConfigLoader
from autoheal.config.schema import HealerConfig
from autoheal.core.cache import HealingCache
from autoheal.core.exceptions import ConfigurationError
from autoheal.core.healer import Healer
from autoheal.core.metadata import HealedSelector, LedgerEntry, LedgerStatus
from autoheal.core.page import PageHandle, SeleniumPage
from autoheal.llm.client import create_suggestion_client
from autoheal.llm.parser import classify_selector
from autoheal.logging.artifacts import SnapshotStore
from autoheal.logging.audit import HealingLedger

log = logging.getLogger(__name__)

_PACKAGE_ROOT = Path(__file__).resolve().parents[1]

Action = Callable[[str, float | None], Any]


class HealingPage(PageHandle):
    """High-level page actions routed through the healing pipeline.

    Wraps another PageHandle. A failed action is first checked against the
    run's HealingCache; only selectors the cache has never seen trigger a
    healing attempt. When healing cannot produce a working selector, the
    caller sees the action's original exception.
    """

    def __init__(
        self,
        page: PageHandle,
        healer: Healer,
        ledger: HealingLedger,
        cache: HealingCache,
        action_timeout: float = 5,
    ) -> None:
        self.page = page
        self.healer = healer
        self.ledger = ledger
        self.cache = cache
        self.action_timeout = action_timeout
        self._healed: list[HealedSelector] = []

    def __getattr__(self, name: str) -> Any:
        if name == "page":
            raise AttributeError(name)
        return getattr(self.page, name)

    def content(self) -> str:
        return self.page.content()

    def click(self, selector: str, timeout: float | None = None) -> None:
        self._perform("click", selector, lambda target, wait: self.page.click(target, wait), timeout)

    def fill(self, selector: str, value: str, timeout: float | None = None) -> None:
        self._perform("fill", selector, lambda target, wait: self.page.fill(target, value, wait), timeout)

    def type(self, selector: str, value: str, timeout: float | None = None) -> None:
        self._perform("type", selector, lambda target, wait: self.page.type(target, value, wait), timeout)

    def wait_for(self, selector: str, timeout: float | None = None) -> None:
        self._perform("wait_for", selector, lambda target, wait: self.page.wait_for(target, wait), timeout)

    def healed_selectors(self) -> list[HealedSelector]:
        return list(self._healed)

    def log_healing_summary(self) -> None:
        if not self._healed:
            log.info("No selectors needed healing")
            return
        lines = ["Healed selectors (consider updating your tests):"]
        for index, item in enumerate(self._healed, start=1):
            lines.append(f"{index}. '{item.original}' -> '{item.healed}' at {item.timestamp.isoformat()}")
        log.info("\n".join(lines))

    def _perform(self, action_name: str, selector: str, action: Action, timeout: float | None) -> Any:
        first_timeout = self.action_timeout if timeout is None else min(timeout, self.action_timeout)
        try:
            return action(selector, first_timeout)
        except Exception as exc:  # noqa: BLE001 - re-raised below unless healing recovers.
            original_error = exc

        cached = self.cache.get(selector)
        if cached is not None:
            if not cached.success:
                log.info("%r is already known to be unhealable in this run", selector)
                raise original_error
            log.info("Using cached healing: %r -> %r", selector, cached.new_selector)
            try:
                result = action(cached.new_selector, timeout)
            except Exception:
                self._record(selector, cached.new_selector, "failed")
                raise
            self._record(selector, cached.new_selector, "healed")
            return result

        log.info("%s failed on %r, attempting AI healing", action_name, selector)
        outcome = self.healer.heal(self.page, selector)
        if not outcome.success or not outcome.new_selector:
            log.warning("Healing failed for %r: %s", selector, outcome.error or "no suggestion")
            self.cache.record(selector, outcome.new_selector, success=False)
            self._record(selector, outcome.new_selector, "failed")
            raise original_error

        self.cache.record(selector, outcome.new_selector, success=True)
        self._healed.append(HealedSelector(selector, outcome.new_selector, datetime.now(UTC)))
        log.info("SUGGESTION: %s", outcome.suggestion)
        try:
            result = action(outcome.new_selector, timeout)
        except Exception as exc:  # noqa: BLE001 - callers see the original failure.
            log.warning("Healed selector also failed: %r (%s)", outcome.new_selector, exc)
            self._record(selector, outcome.new_selector, "failed")
            raise original_error
        self._record(selector, outcome.new_selector, "healed")
        return result

    def _record(self, selector: str, new_selector: str | None, status: LedgerStatus) -> None:
        try:
            file, line = _call_site()
            entry = LedgerEntry(
                file=file,
                line=line,
                original_selector=selector,
                new_selector=new_selector,
                selector_type=classify_selector(new_selector) if new_selector else None,
                status=status,
                timestamp=datetime.now(UTC).isoformat(),
            )
            self.ledger.append(entry)
        except (OSError, ValueError) as exc:
            log.warning("Could not record healing result for %r: %s", selector, exc)


def setup_auto_healing(
    page,
    config: HealerConfig | None = None,
    cache: HealingCache | None = None,
) -> PageHandle:
    """Wraps a page handle (or a raw Selenium driver) so its actions self-heal.

    Returns the page unwrapped when no suggestion backend can be built from
    the configuration.
    """

    if not isinstance(page, PageHandle):
        page = SeleniumPage(page)
    config = config or ConfigLoader.from_env()
    try:
        client = create_suggestion_client(config)
    except ConfigurationError as exc:
        log.warning("Auto-healing disabled: %s", exc)
        return page
    log.info("Using AI provider: %s", client.provider_name)
    healer = Healer(client, SnapshotStore(config.snapshot_root), config.validation_timeout_seconds)
    return HealingPage(
        page,
        healer,
        HealingLedger(config.ledger_path),
        cache if cache is not None else HealingCache(),
        action_timeout=config.action_timeout_seconds,
    )


def _call_site() -> tuple[str, int]:
    for frame in reversed(traceback.extract_stack()):
        path = Path(frame.filename).resolve()
        if path.is_relative_to(_PACKAGE_ROOT):
            continue
        try:
            display = path.relative_to(Path.cwd())
        except ValueError:
            display = path
        return str(display), frame.lineno or 0
    return "auto-detected", 0
