from __future__ import annotations

import logging

from autoheal.core.exceptions import NoSuggestionProduced, ValidationFailed
from autoheal.core.metadata import HealingOutcome, SuggestionRequest
from autoheal.core.page import PageHandle
from autoheal.llm.client import SuggestionClient
from autoheal.logging.artifacts import SnapshotStore

log = logging.getLogger(__name__)


class Healer:
    """Runs one healing attempt for one failed selector.

    The attempt captures the live DOM and any DOM saved the last time this
    selector healed, asks the suggestion client once, then checks that the
    suggestion resolves on the page. Nothing is kept between calls and no
    exception escapes ``heal``; every failure becomes an unsuccessful outcome.
    """

    def __init__(
        self,
        suggestion_client: SuggestionClient,
        snapshot_store: SnapshotStore,
        validation_timeout: float = 2,
    ) -> None:
        self.suggestion_client = suggestion_client
        self.snapshot_store = snapshot_store
        self.validation_timeout = validation_timeout

    def heal(self, page: PageHandle, selector: str) -> HealingOutcome:
        log.info("Auto-healing selector %r", selector)
        try:
            current_snapshot = page.content()
            historical_snapshot = self.snapshot_store.load(selector)
            new_selector = self.suggestion_client.suggest(
                SuggestionRequest(selector, current_snapshot, historical_snapshot)
            )
            if not new_selector:
                raise NoSuggestionProduced()
        except Exception as exc:  # noqa: BLE001 - the outcome carries the concrete failure.
            log.warning("No replacement for %r: %s", selector, exc)
            return HealingOutcome(success=False, original_selector=selector, error=str(exc))

        try:
            page.wait_for(new_selector, timeout=self.validation_timeout)
        except Exception as exc:  # noqa: BLE001 - any lookup failure means the suggestion is unusable.
            failure = ValidationFailed()
            log.warning("Suggested selector %r for %r did not resolve: %s", new_selector, selector, exc)
            return HealingOutcome(
                success=False,
                original_selector=selector,
                new_selector=new_selector,
                error=str(failure),
            )

        try:
            self.snapshot_store.save(selector, current_snapshot)
        except OSError as exc:
            log.warning("Could not save DOM snapshot for %r: %s", selector, exc)

        log.info("Healed selector %r -> %r", selector, new_selector)
        return HealingOutcome(
            success=True,
            original_selector=selector,
            new_selector=new_selector,
            suggestion=f"Replace '{selector}' with '{new_selector}' in your test file",
        )
