from __future__ import annotations

from autoheal.core.exceptions import QuotaExceeded
from autoheal.core.healer import Healer
from tests.helpers import LOGIN_PAGE, FakePage, StubSuggestionClient


def test_successful_heal_saves_snapshot_under_original_selector(snapshot_store):
    client = StubSuggestionClient("#username")
    page = FakePage({"#username"})
    outcome = Healer(client, snapshot_store).heal(page, "#username-broken")

    assert outcome.success is True
    assert outcome.original_selector == "#username-broken"
    assert outcome.new_selector == "#username"
    assert outcome.error is None
    assert outcome.suggestion == "Replace '#username-broken' with '#username' in your test file"
    assert snapshot_store.load("#username-broken") == LOGIN_PAGE
    assert snapshot_store.load("#username") is None


def test_validation_uses_bounded_wait(snapshot_store):
    page = FakePage({"#username"})
    Healer(StubSuggestionClient("#username"), snapshot_store, validation_timeout=1.5).heal(page, "#gone")
    assert ("wait_for", "#username", 1.5) in page.calls


def test_quota_error_fails_without_snapshot(snapshot_store):
    client = StubSuggestionClient(QuotaExceeded("Quota exceeded: daily quota reached"))
    page = FakePage({"#username"})
    outcome = Healer(client, snapshot_store).heal(page, "#username-broken")

    assert outcome.success is False
    assert outcome.original_selector == "#username-broken"
    assert outcome.new_selector is None
    assert "quota" in outcome.error.lower()
    assert snapshot_store.load("#username-broken") is None


def test_empty_suggestion_skips_validation(snapshot_store):
    page = FakePage({"#username"})
    outcome = Healer(StubSuggestionClient(""), snapshot_store).heal(page, "#username-broken")

    assert outcome.success is False
    assert outcome.error == "AI could not suggest a new selector"
    assert outcome.new_selector is None
    assert not [call for call in page.calls if call[0] == "wait_for"]


def test_unresolved_suggestion_keeps_attempted_selector(snapshot_store):
    page = FakePage({"#username"})
    outcome = Healer(StubSuggestionClient("#also-broken"), snapshot_store).heal(page, "#username-broken")

    assert outcome.success is False
    assert outcome.original_selector == "#username-broken"
    assert outcome.new_selector == "#also-broken"
    assert outcome.error == "Suggested selector also failed"
    assert snapshot_store.load("#username-broken") is None


def test_historical_snapshot_is_sent_to_the_model(snapshot_store):
    snapshot_store.save("#login", "<html><body><button id='login'>Go</button></body></html>")
    client = StubSuggestionClient("#login-button")
    Healer(client, snapshot_store).heal(FakePage({"#login-button"}), "#login")

    _, prompt = client.generated[0]
    assert "Historical DOM" in prompt
    assert "<button id='login'>Go</button>" in prompt


def test_first_failure_has_no_history(snapshot_store):
    client = StubSuggestionClient("#login-button")
    Healer(client, snapshot_store).heal(FakePage({"#login-button"}), "#login")

    _, prompt = client.generated[0]
    assert "Historical DOM" not in prompt


def test_one_suggestion_request_per_heal(snapshot_store):
    client = StubSuggestionClient("#nope", "#username")
    Healer(client, snapshot_store).heal(FakePage({"#username"}), "#username-broken")
    assert client.call_count == 1


def test_page_errors_become_failed_outcomes(snapshot_store):
    class BrokenPage(FakePage):
        def content(self) -> str:
            raise RuntimeError("browser went away")

    outcome = Healer(StubSuggestionClient("#username"), snapshot_store).heal(BrokenPage(), "#username")
    assert outcome.success is False
    assert outcome.error == "browser went away"
