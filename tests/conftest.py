from __future__ import annotations

import pytest

from autoheal.config.schema import HealerConfig
from autoheal.core.actions import HealingPage
from autoheal.core.cache import HealingCache
from autoheal.core.healer import Healer
from autoheal.logging.artifacts import SnapshotStore
from autoheal.logging.audit import HealingLedger
from tests.helpers import FakePage


@pytest.fixture()
def healer_config(tmp_path):
    return HealerConfig(ai_provider="gemini", api_key="test-key", project_path=tmp_path)


@pytest.fixture()
def snapshot_store(healer_config):
    return SnapshotStore(healer_config.snapshot_root)


@pytest.fixture()
def ledger(healer_config):
    return HealingLedger(healer_config.ledger_path)


@pytest.fixture()
def cache():
    return HealingCache()


@pytest.fixture()
def make_healing_page(snapshot_store, ledger, cache):
    """Builds a HealingPage over a FakePage with a scripted suggestion client."""

    def build(client, present=("#username", "#password", "#login-button")):
        page = FakePage(set(present))
        healer = Healer(client, snapshot_store, validation_timeout=1)
        return HealingPage(page, healer, ledger, cache, action_timeout=0.5), page

    return build
