"""pytest fixtures that hand tests a self-healing page during ``autoheal scan``."""

from __future__ import annotations

import pytest

from autoheal.cli import is_active
from autoheal.config.loader import ConfigLoader
from autoheal.config.schema import HealerConfig
from autoheal.core.actions import setup_auto_healing
from autoheal.core.browser import BrowserSession
from autoheal.core.cache import HealingCache
from autoheal.core.page import PageHandle, SeleniumPage


def wrap_page(page, config: HealerConfig, cache: HealingCache) -> PageHandle:
    """Self-healing when ``autoheal scan`` launched the run, a plain SeleniumPage otherwise."""

    if not isinstance(page, PageHandle):
        page = SeleniumPage(page)
    if not is_active():
        return page
    return setup_auto_healing(page, config, cache)


@pytest.fixture(scope="session")
def autoheal_cache():
    cache = HealingCache()
    yield cache
    cache.clear()


@pytest.fixture(scope="session")
def autoheal_config():
    return ConfigLoader.from_env()


@pytest.fixture()
def autoheal_driver(autoheal_config):
    """A WebDriver for the configured browser, quit after the test."""

    with BrowserSession(autoheal_config).open() as driver:
        yield driver


@pytest.fixture()
def auto_heal(autoheal_config, autoheal_cache):
    """Returns a callable turning a WebDriver (or PageHandle) into the page a test should use."""

    def wrap(page) -> PageHandle:
        return wrap_page(page, autoheal_config, autoheal_cache)

    return wrap
