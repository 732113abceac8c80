from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from selenium import webdriver
from selenium.webdriver import ChromeOptions, FirefoxOptions

from autoheal.config.schema import HealerConfig

log = logging.getLogger(__name__)


class BrowserSession:
    """Starts the WebDriver a healing run acts on, resolved through Selenium Manager.

    The browser defaults to the first entry of ``browser_matrix``. Implicit
    waits stay off because SeleniumPage and the healer poll explicitly.
    """

    def __init__(self, config: HealerConfig, page_load_timeout: float = 30) -> None:
        self.config = config
        self.page_load_timeout = page_load_timeout

    def options_for(self, browser_name: str | None = None) -> ChromeOptions | FirefoxOptions:
        normalized = (browser_name or self.config.browser_matrix[0]).lower()
        if normalized == "chrome":
            options = ChromeOptions()
            if self.config.headless:
                options.add_argument("--headless=new")
            options.add_argument("--window-size=1440,1200")
            return options
        if normalized == "firefox":
            options = FirefoxOptions()
            if self.config.headless:
                options.add_argument("-headless")
            return options
        raise ValueError(f"Unsupported browser: {browser_name}")

    def start(self, browser_name: str | None = None):
        options = self.options_for(browser_name)
        if isinstance(options, FirefoxOptions):
            driver = webdriver.Firefox(options=options)
        else:
            driver = webdriver.Chrome(options=options)
        driver.set_page_load_timeout(self.page_load_timeout)
        driver.implicitly_wait(0)
        log.debug("Started %s (headless=%s)", driver.name, self.config.headless)
        return driver

    @contextmanager
    def open(self, browser_name: str | None = None) -> Iterator:
        driver = self.start(browser_name)
        try:
            yield driver
        finally:
            driver.quit()
