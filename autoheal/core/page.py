from __future__ import annotations

from abc import ABC, abstractmethod

from selenium.common.exceptions import (
    InvalidSelectorException,
    NoSuchElementException,
    StaleElementReferenceException,
    TimeoutException,
)
from selenium.webdriver.common.by import By

from autoheal.llm.parser import infer_selector_type
from autoheal.utils.wait import wait_until


class PageHandle(ABC):
    """The element-action surface that healing wraps.

    Every action raises when the selector cannot be resolved within ``timeout``
    seconds; ``None`` means the implementation's default.
    """

    @abstractmethod
    def content(self) -> str:
        """Serializes the current document markup."""

    @abstractmethod
    def wait_for(self, selector: str, timeout: float | None = None) -> None: ...

    @abstractmethod
    def click(self, selector: str, timeout: float | None = None) -> None: ...

    @abstractmethod
    def fill(self, selector: str, value: str, timeout: float | None = None) -> None: ...

    @abstractmethod
    def type(self, selector: str, value: str, timeout: float | None = None) -> None: ...


class SeleniumPage(PageHandle):
    """PageHandle backed by a Selenium WebDriver.

    Selectors starting with ``/`` or ``(`` are XPath, ``text=...`` matches an
    element by its own visible text, anything else is CSS.
    """

    def __init__(self, driver, default_timeout: float = 10) -> None:
        self.driver = driver
        self.default_timeout = default_timeout

    def content(self) -> str:
        return self.driver.page_source

    def locate(self, selector: str, timeout: float | None = None):
        by, value = to_locator(selector)
        duration = self.default_timeout if timeout is None else timeout

        def visible_match():
            for element in self.driver.find_elements(by, value):
                if element.is_displayed():
                    return element
            return None

        try:
            element = wait_until(
                visible_match,
                duration,
                ignored_exceptions=(StaleElementReferenceException,),
            )
        except InvalidSelectorException as exc:
            raise NoSuchElementException(f"Invalid selector {selector!r}: {exc.msg}") from exc
        if element is None:
            raise TimeoutException(f"Timed out after {duration}s waiting for {selector!r}")
        return element

    def wait_for(self, selector: str, timeout: float | None = None) -> None:
        self.locate(selector, timeout)

    def click(self, selector: str, timeout: float | None = None) -> None:
        self.locate(selector, timeout).click()

    def fill(self, selector: str, value: str, timeout: float | None = None) -> None:
        element = self.locate(selector, timeout)
        element.clear()
        element.send_keys(value)

    def type(self, selector: str, value: str, timeout: float | None = None) -> None:
        self.locate(selector, timeout).send_keys(value)


def to_locator(selector: str) -> tuple[str, str]:
    selector_type = infer_selector_type(selector)
    if selector_type == "xpath":
        return By.XPATH, selector
    if selector_type == "text":
        text = selector.strip()[len("text="):].strip()
        if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
            text = text[1:-1]
        return By.XPATH, f"//*[text()[contains(normalize-space(.), {_xpath_literal(text)})]]"
    return By.CSS_SELECTOR, selector


def _xpath_literal(value: str) -> str:
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    parts = value.split("'")
    return "concat(" + ", \"'\", ".join(f"'{part}'" for part in parts) + ")"
