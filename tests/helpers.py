from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import pytest
from selenium import webdriver
from selenium.common.exceptions import NoSuchElementException, WebDriverException
from selenium.webdriver import ChromeOptions
from selenium.webdriver.common.by import By

PAGE_KEY = "localhost_/healing-page.html"


def page(body: str) -> str:
    return f"<html><head><title>fixture</title></head><body>{body}</body></html>"


HEALED_PAGE = page(
    """
    <form id="login-form">
      <input id="email" type="email" placeholder="Email">
      <button id="new-submit" class="btn btn-primary">Submit</button>
    </form>
    """
)

TWIN_PAGE = page(
    """
    <button id="submit-a">Submit</button>
    <button id="submit-b">Submit</button>
    """
)


class FakeElement:
    def __init__(self, tag_name: str, text: str = "", **attributes: str) -> None:
        self.tag_name = tag_name
        self.text = text
        self.attributes = {key.replace("_", "-"): value for key, value in attributes.items()}

    def get_dom_attribute(self, name: str) -> str | None:
        return self.attributes.get(name)


class FakeDriver:
    """Minimal stand-in for a Selenium WebDriver over a static page."""

    def __init__(self, current_url: str, page_source: str) -> None:
        self.current_url = current_url
        self.page_source = page_source
        self.by_id: dict[str, FakeElement] = {}
        self.by_css: dict[str, list[FakeElement]] = {}
        self.id_lookups: list[str] = []

    def find_element(self, by: str, value: str) -> FakeElement:
        assert by == By.ID
        self.id_lookups.append(value)
        if value not in self.by_id:
            raise NoSuchElementException(f"no element with id {value}")
        return self.by_id[value]

    def find_elements(self, by: str, value: str) -> list[FakeElement]:
        assert by == By.CSS_SELECTOR
        return list(self.by_css.get(value, []))


@contextmanager
def managed_driver() -> Iterator[object]:
    options = ChromeOptions()
    options.add_argument("--headless=new")
    try:
        driver = webdriver.Chrome(options=options)
    except WebDriverException as exc:
        pytest.skip(f"WebDriver could not start for chrome: {exc}")
    driver.implicitly_wait(0)
    try:
        yield driver
    finally:
        driver.quit()
