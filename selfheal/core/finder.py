from __future__ import annotations

import logging

from selenium.common.exceptions import NoSuchElementException, StaleElementReferenceException
from selenium.webdriver.common.by import By

from selfheal.core.exceptions import AmbiguousMatchError, SelectorNotHealedError
from selfheal.core.extractor import extract_fingerprint
from selfheal.core.healer import HealingEngine
from selfheal.core.outcomes import Ambiguous
from selfheal.core.repository import page_key_from_url

log = logging.getLogger(__name__)


class SafeFinder:
    """Id lookup that learns on success and heals on failure."""

    def __init__(self, driver, engine: HealingEngine, logger: logging.Logger | None = None) -> None:
        self.driver = driver
        self.engine = engine
        self.log = logger or log
        self.selector_overrides: dict[str, str] = {}

    @property
    def page_key(self) -> str:
        return page_key_from_url(self.driver.current_url)

    def find(self, element_id: str):
        override = self.selector_overrides.get(element_id)
        if override:
            matches = self.driver.find_elements(By.CSS_SELECTOR, override)
            if matches:
                return matches[0]
        try:
            element = self.driver.find_element(By.ID, element_id)
        except (NoSuchElementException, StaleElementReferenceException):
            return self._heal(element_id)
        self.engine.learn(self.page_key, extract_fingerprint(element, element_id))
        return element

    def _heal(self, element_id: str):
        self.log.info("Id '%s' not found, requesting heal", element_id)
        outcome = self.engine.heal(self.page_key, element_id, self.driver.page_source)
        if isinstance(outcome, Ambiguous):
            raise AmbiguousMatchError(element_id, outcome)
        if not outcome.healed:
            raise SelectorNotHealedError(element_id, outcome)
        matches = self.driver.find_elements(By.CSS_SELECTOR, outcome.selector)
        if not matches:
            raise SelectorNotHealedError(element_id, outcome)
        self.selector_overrides[element_id] = outcome.selector
        return matches[0]
