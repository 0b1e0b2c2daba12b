from __future__ import annotations

from typing import Any

from bs4 import Tag

from selfheal.core.exceptions import BadRequestError
from selfheal.core.metadata import Fingerprint, normalize_text, split_class_tokens
from selfheal.utils.dom_extract import describe_tag


def extract_fingerprint(element: Any, element_id: str | None = None) -> Fingerprint:
    """Builds a fingerprint from a snapshot Tag or a live Selenium WebElement.

    Attributes the element does not carry are left out of the record so that
    partial descriptors never match on absence.
    """

    if isinstance(element, Tag):
        candidate = describe_tag(element)
        if element_id:
            candidate.element_id = element_id
        if not candidate.element_id:
            raise BadRequestError("Cannot fingerprint an element without an id")
        return candidate.to_fingerprint()
    return _from_web_element(element, element_id)


def _from_web_element(element: Any, element_id: str | None) -> Fingerprint:
    resolved_id = element_id or element.get_dom_attribute("id")
    if not resolved_id:
        raise BadRequestError("Cannot fingerprint an element without an id")
    return Fingerprint(
        element_id=resolved_id,
        tag_name=element.tag_name,
        class_names=split_class_tokens(element.get_dom_attribute("class")),
        inner_text=normalize_text(element.text),
        placeholder=element.get_dom_attribute("placeholder"),
        input_type=element.get_dom_attribute("type"),
        aria_label=element.get_dom_attribute("aria-label"),
    )
