from __future__ import annotations

import re

from selfheal.core.metadata import Candidate

CSS_IDENTIFIER = re.compile(r"^-?[A-Za-z_][\w-]*$")


def synthesize_selector(candidate: Candidate) -> str:
    """Builds a CSS selector, most stable anchor first, positional last."""

    tag = candidate.tag_name.lower()
    if candidate.element_id:
        return id_selector(candidate.element_id)
    if candidate.aria_label:
        return f'{tag}[aria-label="{_quote(candidate.aria_label)}"]'
    if candidate.class_names:
        return tag + "".join(_class_segment(token) for token in candidate.class_names)
    positional = f"{tag}:nth-of-type({candidate.sibling_index})"
    if candidate.parent_selector:
        return f"{candidate.parent_selector} > {positional}"
    return positional


def id_selector(element_id: str) -> str:
    if CSS_IDENTIFIER.match(element_id):
        return f"#{element_id}"
    return f'[id="{_quote(element_id)}"]'


def _class_segment(token: str) -> str:
    if CSS_IDENTIFIER.match(token):
        return f".{token}"
    return f'[class~="{_quote(token)}"]'


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')
