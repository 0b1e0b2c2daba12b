from __future__ import annotations

from bs4 import BeautifulSoup, Tag

from selfheal.core.metadata import Candidate, normalize_text, split_class_tokens
from selfheal.core.synthesizer import id_selector

SNAPSHOT_PARSER = "lxml"


def parse_snapshot(dom_snapshot: str) -> BeautifulSoup:
    return BeautifulSoup(dom_snapshot, SNAPSHOT_PARSER)


def extract_candidate_elements(dom_snapshot: str | BeautifulSoup) -> list[Candidate]:
    """Enumerates id-bearing elements in document order."""

    soup = parse_snapshot(dom_snapshot) if isinstance(dom_snapshot, str) else dom_snapshot
    candidates: list[Candidate] = []
    for node in soup.find_all(id=True):
        element_id = (node.get("id") or "").strip()
        if not element_id:
            continue
        candidates.append(describe_tag(node))
    return candidates


def describe_tag(node: Tag) -> Candidate:
    parent = node.parent
    has_parent = isinstance(parent, Tag) and not isinstance(parent, BeautifulSoup)
    return Candidate(
        element_id=(node.get("id") or "").strip() or None,
        tag_name=node.name,
        class_names=split_class_tokens(node.get("class")),
        inner_text=normalize_text(node.get_text()),
        placeholder=normalize_text(node.get("placeholder")),
        input_type=normalize_text(node.get("type")),
        aria_label=normalize_text(node.get("aria-label")),
        parent_selector=css_path(parent) if has_parent else None,
        sibling_index=_nth_of_type(node),
    )


def css_path(node: Tag) -> str:
    """Shortest child-combinator path from the nearest id-bearing ancestor."""

    segments: list[str] = []
    current: Tag | None = node
    while isinstance(current, Tag) and not isinstance(current, BeautifulSoup):
        element_id = (current.get("id") or "").strip()
        if element_id:
            segments.append(id_selector(element_id))
            break
        segments.append(_segment(current))
        current = current.parent
    return " > ".join(reversed(segments))


def _segment(node: Tag) -> str:
    parent = node.parent
    if parent is None or len(parent.find_all(node.name, recursive=False)) == 1:
        return node.name
    return f"{node.name}:nth-of-type({_nth_of_type(node)})"


def _nth_of_type(node: Tag) -> int:
    parent = node.parent
    if parent is None:
        return 1
    for index, sibling in enumerate(parent.find_all(node.name, recursive=False), start=1):
        if sibling is node:
            return index
    return 1
