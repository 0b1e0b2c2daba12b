from __future__ import annotations

from typing import Iterable

from rapidfuzz.distance import Levenshtein

from selfheal.config.schema import ScoringWeights
from selfheal.core.metadata import Candidate, Fingerprint, ScoredCandidate


def score_candidates(
    fingerprint: Fingerprint,
    candidates: Iterable[Candidate],
    weights: ScoringWeights | None = None,
) -> list[ScoredCandidate]:
    table = weights or ScoringWeights()
    scored = [
        ScoredCandidate(candidate=candidate, confidence=score_candidate(fingerprint, candidate, table))
        for candidate in candidates
    ]
    scored.sort(key=lambda item: item.confidence, reverse=True)
    return scored


def score_candidate(
    fingerprint: Fingerprint,
    candidate: Candidate,
    weights: ScoringWeights | None = None,
) -> float:
    """Weighted confidence in [0, 100] over the attributes the fingerprint knows."""

    table = weights or ScoringWeights()
    achieved = 0.0
    maximum = 0.0
    for weight, similarity in _comparisons(fingerprint, candidate, table):
        maximum += weight
        achieved += weight * similarity
    if maximum <= 0:
        return 0.0
    return round(achieved / maximum * 100, 1)


def _comparisons(
    fingerprint: Fingerprint,
    candidate: Candidate,
    weights: ScoringWeights,
) -> Iterable[tuple[float, float]]:
    # attributes missing from the fingerprint add to neither side of the ratio
    yield weights.tag_name, _exact(fingerprint.tag_name, candidate.tag_name)
    if fingerprint.inner_text is not None:
        yield weights.inner_text, text_similarity(fingerprint.inner_text, candidate.inner_text)
    if fingerprint.class_names:
        yield weights.class_names, class_overlap(fingerprint.class_names, candidate.class_names)
    if fingerprint.placeholder is not None:
        yield weights.placeholder, text_similarity(fingerprint.placeholder, candidate.placeholder)
    if fingerprint.input_type is not None:
        yield weights.input_type, _exact(fingerprint.input_type, candidate.input_type)
    if fingerprint.aria_label is not None:
        yield weights.aria_label, text_similarity(fingerprint.aria_label, candidate.aria_label)


def text_similarity(left: str | None, right: str | None) -> float:
    a = (left or "").strip()
    b = (right or "").strip()
    if a == b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


def class_overlap(expected: Iterable[str], actual: Iterable[str]) -> float:
    wanted = {token for token in expected if token}
    if not wanted:
        return 0.0
    present = {token for token in actual if token}
    return len(wanted & present) / len(wanted)


def _exact(expected: str | None, actual: str | None) -> float:
    if not expected or not actual:
        return 0.0
    return 1.0 if expected.strip().lower() == actual.strip().lower() else 0.0
