from __future__ import annotations

import logging
from typing import Any

from bs4 import BeautifulSoup

from selfheal.config.schema import HealingSettings
from selfheal.core.exceptions import BadRequestError, FingerprintNotFoundError
from selfheal.core.metadata import Fingerprint, HealAttempt, ScoredCandidate
from selfheal.core.outcomes import Ambiguous, Healed, HealOutcome, NoFingerprint, NotFound
from selfheal.core.repository import FingerprintRepository
from selfheal.core.synthesizer import synthesize_selector
from selfheal.logging.audit import HealingAuditLogger
from selfheal.utils.dom_extract import extract_candidate_elements
from selfheal.utils.scoring import score_candidates

log = logging.getLogger(__name__)


class HealingEngine:
    """Learns element fingerprints and heals broken ids against a markup snapshot."""

    def __init__(
        self,
        repository: FingerprintRepository,
        settings: HealingSettings | None = None,
        audit_logger: HealingAuditLogger | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.repository = repository
        self.settings = settings or HealingSettings()
        self.audit_logger = audit_logger
        self.log = logger or log

    @property
    def threshold(self) -> float:
        return self.settings.threshold

    def learn(self, page_key: str, fingerprint: Fingerprint) -> Fingerprint:
        if not page_key or not page_key.strip():
            raise BadRequestError("pageKey is required")
        stored = self.repository.put(page_key, fingerprint.element_id, fingerprint)
        self.log.info(
            "Learned fingerprint page=%s id=%s tag=%s history=%s",
            page_key,
            stored.element_id,
            stored.tag_name,
            stored.history,
        )
        return stored

    def heal(self, page_key: str, broken_id: str, dom_snapshot: str | BeautifulSoup) -> HealOutcome:
        if not page_key or not broken_id or not dom_snapshot:
            raise BadRequestError("pageKey, brokenId, domSnapshot required")

        fingerprint = self.repository.get(page_key, broken_id)
        if fingerprint is None:
            self.log.warning("No fingerprint for page=%s id=%s", page_key, broken_id)
            return self._finish(page_key, broken_id, NoFingerprint(), [])

        ranked = score_candidates(
            fingerprint,
            extract_candidate_elements(dom_snapshot),
            self.settings.weights,
        )
        for item in ranked:
            self.log.debug(
                "Scored candidate id=%s tag=%s confidence=%s",
                item.candidate.element_id,
                item.candidate.tag_name,
                item.confidence,
            )
        outcome = self._decide(page_key, broken_id, ranked)
        return self._finish(page_key, broken_id, outcome, ranked)

    def _decide(self, page_key: str, broken_id: str, ranked: list[ScoredCandidate]) -> HealOutcome:
        if not ranked or ranked[0].confidence <= 0:
            self.log.warning("No candidate resembles id=%s on page=%s", broken_id, page_key)
            return NotFound(0.0)

        top = ranked[0].confidence
        winners = [item for item in ranked if item.confidence == top]
        if len(winners) > 1:
            self.log.warning(
                "Refusing to heal id=%s: %d candidates tie at %s%%",
                broken_id,
                len(winners),
                top,
            )
            return Ambiguous(tie_count=len(winners), score=top)

        if top < self.threshold:
            self.log.warning(
                "Best match for id=%s scored %s%%, below threshold %s%%",
                broken_id,
                top,
                self.threshold,
            )
            return NotFound(top)

        winner = winners[0].candidate
        selector = synthesize_selector(winner)
        try:
            self.repository.rekey(page_key, broken_id, winner.element_id, winner.to_fingerprint())
        except FingerprintNotFoundError:
            # a concurrent heal moved the entry first
            self.log.warning("Fingerprint for id=%s disappeared during heal", broken_id)
            return NoFingerprint()
        self.log.info(
            "Healed id=%s -> %s on page=%s (confidence %s%%)",
            broken_id,
            selector,
            page_key,
            top,
        )
        return Healed(selector=selector, score=top, matched_id=winner.element_id)

    def _finish(
        self,
        page_key: str,
        broken_id: str,
        outcome: HealOutcome,
        ranked: list[ScoredCandidate],
    ) -> HealOutcome:
        if self.audit_logger is not None:
            self.audit_logger.write(
                HealAttempt(
                    page_key=page_key,
                    broken_id=broken_id,
                    status=outcome.status,
                    confidence=outcome.confidence,
                    selector=getattr(outcome, "selector", ""),
                    tie_count=getattr(outcome, "tie_count", 0),
                    top_candidates=[self._candidate_payload(item) for item in ranked[:5]],
                )
            )
        return outcome

    @staticmethod
    def _candidate_payload(item: ScoredCandidate) -> dict[str, Any]:
        candidate = item.candidate
        return {
            "id": candidate.element_id,
            "tag": candidate.tag_name,
            "text": candidate.inner_text,
            "classes": candidate.class_names,
            "confidence": item.confidence,
        }
