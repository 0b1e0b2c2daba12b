from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from selfheal.core.outcomes import HealOutcome


class HealingError(RuntimeError):
    """Raised when selector healing fails."""


class BadRequestError(HealingError, ValueError):
    """Raised for learn or heal input missing a required field."""


class FingerprintNotFoundError(HealingError):
    """Raised when no fingerprint exists for a page key and element id."""

    def __init__(self, page_key: str, element_id: str) -> None:
        super().__init__(f"No fingerprint stored for '{element_id}' on page '{page_key}'")
        self.page_key = page_key
        self.element_id = element_id


class RepositoryUnavailableError(HealingError):
    """Raised when the fingerprint storage layer cannot be read or written."""


class SelectorNotHealedError(HealingError):
    """Raised by the finder when a broken id could not be healed."""

    def __init__(self, element_id: str, outcome: HealOutcome) -> None:
        super().__init__(
            f"Healing failed for '{element_id}': {outcome.status} "
            f"(confidence {outcome.confidence})"
        )
        self.element_id = element_id
        self.outcome = outcome


class AmbiguousMatchError(SelectorNotHealedError):
    """Raised by the finder when several candidates tie for the top score."""
