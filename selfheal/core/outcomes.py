from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

HEALED = "healed"
AMBIGUOUS = "ambiguous"
NOT_FOUND = "not_found"
NO_FINGERPRINT = "no_fingerprint"


@dataclass(frozen=True, slots=True)
class HealOutcome:
    """Result of one heal attempt; exactly one variant is produced per call."""

    status: ClassVar[str] = ""

    @property
    def confidence(self) -> float:
        return 0.0

    @property
    def healed(self) -> bool:
        return False

    def to_payload(self) -> dict[str, Any]:
        return {"status": self.status, "confidence": self.confidence}


@dataclass(frozen=True, slots=True)
class Healed(HealOutcome):
    status: ClassVar[str] = HEALED

    selector: str
    score: float
    matched_id: str | None = None

    @property
    def confidence(self) -> float:
        return self.score

    @property
    def healed(self) -> bool:
        return True

    def to_payload(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "selector": self.selector,
            "confidence": self.score,
            "matched": self.matched_id,
        }


@dataclass(frozen=True, slots=True)
class Ambiguous(HealOutcome):
    status: ClassVar[str] = AMBIGUOUS

    tie_count: int
    score: float

    @property
    def confidence(self) -> float:
        return self.score

    def to_payload(self) -> dict[str, Any]:
        return {"status": self.status, "tieCount": self.tie_count, "confidence": self.score}


@dataclass(frozen=True, slots=True)
class NotFound(HealOutcome):
    status: ClassVar[str] = NOT_FOUND

    score: float = 0.0

    @property
    def confidence(self) -> float:
        return self.score


@dataclass(frozen=True, slots=True)
class NoFingerprint(HealOutcome):
    status: ClassVar[str] = NO_FINGERPRINT
