from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(UTC)


def normalize_text(value: str | None) -> str | None:
    """Collapses whitespace runs; blank values become None."""

    if value is None:
        return None
    collapsed = " ".join(str(value).split())
    return collapsed or None


def split_class_tokens(value: str | list[str] | None) -> list[str]:
    if not value:
        return []
    tokens = value.split() if isinstance(value, str) else [str(item) for item in value]
    unique: list[str] = []
    for token in tokens:
        token = token.strip()
        if token and token not in unique:
            unique.append(token)
    return unique


class Fingerprint(BaseModel):
    element_id: str
    tag_name: str
    class_names: list[str] | None = None
    inner_text: str | None = None
    placeholder: str | None = None
    input_type: str | None = None
    aria_label: str | None = None
    last_seen_at: datetime = Field(default_factory=utc_now)
    history: list[str] = Field(default_factory=list)

    @field_validator("element_id", "tag_name")
    @classmethod
    def validate_required(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("class_names", mode="before")
    @classmethod
    def validate_class_names(cls, value: Any) -> list[str] | None:
        return split_class_tokens(value) or None

    @field_validator("inner_text", "placeholder", "input_type", "aria_label", mode="before")
    @classmethod
    def validate_optional_text(cls, value: Any) -> str | None:
        return normalize_text(value)

    def descriptor(self) -> dict[str, Any]:
        """Descriptive attributes only, absent ones omitted."""

        return self.model_dump(
            exclude={"element_id", "last_seen_at", "history"},
            exclude_none=True,
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


@dataclass(slots=True)
class Candidate:
    element_id: str | None
    tag_name: str
    class_names: list[str] = field(default_factory=list)
    inner_text: str | None = None
    placeholder: str | None = None
    input_type: str | None = None
    aria_label: str | None = None
    parent_selector: str | None = None
    sibling_index: int = 1

    def to_fingerprint(self) -> Fingerprint:
        if not self.element_id:
            raise ValueError("Only identifier-bearing candidates can become fingerprints")
        return Fingerprint(
            element_id=self.element_id,
            tag_name=self.tag_name,
            class_names=self.class_names,
            inner_text=self.inner_text,
            placeholder=self.placeholder,
            input_type=self.input_type,
            aria_label=self.aria_label,
        )


@dataclass(slots=True)
class ScoredCandidate:
    candidate: Candidate
    confidence: float


@dataclass(slots=True)
class HealAttempt:
    page_key: str
    broken_id: str
    status: str
    confidence: float
    selector: str = ""
    tie_count: int = 0
    top_candidates: list[dict[str, Any]] = field(default_factory=list)
    attempted_at: str = field(default_factory=lambda: utc_now().isoformat())
