from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class ScoringWeights(BaseModel):
    """Relative weight of each fingerprint attribute; defaults sum to 100."""

    tag_name: float = Field(15.0, ge=0)
    inner_text: float = Field(30.0, ge=0)
    class_names: float = Field(15.0, ge=0)
    placeholder: float = Field(10.0, ge=0)
    input_type: float = Field(10.0, ge=0)
    aria_label: float = Field(20.0, ge=0)

    @model_validator(mode="after")
    def validate_total(self) -> ScoringWeights:
        if sum(self.model_dump().values()) <= 0:
            raise ValueError("At least one scoring weight must be positive")
        return self


class StorageConfig(BaseModel):
    backend: Literal["memory", "json"] = "json"
    directory: Path = Path("snapshots")


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(3000, ge=1, le=65535)


class HealingSettings(BaseModel):
    threshold: float = Field(80.0, ge=0, le=100)
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    audit_dir: Path | None = None
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        if normalized not in logging.getLevelNamesMapping():
            raise ValueError(f"Unsupported log level: {value}")
        return normalized
