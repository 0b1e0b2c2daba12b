from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from selfheal.config.loader import ConfigLoader
from selfheal.config.schema import HealingSettings, ScoringWeights


def test_defaults():
    settings = HealingSettings()
    assert settings.threshold == 80.0
    assert sum(settings.weights.model_dump().values()) == 100.0
    assert settings.storage.backend == "json"
    assert settings.server.port == 3000


def test_shipped_config_matches_defaults(settings):
    assert settings.threshold == 80.0
    assert settings.weights == ScoringWeights()
    assert settings.log_level == "INFO"


def test_config_loader_validates_json(tmp_path):
    config_path = tmp_path / "healing.json"
    config_path.write_text(
        json.dumps(
            {
                "threshold": 72.5,
                "weights": {"tag_name": 20, "inner_text": 35},
                "storage": {"backend": "memory"},
                "log_level": "debug",
            }
        ),
        encoding="utf-8",
    )
    settings = ConfigLoader.load(config_path)
    assert settings.threshold == 72.5
    assert settings.weights.inner_text == 35
    assert settings.weights.aria_label == 20
    assert settings.storage.backend == "memory"
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "payload",
    [
        {"threshold": 120},
        {"weights": {"tag_name": -1}},
        {
            "weights": {
                "tag_name": 0,
                "inner_text": 0,
                "class_names": 0,
                "placeholder": 0,
                "input_type": 0,
                "aria_label": 0,
            }
        },
        {"storage": {"backend": "redis"}},
        {"log_level": "chatty"},
    ],
)
def test_invalid_settings_are_rejected(payload):
    with pytest.raises(ValidationError):
        HealingSettings.model_validate(payload)


def test_environment_overrides(tmp_path):
    config_path = tmp_path / "healing.json"
    config_path.write_text(json.dumps({"threshold": 90, "weights": {"aria_label": 15}}), encoding="utf-8")
    settings = ConfigLoader.from_env(
        {
            "HEAL_CONFIG": str(config_path),
            "HEAL_THRESHOLD": "75",
            "HEAL_STORAGE_DIR": str(tmp_path / "fp"),
            "HEAL_AUDIT_DIR": str(tmp_path / "audit"),
            "PORT": "8080",
        }
    )
    assert settings.threshold == 75.0
    assert settings.weights.aria_label == 15
    assert settings.storage.directory == Path(tmp_path / "fp")
    assert settings.audit_dir == Path(tmp_path / "audit")
    assert settings.server.port == 8080


def test_environment_without_overrides_uses_defaults():
    assert ConfigLoader.from_env({}) == HealingSettings()
