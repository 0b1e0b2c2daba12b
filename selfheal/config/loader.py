from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping

from selfheal.config.schema import HealingSettings

ENV_OVERRIDES = {
    "HEAL_THRESHOLD": ("threshold",),
    "HEAL_STORAGE_BACKEND": ("storage", "backend"),
    "HEAL_STORAGE_DIR": ("storage", "directory"),
    "HEAL_AUDIT_DIR": ("audit_dir",),
    "HEAL_LOG_LEVEL": ("log_level",),
    "PORT": ("server", "port"),
}


class ConfigLoader:
    """Loads and validates healing engine settings."""

    @staticmethod
    def load(path: str | Path) -> HealingSettings:
        config_path = Path(path)
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return HealingSettings.model_validate(payload)

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None) -> HealingSettings:
        env = os.environ if environ is None else environ
        payload: dict[str, Any] = {}
        config_path = env.get("HEAL_CONFIG")
        if config_path:
            payload = ConfigLoader.load(config_path).model_dump()
        for variable, path in ENV_OVERRIDES.items():
            value = env.get(variable)
            if value:
                _assign(payload, path, value)
        return HealingSettings.model_validate(payload)


def _assign(payload: dict[str, Any], path: tuple[str, ...], value: str) -> None:
    target = payload
    for key in path[:-1]:
        target = target.setdefault(key, {})
    target[path[-1]] = value
