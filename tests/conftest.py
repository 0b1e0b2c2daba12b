from __future__ import annotations

from pathlib import Path

import pytest

from selfheal.config.loader import ConfigLoader
from selfheal.config.schema import StorageConfig
from selfheal.core.healer import HealingEngine
from selfheal.core.repository import InMemoryFingerprintRepository
from selfheal.server.app import create_app


@pytest.fixture()
def settings():
    config_path = Path(__file__).resolve().parents[1] / "config" / "healing.json"
    loaded = ConfigLoader.load(config_path)
    return loaded.model_copy(update={"storage": StorageConfig(backend="memory"), "audit_dir": None})


@pytest.fixture()
def repository():
    return InMemoryFingerprintRepository()


@pytest.fixture()
def engine(repository, settings):
    return HealingEngine(repository, settings)


@pytest.fixture()
def client(repository, settings):
    app = create_app(settings, repository)
    app.config["TESTING"] = True
    return app.test_client()
