"""Pytest configuration and fixtures for all tests."""

from pathlib import Path
from typing import Callable, Iterable, Optional

import pytest

from modelsync.core.catalog import ModelDescriptor
from modelsync.core.config import ConfigManager, ModelConfig
from modelsync.core.providers import ServiceProvider


_ENV_VARS = [
    "MODELSYNC_CONFIG_PATH",
    *(f"{provider.name}_API_KEY" for provider in ServiceProvider),
    *(f"{provider.name}_BASE_URL" for provider in ServiceProvider),
    *(f"{provider.name}_API_BASE" for provider in ServiceProvider),
]


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep host API keys and base URLs out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_manager(tmp_path: Path) -> Callable[..., ConfigManager]:
    """Build a ConfigManager backed by a temp file with the given catalog and model config."""

    def _make(
        models: Optional[Iterable[ModelDescriptor]] = None,
        **model_config: object,
    ) -> ConfigManager:
        manager = ConfigManager(tmp_path / "modelsync.json")
        config = manager.get_app_config()
        if models is not None:
            config.models = list(models)
        if model_config:
            config.model_settings = ModelConfig(**model_config)
        manager.save_app_config(config)
        return manager

    return _make
