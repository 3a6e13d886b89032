"""Configuration management for modelsync.

This module holds the chat model configuration (selected model and provider,
the compression model and tuning values), per-provider access settings and
the persisted model catalog, stored together in ``~/.modelsync.json``.
"""

import json
import math
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modelsync.core.catalog import ModelCatalog, ModelDescriptor, ModelSnapshot, default_models
from modelsync.core.providers import ServiceProvider
from modelsync.utils.log import get_logger


logger = get_logger()

DEFAULT_MODEL = "gpt-4o-mini"
CONFIG_PATH_ENV = "MODELSYNC_CONFIG_PATH"


def limit_number(value: Any, low: float, high: float, default: float) -> float:
    """Clamp ``value`` into ``[low, high]``; non-numeric input yields ``default``."""
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return min(high, max(low, number))


class ModelConfig(BaseModel):
    """Chat model selection and tuning values."""

    model_config = ConfigDict(
        protected_namespaces=(), populate_by_name=True, validate_assignment=True
    )

    model: str = DEFAULT_MODEL
    provider_name: ServiceProvider = Field(default=ServiceProvider.OPENAI, alias="providerName")
    compress_model: str = Field(default="", alias="compressModel")
    # Unset means the compression slot follows no particular provider.
    compress_provider_name: Optional[ServiceProvider] = Field(
        default=None, alias="compressProviderName"
    )
    temperature: float = 0.5
    top_p: float = 1.0
    max_tokens: int = 4000
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    send_memory: bool = Field(default=True, alias="sendMemory")
    history_message_count: int = Field(default=4, alias="historyMessageCount")
    compress_message_length_threshold: int = Field(
        default=1000, alias="compressMessageLengthThreshold"
    )
    enable_inject_system_prompts: bool = Field(default=True, alias="enableInjectSystemPrompts")
    template: str = "{{input}}"

    @field_validator("model", "compress_model", mode="before")
    @classmethod
    def _validate_model(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("compress_provider_name", mode="before")
    @classmethod
    def _validate_compress_provider(cls, value: Any) -> Any:
        return None if value in ("", None) else value

    @field_validator("temperature", mode="before")
    @classmethod
    def _validate_temperature(cls, value: Any) -> float:
        return limit_number(value, 0, 2, 0.5)

    @field_validator("top_p", mode="before")
    @classmethod
    def _validate_top_p(cls, value: Any) -> float:
        return limit_number(value, 0, 1, 1)

    @field_validator("max_tokens", mode="before")
    @classmethod
    def _validate_max_tokens(cls, value: Any) -> int:
        return int(limit_number(value, 0, 512000, 4000))

    @field_validator("presence_penalty", "frequency_penalty", mode="before")
    @classmethod
    def _validate_penalty(cls, value: Any) -> float:
        return limit_number(value, -2, 2, 0)

    @field_validator("history_message_count", mode="before")
    @classmethod
    def _validate_history_count(cls, value: Any) -> int:
        return int(limit_number(value, 0, 64, 4))

    @field_validator("compress_message_length_threshold", mode="before")
    @classmethod
    def _validate_compress_threshold(cls, value: Any) -> int:
        return int(limit_number(value, 500, 4000, 1000))


def api_key_env_candidates(provider: ServiceProvider) -> list[str]:
    """Environment variables to check for an API key."""
    return [f"{provider.name}_API_KEY"]


def api_base_env_candidates(provider: ServiceProvider) -> list[str]:
    """Environment variables to check for base URL overrides."""
    return [f"{provider.name}_BASE_URL", f"{provider.name}_API_BASE"]


class AccessConfig(BaseModel):
    """Per-provider access settings."""

    model_config = ConfigDict(populate_by_name=True)

    # Keyed by provider value, e.g. {"OpenAI": "https://proxy.example.com"}.
    base_urls: Dict[str, str] = Field(default_factory=dict, alias="baseUrls")
    api_keys: Dict[str, str] = Field(default_factory=dict, alias="apiKeys")
    # Direct clients call vendors; a hosted web client goes through its own proxy path,
    # which needs an httpx client with a base_url.
    is_app: bool = Field(default=True, alias="isApp")
    refresh_timeout_sec: float = Field(default=30.0, alias="refreshTimeoutSec")

    def stored_base_url(self, provider: ServiceProvider) -> str:
        provider = ServiceProvider(provider)
        for env_var in api_base_env_candidates(provider):
            value = os.environ.get(env_var, "").strip()
            if value:
                return value
        return self.base_urls.get(provider.value, "").strip()

    def api_key(self, provider: ServiceProvider) -> Optional[str]:
        provider = ServiceProvider(provider)
        for env_var in api_key_env_candidates(provider):
            if os.environ.get(env_var):
                return os.environ[env_var]
        return self.api_keys.get(provider.value) or None


class AppConfig(BaseModel):
    """Everything persisted in the config file."""

    model_config = ConfigDict(protected_namespaces=(), populate_by_name=True)

    model_settings: ModelConfig = Field(default_factory=ModelConfig, alias="modelConfig")
    models: List[ModelDescriptor] = Field(default_factory=default_models)
    access: AccessConfig = Field(default_factory=AccessConfig)


ModelConfigListener = Callable[[ModelConfig], None]
ModelConfigMutator = Callable[[ModelConfig], Any]


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_PATH_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".modelsync.json"


class ConfigManager:
    """Loads, mutates and persists the application configuration."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self.config_path = config_path or default_config_path()
        self._config: Optional[AppConfig] = None
        self._catalog: Optional[ModelCatalog] = None
        self._listeners: List[ModelConfigListener] = []

    def get_app_config(self) -> AppConfig:
        """Load and return the configuration."""
        if self._config is None:
            if self.config_path.exists():
                try:
                    data = json.loads(self.config_path.read_text(encoding="utf-8"))
                    self._config = AppConfig.model_validate(data)
                    logger.debug(
                        "[config] Loaded configuration",
                        extra={
                            "path": str(self.config_path),
                            "model_count": len(self._config.models),
                        },
                    )
                except (
                    json.JSONDecodeError,
                    OSError,
                    UnicodeDecodeError,
                    ValueError,
                    TypeError,
                ) as e:
                    logger.warning(
                        "Error loading config: %s: %s",
                        type(e).__name__,
                        e,
                        extra={"error": str(e), "path": str(self.config_path)},
                    )
                    self._config = AppConfig()
            else:
                self._config = AppConfig()
                logger.debug(
                    "[config] Config not found; using defaults",
                    extra={"path": str(self.config_path)},
                )
        return self._config

    def save_app_config(self, config: AppConfig) -> None:
        """Save the configuration."""
        self._config = config
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(
            config.model_dump_json(indent=2, by_alias=True), encoding="utf-8"
        )
        logger.debug(
            "[config] Saved configuration",
            extra={
                "path": str(self.config_path),
                "model": config.model_settings.model,
                "provider": config.model_settings.provider_name.value,
                "model_count": len(config.models),
            },
        )

    def get_model_config(self) -> ModelConfig:
        """Snapshot of the current model configuration."""
        return self.get_app_config().model_settings.model_copy(deep=True)

    def update_model_config(self, mutator: ModelConfigMutator) -> ModelConfig:
        """Apply ``mutator`` to a draft of the model config, validate, persist and notify."""
        config = self.get_app_config()
        draft = config.model_settings.model_copy(deep=True)
        mutator(draft)
        updated = ModelConfig.model_validate(draft.model_dump())
        if updated == config.model_settings:
            return updated.model_copy(deep=True)
        config.model_settings = updated
        self.save_app_config(config)
        for listener in list(self._listeners):
            listener(updated.model_copy(deep=True))
        return updated.model_copy(deep=True)

    def subscribe(self, listener: ModelConfigListener) -> Callable[[], None]:
        """Register a model-config change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def get_access_config(self) -> AccessConfig:
        return self.get_app_config().access

    def update_access_config(self, mutator: Callable[[AccessConfig], Any]) -> AccessConfig:
        config = self.get_app_config()
        draft = config.access.model_copy(deep=True)
        mutator(draft)
        config.access = AccessConfig.model_validate(draft.model_dump())
        self.save_app_config(config)
        return config.access

    def get_catalog(self) -> ModelCatalog:
        """Shared catalog store; every replacement is persisted."""
        if self._catalog is None:
            self._catalog = ModelCatalog(self.get_app_config().models)
            self._catalog.subscribe(self._persist_catalog)
        return self._catalog

    def _persist_catalog(self, models: ModelSnapshot) -> None:
        config = self.get_app_config()
        config.models = list(models)
        self.save_app_config(config)


# Global instance
config_manager = ConfigManager()


def get_app_config() -> AppConfig:
    """Get the application configuration."""
    return config_manager.get_app_config()


def get_model_config() -> ModelConfig:
    """Get a snapshot of the model configuration."""
    return config_manager.get_model_config()


def update_model_config(mutator: ModelConfigMutator) -> ModelConfig:
    """Mutate and persist the model configuration."""
    return config_manager.update_model_config(mutator)


def get_catalog() -> ModelCatalog:
    """Get the shared model catalog."""
    return config_manager.get_catalog()
