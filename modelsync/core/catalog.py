"""Model descriptors, the shared model catalog store and the merge strategy."""

from __future__ import annotations

from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from modelsync.core.providers import ProviderInfo, ServiceProvider, provider_info
from modelsync.utils.log import get_logger

logger = get_logger()

# Fetched models are sorted after the static seed entries.
FETCHED_SORT_BASE = 1000


class ModelDescriptor(BaseModel):
    """A single (model, provider) pair with availability and display metadata."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    name: str
    display_name: str
    available: bool = True
    sorted: int = FETCHED_SORT_BASE
    provider: ProviderInfo

    @property
    def provider_name(self) -> ServiceProvider:
        return self.provider.provider_name

    @property
    def key(self) -> Tuple[str, ServiceProvider]:
        return (self.name, self.provider.provider_name)

    @property
    def value(self) -> str:
        """Selector string in ``name@provider`` form."""
        return f"{self.name}@{self.provider.provider_name.value}"


ModelSnapshot = Tuple[ModelDescriptor, ...]
CatalogListener = Callable[[ModelSnapshot], None]


def split_model_value(value: str) -> Tuple[str, Optional[str]]:
    """Split a ``name@provider`` selector on its last ``@``."""
    if "@" not in value:
        return value, None
    name, provider = value.rsplit("@", 1)
    return name, provider or None


def descriptors_from_ids(provider: ServiceProvider, model_ids: Iterable[str]) -> List[ModelDescriptor]:
    """Normalize fetched model identifiers into descriptors for ``provider``."""
    info = provider_info(provider)
    return [
        ModelDescriptor(
            name=model_id,
            display_name=model_id,
            available=True,
            sorted=FETCHED_SORT_BASE + index,
            provider=info,
        )
        for index, model_id in enumerate(model_ids)
    ]


def merge_models(
    catalog: Sequence[ModelDescriptor],
    provider: ServiceProvider,
    fetched: Iterable[ModelDescriptor],
) -> ModelSnapshot:
    """Replace every ``provider`` entry of ``catalog`` with ``fetched``.

    Entries of other providers keep their order; fetched entries are appended
    in fetch order and forced available. Repeated names within ``fetched`` keep
    their first occurrence.
    """
    provider = ServiceProvider(provider)
    kept = [m for m in catalog if m.provider.provider_name != provider]

    added: List[ModelDescriptor] = []
    seen: set[str] = set()
    for descriptor in fetched:
        if descriptor.provider.provider_name != provider:
            raise ValueError(
                f"Model '{descriptor.name}' belongs to {descriptor.provider.provider_name.value}, "
                f"not {provider.value}."
            )
        if descriptor.name in seen:
            logger.debug(
                "[catalog] Dropping duplicate fetched model",
                extra={"model": descriptor.name, "provider": provider.value},
            )
            continue
        seen.add(descriptor.name)
        added.append(descriptor if descriptor.available else descriptor.model_copy(update={"available": True}))

    logger.debug(
        "[catalog] Merged provider models",
        extra={
            "provider": provider.value,
            "removed": len(catalog) - len(kept),
            "added": len(added),
        },
    )
    return tuple(kept) + tuple(added)


class ModelCatalog:
    """Application-wide model catalog.

    Readers get immutable snapshots; the only group mutation is
    :meth:`replace_provider`.
    """

    def __init__(self, models: Iterable[ModelDescriptor] = ()) -> None:
        self._models: ModelSnapshot = tuple(models)
        self._listeners: List[CatalogListener] = []

    def snapshot(self) -> ModelSnapshot:
        return self._models

    def __iter__(self) -> Iterator[ModelDescriptor]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)

    def available(self) -> List[ModelDescriptor]:
        return [m for m in self._models if m.available]

    def for_provider(self, provider: ServiceProvider, available_only: bool = True) -> List[ModelDescriptor]:
        provider = ServiceProvider(provider)
        return [
            m
            for m in self._models
            if m.provider.provider_name == provider and (m.available or not available_only)
        ]

    def replace_provider(
        self, provider: ServiceProvider, fetched: Iterable[ModelDescriptor]
    ) -> ModelSnapshot:
        """Swap in ``fetched`` for all entries of ``provider`` and notify listeners.

        If a listener raises, the previous entries are restored before the
        error propagates.
        """
        previous = self._models
        self._models = merge_models(previous, provider, fetched)
        try:
            self._notify()
        except Exception:
            self._models = previous
            raise
        return self._models

    def subscribe(self, listener: CatalogListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._models)


def _seed(provider: ServiceProvider, names: Sequence[str]) -> List[ModelDescriptor]:
    info = provider_info(provider)
    return [
        ModelDescriptor(name=name, display_name=name, available=True, sorted=index + 1, provider=info)
        for index, name in enumerate(names)
    ]


def default_models() -> List[ModelDescriptor]:
    """Static seed catalog used until a provider is refreshed."""
    return [
        *_seed(ServiceProvider.OPENAI, ["gpt-4o-mini", "gpt-4o", "gpt-4.1", "gpt-4.1-mini", "o3-mini"]),
        *_seed(ServiceProvider.ANTHROPIC, ["claude-3-5-sonnet-latest", "claude-3-5-haiku-latest"]),
        *_seed(ServiceProvider.GOOGLE, ["gemini-1.5-pro", "gemini-1.5-flash"]),
        *_seed(ServiceProvider.DEEPSEEK, ["deepseek-chat", "deepseek-reasoner"]),
        *_seed(
            ServiceProvider.SILICONFLOW,
            ["Qwen/Qwen2.5-7B-Instruct", "deepseek-ai/DeepSeek-V3", "THUDM/glm-4-9b-chat"],
        ),
    ]


__all__ = [
    "FETCHED_SORT_BASE",
    "ModelCatalog",
    "ModelDescriptor",
    "ModelSnapshot",
    "default_models",
    "descriptors_from_ids",
    "merge_models",
    "split_model_value",
]
