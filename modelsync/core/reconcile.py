"""Keep the selected chat and compression models pointing at available catalog entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from modelsync.core.catalog import ModelDescriptor, split_model_value
from modelsync.core.config import DEFAULT_MODEL, ConfigManager, ModelConfig
from modelsync.core.errors import ReconciliationGap
from modelsync.core.providers import ServiceProvider
from modelsync.utils.log import get_logger

logger = get_logger()

MAIN_SLOT = "model"
COMPRESS_SLOT = "compress_model"

UpdateConfig = Callable[[Callable[[ModelConfig], Any]], Any]


@dataclass(frozen=True)
class ModelRepair:
    slot: str
    provider: str
    previous: str
    current: str
    reason: str


@dataclass
class ReconcileReport:
    repairs: List[ModelRepair] = field(default_factory=list)
    gaps: List[ReconciliationGap] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.repairs)


def available_for_provider(
    catalog: Iterable[ModelDescriptor], provider: Optional[ServiceProvider]
) -> List[ModelDescriptor]:
    if provider is None:
        return []
    return [m for m in catalog if m.available and m.provider.provider_name == provider]


def _check_slot(
    slot: str,
    model: str,
    provider: Optional[ServiceProvider],
    catalog: Sequence[ModelDescriptor],
    fallback: Optional[str],
    report: ReconcileReport,
) -> None:
    if provider is None:
        return
    candidates = available_for_provider(catalog, provider)
    if any(m.name == model for m in candidates):
        return
    if candidates:
        report.repairs.append(
            ModelRepair(slot, provider.value, model, candidates[0].name, "first_available")
        )
    elif fallback is not None and provider == ServiceProvider.OPENAI:
        if model != fallback:
            report.repairs.append(ModelRepair(slot, provider.value, model, fallback, "fallback"))
    else:
        report.gaps.append(ReconciliationGap(slot=slot, provider=provider.value, model=model))


def plan_reconciliation(config: ModelConfig, catalog: Sequence[ModelDescriptor]) -> ReconcileReport:
    """Compute the repairs needed for ``config`` against ``catalog`` without applying them."""
    report = ReconcileReport()
    _check_slot(MAIN_SLOT, config.model, config.provider_name, catalog, DEFAULT_MODEL, report)
    _check_slot(
        COMPRESS_SLOT,
        config.compress_model,
        config.compress_provider_name,
        catalog,
        None,
        report,
    )
    return report


def reconcile_model_config(
    config: ModelConfig,
    catalog: Sequence[ModelDescriptor],
    update_config: UpdateConfig,
) -> ReconcileReport:
    """Repair ``config`` through ``update_config`` so each slot names an available model.

    Running it again without a catalog change applies nothing.
    """
    report = plan_reconciliation(config, catalog)

    for gap in report.gaps:
        logger.info(
            "[reconcile] No available model for provider; keeping selection",
            extra={"slot": gap.slot, "provider": gap.provider, "model": gap.model},
        )

    if not report.repairs:
        return report

    for repair in report.repairs:
        logger.info(
            "[reconcile] Model does not belong to provider; repairing",
            extra={
                "slot": repair.slot,
                "provider": repair.provider,
                "previous": repair.previous,
                "current": repair.current,
                "reason": repair.reason,
            },
        )

    def _apply(draft: ModelConfig) -> None:
        for repair in report.repairs:
            setattr(draft, repair.slot, repair.current)

    update_config(_apply)
    return report


def select_provider(
    config: ModelConfig, catalog: Sequence[ModelDescriptor], provider: ServiceProvider
) -> None:
    """Switch the chat provider, moving the model to its first available entry."""
    provider = ServiceProvider(provider)
    config.provider_name = provider
    candidates = available_for_provider(catalog, provider)
    if candidates:
        config.model = candidates[0].name


def select_compress_provider(
    config: ModelConfig, catalog: Sequence[ModelDescriptor], provider: ServiceProvider
) -> None:
    provider = ServiceProvider(provider)
    config.compress_provider_name = provider
    candidates = available_for_provider(catalog, provider)
    if candidates:
        config.compress_model = candidates[0].name


def select_model(config: ModelConfig, value: str) -> None:
    """Apply a ``name@provider`` selector to the chat slot."""
    name, provider = split_model_value(value)
    config.model = name
    if provider:
        config.provider_name = ServiceProvider(provider)


def select_compress_model(config: ModelConfig, value: str) -> None:
    name, provider = split_model_value(value)
    config.compress_model = name
    if provider:
        config.compress_provider_name = ServiceProvider(provider)


def selectable_models(
    catalog: Sequence[ModelDescriptor], provider: Optional[ServiceProvider]
) -> Tuple[List[ModelDescriptor], bool]:
    """Models to offer for ``provider``.

    Falls back to every available model when the provider has none; the second
    item is True in that case so callers can label entries with their provider.
    """
    candidates = available_for_provider(catalog, provider)
    if candidates:
        return candidates, False
    return [m for m in catalog if m.available], True


def bind_reconciler(manager: ConfigManager) -> Callable[[], None]:
    """Re-run reconciliation whenever the model config or the catalog changes.

    Returns a callable that detaches both listeners.
    """
    catalog = manager.get_catalog()

    def _run(_changed: Any) -> None:
        reconcile_model_config(
            manager.get_model_config(), catalog.snapshot(), manager.update_model_config
        )

    detach_config = manager.subscribe(_run)
    detach_catalog = catalog.subscribe(_run)

    def _detach() -> None:
        detach_config()
        detach_catalog()

    return _detach


__all__ = [
    "COMPRESS_SLOT",
    "MAIN_SLOT",
    "ModelRepair",
    "ReconcileReport",
    "available_for_provider",
    "bind_reconciler",
    "plan_reconciliation",
    "reconcile_model_config",
    "select_compress_model",
    "select_compress_provider",
    "select_model",
    "select_provider",
    "selectable_models",
]
