"""Tests for model selection reconciliation."""

from typing import Callable, List

import pytest

from modelsync.core.catalog import ModelDescriptor
from modelsync.core.config import ModelConfig
from modelsync.core.providers import ServiceProvider, provider_info
from modelsync.core.reconcile import (
    COMPRESS_SLOT,
    MAIN_SLOT,
    available_for_provider,
    bind_reconciler,
    plan_reconciliation,
    reconcile_model_config,
    select_compress_model,
    select_compress_provider,
    select_model,
    select_provider,
    selectable_models,
)


def _model(name, provider=ServiceProvider.OPENAI, available=True):
    return ModelDescriptor(
        name=name, display_name=name, available=available, sorted=1, provider=provider_info(provider)
    )


class _Updater:
    """updateConfig stand-in that applies mutators in place."""

    def __init__(self, config: ModelConfig) -> None:
        self.config = config
        self.calls: List[Callable[[ModelConfig], object]] = []

    def __call__(self, mutator: Callable[[ModelConfig], object]) -> None:
        self.calls.append(mutator)
        mutator(self.config)


def test_gap_for_non_openai_provider_keeps_selection():
    catalog = [_model("gpt-4o-mini")]
    config = ModelConfig(model="x", provider_name=ServiceProvider.SILICONFLOW)
    updater = _Updater(config)

    report = reconcile_model_config(config, catalog, updater)

    assert not report.changed
    assert updater.calls == []
    assert config.model == "x"
    assert config.provider_name is ServiceProvider.SILICONFLOW
    assert [(g.slot, g.provider, g.model) for g in report.gaps] == [(MAIN_SLOT, "SiliconFlow", "x")]


def test_stale_openai_model_moves_to_first_available():
    catalog = [_model("gpt-4o"), _model("gpt-4o-mini")]
    config = ModelConfig(model="stale-model", provider_name=ServiceProvider.OPENAI)

    report = reconcile_model_config(config, catalog, _Updater(config))

    assert config.model == "gpt-4o"
    assert report.repairs[0].previous == "stale-model"
    assert report.repairs[0].reason == "first_available"


def test_openai_without_models_falls_back_to_default():
    catalog = [_model("gpt-3.5-turbo", available=False), _model("qwen", ServiceProvider.SILICONFLOW)]
    config = ModelConfig(model="gpt-3.5-turbo", provider_name=ServiceProvider.OPENAI)

    report = reconcile_model_config(config, catalog, _Updater(config))

    assert config.model == "gpt-4o-mini"
    assert report.repairs[0].reason == "fallback"


def test_unavailable_entries_do_not_count():
    catalog = [_model("old", available=False), _model("new")]
    config = ModelConfig(model="old", provider_name=ServiceProvider.OPENAI)
    reconcile_model_config(config, catalog, _Updater(config))
    assert config.model == "new"


def test_model_of_another_provider_is_replaced():
    catalog = [_model("shared", ServiceProvider.SILICONFLOW), _model("gpt-4o")]
    config = ModelConfig(model="shared", provider_name=ServiceProvider.OPENAI)
    reconcile_model_config(config, catalog, _Updater(config))
    assert config.model == "gpt-4o"


def test_compress_slot_is_repaired_independently():
    catalog = [_model("gpt-4o"), _model("qwen", ServiceProvider.SILICONFLOW)]
    config = ModelConfig(
        model="gpt-4o",
        provider_name=ServiceProvider.OPENAI,
        compress_model="stale",
        compress_provider_name=ServiceProvider.SILICONFLOW,
    )

    report = reconcile_model_config(config, catalog, _Updater(config))

    assert config.model == "gpt-4o"
    assert config.compress_model == "qwen"
    assert [r.slot for r in report.repairs] == [COMPRESS_SLOT]


def test_compress_slot_has_no_default_fallback():
    catalog = [_model("qwen", ServiceProvider.SILICONFLOW)]
    config = ModelConfig(
        model="qwen",
        provider_name=ServiceProvider.SILICONFLOW,
        compress_model="stale",
        compress_provider_name=ServiceProvider.OPENAI,
    )

    report = reconcile_model_config(config, catalog, _Updater(config))

    assert config.compress_model == "stale"
    assert [g.slot for g in report.gaps] == [COMPRESS_SLOT]


def test_unset_compress_provider_is_ignored():
    config = ModelConfig(model="gpt-4o", compress_model="anything")
    report = plan_reconciliation(config, [_model("gpt-4o")])
    assert report.repairs == []
    assert report.gaps == []


def test_both_slots_are_repaired_in_one_update():
    catalog = [_model("gpt-4o")]
    config = ModelConfig(
        model="a", compress_model="b", compress_provider_name=ServiceProvider.OPENAI
    )
    updater = _Updater(config)

    reconcile_model_config(config, catalog, updater)

    assert len(updater.calls) == 1
    assert (config.model, config.compress_model) == ("gpt-4o", "gpt-4o")


CATALOGS = [
    [],
    [_model("gpt-4o-mini")],
    [_model("gpt-4o", available=False), _model("gpt-4.1")],
    [_model("qwen", ServiceProvider.SILICONFLOW), _model("glm", ServiceProvider.SILICONFLOW)],
    [_model("claude", ServiceProvider.ANTHROPIC), _model("gpt-4o"), _model("qwen", ServiceProvider.SILICONFLOW)],
]
CONFIGS = [
    dict(model="gpt-4o", provider_name=ServiceProvider.OPENAI),
    dict(model="x", provider_name=ServiceProvider.SILICONFLOW),
    dict(model="glm", provider_name=ServiceProvider.SILICONFLOW, compress_model="y",
         compress_provider_name=ServiceProvider.ANTHROPIC),
    dict(model="claude", provider_name=ServiceProvider.ANTHROPIC, compress_model="gpt-4o",
         compress_provider_name=ServiceProvider.OPENAI),
]


@pytest.mark.parametrize("catalog", CATALOGS)
@pytest.mark.parametrize("values", CONFIGS)
def test_reconcile_establishes_invariant_and_is_idempotent(catalog, values):
    config = ModelConfig(**values)
    updater = _Updater(config)

    reconcile_model_config(config, catalog, updater)

    for model, provider, fallback in (
        (config.model, config.provider_name, "gpt-4o-mini"),
        (config.compress_model, config.compress_provider_name, None),
    ):
        candidates = available_for_provider(catalog, provider)
        if candidates:
            assert model in {m.name for m in candidates}
        elif fallback and provider is ServiceProvider.OPENAI:
            assert model == fallback

    first_pass = config.model_copy()
    calls = len(updater.calls)
    reconcile_model_config(config, catalog, updater)
    assert len(updater.calls) == calls
    assert config == first_pass


def test_select_provider_picks_first_available_model():
    catalog = [_model("gpt-4o"), _model("qwen", ServiceProvider.SILICONFLOW, available=False),
               _model("glm", ServiceProvider.SILICONFLOW)]
    config = ModelConfig()

    select_provider(config, catalog, ServiceProvider.SILICONFLOW)
    assert (config.model, config.provider_name) == ("glm", ServiceProvider.SILICONFLOW)

    select_provider(config, catalog, ServiceProvider.MOONSHOT)
    assert (config.model, config.provider_name) == ("glm", ServiceProvider.MOONSHOT)


def test_select_compress_provider():
    config = ModelConfig()
    select_compress_provider(config, [_model("qwen", ServiceProvider.SILICONFLOW)], "siliconflow")
    assert config.compress_provider_name is ServiceProvider.SILICONFLOW
    assert config.compress_model == "qwen"


def test_select_model_parses_selector():
    config = ModelConfig()
    select_model(config, "Qwen/Qwen2.5-7B-Instruct@SiliconFlow")
    assert config.model == "Qwen/Qwen2.5-7B-Instruct"
    assert config.provider_name is ServiceProvider.SILICONFLOW

    select_model(config, "bare-name")
    assert config.model == "bare-name"
    assert config.provider_name is ServiceProvider.SILICONFLOW

    select_compress_model(config, "gpt-4o@OpenAI")
    assert (config.compress_model, config.compress_provider_name) == ("gpt-4o", ServiceProvider.OPENAI)


def test_select_model_rejects_unknown_provider():
    with pytest.raises(ValueError):
        select_model(ModelConfig(), "m@Nowhere")


def test_selectable_models_falls_back_to_all_available():
    catalog = [_model("gpt-4o"), _model("qwen", ServiceProvider.SILICONFLOW), _model("off", available=False)]

    models, flagged = selectable_models(catalog, ServiceProvider.SILICONFLOW)
    assert [m.name for m in models] == ["qwen"]
    assert flagged is False

    models, flagged = selectable_models(catalog, ServiceProvider.DEEPSEEK)
    assert [m.name for m in models] == ["gpt-4o", "qwen"]
    assert flagged is True


def test_bind_reconciler_repairs_on_config_and_catalog_changes(make_manager):
    manager = make_manager(
        [_model("gpt-4o"), _model("qwen", ServiceProvider.SILICONFLOW)],
        model="gpt-4o",
        provider_name=ServiceProvider.OPENAI,
    )
    detach = bind_reconciler(manager)

    manager.update_model_config(lambda c: setattr(c, "provider_name", ServiceProvider.SILICONFLOW))
    assert manager.get_model_config().model == "qwen"

    manager.get_catalog().replace_provider(ServiceProvider.SILICONFLOW, [_model("glm", ServiceProvider.SILICONFLOW)])
    assert manager.get_model_config().model == "glm"

    detach()
    manager.update_model_config(lambda c: setattr(c, "model", "dangling"))
    assert manager.get_model_config().model == "dangling"
