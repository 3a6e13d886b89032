"""Tests for model descriptors, the catalog store and the merge strategy."""

import pytest
from pydantic import ValidationError

from modelsync.core.catalog import (
    FETCHED_SORT_BASE,
    ModelCatalog,
    ModelDescriptor,
    default_models,
    descriptors_from_ids,
    merge_models,
    split_model_value,
)
from modelsync.core.providers import ServiceProvider, provider_info


def _model(name, provider=ServiceProvider.OPENAI, available=True):
    return ModelDescriptor(
        name=name, display_name=name, available=available, sorted=1, provider=provider_info(provider)
    )


def _catalog():
    return [
        _model("gpt-4o"),
        _model("qwen", ServiceProvider.SILICONFLOW),
        _model("gpt-3.5-turbo", available=False),
        _model("claude", ServiceProvider.ANTHROPIC),
        _model("glm", ServiceProvider.SILICONFLOW),
    ]


def test_merge_replaces_only_target_provider_entries():
    catalog = _catalog()
    fetched = descriptors_from_ids(ServiceProvider.OPENAI, ["gpt-4.1", "gpt-4o-mini"])

    merged = merge_models(catalog, ServiceProvider.OPENAI, fetched)

    assert [m.value for m in merged] == [
        "qwen@SiliconFlow",
        "claude@Anthropic",
        "glm@SiliconFlow",
        "gpt-4.1@OpenAI",
        "gpt-4o-mini@OpenAI",
    ]
    openai_before = [m for m in catalog if m.provider_name == ServiceProvider.OPENAI]
    assert len(merged) == len(catalog) - len(openai_before) + len(fetched)


def test_merge_forces_available_and_drops_repeated_names():
    fetched = [
        _model("a", ServiceProvider.SILICONFLOW, available=False),
        _model("b", ServiceProvider.SILICONFLOW),
        _model("a", ServiceProvider.SILICONFLOW),
    ]

    merged = merge_models(_catalog(), ServiceProvider.SILICONFLOW, fetched)

    siliconflow = [m for m in merged if m.provider_name == ServiceProvider.SILICONFLOW]
    assert [m.name for m in siliconflow] == ["a", "b"]
    assert all(m.available for m in siliconflow)
    keys = [m.key for m in merged]
    assert len(keys) == len(set(keys))


def test_merge_rejects_descriptors_of_another_provider():
    with pytest.raises(ValueError):
        merge_models(_catalog(), ServiceProvider.OPENAI, [_model("qwen", ServiceProvider.SILICONFLOW)])


def test_merge_does_not_mutate_input():
    catalog = _catalog()
    merge_models(catalog, ServiceProvider.OPENAI, [])
    assert len(catalog) == 5


def test_descriptors_from_ids_normalizes_fetch_results():
    descriptors = descriptors_from_ids(ServiceProvider.SILICONFLOW, ["m1", "m2"])
    assert [d.name for d in descriptors] == ["m1", "m2"]
    assert [d.display_name for d in descriptors] == ["m1", "m2"]
    assert [d.sorted for d in descriptors] == [FETCHED_SORT_BASE, FETCHED_SORT_BASE + 1]
    assert all(d.available for d in descriptors)
    assert all(d.provider == provider_info(ServiceProvider.SILICONFLOW) for d in descriptors)


def test_catalog_store_replaces_and_notifies():
    store = ModelCatalog(_catalog())
    seen = []
    unsubscribe = store.subscribe(seen.append)

    snapshot = store.replace_provider(ServiceProvider.ANTHROPIC, [_model("claude-new", ServiceProvider.ANTHROPIC)])

    assert store.snapshot() is snapshot
    assert seen == [snapshot]
    assert [m.name for m in store.for_provider(ServiceProvider.ANTHROPIC)] == ["claude-new"]

    unsubscribe()
    store.replace_provider(ServiceProvider.ANTHROPIC, [])
    assert len(seen) == 1


def test_catalog_store_restores_entries_when_a_listener_fails():
    store = ModelCatalog(_catalog())
    before = store.snapshot()

    def failing_listener(models):
        raise OSError("disk full")

    store.subscribe(failing_listener)
    with pytest.raises(OSError):
        store.replace_provider(ServiceProvider.ANTHROPIC, [_model("claude-new", ServiceProvider.ANTHROPIC)])

    assert store.snapshot() is before


def test_catalog_store_filters():
    store = ModelCatalog(_catalog())
    assert [m.name for m in store.for_provider(ServiceProvider.OPENAI)] == ["gpt-4o"]
    assert len(store.for_provider(ServiceProvider.OPENAI, available_only=False)) == 2
    assert len(store.available()) == 4
    assert len(store) == 5


def test_descriptor_is_immutable():
    model = _model("gpt-4o")
    with pytest.raises(ValidationError):
        model.name = "other"


def test_descriptor_round_trips_through_upstream_json_shape():
    payload = {
        "name": "gpt-4o",
        "displayName": "GPT-4o",
        "available": True,
        "sorted": 3,
        "provider": {"id": "openai", "providerName": "OpenAI", "providerType": "openai", "sorted": 1},
    }
    model = ModelDescriptor.model_validate(payload)
    assert model.display_name == "GPT-4o"
    assert model.provider_name is ServiceProvider.OPENAI
    assert model.model_dump(by_alias=True, mode="json") == payload


def test_split_model_value_uses_last_at_sign():
    assert split_model_value("gpt-4o@OpenAI") == ("gpt-4o", "OpenAI")
    assert split_model_value("org@model@SiliconFlow") == ("org@model", "SiliconFlow")
    assert split_model_value("gpt-4o") == ("gpt-4o", None)


def test_default_models_are_unique_and_start_with_openai():
    models = default_models()
    assert models[0].value == "gpt-4o-mini@OpenAI"
    keys = [m.key for m in models]
    assert len(keys) == len(set(keys))
