"""List-models endpoint resolution."""

from __future__ import annotations

from typing import Optional

from modelsync.core.providers import ServiceProvider, get_capability


def default_base_url(provider: ServiceProvider, is_app: bool = False) -> str:
    """Base URL used when nothing is stored for ``provider``.

    Desktop/embedded clients call the vendor directly; the hosted web client
    goes through the application's own proxy path.
    """
    capability = get_capability(provider)
    return capability.public_base_url if is_app else capability.proxy_path


def normalize_base_url(provider: ServiceProvider, base_url: str, is_app: bool = False) -> str:
    capability = get_capability(provider)
    base = (base_url or "").strip() or default_base_url(provider, is_app)
    if base.endswith("/"):
        base = base[:-1]
    if not base.startswith(("http://", "https://", capability.proxy_path)):
        base = "https://" + base
    return base


def resolve_list_models_endpoint(
    provider: ServiceProvider, stored_base_url: str = "", is_app: bool = False
) -> Optional[str]:
    """Build the list-models URL for ``provider``.

    Returns ``None`` when the provider has no list-models API. Passing an
    already resolved URL back in returns it unchanged.
    """
    capability = get_capability(provider)
    if not capability.list_models_path:
        return None
    base = normalize_base_url(provider, stored_base_url, is_app)
    suffix = f"/{capability.list_models_path}"
    if base.endswith(suffix):
        return base
    return f"{base}{suffix}"


__all__ = ["default_base_url", "normalize_base_url", "resolve_list_models_endpoint"]
