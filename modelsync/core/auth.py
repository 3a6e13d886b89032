"""Request headers for provider list-models calls."""

from __future__ import annotations

from typing import Dict

from modelsync import __version__
from modelsync.core.config import AccessConfig
from modelsync.core.providers import ServiceProvider


def build_user_agent() -> str:
    return f"modelsync/{__version__}"


def build_headers(provider: ServiceProvider, access: AccessConfig) -> Dict[str, str]:
    """Headers for an authenticated GET against ``provider``."""
    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "User-Agent": build_user_agent(),
    }
    api_key = access.api_key(provider)
    if api_key:
        headers["Authorization"] = f"Bearer {api_key.strip()}"
    return headers


__all__ = ["build_headers", "build_user_agent"]
