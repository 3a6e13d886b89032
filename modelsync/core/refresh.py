"""Fetch a provider's model list, confirm with the user and merge it into the catalog.

The workflow is a small state machine::

    idle -> fetching -> confirming -> applying -> idle

Fetch failures return to ``idle`` from ``fetching``; a dismissed
confirmation returns to ``idle`` from ``confirming``. Only one run may be
active per workflow; a second ``trigger`` while one is in flight is rejected
with a notice instead of being queued.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Union

import httpx

from modelsync.core.auth import build_headers
from modelsync.core.catalog import ModelCatalog, ModelDescriptor, descriptors_from_ids
from modelsync.core.config import AccessConfig, ConfigManager, ModelConfig
from modelsync.core.endpoints import resolve_list_models_endpoint
from modelsync.core.errors import (
    ConcurrentRefreshError,
    EmptyResultError,
    RefreshError,
    StoreFailureError,
    TransportFailureError,
    UnsupportedProviderError,
)
from modelsync.core.providers import ServiceProvider
from modelsync.core.reconcile import ReconcileReport, UpdateConfig, reconcile_model_config
from modelsync.utils.log import get_logger

logger = get_logger()

CONFIRM_TITLE = "Refresh model list"
FAILURE_NOTICE = "Failed to refresh the model list"

Notify = Callable[[str], None]
Confirm = Callable[[str, str], Awaitable[bool]]
HeadersFactory = Callable[[ServiceProvider], Mapping[str, str]]


class RefreshState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    CONFIRMING = "confirming"
    APPLYING = "applying"


class RefreshStatus(str, Enum):
    """How a ``trigger`` call ended."""

    APPLIED = "applied"
    CANCELLED = "cancelled"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass
class RefreshOutcome:
    status: RefreshStatus
    provider: Optional[ServiceProvider] = None
    count: int = 0
    error_code: Optional[str] = None
    message: str = ""
    report: Optional[ReconcileReport] = None


def parse_model_ids(payload: Any) -> List[str]:
    """Extract model identifiers from a ``{"data": [{"id": ...}, ...]}`` body."""
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise TransportFailureError("Unexpected model list payload")
    model_ids: List[str] = []
    for item in payload["data"]:
        model_id = item.get("id") if isinstance(item, dict) else None
        if isinstance(model_id, str) and model_id.strip():
            model_ids.append(model_id.strip())
        else:
            logger.debug("[refresh] Skipping model entry without id", extra={"entry": item})
    return model_ids


def confirm_body(count: int, provider: ServiceProvider) -> str:
    return f"Fetched {count} models. Update the model list for {provider.value}?"


class RefreshWorkflow:
    """Single-flight model list refresh for one catalog/config pair."""

    def __init__(
        self,
        *,
        catalog: ModelCatalog,
        get_config: Callable[[], ModelConfig],
        update_config: UpdateConfig,
        get_access: Callable[[], AccessConfig],
        notify: Notify,
        confirm: Confirm,
        headers_factory: Optional[HeadersFactory] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._catalog = catalog
        self._get_config = get_config
        self._update_config = update_config
        self._get_access = get_access
        self._notify = notify
        self._confirm = confirm
        self._headers_factory = headers_factory or (
            lambda provider: build_headers(provider, self._get_access())
        )
        self._client = client
        self._state = RefreshState.IDLE
        self._refreshing = False

    @classmethod
    def from_manager(
        cls,
        manager: ConfigManager,
        *,
        notify: Notify,
        confirm: Confirm,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "RefreshWorkflow":
        return cls(
            catalog=manager.get_catalog(),
            get_config=manager.get_model_config,
            update_config=manager.update_model_config,
            get_access=manager.get_access_config,
            notify=notify,
            confirm=confirm,
            client=client,
        )

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    def _set_state(self, state: RefreshState, provider: Optional[ServiceProvider] = None) -> None:
        if state == self._state:
            return
        logger.debug(
            "[refresh] State change",
            extra={
                "from": self._state.value,
                "to": state.value,
                "provider": provider.value if provider else None,
            },
        )
        self._state = state

    def _reject(self, error: RefreshError, provider: Optional[ServiceProvider]) -> RefreshOutcome:
        logger.info(
            "[refresh] Refresh rejected",
            extra={"error_code": error.error_code, "provider": provider.value if provider else None},
        )
        self._notify(str(error))
        return RefreshOutcome(
            RefreshStatus.REJECTED, provider, error_code=error.error_code, message=str(error)
        )

    async def trigger(
        self, provider: Optional[Union[ServiceProvider, str]] = None
    ) -> RefreshOutcome:
        """Run one refresh for ``provider`` (defaults to the selected chat provider).

        Never raises for refresh failures; every outcome is reported through
        ``notify`` and the returned :class:`RefreshOutcome`.
        """
        if self._refreshing:
            return self._reject(ConcurrentRefreshError(), None)

        if provider is None:
            target = self._get_config().provider_name
        else:
            try:
                target = ServiceProvider(provider)
            except ValueError:
                return self._reject(UnsupportedProviderError(str(provider)), None)
        access = self._get_access()
        endpoint = resolve_list_models_endpoint(
            target, access.stored_base_url(target), access.is_app
        )
        if endpoint is None:
            return self._reject(UnsupportedProviderError(target.value), target)

        self._refreshing = True
        try:
            self._set_state(RefreshState.FETCHING, target)
            try:
                fetched = await self._fetch(target, endpoint, access.refresh_timeout_sec)
            except RefreshError as exc:
                logger.warning(
                    "[refresh] Failed to refresh model list: %s",
                    exc,
                    extra={"error_code": exc.error_code, "provider": target.value, "endpoint": endpoint},
                )
                notice = str(exc) if isinstance(exc, EmptyResultError) else FAILURE_NOTICE
                self._notify(notice)
                return RefreshOutcome(
                    RefreshStatus.FAILED, target, error_code=exc.error_code, message=str(exc)
                )

            self._set_state(RefreshState.CONFIRMING, target)
            if not await self._ask_confirmation(fetched, target):
                logger.info(
                    "[refresh] Refresh cancelled by user",
                    extra={"provider": target.value, "count": len(fetched)},
                )
                return RefreshOutcome(RefreshStatus.CANCELLED, target, count=len(fetched))

            self._set_state(RefreshState.APPLYING, target)
            try:
                snapshot = self._catalog.replace_provider(target, fetched)
                report = reconcile_model_config(self._get_config(), snapshot, self._update_config)
            except Exception as exc:  # noqa: BLE001
                error = StoreFailureError(f"{type(exc).__name__}: {exc}")
                logger.exception(
                    "[refresh] Failed to apply fetched model list",
                    extra={"error_code": error.error_code, "provider": target.value},
                )
                self._notify(FAILURE_NOTICE)
                return RefreshOutcome(
                    RefreshStatus.FAILED, target, error_code=error.error_code, message=str(error)
                )
            message = f"Model list updated: {len(fetched)} models"
            logger.info(
                "[refresh] Model list updated",
                extra={
                    "provider": target.value,
                    "count": len(fetched),
                    "catalog_size": len(snapshot),
                    "repairs": len(report.repairs),
                },
            )
            self._notify(message)
            return RefreshOutcome(
                RefreshStatus.APPLIED, target, count=len(fetched), message=message, report=report
            )
        finally:
            self._refreshing = False
            self._set_state(RefreshState.IDLE, target)

    async def _ask_confirmation(
        self, fetched: List[ModelDescriptor], provider: ServiceProvider
    ) -> bool:
        try:
            return bool(await self._confirm(CONFIRM_TITLE, confirm_body(len(fetched), provider)))
        except Exception as exc:  # noqa: BLE001
            # A presentation that goes away without answering counts as a dismissal.
            logger.warning(
                "[refresh] Confirmation closed without an answer: %s: %s",
                type(exc).__name__,
                exc,
                extra={"provider": provider.value},
            )
            return False

    async def _fetch(
        self, provider: ServiceProvider, endpoint: str, timeout: Optional[float]
    ) -> List[ModelDescriptor]:
        try:
            headers = dict(self._headers_factory(provider))
        except Exception as exc:  # noqa: BLE001
            raise TransportFailureError(
                f"Failed to build request headers: {type(exc).__name__}: {exc}"
            ) from exc
        logger.info(
            "[refresh] Fetching model list",
            extra={"provider": provider.value, "endpoint": endpoint},
        )
        request_timeout = timeout if timeout and timeout > 0 else None
        client_timeout = httpx.USE_CLIENT_DEFAULT if request_timeout is None else request_timeout
        try:
            if self._client is not None:
                response = await self._client.get(endpoint, headers=headers, timeout=client_timeout)
            else:
                async with httpx.AsyncClient(timeout=request_timeout) as client:
                    response = await client.get(endpoint, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransportFailureError(f"Request timed out: {exc}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportFailureError(f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            raise TransportFailureError(
                f"HTTP error! status: {response.status_code}", status_code=response.status_code
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportFailureError("Model list response is not JSON") from exc

        descriptors = descriptors_from_ids(provider, parse_model_ids(payload))
        if not descriptors:
            raise EmptyResultError()
        return descriptors


__all__ = [
    "CONFIRM_TITLE",
    "FAILURE_NOTICE",
    "RefreshOutcome",
    "RefreshState",
    "RefreshStatus",
    "RefreshWorkflow",
    "confirm_body",
    "parse_model_ids",
]
