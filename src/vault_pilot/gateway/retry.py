"""Caller-side retry policy for gateway calls.

The gateway itself never retries. Callers that want retries on rate limits
and transient server errors wrap it in ``RetryingGateway``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

import backoff

from ..filters import ApyInterval, FilterSpec
from ..responses import ApiResponse
from .base import BaseGateway
from .errors import RemoteError

if TYPE_CHECKING:
    from ..transactions import TransactionRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _on_backoff(details: Any) -> None:
    logger.warning(
        "Gateway call %s failed (attempt %d), retrying in %.1fs: %s",
        getattr(details["target"], "__name__", details["target"]),
        details["tries"],
        details.get("wait", 0.0),
        details.get("exception"),
    )


def _on_giveup(details: Any) -> None:
    logger.error(
        "Gateway call %s failed after %d attempt(s): %s",
        getattr(details["target"], "__name__", details["target"]),
        details["tries"],
        details.get("exception"),
    )


class RetryingGateway(BaseGateway):
    """Delegates to another gateway, retrying retryable ``RemoteError``s."""

    def __init__(
        self,
        inner: BaseGateway,
        max_tries: int = 3,
        max_time: float | None = None,
        factor: float = 1.0,
    ):
        self.inner = inner
        self.factor = factor
        self.network_form = inner.network_form
        self.max_tries = max_tries
        self.max_time = max_time

    async def _retry(
        self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        wrapped = backoff.on_exception(
            backoff.expo,
            RemoteError,
            max_tries=self.max_tries,
            max_time=self.max_time,
            factor=self.factor,
            giveup=lambda e: not e.retryable,
            jitter=backoff.full_jitter,
            on_backoff=_on_backoff,
            on_giveup=_on_giveup,
        )(fn)
        return await wrapped(*args, **kwargs)

    async def list_vaults(
        self,
        filters: FilterSpec | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> ApiResponse:
        return await self._retry(self.inner.list_vaults, filters, page, per_page)

    async def get_vault(self, network: str, vault_address: str) -> ApiResponse:
        return await self._retry(self.inner.get_vault, network, vault_address)

    async def get_historical_apy(
        self,
        network: str,
        vault_address: str,
        interval: ApyInterval | None = None,
        page: int | None = None,
        per_page: int | None = None,
        from_timestamp: int | None = None,
        to_timestamp: int | None = None,
    ) -> ApiResponse:
        return await self._retry(
            self.inner.get_historical_apy,
            network,
            vault_address,
            interval,
            page,
            per_page,
            from_timestamp,
            to_timestamp,
        )

    async def get_positions(
        self, user_address: str, filters: FilterSpec | None = None
    ) -> ApiResponse:
        return await self._retry(self.inner.get_positions, user_address, filters)

    async def get_deposit_options(
        self, user_address: str, filters: FilterSpec | None = None
    ) -> ApiResponse:
        return await self._retry(self.inner.get_deposit_options, user_address, filters)

    async def get_idle_assets(
        self, user_address: str, filters: FilterSpec | None = None
    ) -> ApiResponse:
        return await self._retry(self.inner.get_idle_assets, user_address, filters)

    async def build_transaction(self, request: TransactionRequest) -> ApiResponse:
        return await self._retry(self.inner.build_transaction, request)

    async def get_benchmarks(self) -> ApiResponse:
        return await self._retry(self.inner.get_benchmarks)

    async def get_vault_total_returns(
        self, user_address: str, network: str, vault_address: str
    ) -> ApiResponse:
        return await self._retry(
            self.inner.get_vault_total_returns, user_address, network, vault_address
        )

    async def get_vault_holder_events(
        self, user_address: str, network: str, vault_address: str
    ) -> ApiResponse:
        return await self._retry(
            self.inner.get_vault_holder_events, user_address, network, vault_address
        )

    async def get_transactions_context(
        self, user_address: str, network: str, vault_address: str
    ) -> ApiResponse:
        return await self._retry(
            self.inner.get_transactions_context, user_address, network, vault_address
        )

    def close(self) -> None:
        self.inner.close()
