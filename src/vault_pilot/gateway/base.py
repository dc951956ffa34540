from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ..filters import ApyInterval, FilterSpec
from ..networks import NetworkForm
from ..responses import ApiResponse

if TYPE_CHECKING:
    from ..transactions import TransactionRequest


class BaseGateway(ABC):
    """Boundary to the remote vault-data service.

    Every method is a single round trip. Implementations raise
    ``RemoteError`` on any failed or malformed response and never
    substitute defaults.
    """

    # Network surface form the transaction endpoint expects in its path
    network_form: NetworkForm = NetworkForm.NAME

    def close(self) -> None:
        """Release any held connections."""

    @abstractmethod
    async def list_vaults(
        self,
        filters: FilterSpec | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> ApiResponse: ...

    @abstractmethod
    async def get_vault(self, network: str, vault_address: str) -> ApiResponse: ...

    @abstractmethod
    async def get_historical_apy(
        self,
        network: str,
        vault_address: str,
        interval: ApyInterval | None = None,
        page: int | None = None,
        per_page: int | None = None,
        from_timestamp: int | None = None,
        to_timestamp: int | None = None,
    ) -> ApiResponse: ...

    @abstractmethod
    async def get_positions(
        self, user_address: str, filters: FilterSpec | None = None
    ) -> ApiResponse: ...

    @abstractmethod
    async def get_deposit_options(
        self, user_address: str, filters: FilterSpec | None = None
    ) -> ApiResponse: ...

    @abstractmethod
    async def get_idle_assets(
        self, user_address: str, filters: FilterSpec | None = None
    ) -> ApiResponse: ...

    @abstractmethod
    async def build_transaction(self, request: TransactionRequest) -> ApiResponse: ...

    @abstractmethod
    async def get_benchmarks(self) -> ApiResponse: ...

    @abstractmethod
    async def get_vault_total_returns(
        self, user_address: str, network: str, vault_address: str
    ) -> ApiResponse: ...

    @abstractmethod
    async def get_vault_holder_events(
        self, user_address: str, network: str, vault_address: str
    ) -> ApiResponse: ...

    @abstractmethod
    async def get_transactions_context(
        self, user_address: str, network: str, vault_address: str
    ) -> ApiResponse: ...
