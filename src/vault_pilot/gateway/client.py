"""HTTP client for the vaults.fyi API."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import requests

from ..constants import DEFAULT_API_URL
from ..filters import ApyInterval, FilterSpec, QueryScope
from ..networks import NetworkForm
from ..responses import ApiResponse
from ..settings import MissingApiKeyError
from .base import BaseGateway
from .errors import RemoteError

if TYPE_CHECKING:
    from ..settings import PilotSettings
    from ..transactions import TransactionRequest

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    return quote(str(value).strip(), safe=":")


def _response_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class VaultsApiClient(BaseGateway):
    """Client for the vaults.fyi REST API using the requests library.

    Calls run in a worker thread so they can be awaited. There is no retry,
    caching or pagination here; wrap the client for those.
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = DEFAULT_API_URL,
        timeout: float | None = None,
        network_form: NetworkForm = NetworkForm.NAME,
        session: requests.Session | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: vaults.fyi API key, sent as ``x-api-key``
            base_url: API root URL
            timeout: Per-request socket timeout in seconds (None waits indefinitely)
            network_form: Network form the transaction endpoint expects
            session: Optional pre-configured requests session

        Raises:
            MissingApiKeyError: If no API key is given
        """
        if not api_key:
            raise MissingApiKeyError()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.network_form = network_form
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "x-api-key": api_key,
                "Accept": "application/json",
            }
        )

    @classmethod
    def from_settings(cls, settings: PilotSettings) -> "VaultsApiClient":
        return cls(
            api_key=settings.api_key_required,
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
            network_form=settings.network_form,
        )

    def close(self) -> None:
        self.session.close()

    def _get(self, path: str, params: dict[str, Any] | None = None) -> ApiResponse:
        query = {k: v for k, v in (params or {}).items() if v is not None}
        logger.debug("GET %s params=%s", path, query)
        try:
            response = self.session.get(
                f"{self.base_url}{path}", params=query, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise RemoteError(None, str(e), "GET", path) from e

        if not response.ok:
            body = _response_body(response)
            logger.error("GET %s returned %d: %s", path, response.status_code, body)
            raise RemoteError(response.status_code, body, "GET", path)

        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(
                response.status_code,
                response.text,
                "GET",
                path,
                message="Malformed JSON response",
            ) from e

    async def _call(self, path: str, params: dict[str, Any] | None = None) -> ApiResponse:
        return await asyncio.to_thread(self._get, path, params)

    async def list_vaults(
        self,
        filters: FilterSpec | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> ApiResponse:
        params = filters.to_query(QueryScope.VAULTS) if filters else {}
        params.update({"page": page, "perPage": per_page})
        return await self._call("/v2/detailed-vaults", params)

    async def get_vault(self, network: str, vault_address: str) -> ApiResponse:
        return await self._call(
            f"/v2/detailed-vaults/{_segment(network)}/{_segment(vault_address)}"
        )

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
        params = {
            "apyInterval": ApyInterval(interval).value if interval else None,
            "page": page,
            "perPage": per_page,
            "fromTimestamp": from_timestamp,
            "toTimestamp": to_timestamp,
        }
        return await self._call(
            f"/v2/historical/{_segment(network)}/{_segment(vault_address)}", params
        )

    async def get_positions(
        self, user_address: str, filters: FilterSpec | None = None
    ) -> ApiResponse:
        params = filters.to_query(QueryScope.POSITIONS) if filters else {}
        return await self._call(
            f"/v2/portfolio/positions/{_segment(user_address)}", params
        )

    async def get_deposit_options(
        self, user_address: str, filters: FilterSpec | None = None
    ) -> ApiResponse:
        params = filters.to_query(QueryScope.DEPOSIT_OPTIONS) if filters else {}
        return await self._call(
            f"/v2/portfolio/best-deposit-options/{_segment(user_address)}", params
        )

    async def get_idle_assets(
        self, user_address: str, filters: FilterSpec | None = None
    ) -> ApiResponse:
        params = filters.to_query(QueryScope.IDLE_ASSETS) if filters else {}
        return await self._call(
            f"/v2/portfolio/idle-assets/{_segment(user_address)}", params
        )

    async def build_transaction(self, request: TransactionRequest) -> ApiResponse:
        path = request.path_params()
        return await self._call(
            "/v2/transactions/{action}/{user}/{network}/{vault}".format(
                action=_segment(path["action"]),
                user=_segment(path["userAddress"]),
                network=_segment(path["network"]),
                vault=_segment(path["vaultAddress"]),
            ),
            request.query_params(),
        )

    async def get_benchmarks(self) -> ApiResponse:
        return await self._call("/v1/benchmarks")

    def _user_vault_path(
        self, prefix: str, user_address: str, network: str, vault_address: str
    ) -> str:
        return (
            f"{prefix}/{_segment(user_address)}/{_segment(network)}/"
            f"{_segment(vault_address)}"
        )

    async def get_vault_total_returns(
        self, user_address: str, network: str, vault_address: str
    ) -> ApiResponse:
        return await self._call(
            self._user_vault_path(
                "/v2/portfolio/returns", user_address, network, vault_address
            )
        )

    async def get_vault_holder_events(
        self, user_address: str, network: str, vault_address: str
    ) -> ApiResponse:
        return await self._call(
            self._user_vault_path(
                "/v2/portfolio/events", user_address, network, vault_address
            )
        )

    async def get_transactions_context(
        self, user_address: str, network: str, vault_address: str
    ) -> ApiResponse:
        return await self._call(
            self._user_vault_path(
                "/v2/transactions/context", user_address, network, vault_address
            )
        )
