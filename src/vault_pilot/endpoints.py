"""Endpoint coverage checks: call every gateway endpoint once and tally results."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .constants import (
    DEFAULT_NETWORK,
    EXAMPLE_ASSET_ADDRESS,
    EXAMPLE_USER_ADDRESS,
    EXAMPLE_VAULT_ADDRESS,
)
from .filters import ApyInterval, FilterSpec
from .gateway.base import BaseGateway
from .gateway.errors import RemoteError
from .networks import NetworkForm, UnknownNetworkError, normalize_network
from .responses import describe_response
from .transactions import ActionKind, TransactionBuildError, TransactionBuilder

logger = logging.getLogger(__name__)

THIRTY_DAYS = 30 * 24 * 60 * 60


@dataclass(frozen=True)
class EndpointCheck:
    name: str
    call: Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class EndpointResult:
    name: str
    success: bool
    summary: str | None = None
    error: str | None = None


@dataclass
class EndpointCheckSummary:
    results: list[EndpointResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    @property
    def success_rate(self) -> int:
        if not self.results:
            return 0
        return round(self.successful / self.total * 100)


@dataclass(frozen=True)
class CheckTarget:
    user_address: str = EXAMPLE_USER_ADDRESS
    vault_address: str = EXAMPLE_VAULT_ADDRESS
    asset_address: str = EXAMPLE_ASSET_ADDRESS
    network: str = DEFAULT_NETWORK


def default_checks(
    gateway: BaseGateway,
    target: CheckTarget | None = None,
    now: int | None = None,
) -> list[EndpointCheck]:
    """One check per endpoint, with representative parameters."""
    t = target or CheckTarget()
    now = now if now is not None else int(time.time())
    builder = TransactionBuilder(gateway)

    vault_filters = FilterSpec(
        allowed_networks=["mainnet", "polygon"],
        disallowed_networks=["arbitrum"],
        allowed_assets=["USDC", "USDT", "DAI"],
        disallowed_assets=["WBTC"],
        allowed_protocols=["aave", "compound"],
        disallowed_protocols=["curve"],
        min_tvl=100000,
        max_tvl=1000000000,
        allowed_tags=["lending"],
    )
    position_filters = FilterSpec(
        allowed_networks=["mainnet", "polygon"],
        disallowed_networks=["arbitrum"],
        allowed_assets=["USDC", "USDT"],
        disallowed_assets=["WBTC"],
        allowed_protocols=["aave"],
        disallowed_protocols=["curve"],
        min_tvl=10000,
        max_tvl=10000000,
        only_transactional=True,
        allowed_tags=["lending"],
    )
    option_filters = FilterSpec(
        allowed_networks=["mainnet", "polygon"],
        disallowed_networks=["arbitrum"],
        allowed_assets=["USDC", "USDT"],
        disallowed_assets=["WBTC"],
        allowed_protocols=["aave", "compound"],
        disallowed_protocols=["curve"],
        min_tvl=100000,
        only_transactional=True,
        apy_interval=ApyInterval.SEVEN_DAY,
        min_usd_asset_value_threshold=100,
        always_return_assets=["USDC"],
        max_vaults_per_asset=3,
    )
    idle_filters = FilterSpec(
        allowed_networks=["mainnet", "polygon"],
        disallowed_networks=["arbitrum"],
        allowed_assets=["USDC", "USDT"],
        disallowed_assets=["WBTC"],
        min_usd_asset_value_threshold=10,
    )

    def action(kind: ActionKind, **kwargs: Any) -> Callable[[], Awaitable[Any]]:
        async def _call() -> Any:
            request = builder.prepare(
                kind,
                t.user_address,
                t.network,
                t.vault_address,
                asset_address=t.asset_address,
                simulate=True,
                **kwargs,
            )
            return await gateway.build_transaction(request)

        return _call

    checks = [
        EndpointCheck("GET /v1/benchmarks", gateway.get_benchmarks),
        EndpointCheck(
            "GET /v2/detailed-vaults (with all params)",
            lambda: gateway.list_vaults(vault_filters, page=0, per_page=5),
        ),
        EndpointCheck("GET /v2/detailed-vaults (no params)", gateway.list_vaults),
        EndpointCheck(
            "GET /v2/detailed-vaults (with tags)",
            lambda: gateway.list_vaults(
                FilterSpec(allowed_tags=["lending", "staking"]), per_page=3
            ),
        ),
        EndpointCheck(
            "GET /v2/detailed-vaults/{network}/{vault}",
            lambda: gateway.get_vault(t.network, t.vault_address),
        ),
        EndpointCheck(
            "GET /v2/detailed-vaults (CAIP-2 network)",
            lambda: gateway.get_vault(
                normalize_network(t.network, NetworkForm.CAIP2), t.vault_address
            ),
        ),
        EndpointCheck(
            "GET /v2/historical/{network}/{vault}",
            lambda: gateway.get_historical_apy(
                t.network,
                t.vault_address,
                interval=ApyInterval.SEVEN_DAY,
                page=0,
                per_page=10,
                from_timestamp=now - THIRTY_DAYS,
                to_timestamp=now,
            ),
        ),
    ]
    for interval in ApyInterval:
        checks.append(
            EndpointCheck(
                f"GET /v2/historical (apyInterval={interval.value})",
                lambda interval=interval: gateway.get_historical_apy(
                    t.network, t.vault_address, interval=interval, per_page=5
                ),
            )
        )
    checks += [
        EndpointCheck(
            "GET /v2/portfolio/positions/{user}",
            lambda: gateway.get_positions(t.user_address, position_filters),
        ),
        EndpointCheck(
            "GET /v2/portfolio/best-deposit-options/{user}",
            lambda: gateway.get_deposit_options(t.user_address, option_filters),
        ),
        EndpointCheck(
            "GET /v2/portfolio/idle-assets/{user}",
            lambda: gateway.get_idle_assets(t.user_address, idle_filters),
        ),
        EndpointCheck(
            "GET /v2/portfolio/returns/{user}/{network}/{vault}",
            lambda: gateway.get_vault_total_returns(
                t.user_address, t.network, t.vault_address
            ),
        ),
        EndpointCheck(
            "GET /v2/portfolio/events/{user}/{network}/{vault}",
            lambda: gateway.get_vault_holder_events(
                t.user_address, t.network, t.vault_address
            ),
        ),
        EndpointCheck(
            "GET /v2/transactions/context/{user}/{network}/{vault}",
            lambda: gateway.get_transactions_context(
                t.user_address, t.network, t.vault_address
            ),
        ),
        EndpointCheck(
            "GET /v2/transactions/deposit/{user}/{network}/{vault}",
            action(ActionKind.DEPOSIT, amount="1000000"),
        ),
        EndpointCheck(
            "GET /v2/transactions/redeem/{user}/{network}/{vault}",
            action(ActionKind.REDEEM, amount="500000", redeem_all=False),
        ),
        EndpointCheck(
            "GET /v2/transactions/claim-rewards/{user}/{network}/{vault}",
            action(ActionKind.CLAIM_REWARDS),
        ),
    ]
    return checks


async def run_endpoint_checks(checks: list[EndpointCheck]) -> EndpointCheckSummary:
    """Run checks one after another, logging each outcome."""
    summary = EndpointCheckSummary()
    for check in checks:
        try:
            response = await check.call()
        except (RemoteError, TransactionBuildError, UnknownNetworkError) as e:
            logger.error("FAILED %s: %s", check.name, e)
            summary.results.append(EndpointResult(check.name, False, error=str(e)))
            continue
        description = describe_response(response)
        logger.info("SUCCESS %s: %s", check.name, description)
        summary.results.append(EndpointResult(check.name, True, summary=description))

    logger.info(
        "Endpoint checks: %d total, %d successful, %d failed (%d%%)",
        summary.total,
        summary.successful,
        summary.failed,
        summary.success_rate,
    )
    return summary
