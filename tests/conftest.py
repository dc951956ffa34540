from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

import pytest

from vault_pilot.gateway.base import BaseGateway
from vault_pilot.models import Apy, AssetBalance, AssetDepositOptions, DepositOption
from vault_pilot.settings import PilotSettings
from vault_pilot.state import AppState

USER = "0xdb79e7e9e1412457528e40db9fcdbe69f558777d"
VAULT_A = "0x" + "a" * 40
VAULT_B = "0x" + "b" * 40
VAULT_C = "0x" + "c" * 40
USDC_ADDRESS = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
USDT_ADDRESS = "0xdac17f958d2ee523a2206206994597c13d831ec7"

ENV_VARS = (
    "VAULT_PILOT_API_KEY",
    "VAULTS_FYI_API_KEY",
    "API_KEY",
    "VAULT_PILOT_USER_ADDRESS",
    "VAULT_PILOT_NETWORK",
    "VAULT_PILOT_OUTPUT_FORMAT",
    "VAULT_PILOT_LOG_LEVEL",
    "VAULT_PILOT_RETRY_ATTEMPTS",
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the developer's env, .env and config files out of every test."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("VAULT_PILOT_CONFIG", str(tmp_path / "missing.toml"))
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class FakeGateway(BaseGateway):
    """In-memory gateway: each method answers from ``responses[name]``.

    A response may be a value, an exception instance (raised) or a callable
    taking the call arguments.
    """

    def __init__(self, responses: dict[str, Any] | None = None):
        self.responses = responses or {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.closed = False

    async def _answer(self, name: str, *args: Any) -> Any:
        self.calls.append((name, args))
        handler = self.responses.get(name)
        if isinstance(handler, BaseException):
            raise handler
        if callable(handler):
            return handler(*args)
        return handler

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]

    async def list_vaults(self, filters=None, page=None, per_page=None):
        return await self._answer("list_vaults", filters, page, per_page)

    async def get_vault(self, network, vault_address):
        return await self._answer("get_vault", network, vault_address)

    async def get_historical_apy(
        self,
        network,
        vault_address,
        interval=None,
        page=None,
        per_page=None,
        from_timestamp=None,
        to_timestamp=None,
    ):
        return await self._answer("get_historical_apy", network, vault_address, interval)

    async def get_positions(self, user_address, filters=None):
        return await self._answer("get_positions", user_address, filters)

    async def get_deposit_options(self, user_address, filters=None):
        return await self._answer("get_deposit_options", user_address, filters)

    async def get_idle_assets(self, user_address, filters=None):
        return await self._answer("get_idle_assets", user_address, filters)

    async def build_transaction(self, request):
        return await self._answer("build_transaction", request)

    async def get_benchmarks(self):
        return await self._answer("get_benchmarks")

    async def get_vault_total_returns(self, user_address, network, vault_address):
        return await self._answer(
            "get_vault_total_returns", user_address, network, vault_address
        )

    async def get_vault_holder_events(self, user_address, network, vault_address):
        return await self._answer(
            "get_vault_holder_events", user_address, network, vault_address
        )

    async def get_transactions_context(self, user_address, network, vault_address):
        return await self._answer(
            "get_transactions_context", user_address, network, vault_address
        )

    def close(self) -> None:
        self.closed = True


def make_option(
    address: str,
    apy: str | None,
    tvl: str | None = "1000000",
    symbol: str = "USDC",
    network: str = "mainnet",
    protocol: str = "aave",
    **kwargs: Any,
) -> DepositOption:
    return DepositOption(
        address=address,
        name=kwargs.pop("name", f"{protocol} {symbol}"),
        network=network,
        protocol=protocol,
        apy=Apy(total=Decimal(apy) if apy is not None else None),
        tvl_usd=Decimal(tvl) if tvl is not None else None,
        asset_address=kwargs.pop("asset_address", USDC_ADDRESS),
        asset_symbol=symbol,
        **kwargs,
    )


def make_asset(
    symbol: str = "USDC",
    balance_usd: str | None = "500",
    network: str = "mainnet",
    address: str = USDC_ADDRESS,
    options: tuple[DepositOption, ...] = (),
) -> AssetDepositOptions:
    return AssetDepositOptions(
        asset=AssetBalance(
            address=address,
            symbol=symbol,
            balance_native="500000000",
            balance_usd=Decimal(balance_usd) if balance_usd is not None else None,
            network=network,
            decimals=6,
        ),
        deposit_options=options,
    )


def deposit_options_response(*entries: dict[str, Any]) -> dict[str, Any]:
    return {"userBalances": list(entries)}


def raw_entry(
    symbol: str,
    balance_usd: float,
    options: list[dict[str, Any]],
    address: str = USDC_ADDRESS,
    network: str = "mainnet",
) -> dict[str, Any]:
    return {
        "asset": {
            "address": address,
            "symbol": symbol,
            "decimals": 6,
            "balanceNative": "1000000",
            "balanceUsd": balance_usd,
            "network": {"name": network},
        },
        "depositOptions": options,
    }


def raw_option(address: str, apy: float, tvl: float = 1_000_000, **extra: Any) -> dict[str, Any]:
    option = {
        "address": address,
        "name": f"Vault {address[-4:]}",
        "network": {"name": "mainnet", "chainId": 1},
        "protocol": {"name": "aave"},
        "apy": {"total": apy, "base": apy, "reward": 0},
        "tvl": {"usd": tvl},
        "isTransactional": True,
    }
    option.update(extra)
    return option


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def state():
    settings = PilotSettings(api_key="test-key", user_address=USER)
    return AppState(settings=settings, logger=logging.getLogger("vault_pilot.test"))
