"""Typed records for vaults.fyi responses.

Response payloads are loosely shaped and many nested fields are optional.
Each record has a ``from_api`` constructor that resolves every missing field
to an explicit default in one place, so downstream code never probes raw
dictionaries.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from .responses import ApiResponse, extract_items

logger = logging.getLogger(__name__)


def _text(value: Any) -> str | None:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


def _decimal(value: Any) -> Decimal | None:
    """Parse a numeric field without going through float."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        logger.debug("Ignoring non-numeric value %r", value)
        return None
    if not result.is_finite():
        return None
    return result


def _quantity(value: Any) -> str | None:
    """Normalize a quantity to a decimal string."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value.strip() or None
    parsed = _decimal(value)
    return str(parsed) if parsed is not None else None


def _name_of(value: Any) -> str | None:
    """Name of an embedded object that may also be a plain string."""
    if isinstance(value, Mapping):
        return _text(value.get("name"))
    return _text(value)


def _network_of(value: Any) -> str | None:
    """Raw network surface form: short name, CAIP-2 string or ``eip155:<id>``."""
    if isinstance(value, Mapping):
        name = _text(value.get("name")) or _text(value.get("networkCaip"))
        if name:
            return name
        chain_id = value.get("chainId")
        if isinstance(chain_id, int) and not isinstance(chain_id, bool):
            return f"eip155:{chain_id}"
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return f"eip155:{value}"
    return _text(value)


@dataclass(frozen=True)
class Apy:
    """APY as fractions (0.05 == 5%)."""

    total: Decimal | None = None
    base: Decimal | None = None
    reward: Decimal | None = None

    @classmethod
    def from_api(cls, payload: Any, interval: str = "7day") -> "Apy":
        if isinstance(payload, Mapping):
            if "total" not in payload and isinstance(payload.get(interval), Mapping):
                payload = payload[interval]
            return cls(
                total=_decimal(payload.get("total")),
                base=_decimal(payload.get("base")),
                reward=_decimal(payload.get("reward")),
            )
        return cls(total=_decimal(payload))


def _tvl_usd(payload: Mapping[str, Any]) -> Decimal | None:
    tvl = payload.get("tvl")
    if isinstance(tvl, Mapping):
        return _decimal(tvl.get("usd"))
    if tvl is not None:
        return _decimal(tvl)
    return _decimal(payload.get("tvlUsd"))


@dataclass(frozen=True)
class AssetBalance:
    """A user's holding of one asset on one network, as fetched."""

    address: str | None
    symbol: str
    balance_native: str | None = None
    balance_usd: Decimal | None = None
    network: str | None = None
    decimals: int | None = None
    name: str | None = None

    @classmethod
    def from_api(
        cls, payload: Mapping[str, Any], network: str | None = None
    ) -> "AssetBalance":
        decimals = payload.get("decimals")
        return cls(
            address=_text(payload.get("address")),
            symbol=_text(payload.get("symbol")) or "UNKNOWN",
            balance_native=_quantity(payload.get("balanceNative")),
            balance_usd=_decimal(payload.get("balanceUsd")),
            network=_network_of(payload.get("network")) or network,
            decimals=decimals if isinstance(decimals, int) else None,
            name=_text(payload.get("name")),
        )


@dataclass(frozen=True)
class DepositOption:
    """A vault eligible to receive a deposit of some asset."""

    address: str
    name: str | None = None
    network: str | None = None
    protocol: str | None = None
    apy: Apy = field(default_factory=Apy)
    tvl_usd: Decimal | None = None
    asset_address: str | None = None
    asset_symbol: str | None = None
    is_transactional: bool = False
    is_app_featured: bool = False
    tags: tuple[str, ...] = ()

    @classmethod
    def from_api(
        cls,
        payload: Mapping[str, Any],
        owner: AssetBalance | None = None,
        apy_interval: str = "7day",
    ) -> "DepositOption":
        """Build an option, filling asset and network fields from ``owner``."""
        asset = payload.get("asset")
        asset = asset if isinstance(asset, Mapping) else {}
        tags = payload.get("tags")

        address = _text(payload.get("address"))
        if address is None:
            raise ValueError(f"Deposit option without vault address: {payload!r}")

        return cls(
            address=address,
            name=_text(payload.get("name")),
            network=_network_of(payload.get("network"))
            or (owner.network if owner else None),
            protocol=_name_of(payload.get("protocol")),
            apy=Apy.from_api(payload.get("apy"), interval=apy_interval),
            tvl_usd=_tvl_usd(payload),
            asset_address=_text(asset.get("address"))
            or (owner.address if owner else None),
            asset_symbol=_text(asset.get("symbol"))
            or (owner.symbol if owner else None),
            is_transactional=bool(payload.get("isTransactional", False)),
            is_app_featured=bool(payload.get("isAppFeatured", False)),
            tags=tuple(t for t in tags if isinstance(t, str))
            if isinstance(tags, list)
            else (),
        )


@dataclass(frozen=True)
class AssetDepositOptions:
    """One held asset together with its candidate vaults."""

    asset: AssetBalance
    deposit_options: tuple[DepositOption, ...] = ()


@dataclass(frozen=True)
class Position:
    """An existing vault position."""

    vault_address: str | None
    name: str | None = None
    network: str | None = None
    protocol: str | None = None
    asset_symbol: str | None = None
    balance_usd: Decimal | None = None
    apy: Apy = field(default_factory=Apy)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "Position":
        asset = payload.get("asset")
        asset = asset if isinstance(asset, Mapping) else {}
        return cls(
            vault_address=_text(payload.get("address")),
            name=_text(payload.get("name")),
            network=_network_of(payload.get("network")),
            protocol=_name_of(payload.get("protocol")),
            asset_symbol=_text(asset.get("symbol")),
            balance_usd=_decimal(asset.get("balanceUsd")),
            apy=Apy.from_api(payload.get("apy")),
        )


def parse_deposit_options(
    response: ApiResponse, apy_interval: str = "7day"
) -> list[AssetDepositOptions]:
    """Parse a best-deposit-options response into per-asset candidates."""
    result: list[AssetDepositOptions] = []
    for entry in extract_items(response, key="userBalances"):
        if not isinstance(entry, Mapping) or not isinstance(entry.get("asset"), Mapping):
            logger.debug("Skipping malformed user balance entry: %r", entry)
            continue
        balance = AssetBalance.from_api(entry["asset"])
        options = []
        for raw in entry.get("depositOptions") or []:
            if not isinstance(raw, Mapping):
                continue
            try:
                options.append(
                    DepositOption.from_api(raw, owner=balance, apy_interval=apy_interval)
                )
            except ValueError as e:
                logger.debug("Skipping deposit option for %s: %s", balance.symbol, e)
        result.append(AssetDepositOptions(asset=balance, deposit_options=tuple(options)))
    return result


def parse_idle_assets(response: ApiResponse) -> list[AssetBalance]:
    return [
        AssetBalance.from_api(item)
        for item in extract_items(response)
        if isinstance(item, Mapping)
    ]


def parse_positions(response: ApiResponse) -> list[Position]:
    return [
        Position.from_api(item)
        for item in extract_items(response)
        if isinstance(item, Mapping)
    ]


def parse_vaults(response: ApiResponse, apy_interval: str = "7day") -> list[DepositOption]:
    vaults = []
    for item in extract_items(response):
        if not isinstance(item, Mapping):
            continue
        try:
            vaults.append(DepositOption.from_api(item, apy_interval=apy_interval))
        except ValueError as e:
            logger.debug("Skipping vault entry: %s", e)
    return vaults
