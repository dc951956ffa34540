"""Best-deposit-option ranking."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from .filters import FilterSpec
from .models import AssetBalance, AssetDepositOptions, DepositOption
from .networks import network_key

logger = logging.getLogger(__name__)

RankedOptions = dict[str, tuple[DepositOption, ...]]


def ranking_key(option: DepositOption) -> tuple[bool, Decimal, bool, Decimal, str]:
    """Total order: APY desc, then TVL desc, then vault address asc.

    Options without an APY or TVL sort after those that have one.
    """
    apy = option.apy.total
    tvl = option.tvl_usd
    return (
        apy is None,
        -apy if apy is not None else Decimal(0),
        tvl is None,
        -tvl if tvl is not None else Decimal(0),
        option.address.lower(),
    )


def passes_value_floor(asset: AssetBalance, filters: FilterSpec) -> bool:
    """Whether an asset's USD balance clears the floor (always-returned assets always do)."""
    if filters.is_always_returned(asset.symbol):
        return True
    threshold = filters.min_usd_asset_value_threshold
    if threshold is None:
        return True
    return asset.balance_usd is not None and asset.balance_usd >= threshold


def apply_cap(ranked: Mapping[str, tuple[DepositOption, ...]], cap: int | None) -> RankedOptions:
    if cap is None:
        return dict(ranked)
    return {symbol: options[:cap] for symbol, options in ranked.items()}


def reinsert_always_return(
    capped: Mapping[str, tuple[DepositOption, ...]],
    ranked: Mapping[str, tuple[DepositOption, ...]],
    filters: FilterSpec,
) -> RankedOptions:
    """Restore the top option of any always-returned asset the cap emptied."""
    result = dict(capped)
    for symbol, options in ranked.items():
        if options and not result.get(symbol) and filters.is_always_returned(symbol):
            logger.debug("Re-inserting top option for always-returned asset %s", symbol)
            result[symbol] = options[:1]
    return result


def rank_deposit_options(
    candidates: Iterable[AssetDepositOptions], filters: FilterSpec
) -> RankedOptions:
    """Rank each retained asset's deposit options.

    Args:
        candidates: Per-asset balances with their candidate vaults
        filters: Filters, value floor, cap and always-return assets

    Returns:
        Mapping of asset symbol to ranked, capped options. Assets that were
        retained but have no eligible vault map to an empty tuple; assets
        below the value floor or filtered out are absent. Inputs are not
        modified.

    Assets sharing a symbol across networks are merged into one entry.
    """
    symbols: dict[str, str] = {}
    pools: dict[str, list[DepositOption]] = {}
    seen: dict[str, set[tuple[str | None, str]]] = {}

    for entry in candidates:
        asset = entry.asset
        if not passes_value_floor(asset, filters):
            logger.debug(
                "Dropping %s on %s: balance %s USD below floor %s",
                asset.symbol,
                asset.network,
                asset.balance_usd,
                filters.min_usd_asset_value_threshold,
            )
            continue
        if not filters.matches(asset):
            logger.debug("Dropping %s on %s: excluded by filters", asset.symbol, asset.network)
            continue

        key = asset.symbol.casefold()
        symbols.setdefault(key, asset.symbol)
        pool = pools.setdefault(key, [])
        pool_seen = seen.setdefault(key, set())
        for option in entry.deposit_options:
            identity = (network_key(option.network), option.address.lower())
            if identity in pool_seen or not filters.matches(option):
                continue
            pool_seen.add(identity)
            pool.append(option)

    ranked = {
        symbols[key]: tuple(sorted(pool, key=ranking_key)) for key, pool in pools.items()
    }
    capped = apply_cap(ranked, filters.max_vaults_per_asset)
    result = reinsert_always_return(capped, ranked, filters)

    logger.info(
        "Ranked %d option(s) across %d asset(s)",
        sum(len(options) for options in result.values()),
        len(result),
    )
    return result


def pick_option(
    ranked: Mapping[str, tuple[DepositOption, ...]],
    symbol: str | None = None,
    index: int = 0,
) -> tuple[str, DepositOption] | None:
    """Choose one ranked option.

    With no ``symbol`` the first asset that has an option at ``index`` is
    used. Returns None when nothing matches.
    """
    if index < 0:
        raise ValueError(f"index must not be negative, got {index}")
    for asset_symbol, options in ranked.items():
        if symbol is not None and asset_symbol.casefold() != symbol.casefold():
            continue
        if index < len(options):
            return asset_symbol, options[index]
    return None


def find_balance(
    candidates: Iterable[AssetDepositOptions], option: DepositOption
) -> AssetBalance | None:
    """The balance an option was offered for, matched by symbol and network."""
    symbol = (option.asset_symbol or "").casefold()
    fallback: AssetBalance | None = None
    for entry in candidates:
        asset = entry.asset
        if asset.symbol.casefold() != symbol:
            continue
        if any(o.address.lower() == option.address.lower() for o in entry.deposit_options):
            return asset
        if fallback is None and network_key(asset.network) == network_key(option.network):
            fallback = asset
    return fallback
