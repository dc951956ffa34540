"""Declarative inclusion/exclusion criteria for vaults and assets."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from .models import AssetBalance, DepositOption
from .networks import network_key


class FilterSpecError(ValueError):
    """Base class for invalid filter construction."""


class ConflictingFilterError(FilterSpecError):
    """Raised when an allow-set and a deny-set share values."""

    def __init__(self, dimension: str, overlap: Iterable[str]):
        self.dimension = dimension
        self.overlap = tuple(overlap)
        super().__init__(
            f"Conflicting {dimension} filter: {', '.join(self.overlap)} "
            "both allowed and disallowed"
        )


class InvalidRangeError(FilterSpecError):
    """Raised when a numeric bound is out of range or min exceeds max."""


class ApyInterval(str, Enum):
    ONE_DAY = "1day"
    SEVEN_DAY = "7day"
    THIRTY_DAY = "30day"


class QueryScope(str, Enum):
    """Which endpoint a filter is rendered for; each accepts a different subset."""

    VAULTS = "vaults"
    POSITIONS = "positions"
    DEPOSIT_OPTIONS = "deposit_options"
    IDLE_ASSETS = "idle_assets"


def _fold(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip().casefold() or None


def _unique(values: Iterable[str] | None) -> tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        values = [values]
    seen: dict[str, str] = {}
    for value in values:
        text = str(value).strip()
        if text:
            seen.setdefault(text.casefold(), text)
    return tuple(seen.values())


def _number(name: str, value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise FilterSpecError(f"{name} must be numeric, got {value!r}")
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise FilterSpecError(f"{name} must be numeric, got {value!r}") from None
    if not parsed.is_finite():
        raise InvalidRangeError(f"{name} must be finite, got {value!r}")
    return parsed


def _render_number(value: Decimal) -> str:
    return format(value.normalize(), "f")


def _keys(values: Iterable[str], key: Callable[[Any], str | None]) -> set[str]:
    return {k for k in (key(v) for v in values) if k is not None}


def _allowed(
    values: Iterable[Any],
    allowed: tuple[str, ...],
    denied: tuple[str, ...],
    key: Callable[[Any], str | None],
) -> bool:
    value_keys = _keys(values, key)
    if allowed and not value_keys & _keys(allowed, key):
        return False
    return not value_keys & _keys(denied, key)


@dataclass(frozen=True)
class FilterSpec:
    """Immutable filter, validated on construction.

    Set-valued fields accept any iterable of strings and are stored as
    de-duplicated tuples in the order given. Symbols, protocols and tags
    compare case-insensitively; networks compare by canonical chain name.
    """

    allowed_networks: tuple[str, ...] = ()
    disallowed_networks: tuple[str, ...] = ()
    allowed_assets: tuple[str, ...] = ()
    disallowed_assets: tuple[str, ...] = ()
    allowed_protocols: tuple[str, ...] = ()
    disallowed_protocols: tuple[str, ...] = ()
    allowed_tags: tuple[str, ...] = ()
    disallowed_tags: tuple[str, ...] = ()
    min_tvl: Decimal | None = None
    max_tvl: Decimal | None = None
    only_transactional: bool = False
    only_app_featured: bool = False
    min_usd_asset_value_threshold: Decimal | None = None
    max_vaults_per_asset: int | None = None
    always_return_assets: tuple[str, ...] = ()
    apy_interval: ApyInterval | None = None
    min_apy: Decimal | None = None

    def __post_init__(self) -> None:
        for name in (
            "allowed_networks",
            "disallowed_networks",
            "allowed_assets",
            "disallowed_assets",
            "allowed_protocols",
            "disallowed_protocols",
            "allowed_tags",
            "disallowed_tags",
            "always_return_assets",
        ):
            object.__setattr__(self, name, _unique(getattr(self, name)))

        for name in ("min_tvl", "max_tvl", "min_usd_asset_value_threshold", "min_apy"):
            object.__setattr__(self, name, _number(name, getattr(self, name)))

        if self.apy_interval is not None:
            try:
                interval = ApyInterval(self.apy_interval)
            except ValueError:
                raise FilterSpecError(
                    f"apy_interval must be one of "
                    f"{', '.join(i.value for i in ApyInterval)}, got {self.apy_interval!r}"
                ) from None
            object.__setattr__(self, "apy_interval", interval)

        self._check_conflicts()
        self._check_ranges()

    def _check_conflicts(self) -> None:
        pairs = [
            ("network", self.allowed_networks, self.disallowed_networks, network_key),
            ("asset", self.allowed_assets, self.disallowed_assets, _fold),
            ("asset", self.always_return_assets, self.disallowed_assets, _fold),
            ("protocol", self.allowed_protocols, self.disallowed_protocols, _fold),
            ("tag", self.allowed_tags, self.disallowed_tags, _fold),
        ]
        for dimension, allowed, denied, key in pairs:
            denied_keys = _keys(denied, key)
            overlap = [value for value in allowed if key(value) in denied_keys]
            if overlap:
                raise ConflictingFilterError(dimension, overlap)

    def _check_ranges(self) -> None:
        if self.min_tvl is not None and self.max_tvl is not None:
            if self.min_tvl > self.max_tvl:
                raise InvalidRangeError(
                    f"min_tvl ({self.min_tvl}) must not exceed max_tvl ({self.max_tvl})"
                )
        for name in ("min_tvl", "max_tvl", "min_usd_asset_value_threshold"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise InvalidRangeError(f"{name} must not be negative, got {value}")
        if self.max_vaults_per_asset is not None:
            if isinstance(self.max_vaults_per_asset, bool) or not isinstance(
                self.max_vaults_per_asset, int
            ):
                raise FilterSpecError(
                    f"max_vaults_per_asset must be an integer, got {self.max_vaults_per_asset!r}"
                )
            if self.max_vaults_per_asset < 0:
                raise InvalidRangeError(
                    f"max_vaults_per_asset must not be negative, got {self.max_vaults_per_asset}"
                )

    def is_always_returned(self, symbol: str | None) -> bool:
        key = _fold(symbol)
        return key is not None and key in _keys(self.always_return_assets, _fold)

    def matches_asset(self, symbol: str | None, network: str | None) -> bool:
        """Network and asset dimensions only; always-returned assets pass the allow-set."""
        if not _allowed([network], self.allowed_networks, self.disallowed_networks, network_key):
            return False
        allowed_assets = self.allowed_assets
        if allowed_assets:
            allowed_assets = allowed_assets + self.always_return_assets
        return _allowed([symbol], allowed_assets, self.disallowed_assets, _fold)

    def matches(self, candidate: DepositOption | AssetBalance) -> bool:
        """Whether a vault or a held asset passes every configured dimension."""
        if isinstance(candidate, AssetBalance):
            return self.matches_asset(candidate.symbol, candidate.network)

        if not self.matches_asset(candidate.asset_symbol, candidate.network):
            return False
        if not _allowed(
            [candidate.protocol],
            self.allowed_protocols,
            self.disallowed_protocols,
            _fold,
        ):
            return False
        if not _allowed(candidate.tags, self.allowed_tags, self.disallowed_tags, _fold):
            return False
        if self.min_tvl is not None or self.max_tvl is not None:
            tvl = candidate.tvl_usd
            if tvl is None:
                return False
            if self.min_tvl is not None and tvl < self.min_tvl:
                return False
            if self.max_tvl is not None and tvl > self.max_tvl:
                return False
        if self.only_transactional and not candidate.is_transactional:
            return False
        if self.only_app_featured and not candidate.is_app_featured:
            return False
        if self.min_apy is not None:
            apy = candidate.apy.total
            if apy is None or apy < self.min_apy:
                return False
        return True

    def narrowed_to_asset(self, symbol: str) -> "FilterSpec":
        """Copy restricted to one asset, used for per-asset queries."""
        return replace(
            self,
            allowed_assets=(symbol,),
            always_return_assets=tuple(
                s for s in self.always_return_assets if _fold(s) == _fold(symbol)
            ),
        )

    def to_query(self, scope: QueryScope = QueryScope.VAULTS) -> dict[str, Any]:
        """Render as vaults.fyi query parameters for the given endpoint."""
        query: dict[str, Any] = {}

        def put(name: str, value: Any) -> None:
            if value is None or value == () or value is False:
                return
            if isinstance(value, bool):
                query[name] = "true"
            elif isinstance(value, Decimal):
                query[name] = _render_number(value)
            elif isinstance(value, tuple):
                query[name] = list(value)
            elif isinstance(value, Enum):
                query[name] = value.value
            else:
                query[name] = str(value)

        put("allowedNetworks", self.allowed_networks)
        put("disallowedNetworks", self.disallowed_networks)
        put("allowedAssets", self.allowed_assets)
        put("disallowedAssets", self.disallowed_assets)

        if scope == QueryScope.IDLE_ASSETS:
            put("minUsdAssetValueThreshold", self.min_usd_asset_value_threshold)
            return query

        put("allowedProtocols", self.allowed_protocols)
        put("disallowedProtocols", self.disallowed_protocols)
        put("minTvl", self.min_tvl)
        put("maxTvl", self.max_tvl)
        put("onlyTransactional", self.only_transactional)
        put("onlyAppFeatured", self.only_app_featured)

        if scope in (QueryScope.VAULTS, QueryScope.POSITIONS):
            # disallowed_tags has no remote counterpart and is applied locally
            put("tags", self.allowed_tags)
            return query

        put("apyInterval", self.apy_interval)
        put("minApy", self.min_apy)
        put("minUsdAssetValueThreshold", self.min_usd_asset_value_threshold)
        put("alwaysReturnAssets", self.always_return_assets)
        put("maxVaultsPerAsset", self.max_vaults_per_asset)
        return query
