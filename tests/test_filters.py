"""Tests for FilterSpec validation, matching and query rendering."""

from __future__ import annotations

from decimal import Decimal

import pytest
from conftest import VAULT_A, make_option

from vault_pilot.filters import (
    ApyInterval,
    ConflictingFilterError,
    FilterSpec,
    FilterSpecError,
    InvalidRangeError,
    QueryScope,
)
from vault_pilot.models import AssetBalance


def test_sets_are_deduplicated_in_order():
    spec = FilterSpec(allowed_assets=["USDC", "usdt", "usdc", "USDT"])
    assert spec.allowed_assets == ("USDC", "usdt")


def test_numbers_are_parsed_to_decimal():
    spec = FilterSpec(min_tvl=100000, max_tvl="2.5e6", min_apy=0.05)
    assert spec.min_tvl == Decimal("100000")
    assert spec.max_tvl == Decimal("2.5e6")
    assert spec.min_apy == Decimal("0.05")


@pytest.mark.parametrize(
    "kwargs, dimension",
    [
        ({"allowed_assets": ["USDC"], "disallowed_assets": ["usdc"]}, "asset"),
        ({"allowed_networks": ["mainnet"], "disallowed_networks": ["eip155:1"]}, "network"),
        ({"allowed_protocols": ["Aave"], "disallowed_protocols": ["aave"]}, "protocol"),
        ({"allowed_tags": ["lending"], "disallowed_tags": ["lending"]}, "tag"),
        ({"always_return_assets": ["USDT"], "disallowed_assets": ["USDT"]}, "asset"),
    ],
)
def test_conflicting_sets_are_rejected(kwargs, dimension):
    with pytest.raises(ConflictingFilterError) as exc_info:
        FilterSpec(**kwargs)
    assert exc_info.value.dimension == dimension


def test_conflict_reports_overlapping_values():
    with pytest.raises(ConflictingFilterError) as exc_info:
        FilterSpec(allowed_assets=["USDC", "DAI"], disallowed_assets=["dai", "WBTC"])
    assert exc_info.value.overlap == ("DAI",)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"min_tvl": 10, "max_tvl": 5},
        {"min_tvl": -1},
        {"min_usd_asset_value_threshold": -0.01},
        {"max_vaults_per_asset": -1},
        {"min_tvl": "nan"},
    ],
)
def test_out_of_range_values_are_rejected(kwargs):
    with pytest.raises(InvalidRangeError):
        FilterSpec(**kwargs)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"min_tvl": "lots"},
        {"max_vaults_per_asset": 2.5},
        {"max_vaults_per_asset": True},
        {"apy_interval": "90day"},
    ],
)
def test_malformed_values_are_rejected(kwargs):
    with pytest.raises(FilterSpecError):
        FilterSpec(**kwargs)


def test_min_equal_to_max_is_allowed():
    spec = FilterSpec(min_tvl=5, max_tvl=5)
    assert spec.min_tvl == spec.max_tvl


def test_zero_cap_is_allowed():
    assert FilterSpec(max_vaults_per_asset=0).max_vaults_per_asset == 0


def test_matches_checks_every_dimension():
    spec = FilterSpec(
        allowed_networks=["mainnet"],
        allowed_protocols=["aave"],
        disallowed_tags=["deprecated"],
        min_tvl=1000,
        only_transactional=True,
    )
    ok = make_option(VAULT_A, "0.05", tvl="5000", is_transactional=True)

    assert spec.matches(ok)
    assert not spec.matches(make_option(VAULT_A, "0.05", network="base", is_transactional=True))
    assert not spec.matches(make_option(VAULT_A, "0.05", protocol="morpho", is_transactional=True))
    assert not spec.matches(make_option(VAULT_A, "0.05", tvl="10", is_transactional=True))
    assert not spec.matches(make_option(VAULT_A, "0.05", tvl=None, is_transactional=True))
    assert not spec.matches(make_option(VAULT_A, "0.05", tvl="5000"))
    assert not spec.matches(
        make_option(VAULT_A, "0.05", tvl="5000", is_transactional=True, tags=("Deprecated",))
    )


def test_min_apy_is_applied_locally():
    spec = FilterSpec(min_apy="0.05")

    assert spec.matches(make_option(VAULT_A, "0.05"))
    assert spec.matches(make_option(VAULT_A, "0.12"))
    assert not spec.matches(make_option(VAULT_A, "0.01"))
    assert not spec.matches(make_option(VAULT_A, None))
    assert spec.matches(AssetBalance(address=None, symbol="USDC"))

def test_network_matching_accepts_any_surface_form():
    spec = FilterSpec(allowed_networks=["base"])
    assert spec.matches(make_option(VAULT_A, "0.05", network="eip155:8453"))


def test_asset_balance_matches_on_asset_dimensions_only():
    spec = FilterSpec(allowed_assets=["USDC"], allowed_protocols=["aave"], min_tvl=10)
    balance = AssetBalance(address=None, symbol="usdc", network="mainnet")
    assert spec.matches(balance)
    assert not spec.matches(AssetBalance(address=None, symbol="DAI", network="mainnet"))


def test_always_return_assets_pass_asset_allow_set():
    spec = FilterSpec(allowed_assets=["USDC"], always_return_assets=["USDT"])
    assert spec.matches(AssetBalance(address=None, symbol="USDT"))
    assert not spec.matches(AssetBalance(address=None, symbol="DAI"))


def test_narrowed_to_asset_leaves_original_untouched():
    spec = FilterSpec(allowed_assets=["USDC", "USDT"], always_return_assets=["USDT"])
    narrowed = spec.narrowed_to_asset("USDC")

    assert narrowed.allowed_assets == ("USDC",)
    assert narrowed.always_return_assets == ()
    assert spec.allowed_assets == ("USDC", "USDT")
    assert spec.narrowed_to_asset("usdt").always_return_assets == ("USDT",)


def test_deposit_options_query_uses_camel_case_names():
    spec = FilterSpec(
        allowed_networks=["mainnet", "polygon"],
        disallowed_assets=["WBTC"],
        min_tvl=100000,
        only_transactional=True,
        apy_interval=ApyInterval.SEVEN_DAY,
        min_apy=0.05,
        min_usd_asset_value_threshold=100,
        always_return_assets=["USDC"],
        max_vaults_per_asset=3,
    )
    assert spec.to_query(QueryScope.DEPOSIT_OPTIONS) == {
        "allowedNetworks": ["mainnet", "polygon"],
        "disallowedAssets": ["WBTC"],
        "minTvl": "100000",
        "onlyTransactional": "true",
        "apyInterval": "7day",
        "minApy": "0.05",
        "minUsdAssetValueThreshold": "100",
        "alwaysReturnAssets": ["USDC"],
        "maxVaultsPerAsset": "3",
    }


def test_query_omits_unset_and_false_values():
    assert FilterSpec().to_query(QueryScope.VAULTS) == {}
    assert "onlyAppFeatured" not in FilterSpec(only_app_featured=False).to_query()


def test_scopes_render_different_subsets():
    spec = FilterSpec(
        allowed_assets=["USDC"],
        allowed_tags=["lending"],
        disallowed_tags=["deprecated"],
        min_tvl=1,
        min_usd_asset_value_threshold=10,
        max_vaults_per_asset=2,
    )
    vaults = spec.to_query(QueryScope.VAULTS)
    idle = spec.to_query(QueryScope.IDLE_ASSETS)

    assert vaults["tags"] == ["lending"]
    assert "maxVaultsPerAsset" not in vaults
    assert "deprecated" not in str(vaults)
    assert idle == {"allowedAssets": ["USDC"], "minUsdAssetValueThreshold": "10"}


def test_filter_is_immutable():
    spec = FilterSpec(allowed_assets=["USDC"])
    with pytest.raises(AttributeError):
        spec.allowed_assets = ("DAI",)  # type: ignore[misc]
