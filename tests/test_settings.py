"""Tests for settings configuration loading."""

from __future__ import annotations

from decimal import Decimal
from textwrap import dedent

import pytest
from pydantic import ValidationError

from vault_pilot.filters import ApyInterval
from vault_pilot.networks import NetworkForm
from vault_pilot.settings import (
    MissingApiKeyError,
    OutputFormat,
    PilotSettings,
    SecretInConfigFileError,
)


def _write_config(tmp_path, monkeypatch, body: str):
    config_path = tmp_path / "config.toml"
    config_path.write_text(dedent(body).strip())
    monkeypatch.setenv("VAULT_PILOT_CONFIG", str(config_path))
    return config_path


def test_defaults_without_any_source():
    settings = PilotSettings()
    assert settings.api_key is None
    assert settings.network == "mainnet"
    assert settings.simulate is True
    assert settings.retry_attempts == 0
    assert settings.output_format == OutputFormat.TABLE


def test_loads_values_and_filters_from_toml(tmp_path, monkeypatch):
    _write_config(
        tmp_path,
        monkeypatch,
        """
        [vault_pilot]
        network = "eip155:8453"
        network_form = "caip2"
        retry_attempts = 2

        [vault_pilot.filters]
        allowed_assets = ["USDC", "USDT"]
        min_tvl = 100000
        max_vaults_per_asset = 3
        apy_interval = "30day"
        """,
    )

    settings = PilotSettings()

    assert settings.network == "base"
    assert settings.network_form == NetworkForm.CAIP2
    assert settings.retry_attempts == 2
    spec = settings.filter_spec()
    assert spec.allowed_assets == ("USDC", "USDT")
    assert spec.min_tvl == Decimal("100000")
    assert spec.max_vaults_per_asset == 3
    assert spec.apy_interval == ApyInterval.THIRTY_DAY


def test_precedence_cli_over_env_over_file(tmp_path, monkeypatch):
    _write_config(
        tmp_path,
        monkeypatch,
        """
        network = "polygon"
        log_level = "debug"
        retry_attempts = 1
        """,
    )
    monkeypatch.setenv("VAULT_PILOT_NETWORK", "base")
    monkeypatch.setenv("VAULT_PILOT_LOG_LEVEL", "warning")

    settings = PilotSettings(log_level="error")

    assert settings.log_level == "ERROR"
    assert settings.network == "base"
    assert settings.retry_attempts == 1


def test_api_key_in_toml_is_rejected(tmp_path, monkeypatch):
    _write_config(tmp_path, monkeypatch, 'api_key = "leaked"')
    with pytest.raises(SecretInConfigFileError, match="api_key") as excinfo:
        PilotSettings()
    assert excinfo.value.path.name == "config.toml"


@pytest.mark.parametrize("env_name", ["VAULT_PILOT_API_KEY", "VAULTS_FYI_API_KEY"])
def test_api_key_from_env_is_redacted(monkeypatch, env_name):
    monkeypatch.setenv(env_name, "sekrit")

    settings = PilotSettings()

    assert settings.api_key_required == "sekrit"
    assert settings.as_safe_dict()["api_key"] == "***redacted***"
    assert "sekrit" not in str(settings.as_safe_dict())


def test_missing_api_key_raises():
    with pytest.raises(MissingApiKeyError):
        PilotSettings(api_key="  ").api_key_required


def test_user_address_required():
    with pytest.raises(ValueError, match="user_address"):
        PilotSettings().user_address_required


def test_unknown_network_is_rejected_at_load():
    with pytest.raises(ValidationError):
        PilotSettings(network="eip155:999999")


def test_conflicting_filters_are_rejected_at_load(tmp_path, monkeypatch):
    _write_config(
        tmp_path,
        monkeypatch,
        """
        [filters]
        allowed_assets = ["USDC"]
        disallowed_assets = ["usdc"]
        """,
    )
    with pytest.raises(ValidationError, match="Conflicting asset filter"):
        PilotSettings()


def test_filter_overrides_take_precedence(tmp_path, monkeypatch):
    _write_config(
        tmp_path,
        monkeypatch,
        """
        [filters]
        allowed_assets = ["USDC"]
        min_tvl = 10
        """,
    )
    spec = PilotSettings().filter_spec(min_tvl=500, allowed_assets=None)
    assert spec.min_tvl == Decimal("500")
    assert spec.allowed_assets == ("USDC",)


def test_filter_bounds_are_kept_as_decimals(tmp_path, monkeypatch):
    _write_config(
        tmp_path,
        monkeypatch,
        """
        [filters]
        min_apy = 0.05
        min_usd_asset_value_threshold = 12.5
        """,
    )

    settings = PilotSettings()

    assert settings.filters.min_apy == Decimal("0.05")
    assert settings.filters.min_usd_asset_value_threshold == Decimal("12.5")
    assert settings.as_safe_dict()["filters"]["min_apy"] == "0.05"
