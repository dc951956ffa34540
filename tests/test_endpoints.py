"""Tests for the endpoint coverage checks."""

from __future__ import annotations

import pytest
from conftest import FakeGateway

from vault_pilot.endpoints import (
    CheckTarget,
    EndpointCheck,
    EndpointCheckSummary,
    default_checks,
    run_endpoint_checks,
)
from vault_pilot.gateway import RemoteError
from vault_pilot.transactions import ActionKind


def _answers():
    return {
        "get_benchmarks": [{"network": "mainnet"}],
        "list_vaults": {"data": [], "itemsOnPage": 0},
        "get_vault": {"address": "0x1", "name": "Vault"},
        "get_historical_apy": {"data": [{"apy": 0.05}]},
        "get_positions": {"data": []},
        "get_deposit_options": {"userBalances": []},
        "get_idle_assets": {"data": []},
        "get_vault_total_returns": {"returnsUsd": 1},
        "get_vault_holder_events": {"data": []},
        "get_transactions_context": {"currentActionIndex": 0},
        "build_transaction": {"actions": []},
    }


@pytest.mark.asyncio
async def test_every_endpoint_is_exercised():
    gateway = FakeGateway(_answers())

    summary = await run_endpoint_checks(default_checks(gateway, now=1_700_000_000))

    assert summary.failed == 0
    assert summary.success_rate == 100
    called = {name for name, _ in gateway.calls}
    assert called == set(_answers())
    assert len(gateway.called("get_historical_apy")) == 4
    networks = [args[0] for args in gateway.called("get_vault")]
    assert networks == ["mainnet", "eip155:1"]
    actions = [args[0].action for args in gateway.called("build_transaction")]
    assert actions == [ActionKind.DEPOSIT, ActionKind.REDEEM, ActionKind.CLAIM_REWARDS]


@pytest.mark.asyncio
async def test_failures_are_tallied_and_checks_continue():
    answers = _answers()
    answers["get_benchmarks"] = RemoteError(401, "unauthorized")
    gateway = FakeGateway(answers)

    summary = await run_endpoint_checks(default_checks(gateway))

    assert summary.failed == 1
    assert summary.successful == summary.total - 1
    failed = [r for r in summary.results if not r.success]
    assert failed[0].name == "GET /v1/benchmarks"
    assert "unauthorized" in failed[0].error


@pytest.mark.asyncio
async def test_bad_target_network_fails_transaction_checks_only():
    gateway = FakeGateway(_answers())
    target = CheckTarget(network="eip155:999999")
    checks = [c for c in default_checks(gateway, target) if "transactions/" in c.name]

    summary = await run_endpoint_checks(checks)

    assert summary.successful == 1
    assert summary.failed == 3
    assert gateway.called("build_transaction") == []


@pytest.mark.asyncio
async def test_results_are_described():
    async def answer():
        return {"data": [1, 2, 3]}

    summary = await run_endpoint_checks([EndpointCheck("list", answer)])

    assert summary.results[0].summary == "Returned 3 items"


def test_empty_summary_rate():
    assert EndpointCheckSummary().success_rate == 0
