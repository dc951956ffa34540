import logging

import pytest
from conftest import (
    USDT_ADDRESS,
    USER,
    VAULT_A,
    VAULT_B,
    VAULT_C,
    FakeGateway,
    deposit_options_response,
    raw_entry,
    raw_option,
)

from vault_pilot.filters import FilterSpec
from vault_pilot.gateway import RemoteError
from vault_pilot.pipeline.context import PipelineContext
from vault_pilot.pipeline.options import (
    _process_option_results,
    collect_deposit_options,
    fetch_idle_assets,
    rank_for_users,
    rank_options,
)


def _per_asset_handler(user, filters):
    if filters.allowed_assets == ("USDT",):
        raise RemoteError(500, "upstream timeout")
    return deposit_options_response(
        raw_entry("USDC", 500, [raw_option(VAULT_A, 0.05), raw_option(VAULT_B, 0.07)])
    )


@pytest.mark.asyncio
async def test_per_asset_failure_does_not_abort_batch(state):
    gateway = FakeGateway({"get_deposit_options": _per_asset_handler})
    ctx = PipelineContext(
        state=state, gateway=gateway, user_address=USER, filters=FilterSpec()
    )

    await collect_deposit_options(ctx, assets=["USDC", "USDT"])

    assert [c.asset.symbol for c in ctx.candidates_required] == ["USDC"]
    assert list(ctx.failures) == ["USDT"]
    assert ctx.failures["USDT"].status_code == 500
    sent = [args[1].allowed_assets for args in gateway.called("get_deposit_options")]
    assert sent == [("USDC",), ("USDT",)]


@pytest.mark.asyncio
async def test_single_query_failure_propagates(state):
    gateway = FakeGateway({"get_deposit_options": RemoteError(502, "bad gateway")})
    ctx = PipelineContext(
        state=state, gateway=gateway, user_address=USER, filters=FilterSpec()
    )

    with pytest.raises(RemoteError):
        await collect_deposit_options(ctx)


def test_process_option_results_reraises_unexpected_errors():
    with pytest.raises(KeyError):
        _process_option_results(
            ["USDC"],
            [KeyError("boom")],
            FilterSpec(),
            [],
            {},
            logging.getLogger("test"),
        )


@pytest.mark.asyncio
async def test_fetch_and_rank(state):
    gateway = FakeGateway(
        {
            "get_idle_assets": {"data": [{"symbol": "USDC", "balanceUsd": 500}]},
            "get_deposit_options": deposit_options_response(
                raw_entry("USDC", 500, [raw_option(VAULT_A, 0.05), raw_option(VAULT_B, 0.07)]),
                raw_entry("USDT", 1, [raw_option(VAULT_C, 0.09)], address=USDT_ADDRESS),
            ),
        }
    )
    ctx = PipelineContext(
        state=state,
        gateway=gateway,
        user_address=USER,
        filters=FilterSpec(min_usd_asset_value_threshold=100),
    )

    await fetch_idle_assets(ctx)
    await collect_deposit_options(ctx)
    await rank_options(ctx)

    assert [a.symbol for a in ctx.idle_assets] == ["USDC"]
    assert list(ctx.ranked_required) == ["USDC"]
    assert [o.address for o in ctx.ranked_required["USDC"]] == [VAULT_B, VAULT_A]


def test_required_properties_guard_step_order(state):
    ctx = PipelineContext(
        state=state, gateway=FakeGateway(), user_address=USER, filters=FilterSpec()
    )
    with pytest.raises(RuntimeError, match="collect_deposit_options"):
        ctx.candidates_required
    with pytest.raises(RuntimeError, match="rank_options"):
        ctx.ranked_required


@pytest.mark.asyncio
async def test_rank_for_users_isolates_failures():
    other = "0x" + "d" * 40

    def handler(user, filters):
        if user == other:
            raise RemoteError(404, "unknown user")
        return deposit_options_response(raw_entry("USDC", 500, [raw_option(VAULT_A, 0.05)]))

    gateway = FakeGateway({"get_deposit_options": handler})

    rankings = await rank_for_users(gateway, [USER, other], FilterSpec())

    assert [r.user_address for r in rankings] == [USER, other]
    assert not rankings[0].failed
    assert [o.address for o in rankings[0].ranked["USDC"]] == [VAULT_A]
    assert rankings[1].failed
    assert rankings[1].ranked is None
