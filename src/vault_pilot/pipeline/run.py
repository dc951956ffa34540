"""High-level pipeline orchestration."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from ..filters import FilterSpec
from ..gateway.base import BaseGateway
from ..state import AppState
from .context import PipelineContext
from .options import collect_deposit_options, fetch_idle_assets, rank_options
from .present import present
from .transaction import build_deposit, select_candidate


async def run_best_deposit(
    state: AppState,
    gateway: BaseGateway,
    user_address: str,
    filters: FilterSpec,
    amount: str,
    *,
    simulate: bool,
    assets: Sequence[str] | None = None,
    symbol: str | None = None,
    index: int = 0,
    asset_address: str | None = None,
    show: bool = True,
) -> PipelineContext:
    """Execute the best-deposit pipeline.

    This is a thin orchestrator that sequences the pipeline steps:
    1. Idle balance lookup
    2. Deposit option collection
    3. Ranking
    4. Candidate selection
    5. Transaction construction (simulated unless ``simulate`` is False)
    6. Presentation

    Args:
        state: Application state containing settings and logger
        gateway: Remote query gateway
        user_address: Wallet to rank options for
        filters: Effective filters
        amount: Deposit amount in the asset's base units
        simulate: Request a dry-run descriptor instead of an executable one
        assets: Query each of these assets separately, recording failures per asset
        symbol: Asset to pick the candidate from
        index: Rank of the candidate within that asset (0 is the best)
        asset_address: Override for the deposited asset's address
        show: Print results when done

    Returns:
        The populated pipeline context
    """
    s = state.settings
    log = state.logger

    log.info(
        "Starting best-deposit run",
        extra={"user": user_address, "simulate": simulate},
    )

    timeout_s = s.global_timeout_seconds

    ctx = PipelineContext(
        state=state, gateway=gateway, user_address=user_address, filters=filters
    )

    async def _run_pipeline() -> None:
        await fetch_idle_assets(ctx)
        await collect_deposit_options(ctx, assets)
        await rank_options(ctx)
        await select_candidate(ctx, symbol=symbol, index=index)
        await build_deposit(ctx, amount, simulate, asset_address=asset_address)

    try:
        if timeout_s is None or timeout_s <= 0:
            await _run_pipeline()
        else:
            async with asyncio.timeout(timeout_s):
                await _run_pipeline()
    except asyncio.TimeoutError as exc:
        log.error(
            "Best-deposit pipeline timed out",
            extra={"user": user_address, "timeout_seconds": timeout_s},
        )
        raise asyncio.TimeoutError(
            "Best-deposit run exceeded global timeout "
            f"{timeout_s}s (user={user_address})\n N.B. This can be changed via "
            "`global_timeout_seconds` or CLI flag `--global-timeout-seconds`."
        ) from exc

    if show:
        present(ctx)

    log.info("Best-deposit run completed", extra={"user": user_address})
    return ctx
