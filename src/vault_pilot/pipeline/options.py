"""Balance and deposit-option collection and ranking."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from typing import Any

from ..filters import FilterSpec
from ..gateway.base import BaseGateway
from ..gateway.errors import RemoteError
from ..models import AssetDepositOptions, parse_deposit_options, parse_idle_assets
from ..ranking import RankedOptions, rank_deposit_options
from .context import PipelineContext

IDLE_ASSETS_FAILURE = "idle_assets"


def _apy_interval(filters: FilterSpec) -> str:
    return filters.apy_interval.value if filters.apy_interval else "7day"


def _process_option_results(
    targets: Sequence[str],
    results: Sequence[BaseException | Any],
    filters: FilterSpec,
    candidates: list[AssetDepositOptions],
    failures: dict[str, Exception],
    log: logging.Logger,
) -> None:
    """Sort asyncio.gather results into parsed candidates and per-target failures.

    Remote failures are recorded against their target and do not stop the
    batch. Anything else is a programming error and is re-raised.
    """
    for target, result in zip(targets, results):
        if isinstance(result, RemoteError):
            log.error("Deposit options query for %s failed: %s", target, result)
            failures[target] = result
        elif isinstance(result, BaseException):
            raise result
        else:
            parsed = parse_deposit_options(result, apy_interval=_apy_interval(filters))
            log.debug("Query for %s returned %d asset(s)", target, len(parsed))
            candidates.extend(parsed)


async def fetch_idle_assets(ctx: PipelineContext) -> None:
    """Fetch the user's idle balances into the context.

    A remote failure is recorded under ``IDLE_ASSETS_FAILURE`` and leaves
    ``ctx.idle_assets`` as None, so the run goes on to deposit options.
    """
    log = ctx.state.logger
    log.info("Fetching idle assets for %s...", ctx.user_address)
    try:
        response = await ctx.gateway.get_idle_assets(ctx.user_address, ctx.filters)
    except RemoteError as e:
        log.error("Idle assets query for %s failed: %s", ctx.user_address, e)
        ctx.failures[IDLE_ASSETS_FAILURE] = e
        return
    ctx.idle_assets = parse_idle_assets(response)
    log.info("Found %d idle asset(s)", len(ctx.idle_assets))


async def collect_deposit_options(
    ctx: PipelineContext, assets: Sequence[str] | None = None
) -> None:
    """Collect deposit options, either in one query or one query per asset.

    With ``assets`` every per-asset filter is built first, so an invalid
    combination fails before any request is issued. Per-asset failures are
    recorded in ``ctx.failures`` keyed by symbol.
    """
    log = ctx.state.logger
    candidates: list[AssetDepositOptions] = []

    if not assets:
        log.info("Fetching best deposit options for %s...", ctx.user_address)
        response = await ctx.gateway.get_deposit_options(ctx.user_address, ctx.filters)
        candidates.extend(
            parse_deposit_options(response, apy_interval=_apy_interval(ctx.filters))
        )
        ctx.candidates = candidates
        return

    per_asset = [(symbol, ctx.filters.narrowed_to_asset(symbol)) for symbol in assets]
    log.info(
        "Fetching best deposit options for %s across %d asset(s)...",
        ctx.user_address,
        len(per_asset),
    )
    tasks: list[Awaitable[Any]] = [
        ctx.gateway.get_deposit_options(ctx.user_address, narrowed)
        for _, narrowed in per_asset
    ]
    results = await asyncio.gather(*tasks, return_exceptions=True)
    _process_option_results(
        [symbol for symbol, _ in per_asset],
        results,
        ctx.filters,
        candidates,
        ctx.failures,
        log,
    )
    ctx.candidates = candidates


async def rank_options(ctx: PipelineContext) -> None:
    ctx.ranked = rank_deposit_options(ctx.candidates_required, ctx.filters)


@dataclass(frozen=True)
class UserRanking:
    """Ranking outcome for one user in a batch; ``error`` set when the query failed."""

    user_address: str
    ranked: RankedOptions | None = None
    error: RemoteError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


async def rank_for_users(
    gateway: BaseGateway,
    user_addresses: Sequence[str],
    filters: FilterSpec,
    log: logging.Logger | None = None,
) -> list[UserRanking]:
    """Rank deposit options for many users concurrently.

    One user's remote failure is recorded on that user's entry and does not
    abort the others.
    """
    log = log or logging.getLogger(__name__)
    results = await asyncio.gather(
        *[gateway.get_deposit_options(user, filters) for user in user_addresses],
        return_exceptions=True,
    )

    rankings: list[UserRanking] = []
    for user, result in zip(user_addresses, results):
        if isinstance(result, RemoteError):
            log.error("Deposit options query for user %s failed: %s", user, result)
            rankings.append(UserRanking(user_address=user, error=result))
            continue
        if isinstance(result, BaseException):
            raise result
        candidates = parse_deposit_options(result, apy_interval=_apy_interval(filters))
        rankings.append(
            UserRanking(user_address=user, ranked=rank_deposit_options(candidates, filters))
        )
    return rankings
