"""Candidate selection and transaction construction."""

from __future__ import annotations

from ..networks import UnknownNetworkError
from ..ranking import find_balance, pick_option
from ..transactions import ActionKind, TransactionBuildError, TransactionBuilder
from .context import PipelineContext


async def select_candidate(
    ctx: PipelineContext, symbol: str | None = None, index: int = 0
) -> None:
    """Pick the option to act on from the ranked output.

    Args:
        ctx: Pipeline context with ranked options
        symbol: Asset to choose from (first ranked asset with options if None)
        index: Position in that asset's ranking (0 is the best)
    """
    log = ctx.state.logger
    choice = pick_option(ctx.ranked_required, symbol=symbol, index=index)
    if choice is None:
        log.warning(
            "No deposit option available (asset=%s, index=%d)", symbol or "any", index
        )
        return

    ctx.selected_symbol, ctx.selected_option = choice
    ctx.selected_balance = find_balance(ctx.candidates_required, ctx.selected_option)
    log.info(
        "Selected %s vault %s (%s) on %s",
        ctx.selected_symbol,
        ctx.selected_option.name or "Unknown vault",
        ctx.selected_option.address,
        ctx.selected_option.network,
    )


async def build_deposit(
    ctx: PipelineContext,
    amount: str,
    simulate: bool,
    asset_address: str | None = None,
) -> None:
    """Build a deposit into the selected option.

    Construction errors are fatal to this attempt only: they are logged and
    stored on the context. Remote rejections come back as a failed outcome.
    """
    log = ctx.state.logger
    if ctx.selected_option is None:
        log.info("Skipping transaction: no option selected")
        return

    builder = TransactionBuilder(ctx.gateway)
    try:
        ctx.outcome = await builder.build_for_option(
            ctx.selected_option_required,
            ActionKind.DEPOSIT,
            ctx.user_address,
            simulate=simulate,
            amount=amount,
            asset_address=asset_address,
            balance=ctx.selected_balance,
        )
    except (TransactionBuildError, UnknownNetworkError) as e:
        log.error("Could not build deposit for %s: %s", ctx.selected_symbol, e)
        ctx.build_error = e
        return

    if ctx.outcome.success:
        log.info("Transaction descriptor received")
    else:
        log.error("Transaction generation failed: %s", ctx.outcome.error)
