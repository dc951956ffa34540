"""Presentation of pipeline results."""

from __future__ import annotations

from rich.console import Console

from ..report import (
    print_json,
    print_renderable,
    render_failures,
    render_idle_assets,
    render_ranked_options,
    render_transaction,
)
from ..settings import OutputFormat
from .context import PipelineContext


def present(ctx: PipelineContext, console: Console | None = None) -> None:
    """Print whatever the pipeline produced, in the configured format."""
    if ctx.state.settings.output_format == OutputFormat.JSON:
        print_json(
            {
                "user_address": ctx.user_address,
                "idle_assets": ctx.idle_assets,
                "ranked": ctx.ranked,
                "failures": ctx.failures,
                "selected": {
                    "asset": ctx.selected_symbol,
                    "option": ctx.selected_option,
                },
                "transaction": ctx.outcome.to_dict() if ctx.outcome else None,
                "build_error": ctx.build_error,
            }
        )
        return

    console = console or Console()
    if ctx.idle_assets is not None:
        print_renderable(render_idle_assets(ctx.idle_assets), console)
    if ctx.ranked is not None:
        print_renderable(render_ranked_options(ctx.ranked), console)
    if ctx.failures:
        print_renderable(render_failures(ctx.failures), console)
    if ctx.outcome is not None:
        print_renderable(render_transaction(ctx.outcome), console)
    if ctx.build_error is not None:
        console.print(f"[red]Could not build transaction:[/] {ctx.build_error}")
