from __future__ import annotations

from .formatter import (
    print_json,
    print_renderable,
    render_deposit_options,
    render_endpoint_summary,
    render_failures,
    render_idle_assets,
    render_positions,
    render_ranked_options,
    render_transaction,
    render_vaults,
    to_jsonable,
)

__all__ = [
    "print_json",
    "print_renderable",
    "render_deposit_options",
    "render_endpoint_summary",
    "render_failures",
    "render_idle_assets",
    "render_positions",
    "render_ranked_options",
    "render_transaction",
    "render_vaults",
    "to_jsonable",
]
