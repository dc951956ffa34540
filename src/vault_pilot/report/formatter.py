"""Rich console formatter for balances, options, positions and transactions."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import fields, is_dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from rich.console import Console, RenderableType
from rich.table import Table
from rich.text import Text

from ..constants import DESCRIPTOR_VALUE_WIDTH, VAULT_NAME_WIDTH
from ..endpoints import EndpointCheckSummary
from ..models import AssetBalance, AssetDepositOptions, DepositOption, Position
from ..transactions import TransactionOutcome

NOT_AVAILABLE = "N/A"


def _truncate(text: str | None, width: int) -> str:
    if not text:
        return NOT_AVAILABLE
    if len(text) > width:
        return text[:width] + "..."
    return text


def _usd(value: Decimal | None) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"${float(value):,.2f}"


def _apy(value: Decimal | None) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{float(value) * 100:.2f}%"


def _native(value: str | None, decimals: int | None, symbol: str) -> str:
    """Base-unit balance scaled by token decimals when known."""
    if value is None:
        return NOT_AVAILABLE
    try:
        amount = Decimal(value)
    except ArithmeticError:
        return value
    if decimals:
        amount = amount / (Decimal(10) ** decimals)
    return f"{float(amount):.6f} {symbol}"


def _format_value(value: Any) -> str:
    if value is None:
        return NOT_AVAILABLE
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2, default=str)
    text = str(value)
    if len(text) > DESCRIPTOR_VALUE_WIDTH:
        return text[:DESCRIPTOR_VALUE_WIDTH] + "..."
    return text


def render_idle_assets(balances: Iterable[AssetBalance]) -> RenderableType:
    balances = list(balances)
    if not balances:
        return Text("No idle assets found")

    table = Table(title="Idle Assets", expand=False)
    table.add_column("Asset", style="cyan", no_wrap=True)
    table.add_column("Balance", justify="right")
    table.add_column("Balance USD", justify="right", style="green")
    table.add_column("Network", style="dim")
    for balance in balances:
        table.add_row(
            balance.symbol,
            _native(balance.balance_native, balance.decimals, balance.symbol),
            _usd(balance.balance_usd),
            balance.network or NOT_AVAILABLE,
        )
    return table


def render_positions(positions: Iterable[Position]) -> RenderableType:
    positions = list(positions)
    if not positions:
        return Text("No active positions found")

    table = Table(title="Positions")
    table.add_column("Network", style="dim")
    table.add_column("Protocol")
    table.add_column("Vault Name", style="cyan")
    table.add_column("Asset")
    table.add_column("Balance USD", justify="right", style="green")
    table.add_column("APY", justify="right", style="yellow")
    for position in positions:
        table.add_row(
            position.network or NOT_AVAILABLE,
            position.protocol or NOT_AVAILABLE,
            _truncate(position.name or "Unknown Vault", VAULT_NAME_WIDTH - 2),
            position.asset_symbol or NOT_AVAILABLE,
            _usd(position.balance_usd),
            _apy(position.apy.total),
        )
    return table


def render_deposit_options(candidates: Iterable[AssetDepositOptions]) -> RenderableType:
    """Deposit options as returned by the API, one row per (asset, vault)."""
    table = Table(title="Deposit Options")
    table.add_column("Asset", style="cyan")
    table.add_column("Balance USD", justify="right", style="green")
    table.add_column("Network", style="dim")
    table.add_column("Vault Name")
    table.add_column("Protocol")
    table.add_column("APY", justify="right", style="yellow")

    rows = 0
    for entry in candidates:
        for option in entry.deposit_options:
            rows += 1
            table.add_row(
                entry.asset.symbol,
                _usd(entry.asset.balance_usd),
                option.network or NOT_AVAILABLE,
                _truncate(option.name, VAULT_NAME_WIDTH),
                option.protocol or NOT_AVAILABLE,
                _apy(option.apy.total),
            )
    if rows == 0:
        return Text("No deposit options available")
    return table


def render_ranked_options(ranked: Mapping[str, Iterable[DepositOption]]) -> RenderableType:
    if not ranked:
        return Text("No deposit options available")

    table = Table(title="Ranked Deposit Options")
    table.add_column("Asset", style="cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Vault Name")
    table.add_column("Network", style="dim")
    table.add_column("Protocol")
    table.add_column("APY", justify="right", style="yellow")
    table.add_column("TVL", justify="right", style="green")
    table.add_column("Vault", style="dim")

    for symbol, options in ranked.items():
        options = list(options)
        if not options:
            table.add_row(symbol, "-", "[dim]no eligible vault[/]", "", "", "", "", "")
            continue
        for rank, option in enumerate(options, start=1):
            table.add_row(
                symbol,
                str(rank),
                _truncate(option.name, VAULT_NAME_WIDTH),
                option.network or NOT_AVAILABLE,
                option.protocol or NOT_AVAILABLE,
                _apy(option.apy.total),
                _usd(option.tvl_usd),
                option.address,
            )
    return table


def render_vaults(vaults: Iterable[DepositOption]) -> RenderableType:
    vaults = list(vaults)
    if not vaults:
        return Text("No vaults found")

    table = Table(title="Vaults")
    table.add_column("Vault Name", style="cyan")
    table.add_column("Network", style="dim")
    table.add_column("Protocol")
    table.add_column("Asset")
    table.add_column("APY", justify="right", style="yellow")
    table.add_column("TVL", justify="right", style="green")
    table.add_column("Vault", style="dim")
    for vault in vaults:
        table.add_row(
            _truncate(vault.name, VAULT_NAME_WIDTH),
            vault.network or NOT_AVAILABLE,
            vault.protocol or NOT_AVAILABLE,
            vault.asset_symbol or NOT_AVAILABLE,
            _apy(vault.apy.total),
            _usd(vault.tvl_usd),
            vault.address,
        )
    return table


def render_transaction(outcome: TransactionOutcome) -> RenderableType:
    request = outcome.request
    table = Table(
        title=f"{request.action.value} ({'simulated' if request.simulate else 'executable'})",
    )
    table.add_column("Property", style="dim", width=25)
    table.add_column("Value", width=80, overflow="fold")

    if not outcome.success:
        table.add_row("success", "false")
        table.add_row("message", _format_value(outcome.message))
        table.add_row("error", _format_value(outcome.error))
        return table

    descriptor = outcome.descriptor
    if not isinstance(descriptor, Mapping):
        table.add_row("transaction", _format_value(descriptor))
        return table
    for key, value in descriptor.items():
        table.add_row(str(key), _format_value(value))
    return table


def render_failures(failures: Mapping[str, Exception]) -> RenderableType:
    table = Table(title="Failed Queries", border_style="red")
    table.add_column("Target", style="cyan")
    table.add_column("Error", style="red", overflow="fold")
    for target, error in failures.items():
        table.add_row(target, str(error))
    return table


def render_endpoint_summary(summary: EndpointCheckSummary) -> RenderableType:
    table = Table(
        title=(
            f"Endpoint Checks: {summary.successful}/{summary.total} passed "
            f"({summary.success_rate}%)"
        )
    )
    table.add_column("Endpoint", style="cyan", overflow="fold")
    table.add_column("Status", no_wrap=True)
    table.add_column("Details", overflow="fold")
    for result in summary.results:
        if result.success:
            table.add_row(result.name, "[green]OK[/]", result.summary or "")
        else:
            table.add_row(result.name, "[red]FAILED[/]", result.error or "")
    return table


def to_jsonable(value: Any) -> Any:
    """Convert records to JSON-compatible data; decimals stay strings."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Exception):
        return str(value)
    return value


def print_renderable(renderable: RenderableType, console: Console | None = None) -> None:
    console = console or Console()
    console.print(renderable)


def print_json(value: Any) -> None:
    print(json.dumps(to_jsonable(value), indent=2))
