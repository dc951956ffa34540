"""CLI entrypoint for vault-pilot."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console

from .endpoints import CheckTarget, default_checks, run_endpoint_checks
from .filters import ApyInterval, FilterSpecError
from .gateway import BaseGateway, RemoteError, RetryingGateway, VaultsApiClient
from .logger import setup_logging
from .models import (
    parse_deposit_options,
    parse_idle_assets,
    parse_positions,
    parse_vaults,
)
from .networks import NetworkForm, UnknownNetworkError
from .report import (
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
)
from .settings import (
    MissingApiKeyError,
    OutputFormat,
    PilotSettings,
    SecretInConfigFileError,
)
from .state import AppState
from .transactions import ActionKind, TransactionBuildError, TransactionBuilder

T = TypeVar("T")

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Find the best yield for idle wallet balances and build vault transactions.",
)


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("vault_pilot")


def _build_gateway(settings: PilotSettings) -> BaseGateway:
    """Create the API client, wrapped with retries when configured."""
    client = VaultsApiClient.from_settings(settings)
    if settings.retry_attempts > 0:
        return RetryingGateway(client, max_tries=settings.retry_attempts + 1)
    return client


def _state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):
        raise RuntimeError("Application state was not initialized by the main callback")
    return state


def _run(state: AppState, work: Callable[[BaseGateway], Awaitable[T]]) -> T:
    """Run one async command against a fresh gateway, mapping errors to exit codes."""
    try:
        gateway = _build_gateway(state.settings)
    except MissingApiKeyError as e:
        raise typer.BadParameter(
            str(e), param_hint=["--api-key", "VAULT_PILOT_API_KEY"]
        ) from e

    try:
        return asyncio.run(work(gateway))
    except (UnknownNetworkError, TransactionBuildError, FilterSpecError) as e:
        raise typer.BadParameter(str(e)) from e
    except RemoteError as e:
        state.logger.error("Request failed: %s", e)
        Console(stderr=True).print(f"[red]Request failed:[/] {e}")
        raise typer.Exit(code=1) from e
    finally:
        gateway.close()


def _user(state: AppState, user_address: str | None) -> str:
    if user_address:
        return user_address
    try:
        return state.settings.user_address_required
    except ValueError as e:
        raise typer.BadParameter(
            "a user address is required", param_hint=["USER_ADDRESS", "VAULT_PILOT_USER_ADDRESS"]
        ) from e


def _json_output(state: AppState) -> bool:
    return state.settings.output_format == OutputFormat.JSON


def _filter_overrides(**values: Any) -> dict[str, Any]:
    """CLI filter flags that were actually given; comma-separated lists are split."""
    overrides: dict[str, Any] = {}
    for name, value in values.items():
        if value is None:
            continue
        if isinstance(value, list):
            items = [part.strip() for v in value for part in v.split(",") if part.strip()]
            if not items:
                continue
            value = items
        overrides[name] = value
    return overrides


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [vault_pilot] table).",
        ),
    ] = None,
    api_key: Annotated[
        str | None,
        typer.Option("--api-key", help="vaults.fyi API key (prefer the env var)."),
    ] = None,
    api_base_url: Annotated[
        str | None, typer.Option("--api-url", help="Override the API base URL.")
    ] = None,
    request_timeout: Annotated[
        float | None,
        typer.Option("--request-timeout", help="Per-request timeout in seconds."),
    ] = None,
    network_form: Annotated[
        NetworkForm | None,
        typer.Option(
            "--network-form",
            help="Network form used in transaction paths (name or caip2).",
        ),
    ] = None,
    output_format: Annotated[
        OutputFormat | None,
        typer.Option("--output", "-o", help="Output format (table or json)."),
    ] = None,
    retry_attempts: Annotated[
        int | None,
        typer.Option(
            "--retry-attempts", help="Retry retryable API failures this many times."
        ),
    ] = None,
    global_timeout_seconds: Annotated[
        float | None,
        typer.Option(
            "--global-timeout-seconds",
            help="Abort best-deposit runs that take longer than this.",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    allowed_networks: Annotated[
        list[str] | None,
        typer.Option("--allow-network", help="Only these networks (repeatable)."),
    ] = None,
    disallowed_networks: Annotated[
        list[str] | None,
        typer.Option("--deny-network", help="Exclude these networks (repeatable)."),
    ] = None,
    allowed_assets: Annotated[
        list[str] | None,
        typer.Option("--allow-asset", help="Only these asset symbols (repeatable)."),
    ] = None,
    disallowed_assets: Annotated[
        list[str] | None,
        typer.Option("--deny-asset", help="Exclude these asset symbols (repeatable)."),
    ] = None,
    allowed_protocols: Annotated[
        list[str] | None,
        typer.Option("--allow-protocol", help="Only these protocols (repeatable)."),
    ] = None,
    disallowed_protocols: Annotated[
        list[str] | None,
        typer.Option("--deny-protocol", help="Exclude these protocols (repeatable)."),
    ] = None,
    allowed_tags: Annotated[
        list[str] | None,
        typer.Option("--tag", help="Only vaults with these tags (repeatable)."),
    ] = None,
    min_tvl: Annotated[
        float | None, typer.Option("--min-tvl", help="Minimum vault TVL in USD.")
    ] = None,
    max_tvl: Annotated[
        float | None, typer.Option("--max-tvl", help="Maximum vault TVL in USD.")
    ] = None,
    only_transactional: Annotated[
        bool | None,
        typer.Option(
            "--only-transactional/--any-vault",
            help="Only vaults that support transaction building.",
        ),
    ] = None,
    min_usd_asset_value_threshold: Annotated[
        float | None,
        typer.Option("--min-usd-value", help="Ignore balances worth less than this."),
    ] = None,
    max_vaults_per_asset: Annotated[
        int | None,
        typer.Option("--max-per-asset", help="Keep at most this many vaults per asset."),
    ] = None,
    always_return_assets: Annotated[
        list[str] | None,
        typer.Option(
            "--always-return",
            help="Assets that stay in the output even without options (repeatable).",
        ),
    ] = None,
    apy_interval: Annotated[
        ApyInterval | None,
        typer.Option("--apy-interval", help="APY window used for ranking."),
    ] = None,
    min_apy: Annotated[
        float | None, typer.Option("--min-apy", help="Minimum APY (0.05 is 5%).")
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with secrets redacted) and exit.",
        ),
    ] = False,
):
    """Load configuration once and share it with the selected command."""
    if config_path:
        os.environ["VAULT_PILOT_CONFIG"] = str(config_path)

    init_kwargs: dict[str, Any] = {}
    if api_key is not None:
        init_kwargs["api_key"] = api_key
    if api_base_url is not None:
        init_kwargs["api_base_url"] = api_base_url
    if request_timeout is not None:
        init_kwargs["request_timeout"] = request_timeout
    if network_form is not None:
        init_kwargs["network_form"] = network_form
    if output_format is not None:
        init_kwargs["output_format"] = output_format
    if retry_attempts is not None:
        init_kwargs["retry_attempts"] = retry_attempts
    if global_timeout_seconds is not None:
        init_kwargs["global_timeout_seconds"] = global_timeout_seconds
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    filter_overrides = _filter_overrides(
        allowed_networks=allowed_networks,
        disallowed_networks=disallowed_networks,
        allowed_assets=allowed_assets,
        disallowed_assets=disallowed_assets,
        allowed_protocols=allowed_protocols,
        disallowed_protocols=disallowed_protocols,
        allowed_tags=allowed_tags,
        min_tvl=min_tvl,
        max_tvl=max_tvl,
        only_transactional=only_transactional,
        min_usd_asset_value_threshold=min_usd_asset_value_threshold,
        max_vaults_per_asset=max_vaults_per_asset,
        always_return_assets=always_return_assets,
        apy_interval=apy_interval,
        min_apy=min_apy,
    )
    if filter_overrides:
        init_kwargs["filters"] = filter_overrides

    try:
        settings = PilotSettings(**init_kwargs)
    except (ValidationError, SecretInConfigFileError) as e:
        raise typer.BadParameter(str(e)) from e

    setup_logging(settings.log_level)
    ctx.obj = AppState(settings=settings, logger=_build_logger())

    if show_config:
        typer.echo(json.dumps(settings.as_safe_dict(), indent=2))
        raise typer.Exit(code=0)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


UserArg = Annotated[
    str | None,
    typer.Argument(help="Wallet address (defaults to the configured user_address)."),
]


@app.command()
def balances(ctx: typer.Context, user_address: UserArg = None) -> None:
    """Show idle (undeployed) asset balances."""
    state = _state(ctx)
    user = _user(state, user_address)
    filters = state.settings.filter_spec()

    response = _run(state, lambda gw: gw.get_idle_assets(user, filters))
    if _json_output(state):
        print_json(response)
        return
    print_renderable(render_idle_assets(parse_idle_assets(response)))


@app.command()
def positions(ctx: typer.Context, user_address: UserArg = None) -> None:
    """Show active vault positions."""
    state = _state(ctx)
    user = _user(state, user_address)
    filters = state.settings.filter_spec()

    response = _run(state, lambda gw: gw.get_positions(user, filters))
    if _json_output(state):
        print_json(response)
        return
    print_renderable(render_positions(parse_positions(response)))


@app.command()
def options(ctx: typer.Context, user_address: UserArg = None) -> None:
    """Show deposit options for idle balances, in API order."""
    state = _state(ctx)
    user = _user(state, user_address)
    filters = state.settings.filter_spec()

    response = _run(state, lambda gw: gw.get_deposit_options(user, filters))
    if _json_output(state):
        print_json(response)
        return
    interval = filters.apy_interval.value if filters.apy_interval else "7day"
    print_renderable(
        render_deposit_options(parse_deposit_options(response, apy_interval=interval))
    )


@app.command()
def rank(
    ctx: typer.Context,
    user_addresses: Annotated[
        list[str], typer.Argument(help="One or more wallet addresses.")
    ],
) -> None:
    """Rank deposit options for several wallets at once."""
    from .pipeline import rank_for_users

    state = _state(ctx)
    filters = state.settings.filter_spec()

    rankings = _run(
        state, lambda gw: rank_for_users(gw, user_addresses, filters, state.logger)
    )
    if _json_output(state):
        print_json(rankings)
        if any(entry.failed for entry in rankings):
            raise typer.Exit(code=1)
        return
    console = Console()
    failures: dict[str, Exception] = {}
    for entry in rankings:
        if entry.failed:
            failures[entry.user_address] = entry.error
            continue
        console.rule(entry.user_address)
        print_renderable(render_ranked_options(entry.ranked or {}), console)
    if failures:
        print_renderable(render_failures(failures), console)
        raise typer.Exit(code=1)


@app.command("best-deposit")
def best_deposit(
    ctx: typer.Context,
    user_address: UserArg = None,
    amount: Annotated[
        str, typer.Option("--amount", help="Amount in the asset's base units.")
    ] = "1000000",
    assets: Annotated[
        list[str] | None,
        typer.Option(
            "--asset",
            help="Query each of these assets separately (repeatable).",
        ),
    ] = None,
    symbol: Annotated[
        str | None,
        typer.Option("--symbol", help="Asset whose ranking to pick from."),
    ] = None,
    index: Annotated[
        int, typer.Option("--index", help="Rank within that asset (0 is the best).")
    ] = 0,
    asset_address: Annotated[
        str | None,
        typer.Option("--asset-address", help="Override the deposited asset address."),
    ] = None,
    simulate: Annotated[
        bool | None,
        typer.Option(
            "--simulate/--execute",
            help="Request a simulated or an executable descriptor.",
        ),
    ] = None,
) -> None:
    """Rank deposit options and build a deposit into the chosen vault."""
    from .pipeline import run_best_deposit

    state = _state(ctx)
    user = _user(state, user_address)
    filters = state.settings.filter_spec()
    simulated = state.settings.simulate if simulate is None else simulate
    asset_list = _filter_overrides(assets=assets).get("assets")

    result = _run(
        state,
        lambda gw: run_best_deposit(
            state,
            gw,
            user,
            filters,
            amount,
            simulate=simulated,
            assets=asset_list,
            symbol=symbol,
            index=index,
            asset_address=asset_address,
        ),
    )
    if result.build_error is not None or (
        result.outcome is not None and not result.outcome.success
    ):
        raise typer.Exit(code=1)


@app.command()
def action(
    ctx: typer.Context,
    kind: Annotated[ActionKind, typer.Argument(help="Action to build.")],
    vault_address: Annotated[str, typer.Argument(help="Vault address.")],
    network: Annotated[
        str | None,
        typer.Option("--network", "-n", help="Vault network (name, chain id or CAIP-2)."),
    ] = None,
    user_address: Annotated[
        str | None, typer.Option("--user", help="Wallet address.")
    ] = None,
    asset_address: Annotated[
        str | None, typer.Option("--asset-address", help="Vault asset address.")
    ] = None,
    amount: Annotated[
        str | None,
        typer.Option("--amount", help="Amount in the asset's base units."),
    ] = None,
    redeem_all: Annotated[
        bool, typer.Option("--all", help="Redeem the whole position.")
    ] = False,
    simulate: Annotated[
        bool | None,
        typer.Option(
            "--simulate/--execute",
            help="Request a simulated or an executable descriptor.",
        ),
    ] = None,
) -> None:
    """Build a deposit, redeem or claim-rewards transaction for one vault."""
    state = _state(ctx)
    user = _user(state, user_address)
    simulated = state.settings.simulate if simulate is None else simulate

    async def _build(gateway: BaseGateway):
        return await TransactionBuilder(gateway).build(
            kind,
            user,
            network or state.settings.network,
            vault_address,
            simulate=simulated,
            amount=amount,
            asset_address=asset_address,
            redeem_all=redeem_all,
        )

    outcome = _run(state, _build)
    if _json_output(state):
        print_json(outcome.to_dict())
    else:
        print_renderable(render_transaction(outcome))
    if not outcome.success:
        raise typer.Exit(code=1)


@app.command()
def vaults(
    ctx: typer.Context,
    page: Annotated[int | None, typer.Option("--page")] = None,
    per_page: Annotated[int | None, typer.Option("--per-page")] = None,
) -> None:
    """List vaults matching the configured filters."""
    state = _state(ctx)
    filters = state.settings.filter_spec()

    response = _run(state, lambda gw: gw.list_vaults(filters, page=page, per_page=per_page))
    interval = filters.apy_interval.value if filters.apy_interval else "7day"
    # disallowed tags have no query parameter and are applied here
    matching = [v for v in parse_vaults(response, apy_interval=interval) if filters.matches(v)]
    if _json_output(state):
        print_json(matching)
        return
    print_renderable(render_vaults(matching))


@app.command()
def vault(
    ctx: typer.Context,
    vault_address: Annotated[str, typer.Argument(help="Vault address.")],
    network: Annotated[
        str | None, typer.Option("--network", "-n", help="Vault network.")
    ] = None,
) -> None:
    """Show the detailed record of one vault."""
    state = _state(ctx)
    response = _run(
        state, lambda gw: gw.get_vault(network or state.settings.network, vault_address)
    )
    print_json(response)


@app.command()
def history(
    ctx: typer.Context,
    vault_address: Annotated[str, typer.Argument(help="Vault address.")],
    network: Annotated[
        str | None, typer.Option("--network", "-n", help="Vault network.")
    ] = None,
    interval: Annotated[
        ApyInterval | None, typer.Option("--interval", help="APY window.")
    ] = None,
    page: Annotated[int | None, typer.Option("--page")] = None,
    per_page: Annotated[int | None, typer.Option("--per-page")] = None,
    from_timestamp: Annotated[
        int | None, typer.Option("--from", help="Unix timestamp (inclusive).")
    ] = None,
    to_timestamp: Annotated[
        int | None, typer.Option("--to", help="Unix timestamp (inclusive).")
    ] = None,
) -> None:
    """Show historical APY and TVL for one vault."""
    state = _state(ctx)
    response = _run(
        state,
        lambda gw: gw.get_historical_apy(
            network or state.settings.network,
            vault_address,
            interval=interval,
            page=page,
            per_page=per_page,
            from_timestamp=from_timestamp,
            to_timestamp=to_timestamp,
        ),
    )
    print_json(response)


@app.command("check-endpoints")
def check_endpoints(
    ctx: typer.Context,
    user_address: Annotated[str | None, typer.Option("--user")] = None,
    vault_address: Annotated[str | None, typer.Option("--vault")] = None,
    asset_address: Annotated[str | None, typer.Option("--asset-address")] = None,
    network: Annotated[str | None, typer.Option("--network", "-n")] = None,
) -> None:
    """Call every API endpoint once and report which ones work."""
    state = _state(ctx)
    defaults = CheckTarget()
    target = CheckTarget(
        user_address=user_address or state.settings.user_address or defaults.user_address,
        vault_address=vault_address or defaults.vault_address,
        asset_address=asset_address or defaults.asset_address,
        network=network or state.settings.network,
    )

    summary = _run(state, lambda gw: run_endpoint_checks(default_checks(gw, target)))
    if _json_output(state):
        print_json(
            {
                "total": summary.total,
                "successful": summary.successful,
                "failed": summary.failed,
                "success_rate": summary.success_rate,
                "results": summary.results,
            }
        )
    else:
        print_renderable(render_endpoint_summary(summary))
    if summary.failed:
        raise typer.Exit(code=1)


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
