#!/usr/bin/env python3
"""
btcbridge CLI

Command-line interface for operating a bridge state database directly.

Usage:
    btcbridge init --owner OWNER [--fee-rate N] [--max-deposit N] [--oracle A]... [--whitelist A]...
    btcbridge deposit --caller ORACLE <tx_id> <amount> <recipient>
    btcbridge withdraw --caller HOLDER <amount>
    btcbridge oracle add|remove --caller OWNER <account>
    btcbridge whitelist add|remove --caller OWNER <account>
    btcbridge pause|unpause --caller OWNER
    btcbridge set-fee --caller OWNER <rate>
    btcbridge set-max-deposit --caller OWNER <maximum>
    btcbridge status [--json]
    btcbridge balance <account>
    btcbridge serve [--host HOST] [--port PORT]

A rejected bridge operation exits with its bridge error code (1-9).
"""

import asyncio
import json
from typing import Any, Callable, Optional, Tuple

import click

from ..bridge.engine import BridgeEngine
from ..bridge.store import SQLiteBridgeStateStore
from ..config.loader import BridgeConfig, load_config
from ..constants import BRIDGE_VERSION
from ..exceptions import BridgeError, StateStoreError
from ..logger import set_log_level


class CLIState:
    """Resolved options shared by every subcommand."""

    def __init__(self, config: BridgeConfig, db_path: str):
        self.config = config
        self.db_path = db_path


async def _with_engine(db_path: str, operation: Callable[[BridgeEngine], Any], persist: bool) -> Any:
    store = SQLiteBridgeStateStore(db_path)
    await store.initialize()
    try:
        snapshot = await store.load()
        if snapshot is None:
            raise click.ClickException(
                f"No bridge state in {db_path}. Run 'btcbridge init' first."
            )
        engine = BridgeEngine.from_dict(snapshot)
        result = operation(engine)
        if persist:
            await store.save(engine.to_dict())
        return result
    finally:
        await store.close()


def run_engine(ctx: click.Context, operation: Callable[[BridgeEngine], Any], persist: bool = True) -> Any:
    """Load the engine, run *operation*, save on success; bridge errors exit with their code."""
    state: CLIState = ctx.obj
    try:
        return asyncio.run(_with_engine(state.db_path, operation, persist))
    except BridgeError as e:
        click.echo(click.style(f"✗ {e.code.name} ({int(e.code)}): {e.message}", fg="red"), err=True)
        ctx.exit(int(e.code))
    except StateStoreError as e:
        raise click.ClickException(str(e))


def caller_option(func):
    return click.option(
        "--caller", "-c",
        required=True,
        help="Account submitting the operation"
    )(func)


@click.group()
@click.version_option(version=BRIDGE_VERSION, prog_name="btcbridge")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to config.toml")
@click.option("--db", "db_path", type=click.Path(dir_okay=False), help="Bridge state database (overrides [database] path)")
@click.option("--verbose", "-v", is_flag=True, help="Show engine log output")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], db_path: Optional[str], verbose: bool):
    """btcbridge Command Line Interface

    Custodial Bitcoin bridge ledger: oracle deposits, holder withdrawals
    and owner administration against a local state database.
    """
    # Command output is the report; engine logs only with --verbose
    set_log_level("DEBUG" if verbose else "ERROR")
    config = load_config(config_path)
    if db_path:
        config.database.path = db_path
    ctx.obj = CLIState(config, config.database.path)


@cli.command("init")
@click.option("--owner", "-o", help="Owner account (default: [bridge] owner)")
@click.option("--fee-rate", type=int, help="Fee rate in milli-percent (10 = 1.0%)")
@click.option("--max-deposit", type=int, help="Per-deposit ceiling in satoshi")
@click.option("--oracle", "oracles", multiple=True, help="Oracle account to authorize (repeatable)")
@click.option("--whitelist", "whitelist", multiple=True, help="Recipient account to whitelist (repeatable)")
@click.pass_context
def init_cmd(ctx: click.Context, owner: Optional[str], fee_rate: Optional[int],
             max_deposit: Optional[int], oracles: Tuple[str, ...], whitelist: Tuple[str, ...]):
    """Deploy a new bridge into the state database.

    Examples:

        btcbridge --db data/bridge.db init --owner alice --oracle oracle1 --whitelist bob
    """
    state: CLIState = ctx.obj
    bridge = state.config.bridge
    if owner:
        bridge.owner = owner
    if fee_rate is not None:
        bridge.fee_rate = fee_rate
    if max_deposit is not None:
        bridge.max_deposit = max_deposit
    if oracles:
        bridge.oracles = list(oracles)
    if whitelist:
        bridge.whitelist = list(whitelist)

    try:
        state.config.validate()
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    async def _init() -> BridgeEngine:
        store = SQLiteBridgeStateStore(state.db_path)
        await store.initialize()
        try:
            if await store.load() is not None:
                raise click.ClickException(f"Bridge state already exists in {state.db_path}")
            engine = BridgeEngine.from_config(state.config)
            await store.save(engine.to_dict())
            return engine
        finally:
            await store.close()

    try:
        engine = asyncio.run(_init())
    except BridgeError as e:
        click.echo(click.style(f"✗ {e.code.name} ({int(e.code)}): {e.message}", fg="red"), err=True)
        ctx.exit(int(e.code))

    click.echo(click.style("✓ Bridge deployed", fg="green"))
    click.echo(f"Owner:       {engine.state.owner}")
    click.echo(f"Fee rate:    {engine.state.fee_rate}")
    click.echo(f"Max deposit: {engine.state.max_deposit}")
    click.echo(f"Oracles:     {', '.join(engine.oracles.enabled_accounts()) or '-'}")
    click.echo(f"Database:    {state.db_path}")


# ── Ledger operations ───────────────────────────────────────────────

@cli.command("deposit")
@caller_option
@click.argument("tx_id")
@click.argument("amount", type=int)
@click.argument("recipient")
@click.pass_context
def deposit_cmd(ctx: click.Context, caller: str, tx_id: str, amount: int, recipient: str):
    """Record an oracle-asserted Bitcoin deposit and mint tokens.

    Examples:

        btcbridge deposit --caller oracle1 4a5e1e4baab89f3a32518a88 150000 bob
    """
    net = run_engine(ctx, lambda engine: engine.deposit(caller, tx_id, amount, recipient))
    click.echo(click.style(f"✓ Minted {net} to {recipient}", fg="green"))


@cli.command("withdraw")
@caller_option
@click.argument("amount", type=int)
@click.pass_context
def withdraw_cmd(ctx: click.Context, caller: str, amount: int):
    """Burn tokens held by the caller."""
    net = run_engine(ctx, lambda engine: engine.withdraw(caller, amount))
    click.echo(click.style(f"✓ Burned {amount} from {caller} (net {net})", fg="green"))


# ── Administration ──────────────────────────────────────────────────

@cli.group("oracle")
def oracle_group():
    """Authorize or revoke oracles (owner only)."""


@oracle_group.command("add")
@caller_option
@click.argument("account")
@click.pass_context
def oracle_add_cmd(ctx: click.Context, caller: str, account: str):
    run_engine(ctx, lambda engine: engine.add_oracle(caller, account))
    click.echo(click.style(f"✓ Oracle authorized: {account}", fg="green"))


@oracle_group.command("remove")
@caller_option
@click.argument("account")
@click.pass_context
def oracle_remove_cmd(ctx: click.Context, caller: str, account: str):
    run_engine(ctx, lambda engine: engine.remove_oracle(caller, account))
    click.echo(click.style(f"✓ Oracle revoked: {account}", fg="yellow"))


@cli.group("whitelist")
def whitelist_group():
    """Add or remove deposit recipients (owner only)."""


@whitelist_group.command("add")
@caller_option
@click.argument("account")
@click.pass_context
def whitelist_add_cmd(ctx: click.Context, caller: str, account: str):
    run_engine(ctx, lambda engine: engine.add_to_whitelist(caller, account))
    click.echo(click.style(f"✓ Whitelisted: {account}", fg="green"))


@whitelist_group.command("remove")
@caller_option
@click.argument("account")
@click.pass_context
def whitelist_remove_cmd(ctx: click.Context, caller: str, account: str):
    run_engine(ctx, lambda engine: engine.remove_from_whitelist(caller, account))
    click.echo(click.style(f"✓ Removed from whitelist: {account}", fg="yellow"))


@cli.command("pause")
@caller_option
@click.pass_context
def pause_cmd(ctx: click.Context, caller: str):
    """Halt deposits and withdrawals."""
    run_engine(ctx, lambda engine: engine.pause_bridge(caller))
    click.echo(click.style("⚠️  Bridge paused", fg="yellow", bold=True))


@cli.command("unpause")
@caller_option
@click.pass_context
def unpause_cmd(ctx: click.Context, caller: str):
    """Resume deposits and withdrawals."""
    run_engine(ctx, lambda engine: engine.unpause_bridge(caller))
    click.echo(click.style("✓ Bridge unpaused", fg="green"))


@cli.command("set-fee")
@caller_option
@click.argument("rate", type=int)
@click.pass_context
def set_fee_cmd(ctx: click.Context, caller: str, rate: int):
    """Set the fee rate in milli-percent (0 <= rate < 100)."""
    run_engine(ctx, lambda engine: engine.update_bridge_fee(caller, rate))
    click.echo(click.style(f"✓ Fee rate set to {rate}", fg="green"))


@cli.command("set-max-deposit")
@caller_option
@click.argument("maximum", type=int)
@click.pass_context
def set_max_deposit_cmd(ctx: click.Context, caller: str, maximum: int):
    """Set the per-deposit ceiling (0 < maximum < 100000000)."""
    run_engine(ctx, lambda engine: engine.update_max_deposit(caller, maximum))
    click.echo(click.style(f"✓ Max deposit set to {maximum}", fg="green"))


# ── Queries ─────────────────────────────────────────────────────────

@cli.command("status")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
def status_cmd(ctx: click.Context, as_json: bool):
    """Display bridge configuration and counters."""
    status = run_engine(ctx, lambda engine: engine.get_status(), persist=False)

    if as_json:
        click.echo(json.dumps(status, indent=2))
        return

    token = status["token"]
    click.echo()
    click.echo(click.style("═══════════════════════════════════════", fg="cyan"))
    click.echo(click.style("            btcbridge status            ", fg="cyan", bold=True))
    click.echo(click.style("═══════════════════════════════════════", fg="cyan"))
    click.echo()
    click.echo(f"Owner:          {status['owner']}")
    paused = click.style("PAUSED", fg="red", bold=True) if status["paused"] else click.style("active", fg="green")
    click.echo(f"State:          {paused}")
    click.echo(f"Fee rate:       {status['fee_rate']} (x 0.1%)")
    click.echo(f"Max deposit:    {status['max_deposit']}")
    click.echo(f"Total locked:   {status['total_locked']}")
    click.echo(f"Token:          {token['name']} ({token['symbol']}), supply {token['total_supply']}")
    click.echo(f"Oracles:        {', '.join(status['oracles']) or '-'}")
    click.echo(f"Whitelisted:    {status['whitelisted']}")
    click.echo(f"Processed txs:  {status['processed_transactions']}")


@cli.command("balance")
@click.argument("account")
@click.pass_context
def balance_cmd(ctx: click.Context, account: str):
    """Show the token balance of an account."""
    balance = run_engine(ctx, lambda engine: engine.get_user_balance(account), persist=False)
    click.echo(f"{account}: {balance}")


@cli.command("serve")
@click.option("--host", help="Bind address (default: [rpc] host)")
@click.option("--port", type=int, help="Bind port (default: [rpc] port)")
@click.pass_context
def serve_cmd(ctx: click.Context, host: Optional[str], port: Optional[int]):
    """Run the JSON-RPC HTTP service."""
    import uvicorn

    from ..node.main import create_app

    state: CLIState = ctx.obj
    config = state.config
    if host:
        config.rpc.host = host
    if port:
        config.rpc.port = port

    uvicorn.run(
        create_app(config),
        host=config.rpc.host,
        port=config.rpc.port,
        access_log=False,
        log_config=None,
    )


if __name__ == "__main__":
    cli()
