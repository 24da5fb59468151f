"""
DSWAP CLI

Command-line interface for quoting trades against a freshly deployed pair and
for running scripted simulations.

Usage:
    dswap [--config FILE] config
    dswap [--config FILE] quote buy <amount> [--slippage PCT]
    dswap [--config FILE] quote sell <amount> [--slippage PCT] [--after-buy AMOUNT]
    dswap [--config FILE] simulate <script.json> [--json]
"""

import json
from pathlib import Path
from typing import Optional

import click

from .. import __version__
from ..config import DswapConfig, load_config
from ..deploy import deploy_from_config
from ..exceptions import DswapException
from ..exchange import TradeSide, min_out_with_slippage
from ..logger import enable_file_output, set_log_level
from .simulate import Simulator, format_units, load_script, to_units

QUOTE_ACCOUNT = "quote:buyer"


def _load(config_path: Optional[str]) -> DswapConfig:
    try:
        cfg = load_config(config_path)
    except DswapException as e:
        raise click.ClickException(f"Failed to load config: {e}")
    set_log_level(cfg.logging.level)
    if cfg.logging.file_output:
        enable_file_output(Path(cfg.logging.log_file) if cfg.logging.log_file else None)
    return cfg


@click.group()
@click.version_option(version=__version__, prog_name="dswap")
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to config.toml (default: $DSWAP_CONFIG or ./config.toml)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str]):
    """DSWAP constant-product AMM with fee-funded staking rewards."""
    ctx.obj = _load(config_path)


@cli.command("config")
@click.pass_obj
def show_config(cfg: DswapConfig):
    """Print the effective configuration."""
    click.echo(json.dumps(cfg.to_dict(), indent=2))


@cli.group()
def quote():
    """Quote a trade against a fresh deployment."""


@quote.command("buy")
@click.argument("amount")
@click.option("--slippage", "-s", default=1, show_default=True, type=click.IntRange(0, 100),
              help="Slippage tolerance in percent")
@click.pass_obj
def quote_buy(cfg: DswapConfig, amount: str, slippage: int):
    """Tokens received for AMOUNT native currency."""
    try:
        deployment = deploy_from_config(cfg, "deployer")
        amm = deployment.amm
        native_in = to_units(amount)
        estimate = amm.estimate_out(native_in, TradeSide.BUY)
        impact = amm.price_impact(native_in)
        price = amm.current_price()
    except DswapException as e:
        raise click.ClickException(str(e))

    click.echo(f"Spot price:      {format_units(price)} native / token")
    click.echo(f"Pay:             {format_units(native_in)} native")
    click.echo(f"Receive (est.):  {format_units(estimate)} {deployment.token.symbol}")
    click.echo(f"Minimum ({slippage}%):    {format_units(min_out_with_slippage(estimate, slippage))} {deployment.token.symbol}")
    click.echo(f"Price impact:    {impact * 100:.4f}%")


@quote.command("sell")
@click.argument("amount")
@click.option("--slippage", "-s", default=1, show_default=True, type=click.IntRange(0, 100),
              help="Slippage tolerance in percent")
@click.option("--after-buy", default=None,
              help="Native amount bought first, so the reserve sits above its floor")
@click.pass_obj
def quote_sell(cfg: DswapConfig, amount: str, slippage: int, after_buy: Optional[str]):
    """Native currency received for AMOUNT tokens."""
    try:
        deployment = deploy_from_config(cfg, "deployer")
        amm = deployment.amm
        if after_buy is not None:
            native_in = to_units(after_buy)
            deployment.native.credit(QUOTE_ACCOUNT, native_in)
            amm.buy(QUOTE_ACCOUNT, native_in)
        token_in = to_units(amount)
        estimate = amm.estimate_out(token_in, TradeSide.SELL)
        native_reserve, _ = amm.get_reserves()
    except DswapException as e:
        raise click.ClickException(str(e))

    click.echo(f"Sell:            {format_units(token_in)} {deployment.token.symbol}")
    click.echo(f"Receive (est.):  {format_units(estimate)} native")
    click.echo(f"Minimum ({slippage}%):    {format_units(min_out_with_slippage(estimate, slippage))} native")
    if native_reserve - estimate <= amm.reserves.floor_value:
        click.echo(click.style("WARNING: this sale would reach the reserve floor and be rejected", fg="yellow"))


@cli.command("simulate")
@click.argument("script_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_obj
def simulate(cfg: DswapConfig, script_file: str, as_json: bool):
    """Run a JSON script of trades, stakes and claims on a manual clock."""
    try:
        script = load_script(script_file)
        simulator = Simulator(cfg, deployer=script.get("deployer", "deployer"))
        report = simulator.run(script)
    except DswapException as e:
        raise click.ClickException(f"Simulation failed: {type(e).__name__}: {e}")

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    for step in report.steps:
        if step.ok:
            click.echo(click.style(f"✓ [{step.index}] {step.op}: ", fg="green") + step.detail)
        else:
            click.echo(click.style(f"✗ [{step.index}] {step.op}: ", fg="yellow") + f"{step.error} ({step.detail})")

    state = report.final_state
    click.echo()
    click.echo(f"Price: {state['price']} native / token")
    for account, row in state["accounts"].items():
        click.echo(
            f"  {account}: native={row['native']} token={row['token']} staked={row['staked']} "
            f"earned_native={row['earned_native']} earned_token={row['earned_token']}"
        )


def main():
    cli()


if __name__ == "__main__":
    main()
