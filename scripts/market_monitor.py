#!/usr/bin/env python3
"""CLI tool for watching live crypto prices and rebalancing a portfolio.

Usage:
    python scripts/market_monitor.py watch
    python scripts/market_monitor.py watch --limit 10 --interval 15
    python scripts/market_monitor.py rebalance portfolio.yaml --profile aggressive
"""

import sys
import time
from decimal import Decimal
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.text import Text

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from coinpulse.api.market_api import MarketDataAPI
from coinpulse.api.portfolio_api import PortfolioAPI
from coinpulse.orchestration.polling import PollingController, PollUpdate
from coinpulse.portfolio.base import Portfolio, RiskProfile, TradeDirection
from coinpulse.portfolio.rebalancer import PortfolioRebalancer
from coinpulse.utils.config import load_config
from coinpulse.utils.exceptions import CoinPulseError
from coinpulse.utils.logging import setup_logging


console = Console()


def format_price(price: Decimal) -> str:
    """Format a USD price with precision matched to its magnitude."""
    if price < Decimal("0.01"):
        return f"${price:.6f}"
    if price < 1:
        return f"${price:.4f}"
    return f"${price:,.2f}"


def format_market_cap(value: Decimal) -> str:
    """Format a market cap as $T/$B/$M."""
    for threshold, suffix in (
        (Decimal("1e12"), "T"),
        (Decimal("1e9"), "B"),
        (Decimal("1e6"), "M"),
    ):
        if value >= threshold:
            return f"${value / threshold:.2f}{suffix}"
    return f"${value:.2f}"


def create_assets_table(update: PollUpdate | None) -> Table:
    """Create the live asset price table.

    Args:
        update: Latest poll outcome (None before the first tick)

    Returns:
        Rich Table with one row per asset
    """
    title = "📈 Live Market"
    if update is not None and update.updated_at is not None:
        title += f" (updated {update.updated_at:%H:%M:%S} UTC"
        title += ", stale)" if update.is_stale else ")"

    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right")
    table.add_column("Symbol", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Price", justify="right")
    table.add_column("24h", justify="right")
    table.add_column("Market Cap", justify="right")

    if update is None or update.result is None:
        table.add_row("", "…", "Loading", "", "", "")
        return table

    for quote in update.result:
        change = quote.change_percent_24h
        change_text = Text(f"{change:+.2f}%", style="green" if change >= 0 else "red")
        table.add_row(
            str(quote.rank or ""),
            quote.symbol,
            quote.name,
            format_price(quote.price_usd),
            change_text,
            format_market_cap(quote.market_cap_usd),
        )

    if update.error is not None:
        table.caption = Text(f"Last refresh failed: {update.error}", style="yellow")

    return table


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True), default=None)
@click.pass_context
def cli(ctx, config_path):
    """CoinPulse market monitor."""
    config = load_config(config_path)
    setup_logging(level=config.get("logging.level", "WARNING"))
    ctx.obj = {"config": config, "market": MarketDataAPI.from_config(config)}


@cli.command()
@click.option("--limit", default=None, type=int, help="Number of assets to show")
@click.option("--interval", default=None, type=int, help="Polling interval in seconds")
@click.pass_context
def watch(ctx, limit, interval):
    """Watch live prices until interrupted."""
    config = ctx.obj["config"]
    market: MarketDataAPI = ctx.obj["market"]
    interval_ms = interval * 1000 if interval else config.get("polling.interval_ms", 60_000)

    controller = PollingController(config.section("scheduler"))
    latest: dict = {"update": None}

    def on_update(update: PollUpdate) -> None:
        latest["update"] = update

    state = market.subscribe_assets(
        controller, listener=on_update, limit=limit, interval_ms=interval_ms
    )

    try:
        with Live(create_assets_table(None), console=console, refresh_per_second=2) as live:
            while True:
                live.update(create_assets_table(latest["update"]))
                time.sleep(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        controller.unsubscribe(state.key, on_update)
        controller.shutdown(wait=False)


@cli.command()
@click.argument("portfolio_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--profile",
    type=click.Choice([p.value for p in RiskProfile]),
    default=None,
    help="Risk profile (default from config)",
)
@click.pass_context
def rebalance(ctx, portfolio_file, profile):
    """Suggest rebalancing trades for a portfolio YAML file."""
    config = ctx.obj["config"]
    market: MarketDataAPI = ctx.obj["market"]
    profile = profile or config.get("rebalancing.default_risk_profile", "moderate")

    with open(portfolio_file, "r", encoding="utf-8") as f:
        portfolio = Portfolio.from_dict(yaml.safe_load(f) or {})

    api = PortfolioAPI(PortfolioRebalancer(config.section("rebalancing")))

    try:
        result = api.evaluate(portfolio, market.get_quote_map(), profile)
    except CoinPulseError as e:
        console.print(f"[red]Failed to evaluate portfolio: {e}[/red]")
        sys.exit(1)

    revalued = result["portfolio"]
    holdings = Table(title="💼 Portfolio", show_header=True, header_style="bold magenta")
    holdings.add_column("Symbol", style="cyan")
    holdings.add_column("Amount", justify="right")
    holdings.add_column("Value", justify="right")
    holdings.add_column("Allocation", justify="right")
    for asset in revalued.assets:
        holdings.add_row(
            asset.symbol,
            str(asset.amount),
            format_price(asset.value_usd),
            f"{asset.allocation_percent:.2f}%",
        )
    holdings.caption = (
        f"Total {format_price(revalued.total_value_usd)} · "
        f"risk score {result['risk_score']} · profile {result['risk_profile'].value}"
    )
    console.print(holdings)

    if not result["actions"]:
        console.print("[green]✅ Portfolio is within target allocations[/green]")
        return

    actions = Table(title="🔁 Suggested Actions", show_header=True, header_style="bold magenta")
    actions.add_column("Action")
    actions.add_column("Symbol", style="cyan")
    actions.add_column("Units", justify="right")
    actions.add_column("Δ Allocation", justify="right")
    actions.add_column("Why")
    for action in result["actions"]:
        is_buy = action.direction == TradeDirection.BUY
        actions.add_row(
            Text(action.direction.value.upper(), style="green" if is_buy else "red"),
            action.symbol,
            str(action.units_to_trade),
            f"{action.signed_delta:+.2f}%",
            action.justification,
        )
    console.print(actions)


if __name__ == "__main__":
    cli()
