"""Global market snapshot commands."""

import click

from cryptofolio.cli.context import AppContext, abort, console, pass_app
from cryptofolio.cli.display import market_panel
from cryptofolio.errors import CryptofolioError
from cryptofolio.models import MarketSnapshot


def refresh_market(app: AppContext) -> MarketSnapshot:
    """Fetch global metrics and store them as the latest snapshot."""
    snapshot = app.prices.global_metrics()
    app.store.save_market_snapshot(snapshot)
    return snapshot


@click.group()
def market() -> None:
    """Global market metrics used as context for AI analysis."""


@market.command("refresh")
@pass_app
def market_refresh(app: AppContext) -> None:
    """Fetch and store a new global market snapshot."""
    try:
        snapshot = refresh_market(app)
    except CryptofolioError as e:
        abort(str(e))
    console.print(market_panel(snapshot))


@market.command("show")
@pass_app
def market_show(app: AppContext) -> None:
    """Show the latest stored market snapshot."""
    try:
        snapshot = app.latest_market()
    except CryptofolioError as e:
        abort(str(e))
    if snapshot is None:
        console.print("[dim]No market snapshot yet. Run [cyan]cryptofolio market refresh[/cyan].[/dim]")
        return
    console.print(market_panel(snapshot))
