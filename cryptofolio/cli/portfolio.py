"""Portfolio commands for the cryptofolio CLI.

Shows holdings valued from the trade ledger and refreshes stored prices.
"""

import click

from cryptofolio.cli.context import AppContext, abort, console, pass_app
from cryptofolio.cli.display import refresh_report_text, valuation_summary, valuation_table
from cryptofolio.errors import CryptofolioError
from cryptofolio.portfolio import value_holdings


def show_portfolio(app: AppContext, refresh: bool = False) -> None:
    """Print the holdings table and totals."""
    if refresh:
        valuation = app.aggregator.get_portfolio_value(refresh=True)
    else:
        # A plain read needs no price provider
        valuation = value_holdings(app.store.compute_holdings())

    if not valuation.holdings:
        console.print("[dim]Portfolio is empty. Add a coin from the shell to get started.[/dim]")
        return

    console.print(valuation_table(valuation))
    console.print(valuation_summary(valuation))


@click.command()
@click.option(
    "-r",
    "--refresh",
    is_flag=True,
    default=False,
    help="Fetch current prices before valuing.",
)
@pass_app
def portfolio(app: AppContext, refresh: bool) -> None:
    """Display holdings, value and profit/loss.

    Holdings are derived from recorded trades and valued at the last
    stored price unless --refresh is given.

    \b
    Examples:
      cryptofolio portfolio
      cryptofolio portfolio --refresh
    """
    try:
        show_portfolio(app, refresh=refresh)
    except CryptofolioError as e:
        abort(str(e))


@click.command()
@pass_app
def prices(app: AppContext) -> None:
    """Refresh stored prices for every held coin.

    A coin whose lookup fails keeps its previous price.

    \b
    Examples:
      cryptofolio prices
    """
    try:
        with console.status("[cyan]Fetching prices...[/cyan]"):
            report = app.aggregator.refresh_prices()
    except CryptofolioError as e:
        abort(str(e))
    console.print(refresh_report_text(report))
