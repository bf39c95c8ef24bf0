"""Shared CLI state: settings plus lazily built services."""

from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from cryptofolio.config import Settings
from cryptofolio.db.store import PortfolioStore
from cryptofolio.models import MarketSnapshot

console = Console()


def error_panel(message: str, title: str = "Error") -> None:
    """Print an error panel."""
    console.print(Panel(
        f"[red]{escape(message)}[/red]",
        title=f"[bold red]{title}[/bold red]",
        border_style="red",
    ))


def abort(message: str) -> None:
    """Print an error panel and exit with status 1."""
    error_panel(message)
    raise SystemExit(1)


class AppContext:
    """Services shared by commands, built on first use.

    Collaborators can be passed in directly, which is how tests swap out
    the HTTP clients and the language model runner.
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[PortfolioStore] = None,
        prices=None,
        wallet_client=None,
        analyst=None,
    ):
        self.settings = settings
        self._store = store
        self._prices = prices
        self._wallet_client = wallet_client
        self._analyst = analyst

    @property
    def store(self) -> PortfolioStore:
        if self._store is None:
            self._store = PortfolioStore(self.settings.db_path)
        return self._store

    @property
    def prices(self):
        if self._prices is None:
            from cryptofolio.providers.coinmarketcap import CoinMarketCapClient

            self._prices = CoinMarketCapClient(
                self.settings.require("cmc_api_key"),
                timeout=self.settings.http_timeout,
            )
        return self._prices

    @property
    def wallet_client(self):
        if self._wallet_client is None:
            from cryptofolio.providers.moralis import MoralisClient

            self._wallet_client = MoralisClient(
                self.settings.require("moralis_api_key"),
                timeout=self.settings.http_timeout,
            )
        return self._wallet_client

    @property
    def analyst(self):
        if self._analyst is None:
            from cryptofolio.agents.analyst import NarrativeAnalyst
            from cryptofolio.agents.base import configure_api_key

            configure_api_key(self.settings.require("openai_api_key"))
            self._analyst = NarrativeAnalyst(model=self.settings.openai_model)
        return self._analyst

    @property
    def aggregator(self):
        from cryptofolio.portfolio import PortfolioAggregator

        return PortfolioAggregator(self.store, self.prices)

    @property
    def wallets(self):
        from cryptofolio.wallets import WalletTracker

        return WalletTracker(self.store, self.wallet_client)

    def portfolio_snapshot(self) -> list[dict]:
        """Valued holdings as plain rows, read without touching the price provider."""
        from cryptofolio.portfolio import snapshot_rows, value_holdings

        return snapshot_rows(value_holdings(self.store.compute_holdings()))

    def latest_market(self) -> Optional[MarketSnapshot]:
        return self.store.get_latest_market_snapshot()

    def check_credentials(self) -> None:
        """Resolve every external client so missing keys fail up front."""
        self.prices
        self.wallet_client
        self.analyst


pass_app = click.make_pass_decorator(AppContext)
