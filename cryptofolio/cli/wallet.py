"""Wallet tracking commands for the cryptofolio CLI."""

from typing import Optional

import click
from rich.markup import escape

from cryptofolio.cli.context import AppContext, abort, console, pass_app
from cryptofolio.cli.display import (
    format_amount,
    tokens_table,
    wallet_portfolio_panel,
    wallets_table,
)
from cryptofolio.errors import CryptofolioError
from cryptofolio.providers.moralis import SUPPORTED_CHAINS


def show_balances(app: AppContext, address: str) -> None:
    """Print the native and token balances of one tracked wallet."""
    tracker = app.wallets
    with console.status("[cyan]Fetching balances...[/cyan]"):
        native, tokens = tracker.check_balances(address)
        wallet = app.store.get_wallet(address)

    symbol = SUPPORTED_CHAINS[wallet.chain].native_symbol
    console.print(f"\n[bold]{escape(wallet.display_name)}[/bold] ({wallet.chain})")
    console.print(f"Native balance: [green]{format_amount(native)} {symbol}[/green]")
    if tokens:
        console.print(tokens_table(tokens))
    else:
        console.print("[dim]No token balances[/dim]")


def show_wallet_portfolio(app: AppContext, address: str) -> None:
    tracker = app.wallets
    with console.status("[cyan]Fetching wallet portfolio...[/cyan]"):
        portfolio = tracker.wallet_portfolio(address)
    wallet = app.store.get_wallet(address)
    console.print(wallet_portfolio_panel(portfolio, wallet.display_name))
    if portfolio.tokens:
        console.print(tokens_table(portfolio.tokens))


@click.group()
def wallet() -> None:
    """Track on-chain wallets (Solana, Ethereum)."""


@wallet.command("list")
@pass_app
def wallet_list(app: AppContext) -> None:
    """List tracked wallets."""
    try:
        wallets = app.store.list_wallets()
    except CryptofolioError as e:
        abort(str(e))
    if not wallets:
        console.print("[dim]No wallets tracked[/dim]")
        return
    console.print(wallets_table(wallets))


@wallet.command("add")
@click.argument("chain", type=click.Choice(sorted(SUPPORTED_CHAINS), case_sensitive=False))
@click.argument("address")
@click.option("-l", "--label", default=None, help="Optional label for the wallet.")
@pass_app
def wallet_add(app: AppContext, chain: str, address: str, label: Optional[str]) -> None:
    """Verify a wallet on-chain and start tracking it.

    \b
    Examples:
      cryptofolio wallet add solana <address> --label main
    """
    try:
        with console.status("[cyan]Verifying wallet...[/cyan]"):
            tracked = app.wallets.add_wallet(chain, address, label)
    except CryptofolioError as e:
        abort(str(e))
    console.print(f"[green]Tracking {escape(tracked.display_name)} ({tracked.chain})[/green]")


@wallet.command("remove")
@click.argument("address")
@pass_app
def wallet_remove(app: AppContext, address: str) -> None:
    """Stop tracking a wallet."""
    try:
        removed = app.store.remove_wallet(address)
    except CryptofolioError as e:
        abort(str(e))
    if removed:
        console.print(f"[green]Removed {escape(address)}[/green]")
    else:
        console.print(f"[yellow]Wallet {escape(address)} was not tracked[/yellow]")


@wallet.command("balance")
@click.argument("address")
@click.option(
    "--portfolio",
    "as_portfolio",
    is_flag=True,
    default=False,
    help="Show the combined portfolio view.",
)
@pass_app
def wallet_balance(app: AppContext, address: str, as_portfolio: bool) -> None:
    """Show balances of a tracked wallet."""
    try:
        if as_portfolio:
            show_wallet_portfolio(app, address)
        else:
            show_balances(app, address)
    except CryptofolioError as e:
        abort(str(e))
