"""Interactive menu shell.

One action runs at a time. Errors from an action are reported in a panel
and the menu is shown again.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

import click
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

from cryptofolio.cli.ai import TITLES, run_full, run_single
from cryptofolio.cli.context import AppContext, abort, console, error_panel, pass_app
from cryptofolio.cli.display import (
    analysis_panel,
    market_panel,
    refresh_report_text,
    trades_table,
    wallets_table,
)
from cryptofolio.cli.journal import coin_symbols, show_entries, show_patterns
from cryptofolio.cli.market import refresh_market
from cryptofolio.cli.portfolio import show_portfolio
from cryptofolio.cli.wallet import show_balances, show_wallet_portfolio
from cryptofolio.errors import ConfigurationError
from cryptofolio.models import (
    EMOTIONAL_STATES,
    ENTRY_TYPES,
    SENTIMENTS,
    Coin,
    JournalEntry,
    JournalFilter,
    TrackedWallet,
)
from cryptofolio.providers.moralis import SUPPORTED_CHAINS

logger = logging.getLogger(__name__)

POSITIVE = click.FloatRange(min=0, min_open=True)
SIDES = ("BUY", "SELL")


# ==================== Prompt helpers ====================


def _positive_float(prompt: str, default: Optional[float] = None) -> float:
    return click.prompt(prompt, type=POSITIVE, default=default)


def _choose(prompt: str, choices, default: Optional[str] = None) -> str:
    return click.prompt(
        prompt, type=click.Choice(list(choices), case_sensitive=False), default=default
    )


def _text(prompt: str) -> str:
    """Free text; empty input is allowed."""
    return click.prompt(prompt, default="", show_default=False).strip()


def _pick(title: str, options: list[str]) -> int:
    """Show numbered options and return the chosen index."""
    for i, label in enumerate(options, start=1):
        console.print(f"  [cyan]{i}[/cyan]. {escape(label)}")
    choice = click.prompt(title, type=click.IntRange(1, len(options)))
    return choice - 1


def _pick_coin(app: AppContext, title: str = "Select coin") -> Optional[Coin]:
    coins = app.store.get_coins()
    if not coins:
        console.print("[dim]No coins in portfolio[/dim]")
        return None
    index = _pick(title, [f"{c.name} ({c.symbol}) - CMC ID: {c.coin_id}" for c in coins])
    return coins[index]


def _pick_wallet(app: AppContext) -> Optional[TrackedWallet]:
    wallets = app.store.list_wallets()
    if not wallets:
        console.print("[dim]No wallets tracked[/dim]")
        return None
    index = _pick(
        "Select wallet",
        [f"{w.display_name} ({w.chain}) {w.address}" for w in wallets],
    )
    return wallets[index]


# ==================== Portfolio management ====================


def add_coin(app: AppContext) -> None:
    symbol = click.prompt("Enter coin symbol (e.g., BTC)").strip()
    if not symbol:
        return

    with console.status("[cyan]Searching...[/cyan]"):
        quotes = app.prices.lookup_by_symbol(symbol)
    if not quotes:
        console.print("[yellow]No coins found with that symbol[/yellow]")
        return

    index = _pick(
        "Select the correct coin",
        [f"{q.name} ({q.symbol}) - CMC ID: {q.id} - ${q.price:,.4f}" for q in quotes],
    )
    quote = quotes[index]

    amount = _positive_float("Enter the amount you hold")
    price = _positive_float("Price paid per coin (USD)", default=quote.price)
    strategy = _text("Enter your strategy for this coin (optional)")

    holding = app.aggregator.add_coin(quote, amount, strategy=strategy or None, price=price)
    held = holding.quantity if holding else amount
    console.print(f"[green]Added {amount:g} {escape(quote.symbol)}; now holding {held:g}[/green]")


def view_portfolio(app: AppContext) -> None:
    show_portfolio(app)


def update_prices(app: AppContext) -> None:
    with console.status("[cyan]Fetching prices...[/cyan]"):
        report = app.aggregator.refresh_prices()
    console.print(refresh_report_text(report))
    show_portfolio(app)


def record_trade(app: AppContext) -> None:
    coin = _pick_coin(app)
    if coin is None:
        return
    side = _choose("Side", SIDES, default="BUY").upper()
    quantity = _positive_float("Quantity")
    price = _positive_float("Price per coin (USD)", default=coin.last_price or None)
    notes = _text("Notes (optional)")

    trade_id = app.aggregator.record_trade(
        coin.coin_id, side, quantity, price, notes=notes or None
    )
    console.print(f"[green]Recorded {side} {quantity:g} {escape(coin.symbol)} (trade #{trade_id})[/green]")


def remove_coin(app: AppContext) -> None:
    coin = _pick_coin(app, "Select coin to remove")
    if coin is None:
        return
    if not click.confirm(f"Remove {coin.symbol} and its trade history?"):
        return
    app.aggregator.remove_coin(coin.coin_id)
    console.print(f"[green]Removed {escape(coin.symbol)}[/green]")


def trade_history(app: AppContext) -> None:
    trades = app.store.get_trades()
    if not trades:
        console.print("[dim]No trades recorded[/dim]")
        return
    console.print(trades_table(trades, coin_symbols(app)))


# ==================== AI analysis ====================


def full_analysis(app: AppContext) -> None:
    report = run_full(app)
    if click.confirm("Save analysis to a file?"):
        path = report.save(Path.cwd())
        console.print(f"[green]Analysis saved to {path}[/green]")


def _single(kind: str) -> Callable[[AppContext], None]:
    def action(app: AppContext) -> None:
        console.print(analysis_panel(TITLES[kind], run_single(app, kind)))

    return action


# ==================== Trading journal ====================


def add_journal_entry(app: AppContext) -> None:
    entry_type = _choose("Entry type", ENTRY_TYPES, default="TRADE").upper()

    coin_id = None
    trade_side = amount = price = None
    if app.store.get_coins() and click.confirm(
        "Is this about a specific coin?", default=entry_type == "TRADE"
    ):
        coin = _pick_coin(app)
        coin_id = coin.coin_id if coin else None
        if entry_type == "TRADE" and coin is not None:
            trade_side = _choose("Trade type", SIDES).upper()
            amount = _positive_float("Amount")
            price = _positive_float("Price (USD)", default=coin.last_price or None)

    emotional_state = _choose(
        "How were you feeling?", EMOTIONAL_STATES, default="NEUTRAL"
    ).upper()
    confidence = click.prompt(
        "Confidence level (1-5)", type=click.IntRange(1, 5), default=3
    )
    sentiment = _choose("Market sentiment", SENTIMENTS, default="NEUTRAL").upper()
    text = ""
    while not text:
        text = click.prompt("Journal entry").strip()
    lessons = _text("Lessons learned (optional)")
    follow_up = click.confirm("Needs follow-up?")
    tags = _text("Tags (comma separated, optional)")

    entry = JournalEntry(
        entry_type=entry_type,
        coin_id=coin_id,
        trade_side=trade_side,
        amount=amount,
        price=price,
        emotional_state=emotional_state,
        confidence_level=confidence,
        market_sentiment=sentiment,
        entry_text=text,
        lessons_learned=lessons or None,
        follow_up_needed=follow_up,
        tags=tags.split(","),
    )
    entry_id = app.store.add_journal_entry(entry)
    console.print(f"[green]Journal entry #{entry_id} saved[/green]")


JOURNAL_VIEWS = [
    "All Entries",
    "Recent Entries (7 days)",
    "Trade Entries",
    "Follow-up Needed",
    "By Emotional State",
    "By Coin",
]


def view_journal(app: AppContext) -> None:
    view = _pick("Which entries?", JOURNAL_VIEWS)
    if view == 0:
        filters = JournalFilter()
    elif view == 1:
        filters = JournalFilter(start_date=datetime.now() - timedelta(days=7))
    elif view == 2:
        filters = JournalFilter(entry_type="TRADE")
    elif view == 3:
        filters = JournalFilter(follow_up_needed=True)
    elif view == 4:
        state = _choose("Emotional state", EMOTIONAL_STATES).upper()
        filters = JournalFilter(emotional_state=state)
    else:
        coin = _pick_coin(app)
        if coin is None:
            return
        filters = JournalFilter(coin_id=coin.coin_id)
    show_entries(app, filters)


def view_patterns(app: AppContext) -> None:
    show_patterns(app)


# ==================== Wallet tracking ====================


def add_wallet(app: AppContext) -> None:
    chain = _choose("Chain", sorted(SUPPORTED_CHAINS), default="solana")
    address = click.prompt("Wallet address").strip()
    label = _text("Label (optional)")
    with console.status("[cyan]Verifying wallet...[/cyan]"):
        wallet = app.wallets.add_wallet(chain, address, label or None)
    console.print(f"[green]Tracking {escape(wallet.display_name)} ({wallet.chain})[/green]")


def view_wallets(app: AppContext) -> None:
    wallets = app.store.list_wallets()
    if not wallets:
        console.print("[dim]No wallets tracked[/dim]")
        return
    console.print(wallets_table(wallets))


def check_balances(app: AppContext) -> None:
    wallet = _pick_wallet(app)
    if wallet is not None:
        show_balances(app, wallet.address)


def wallet_portfolio(app: AppContext) -> None:
    wallet = _pick_wallet(app)
    if wallet is not None:
        show_wallet_portfolio(app, wallet.address)


def remove_wallet(app: AppContext) -> None:
    wallet = _pick_wallet(app)
    if wallet is None:
        return
    if click.confirm(f"Stop tracking {wallet.display_name}?"):
        app.store.remove_wallet(wallet.address)
        console.print(f"[green]Removed {escape(wallet.display_name)}[/green]")


# ==================== Market ====================


def refresh_market_snapshot(app: AppContext) -> None:
    with console.status("[cyan]Fetching global metrics...[/cyan]"):
        snapshot = refresh_market(app)
    console.print(market_panel(snapshot))


def show_market(app: AppContext) -> None:
    snapshot = app.latest_market()
    if snapshot is None:
        console.print("[dim]No market snapshot yet[/dim]")
        return
    console.print(market_panel(snapshot))


# ==================== Menu loop ====================


Action = Callable[[AppContext], None]

MENU: list[tuple[str, list[tuple[str, Action]]]] = [
    ("Portfolio Management", [
        ("Add Coin to Portfolio", add_coin),
        ("View Portfolio", view_portfolio),
        ("Update Prices", update_prices),
        ("Record Trade", record_trade),
        ("Remove Coin", remove_coin),
        ("Trade History", trade_history),
    ]),
    ("AI Analysis", [
        ("Full Portfolio Analysis", full_analysis),
        ("Get Trading Strategies", _single("strategy")),
        ("Risk Assessment", _single("risk")),
        ("Market Sentiment", _single("sentiment")),
    ]),
    ("Trading Journal", [
        ("Add Journal Entry", add_journal_entry),
        ("View Journal Entries", view_journal),
        ("View Trading Patterns", view_patterns),
    ]),
    ("Wallet Tracking", [
        ("Add Wallet", add_wallet),
        ("View Wallets", view_wallets),
        ("Check Balances", check_balances),
        ("View Wallet Portfolio", wallet_portfolio),
        ("Remove Wallet", remove_wallet),
    ]),
    ("Market", [
        ("Refresh Market Snapshot", refresh_market_snapshot),
        ("Show Market Snapshot", show_market),
    ]),
]


def build_actions() -> dict[str, tuple[str, Action]]:
    """Number every menu action, in menu order, starting at 1."""
    actions: dict[str, tuple[str, Action]] = {}
    for _, items in MENU:
        for label, action in items:
            actions[str(len(actions) + 1)] = (label, action)
    return actions


def render_menu(actions: dict[str, tuple[str, Action]]) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(justify="right", style="cyan")
    table.add_column()

    number = iter(actions)
    for section, items in MENU:
        table.add_row("", f"[bold]--- {section} ---[/bold]")
        for label, _ in items:
            table.add_row(next(number), label)
    table.add_row("", "[bold]--- System ---[/bold]")
    table.add_row("0", "Exit")
    return table


def run_action(app: AppContext, label: str, action: Action) -> None:
    """Run one menu action, reporting any failure instead of raising."""
    console.print(Rule(label))
    try:
        action(app)
    except (KeyboardInterrupt, click.Abort):
        console.print("\n[yellow]Cancelled[/yellow]")
    except Exception as e:
        logger.debug("Action %r failed", label, exc_info=True)
        error_panel(str(e))


def run_shell(app: AppContext) -> None:
    """Run the interactive menu until the user exits.

    All three API keys are checked before the first prompt.
    """
    try:
        app.check_credentials()
    except ConfigurationError as e:
        abort(str(e))

    actions = build_actions()
    console.print("[bold cyan]Cryptofolio[/bold cyan] [dim]portfolio tracker[/dim]")

    while True:
        console.print(render_menu(actions))
        try:
            choice = click.prompt(
                "What would you like to do?",
                type=click.Choice(["0", *actions]),
                show_choices=False,
            )
        except (KeyboardInterrupt, click.Abort):
            choice = "0"

        if choice == "0":
            console.print("Goodbye!")
            return

        label, action = actions[choice]
        run_action(app, label, action)


@click.command()
@pass_app
def shell(app: AppContext) -> None:
    """Start the interactive menu (the default with no command)."""
    run_shell(app)
