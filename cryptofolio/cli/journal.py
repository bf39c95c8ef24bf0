"""Trading journal commands for the cryptofolio CLI."""

from datetime import datetime, timedelta
from typing import Optional

import click
from rich.markup import escape

from cryptofolio.cli.context import AppContext, abort, console, pass_app
from cryptofolio.cli.display import insights_table, journal_table, patterns_table
from cryptofolio.errors import CryptofolioError
from cryptofolio.models import EMOTIONAL_STATES, ENTRY_TYPES, JournalFilter


def coin_symbols(app: AppContext) -> dict[int, str]:
    return {coin.coin_id: coin.symbol for coin in app.store.get_coins()}


def show_entries(
    app: AppContext, filters: JournalFilter, empty: str = "No journal entries found"
) -> None:
    entries = app.store.query_journal_entries(filters)
    if not entries:
        console.print(f"[dim]{empty}[/dim]")
        return
    console.print(journal_table(entries, coin_symbols(app)))
    for entry in entries:
        if entry.lessons_learned:
            console.print(f"[dim]#{entry.id} lesson:[/dim] {escape(entry.lessons_learned)}")


def show_patterns(app: AppContext) -> None:
    patterns = app.store.aggregate_emotional_patterns()
    insights = app.store.aggregate_strategic_insights()
    if not patterns and not insights:
        console.print("[dim]Not enough journal data for patterns yet[/dim]")
        return
    if patterns:
        console.print(patterns_table(patterns))
    if insights:
        console.print(insights_table(insights))


@click.group()
def journal() -> None:
    """Trading journal entries and patterns."""


@journal.command("list")
@click.option("--days", type=int, default=None, help="Only entries from the last N days.")
@click.option(
    "--type",
    "entry_type",
    type=click.Choice(ENTRY_TYPES, case_sensitive=False),
    default=None,
    help="Only entries of this type.",
)
@click.option("--coin", "coin_id", type=int, default=None, help="Only entries for this CMC ID.")
@click.option(
    "--emotion",
    type=click.Choice(EMOTIONAL_STATES, case_sensitive=False),
    default=None,
    help="Only entries with this emotional state.",
)
@click.option("--follow-up", is_flag=True, default=False, help="Only entries needing follow-up.")
@pass_app
def journal_list(
    app: AppContext,
    days: Optional[int],
    entry_type: Optional[str],
    coin_id: Optional[int],
    emotion: Optional[str],
    follow_up: bool,
) -> None:
    """List journal entries, newest first.

    Filters combine: every given filter must match.

    \b
    Examples:
      cryptofolio journal list --days 7
      cryptofolio journal list --type TRADE --emotion FEARFUL
    """
    filters = JournalFilter(
        start_date=datetime.now() - timedelta(days=days) if days else None,
        entry_type=entry_type.upper() if entry_type else None,
        coin_id=coin_id,
        emotional_state=emotion.upper() if emotion else None,
        follow_up_needed=True if follow_up else None,
    )
    try:
        show_entries(app, filters)
    except CryptofolioError as e:
        abort(str(e))


@journal.command("patterns")
@pass_app
def journal_patterns(app: AppContext) -> None:
    """Emotional patterns and strategic insights from the journal."""
    try:
        show_patterns(app)
    except CryptofolioError as e:
        abort(str(e))
