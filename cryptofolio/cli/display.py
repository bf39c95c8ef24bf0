"""Rich renderers shared by the shell and the one-shot commands."""

from typing import Optional

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from cryptofolio.models import (
    EmotionalPattern,
    JournalEntry,
    MarketSnapshot,
    PortfolioValuation,
    PriceRefreshReport,
    StrategicInsight,
    TokenBalance,
    TrackedWallet,
    Trade,
    WalletPortfolio,
)


def _signed(value: float, fmt: str = ",.2f", prefix: str = "$") -> str:
    color = "green" if value >= 0 else "red"
    sign = "+" if value >= 0 else "-"
    return f"[{color}]{sign}{prefix}{abs(value):{fmt}}[/{color}]"


def _truncate(text: Optional[str], width: int = 40) -> str:
    if not text:
        return "-"
    text = text if len(text) <= width else text[: width - 3] + "..."
    return escape(text)


def _plain(text: Optional[str], default: str = "-") -> str:
    return escape(text) if text else default


def format_amount(value) -> str:
    """Fixed-point amount without trailing zeros."""
    text = f"{value:,f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def valuation_table(valuation: PortfolioValuation) -> Table:
    table = Table(title="Portfolio", show_header=True, header_style="bold cyan")
    table.add_column("Symbol", style="bold")
    table.add_column("Name")
    table.add_column("Amount", justify="right")
    table.add_column("Entry", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("P&L %", justify="right")
    table.add_column("Strategy", max_width=30)

    for v in valuation.holdings:
        h = v.holding
        table.add_row(
            _plain(h.symbol),
            _plain(h.name),
            f"{h.quantity:,.8g}",
            f"${h.entry_price:,.4f}",
            f"${h.last_price:,.4f}",
            f"${v.value:,.2f}",
            _signed(v.profit_loss),
            _signed(v.profit_loss_percent, ".2f", prefix="") + "%",
            _truncate(h.strategy, 30),
        )
    return table


def valuation_summary(valuation: PortfolioValuation) -> Panel:
    text = (
        f"Total Value:  [bold]${valuation.total_value:,.2f}[/bold]\n"
        f"Total Cost:   ${valuation.total_cost:,.2f}\n"
        f"{'─' * 30}\n"
        f"[bold]Total P&L:    {_signed(valuation.total_profit_loss)}[/bold]\n\n"
        f"[dim]As of {valuation.as_of:%Y-%m-%d %H:%M:%S}[/dim]"
    )
    return Panel(text, title="[bold cyan]Summary[/bold cyan]", border_style="cyan")


def refresh_report_text(report: PriceRefreshReport) -> str:
    lines = [f"[green]Updated {len(report.updated)} price(s)[/green]"]
    for coin_id, reason in report.failed.items():
        lines.append(f"[yellow]CMC ID {coin_id}: {escape(reason)}[/yellow]")
    return "\n".join(lines)


def trades_table(trades: list[Trade], symbols: dict[int, str]) -> Table:
    table = Table(title="Trade History", show_header=True, header_style="bold cyan")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Time")
    table.add_column("Coin", style="bold")
    table.add_column("Side")
    table.add_column("Quantity", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Notes", max_width=30)

    for t in trades:
        side_color = "green" if t.side == "BUY" else "red"
        table.add_row(
            str(t.id),
            f"{t.timestamp:%Y-%m-%d %H:%M}",
            _plain(symbols.get(t.coin_id, str(t.coin_id))),
            f"[{side_color}]{t.side}[/{side_color}]",
            f"{t.quantity:,.8g}",
            f"${t.price:,.4f}",
            f"${t.total_value:,.2f}",
            _truncate(t.notes, 30),
        )
    return table


def wallets_table(wallets: list[TrackedWallet]) -> Table:
    table = Table(title="Tracked Wallets", show_header=True, header_style="bold cyan")
    table.add_column("Label", style="bold")
    table.add_column("Chain")
    table.add_column("Address")
    table.add_column("Tracked Since")
    for w in wallets:
        table.add_row(
            _plain(w.label), w.chain, w.address, f"{w.tracked_since:%Y-%m-%d %H:%M}"
        )
    return table


def tokens_table(tokens: list[TokenBalance], title: str = "Tokens") -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Symbol", style="bold")
    table.add_column("Name")
    table.add_column("Amount", justify="right")
    table.add_column("Token")
    for token in tokens:
        table.add_row(
            _plain(token.symbol, "?"),
            _plain(token.name),
            format_amount(token.amount),
            _plain(token.token_id),
        )
    return table


def wallet_portfolio_panel(portfolio: WalletPortfolio, label: str) -> Panel:
    text = (
        f"[bold]{escape(label)}[/bold] ({portfolio.chain})\n"
        f"[dim]{portfolio.address}[/dim]\n\n"
        f"Native balance: [green]{format_amount(portfolio.native_balance)} {portfolio.native_symbol}[/green]\n"
        f"Tokens held:    {len(portfolio.tokens)}"
    )
    return Panel(text, title="[bold cyan]Wallet Portfolio[/bold cyan]", border_style="cyan")


def journal_table(entries: list[JournalEntry], symbols: dict[int, str]) -> Table:
    table = Table(title="Journal Entries", show_header=True, header_style="bold cyan")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Date")
    table.add_column("Type", style="bold")
    table.add_column("Coin")
    table.add_column("Trade")
    table.add_column("Emotion")
    table.add_column("Conf.", justify="right")
    table.add_column("Sentiment")
    table.add_column("Entry", max_width=40)
    table.add_column("Tags")
    table.add_column("F/U", justify="center")

    for e in entries:
        trade = "-"
        if e.trade_side:
            trade = f"{e.trade_side} {e.amount:g} @ ${e.price:,.2f}" if e.amount and e.price else e.trade_side
        table.add_row(
            str(e.id),
            f"{e.timestamp:%Y-%m-%d %H:%M}",
            e.entry_type,
            _plain(symbols.get(e.coin_id, str(e.coin_id))) if e.coin_id is not None else "-",
            trade,
            e.emotional_state,
            str(e.confidence_level),
            e.market_sentiment,
            _truncate(e.entry_text),
            _plain(", ".join(e.tags)),
            "[yellow]✓[/yellow]" if e.follow_up_needed else "",
        )
    return table


def patterns_table(patterns: list[EmotionalPattern]) -> Table:
    table = Table(title="Emotional Patterns", show_header=True, header_style="bold cyan")
    table.add_column("Emotional State", style="bold")
    table.add_column("Entries", justify="right")
    table.add_column("Buy Ratio", justify="right")
    table.add_column("Avg Confidence", justify="right")
    for p in patterns:
        table.add_row(
            p.emotional_state,
            str(p.count),
            f"{p.buy_ratio * 100:.1f}%",
            f"{p.avg_confidence:.2f}",
        )
    return table


def insights_table(insights: list[StrategicInsight]) -> Table:
    table = Table(title="Strategic Insights", show_header=True, header_style="bold cyan")
    table.add_column("Sentiment", style="bold")
    table.add_column("Trades", justify="right")
    table.add_column("Avg Confidence", justify="right")
    table.add_column("Common Tags")
    for i in insights:
        table.add_row(
            i.market_sentiment,
            str(i.count),
            f"{i.avg_confidence:.2f}",
            _plain(", ".join(i.common_tags[:5])),
        )
    return table


def market_panel(snapshot: MarketSnapshot) -> Panel:
    colors = {"BULLISH": "green", "BEARISH": "red", "NEUTRAL": "yellow"}
    color = colors.get(snapshot.market_sentiment, "white")
    text = (
        f"Total Market Cap: [bold]${snapshot.total_market_cap:,.0f}[/bold]\n"
        f"BTC Dominance:    {snapshot.btc_dominance:.2f}%\n"
        f"Sentiment:        [{color}]{snapshot.market_sentiment}[/{color}]"
    )
    if snapshot.total_volume_24h is not None:
        text += f"\n24h Volume:       ${snapshot.total_volume_24h:,.0f}"
    if snapshot.market_cap_change_24h is not None:
        text += f"\n24h Change:       {_signed(snapshot.market_cap_change_24h, '.2f', prefix='')}%"
    text += f"\n\n[dim]As of {snapshot.timestamp:%Y-%m-%d %H:%M:%S}[/dim]"
    return Panel(text, title="[bold cyan]Global Market[/bold cyan]", border_style="cyan")


def analysis_panel(title: str, body: str) -> Panel:
    # Model output is shown as plain text, never parsed as markup
    return Panel(Text(body), title=f"[bold cyan]{title}[/bold cyan]", border_style="cyan")
