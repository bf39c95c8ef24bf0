"""Tests for the click commands and the interactive shell.

**Feature: cryptofolio**
"""

import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from cryptofolio.agents.analyst import NarrativeAnalyst
from cryptofolio.cli.context import AppContext, console
from cryptofolio.cli.main import LAZY_SUBCOMMANDS, cli
from cryptofolio.cli.shell import build_actions
from cryptofolio.config import Settings
from cryptofolio.db.store import PortfolioStore
from cryptofolio.errors import ExternalServiceError
from cryptofolio.models import Coin, CoinQuote, JournalEntry, MarketSnapshot, Trade


SOL_ADDRESS = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep table cells on one line so output assertions are stable."""
    monkeypatch.setattr(console, "width", 200)


@pytest.fixture
def tmpdir_path():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(tmpdir_path):
    return PortfolioStore(tmpdir_path / "test.db")


@pytest.fixture
def prices():
    return MagicMock()


@pytest.fixture
def wallet_client():
    client = MagicMock()
    client.native_balance.return_value = Decimal("2")
    client.token_balances.return_value = []
    return client


@pytest.fixture
def analyst():
    return NarrativeAnalyst(
        model="test-model", runner=lambda agent, message: f"{agent.name} says hi"
    )


@pytest.fixture
def app(tmpdir_path, store, prices, wallet_client, analyst):
    return AppContext(
        Settings(db_path=tmpdir_path / "test.db"),
        store=store,
        prices=prices,
        wallet_client=wallet_client,
        analyst=analyst,
    )


@pytest.fixture
def runner():
    return CliRunner()


def hold_btc(store: PortfolioStore) -> None:
    """BUY 2 @ 10, SELL 0.5 @ 12, last price 11."""
    store.upsert_holding(Coin(coin_id=1, symbol="BTC", name="Bitcoin", last_price=11.0))
    store.record_trade(Trade(coin_id=1, side="BUY", quantity=2, price=10))
    store.record_trade(Trade(coin_id=1, side="SELL", quantity=0.5, price=12))


class TestCommandRegistry:
    def test_lazy_commands_listed(self, runner, app):
        result = runner.invoke(cli, ["--help"], obj=app)

        assert result.exit_code == 0
        for name in LAZY_SUBCOMMANDS:
            assert name in result.output

    def test_menu_numbers_are_sequential(self):
        actions = build_actions()
        assert list(actions) == [str(i) for i in range(1, len(actions) + 1)]
        assert actions["1"][0] == "Add Coin to Portfolio"


class TestPortfolioCommands:
    def test_empty_portfolio(self, runner, app):
        result = runner.invoke(cli, ["portfolio"], obj=app)

        assert result.exit_code == 0
        assert "Portfolio is empty" in result.output

    def test_portfolio_totals(self, runner, app, store, prices):
        hold_btc(store)

        result = runner.invoke(cli, ["portfolio"], obj=app)

        assert result.exit_code == 0
        assert "BTC" in result.output
        assert "$16.50" in result.output
        prices.lookup_by_id.assert_not_called()

    def test_coin_name_is_not_markup(self, runner, app, store):
        store.upsert_holding(Coin(coin_id=7, symbol="ODD", name="[/red]Odd", last_price=1.0))
        store.record_trade(Trade(coin_id=7, side="BUY", quantity=1, price=1))

        result = runner.invoke(cli, ["portfolio"], obj=app)

        assert result.exit_code == 0, result.output
        assert "[/red]Odd" in result.output

    def test_refresh_survives_failed_lookup(self, runner, app, store, prices):
        hold_btc(store)
        prices.lookup_by_id.side_effect = ExternalServiceError("coinmarketcap", "HTTP 503")

        result = runner.invoke(cli, ["portfolio", "--refresh"], obj=app)

        assert result.exit_code == 0
        assert "$16.50" in result.output
        assert store.get_coin(1).last_price == 11.0

    def test_prices_command(self, runner, app, store, prices):
        hold_btc(store)
        prices.lookup_by_id.return_value = CoinQuote(
            id=1, name="Bitcoin", symbol="BTC", price=20.0
        )

        result = runner.invoke(cli, ["prices"], obj=app)

        assert result.exit_code == 0
        assert "Updated 1 price(s)" in result.output
        assert store.get_coin(1).last_price == 20.0

    def test_missing_api_key_is_fatal(self, runner, tmpdir_path):
        bare = AppContext(Settings(db_path=tmpdir_path / "bare.db"))

        result = runner.invoke(cli, ["prices"], obj=bare)

        assert result.exit_code == 1
        assert "CMC_API_KEY" in result.output


class TestWalletCommands:
    def test_add_and_list(self, runner, app, wallet_client):
        result = runner.invoke(
            cli, ["wallet", "add", "solana", SOL_ADDRESS, "-l", "main"], obj=app
        )
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["wallet", "list"], obj=app)
        assert "main" in result.output
        wallet_client.native_balance.assert_called_once_with("solana", SOL_ADDRESS)

    def test_failed_verification(self, runner, app, store, wallet_client):
        wallet_client.native_balance.side_effect = ExternalServiceError("moralis", "HTTP 500")

        result = runner.invoke(cli, ["wallet", "add", "solana", SOL_ADDRESS], obj=app)

        assert result.exit_code == 1
        assert "moralis error" in result.output
        assert store.list_wallets() == []

    def test_balance_of_untracked_wallet(self, runner, app):
        result = runner.invoke(cli, ["wallet", "balance", SOL_ADDRESS], obj=app)

        assert result.exit_code == 1
        assert "not tracked" in result.output

    def test_label_is_not_markup(self, runner, app):
        runner.invoke(cli, ["wallet", "add", "solana", SOL_ADDRESS, "-l", "[/x]"], obj=app)

        result = runner.invoke(cli, ["wallet", "list"], obj=app)

        assert result.exit_code == 0, result.output
        assert "[/x]" in result.output

    def test_remove(self, runner, app):
        runner.invoke(cli, ["wallet", "add", "solana", SOL_ADDRESS], obj=app)

        result = runner.invoke(cli, ["wallet", "remove", SOL_ADDRESS], obj=app)

        assert result.exit_code == 0
        assert "Removed" in result.output


class TestJournalCommands:
    def test_filtered_list(self, runner, app, store):
        store.add_journal_entry(JournalEntry(
            entry_type="TRADE",
            emotional_state="FEARFUL",
            confidence_level=2,
            market_sentiment="BEARISH",
            entry_text="Panic sold",
        ))
        store.add_journal_entry(JournalEntry(
            entry_type="REFLECTION",
            emotional_state="NEUTRAL",
            confidence_level=4,
            market_sentiment="NEUTRAL",
            entry_text="Calm week",
        ))

        result = runner.invoke(cli, ["journal", "list", "--type", "TRADE"], obj=app)

        assert result.exit_code == 0
        assert "Panic sold" in result.output
        assert "Calm week" not in result.output

    def test_empty_patterns(self, runner, app):
        result = runner.invoke(cli, ["journal", "patterns"], obj=app)

        assert result.exit_code == 0
        assert "Not enough journal data" in result.output


class TestMarketAndAiCommands:
    def test_market_refresh_then_show(self, runner, app, store, prices):
        prices.global_metrics.return_value = MarketSnapshot(
            timestamp=datetime(2024, 3, 1),
            total_market_cap=2.0e12,
            btc_dominance=51.0,
            market_sentiment="BEARISH",
        )

        assert runner.invoke(cli, ["market", "refresh"], obj=app).exit_code == 0
        result = runner.invoke(cli, ["market", "show"], obj=app)

        assert "BEARISH" in result.output
        assert store.get_latest_market_snapshot().btc_dominance == 51.0

    def test_ai_full_saves_report(self, runner, app, store, tmpdir_path):
        hold_btc(store)
        reports = tmpdir_path / "reports"

        result = runner.invoke(cli, ["ai", "full", "--save", str(reports)], obj=app)

        assert result.exit_code == 0, result.output
        [saved] = list(reports.glob("portfolio-analysis-*.txt"))
        assert "Risk Specialist says hi" in saved.read_text(encoding="utf-8")

    def test_ai_risk(self, runner, app):
        result = runner.invoke(cli, ["ai", "risk"], obj=app)

        assert result.exit_code == 0
        assert "Risk Specialist says hi" in result.output


class TestShell:
    def test_exit(self, runner, app):
        result = runner.invoke(cli, [], obj=app, input="0\n")

        assert result.exit_code == 0
        assert "Portfolio Management" in result.output
        assert "Goodbye!" in result.output

    def test_failed_action_returns_to_menu(self, runner, app, store, prices):
        hold_btc(store)
        prices.lookup_by_id.side_effect = RuntimeError("provider exploded")

        # 3 = Update Prices
        result = runner.invoke(cli, ["shell"], obj=app, input="3\n0\n")

        assert result.exit_code == 0
        assert "provider exploded" in result.output
        assert "Goodbye!" in result.output

    def test_view_portfolio_action(self, runner, app, store):
        hold_btc(store)

        result = runner.invoke(cli, [], obj=app, input="2\n0\n")

        assert "$16.50" in result.output

    def test_missing_keys_are_fatal(self, runner, tmpdir_path):
        bare = AppContext(Settings(db_path=tmpdir_path / "bare.db"))

        result = runner.invoke(cli, [], obj=bare, input="0\n")

        assert result.exit_code == 1
        assert "is not configured" in result.output
