"""Tests for the narrative analysis requester.

The agent runner is injected, so no model is called.

**Feature: cryptofolio**
"""

import json
import tempfile
from datetime import datetime
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from cryptofolio.agents.analyst import (
    PORTFOLIO_ANALYST_INSTRUCTIONS,
    RISK_SPECIALIST_INSTRUCTIONS,
    SENTIMENT_ANALYST_INSTRUCTIONS,
    STRATEGY_ADVISOR_INSTRUCTIONS,
    AnalysisReport,
    NarrativeAnalyst,
)
from cryptofolio.errors import ExternalServiceError
from cryptofolio.models import MarketSnapshot


PORTFOLIO = [
    {"cmc_id": 1, "symbol": "BTC", "amount": 0.5, "value_usd": 32500.0},
]
MARKET = MarketSnapshot(
    timestamp=datetime(2024, 3, 1, 12, 0),
    total_market_cap=2.4e12,
    btc_dominance=52.3,
    market_sentiment="BULLISH",
)


class RecordingRunner:
    """Stands in for run_agent_sync, returning canned replies."""

    def __init__(self, reply=lambda agent, message: f"reply from {agent.name}"):
        self.reply = reply
        self.calls = []

    def __call__(self, agent, message):
        self.calls.append((agent, message))
        return self.reply(agent, message)


class TestVerbatimResponses:
    """
    *For any* model reply, the analyst returns it unchanged.
    """

    @given(reply=st.text(max_size=500))
    @settings(max_examples=50)
    def test_reply_is_returned_verbatim(self, reply: str):
        analyst = NarrativeAnalyst(model="test-model", runner=RecordingRunner(lambda a, m: reply))

        assert analyst.analyze_portfolio(PORTFOLIO, MARKET) == reply
        assert analyst.assess_risk(PORTFOLIO, MARKET) == reply
        assert analyst.analyze_sentiment(PORTFOLIO, MARKET) == reply
        assert analyst.suggest_strategies("previous") == reply


class TestPromptTemplates:
    def test_portfolio_prompt(self):
        runner = RecordingRunner()
        NarrativeAnalyst(model="test-model", runner=runner).analyze_portfolio(PORTFOLIO, MARKET)

        [(agent, message)] = runner.calls
        assert agent.instructions == PORTFOLIO_ANALYST_INSTRUCTIONS
        assert agent.model == "test-model"
        assert message.startswith("Analyze this portfolio and market data:")
        assert json.dumps(PORTFOLIO, indent=2) in message
        assert '"btc_dominance": 52.3' in message
        assert "5. Specific actions to consider" in message

    def test_strategy_prompt_includes_previous_analysis(self):
        runner = RecordingRunner()
        NarrativeAnalyst(model="test-model", runner=runner).suggest_strategies("Too much BTC.")

        [(agent, message)] = runner.calls
        assert agent.instructions == STRATEGY_ADVISOR_INSTRUCTIONS
        assert "Too much BTC." in message
        assert "5. Portfolio rebalancing" in message

    def test_risk_and_sentiment_prompts(self):
        runner = RecordingRunner()
        analyst = NarrativeAnalyst(model="test-model", runner=runner)
        analyst.assess_risk(PORTFOLIO, MARKET)
        analyst.analyze_sentiment(PORTFOLIO, MARKET)

        (risk_agent, risk_message), (sent_agent, sent_message) = runner.calls
        assert risk_agent.instructions == RISK_SPECIALIST_INSTRUCTIONS
        assert "5. Concentration risks" in risk_message
        assert sent_agent.instructions == SENTIMENT_ANALYST_INSTRUCTIONS
        assert "5. Sentiment-based risks" in sent_message

    def test_missing_market_snapshot_is_null(self):
        runner = RecordingRunner()
        NarrativeAnalyst(model="test-model", runner=runner).assess_risk(PORTFOLIO, None)

        [(_, message)] = runner.calls
        assert "Market Conditions:\nnull" in message


class TestFullAnalysis:
    def test_strategy_step_uses_general_analysis(self):
        runner = RecordingRunner()
        report = NarrativeAnalyst(model="test-model", runner=runner).run_full_analysis(
            PORTFOLIO, MARKET
        )

        assert len(runner.calls) == 4
        assert report.analysis == "reply from Portfolio Analyst"
        assert report.strategies == "reply from Strategy Advisor"
        assert "reply from Portfolio Analyst" in runner.calls[1][1]

    def test_failures_propagate(self):
        def fail(agent, message):
            raise ExternalServiceError("openai", "model unavailable")

        analyst = NarrativeAnalyst(model="test-model", runner=RecordingRunner(fail))
        with pytest.raises(ExternalServiceError, match="model unavailable"):
            analyst.run_full_analysis(PORTFOLIO, MARKET)

    def test_report_save(self):
        report = AnalysisReport(
            generated_at=datetime(2024, 3, 1, 9, 30, 5),
            analysis="A",
            strategies="S",
            risk="R",
            sentiment="M",
        )
        with tempfile.TemporaryDirectory() as tmpdir:
            path = report.save(Path(tmpdir) / "reports")

            assert path.name == "portfolio-analysis-20240301-093005.txt"
            text = path.read_text(encoding="utf-8")

        assert "=== PORTFOLIO ANALYSIS ===\nA" in text
        assert "=== RISK ASSESSMENT ===\nR" in text
        assert text.index("TRADING STRATEGIES") < text.index("MARKET SENTIMENT ANALYSIS")
