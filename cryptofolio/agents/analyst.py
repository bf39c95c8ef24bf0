"""Narrative analysis requester.

Packages a portfolio snapshot and a market snapshot into one of four prompt
templates and returns the model's answer as an opaque string.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from agents import Agent
from pydantic import BaseModel, Field

from cryptofolio.agents.base import create_agent, run_agent_sync
from cryptofolio.models import MarketSnapshot

logger = logging.getLogger(__name__)

AgentRunner = Callable[[Agent, str], str]


PORTFOLIO_ANALYST_INSTRUCTIONS = (
    "You are a cryptocurrency portfolio analyst providing detailed analysis."
)
STRATEGY_ADVISOR_INSTRUCTIONS = "You are a cryptocurrency trading strategy advisor."
RISK_SPECIALIST_INSTRUCTIONS = "You are a cryptocurrency risk assessment specialist."
SENTIMENT_ANALYST_INSTRUCTIONS = "You are a cryptocurrency market sentiment analyst."


PORTFOLIO_ANALYSIS_PROMPT = """Analyze this portfolio and market data:

Portfolio Data:
{portfolio}

Global Market Metrics:
{market}

Provide:
1. Overall portfolio health assessment
2. Risk analysis
3. Diversification recommendations
4. Market timing insights
5. Specific actions to consider"""

STRATEGY_PROMPT = """Based on this portfolio analysis:
{analysis}

Suggest specific trading strategies for:
1. Market entry points
2. Exit strategies
3. Position sizing
4. Risk management rules
5. Portfolio rebalancing"""

RISK_PROMPT = """Analyze these risk factors:

Portfolio:
{portfolio}

Market Conditions:
{market}

Consider:
1. Volatility exposure
2. Correlation risks
3. Market cycle position
4. Liquidity risks
5. Concentration risks"""

SENTIMENT_PROMPT = """Analyze market sentiment impact:

Global Metrics:
{market}

Portfolio:
{portfolio}

Provide insights on:
1. Market sentiment indicators
2. Trend analysis
3. Portfolio positioning
4. Opportunity areas
5. Sentiment-based risks"""


def _dump(value: Any) -> str:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return json.dumps(value, indent=2, default=str)


class AnalysisReport(BaseModel):
    """Result of a full analysis run."""

    generated_at: datetime = Field(default_factory=datetime.now)
    analysis: str
    strategies: str
    risk: str
    sentiment: str

    model_config = {"frozen": True}

    def sections(self) -> list[tuple[str, str]]:
        return [
            ("PORTFOLIO ANALYSIS", self.analysis),
            ("TRADING STRATEGIES", self.strategies),
            ("RISK ASSESSMENT", self.risk),
            ("MARKET SENTIMENT ANALYSIS", self.sentiment),
        ]

    def render(self) -> str:
        """Plain-text report with one titled section per analysis."""
        parts = [f"Portfolio Analysis Report - {self.generated_at:%Y-%m-%d %H:%M:%S}"]
        for title, body in self.sections():
            parts.append(f"=== {title} ===\n{body}")
        return "\n\n".join(parts) + "\n"

    def save(self, directory: Path) -> Path:
        """Write the rendered report to ``portfolio-analysis-<timestamp>.txt``.

        Returns:
            Path of the written file.
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"portfolio-analysis-{self.generated_at:%Y%m%d-%H%M%S}.txt"
        path.write_text(self.render(), encoding="utf-8")
        return path


class NarrativeAnalyst:
    """Requests free-text analyses of a portfolio from a language model.

    Model failures propagate to the caller unchanged; nothing here retries.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        runner: AgentRunner = run_agent_sync,
    ):
        """Initialize the analyst.

        Args:
            model: Optional model override.
            runner: Callable that runs an agent on a message and returns text.
        """
        self.model = model
        self.runner = runner

    def _ask(self, name: str, instructions: str, message: str) -> str:
        agent = create_agent(name=name, instructions=instructions, model=self.model)
        logger.debug("Requesting %s (%d chars)", name, len(message))
        return self.runner(agent, message)

    def analyze_portfolio(
        self, portfolio: list[dict], market: Optional[MarketSnapshot]
    ) -> str:
        """General portfolio health, risk, diversification and timing analysis."""
        return self._ask(
            "Portfolio Analyst",
            PORTFOLIO_ANALYST_INSTRUCTIONS,
            PORTFOLIO_ANALYSIS_PROMPT.format(
                portfolio=_dump(portfolio), market=_dump(market)
            ),
        )

    def suggest_strategies(self, previous_analysis: str) -> str:
        """Trading strategies derived from an earlier analysis text."""
        return self._ask(
            "Strategy Advisor",
            STRATEGY_ADVISOR_INSTRUCTIONS,
            STRATEGY_PROMPT.format(analysis=previous_analysis),
        )

    def assess_risk(self, portfolio: list[dict], market: Optional[MarketSnapshot]) -> str:
        return self._ask(
            "Risk Specialist",
            RISK_SPECIALIST_INSTRUCTIONS,
            RISK_PROMPT.format(portfolio=_dump(portfolio), market=_dump(market)),
        )

    def analyze_sentiment(
        self, portfolio: list[dict], market: Optional[MarketSnapshot]
    ) -> str:
        return self._ask(
            "Sentiment Analyst",
            SENTIMENT_ANALYST_INSTRUCTIONS,
            SENTIMENT_PROMPT.format(portfolio=_dump(portfolio), market=_dump(market)),
        )

    def run_full_analysis(
        self, portfolio: list[dict], market: Optional[MarketSnapshot]
    ) -> AnalysisReport:
        """Run all four analyses in order.

        The strategy step is fed the general analysis text.
        """
        analysis = self.analyze_portfolio(portfolio, market)
        return AnalysisReport(
            analysis=analysis,
            strategies=self.suggest_strategies(analysis),
            risk=self.assess_risk(portfolio, market),
            sentiment=self.analyze_sentiment(portfolio, market),
        )
