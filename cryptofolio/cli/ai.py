"""AI analysis commands for the cryptofolio CLI."""

from pathlib import Path
from typing import Optional

import click

from cryptofolio.agents.analyst import AnalysisReport
from cryptofolio.cli.context import AppContext, abort, console, pass_app
from cryptofolio.cli.display import analysis_panel
from cryptofolio.errors import CryptofolioError


def run_single(app: AppContext, kind: str) -> str:
    """Run one analysis template and return the model's text."""
    analyst = app.analyst
    portfolio = app.portfolio_snapshot()
    market = app.latest_market()

    with console.status("[cyan]Waiting for analysis...[/cyan]"):
        if kind == "analyze":
            return analyst.analyze_portfolio(portfolio, market)
        if kind == "strategy":
            analysis = analyst.analyze_portfolio(portfolio, market)
            return analyst.suggest_strategies(analysis)
        if kind == "risk":
            return analyst.assess_risk(portfolio, market)
        if kind == "sentiment":
            return analyst.analyze_sentiment(portfolio, market)
    raise ValueError(f"Unknown analysis {kind!r}")


def run_full(app: AppContext, save_dir: Optional[Path] = None) -> AnalysisReport:
    """Run the full analysis, print every section and optionally save it."""
    analyst = app.analyst
    portfolio = app.portfolio_snapshot()
    market = app.latest_market()

    with console.status("[cyan]Running full analysis...[/cyan]"):
        report = analyst.run_full_analysis(portfolio, market)

    for title, body in report.sections():
        console.print(analysis_panel(title.title(), body))

    if save_dir is not None:
        path = report.save(save_dir)
        console.print(f"[green]Analysis saved to {path}[/green]")
    return report


TITLES = {
    "analyze": "Portfolio Analysis",
    "strategy": "Trading Strategies",
    "risk": "Risk Assessment",
    "sentiment": "Market Sentiment",
}


def _single_command(kind: str, help_text: str) -> click.Command:
    @click.command(name=kind, help=help_text)
    @pass_app
    def command(app: AppContext) -> None:
        try:
            text = run_single(app, kind)
        except CryptofolioError as e:
            abort(str(e))
        console.print(analysis_panel(TITLES[kind], text))

    return command


@click.group()
def ai() -> None:
    """Narrative portfolio analysis from a language model.

    Prompts include the valued portfolio and the latest stored market
    snapshot (see `cryptofolio market refresh`).
    """


ai.add_command(_single_command("analyze", "General portfolio health analysis."))
ai.add_command(_single_command("strategy", "Trading strategies based on a fresh analysis."))
ai.add_command(_single_command("risk", "Risk assessment of the portfolio."))
ai.add_command(_single_command("sentiment", "Market sentiment impact on the portfolio."))


@ai.command("full")
@click.option(
    "--save",
    "save_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory to write portfolio-analysis-<timestamp>.txt into.",
)
@pass_app
def ai_full(app: AppContext, save_dir: Optional[Path]) -> None:
    """Run all four analyses.

    \b
    Examples:
      cryptofolio ai full
      cryptofolio ai full --save ./reports
    """
    try:
        run_full(app, save_dir)
    except CryptofolioError as e:
        abort(str(e))
