"""Portfolio aggregation: ledger-derived holdings valued at stored prices.

Valuation is a pure read. Refreshing prices is a separate, explicit step
that overwrites stored prices coin by coin; a failed lookup keeps the old
price and is reported rather than raised.
"""

import logging
from datetime import datetime
from typing import Optional

from cryptofolio.db.store import PortfolioStore
from cryptofolio.errors import ExternalServiceError, NotFoundError, ValidationError
from cryptofolio.models import (
    Coin,
    CoinQuote,
    Holding,
    HoldingValuation,
    PortfolioValuation,
    PriceRefreshReport,
    Trade,
)
from cryptofolio.providers.coinmarketcap import CoinMarketCapClient

logger = logging.getLogger(__name__)


def value_holding(holding: Holding) -> HoldingValuation:
    """Value one holding at its last observed price."""
    value = holding.quantity * holding.last_price
    return HoldingValuation(
        holding=holding,
        value=value,
        profit_loss=value - holding.quantity * holding.entry_price,
    )


def value_holdings(holdings: list[Holding]) -> PortfolioValuation:
    """Value a set of holdings and total them."""
    valuations = [value_holding(h) for h in holdings]
    total_value = sum(v.value for v in valuations)
    total_cost = sum(v.holding.cost_basis for v in valuations)
    return PortfolioValuation(
        holdings=valuations,
        total_value=total_value,
        total_cost=total_cost,
        total_profit_loss=sum(v.profit_loss for v in valuations),
        as_of=datetime.now(),
    )


def snapshot_rows(valuation: PortfolioValuation) -> list[dict]:
    """Plain-data rows of a valuation, one per holding."""
    return [
        {
            "cmc_id": v.holding.coin_id,
            "symbol": v.holding.symbol,
            "name": v.holding.name,
            "amount": round(v.holding.quantity, 8),
            "entry_price": round(v.holding.entry_price, 8),
            "last_price": round(v.holding.last_price, 8),
            "value_usd": round(v.value, 2),
            "profit_loss_usd": round(v.profit_loss, 2),
            "strategy": v.holding.strategy,
        }
        for v in valuation.holdings
    ]


class PortfolioAggregator:
    """Combines the trade ledger with stored and fresh prices."""

    def __init__(self, store: PortfolioStore, prices: CoinMarketCapClient):
        """Initialize the aggregator.

        Args:
            store: Persistent store holding catalog and ledger.
            prices: Price source used by refresh_prices().
        """
        self.store = store
        self.prices = prices

    def refresh_prices(self) -> PriceRefreshReport:
        """Fetch the current price of every held coin and store it.

        Coins are processed one at a time. A failed lookup is logged and
        recorded in the report; the stored price for that coin is left as is.
        """
        updated: dict[int, float] = {}
        failed: dict[int, str] = {}

        for holding in self.store.compute_holdings():
            try:
                quote = self.prices.lookup_by_id(holding.coin_id)
            except (ExternalServiceError, NotFoundError) as e:
                logger.warning("Price refresh failed for %s: %s", holding.symbol, e)
                failed[holding.coin_id] = str(e)
                continue

            self.store.update_coin_price(
                holding.coin_id,
                quote.price,
                market_cap=quote.market_cap,
                volume_24h=quote.volume_24h,
                price_change_24h=quote.percent_change_24h,
            )
            updated[holding.coin_id] = quote.price
            logger.info("Updated %s price to %.2f", holding.symbol, quote.price)

        return PriceRefreshReport(updated=updated, failed=failed)

    def get_portfolio_value(self, refresh: bool = False) -> PortfolioValuation:
        """Value every open holding.

        Args:
            refresh: Refresh stored prices first. Lookup failures fall back
                to the stored price and never raise.

        Returns:
            Per-holding value and profit/loss plus portfolio totals.
        """
        if refresh:
            self.refresh_prices()
        return value_holdings(self.store.compute_holdings())

    def add_coin(
        self,
        quote: CoinQuote,
        quantity: float,
        strategy: Optional[str] = None,
        price: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> Optional[Holding]:
        """Register an acquisition: catalog the coin and record a BUY.

        Args:
            quote: Provider quote of the selected coin.
            quantity: Units acquired.
            strategy: Optional strategy note. Keeps the existing note if None.
            price: Unit price paid. Defaults to the quoted price.
            notes: Optional trade note.

        Returns:
            The resulting holding.
        """
        if not quantity > 0:
            raise ValidationError("Amount must be greater than 0", field="quantity")

        existing = self.store.get_coin(quote.id)
        if strategy is None and existing is not None:
            strategy = existing.strategy

        self.store.upsert_holding(Coin.from_quote(quote, strategy=strategy))
        self.store.record_trade(
            Trade(
                coin_id=quote.id,
                side="BUY",
                quantity=quantity,
                price=price if price is not None else quote.price,
                notes=notes,
            )
        )
        return self._holding(quote.id)

    def record_trade(
        self,
        coin_id: int,
        side: str,
        quantity: float,
        price: float,
        notes: Optional[str] = None,
    ) -> int:
        """Record a trade on a cataloged coin.

        Raises:
            ValidationError: If a SELL exceeds the open position or the
                trade itself is malformed.
            NotFoundError: If the coin is not cataloged.
        """
        side = side.upper()
        if side == "SELL":
            held = self._holding(coin_id)
            available = held.quantity if held else 0.0
            if quantity > available:
                raise ValidationError(
                    f"Cannot sell {quantity:g}; only {available:g} held", field="quantity"
                )
        return self.store.record_trade(
            Trade(coin_id=coin_id, side=side, quantity=quantity, price=price, notes=notes)
        )

    def remove_coin(self, coin_id: int) -> None:
        """Remove a coin and its ledger. Unknown ids are a no-op."""
        self.store.remove_holding(coin_id)

    def _holding(self, coin_id: int) -> Optional[Holding]:
        return next(
            (h for h in self.store.compute_holdings() if h.coin_id == coin_id), None
        )

    def portfolio_snapshot(self) -> list[dict]:
        """Plain-data view of the valued portfolio, for prompts and exports."""
        return snapshot_rows(self.get_portfolio_value())

