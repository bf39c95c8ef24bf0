"""CoinMarketCap price source adapter."""

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from cryptofolio.errors import ExternalServiceError, NotFoundError
from cryptofolio.models import CoinQuote, MarketSnapshot
from cryptofolio.providers.base import HttpProvider

logger = logging.getLogger(__name__)

# 24h total market cap change (%) at which the market counts as trending
SENTIMENT_THRESHOLD = 2.0


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def classify_market_sentiment(change_24h: Optional[float]) -> str:
    """Label the market from its 24h total market cap change.

    Args:
        change_24h: Percentage change, or None when unknown.

    Returns:
        "BULLISH", "BEARISH" or "NEUTRAL".
    """
    if change_24h is None:
        return "NEUTRAL"
    if change_24h >= SENTIMENT_THRESHOLD:
        return "BULLISH"
    if change_24h <= -SENTIMENT_THRESHOLD:
        return "BEARISH"
    return "NEUTRAL"


class CoinMarketCapClient(HttpProvider):
    """Client for the CoinMarketCap Pro API.

    A ticker symbol may belong to several coins, so symbol lookups return
    every candidate and callers pick one by name and numeric id.
    """

    name = "coinmarketcap"
    base_url = "https://pro-api.coinmarketcap.com"
    api_key_header = "X-CMC_PRO_API_KEY"
    convert = "USD"

    def _extract_error(self, payload: Any) -> Optional[str]:
        if isinstance(payload, dict):
            status = payload.get("status") or {}
            message = status.get("error_message")
            if message:
                return message
        return super()._extract_error(payload)

    def _quotes(self, params: dict) -> list[dict]:
        payload = self._get(
            "/v2/cryptocurrency/quotes/latest",
            params={**params, "convert": self.convert},
        )
        status = payload.get("status") or {}
        if status.get("error_code"):
            message = status.get("error_message") or f"error code {status['error_code']}"
            raise ExternalServiceError(self.name, message, provider_message=status.get("error_message"))

        coins: list[dict] = []
        for value in (payload.get("data") or {}).values():
            # Symbol queries map each symbol to a list, id queries to an object
            if isinstance(value, list):
                coins.extend(value)
            elif isinstance(value, dict):
                coins.append(value)
        return coins

    def _usd(self, coin: dict) -> dict:
        return (coin.get("quote") or {}).get(self.convert) or {}

    def _to_quote(self, coin: dict) -> CoinQuote:
        usd = self._usd(coin)
        if usd.get("price") is None:
            raise ExternalServiceError(
                self.name, f"no {self.convert} price for coin {coin.get('id')}"
            )
        try:
            return CoinQuote(
                id=int(coin["id"]),
                name=coin["name"],
                symbol=coin["symbol"],
                slug=coin.get("slug") or "",
                price=float(usd["price"]),
                volume_24h=usd.get("volume_24h"),
                market_cap=usd.get("market_cap"),
                percent_change_24h=usd.get("percent_change_24h"),
                last_updated=_parse_timestamp(usd.get("last_updated")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ExternalServiceError(self.name, f"unexpected coin payload: {e}") from e

    def lookup_by_symbol(self, symbol: str) -> list[CoinQuote]:
        """Find every coin trading under a ticker symbol.

        Args:
            symbol: Ticker symbol, case-insensitive (e.g. "btc").

        Returns:
            Candidate coins, possibly empty.
        """
        coins = self._quotes({"symbol": symbol.strip().upper()})
        # Inactive listings come back without a price
        return [self._to_quote(coin) for coin in coins if self._usd(coin).get("price") is not None]

    def lookup_by_id(self, coin_id: int) -> CoinQuote:
        """Get the current quote for a coin by its numeric id.

        Raises:
            NotFoundError: If the provider knows no such coin.
        """
        coins = self._quotes({"id": str(coin_id)})
        if not coins:
            raise NotFoundError(f"No coin found with CoinMarketCap ID {coin_id}")
        return self._to_quote(coins[0])

    def lookup_many(self, coin_ids: Iterable[int]) -> list[CoinQuote]:
        """Get quotes for several coins in one request."""
        ids = [str(coin_id) for coin_id in coin_ids]
        if not ids:
            return []
        return [self._to_quote(coin) for coin in self._quotes({"id": ",".join(ids)})]

    def global_metrics(self) -> MarketSnapshot:
        """Get the latest global market metrics as a snapshot."""
        payload = self._get(
            "/v1/global-metrics/quotes/latest", params={"convert": self.convert}
        )
        data = payload.get("data") or {}
        usd = (data.get("quote") or {}).get(self.convert) or {}
        change = usd.get("total_market_cap_yesterday_percentage_change")
        try:
            return MarketSnapshot(
                timestamp=datetime.now(),
                total_market_cap=float(usd["total_market_cap"]),
                btc_dominance=float(data["btc_dominance"]),
                market_sentiment=classify_market_sentiment(change),
                total_volume_24h=usd.get("total_volume_24h"),
                market_cap_change_24h=change,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ExternalServiceError(self.name, f"unexpected global metrics payload: {e}") from e
