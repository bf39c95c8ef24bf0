"""Coin catalog and price quote data models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CoinQuote(BaseModel):
    """A coin as reported by the market-data provider, with its USD quote."""

    id: int = Field(..., description="Provider-assigned numeric identifier")
    name: str = Field(..., description="Display name")
    symbol: str = Field(..., description="Ticker symbol")
    slug: str = Field(default="", description="Provider URL slug")
    price: float = Field(..., ge=0, description="Current USD price")
    volume_24h: Optional[float] = Field(default=None, description="24h USD volume")
    market_cap: Optional[float] = Field(default=None, description="USD market cap")
    percent_change_24h: Optional[float] = Field(
        default=None, description="24h price change percentage"
    )
    last_updated: Optional[datetime] = Field(
        default=None, description="Provider quote timestamp"
    )

    model_config = {"frozen": True}


class Coin(BaseModel):
    """A coin in the local catalog with its last observed price."""

    coin_id: int = Field(..., description="Provider-assigned numeric identifier")
    symbol: str = Field(..., min_length=1, description="Ticker symbol")
    name: str = Field(..., min_length=1, description="Display name")
    last_price: float = Field(..., ge=0, description="Last observed USD price")
    market_cap: Optional[float] = Field(default=None, description="USD market cap")
    volume_24h: Optional[float] = Field(default=None, description="24h USD volume")
    price_change_24h: Optional[float] = Field(
        default=None, description="24h price change percentage"
    )
    strategy: Optional[str] = Field(default=None, description="Strategy note")
    last_updated: datetime = Field(
        default_factory=datetime.now, description="When the price was stored"
    )

    model_config = {"frozen": True}

    @classmethod
    def from_quote(cls, quote: CoinQuote, strategy: Optional[str] = None) -> "Coin":
        """Build a catalog row from a provider quote."""
        return cls(
            coin_id=quote.id,
            symbol=quote.symbol,
            name=quote.name,
            last_price=quote.price,
            market_cap=quote.market_cap,
            volume_24h=quote.volume_24h,
            price_change_24h=quote.percent_change_24h,
            strategy=strategy,
        )
