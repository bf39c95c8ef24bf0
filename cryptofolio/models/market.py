"""Global market snapshot data model."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

MarketSentiment = Literal["BULLISH", "BEARISH", "NEUTRAL"]


class MarketSnapshot(BaseModel):
    """Point-in-time global market metrics."""

    timestamp: datetime = Field(default_factory=datetime.now)
    total_market_cap: float = Field(..., ge=0, description="Total USD market cap")
    btc_dominance: float = Field(
        ..., ge=0, le=100, description="Dominant-asset share of market cap (%)"
    )
    market_sentiment: MarketSentiment = Field(..., description="Sentiment label")
    total_volume_24h: Optional[float] = Field(default=None, description="24h USD volume")
    market_cap_change_24h: Optional[float] = Field(
        default=None, description="24h total market cap change (%)"
    )

    model_config = {"frozen": True}
