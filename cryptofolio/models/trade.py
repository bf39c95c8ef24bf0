"""Trade ledger data model."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

TRADE_SIDES = ("BUY", "SELL")


class Trade(BaseModel):
    """A recorded buy or sell of a coin.

    Trades are immutable once recorded. Side, quantity and price are
    checked by the store when the trade is written.
    """

    id: Optional[int] = Field(default=None, description="Database ID")
    coin_id: int = Field(..., description="Coin identifier")
    side: str = Field(..., description="Trade side (BUY/SELL)")
    quantity: float = Field(..., description="Units traded")
    price: float = Field(..., description="Unit price in USD")
    timestamp: datetime = Field(
        default_factory=datetime.now, description="Trade timestamp"
    )
    notes: Optional[str] = Field(default=None, description="Free-text note")

    model_config = {"frozen": True}

    @property
    def signed_quantity(self) -> float:
        """Quantity with SELL trades negated."""
        return self.quantity if self.side == "BUY" else -self.quantity

    @property
    def total_value(self) -> float:
        return self.quantity * self.price
