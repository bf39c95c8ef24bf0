"""Holding and portfolio valuation data models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class Holding(BaseModel):
    """Current position in one coin, derived from the trade ledger."""

    coin_id: int = Field(..., description="Coin identifier")
    symbol: str = Field(..., description="Ticker symbol")
    name: str = Field(..., description="Display name")
    quantity: float = Field(..., description="Net quantity held")
    entry_price: float = Field(..., ge=0, description="Average buy price")
    last_price: float = Field(..., ge=0, description="Last observed price")
    strategy: Optional[str] = Field(default=None, description="Strategy note")

    model_config = {"frozen": True}

    @property
    def value(self) -> float:
        return self.quantity * self.last_price

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.entry_price


class HoldingValuation(BaseModel):
    """A holding with its current value and profit/loss."""

    holding: Holding = Field(..., description="The valued holding")
    value: float = Field(..., description="quantity x last price")
    profit_loss: float = Field(..., description="value - quantity x entry price")

    model_config = {"frozen": True}

    @property
    def profit_loss_percent(self) -> float:
        cost = self.holding.cost_basis
        return (self.profit_loss / cost * 100) if cost else 0.0


class PortfolioValuation(BaseModel):
    """Valuation of every open holding plus portfolio totals."""

    holdings: list[HoldingValuation] = Field(default_factory=list)
    total_value: float = Field(default=0.0, description="Sum of holding values")
    total_cost: float = Field(default=0.0, description="Sum of cost bases")
    total_profit_loss: float = Field(default=0.0, description="Sum of profit/loss")
    as_of: datetime = Field(default_factory=datetime.now)

    model_config = {"frozen": True}


class PriceRefreshReport(BaseModel):
    """Outcome of a batch price refresh."""

    updated: dict[int, float] = Field(
        default_factory=dict, description="coin_id -> new price"
    )
    failed: dict[int, str] = Field(
        default_factory=dict, description="coin_id -> error message"
    )

    model_config = {"frozen": True}
