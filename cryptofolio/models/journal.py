"""Trading journal data models."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

EntryType = Literal["TRADE", "ANALYSIS", "STRATEGY", "REFLECTION"]
EmotionalState = Literal["EXCITED", "NERVOUS", "CONFIDENT", "FEARFUL", "NEUTRAL"]
Sentiment = Literal["BULLISH", "BEARISH", "NEUTRAL"]
TradeSide = Literal["BUY", "SELL"]

ENTRY_TYPES: tuple[str, ...] = ("TRADE", "ANALYSIS", "STRATEGY", "REFLECTION")
EMOTIONAL_STATES: tuple[str, ...] = ("EXCITED", "NERVOUS", "CONFIDENT", "FEARFUL", "NEUTRAL")
SENTIMENTS: tuple[str, ...] = ("BULLISH", "BEARISH", "NEUTRAL")


class JournalEntry(BaseModel):
    """A qualitative trading-journal entry."""

    id: Optional[int] = Field(default=None, description="Database ID")
    timestamp: datetime = Field(default_factory=datetime.now, description="Entry time")
    entry_type: EntryType = Field(..., description="Entry category")
    coin_id: Optional[int] = Field(default=None, description="Related coin")
    trade_side: Optional[TradeSide] = Field(default=None, description="Trade direction")
    amount: Optional[float] = Field(default=None, gt=0, description="Trade amount")
    price: Optional[float] = Field(default=None, gt=0, description="Trade price (USD)")
    emotional_state: EmotionalState = Field(..., description="How the trader felt")
    confidence_level: int = Field(..., ge=1, le=5, description="Confidence rating 1-5")
    market_sentiment: Sentiment = Field(..., description="Perceived market sentiment")
    entry_text: str = Field(..., description="Free text")
    lessons_learned: Optional[str] = Field(default=None, description="Lessons learned")
    follow_up_needed: bool = Field(default=False, description="Needs follow-up")
    tags: list[str] = Field(default_factory=list, description="Tags")

    model_config = {"frozen": True}

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: list[str]) -> list[str]:
        seen: list[str] = []
        for tag in (t.strip() for t in tags):
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @model_validator(mode="after")
    def _trade_detail_only_for_trades(self) -> "JournalEntry":
        has_detail = any(v is not None for v in (self.trade_side, self.amount, self.price))
        if has_detail and self.entry_type != "TRADE":
            raise ValueError("trade details are only allowed on TRADE entries")
        return self


class JournalFilter(BaseModel):
    """Conjunctive filter for journal queries. Unset fields match anything."""

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    entry_type: Optional[EntryType] = None
    coin_id: Optional[int] = None
    emotional_state: Optional[EmotionalState] = None
    follow_up_needed: Optional[bool] = None

    model_config = {"frozen": True}


class EmotionalPattern(BaseModel):
    """Journal rollup per emotional state."""

    emotional_state: str
    count: int = Field(..., ge=0)
    buy_ratio: float = Field(..., ge=0, le=1, description="Share of BUY trade entries")
    avg_confidence: float

    model_config = {"frozen": True}


class StrategicInsight(BaseModel):
    """Rollup of TRADE entries per market sentiment."""

    entry_type: str
    market_sentiment: str
    count: int = Field(..., ge=0)
    avg_confidence: float
    common_tags: list[str] = Field(default_factory=list, description="Most frequent first")

    model_config = {"frozen": True}
