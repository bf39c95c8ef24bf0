"""Data models for cryptofolio."""

from cryptofolio.models.coin import Coin, CoinQuote
from cryptofolio.models.holding import (
    Holding,
    HoldingValuation,
    PortfolioValuation,
    PriceRefreshReport,
)
from cryptofolio.models.journal import (
    EMOTIONAL_STATES,
    ENTRY_TYPES,
    SENTIMENTS,
    EmotionalPattern,
    JournalEntry,
    JournalFilter,
    StrategicInsight,
)
from cryptofolio.models.market import MarketSnapshot
from cryptofolio.models.trade import TRADE_SIDES, Trade
from cryptofolio.models.wallet import (
    TokenBalance,
    TrackedWallet,
    WalletPortfolio,
    canonical_address,
)

__all__ = [
    "EMOTIONAL_STATES",
    "ENTRY_TYPES",
    "SENTIMENTS",
    "Coin",
    "CoinQuote",
    "EmotionalPattern",
    "Holding",
    "HoldingValuation",
    "JournalEntry",
    "JournalFilter",
    "MarketSnapshot",
    "PortfolioValuation",
    "PriceRefreshReport",
    "StrategicInsight",
    "TRADE_SIDES",
    "TokenBalance",
    "TrackedWallet",
    "Trade",
    "WalletPortfolio",
    "canonical_address",
]
