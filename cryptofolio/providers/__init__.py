"""External data providers for cryptofolio."""

from cryptofolio.providers.coinmarketcap import CoinMarketCapClient
from cryptofolio.providers.moralis import SUPPORTED_CHAINS, MoralisClient

__all__ = ["CoinMarketCapClient", "MoralisClient", "SUPPORTED_CHAINS"]
