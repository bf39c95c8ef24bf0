"""Persistence layer for cryptofolio."""

from cryptofolio.db.store import PortfolioStore

__all__ = ["PortfolioStore"]
