"""Tracked wallet management on top of the store and the wallet provider."""

import logging
from decimal import Decimal
from typing import Optional

from cryptofolio.db.store import PortfolioStore
from cryptofolio.errors import NotFoundError
from cryptofolio.models import (
    TokenBalance,
    TrackedWallet,
    WalletPortfolio,
    canonical_address,
)
from cryptofolio.providers.moralis import MoralisClient, validate_address

logger = logging.getLogger(__name__)


class WalletTracker:
    """Adds, removes and inspects tracked wallets."""

    def __init__(self, store: PortfolioStore, client: MoralisClient):
        self.store = store
        self.client = client

    def add_wallet(
        self, chain: str, address: str, label: Optional[str] = None
    ) -> TrackedWallet:
        """Verify a wallet on-chain, then start tracking it.

        The wallet is only persisted after a successful native balance
        lookup, so a failed verification leaves no state behind.

        Raises:
            ValidationError: Unsupported chain or malformed address.
            ExternalServiceError: The verification lookup failed.
            UniqueConstraintError: The address is already tracked.
        """
        address = canonical_address(address)
        spec = validate_address(chain, address)
        balance = self.client.native_balance(spec.name, address)
        logger.info("Verified %s wallet %s (balance %s)", spec.name, address, balance)

        wallet = TrackedWallet(chain=spec.name, address=address, label=label or None)
        self.store.add_wallet(wallet)
        return wallet

    def remove_wallet(self, address: str) -> bool:
        """Stop tracking a wallet. Journal entries and trades are untouched."""
        return self.store.remove_wallet(address)

    def list_wallets(self) -> list[TrackedWallet]:
        return self.store.list_wallets()

    def _tracked(self, address: str) -> TrackedWallet:
        wallet = self.store.get_wallet(address)
        if wallet is None:
            raise NotFoundError(f"Wallet {address} is not tracked")
        return wallet

    def check_balances(self, address: str) -> tuple[Decimal, list[TokenBalance]]:
        """Native balance and token balances of a tracked wallet."""
        wallet = self._tracked(address)
        native = self.client.native_balance(wallet.chain, wallet.address)
        tokens = self.client.token_balances(wallet.chain, wallet.address)
        return native, tokens

    def wallet_portfolio(self, address: str) -> WalletPortfolio:
        """Combined portfolio view of a tracked wallet."""
        wallet = self._tracked(address)
        return self.client.portfolio(wallet.chain, wallet.address)
