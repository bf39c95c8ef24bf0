"""Moralis wallet balance adapter.

Supports Solana (lamports, 9 decimals) and Ethereum (wei, 18 decimals).
Provider balances arrive as raw integers in the chain's smallest unit and
are converted to whole-unit Decimals here.
"""

import logging
import re
from decimal import Decimal
from typing import Any, Optional

import requests
from pydantic import BaseModel

from cryptofolio.errors import ExternalServiceError, ValidationError
from cryptofolio.models import TokenBalance, WalletPortfolio
from cryptofolio.providers.base import DEFAULT_TIMEOUT, HttpProvider

logger = logging.getLogger(__name__)

SOLANA_GATEWAY_URL = "https://solana-gateway.moralis.io"
EVM_API_URL = "https://deep-index.moralis.io/api/v2.2"


class ChainSpec(BaseModel):
    """Static description of a supported chain."""

    name: str
    native_symbol: str
    decimals: int
    address_pattern: str
    address_hint: str

    model_config = {"frozen": True}

    def is_valid_address(self, address: str) -> bool:
        return re.fullmatch(self.address_pattern, address) is not None


SUPPORTED_CHAINS: dict[str, ChainSpec] = {
    "solana": ChainSpec(
        name="solana",
        native_symbol="SOL",
        decimals=9,
        address_pattern=r"[1-9A-HJ-NP-Za-km-z]{32,44}",
        address_hint="base58 string of 32-44 characters",
    ),
    "ethereum": ChainSpec(
        name="ethereum",
        native_symbol="ETH",
        decimals=18,
        address_pattern=r"0x[0-9a-fA-F]{40}",
        address_hint="'0x' followed by 40 hex characters",
    ),
}


def get_chain(chain: str) -> ChainSpec:
    """Look up a supported chain.

    Raises:
        ValidationError: If the chain is not supported.
    """
    spec = SUPPORTED_CHAINS.get(chain.lower())
    if spec is None:
        supported = ", ".join(SUPPORTED_CHAINS)
        raise ValidationError(
            f"Unsupported chain {chain!r}. Supported chains: {supported}", field="chain"
        )
    return spec


def validate_address(chain: str, address: str) -> ChainSpec:
    """Check an address against its chain's format.

    Returns:
        The chain spec.

    Raises:
        ValidationError: If the chain is unsupported or the address malformed.
    """
    spec = get_chain(chain)
    if not spec.is_valid_address(address):
        raise ValidationError(
            f"Invalid {spec.name} address {address!r}: expected {spec.address_hint}",
            field="address",
        )
    return spec


def scale_raw_amount(raw: int, decimals: int) -> Decimal:
    """Convert a raw integer balance to whole units."""
    return Decimal(raw) / (Decimal(10) ** decimals)


class MoralisClient(HttpProvider):
    """Client for the Moralis Solana gateway and EVM APIs."""

    name = "moralis"
    base_url = SOLANA_GATEWAY_URL
    api_key_header = "X-API-Key"

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        solana_network: str = "mainnet",
        evm_chain: str = "eth",
        evm_base_url: str = EVM_API_URL,
    ):
        """Initialize the Moralis client.

        Args:
            api_key: Moralis API key.
            session: Optional requests session.
            timeout: Per-request timeout in seconds.
            solana_network: Solana network ("mainnet" or "devnet").
            evm_chain: Moralis EVM chain parameter for Ethereum.
            evm_base_url: Override the EVM API base URL.
        """
        super().__init__(api_key, session=session, timeout=timeout)
        self.solana_network = solana_network
        self.evm_chain = evm_chain
        self.evm_base_url = evm_base_url

    def _raw_int(self, value: Any, what: str) -> int:
        try:
            return int(str(value))
        except (TypeError, ValueError) as e:
            raise ExternalServiceError(self.name, f"unexpected {what} value {value!r}") from e

    def _expect_dict(self, payload: Any, what: str) -> dict:
        if not isinstance(payload, dict):
            raise ExternalServiceError(self.name, f"unexpected {what} payload")
        return payload

    def _solana(self, address: str, resource: str) -> Any:
        return self._get(f"/account/{self.solana_network}/{address}/{resource}")

    def _evm(self, address: str, resource: str = "") -> Any:
        path = f"/{address}/{resource}" if resource else f"/{address}"
        return self._get(path, params={"chain": self.evm_chain}, base_url=self.evm_base_url)

    def _token(self, item: Any, id_key: str, amount_key: str) -> TokenBalance:
        item = self._expect_dict(item, "token")
        try:
            return TokenBalance(
                token_id=item[id_key],
                symbol=item.get("symbol"),
                name=item.get("name"),
                raw_amount=self._raw_int(item.get(amount_key, 0), "token amount"),
                decimals=int(item.get("decimals") or 0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ExternalServiceError(self.name, f"unexpected token payload: {e}") from e

    def _solana_tokens(self, items: list) -> list[TokenBalance]:
        return [self._token(item, "mint", "amountRaw") for item in items or []]

    def _evm_tokens(self, items: list) -> list[TokenBalance]:
        return [self._token(item, "token_address", "balance") for item in items or []]

    def native_balance(self, chain: str, address: str) -> Decimal:
        """Get a wallet's native-currency balance in whole units.

        Args:
            chain: "solana" or "ethereum".
            address: Wallet address.

        Returns:
            Balance as a Decimal (e.g. SOL, ETH).
        """
        spec = validate_address(chain, address)
        if spec.name == "solana":
            payload = self._expect_dict(self._solana(address, "balance"), "balance")
            raw = self._raw_int(payload.get("lamports", 0), "lamports")
        else:
            payload = self._expect_dict(self._evm(address, "balance"), "balance")
            raw = self._raw_int(payload.get("balance", 0), "wei")
        return scale_raw_amount(raw, spec.decimals)

    def token_balances(self, chain: str, address: str) -> list[TokenBalance]:
        """Get a wallet's token balances in raw units."""
        spec = validate_address(chain, address)
        if spec.name == "solana":
            return self._solana_tokens(self._solana(address, "tokens"))
        return self._evm_tokens(self._evm(address, "erc20"))

    def portfolio(self, chain: str, address: str) -> WalletPortfolio:
        """Get native balance and token list together."""
        spec = validate_address(chain, address)
        if spec.name == "solana":
            payload = self._expect_dict(self._solana(address, "portfolio"), "portfolio")
            native = payload.get("nativeBalance") or {}
            raw = self._raw_int(native.get("lamports", 0), "lamports")
            tokens = self._solana_tokens(payload.get("tokens"))
        else:
            balance = self._expect_dict(self._evm(address, "balance"), "balance")
            raw = self._raw_int(balance.get("balance", 0), "wei")
            tokens = self._evm_tokens(self._evm(address, "erc20"))

        return WalletPortfolio(
            chain=spec.name,
            address=address,
            native_symbol=spec.native_symbol,
            native_balance=scale_raw_amount(raw, spec.decimals),
            tokens=tokens,
        )
