"""Tracked wallet and on-chain balance data models."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import re

from pydantic import BaseModel, Field, field_validator

EVM_ADDRESS = re.compile(r"0x[0-9a-fA-F]{40}")


def canonical_address(address: str) -> str:
    """Stored form of a wallet address.

    Hex EVM addresses are case-insensitive and are lowercased. Base58
    addresses are case-sensitive and only stripped.
    """
    address = address.strip()
    if EVM_ADDRESS.fullmatch(address):
        return address.lower()
    return address


class TrackedWallet(BaseModel):
    """An on-chain wallet address being tracked."""

    chain: str = Field(..., min_length=1, description="Chain identifier")
    address: str = Field(..., min_length=1, description="Wallet address")
    label: Optional[str] = Field(default=None, description="User label")
    tracked_since: datetime = Field(
        default_factory=datetime.now, description="When tracking started"
    )

    model_config = {"frozen": True}

    @field_validator("address")
    @classmethod
    def normalize_address(cls, v: str) -> str:
        return canonical_address(v)

    @property
    def display_name(self) -> str:
        return self.label or self.address


class TokenBalance(BaseModel):
    """A token held by a wallet, in provider raw units."""

    token_id: str = Field(..., description="Token mint or contract address")
    symbol: Optional[str] = Field(default=None, description="Token symbol")
    name: Optional[str] = Field(default=None, description="Token name")
    raw_amount: int = Field(..., ge=0, description="Balance in smallest units")
    decimals: int = Field(..., ge=0, description="Token decimal places")

    model_config = {"frozen": True}

    @property
    def amount(self) -> Decimal:
        return Decimal(self.raw_amount) / (Decimal(10) ** self.decimals)


class WalletPortfolio(BaseModel):
    """Native balance and token list for one wallet."""

    chain: str = Field(..., description="Chain identifier")
    address: str = Field(..., description="Wallet address")
    native_symbol: str = Field(..., description="Native currency symbol")
    native_balance: Decimal = Field(..., description="Native balance in whole units")
    tokens: list[TokenBalance] = Field(default_factory=list)

    model_config = {"frozen": True}
