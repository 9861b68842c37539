"""
Token type definitions and amount conversion helpers
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from typing import Union

# Sentinel used by callers for the chain's native currency
NATIVE_TOKEN_SYMBOL = "ETH"

# Native currency decimals (EVM chains)
NATIVE_DECIMALS = 18


def to_decimal(amount: Union[Decimal, int, float, str]) -> Decimal:
    """Convert a human amount to Decimal without binary float artifacts"""
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def to_raw_amount(amount: Union[Decimal, int, float, str], decimals: int) -> int:
    """Convert human amount to smallest-unit integer (truncates)"""
    value = to_decimal(amount).scaleb(decimals)
    return int(value.to_integral_value(rounding=ROUND_DOWN))


def from_raw_amount(raw: int, decimals: int) -> Decimal:
    """Convert smallest-unit integer to human amount"""
    return Decimal(int(raw)).scaleb(-decimals)


def format_token_amount(raw: int, decimals: int) -> str:
    """Format smallest-unit integer as a plain decimal string"""
    value = from_raw_amount(raw, decimals)
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def is_native_symbol(value: str) -> bool:
    """True when value names the native currency ("ETH", any case)"""
    return bool(value) and value.upper() == NATIVE_TOKEN_SYMBOL


@dataclass(frozen=True)
class TokenDescriptor:
    """
    Token metadata

    Attributes:
        symbol: Token symbol (e.g., "USDC")
        address: Checksummed contract address, or "ETH" for the native currency
        decimals: Token decimals
        name: Optional token name
    """
    symbol: str
    address: str
    decimals: int
    name: str = ""

    @property
    def is_native(self) -> bool:
        return self.address == NATIVE_TOKEN_SYMBOL

    def to_raw(self, amount: Union[Decimal, int, float, str]) -> int:
        return to_raw_amount(amount, self.decimals)

    def from_raw(self, raw: int) -> Decimal:
        return from_raw_amount(raw, self.decimals)

    def format(self, raw: int) -> str:
        return format_token_amount(raw, self.decimals)

    def __str__(self) -> str:
        return self.symbol

    @classmethod
    def native(cls) -> "TokenDescriptor":
        return cls(
            symbol=NATIVE_TOKEN_SYMBOL,
            address=NATIVE_TOKEN_SYMBOL,
            decimals=NATIVE_DECIMALS,
            name="Native currency",
        )
