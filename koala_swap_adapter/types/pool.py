"""
Pool type definitions
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from ..errors import ConfigurationError


class PoolType(Enum):
    """KoalaSwap pool families"""
    AMM = "amm"    # V2 constant product pair
    CLMM = "clmm"  # V3 concentrated liquidity pool

    @classmethod
    def from_string(cls, value: str) -> "PoolType":
        try:
            return cls(value.lower())
        except ValueError:
            raise ConfigurationError.invalid("pool_type", f"Unknown pool type: {value}. Supported: amm, clmm")


@dataclass(frozen=True)
class PoolInfo:
    """
    Pool state as read from chain

    Base token is the pool's token0 and quote token its token1.

    Attributes:
        pool_address: Pool (pair) contract address
        base_token_address: token0 address
        quote_token_address: token1 address
        pool_type: AMM or CLMM
        fee_tier: CLMM fee in hundredths of a bip (e.g., 3000 = 0.3%)
        current_tick: CLMM current tick
        liquidity: CLMM in-range liquidity
        sqrt_price_x96: CLMM sqrtPriceX96
        tick_spacing: CLMM tick spacing
        base_reserve: AMM raw reserve of token0
        quote_reserve: AMM raw reserve of token1
        lp_total_supply: AMM LP token total supply
    """
    pool_address: str
    base_token_address: str
    quote_token_address: str
    pool_type: PoolType
    fee_tier: Optional[int] = None
    current_tick: Optional[int] = None
    liquidity: Optional[int] = None
    sqrt_price_x96: Optional[int] = None
    tick_spacing: Optional[int] = None
    base_reserve: Optional[int] = None
    quote_reserve: Optional[int] = None
    lp_total_supply: Optional[int] = None

    @property
    def is_clmm(self) -> bool:
        return self.pool_type == PoolType.CLMM

    @property
    def fee_pct(self) -> Decimal:
        """Fee as percentage (V2 pairs charge a fixed 0.3%)"""
        if self.fee_tier is None:
            return Decimal("0.3")
        return Decimal(self.fee_tier) / Decimal(10000)

    def has_token(self, address: str) -> bool:
        address = address.lower()
        return address in (self.base_token_address.lower(), self.quote_token_address.lower())
