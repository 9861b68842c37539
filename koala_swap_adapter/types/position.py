"""
CLMM position type definitions
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class Position:
    """
    Concentrated liquidity position (NFT) as read from the position manager

    The orchestrator treats the token id as an opaque key; mutation happens
    on-chain only.

    Attributes:
        token_id: NFT token id
        token0: token0 address (base)
        token1: token1 address (quote)
        fee_tier: Pool fee tier
        tick_lower: Lower tick
        tick_upper: Upper tick
        liquidity: Position liquidity
        tokens_owed0: Uncollected token0 recorded on the position
        tokens_owed1: Uncollected token1 recorded on the position
        pool_address: Pool address (resolved via factory)
        lower_price: Lower bound in quote per base
        upper_price: Upper bound in quote per base
        base_token_amount: token0 backing the liquidity at the current price
        quote_token_amount: token1 backing the liquidity at the current price
    """
    token_id: int
    token0: str
    token1: str
    fee_tier: int
    tick_lower: int
    tick_upper: int
    liquidity: int
    tokens_owed0: int = 0
    tokens_owed1: int = 0
    pool_address: Optional[str] = None
    lower_price: Optional[Decimal] = None
    upper_price: Optional[Decimal] = None
    base_token_amount: Optional[Decimal] = None
    quote_token_amount: Optional[Decimal] = None

    @property
    def position_address(self) -> str:
        """Position identifier as used in responses"""
        return str(self.token_id)

    @property
    def is_empty(self) -> bool:
        return self.liquidity == 0 and self.tokens_owed0 == 0 and self.tokens_owed1 == 0

    def is_in_range(self, current_tick: int) -> bool:
        return self.tick_lower <= current_tick < self.tick_upper
