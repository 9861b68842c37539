"""
Quote type definitions
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from ..errors import InvalidAmount
from .token import TokenDescriptor


class Side(Enum):
    """Trade side, relative to the base token"""
    BUY = "BUY"    # receive an exact amount of base (exact output)
    SELL = "SELL"  # spend an exact amount of base (exact input)

    @classmethod
    def from_string(cls, value: str) -> "Side":
        try:
            return cls(value.upper())
        except ValueError:
            raise InvalidAmount(f"side must be BUY or SELL, got {value}", "side", value)

    @property
    def is_exact_input(self) -> bool:
        return self == Side.SELL


@dataclass(frozen=True)
class SwapQuote:
    """
    Swap quote, produced fresh per request and never persisted

    Attributes:
        pool_address: Pool used for pricing
        router_address: Contract that will execute the swap
        token_in: Token spent
        token_out: Token received
        raw_amount_in: Expected input (smallest unit)
        raw_amount_out: Expected output (smallest unit)
        amount_in: Expected input (human)
        amount_out: Expected output (human)
        price: Quote per base, in human units
        price_impact_pct: Price impact percentage (0-100)
        min_amount_out: Slippage bound on output (raw, floor)
        max_amount_in: Slippage bound on input (raw, ceil)
        side: BUY or SELL
        slippage_pct: Slippage applied
        fee_tier: CLMM fee tier used
        ticks_crossed: CLMM initialized ticks crossed
        gas_estimate: CLMM quoter gas estimate
    """
    pool_address: str
    router_address: str
    token_in: TokenDescriptor
    token_out: TokenDescriptor
    raw_amount_in: int
    raw_amount_out: int
    amount_in: Decimal
    amount_out: Decimal
    price: Decimal
    price_impact_pct: Decimal
    min_amount_out: int
    max_amount_in: int
    side: Side
    slippage_pct: Decimal
    fee_tier: Optional[int] = None
    ticks_crossed: Optional[int] = None
    gas_estimate: Optional[int] = None

    @property
    def route_path(self) -> str:
        return f"{self.token_in.symbol} -> {self.token_out.symbol}"

    @property
    def human_min_amount_out(self) -> Decimal:
        return self.token_out.from_raw(self.min_amount_out)

    @property
    def human_max_amount_in(self) -> Decimal:
        return self.token_in.from_raw(self.max_amount_in)

    def to_dict(self) -> dict:
        return {
            "poolAddress": self.pool_address,
            "tokenIn": self.token_in.address,
            "tokenOut": self.token_out.address,
            "amountIn": str(self.amount_in),
            "amountOut": str(self.amount_out),
            "price": str(self.price),
            "priceImpactPct": str(self.price_impact_pct),
            "minAmountOut": str(self.human_min_amount_out),
            "maxAmountIn": str(self.human_max_amount_in),
            "routePath": self.route_path,
        }

    def __str__(self) -> str:
        return f"SwapQuote({self.amount_in} {self.token_in} -> {self.amount_out} {self.token_out})"


@dataclass(frozen=True)
class LiquidityQuote:
    """
    AMM liquidity quote: matched base/quote amounts for the current reserves

    Attributes:
        pool_address: Pair address
        router_address: V2 router that will add the liquidity
        base_token: token0 descriptor
        quote_token: token1 descriptor
        base_amount: Base amount to add (human)
        quote_amount: Quote amount to add (human)
        raw_base_amount: Base amount to add (raw)
        raw_quote_amount: Quote amount to add (raw)
        base_limited: True when the base amount constrained the quote
    """
    pool_address: str
    router_address: str
    base_token: TokenDescriptor
    quote_token: TokenDescriptor
    base_amount: Decimal
    quote_amount: Decimal
    raw_base_amount: int
    raw_quote_amount: int
    base_limited: bool

    def to_dict(self) -> dict:
        return {
            "baseLimited": self.base_limited,
            "baseTokenAmount": str(self.base_amount),
            "quoteTokenAmount": str(self.quote_amount),
            "baseTokenAmountMax": str(self.base_amount),
            "quoteTokenAmountMax": str(self.quote_amount),
        }
