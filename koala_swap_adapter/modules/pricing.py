"""
Pricing Module

Slippage bounds, KoalaSwap V2 constant product math, V3 tick math, the
Pricing Oracle (reserves and QuoterV2 reads) and the Quote Resolver that
turns a swap request into a SwapQuote.

All token amounts are raw integers; slippage is applied as an integer
fraction (numerator / 10000) so no binary float ever touches an amount.
"""

import logging
import math
from dataclasses import replace
from decimal import Decimal
from typing import Optional, Tuple, Union, TYPE_CHECKING

from ..types import (
    TokenDescriptor,
    PoolInfo,
    PoolType,
    Side,
    SwapQuote,
    LiquidityQuote,
    to_decimal,
)
from ..errors import InvalidAmount, MissingParameter, PoolNotFound
from ..protocols.koala_swap import V3_QUOTER_V2_ABI

if TYPE_CHECKING:
    from ..config import KoalaSwapConfig
    from ..infra import ChainGateway
    from ..protocols.koala_swap import ContractRegistry
    from .registry import PoolTokenRegistry

logger = logging.getLogger(__name__)

SLIPPAGE_DENOMINATOR = 10000

# V2 pairs charge 0.3% on input
V2_FEE_NUMERATOR = 997
V2_FEE_DENOMINATOR = 1000

# V3 tick math constants
Q96 = 2 ** 96
MIN_TICK = -887272
MAX_TICK = 887272


# =========================================================================
# Slippage
# =========================================================================

def retained_fraction(slippage_pct: Union[Decimal, int, float, str]) -> Tuple[int, int]:
    """
    Fraction of an amount kept after slippage, as (numerator, 10000)

    Raises:
        InvalidAmount: slippage outside [0, 100]
    """
    pct = to_decimal(slippage_pct)
    if pct < 0 or pct > 100:
        raise InvalidAmount.out_of_range("slippagePct", slippage_pct, 0, 100)
    numerator = SLIPPAGE_DENOMINATOR - int((pct * 100).to_integral_value())
    return numerator, SLIPPAGE_DENOMINATOR


def min_amount_out(raw_amount: int, slippage_pct: Union[Decimal, int, float, str]) -> int:
    """Lower bound for an amount received (floor)"""
    numerator, denominator = retained_fraction(slippage_pct)
    return raw_amount * numerator // denominator


def max_amount_in(raw_amount: int, slippage_pct: Union[Decimal, int, float, str]) -> int:
    """Upper bound for an amount paid (ceil)"""
    numerator, denominator = retained_fraction(slippage_pct)
    if numerator == 0:
        raise InvalidAmount.out_of_range("slippagePct", slippage_pct, 0, "less than 100")
    return -(-raw_amount * denominator // numerator)


# =========================================================================
# V2 constant product
# =========================================================================

def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """Output for an exact input, net of the 0.3% fee"""
    amount_in_with_fee = amount_in * V2_FEE_NUMERATOR
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * V2_FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


def get_amount_in(amount_out: int, reserve_in: int, reserve_out: int) -> int:
    """Input required for an exact output, net of the 0.3% fee"""
    if amount_out >= reserve_out:
        raise InvalidAmount(
            f"Requested output {amount_out} exceeds pool reserve {reserve_out}",
            "amount",
            amount_out,
        )
    numerator = reserve_in * amount_out * V2_FEE_DENOMINATOR
    denominator = (reserve_out - amount_out) * V2_FEE_NUMERATOR
    return numerator // denominator + 1


def matched_amount(amount_a: int, reserve_a: int, reserve_b: int) -> int:
    """Matched amount of B for amount_a of A at the current reserve ratio"""
    return amount_a * reserve_b // reserve_a


# =========================================================================
# V3 tick math
# =========================================================================

def tick_to_price(tick: int, decimals0: int = 18, decimals1: int = 18) -> Decimal:
    """Price of token0 in token1 (human units) at a tick"""
    price = Decimal(str(1.0001 ** tick))
    return price * Decimal(10) ** (decimals0 - decimals1)


def price_to_tick(price: Decimal, decimals0: int = 18, decimals1: int = 18) -> int:
    """Nearest lower tick for a human token1-per-token0 price"""
    adjusted_price = float(to_decimal(price) * Decimal(10) ** (decimals1 - decimals0))
    if adjusted_price <= 0:
        return MIN_TICK
    tick = math.floor(math.log(adjusted_price) / math.log(1.0001))
    return max(MIN_TICK, min(MAX_TICK, tick))


def sqrt_price_x96_to_price(sqrt_price_x96: int, decimals0: int = 18, decimals1: int = 18) -> Decimal:
    price = (Decimal(sqrt_price_x96) / Decimal(Q96)) ** 2
    return price * Decimal(10) ** (decimals0 - decimals1)


def tick_to_sqrt_price_x96(tick: int) -> int:
    return int(Decimal(str(1.0001 ** (tick / 2))) * Decimal(Q96))


def align_tick_to_spacing(tick: int, tick_spacing: int, round_up: bool = False) -> int:
    if round_up:
        return ((tick + tick_spacing - 1) // tick_spacing) * tick_spacing
    return (tick // tick_spacing) * tick_spacing


def price_range_to_ticks(
    lower_price: Decimal,
    upper_price: Decimal,
    tick_spacing: int,
    decimals0: int,
    decimals1: int,
) -> Tuple[int, int]:
    """Convert a human price range to spacing aligned ticks"""
    tick_lower = align_tick_to_spacing(price_to_tick(lower_price, decimals0, decimals1), tick_spacing)
    tick_upper = align_tick_to_spacing(price_to_tick(upper_price, decimals0, decimals1), tick_spacing, round_up=True)

    min_aligned = align_tick_to_spacing(MIN_TICK, tick_spacing, round_up=True)
    max_aligned = align_tick_to_spacing(MAX_TICK, tick_spacing)
    tick_lower = max(min_aligned, tick_lower)
    tick_upper = min(max_aligned, tick_upper)

    if tick_lower >= tick_upper:
        tick_upper = tick_lower + tick_spacing

    return tick_lower, tick_upper


def liquidity_for_amounts(
    sqrt_price_x96: int,
    tick_lower: int,
    tick_upper: int,
    amount0: int,
    amount1: int,
) -> int:
    """
    Liquidity obtainable from the given raw amounts

    - price below range: token0 only
    - price above range: token1 only
    - in range: the constraining side of the two
    """
    sqrt_ratio_lower = tick_to_sqrt_price_x96(tick_lower)
    sqrt_ratio_upper = tick_to_sqrt_price_x96(tick_upper)

    # Pool without a price: use the geometric mean of the range
    if sqrt_price_x96 == 0:
        sqrt_price_x96 = int((Decimal(sqrt_ratio_lower) * Decimal(sqrt_ratio_upper)).sqrt())

    liquidity_from_0 = 0
    liquidity_from_1 = 0

    if sqrt_price_x96 <= sqrt_ratio_lower:
        if amount0 > 0:
            liquidity_from_0 = (
                amount0 * sqrt_ratio_lower * sqrt_ratio_upper
            ) // ((sqrt_ratio_upper - sqrt_ratio_lower) * Q96)
        return liquidity_from_0
    if sqrt_price_x96 >= sqrt_ratio_upper:
        if amount1 > 0:
            liquidity_from_1 = (amount1 * Q96) // (sqrt_ratio_upper - sqrt_ratio_lower)
        return liquidity_from_1

    if amount0 > 0:
        liquidity_from_0 = (
            amount0 * sqrt_price_x96 * sqrt_ratio_upper
        ) // ((sqrt_ratio_upper - sqrt_price_x96) * Q96)
    if amount1 > 0:
        liquidity_from_1 = (amount1 * Q96) // (sqrt_price_x96 - sqrt_ratio_lower)

    if liquidity_from_0 > 0 and liquidity_from_1 > 0:
        return min(liquidity_from_0, liquidity_from_1)
    return liquidity_from_0 or liquidity_from_1


def amounts_for_liquidity(
    sqrt_price_x96: int,
    tick_lower: int,
    tick_upper: int,
    liquidity: int,
) -> Tuple[int, int]:
    """Raw token0/token1 amounts backing a liquidity amount at the current price"""
    sqrt_ratio_lower = tick_to_sqrt_price_x96(tick_lower)
    sqrt_ratio_upper = tick_to_sqrt_price_x96(tick_upper)

    if sqrt_price_x96 <= sqrt_ratio_lower:
        amount0 = liquidity * (sqrt_ratio_upper - sqrt_ratio_lower) * Q96 // (sqrt_ratio_lower * sqrt_ratio_upper)
        return amount0, 0
    if sqrt_price_x96 >= sqrt_ratio_upper:
        return 0, liquidity * (sqrt_ratio_upper - sqrt_ratio_lower) // Q96

    amount0 = liquidity * (sqrt_ratio_upper - sqrt_price_x96) * Q96 // (sqrt_price_x96 * sqrt_ratio_upper)
    amount1 = liquidity * (sqrt_price_x96 - sqrt_ratio_lower) // Q96
    return amount0, amount1


def _price_impact_pct(mid_price: Decimal, execution_price: Decimal) -> Decimal:
    if mid_price == 0:
        return Decimal(0)
    return abs(mid_price - execution_price) / mid_price * Decimal(100)


def _require_positive(amount, field_name: str) -> Decimal:
    if amount is None:
        raise MissingParameter(field_name)
    value = to_decimal(amount)
    if value <= 0:
        raise InvalidAmount.not_positive(field_name, amount)
    return value


# =========================================================================
# Pricing Oracle
# =========================================================================

class PricingOracle:
    """
    Reads prices for KoalaSwap pools

    AMM quotes come from pair reserves with V2 constant product math; CLMM
    quotes come from static QuoterV2 calls.
    """

    def __init__(self, gateway: "ChainGateway", contracts: "ContractRegistry"):
        self._gateway = gateway
        self._contracts = contracts

    @staticmethod
    def _reserves_for(pool: PoolInfo, token_in: TokenDescriptor, token_out: TokenDescriptor) -> Tuple[int, int]:
        if not pool.has_token(token_in.address) or not pool.has_token(token_out.address):
            raise PoolNotFound(
                pool.pool_address,
                f"Pool {pool.pool_address} does not trade {token_in.symbol}-{token_out.symbol}",
            )
        if token_in.address.lower() == pool.base_token_address.lower():
            return pool.base_reserve or 0, pool.quote_reserve or 0
        return pool.quote_reserve or 0, pool.base_reserve or 0

    def quote_amm_swap(
        self,
        pool: PoolInfo,
        router_address: str,
        base: TokenDescriptor,
        quote: TokenDescriptor,
        amount: Decimal,
        side: Side,
        slippage_pct: Decimal,
    ) -> SwapQuote:
        """
        Quote a V2 swap against current reserves

        Args:
            pool: AMM pool with reserves
            router_address: V2 router
            base: Token whose amount is specified
            quote: Counter token
            amount: Base amount (sold for SELL, bought for BUY)
            side: SELL (exact input) or BUY (exact output)
            slippage_pct: Slippage percentage
        """
        token_in, token_out = (base, quote) if side == Side.SELL else (quote, base)
        reserve_in, reserve_out = self._reserves_for(pool, token_in, token_out)
        if reserve_in == 0 or reserve_out == 0:
            raise PoolNotFound(pool.pool_address, f"Pool {pool.pool_address} has no liquidity")

        if side == Side.SELL:
            raw_in = token_in.to_raw(amount)
            if raw_in <= 0:
                raise InvalidAmount.not_positive("amount", amount)
            raw_out = get_amount_out(raw_in, reserve_in, reserve_out)
            min_out = min_amount_out(raw_out, slippage_pct)
            max_in = raw_in
        else:
            raw_out = token_out.to_raw(amount)
            if raw_out <= 0:
                raise InvalidAmount.not_positive("amount", amount)
            raw_in = get_amount_in(raw_out, reserve_in, reserve_out)
            min_out = raw_out
            max_in = max_amount_in(raw_in, slippage_pct)

        mid_price = Decimal(reserve_out) / Decimal(reserve_in)
        execution_price = Decimal(raw_out) / Decimal(raw_in)

        return self._build_quote(
            pool, router_address, token_in, token_out, raw_in, raw_out,
            min_out, max_in, side, slippage_pct,
            price_impact_pct=_price_impact_pct(mid_price, execution_price),
        )

    def quote_clmm_swap(
        self,
        pool: PoolInfo,
        router_address: str,
        network: str,
        base: TokenDescriptor,
        quote: TokenDescriptor,
        amount: Decimal,
        side: Side,
        slippage_pct: Decimal,
    ) -> SwapQuote:
        """Quote a V3 single-pool swap with QuoterV2 (static call)"""
        token_in, token_out = (base, quote) if side == Side.SELL else (quote, base)
        if not pool.has_token(token_in.address) or not pool.has_token(token_out.address):
            raise PoolNotFound(
                pool.pool_address,
                f"Pool {pool.pool_address} does not trade {token_in.symbol}-{token_out.symbol}",
            )

        quoter = self._gateway.get_contract(self._contracts.for_network(network).v3_quoter_v2, V3_QUOTER_V2_ABI)

        if side == Side.SELL:
            raw_in = token_in.to_raw(amount)
            if raw_in <= 0:
                raise InvalidAmount.not_positive("amount", amount)
            raw_out, sqrt_price_after, ticks_crossed, gas_estimate = quoter.functions.quoteExactInputSingle(
                token_in.address, token_out.address, pool.fee_tier, raw_in, 0,
            ).call()
            min_out = min_amount_out(raw_out, slippage_pct)
            max_in = raw_in
        else:
            raw_out = token_out.to_raw(amount)
            if raw_out <= 0:
                raise InvalidAmount.not_positive("amount", amount)
            raw_in, sqrt_price_after, ticks_crossed, gas_estimate = quoter.functions.quoteExactOutputSingle(
                token_in.address, token_out.address, pool.fee_tier, raw_out, 0,
            ).call()
            min_out = raw_out
            max_in = max_amount_in(raw_in, slippage_pct)

        price_impact = Decimal(0)
        if pool.sqrt_price_x96:
            price_before = Decimal(pool.sqrt_price_x96) ** 2
            price_after = Decimal(sqrt_price_after) ** 2
            price_impact = _price_impact_pct(price_before, price_after)

        logger.debug(
            f"QuoterV2 {token_in.symbol}->{token_out.symbol} fee={pool.fee_tier}: "
            f"in={raw_in} out={raw_out} ticks_crossed={ticks_crossed}"
        )

        return self._build_quote(
            pool, router_address, token_in, token_out, int(raw_in), int(raw_out),
            min_out, max_in, side, slippage_pct,
            price_impact_pct=price_impact,
            ticks_crossed=int(ticks_crossed),
            gas_estimate=int(gas_estimate),
        )

    @staticmethod
    def _build_quote(
        pool: PoolInfo,
        router_address: str,
        token_in: TokenDescriptor,
        token_out: TokenDescriptor,
        raw_in: int,
        raw_out: int,
        min_out: int,
        max_in: int,
        side: Side,
        slippage_pct: Decimal,
        price_impact_pct: Decimal,
        ticks_crossed: Optional[int] = None,
        gas_estimate: Optional[int] = None,
    ) -> SwapQuote:
        amount_in = token_in.from_raw(raw_in)
        amount_out = token_out.from_raw(raw_out)
        # Quote per base in human units
        if side == Side.SELL:
            price = amount_out / amount_in if amount_in else Decimal(0)
        else:
            price = amount_in / amount_out if amount_out else Decimal(0)

        return SwapQuote(
            pool_address=pool.pool_address,
            router_address=router_address,
            token_in=token_in,
            token_out=token_out,
            raw_amount_in=raw_in,
            raw_amount_out=raw_out,
            amount_in=amount_in,
            amount_out=amount_out,
            price=price,
            price_impact_pct=price_impact_pct,
            min_amount_out=min_out,
            max_amount_in=max_in,
            side=side,
            slippage_pct=to_decimal(slippage_pct),
            fee_tier=pool.fee_tier,
            ticks_crossed=ticks_crossed,
            gas_estimate=gas_estimate,
        )

    def compute_liquidity_quote(
        self,
        pool: PoolInfo,
        router_address: str,
        base: TokenDescriptor,
        quote: TokenDescriptor,
        base_amount: Optional[Decimal] = None,
        quote_amount: Optional[Decimal] = None,
    ) -> LiquidityQuote:
        """
        Match base and quote amounts to the pair's reserve ratio

        When both amounts are given the constraining side wins. An empty
        pair takes both amounts as given.
        """
        if base_amount is None and quote_amount is None:
            raise MissingParameter("baseTokenAmount or quoteTokenAmount")

        raw_base = base.to_raw(base_amount) if base_amount is not None else None
        raw_quote = quote.to_raw(quote_amount) if quote_amount is not None else None
        for field_name, raw, human in (("baseTokenAmount", raw_base, base_amount), ("quoteTokenAmount", raw_quote, quote_amount)):
            if raw is not None and raw <= 0:
                raise InvalidAmount.not_positive(field_name, human)

        reserve_base, reserve_quote = self._reserves_for(pool, base, quote)

        if reserve_base == 0 or reserve_quote == 0:
            if raw_base is None or raw_quote is None:
                raise MissingParameter("baseTokenAmount and quoteTokenAmount (pool is empty)")
            base_limited = True
        elif raw_base is not None:
            optimal_quote = matched_amount(raw_base, reserve_base, reserve_quote)
            if raw_quote is not None and optimal_quote > raw_quote:
                raw_base = matched_amount(raw_quote, reserve_quote, reserve_base)
                base_limited = False
            else:
                raw_quote = optimal_quote
                base_limited = True
        else:
            raw_base = matched_amount(raw_quote, reserve_quote, reserve_base)
            base_limited = False

        return LiquidityQuote(
            pool_address=pool.pool_address,
            router_address=router_address,
            base_token=base,
            quote_token=quote,
            base_amount=base.from_raw(raw_base),
            quote_amount=quote.from_raw(raw_quote),
            raw_base_amount=raw_base,
            raw_quote_amount=raw_quote,
            base_limited=base_limited,
        )


# =========================================================================
# Quote Resolver
# =========================================================================

class QuoteResolver:
    """
    Turns (network, pool, base, quote, amount, side, slippage) into a SwapQuote

    Native legs are priced as the wrapped token and reported back with the
    native descriptor.
    """

    def __init__(
        self,
        registry: "PoolTokenRegistry",
        oracle: PricingOracle,
        contracts: "ContractRegistry",
        config: "KoalaSwapConfig",
    ):
        self._registry = registry
        self._oracle = oracle
        self._contracts = contracts
        self._config = config

    @property
    def registry(self) -> "PoolTokenRegistry":
        return self._registry

    @property
    def oracle(self) -> PricingOracle:
        return self._oracle

    def resolve_slippage(self, slippage_pct=None) -> Decimal:
        """Request slippage or the configured default, validated to [0, 100]"""
        value = to_decimal(slippage_pct if slippage_pct is not None else self._config.slippage_pct)
        retained_fraction(value)
        return value

    def resolve_pool(
        self,
        network: str,
        kind: PoolType,
        pool_address: Optional[str] = None,
        base: Optional[TokenDescriptor] = None,
        quote: Optional[TokenDescriptor] = None,
        fee_tier: Optional[int] = None,
    ) -> PoolInfo:
        """
        Resolve a pool by address, or by token pair when no address is given

        Raises:
            PoolNotFound: Address does not resolve or no pool exists for the pair
            MissingParameter: Neither an address nor a token pair was given
        """
        if not pool_address:
            if base is None or quote is None:
                raise MissingParameter("poolAddress")
            pool_address = self._registry.find_pool_address(base, quote, network, kind, fee_tier)
            if pool_address is None:
                raise PoolNotFound.for_pair(base.symbol, quote.symbol)

        pool = self._registry.resolve_pool_info(pool_address, network, kind)
        if pool is None:
            raise PoolNotFound(pool_address)
        return pool

    def _priced(self, token: TokenDescriptor, network: str) -> TokenDescriptor:
        return self._registry.wrapped_native(network) if token.is_native else token

    def quote_swap(
        self,
        network: str,
        pool: PoolInfo,
        base: TokenDescriptor,
        quote: TokenDescriptor,
        amount,
        side: Side,
        slippage_pct=None,
    ) -> SwapQuote:
        """
        Quote a swap of `amount` base tokens

        Raises:
            InvalidAmount: amount <= 0 or slippage out of range
            PoolNotFound: pool does not trade the pair
        """
        amount = _require_positive(amount, "amount")
        slippage = self.resolve_slippage(slippage_pct)
        contracts = self._contracts.for_network(network)

        priced_base = self._priced(base, network)
        priced_quote = self._priced(quote, network)

        if pool.pool_type == PoolType.AMM:
            swap_quote = self._oracle.quote_amm_swap(
                pool, contracts.v2_router, priced_base, priced_quote, amount, side, slippage,
            )
        else:
            swap_quote = self._oracle.quote_clmm_swap(
                pool, contracts.v3_swap_router, network, priced_base, priced_quote, amount, side, slippage,
            )

        token_in, token_out = (base, quote) if side == Side.SELL else (quote, base)
        if token_in.is_native or token_out.is_native:
            swap_quote = replace(swap_quote, token_in=token_in, token_out=token_out)

        logger.info(
            f"Quote {swap_quote.route_path}: in={swap_quote.amount_in} out={swap_quote.amount_out} "
            f"impact={swap_quote.price_impact_pct:.4f}% slippage={slippage}%"
        )
        return swap_quote

    def quote_liquidity(
        self,
        network: str,
        pool: PoolInfo,
        base: TokenDescriptor,
        quote: TokenDescriptor,
        base_amount=None,
        quote_amount=None,
    ) -> LiquidityQuote:
        """Matched AMM liquidity amounts for the pair"""
        base_amount = to_decimal(base_amount) if base_amount is not None else None
        quote_amount = to_decimal(quote_amount) if quote_amount is not None else None
        router = self._contracts.for_network(network).v2_router
        liquidity_quote = self._oracle.compute_liquidity_quote(
            pool, router,
            self._priced(base, network), self._priced(quote, network),
            base_amount, quote_amount,
        )
        if base.is_native or quote.is_native:
            liquidity_quote = replace(liquidity_quote, base_token=base, quote_token=quote)
        return liquidity_quote
