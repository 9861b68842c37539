"""
CLMM Module

KoalaSwap V3 operations: position lifecycle through the NFT position manager,
single-pool swaps through the SwapRouter, and read-only pool/position/quote
lookups.

Base is the pool's token0 and quote its token1; prices are token1 per token0.
Native ETH is never sent to V3 contracts: an "ETH" leg is wrapped into WUNIT0
first and then spent as an ERC-20.
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, List, Optional, Tuple, Union

from web3 import Web3

from ..types import (
    Leg,
    OperationKind,
    PipelineStage,
    PoolInfo,
    PoolType,
    Position,
    Side,
    SwapQuote,
    TokenPair,
    TransactionResult,
    to_decimal,
    is_native_symbol,
)
from ..errors import InvalidAmount, MissingParameter, PoolNotFound, PositionNotFound, UnsupportedToken
from ..protocols.koala_swap import V3_POSITION_MANAGER_ABI, V3_SWAP_ROUTER_ABI
from .allowance import AllowanceRequirement
from .orchestrator import TransactionOrchestrator
from .pricing import (
    amounts_for_liquidity,
    liquidity_for_amounts,
    min_amount_out,
    price_range_to_ticks,
)

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]

MAX_UINT128 = 2 ** 128 - 1

# keccak256("Transfer(address,address,uint256)")
TRANSFER_EVENT_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


@dataclass
class ClmmOpenPositionParams:
    """
    Attributes:
        pool_address: V3 pool address
        lower_price: Lower bound, token1 per token0
        upper_price: Upper bound, token1 per token0
        base_token_amount: token0 amount to deposit
        quote_token_amount: token1 amount to deposit
        base_token: "ETH" to wrap the token0 leg first (token0 must be WUNIT0)
        quote_token: "ETH" to wrap the token1 leg first (token1 must be WUNIT0)
    """
    pool_address: Optional[str] = None
    lower_price: Optional[Amount] = None
    upper_price: Optional[Amount] = None
    base_token_amount: Optional[Amount] = None
    quote_token_amount: Optional[Amount] = None
    network: Optional[str] = None
    wallet_address: Optional[str] = None
    base_token: Optional[str] = None
    quote_token: Optional[str] = None
    slippage_pct: Optional[Amount] = None
    gas_price: Optional[str] = None
    max_gas: Optional[int] = None


@dataclass
class ClmmAddLiquidityParams:
    position_address: Optional[str] = None
    base_token_amount: Optional[Amount] = None
    quote_token_amount: Optional[Amount] = None
    network: Optional[str] = None
    wallet_address: Optional[str] = None
    slippage_pct: Optional[Amount] = None
    gas_price: Optional[str] = None
    max_gas: Optional[int] = None


@dataclass
class ClmmRemoveLiquidityParams:
    position_address: Optional[str] = None
    percentage_to_remove: Optional[Amount] = None
    network: Optional[str] = None
    wallet_address: Optional[str] = None
    slippage_pct: Optional[Amount] = None
    gas_price: Optional[str] = None
    max_gas: Optional[int] = None


@dataclass
class ClmmPositionParams:
    """Close position / collect fees request"""
    position_address: Optional[str] = None
    network: Optional[str] = None
    wallet_address: Optional[str] = None
    slippage_pct: Optional[Amount] = None
    gas_price: Optional[str] = None
    max_gas: Optional[int] = None


@dataclass
class ClmmSwapParams:
    """
    Attributes:
        base_token: Token whose amount is given ("ETH" wraps into WUNIT0)
        quote_token: Counter token
        amount: Base amount sold (SELL) or bought (BUY)
        side: "BUY" or "SELL" (default SELL)
        pool_address: Optional pool; the deepest fee tier is used if omitted
        fee_tier: Restrict pool lookup to one fee tier
    """
    base_token: Optional[str] = None
    quote_token: Optional[str] = None
    amount: Optional[Amount] = None
    side: Optional[Union[str, Side]] = Side.SELL
    pool_address: Optional[str] = None
    fee_tier: Optional[int] = None
    network: Optional[str] = None
    wallet_address: Optional[str] = None
    slippage_pct: Optional[Amount] = None
    gas_price: Optional[str] = None
    max_gas: Optional[int] = None


def _topic_hex(topic) -> str:
    return topic.lower() if isinstance(topic, str) else Web3.to_hex(topic).lower()


def minted_token_id(logs, nft_manager: str) -> Optional[int]:
    """Token id of the NFT minted by nft_manager, read from receipt logs"""
    for log in logs:
        topics = log["topics"]
        if len(topics) != 4 or log["address"].lower() != nft_manager.lower():
            continue
        if _topic_hex(topics[0]) != TRANSFER_EVENT_TOPIC:
            continue
        if int(_topic_hex(topics[1]), 16) != 0:
            continue
        return int(_topic_hex(topics[3]), 16)
    return None


class ClmmModule(TransactionOrchestrator):
    """
    KoalaSwap V3 operations

    Usage:
        client = KoalaSwapClient(config)

        result = client.clmm.open_position(ClmmOpenPositionParams(
            pool_address="0x...",
            lower_price=1800,
            upper_price=2200,
            base_token_amount=1,
        ))
        position_id = result.data["positionAddress"]
    """

    # =========================================================================
    # Resolving
    # =========================================================================

    def _manager(self, network: str):
        return self._gateway.get_contract(
            self._contracts.for_network(network).v3_nft_manager, V3_POSITION_MANAGER_ABI,
        )

    def _pool_pair(self, network: str, pool: PoolInfo) -> TokenPair:
        base = self._registry.resolve_token_by_address(pool.base_token_address)
        quote = self._registry.resolve_token_by_address(pool.quote_token_address)
        if base is None:
            raise UnsupportedToken(pool.base_token_address)
        if quote is None:
            raise UnsupportedToken(pool.quote_token_address)
        return TokenPair.classify(base, quote, self._registry.wrapped_native(network).address)

    def _native_legs(self, pair: TokenPair, base_token: Optional[str], quote_token: Optional[str]) -> List[Leg]:
        """Legs the caller asked to fund with ETH; each must be the pool's WUNIT0 leg"""
        legs = []
        for leg, requested in ((Leg.BASE, base_token), (Leg.QUOTE, quote_token)):
            if not is_native_symbol(requested):
                continue
            if pair.native_leg != leg:
                raise PoolNotFound(None, f"{leg.value} token of this pool is {pair.token(leg).symbol}, not WUNIT0")
            legs.append(leg)
        return legs

    def _position_id(self, position_address) -> int:
        if position_address is None or position_address == "":
            raise MissingParameter("positionAddress")
        try:
            return int(str(position_address))
        except ValueError:
            raise PositionNotFound(str(position_address))

    def _load_position(self, network: str, position_address) -> Tuple[Position, PoolInfo, TokenPair]:
        token_id = self._position_id(position_address)
        position = self._registry.get_position(token_id, network)
        if position is None:
            raise PositionNotFound(str(position_address))
        if position.pool_address is None:
            raise PoolNotFound(None, f"No pool for position {token_id}")
        pool = self._resolver.resolve_pool(network, PoolType.CLMM, position.pool_address)
        return position, pool, self._pool_pair(network, pool)

    # =========================================================================
    # Read-only
    # =========================================================================

    def pool_info(self, pool_address: str, network: Optional[str] = None) -> PoolInfo:
        network = self._resolve_network(network)
        return self._resolver.resolve_pool(network, PoolType.CLMM, self._require(pool_address, "poolAddress"))

    def position_info(self, position_address, network: Optional[str] = None) -> Position:
        """Position with the token amounts its liquidity is worth at the current price"""
        network = self._resolve_network(network)
        position, pool, pair = self._load_position(network, position_address)
        raw0, raw1 = amounts_for_liquidity(
            pool.sqrt_price_x96 or 0, position.tick_lower, position.tick_upper, position.liquidity,
        )
        return replace(
            position,
            base_token_amount=pair.base.from_raw(raw0),
            quote_token_amount=pair.quote.from_raw(raw1),
        )

    def quote_swap(
        self,
        base_token: str,
        quote_token: str,
        amount: Amount,
        side: Union[str, Side] = Side.SELL,
        pool_address: Optional[str] = None,
        network: Optional[str] = None,
        slippage_pct: Optional[Amount] = None,
        fee_tier: Optional[int] = None,
    ) -> SwapQuote:
        """Quote a V3 single-pool swap with QuoterV2"""
        network = self._resolve_network(network)
        base = self._registry.resolve_token(self._require(base_token, "baseToken"), network)
        quote = self._registry.resolve_token(self._require(quote_token, "quoteToken"), network)
        pool = self._resolver.resolve_pool(network, PoolType.CLMM, pool_address, base, quote, fee_tier)
        return self._resolver.quote_swap(network, pool, base, quote, amount, self._resolve_side(side), slippage_pct)

    # =========================================================================
    # Position planning
    # =========================================================================

    @staticmethod
    def _plan_liquidity(
        pool: PoolInfo,
        tick_lower: int,
        tick_upper: int,
        raw0: int,
        raw1: int,
    ) -> Tuple[int, int, int]:
        """
        Returns:
            (liquidity, expected raw0, expected raw1)

        Raises:
            InvalidAmount: amounts buy no liquidity in this range
        """
        liquidity = liquidity_for_amounts(pool.sqrt_price_x96 or 0, tick_lower, tick_upper, raw0, raw1)
        if liquidity <= 0:
            raise InvalidAmount(
                f"Amounts provide no liquidity for ticks [{tick_lower}, {tick_upper}] "
                f"at current tick {pool.current_tick}",
                "baseTokenAmount",
            )
        expected0, expected1 = amounts_for_liquidity(pool.sqrt_price_x96 or 0, tick_lower, tick_upper, liquidity)
        return liquidity, expected0, expected1

    @staticmethod
    def _optional_amount(value, field_name: str) -> Optional[Decimal]:
        if value is None or value == "":
            return None
        amount = to_decimal(value)
        if amount < 0:
            raise InvalidAmount.not_positive(field_name, value)
        return amount

    def _desired_amounts(
        self,
        pool: PoolInfo,
        pair: TokenPair,
        tick_lower: int,
        tick_upper: int,
        base_amount: Optional[Decimal],
        quote_amount: Optional[Decimal],
    ) -> Tuple[int, int, int, int, int]:
        """
        Desired and expected raw amounts for a deposit

        A leg the caller left out is sized from the other leg.

        Returns:
            (liquidity, desired0, desired1, expected0, expected1)
        """
        raw0 = pair.base.to_raw(base_amount) if base_amount is not None else 0
        raw1 = pair.quote.to_raw(quote_amount) if quote_amount is not None else 0
        liquidity, expected0, expected1 = self._plan_liquidity(pool, tick_lower, tick_upper, raw0, raw1)
        desired0 = raw0 if base_amount is not None else expected0
        desired1 = raw1 if quote_amount is not None else expected1
        return liquidity, desired0, desired1, expected0, expected1

    def _check_position_allowances(self, network: str, pair: TokenPair, wallet_address: str, raw0: int, raw1: int):
        spender, spender_name = self._contracts.spender_with_name(network, OperationKind.CLMM_POSITION)
        self._guard.check_all(
            [AllowanceRequirement(pair.base, raw0), AllowanceRequirement(pair.quote, raw1)],
            wallet_address, spender, spender_name,
        )

    # =========================================================================
    # Open position
    # =========================================================================

    def open_position(self, params: ClmmOpenPositionParams) -> TransactionResult:
        """
        Mint a new position NFT

        Data: positionAddress, positionRent, baseTokenAmountAdded,
        quoteTokenAmountAdded, baseWrapTxHash?, quoteWrapTxHash?
        """
        with self._pipeline("clmm_open_position", "open position") as pipeline:
            network = self._resolve_network(params.network)
            wallet = self._resolve_wallet(params.wallet_address)
            slippage = self._resolver.resolve_slippage(params.slippage_pct)
            lower_price = self._positive_amount(params.lower_price, "lowerPrice")
            upper_price = self._positive_amount(params.upper_price, "upperPrice")
            if lower_price >= upper_price:
                raise InvalidAmount(
                    f"lowerPrice ({lower_price}) must be below upperPrice ({upper_price})",
                    "lowerPrice",
                    params.lower_price,
                )
            base_amount = self._optional_amount(params.base_token_amount, "baseTokenAmount")
            quote_amount = self._optional_amount(params.quote_token_amount, "quoteTokenAmount")
            if not base_amount and not quote_amount:
                raise MissingParameter("baseTokenAmount or quoteTokenAmount")

            pool = self._resolver.resolve_pool(network, PoolType.CLMM, self._require(params.pool_address, "poolAddress"))
            pair = self._pool_pair(network, pool)
            tick_lower, tick_upper = price_range_to_ticks(
                lower_price, upper_price, pool.tick_spacing, pair.base.decimals, pair.quote.decimals,
            )
            logger.info(f"Price range [{lower_price}, {upper_price}] -> ticks [{tick_lower}, {tick_upper}]")

            native_legs = self._native_legs(pair, params.base_token, params.quote_token)
            if native_legs:
                # Size the wrap from the current price; the mint is re-planned after wrapping
                _, desired0, desired1, _, _ = self._desired_amounts(
                    pool, pair, tick_lower, tick_upper, base_amount, quote_amount,
                )
                desired = {Leg.BASE: desired0, Leg.QUOTE: desired1}
                self._wrap_native_legs(
                    pipeline, network, wallet,
                    {leg: pair.token(leg).from_raw(desired[leg]) for leg in native_legs if desired[leg] > 0},
                    params.gas_price,
                )

            pipeline.advance(PipelineStage.QUOTING)
            pool = self._resolver.resolve_pool(network, PoolType.CLMM, pool.pool_address)
            liquidity, desired0, desired1, expected0, expected1 = self._desired_amounts(
                pool, pair, tick_lower, tick_upper, base_amount, quote_amount,
            )
            min0 = min_amount_out(expected0, slippage)
            min1 = min_amount_out(expected1, slippage)
            logger.info(
                f"Mint plan: liquidity={liquidity} {pair.base.symbol} {pair.base.format(desired0)} (min {min0}), "
                f"{pair.quote.symbol} {pair.quote.format(desired1)} (min {min1})"
            )

            pipeline.advance(PipelineStage.ALLOWANCE_CHECKING)
            self._check_position_allowances(network, pair, wallet.address, desired0, desired1)

            manager = self._manager(network)
            call = manager.functions.mint((
                Web3.to_checksum_address(pair.base.address),
                Web3.to_checksum_address(pair.quote.address),
                pool.fee_tier,
                tick_lower,
                tick_upper,
                desired0,
                desired1,
                min0,
                min1,
                wallet.address,
                self._deadline(),
            ))
            gas_options = self._gas_options(
                params.gas_price, params.max_gas, self._config.evm.clmm_open_position_gas_limit,
            )
            tx_hash, receipt = self._submit_and_confirm(pipeline, "open position", call, wallet, gas_options)

            position_id = None
            if receipt is not None and receipt.succeeded:
                token_id = minted_token_id(receipt.logs, self._contracts.for_network(network).v3_nft_manager)
                if token_id is None:
                    logger.warning(f"No position NFT transfer found in {tx_hash}")
                else:
                    position_id = str(token_id)
                    logger.info(f"Opened position {position_id} in pool {pool.pool_address}")

            return self._format_result(pipeline, tx_hash, receipt, {
                "positionAddress": position_id,
                "positionRent": Decimal(0),
                "baseTokenAmountAdded": pair.base.from_raw(expected0),
                "quoteTokenAmountAdded": pair.quote.from_raw(expected1),
            })

    # =========================================================================
    # Add liquidity
    # =========================================================================

    def add_liquidity(self, params: ClmmAddLiquidityParams) -> TransactionResult:
        """
        Increase liquidity on an existing position

        Data: baseTokenAmountAdded, quoteTokenAmountAdded
        """
        with self._pipeline("clmm_add_liquidity", "add liquidity") as pipeline:
            network = self._resolve_network(params.network)
            wallet = self._resolve_wallet(params.wallet_address)
            slippage = self._resolver.resolve_slippage(params.slippage_pct)
            base_amount = self._positive_amount(params.base_token_amount, "baseTokenAmount")
            quote_amount = self._positive_amount(params.quote_token_amount, "quoteTokenAmount")
            position, pool, pair = self._load_position(network, params.position_address)

            pipeline.advance(PipelineStage.QUOTING)
            liquidity, desired0, desired1, expected0, expected1 = self._desired_amounts(
                pool, pair, position.tick_lower, position.tick_upper, base_amount, quote_amount,
            )
            min0 = min_amount_out(expected0, slippage)
            min1 = min_amount_out(expected1, slippage)
            logger.info(f"Adding liquidity {liquidity} to position {position.token_id}")

            pipeline.advance(PipelineStage.ALLOWANCE_CHECKING)
            self._check_position_allowances(network, pair, wallet.address, desired0, desired1)

            call = self._manager(network).functions.increaseLiquidity((
                position.token_id, desired0, desired1, min0, min1, self._deadline(),
            ))
            gas_options = self._gas_options(params.gas_price, params.max_gas, self._config.evm.clmm_position_gas_limit)
            tx_hash, receipt = self._submit_and_confirm(pipeline, "add liquidity", call, wallet, gas_options)

            return self._format_result(pipeline, tx_hash, receipt, {
                "baseTokenAmountAdded": pair.base.from_raw(expected0),
                "quoteTokenAmountAdded": pair.quote.from_raw(expected1),
            })

    # =========================================================================
    # Remove liquidity / close / collect
    # =========================================================================

    @staticmethod
    def _collect_params(token_id: int, recipient: str) -> Tuple[int, str, int, int]:
        return token_id, recipient, MAX_UINT128, MAX_UINT128

    def _decrease_params(self, token_id: int, liquidity: int, min0: int, min1: int) -> Tuple[int, int, int, int, int]:
        return token_id, liquidity, min0, min1, self._deadline()

    def _expected_decrease(self, manager, wallet_address: str, token_id: int, liquidity: int) -> Tuple[int, int]:
        """Token amounts a decrease would release, from a static call"""
        amount0, amount1 = manager.functions.decreaseLiquidity(
            self._decrease_params(token_id, liquidity, 0, 0),
        ).call({"from": wallet_address})
        return int(amount0), int(amount1)

    def _expected_collect(self, manager, wallet_address: str, token_id: int) -> Tuple[int, int]:
        amount0, amount1 = manager.functions.collect(
            self._collect_params(token_id, wallet_address),
        ).call({"from": wallet_address})
        return int(amount0), int(amount1)

    @staticmethod
    def _multicall(manager, calls: List[Tuple[str, Any]]):
        """Batch position manager calls into one multicall transaction"""
        data = [
            Web3.to_bytes(hexstr=manager.encode_abi(fn_name, args=[args]))
            for fn_name, args in calls
        ]
        return manager.functions.multicall(data)

    def remove_liquidity(self, params: ClmmRemoveLiquidityParams) -> TransactionResult:
        """
        Remove a percentage of a position's liquidity and collect the tokens

        Data: baseTokenAmountRemoved, quoteTokenAmountRemoved
        """
        with self._pipeline("clmm_remove_liquidity", "remove liquidity") as pipeline:
            network = self._resolve_network(params.network)
            wallet = self._resolve_wallet(params.wallet_address)
            slippage = self._resolver.resolve_slippage(params.slippage_pct)
            percentage = self._percentage(params.percentage_to_remove, "percentageToRemove")
            position, pool, pair = self._load_position(network, params.position_address)

            pipeline.advance(PipelineStage.QUOTING)
            liquidity = position.liquidity * int(percentage * 100) // 10000
            if liquidity <= 0:
                raise InvalidAmount(
                    f"Position {position.token_id} has no liquidity to remove",
                    "percentageToRemove",
                    params.percentage_to_remove,
                )
            manager = self._manager(network)
            expected0, expected1 = self._expected_decrease(manager, wallet.address, position.token_id, liquidity)
            min0 = min_amount_out(expected0, slippage)
            min1 = min_amount_out(expected1, slippage)
            logger.info(
                f"Removing {percentage}% ({liquidity}) from position {position.token_id}: "
                f"{pair.base.format(expected0)} {pair.base.symbol} + {pair.quote.format(expected1)} {pair.quote.symbol}"
            )

            call = self._multicall(manager, [
                ("decreaseLiquidity", self._decrease_params(position.token_id, liquidity, min0, min1)),
                ("collect", self._collect_params(position.token_id, wallet.address)),
            ])
            gas_options = self._gas_options(params.gas_price, params.max_gas, self._config.evm.clmm_position_gas_limit)
            tx_hash, receipt = self._submit_and_confirm(pipeline, "remove liquidity", call, wallet, gas_options)

            return self._format_result(pipeline, tx_hash, receipt, {
                "baseTokenAmountRemoved": pair.base.from_raw(expected0),
                "quoteTokenAmountRemoved": pair.quote.from_raw(expected1),
            })

    def close_position(self, params: ClmmPositionParams) -> TransactionResult:
        """
        Remove all liquidity, collect everything owed and burn the NFT

        Data: positionRentRefunded, baseTokenAmountRemoved,
        quoteTokenAmountRemoved, baseFeeAmountCollected, quoteFeeAmountCollected
        """
        with self._pipeline("clmm_close_position", "close position") as pipeline:
            network = self._resolve_network(params.network)
            wallet = self._resolve_wallet(params.wallet_address)
            slippage = self._resolver.resolve_slippage(params.slippage_pct)
            position, pool, pair = self._load_position(network, params.position_address)

            pipeline.advance(PipelineStage.QUOTING)
            manager = self._manager(network)
            # Owed before the decrease is what the position earned in fees
            fee0, fee1 = self._expected_collect(manager, wallet.address, position.token_id)
            expected0 = expected1 = 0
            calls = []
            if position.liquidity > 0:
                expected0, expected1 = self._expected_decrease(
                    manager, wallet.address, position.token_id, position.liquidity,
                )
                calls.append((
                    "decreaseLiquidity",
                    self._decrease_params(
                        position.token_id, position.liquidity,
                        min_amount_out(expected0, slippage), min_amount_out(expected1, slippage),
                    ),
                ))
            calls.append(("collect", self._collect_params(position.token_id, wallet.address)))
            calls.append(("burn", position.token_id))
            logger.info(
                f"Closing position {position.token_id}: liquidity {position.liquidity}, "
                f"fees {pair.base.format(fee0)} {pair.base.symbol} + {pair.quote.format(fee1)} {pair.quote.symbol}"
            )

            call = self._multicall(manager, calls)
            default_gas = self._config.evm.clmm_position_gas_limit + self._config.evm.clmm_burn_gas_limit
            gas_options = self._gas_options(params.gas_price, params.max_gas, default_gas)
            tx_hash, receipt = self._submit_and_confirm(pipeline, "close position", call, wallet, gas_options)

            return self._format_result(pipeline, tx_hash, receipt, {
                "positionRentRefunded": Decimal(0),
                "baseTokenAmountRemoved": pair.base.from_raw(expected0),
                "quoteTokenAmountRemoved": pair.quote.from_raw(expected1),
                "baseFeeAmountCollected": pair.base.from_raw(fee0),
                "quoteFeeAmountCollected": pair.quote.from_raw(fee1),
            })

    def collect_fees(self, params: ClmmPositionParams) -> TransactionResult:
        """
        Collect all fees owed to a position

        Data: baseFeeAmountCollected, quoteFeeAmountCollected
        """
        with self._pipeline("clmm_collect_fees", "collect fees") as pipeline:
            network = self._resolve_network(params.network)
            wallet = self._resolve_wallet(params.wallet_address)
            position, pool, pair = self._load_position(network, params.position_address)

            pipeline.advance(PipelineStage.QUOTING)
            manager = self._manager(network)
            fee0, fee1 = self._expected_collect(manager, wallet.address, position.token_id)
            logger.info(
                f"Collecting {pair.base.format(fee0)} {pair.base.symbol} + "
                f"{pair.quote.format(fee1)} {pair.quote.symbol} from position {position.token_id}"
            )

            call = manager.functions.collect(self._collect_params(position.token_id, wallet.address))
            gas_options = self._gas_options(params.gas_price, params.max_gas, self._config.evm.clmm_collect_gas_limit)
            tx_hash, receipt = self._submit_and_confirm(pipeline, "collect fees", call, wallet, gas_options)

            return self._format_result(pipeline, tx_hash, receipt, {
                "baseFeeAmountCollected": pair.base.from_raw(fee0),
                "quoteFeeAmountCollected": pair.quote.from_raw(fee1),
            })

    # =========================================================================
    # Swap
    # =========================================================================

    def execute_swap(self, params: ClmmSwapParams) -> TransactionResult:
        """
        Swap through the V3 SwapRouter in a single pool

        An ETH input is wrapped first: the exact amount for SELL, the
        slippage-bounded maximum input for BUY. ETH output arrives as WUNIT0.

        Data: tokenIn, tokenOut, amountIn, amountOut, baseTokenBalanceChange,
        quoteTokenBalanceChange, wrapTxHash?
        """
        with self._pipeline("clmm_swap", "execute swap") as pipeline:
            side = self._resolve_side(params.side)
            amount = self._positive_amount(params.amount, "amount")
            network = self._resolve_network(params.network)
            wallet = self._resolve_wallet(params.wallet_address)
            base = self._registry.resolve_token(self._require(params.base_token, "baseToken"), network)
            quote_token = self._registry.resolve_token(self._require(params.quote_token, "quoteToken"), network)
            pool = self._resolver.resolve_pool(
                network, PoolType.CLMM, params.pool_address, base, quote_token, params.fee_tier,
            )

            paying_leg = Leg.BASE if side == Side.SELL else Leg.QUOTE
            paying_token = base if paying_leg == Leg.BASE else quote_token
            if paying_token.is_native:
                if side == Side.SELL:
                    wrap_amount = amount
                else:
                    preliminary = self._resolver.quote_swap(
                        network, pool, base, quote_token, amount, side, params.slippage_pct,
                    )
                    wrap_amount = preliminary.human_max_amount_in
                self._wrap_native_legs(
                    pipeline, network, wallet, {paying_leg: wrap_amount}, params.gas_price, hash_key="wrapTxHash",
                )

            pipeline.advance(PipelineStage.QUOTING)
            quote = self._resolver.quote_swap(network, pool, base, quote_token, amount, side, params.slippage_pct)

            pipeline.advance(PipelineStage.ALLOWANCE_CHECKING)
            spender, spender_name = self._contracts.spender_with_name(network, OperationKind.CLMM_SWAP)
            erc20_in = self._registry.wrapped_native(network) if quote.token_in.is_native else quote.token_in
            required_in = quote.raw_amount_in if side == Side.SELL else quote.max_amount_in
            self._guard.check_all(
                [AllowanceRequirement(erc20_in, required_in)],
                wallet.address, spender, spender_name,
            )

            router = self._gateway.get_contract(quote.router_address, V3_SWAP_ROUTER_ABI)
            token_in = Web3.to_checksum_address(self._registry.lookup_address(quote.token_in, network))
            token_out = Web3.to_checksum_address(self._registry.lookup_address(quote.token_out, network))
            if side == Side.SELL:
                call = router.functions.exactInputSingle((
                    token_in, token_out, pool.fee_tier, wallet.address,
                    quote.raw_amount_in, quote.min_amount_out, 0,
                ))
            else:
                call = router.functions.exactOutputSingle((
                    token_in, token_out, pool.fee_tier, wallet.address,
                    quote.raw_amount_out, quote.max_amount_in, 0,
                ))
            gas_options = self._gas_options(params.gas_price, params.max_gas, self._config.evm.swap_gas_limit)
            tx_hash, receipt = self._submit_and_confirm(pipeline, "execute swap", call, wallet, gas_options)

            return self._format_result(pipeline, tx_hash, receipt, self._swap_data(quote))
