"""
AMM Module

KoalaSwap V2 operations: add/remove liquidity, swaps, and read-only quotes.

Entry points are selected from the TokenPair variant: a pair containing
WUNIT0 goes through the router's ETH functions, any other pair through the
token/token functions. Liquidity added from wrapped ETH is already WUNIT0
and goes through the token/token functions.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Tuple, Union

from web3 import Web3

from ..types import (
    Leg,
    LiquidityQuote,
    OperationKind,
    PipelineStage,
    PoolInfo,
    PoolType,
    Side,
    SwapQuote,
    TokenDescriptor,
    TokenPair,
    TransactionResult,
)
from ..errors import InvalidAmount, MissingParameter, PoolNotFound, UnsupportedToken
from ..protocols.koala_swap import V2_ROUTER_ABI, V2_PAIR_ABI
from .allowance import AllowanceRequirement
from .orchestrator import TransactionOrchestrator
from .pricing import min_amount_out

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]


@dataclass
class AmmAddLiquidityParams:
    """
    Attributes:
        pool_address: V2 pair address (or give base_token and quote_token)
        base_token_amount: Base amount to add
        quote_token_amount: Quote amount to add
        base_token: Base symbol/address override; "ETH" wraps first
        quote_token: Quote symbol/address override; "ETH" wraps first
        slippage_pct: Slippage percentage (default from config)
        gas_price: Gas price in wei
        max_gas: Gas limit
    """
    pool_address: Optional[str] = None
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
class AmmRemoveLiquidityParams:
    pool_address: Optional[str] = None
    percentage_to_remove: Optional[Amount] = None
    network: Optional[str] = None
    wallet_address: Optional[str] = None
    slippage_pct: Optional[Amount] = None
    gas_price: Optional[str] = None
    max_gas: Optional[int] = None


@dataclass
class AmmSwapParams:
    """
    Attributes:
        base_token: Token whose amount is given ("ETH" for native)
        quote_token: Counter token
        amount: Base amount sold (SELL) or bought (BUY)
        side: "BUY" or "SELL"
        pool_address: Optional pair address; looked up from the factory if omitted
    """
    base_token: Optional[str] = None
    quote_token: Optional[str] = None
    amount: Optional[Amount] = None
    side: Optional[Union[str, Side]] = None
    pool_address: Optional[str] = None
    network: Optional[str] = None
    wallet_address: Optional[str] = None
    slippage_pct: Optional[Amount] = None
    gas_price: Optional[str] = None
    max_gas: Optional[int] = None



class AmmModule(TransactionOrchestrator):
    """
    KoalaSwap V2 operations

    Usage:
        client = KoalaSwapClient(config)

        result = client.amm.add_liquidity(AmmAddLiquidityParams(
            pool_address="0x...",
            base_token_amount=1,
            quote_token_amount=2000,
            slippage_pct=1,
        ))
        print(result.to_dict())
    """

    # =========================================================================
    # Resolving
    # =========================================================================

    def _token(self, address: str) -> TokenDescriptor:
        token = self._registry.resolve_token_by_address(address)
        if token is None:
            raise UnsupportedToken(address)
        return token

    def _pool_leg_address(self, pool: PoolInfo, token: Optional[TokenDescriptor], network: str) -> Optional[str]:
        """Lowercase pool address of a requested token; ETH counts as WUNIT0"""
        if token is None:
            return None
        address = self._registry.lookup_address(token, network)
        if not pool.has_token(address):
            raise PoolNotFound(pool.pool_address, f"Pool {pool.pool_address} does not contain {token.symbol}")
        return address.lower()

    def _resolve_pool_pair(
        self,
        network: str,
        pool_address: Optional[str],
        base_token: Optional[str],
        quote_token: Optional[str],
    ) -> Tuple[PoolInfo, TokenPair, Dict[Leg, bool]]:
        """
        Resolve the pair and tag its variant

        Returns:
            (pool, pair, native_requested) where native_requested marks the
            legs the caller gave as "ETH"
        """
        requested_base = self._registry.resolve_token(base_token, network) if base_token else None
        requested_quote = self._registry.resolve_token(quote_token, network) if quote_token else None
        if not pool_address and (requested_base is None or requested_quote is None):
            raise MissingParameter("poolAddress")

        pool = self._resolver.resolve_pool(network, PoolType.AMM, pool_address, requested_base, requested_quote)

        base = self._token(pool.base_token_address)
        quote = self._token(pool.quote_token_address)

        # Both requested legs must be distinct tokens of this pool
        base_address = self._pool_leg_address(pool, requested_base, network)
        quote_address = self._pool_leg_address(pool, requested_quote, network)
        if base_address and quote_address and base_address == quote_address:
            raise PoolNotFound(
                pool.pool_address,
                f"baseToken and quoteToken both resolve to {base_address} in pool {pool.pool_address}",
            )

        # Caller order wins when it is the reverse of the pair's token0/token1
        if base_address == quote.address.lower() or quote_address == base.address.lower():
            base, quote = quote, base

        native_requested = {
            Leg.BASE: requested_base is not None and requested_base.is_native,
            Leg.QUOTE: requested_quote is not None and requested_quote.is_native,
        }

        wrapped = self._registry.wrapped_native(network)
        pair = TokenPair.classify(base, quote, wrapped.address)
        logger.info(f"Resolved {pair} in pool {pool.pool_address}")
        return pool, pair, native_requested

    # =========================================================================
    # Read-only
    # =========================================================================

    def pool_info(self, pool_address: str, network: Optional[str] = None) -> PoolInfo:
        """
        Raises:
            PoolNotFound: address is not a KoalaSwap V2 pair
        """
        network = self._resolve_network(network)
        pool = self._registry.resolve_pool_info(self._require(pool_address, "poolAddress"), network, PoolType.AMM)
        if pool is None:
            raise PoolNotFound(pool_address)
        return pool

    def quote_liquidity(
        self,
        pool_address: Optional[str] = None,
        base_token_amount: Optional[Amount] = None,
        quote_token_amount: Optional[Amount] = None,
        network: Optional[str] = None,
        base_token: Optional[str] = None,
        quote_token: Optional[str] = None,
    ) -> LiquidityQuote:
        """Matched base/quote amounts for adding liquidity at current reserves"""
        network = self._resolve_network(network)
        pool, pair, _ = self._resolve_pool_pair(network, pool_address, base_token, quote_token)
        return self._resolver.quote_liquidity(
            network, pool, pair.base, pair.quote, base_token_amount, quote_token_amount,
        )

    def quote_swap(
        self,
        base_token: str,
        quote_token: str,
        amount: Amount,
        side: Union[str, Side],
        pool_address: Optional[str] = None,
        network: Optional[str] = None,
        slippage_pct: Optional[Amount] = None,
    ) -> SwapQuote:
        """Quote a V2 swap without submitting"""
        network = self._resolve_network(network)
        base = self._registry.resolve_token(self._require(base_token, "baseToken"), network)
        quote = self._registry.resolve_token(self._require(quote_token, "quoteToken"), network)
        pool = self._resolver.resolve_pool(network, PoolType.AMM, pool_address, base, quote)
        return self._resolver.quote_swap(network, pool, base, quote, amount, self._resolve_side(side), slippage_pct)

    # =========================================================================
    # Add liquidity
    # =========================================================================

    def add_liquidity(self, params: AmmAddLiquidityParams) -> TransactionResult:
        """
        Add liquidity to a V2 pair

        Data: baseTokenAmountAdded, quoteTokenAmountAdded, baseWrapTxHash?,
        quoteWrapTxHash?
        """
        with self._pipeline("amm_add_liquidity", "add liquidity") as pipeline:
            base_amount = self._positive_amount(params.base_token_amount, "baseTokenAmount")
            quote_amount = self._positive_amount(params.quote_token_amount, "quoteTokenAmount")
            network = self._resolve_network(params.network)
            wallet = self._resolve_wallet(params.wallet_address)
            slippage = self._resolver.resolve_slippage(params.slippage_pct)
            pool, pair, native_requested = self._resolve_pool_pair(
                network, params.pool_address, params.base_token, params.quote_token,
            )

            amounts = {Leg.BASE: base_amount, Leg.QUOTE: quote_amount}
            wrap_legs = {leg: amounts[leg] for leg, native in native_requested.items() if native}
            self._wrap_native_legs(pipeline, network, wallet, wrap_legs, params.gas_price)
            # Wrapped ETH is spent as WUNIT0 through the token/token entry point
            use_eth_entry = pair.is_native_plus_token and not wrap_legs

            pipeline.advance(PipelineStage.QUOTING)
            quote = self._resolver.quote_liquidity(network, pool, pair.base, pair.quote, base_amount, quote_amount)
            base_min = min_amount_out(quote.raw_base_amount, slippage)
            quote_min = min_amount_out(quote.raw_quote_amount, slippage)
            logger.info(
                f"Liquidity quote: {quote.base_amount} {pair.base.symbol} (min {base_min}) + "
                f"{quote.quote_amount} {pair.quote.symbol} (min {quote_min})"
            )

            pipeline.advance(PipelineStage.ALLOWANCE_CHECKING)
            spender, spender_name = self._contracts.spender_with_name(network, OperationKind.AMM)
            raw_amounts = {Leg.BASE: quote.raw_base_amount, Leg.QUOTE: quote.raw_quote_amount}
            mins = {Leg.BASE: base_min, Leg.QUOTE: quote_min}
            erc20_legs = [pair.native_leg.other] if use_eth_entry else [Leg.BASE, Leg.QUOTE]
            self._guard.check_all(
                [AllowanceRequirement(pair.token(leg), raw_amounts[leg]) for leg in erc20_legs],
                wallet.address, spender, spender_name,
            )

            router = self._gateway.get_contract(quote.router_address, V2_ROUTER_ABI)
            deadline = self._deadline()
            if use_eth_entry:
                token_leg = pair.native_leg.other
                call = router.functions.addLiquidityETH(
                    Web3.to_checksum_address(pair.token(token_leg).address),
                    raw_amounts[token_leg],
                    mins[token_leg],
                    mins[pair.native_leg],
                    wallet.address,
                    deadline,
                )
                value = raw_amounts[pair.native_leg]
            else:
                call = router.functions.addLiquidity(
                    Web3.to_checksum_address(pair.base.address),
                    Web3.to_checksum_address(pair.quote.address),
                    raw_amounts[Leg.BASE],
                    raw_amounts[Leg.QUOTE],
                    base_min,
                    quote_min,
                    wallet.address,
                    deadline,
                )
                value = 0

            gas_options = self._gas_options(
                params.gas_price, params.max_gas, self._config.evm.amm_add_liquidity_gas_limit, value,
            )
            tx_hash, receipt = self._submit_and_confirm(pipeline, "add liquidity", call, wallet, gas_options)

            return self._format_result(pipeline, tx_hash, receipt, {
                "baseTokenAmountAdded": quote.base_amount,
                "quoteTokenAmountAdded": quote.quote_amount,
            })

    # =========================================================================
    # Remove liquidity
    # =========================================================================

    def remove_liquidity(self, params: AmmRemoveLiquidityParams) -> TransactionResult:
        """
        Burn a percentage of the wallet's LP tokens

        Data: baseTokenAmountRemoved, quoteTokenAmountRemoved
        """
        with self._pipeline("amm_remove_liquidity", "remove liquidity") as pipeline:
            percentage = self._percentage(params.percentage_to_remove, "percentageToRemove")
            network = self._resolve_network(params.network)
            wallet = self._resolve_wallet(params.wallet_address)
            slippage = self._resolver.resolve_slippage(params.slippage_pct)
            pool, pair, _ = self._resolve_pool_pair(network, self._require(params.pool_address, "poolAddress"), None, None)

            pipeline.advance(PipelineStage.QUOTING)
            lp_contract = self._gateway.get_contract(pool.pool_address, V2_PAIR_ABI)
            lp_balance = lp_contract.functions.balanceOf(wallet.address).call()
            liquidity = lp_balance * int(percentage * 100) // 10000
            if liquidity <= 0:
                raise InvalidAmount(
                    f"No liquidity to remove from {pool.pool_address} (LP balance {lp_balance})",
                    "percentageToRemove",
                    percentage,
                )

            total_supply = pool.lp_total_supply or lp_contract.functions.totalSupply().call()
            raw_base = liquidity * (pool.base_reserve or 0) // total_supply
            raw_quote = liquidity * (pool.quote_reserve or 0) // total_supply
            # pair token0/token1 order may be swapped relative to base/quote
            if pair.base.address.lower() != pool.base_token_address.lower():
                raw_base, raw_quote = raw_quote, raw_base
            base_min = min_amount_out(raw_base, slippage)
            quote_min = min_amount_out(raw_quote, slippage)
            logger.info(
                f"Removing {liquidity} LP ({percentage}%): expect {pair.base.format(raw_base)} {pair.base.symbol} "
                f"+ {pair.quote.format(raw_quote)} {pair.quote.symbol}"
            )

            pipeline.advance(PipelineStage.ALLOWANCE_CHECKING)
            spender, spender_name = self._contracts.spender_with_name(network, OperationKind.AMM)
            lp_token = TokenDescriptor(symbol=f"{pair.base.symbol}-{pair.quote.symbol} LP", address=pool.pool_address, decimals=18)
            self._guard.check(lp_token, wallet.address, spender, liquidity, spender_name)

            router = self._gateway.get_contract(spender, V2_ROUTER_ABI)
            deadline = self._deadline()
            if pair.is_native_plus_token:
                token_leg = pair.native_leg.other
                raw_mins = {Leg.BASE: base_min, Leg.QUOTE: quote_min}
                call = router.functions.removeLiquidityETH(
                    Web3.to_checksum_address(pair.token(token_leg).address),
                    liquidity,
                    raw_mins[token_leg],
                    raw_mins[pair.native_leg],
                    wallet.address,
                    deadline,
                )
            else:
                call = router.functions.removeLiquidity(
                    Web3.to_checksum_address(pair.base.address),
                    Web3.to_checksum_address(pair.quote.address),
                    liquidity,
                    base_min,
                    quote_min,
                    wallet.address,
                    deadline,
                )

            gas_options = self._gas_options(
                params.gas_price, params.max_gas, self._config.evm.amm_remove_liquidity_gas_limit,
            )
            tx_hash, receipt = self._submit_and_confirm(pipeline, "remove liquidity", call, wallet, gas_options)

            return self._format_result(pipeline, tx_hash, receipt, {
                "baseTokenAmountRemoved": pair.base.from_raw(raw_base),
                "quoteTokenAmountRemoved": pair.quote.from_raw(raw_quote),
            })

    # =========================================================================
    # Swap
    # =========================================================================

    def execute_swap(self, params: AmmSwapParams) -> TransactionResult:
        """
        Swap through the V2 router

        SELL spends an exact base amount; BUY receives an exact base amount.
        "ETH" legs use the router's ETH functions directly.

        Data: tokenIn, tokenOut, amountIn, amountOut, baseTokenBalanceChange,
        quoteTokenBalanceChange
        """
        with self._pipeline("amm_swap", "execute swap") as pipeline:
            side = self._resolve_side(params.side)
            amount = self._positive_amount(params.amount, "amount")
            network = self._resolve_network(params.network)
            wallet = self._resolve_wallet(params.wallet_address)
            base = self._registry.resolve_token(self._require(params.base_token, "baseToken"), network)
            quote_token = self._registry.resolve_token(self._require(params.quote_token, "quoteToken"), network)
            pool = self._resolver.resolve_pool(network, PoolType.AMM, params.pool_address, base, quote_token)

            pipeline.advance(PipelineStage.QUOTING)
            quote = self._resolver.quote_swap(network, pool, base, quote_token, amount, side, params.slippage_pct)

            pipeline.advance(PipelineStage.ALLOWANCE_CHECKING)
            spender, spender_name = self._contracts.spender_with_name(network, OperationKind.AMM)
            required_in = quote.raw_amount_in if side == Side.SELL else quote.max_amount_in
            self._guard.check_all(
                [AllowanceRequirement(quote.token_in, required_in)],
                wallet.address, spender, spender_name,
            )

            call, value = self._swap_call(network, quote, wallet.address)
            gas_options = self._gas_options(params.gas_price, params.max_gas, self._config.evm.swap_gas_limit, value)
            tx_hash, receipt = self._submit_and_confirm(pipeline, "execute swap", call, wallet, gas_options)

            return self._format_result(pipeline, tx_hash, receipt, self._swap_data(quote))

    def _swap_call(self, network: str, quote: SwapQuote, recipient: str):
        """Pick the router entry point; returns (contract_call, native value)"""
        router = self._gateway.get_contract(quote.router_address, V2_ROUTER_ABI)
        path = [
            Web3.to_checksum_address(self._registry.lookup_address(quote.token_in, network)),
            Web3.to_checksum_address(self._registry.lookup_address(quote.token_out, network)),
        ]
        deadline = self._deadline()
        fn = router.functions

        if quote.side == Side.SELL:
            if quote.token_in.is_native:
                return fn.swapExactETHForTokens(quote.min_amount_out, path, recipient, deadline), quote.raw_amount_in
            if quote.token_out.is_native:
                return fn.swapExactTokensForETH(quote.raw_amount_in, quote.min_amount_out, path, recipient, deadline), 0
            return fn.swapExactTokensForTokens(quote.raw_amount_in, quote.min_amount_out, path, recipient, deadline), 0

        if quote.token_in.is_native:
            return fn.swapETHForExactTokens(quote.raw_amount_out, path, recipient, deadline), quote.max_amount_in
        if quote.token_out.is_native:
            return fn.swapTokensForExactETH(quote.raw_amount_out, quote.max_amount_in, path, recipient, deadline), 0
        return fn.swapTokensForExactTokens(quote.raw_amount_out, quote.max_amount_in, path, recipient, deadline), 0
