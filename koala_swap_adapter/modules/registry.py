"""
Pool/Token Registry

Resolves token symbols and addresses to TokenDescriptor, pool addresses to
PoolInfo, and NFT ids to Position. Reads chain state on every pool or
position call; only token metadata (immutable on chain) is cached.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, TYPE_CHECKING

from web3 import Web3

from ..types import (
    TokenDescriptor,
    PoolInfo,
    PoolType,
    Position,
    is_native_symbol,
)
from ..errors import UnsupportedToken
from ..protocols.koala_swap import (
    ERC20_ABI,
    V2_ROUTER_ABI,
    V2_FACTORY_ABI,
    V2_PAIR_ABI,
    V3_FACTORY_ABI,
    V3_POOL_ABI,
    V3_POSITION_MANAGER_ABI,
)
from .pricing import tick_to_price

if TYPE_CHECKING:
    from ..config import KoalaSwapConfig
    from ..infra import ChainGateway
    from ..protocols.koala_swap import ContractRegistry

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def load_token_list(path: str) -> List[TokenDescriptor]:
    """
    Load a token list JSON file

    Accepts either {"tokens": [...]} or a bare list of
    {symbol, address, decimals, name?} entries.
    """
    with open(Path(path), "r", encoding="utf-8") as f:
        data = json.load(f)

    entries = data.get("tokens", []) if isinstance(data, dict) else data
    tokens = []
    for entry in entries:
        tokens.append(TokenDescriptor(
            symbol=entry["symbol"],
            address=Web3.to_checksum_address(entry["address"]),
            decimals=int(entry["decimals"]),
            name=entry.get("name", ""),
        ))
    logger.info(f"Loaded {len(tokens)} tokens from {path}")
    return tokens


class PoolTokenRegistry:
    """
    Token and pool resolution for one KoalaSwap deployment

    Usage:
        registry = PoolTokenRegistry(gateway, contracts, config.koala_swap)
        usdc = registry.resolve_token_by_symbol("USDC")
        pool = registry.resolve_pool_info(pool_address, "koala", PoolType.AMM)
    """

    def __init__(
        self,
        gateway: "ChainGateway",
        contracts: "ContractRegistry",
        config: "KoalaSwapConfig",
        tokens: Optional[Iterable[TokenDescriptor]] = None,
    ):
        """
        Args:
            gateway: Chain gateway used for contract reads
            contracts: Network to contract address mapping
            config: KoalaSwap settings (wrapped native symbol, token list, fee tiers)
            tokens: Known tokens; defaults to the configured token list file
        """
        self._gateway = gateway
        self._contracts = contracts
        self._config = config
        self._lock = threading.Lock()
        self._by_symbol: Dict[str, TokenDescriptor] = {}
        self._by_address: Dict[str, TokenDescriptor] = {}

        if tokens is None and config.token_list_path:
            tokens = load_token_list(config.token_list_path)
        for token in tokens or []:
            self._remember(token)

    def _remember(self, token: TokenDescriptor) -> None:
        with self._lock:
            self._by_symbol.setdefault(token.symbol.upper(), token)
            self._by_address[token.address.lower()] = token

    @property
    def tokens(self) -> List[TokenDescriptor]:
        return list(self._by_address.values())

    # =========================================================================
    # Tokens
    # =========================================================================

    def resolve_token_by_symbol(self, symbol: str, network: Optional[str] = None) -> Optional[TokenDescriptor]:
        """
        Resolve a token symbol

        "ETH" in any case resolves to the native currency sentinel. The wrapped native
        symbol falls back to the router's WETH() when absent from the list.

        Returns:
            TokenDescriptor or None if the symbol is unknown
        """
        if is_native_symbol(symbol):
            return TokenDescriptor.native()

        token = self._by_symbol.get(symbol.upper())
        if token is not None:
            return token

        if symbol.upper() == self._config.wrapped_native_symbol.upper():
            return self.wrapped_native(network or self._config.default_network)

        return None

    def resolve_token_by_address(self, address: str) -> Optional[TokenDescriptor]:
        """
        Resolve a token address, reading ERC-20 metadata for unlisted tokens

        Returns:
            TokenDescriptor or None if the address is not an ERC-20 token
        """
        if is_native_symbol(address):
            return TokenDescriptor.native()
        if not Web3.is_address(address):
            return None

        token = self._by_address.get(address.lower())
        if token is not None:
            return token

        try:
            contract = self._gateway.get_contract(address, ERC20_ABI)
            decimals = contract.functions.decimals().call()
            symbol = contract.functions.symbol().call()
        except Exception as e:
            logger.warning(f"Failed to read token metadata for {address}: {e}")
            return None

        token = TokenDescriptor(
            symbol=symbol,
            address=Web3.to_checksum_address(address),
            decimals=int(decimals),
        )
        self._remember(token)
        return token

    def resolve_token(self, symbol_or_address: str, network: Optional[str] = None) -> TokenDescriptor:
        """
        Resolve a symbol or address

        Raises:
            UnsupportedToken: Neither lookup succeeds
        """
        if Web3.is_address(symbol_or_address):
            token = self.resolve_token_by_address(symbol_or_address)
        else:
            token = self.resolve_token_by_symbol(symbol_or_address, network)
        if token is None:
            raise UnsupportedToken(symbol_or_address)
        return token

    def wrapped_native(self, network: str) -> TokenDescriptor:
        """WUNIT0 descriptor, read from the V2 router when not listed"""
        token = self._by_symbol.get(self._config.wrapped_native_symbol.upper())
        if token is not None:
            return token

        router = self._gateway.get_contract(self._contracts.for_network(network).v2_router, V2_ROUTER_ABI)
        address = router.functions.WETH().call()
        token = self.resolve_token_by_address(address)
        if token is None:
            raise UnsupportedToken(self._config.wrapped_native_symbol)
        return token

    def lookup_address(self, token: TokenDescriptor, network: str) -> str:
        """On-chain address for pool lookups (native maps to the wrapped token)"""
        if token.is_native:
            return self.wrapped_native(network).address
        return token.address

    # =========================================================================
    # Pools
    # =========================================================================

    def resolve_pool_info(self, pool_address: str, network: str, kind: PoolType) -> Optional[PoolInfo]:
        """
        Read pool state from chain

        Base is the pool's token0 and quote its token1. Repeated calls with no
        chain state change return equal PoolInfo values.

        Returns:
            PoolInfo or None if the address is not a pool of that kind
        """
        self._contracts.for_network(network)
        if not pool_address or not Web3.is_address(pool_address):
            return None

        try:
            if kind == PoolType.AMM:
                return self._read_amm_pool(pool_address)
            return self._read_clmm_pool(pool_address)
        except Exception as e:
            logger.error(f"Failed to get {kind.value} pool {pool_address}: {e}")
            return None

    def _read_amm_pool(self, pool_address: str) -> PoolInfo:
        pair = self._gateway.get_contract(pool_address, V2_PAIR_ABI)
        token0 = pair.functions.token0().call()
        token1 = pair.functions.token1().call()
        reserve0, reserve1, _ = pair.functions.getReserves().call()
        total_supply = pair.functions.totalSupply().call()

        return PoolInfo(
            pool_address=Web3.to_checksum_address(pool_address),
            base_token_address=Web3.to_checksum_address(token0),
            quote_token_address=Web3.to_checksum_address(token1),
            pool_type=PoolType.AMM,
            base_reserve=int(reserve0),
            quote_reserve=int(reserve1),
            lp_total_supply=int(total_supply),
        )

    def _read_clmm_pool(self, pool_address: str) -> PoolInfo:
        pool = self._gateway.get_contract(pool_address, V3_POOL_ABI)
        slot0 = pool.functions.slot0().call()
        token0 = pool.functions.token0().call()
        token1 = pool.functions.token1().call()
        fee = pool.functions.fee().call()
        tick_spacing = pool.functions.tickSpacing().call()
        liquidity = pool.functions.liquidity().call()

        return PoolInfo(
            pool_address=Web3.to_checksum_address(pool_address),
            base_token_address=Web3.to_checksum_address(token0),
            quote_token_address=Web3.to_checksum_address(token1),
            pool_type=PoolType.CLMM,
            fee_tier=int(fee),
            current_tick=int(slot0[1]),
            liquidity=int(liquidity),
            sqrt_price_x96=int(slot0[0]),
            tick_spacing=int(tick_spacing),
        )

    def find_pool_address(
        self,
        base: TokenDescriptor,
        quote: TokenDescriptor,
        network: str,
        kind: PoolType,
        fee_tier: Optional[int] = None,
    ) -> Optional[str]:
        """
        Find a pool for a token pair via the factory

        For CLMM without a fee tier, every configured tier is tried and the
        pool with the most in-range liquidity wins.
        """
        contracts = self._contracts.for_network(network)
        base_address = Web3.to_checksum_address(self.lookup_address(base, network))
        quote_address = Web3.to_checksum_address(self.lookup_address(quote, network))

        if kind == PoolType.AMM:
            factory = self._gateway.get_contract(contracts.v2_factory, V2_FACTORY_ABI)
            pair = factory.functions.getPair(base_address, quote_address).call()
            return None if pair == ZERO_ADDRESS else Web3.to_checksum_address(pair)

        factory = self._gateway.get_contract(contracts.v3_factory, V3_FACTORY_ABI)
        tiers = [fee_tier] if fee_tier is not None else self._config.fee_tiers
        best_address, best_liquidity = None, -1
        for tier in tiers:
            pool_address = factory.functions.getPool(base_address, quote_address, tier).call()
            if pool_address == ZERO_ADDRESS:
                continue
            liquidity = self._gateway.get_contract(pool_address, V3_POOL_ABI).functions.liquidity().call()
            logger.debug(f"Found {base.symbol}-{quote.symbol} pool {pool_address} fee={tier} liquidity={liquidity}")
            if liquidity > best_liquidity:
                best_address, best_liquidity = Web3.to_checksum_address(pool_address), liquidity
        return best_address

    # =========================================================================
    # Positions
    # =========================================================================

    def get_position(self, token_id: int, network: str) -> Optional[Position]:
        """
        Read a CLMM position from the NFT manager

        Returns:
            Position or None if the id does not exist
        """
        contracts = self._contracts.for_network(network)
        manager = self._gateway.get_contract(contracts.v3_nft_manager, V3_POSITION_MANAGER_ABI)
        try:
            data = manager.functions.positions(int(token_id)).call()
        except Exception as e:
            logger.warning(f"Position {token_id} not readable: {e}")
            return None

        token0, token1 = data[2], data[3]
        fee, tick_lower, tick_upper, liquidity = data[4], data[5], data[6], data[7]
        owed0, owed1 = data[10], data[11]

        pool_address = None
        lower_price = upper_price = None
        factory = self._gateway.get_contract(contracts.v3_factory, V3_FACTORY_ABI)
        pool = factory.functions.getPool(token0, token1, fee).call()
        if pool != ZERO_ADDRESS:
            pool_address = Web3.to_checksum_address(pool)

        base = self.resolve_token_by_address(token0)
        quote = self.resolve_token_by_address(token1)
        if base is not None and quote is not None:
            lower_price = tick_to_price(tick_lower, base.decimals, quote.decimals)
            upper_price = tick_to_price(tick_upper, base.decimals, quote.decimals)

        return Position(
            token_id=int(token_id),
            token0=Web3.to_checksum_address(token0),
            token1=Web3.to_checksum_address(token1),
            fee_tier=int(fee),
            tick_lower=int(tick_lower),
            tick_upper=int(tick_upper),
            liquidity=int(liquidity),
            tokens_owed0=int(owed0),
            tokens_owed1=int(owed1),
            pool_address=pool_address,
            lower_price=lower_price,
            upper_price=upper_price,
        )

    def __repr__(self) -> str:
        return f"PoolTokenRegistry(tokens={len(self._by_address)}, networks={self._contracts.networks})"
