"""
KoalaSwapClient - entry point for KoalaSwap operations

Wires configuration, the chain gateway and the shared collaborators into the
AMM (V2) and CLMM (V3) modules.
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, Optional, TYPE_CHECKING

from .config import Config, load_config
from .infra import ChainGateway
from .protocols.koala_swap import ContractAddresses, ContractRegistry
from .types import TokenDescriptor
from .modules.registry import PoolTokenRegistry
from .modules.pricing import PricingOracle, QuoteResolver
from .modules.wrap import WrapAdapter
from .modules.allowance import AllowanceGuard


class KoalaSwapClient:
    """
    KoalaSwap client

    Provides access through two modules:
    - amm: V2 add/remove liquidity, swaps, quotes
    - clmm: V3 positions (open, add, remove, close, collect) and swaps

    Usage:
        config = load_config()
        with KoalaSwapClient(config) as client:
            quote = client.amm.quote_swap("ETH", "USDC", 1, "SELL")
            result = client.amm.execute_swap(AmmSwapParams(
                base_token="ETH", quote_token="USDC", amount=1, side="SELL",
            ))
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        gateway: Optional[ChainGateway] = None,
        contracts: Optional[Mapping[str, ContractAddresses]] = None,
        tokens: Optional[Iterable[TokenDescriptor]] = None,
        private_keys: Optional[List[str]] = None,
    ):
        """
        Args:
            config: Configuration (defaults to load_config())
            gateway: Chain gateway; built from config.chain when omitted
            contracts: Network to contract address mapping (defaults to Unit Zero)
            tokens: Known tokens (defaults to the configured token list)
            private_keys: Signer keys when the gateway is built here
        """
        self._config = config or load_config()
        self._owns_gateway = gateway is None
        self._gateway = gateway or ChainGateway.from_config(self._config, private_keys=private_keys)

        self._contracts = ContractRegistry(contracts, self._config.koala_swap.networks)
        self._registry = PoolTokenRegistry(self._gateway, self._contracts, self._config.koala_swap, tokens)
        self._oracle = PricingOracle(self._gateway, self._contracts)
        self._resolver = QuoteResolver(self._registry, self._oracle, self._contracts, self._config.koala_swap)
        self._wrapper = WrapAdapter(self._gateway, self._registry, self._config.evm)
        self._guard = AllowanceGuard(self._gateway)

        # Lazy-loaded modules
        self._amm: Optional["AmmModule"] = None
        self._clmm: Optional["ClmmModule"] = None

    @property
    def config(self) -> Config:
        return self._config

    @property
    def gateway(self) -> ChainGateway:
        return self._gateway

    @property
    def contracts(self) -> ContractRegistry:
        return self._contracts

    @property
    def registry(self) -> PoolTokenRegistry:
        return self._registry

    @property
    def resolver(self) -> QuoteResolver:
        return self._resolver

    def _module_args(self):
        return (
            self._config,
            self._gateway,
            self._registry,
            self._resolver,
            self._contracts,
            self._wrapper,
            self._guard,
        )

    @property
    def amm(self) -> "AmmModule":
        """
        KoalaSwap V2 module

        Provides:
        - add_liquidity / remove_liquidity
        - execute_swap / quote_swap
        - quote_liquidity / pool_info
        """
        if self._amm is None:
            from .modules.amm import AmmModule
            self._amm = AmmModule(*self._module_args())
        return self._amm

    @property
    def clmm(self) -> "ClmmModule":
        """
        KoalaSwap V3 module

        Provides:
        - open_position / add_liquidity / remove_liquidity / close_position
        - collect_fees
        - execute_swap / quote_swap
        - pool_info / position_info
        """
        if self._clmm is None:
            from .modules.clmm import ClmmModule
            self._clmm = ClmmModule(*self._module_args())
        return self._clmm

    def close(self):
        """Release signers held by a gateway this client created"""
        if self._owns_gateway:
            self._gateway.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"KoalaSwapClient(networks={self._contracts.networks}, wallets={len(self._gateway.wallet_addresses)})"


if TYPE_CHECKING:
    from .modules.amm import AmmModule
    from .modules.clmm import ClmmModule
