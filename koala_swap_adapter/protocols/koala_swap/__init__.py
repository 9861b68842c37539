"""
KoalaSwap protocol definitions (Uniswap V2/V3 fork on Unit Zero)
"""

from .contracts import (
    ContractAddresses,
    ContractRegistry,
    DEFAULT_CONTRACT_ADDRESSES,
    UNIT_ZERO_CONTRACTS,
    SPENDER_NAMES,
)
from .abi import (
    ERC20_ABI,
    WRAPPED_NATIVE_ABI,
    V2_ROUTER_ABI,
    V2_FACTORY_ABI,
    V2_PAIR_ABI,
    V3_SWAP_ROUTER_ABI,
    V3_QUOTER_V2_ABI,
    V3_POSITION_MANAGER_ABI,
    V3_FACTORY_ABI,
    V3_POOL_ABI,
)

__all__ = [
    "ContractAddresses",
    "ContractRegistry",
    "DEFAULT_CONTRACT_ADDRESSES",
    "UNIT_ZERO_CONTRACTS",
    "SPENDER_NAMES",
    "ERC20_ABI",
    "WRAPPED_NATIVE_ABI",
    "V2_ROUTER_ABI",
    "V2_FACTORY_ABI",
    "V2_PAIR_ABI",
    "V3_SWAP_ROUTER_ABI",
    "V3_QUOTER_V2_ABI",
    "V3_POSITION_MANAGER_ABI",
    "V3_FACTORY_ABI",
    "V3_POOL_ABI",
]
