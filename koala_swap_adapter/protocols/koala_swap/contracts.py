"""
KoalaSwap Contract Addresses

Contract addresses for KoalaSwap V2 and V3 on Unit Zero Mainnet (chain id 88811).
The mapping is injected into the client; nothing looks these up globally.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from ...errors import UnsupportedNetwork
from ...types import OperationKind


@dataclass(frozen=True)
class ContractAddresses:
    """KoalaSwap deployment on one network"""
    # V2 contracts
    v2_router: str
    v2_factory: str
    # V3 contracts
    v3_swap_router: str
    v3_nft_manager: str
    v3_quoter_v2: str
    v3_factory: str
    # V1 Quoter, kept for completeness
    v3_quoter: Optional[str] = None


# =========================================================================
# Unit Zero Mainnet (ChainID: 88811)
# =========================================================================

UNIT_ZERO_CONTRACTS = ContractAddresses(
    v2_router="0x7A2044296804EDec53beAAA8fe9D802E5be19e0a",
    v2_factory="0xcF3Ee60d29531B668Ae89FD3577E210082Da220b",
    v3_swap_router="0x7A2044296804EDec53beAAA8fe9D802E5be19e0a",
    v3_nft_manager="0xa759C5ccF40acdf101BC6623f5b65363186a293b",
    v3_quoter_v2="0xA02C6705e8B54a27113aCc0283Fd3882582433dc",
    v3_factory="0xcF3Ee60d29531B668Ae89FD3577E210082Da220b",
    v3_quoter="0x340dC35d8caA8F696df4BB79d3b9743e6D964E96",
)

# 'mainnet' is an alias for 'koala'
DEFAULT_CONTRACT_ADDRESSES: Dict[str, ContractAddresses] = {
    "koala": UNIT_ZERO_CONTRACTS,
    "mainnet": UNIT_ZERO_CONTRACTS,
}

# Human names used in allowance messages
SPENDER_NAMES = {
    OperationKind.AMM: "KoalaSwap router",
    OperationKind.CLMM_SWAP: "KoalaSwap swap router",
    OperationKind.ROUTER: "KoalaSwap swap router",
    OperationKind.CLMM_POSITION: "KoalaSwap position manager",
}


class ContractRegistry:
    """
    Read-only network -> ContractAddresses mapping

    Usage:
        contracts = ContractRegistry(DEFAULT_CONTRACT_ADDRESSES)
        router = contracts.for_network("koala").v2_router
        spender = contracts.spender("koala", OperationKind.CLMM_POSITION)
    """

    def __init__(
        self,
        addresses: Optional[Mapping[str, ContractAddresses]] = None,
        networks: Optional[List[str]] = None,
    ):
        """
        Args:
            addresses: Network to deployment mapping (defaults to Unit Zero)
            networks: Networks enabled by configuration; others are rejected
        """
        mapping = dict(addresses if addresses is not None else DEFAULT_CONTRACT_ADDRESSES)
        if networks is not None:
            mapping = {name: addrs for name, addrs in mapping.items() if name in networks}
        self._addresses = mapping

    @property
    def networks(self) -> List[str]:
        return list(self._addresses)

    def for_network(self, network: str) -> ContractAddresses:
        """Get deployment for a network, failing fast when it is absent"""
        addresses = self._addresses.get(network)
        if addresses is None:
            raise UnsupportedNetwork(network, self.networks)
        return addresses

    def spender(self, network: str, kind: OperationKind) -> str:
        """Contract that must be approved to pull tokens for an operation kind"""
        return self.spender_with_name(network, kind)[0]

    def spender_with_name(self, network: str, kind: OperationKind) -> Tuple[str, str]:
        addresses = self.for_network(network)
        if kind == OperationKind.AMM:
            address = addresses.v2_router
        elif kind in (OperationKind.CLMM_SWAP, OperationKind.ROUTER):
            address = addresses.v3_swap_router
        elif kind == OperationKind.CLMM_POSITION:
            address = addresses.v3_nft_manager
        else:
            raise ValueError(f"Unknown operation kind: {kind}")
        return address, SPENDER_NAMES[kind]

    def __contains__(self, network: str) -> bool:
        return network in self._addresses

    def __repr__(self) -> str:
        return f"ContractRegistry(networks={self.networks})"
