"""
Protocol definitions
"""

from .koala_swap import ContractAddresses, ContractRegistry, DEFAULT_CONTRACT_ADDRESSES

__all__ = [
    "ContractAddresses",
    "ContractRegistry",
    "DEFAULT_CONTRACT_ADDRESSES",
]
