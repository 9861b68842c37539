"""
Operation kinds, token pair variants and pipeline stages
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .token import TokenDescriptor


class OperationKind(Enum):
    """Which KoalaSwap contract family an operation goes through"""
    AMM = "amm"                      # V2 router
    CLMM_SWAP = "clmm/swap"          # V3 SwapRouter
    ROUTER = "router"                # V3 SwapRouter
    CLMM_POSITION = "clmm/position"  # V3 NFT position manager


class Leg(Enum):
    """Side of a base/quote pair"""
    BASE = "base"
    QUOTE = "quote"

    @property
    def other(self) -> "Leg":
        return Leg.QUOTE if self == Leg.BASE else Leg.BASE


@dataclass(frozen=True)
class TokenPair:
    """
    Base/quote pair tagged with which leg (if any) is the wrapped native token

    Selected once while resolving and threaded through quoting and
    submission: native_leg set means NativePlusToken(native_leg), None means
    TokenPlusToken.
    """
    base: TokenDescriptor
    quote: TokenDescriptor
    native_leg: Optional[Leg] = None

    @classmethod
    def classify(cls, base: TokenDescriptor, quote: TokenDescriptor, wrapped_native_address: Optional[str]) -> "TokenPair":
        """Tag the pair by comparing each leg with the wrapped native address"""
        native_leg = None
        if wrapped_native_address:
            wrapped = wrapped_native_address.lower()
            if base.address.lower() == wrapped:
                native_leg = Leg.BASE
            elif quote.address.lower() == wrapped:
                native_leg = Leg.QUOTE
        return cls(base=base, quote=quote, native_leg=native_leg)

    @property
    def is_native_plus_token(self) -> bool:
        return self.native_leg is not None

    @property
    def native_token(self) -> Optional[TokenDescriptor]:
        if self.native_leg is None:
            return None
        return self.token(self.native_leg)

    @property
    def erc20_token(self) -> TokenDescriptor:
        """The non-native leg of a NativePlusToken pair"""
        if self.native_leg is None:
            raise ValueError("TokenPlusToken pair has two ERC-20 legs")
        return self.token(self.native_leg.other)

    def token(self, leg: Leg) -> TokenDescriptor:
        return self.base if leg == Leg.BASE else self.quote

    def __str__(self) -> str:
        kind = f"NativePlusToken({self.native_leg.value})" if self.native_leg else "TokenPlusToken"
        return f"{self.base.symbol}-{self.quote.symbol} [{kind}]"


class PipelineStage(Enum):
    """Request state machine; transitions only move forward"""
    RESOLVING = 1
    WRAPPING = 2
    QUOTING = 3
    ALLOWANCE_CHECKING = 4
    SUBMITTING = 5
    CONFIRMING = 6
    FORMATTING = 7
    SUCCEEDED = 8
    FAILED = 9

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineStage.SUCCEEDED, PipelineStage.FAILED)
