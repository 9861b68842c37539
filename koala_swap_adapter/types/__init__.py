"""
Type definitions for KoalaSwap Adapter
"""

from .token import (
    TokenDescriptor,
    NATIVE_TOKEN_SYMBOL,
    is_native_symbol,
    NATIVE_DECIMALS,
    to_decimal,
    to_raw_amount,
    from_raw_amount,
    format_token_amount,
)
from .pool import PoolInfo, PoolType
from .position import Position
from .quote import Side, SwapQuote, LiquidityQuote
from .result import TxStatus, GasOptions, Receipt, TransactionResult
from .operation import OperationKind, Leg, TokenPair, PipelineStage

__all__ = [
    # Tokens
    "TokenDescriptor",
    "NATIVE_TOKEN_SYMBOL",
    "is_native_symbol",
    "NATIVE_DECIMALS",
    "to_decimal",
    "to_raw_amount",
    "from_raw_amount",
    "format_token_amount",
    # Pools and positions
    "PoolInfo",
    "PoolType",
    "Position",
    # Quotes
    "Side",
    "SwapQuote",
    "LiquidityQuote",
    # Results
    "TxStatus",
    "GasOptions",
    "Receipt",
    "TransactionResult",
    # Operations
    "OperationKind",
    "Leg",
    "TokenPair",
    "PipelineStage",
]
