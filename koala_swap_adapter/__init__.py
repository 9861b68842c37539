"""
KoalaSwap Adapter - liquidity and swap orchestration for KoalaSwap on Unit Zero

Provides atomic operations for:
- KoalaSwap V2 (AMM): add/remove liquidity, swaps
- KoalaSwap V3 (CLMM): open/add/remove/close positions, collect fees, swaps

Native ETH legs are wrapped into WUNIT0 before the dependent transaction;
allowances are checked but never approved.
"""

from .client import KoalaSwapClient
from .config import Config, load_config, setup_logging, enable_file_logging
from .types import (
    TokenDescriptor,
    PoolInfo,
    PoolType,
    Position,
    Side,
    SwapQuote,
    LiquidityQuote,
    TransactionResult,
    TxStatus,
    OperationKind,
    PipelineStage,
)
from .errors import (
    KoalaSwapError,
    ErrorCode,
    MissingParameter,
    InvalidAmount,
    PoolNotFound,
    UnsupportedToken,
    PositionNotFound,
    WalletNotFound,
    InsufficientAllowance,
    InsufficientNativeBalance,
    ChainSubmissionFailure,
    UnsupportedNetwork,
)
from .modules.amm import AmmModule, AmmAddLiquidityParams, AmmRemoveLiquidityParams, AmmSwapParams
from .modules.clmm import (
    ClmmModule,
    ClmmOpenPositionParams,
    ClmmAddLiquidityParams,
    ClmmRemoveLiquidityParams,
    ClmmPositionParams,
    ClmmSwapParams,
)
from .infra import ChainGateway, EVMSigner

__all__ = [
    # Client
    "KoalaSwapClient",
    "Config",
    "load_config",
    "setup_logging",
    "enable_file_logging",
    # Types
    "TokenDescriptor",
    "PoolInfo",
    "PoolType",
    "Position",
    "Side",
    "SwapQuote",
    "LiquidityQuote",
    "TransactionResult",
    "TxStatus",
    "OperationKind",
    "PipelineStage",
    # Errors
    "KoalaSwapError",
    "ErrorCode",
    "MissingParameter",
    "InvalidAmount",
    "PoolNotFound",
    "UnsupportedToken",
    "PositionNotFound",
    "WalletNotFound",
    "InsufficientAllowance",
    "InsufficientNativeBalance",
    "ChainSubmissionFailure",
    "UnsupportedNetwork",
    # Modules
    "AmmModule",
    "AmmAddLiquidityParams",
    "AmmRemoveLiquidityParams",
    "AmmSwapParams",
    "ClmmModule",
    "ClmmOpenPositionParams",
    "ClmmAddLiquidityParams",
    "ClmmRemoveLiquidityParams",
    "ClmmPositionParams",
    "ClmmSwapParams",
    # Infrastructure
    "ChainGateway",
    "EVMSigner",
]

__version__ = "0.1.0"
