"""
Error definitions for KoalaSwap Adapter
"""

from .exceptions import (
    ErrorCode,
    KoalaSwapError,
    MissingParameter,
    InvalidAmount,
    PoolNotFound,
    UnsupportedToken,
    PositionNotFound,
    WalletNotFound,
    InsufficientAllowance,
    InsufficientNativeBalance,
    ChainSubmissionFailure,
    TransactionPending,
    ConfigurationError,
    UnsupportedNetwork,
)

__all__ = [
    "ErrorCode",
    "KoalaSwapError",
    "MissingParameter",
    "InvalidAmount",
    "PoolNotFound",
    "UnsupportedToken",
    "PositionNotFound",
    "WalletNotFound",
    "InsufficientAllowance",
    "InsufficientNativeBalance",
    "ChainSubmissionFailure",
    "TransactionPending",
    "ConfigurationError",
    "UnsupportedNetwork",
]
