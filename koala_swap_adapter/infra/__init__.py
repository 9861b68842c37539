"""
Infrastructure layer for KoalaSwap Adapter

Provides:
- EVMSigner / NonceManager: local key signing with thread-safe nonces
- ChainGateway: wallets, contracts, allowances, gas, submission and receipts
- CorrelationContext: correlation ids for request tracing
"""

from .evm_signer import (
    EVMSigner,
    NonceManager,
    create_web3,
    create_evm_signers,
)
from .gateway import ChainGateway, TokenAllowance
from .tracing import (
    CorrelationContext,
    generate_correlation_id,
    get_correlation_id,
    log_with_correlation,
    classify_submission_error,
    is_insufficient_funds,
)

__all__ = [
    "EVMSigner",
    "NonceManager",
    "create_web3",
    "create_evm_signers",
    "ChainGateway",
    "TokenAllowance",
    "CorrelationContext",
    "generate_correlation_id",
    "get_correlation_id",
    "log_with_correlation",
    "classify_submission_error",
    "is_insufficient_funds",
]
