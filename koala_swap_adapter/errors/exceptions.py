"""
Exception definitions for KoalaSwap Adapter
"""

from enum import Enum
from typing import Optional
from decimal import Decimal


class ErrorCode(Enum):
    """
    Unified error codes for KoalaSwap operations

    2xxx - Transaction errors
    4xxx - Pool/Token errors
    5xxx - Position errors
    6xxx - Wallet errors
    7xxx - Request errors
    9xxx - Configuration errors
    """
    # Transaction errors
    TX_SEND_FAILED = "2002"
    TX_CONFIRMATION_PENDING = "2003"
    TX_INSUFFICIENT_FUNDS = "2004"
    TX_REVERTED = "2005"
    TX_INSUFFICIENT_ALLOWANCE = "2006"

    # Pool/Token errors
    POOL_NOT_FOUND = "4001"
    TOKEN_UNSUPPORTED = "4004"

    # Position errors
    POSITION_NOT_FOUND = "5001"

    # Wallet errors
    WALLET_NOT_FOUND = "6001"

    # Request errors
    PARAMETER_MISSING = "7003"
    AMOUNT_INVALID = "7004"

    # Configuration errors
    CONFIG_INVALID = "9001"
    CONFIG_MISSING = "9002"
    NETWORK_UNSUPPORTED = "9003"


class KoalaSwapError(Exception):
    """
    Base exception for all KoalaSwap adapter errors

    Attributes:
        message: Human-readable error message, safe to return to callers
        code: Error code for programmatic handling
        recoverable: Whether a fresh request might succeed
        original_error: The underlying exception if any
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"

    @property
    def stage(self) -> Optional[str]:
        """Pipeline stage the error was raised in, if known"""
        return self.details.get("stage")


class MissingParameter(KoalaSwapError):
    """A required request parameter was not supplied"""

    def __init__(self, param: str):
        super().__init__(
            f"Missing required parameter: {param}",
            ErrorCode.PARAMETER_MISSING,
            details={"param": param},
        )
        self.param = param


class InvalidAmount(KoalaSwapError):
    """
    Amount or percentage outside its valid range

    Raised when:
    - A token amount is zero or negative
    - A slippage or removal percentage is outside [0, 100]
    """

    def __init__(self, message: str, field_name: Optional[str] = None, value=None):
        super().__init__(
            message,
            ErrorCode.AMOUNT_INVALID,
            details={"field": field_name, "value": str(value) if value is not None else None},
        )
        self.field_name = field_name
        self.value = value

    @classmethod
    def not_positive(cls, field_name: str, value) -> "InvalidAmount":
        return cls(f"{field_name} must be greater than 0, got {value}", field_name, value)

    @classmethod
    def out_of_range(cls, field_name: str, value, low, high) -> "InvalidAmount":
        return cls(f"{field_name} must be between {low} and {high}, got {value}", field_name, value)


class PoolNotFound(KoalaSwapError):
    """Pool address does not resolve to a KoalaSwap pool"""

    def __init__(self, pool_address: Optional[str], message: Optional[str] = None):
        super().__init__(
            message or f"Pool not found: {pool_address}",
            ErrorCode.POOL_NOT_FOUND,
            details={"pool_address": pool_address},
        )
        self.pool_address = pool_address

    @classmethod
    def for_pair(cls, base: str, quote: str) -> "PoolNotFound":
        return cls(None, f"No KoalaSwap pool found for {base}-{quote}")


class UnsupportedToken(KoalaSwapError):
    """Token symbol or address cannot be mapped to a known token"""

    def __init__(self, token: str):
        super().__init__(
            f"Token not supported: {token}",
            ErrorCode.TOKEN_UNSUPPORTED,
            details={"token": token},
        )
        self.token = token


class PositionNotFound(KoalaSwapError):
    """NFT token id has no position on the position manager"""

    def __init__(self, position_id: str):
        super().__init__(
            f"Position not found: {position_id}",
            ErrorCode.POSITION_NOT_FOUND,
            details={"position_id": position_id},
        )
        self.position_id = position_id


class WalletNotFound(KoalaSwapError):
    """No signer is available for the requested wallet address"""

    def __init__(self, address: Optional[str] = None):
        message = f"Wallet not found: {address}" if address else "No wallet address provided and no wallets found."
        super().__init__(
            message,
            ErrorCode.WALLET_NOT_FOUND,
            details={"address": address},
        )
        self.address = address


def _plain(amount) -> str:
    """Decimal as a plain string without trailing zeros"""
    value = Decimal(str(amount)).normalize()
    return format(value, "f")


class InsufficientAllowance(KoalaSwapError):
    """
    Spender allowance is below the amount about to be spent

    Detected pre-flight; the request never reaches submission.
    """

    def __init__(
        self,
        token_symbol: str,
        required: Decimal,
        spender: str,
        spender_name: str = "KoalaSwap router",
        current: Optional[Decimal] = None,
    ):
        super().__init__(
            f"Insufficient allowance for {token_symbol}. Please approve at least "
            f"{_plain(required)} {token_symbol} for the {spender_name} ({spender})",
            ErrorCode.TX_INSUFFICIENT_ALLOWANCE,
            details={
                "token": token_symbol,
                "required": _plain(required),
                "current": _plain(current) if current is not None else None,
                "spender": spender,
            },
        )
        self.token_symbol = token_symbol
        self.required = required
        self.spender = spender
        self.current = current


class InsufficientNativeBalance(KoalaSwapError):
    """Submission failed because the wallet cannot pay value plus gas"""

    def __init__(self, original_error: Optional[Exception] = None):
        super().__init__(
            "Insufficient ETH balance to pay for gas fees. Please add more ETH to your wallet.",
            ErrorCode.TX_INSUFFICIENT_FUNDS,
            original_error=original_error,
        )


class ChainSubmissionFailure(KoalaSwapError):
    """
    Generic submission or confirmation failure

    The underlying error is kept in original_error for operators and is
    never part of the message.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.TX_SEND_FAILED,
        original_error: Optional[Exception] = None,
        tx_hash: Optional[str] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=False,
            original_error=original_error,
            details={"tx_hash": tx_hash},
        )
        self.tx_hash = tx_hash

    @classmethod
    def send_failed(cls, operation: str, error: Exception) -> "ChainSubmissionFailure":
        return cls(f"Failed to {operation}", original_error=error)

    @classmethod
    def reverted(cls, operation: str, tx_hash: str) -> "ChainSubmissionFailure":
        return cls(
            f"Failed to {operation}: transaction {tx_hash} reverted",
            ErrorCode.TX_REVERTED,
            tx_hash=tx_hash,
        )


class TransactionPending(KoalaSwapError):
    """Receipt wait ran out before the transaction was mined"""

    def __init__(self, tx_hash: str, timeout: float):
        super().__init__(
            f"Transaction {tx_hash} not mined after {timeout}s",
            ErrorCode.TX_CONFIRMATION_PENDING,
            recoverable=True,
            details={"tx_hash": tx_hash, "timeout": timeout},
        )
        self.tx_hash = tx_hash


class ConfigurationError(KoalaSwapError):
    """
    Configuration-related errors

    Raised when:
    - Required configuration is missing
    - Configuration values are invalid
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        super().__init__(message, code, recoverable=False)

    @classmethod
    def missing(cls, param: str) -> "ConfigurationError":
        return cls(f"Missing required configuration: {param}", ErrorCode.CONFIG_MISSING)

    @classmethod
    def invalid(cls, param: str, reason: str) -> "ConfigurationError":
        return cls(f"Invalid configuration '{param}': {reason}", ErrorCode.CONFIG_INVALID)


class UnsupportedNetwork(ConfigurationError):
    """Requested network has no KoalaSwap contract addresses"""

    def __init__(self, network: str, supported=None):
        supported_str = ", ".join(supported) if supported else "none"
        super().__init__(
            f"Network not supported by KoalaSwap: {network}. Supported: {supported_str}",
            ErrorCode.NETWORK_UNSUPPORTED,
        )
        self.network = network
        self.details = {"network": network}
