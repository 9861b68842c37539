"""
Request Tracing Helper Module

Correlation IDs for following one request through its log lines, and
classification of submission errors into the adapter's error kinds.
No retry happens here: a failed submission is reported, never resent.
"""

import logging
import uuid
import contextvars
from typing import Optional

from ..errors import (
    KoalaSwapError,
    InsufficientNativeBalance,
    ChainSubmissionFailure,
)

logger = logging.getLogger(__name__)

# Context variable for correlation ID (thread-safe)
_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id', default=None
)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracing."""
    return uuid.uuid4().hex[:12]


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: Optional[str]) -> contextvars.Token:
    """Set the correlation ID in context. Returns token for reset."""
    return _correlation_id.set(correlation_id)


class CorrelationContext:
    """
    Context manager for correlation ID scoping.

    Usage:
        with CorrelationContext("amm_add_liquidity") as cid:
            logger.info(f"[{cid}] Starting operation")
    """

    def __init__(self, prefix: Optional[str] = None):
        """
        Args:
            prefix: Optional prefix for the correlation ID (e.g., "amm_swap")
        """
        self.correlation_id = generate_correlation_id()
        if prefix:
            self.correlation_id = f"{prefix}_{self.correlation_id}"
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = set_correlation_id(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            _correlation_id.reset(self._token)


def log_with_correlation(
    level: int,
    message: str,
    operation_name: str,
    stage: Optional[str] = None,
    log: Optional[logging.Logger] = None,
    **extra
):
    """
    Log message with correlation ID and structured context.

    Args:
        level: Logging level (logging.INFO, logging.WARNING, etc.)
        message: Log message
        operation_name: Name of the operation being executed
        stage: Pipeline stage name, if any
        log: Logger to write to (defaults to this module's logger)
        **extra: Additional context fields
    """
    cid = get_correlation_id()

    parts = []
    if cid:
        parts.append(f"[{cid}]")
    parts.append(f"[{operation_name}]")
    if stage:
        parts.append(f"[{stage}]")
    parts.append(message)

    log_message = " ".join(parts)

    # Extra context for structured logging systems
    extra_context = {
        "correlation_id": cid,
        "operation": operation_name,
        "stage": stage,
        **extra
    }

    (log or logger).log(level, log_message, extra=extra_context)


# Node error fragments meaning the wallet cannot cover value + gas
INSUFFICIENT_FUNDS_KEYWORDS = [
    "insufficient funds",
    "insufficient_funds",
    "insufficient balance for transfer",
]


def is_insufficient_funds(error: Exception) -> bool:
    """Check an exception (and the error code web3 may attach) for an insufficient-funds signal"""
    error_str = str(error).lower()
    if any(keyword in error_str for keyword in INSUFFICIENT_FUNDS_KEYWORDS):
        return True
    code = getattr(error, "code", None)
    return isinstance(code, str) and code.upper() == "INSUFFICIENT_FUNDS"


def classify_submission_error(error: Exception, operation_name: str) -> KoalaSwapError:
    """
    Map an exception raised while submitting or confirming to an adapter error.

    Adapter errors pass through unchanged. The original exception is logged
    and kept on the returned error; it never becomes part of the message.

    Args:
        error: The exception to classify
        operation_name: Human operation name used in the message (e.g., "add liquidity")

    Returns:
        InsufficientNativeBalance or ChainSubmissionFailure
    """
    if isinstance(error, KoalaSwapError):
        return error

    log_with_correlation(
        logging.ERROR,
        f"Submission failed: {type(error).__name__}: {error}",
        operation_name,
        error=str(error),
    )

    if is_insufficient_funds(error):
        return InsufficientNativeBalance(original_error=error)

    return ChainSubmissionFailure.send_failed(operation_name, error)
