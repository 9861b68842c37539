"""
Result type definitions for transactions
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional, Tuple

from .token import NATIVE_DECIMALS, format_token_amount


class TxStatus(IntEnum):
    """Transaction status codes as returned to callers"""
    CONFIRMED = 1   # receipt obtained, transaction succeeded
    PENDING = 0     # submitted, receipt not yet obtained
    FAILED = -1     # mined but reverted


@dataclass
class GasOptions:
    """
    Gas parameters for a single transaction (never reused)

    Either gas_price (legacy) or the EIP-1559 pair is set.
    """
    gas_limit: int
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    value: int = 0

    @property
    def is_eip1559(self) -> bool:
        return self.max_fee_per_gas is not None

    def to_tx_params(self) -> Dict[str, int]:
        """Render as web3 transaction fields"""
        params = {"gas": self.gas_limit, "value": self.value}
        if self.gas_price is not None:
            params["gasPrice"] = self.gas_price
        else:
            if self.max_fee_per_gas is not None:
                params["maxFeePerGas"] = self.max_fee_per_gas
            if self.max_priority_fee_per_gas is not None:
                params["maxPriorityFeePerGas"] = self.max_priority_fee_per_gas
        return params


@dataclass(frozen=True)
class Receipt:
    """Mined transaction receipt (subset used by the orchestrator)"""
    transaction_hash: str
    gas_used: int
    effective_gas_price: int
    status: int
    block_number: Optional[int] = None
    logs: Tuple[Any, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @property
    def fee_wei(self) -> int:
        return self.gas_used * self.effective_gas_price

    @property
    def fee(self) -> str:
        """Gas fee in native currency as a decimal string"""
        return format_token_amount(self.fee_wei, NATIVE_DECIMALS)


@dataclass
class TransactionResult:
    """
    Operation result

    Terminal once a receipt is obtained; a resubmission is a new result with
    a new hash.

    Attributes:
        signature: Transaction hash
        status: CONFIRMED (1), PENDING (0) or FAILED (-1)
        fee: Gas fee in native currency (decimal string), None while pending
        data: Operation specific amounts and wrap transaction hashes
    """
    signature: str
    status: TxStatus
    fee: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_confirmed(self) -> bool:
        return self.status == TxStatus.CONFIRMED

    @property
    def is_pending(self) -> bool:
        return self.status == TxStatus.PENDING

    @property
    def is_failed(self) -> bool:
        return self.status == TxStatus.FAILED

    @classmethod
    def from_receipt(cls, receipt: Receipt, **data) -> "TransactionResult":
        status = TxStatus.CONFIRMED if receipt.succeeded else TxStatus.FAILED
        return cls(signature=receipt.transaction_hash, status=status, fee=receipt.fee, data=data)

    @classmethod
    def pending(cls, tx_hash: str, **data) -> "TransactionResult":
        return cls(signature=tx_hash, status=TxStatus.PENDING, data=data)

    def to_dict(self) -> Dict[str, Any]:
        """Response shape: {signature, status, data: {fee, ...}}"""
        return {
            "signature": self.signature,
            "status": int(self.status),
            "data": {"fee": self.fee, **self.data},
        }

    def __str__(self) -> str:
        sig_display = f"{self.signature[:16]}..." if self.signature else "no signature"
        return f"TransactionResult({self.status.name}, {sig_display}, fee={self.fee})"
