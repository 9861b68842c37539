"""
Transaction Orchestrator

Shared request pipeline for the AMM and CLMM modules:

    RESOLVING -> WRAPPING -> QUOTING -> ALLOWANCE_CHECKING
              -> SUBMITTING -> CONFIRMING -> FORMATTING -> SUCCEEDED

Any error moves the pipeline to FAILED with the stage it was raised in
recorded on the error. Stages may be skipped but never revisited.
"""

import logging
import time
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple, TYPE_CHECKING

from web3 import Web3

from ..types import (
    GasOptions,
    Leg,
    PipelineStage,
    Receipt,
    Side,
    SwapQuote,
    TransactionResult,
    to_decimal,
)
from ..errors import (
    KoalaSwapError,
    InvalidAmount,
    MissingParameter,
    TransactionPending,
    WalletNotFound,
)
from ..infra.tracing import CorrelationContext, classify_submission_error, log_with_correlation

if TYPE_CHECKING:
    from ..config import Config
    from ..infra import ChainGateway, EVMSigner
    from ..protocols.koala_swap import ContractRegistry
    from .allowance import AllowanceGuard
    from .pricing import QuoteResolver
    from .registry import PoolTokenRegistry
    from .wrap import WrapAdapter

logger = logging.getLogger(__name__)

WRAP_HASH_KEYS = {
    Leg.BASE: "baseWrapTxHash",
    Leg.QUOTE: "quoteWrapTxHash",
}


class OperationPipeline:
    """
    Per-request stage tracker

    Usage:
        pipeline = OperationPipeline("amm_add_liquidity")
        pipeline.advance(PipelineStage.QUOTING)
        pipeline.record_wrap("baseWrapTxHash", tx_hash)
    """

    def __init__(self, operation: str):
        self.operation = operation
        self.stage = PipelineStage.RESOLVING
        self.history: List[PipelineStage] = [PipelineStage.RESOLVING]
        self.wrap_tx_hashes: Dict[str, str] = {}
        self._log(f"Entered {self.stage.name}")

    def _log(self, message: str, level: int = logging.INFO):
        log_with_correlation(level, message, self.operation, stage=self.stage.name, log=logger)

    def advance(self, stage: PipelineStage) -> None:
        """
        Move forward to stage

        Raises:
            RuntimeError: stage is not after the current one, or the pipeline is terminal
        """
        if self.stage.is_terminal or stage.value <= self.stage.value:
            raise RuntimeError(f"{self.operation}: cannot move from {self.stage.name} to {stage.name}")
        self.stage = stage
        self.history.append(stage)
        self._log(f"Entered {stage.name}")

    def record_wrap(self, key: str, tx_hash: str) -> None:
        """Remember a mined wrap under its response field name"""
        self.wrap_tx_hashes[key] = tx_hash

    def wrap_data(self) -> Dict[str, str]:
        """Response fields for recorded wrap transactions"""
        return dict(self.wrap_tx_hashes)

    def succeed(self) -> None:
        self.advance(PipelineStage.SUCCEEDED)

    def fail(self, error: KoalaSwapError) -> KoalaSwapError:
        """Mark FAILED, tagging error with the stage and any mined wrap hashes"""
        if not self.stage.is_terminal:
            error.details.setdefault("stage", self.stage.name)
            if self.wrap_tx_hashes:
                error.details["wrap_tx_hashes"] = self.wrap_data()
            self._log(f"Failed: {error}", logging.ERROR)
            self.stage = PipelineStage.FAILED
            self.history.append(PipelineStage.FAILED)
        return error


class TransactionOrchestrator:
    """
    Base class for modules that turn requests into KoalaSwap transactions

    Subclasses run each operation inside `self._pipeline(...)` and use the
    helpers below for wallets, gas, deadlines, wrapping and submission.
    """

    def __init__(
        self,
        config: "Config",
        gateway: "ChainGateway",
        registry: "PoolTokenRegistry",
        resolver: "QuoteResolver",
        contracts: "ContractRegistry",
        wrapper: "WrapAdapter",
        guard: "AllowanceGuard",
    ):
        self._config = config
        self._gateway = gateway
        self._registry = registry
        self._resolver = resolver
        self._contracts = contracts
        self._wrapper = wrapper
        self._guard = guard

    # =========================================================================
    # Pipeline
    # =========================================================================

    @contextmanager
    def _pipeline(self, operation: str, description: str) -> Iterator[OperationPipeline]:
        """
        Run one request under a correlation id

        Adapter errors propagate with their stage recorded; anything else is
        logged and remapped by classify_submission_error.
        """
        with CorrelationContext(operation):
            pipeline = OperationPipeline(operation)
            try:
                yield pipeline
            except KoalaSwapError as e:
                raise pipeline.fail(e)
            except Exception as e:
                raise pipeline.fail(classify_submission_error(e, description)) from e
            if not pipeline.stage.is_terminal:
                pipeline.succeed()

    # =========================================================================
    # Resolving helpers
    # =========================================================================

    def _resolve_network(self, network: Optional[str]) -> str:
        network = network or self._config.koala_swap.default_network
        self._contracts.for_network(network)
        return network

    def _resolve_wallet(self, wallet_address: Optional[str]) -> "EVMSigner":
        wallet = self._gateway.get_wallet(wallet_address)
        if wallet is None:
            raise WalletNotFound(wallet_address)
        if not wallet_address:
            logger.info(f"Using first available wallet address: {wallet.address}")
        return wallet

    @staticmethod
    def _require(value, field_name: str):
        if value is None or value == "":
            raise MissingParameter(field_name)
        return value

    @staticmethod
    def _positive_amount(value, field_name: str) -> Decimal:
        if value is None:
            raise MissingParameter(field_name)
        amount = to_decimal(value)
        if amount <= 0:
            raise InvalidAmount.not_positive(field_name, value)
        return amount

    @staticmethod
    def _resolve_side(value) -> Side:
        if value is None or value == "":
            raise MissingParameter("side")
        return value if isinstance(value, Side) else Side.from_string(value)

    @staticmethod
    def _percentage(value, field_name: str) -> Decimal:
        """Percentage in (0, 100]"""
        if value is None:
            raise MissingParameter(field_name)
        pct = to_decimal(value)
        if pct <= 0 or pct > 100:
            raise InvalidAmount.out_of_range(field_name, value, 0, 100)
        return pct

    # =========================================================================
    # Transaction helpers
    # =========================================================================

    def _deadline(self) -> int:
        """Unix deadline for router and position manager calls"""
        return int(time.time()) + self._config.evm.tx_deadline_seconds

    @staticmethod
    def _gas_price_gwei(gas_price: Optional[str]) -> Optional[float]:
        """Convert a wei gas price string to gwei"""
        if gas_price is None or gas_price == "":
            return None
        return float(Web3.from_wei(int(gas_price), "gwei"))

    def _gas_options(
        self,
        gas_price: Optional[str],
        max_gas: Optional[int],
        default_gas_limit: int,
        value: int = 0,
    ) -> GasOptions:
        return self._gateway.prepare_gas_options(
            self._gas_price_gwei(gas_price),
            int(max_gas) if max_gas else default_gas_limit,
            value=value,
        )

    def _wrap_native_legs(
        self,
        pipeline: OperationPipeline,
        network: str,
        wallet: "EVMSigner",
        legs: Dict[Leg, Decimal],
        gas_price: Optional[str] = None,
        hash_key: Optional[str] = None,
    ) -> None:
        """
        Wrap ETH for each native leg, each mined before the next step

        Hashes are recorded as baseWrapTxHash / quoteWrapTxHash unless
        hash_key names a single response field (swaps use wrapTxHash).
        """
        if not legs:
            return
        pipeline.advance(PipelineStage.WRAPPING)
        for leg, amount in legs.items():
            logger.info(f"ETH detected as {leg.value} token, wrapping {amount} ETH first")
            tx_hash = self._wrapper.wrap(network, wallet, amount, self._gas_price_gwei(gas_price))
            pipeline.record_wrap(hash_key or WRAP_HASH_KEYS[leg], tx_hash)

    def _submit_and_confirm(
        self,
        pipeline: OperationPipeline,
        description: str,
        contract_call,
        wallet: "EVMSigner",
        gas_options: GasOptions,
    ) -> Tuple[str, Optional[Receipt]]:
        """
        Submit one contract call and wait for it

        Returns:
            (tx_hash, receipt); receipt is None when the wait timed out
        """
        pipeline.advance(PipelineStage.SUBMITTING)
        try:
            tx_hash = self._gateway.submit(contract_call, wallet, gas_options)
        except Exception as e:
            raise classify_submission_error(e, description) from e

        pipeline.advance(PipelineStage.CONFIRMING)
        try:
            receipt = self._gateway.wait_for_receipt(tx_hash)
        except TransactionPending:
            logger.warning(f"Transaction {tx_hash} still pending, returning status 0")
            return tx_hash, None
        except Exception as e:
            raise classify_submission_error(e, description) from e

        if not receipt.succeeded:
            logger.error(f"Transaction {receipt.transaction_hash} reverted (gas used {receipt.gas_used})")
        return tx_hash, receipt

    @staticmethod
    def _swap_data(quote: SwapQuote) -> Dict[str, Any]:
        """Swap response fields; balance changes are from the wallet's point of view"""
        if quote.side == Side.SELL:
            base_change, quote_change = -quote.amount_in, quote.amount_out
        else:
            base_change, quote_change = quote.amount_out, -quote.amount_in
        return {
            "tokenIn": quote.token_in.address,
            "tokenOut": quote.token_out.address,
            "amountIn": quote.amount_in,
            "amountOut": quote.amount_out,
            "baseTokenBalanceChange": base_change,
            "quoteTokenBalanceChange": quote_change,
        }

    def _format_result(
        self,
        pipeline: OperationPipeline,
        tx_hash: str,
        receipt: Optional[Receipt],
        data: Dict[str, Any],
    ) -> TransactionResult:
        """Assemble the response, including recorded wrap hashes"""
        pipeline.advance(PipelineStage.FORMATTING)
        data = {**data, **pipeline.wrap_data()}
        if receipt is None:
            result = TransactionResult.pending(tx_hash, **data)
        else:
            result = TransactionResult.from_receipt(receipt, **data)
        logger.info(f"{pipeline.operation}: {result}")
        return result
