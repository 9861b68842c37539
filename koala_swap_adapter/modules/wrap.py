"""
Native-Currency Wrap Adapter

Wraps ETH into WUNIT0 via WUNIT0.deposit() before a dependent liquidity or
swap transaction. The wrap is mined before returning; there is no unwrap
on later failure.
"""

import logging
from typing import Optional, TYPE_CHECKING

from ..types import NATIVE_DECIMALS, to_raw_amount, to_decimal
from ..errors import ChainSubmissionFailure, InvalidAmount
from ..infra.tracing import classify_submission_error
from ..protocols.koala_swap import WRAPPED_NATIVE_ABI

if TYPE_CHECKING:
    from ..config import EVMConfig
    from ..infra import ChainGateway, EVMSigner
    from .registry import PoolTokenRegistry

logger = logging.getLogger(__name__)


class WrapAdapter:
    """
    Submits and awaits WUNIT0 deposits

    Usage:
        wrapper = WrapAdapter(gateway, registry, config.evm)
        tx_hash = wrapper.wrap("koala", wallet, Decimal("1.5"))
    """

    def __init__(self, gateway: "ChainGateway", registry: "PoolTokenRegistry", evm_config: "EVMConfig"):
        self._gateway = gateway
        self._registry = registry
        self._evm_config = evm_config

    def wrap(
        self,
        network: str,
        wallet: "EVMSigner",
        amount,
        gas_price_gwei: Optional[float] = None,
    ) -> str:
        """
        Wrap a human amount of ETH into WUNIT0 and wait for it to be mined

        Args:
            network: Network name
            wallet: Signer paying for the wrap
            amount: Human ETH amount
            gas_price_gwei: Optional legacy gas price

        Returns:
            Wrap transaction hash

        Raises:
            InvalidAmount: amount <= 0
            InsufficientNativeBalance: wallet cannot cover value + gas
            ChainSubmissionFailure: submission failed or the wrap reverted
        """
        value = to_decimal(amount)
        raw_amount = to_raw_amount(value, NATIVE_DECIMALS)
        if raw_amount <= 0:
            raise InvalidAmount.not_positive("amount", amount)

        wrapped = self._registry.wrapped_native(network)
        logger.info(f"Wrapping {value} ETH to {wrapped.symbol} for {wallet.address}")

        contract = self._gateway.get_contract(wrapped.address, WRAPPED_NATIVE_ABI)
        gas_options = self._gateway.prepare_gas_options(
            gas_price_gwei,
            self._evm_config.wrap_gas_limit,
            value=raw_amount,
        )

        try:
            tx_hash = self._gateway.submit(contract.functions.deposit(), wallet, gas_options)
            receipt = self._gateway.wait_for_receipt(tx_hash)
        except Exception as e:
            raise classify_submission_error(e, "wrap ETH") from e

        if not receipt.succeeded:
            logger.error(f"Wrap transaction {receipt.transaction_hash} reverted")
            raise ChainSubmissionFailure.reverted("wrap ETH", receipt.transaction_hash)

        logger.info(f"Successfully wrapped {value} ETH to {wrapped.symbol}, transaction hash: {receipt.transaction_hash}")
        return receipt.transaction_hash

