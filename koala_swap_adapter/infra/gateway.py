"""
Chain Gateway

Wallet lookup, contract binding, allowance reads, gas option preparation,
transaction submission and receipt waiting for one EVM chain.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from web3 import Web3
from web3.exceptions import TimeExhausted

from ..errors import TransactionPending
from ..types import GasOptions, Receipt, format_token_amount
from .evm_signer import EVMSigner, NonceManager, create_web3, create_evm_signers

if TYPE_CHECKING:
    from ..config import Config, ChainConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenAllowance:
    """ERC-20 allowance as read from chain"""
    value: int
    formatted: str


class ChainGateway:
    """
    Unit Zero access used by the KoalaSwap modules

    Usage:
        gateway = ChainGateway.from_config(config)
        wallet = gateway.get_wallet()
        router = gateway.get_contract(router_address, V2_ROUTER_ABI)
        gas = gateway.prepare_gas_options(gas_limit=300_000)
        tx_hash = gateway.submit(router.functions.swapExactTokensForTokens(...), wallet, gas)
        receipt = gateway.wait_for_receipt(tx_hash)
    """

    def __init__(
        self,
        web3: "Web3",
        chain_config: "ChainConfig",
        signers: Optional[List[EVMSigner]] = None,
    ):
        """
        Args:
            web3: Connected Web3 instance
            chain_config: Chain settings (chain id, timeouts, fee policy)
            signers: Wallets available to this gateway
        """
        self._web3 = web3
        self._chain_config = chain_config
        self._wallets: Dict[str, EVMSigner] = {}
        for signer in signers or []:
            self.add_wallet(signer)

    @classmethod
    def from_config(
        cls,
        config: "Config",
        private_keys: Optional[List[str]] = None,
        nonce_manager: Optional[NonceManager] = None,
    ) -> "ChainGateway":
        """Build a gateway with its own Web3 provider and signers"""
        chain = config.chain
        web3 = create_web3(chain.rpc_url, chain.chain_id, chain.timeout, chain.poa)
        signers = create_evm_signers(private_keys=private_keys, nonce_manager=nonce_manager)
        return cls(web3, chain, signers)

    @property
    def web3(self) -> "Web3":
        return self._web3

    @property
    def chain_id(self) -> int:
        return self._chain_config.chain_id

    @property
    def wallet_addresses(self) -> List[str]:
        return [signer.address for signer in self._wallets.values()]

    def add_wallet(self, signer: EVMSigner) -> None:
        self._wallets[signer.address.lower()] = signer

    # =========================================================================
    # Wallets and contracts
    # =========================================================================

    def get_wallet(self, address: Optional[str] = None) -> Optional[EVMSigner]:
        """
        Get signer for an address

        Args:
            address: Wallet address; None selects the first configured wallet

        Returns:
            EVMSigner or None if the gateway holds no such wallet
        """
        if not address:
            return next(iter(self._wallets.values()), None)
        return self._wallets.get(address.lower())

    def get_contract(self, address: str, abi: List[Dict[str, Any]]):
        """Bind a contract at address with the given ABI"""
        return self._web3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=abi,
        )

    def get_erc20_allowance(
        self,
        contract,
        wallet_address: str,
        spender: str,
        decimals: int,
    ) -> TokenAllowance:
        """Read how much spender may pull from wallet_address"""
        value = contract.functions.allowance(
            Web3.to_checksum_address(wallet_address),
            Web3.to_checksum_address(spender),
        ).call()
        return TokenAllowance(value=int(value), formatted=format_token_amount(value, decimals))

    # =========================================================================
    # Gas
    # =========================================================================

    def prepare_gas_options(
        self,
        gas_price_gwei: Optional[float] = None,
        gas_limit: int = 300_000,
        value: int = 0,
    ) -> GasOptions:
        """
        Build gas parameters for one transaction

        A caller supplied gas price is used as a legacy gasPrice. Otherwise
        EIP-1559 fields are derived from the latest base fee
        (maxFee = baseFee * multiplier + priority fee), falling back to the
        node's gas price when the chain reports no base fee.
        """
        if gas_price_gwei is not None:
            gas_price = self._web3.to_wei(gas_price_gwei, "gwei")
            logger.debug(f"Using caller gas price: {gas_price_gwei} gwei")
            return GasOptions(gas_limit=gas_limit, gas_price=int(gas_price), value=value)

        latest_block = self._web3.eth.get_block("latest")
        base_fee = latest_block.get("baseFeePerGas")
        if base_fee is None:
            return GasOptions(gas_limit=gas_limit, gas_price=int(self._web3.eth.gas_price), value=value)

        max_priority_fee = int(self._web3.to_wei(self._chain_config.priority_fee_gwei, "gwei"))
        max_fee = int(base_fee * self._chain_config.base_fee_multiplier) + max_priority_fee
        return GasOptions(
            gas_limit=gas_limit,
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=max_priority_fee,
            value=value,
        )

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(self, contract_call, wallet: EVMSigner, gas_options: GasOptions) -> str:
        """
        Build, sign and broadcast a contract call

        Errors from the node propagate unchanged; classification happens in
        the caller.

        Returns:
            Transaction hash (0x-prefixed hex)
        """
        tx = contract_call.build_transaction({
            "from": wallet.address,
            "chainId": self.chain_id,
            **gas_options.to_tx_params(),
        })
        tx_hash = wallet.send_transaction(self._web3, tx)
        logger.info(f"Submitted transaction {tx_hash} from {wallet.address}")
        return tx_hash

    def wait_for_receipt(self, tx_hash: str, timeout: Optional[float] = None) -> Receipt:
        """
        Block until the transaction is mined

        Raises:
            TransactionPending: Receipt not available within the timeout
        """
        timeout = timeout if timeout is not None else self._chain_config.receipt_timeout
        try:
            raw = self._web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted:
            logger.warning(f"Transaction {tx_hash} not mined after {timeout}s")
            raise TransactionPending(tx_hash, timeout)

        return Receipt(
            transaction_hash=Web3.to_hex(raw["transactionHash"]),
            gas_used=int(raw["gasUsed"]),
            effective_gas_price=int(raw.get("effectiveGasPrice", 0)),
            status=int(raw["status"]),
            block_number=raw.get("blockNumber"),
            logs=tuple(raw.get("logs", [])),
        )

    def close(self):
        """Forget wallets; the HTTP provider holds no session to release"""
        self._wallets.clear()

    def __enter__(self) -> "ChainGateway":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"ChainGateway(chain_id={self.chain_id}, wallets={len(self._wallets)})"
