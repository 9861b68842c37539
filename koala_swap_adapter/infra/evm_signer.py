"""
EVM Transaction Signer using web3.py

Provides local private key signing for Unit Zero transactions.
Includes thread-safe nonce management for parallel transactions.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Optional, Dict, Any, Tuple

from web3 import Web3, HTTPProvider
from web3.middleware import ExtraDataToPOAMiddleware
from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

# Errors raised before the transaction reached the mempool; the nonce is reusable
PRE_SEND_ERROR_KEYWORDS = [
    "nonce too low",
    "replacement transaction",
    "insufficient funds",
    "gas too low",
    "invalid sender",
    "intrinsic gas",
]


class NonceManager:
    """
    Thread-safe nonce manager for EVM transactions.

    Prevents nonce collisions when requests for the same wallet run on
    parallel threads by:
    1. Keeping track of pending nonces locally
    2. Using a lock to prevent race conditions
    3. Syncing with the chain when needed

    Usage:
        nonce_mgr = NonceManager()
        nonce = nonce_mgr.get_nonce(web3, address)  # Thread-safe
        # ... send transaction ...
        nonce_mgr.confirm_nonce(address, nonce)  # On success
        # or
        nonce_mgr.release_nonce(address, nonce)  # On failure
    """

    def __init__(self):
        self._lock = threading.Lock()
        # {address: next_nonce}
        self._pending_nonces: Dict[str, int] = {}
        # {address: set of nonces handed out but not yet broadcast}
        self._in_flight: Dict[str, set] = {}

    def get_nonce(self, web3: "Web3", address: str) -> int:
        """
        Get the next available nonce for an address (thread-safe).

        Args:
            web3: Web3 instance
            address: Wallet address

        Returns:
            Next nonce to use
        """
        address = address.lower()

        with self._lock:
            # On-chain nonce includes transactions pending in the mempool
            chain_nonce = web3.eth.get_transaction_count(Web3.to_checksum_address(address), "pending")
            tracked_nonce = self._pending_nonces.get(address, chain_nonce)

            # Transactions may have been sent outside this manager
            next_nonce = max(chain_nonce, tracked_nonce)

            self._pending_nonces[address] = next_nonce + 1
            self._in_flight.setdefault(address, set()).add(next_nonce)

            logger.debug(
                f"NonceManager: address={address[:10]}... "
                f"chain={chain_nonce} tracked={tracked_nonce} assigned={next_nonce}"
            )

            return next_nonce

    def confirm_nonce(self, address: str, nonce: int) -> None:
        """Mark a nonce as broadcast"""
        address = address.lower()

        with self._lock:
            if address in self._in_flight:
                self._in_flight[address].discard(nonce)

    def release_nonce(self, address: str, nonce: int) -> None:
        """
        Release a nonce that was never broadcast so it can be reused.

        Args:
            address: Wallet address
            nonce: Nonce to release
        """
        address = address.lower()

        with self._lock:
            if address in self._in_flight:
                self._in_flight[address].discard(nonce)

            # Only the highest handed-out nonce can be rewound
            current_pending = self._pending_nonces.get(address, 0)
            if nonce == current_pending - 1:
                self._pending_nonces[address] = nonce
                logger.debug(f"NonceManager: released nonce {nonce} for {address[:10]}...")

    def reset(self, address: Optional[str] = None) -> None:
        """
        Reset nonce tracking, forcing re-sync with chain.

        Args:
            address: Address to reset. If None, resets all addresses.
        """
        with self._lock:
            if address:
                address = address.lower()
                self._pending_nonces.pop(address, None)
                self._in_flight.pop(address, None)
            else:
                self._pending_nonces.clear()
                self._in_flight.clear()


class EVMSigner:
    """
    Local EVM signer using web3.py

    Usage:
        # From private key
        signer = EVMSigner.from_private_key("0x...")

        # From environment variable
        signer = EVMSigner.from_env()

        # Sign and broadcast (returns tx hash, does not wait)
        tx_hash = signer.send_transaction(web3, tx_dict)
    """

    def __init__(self, account: "LocalAccount", nonce_manager: Optional[NonceManager] = None):
        """
        Initialize with eth_account LocalAccount

        Args:
            account: LocalAccount from eth_account
            nonce_manager: Nonce manager shared by signers of one gateway
        """
        self._account = account
        self._nonce_manager = nonce_manager or NonceManager()

    @property
    def address(self) -> str:
        """Get wallet address (checksummed)"""
        return self._account.address

    @property
    def nonce_manager(self) -> NonceManager:
        return self._nonce_manager

    def use_nonce_manager(self, nonce_manager: NonceManager) -> None:
        self._nonce_manager = nonce_manager

    def sign_transaction(self, tx_dict: Dict[str, Any]) -> Tuple[bytes, str]:
        """
        Sign a transaction

        Args:
            tx_dict: Transaction dictionary with to, data, value, gas, nonce, chainId

        Returns:
            (raw_tx_bytes, tx_hash_hex)
        """
        signed = self._account.sign_transaction(tx_dict)
        return signed.raw_transaction, Web3.to_hex(signed.hash)

    def send_transaction(self, web3: "Web3", tx_dict: Dict[str, Any]) -> str:
        """
        Sign and broadcast a transaction with thread-safe nonce management.

        Errors propagate to the caller. A nonce taken from the manager is
        released when the error happened before broadcast.

        Args:
            web3: Web3 instance connected to RPC
            tx_dict: Transaction dictionary (nonce and chainId filled if absent)

        Returns:
            Transaction hash (0x-prefixed hex)
        """
        nonce = None
        nonce_from_manager = False

        try:
            if "nonce" not in tx_dict:
                nonce = self._nonce_manager.get_nonce(web3, self.address)
                tx_dict["nonce"] = nonce
                nonce_from_manager = True

            if "chainId" not in tx_dict:
                tx_dict["chainId"] = web3.eth.chain_id

            signed = self._account.sign_transaction(tx_dict)
            tx_hash = web3.eth.send_raw_transaction(signed.raw_transaction)

        except Exception as e:
            error_str = str(e).lower()
            is_pre_send_error = any(keyword in error_str for keyword in PRE_SEND_ERROR_KEYWORDS)
            if nonce_from_manager and is_pre_send_error:
                self._nonce_manager.release_nonce(self.address, nonce)
            raise

        if nonce_from_manager:
            self._nonce_manager.confirm_nonce(self.address, nonce)

        return Web3.to_hex(tx_hash)

    @classmethod
    def from_private_key(cls, private_key: str, nonce_manager: Optional[NonceManager] = None) -> "EVMSigner":
        """
        Create signer from private key

        Args:
            private_key: Hex-encoded private key (with or without 0x prefix)

        Returns:
            EVMSigner instance
        """
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key

        account = Account.from_key(private_key)
        return cls(account, nonce_manager)

    @classmethod
    def from_env(cls, env_var: str = "EVM_PRIVATE_KEY") -> "EVMSigner":
        """
        Create signer from environment variable

        Raises:
            ConfigurationError: If environment variable is not set
        """
        private_key = os.getenv(env_var, "")
        if not private_key:
            raise ConfigurationError.missing(env_var)

        return cls.from_private_key(private_key)

    @classmethod
    def from_keystore(cls, keystore_path: str, password: str) -> "EVMSigner":
        """
        Create signer from encrypted keystore file

        Args:
            keystore_path: Path to keystore JSON file
            password: Password to decrypt keystore
        """
        with open(keystore_path, "r") as f:
            keystore = f.read()

        private_key = Account.decrypt(keystore, password)
        account = Account.from_key(private_key)
        return cls(account)

    def __repr__(self) -> str:
        return f"EVMSigner(address={self.address})"


def create_web3(
    rpc_url: str,
    chain_id: Optional[int] = None,
    timeout: float = 30,
    poa: bool = False,
) -> "Web3":
    """
    Create Web3 instance for a chain

    Args:
        rpc_url: RPC endpoint URL
        chain_id: Expected chain ID (informational)
        timeout: Request timeout in seconds
        poa: Inject the extraData PoA middleware

    Returns:
        Configured Web3 instance
    """
    if not rpc_url:
        raise ConfigurationError.missing("KOALA_RPC_URL")

    provider = HTTPProvider(
        rpc_url,
        request_kwargs={"timeout": timeout},
    )

    web3 = Web3(provider)

    if poa:
        web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    logger.debug(f"Created Web3 provider for {rpc_url} (chain_id={chain_id}, poa={poa})")
    return web3


def create_evm_signers(
    private_keys: Optional[list] = None,
    keystore_path: Optional[str] = None,
    keystore_password: Optional[str] = None,
    nonce_manager: Optional[NonceManager] = None,
) -> list:
    """
    Create EVM signers based on configuration

    Priority:
    1. private_keys: Use provided private keys
    2. keystore_path + keystore_password: Load from keystore file
    3. EVM_PRIVATE_KEY environment variable (comma separated for several wallets)

    Returns:
        List of EVMSigner (empty when nothing is configured)
    """
    nonce_manager = nonce_manager or NonceManager()

    if private_keys:
        return [EVMSigner.from_private_key(key, nonce_manager) for key in private_keys]

    if keystore_path is not None and keystore_password is not None:
        signer = EVMSigner.from_keystore(keystore_path, keystore_password)
        signer.use_nonce_manager(nonce_manager)
        return [signer]

    env_keys = os.getenv("EVM_PRIVATE_KEY", "")
    keys = [key.strip() for key in env_keys.split(",") if key.strip()]
    return [EVMSigner.from_private_key(key, nonce_manager) for key in keys]
