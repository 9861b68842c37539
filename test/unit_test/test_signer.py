"""
Test Signer Module

Tests for EVMSigner, NonceManager and Web3/signer factories.
"""

import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from web3 import Web3

from koala_swap_adapter.errors import ConfigurationError
from koala_swap_adapter.infra.evm_signer import (
    EVMSigner,
    NonceManager,
    create_evm_signers,
    create_web3,
)

# Test keys - DO NOT use in production
TEST_KEY = "0x" + "11" * 32
OTHER_KEY = "0x" + "22" * 32
NONCE_ADDRESS = "0x" + "ab" * 20


def mock_web3(chain_nonce: int = 5):
    web3 = Mock()
    web3.eth.get_transaction_count.return_value = chain_nonce
    web3.eth.chain_id = 88811
    web3.eth.send_raw_transaction.return_value = bytes.fromhex("12" * 32)
    return web3


def transfer_tx():
    return {
        "to": Web3.to_checksum_address("0x" + "f6" * 20),
        "value": 0,
        "gas": 21_000,
        "gasPrice": 10**9,
        "data": "0x",
    }


def test_signer_from_private_key():
    """Test EVMSigner creation with and without 0x prefix"""
    print("Testing EVMSigner.from_private_key...")

    signer = EVMSigner.from_private_key(TEST_KEY)
    assert Web3.is_checksum_address(signer.address)
    assert EVMSigner.from_private_key(TEST_KEY[2:]).address == signer.address
    assert signer.address in repr(signer)

    print(f"  Address: {signer.address}")
    print("  EVMSigner.from_private_key: PASSED")


def test_signer_from_env(monkeypatch):
    """Test EVMSigner.from_env requires the variable"""
    print("Testing EVMSigner.from_env...")

    monkeypatch.delenv("EVM_PRIVATE_KEY", raising=False)
    with pytest.raises(ConfigurationError):
        EVMSigner.from_env()

    monkeypatch.setenv("EVM_PRIVATE_KEY", TEST_KEY)
    assert EVMSigner.from_env().address == EVMSigner.from_private_key(TEST_KEY).address

    print("  EVMSigner.from_env: PASSED")


def test_sign_transaction():
    """Test offline signing returns raw bytes and hash"""
    print("Testing EVMSigner.sign_transaction...")

    signer = EVMSigner.from_private_key(TEST_KEY)
    tx = {**transfer_tx(), "nonce": 0, "chainId": 88811}
    raw, tx_hash = signer.sign_transaction(tx)

    assert isinstance(raw, (bytes, bytearray))
    assert tx_hash.startswith("0x")
    assert len(tx_hash) == 66

    print("  EVMSigner.sign_transaction: PASSED")


class TestNonceManager:

    def test_sequential_nonces(self):
        manager = NonceManager()
        web3 = mock_web3(chain_nonce=5)
        assert manager.get_nonce(web3, Web3.to_checksum_address(NONCE_ADDRESS)) == 5
        assert manager.get_nonce(web3, NONCE_ADDRESS) == 6

    def test_chain_ahead_wins(self):
        manager = NonceManager()
        web3 = mock_web3(chain_nonce=5)
        manager.get_nonce(web3, NONCE_ADDRESS)
        web3.eth.get_transaction_count.return_value = 9
        assert manager.get_nonce(web3, NONCE_ADDRESS) == 9

    def test_release_highest_only(self):
        manager = NonceManager()
        web3 = mock_web3(chain_nonce=5)
        first = manager.get_nonce(web3, NONCE_ADDRESS)
        second = manager.get_nonce(web3, NONCE_ADDRESS)

        manager.release_nonce(NONCE_ADDRESS, first)
        assert manager.get_nonce(web3, NONCE_ADDRESS) == 7

        manager.release_nonce(NONCE_ADDRESS, 7)
        assert manager.get_nonce(web3, NONCE_ADDRESS) == 7
        assert second == 6

    def test_reset(self):
        manager = NonceManager()
        web3 = mock_web3(chain_nonce=5)
        manager.get_nonce(web3, NONCE_ADDRESS)
        manager.get_nonce(web3, NONCE_ADDRESS)
        manager.reset(Web3.to_checksum_address(NONCE_ADDRESS))
        assert manager.get_nonce(web3, NONCE_ADDRESS) == 5


class TestSendTransaction:

    def test_send_fills_nonce_and_chain(self):
        signer = EVMSigner.from_private_key(TEST_KEY)
        web3 = mock_web3(chain_nonce=3)
        tx = transfer_tx()

        tx_hash = signer.send_transaction(web3, tx)

        assert tx_hash == "0x" + "12" * 32
        assert tx["nonce"] == 3
        assert tx["chainId"] == 88811
        web3.eth.send_raw_transaction.assert_called_once()

    def test_pre_send_error_releases_nonce(self):
        signer = EVMSigner.from_private_key(TEST_KEY)
        web3 = mock_web3(chain_nonce=3)
        web3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")

        with pytest.raises(ValueError):
            signer.send_transaction(web3, transfer_tx())

        assert signer.nonce_manager.get_nonce(web3, signer.address) == 3

    def test_unknown_error_keeps_nonce(self):
        signer = EVMSigner.from_private_key(TEST_KEY)
        web3 = mock_web3(chain_nonce=3)
        web3.eth.send_raw_transaction.side_effect = ConnectionError("connection reset")

        with pytest.raises(ConnectionError):
            signer.send_transaction(web3, transfer_tx())

        # May have reached the mempool: do not reuse
        assert signer.nonce_manager.get_nonce(web3, signer.address) == 4

    def test_explicit_nonce_untouched(self):
        signer = EVMSigner.from_private_key(TEST_KEY)
        web3 = mock_web3()
        signer.send_transaction(web3, {**transfer_tx(), "nonce": 42, "chainId": 88811})
        web3.eth.get_transaction_count.assert_not_called()


class TestFactories:

    def test_create_web3_requires_url(self):
        with pytest.raises(ConfigurationError):
            create_web3("")

    def test_create_web3(self):
        web3 = create_web3("http://localhost:8545", chain_id=88811, timeout=5, poa=True)
        assert isinstance(web3, Web3)

    def test_signers_share_nonce_manager(self):
        signers = create_evm_signers(private_keys=[TEST_KEY, OTHER_KEY])
        assert len(signers) == 2
        assert signers[0].nonce_manager is signers[1].nonce_manager
        assert signers[0].address != signers[1].address

    def test_signers_from_env(self, monkeypatch):
        monkeypatch.setenv("EVM_PRIVATE_KEY", f"{TEST_KEY}, {OTHER_KEY}")
        assert len(create_evm_signers()) == 2

        monkeypatch.delenv("EVM_PRIVATE_KEY")
        assert create_evm_signers() == []


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v", "--tb=short"]))
