"""
Test Errors Module

Tests for koala_swap_adapter.errors package.
"""

import sys
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


def test_error_code():
    """Test ErrorCode enum"""
    from koala_swap_adapter.errors import ErrorCode

    print("Testing ErrorCode...")

    assert ErrorCode.TX_SEND_FAILED.value == "2002"
    assert ErrorCode.TX_INSUFFICIENT_ALLOWANCE.value == "2006"
    assert ErrorCode.POOL_NOT_FOUND.value == "4001"
    assert ErrorCode.POSITION_NOT_FOUND.value == "5001"
    assert ErrorCode.NETWORK_UNSUPPORTED.value == "9003"

    print("  ErrorCode: PASSED")


def test_koala_swap_error():
    """Test KoalaSwapError base class"""
    from koala_swap_adapter.errors import KoalaSwapError, ErrorCode

    print("Testing KoalaSwapError...")

    error = KoalaSwapError(
        message="Test error",
        code=ErrorCode.TX_SEND_FAILED,
        recoverable=True,
    )

    # __str__ returns "[code] message" format
    assert "[2002] Test error" == str(error)
    assert error.code == ErrorCode.TX_SEND_FAILED
    assert error.recoverable == True
    assert error.details == {}
    assert error.stage is None

    error.details["stage"] = "SUBMITTING"
    assert error.stage == "SUBMITTING"

    print("  KoalaSwapError: PASSED")


def test_request_errors():
    """Test MissingParameter and InvalidAmount"""
    from koala_swap_adapter.errors import MissingParameter, InvalidAmount, ErrorCode

    print("Testing request errors...")

    missing = MissingParameter("poolAddress")
    assert missing.code == ErrorCode.PARAMETER_MISSING
    assert missing.param == "poolAddress"
    assert "poolAddress" in missing.message

    not_positive = InvalidAmount.not_positive("amount", -1)
    assert not_positive.code == ErrorCode.AMOUNT_INVALID
    assert not_positive.field_name == "amount"
    assert not_positive.details["value"] == "-1"

    out_of_range = InvalidAmount.out_of_range("slippagePct", 150, 0, 100)
    assert "between 0 and 100" in out_of_range.message

    print("  Request errors: PASSED")


def test_insufficient_allowance():
    """Test InsufficientAllowance message names token, amount and spender"""
    from koala_swap_adapter.errors import InsufficientAllowance, ErrorCode

    print("Testing InsufficientAllowance...")

    spender = "0x7A2044296804EDec53beAAA8fe9D802E5be19e0a"
    error = InsufficientAllowance(
        "USDC", Decimal("2000.000000"), spender, spender_name="KoalaSwap router", current=Decimal("0.000000"),
    )

    assert error.code == ErrorCode.TX_INSUFFICIENT_ALLOWANCE
    assert error.message == (
        f"Insufficient allowance for USDC. Please approve at least 2000 USDC for the KoalaSwap router ({spender})"
    )
    assert error.details["required"] == "2000"
    assert error.details["current"] == "0"
    assert error.recoverable == False

    print("  InsufficientAllowance: PASSED")


def test_submission_errors():
    """Test InsufficientNativeBalance and ChainSubmissionFailure"""
    from koala_swap_adapter.errors import (
        InsufficientNativeBalance,
        ChainSubmissionFailure,
        TransactionPending,
        ErrorCode,
    )

    print("Testing submission errors...")

    cause = ValueError("insufficient funds for gas")
    funds = InsufficientNativeBalance(original_error=cause)
    assert funds.code == ErrorCode.TX_INSUFFICIENT_FUNDS
    assert funds.original_error is cause
    assert "Insufficient ETH balance" in funds.message

    failed = ChainSubmissionFailure.send_failed("add liquidity", RuntimeError("nonce too low"))
    assert failed.message == "Failed to add liquidity"
    assert "nonce" not in str(failed)
    assert isinstance(failed.original_error, RuntimeError)

    reverted = ChainSubmissionFailure.reverted("wrap ETH", "0xabc")
    assert reverted.code == ErrorCode.TX_REVERTED
    assert reverted.tx_hash == "0xabc"

    pending = TransactionPending("0xabc", 120)
    assert pending.recoverable == True
    assert pending.tx_hash == "0xabc"

    print("  Submission errors: PASSED")


def test_not_found_errors():
    """Test PoolNotFound, PositionNotFound, UnsupportedToken, WalletNotFound"""
    from koala_swap_adapter.errors import (
        PoolNotFound,
        PositionNotFound,
        UnsupportedToken,
        WalletNotFound,
    )

    print("Testing not-found errors...")

    pool = PoolNotFound("0xpool")
    assert pool.pool_address == "0xpool"
    assert pool.message == "Pool not found: 0xpool"
    assert "WETH-USDC" in PoolNotFound.for_pair("WETH", "USDC").message

    assert PositionNotFound("42").position_id == "42"
    assert UnsupportedToken("FOO").token == "FOO"

    assert WalletNotFound("0xdead").message == "Wallet not found: 0xdead"
    assert "no wallets found" in WalletNotFound().message

    print("  Not-found errors: PASSED")


def test_unsupported_network():
    """Test UnsupportedNetwork lists supported networks"""
    from koala_swap_adapter.errors import UnsupportedNetwork, ConfigurationError, ErrorCode

    print("Testing UnsupportedNetwork...")

    error = UnsupportedNetwork("sepolia", ["koala", "mainnet"])
    assert isinstance(error, ConfigurationError)
    assert error.code == ErrorCode.NETWORK_UNSUPPORTED
    assert "Supported: koala, mainnet" in error.message
    assert error.details == {"network": "sepolia"}

    assert ConfigurationError.missing("KOALA_RPC_URL").code == ErrorCode.CONFIG_MISSING

    print("  UnsupportedNetwork: PASSED")


def test_error_inheritance():
    """Test error class inheritance"""
    from koala_swap_adapter.errors import (
        KoalaSwapError,
        MissingParameter,
        InvalidAmount,
        PoolNotFound,
        InsufficientAllowance,
        InsufficientNativeBalance,
        ChainSubmissionFailure,
        UnsupportedNetwork,
    )

    print("Testing Error Inheritance...")

    for cls in (
        MissingParameter,
        InvalidAmount,
        PoolNotFound,
        InsufficientAllowance,
        InsufficientNativeBalance,
        ChainSubmissionFailure,
        UnsupportedNetwork,
    ):
        assert issubclass(cls, KoalaSwapError)

    # All should be catchable as KoalaSwapError
    try:
        raise PoolNotFound("0xpool")
    except KoalaSwapError:
        pass  # Expected

    print("  Error Inheritance: PASSED")


def main():
    """Run all error tests"""
    print("=" * 60)
    print("KoalaSwap Adapter Errors Tests")
    print("=" * 60)

    tests = [
        test_error_code,
        test_koala_swap_error,
        test_request_errors,
        test_insufficient_allowance,
        test_submission_errors,
        test_not_found_errors,
        test_unsupported_network,
        test_error_inheritance,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"  FAILED: {e}")
            failed += 1

    print("=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    return failed == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
