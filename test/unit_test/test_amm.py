"""
AMM Module Unit Tests

Add/remove liquidity and swaps against mocked chain access, with the real
pricing, slippage and allowance logic in between.
"""

import sys
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from web3 import Web3

from koala_swap_adapter.errors import (
    ChainSubmissionFailure,
    InsufficientAllowance,
    InsufficientNativeBalance,
    InvalidAmount,
    MissingParameter,
    PoolNotFound,
    TransactionPending,
)
from koala_swap_adapter.modules.amm import (
    AmmModule,
    AmmAddLiquidityParams,
    AmmRemoveLiquidityParams,
    AmmSwapParams,
)
from koala_swap_adapter.modules.pricing import get_amount_in, get_amount_out, max_amount_in, min_amount_out
from koala_swap_adapter.protocols.koala_swap import UNIT_ZERO_CONTRACTS
from koala_swap_adapter.types import Receipt, TxStatus

from conftest import (
    AMM_POOL_ADDRESS,
    USDC,
    WETH,
    WUNIT0,
    TX_HASH,
    WRAP_TX_HASH,
    WALLET_ADDRESS,
    amm_pool,
    build_module,
)

NOW = 1_700_000_000


@pytest.fixture
def frozen_time():
    with patch("koala_swap_adapter.modules.orchestrator.time.time", return_value=NOW):
        yield NOW


class TestAddLiquidity:
    """WETH(18)/USDC(6) pair with 100 WETH / 200000 USDC reserves"""

    @pytest.fixture
    def env(self):
        return build_module(AmmModule, amm_pool())

    def test_end_to_end(self, env, frozen_time):
        result = env.module.add_liquidity(AmmAddLiquidityParams(
            pool_address=AMM_POOL_ADDRESS,
            base_token_amount=1,
            quote_token_amount=2000,
            slippage_pct=1,
        ))

        env.contract.functions.addLiquidity.assert_called_once_with(
            Web3.to_checksum_address(WETH.address),
            Web3.to_checksum_address(USDC.address),
            10**18,
            2000 * 10**6,
            10**18 * 9900 // 10000,
            2000 * 10**6 * 9900 // 10000,
            WALLET_ADDRESS,
            NOW + 1200,
        )
        assert result.status == TxStatus.CONFIRMED
        assert result.signature == TX_HASH
        assert isinstance(result.fee, str)
        assert Decimal(result.fee) == Decimal("0.000021")
        assert result.data["baseTokenAmountAdded"] == Decimal(1)
        assert result.data["quoteTokenAmountAdded"] == Decimal(2000)

        response = result.to_dict()
        assert response["status"] == 1
        assert response["data"]["fee"] == result.fee

    def test_default_gas_and_no_value(self, env):
        env.module.add_liquidity(AmmAddLiquidityParams(
            pool_address=AMM_POOL_ADDRESS, base_token_amount=1, quote_token_amount=2000,
        ))
        env.gateway.prepare_gas_options.assert_called_once_with(None, 500_000, value=0)

    def test_caller_gas_overrides(self, env):
        env.module.add_liquidity(AmmAddLiquidityParams(
            pool_address=AMM_POOL_ADDRESS,
            base_token_amount=1,
            quote_token_amount=2000,
            gas_price="2000000000",
            max_gas=350_000,
        ))
        env.gateway.prepare_gas_options.assert_called_once_with(2.0, 350_000, value=0)

    def test_quote_side_constrains(self, env):
        result = env.module.add_liquidity(AmmAddLiquidityParams(
            pool_address=AMM_POOL_ADDRESS, base_token_amount=1, quote_token_amount=1000,
        ))
        assert result.data["baseTokenAmountAdded"] == Decimal("0.5")
        assert result.data["quoteTokenAmountAdded"] == Decimal(1000)

    def test_allowances_checked_against_v2_router(self, env):
        env.module.add_liquidity(AmmAddLiquidityParams(
            pool_address=AMM_POOL_ADDRESS, base_token_amount=1, quote_token_amount=2000,
        ))
        spenders = {call.args[2] for call in env.gateway.get_erc20_allowance.call_args_list}
        assert spenders == {UNIT_ZERO_CONTRACTS.v2_router}
        assert env.gateway.get_erc20_allowance.call_count == 2

    def test_missing_amount(self, env):
        with pytest.raises(MissingParameter) as exc_info:
            env.module.add_liquidity(AmmAddLiquidityParams(pool_address=AMM_POOL_ADDRESS, base_token_amount=1))
        assert exc_info.value.stage == "RESOLVING"
        env.gateway.submit.assert_not_called()

    def test_non_positive_amount(self, env):
        with pytest.raises(InvalidAmount):
            env.module.add_liquidity(AmmAddLiquidityParams(
                pool_address=AMM_POOL_ADDRESS, base_token_amount=0, quote_token_amount=2000,
            ))

    def test_unknown_pool(self, env):
        env.registry.resolve_pool_info.return_value = None
        with pytest.raises(PoolNotFound):
            env.module.add_liquidity(AmmAddLiquidityParams(
                pool_address=AMM_POOL_ADDRESS, base_token_amount=1, quote_token_amount=2000,
            ))

    def test_pool_required_without_tokens(self, env):
        with pytest.raises(MissingParameter) as exc_info:
            env.module.add_liquidity(AmmAddLiquidityParams(base_token_amount=1, quote_token_amount=2000))
        assert exc_info.value.param == "poolAddress"


class TestAllowanceShortCircuit:

    def test_insufficient_allowance_stops_before_submit(self):
        env = build_module(AmmModule, amm_pool(), allowance=0)

        with pytest.raises(InsufficientAllowance) as exc_info:
            env.module.add_liquidity(AmmAddLiquidityParams(
                pool_address=AMM_POOL_ADDRESS, base_token_amount=1, quote_token_amount=2000,
            ))

        assert exc_info.value.stage == "ALLOWANCE_CHECKING"
        assert exc_info.value.token_symbol == "WETH"
        assert "KoalaSwap router" in exc_info.value.message
        # Every leg is read before failing
        assert env.gateway.get_erc20_allowance.call_count == 2
        env.gateway.submit.assert_not_called()


class TestWrapBeforeQuote:
    """ETH passed as base on a WUNIT0/USDC pair"""

    @pytest.fixture
    def env(self):
        return build_module(AmmModule, amm_pool(token0=WUNIT0, token1=USDC))

    def test_wraps_once_before_quoting(self, env, frozen_time):
        events = []
        env.wrapper.wrap.side_effect = lambda *args, **kwargs: events.append("wrap") or WRAP_TX_HASH
        original_quote = env.resolver.quote_liquidity

        def spy(*args, **kwargs):
            events.append("quote")
            return original_quote(*args, **kwargs)

        env.resolver.quote_liquidity = spy

        result = env.module.add_liquidity(AmmAddLiquidityParams(
            pool_address=AMM_POOL_ADDRESS,
            base_token="ETH",
            quote_token="USDC",
            base_token_amount=1.5,
            quote_token_amount=3000,
        ))

        assert events == ["wrap", "quote"]
        env.wrapper.wrap.assert_called_once()
        assert str(env.wrapper.wrap.call_args.args[2]) == "1.5"
        assert result.data["baseWrapTxHash"] == WRAP_TX_HASH
        assert "quoteWrapTxHash" not in result.data

    def test_wrapped_leg_spent_as_wunit0(self, env, frozen_time):
        env.module.add_liquidity(AmmAddLiquidityParams(
            pool_address=AMM_POOL_ADDRESS,
            base_token="ETH",
            quote_token="USDC",
            base_token_amount=1,
            quote_token_amount=2000,
        ))

        env.wrapper.wrap.assert_called_once()
        env.contract.functions.addLiquidityETH.assert_not_called()
        env.contract.functions.addLiquidity.assert_called_once_with(
            Web3.to_checksum_address(WUNIT0.address),
            Web3.to_checksum_address(USDC.address),
            10**18,
            2000 * 10**6,
            min_amount_out(10**18, 1),
            min_amount_out(2000 * 10**6, 1),
            WALLET_ADDRESS,
            NOW + 1200,
        )
        # ETH already left the wallet in the wrap
        env.gateway.prepare_gas_options.assert_called_once_with(None, 500_000, value=0)
        # WUNIT0 and USDC both need an allowance
        checked = [call.args[0] for call in env.gateway.get_contract.call_args_list[:2]]
        assert checked == [WUNIT0.address, USDC.address]
        assert env.gateway.get_erc20_allowance.call_count == 2

    def test_wunit0_pair_without_wrap_uses_eth_entry_point(self, env, frozen_time):
        env.module.add_liquidity(AmmAddLiquidityParams(
            pool_address=AMM_POOL_ADDRESS,
            base_token_amount=1,
            quote_token_amount=2000,
        ))

        env.wrapper.wrap.assert_not_called()
        env.contract.functions.addLiquidity.assert_not_called()
        env.contract.functions.addLiquidityETH.assert_called_once_with(
            Web3.to_checksum_address(USDC.address),
            2000 * 10**6,
            min_amount_out(2000 * 10**6, 1),
            min_amount_out(10**18, 1),
            WALLET_ADDRESS,
            NOW + 1200,
        )
        env.gateway.prepare_gas_options.assert_called_once_with(None, 500_000, value=10**18)
        # Only the ERC-20 leg needs an allowance
        assert env.gateway.get_erc20_allowance.call_count == 1

    def test_eth_rejected_for_pool_without_wunit0(self):
        env = build_module(AmmModule, amm_pool())

        with pytest.raises(PoolNotFound) as exc_info:
            env.module.add_liquidity(AmmAddLiquidityParams(
                pool_address=AMM_POOL_ADDRESS,
                base_token="WETH",
                quote_token="ETH",
                base_token_amount=1,
                quote_token_amount=2000,
            ))

        assert exc_info.value.stage == "RESOLVING"
        env.wrapper.wrap.assert_not_called()
        env.gateway.submit.assert_not_called()

    def test_same_token_for_both_legs_rejected(self):
        env = build_module(AmmModule, amm_pool())

        with pytest.raises(PoolNotFound):
            env.module.add_liquidity(AmmAddLiquidityParams(
                pool_address=AMM_POOL_ADDRESS,
                base_token="WETH",
                quote_token="WETH",
                base_token_amount=1,
                quote_token_amount=2000,
            ))

        env.wrapper.wrap.assert_not_called()

    def test_quote_only_order_respected(self, frozen_time):
        env = build_module(AmmModule, amm_pool())

        env.module.add_liquidity(AmmAddLiquidityParams(
            pool_address=AMM_POOL_ADDRESS,
            quote_token="WETH",
            base_token_amount=2000,
            quote_token_amount=1,
        ))

        args = env.contract.functions.addLiquidity.call_args.args
        assert args[0] == Web3.to_checksum_address(USDC.address)
        assert args[1] == Web3.to_checksum_address(WETH.address)

    def test_failure_after_wrap_reports_hash(self, env):
        env.gateway.submit.side_effect = RuntimeError("connection reset")

        with pytest.raises(ChainSubmissionFailure) as exc_info:
            env.module.add_liquidity(AmmAddLiquidityParams(
                pool_address=AMM_POOL_ADDRESS,
                base_token="ETH",
                base_token_amount=1,
                quote_token_amount=2000,
            ))

        assert exc_info.value.details["wrap_tx_hashes"] == {"baseWrapTxHash": WRAP_TX_HASH}
        assert exc_info.value.stage == "SUBMITTING"


class TestSubmissionOutcomes:

    @pytest.fixture
    def env(self):
        return build_module(AmmModule, amm_pool())

    def _add(self, env):
        return env.module.add_liquidity(AmmAddLiquidityParams(
            pool_address=AMM_POOL_ADDRESS, base_token_amount=1, quote_token_amount=2000,
        ))

    def test_insufficient_funds_remapped(self, env):
        env.gateway.submit.side_effect = ValueError("insufficient funds for gas * price + value")

        with pytest.raises(InsufficientNativeBalance) as exc_info:
            self._add(env)

        assert "Insufficient ETH balance" in exc_info.value.message
        assert isinstance(exc_info.value.original_error, ValueError)

    def test_other_errors_remapped(self, env):
        env.gateway.submit.side_effect = RuntimeError("execution reverted: K")

        with pytest.raises(ChainSubmissionFailure) as exc_info:
            self._add(env)

        assert exc_info.value.message == "Failed to add liquidity"
        assert "reverted: K" not in exc_info.value.message

    def test_reverted_receipt_is_failed_status(self, env):
        env.gateway.wait_for_receipt.return_value = Receipt(
            transaction_hash=TX_HASH, gas_used=50_000, effective_gas_price=10**9, status=0,
        )
        result = self._add(env)
        assert result.status == TxStatus.FAILED
        assert result.to_dict()["status"] == -1
        assert Decimal(result.fee) == Decimal("0.00005")

    def test_receipt_timeout_is_pending(self, env):
        env.gateway.wait_for_receipt.side_effect = TransactionPending(TX_HASH, 120)
        result = self._add(env)
        assert result.status == TxStatus.PENDING
        assert result.signature == TX_HASH
        assert result.fee is None
        assert result.data["baseTokenAmountAdded"] == Decimal(1)


class TestRemoveLiquidity:

    @pytest.fixture
    def env(self):
        env = build_module(AmmModule, amm_pool())
        env.contract.functions.balanceOf.return_value.call.return_value = 10**18
        return env

    def test_half_position(self, env, frozen_time):
        result = env.module.remove_liquidity(AmmRemoveLiquidityParams(
            pool_address=AMM_POOL_ADDRESS, percentage_to_remove=50, slippage_pct=1,
        ))

        liquidity = 5 * 10**17
        raw_weth = liquidity * 100 * 10**18 // (10 * 10**18)
        raw_usdc = liquidity * 200_000 * 10**6 // (10 * 10**18)
        env.contract.functions.removeLiquidity.assert_called_once_with(
            Web3.to_checksum_address(WETH.address),
            Web3.to_checksum_address(USDC.address),
            liquidity,
            min_amount_out(raw_weth, 1),
            min_amount_out(raw_usdc, 1),
            WALLET_ADDRESS,
            NOW + 1200,
        )
        assert result.data["baseTokenAmountRemoved"] == Decimal(5)
        assert result.data["quoteTokenAmountRemoved"] == Decimal(10_000)
        env.gateway.prepare_gas_options.assert_called_once_with(None, 300_000, value=0)

    def test_lp_token_allowance(self, env):
        env.module.remove_liquidity(AmmRemoveLiquidityParams(pool_address=AMM_POOL_ADDRESS, percentage_to_remove=100))
        args = env.gateway.get_erc20_allowance.call_args.args
        assert args[1] == WALLET_ADDRESS
        assert args[2] == UNIT_ZERO_CONTRACTS.v2_router

    @pytest.mark.parametrize("percentage", [0, -5, 101])
    def test_percentage_out_of_range(self, env, percentage):
        with pytest.raises(InvalidAmount):
            env.module.remove_liquidity(AmmRemoveLiquidityParams(
                pool_address=AMM_POOL_ADDRESS, percentage_to_remove=percentage,
            ))

    def test_no_lp_balance(self, env):
        env.contract.functions.balanceOf.return_value.call.return_value = 0
        with pytest.raises(InvalidAmount):
            env.module.remove_liquidity(AmmRemoveLiquidityParams(pool_address=AMM_POOL_ADDRESS, percentage_to_remove=50))
        env.gateway.submit.assert_not_called()

    def test_native_pair_uses_eth_entry_point(self, frozen_time):
        env = build_module(AmmModule, amm_pool(token0=USDC, token1=WUNIT0, reserve0=200_000 * 10**6, reserve1=100 * 10**18))
        env.contract.functions.balanceOf.return_value.call.return_value = 10**18

        env.module.remove_liquidity(AmmRemoveLiquidityParams(pool_address=AMM_POOL_ADDRESS, percentage_to_remove=100))

        env.contract.functions.removeLiquidity.assert_not_called()
        args = env.contract.functions.removeLiquidityETH.call_args.args
        assert args[0] == Web3.to_checksum_address(USDC.address)
        assert args[1] == 10**18
        # token min then ETH min
        assert args[2] == min_amount_out(20_000 * 10**6, 1)
        assert args[3] == min_amount_out(10 * 10**18, 1)


class TestSwap:

    RESERVE_WUNIT0 = 100 * 10**18
    RESERVE_USDC = 200_000 * 10**6

    @pytest.fixture
    def env(self):
        return build_module(AmmModule, amm_pool(token0=WUNIT0, token1=USDC))

    def _path(self, token_in, token_out):
        return [Web3.to_checksum_address(token_in.address), Web3.to_checksum_address(token_out.address)]

    def test_sell_eth_for_tokens(self, env, frozen_time):
        result = env.module.execute_swap(AmmSwapParams(
            base_token="ETH", quote_token="USDC", amount=1, side="SELL", slippage_pct=1,
        ))

        raw_out = get_amount_out(10**18, self.RESERVE_WUNIT0, self.RESERVE_USDC)
        env.contract.functions.swapExactETHForTokens.assert_called_once_with(
            min_amount_out(raw_out, 1), self._path(WUNIT0, USDC), WALLET_ADDRESS, NOW + 1200,
        )
        env.gateway.prepare_gas_options.assert_called_once_with(None, 300_000, value=10**18)
        env.gateway.get_erc20_allowance.assert_not_called()
        env.wrapper.wrap.assert_not_called()

        assert result.data["tokenIn"] == "ETH"
        assert result.data["tokenOut"] == USDC.address
        assert result.data["baseTokenBalanceChange"] == Decimal(-1)
        assert result.data["quoteTokenBalanceChange"] == USDC.from_raw(raw_out)

    def test_sell_tokens_for_eth(self, env, frozen_time):
        env.module.execute_swap(AmmSwapParams(base_token="USDC", quote_token="ETH", amount=2000, side="SELL"))

        raw_out = get_amount_out(2000 * 10**6, self.RESERVE_USDC, self.RESERVE_WUNIT0)
        env.contract.functions.swapExactTokensForETH.assert_called_once_with(
            2000 * 10**6, min_amount_out(raw_out, 1), self._path(USDC, WUNIT0), WALLET_ADDRESS, NOW + 1200,
        )
        args = env.gateway.get_erc20_allowance.call_args.args
        assert args[2] == UNIT_ZERO_CONTRACTS.v2_router

    def test_buy_with_eth(self, env, frozen_time):
        result = env.module.execute_swap(AmmSwapParams(base_token="USDC", quote_token="ETH", amount=100, side="BUY"))

        raw_in = get_amount_in(100 * 10**6, self.RESERVE_WUNIT0, self.RESERVE_USDC)
        max_in = max_amount_in(raw_in, 1)
        env.contract.functions.swapETHForExactTokens.assert_called_once_with(
            100 * 10**6, self._path(WUNIT0, USDC), WALLET_ADDRESS, NOW + 1200,
        )
        env.gateway.prepare_gas_options.assert_called_once_with(None, 300_000, value=max_in)
        assert result.data["baseTokenBalanceChange"] == Decimal(100)
        assert result.data["quoteTokenBalanceChange"] == -WUNIT0.from_raw(raw_in)

    def test_buy_eth_with_tokens(self, env, frozen_time):
        env.module.execute_swap(AmmSwapParams(base_token="ETH", quote_token="USDC", amount=1, side="BUY"))

        raw_in = get_amount_in(10**18, self.RESERVE_USDC, self.RESERVE_WUNIT0)
        env.contract.functions.swapTokensForExactETH.assert_called_once_with(
            10**18, max_amount_in(raw_in, 1), self._path(USDC, WUNIT0), WALLET_ADDRESS, NOW + 1200,
        )

    def test_token_for_token(self, frozen_time):
        env = build_module(AmmModule, amm_pool())
        env.module.execute_swap(AmmSwapParams(base_token="WETH", quote_token="USDC", amount=1, side="SELL"))
        env.contract.functions.swapExactTokensForTokens.assert_called_once()
        env.module.execute_swap(AmmSwapParams(base_token="WETH", quote_token="USDC", amount=1, side="BUY"))
        env.contract.functions.swapTokensForExactTokens.assert_called_once()

    def test_pool_looked_up_by_pair(self, env):
        env.module.execute_swap(AmmSwapParams(base_token="ETH", quote_token="USDC", amount=1, side="SELL"))
        env.registry.find_pool_address.assert_called_once()

    def test_invalid_side(self, env):
        with pytest.raises(InvalidAmount):
            env.module.execute_swap(AmmSwapParams(base_token="ETH", quote_token="USDC", amount=1, side="HOLD"))

    def test_missing_side(self, env):
        with pytest.raises(MissingParameter):
            env.module.execute_swap(AmmSwapParams(base_token="ETH", quote_token="USDC", amount=1))


class TestReadOnly:

    @pytest.fixture
    def env(self):
        return build_module(AmmModule, amm_pool())

    def test_quote_swap_does_not_submit(self, env):
        quote = env.module.quote_swap("WETH", "USDC", 1, "SELL")
        assert quote.route_path == "WETH -> USDC"
        assert quote.min_amount_out <= quote.raw_amount_out
        env.gateway.submit.assert_not_called()

    def test_quote_liquidity(self, env):
        quote = env.module.quote_liquidity(pool_address=AMM_POOL_ADDRESS, base_token_amount=2)
        assert quote.quote_amount == Decimal(4000)
        assert quote.base_limited is True

    def test_pool_info(self, env):
        assert env.module.pool_info(AMM_POOL_ADDRESS) == amm_pool()
        env.registry.resolve_pool_info.return_value = None
        with pytest.raises(PoolNotFound):
            env.module.pool_info(AMM_POOL_ADDRESS)


def main():
    """Run AMM module unit tests"""
    print("=" * 60)
    print("AMM Module Unit Tests")
    print("=" * 60)

    exit_code = pytest.main([__file__, "-v", "--tb=short"])
    return exit_code == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
