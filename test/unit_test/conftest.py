"""
Shared fixtures for unit tests.

Everything chain-facing is a Mock: the gateway hands out one MagicMock
contract for every address, so tests assert on `contract.functions.<name>`.
No network access.
"""

import sys
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock, MagicMock

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from web3 import Web3

from koala_swap_adapter.config import Config, ChainConfig, EVMConfig, KoalaSwapConfig
from koala_swap_adapter.infra.gateway import TokenAllowance
from koala_swap_adapter.modules.allowance import AllowanceGuard
from koala_swap_adapter.modules.pricing import PricingOracle, QuoteResolver
from koala_swap_adapter.protocols.koala_swap import ContractRegistry
from koala_swap_adapter.types import (
    TokenDescriptor,
    PoolInfo,
    PoolType,
    Receipt,
    GasOptions,
)

WETH_ADDRESS = Web3.to_checksum_address("0x" + "a1" * 20)
USDC_ADDRESS = Web3.to_checksum_address("0x" + "b2" * 20)
WUNIT0_ADDRESS = Web3.to_checksum_address("0x" + "c3" * 20)
AMM_POOL_ADDRESS = Web3.to_checksum_address("0x" + "d4" * 20)
CLMM_POOL_ADDRESS = Web3.to_checksum_address("0x" + "e5" * 20)
WALLET_ADDRESS = Web3.to_checksum_address("0x" + "f6" * 20)

WETH = TokenDescriptor(symbol="WETH", address=WETH_ADDRESS, decimals=18, name="Wrapped Ether")
USDC = TokenDescriptor(symbol="USDC", address=USDC_ADDRESS, decimals=6, name="USD Coin")
WUNIT0 = TokenDescriptor(symbol="WUNIT0", address=WUNIT0_ADDRESS, decimals=18, name="Wrapped UNIT0")
NATIVE = TokenDescriptor.native()

TX_HASH = "0x" + "ab" * 32
WRAP_TX_HASH = "0x" + "77" * 32

# 2000 USDC per WETH in raw units (6 - 18 decimals)
SQRT_PRICE_2000 = int((Decimal(2000) * Decimal(10) ** -12).sqrt() * Decimal(2 ** 96))


def amm_pool(token0=WETH, token1=USDC, reserve0=100 * 10**18, reserve1=200_000 * 10**6, total_supply=10 * 10**18):
    return PoolInfo(
        pool_address=AMM_POOL_ADDRESS,
        base_token_address=token0.address,
        quote_token_address=token1.address,
        pool_type=PoolType.AMM,
        base_reserve=reserve0,
        quote_reserve=reserve1,
        lp_total_supply=total_supply,
    )


def clmm_pool(token0=WETH, token1=USDC, sqrt_price_x96=SQRT_PRICE_2000, current_tick=-200311):
    return PoolInfo(
        pool_address=CLMM_POOL_ADDRESS,
        base_token_address=token0.address,
        quote_token_address=token1.address,
        pool_type=PoolType.CLMM,
        fee_tier=3000,
        current_tick=current_tick,
        liquidity=10**18,
        sqrt_price_x96=sqrt_price_x96,
        tick_spacing=60,
    )


def make_config() -> Config:
    return Config(
        koala_swap=KoalaSwapConfig(
            slippage_pct=1.0,
            networks=["koala", "mainnet"],
            default_network="koala",
            wrapped_native_symbol="WUNIT0",
            token_list_path="",
        ),
        chain=ChainConfig(rpc_url="http://localhost:8545", chain_id=88811),
        evm=EVMConfig(
            tx_deadline_seconds=1200,
            amm_add_liquidity_gas_limit=500_000,
            amm_remove_liquidity_gas_limit=300_000,
            swap_gas_limit=300_000,
            clmm_open_position_gas_limit=600_000,
            clmm_position_gas_limit=500_000,
            clmm_collect_gas_limit=200_000,
            clmm_burn_gas_limit=100_000,
            wrap_gas_limit=100_000,
        ),
    )


def make_registry(pool: PoolInfo, tokens=(WETH, USDC, WUNIT0)):
    """Registry mock resolving the given tokens and always returning pool"""
    by_address = {token.address.lower(): token for token in tokens}
    by_symbol = {token.symbol: token for token in tokens}
    by_symbol["ETH"] = NATIVE

    def resolve_token(symbol_or_address, network=None):
        return by_symbol.get(symbol_or_address) or by_address[symbol_or_address.lower()]

    registry = Mock()
    registry.resolve_token.side_effect = resolve_token
    registry.resolve_token_by_symbol.side_effect = lambda symbol, network=None: by_symbol.get(symbol)
    registry.resolve_token_by_address.side_effect = lambda address: by_address.get(address.lower())
    registry.wrapped_native.return_value = WUNIT0
    registry.lookup_address.side_effect = lambda token, network: WUNIT0.address if token.is_native else token.address
    registry.resolve_pool_info.return_value = pool
    registry.find_pool_address.return_value = pool.pool_address
    return registry


def make_gateway(allowance: int = 10**40, receipt: Receipt = None):
    """Gateway mock: generous allowances, one shared contract mock, mined receipts"""
    contract = MagicMock()
    wallet = Mock()
    wallet.address = WALLET_ADDRESS

    gateway = Mock()
    gateway.get_wallet.return_value = wallet
    gateway.get_contract.return_value = contract
    gateway.get_erc20_allowance.return_value = TokenAllowance(value=allowance, formatted=str(allowance))
    gateway.prepare_gas_options.side_effect = lambda gas_price_gwei=None, gas_limit=300_000, value=0: GasOptions(
        gas_limit=gas_limit, gas_price=10**9, value=value,
    )
    gateway.submit.return_value = TX_HASH
    gateway.wait_for_receipt.return_value = receipt or Receipt(
        transaction_hash=TX_HASH,
        gas_used=21_000,
        effective_gas_price=10**9,
        status=1,
        block_number=100,
    )
    return gateway, contract, wallet


def build_module(module_cls, pool: PoolInfo, allowance: int = 10**40, tokens=(WETH, USDC, WUNIT0)):
    """Module wired to real pricing/allowance logic over mocked chain access"""
    config = make_config()
    gateway, contract, wallet = make_gateway(allowance)
    registry = make_registry(pool, tokens)
    contracts = ContractRegistry(networks=config.koala_swap.networks)
    oracle = PricingOracle(gateway, contracts)
    resolver = QuoteResolver(registry, oracle, contracts, config.koala_swap)
    wrapper = Mock()
    wrapper.wrap.return_value = WRAP_TX_HASH
    guard = AllowanceGuard(gateway)

    module = module_cls(config, gateway, registry, resolver, contracts, wrapper, guard)
    return SimpleNamespace(
        module=module,
        config=config,
        gateway=gateway,
        contract=contract,
        wallet=wallet,
        registry=registry,
        contracts=contracts,
        resolver=resolver,
        wrapper=wrapper,
        guard=guard,
    )


@pytest.fixture
def config():
    return make_config()
