"""
Functional modules for KoalaSwapClient

- PoolTokenRegistry: token, pool and position reads
- PricingOracle / QuoteResolver: quotes and slippage bounds
- WrapAdapter: ETH -> WUNIT0 before dependent transactions
- AllowanceGuard: read-only allowance pre-flight
- AmmModule / ClmmModule: V2 and V3 operations
"""

from .registry import PoolTokenRegistry, load_token_list
from .pricing import (
    PricingOracle,
    QuoteResolver,
    retained_fraction,
    min_amount_out,
    max_amount_in,
)
from .wrap import WrapAdapter
from .allowance import AllowanceGuard, AllowanceRequirement
from .orchestrator import OperationPipeline, TransactionOrchestrator
from .amm import AmmModule, AmmAddLiquidityParams, AmmRemoveLiquidityParams, AmmSwapParams
from .clmm import (
    ClmmModule,
    ClmmOpenPositionParams,
    ClmmAddLiquidityParams,
    ClmmRemoveLiquidityParams,
    ClmmPositionParams,
    ClmmSwapParams,
)

__all__ = [
    # Collaborators
    "PoolTokenRegistry",
    "load_token_list",
    "PricingOracle",
    "QuoteResolver",
    "retained_fraction",
    "min_amount_out",
    "max_amount_in",
    "WrapAdapter",
    "AllowanceGuard",
    "AllowanceRequirement",
    # Orchestration
    "OperationPipeline",
    "TransactionOrchestrator",
    "AmmModule",
    "AmmAddLiquidityParams",
    "AmmRemoveLiquidityParams",
    "AmmSwapParams",
    "ClmmModule",
    "ClmmOpenPositionParams",
    "ClmmAddLiquidityParams",
    "ClmmRemoveLiquidityParams",
    "ClmmPositionParams",
    "ClmmSwapParams",
]
