"""
Allowance Guard

Read-only pre-flight check that every ERC-20 leg of an operation is approved
for the spending contract. Never submits an approval.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, TYPE_CHECKING

from ..types import TokenDescriptor
from ..errors import InsufficientAllowance
from ..protocols.koala_swap import ERC20_ABI

if TYPE_CHECKING:
    from ..infra import ChainGateway, TokenAllowance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllowanceRequirement:
    """One ERC-20 leg that will be pulled from the wallet"""
    token: TokenDescriptor
    required_raw: int


class AllowanceGuard:
    """
    Checks spender allowances before submission

    Usage:
        guard = AllowanceGuard(gateway)
        guard.check_all(
            [AllowanceRequirement(usdc, 2_000_000_000)],
            wallet_address, router_address, "KoalaSwap router",
        )
    """

    def __init__(self, gateway: "ChainGateway"):
        self._gateway = gateway

    def read(self, token: TokenDescriptor, wallet_address: str, spender: str) -> "TokenAllowance":
        contract = self._gateway.get_contract(token.address, ERC20_ABI)
        return self._gateway.get_erc20_allowance(contract, wallet_address, spender, token.decimals)

    def check(
        self,
        token: TokenDescriptor,
        wallet_address: str,
        spender: str,
        required_raw: int,
        spender_name: str = "KoalaSwap router",
    ) -> None:
        """
        Raises:
            InsufficientAllowance: allowance below required_raw
        """
        allowance = self.read(token, wallet_address, spender)
        logger.info(f"Current allowance for {token.symbol}: {allowance.formatted}")
        logger.info(f"Amount needed for {token.symbol}: {token.format(required_raw)}")

        if allowance.value < required_raw:
            raise InsufficientAllowance(
                token.symbol,
                token.from_raw(required_raw),
                spender,
                spender_name=spender_name,
                current=token.from_raw(allowance.value),
            )

    def check_all(
        self,
        requirements: Iterable[AllowanceRequirement],
        wallet_address: str,
        spender: str,
        spender_name: str = "KoalaSwap router",
    ) -> None:
        """
        Check every ERC-20 leg; native legs and zero amounts are skipped

        All legs are read before the first shortfall is raised, so the log
        shows the full picture for multi-token operations.
        """
        failures: List[InsufficientAllowance] = []
        for requirement in requirements:
            if requirement.token.is_native or requirement.required_raw <= 0:
                continue
            try:
                self.check(requirement.token, wallet_address, spender, requirement.required_raw, spender_name)
            except InsufficientAllowance as e:
                logger.warning(str(e))
                failures.append(e)

        if failures:
            raise failures[0]
