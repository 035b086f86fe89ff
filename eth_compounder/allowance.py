"""Spend authorisations a strategy hands to its collaborators.

The strategy approves the farm, the routers and the deposit helper with unlimited allowances.
Pausing revokes all of them, so a paused strategy has no outstanding third party authorisations.
"""

import logging
from dataclasses import dataclass

from eth_typing import HexAddress

from eth_compounder.chain import Contract
from eth_compounder.token import MAX_UINT256, ERC20Token


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllowanceGrant:
    """One (token, spender) pair the owner approves."""

    token: ERC20Token

    spender: HexAddress


class AllowanceLedger:
    """Grant and revoke a fixed set of allowances on behalf of a contract.

    The grants are declared once at construction, the lifecycle then
    toggles them between unlimited and zero.
    """

    def __init__(self, owner: Contract):
        self.owner = owner
        self.grants: list[AllowanceGrant] = []

    def register(self, token: ERC20Token, spender: HexAddress):
        grant = AllowanceGrant(token=token, spender=spender)
        if grant not in self.grants:
            self.grants.append(grant)

    def give_allowances(self):
        for grant in self.grants:
            logger.debug("%s approves %s to spend %s", self.owner, grant.spender, grant.token.symbol)
            self.owner.call(grant.token.approve, grant.spender, MAX_UINT256)

    def remove_allowances(self):
        for grant in self.grants:
            logger.debug("%s revokes %s allowance of %s", self.owner, grant.spender, grant.token.symbol)
            self.owner.call(grant.token.approve, grant.spender, 0)

    def get_outstanding(self) -> dict[tuple[HexAddress, HexAddress], int]:
        """Current allowance for every registered grant.

        :return:
            (token address, spender) -> allowance
        """
        return {(g.token.address, g.spender): g.token.allowance(self.owner.address, g.spender) for g in self.grants}

    def has_outstanding(self) -> bool:
        return any(amount > 0 for amount in self.get_outstanding().values())
