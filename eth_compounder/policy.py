"""Behaviour switches between the two strategy revisions.

The base revision and the hardened revision differ in security relevant ways.
Instead of picking one silently, each difference is an explicit switch
and :py:meth:`StrategyPolicy.base` / :py:meth:`StrategyPolicy.hardened` give the two presets.
"""

import enum
from dataclasses import dataclass


class HarvestAuthorisation(enum.Enum):
    """Whose identity gates ``harvest()`` and receives the call fee."""

    #: The immediate caller must be an EOA or the vault.
    #:
    #: Contract intermediaries (e.g. a flash loan receiver) are rejected.
    #: The call fee goes to the immediate caller, or to the transaction origin when the vault calls.
    immediate_caller = "immediate_caller"

    #: The transaction origin gets the call fee.
    #:
    #: Any contract in between the origin and the strategy may trigger a harvest.
    transaction_origin = "transaction_origin"


@dataclass(frozen=True)
class StrategyPolicy:
    """Revision specific behaviour of :py:class:`eth_compounder.strategy.CompoundingStrategy`."""

    #: Harvest caller check and call fee recipient
    harvest_authorisation: HarvestAuthorisation = HarvestAuthorisation.immediate_caller

    #: Skip the withdrawal fee when the transaction origin owns the vault
    waive_withdrawal_fee_for_vault_owner: bool = False

    #: Quote the native -> deposit token swap and enforce a minimum output.
    #:
    #: Without it the swap accepts any output (``amountOutMinimum = 0``).
    slippage_protection: bool = True

    #: Check router allowance before swapping rewards
    check_router_allowance: bool = True

    #: Re-report collaborator failures with context instead of propagating them as is
    wrap_external_errors: bool = True

    @staticmethod
    def base() -> "StrategyPolicy":
        """The unhardened revision."""
        return StrategyPolicy(
            harvest_authorisation=HarvestAuthorisation.transaction_origin,
            waive_withdrawal_fee_for_vault_owner=True,
            slippage_protection=False,
            check_router_allowance=False,
            wrap_external_errors=False,
        )

    @staticmethod
    def hardened() -> "StrategyPolicy":
        """The revision with slippage bounds and structured failures."""
        return StrategyPolicy()
