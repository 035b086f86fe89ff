"""Two-phase strategy replacement with a fixed delay.

- The owner proposes a candidate strategy, which records ``(implementation, proposed_time)``
- After ``approval_delay`` has *strictly* passed the owner may finalise, which consumes the candidate
- Proposing again overwrites the pending candidate, there is no separate cancel
"""

import logging
from dataclasses import dataclass

from eth_typing import HexAddress

from eth_compounder.chain import ZERO_ADDRESS
from eth_compounder.errors import PreconditionFailed


logger = logging.getLogger(__name__)


#: Proposed time written on a consumed candidate, far enough that the delay check never passes
FAR_FUTURE_TIMESTAMP = 5_000_000_000


@dataclass(slots=True)
class StratCandidate:
    """Pending strategy upgrade."""

    #: Proposed strategy address, zero address when there is no candidate
    implementation: HexAddress

    #: Unix timestamp of the proposal
    proposed_time: int

    def is_empty(self) -> bool:
        return self.implementation == ZERO_ADDRESS


class UpgradeTimelock:
    """Candidate bookkeeping for :py:class:`eth_compounder.vault.CompoundingVault`.

    Access control and the vault binding check live in the vault.
    """

    def __init__(self, approval_delay: int):
        assert approval_delay >= 0, f"Bad approval delay: {approval_delay}"
        self.approval_delay = approval_delay
        self.candidate = StratCandidate(implementation=ZERO_ADDRESS, proposed_time=0)

    def propose(self, implementation: HexAddress, now: int) -> StratCandidate:
        if implementation == ZERO_ADDRESS:
            raise PreconditionFailed("Proposal not valid for this Vault")
        if not self.candidate.is_empty():
            logger.warning("Strategy candidate %s replaced by %s", self.candidate.implementation, implementation)
        self.candidate = StratCandidate(implementation=implementation, proposed_time=now)
        return self.candidate

    def get_ready_time(self) -> int:
        """First timestamp at which the candidate can be finalised."""
        return self.candidate.proposed_time + self.approval_delay + 1

    def is_ready(self, now: int) -> bool:
        return not self.candidate.is_empty() and self.candidate.proposed_time + self.approval_delay < now

    def check_ready(self, now: int):
        """
        :raise PreconditionFailed:
            No candidate, or the delay has not passed yet
        """
        if self.candidate.is_empty():
            raise PreconditionFailed("There is no candidate")
        if not self.candidate.proposed_time + self.approval_delay < now:
            raise PreconditionFailed("Delay has not passed")

    def consume(self) -> HexAddress:
        """Take the candidate out and leave the far-future sentinel behind."""
        implementation = self.candidate.implementation
        self.candidate = StratCandidate(implementation=ZERO_ADDRESS, proposed_time=FAR_FUTURE_TIMESTAMP)
        return implementation
