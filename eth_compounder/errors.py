"""Revert reasons raised by the simulated contracts.

Every failure aborts the whole transaction. :py:meth:`eth_compounder.chain.SimulatedChain.transact`
rolls back the ledger state before the exception reaches the caller.

The exception hierarchy follows the failure classes a caller needs to tell apart:

- :py:class:`Unauthorized`: the caller is not the vault, the owner or an allowed party
- :py:class:`PreconditionFailed`: bad input or unmet precondition, fix the input and resubmit
- :py:class:`ExternalCallFailed`: a collaborator contract reverted and the strategy re-reported it
- :py:class:`ContractPaused`: the operation needs an active (unpaused) contract
- :py:class:`ReentrancyError`: a guarded entry point was entered again mid-call
"""


class TransactionReverted(Exception):
    """Python exception to signal a transaction error with a good revert reason.

    The first argument is always the revert reason string,
    like ``require(cond, "reason")`` would give on-chain.
    """

    def get_solidity_reason_message(self) -> str:
        return self.args[0]

    @property
    def reason(self) -> str:
        return self.get_solidity_reason_message()


class Unauthorized(TransactionReverted):
    """Caller identity check failed."""


class PreconditionFailed(TransactionReverted):
    """Zero amounts, missing balance, missing allowance, fee out of bounds and such."""


class ContractPaused(TransactionReverted):
    """Operation is only allowed when the contract is not paused."""


class ReentrancyError(TransactionReverted):
    """A non-reentrant entry point was entered while already executing."""


class ExternalCallFailed(TransactionReverted):
    """A collaborator call reverted and we re-report it with context.

    Mirrors Solidity ``try/catch`` where ``catch Error(string)`` gives a structured
    reason and ``catch (bytes)`` gives only low-level data.
    """

    def __init__(self, reason: str, *, structured: bool, downstream_reason: str | None = None):
        super().__init__(reason)

        #: Did the downstream failure carry a revert reason string
        self.structured = structured

        #: The original reason, if any
        self.downstream_reason = downstream_reason
