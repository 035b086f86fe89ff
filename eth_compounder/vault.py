"""Share issuing vault in front of a single compounding strategy.

- Holders deposit the staking token and get vault shares, which are a transferable ERC-20 token
- Each share is a claim on ``balance() / total_supply`` staking tokens, where ``balance()`` is
  the idle vault balance plus everything the strategy reports
- Harvests grow ``balance()`` without minting shares, so the price per share goes up

Deposits mint against the *realised* balance change, not the nominal amount,
so fee-on-transfer tokens and strategy side effects cannot dilute existing holders.
Withdrawals never pay out more than was actually freed from the strategy.

Both entry points run under the reentrancy lock, as they call out to the token and the strategy
while the before/after balance bookkeeping is still open.

Example:

.. code-block:: python

    chain.transact(user_1, staking_token.approve, vault.address, 1000)
    receipt = chain.transact(user_1, vault.deposit, 1000)
    shares = receipt.return_value

    chain.transact(user_1, vault.withdraw, shares)

"""

import dataclasses
import logging

from eth_typing import HexAddress

from eth_compounder.access import Ownable, only_owner
from eth_compounder.account import PRICE_PRECISION, AccountInfo, update_account_info
from eth_compounder.chain import ZERO_ADDRESS, SimulatedChain
from eth_compounder.config import VaultConfig
from eth_compounder.errors import PreconditionFailed
from eth_compounder.guard import nonreentrant
from eth_compounder.strategy import CompoundingStrategy
from eth_compounder.timelock import StratCandidate, UpgradeTimelock
from eth_compounder.token import ERC20Token


logger = logging.getLogger(__name__)


class CompoundingVault(ERC20Token, Ownable):
    """Vault and its share token.

    Deploy the vault first, then the strategy bound to the vault address,
    then call :py:meth:`initialize`.
    """

    def __init__(self, chain: SimulatedChain, want: ERC20Token, config: VaultConfig | None = None):
        if config is None:
            config = VaultConfig()

        super().__init__(
            chain,
            name=f"{config.name_prefix}{want.name}",
            symbol=f"{config.symbol_prefix}{want.symbol}",
            decimals=want.decimals,
        )
        self._init_ownable(self.msg_sender)

        #: The staking token this vault pools
        self.want = want

        self.strategy: CompoundingStrategy | None = None
        self.timelock = UpgradeTimelock(config.approval_delay)
        self.account_info: dict[HexAddress, AccountInfo] = {}

    @only_owner
    def initialize(self, strategy: CompoundingStrategy):
        """Attach the first strategy."""
        if self.strategy is not None:
            raise PreconditionFailed("Already initialized")
        if strategy.vault != self.address:
            raise PreconditionFailed("Strategy not bound to this vault")
        self.strategy = strategy

    def _require_strategy(self):
        if self.strategy is None:
            raise PreconditionFailed("Not initialized")

    #
    # Views
    #

    def balance(self) -> int:
        """Staking tokens under management: idle in the vault plus reported by the strategy."""
        strategy_balance = self.strategy.balance_of() if self.strategy is not None else 0
        return self.available() + strategy_balance

    def available(self) -> int:
        """Idle staking tokens waiting for :py:meth:`earn`."""
        return self.want.balance_of(self.address)

    def get_price_per_full_share(self) -> int:
        """Staking tokens per share, scaled by 1e18."""
        if self.total_supply == 0:
            return PRICE_PRECISION
        return self.balance() * PRICE_PRECISION // self.total_supply

    def get_account_info(self, account: HexAddress) -> AccountInfo:
        """Advisory activity record of a holder."""
        info = self.account_info.get(account)
        if info is None:
            return AccountInfo()
        return dataclasses.replace(info)

    def earned(self, account: HexAddress) -> int:
        """Value gained by the holder since their last deposit or withdraw."""
        current = self.balance_of(account) * self.get_price_per_full_share() // PRICE_PRECISION
        info = self.account_info.get(account)
        recorded = info.amount if info else 0
        return max(0, current - recorded)

    @property
    def strategy_candidate(self) -> StratCandidate:
        return dataclasses.replace(self.timelock.candidate)

    @property
    def approval_delay(self) -> int:
        return self.timelock.approval_delay

    #
    # Holder entry points
    #

    def deposit_all(self) -> int:
        return self.deposit(self.want.balance_of(self.msg_sender))

    @nonreentrant
    def deposit(self, amount: int) -> int:
        """Deposit staking tokens and mint shares.

        :return:
            Number of shares minted
        """
        if amount <= 0:
            raise PreconditionFailed("Zero amount")
        self._require_strategy()

        depositor = self.msg_sender

        self.call(self.strategy.before_deposit)

        pool = self.balance()
        self.call(self.want.transfer_from, depositor, self.address, amount)
        self._earn()
        after = self.balance()

        # Realised amount, fee-on-transfer tokens deliver less than asked
        realised = after - pool

        if self.total_supply == 0:
            shares = realised
        else:
            if pool == 0:
                raise PreconditionFailed("Empty pool with outstanding shares")
            shares = realised * self.total_supply // pool

        if shares <= 0:
            raise PreconditionFailed("Zero shares")

        self._mint(depositor, shares)
        self._update_account_info(depositor)

        logger.info("Deposit by %s: %d %s realised %d, minted %d shares", depositor, amount, self.want.symbol, realised, shares)
        return shares

    def withdraw_all(self) -> int:
        return self.withdraw(self.balance_of(self.msg_sender))

    @nonreentrant
    def withdraw(self, shares: int) -> int:
        """Burn shares and receive staking tokens.

        :return:
            Amount of staking tokens sent to the holder
        """
        if shares <= 0:
            raise PreconditionFailed("Zero amount")

        withdrawer = self.msg_sender
        if self.balance_of(withdrawer) < shares:
            raise PreconditionFailed("ERC20: burn amount exceeds balance")

        # Entitlement against the pre-burn supply
        r = self.balance() * shares // self.total_supply
        self._burn(withdrawer, shares)

        b = self.available()
        if b < r:
            to_withdraw = r - b
            self.call(self.strategy.withdraw, to_withdraw)
            after = self.available()
            diff = after - b
            if diff < to_withdraw:
                logger.debug("Strategy returned %d of %d requested, capping payout", diff, to_withdraw)
                r = b + diff

        self.call(self.want.transfer, withdrawer, r)
        self._update_account_info(withdrawer)

        logger.info("Withdraw by %s: burnt %d shares for %d %s", withdrawer, shares, r, self.want.symbol)
        return r

    @nonreentrant
    def earn(self):
        """Send idle staking tokens to the strategy."""
        self._require_strategy()
        self._earn()

    def _earn(self):
        bal = self.available()
        if bal > 0:
            self.call(self.want.transfer, self.strategy.address, bal)
        self.call(self.strategy.deposit)

    def _update_account_info(self, account: HexAddress):
        self.account_info[account] = update_account_info(
            self.account_info.get(account),
            shares=self.balance_of(account),
            price_per_share=self.get_price_per_full_share(),
            now=self.block_timestamp,
        )

    #
    # Strategy upgrade
    #

    @only_owner
    def propose_strategy_upgrade(self, implementation: HexAddress):
        """Start the upgrade timelock for a new strategy.

        The candidate must already be bound to this vault.
        """
        if implementation == ZERO_ADDRESS or not self.chain.is_contract(implementation):
            raise PreconditionFailed("Proposal not valid for this Vault")

        candidate = self.chain.get_contract(implementation)
        if getattr(candidate, "vault", None) != self.address:
            raise PreconditionFailed("Proposal not valid for this Vault")

        self.timelock.propose(implementation, self.block_timestamp)
        self.emit("NewStratCandidate", implementation=implementation)
        logger.info("Strategy %s proposed for vault %s, ready after %d", implementation, self.address, self.timelock.get_ready_time())

    @nonreentrant
    @only_owner
    def upgrade_strat(self):
        """Retire the current strategy and switch to the candidate."""
        self._require_strategy()
        self.timelock.check_ready(self.block_timestamp)

        implementation = self.timelock.consume()
        self.emit("UpgradeStrat", implementation=implementation)

        old_strategy = self.strategy
        self.call(old_strategy.retire_strat)
        self.strategy = self.chain.get_contract(implementation)
        self._earn()

        logger.info("Vault %s upgraded strategy %s -> %s", self.address, old_strategy.address, implementation)

    #
    # Housekeeping
    #

    @only_owner
    def in_case_tokens_get_stuck(self, token: ERC20Token):
        """Rescue tokens sent to the vault by mistake."""
        if token.address == self.want.address:
            raise PreconditionFailed("!token")
        amount = token.balance_of(self.address)
        self.call(token.transfer, self.msg_sender, amount)
