"""Farming strategy that compounds its rewards.

The strategy holds the vault's staking token and keeps it deposited in an external farm.
A harvest runs the following steps:

1. Claim the reward token from the farm
2. Swap all rewards to the native token over a multi-hop route
3. Take the platform fee out of the native balance, split between the harvest caller and the treasury
4. Swap the rest of the native token to the deposit token over a single pool
5. Turn the deposit token into the staking token with the deposit helper
6. Deposit the staking token back into the farm

State machine:

- Active: everything works
- Paused: allowances revoked, only ``withdraw`` and ``retire_strat`` move funds.
  Entered by :py:meth:`CompoundingStrategy.pause` or :py:meth:`CompoundingStrategy.panic`,
  left by :py:meth:`CompoundingStrategy.unpause`.

Capital movement (``deposit``, ``withdraw``, ``retire_strat``) is only accepted from the bound vault.
Configuration is owner only.

Differences between strategy revisions are controlled by :py:class:`eth_compounder.policy.StrategyPolicy`.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from eth_typing import HexAddress

from eth_compounder.access import Ownable, Pausable, only_owner, when_not_paused
from eth_compounder.allowance import AllowanceLedger
from eth_compounder.chain import ZERO_ADDRESS, Contract, SimulatedChain
from eth_compounder.config import (
    MAX_CALL_FEE,
    MAX_PLATFORM_FEE,
    SLIPPAGE_MAX,
    SLIPPAGE_TOLERANCE_CAP,
    WITHDRAWAL_FEE_CAP,
    WITHDRAWAL_MAX,
    StrategyFeeConfig,
)
from eth_compounder.errors import (
    ContractPaused,
    ExternalCallFailed,
    PreconditionFailed,
    ReentrancyError,
    TransactionReverted,
    Unauthorized,
)
from eth_compounder.fee import FeeSplit, calculate_fee_split, calculate_minimum_output, calculate_withdrawal_fee
from eth_compounder.guard import is_locked, nonreentrant
from eth_compounder.interfaces import DepositHelper, FarmPool, SwapRouter
from eth_compounder.path import SwapRoute, encode_path
from eth_compounder.policy import HarvestAuthorisation, StrategyPolicy
from eth_compounder.token import ERC20Token


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StrategyParams:
    """Addresses a strategy is wired to.

    Fixed for the lifetime of the strategy, except the vault which has its own setter.
    """

    #: Token the vault accepts and the farm stakes ("want")
    staking_token: ERC20Token

    #: Token the farm pays rewards in
    reward_token: ERC20Token

    #: Intermediate token fees are paid in
    native_token: ERC20Token

    #: Token the deposit helper turns into the staking token
    deposit_token: ERC20Token

    farm: FarmPool

    #: Router for the reward -> native route
    reward_router: SwapRouter

    #: Router for the native -> deposit token swap
    liquidity_router: SwapRouter

    deposit_helper: DepositHelper

    #: Receives the platform fee minus the call fee
    treasury: HexAddress

    #: Reward token -> ... -> native token
    reward_route: SwapRoute

    #: Pool fee tier of the native -> deposit token pool
    liquidity_fee_tier: int

    def __post_init__(self):
        assert isinstance(self.farm, FarmPool), f"Not a farm: {self.farm}"
        assert isinstance(self.reward_router, SwapRouter), f"Not a router: {self.reward_router}"
        assert isinstance(self.liquidity_router, SwapRouter), f"Not a router: {self.liquidity_router}"
        assert isinstance(self.deposit_helper, DepositHelper), f"Not a deposit helper: {self.deposit_helper}"
        assert self.reward_route.token_in == self.reward_token.address, f"Reward route must start with the reward token, got {self.reward_route}"
        assert self.reward_route.token_out == self.native_token.address, f"Reward route must end with the native token, got {self.reward_route}"
        assert self.treasury != ZERO_ADDRESS, "Treasury missing"
        assert self.liquidity_fee_tier > 0, "fee must be non-zero"


class CompoundingStrategy(Contract, Ownable, Pausable):
    """Strategy contract bound to exactly one vault."""

    def __init__(
        self,
        chain: SimulatedChain,
        vault: HexAddress,
        params: StrategyParams,
        fees: StrategyFeeConfig | None = None,
        policy: StrategyPolicy | None = None,
    ):
        super().__init__(chain)
        self._init_ownable(self.msg_sender)

        if fees is None:
            fees = StrategyFeeConfig()

        if policy is None:
            policy = StrategyPolicy.hardened()

        self.vault = vault
        self.policy = policy

        self.staking_token = params.staking_token
        self.reward_token = params.reward_token
        self.native_token = params.native_token
        self.deposit_token = params.deposit_token
        self.farm = params.farm
        self.reward_router = params.reward_router
        self.liquidity_router = params.liquidity_router
        self.deposit_helper = params.deposit_helper
        self.treasury = params.treasury
        self.reward_route = params.reward_route
        self.liquidity_fee_tier = params.liquidity_fee_tier

        self.withdrawal_fee = fees.withdrawal_fee
        self.platform_fee = fees.platform_fee
        self.call_fee = fees.call_fee
        self.divisor = fees.divisor
        self.slippage_tolerance = fees.slippage_tolerance

        self.harvest_on_deposit = False
        self.last_harvest = 0

        self.allowances = AllowanceLedger(self)
        self.allowances.register(self.staking_token, self.farm.address)
        self.allowances.register(self.reward_token, self.reward_router.address)
        if self.native_token.address != self.deposit_token.address:
            self.allowances.register(self.native_token, self.liquidity_router.address)
        self.allowances.register(self.deposit_token, self.deposit_helper.address)
        self.allowances.give_allowances()

        logger.info("Strategy %s deployed for vault %s with policy %s", self.address, vault, policy)

    def _only_vault(self):
        if self.msg_sender != self.vault:
            raise Unauthorized("!vault")

    def _call_external(self, context: str, func: Callable, *args) -> Any:
        """Call a collaborator contract.

        With :py:attr:`StrategyPolicy.wrap_external_errors` the failure is re-reported
        with context and marked structured when it carried a revert reason.
        """
        if not self.policy.wrap_external_errors:
            return self.call(func, *args)

        try:
            return self.call(func, *args)
        except TransactionReverted as e:
            raise ExternalCallFailed(f"{context} failed: {e.reason}", structured=True, downstream_reason=e.reason) from e
        except Exception as e:
            raise ExternalCallFailed(f"{context} failed without a reason", structured=False) from e

    #
    # Capital movement
    #

    @nonreentrant
    @when_not_paused
    def deposit(self):
        """Put the idle staking token to work in the farm."""
        self._only_vault()
        self._deposit()

    def _deposit(self):
        want_bal = self.balance_of_staking_token()
        if want_bal > 0:
            logger.debug("Depositing %d %s to farm %s", want_bal, self.staking_token.symbol, self.farm.address)
            self._call_external("Farm deposit", self.farm.deposit, want_bal)
            self.emit("Deposit", tvl=self.balance_of())

    @nonreentrant
    def withdraw(self, amount: int):
        """Send staking tokens back to the vault.

        Pulls the shortfall from the farm. The vault gets at most what became available,
        minus the withdrawal fee when it applies.
        """
        self._only_vault()

        want_bal = self.balance_of_staking_token()
        if want_bal < amount:
            self._call_external("Farm withdraw", self.farm.withdraw, amount - want_bal)
            want_bal = self.balance_of_staking_token()
            if want_bal < amount:
                logger.warning("Farm freed only %d of requested %d", want_bal, amount)

        if want_bal > amount:
            want_bal = amount

        if self._is_withdrawal_fee_charged():
            want_bal -= calculate_withdrawal_fee(want_bal, self.withdrawal_fee, WITHDRAWAL_MAX)

        self.call(self.staking_token.transfer, self.vault, want_bal)
        self.emit("Withdraw", tvl=self.balance_of())
        return want_bal

    def _is_withdrawal_fee_charged(self) -> bool:
        if self.paused:
            logger.warning("Strategy %s is paused, withdrawal fee not charged", self.address)
            return False
        if self.harvest_on_deposit:
            return False
        if self.policy.waive_withdrawal_fee_for_vault_owner and self.tx_origin == self._get_vault_owner():
            return False
        return True

    def _get_vault_owner(self) -> HexAddress | None:
        if not self.chain.is_contract(self.vault):
            return None
        return getattr(self.chain.get_contract(self.vault), "owner", None)

    @nonreentrant
    def before_deposit(self):
        """Vault hook before it takes a deposit."""
        if self.harvest_on_deposit:
            self._only_vault()
            self._harvest(self.tx_origin)

    @nonreentrant
    def retire_strat(self):
        """Empty the strategy into the vault during a migration."""
        self._only_vault()

        pool_bal = self.balance_of_pool()
        if pool_bal > 0:
            self._call_external("Farm withdraw", self.farm.withdraw, pool_bal)

        want_bal = self.balance_of_staking_token()
        logger.info("Strategy %s retired, returning %d %s to vault", self.address, want_bal, self.staking_token.symbol)
        self.call(self.staking_token.transfer, self.vault, want_bal)

    #
    # Harvest
    #

    @nonreentrant
    def harvest(self):
        """Compound the rewards.

        Anyone may call, but see :py:class:`eth_compounder.policy.HarvestAuthorisation`
        for which contract intermediaries are let through.

        Refused while the vault is inside a deposit, withdraw or upgrade,
        as a harvest there would land inside the vault's before/after balance window.
        """
        sender = self.msg_sender
        origin = self.tx_origin

        if self.chain.is_contract(self.vault) and is_locked(self.chain.get_contract(self.vault)):
            raise ReentrancyError("ReentrancyGuard: reentrant call")

        match self.policy.harvest_authorisation:
            case HarvestAuthorisation.immediate_caller:
                if self.chain.is_contract(sender) and sender != self.vault:
                    raise Unauthorized("!contract")
                call_fee_recipient = origin if sender == self.vault else sender
            case HarvestAuthorisation.transaction_origin:
                # Transactions always start from an EOA, so only the fee recipient differs
                call_fee_recipient = origin
            case _:
                raise NotImplementedError(f"Unknown harvest authorisation: {self.policy.harvest_authorisation}")

        self._harvest(call_fee_recipient)

    @nonreentrant
    @only_owner
    def manager_harvest(self):
        """Owner triggered harvest, the call fee stays in the strategy and compounds."""
        self._harvest(self.address)

    def _harvest(self, call_fee_recipient: HexAddress):
        if self.paused:
            raise ContractPaused("Pausable: paused")

        self._call_external("Farm getReward", self.farm.get_reward, self.address, [self.reward_token.address])

        output_bal = self.reward_token.balance_of(self.address)
        want_harvested = 0
        if output_bal > 0:
            self._charge_fees(call_fee_recipient)
            self._add_liquidity()
            want_harvested = self.balance_of_staking_token()
            self._deposit()

        self.last_harvest = self.block_timestamp
        self.emit("StratHarvest", harvester=self.msg_sender, want_harvested=want_harvested, tvl=self.balance_of())
        logger.info(
            "Harvested %d %s rewards into %d %s, TVL now %d",
            output_bal,
            self.reward_token.symbol,
            want_harvested,
            self.staking_token.symbol,
            self.balance_of(),
        )

    def _charge_fees(self, call_fee_recipient: HexAddress) -> FeeSplit:
        to_native = self.reward_token.balance_of(self.address)
        if to_native == 0:
            raise PreconditionFailed("No rewards to swap")

        if self.policy.check_router_allowance:
            if self.reward_token.allowance(self.address, self.reward_router.address) < to_native:
                raise PreconditionFailed("Insufficient router allowance")

        self._call_external(
            "Reward swap",
            self.reward_router.exact_input,
            self.reward_route.encode(),
            self.address,
            to_native,
            0,
        )

        native_bal = self.native_token.balance_of(self.address)
        split = calculate_fee_split(native_bal, self.platform_fee, self.call_fee, self.divisor)

        paid_call_fee = 0
        if call_fee_recipient != self.address and split.call_fee_amount > 0:
            self.call(self.native_token.transfer, call_fee_recipient, split.call_fee_amount)
            paid_call_fee = split.call_fee_amount

        if split.treasury_amount > 0:
            self.call(self.native_token.transfer, self.treasury, split.treasury_amount)

        logger.debug("Charged fees %s, call fee paid to %s: %d", split, call_fee_recipient, paid_call_fee)
        self.emit("ChargedFees", call_fees=paid_call_fee, treasury_fees=split.treasury_amount)
        return split

    def _add_liquidity(self):
        native_bal = self.native_token.balance_of(self.address)

        if self.native_token.address != self.deposit_token.address and native_bal > 0:
            path = encode_path([self.native_token.address, self.deposit_token.address], [self.liquidity_fee_tier])

            amount_out_minimum = 0
            if self.policy.slippage_protection:
                quoted = self._call_external("Quote", self.liquidity_router.quote_exact_input, path, native_bal)
                amount_out_minimum = calculate_minimum_output(quoted, self.slippage_tolerance, SLIPPAGE_MAX)

            logger.debug("Swapping %d native, minimum out %d", native_bal, amount_out_minimum)
            self._call_external(
                "Liquidity swap",
                self.liquidity_router.exact_input,
                path,
                self.address,
                native_bal,
                amount_out_minimum,
            )

        deposit_bal = self.deposit_token.balance_of(self.address)
        if deposit_bal > 0:
            self._call_external("Deposit helper", self.deposit_helper.deposit, self.deposit_token.address, deposit_bal)

    #
    # Views
    #

    def balance_of(self) -> int:
        """Staking tokens held idle plus deployed in the farm."""
        return self.balance_of_staking_token() + self.balance_of_pool()

    def balance_of_staking_token(self) -> int:
        return self.staking_token.balance_of(self.address)

    def balance_of_pool(self) -> int:
        return self.farm.balance_of(self.address)

    def rewards_available(self) -> int:
        return self.farm.earned(self.reward_token.address, self.address)

    def harvest_call_reward(self) -> int:
        """Native token amount a harvest caller would get right now."""
        rewards = self.rewards_available()
        if rewards == 0:
            return 0
        native_out = self.reward_router.quote_exact_input(self.reward_route.encode(), rewards)
        return calculate_fee_split(native_out, self.platform_fee, self.call_fee, self.divisor).call_fee_amount

    #
    # Pause lifecycle
    #

    @only_owner
    def pause(self):
        self._pause()
        self.allowances.remove_allowances()
        logger.info("Strategy %s paused", self.address)

    @nonreentrant
    @only_owner
    def unpause(self):
        self._unpause()
        self.allowances.give_allowances()
        self._deposit()
        logger.info("Strategy %s unpaused", self.address)

    @nonreentrant
    @only_owner
    def panic(self):
        """Pause and pull everything out of the farm."""
        self.pause()
        pool_bal = self.balance_of_pool()
        if pool_bal > 0:
            self._call_external("Farm withdraw", self.farm.withdraw, pool_bal)
        logger.warning("Strategy %s panicked, %d %s pulled from the farm", self.address, pool_bal, self.staking_token.symbol)

    #
    # Configuration
    #

    @only_owner
    def set_vault(self, vault: HexAddress):
        self.vault = vault
        self.emit("SetVault", vault=vault)

    @only_owner
    def set_harvest_on_deposit(self, harvest_on_deposit: bool):
        self.harvest_on_deposit = harvest_on_deposit
        self.emit("SetHarvestOnDeposit", harvest_on_deposit=harvest_on_deposit)

    @only_owner
    def set_withdrawal_fee(self, fee: int):
        if not 0 <= fee <= WITHDRAWAL_FEE_CAP:
            raise PreconditionFailed("!cap")
        self.withdrawal_fee = fee
        self.emit("SetWithdrawalFee", withdrawal_fee=fee)

    @only_owner
    def set_slippage_tolerance(self, tolerance: int):
        if not 0 <= tolerance <= SLIPPAGE_TOLERANCE_CAP:
            raise PreconditionFailed("!cap")
        self.slippage_tolerance = tolerance
        self.emit("SetSlippageTolerance", slippage_tolerance=tolerance)

    @only_owner
    def set_call_fee(self, fee: int):
        if not 0 <= fee <= MAX_CALL_FEE:
            raise PreconditionFailed("!cap")
        self.call_fee = fee
        self.emit("SetCallFee", call_fee=fee)

    @only_owner
    def set_platform_fee(self, fee: int):
        if not 0 <= fee <= MAX_PLATFORM_FEE:
            raise PreconditionFailed("!cap")
        self.platform_fee = fee
        self.emit("SetPlatformFee", platform_fee=fee)

    @only_owner
    def set_treasury(self, treasury: HexAddress):
        if treasury == ZERO_ADDRESS:
            raise PreconditionFailed("!treasury")
        self.treasury = treasury
        self.emit("SetTreasury", treasury=treasury)
