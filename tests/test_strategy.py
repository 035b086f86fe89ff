"""Compounding strategy: harvest, fees, pause lifecycle and configuration."""

import dataclasses

import pytest

from eth_compounder.chain import ZERO_ADDRESS
from eth_compounder.deployment import deploy_compounder, deploy_strategy
from eth_compounder.errors import ContractPaused, ExternalCallFailed, PreconditionFailed, TransactionReverted, Unauthorized
from eth_compounder.interfaces import DepositHelper, FarmPool, FungibleToken, SwapRouter
from eth_compounder.policy import StrategyPolicy
from eth_compounder.testing import HarvestProxy, SimulatedDepositHelper, SimulatedSwapRouter
from eth_compounder.token import MAX_UINT256
from eth_compounder.vault import CompoundingVault


#: 10 RWD of rewards
REWARDS = 10 * 10**18

#: What the default deployment turns 10 RWD into
NATIVE_OUT = 9_965_015_000_000_000
CALL_FEE = 49_775_249_925_000
TREASURY_FEE = 398_650_425_075_000
WANT_HARVESTED = 19_023_662_060_675_000_000


@pytest.fixture()
def funded(deposit_for, user_1):
    """Vault with 1000 sDAI in the farm."""
    deposit_for(user_1, 1000 * 10**18)


def test_strategy_wiring(deployment, strategy, deployer):
    assert strategy.vault == deployment.vault.address
    assert strategy.owner == deployer
    assert not strategy.paused
    outstanding = strategy.allowances.get_outstanding()
    assert outstanding == {
        (deployment.staking_token.address, deployment.farm.address): MAX_UINT256,
        (deployment.reward_token.address, deployment.router.address): MAX_UINT256,
        (deployment.native_token.address, deployment.router.address): MAX_UINT256,
        (deployment.deposit_token.address, deployment.deposit_helper.address): MAX_UINT256,
    }


def test_collaborator_capabilities(deployment):
    assert isinstance(deployment.farm, FarmPool)
    assert isinstance(deployment.router, SwapRouter)
    assert isinstance(deployment.deposit_helper, DepositHelper)
    assert isinstance(deployment.staking_token, FungibleToken)
    assert not isinstance(deployment.staking_token, FarmPool)


def test_harvest(chain, deployment, vault, strategy, keeper, funded, accrue_rewards):
    """Rewards are swapped, fees paid and the rest compounded back to the farm."""
    accrue_rewards(REWARDS)
    assert strategy.rewards_available() == REWARDS
    assert strategy.harvest_call_reward() == CALL_FEE

    price_before = vault.get_price_per_full_share()
    chain.time_travel(3600)
    receipt = chain.transact(keeper, strategy.harvest)

    native = deployment.native_token
    assert native.balance_of(keeper) == CALL_FEE
    assert native.balance_of(deployment.treasury) == TREASURY_FEE
    assert native.balance_of(strategy.address) == 0
    assert deployment.reward_token.balance_of(strategy.address) == 0
    assert deployment.deposit_token.balance_of(strategy.address) == 0

    assert strategy.balance_of_pool() == 1000 * 10**18 + WANT_HARVESTED
    assert strategy.balance_of_staking_token() == 0
    assert strategy.rewards_available() == 0
    assert strategy.last_harvest == chain.timestamp
    assert vault.get_price_per_full_share() > price_before

    charged = receipt.get_events("ChargedFees")[0]
    assert charged.args == {"call_fees": CALL_FEE, "treasury_fees": TREASURY_FEE}

    harvest_event = receipt.get_events("StratHarvest")[0]
    assert harvest_event.emitter == strategy.address
    assert harvest_event.args["harvester"] == keeper
    assert harvest_event.args["want_harvested"] == WANT_HARVESTED
    assert harvest_event.args["tvl"] == 1000 * 10**18 + WANT_HARVESTED


def test_harvest_without_rewards(chain, deployment, vault, strategy, keeper, funded):
    """Nothing to compound, but the harvest is still recorded."""
    vault_balance = vault.balance()
    pool_balance = strategy.balance_of_pool()

    chain.time_travel(60)
    receipt = chain.transact(keeper, strategy.harvest)
    assert receipt.get_events("ChargedFees") == []
    assert receipt.get_events("StratHarvest")[0].args["want_harvested"] == 0
    assert strategy.last_harvest == chain.timestamp
    assert deployment.native_token.balance_of(keeper) == 0
    assert strategy.harvest_call_reward() == 0
    assert deployment.native_token.balance_of(deployment.treasury) == 0
    assert vault.balance() == vault_balance
    assert strategy.balance_of_pool() == pool_balance


def test_harvest_native_is_deposit_token(chain, deployer, deployment, keeper, user_1):
    """No liquidity swap when the fee token is what the deposit helper takes."""
    native = deployment.native_token
    want = deployment.staking_token

    # A router without pools reverts on any swap
    liquidity_router = chain.deploy(deployer, SimulatedSwapRouter)
    deposit_helper = chain.deploy(deployer, SimulatedDepositHelper, native, want)
    params = dataclasses.replace(
        deployment.strategy_params,
        deposit_token=native,
        deposit_helper=deposit_helper,
        liquidity_router=liquidity_router,
    )

    vault = chain.deploy(deployer, CompoundingVault, want)
    strategy = deploy_strategy(chain, deployer, vault, params)
    chain.transact(deployer, vault.initialize, strategy)

    outstanding = strategy.allowances.get_outstanding()
    assert (native.address, liquidity_router.address) not in outstanding
    assert outstanding[(native.address, deposit_helper.address)] == MAX_UINT256

    chain.transact(deployer, want.mint, user_1, 1000 * 10**18)
    chain.transact(user_1, want.approve, vault.address, 1000 * 10**18)
    chain.transact(user_1, vault.deposit, 1000 * 10**18)
    chain.transact(deployer, deployment.farm.notify_reward, strategy.address, deployment.reward_token.address, REWARDS)

    receipt = chain.transact(keeper, strategy.harvest)

    # The whole native balance after fees is wrapped 1:1
    want_harvested = NATIVE_OUT - CALL_FEE - TREASURY_FEE
    assert receipt.get_events("StratHarvest")[0].args["want_harvested"] == want_harvested
    assert strategy.balance_of_pool() == 1000 * 10**18 + want_harvested
    assert native.balance_of(keeper) == CALL_FEE
    assert native.balance_of(strategy.address) == 0
    assert native.balance_of(deposit_helper.address) == want_harvested
    assert native.balance_of(liquidity_router.address) == 0
    assert liquidity_router.tokens == {}


def test_manager_harvest(chain, deployer, deployment, strategy, keeper, funded, accrue_rewards):
    """Owner harvest keeps the call fee in the strategy."""
    accrue_rewards(REWARDS)

    with pytest.raises(Unauthorized):
        chain.transact(keeper, strategy.manager_harvest)

    receipt = chain.transact(deployer, strategy.manager_harvest)
    assert receipt.get_events("ChargedFees")[0].args == {"call_fees": 0, "treasury_fees": TREASURY_FEE}
    assert deployment.native_token.balance_of(deployer) == 0
    assert deployment.native_token.balance_of(deployment.treasury) == TREASURY_FEE
    assert receipt.get_events("StratHarvest")[0].args["want_harvested"] > WANT_HARVESTED


def test_zero_call_fee(chain, deployer, deployment, strategy, keeper, funded, accrue_rewards):
    chain.transact(deployer, strategy.set_call_fee, 0)
    accrue_rewards(REWARDS)
    chain.transact(keeper, strategy.harvest)
    assert deployment.native_token.balance_of(keeper) == 0
    assert deployment.native_token.balance_of(deployment.treasury) == TREASURY_FEE + CALL_FEE


def test_capital_movement_only_from_vault(chain, strategy, user_1, funded):
    with pytest.raises(Unauthorized) as excinfo:
        chain.transact(user_1, strategy.deposit)
    assert excinfo.value.reason == "!vault"

    with pytest.raises(Unauthorized):
        chain.transact(user_1, strategy.withdraw, 1)

    with pytest.raises(Unauthorized):
        chain.transact(user_1, strategy.retire_strat)


def test_pause(chain, deployer, vault, strategy, user_1, user_2, funded, deposit_for):
    """Paused strategy has no allowances, refuses deposits and harvests, lets holders out fee free."""
    receipt = chain.transact(deployer, strategy.pause)
    assert receipt.get_events("Paused")[0].args == {"account": deployer}
    assert strategy.paused
    assert not strategy.allowances.has_outstanding()

    with pytest.raises(ContractPaused):
        deposit_for(user_2, 1000)

    with pytest.raises(ContractPaused):
        chain.transact(user_1, strategy.harvest)

    with pytest.raises(ContractPaused) as excinfo:
        chain.transact(deployer, strategy.pause)
    assert excinfo.value.reason == "Pausable: paused"

    receipt = chain.transact(user_1, vault.withdraw_all)
    assert receipt.return_value == 1000 * 10**18


def test_unpause(chain, deployer, deployment, strategy, funded):
    """Unpausing restores allowances and puts idle funds back to work."""
    chain.transact(deployer, strategy.panic)
    assert strategy.balance_of_pool() == 0

    chain.transact(deployer, strategy.unpause)
    assert not strategy.paused
    assert all(amount == MAX_UINT256 for amount in strategy.allowances.get_outstanding().values())
    assert strategy.balance_of_pool() == 1000 * 10**18
    assert strategy.balance_of_staking_token() == 0

    with pytest.raises(ContractPaused) as excinfo:
        chain.transact(deployer, strategy.unpause)
    assert excinfo.value.reason == "Pausable: not paused"


def test_panic(chain, deployer, vault, strategy, user_1, funded):
    """Panic pulls everything out of the farm but keeps the vault whole."""
    balance_before = vault.balance()

    with pytest.raises(Unauthorized):
        chain.transact(user_1, strategy.panic)

    chain.transact(deployer, strategy.panic)
    assert strategy.paused
    assert strategy.balance_of_pool() == 0
    assert strategy.balance_of_staking_token() == balance_before
    assert vault.balance() == balance_before
    assert not strategy.allowances.has_outstanding()


@pytest.mark.parametrize(
    "setter,too_high",
    [
        ("set_withdrawal_fee", 101),
        ("set_slippage_tolerance", 1501),
        ("set_call_fee", 112),
        ("set_platform_fee", 101),
    ],
)
def test_setter_caps(chain, deployer, strategy, setter, too_high):
    func = getattr(strategy, setter)

    with pytest.raises(PreconditionFailed) as excinfo:
        chain.transact(deployer, func, too_high)
    assert excinfo.value.reason == "!cap"

    with pytest.raises(PreconditionFailed):
        chain.transact(deployer, func, -1)

    receipt = chain.transact(deployer, func, too_high - 1)
    assert len(receipt.events) == 1


def test_setters_owner_only(chain, strategy, user_1):
    with pytest.raises(Unauthorized) as excinfo:
        chain.transact(user_1, strategy.set_withdrawal_fee, 0)
    assert excinfo.value.reason == "Ownable: caller is not the owner"

    with pytest.raises(Unauthorized):
        chain.transact(user_1, strategy.set_treasury, user_1)

    with pytest.raises(Unauthorized):
        chain.transact(user_1, strategy.set_harvest_on_deposit, True)


def test_set_treasury(chain, deployer, strategy, user_2):
    with pytest.raises(PreconditionFailed) as excinfo:
        chain.transact(deployer, strategy.set_treasury, ZERO_ADDRESS)
    assert excinfo.value.reason == "!treasury"

    chain.transact(deployer, strategy.set_treasury, user_2)
    assert strategy.treasury == user_2


def test_set_vault(chain, deployer, vault, strategy, user_1):
    chain.transact(deployer, strategy.set_vault, user_1)
    chain.transact(user_1, strategy.retire_strat)
    assert strategy.vault == user_1


def test_transfer_ownership(chain, deployer, strategy, user_1):
    chain.transact(deployer, strategy.transfer_ownership, user_1)
    assert strategy.owner == user_1

    with pytest.raises(Unauthorized):
        chain.transact(deployer, strategy.pause)

    chain.transact(user_1, strategy.pause)
    assert strategy.paused


def test_harvest_on_deposit(chain, deployer, deployment, vault, strategy, user_1, user_2, deposit_for, accrue_rewards):
    """Each deposit harvests first and the depositor gets the call fee."""
    chain.transact(deployer, strategy.set_harvest_on_deposit, True)
    deposit_for(user_1, 1000 * 10**18)
    accrue_rewards(REWARDS)

    deposit_for(user_2, 1000 * 10**18)
    assert deployment.native_token.balance_of(user_2) == CALL_FEE

    harvest_event = chain.get_events("StratHarvest")[-1]
    assert harvest_event.args["harvester"] == vault.address
    assert harvest_event.args["want_harvested"] == WANT_HARVESTED

    # No withdrawal fee with harvest on deposit
    receipt = chain.transact(user_2, vault.withdraw_all)
    assert 0 <= 1000 * 10**18 - receipt.return_value <= 1


def test_before_deposit_only_vault(chain, deployer, strategy, user_1):
    # No-op when harvest on deposit is off
    chain.transact(user_1, strategy.before_deposit)

    chain.transact(deployer, strategy.set_harvest_on_deposit, True)
    with pytest.raises(Unauthorized):
        chain.transact(user_1, strategy.before_deposit)


def test_slippage_protection(chain, deployer, deployment, strategy, keeper, funded, accrue_rewards):
    """Liquidity swap reverts when the execution is worse than the tolerance allows."""
    accrue_rewards(REWARDS)
    chain.transact(deployer, deployment.router.set_execution_slippage, 200)

    with pytest.raises(ExternalCallFailed) as excinfo:
        chain.transact(keeper, strategy.harvest)
    assert excinfo.value.reason == "Liquidity swap failed: Too little received"
    assert excinfo.value.structured
    assert excinfo.value.downstream_reason == "Too little received"

    # Rolled back, rewards still waiting
    assert strategy.rewards_available() == REWARDS
    assert deployment.native_token.balance_of(keeper) == 0

    chain.transact(deployer, strategy.set_slippage_tolerance, 300)
    chain.transact(keeper, strategy.harvest)
    assert strategy.rewards_available() == 0


def test_unprotected_swap(chain, deployer, keeper, user_1):
    """Base revision accepts whatever the router gives."""
    deployment = deploy_compounder(chain, deployer, policy=StrategyPolicy.base())
    strategy = deployment.strategy
    want = deployment.staking_token

    chain.transact(deployer, want.mint, user_1, 1000)
    chain.transact(user_1, want.approve, deployment.vault.address, 1000)
    chain.transact(user_1, deployment.vault.deposit, 1000)
    chain.transact(deployer, deployment.farm.notify_reward, strategy.address, deployment.reward_token.address, REWARDS)
    chain.transact(deployer, deployment.router.set_execution_slippage, 200)

    receipt = chain.transact(keeper, strategy.harvest)
    assert 0 < receipt.get_events("StratHarvest")[0].args["want_harvested"] < WANT_HARVESTED


def test_structured_external_failure(chain, deployment, strategy, keeper, funded, monkeypatch):
    def get_reward(account, reward_tokens):
        raise TransactionReverted("Farm is shut")

    monkeypatch.setattr(deployment.farm, "get_reward", get_reward)

    with pytest.raises(ExternalCallFailed) as excinfo:
        chain.transact(keeper, strategy.harvest)
    assert excinfo.value.reason == "Farm getReward failed: Farm is shut"
    assert excinfo.value.structured
    assert excinfo.value.downstream_reason == "Farm is shut"


def test_unstructured_external_failure(chain, deployment, strategy, keeper, funded, monkeypatch):
    def get_reward(account, reward_tokens):
        return 1 // 0

    monkeypatch.setattr(deployment.farm, "get_reward", get_reward)

    with pytest.raises(ExternalCallFailed) as excinfo:
        chain.transact(keeper, strategy.harvest)
    assert not excinfo.value.structured
    assert excinfo.value.downstream_reason is None
    assert isinstance(excinfo.value.__cause__, ZeroDivisionError)


def test_unwrapped_external_failure(chain, deployer, keeper, monkeypatch):
    """Base revision lets collaborator failures through as is."""
    deployment = deploy_compounder(chain, deployer, policy=StrategyPolicy.base())

    def get_reward(account, reward_tokens):
        return 1 // 0

    monkeypatch.setattr(deployment.farm, "get_reward", get_reward)

    with pytest.raises(ZeroDivisionError):
        chain.transact(keeper, deployment.strategy.harvest)


def test_router_allowance_check(chain, deployment, strategy, keeper, funded, accrue_rewards):
    accrue_rewards(REWARDS)
    deployment.reward_token.allowances[(strategy.address, deployment.router.address)] = 0

    with pytest.raises(PreconditionFailed) as excinfo:
        chain.transact(keeper, strategy.harvest)
    assert excinfo.value.reason == "Insufficient router allowance"


def test_harvest_from_contract_rejected(chain, deployer, strategy, keeper, funded, accrue_rewards):
    """A contract in front of harvest() is turned away."""
    proxy = chain.deploy(deployer, HarvestProxy)
    accrue_rewards(REWARDS)

    with pytest.raises(Unauthorized) as excinfo:
        chain.transact(keeper, proxy.harvest, strategy)
    assert excinfo.value.reason == "!contract"
    assert strategy.rewards_available() == REWARDS


def test_harvest_from_contract_base_policy(chain, deployer, keeper):
    """Base revision only looks at the transaction origin, who gets the call fee."""
    deployment = deploy_compounder(chain, deployer, policy=StrategyPolicy.base())
    strategy = deployment.strategy
    proxy = chain.deploy(deployer, HarvestProxy)
    chain.transact(deployer, deployment.farm.notify_reward, strategy.address, deployment.reward_token.address, REWARDS)

    chain.transact(keeper, proxy.harvest, strategy)
    assert deployment.native_token.balance_of(keeper) == CALL_FEE
    assert deployment.native_token.balance_of(proxy.address) == 0


def test_vault_owner_withdrawal_fee_waiver(chain, deployer, user_1):
    """Base revision does not charge the vault owner a withdrawal fee."""
    deployment = deploy_compounder(chain, deployer, policy=StrategyPolicy.base())
    vault = deployment.vault
    want = deployment.staking_token

    for user in (deployer, user_1):
        chain.transact(deployer, want.mint, user, 1_000_000)
        chain.transact(user, want.approve, vault.address, 1_000_000)
        chain.transact(user, vault.deposit, 1_000_000)

    assert chain.transact(deployer, vault.withdraw_all).return_value == 1_000_000
    assert chain.transact(user_1, vault.withdraw_all).return_value == 999_000
