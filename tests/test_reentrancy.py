"""Guarded entry points refuse re-entry from token hooks."""

import pytest

from eth_compounder.deployment import deploy_compounder
from eth_compounder.errors import ExternalCallFailed, ReentrancyError
from eth_compounder.policy import StrategyPolicy
from eth_compounder.testing import ReentrantCaller


@pytest.fixture()
def attacker(chain, deployer, want) -> ReentrantCaller:
    """Transfer hook installed on the staking token."""
    attacker = chain.deploy(deployer, ReentrantCaller)
    chain.transact(deployer, want.set_transfer_hook, attacker)
    return attacker


def test_reenter_deposit(chain, deployer, vault, want, user_1, attacker):
    """Deposit calling back into deposit fails and leaves nothing behind."""
    chain.transact(deployer, want.mint, user_1, 1000)
    chain.transact(user_1, want.approve, vault.address, 1000)
    chain.transact(deployer, attacker.arm, vault, "deposit", 1)

    with pytest.raises(ReentrancyError) as excinfo:
        chain.transact(user_1, vault.deposit, 1000)
    assert excinfo.value.reason == "ReentrancyGuard: reentrant call"

    assert want.balance_of(user_1) == 1000
    assert vault.total_supply == 0
    assert vault.balance() == 0
    assert attacker.armed

    # The lock does not outlive the failed transaction
    chain.transact(deployer, want.set_transfer_hook, None)
    chain.transact(user_1, vault.deposit, 1000)
    assert vault.balance_of(user_1) == 1000


def test_reenter_withdraw(chain, deployer, vault, want, user_1, attacker, deposit_for):
    """Withdraw calling back into withdraw from the farm payout fails.

    The farm call is wrapped by the strategy, the lock violation is the cause.
    """
    deposit_for(user_1, 1000)
    chain.transact(deployer, attacker.arm, vault, "withdraw", 1)

    with pytest.raises(ExternalCallFailed) as excinfo:
        chain.transact(user_1, vault.withdraw, 500)
    assert excinfo.value.structured
    assert excinfo.value.downstream_reason == "ReentrancyGuard: reentrant call"
    assert isinstance(excinfo.value.__cause__, ReentrancyError)

    assert vault.balance_of(user_1) == 1000
    assert vault.balance() == 1000
    assert want.balance_of(user_1) == 0


def test_reenter_strategy(chain, deployer, vault, strategy, user_1, attacker, deposit_for):
    """The strategy has its own lock."""
    deposit_for(user_1, 1000)
    chain.transact(deployer, attacker.arm, strategy, "deposit")

    with pytest.raises(ExternalCallFailed) as excinfo:
        chain.transact(user_1, vault.withdraw, 500)
    assert isinstance(excinfo.value.__cause__, ReentrancyError)
    assert strategy.balance_of_pool() == 1000


def test_harvest_during_deposit(chain, deployer, user_1, user_2):
    """A harvest from inside a deposit would hand the new depositor the pending yield.

    Even with the permissive harvest authorisation the strategy refuses
    while the vault is in the middle of an entry point.
    """
    deployment = deploy_compounder(chain, deployer, policy=StrategyPolicy.base())
    vault = deployment.vault
    strategy = deployment.strategy
    want = deployment.staking_token

    chain.transact(deployer, want.mint, user_1, 1000 * 10**18)
    chain.transact(user_1, want.approve, vault.address, 1000 * 10**18)
    chain.transact(user_1, vault.deposit, 1000 * 10**18)
    chain.transact(deployer, deployment.farm.notify_reward, strategy.address, deployment.reward_token.address, 10 * 10**18)

    attacker = chain.deploy(deployer, ReentrantCaller)
    chain.transact(deployer, want.set_transfer_hook, attacker)
    chain.transact(deployer, want.mint, user_2, 1000 * 10**18)
    chain.transact(user_2, want.approve, vault.address, 1000 * 10**18)
    chain.transact(deployer, attacker.arm, strategy, "harvest")

    with pytest.raises(ReentrancyError):
        chain.transact(user_2, vault.deposit, 1000 * 10**18)

    assert vault.balance_of(user_2) == 0
    assert vault.balance_of(user_1) == 1000 * 10**18
    assert want.balance_of(user_2) == 1000 * 10**18
    assert strategy.rewards_available() == 10 * 10**18
    assert strategy.last_harvest == 0

    # Outside of a deposit the same harvest goes through
    chain.transact(deployer, want.set_transfer_hook, None)
    chain.transact(user_2, strategy.harvest)
    assert strategy.rewards_available() == 0
    assert vault.balance() > 1000 * 10**18
