"""Shared fixtures: a fresh simulated chain and a deployed vault per test."""

import pytest

from eth_compounder.chain import SimulatedChain
from eth_compounder.deployment import CompounderDeployment, deploy_compounder
from eth_compounder.strategy import CompoundingStrategy
from eth_compounder.token import MintableERC20Token
from eth_compounder.vault import CompoundingVault


@pytest.fixture()
def chain() -> SimulatedChain:
    """Set up a local unit testing ledger."""
    return SimulatedChain()


@pytest.fixture()
def deployer(chain) -> str:
    """Deploy account.

    Owns the vault and the strategy.
    """
    return chain.create_account("deployer")


@pytest.fixture()
def user_1(chain) -> str:
    """User account."""
    return chain.create_account("user_1")


@pytest.fixture()
def user_2(chain) -> str:
    """User account."""
    return chain.create_account("user_2")


@pytest.fixture()
def keeper(chain) -> str:
    """Calls harvest."""
    return chain.create_account("keeper")


@pytest.fixture()
def deployment(chain, deployer) -> CompounderDeployment:
    """Vault with the hardened strategy and default fees."""
    return deploy_compounder(chain, deployer)


@pytest.fixture()
def vault(deployment) -> CompoundingVault:
    return deployment.vault


@pytest.fixture()
def strategy(deployment) -> CompoundingStrategy:
    return deployment.strategy


@pytest.fixture()
def want(deployment) -> MintableERC20Token:
    """The staking token."""
    return deployment.staking_token


@pytest.fixture()
def deposit_for(chain, deployer, deployment):
    """Mint staking tokens to a user and deposit them to the vault.

    :return: Function returning the minted share count
    """

    def _deposit(user: str, amount: int) -> int:
        want = deployment.staking_token
        vault = deployment.vault
        chain.transact(deployer, want.mint, user, amount)
        chain.transact(user, want.approve, vault.address, amount)
        return chain.transact(user, vault.deposit, amount).return_value

    return _deposit


@pytest.fixture()
def accrue_rewards(chain, deployer, deployment):
    """Let the farm owe the strategy reward tokens."""

    def _accrue(amount: int):
        chain.transact(
            deployer,
            deployment.farm.notify_reward,
            deployment.vault.strategy.address,
            deployment.reward_token.address,
            amount,
        )

    return _accrue
