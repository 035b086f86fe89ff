"""Deploy a vault, its strategy and simulated collaborators.

Example:

.. code-block:: python

    chain = SimulatedChain()
    deployer = chain.create_account("deployer")
    deployment = deploy_compounder(chain, deployer)

    vault = deployment.vault
    strategy = deployment.strategy

"""

import logging
from dataclasses import dataclass

from eth_typing import HexAddress

from eth_compounder.chain import SimulatedChain
from eth_compounder.config import StrategyFeeConfig, VaultConfig
from eth_compounder.path import FeeTier, SwapRoute
from eth_compounder.policy import StrategyPolicy
from eth_compounder.strategy import CompoundingStrategy, StrategyParams
from eth_compounder.testing import SimulatedDepositHelper, SimulatedFarm, SimulatedSwapRouter
from eth_compounder.token import MintableERC20Token
from eth_compounder.vault import CompoundingVault


logger = logging.getLogger(__name__)


@dataclass
class CompounderDeployment:
    """Everything :py:func:`deploy_compounder` created."""

    chain: SimulatedChain

    #: Owner of the vault and the strategy
    deployer: HexAddress

    #: Receives platform fees
    treasury: HexAddress

    vault: CompoundingVault

    strategy: CompoundingStrategy

    #: What the vault accepts
    staking_token: MintableERC20Token

    #: What the farm pays
    reward_token: MintableERC20Token

    #: Middle hop of the reward route
    intermediate_token: MintableERC20Token

    #: Fee token
    native_token: MintableERC20Token

    #: What the deposit helper wraps
    deposit_token: MintableERC20Token

    farm: SimulatedFarm

    router: SimulatedSwapRouter

    deposit_helper: SimulatedDepositHelper

    #: Wiring used for the first strategy, reusable for upgrades
    strategy_params: StrategyParams


def deploy_strategy(
    chain: SimulatedChain,
    deployer: HexAddress,
    vault: CompoundingVault,
    params: StrategyParams,
    fees: StrategyFeeConfig | None = None,
    policy: StrategyPolicy | None = None,
) -> CompoundingStrategy:
    """Deploy a strategy bound to an existing vault."""
    strategy = chain.deploy(deployer, CompoundingStrategy, vault.address, params, fees, policy)
    logger.info("Deployed strategy %s for vault %s", strategy.address, vault.address)
    return strategy


def deploy_compounder(
    chain: SimulatedChain,
    deployer: HexAddress,
    *,
    treasury: HexAddress | None = None,
    fees: StrategyFeeConfig | None = None,
    policy: StrategyPolicy | None = None,
    vault_config: VaultConfig | None = None,
    staking_token: MintableERC20Token | None = None,
) -> CompounderDeployment:
    """Deploy a complete simulated setup.

    Reward route is ``RWD -(0.3%)-> USDC -(0.05%)-> WETH``, the liquidity swap is
    ``WETH -(0.05%)-> DAI`` and the deposit helper wraps DAI 1:1 into the staking token.

    :param staking_token:
        Bring your own staking token, e.g. a :py:class:`eth_compounder.token.DeflationaryERC20Token`

    :return:
        Initialised vault and strategy with their collaborators
    """
    if treasury is None:
        treasury = chain.create_account("treasury")

    if staking_token is None:
        staking_token = chain.deploy(deployer, MintableERC20Token, "Staked DAI", "sDAI")

    reward_token = chain.deploy(deployer, MintableERC20Token, "Reward", "RWD")
    intermediate_token = chain.deploy(deployer, MintableERC20Token, "USD Coin", "USDC")
    native_token = chain.deploy(deployer, MintableERC20Token, "Wrapped Ether", "WETH")
    deposit_token = chain.deploy(deployer, MintableERC20Token, "Dai Stablecoin", "DAI")

    farm = chain.deploy(deployer, SimulatedFarm, staking_token, [reward_token])
    router = chain.deploy(deployer, SimulatedSwapRouter)
    deposit_helper = chain.deploy(deployer, SimulatedDepositHelper, deposit_token, staking_token)

    chain.transact(deployer, router.set_rate, reward_token, intermediate_token, FeeTier.fee_30bps, 2)
    chain.transact(deployer, router.set_rate, intermediate_token, native_token, FeeTier.fee_5bps, 1, 2000)
    chain.transact(deployer, router.set_rate, native_token, deposit_token, FeeTier.fee_5bps, 2000)

    params = StrategyParams(
        staking_token=staking_token,
        reward_token=reward_token,
        native_token=native_token,
        deposit_token=deposit_token,
        farm=farm,
        reward_router=router,
        liquidity_router=router,
        deposit_helper=deposit_helper,
        treasury=treasury,
        reward_route=SwapRoute.create(
            [reward_token.address, intermediate_token.address, native_token.address],
            [FeeTier.fee_30bps, FeeTier.fee_5bps],
        ),
        liquidity_fee_tier=FeeTier.fee_5bps,
    )

    vault = chain.deploy(deployer, CompoundingVault, staking_token, vault_config)
    strategy = deploy_strategy(chain, deployer, vault, params, fees, policy)
    chain.transact(deployer, vault.initialize, strategy)

    logger.info("Deployed vault %s (%s) with strategy %s", vault.address, vault.symbol, strategy.address)

    return CompounderDeployment(
        chain=chain,
        deployer=deployer,
        treasury=treasury,
        vault=vault,
        strategy=strategy,
        staking_token=staking_token,
        reward_token=reward_token,
        intermediate_token=intermediate_token,
        native_token=native_token,
        deposit_token=deposit_token,
        farm=farm,
        router=router,
        deposit_helper=deposit_helper,
        strategy_params=params,
    )
