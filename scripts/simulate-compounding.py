"""Run a compounding vault through a few harvests and a strategy upgrade.

- Two depositors enter the vault
- The farm pays rewards, anyone harvests and the share price grows
- The owner migrates to a new strategy through the upgrade timelock
- Both depositors exit

Fees and the timelock can be tuned with ``COMPOUNDER_*`` environment variables,
see :py:func:`eth_compounder.config.load_config_from_env`.

Run:

.. code-block:: shell

    LOG_LEVEL=info python scripts/simulate-compounding.py

"""

from decimal import Decimal

from eth_compounder.chain import SimulatedChain
from eth_compounder.config import load_config_from_env
from eth_compounder.deployment import deploy_compounder, deploy_strategy
from eth_compounder.utils import setup_console_logging


def main():
    setup_console_logging()
    config = load_config_from_env()

    chain = SimulatedChain()
    deployer = chain.create_account("deployer")
    alice = chain.create_account("alice")
    bob = chain.create_account("bob")
    keeper = chain.create_account("keeper")

    deployment = deploy_compounder(chain, deployer, fees=config.fees, vault_config=config.vault)
    vault = deployment.vault
    strategy = deployment.strategy
    want = deployment.staking_token

    for user, amount in ((alice, Decimal(1000)), (bob, Decimal(500))):
        raw = want.convert_to_raw(amount)
        chain.transact(deployer, want.mint, user, raw)
        chain.transact(user, want.approve, vault.address, raw)
        chain.transact(user, vault.deposit, raw)

    print(f"Vault {vault.symbol} at {vault.address}")
    print(f"TVL after deposits: {want.convert_to_decimals(vault.balance()):,.4f} {want.symbol}")

    for day in range(1, 8):
        chain.time_travel(24 * 3600)
        chain.transact(deployer, deployment.farm.notify_reward, strategy.address, deployment.reward_token.address, deployment.reward_token.convert_to_raw(10))
        call_reward = strategy.harvest_call_reward()
        chain.transact(keeper, strategy.harvest)
        price = Decimal(vault.get_price_per_full_share()) / Decimal(10**18)
        print(f"Day {day}: call reward {deployment.native_token.convert_to_decimals(call_reward):.8f} WETH, price per share {price:.6f}")

    new_strategy = deploy_strategy(chain, deployer, vault, deployment.strategy_params, config.fees)
    chain.transact(deployer, vault.propose_strategy_upgrade, new_strategy.address)
    chain.time_travel(vault.approval_delay + 1)
    chain.transact(deployer, vault.upgrade_strat)
    print(f"Upgraded to strategy {vault.strategy.address}, TVL {want.convert_to_decimals(vault.balance()):,.4f}")

    for user, label in ((alice, "Alice"), (bob, "Bob")):
        receipt = chain.transact(user, vault.withdraw_all)
        print(f"{label} withdrew {want.convert_to_decimals(receipt.return_value):,.4f} {want.symbol}")

    print(f"Treasury earned {deployment.native_token.convert_to_decimals(deployment.native_token.balance_of(deployment.treasury)):.8f} WETH")
    print(f"Keeper earned {deployment.native_token.convert_to_decimals(deployment.native_token.balance_of(keeper)):.8f} WETH")


if __name__ == "__main__":
    main()
