"""Simulated collaborator contracts for tests and scripts.

- :py:class:`SimulatedFarm`: reward pool with manually fed rewards and an optional withdraw cap
- :py:class:`SimulatedSwapRouter`: fixed-rate pools with Uniswap v3 style paths, fees and a quoter
- :py:class:`SimulatedDepositHelper`: wraps the deposit token into the staking token
- :py:class:`ReentrantCaller`: token transfer hook that calls back into a target contract
- :py:class:`HarvestProxy`: a contract intermediary in front of ``harvest()``
"""

import logging

from eth_typing import HexAddress

from eth_compounder.chain import Contract, SimulatedChain
from eth_compounder.errors import PreconditionFailed, TransactionReverted
from eth_compounder.path import FEE_DENOMINATOR, split_hops
from eth_compounder.token import ERC20Token, MintableERC20Token


logger = logging.getLogger(__name__)


class SimulatedFarm(Contract):
    """Staking ledger paying rewards that tests feed in with :py:meth:`notify_reward`."""

    def __init__(self, chain: SimulatedChain, staking_token: ERC20Token, reward_tokens: list[MintableERC20Token]):
        super().__init__(chain)
        self.staking_token = staking_token
        self.reward_tokens = {t.address: t for t in reward_tokens}
        self.balances: dict[HexAddress, int] = {}
        self.total_staked = 0
        self.rewards: dict[tuple[HexAddress, HexAddress], int] = {}

        #: Emulate farms that release only part of a withdrawal
        self.max_withdraw_per_call: int | None = None

    def deposit(self, amount: int):
        if amount <= 0:
            raise PreconditionFailed("Cannot stake 0")
        staker = self.msg_sender
        before = self.staking_token.balance_of(self.address)
        self.call(self.staking_token.transfer_from, staker, self.address, amount)
        received = self.staking_token.balance_of(self.address) - before
        self.balances[staker] = self.balance_of(staker) + received
        self.total_staked += received

    def withdraw(self, amount: int):
        if amount <= 0:
            raise PreconditionFailed("Cannot withdraw 0")
        staker = self.msg_sender
        if self.balance_of(staker) < amount:
            raise PreconditionFailed("Withdraw amount exceeds balance")
        if self.max_withdraw_per_call is not None:
            amount = min(amount, self.max_withdraw_per_call)
        self.balances[staker] = self.balance_of(staker) - amount
        self.total_staked -= amount
        self.call(self.staking_token.transfer, staker, amount)

    def get_reward(self, account: HexAddress, reward_tokens: list[HexAddress]):
        for token_address in reward_tokens:
            owed = self.rewards.pop((token_address, account), 0)
            if owed > 0:
                self.call(self.reward_tokens[token_address].transfer, account, owed)

    def earned(self, token: HexAddress, account: HexAddress) -> int:
        return self.rewards.get((token, account), 0)

    def balance_of(self, account: HexAddress) -> int:
        return self.balances.get(account, 0)

    def notify_reward(self, account: HexAddress, token: HexAddress, amount: int):
        """Accrue rewards for a staker, minting them to the farm."""
        reward_token = self.reward_tokens[token]
        self.call(reward_token.mint, self.address, amount)
        self.rewards[(token, account)] = self.earned(token, account) + amount

    def set_max_withdraw_per_call(self, cap: int | None):
        self.max_withdraw_per_call = cap


class SimulatedSwapRouter(Contract):
    """Router over fixed-rate pools with infinite liquidity.

    Each hop takes the pool fee from the input, then converts at ``numerator / denominator``.
    Output tokens are minted to the recipient.
    """

    def __init__(self, chain: SimulatedChain):
        super().__init__(chain)
        self.tokens: dict[HexAddress, ERC20Token] = {}
        self.rates: dict[tuple[HexAddress, HexAddress, int], tuple[int, int]] = {}

        #: Execution worse than the quote by this many BPS, to emulate price moving
        self.execution_slippage_bps = 0

    def set_rate(self, token_in: ERC20Token, token_out: MintableERC20Token, fee: int, numerator: int, denominator: int = 1):
        assert denominator > 0
        self.tokens[token_in.address] = token_in
        self.tokens[token_out.address] = token_out
        self.rates[(token_in.address, token_out.address, fee)] = (numerator, denominator)

    def set_execution_slippage(self, bps: int):
        assert 0 <= bps <= 10_000
        self.execution_slippage_bps = bps

    def quote_exact_input(self, path: bytes, amount_in: int) -> int:
        amount = amount_in
        for token_in, fee, token_out in split_hops(path):
            rate = self.rates.get((token_in, token_out, fee))
            if rate is None:
                raise TransactionReverted(f"No pool for {token_in} -> {token_out} at fee {fee}")
            numerator, denominator = rate
            amount = amount * (FEE_DENOMINATOR - fee) // FEE_DENOMINATOR
            amount = amount * numerator // denominator
        return amount

    def exact_input(self, path: bytes, recipient: HexAddress, amount_in: int, amount_out_minimum: int) -> int:
        payer = self.msg_sender
        hops = split_hops(path)
        token_in = self.tokens[hops[0][0]]
        token_out = self.tokens[hops[-1][2]]

        amount_out = self.quote_exact_input(path, amount_in)
        amount_out = amount_out * (10_000 - self.execution_slippage_bps) // 10_000
        if amount_out < amount_out_minimum:
            raise TransactionReverted("Too little received")

        self.call(token_in.transfer_from, payer, self.address, amount_in)
        self.call(token_out.mint, recipient, amount_out)
        logger.debug("Swapped %d %s for %d %s", amount_in, token_in.symbol, amount_out, token_out.symbol)
        return amount_out


class SimulatedDepositHelper(Contract):
    """Turns the deposit token into the staking token at a fixed rate."""

    def __init__(
        self,
        chain: SimulatedChain,
        deposit_token: ERC20Token,
        staking_token: MintableERC20Token,
        numerator: int = 1,
        denominator: int = 1,
    ):
        super().__init__(chain)
        self.deposit_token = deposit_token
        self.staking_token = staking_token
        self.numerator = numerator
        self.denominator = denominator

    def deposit(self, token: HexAddress, amount: int) -> int:
        if token != self.deposit_token.address:
            raise TransactionReverted(f"Unsupported token {token}")
        depositor = self.msg_sender
        self.call(self.deposit_token.transfer_from, depositor, self.address, amount)
        minted = amount * self.numerator // self.denominator
        self.call(self.staking_token.mint, depositor, minted)
        return minted


class ReentrantCaller(Contract):
    """Calls back into a target contract from a token transfer hook.

    Arm it with :py:meth:`arm`, install as the token's transfer hook,
    and the next transfer triggers ``target.<method>(*args)``.
    """

    def __init__(self, chain: SimulatedChain):
        super().__init__(chain)
        self.target: Contract | None = None
        self.method: str | None = None
        self.args: tuple = ()
        self.armed = False

    def arm(self, target: Contract, method: str, *args):
        self.target = target
        self.method = method
        self.args = args
        self.armed = True

    def on_token_transfer(self, token: ERC20Token, sender: HexAddress, to: HexAddress, amount: int):
        if not self.armed:
            return
        self.armed = False
        logger.debug("Re-entering %s.%s() from %s transfer", self.target, self.method, token.symbol)
        self.call(getattr(self.target, self.method), *self.args)


class HarvestProxy(Contract):
    """Contract in between the transaction origin and the strategy."""

    def harvest(self, strategy: Contract):
        self.call(strategy.harvest)
