"""Capability sets of the collaborator contracts.

The strategy talks to its farm, routers and deposit helper only through these methods,
so any contract providing them can be plugged in at construction.
Simulated implementations live in :py:mod:`eth_compounder.testing`.
"""

from typing import Protocol, runtime_checkable

from eth_typing import HexAddress


@runtime_checkable
class FungibleToken(Protocol):
    """ERC-20 transfer/approve/balance surface."""

    address: HexAddress

    def balance_of(self, account: HexAddress) -> int: ...

    def allowance(self, owner: HexAddress, spender: HexAddress) -> int: ...

    def approve(self, spender: HexAddress, amount: int) -> bool: ...

    def transfer(self, to: HexAddress, amount: int) -> bool: ...

    def transfer_from(self, sender: HexAddress, to: HexAddress, amount: int) -> bool: ...


@runtime_checkable
class FarmPool(Protocol):
    """External reward pool where the staking token earns rewards.

    ``deposit`` pulls staking tokens from the caller with ``transfer_from``.
    """

    address: HexAddress

    def deposit(self, amount: int): ...

    def withdraw(self, amount: int): ...

    def get_reward(self, account: HexAddress, reward_tokens: list[HexAddress]): ...

    def earned(self, token: HexAddress, account: HexAddress) -> int: ...

    def balance_of(self, account: HexAddress) -> int: ...


@runtime_checkable
class SwapRouter(Protocol):
    """Exact-input multi-hop swap router with a quoter.

    Paths are encoded with :py:func:`eth_compounder.path.encode_path`.
    """

    address: HexAddress

    def exact_input(self, path: bytes, recipient: HexAddress, amount_in: int, amount_out_minimum: int) -> int: ...

    def quote_exact_input(self, path: bytes, amount_in: int) -> int: ...


@runtime_checkable
class DepositHelper(Protocol):
    """Turns the deposit asset into the staking token and sends it to the caller."""

    address: HexAddress

    def deposit(self, token: HexAddress, amount: int) -> int: ...
