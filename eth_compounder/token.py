"""ERC-20 token contracts for the simulated ledger.

- :py:class:`ERC20Token` is the plain fungible token, also the base of vault shares
- :py:class:`MintableERC20Token` lets tests and simulated collaborators print tokens
- :py:class:`DeflationaryERC20Token` burns a tax on every transfer

Revert reasons follow OpenZeppelin ERC-20 wording.
"""

import logging
from decimal import Decimal

from eth_typing import HexAddress

from eth_compounder.chain import ZERO_ADDRESS, Contract, SimulatedChain
from eth_compounder.errors import PreconditionFailed


logger = logging.getLogger(__name__)


#: Unlimited approval
MAX_UINT256 = 2**256 - 1


class ERC20Token(Contract):
    """Fungible token with balances, allowances and transfer events.

    An allowance of :py:data:`MAX_UINT256` is treated as infinite and never decremented.
    """

    def __init__(self, chain: SimulatedChain, name: str, symbol: str, decimals: int = 18):
        super().__init__(chain)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self.balances: dict[HexAddress, int] = {}
        self.allowances: dict[tuple[HexAddress, HexAddress], int] = {}

        #: Contract notified after every balance move, see :py:meth:`_after_token_transfer`
        self.transfer_hook: Contract | None = None

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.symbol} at {self.address}>"

    def balance_of(self, account: HexAddress) -> int:
        return self.balances.get(account, 0)

    def allowance(self, owner: HexAddress, spender: HexAddress) -> int:
        return self.allowances.get((owner, spender), 0)

    def approve(self, spender: HexAddress, amount: int) -> bool:
        owner = self.msg_sender
        if spender == ZERO_ADDRESS:
            raise PreconditionFailed("ERC20: approve to the zero address")
        if amount < 0:
            raise PreconditionFailed("ERC20: negative amount")
        self.allowances[(owner, spender)] = amount
        self.emit("Approval", owner=owner, spender=spender, value=amount)
        return True

    def transfer(self, to: HexAddress, amount: int) -> bool:
        self._transfer(self.msg_sender, to, amount)
        return True

    def transfer_from(self, sender: HexAddress, to: HexAddress, amount: int) -> bool:
        spender = self.msg_sender
        current = self.allowance(sender, spender)
        if current != MAX_UINT256:
            if current < amount:
                raise PreconditionFailed("ERC20: insufficient allowance")
            self.allowances[(sender, spender)] = current - amount
        self._transfer(sender, to, amount)
        return True

    def _transfer(self, sender: HexAddress, to: HexAddress, amount: int):
        if amount < 0:
            raise PreconditionFailed("ERC20: negative amount")
        if to == ZERO_ADDRESS:
            raise PreconditionFailed("ERC20: transfer to the zero address")
        balance = self.balance_of(sender)
        if balance < amount:
            raise PreconditionFailed("ERC20: transfer amount exceeds balance")
        self.balances[sender] = balance - amount
        self.balances[to] = self.balance_of(to) + amount
        self.emit("Transfer", sender=sender, receiver=to, value=amount)
        self._after_token_transfer(sender, to, amount)

    def _mint(self, account: HexAddress, amount: int):
        if account == ZERO_ADDRESS:
            raise PreconditionFailed("ERC20: mint to the zero address")
        self.total_supply += amount
        self.balances[account] = self.balance_of(account) + amount
        self.emit("Transfer", sender=ZERO_ADDRESS, receiver=account, value=amount)
        self._after_token_transfer(ZERO_ADDRESS, account, amount)

    def _burn(self, account: HexAddress, amount: int):
        balance = self.balance_of(account)
        if balance < amount:
            raise PreconditionFailed("ERC20: burn amount exceeds balance")
        self.balances[account] = balance - amount
        self.total_supply -= amount
        self.emit("Transfer", sender=account, receiver=ZERO_ADDRESS, value=amount)
        self._after_token_transfer(account, ZERO_ADDRESS, amount)

    def _after_token_transfer(self, sender: HexAddress, to: HexAddress, amount: int):
        # Hand control to foreign code, like ERC-777 hooks do
        if self.transfer_hook is not None:
            self.call(self.transfer_hook.on_token_transfer, self, sender, to, amount)

    def convert_to_decimals(self, raw_amount: int) -> Decimal:
        """Convert raw token units to decimals.

        Example:

        .. code-block:: python

            # Convert 1 wei units to decimals
            assert usdc.convert_to_decimals(1) == Decimal("0.000001")

        """
        assert type(raw_amount) == int, f"Got {type(raw_amount)}, expected int: {raw_amount}"
        return Decimal(raw_amount) / Decimal(10**self.decimals)

    def convert_to_raw(self, decimal_amount: Decimal | int) -> int:
        """Convert decimalised token amount to raw uint256.

        Example:

        .. code-block:: python

            # Convert 1.0 USDC to raw unit with 6 decimals
            assert usdc.convert_to_raw(1) == 1_000_000

        """
        return int(decimal_amount * 10**self.decimals)


class MintableERC20Token(ERC20Token):
    """Test token anyone can mint.

    Used for the staking, reward, native and deposit tokens of simulated deployments.
    """

    def mint(self, to: HexAddress, amount: int):
        self._mint(to, amount)

    def burn(self, amount: int):
        self._burn(self.msg_sender, amount)

    def set_transfer_hook(self, hook: Contract | None):
        self.transfer_hook = hook


class DeflationaryERC20Token(MintableERC20Token):
    """Burns a percentage of each transfer.

    The receiver gets less than the nominal amount,
    which is why the vault measures realised balance deltas on deposit.
    """

    def __init__(self, chain: SimulatedChain, name: str, symbol: str, decimals: int = 18, tax_bps: int = 100):
        super().__init__(chain, name, symbol, decimals)
        assert 0 <= tax_bps < 10_000, f"Bad tax: {tax_bps}"
        self.tax_bps = tax_bps

    def _transfer(self, sender: HexAddress, to: HexAddress, amount: int):
        tax = amount * self.tax_bps // 10_000
        if tax:
            self._burn(sender, tax)
        super()._transfer(sender, to, amount - tax)
