"""Fee split arithmetic.

All amounts are raw token integers. Fee parameters are integers over a fixed divisor
and every division truncates toward zero, like ``uint256`` math does.

- The platform fee is taken from the native token balance after a harvest swap
- The platform fee is split between the harvest caller (call fee) and the treasury
- The withdrawal fee is taken from the amount a strategy sends back to the vault
"""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class FeeSplit:
    """How a harvest's native balance is split.

    ``call_fee_amount + treasury_amount == platform_fee`` always holds.
    """

    #: Native token balance the fees were computed from
    native_balance: int

    #: Total fee taken out of the harvest
    platform_fee: int

    #: Share of the platform fee for whoever called harvest
    call_fee_amount: int

    #: Rest of the platform fee
    treasury_amount: int

    @property
    def compounded(self) -> int:
        """Native amount left to be turned back into the staking token."""
        return self.native_balance - self.platform_fee


def calculate_fee_split(native_balance: int, platform_fee: int, call_fee: int, divisor: int) -> FeeSplit:
    """Split the harvested native balance.

    Example:

    .. code-block:: python

        split = calculate_fee_split(10_000, platform_fee=45, call_fee=111, divisor=1000)
        assert split.platform_fee == 450
        assert split.call_fee_amount == 49
        assert split.treasury_amount == 401

    :param native_balance: Native token balance after swapping rewards
    :param platform_fee: Platform fee over ``divisor``
    :param call_fee: Caller's share of the platform fee over ``divisor``
    :param divisor: Fee divisor
    """
    assert native_balance >= 0, f"Negative balance: {native_balance}"
    assert 0 <= platform_fee <= divisor, f"Bad platform fee {platform_fee}/{divisor}"
    assert 0 <= call_fee <= divisor, f"Bad call fee {call_fee}/{divisor}"

    platform_amount = native_balance * platform_fee // divisor
    call_fee_amount = platform_amount * call_fee // divisor
    treasury_amount = platform_amount - call_fee_amount
    return FeeSplit(
        native_balance=native_balance,
        platform_fee=platform_amount,
        call_fee_amount=call_fee_amount,
        treasury_amount=treasury_amount,
    )


def calculate_withdrawal_fee(amount: int, withdrawal_fee: int, withdrawal_max: int) -> int:
    """How much of a withdrawal stays behind as the fee."""
    assert amount >= 0
    return amount * withdrawal_fee // withdrawal_max


def calculate_minimum_output(quoted_amount: int, slippage_tolerance: int, slippage_max: int) -> int:
    """Worst output we accept for a quoted swap.

    :param quoted_amount: Quoter's output estimate
    :param slippage_tolerance: Allowed slippage over ``slippage_max``
    """
    assert 0 <= slippage_tolerance <= slippage_max
    return quoted_amount * (slippage_max - slippage_tolerance) // slippage_max
