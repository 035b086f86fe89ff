"""Per-holder activity records.

Advisory data for frontends only. Share math and authorisation never read these records.
"""

import enum
from dataclasses import dataclass


#: Price per share precision
PRICE_PRECISION = 10**18


class LastAction(enum.Enum):
    """Latest classified action of a holder."""

    deposit = "deposit"

    withdraw = "withdraw"


@dataclass(slots=True)
class AccountInfo:
    """What we last saw of a holder."""

    #: Unix timestamp of the last mint or burn
    action_time: int = 0

    #: Value of the holder's shares in the underlying asset at that time
    amount: int = 0

    #: None until the first deposit
    last_action: LastAction | None = None

    #: Does the holder have shares
    staked: bool = False


def classify_action(previous_amount: int, current_amount: int) -> LastAction:
    """Deposit if the holding value went up, withdraw otherwise.

    .. note ::

        Values are truncated share values, so a withdrawal right after yield accrual
        can still look like a deposit. Good enough for a UI hint.
    """
    if current_amount > previous_amount:
        return LastAction.deposit
    return LastAction.withdraw


def update_account_info(info: AccountInfo | None, *, shares: int, price_per_share: int, now: int) -> AccountInfo:
    """Produce the new record after a mint or burn.

    :param info: Previous record, or None for a first time holder
    :param shares: Share balance after the mint or burn
    :param price_per_share: Price per full share after the mint or burn
    :param now: Block timestamp
    """
    if info is None:
        info = AccountInfo()

    current_amount = shares * price_per_share // PRICE_PRECISION
    return AccountInfo(
        action_time=now,
        amount=current_amount,
        last_action=classify_action(info.amount, current_amount),
        staked=shares > 0,
    )
