"""Fee, tolerance and timelock parameters.

Defaults match a typical auto-compounding vault fee manager.
Environment variables can override them for scripts, see :py:func:`load_config_from_env`.
"""

import logging
import os
from dataclasses import dataclass, field


logger = logging.getLogger(__name__)


#: Divisor for platform and call fees
FEE_DIVISOR = 1000

#: 4.5% of the harvest
DEFAULT_PLATFORM_FEE = 45

#: Upper bound for the platform fee, 10%
MAX_PLATFORM_FEE = 100

#: 11.1% of the platform fee goes to the harvest caller
DEFAULT_CALL_FEE = 111

#: Upper bound for the call fee
MAX_CALL_FEE = 111

#: Divisor for the withdrawal fee
WITHDRAWAL_MAX = 10_000

#: 0.1%
DEFAULT_WITHDRAWAL_FEE = 10

#: Hard cap for the withdrawal fee, 1%
WITHDRAWAL_FEE_CAP = 100

#: Divisor for the slippage tolerance
SLIPPAGE_MAX = 10_000

#: 1%
DEFAULT_SLIPPAGE_TOLERANCE = 100

#: Hard cap for the slippage tolerance, 15%
SLIPPAGE_TOLERANCE_CAP = 1500

#: Strategy upgrade delay, 6 hours
DEFAULT_APPROVAL_DELAY = 6 * 3600


@dataclass(slots=True)
class StrategyFeeConfig:
    """Mutable fee parameters of a strategy.

    Bounds are hard limits, setters on the strategy enforce the same caps.
    """

    #: Withdrawal fee over :py:data:`WITHDRAWAL_MAX`
    withdrawal_fee: int = DEFAULT_WITHDRAWAL_FEE

    #: Platform fee over :py:attr:`divisor`
    platform_fee: int = DEFAULT_PLATFORM_FEE

    #: Harvest caller share of the platform fee over :py:attr:`divisor`
    call_fee: int = DEFAULT_CALL_FEE

    divisor: int = FEE_DIVISOR

    #: Allowed swap slippage over :py:data:`SLIPPAGE_MAX`
    slippage_tolerance: int = DEFAULT_SLIPPAGE_TOLERANCE

    def __post_init__(self):
        assert self.divisor > 0, f"Bad divisor: {self.divisor}"
        assert 0 <= self.withdrawal_fee <= WITHDRAWAL_FEE_CAP, f"Withdrawal fee out of bounds: {self.withdrawal_fee}"
        assert 0 <= self.platform_fee <= MAX_PLATFORM_FEE, f"Platform fee out of bounds: {self.platform_fee}"
        assert 0 <= self.call_fee <= MAX_CALL_FEE, f"Call fee out of bounds: {self.call_fee}"
        assert 0 <= self.slippage_tolerance <= SLIPPAGE_TOLERANCE_CAP, f"Slippage tolerance out of bounds: {self.slippage_tolerance}"


@dataclass(slots=True)
class VaultConfig:
    """Vault construction parameters."""

    #: Seconds between proposing and finalising a strategy upgrade
    approval_delay: int = DEFAULT_APPROVAL_DELAY

    #: Share token name is prefix + staking token name
    name_prefix: str = "Compounder "

    #: Share token symbol is prefix + staking token symbol
    symbol_prefix: str = "c"


@dataclass(slots=True)
class CompounderConfig:
    vault: VaultConfig = field(default_factory=VaultConfig)
    fees: StrategyFeeConfig = field(default_factory=StrategyFeeConfig)


def _read_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}") from e


def load_config_from_env() -> CompounderConfig:
    """Read configuration overrides from environment variables.

    - ``COMPOUNDER_APPROVAL_DELAY``
    - ``COMPOUNDER_WITHDRAWAL_FEE``
    - ``COMPOUNDER_PLATFORM_FEE``
    - ``COMPOUNDER_CALL_FEE``
    - ``COMPOUNDER_SLIPPAGE_TOLERANCE``
    """
    config = CompounderConfig(
        vault=VaultConfig(
            approval_delay=_read_int("COMPOUNDER_APPROVAL_DELAY", DEFAULT_APPROVAL_DELAY),
        ),
        fees=StrategyFeeConfig(
            withdrawal_fee=_read_int("COMPOUNDER_WITHDRAWAL_FEE", DEFAULT_WITHDRAWAL_FEE),
            platform_fee=_read_int("COMPOUNDER_PLATFORM_FEE", DEFAULT_PLATFORM_FEE),
            call_fee=_read_int("COMPOUNDER_CALL_FEE", DEFAULT_CALL_FEE),
            slippage_tolerance=_read_int("COMPOUNDER_SLIPPAGE_TOLERANCE", DEFAULT_SLIPPAGE_TOLERANCE),
        ),
    )
    logger.info("Loaded config: %s", config)
    return config
