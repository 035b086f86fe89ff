"""Reentrancy lock for contract entry points.

Any call into a token, farm, router or helper may hand control to foreign code,
which can call straight back into us before our balance bookkeeping is final.
Guarded entry points fail fast when entered again during the same call.
"""

import functools

from eth_compounder.errors import ReentrancyError


def is_locked(contract) -> bool:
    """Is the contract currently executing one of its guarded entry points."""
    return getattr(contract, "_reentrancy_locked", False)


def nonreentrant(func):
    """Decorate a contract method with the contract-wide reentrancy lock.

    The lock is released on every exit path, including failures.
    Internal helpers called from a guarded method must not be guarded themselves.
    """

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        if getattr(self, "_reentrancy_locked", False):
            raise ReentrancyError("ReentrancyGuard: reentrant call")
        self._reentrancy_locked = True
        try:
            return func(self, *args, **kwargs)
        finally:
            self._reentrancy_locked = False

    return wrapper
