"""Ownership and pause primitives.

Mixins for :py:class:`eth_compounder.chain.Contract` subclasses.
"""

import functools
import logging

from eth_typing import HexAddress

from eth_compounder.chain import ZERO_ADDRESS
from eth_compounder.errors import ContractPaused, PreconditionFailed, Unauthorized


logger = logging.getLogger(__name__)


def only_owner(func):
    """Only the current owner may call the decorated method."""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        if self.msg_sender != self.owner:
            raise Unauthorized("Ownable: caller is not the owner")
        return func(self, *args, **kwargs)

    return wrapper


def when_not_paused(func):
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        if self.paused:
            raise ContractPaused("Pausable: paused")
        return func(self, *args, **kwargs)

    return wrapper


def when_paused(func):
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        if not self.paused:
            raise ContractPaused("Pausable: not paused")
        return func(self, *args, **kwargs)

    return wrapper


class Ownable:
    """Single owner access control.

    The deployer becomes the owner.
    """

    def _init_ownable(self, owner: HexAddress):
        self._owner = owner

    @property
    def owner(self) -> HexAddress:
        return self._owner

    @only_owner
    def transfer_ownership(self, new_owner: HexAddress):
        if new_owner == ZERO_ADDRESS:
            raise PreconditionFailed("Ownable: new owner is the zero address")
        logger.info("Ownership of %s transferred from %s to %s", self, self._owner, new_owner)
        previous = self._owner
        self._owner = new_owner
        self.emit("OwnershipTransferred", previous_owner=previous, new_owner=new_owner)


class Pausable:
    """Paused/active switch."""

    _paused = False

    @property
    def paused(self) -> bool:
        return self._paused

    @when_not_paused
    def _pause(self):
        self._paused = True
        self.emit("Paused", account=self.msg_sender)

    @when_paused
    def _unpause(self):
        self._paused = False
        self.emit("Unpaused", account=self.msg_sender)
