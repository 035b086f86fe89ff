"""In-process ledger with transaction atomicity and call frames.

- :py:class:`SimulatedChain` keeps the clock, the address registry, the call-frame stack and the event log

- :py:class:`Contract` is the base class for everything that lives at an address

- Externally owned accounts (EOAs) enter through :py:meth:`SimulatedChain.transact`.
  A failing transaction restores every contract's storage and drops its events,
  so no partial effect survives.

Example:

.. code-block:: python

    chain = SimulatedChain()
    deployer = chain.create_account("deployer")
    usdc = chain.deploy(deployer, MintableERC20Token, "USD Coin", "USDC", 6)

    receipt = chain.transact(deployer, usdc.mint, deployer, 1_000 * 10**6)
    assert receipt.status == 1
    assert usdc.balance_of(deployer) == 1_000 * 10**6

"""

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable

from eth_typing import ChecksumAddress, HexAddress
from eth_utils import keccak, to_checksum_address
from hexbytes import HexBytes

from eth_compounder.errors import TransactionReverted


logger = logging.getLogger(__name__)


#: The null address
ZERO_ADDRESS: ChecksumAddress = to_checksum_address("0x0000000000000000000000000000000000000000")

#: Roughly Nov 2023, so timestamps look like real ones
DEFAULT_GENESIS_TIMESTAMP = 1_700_000_000

#: Anvil/Hardhat default chain id
DEFAULT_CHAIN_ID = 31337


@dataclass(slots=True, frozen=True)
class Event:
    """A log entry emitted by a contract."""

    #: Event name, e.g. ``StratHarvest``
    name: str

    #: Contract that emitted the event
    emitter: HexAddress

    #: Decoded event arguments
    args: dict

    #: Block in which the event was emitted
    block_number: int

    #: Unix timestamp of the block
    timestamp: int


@dataclass(slots=True)
class TxReceipt:
    """Outcome of a committed transaction.

    Reverted transactions do not produce receipts, they raise instead.
    """

    #: 1 for success, kept for web3 receipt familiarity
    status: int

    #: Unique per transaction
    tx_hash: HexBytes

    #: Externally owned account that sent the transaction
    sender: HexAddress

    block_number: int

    timestamp: int

    #: Whatever the called function returned
    return_value: Any = None

    #: Events emitted by this transaction
    events: list[Event] = field(default_factory=list)

    def get_events(self, name: str) -> list[Event]:
        return [e for e in self.events if e.name == name]


class SimulatedChain:
    """A single-threaded, transaction-atomic ledger.

    - Contract to contract calls push call frames, so :py:attr:`msg_sender` is always the immediate caller
      and :py:attr:`tx_origin` is the EOA that started the transaction

    - The block timestamp only moves with :py:meth:`time_travel` (or ``block_time`` per transaction)
    """

    def __init__(
        self,
        chain_id: int = DEFAULT_CHAIN_ID,
        genesis_timestamp: int = DEFAULT_GENESIS_TIMESTAMP,
        block_time: int = 0,
    ):
        self.chain_id = chain_id
        self.timestamp = genesis_timestamp
        self.block_number = 0
        self.block_time = block_time

        #: Address -> contract instance
        self.contracts: dict[HexAddress, "Contract"] = {}

        #: Address -> human readable label for EOAs
        self.accounts: dict[HexAddress, str] = {}

        #: All committed events
        self.events: list[Event] = []

        self._frames: list[HexAddress] = []
        self._nonce = 0
        self._tx_count = 0

    def _next_address(self, salt: str) -> ChecksumAddress:
        self._nonce += 1
        digest = keccak(text=f"{self.chain_id}:{self._nonce}:{salt}")
        return to_checksum_address(digest[-20:])

    def create_account(self, label: str = "") -> ChecksumAddress:
        """Create a new externally owned account."""
        address = self._next_address(f"account:{label}")
        self.accounts[address] = label
        return address

    def register(self, contract: "Contract") -> ChecksumAddress:
        """Assign an address to a freshly constructed contract."""
        address = self._next_address(f"contract:{contract.__class__.__name__}")
        self.contracts[address] = contract
        logger.debug("Deployed %s at %s", contract.__class__.__name__, address)
        return address

    def get_contract(self, address: HexAddress | str) -> "Contract":
        """Resolve a contract by its address.

        :raise TransactionReverted:
            If there is no code at the address
        """
        try:
            return self.contracts[to_checksum_address(address)]
        except KeyError as e:
            raise TransactionReverted(f"Call to non-contract address {address}") from e

    def is_contract(self, address: HexAddress | str) -> bool:
        """Does the address host code."""
        if not address:
            return False
        return to_checksum_address(address) in self.contracts

    @property
    def msg_sender(self) -> HexAddress:
        """Immediate caller of the currently executing code."""
        if not self._frames:
            return ZERO_ADDRESS
        return self._frames[-1]

    @property
    def tx_origin(self) -> HexAddress:
        """The EOA that started the current transaction."""
        if not self._frames:
            return ZERO_ADDRESS
        return self._frames[0]

    @property
    def in_transaction(self) -> bool:
        return len(self._frames) > 0

    @contextmanager
    def frame(self, caller: HexAddress):
        """Execute nested code with ``caller`` as the message sender."""
        self._frames.append(caller)
        try:
            yield
        finally:
            self._frames.pop()

    def emit(self, emitter: HexAddress, name: str, args: dict):
        self.events.append(
            Event(
                name=name,
                emitter=emitter,
                args=args,
                block_number=self.block_number,
                timestamp=self.timestamp,
            )
        )

    def get_events(self, name: str | None = None, emitter: HexAddress | None = None) -> list[Event]:
        """Filter the committed event log."""
        return [e for e in self.events if (name is None or e.name == name) and (emitter is None or e.emitter == emitter)]

    def _take_snapshot(self) -> dict:
        # Contract references and the chain itself are shared, only plain storage gets copied
        shared = {id(self): self}
        for contract in self.contracts.values():
            shared[id(contract)] = contract

        storage = {}
        for address, contract in self.contracts.items():
            storage[address] = copy.deepcopy(contract.__dict__, dict(shared))

        return {
            "storage": storage,
            "event_count": len(self.events),
        }

    def _restore_snapshot(self, snapshot: dict):
        storage = snapshot["storage"]

        # Contracts deployed by the reverted transaction never existed
        for address in list(self.contracts.keys()):
            if address not in storage:
                del self.contracts[address]

        for address, state in storage.items():
            contract = self.contracts[address]
            contract.__dict__.clear()
            contract.__dict__.update(state)

        del self.events[snapshot["event_count"] :]

    def transact(self, sender: HexAddress, func: Callable, *args, **kwargs) -> TxReceipt:
        """Send a transaction from an EOA.

        :param sender:
            Externally owned account sending the transaction

        :param func:
            Bound contract method to call, or a contract class for deployments

        :return:
            Receipt of the committed transaction

        :raise TransactionReverted:
            The transaction reverted and all of its state changes were rolled back
        """
        assert not self.in_transaction, f"Nested transaction attempted by {sender}"
        assert sender in self.accounts, f"Transactions must be sent by EOAs, got {sender}"

        self.block_number += 1
        self.timestamp += self.block_time
        self._tx_count += 1
        tx_hash = HexBytes(keccak(text=f"{self.chain_id}:tx:{self._tx_count}:{sender}"))

        snapshot = self._take_snapshot()
        event_count = len(self.events)

        try:
            with self.frame(sender):
                result = func(*args, **kwargs)
        except Exception as e:
            self._restore_snapshot(snapshot)
            logger.info("Transaction %s from %s reverted: %s", tx_hash.hex(), sender, e)
            raise

        return TxReceipt(
            status=1,
            tx_hash=tx_hash,
            sender=sender,
            block_number=self.block_number,
            timestamp=self.timestamp,
            return_value=result,
            events=self.events[event_count:],
        )

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """Dry run a contract method, like ``eth_call``.

        Whatever the method changes is thrown away, failures are raised as is.
        """
        assert not self.in_transaction, "Cannot dry run inside a transaction"
        snapshot = self._take_snapshot()
        try:
            with self.frame(ZERO_ADDRESS):
                return func(*args, **kwargs)
        finally:
            self._restore_snapshot(snapshot)

    def deploy(self, deployer: HexAddress, contract_class: type, *args, **kwargs) -> "Contract":
        """Deploy a contract in its own transaction.

        The constructor runs with ``deployer`` as the message sender.
        """
        receipt = self.transact(deployer, contract_class, self, *args, **kwargs)
        return receipt.return_value

    def time_travel(self, seconds: int):
        """Move the clock forward and mine an empty block."""
        assert seconds >= 0, f"Cannot go back in time: {seconds}"
        self.timestamp += seconds
        self.block_number += 1

    def mine(self):
        """Mine an empty block."""
        self.time_travel(0)


class Contract:
    """Base class for code living at a chain address.

    - Storage is the instance ``__dict__``; keep it to plain values and contract references
      so that :py:class:`SimulatedChain` can snapshot and restore it

    - Use :py:meth:`call` for state-changing calls into other contracts,
      so the callee sees this contract as its message sender
    """

    def __init__(self, chain: SimulatedChain):
        self.chain = chain
        self.address = chain.register(self)

    def __repr__(self):
        return f"<{self.__class__.__name__} at {self.address}>"

    @property
    def msg_sender(self) -> HexAddress:
        return self.chain.msg_sender

    @property
    def tx_origin(self) -> HexAddress:
        return self.chain.tx_origin

    @property
    def block_timestamp(self) -> int:
        return self.chain.timestamp

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """Call another contract with this contract as the message sender."""
        with self.chain.frame(self.address):
            return func(*args, **kwargs)

    def emit(self, name: str, **args):
        self.chain.emit(self.address, name, args)
