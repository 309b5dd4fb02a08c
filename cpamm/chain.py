"""
In-memory execution environment for tokens, pairs, the factory and the router.

The Chain owns every deployed contract by address, the block clock and the
event log. Mutating calls run inside Chain.atomic(): contract state is
snapshotted with msgpack on entry and restored if the call raises, so a failed
call leaves no partial effects behind (balances, reserves, shares, events).
"""
import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

import msgpack

from cpamm.crypto import generate_hash, validate_address
from cpamm.errors import ValidationError
from cpamm.events import Event

logger = logging.getLogger(__name__)

# msgpack ext type for integers wider than 64 bits (reserves, accumulators)
BIGINT_EXT_TYPE = 1


def _default(obj):
    if isinstance(obj, int):
        length = (obj.bit_length() + 8) // 8
        return msgpack.ExtType(BIGINT_EXT_TYPE, obj.to_bytes(length, 'big', signed=True))
    raise TypeError(f"Cannot serialize {type(obj).__name__}")


def _ext_hook(code: int, data: bytes):
    if code == BIGINT_EXT_TYPE:
        return int.from_bytes(data, 'big', signed=True)
    return msgpack.ExtType(code, data)


def pack(obj) -> bytes:
    """Encode contract state; integers of any width survive the round trip."""
    return msgpack.packb(obj, use_bin_type=True, default=_default)


def unpack(data: bytes):
    return msgpack.unpackb(data, raw=False, ext_hook=_ext_hook, strict_map_key=False)


class Contract:
    """
    Base class for state held on the chain.

    Subclasses keep all persistent state reachable from to_dict()/load_dict();
    anything else (locks, caches) is transient and is not rolled back.
    """

    def __init__(self, chain: 'Chain', address: bytes):
        self.chain = chain
        self.address = validate_address(address)

    def to_dict(self) -> dict:
        raise NotImplementedError

    def load_dict(self, data: dict):
        raise NotImplementedError

    def emit(self, event: Event):
        self.chain.emit(event)


class Chain:
    def __init__(self, chain_id: int = 1, timestamp: Optional[int] = None):
        self.chain_id = chain_id
        self._timestamp = int(time.time()) if timestamp is None else int(timestamp)
        self.contracts: dict[bytes, Contract] = {}
        self.events: list[Event] = []
        self._listeners: list[Callable[[Event], None]] = []
        self._depth = 0

    # ==========================================================================
    # CLOCK
    # ==========================================================================

    @property
    def timestamp(self) -> int:
        """Current block timestamp in seconds."""
        return self._timestamp

    def set_timestamp(self, timestamp: int):
        if timestamp < self._timestamp:
            raise ValueError(f"Timestamp must not go backwards: {timestamp} < {self._timestamp}")
        self._timestamp = int(timestamp)

    def advance(self, seconds: int):
        self.set_timestamp(self._timestamp + seconds)

    # ==========================================================================
    # CONTRACTS
    # ==========================================================================

    def deploy(self, contract: Contract) -> Contract:
        if contract.address in self.contracts:
            raise ValidationError(f"Address {contract.address.hex()} already in use")
        self.contracts[contract.address] = contract
        logger.debug(f"Deployed {type(contract).__name__} at {contract.address.hex()}")
        return contract

    def contract(self, address: bytes) -> Contract:
        try:
            return self.contracts[address]
        except KeyError:
            raise ValidationError(f"No contract at {address.hex()}") from None

    def is_contract(self, address: bytes) -> bool:
        return address in self.contracts

    # ==========================================================================
    # EVENTS
    # ==========================================================================

    def emit(self, event: Event):
        self.events.append(event)
        logger.debug(f"{event.name} {event.to_dict()}")

    def subscribe(self, listener: Callable[[Event], None]):
        """Register a callback for events of successfully completed calls."""
        self._listeners.append(listener)

    def events_of(self, event_type: type, emitter: Optional[bytes] = None) -> list:
        return [
            e for e in self.events
            if isinstance(e, event_type) and (emitter is None or e.emitter == emitter)
        ]

    # ==========================================================================
    # STATE SNAPSHOTS
    # ==========================================================================

    def snapshot(self) -> dict[bytes, bytes]:
        """Encode the state of every contract."""
        return {
            address: pack(contract.to_dict())
            for address, contract in self.contracts.items()
        }

    def restore(self, snapshot: dict[bytes, bytes]):
        """Return every contract to a previous snapshot."""
        for address in list(self.contracts):
            if address not in snapshot:
                # Deployed after the snapshot was taken
                del self.contracts[address]
        for address, encoded in snapshot.items():
            self.contracts[address].load_dict(unpack(encoded))

    def state_root(self) -> bytes:
        """Hash over all contract state, for cheap equality checks."""
        snapshot = self.snapshot()
        return generate_hash(pack(sorted(snapshot.items())))

    @contextmanager
    def atomic(self) -> Iterator['Chain']:
        """
        Run a block of state changes all-or-nothing.

        Nested blocks each keep their own snapshot. Listeners are notified
        once the outermost block completes.
        """
        snapshot = self.snapshot()
        mark = len(self.events)
        self._depth += 1
        try:
            yield self
        except Exception as e:
            logger.warning(f"Call rolled back: {type(e).__name__}: {e}")
            self.restore(snapshot)
            del self.events[mark:]
            raise
        finally:
            self._depth -= 1

        if self._depth == 0:
            for event in self.events[mark:]:
                for listener in self._listeners:
                    try:
                        listener(event)
                    except Exception:
                        # State is already committed
                        logger.exception(f"Listener failed on {event.name}")
