"""
Event records emitted by pairs, tokens and share ledgers.

Events are appended to the Chain's log while a call runs and are discarded if
the call fails. Listeners (e.g. the metrics monitor) only see committed events.
"""
from dataclasses import dataclass, asdict


@dataclass(frozen=True)
class Event:
    emitter: bytes

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        data = asdict(self)
        data['event'] = self.name
        return {k: v.hex() if isinstance(v, bytes) else v for k, v in data.items()}


@dataclass(frozen=True)
class Transfer(Event):
    sender: bytes
    to: bytes
    value: int


@dataclass(frozen=True)
class Approval(Event):
    owner: bytes
    spender: bytes
    value: int


@dataclass(frozen=True)
class Mint(Event):
    sender: bytes
    amount0: int
    amount1: int


@dataclass(frozen=True)
class Burn(Event):
    sender: bytes
    amount0: int
    amount1: int
    to: bytes


@dataclass(frozen=True)
class Swap(Event):
    sender: bytes
    amount0_in: int
    amount1_in: int
    amount0_out: int
    amount1_out: int
    to: bytes


@dataclass(frozen=True)
class Sync(Event):
    reserve0: int
    reserve1: int


@dataclass(frozen=True)
class PairCreated(Event):
    token0: bytes
    token1: bytes
    pair: bytes
    index: int
