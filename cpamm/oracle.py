"""
Time-weighted average prices read from a pair's cumulative price accumulators.

A pair only accumulates when its reserves are synced, so current cumulative
prices are computed counterfactually: the pending interval since the last
sync is added at the current reserves. Averages are taken between two
snapshots with modular arithmetic, which keeps them correct across the
wraparound of both the timestamp and the accumulators.
"""
import logging

from cpamm import fixed_point
from cpamm.chain import Chain, Contract
from cpamm.crypto import label_address
from cpamm.errors import InvalidAsset, PeriodNotElapsed
from cpamm.safe_math import wrap

logger = logging.getLogger(__name__)

DEFAULT_PERIOD = 3600  # 1 hour
MAX_OBSERVATIONS = 24


def current_block_timestamp(timestamp: int) -> int:
    return wrap(timestamp, 32)


def current_cumulative_prices(pair, timestamp: int) -> tuple[int, int, int]:
    """
    Cumulative prices of `pair` as of `timestamp`, without touching the pair.

    Returns:
        (price0_cumulative, price1_cumulative, block_timestamp)
    """
    block_timestamp = current_block_timestamp(timestamp)
    price0_cumulative = pair.price0_cumulative_last
    price1_cumulative = pair.price1_cumulative_last

    reserve0, reserve1, block_timestamp_last = pair.get_reserves()
    if block_timestamp_last != block_timestamp and reserve0 != 0 and reserve1 != 0:
        time_elapsed = wrap(block_timestamp - block_timestamp_last, 32)
        price0_cumulative = wrap(price0_cumulative + fixed_point.fraction(reserve1, reserve0) * time_elapsed, 256)
        price1_cumulative = wrap(price1_cumulative + fixed_point.fraction(reserve0, reserve1) * time_elapsed, 256)

    return price0_cumulative, price1_cumulative, block_timestamp


def average_price(cumulative_start: int, cumulative_end: int, timestamp_start: int, timestamp_end: int) -> int:
    """UQ112x112 average price between two cumulative snapshots."""
    time_elapsed = wrap(timestamp_end - timestamp_start, 32)
    if time_elapsed == 0:
        raise PeriodNotElapsed("Snapshots share a timestamp")
    return wrap(cumulative_end - cumulative_start, 256) // time_elapsed


class TWAPOracle(Contract):
    """Fixed-window time-weighted average price oracle for one pair."""

    def __init__(self, chain: Chain, pair, period: int = DEFAULT_PERIOD, address: bytes = None):
        super().__init__(chain, address or label_address(f"oracle:{pair.address.hex()}:{period}"))
        self.pair = pair
        self.period = period
        self.observations = []  # [(block_timestamp, price0_cumulative, price1_cumulative)]
        self.price0_average = 0
        self.price1_average = 0

    @classmethod
    def deploy(cls, chain: Chain, pair, **kwargs) -> 'TWAPOracle':
        oracle = cls(chain, pair, **kwargs)
        chain.deploy(oracle)
        oracle.observations.append(current_cumulative_prices(pair, chain.timestamp))
        return oracle

    def to_dict(self) -> dict:
        return {
            'observations': [list(obs) for obs in self.observations],
            'price0_average': self.price0_average,
            'price1_average': self.price1_average,
        }

    def load_dict(self, data: dict):
        self.observations = [tuple(obs) for obs in data.get('observations', [])]
        self.price0_average = data.get('price0_average', 0)
        self.price1_average = data.get('price1_average', 0)

    def update(self):
        """Record a new snapshot and recompute averages over the elapsed period."""
        price0_cumulative, price1_cumulative, block_timestamp = current_cumulative_prices(
            self.pair, self.chain.timestamp
        )
        if self.observations:
            last_timestamp, last_price0, last_price1 = self.observations[-1]
            time_elapsed = wrap(block_timestamp - last_timestamp, 32)
            if time_elapsed < self.period:
                raise PeriodNotElapsed(f"Only {time_elapsed}s of {self.period}s elapsed")
            self.price0_average = average_price(last_price0, price0_cumulative, last_timestamp, block_timestamp)
            self.price1_average = average_price(last_price1, price1_cumulative, last_timestamp, block_timestamp)

        self.observations.append((block_timestamp, price0_cumulative, price1_cumulative))
        self.observations = self.observations[-MAX_OBSERVATIONS:]
        logger.debug(f"TWAP update for {self.pair.address.hex()}: price0={fixed_point.to_float(self.price0_average)}")

    def consult(self, token: bytes, amount_in: int) -> int:
        """Amount of the other token `amount_in` of `token` is worth at the average price."""
        if self.price0_average == 0 and self.price1_average == 0:
            raise PeriodNotElapsed("No average recorded yet")
        if token == self.pair.token0:
            return fixed_point.decode144(self.price0_average * amount_in)
        if token == self.pair.token1:
            return fixed_point.decode144(self.price1_average * amount_in)
        raise InvalidAsset(f"Token {token.hex()} is not part of the pair")
