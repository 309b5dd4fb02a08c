"""
Reserve ledger of a constant-product pair.

Holds the pair's own accounting of what it owns (which can lag the actual token
balances between calls), the last sync timestamp, the time-weighted price
accumulators and k_last for protocol fee accounting.
"""
from decimal import Decimal

from cpamm import fixed_point
from cpamm.safe_math import check_uint, wrap


class PairState:
    """
    Reserve and oracle state of a pair.

    Reserves are uint112, the timestamp is uint32 and the cumulative prices
    are uint256. Only the timestamp and the cumulative prices wrap.
    """

    def __init__(self, data: dict = None):
        """
        Initialize pair state.

        Args:
            data: Dict as produced by to_dict(); empty state if omitted
        """
        if data is None:
            data = {}

        self.reserve0 = int(data.get('reserve0', 0))
        self.reserve1 = int(data.get('reserve1', 0))
        self.block_timestamp_last = int(data.get('block_timestamp_last', 0))
        self.price0_cumulative_last = int(data.get('price0_cumulative_last', 0))
        self.price1_cumulative_last = int(data.get('price1_cumulative_last', 0))
        self.k_last = int(data.get('k_last', 0))

    def to_dict(self) -> dict:
        """
        Convert to dict for storage.
        """
        return {
            'reserve0': self.reserve0,
            'reserve1': self.reserve1,
            'block_timestamp_last': self.block_timestamp_last,
            'price0_cumulative_last': self.price0_cumulative_last,
            'price1_cumulative_last': self.price1_cumulative_last,
            'k_last': self.k_last,
        }

    def get_reserves(self) -> tuple[int, int, int]:
        return self.reserve0, self.reserve1, self.block_timestamp_last

    @property
    def k(self) -> int:
        return self.reserve0 * self.reserve1

    @property
    def current_price(self) -> Decimal:
        """
        Spot price of token0 in units of token1.

        Price = reserve1 / reserve0
        """
        if self.reserve0 == 0:
            return Decimal(0)
        return Decimal(self.reserve1) / Decimal(self.reserve0)

    def update(self, balance0: int, balance1: int, reserve0: int, reserve1: int, timestamp: int):
        """
        Synchronize reserves with balances and accumulate the price oracle.

        Args:
            balance0, balance1: New reserves (the pair's current token balances)
            reserve0, reserve1: Reserves as they stood before this call
            timestamp: Current block timestamp in seconds

        Raises:
            Overflow: if a balance does not fit in 112 bits; no field changes
        """
        check_uint(balance0, 112)
        check_uint(balance1, 112)

        block_timestamp = wrap(timestamp, 32)
        time_elapsed = wrap(block_timestamp - self.block_timestamp_last, 32)

        if time_elapsed > 0 and reserve0 != 0 and reserve1 != 0:
            # Overflow of the accumulators is intended
            self.price0_cumulative_last = wrap(
                self.price0_cumulative_last + fixed_point.fraction(reserve1, reserve0) * time_elapsed, 256
            )
            self.price1_cumulative_last = wrap(
                self.price1_cumulative_last + fixed_point.fraction(reserve0, reserve1) * time_elapsed, 256
            )

        self.reserve0 = balance0
        self.reserve1 = balance1
        self.block_timestamp_last = block_timestamp

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"PairState("
            f"reserve0={self.reserve0}, "
            f"reserve1={self.reserve1}, "
            f"k_last={self.k_last}, "
            f"price={self.current_price})"
        )
