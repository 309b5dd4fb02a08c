"""
Constant-product pair.

One Pair per unordered token pair. Liquidity is minted and burned from balance
deltas (tokens are transferred in before the call), swaps pay out optimistically
and are validated afterwards against the fee-adjusted product of balances, and
every reserve update feeds the time-weighted price accumulators.

All mutating calls run inside Chain.atomic() and behind the pair's lock, which
is held across every token call and callback the operation makes.
"""
import logging
from contextlib import contextmanager
from typing import Optional

from cpamm.amm_state import PairState
from cpamm.chain import Chain, Contract
from cpamm.crypto import ZERO_ADDRESS
from cpamm.errors import (
    AlreadyInitialized,
    Forbidden,
    InsufficientInputAmount,
    InsufficientLiquidity,
    InsufficientLiquidityBurned,
    InsufficientLiquidityMinted,
    InsufficientOutputAmount,
    InvalidTo,
    InvariantViolation,
    Locked,
    TransferFailed,
)
from cpamm.events import Burn, Mint, Swap, Sync
from cpamm.safe_math import add, check_uint, isqrt, mul, sub
from cpamm.share_ledger import ShareLedger

logger = logging.getLogger(__name__)

MINIMUM_LIQUIDITY = 1000

# Swap fee: 3 / 1000 of the input side
FEE_DENOMINATOR = 1000
FEE_NUMERATOR = 3

# Protocol fee takes 1 / (PROTOCOL_FEE_DIVISOR + 1) of sqrt(k) growth
PROTOCOL_FEE_DIVISOR = 5


class Pair(Contract):
    def __init__(self, chain: Chain, address: bytes, factory: bytes):
        super().__init__(chain, address)
        self.factory = factory
        self.token0 = ZERO_ADDRESS
        self.token1 = ZERO_ADDRESS
        self.state = PairState()
        self.shares = ShareLedger(chain, address)
        self._unlocked = True

    def to_dict(self) -> dict:
        return {
            'factory': self.factory,
            'token0': self.token0,
            'token1': self.token1,
            'state': self.state.to_dict(),
            'shares': self.shares.to_dict(),
        }

    def load_dict(self, data: dict):
        self.factory = data['factory']
        self.token0 = data['token0']
        self.token1 = data['token1']
        self.state = PairState(data['state'])
        self.shares.load_dict(data['shares'])

    def initialize(self, caller: bytes, token0: bytes, token1: bytes):
        """Called once by the factory at deployment."""
        if caller != self.factory:
            raise Forbidden("Only the factory can initialize a pair")
        if self.token0 != ZERO_ADDRESS or self.token1 != ZERO_ADDRESS:
            raise AlreadyInitialized(f"Pair {self.address.hex()} already initialized")
        self.token0 = token0
        self.token1 = token1

    # ==========================================================================
    # VIEWS
    # ==========================================================================

    def get_reserves(self) -> tuple[int, int, int]:
        """(reserve0, reserve1, block_timestamp_last)"""
        return self.state.get_reserves()

    @property
    def price0_cumulative_last(self) -> int:
        return self.state.price0_cumulative_last

    @property
    def price1_cumulative_last(self) -> int:
        return self.state.price1_cumulative_last

    @property
    def k_last(self) -> int:
        return self.state.k_last

    @property
    def total_supply(self) -> int:
        return self.shares.total_supply

    # ==========================================================================
    # HELPERS
    # ==========================================================================

    @contextmanager
    def _lock(self):
        if not self._unlocked:
            raise Locked(f"Pair {self.address.hex()} is locked")
        self._unlocked = False
        try:
            yield
        finally:
            self._unlocked = True

    def _balance_of(self, token: bytes) -> int:
        return self.chain.contract(token).balance_of(self.address)

    def _safe_transfer(self, token: bytes, to: bytes, value: int):
        if self.chain.contract(token).transfer(self.address, to, value) is False:
            raise TransferFailed(f"Transfer of {value} {token.hex()} to {to.hex()} failed")

    def _fee_to(self) -> Optional[bytes]:
        return self.chain.contract(self.factory).fee_to

    def _update(self, balance0: int, balance1: int, reserve0: int, reserve1: int):
        self.state.update(balance0, balance1, reserve0, reserve1, self.chain.timestamp)
        self.emit(Sync(self.address, self.state.reserve0, self.state.reserve1))

    def _mint_fee(self, reserve0: int, reserve1: int, fee_to: Optional[bytes]) -> bool:
        """
        Mint the protocol's share of sqrt(k) growth since the last liquidity event.

        Returns whether fee accounting is on, so the caller knows to refresh
        k_last once its own mint/burn has updated the reserves.
        """
        fee_on = fee_to is not None and fee_to != ZERO_ADDRESS
        k_last = self.state.k_last
        if fee_on:
            if k_last != 0:
                root_k = isqrt(mul(reserve0, reserve1))
                root_k_last = isqrt(k_last)
                if root_k > root_k_last:
                    numerator = mul(self.shares.total_supply, root_k - root_k_last)
                    denominator = add(mul(root_k, PROTOCOL_FEE_DIVISOR), root_k_last)
                    liquidity = numerator // denominator
                    if liquidity > 0:
                        self.shares._mint(fee_to, liquidity)
                        logger.debug(f"Protocol fee: minted {liquidity} shares to {fee_to.hex()}")
        elif k_last != 0:
            self.state.k_last = 0
        return fee_on

    # ==========================================================================
    # LIQUIDITY
    # ==========================================================================

    def mint(self, caller: bytes, to: bytes) -> int:
        """
        Mint shares for tokens transferred to the pair since the last sync.

        Returns:
            Number of shares minted to `to`
        """
        with self.chain.atomic(), self._lock():
            reserve0, reserve1, _ = self.get_reserves()
            balance0 = self._balance_of(self.token0)
            balance1 = self._balance_of(self.token1)
            amount0 = sub(balance0, reserve0)
            amount1 = sub(balance1, reserve1)

            fee_on = self._mint_fee(reserve0, reserve1, self._fee_to())
            total_supply = self.shares.total_supply
            if total_supply == 0:
                liquidity = isqrt(mul(amount0, amount1)) - MINIMUM_LIQUIDITY
                if liquidity > 0:
                    # Permanently lock the first MINIMUM_LIQUIDITY shares
                    self.shares._mint(ZERO_ADDRESS, MINIMUM_LIQUIDITY)
            else:
                liquidity = min(
                    mul(amount0, total_supply) // reserve0,
                    mul(amount1, total_supply) // reserve1,
                )
            if liquidity <= 0:
                raise InsufficientLiquidityMinted(
                    f"Deposit of ({amount0}, {amount1}) mints no liquidity"
                )
            self.shares._mint(to, liquidity)

            self._update(balance0, balance1, reserve0, reserve1)
            if fee_on:
                self.state.k_last = self.state.k
            self.emit(Mint(self.address, caller, amount0, amount1))

        logger.info(f"Mint: {liquidity} shares to {to.hex()} for ({amount0}, {amount1})")
        return liquidity

    def burn(self, caller: bytes, to: bytes) -> tuple[int, int]:
        """
        Burn the shares held by the pair itself and pay out both tokens pro rata.

        Returns:
            (amount0, amount1) transferred to `to`
        """
        with self.chain.atomic(), self._lock():
            reserve0, reserve1, _ = self.get_reserves()
            token0, token1 = self.token0, self.token1
            balance0 = self._balance_of(token0)
            balance1 = self._balance_of(token1)
            liquidity = self.shares.balance_of(self.address)

            fee_on = self._mint_fee(reserve0, reserve1, self._fee_to())
            total_supply = self.shares.total_supply
            if total_supply == 0:
                raise InsufficientLiquidityBurned("Pair has no liquidity")
            # Pro rata against balances, so donated tokens are distributed too
            amount0 = mul(liquidity, balance0) // total_supply
            amount1 = mul(liquidity, balance1) // total_supply
            if amount0 <= 0 or amount1 <= 0:
                raise InsufficientLiquidityBurned(
                    f"Burning {liquidity} shares returns ({amount0}, {amount1})"
                )
            self.shares._burn(self.address, liquidity)
            self._safe_transfer(token0, to, amount0)
            self._safe_transfer(token1, to, amount1)
            balance0 = self._balance_of(token0)
            balance1 = self._balance_of(token1)

            self._update(balance0, balance1, reserve0, reserve1)
            if fee_on:
                self.state.k_last = self.state.k
            self.emit(Burn(self.address, caller, amount0, amount1, to))

        logger.info(f"Burn: {liquidity} shares for ({amount0}, {amount1}) to {to.hex()}")
        return amount0, amount1

    # ==========================================================================
    # SWAP
    # ==========================================================================

    def swap(self, caller: bytes, amount0_out: int, amount1_out: int, to: bytes, data: bytes = b''):
        """
        Pay out the requested amounts, then require enough input to have arrived.

        Input is whatever the pair holds beyond reserve - out on each side. With
        non-empty `data` the recipient's on_flash_swap() is called after the
        payout, so it can use the output before paying for it.
        """
        check_uint(amount0_out)
        check_uint(amount1_out)
        with self.chain.atomic(), self._lock():
            if amount0_out == 0 and amount1_out == 0:
                raise InsufficientOutputAmount("Swap requests no output")
            reserve0, reserve1, _ = self.get_reserves()
            if amount0_out >= reserve0 or amount1_out >= reserve1:
                raise InsufficientLiquidity(
                    f"Output ({amount0_out}, {amount1_out}) exceeds reserves ({reserve0}, {reserve1})"
                )

            token0, token1 = self.token0, self.token1
            if to == token0 or to == token1:
                raise InvalidTo("Swap recipient cannot be a pooled token")
            if amount0_out > 0:
                self._safe_transfer(token0, to, amount0_out)
            if amount1_out > 0:
                self._safe_transfer(token1, to, amount1_out)
            if data:
                self.chain.contract(to).on_flash_swap(caller, amount0_out, amount1_out, data)
            balance0 = self._balance_of(token0)
            balance1 = self._balance_of(token1)

            remaining0 = reserve0 - amount0_out
            remaining1 = reserve1 - amount1_out
            amount0_in = balance0 - remaining0 if balance0 > remaining0 else 0
            amount1_in = balance1 - remaining1 if balance1 > remaining1 else 0
            if amount0_in == 0 and amount1_in == 0:
                raise InsufficientInputAmount("Swap received no input")

            balance0_adjusted = sub(mul(balance0, FEE_DENOMINATOR), mul(amount0_in, FEE_NUMERATOR))
            balance1_adjusted = sub(mul(balance1, FEE_DENOMINATOR), mul(amount1_in, FEE_NUMERATOR))
            if mul(balance0_adjusted, balance1_adjusted) < mul(mul(reserve0, reserve1), FEE_DENOMINATOR ** 2):
                raise InvariantViolation("K")

            self._update(balance0, balance1, reserve0, reserve1)
            self.emit(Swap(self.address, caller, amount0_in, amount1_in, amount0_out, amount1_out, to))

        logger.info(
            f"Swap: in ({amount0_in}, {amount1_in}) -> out ({amount0_out}, {amount1_out}) "
            f"to {to.hex()}, price: {self.state.current_price}"
        )

    # ==========================================================================
    # RECOVERY
    # ==========================================================================

    def skim(self, caller: bytes, to: bytes):
        """Send any balance above the reserves to `to`."""
        with self.chain.atomic(), self._lock():
            reserve0, reserve1, _ = self.get_reserves()
            self._safe_transfer(self.token0, to, sub(self._balance_of(self.token0), reserve0))
            self._safe_transfer(self.token1, to, sub(self._balance_of(self.token1), reserve1))

    def sync(self, caller: bytes):
        """Set the reserves to the current balances."""
        with self.chain.atomic(), self._lock():
            reserve0, reserve1, _ = self.get_reserves()
            self._update(self._balance_of(self.token0), self._balance_of(self.token1), reserve0, reserve1)

    def __repr__(self) -> str:
        return (
            f"Pair({self.address.hex()}, token0={self.token0.hex()}, token1={self.token1.hex()}, "
            f"{self.state!r}, supply={self.shares.total_supply})"
        )
