"""
Caller-facing entry points: add/remove liquidity and exact-input swaps.

The router checks the caller's deadline, resolves amounts with the library
helpers, pulls tokens from the caller (who must have approved the router) and
then calls the pair's mint, burn or swap. Each call is atomic as a whole.
"""
import logging

from cpamm import library
from cpamm.chain import Chain, Contract
from cpamm.crypto import label_address
from cpamm.errors import Expired, InsufficientAAmount, InsufficientBAmount, InsufficientOutputAmount, InvalidAsset, TransferFailed
from cpamm.pair import Pair
from cpamm.safe_math import UINT256_MAX

logger = logging.getLogger(__name__)


class Router(Contract):
    def __init__(self, chain: Chain, factory: bytes, address: bytes = None):
        super().__init__(chain, address or label_address("router"))
        self.factory = factory

    @classmethod
    def deploy(cls, chain: Chain, factory: bytes, **kwargs) -> 'Router':
        router = cls(chain, factory, **kwargs)
        chain.deploy(router)
        return router

    def to_dict(self) -> dict:
        return {'factory': self.factory}

    def load_dict(self, data: dict):
        self.factory = data['factory']

    # ==========================================================================
    # HELPERS
    # ==========================================================================

    def _ensure(self, deadline: int):
        if deadline < self.chain.timestamp:
            raise Expired(f"Deadline {deadline} passed (now {self.chain.timestamp})")

    def _pair(self, token_a: bytes, token_b: bytes) -> Pair:
        pair_address = self.chain.contract(self.factory).get_pair(token_a, token_b)
        if pair_address is None:
            raise InvalidAsset(f"No pair for {token_a.hex()}/{token_b.hex()}")
        return self.chain.contract(pair_address)

    def _safe_transfer_from(self, token: bytes, owner: bytes, to: bytes, value: int):
        if self.chain.contract(token).transfer_from(self.address, owner, to, value) is False:
            raise TransferFailed(f"transfer_from of {value} {token.hex()} failed")

    # ==========================================================================
    # LIQUIDITY
    # ==========================================================================

    def add_liquidity(self, caller: bytes, token_a: bytes, token_b: bytes,
                      amount_a_desired: int, amount_b_desired: int,
                      amount_a_min: int, amount_b_min: int,
                      to: bytes, deadline: int) -> tuple[int, int, int]:
        """
        Deposit both tokens at the current ratio, creating the pair if needed.

        Returns:
            (amount_a, amount_b, liquidity)
        """
        self._ensure(deadline)
        with self.chain.atomic():
            factory = self.chain.contract(self.factory)
            if factory.get_pair(token_a, token_b) is None:
                factory.create_pair(self.address, token_a, token_b)

            reserve_a, reserve_b = library.get_reserves(self.chain, self.factory, token_a, token_b)
            amount_a, amount_b = library.resolve_deposit_amounts(
                amount_a_desired, amount_b_desired, amount_a_min, amount_b_min, reserve_a, reserve_b
            )

            pair = self._pair(token_a, token_b)
            self._safe_transfer_from(token_a, caller, pair.address, amount_a)
            self._safe_transfer_from(token_b, caller, pair.address, amount_b)
            liquidity = pair.mint(self.address, to)

        logger.info(f"Added liquidity ({amount_a}, {amount_b}) -> {liquidity} shares")
        return amount_a, amount_b, liquidity

    def remove_liquidity(self, caller: bytes, token_a: bytes, token_b: bytes, liquidity: int,
                         amount_a_min: int, amount_b_min: int,
                         to: bytes, deadline: int) -> tuple[int, int]:
        """
        Return `liquidity` shares (approved to the router) for both tokens.

        Returns:
            (amount_a, amount_b)
        """
        self._ensure(deadline)
        with self.chain.atomic():
            pair = self._pair(token_a, token_b)
            pair.shares.transfer_from(self.address, caller, pair.address, liquidity)
            amount0, amount1 = pair.burn(self.address, to)

            token0, _ = library.sort_tokens(token_a, token_b)
            amount_a, amount_b = (amount0, amount1) if token_a == token0 else (amount1, amount0)
            if amount_a < amount_a_min:
                raise InsufficientAAmount(f"Received {amount_a} below minimum {amount_a_min}")
            if amount_b < amount_b_min:
                raise InsufficientBAmount(f"Received {amount_b} below minimum {amount_b_min}")

        logger.info(f"Removed liquidity {liquidity} shares -> ({amount_a}, {amount_b})")
        return amount_a, amount_b

    def remove_liquidity_with_permit(self, caller: bytes, token_a: bytes, token_b: bytes,
                                     liquidity: int, amount_a_min: int, amount_b_min: int,
                                     to: bytes, deadline: int, approve_max: bool,
                                     verify_key: bytes, signature: bytes) -> tuple[int, int]:
        """remove_liquidity with a signed share approval instead of a prior approve()."""
        pair = self._pair(token_a, token_b)
        value = UINT256_MAX if approve_max else liquidity
        with self.chain.atomic():
            pair.shares.permit(caller, self.address, value, deadline, verify_key, signature)
            return self.remove_liquidity(
                caller, token_a, token_b, liquidity, amount_a_min, amount_b_min, to, deadline
            )

    # ==========================================================================
    # SWAP
    # ==========================================================================

    def swap_exact_input(self, caller: bytes, amount_in: int, token_in: bytes,
                         amount_out_min: int, token_out: bytes,
                         to: bytes, deadline: int) -> int:
        """
        Sell exactly `amount_in` of token_in for as much token_out as the pair gives.

        Returns:
            Amount of token_out sent to `to`
        """
        self._ensure(deadline)
        if token_in == token_out:
            raise InvalidAsset("Input and output token must differ")
        with self.chain.atomic():
            pair = self._pair(token_in, token_out)
            reserve_in, reserve_out = library.get_reserves(self.chain, self.factory, token_in, token_out)
            amount_out = library.get_amount_out(amount_in, reserve_in, reserve_out)
            if amount_out < amount_out_min:
                raise InsufficientOutputAmount(
                    f"Slippage: got {amount_out}, expected at least {amount_out_min}"
                )

            self._safe_transfer_from(token_in, caller, pair.address, amount_in)
            token0, _ = library.sort_tokens(token_in, token_out)
            amount0_out, amount1_out = (0, amount_out) if token_in == token0 else (amount_out, 0)
            pair.swap(self.address, amount0_out, amount1_out, to)

        return amount_out

    # ==========================================================================
    # VIEWS
    # ==========================================================================

    def get_reserves(self, token_a: bytes, token_b: bytes) -> tuple[int, int]:
        return library.get_reserves(self.chain, self.factory, token_a, token_b)

    @staticmethod
    def quote(amount_a: int, reserve_a: int, reserve_b: int) -> int:
        return library.quote(amount_a, reserve_a, reserve_b)

    @staticmethod
    def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
        return library.get_amount_out(amount_in, reserve_in, reserve_out)

    @staticmethod
    def get_amount_in(amount_out: int, reserve_in: int, reserve_out: int) -> int:
        return library.get_amount_in(amount_out, reserve_in, reserve_out)
