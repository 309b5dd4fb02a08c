"""
Pure pricing helpers shared by the router, the CLI and external quoters.

Nothing in here mutates state. All arithmetic is integer and truncating.
"""
from cpamm.crypto import ZERO_ADDRESS, derive_address
from cpamm.errors import (
    AmountExceedsDesired,
    IdenticalAddresses,
    InsufficientAAmount,
    InsufficientBAmount,
    InsufficientInputAmount,
    InsufficientLiquidity,
    InsufficientOutputAmount,
    ZeroAddress,
)

# Input side keeps 997 / 1000 after the 0.3% fee
FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000


def sort_tokens(token_a: bytes, token_b: bytes) -> tuple[bytes, bytes]:
    """Order two token addresses canonically (byte order)."""
    if token_a == token_b:
        raise IdenticalAddresses("Tokens must differ")
    token0, token1 = (token_a, token_b) if token_a < token_b else (token_b, token_a)
    if token0 == ZERO_ADDRESS:
        raise ZeroAddress("Token address cannot be zero")
    return token0, token1


def pair_for(factory: bytes, token_a: bytes, token_b: bytes) -> bytes:
    """Address the factory deploys the (token_a, token_b) pair at, in either order."""
    token0, token1 = sort_tokens(token_a, token_b)
    return derive_address(b'\xff', factory, token0, token1)


def get_reserves(chain, factory: bytes, token_a: bytes, token_b: bytes) -> tuple[int, int]:
    """
    Reserves of the (token_a, token_b) pair ordered as the arguments.

    Returns (0, 0) if the pair does not exist yet.
    """
    token0, _ = sort_tokens(token_a, token_b)
    pair_address = chain.contract(factory).get_pair(token_a, token_b)
    if pair_address is None:
        return 0, 0
    reserve0, reserve1, _ = chain.contract(pair_address).get_reserves()
    return (reserve0, reserve1) if token_a == token0 else (reserve1, reserve0)


def quote(amount_a: int, reserve_a: int, reserve_b: int) -> int:
    """Amount of B worth `amount_a` of A at the current reserve ratio (no fee)."""
    if amount_a <= 0:
        raise InsufficientInputAmount("Quote amount must be positive")
    if reserve_a <= 0 or reserve_b <= 0:
        raise InsufficientLiquidity("Quote requires non-empty reserves")
    return amount_a * reserve_b // reserve_a


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """
    Maximum output for an exact input, after the 0.3% input fee.

    amount_out = amount_in * 997 * reserve_out / (reserve_in * 1000 + amount_in * 997)
    """
    if amount_in <= 0:
        raise InsufficientInputAmount("Input amount must be positive")
    if reserve_in <= 0 or reserve_out <= 0:
        raise InsufficientLiquidity("Pair has no liquidity")
    amount_in_with_fee = amount_in * FEE_NUMERATOR
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


def get_amount_in(amount_out: int, reserve_in: int, reserve_out: int) -> int:
    """Minimum input that buys exactly `amount_out`, after the 0.3% input fee."""
    if amount_out <= 0:
        raise InsufficientOutputAmount("Output amount must be positive")
    if reserve_in <= 0 or reserve_out <= 0:
        raise InsufficientLiquidity("Pair has no liquidity")
    if amount_out >= reserve_out:
        raise InsufficientLiquidity(f"Output {amount_out} would drain reserve {reserve_out}")
    numerator = reserve_in * amount_out * FEE_DENOMINATOR
    denominator = (reserve_out - amount_out) * FEE_NUMERATOR
    return numerator // denominator + 1


def resolve_deposit_amounts(desired_x: int, desired_y: int, min_x: int, min_y: int,
                            reserve_x: int, reserve_y: int) -> tuple[int, int]:
    """
    Amounts of a two-sided deposit that match the current reserve ratio.

    An empty pair accepts any ratio; the first depositor sets the price.
    Otherwise the full desired amount of one side is used and the other side
    is scaled down to match, subject to the caller's minimums.

    Returns:
        (amount_x, amount_y)
    """
    if reserve_x == 0 and reserve_y == 0:
        return desired_x, desired_y

    optimal_y = quote(desired_x, reserve_x, reserve_y)
    if optimal_y <= desired_y:
        if optimal_y < min_y:
            raise InsufficientBAmount(f"Optimal amount {optimal_y} below minimum {min_y}")
        return desired_x, optimal_y

    optimal_x = quote(desired_y, reserve_y, reserve_x)
    if optimal_x > desired_x:
        raise AmountExceedsDesired(f"Optimal amount {optimal_x} exceeds desired {desired_x}")
    if optimal_x < min_x:
        raise InsufficientAAmount(f"Optimal amount {optimal_x} below minimum {min_x}")
    return optimal_x, desired_y
