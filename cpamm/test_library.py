"""
Pricing helpers and token ordering.
"""
import pytest

from cpamm import library
from cpamm.crypto import ZERO_ADDRESS, label_address
from cpamm.errors import (
    IdenticalAddresses,
    InsufficientAAmount,
    InsufficientBAmount,
    InsufficientInputAmount,
    InsufficientLiquidity,
    InsufficientOutputAmount,
    ZeroAddress,
)

TOKEN_X = label_address("x")
TOKEN_Y = label_address("y")
FACTORY = label_address("factory")


class TestSortTokens:

    def test_orders_by_bytes(self):
        token0, token1 = library.sort_tokens(TOKEN_X, TOKEN_Y)
        assert token0 < token1
        assert library.sort_tokens(TOKEN_Y, TOKEN_X) == (token0, token1)

    def test_identical(self):
        with pytest.raises(IdenticalAddresses):
            library.sort_tokens(TOKEN_X, TOKEN_X)

    def test_zero(self):
        with pytest.raises(ZeroAddress):
            library.sort_tokens(ZERO_ADDRESS, TOKEN_X)

    def test_pair_address_is_symmetric(self):
        assert library.pair_for(FACTORY, TOKEN_X, TOKEN_Y) == library.pair_for(FACTORY, TOKEN_Y, TOKEN_X)
        assert library.pair_for(FACTORY, TOKEN_X, TOKEN_Y) != library.pair_for(label_address("other"), TOKEN_X, TOKEN_Y)


class TestQuotes:

    def test_quote(self):
        assert library.quote(100, 1000, 2000) == 200
        assert library.quote(3, 2, 1) == 1

    def test_quote_rejects_bad_input(self):
        with pytest.raises(InsufficientInputAmount):
            library.quote(0, 1000, 1000)
        with pytest.raises(InsufficientLiquidity):
            library.quote(100, 0, 1000)

    def test_amount_out(self):
        assert library.get_amount_out(1000, 10000, 10000) == 906
        assert library.get_amount_out(1, 10**6, 10**6) == 0

    def test_amount_out_rejects_bad_input(self):
        with pytest.raises(InsufficientInputAmount):
            library.get_amount_out(0, 10000, 10000)
        with pytest.raises(InsufficientLiquidity):
            library.get_amount_out(1000, 10000, 0)

    def test_amount_in(self):
        assert library.get_amount_in(906, 10000, 10000) == 1000

    def test_amount_in_buys_at_least_requested(self):
        for amount_out in (1, 50, 906, 4000, 9999):
            amount_in = library.get_amount_in(amount_out, 10000, 10000)
            assert library.get_amount_out(amount_in, 10000, 10000) >= amount_out

    def test_amount_in_rejects_bad_input(self):
        with pytest.raises(InsufficientOutputAmount):
            library.get_amount_in(0, 10000, 10000)
        with pytest.raises(InsufficientLiquidity):
            library.get_amount_in(10000, 10000, 10000)


class TestResolveDepositAmounts:

    def test_empty_pair_takes_desired(self):
        assert library.resolve_deposit_amounts(123, 456, 0, 0, 0, 0) == (123, 456)

    def test_scales_y(self):
        assert library.resolve_deposit_amounts(1000, 5000, 0, 0, 10000, 20000) == (1000, 2000)

    def test_scales_x(self):
        assert library.resolve_deposit_amounts(5000, 1000, 0, 0, 10000, 20000) == (500, 1000)

    def test_minimums(self):
        with pytest.raises(InsufficientBAmount):
            library.resolve_deposit_amounts(1000, 5000, 0, 2001, 10000, 20000)
        with pytest.raises(InsufficientAAmount):
            library.resolve_deposit_amounts(5000, 1000, 501, 0, 10000, 20000)
