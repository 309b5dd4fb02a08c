"""
Router: deadlines, deposit ratio resolution, slippage bounds and permits.
"""
import pytest

from cpamm.crypto import address_from_verify_key, generate_key_pair
from cpamm.errors import (
    Expired,
    InsufficientAAmount,
    InsufficientBAmount,
    InsufficientOutputAmount,
    InvalidAsset,
    InvalidSignature,
    TransferFailed,
)
from cpamm.safe_math import UINT256_MAX
from cpamm.share_ledger import sign_permit


@pytest.fixture
def deadline(chain):
    return chain.timestamp + 600


@pytest.fixture
def pool(chain, factory, router, alice, token_a, token_b, deadline):
    """(token_a, token_b) pair with 10000 : 10000 reserves owned by alice."""
    router.add_liquidity(alice, token_a.address, token_b.address, 10000, 10000, 0, 0, alice, deadline)
    return chain.contract(factory.get_pair(token_a.address, token_b.address))


class TestAddLiquidity:

    def test_creates_pair_and_mints(self, chain, factory, router, alice, token_a, token_b, deadline):
        result = router.add_liquidity(alice, token_a.address, token_b.address, 10000, 10000, 0, 0, alice, deadline)

        assert result == (10000, 10000, 9000)
        assert factory.all_pairs_length() == 1
        pair = chain.contract(factory.get_pair(token_a.address, token_b.address))
        assert pair.shares.balance_of(alice) == 9000

    def test_ratio_keeps_full_a(self, router, alice, token_a, token_b, deadline):
        router.add_liquidity(alice, token_a.address, token_b.address, 10000, 20000, 0, 0, alice, deadline)
        assert router.get_reserves(token_a.address, token_b.address) == (10000, 20000)

        amount_a, amount_b, _ = router.add_liquidity(
            alice, token_a.address, token_b.address, 1000, 5000, 0, 0, alice, deadline
        )
        assert (amount_a, amount_b) == (1000, 2000)

    def test_ratio_keeps_full_b(self, router, alice, token_a, token_b, deadline):
        router.add_liquidity(alice, token_a.address, token_b.address, 10000, 20000, 0, 0, alice, deadline)

        amount_a, amount_b, _ = router.add_liquidity(
            alice, token_a.address, token_b.address, 5000, 1000, 0, 0, alice, deadline
        )
        assert (amount_a, amount_b) == (500, 1000)

    def test_minimum_b(self, router, alice, token_a, token_b, deadline):
        router.add_liquidity(alice, token_a.address, token_b.address, 10000, 20000, 0, 0, alice, deadline)

        with pytest.raises(InsufficientBAmount):
            router.add_liquidity(alice, token_a.address, token_b.address, 1000, 5000, 0, 2500, alice, deadline)

    def test_minimum_a(self, router, alice, token_a, token_b, deadline):
        router.add_liquidity(alice, token_a.address, token_b.address, 10000, 20000, 0, 0, alice, deadline)

        with pytest.raises(InsufficientAAmount):
            router.add_liquidity(alice, token_a.address, token_b.address, 5000, 1000, 600, 0, alice, deadline)

    def test_expired(self, chain, router, alice, token_a, token_b):
        with pytest.raises(Expired):
            router.add_liquidity(
                alice, token_a.address, token_b.address, 10000, 10000, 0, 0, alice, chain.timestamp - 1
            )

    def test_failed_transfer_from_aborts(self, chain, factory, router, alice, token_a, failing_token, deadline):
        failing_token.failing = True
        root = chain.state_root()

        with pytest.raises(TransferFailed):
            router.add_liquidity(
                alice, token_a.address, failing_token.address, 10000, 10000, 0, 0, alice, deadline
            )

        # The pair created for the deposit is rolled back too
        assert chain.state_root() == root
        assert factory.get_pair(token_a.address, failing_token.address) is None


class TestSwapExactInput:

    def test_quoted_output(self, pool, router, alice, bob, token_a, token_b, deadline):
        amount_out = router.swap_exact_input(alice, 1000, token_a.address, 906, token_b.address, bob, deadline)

        assert amount_out == 906
        assert token_b.balance_of(bob) == 906
        assert router.get_reserves(token_a.address, token_b.address) == (11000, 9094)

    def test_slippage(self, chain, pool, router, alice, bob, token_a, token_b, deadline):
        root = chain.state_root()

        with pytest.raises(InsufficientOutputAmount):
            router.swap_exact_input(alice, 1000, token_a.address, 907, token_b.address, bob, deadline)

        assert chain.state_root() == root

    def test_same_token(self, pool, router, alice, token_a, deadline):
        with pytest.raises(InvalidAsset):
            router.swap_exact_input(alice, 1000, token_a.address, 0, token_a.address, alice, deadline)

    def test_unknown_pair(self, chain, router, alice, token_a, token_b, deadline):
        with pytest.raises(InvalidAsset):
            router.swap_exact_input(alice, 1000, token_a.address, 0, token_b.address, alice, deadline)

    def test_expired(self, chain, pool, router, alice, token_a, token_b):
        with pytest.raises(Expired):
            router.swap_exact_input(alice, 1000, token_a.address, 0, token_b.address, alice, chain.timestamp - 1)


class TestRemoveLiquidity:

    def test_round_trip_returns_less(self, pool, router, alice, token_a, token_b, deadline):
        balance_a = token_a.balance_of(alice)
        pool.shares.approve(alice, router.address, 9000)

        amount_a, amount_b = router.remove_liquidity(
            alice, token_a.address, token_b.address, 9000, 0, 0, alice, deadline
        )

        assert (amount_a, amount_b) == (9000, 9000)
        assert amount_a < 10000 and amount_b < 10000
        assert token_a.balance_of(alice) == balance_a + 9000
        assert pool.shares.balance_of(alice) == 0

    def test_minimums_keep_shares(self, chain, pool, router, alice, token_a, token_b, deadline):
        pool.shares.approve(alice, router.address, 9000)
        root = chain.state_root()

        with pytest.raises(InsufficientAAmount):
            router.remove_liquidity(alice, token_a.address, token_b.address, 9000, 9001, 0, alice, deadline)

        assert chain.state_root() == root
        assert pool.shares.balance_of(alice) == 9000


class TestPermit:

    @pytest.fixture
    def owner(self, router, alice, token_a, token_b):
        signing_key, verify_key = generate_key_pair()
        address = address_from_verify_key(verify_key)
        for token in (token_a, token_b):
            token.transfer(alice, address, 10**6)
            token.approve(address, router.address, UINT256_MAX)
        return signing_key, address

    def test_remove_with_permit(self, chain, router, owner, token_a, token_b, deadline):
        signing_key, address = owner
        router.add_liquidity(address, token_a.address, token_b.address, 10000, 10000, 0, 0, address, deadline)
        pair = chain.contract(chain.contract(router.factory).get_pair(token_a.address, token_b.address))

        signature = sign_permit(signing_key, pair.shares, router.address, 9000, deadline)
        amounts = router.remove_liquidity_with_permit(
            address, token_a.address, token_b.address, 9000, 0, 0, address, deadline,
            False, bytes(signing_key.verify_key), signature
        )

        assert amounts == (9000, 9000)
        assert pair.shares.nonce_of(address) == 1
        assert pair.shares.allowance(address, router.address) == 0

    def test_permit_cannot_be_replayed(self, chain, router, owner, token_a, token_b, deadline):
        signing_key, address = owner
        router.add_liquidity(address, token_a.address, token_b.address, 10000, 10000, 0, 0, address, deadline)
        pair = chain.contract(chain.contract(router.factory).get_pair(token_a.address, token_b.address))

        signature = sign_permit(signing_key, pair.shares, router.address, 1000, deadline)
        pair.shares.permit(address, router.address, 1000, deadline, signing_key.verify_key, signature)

        with pytest.raises(InvalidSignature):
            pair.shares.permit(address, router.address, 1000, deadline, signing_key.verify_key, signature)

    def test_permit_from_other_key(self, chain, router, owner, token_a, token_b, deadline):
        _, address = owner
        router.add_liquidity(address, token_a.address, token_b.address, 10000, 10000, 0, 0, address, deadline)
        pair = chain.contract(chain.contract(router.factory).get_pair(token_a.address, token_b.address))
        intruder, _ = generate_key_pair()

        signature = sign_permit(intruder, pair.shares, router.address, UINT256_MAX, deadline)
        with pytest.raises(InvalidSignature):
            pair.shares.permit(address, router.address, UINT256_MAX, deadline, intruder.verify_key, signature)

    def test_permit_expired(self, chain, router, owner, token_a, token_b, deadline):
        signing_key, address = owner
        router.add_liquidity(address, token_a.address, token_b.address, 10000, 10000, 0, 0, address, deadline)
        pair = chain.contract(chain.contract(router.factory).get_pair(token_a.address, token_b.address))

        signature = sign_permit(signing_key, pair.shares, router.address, 1000, chain.timestamp - 1)
        with pytest.raises(Expired):
            pair.shares.permit(address, router.address, 1000, chain.timestamp - 1, signing_key.verify_key, signature)
