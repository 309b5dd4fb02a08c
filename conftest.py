"""
Shared fixtures: a chain with a factory, a router and two funded tokens.
"""
import pytest

from cpamm.chain import Chain
from cpamm.crypto import label_address
from cpamm.erc20 import Token
from cpamm.factory import PairFactory
from cpamm.router import Router
from cpamm.safe_math import UINT256_MAX

START_TIME = 1_700_000_000
INITIAL_BALANCE = 10**36


@pytest.fixture
def chain():
    return Chain(chain_id=1, timestamp=START_TIME)


@pytest.fixture
def setter():
    return label_address("fee-setter")


@pytest.fixture
def alice():
    return label_address("alice")


@pytest.fixture
def bob():
    return label_address("bob")


@pytest.fixture
def factory(chain, setter):
    return PairFactory.deploy(chain, setter)


@pytest.fixture
def router(chain, factory):
    return Router.deploy(chain, factory.address)


@pytest.fixture
def token_a(chain, alice, router):
    token = Token.deploy(chain, "TKA")
    token.mint(alice, INITIAL_BALANCE)
    token.approve(alice, router.address, UINT256_MAX)
    return token


@pytest.fixture
def token_b(chain, alice, router):
    token = Token.deploy(chain, "TKB")
    token.mint(alice, INITIAL_BALANCE)
    token.approve(alice, router.address, UINT256_MAX)
    return token


@pytest.fixture
def pair(chain, factory, alice, token_a, token_b):
    """An empty, initialized pair for (token_a, token_b)."""
    return chain.contract(factory.create_pair(alice, token_a.address, token_b.address))


@pytest.fixture
def tokens(chain, pair):
    """The pair's tokens in canonical order: (token0, token1)."""
    return chain.contract(pair.token0), chain.contract(pair.token1)


@pytest.fixture
def deposit(chain):
    """Transfer both tokens into a pair and mint shares to `to`."""
    def _deposit(pair, sender, amount0, amount1, to=None):
        chain.contract(pair.token0).transfer(sender, pair.address, amount0)
        chain.contract(pair.token1).transfer(sender, pair.address, amount1)
        return pair.mint(sender, to or sender)
    return _deposit


class FailingToken(Token):
    """Token whose transfers report failure instead of raising once `failing` is set."""

    failing = False

    def transfer(self, sender, to, amount):
        if self.failing:
            return False
        return super().transfer(sender, to, amount)

    def transfer_from(self, spender, owner, to, amount):
        if self.failing:
            return False
        return super().transfer_from(spender, owner, to, amount)


@pytest.fixture
def failing_token(chain, alice, router):
    token = FailingToken.deploy(chain, "BAD")
    token.mint(alice, INITIAL_BALANCE)
    token.approve(alice, router.address, UINT256_MAX)
    return token
