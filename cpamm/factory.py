"""
Pair registry.

Creates at most one pair per unordered token pair at a deterministic address
and holds the protocol fee settings the pairs read on every mint and burn.
"""
import logging
from typing import Optional

from cpamm.chain import Chain, Contract
from cpamm.crypto import label_address
from cpamm.errors import Forbidden, PairExists
from cpamm.events import PairCreated
from cpamm.library import pair_for, sort_tokens
from cpamm.pair import Pair

logger = logging.getLogger(__name__)


class PairFactory(Contract):
    def __init__(self, chain: Chain, fee_to_setter: bytes, address: bytes = None):
        super().__init__(chain, address or label_address("factory"))
        self.fee_to: Optional[bytes] = None
        self.fee_to_setter = fee_to_setter
        self.pairs: dict[bytes, bytes] = {}
        self.all_pairs: list[bytes] = []

    @classmethod
    def deploy(cls, chain: Chain, fee_to_setter: bytes, **kwargs) -> 'PairFactory':
        factory = cls(chain, fee_to_setter, **kwargs)
        chain.deploy(factory)
        return factory

    def to_dict(self) -> dict:
        return {
            'fee_to': self.fee_to,
            'fee_to_setter': self.fee_to_setter,
            'pairs': dict(self.pairs),
            'all_pairs': list(self.all_pairs),
        }

    def load_dict(self, data: dict):
        self.fee_to = data['fee_to']
        self.fee_to_setter = data['fee_to_setter']
        self.pairs = dict(data['pairs'])
        self.all_pairs = list(data['all_pairs'])

    # ==========================================================================
    # REGISTRY
    # ==========================================================================

    def get_pair(self, token_a: bytes, token_b: bytes) -> Optional[bytes]:
        """Pair address for two tokens in either order, or None."""
        if token_a == token_b:
            return None
        token0, token1 = (token_a, token_b) if token_a < token_b else (token_b, token_a)
        return self.pairs.get(token0 + token1)

    def all_pairs_length(self) -> int:
        return len(self.all_pairs)

    def create_pair(self, caller: bytes, token_a: bytes, token_b: bytes) -> bytes:
        with self.chain.atomic():
            token0, token1 = sort_tokens(token_a, token_b)
            if token0 + token1 in self.pairs:
                raise PairExists(f"Pair for {token0.hex()}/{token1.hex()} already exists")

            pair = Pair(self.chain, pair_for(self.address, token0, token1), self.address)
            self.chain.deploy(pair)
            pair.initialize(self.address, token0, token1)

            self.pairs[token0 + token1] = pair.address
            self.all_pairs.append(pair.address)
            self.emit(PairCreated(self.address, token0, token1, pair.address, len(self.all_pairs)))

        logger.info(f"Pair created at {pair.address.hex()} for {token0.hex()}/{token1.hex()}")
        return pair.address

    # ==========================================================================
    # FEE SETTINGS
    # ==========================================================================

    def set_fee_to(self, caller: bytes, fee_to: Optional[bytes]):
        if caller != self.fee_to_setter:
            raise Forbidden("Only fee_to_setter can change fee_to")
        self.fee_to = fee_to
        logger.info(f"Protocol fee recipient set to {fee_to.hex() if fee_to else None}")

    def set_fee_to_setter(self, caller: bytes, fee_to_setter: bytes):
        if caller != self.fee_to_setter:
            raise Forbidden("Only fee_to_setter can change fee_to_setter")
        self.fee_to_setter = fee_to_setter
