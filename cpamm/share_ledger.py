"""
Liquidity share ledger.

A pair owns one ShareLedger rather than being a token itself. Minting and
burning are internal to the pair; transfer, approve, transfer_from and permit
are the public operations holders use to move their shares.
"""
import nacl.signing

from cpamm.chain import pack
from cpamm.crypto import ZERO_ADDRESS, address_from_verify_key, generate_hash, sign, verify_signature
from cpamm.errors import Expired, Forbidden, InsufficientAllowance, InsufficientBalance, InvalidSignature
from cpamm.events import Approval, Transfer
from cpamm.safe_math import UINT256_MAX, add, check_uint, sub

PERMIT_TYPE = b'Permit(address owner,address spender,uint256 value,uint256 nonce,uint256 deadline)'


class ShareLedger:
    """
    Balances and allowances of one pair's liquidity shares.

    Args:
        chain: Chain the owning pair is deployed on (clock and event log)
        address: Address of the owning pair; events are emitted under it
    """

    decimals = 18

    def __init__(self, chain, address: bytes, name: str = "Pair Liquidity", symbol: str = "PAIR-LP"):
        self.chain = chain
        self.address = address
        self.name = name
        self.symbol = symbol
        self.total_supply = 0
        self.balances: dict[bytes, int] = {}
        self.allowances: dict[bytes, dict[bytes, int]] = {}
        self.nonces: dict[bytes, int] = {}

    def to_dict(self) -> dict:
        return {
            'total_supply': self.total_supply,
            'balances': dict(self.balances),
            'allowances': {owner: dict(spenders) for owner, spenders in self.allowances.items()},
            'nonces': dict(self.nonces),
        }

    def load_dict(self, data: dict):
        self.total_supply = data['total_supply']
        self.balances = dict(data['balances'])
        self.allowances = {owner: dict(spenders) for owner, spenders in data['allowances'].items()}
        self.nonces = dict(data['nonces'])

    def balance_of(self, holder: bytes) -> int:
        return self.balances.get(holder, 0)

    def allowance(self, owner: bytes, spender: bytes) -> int:
        return self.allowances.get(owner, {}).get(spender, 0)

    def nonce_of(self, owner: bytes) -> int:
        return self.nonces.get(owner, 0)

    # ==========================================================================
    # INTERNAL (called by the owning pair only)
    # ==========================================================================

    @staticmethod
    def _check_owner(owner: bytes):
        # Shares held at the zero address are locked forever
        if owner == ZERO_ADDRESS:
            raise Forbidden("Zero address shares cannot be moved or approved")

    def _mint(self, to: bytes, value: int):
        self.total_supply = add(self.total_supply, value)
        self.balances[to] = self.balance_of(to) + value
        self.chain.emit(Transfer(self.address, ZERO_ADDRESS, to, value))

    def _burn(self, owner: bytes, value: int):
        balance = self.balance_of(owner)
        if balance < value:
            raise InsufficientBalance(f"Cannot burn {value} shares, holder has {balance}")
        self.balances[owner] = balance - value
        self.total_supply = sub(self.total_supply, value)
        self.chain.emit(Transfer(self.address, owner, ZERO_ADDRESS, value))

    def _approve(self, owner: bytes, spender: bytes, value: int):
        self._check_owner(owner)
        self.allowances.setdefault(owner, {})[spender] = check_uint(value)
        self.chain.emit(Approval(self.address, owner, spender, value))

    def _transfer(self, sender: bytes, to: bytes, value: int):
        self._check_owner(sender)
        balance = self.balance_of(sender)
        if value < 0 or balance < value:
            raise InsufficientBalance(f"Share balance {balance} < {value} for {sender.hex()}")
        self.balances[sender] = balance - value
        self.balances[to] = self.balance_of(to) + value
        self.chain.emit(Transfer(self.address, sender, to, value))

    # ==========================================================================
    # PUBLIC
    # ==========================================================================

    def transfer(self, sender: bytes, to: bytes, value: int) -> bool:
        self._transfer(sender, to, value)
        return True

    def approve(self, owner: bytes, spender: bytes, value: int) -> bool:
        self._approve(owner, spender, value)
        return True

    def transfer_from(self, spender: bytes, owner: bytes, to: bytes, value: int) -> bool:
        self._check_owner(owner)
        allowed = self.allowance(owner, spender)
        if allowed != UINT256_MAX and allowed < value:
            raise InsufficientAllowance(f"Share allowance {allowed} < {value}")
        self._transfer(owner, to, value)
        if allowed != UINT256_MAX:
            self.allowances.setdefault(owner, {})[spender] = allowed - value
        return True

    # ==========================================================================
    # PERMIT (signed approvals)
    # ==========================================================================

    @property
    def domain_separator(self) -> bytes:
        return generate_hash(pack([self.name.encode('utf-8'), b'1', self.chain.chain_id, self.address]))

    def permit_digest(self, owner: bytes, spender: bytes, value: int, nonce: int, deadline: int) -> bytes:
        struct_hash = generate_hash(pack([PERMIT_TYPE, owner, spender, value, nonce, deadline]))
        return generate_hash(b'\x19\x01' + self.domain_separator + struct_hash)

    def permit(self, owner: bytes, spender: bytes, value: int, deadline: int,
               verify_key: bytes, signature: bytes):
        """
        Approve `spender` on behalf of `owner` using an ed25519 signature.

        The owner address must be the one derived from `verify_key`, and the
        signature must cover the digest for the owner's current nonce.
        """
        self._check_owner(owner)
        if deadline < self.chain.timestamp:
            raise Expired(f"Permit deadline {deadline} passed (now {self.chain.timestamp})")
        key = verify_key if isinstance(verify_key, nacl.signing.VerifyKey) else nacl.signing.VerifyKey(verify_key)
        if address_from_verify_key(key) != owner:
            raise InvalidSignature("Verify key does not belong to owner")

        nonce = self.nonce_of(owner)
        digest = self.permit_digest(owner, spender, value, nonce, deadline)
        if not verify_signature(key, signature, digest):
            raise InvalidSignature("Permit signature does not verify")

        self.nonces[owner] = nonce + 1
        self._approve(owner, spender, value)


def sign_permit(signing_key: nacl.signing.SigningKey, ledger: ShareLedger,
                spender: bytes, value: int, deadline: int) -> bytes:
    """Produce a permit signature for the signing key's address at its current nonce."""
    owner = address_from_verify_key(signing_key.verify_key)
    digest = ledger.permit_digest(owner, spender, value, ledger.nonce_of(owner), deadline)
    return sign(signing_key, digest)
