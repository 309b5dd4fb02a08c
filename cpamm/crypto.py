"""
Hashing, addresses and signatures.
"""
import nacl.signing
import nacl.exceptions
from Crypto.Hash import keccak

ADDRESS_LENGTH = 20
ZERO_ADDRESS = b'\x00' * ADDRESS_LENGTH


def generate_hash(data: bytes) -> bytes:
    """Generates a Keccak-256 hash."""
    return keccak.new(digest_bits=256, data=data).digest()


def generate_key_pair() -> tuple[nacl.signing.SigningKey, nacl.signing.VerifyKey]:
    """Generates an ed25519 signing key and its verify key."""
    signing_key = nacl.signing.SigningKey.generate()
    return signing_key, signing_key.verify_key


def address_from_verify_key(verify_key: nacl.signing.VerifyKey) -> bytes:
    """Derives an account address from an ed25519 verify key."""
    return generate_hash(bytes(verify_key))[-ADDRESS_LENGTH:]


def derive_address(*parts: bytes) -> bytes:
    """
    Deterministic address for a deployed contract.

    The factory derives pair addresses from (factory, token0, token1), so the
    same unordered token pair always maps to the same address.
    """
    return generate_hash(b''.join(parts))[-ADDRESS_LENGTH:]


def label_address(label: str) -> bytes:
    """Readable test/demo address derived from a label."""
    return derive_address(b'label:', label.encode('utf-8'))


def sign(signing_key: nacl.signing.SigningKey, data: bytes) -> bytes:
    """Signs data, returning the detached 64-byte signature."""
    return signing_key.sign(data).signature


def verify_signature(verify_key: nacl.signing.VerifyKey, signature: bytes, data: bytes) -> bool:
    """Verifies a detached ed25519 signature."""
    try:
        verify_key.verify(data, signature)
        return True
    except (nacl.exceptions.BadSignatureError, ValueError):
        # Catch both cryptographic failures and format/length errors
        return False


def validate_address(address: bytes) -> bytes:
    if not isinstance(address, bytes) or len(address) != ADDRESS_LENGTH:
        raise ValueError(f"Invalid address: {address!r}")
    return address
