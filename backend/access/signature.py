"""Ed25519 detached signatures and libsodium-compatible hashing/base64.

Browser clients use libsodium.js, whose ``to_base64`` defaults to the URL-safe
alphabet without padding. Decoding here accepts every libsodium variant.
"""

import base64

import nacl.hash
from nacl.encoding import RawEncoder
from nacl.exceptions import CryptoError
from nacl.signing import VerifyKey

GENERICHASH_BYTES = nacl.hash.BLAKE2B_BYTES


def from_base64(value: str) -> bytes:
    """Decode standard or URL-safe base64, padded or not. Raises ValueError."""
    normalized = value.strip().replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    return base64.b64decode(normalized, validate=True)


def to_base64(raw: bytes) -> str:
    """Encode like libsodium.js's default variant (URL-safe, unpadded)."""
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generic_hash(data: bytes, digest_size: int = GENERICHASH_BYTES, key: bytes = b"") -> bytes:
    """BLAKE2b, equivalent to libsodium's crypto_generichash."""
    return nacl.hash.blake2b(data, digest_size=digest_size, key=key, encoder=RawEncoder)


def public_key_hash(public_key: bytes) -> str:
    """Fingerprint used in auth cookies to look up a registered public key."""
    return to_base64(generic_hash(public_key))


def verify_detached(signature: str, message: str, public_key: str) -> bool:
    """Return True iff signature (base64) is a valid Ed25519 signature of message.

    Malformed base64 and wrong key or signature lengths count as invalid.
    """
    try:
        verify_key = VerifyKey(from_base64(public_key))
        verify_key.verify(message.encode("utf-8"), from_base64(signature))
    except (CryptoError, ValueError, TypeError):
        return False
    return True
