"""Ephemeral key generation and secp256k1 helpers.

Identities are generated with ``nostr_sdk.Keys.generate()`` (OS CSPRNG); the
curve arithmetic used to check and combine them (public key derivation and
ECDH) goes through ``cryptography``'s secp256k1 implementation.

Warning:
    Secret keys handled here must never be logged. Pass an
    [EphemeralIdentity][signerlink.models.identity.EphemeralIdentity] around
    instead of raw bytes; its ``repr()`` hides the secret.

Examples:
    ```python
    from signerlink.utils.keys import derive_shared_secret, generate_identity

    alice, bob = generate_identity(), generate_identity()
    assert derive_shared_secret(alice.secret_key, bob.public_key) == derive_shared_secret(
        bob.secret_key, alice.public_key
    )
    ```
"""

from __future__ import annotations

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from nostr_sdk import Keys, PublicKey

from signerlink.models.identity import EphemeralIdentity


_EVEN_Y_PREFIX = b"\x02"


def _private_key(secret_key: bytes) -> ec.EllipticCurvePrivateKey:
    if len(secret_key) != 32:
        raise ValueError(f"secret_key must be 32 bytes, got {len(secret_key)}")
    return ec.derive_private_key(int.from_bytes(secret_key, "big"), ec.SECP256K1())


def derive_public_key(secret_key: bytes) -> bytes:
    """Return the 32-byte x-only public key for *secret_key*.

    Raises:
        ValueError: If *secret_key* is not 32 bytes or is out of the curve
            order range.
    """
    point = _private_key(secret_key).public_key().public_bytes(
        Encoding.X962, PublicFormat.CompressedPoint
    )
    return point[1:]


def derive_shared_secret(own_secret: bytes, counterparty_pubkey: bytes) -> bytes:
    """ECDH over secp256k1; returns the 32-byte x-coordinate of the shared point.

    The x-only counterparty key is lifted with an even Y coordinate, which is
    harmless because the x-coordinate of ``k*P`` equals that of ``k*(-P)``.
    Symmetric: ``derive_shared_secret(a, B) == derive_shared_secret(b, A)``.

    Raises:
        ValueError: If either key is malformed or the pubkey is not on the curve.
    """
    if len(counterparty_pubkey) != 32:
        raise ValueError(f"counterparty_pubkey must be 32 bytes, got {len(counterparty_pubkey)}")
    peer = ec.EllipticCurvePublicKey.from_encoded_point(
        ec.SECP256K1(), _EVEN_Y_PREFIX + counterparty_pubkey
    )
    return _private_key(own_secret).exchange(ec.ECDH(), peer)


def generate_identity() -> EphemeralIdentity:
    """Create a fresh identity from the OS CSPRNG.

    Entropy failures propagate; they are not retryable.
    """
    keys = Keys.generate()
    return EphemeralIdentity(
        secret_key=bytes.fromhex(keys.secret_key().to_hex()),
        public_key=bytes.fromhex(keys.public_key().to_hex()),
    )


def identity_from_secret(secret_key: bytes) -> EphemeralIdentity:
    """Build an identity from existing secret bytes, deriving the public key."""
    return EphemeralIdentity(secret_key=secret_key, public_key=derive_public_key(secret_key))


def identity_to_keys(identity: EphemeralIdentity) -> Keys:
    """Return ``nostr_sdk.Keys`` for signing with *identity*."""
    return Keys.parse(identity.secret_key_hex)


def parse_public_key(pubkey_hex: str) -> PublicKey:
    """Parse a hex pubkey into ``nostr_sdk.PublicKey``."""
    return PublicKey.parse(pubkey_hex)
