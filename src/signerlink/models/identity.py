"""Ephemeral client identity and resolved signer identity types.

An [EphemeralIdentity][signerlink.models.identity.EphemeralIdentity] is the
throwaway keypair the application uses to talk to a remote signer. It is
created fresh for every connection attempt and only outlives the attempt
inside a persisted session.

Warning:
    ``EphemeralIdentity`` holds a raw secp256k1 secret. Its ``repr()`` never
    includes the secret; do not log ``secret_key`` or ``secret_key_hex``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ._validation import validate_hex, validate_key_bytes


@dataclass(frozen=True, slots=True)
class EphemeralIdentity:
    """A per-attempt secp256k1 keypair.

    Construction does not re-derive the public key; use
    [generate_identity()][signerlink.utils.keys.generate_identity] or
    [identity_from_secret()][signerlink.utils.keys.identity_from_secret]
    to obtain a consistent pair.

    Attributes:
        secret_key: 32-byte secret scalar (big-endian).
        public_key: 32-byte x-only public key (BIP-340 encoding).
    """

    secret_key: bytes = field(repr=False)
    public_key: bytes

    def __post_init__(self) -> None:
        validate_key_bytes(self.secret_key, "secret_key")
        validate_key_bytes(self.public_key, "public_key")

    @property
    def secret_key_hex(self) -> str:
        return self.secret_key.hex()

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()

    def __repr__(self) -> str:
        return f"EphemeralIdentity(public_key={self.public_key_hex})"


@dataclass(frozen=True, slots=True)
class ResolvedIdentity:
    """The user identity obtained from a completed handshake or probe.

    Attributes:
        user_pubkey: Hex public key of the end user (``get_public_key`` answer).
        signer_pubkey: Hex public key the signer agent speaks with. May differ
            from ``user_pubkey``.
        relays: Relay URLs the session talks over.
    """

    user_pubkey: str
    signer_pubkey: str
    relays: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        validate_hex(self.user_pubkey, "user_pubkey")
        validate_hex(self.signer_pubkey, "signer_pubkey")
        object.__setattr__(self, "user_pubkey", self.user_pubkey.lower())
        object.__setattr__(self, "signer_pubkey", self.signer_pubkey.lower())
        object.__setattr__(self, "relays", tuple(self.relays))
