"""Crypto and transport helpers built on nostr-sdk and cryptography.

Sits beside ``signerlink.core`` in the diamond DAG: depends on
``signerlink.models`` (and the core exception types), consumed by
``signerlink.nip46``.

Attributes:
    generate_identity: Fresh ephemeral keypair from the OS CSPRNG.
    derive_public_key: x-only public key for a secret.
    derive_shared_secret: secp256k1 ECDH x-coordinate.
    RelayTransport: Per-relay connect/subscribe/publish/disconnect capability.
    NostrSdkTransport: One ``nostr_sdk.Client`` per relay.
"""

from .keys import (
    derive_public_key,
    derive_shared_secret,
    generate_identity,
    identity_from_secret,
    identity_to_keys,
    parse_public_key,
)
from .transport import NostrSdkChannel, NostrSdkTransport, RelayTransport, create_client


__all__ = [
    "NostrSdkChannel",
    "NostrSdkTransport",
    "RelayTransport",
    "create_client",
    "derive_public_key",
    "derive_shared_secret",
    "generate_identity",
    "identity_from_secret",
    "identity_to_keys",
    "parse_public_key",
]
