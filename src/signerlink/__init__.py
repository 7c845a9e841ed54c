r"""signerlink -- NIP-46 remote-signer login for Nostr applications.

Establishes an authenticated, encrypted handshake between the application and
an external key-holding signer over a set of public Nostr relays, so the
application never sees the user's private key, and persists the result for
fast reconnect.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
                nip46            Protocol components and orchestration
               /    \
           core      utils       Infrastructure / crypto + transport helpers
               \    /
               models            Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Pure frozen dataclasses. Zero I/O, depends only on stdlib and rfc3986.
    core: Exceptions, logging, metrics, clock, key-value stores.
    utils: Key derivation and ECDH, nostr-sdk relay transport.
    nip46: URIs, envelope codec, relay channels, handshake, state machine,
        session store, client facade.

Note:
    For lightweight usage, import directly from subpackages::

        from signerlink.models import Relay
        from signerlink.nip46 import RemoteSignerClient

    Top-level imports (``from signerlink import RemoteSignerClient``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("signerlink")

__all__ = [
    "Attempt",
    "AttemptResult",
    "AttemptStatus",
    "BunkerUri",
    "ClientConfig",
    "ConnectionStateMachine",
    "EnvelopeCodec",
    "ErrorKind",
    "FileKeyValueStore",
    "HandshakeCorrelator",
    "Logger",
    "MemoryKeyValueStore",
    "PersistedSession",
    "Relay",
    "RelayChannelManager",
    "RemoteSession",
    "RemoteSignerClient",
    "ResolvedIdentity",
    "SessionStore",
    "SignerLinkError",
    "friendly_error_message",
    "generate_identity",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "FileKeyValueStore": ("signerlink.core", "FileKeyValueStore"),
    "Logger": ("signerlink.core", "Logger"),
    "MemoryKeyValueStore": ("signerlink.core", "MemoryKeyValueStore"),
    "SignerLinkError": ("signerlink.core", "SignerLinkError"),
    "AttemptResult": ("signerlink.models", "AttemptResult"),
    "AttemptStatus": ("signerlink.models", "AttemptStatus"),
    "BunkerUri": ("signerlink.models", "BunkerUri"),
    "ErrorKind": ("signerlink.models", "ErrorKind"),
    "PersistedSession": ("signerlink.models", "PersistedSession"),
    "Relay": ("signerlink.models", "Relay"),
    "ResolvedIdentity": ("signerlink.models", "ResolvedIdentity"),
    "generate_identity": ("signerlink.utils", "generate_identity"),
    "Attempt": ("signerlink.nip46", "Attempt"),
    "ClientConfig": ("signerlink.nip46", "ClientConfig"),
    "ConnectionStateMachine": ("signerlink.nip46", "ConnectionStateMachine"),
    "EnvelopeCodec": ("signerlink.nip46", "EnvelopeCodec"),
    "HandshakeCorrelator": ("signerlink.nip46", "HandshakeCorrelator"),
    "RelayChannelManager": ("signerlink.nip46", "RelayChannelManager"),
    "RemoteSession": ("signerlink.nip46", "RemoteSession"),
    "RemoteSignerClient": ("signerlink.nip46", "RemoteSignerClient"),
    "SessionStore": ("signerlink.nip46", "SessionStore"),
    "friendly_error_message": ("signerlink.nip46", "friendly_error_message"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'signerlink' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
