"""Pure frozen dataclasses with zero I/O for the remote-signer handshake.

The models layer is the foundation of the diamond DAG. It depends on no other
signerlink package. Every model uses ``@dataclass(frozen=True, slots=True)``
and validates in ``__post_init__`` so invalid instances never escape the
constructor.

Attributes:
    Relay: Validated ``wss://`` relay URL with RFC 3986 parsing. Rejects
        local and private addresses.
    EphemeralIdentity: Per-attempt secp256k1 keypair; the secret is hidden
        from ``repr()``.
    ClientInitiatedUri: ``nostrconnect://`` invite with relays, metadata,
        optional secret and permissions.
    SignerInitiatedUri: Single-relay ``bunker://`` invite.
    BunkerUri: Parsed signer-issued ``bunker://`` string.
    InboundMessage: One relay delivery of an encrypted control message.
    RemoteEnvelope: Closed union of ``Ack``, ``MethodCall``, ``Result`` and
        ``ErrorReply``.
    PersistedSession: Successful connection material with expiry.
    AttemptResult: Exactly-one terminal outcome of an attempt.

See Also:
    [signerlink.models.relay][]: Relay URL validation and network detection.
    [signerlink.models.envelope][]: Envelope decoding rules.
    [signerlink.models.constants][]: Shared constants and enumerations.
"""

from .attempt import AttemptResult
from .constants import (
    PUBKEY_HEX_LENGTH,
    AttemptStatus,
    ConnectionMode,
    EncryptionScheme,
    ErrorKind,
    EventKind,
)
from .envelope import (
    Ack,
    ErrorReply,
    MethodCall,
    RemoteEnvelope,
    Result,
    new_request_id,
    parse_envelope,
    to_json,
)
from .identity import EphemeralIdentity, ResolvedIdentity
from .message import InboundMessage, SubscriptionFilter
from .relay import Relay
from .session import PersistedSession
from .uri import AppMetadata, BunkerUri, ClientInitiatedUri, ConnectionUri, SignerInitiatedUri


__all__ = [
    "PUBKEY_HEX_LENGTH",
    "Ack",
    "AppMetadata",
    "AttemptResult",
    "AttemptStatus",
    "BunkerUri",
    "ClientInitiatedUri",
    "ConnectionMode",
    "ConnectionUri",
    "EncryptionScheme",
    "EphemeralIdentity",
    "ErrorKind",
    "ErrorReply",
    "EventKind",
    "InboundMessage",
    "MethodCall",
    "PersistedSession",
    "Relay",
    "RemoteEnvelope",
    "ResolvedIdentity",
    "Result",
    "SignerInitiatedUri",
    "SubscriptionFilter",
    "new_request_id",
    "parse_envelope",
    "to_json",
]
