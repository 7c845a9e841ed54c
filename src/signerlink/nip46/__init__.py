"""NIP-46 remote-signer client: URIs, codec, relay channels, handshake, sessions.

Top of the diamond DAG. Depends on ``signerlink.core``, ``signerlink.utils``
and ``signerlink.models``; nothing inside signerlink depends on it.

Attributes:
    RemoteSignerClient: Application facade. Starts, cancels and retries
        attempts; performs fast reconnect from a stored session.
    ConnectionStateMachine: Drives one attempt per ``asyncio.Task`` through
        ``GENERATING -> AWAITING_APPROVAL -> SUCCESS | ERROR | CANCELLED``.
    HandshakeCorrelator: Pure connect/identify correlation.
    EnvelopeCodec: NIP-04 / NIP-44 encryption and envelope decoding.
    RelayChannelManager: Redundant multi-relay subscriptions with dedup.
    SessionStore: Single-slot session persistence with lazy expiry.
    RemoteSession: Correlated signer requests (sign_event, nip04_*, nip44_*)
        over an established session.
    ClientConfig: Pydantic configuration, loadable from YAML.
"""

from .channel import RelayChannelManager, SubscriptionHandle, build_sdk_filter, event_p_tags
from .client import RemoteSignerClient, friendly_error_message
from .codec import EnvelopeCodec
from .configs import (
    DEFAULT_PERMISSIONS,
    DEFAULT_RELAYS,
    ClientConfig,
    EncryptionConfig,
    HandshakeConfig,
    MetadataConfig,
    RelaysConfig,
    RequestConfig,
    SessionConfig,
)
from .handshake import (
    CONNECT_METHOD,
    GET_PUBLIC_KEY_METHOD,
    HandshakeCorrelator,
    HandshakePhase,
    HandshakeStep,
)
from .machine import Attempt, ConnectionStateMachine
from .session import (
    NIP04_DECRYPT_METHOD,
    NIP04_ENCRYPT_METHOD,
    NIP44_DECRYPT_METHOD,
    NIP44_ENCRYPT_METHOD,
    SIGN_EVENT_METHOD,
    RemoteSession,
)
from .session_store import SessionStore
from .uri import (
    build_client_initiated_uri,
    build_signer_initiated_uri,
    generate_connect_secret,
    parse_bunker_uri,
)


__all__ = [
    "CONNECT_METHOD",
    "DEFAULT_PERMISSIONS",
    "DEFAULT_RELAYS",
    "GET_PUBLIC_KEY_METHOD",
    "NIP04_DECRYPT_METHOD",
    "NIP04_ENCRYPT_METHOD",
    "NIP44_DECRYPT_METHOD",
    "NIP44_ENCRYPT_METHOD",
    "SIGN_EVENT_METHOD",
    "Attempt",
    "ClientConfig",
    "ConnectionStateMachine",
    "EncryptionConfig",
    "EnvelopeCodec",
    "HandshakeConfig",
    "HandshakeCorrelator",
    "HandshakePhase",
    "HandshakeStep",
    "MetadataConfig",
    "RelayChannelManager",
    "RelaysConfig",
    "RemoteSession",
    "RemoteSignerClient",
    "RequestConfig",
    "SessionConfig",
    "SessionStore",
    "SubscriptionHandle",
    "build_client_initiated_uri",
    "build_sdk_filter",
    "build_signer_initiated_uri",
    "event_p_tags",
    "friendly_error_message",
    "generate_connect_secret",
    "parse_bunker_uri",
]
