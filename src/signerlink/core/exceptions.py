"""signerlink exception hierarchy.

Provides typed exceptions for every error category so callers can tell
per-message noise from attempt-level failures, and so ``CancelledError``
propagates untouched.

Exception hierarchy:

```text
SignerLinkError (base -- never raised directly)
├── ConfigurationError          -- config validation, bad YAML, bad URIs
├── StorageError                -- session persistence failures
│   └── QueryError              -- unreadable or unwritable store file
├── ConnectivityError           -- relay unreachable, network failures
│   ├── RelayUnreachableError   -- one relay (absorbed) or all relays (fatal)
│   └── RelaySSLError           -- certificate issues
├── CodecError                  -- per message, dropped silently
│   ├── DecryptError            -- bad padding, bad MAC, bad key
│   └── MalformedResponseError  -- decrypted but not a valid envelope
└── HandshakeError              -- attempt-level, retryable
    ├── HandshakeTimeoutError   -- approval deadline elapsed
    │   └── RequestTimeoutError -- session request got no reply in time
    ├── SignerRejectedError     -- signer answered with an error envelope
    └── SessionExpiredError     -- stored session unusable, fall back
```

See Also:
    [EnvelopeCodec][signerlink.nip46.codec.EnvelopeCodec]: Raises
        [CodecError][signerlink.core.exceptions.CodecError] subclasses.
    [RelayChannelManager][signerlink.nip46.channel.RelayChannelManager]:
        Raises [RelayUnreachableError][signerlink.core.exceptions.RelayUnreachableError]
        when no relay of the set connects.
    [ConnectionStateMachine][signerlink.nip46.machine.ConnectionStateMachine]:
        Maps every exception to an
        [ErrorKind][signerlink.models.constants.ErrorKind] at the attempt
        boundary.
"""

from __future__ import annotations


class SignerLinkError(Exception):
    """Base exception for all signerlink errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(SignerLinkError):
    """Invalid or missing configuration (YAML, env vars, pasted URIs).

    See Also:
        [load_yaml()][signerlink.core.yaml.load_yaml]: YAML loading function
            that may trigger configuration errors.
    """


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class StorageError(SignerLinkError):
    """Base for all session persistence errors."""


class QueryError(StorageError):
    """Permanent storage error: unreadable or unwritable store file.

    Callers should NOT retry -- the operation itself is wrong.
    """


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(SignerLinkError):
    """Base for all relay/network connectivity errors."""


class RelayUnreachableError(ConnectivityError):
    """A relay could not be connected to within its timeout.

    Raised per relay by the transport and absorbed by the channel manager;
    raised again by the channel manager when *no* relay of the set connects,
    which ends the attempt.
    """


class RelaySSLError(ConnectivityError):
    """TLS/SSL certificate or handshake failure.

    See Also:
        [RelayUnreachableError][signerlink.core.exceptions.RelayUnreachableError]:
            Sibling for plain connection failures.
    """


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class CodecError(SignerLinkError):
    """Base for per-message decoding failures.

    Never fatal: the message is dropped and the attempt keeps waiting.
    """


class DecryptError(CodecError):
    """Ciphertext could not be decrypted (bad padding, MAC, or key)."""


class MalformedResponseError(CodecError):
    """Plaintext decrypted but is not a valid JSON envelope."""


# ---------------------------------------------------------------------------
# Handshake
# ---------------------------------------------------------------------------


class HandshakeError(SignerLinkError):
    """Base for attempt-level failures. All are retryable with a new attempt."""


class HandshakeTimeoutError(HandshakeError):
    """No completed handshake before the approval deadline."""


class RequestTimeoutError(HandshakeTimeoutError):
    """A request sent over an established session got no reply before its timeout.

    See Also:
        [RemoteSession][signerlink.nip46.session.RemoteSession]: Raises this
            from every signer call.
    """


class SignerRejectedError(HandshakeError):
    """The signer answered with an error envelope.

    Attributes:
        reason: The signer-supplied error string.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"signer rejected the request: {reason}")
        self.reason = reason


class SessionExpiredError(HandshakeError):
    """A stored session is expired, corrupt, or failed its liveness probe.

    Non-fatal: the caller falls back to a full handshake.
    """
