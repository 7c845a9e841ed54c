"""Shared constants for the models layer.

Defines enumerations and protocol constants used across multiple model
modules. Placing them here avoids circular dependencies between the
models, utils, and nip46 layers.

See Also:
    [signerlink.models.attempt][]: Uses [AttemptStatus][signerlink.models.constants.AttemptStatus]
        and [ErrorKind][signerlink.models.constants.ErrorKind] for terminal outcomes.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


PUBKEY_HEX_LENGTH = 64


class EventKind(IntEnum):
    """Nostr event kinds used by the remote-signing protocol.

    Attributes:
        NOSTR_CONNECT: NIP-46 request/response carrier (ephemeral range).
    """

    NOSTR_CONNECT = 24133


class ConnectionMode(StrEnum):
    """How a connection attempt was initiated.

    Attributes:
        CLIENT_INITIATED: The app displays a ``nostrconnect://`` URI and the
            signer answers with a connect acknowledgement.
        SIGNER_INITIATED: The app exposes a ``bunker://`` invite carrying its
            own ephemeral key for an external signer to pick up.
        BUNKER: The user pasted a ``bunker://`` URI issued by the signer; the
            app sends the ``connect`` request itself.
    """

    CLIENT_INITIATED = "client_initiated"
    SIGNER_INITIATED = "signer_initiated"
    BUNKER = "bunker"


class AttemptStatus(StrEnum):
    """States of a single connection attempt.

    ``SUCCESS``, ``ERROR``, and ``CANCELLED`` are terminal.
    """

    GENERATING = "generating"
    AWAITING_APPROVAL = "awaiting_approval"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (AttemptStatus.SUCCESS, AttemptStatus.ERROR, AttemptStatus.CANCELLED)


class ErrorKind(StrEnum):
    """Taxonomy tag attached to every terminal attempt failure.

    Attributes:
        TIMEOUT: No completed handshake before the approval deadline.
        SIGNER_REJECTED: The signer answered with an error envelope.
        RELAY_UNREACHABLE: Not a single relay of the set could be opened.
        CANCELLED: The caller cancelled the attempt.
        INTERNAL: Unexpected failure inside the attempt task.
    """

    TIMEOUT = "timeout"
    SIGNER_REJECTED = "signer_rejected"
    RELAY_UNREACHABLE = "relay_unreachable"
    CANCELLED = "cancelled"
    INTERNAL = "internal"


class EncryptionScheme(StrEnum):
    """Payload encryption used for outbound envelopes."""

    NIP04 = "nip04"
    NIP44 = "nip44"
