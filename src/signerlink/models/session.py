"""Persisted remote-signer session for fast reconnect.

A [PersistedSession][signerlink.models.session.PersistedSession] is created
only when a handshake succeeds. It is the single place an ephemeral secret
key outlives its attempt, so the serialized form stores the key bytes
verbatim as hex and never re-derives them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ._validation import validate_hex, validate_instance, validate_timestamp
from .identity import EphemeralIdentity, ResolvedIdentity


@dataclass(frozen=True, slots=True)
class PersistedSession:
    """Material of a successful connection.

    Attributes:
        local_identity: The ephemeral identity the handshake ran with.
        remote_pubkey: Resolved user pubkey (hex).
        relays: Relays the session talks over.
        connected_at: Unix time of the successful handshake.
        expires_at: Unix time after which the session is discarded.
        signer_pubkey: Pubkey the signer agent answered from, when it differs
            from ``remote_pubkey`` or is known.
    """

    local_identity: EphemeralIdentity
    remote_pubkey: str
    relays: tuple[str, ...]
    connected_at: int
    expires_at: int
    signer_pubkey: str | None = None

    def __post_init__(self) -> None:
        validate_instance(self.local_identity, EphemeralIdentity, "local_identity")
        validate_hex(self.remote_pubkey, "remote_pubkey")
        if self.signer_pubkey is not None:
            validate_hex(self.signer_pubkey, "signer_pubkey")
        validate_timestamp(self.connected_at, "connected_at")
        validate_timestamp(self.expires_at, "expires_at")
        object.__setattr__(self, "relays", tuple(self.relays))
        if not self.relays:
            raise ValueError("relays must not be empty")

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now

    @property
    def probe_pubkey(self) -> str:
        """Pubkey a liveness probe is addressed to."""
        return self.signer_pubkey or self.remote_pubkey

    def to_identity(self) -> ResolvedIdentity:
        return ResolvedIdentity(
            user_pubkey=self.remote_pubkey,
            signer_pubkey=self.probe_pubkey,
            relays=self.relays,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "secret_key": self.local_identity.secret_key_hex,
            "public_key": self.local_identity.public_key_hex,
            "remote_pubkey": self.remote_pubkey,
            "signer_pubkey": self.signer_pubkey,
            "relays": list(self.relays),
            "connected_at": self.connected_at,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> PersistedSession:
        """Rebuild a session from its ``to_dict()`` form.

        Raises:
            ValueError: If the record is not a mapping, misses fields, or
                fails validation.
        """
        if not isinstance(data, dict):
            raise ValueError(f"session record must be an object, got {type(data).__name__}")
        try:
            identity = EphemeralIdentity(
                secret_key=bytes.fromhex(data["secret_key"]),
                public_key=bytes.fromhex(data["public_key"]),
            )
            return cls(
                local_identity=identity,
                remote_pubkey=data["remote_pubkey"],
                signer_pubkey=data.get("signer_pubkey"),
                relays=tuple(data["relays"]),
                connected_at=data["connected_at"],
                expires_at=data["expires_at"],
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"invalid session record: {e}") from e
