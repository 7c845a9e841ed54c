"""Raw inbound relay message and the subscription filter that selects it."""

from __future__ import annotations

from dataclasses import dataclass

from ._validation import validate_hex, validate_str_no_null, validate_timestamp
from .constants import EventKind


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """A kind-24133 event as delivered by one relay, before decryption.

    Created on relay delivery and consumed once by the codec. Two messages
    with the same ``event_id`` from different relays are the same logical
    message; the channel manager collapses them.

    Attributes:
        source_relay: URL of the relay that delivered the event.
        event_id: Hex event id.
        sender_pubkey: Hex author pubkey.
        ciphertext: Encrypted event content.
        created_at: Event timestamp (seconds since epoch).
    """

    source_relay: str
    event_id: str
    sender_pubkey: str
    ciphertext: str
    created_at: int

    def __post_init__(self) -> None:
        validate_str_no_null(self.source_relay, "source_relay")
        validate_hex(self.event_id, "event_id")
        validate_hex(self.sender_pubkey, "sender_pubkey")
        validate_str_no_null(self.ciphertext, "ciphertext")
        validate_timestamp(self.created_at, "created_at")
        object.__setattr__(self, "sender_pubkey", self.sender_pubkey.lower())


@dataclass(frozen=True, slots=True)
class SubscriptionFilter:
    """Selection of control messages addressed to one ephemeral pubkey.

    Relays are not trusted to apply the filter, so
    [matches()][signerlink.models.message.SubscriptionFilter.matches] is
    re-evaluated locally on every delivered event.
    """

    pubkey: str
    since: int
    kind: int = EventKind.NOSTR_CONNECT

    def __post_init__(self) -> None:
        validate_hex(self.pubkey, "pubkey")
        validate_timestamp(self.since, "since")
        object.__setattr__(self, "pubkey", self.pubkey.lower())

    def matches(self, kind: int, p_tags: list[str], created_at: int) -> bool:
        """Return True if an event with these attributes passes the filter."""
        if kind != self.kind:
            return False
        if created_at < self.since:
            return False
        return self.pubkey in (tag.lower() for tag in p_tags)
