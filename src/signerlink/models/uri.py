"""Connection URI variants exchanged out-of-band with a remote signer.

Three immutable variants share the ``to_string()`` / ``__str__`` surface:

* [ClientInitiatedUri][signerlink.models.uri.ClientInitiatedUri] --
  ``nostrconnect://<client_pubkey>?relay=..&metadata=..``, shown to the user
  as a QR code or deep link.
* [SignerInitiatedUri][signerlink.models.uri.SignerInitiatedUri] --
  ``bunker://<client_pubkey>?relay=..``, an invite for an external signer.
* [BunkerUri][signerlink.models.uri.BunkerUri] -- the parsed form of a
  ``bunker://<signer_pubkey>?relay=..&secret=..`` string issued by a signer.

All variants contain public material only. Relay order is preserved exactly
as given so the rendered string is deterministic.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, quote, urlsplit

from ._validation import validate_hex, validate_instance, validate_str_no_null


CLIENT_INITIATED_SCHEME = "nostrconnect"
BUNKER_SCHEME = "bunker"


def _encode_query(pairs: list[tuple[str, str]]) -> str:
    return "&".join(f"{key}={quote(value, safe='')}" for key, value in pairs)


def _validate_relays(relays: tuple[str, ...], name: str = "relays") -> None:
    if not relays:
        raise ValueError(f"{name} must not be empty")
    for relay in relays:
        validate_str_no_null(relay, name)


@dataclass(frozen=True, slots=True)
class AppMetadata:
    """Descriptive application metadata embedded in ``nostrconnect://`` URIs.

    The protocol logic never inspects these values; signers display them on
    their approval prompt.
    """

    name: str = "Nostr Journal"
    url: str = "https://nostrjournal.app"
    description: str = "Private journaling on Nostr"

    def __post_init__(self) -> None:
        validate_str_no_null(self.name, "name")
        validate_str_no_null(self.url, "url")
        validate_str_no_null(self.description, "description")

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "url": self.url, "description": self.description}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppMetadata:
        return cls(
            name=str(data.get("name", "")),
            url=str(data.get("url", "")),
            description=str(data.get("description", "")),
        )


@dataclass(frozen=True, slots=True)
class ClientInitiatedUri:
    """A ``nostrconnect://`` invite carrying the client's ephemeral pubkey.

    Attributes:
        client_pubkey: Hex x-only public key of the ephemeral identity.
        relays: Ordered relay URLs the client listens on.
        metadata: Application metadata shown by the signer.
        secret: Optional one-time token the signer echoes back as its ack.
        permissions: Requested permissions (``perms`` query parameter).
    """

    client_pubkey: str
    relays: tuple[str, ...]
    metadata: AppMetadata = field(default_factory=AppMetadata)
    secret: str | None = None
    permissions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        validate_hex(self.client_pubkey, "client_pubkey")
        object.__setattr__(self, "relays", tuple(self.relays))
        object.__setattr__(self, "permissions", tuple(self.permissions))
        _validate_relays(self.relays)
        validate_instance(self.metadata, AppMetadata, "metadata")
        if self.secret is not None:
            validate_str_no_null(self.secret, "secret")

    def to_string(self) -> str:
        pairs = [("relay", relay) for relay in self.relays]
        pairs.append(("metadata", self.metadata.to_json()))
        if self.secret:
            pairs.append(("secret", self.secret))
        if self.permissions:
            pairs.append(("perms", ",".join(self.permissions)))
        return f"{CLIENT_INITIATED_SCHEME}://{self.client_pubkey}?{_encode_query(pairs)}"

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True, slots=True)
class SignerInitiatedUri:
    """A single-relay ``bunker://`` invite exposing the client's ephemeral pubkey."""

    client_pubkey: str
    relay: str

    def __post_init__(self) -> None:
        validate_hex(self.client_pubkey, "client_pubkey")
        _validate_relays((self.relay,), "relay")

    @property
    def relays(self) -> tuple[str, ...]:
        return (self.relay,)

    def to_string(self) -> str:
        return f"{BUNKER_SCHEME}://{self.client_pubkey}?{_encode_query([('relay', self.relay)])}"

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True, slots=True)
class BunkerUri:
    """A ``bunker://`` string issued by a signer and pasted by the user.

    Attributes:
        signer_pubkey: Hex public key the signer listens on.
        relays: Relays the signer listens on, in the order given.
        secret: Optional connect secret to present in the ``connect`` request.
    """

    signer_pubkey: str
    relays: tuple[str, ...]
    secret: str | None = None

    def __post_init__(self) -> None:
        validate_hex(self.signer_pubkey, "signer_pubkey")
        object.__setattr__(self, "signer_pubkey", self.signer_pubkey.lower())
        object.__setattr__(self, "relays", tuple(self.relays))
        _validate_relays(self.relays)
        if self.secret is not None:
            validate_str_no_null(self.secret, "secret")

    def to_string(self) -> str:
        pairs = [("relay", relay) for relay in self.relays]
        if self.secret:
            pairs.append(("secret", self.secret))
        return f"{BUNKER_SCHEME}://{self.signer_pubkey}?{_encode_query(pairs)}"

    def __str__(self) -> str:
        return self.to_string()

    @classmethod
    def parse(cls, text: str) -> BunkerUri:
        """Parse a ``bunker://`` string.

        Raises:
            ValueError: If the scheme is wrong, the pubkey is not 64 hex
                characters, or no relay is present.
        """
        validate_str_no_null(text, "uri")
        parts = urlsplit(text.strip())
        if parts.scheme != BUNKER_SCHEME:
            raise ValueError(f"Invalid bunker URI: scheme must be {BUNKER_SCHEME}://")
        query = parse_qs(parts.query)
        secrets = query.get("secret", [])
        return cls(
            signer_pubkey=parts.netloc or parts.path.lstrip("/"),
            relays=tuple(query.get("relay", [])),
            secret=secrets[0] if secrets else None,
        )


ConnectionUri = ClientInitiatedUri | SignerInitiatedUri | BunkerUri
