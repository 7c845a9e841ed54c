"""Connection URI builders and the ``bunker://`` parser.

Relay URLs are normalized through [Relay][signerlink.models.relay.Relay]
before they are embedded, keeping first-seen order so the rendered URI is
deterministic for a given input.
"""

from __future__ import annotations

import secrets
from collections.abc import Iterable

from signerlink.core.exceptions import ConfigurationError
from signerlink.models.identity import EphemeralIdentity
from signerlink.models.relay import Relay
from signerlink.models.uri import AppMetadata, BunkerUri, ClientInitiatedUri, SignerInitiatedUri


def generate_connect_secret() -> str:
    """Return a random one-time connect secret (16 hex characters)."""
    return secrets.token_hex(8)


def _normalize_relays(relays: Iterable[str | Relay]) -> tuple[str, ...]:
    try:
        normalized = tuple(relay.url for relay in Relay.parse_many(relays))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid relay URL: {e}") from e
    if not normalized:
        raise ConfigurationError("At least one relay is required")
    return normalized


def build_client_initiated_uri(
    identity: EphemeralIdentity,
    relays: Iterable[str | Relay],
    metadata: AppMetadata | None = None,
    *,
    secret: str | None = None,
    permissions: Iterable[str] = (),
) -> ClientInitiatedUri:
    """Build the ``nostrconnect://`` URI displayed to the user.

    Raises:
        ConfigurationError: If *relays* is empty or contains an invalid URL.
    """
    return ClientInitiatedUri(
        client_pubkey=identity.public_key_hex,
        relays=_normalize_relays(relays),
        metadata=metadata or AppMetadata(),
        secret=secret,
        permissions=tuple(permissions),
    )


def build_signer_initiated_uri(identity: EphemeralIdentity, relay: str | Relay) -> SignerInitiatedUri:
    """Build the single-relay ``bunker://`` invite exposing *identity*.

    Raises:
        ConfigurationError: If *relay* is not a valid relay URL.
    """
    (normalized,) = _normalize_relays([relay])
    return SignerInitiatedUri(client_pubkey=identity.public_key_hex, relay=normalized)


def parse_bunker_uri(text: str) -> BunkerUri:
    """Parse a signer-issued ``bunker://<pubkey>?relay=..&secret=..`` string.

    Raises:
        ConfigurationError: If the string is not a valid bunker URI.
    """
    try:
        parsed = BunkerUri.parse(text)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid bunker URI: {e}") from e
    return BunkerUri(
        signer_pubkey=parsed.signer_pubkey,
        relays=_normalize_relays(parsed.relays),
        secret=parsed.secret,
    )
