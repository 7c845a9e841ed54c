"""
Validated rendezvous relay URL.

NIP-46 requests and replies meet on public relays, so a
[Relay][signerlink.models.relay.Relay] is always a ``wss://`` endpoint on a
public hostname or globally routable IP address. ``ws://`` input is upgraded;
loopback, private and reserved addresses are rejected.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from ipaddress import ip_address
from typing import ClassVar

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator


@dataclass(frozen=True, slots=True)
class Relay:
    """Immutable, normalized relay endpoint.

    Equality and hashing use the normalized ``url`` only.

    Attributes:
        url: Normalized ``wss://`` URL without a default port or trailing slash.
        host: Hostname or IP address (brackets stripped for IPv6).
        port: Explicit non-default port, or ``None``.
        path: Path component, or ``None``.

    Raises:
        ValueError: If the URL is malformed, is not ``ws``/``wss``, carries a
            query or fragment, or points at a local address.

    Examples:
        ```python
        Relay("ws://relay.nsec.app/").url   # 'wss://relay.nsec.app'
        ```
    """

    raw_url: str = field(repr=False, compare=False)

    url: str = field(init=False)
    host: str = field(init=False, compare=False)
    port: int | None = field(init=False, compare=False)
    path: str | None = field(init=False, compare=False)

    SCHEME: ClassVar[str] = "wss"
    _DEFAULT_PORT: ClassVar[int] = 443

    def __post_init__(self) -> None:
        if not isinstance(self.raw_url, str):
            raise TypeError(f"raw_url must be a str, got {type(self.raw_url).__name__}")
        if "\x00" in self.raw_url:
            raise ValueError("Relay URL contains null bytes")

        uri = uri_reference(self.raw_url.strip()).normalize()
        validator = (
            Validator()
            .require_presence_of("scheme", "host")
            .allow_schemes("ws", "wss")
            .check_validity_of("scheme", "host", "port", "path")
        )
        try:
            validator.validate(uri)
        except UnpermittedComponentError:
            raise ValueError("Invalid scheme: must be ws or wss") from None
        except ValidationError as e:
            raise ValueError(f"Invalid URL: {e}") from None
        if uri.query:
            raise ValueError(f"Relay URL must not contain a query string: ?{uri.query}")
        if uri.fragment:
            raise ValueError(f"Relay URL must not contain a fragment: #{uri.fragment}")

        host = uri.host.strip("[]").lower()
        _check_public_host(host)

        port = int(uri.port) if uri.port else None
        if port == self._DEFAULT_PORT:
            port = None

        path = uri.path or ""
        while "//" in path:
            path = path.replace("//", "/")
        path = path.rstrip("/") or None

        netloc = f"[{host}]" if ":" in host else host
        if port is not None:
            netloc = f"{netloc}:{port}"

        # Bypass frozen restriction to set computed fields
        object.__setattr__(self, "url", f"{self.SCHEME}://{netloc}{path or ''}")
        object.__setattr__(self, "host", host)
        object.__setattr__(self, "port", port)
        object.__setattr__(self, "path", path)

    def __str__(self) -> str:
        return self.url

    @classmethod
    def parse_many(cls, urls: Iterable[str | Relay]) -> list[Relay]:
        """Normalize a relay list, dropping duplicates while keeping first-seen order.

        Raises:
            ValueError: If any URL is invalid.
        """
        seen: set[str] = set()
        relays: list[Relay] = []
        for item in urls:
            relay = item if isinstance(item, Relay) else cls(item)
            if relay.url in seen:
                continue
            seen.add(relay.url)
            relays.append(relay)
        return relays


def _check_public_host(host: str) -> None:
    if host in ("localhost", "localhost.localdomain"):
        raise ValueError("Local addresses not allowed")
    try:
        ip = ip_address(host)
    except ValueError:
        pass
    else:
        if not ip.is_global:
            raise ValueError(f"Local addresses not allowed: {host}")
        return

    labels = host.split(".")
    if len(labels) < 2 or not all(
        label and not label.startswith("-") and not label.endswith("-") for label in labels
    ):
        raise ValueError(f"Invalid host: '{host}'")
