"""Pydantic configuration models for the remote-signer client.

All policy constants (timeouts, windows, TTLs) live here with their bounds.
[ClientConfig][signerlink.nip46.configs.ClientConfig] aggregates them and can
be loaded from YAML:

```yaml
relays:
  urls: [wss://relay.nsec.app, wss://relay.getalby.com/v1]
  connect_timeout: 7.0
handshake:
  approval_timeout: 90.0
session:
  ttl: 86400
  path: .signerlink/session.json
requests:
  timeout: 30.0
metrics:
  enabled: false
```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from signerlink.core.metrics import MetricsConfig
from signerlink.core.store import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from signerlink.core.yaml import load_yaml
from signerlink.models.constants import EncryptionScheme
from signerlink.models.relay import Relay
from signerlink.models.uri import AppMetadata


DEFAULT_RELAYS: tuple[str, ...] = (
    "wss://relay.nsec.app",
    "wss://relay.getalby.com/v1",
    "wss://nostr.mutinywallet.com",
)

DEFAULT_PERMISSIONS: tuple[str, ...] = (
    "sign_event:1",
    "sign_event:5",
    "sign_event:30001",
    "sign_event:30078",
    "get_public_key",
    "nip04_encrypt",
    "nip04_decrypt",
    "nip44_encrypt",
    "nip44_decrypt",
    "get_relays",
)


class RelaysConfig(BaseModel):
    """Relay set used when the caller does not pass one explicitly."""

    urls: list[str] = Field(
        default_factory=lambda: list(DEFAULT_RELAYS),
        min_length=1,
        description="Default relay URLs, in display order",
    )
    connect_timeout: float = Field(
        default=7.0, gt=0.0, le=60.0, description="Per-relay connect timeout (seconds)"
    )

    @field_validator("urls")
    @classmethod
    def validate_urls(cls, v: list[str]) -> list[str]:
        """Normalize and dedupe relay URLs; reject invalid ones."""
        return [relay.url for relay in Relay.parse_many(v)]


class HandshakeConfig(BaseModel):
    """Timing policy of a connection attempt."""

    approval_timeout: float = Field(
        default=90.0, ge=1.0, le=600.0, description="Time allowed for the signer to approve"
    )
    since_window: int = Field(
        default=10, ge=0, le=300, description="Seconds before now accepted in the relay filter"
    )
    poll_interval: float = Field(
        default=0.5, gt=0.0, le=10.0, description="Upper bound between deadline checks"
    )
    probe_timeout: float = Field(
        default=10.0, ge=0.5, le=120.0, description="Fast-reconnect liveness probe timeout"
    )
    connect_secret: bool = Field(
        default=False, description="Embed a one-time secret in nostrconnect:// URIs"
    )


class RequestConfig(BaseModel):
    """Requests sent over an established session (``sign_event``, ``nip04_*``...)."""

    timeout: float = Field(
        default=30.0, gt=0.0, le=600.0, description="Time allowed for the signer to answer"
    )


class EncryptionConfig(BaseModel):
    """Outbound payload encryption. Inbound payloads of either scheme are accepted."""

    scheme: EncryptionScheme = Field(default=EncryptionScheme.NIP04)


class SessionConfig(BaseModel):
    """Persisted session policy."""

    ttl: int = Field(default=86_400, ge=60, description="Session lifetime (seconds)")
    key: str = Field(
        default="signerlink.session", min_length=1, description="Key in the key-value store"
    )
    path: Path | None = Field(
        default=None,
        description="JSON file holding the session; kept in memory when unset",
    )

    def build_backend(self) -> KeyValueStore:
        """Return the key-value backend this configuration selects."""
        if self.path is None:
            return MemoryKeyValueStore()
        return FileKeyValueStore(self.path)


class MetadataConfig(BaseModel):
    """Application metadata advertised in ``nostrconnect://`` URIs."""

    name: str = Field(default="Nostr Journal")
    url: str = Field(default="https://nostrjournal.app")
    description: str = Field(default="Private journaling on Nostr")

    def to_metadata(self) -> AppMetadata:
        return AppMetadata(name=self.name, url=self.url, description=self.description)


class ClientConfig(BaseModel):
    """Aggregate configuration for
    [RemoteSignerClient][signerlink.nip46.client.RemoteSignerClient]."""

    relays: RelaysConfig = Field(default_factory=RelaysConfig)
    handshake: HandshakeConfig = Field(default_factory=HandshakeConfig)
    encryption: EncryptionConfig = Field(default_factory=EncryptionConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    requests: RequestConfig = Field(default_factory=RequestConfig)
    metadata: MetadataConfig = Field(default_factory=MetadataConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    permissions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PERMISSIONS),
        description="Permissions requested in nostrconnect:// URIs",
    )

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> ClientConfig:
        """Load configuration from a YAML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the YAML is invalid.
            pydantic.ValidationError: If values fail validation.
        """
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientConfig:
        return cls.model_validate(data)
