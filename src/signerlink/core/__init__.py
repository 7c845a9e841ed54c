"""Core infrastructure shared by the handshake components.

Sits in the middle of the diamond DAG -- depends only on
``signerlink.models`` and is depended upon by ``signerlink.nip46``.

Attributes:
    Logger: Structured logger with key=value and JSON output modes and
        secret redaction. See [Logger][signerlink.core.logger.Logger].
    Clock: Injectable time source. See [Clock][signerlink.core.clock.Clock].
    KeyValueStore: Persistence capability with memory and file
        backends. See [signerlink.core.store][].
    HandshakeMetrics: Prometheus recorder gated by
        [MetricsConfig][signerlink.core.metrics.MetricsConfig].
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.
"""

from .clock import Clock, SystemClock
from .exceptions import (
    CodecError,
    ConfigurationError,
    ConnectivityError,
    DecryptError,
    HandshakeError,
    HandshakeTimeoutError,
    MalformedResponseError,
    QueryError,
    RelaySSLError,
    RelayUnreachableError,
    RequestTimeoutError,
    SessionExpiredError,
    SignerLinkError,
    SignerRejectedError,
    StorageError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs, redact
from .metrics import (
    DROPPED_MESSAGES,
    HANDSHAKE_COUNTER,
    HANDSHAKE_DURATION_SECONDS,
    RELAY_CONNECT_FAILURES,
    HandshakeMetrics,
    MetricsConfig,
    metrics_payload,
)
from .store import (
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
)
from .yaml import load_yaml


__all__ = [
    "DROPPED_MESSAGES",
    "HANDSHAKE_COUNTER",
    "HANDSHAKE_DURATION_SECONDS",
    "RELAY_CONNECT_FAILURES",
    "Clock",
    "CodecError",
    "ConfigurationError",
    "ConnectivityError",
    "DecryptError",
    "FileKeyValueStore",
    "HandshakeError",
    "HandshakeMetrics",
    "HandshakeTimeoutError",
    "KeyValueStore",
    "Logger",
    "MalformedResponseError",
    "MemoryKeyValueStore",
    "MetricsConfig",
    "QueryError",
    "RelaySSLError",
    "RelayUnreachableError",
    "RequestTimeoutError",
    "SessionExpiredError",
    "SignerLinkError",
    "SignerRejectedError",
    "StorageError",
    "StructuredFormatter",
    "SystemClock",
    "format_kv_pairs",
    "load_yaml",
    "redact",
]
