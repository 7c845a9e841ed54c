"""
Prometheus metrics for handshake outcomes and message hygiene.

Defines module-level metric objects (singletons, thread-safe) on the default
registry. Components record through a
[HandshakeMetrics][signerlink.core.metrics.HandshakeMetrics] recorder, which
is a no-op unless ``MetricsConfig.enabled`` is set, so embedding applications
that do not scrape pay nothing.

signerlink is a library and does not run an HTTP server; the host application
exposes the registry, e.g. with
[metrics_payload()][signerlink.core.metrics.metrics_payload].

Architecture:
    HANDSHAKE_COUNTER:          Terminal attempt outcomes by ``outcome`` label.
    HANDSHAKE_DURATION_SECONDS: Histogram of time from start to terminal state.
    DROPPED_MESSAGES:           Inbound messages discarded, by ``reason``.
    RELAY_CONNECT_FAILURES:     Relays that failed to connect.
"""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for metric collection."""

    enabled: bool = Field(default=False, description="Enable metrics collection")


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

HANDSHAKE_COUNTER = Counter(
    "signerlink_handshakes",
    "Terminal connection attempt outcomes",
    ["outcome"],
)

HANDSHAKE_DURATION_SECONDS = Histogram(
    "signerlink_handshake_duration_seconds",
    "Duration of a connection attempt from start to terminal state",
    buckets=(0.5, 1, 2, 5, 10, 20, 30, 60, 90, 120),
)

DROPPED_MESSAGES = Counter(
    "signerlink_dropped_messages",
    "Inbound control messages dropped before reaching the handshake",
    ["reason"],
)

RELAY_CONNECT_FAILURES = Counter(
    "signerlink_relay_connect_failures",
    "Relays that could not be connected to",
)


# ---------------------------------------------------------------------------
# Recorder
# ---------------------------------------------------------------------------


class HandshakeMetrics:
    """Gate for recording metrics according to a
    [MetricsConfig][signerlink.core.metrics.MetricsConfig]."""

    def __init__(self, config: MetricsConfig | None = None) -> None:
        self._config = config or MetricsConfig()

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def attempt_finished(self, outcome: str, duration: float) -> None:
        if not self._config.enabled:
            return
        HANDSHAKE_COUNTER.labels(outcome=outcome).inc()
        HANDSHAKE_DURATION_SECONDS.observe(max(duration, 0.0))

    def message_dropped(self, reason: str) -> None:
        if self._config.enabled:
            DROPPED_MESSAGES.labels(reason=reason).inc()

    def relay_connect_failed(self) -> None:
        if self._config.enabled:
            RELAY_CONNECT_FAILURES.inc()


def metrics_payload() -> tuple[bytes, str]:
    """Return the default registry in exposition format and its content type."""
    return generate_latest(), CONTENT_TYPE_LATEST
