"""
Unit tests for core.metrics module.

Tests:
- MetricsConfig defaults
- HandshakeMetrics is a no-op when disabled
- Counters and histogram move when enabled
- metrics_payload() exposition output
"""

from prometheus_client import REGISTRY

from signerlink.core.metrics import HandshakeMetrics, MetricsConfig, metrics_payload


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestMetricsConfig:
    """MetricsConfig Pydantic model."""

    def test_disabled_by_default(self) -> None:
        assert MetricsConfig().enabled is False
        assert HandshakeMetrics().enabled is False


# =============================================================================
# Recording
# =============================================================================


class TestDisabled:
    """Nothing is recorded unless enabled."""

    def test_attempt_finished_noop(self) -> None:
        before = _sample("signerlink_handshakes_total", {"outcome": "timeout"})
        HandshakeMetrics(MetricsConfig(enabled=False)).attempt_finished("timeout", 1.0)
        assert _sample("signerlink_handshakes_total", {"outcome": "timeout"}) == before

    def test_relay_connect_failed_noop(self) -> None:
        before = _sample("signerlink_relay_connect_failures_total")
        HandshakeMetrics().relay_connect_failed()
        assert _sample("signerlink_relay_connect_failures_total") == before


class TestEnabled:
    """Recorders update the module-level metrics."""

    def test_attempt_finished(self) -> None:
        metrics = HandshakeMetrics(MetricsConfig(enabled=True))
        count_before = _sample("signerlink_handshakes_total", {"outcome": "success"})
        observed_before = _sample("signerlink_handshake_duration_seconds_count")

        metrics.attempt_finished("success", 3.5)

        assert _sample("signerlink_handshakes_total", {"outcome": "success"}) == count_before + 1
        assert _sample("signerlink_handshake_duration_seconds_count") == observed_before + 1

    def test_negative_duration_clamped(self) -> None:
        metrics = HandshakeMetrics(MetricsConfig(enabled=True))
        sum_before = _sample("signerlink_handshake_duration_seconds_sum")
        metrics.attempt_finished("internal", -5.0)
        assert _sample("signerlink_handshake_duration_seconds_sum") == sum_before

    def test_message_dropped(self) -> None:
        metrics = HandshakeMetrics(MetricsConfig(enabled=True))
        before = _sample("signerlink_dropped_messages_total", {"reason": "duplicate"})
        metrics.message_dropped("duplicate")
        metrics.message_dropped("duplicate")
        assert _sample("signerlink_dropped_messages_total", {"reason": "duplicate"}) == before + 2

    def test_relay_connect_failed(self) -> None:
        metrics = HandshakeMetrics(MetricsConfig(enabled=True))
        before = _sample("signerlink_relay_connect_failures_total")
        metrics.relay_connect_failed()
        assert _sample("signerlink_relay_connect_failures_total") == before + 1


class TestPayload:
    """Exposition helper."""

    def test_contains_metric_names(self) -> None:
        body, content_type = metrics_payload()
        assert b"signerlink_dropped_messages" in body
        assert content_type.startswith("text/plain")
