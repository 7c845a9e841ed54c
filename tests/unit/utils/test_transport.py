"""
Unit tests for utils.transport module.

Tests:
- _is_ssl_error() pattern matching
- NostrSdkTransport.connect() success, SSL and generic failures
- NostrSdkTransport.subscribe() draining the notification handler
- NostrSdkTransport.publish() acceptance reporting
- NostrSdkTransport.disconnect() idempotency
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from signerlink.core.exceptions import RelaySSLError, RelayUnreachableError
from signerlink.models import Relay
from signerlink.utils.transport import (
    NostrSdkChannel,
    NostrSdkTransport,
    RelayTransport,
    _is_ssl_error,
)


RELAY_URL = object()


def _output(*, success: bool, error: str = "") -> MagicMock:
    output = MagicMock()
    output.success = [RELAY_URL] if success else []
    output.failed = {} if success else {RELAY_URL: error}
    return output


@pytest.fixture
def sdk_client() -> MagicMock:
    client = MagicMock()
    client.add_relay = AsyncMock()
    client.try_connect = AsyncMock(return_value=_output(success=True))
    client.send_event = AsyncMock(return_value=_output(success=True))
    client.subscribe = AsyncMock()
    client.shutdown = AsyncMock()
    return client


@pytest.fixture
def patched(sdk_client: MagicMock):
    with (
        patch(
            "signerlink.utils.transport.create_client", MagicMock(return_value=sdk_client)
        ) as create,
        patch("signerlink.utils.transport.RelayUrl") as relay_url_cls,
    ):
        relay_url_cls.parse.return_value = RELAY_URL
        yield create


def _channel(client: MagicMock) -> NostrSdkChannel:
    return NostrSdkChannel(
        relay=Relay("wss://relay.example.com"), client=client, relay_url=RELAY_URL
    )


# =============================================================================
# Helpers
# =============================================================================


class TestIsSslError:
    """SSL/TLS failure detection from nostr-sdk error strings."""

    @pytest.mark.parametrize(
        "message",
        [
            "SSL certificate problem",
            "certificate verify failed: unable to get local issuer certificate",
            "error: TLS handshake failed",
            "invalid peer certificate: X509 error",
        ],
    )
    def test_ssl_messages(self, message: str) -> None:
        assert _is_ssl_error(message) is True

    @pytest.mark.parametrize("message", ["connection refused", "timeout", "verify", ""])
    def test_other_messages(self, message: str) -> None:
        assert _is_ssl_error(message) is False


# =============================================================================
# Connect
# =============================================================================


class TestConnect:
    """One dedicated client per relay."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(NostrSdkTransport(), RelayTransport)

    async def test_success(self, patched: MagicMock, sdk_client: MagicMock) -> None:
        transport = NostrSdkTransport(timeout=1.0)
        channel = await transport.connect(Relay("wss://relay.example.com"))

        assert channel.client is sdk_client
        assert channel.relay.url == "wss://relay.example.com"
        assert channel.closed is False
        patched.assert_called_once_with()
        sdk_client.add_relay.assert_awaited_once_with(RELAY_URL)

    async def test_ssl_failure(self, patched: MagicMock, sdk_client: MagicMock) -> None:
        sdk_client.try_connect.return_value = _output(
            success=False, error="ssl handshake failure"
        )
        with pytest.raises(RelaySSLError):
            await NostrSdkTransport().connect(Relay("wss://relay.example.com"))
        sdk_client.shutdown.assert_awaited_once()

    async def test_generic_failure(self, patched: MagicMock, sdk_client: MagicMock) -> None:
        sdk_client.try_connect.return_value = _output(success=False, error="connection refused")
        with pytest.raises(RelayUnreachableError, match="connection refused"):
            await NostrSdkTransport().connect(Relay("wss://relay.example.com"))
        sdk_client.shutdown.assert_awaited_once()

    async def test_os_error(self, patched: MagicMock, sdk_client: MagicMock) -> None:
        sdk_client.try_connect.side_effect = OSError("network down")
        with pytest.raises(RelayUnreachableError, match="network down"):
            await NostrSdkTransport().connect(Relay("wss://relay.example.com"))
        sdk_client.shutdown.assert_awaited_once()

    async def test_shutdown_errors_suppressed(
        self, patched: MagicMock, sdk_client: MagicMock
    ) -> None:
        sdk_client.try_connect.return_value = _output(success=False, error="refused")
        sdk_client.shutdown.side_effect = RuntimeError("ffi teardown")
        with pytest.raises(RelayUnreachableError):
            await NostrSdkTransport().connect(Relay("wss://relay.example.com"))


# =============================================================================
# Subscribe / publish / disconnect
# =============================================================================


class TestSubscribe:
    """Notification handler feeding an async iterator."""

    async def test_yields_events_until_loop_ends(self, sdk_client: MagicMock) -> None:
        async def handle_notifications(handler) -> None:
            await handler.handle(RELAY_URL, "sub", "event-1")
            await handler.handle(RELAY_URL, "sub", "event-2")

        sdk_client.handle_notifications = handle_notifications
        channel = _channel(sdk_client)
        event_filter = MagicMock()

        events = [e async for e in NostrSdkTransport().subscribe(channel, event_filter)]

        assert events == ["event-1", "event-2"]
        sdk_client.subscribe.assert_awaited_once_with(event_filter)
        assert channel.tasks == set()


class TestPublish:
    """Acceptance is reported, never raised."""

    async def test_accepted(self, sdk_client: MagicMock) -> None:
        assert await NostrSdkTransport().publish(_channel(sdk_client), MagicMock()) is True

    async def test_rejected(self, sdk_client: MagicMock) -> None:
        sdk_client.send_event.return_value = _output(success=False, error="blocked")
        assert await NostrSdkTransport().publish(_channel(sdk_client), MagicMock()) is False

    async def test_error_returns_false(self, sdk_client: MagicMock) -> None:
        sdk_client.send_event.side_effect = OSError("broken pipe")
        assert await NostrSdkTransport().publish(_channel(sdk_client), MagicMock()) is False


class TestDisconnect:
    """Idempotent teardown."""

    async def test_idempotent(self, sdk_client: MagicMock) -> None:
        transport = NostrSdkTransport()
        channel = _channel(sdk_client)

        await transport.disconnect(channel)
        await transport.disconnect(channel)

        assert channel.closed is True
        sdk_client.shutdown.assert_awaited_once()
