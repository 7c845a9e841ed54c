"""Relay transport capability and its nostr-sdk implementation.

[RelayTransport][signerlink.utils.transport.RelayTransport] is the narrow
interface the [RelayChannelManager][signerlink.nip46.channel.RelayChannelManager]
consumes: connect one relay, stream events matching a filter, publish a
signed event, disconnect. Each relay is an independent channel that may fail
on its own.

[NostrSdkTransport][signerlink.utils.transport.NostrSdkTransport] opens one
``nostr_sdk.Client`` per relay so a failing relay never affects the others.
Relays are reached over verified TLS only.

Note:
    Live events are delivered by a ``HandleNotification`` subclass that pushes
    into an ``asyncio.Queue``; the notification loop runs as a task owned by
    the subscription and is cancelled when iteration stops.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Final, Protocol, runtime_checkable

from nostr_sdk import (
    Client,
    ClientBuilder,
    Event,
    Filter,
    HandleNotification,
    NostrSdkError,
    RelayMessage,
    RelayUrl,
)

from signerlink.core.exceptions import RelaySSLError, RelayUnreachableError
from signerlink.models.relay import Relay  # noqa: TC001


DEFAULT_TIMEOUT: Final[float] = 7.0


logger = logging.getLogger(__name__)

# nostr-sdk logs every relay hiccup at ERROR; relay failures are handled here
logging.getLogger("nostr_sdk").setLevel(logging.CRITICAL)


# Multi-word patterns for SSL/TLS certificate errors in nostr-sdk messages.
# Single keywords like "verify" are avoided to prevent false positives.
_SSL_ERROR_PATTERNS: tuple[str, ...] = (
    "ssl certificate",
    "certificate verify",
    "certificate has expired",
    "self signed certificate",
    "self-signed certificate",
    "unable to get local issuer",
    "x509",
    "tlsv1 alert",
    "ssl handshake",
    "tls handshake failed",
    "certificate_unknown",
    "certificate_expired",
    "ssl error",
    "tls error",
    "cert verify failed",
)


def _is_ssl_error(error_message: str) -> bool:
    """Check if an error message indicates an SSL/TLS certificate error."""
    error_lower = error_message.lower()
    return any(pattern in error_lower for pattern in _SSL_ERROR_PATTERNS)


@runtime_checkable
class RelayTransport(Protocol):
    """Per-relay connection capability.

    ``connect`` raises
    [RelayUnreachableError][signerlink.core.exceptions.RelayUnreachableError]
    (or [RelaySSLError][signerlink.core.exceptions.RelaySSLError]) for a relay
    that cannot be opened. ``subscribe`` returns an async iterator of raw
    ``nostr_sdk.Event`` objects that ends when the channel is gone.
    ``publish`` reports acceptance as a bool and never raises for relay-side
    rejections. ``disconnect`` is idempotent.
    """

    async def connect(self, relay: Relay) -> Any: ...

    def subscribe(self, channel: Any, event_filter: Filter) -> AsyncIterator[Event]: ...

    async def publish(self, channel: Any, event: Event) -> bool: ...

    async def disconnect(self, channel: Any) -> None: ...


@dataclass(slots=True)
class NostrSdkChannel:
    """An open connection to one relay."""

    relay: Relay
    client: Client
    relay_url: RelayUrl
    closed: bool = False
    tasks: set[asyncio.Task[Any]] = field(default_factory=set)


class _QueueNotificationHandler(HandleNotification):
    """Push every delivered event into an asyncio queue."""

    def __init__(self, queue: asyncio.Queue[Event | None]) -> None:
        super().__init__()
        self._queue = queue

    async def handle(self, relay_url: RelayUrl, subscription_id: str, event: Event) -> None:
        self._queue.put_nowait(event)

    async def handle_msg(self, relay_url: RelayUrl, msg: RelayMessage) -> None:
        return None


def create_client() -> Client:
    """Create a ``nostr_sdk.Client`` with default options."""
    return ClientBuilder().build()


class NostrSdkTransport:
    """[RelayTransport][signerlink.utils.transport.RelayTransport] built on nostr-sdk.

    Args:
        timeout: Per-relay connect timeout in seconds.
    """

    def __init__(self, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._timeout = timeout

    async def connect(self, relay: Relay) -> NostrSdkChannel:
        """Open a dedicated client to *relay*.

        Raises:
            RelaySSLError: The TLS handshake or certificate check failed.
            RelayUnreachableError: Any other connection failure or timeout.
        """
        relay_url = RelayUrl.parse(relay.url)
        client = create_client()

        try:
            await client.add_relay(relay_url)
            output = await asyncio.wait_for(
                client.try_connect(timedelta(seconds=self._timeout)),
                timeout=self._timeout + 1.0,
            )
        except (TimeoutError, OSError, NostrSdkError) as e:
            await self._shutdown(client)
            raise RelayUnreachableError(f"Connection failed: {relay.url} ({e})") from e

        if relay_url in output.success:
            logger.debug("relay_connected relay=%s", relay.url)
            return NostrSdkChannel(relay=relay, client=client, relay_url=relay_url)

        await self._shutdown(client)
        error_message = str(output.failed.get(relay_url, "Unknown error"))
        if _is_ssl_error(error_message):
            raise RelaySSLError(f"SSL certificate verification failed for {relay.url}: {error_message}")
        raise RelayUnreachableError(f"Connection failed: {relay.url} ({error_message})")

    async def subscribe(self, channel: NostrSdkChannel, event_filter: Filter) -> AsyncIterator[Event]:
        """Yield events matching *event_filter* until the client shuts down."""
        queue: asyncio.Queue[Event | None] = asyncio.Queue()
        handler = _QueueNotificationHandler(queue)

        await channel.client.subscribe(event_filter)
        task = asyncio.create_task(channel.client.handle_notifications(handler))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        channel.tasks.add(task)

        try:
            while True:
                event = await queue.get()
                if event is None:
                    logger.debug("relay_stream_ended relay=%s", channel.relay.url)
                    return
                yield event
        finally:
            task.cancel()
            channel.tasks.discard(task)

    async def publish(self, channel: NostrSdkChannel, event: Event) -> bool:
        try:
            output = await asyncio.wait_for(channel.client.send_event(event), timeout=self._timeout)
        except (TimeoutError, OSError, NostrSdkError) as e:
            logger.warning("relay_publish_failed relay=%s error=%s", channel.relay.url, e)
            return False
        if channel.relay_url in output.success:
            return True
        logger.warning(
            "relay_publish_rejected relay=%s reason=%s",
            channel.relay.url,
            output.failed.get(channel.relay_url, "unknown"),
        )
        return False

    async def disconnect(self, channel: NostrSdkChannel) -> None:
        if channel.closed:
            return
        channel.closed = True
        for task in list(channel.tasks):
            task.cancel()
        channel.tasks.clear()
        await self._shutdown(channel.client)

    @staticmethod
    async def _shutdown(client: Client) -> None:
        # nostr-sdk Rust FFI can raise arbitrary exception types during teardown
        with contextlib.suppress(Exception):
            await client.shutdown()
