"""Redundant multi-relay subscription with local filtering and dedup.

[RelayChannelManager.open_subscription()][signerlink.nip46.channel.RelayChannelManager.open_subscription]
connects every relay of a set concurrently through a
[RelayTransport][signerlink.utils.transport.RelayTransport]. Each relay is an
independent, unreliable channel: a relay that fails to connect is logged and
skipped, and only a set with *zero* connected relays raises
[RelayUnreachableError][signerlink.core.exceptions.RelayUnreachableError].

The returned [SubscriptionHandle][signerlink.nip46.channel.SubscriptionHandle]
merges the channels into a single stream of
[InboundMessage][signerlink.models.message.InboundMessage] values:

* relays may ignore filters, so kind, ``p`` tag, and ``since`` are re-checked
  locally and the signature is verified;
* the same event id delivered by several relays is yielded once;
* order across relays is not guaranteed.

``close()`` unsubscribes and disconnects every channel. It is idempotent.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from nostr_sdk import Event, Filter, Kind, NostrSdkError, PublicKey, Timestamp

from signerlink.core.exceptions import (
    ConfigurationError,
    ConnectivityError,
    MalformedResponseError,
    RelayUnreachableError,
)
from signerlink.core.logger import Logger
from signerlink.core.metrics import HandshakeMetrics
from signerlink.models.message import InboundMessage, SubscriptionFilter
from signerlink.models.relay import Relay
from signerlink.utils.transport import DEFAULT_TIMEOUT, RelayTransport

from .codec import EnvelopeCodec


def build_sdk_filter(subscription_filter: SubscriptionFilter) -> Filter:
    """Translate a [SubscriptionFilter][signerlink.models.message.SubscriptionFilter]
    into a ``nostr_sdk.Filter`` (kind, ``#p``, since)."""
    return (
        Filter()
        .kind(Kind(subscription_filter.kind))
        .pubkey(PublicKey.parse(subscription_filter.pubkey))
        .since(Timestamp.from_secs(subscription_filter.since))
    )


def event_p_tags(event: Event) -> list[str]:
    """Return the values of every ``p`` tag on *event*."""
    values = []
    for tag in event.tags().to_vec():
        parts = tag.as_vec()
        if len(parts) >= 2 and parts[0] == "p":
            values.append(parts[1])
    return values


@dataclass(slots=True)
class _Channel:
    relay: Relay
    handle: Any
    pump: asyncio.Task[None] | None = None


class SubscriptionHandle:
    """Merged, deduplicated view of one subscription across several relays.

    Created by [RelayChannelManager][signerlink.nip46.channel.RelayChannelManager];
    do not instantiate directly.
    """

    def __init__(
        self,
        transport: RelayTransport,
        channels: list[_Channel],
        subscription_filter: SubscriptionFilter,
        *,
        logger: Logger,
        metrics: HandshakeMetrics,
    ) -> None:
        self._transport = transport
        self._channels = channels
        self._filter = subscription_filter
        self._logger = logger
        self._metrics = metrics
        self._queue: asyncio.Queue[InboundMessage] = asyncio.Queue()
        self._seen: set[str] = set()
        self._closed = False

    @property
    def relays(self) -> tuple[str, ...]:
        """URLs of the relays that connected."""
        return tuple(channel.relay.url for channel in self._channels)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscription_filter(self) -> SubscriptionFilter:
        return self._filter

    def _start(self) -> None:
        sdk_filter = build_sdk_filter(self._filter)
        for channel in self._channels:
            channel.pump = asyncio.create_task(self._pump(channel, sdk_filter))

    async def _pump(self, channel: _Channel, sdk_filter: Filter) -> None:
        relay_url = channel.relay.url
        try:
            async for event in self._transport.subscribe(channel.handle, sdk_filter):
                self._accept(event, relay_url)
        except Exception as e:  # one failing relay never stops the others
            self._logger.warning(
                "relay_stream_failed", relay=relay_url, error=str(e) or type(e).__name__
            )
        else:
            if not self._closed:
                self._logger.warning("relay_stream_ended", relay=relay_url)

    def _accept(self, event: Event, relay_url: str) -> None:
        """Apply local filtering, dedup, and signature checks; enqueue survivors."""
        kind = event.kind().as_u16()
        created_at = event.created_at().as_secs()
        if not self._filter.matches(kind, event_p_tags(event), created_at):
            self._drop("filter_mismatch", relay_url)
            return

        event_id = event.id().to_hex()
        if event_id in self._seen:
            self._drop("duplicate", relay_url)
            return

        if not event.verify():
            self._drop("bad_signature", relay_url)
            return

        try:
            message = EnvelopeCodec.message_from_event(event, relay_url)
        except MalformedResponseError:
            self._drop("invalid_event", relay_url)
            return

        self._seen.add(event_id)
        self._queue.put_nowait(message)

    def _drop(self, reason: str, relay_url: str) -> None:
        self._logger.debug("message_dropped", reason=reason, relay=relay_url)
        self._metrics.message_dropped(reason)

    async def next(self, timeout: float | None = None) -> InboundMessage | None:  # noqa: ASYNC109
        """Wait for the next unique message.

        Returns:
            The message, or ``None`` if *timeout* elapsed or the handle is closed.
        """
        if self._closed:
            return None
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except TimeoutError:
            return None

    async def publish(self, event: Event) -> int:
        """Publish *event* on every connected relay.

        Returns:
            Number of relays that accepted the event.
        """
        if self._closed:
            return 0
        results = await asyncio.gather(
            *(self._transport.publish(channel.handle, event) for channel in self._channels),
            return_exceptions=True,
        )
        accepted = 0
        for channel, result in zip(self._channels, results, strict=True):
            if result is True:
                accepted += 1
            elif isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                self._logger.warning("relay_publish_failed", relay=channel.relay.url, error=str(result))
        if accepted == 0:
            self._logger.warning("publish_rejected_everywhere", relay_count=len(self._channels))
        return accepted

    async def close(self) -> None:
        """Stop every pump and disconnect every channel. Idempotent."""
        if self._closed:
            return
        self._closed = True

        pumps = [channel.pump for channel in self._channels if channel.pump is not None]
        for pump in pumps:
            pump.cancel()
        await asyncio.gather(*pumps, return_exceptions=True)

        for channel in self._channels:
            # transport teardown can raise arbitrary SDK errors
            with contextlib.suppress(Exception):
                await self._transport.disconnect(channel.handle)

        self._logger.debug("subscription_closed", relay_count=len(self._channels))

    async def __aenter__(self) -> SubscriptionHandle:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


class RelayChannelManager:
    """Opens subscriptions over a redundant relay set.

    Args:
        transport: Per-relay connection capability.
        connect_timeout: Upper bound for a single relay connect.
        metrics: Optional metrics recorder.
    """

    def __init__(
        self,
        transport: RelayTransport,
        *,
        connect_timeout: float = DEFAULT_TIMEOUT,
        metrics: HandshakeMetrics | None = None,
    ) -> None:
        self._transport = transport
        self._connect_timeout = connect_timeout
        self._metrics = metrics or HandshakeMetrics()
        self._logger = Logger("signerlink.channel")

    @property
    def transport(self) -> RelayTransport:
        return self._transport

    async def _connect(self, relay: Relay) -> _Channel | None:
        try:
            handle = await asyncio.wait_for(self._transport.connect(relay), timeout=self._connect_timeout)
        except (ConnectivityError, OSError, TimeoutError, NostrSdkError) as e:
            self._logger.warning("relay_connect_failed", relay=relay.url, error=str(e) or type(e).__name__)
            self._metrics.relay_connect_failed()
            return None
        return _Channel(relay=relay, handle=handle)

    async def _disconnect_all(self, channels: Iterable[_Channel]) -> None:
        for channel in channels:
            with contextlib.suppress(Exception):
                await self._transport.disconnect(channel.handle)

    async def open_subscription(
        self,
        relays: Iterable[str | Relay],
        client_pubkey: str,
        since: int,
    ) -> SubscriptionHandle:
        """Connect all *relays* concurrently and subscribe for *client_pubkey*.

        Args:
            relays: Relay URLs or [Relay][signerlink.models.relay.Relay] objects.
            client_pubkey: Hex pubkey the ``#p`` filter addresses.
            since: Earliest accepted ``created_at`` (Unix seconds).

        Raises:
            ConfigurationError: If the relay list is empty or invalid.
            RelayUnreachableError: If no relay connected.
        """
        try:
            relay_list = Relay.parse_many(relays)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid relay URL: {e}") from e
        if not relay_list:
            raise ConfigurationError("At least one relay is required")

        subscription_filter = SubscriptionFilter(pubkey=client_pubkey, since=since)

        tasks = [asyncio.ensure_future(self._connect(relay)) for relay in relay_list]
        try:
            results = await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            finished = await asyncio.gather(*tasks, return_exceptions=True)
            await self._disconnect_all(r for r in finished if isinstance(r, _Channel))
            raise

        channels = [channel for channel in results if channel is not None]
        if not channels:
            raise RelayUnreachableError(
                f"none of {len(relay_list)} relays could be connected: "
                + ", ".join(relay.url for relay in relay_list)
            )

        self._logger.info(
            "subscription_opened", connected=len(channels), requested=len(relay_list), since=since
        )
        handle = SubscriptionHandle(
            self._transport,
            channels,
            subscription_filter,
            logger=self._logger,
            metrics=self._metrics,
        )
        handle._start()
        return handle
