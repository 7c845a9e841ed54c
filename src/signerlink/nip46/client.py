"""Application-facing facade for remote-signer login.

[RemoteSignerClient][signerlink.nip46.client.RemoteSignerClient] wires the
transport, channel manager, codec, state machine, and session store together
from a [ClientConfig][signerlink.nip46.configs.ClientConfig], and enforces
that at most one attempt is live at a time: starting a new attempt (or a
retry) first cancels the previous one and waits for its cleanup.

After a successful login or fast reconnect,
[session][signerlink.nip46.client.RemoteSignerClient.session] sends signer
requests such as ``sign_event``.

Examples:
    ```python
    async with RemoteSignerClient() as client:
        identity = await client.fast_reconnect()
        if identity is None:
            attempt = await client.start_client_initiated_connection()
            show_qr(attempt.uri_string)
            result = await attempt.wait()
            if not result.ok:
                print(friendly_error_message(result.error_kind))
                return
        note = await client.session.sign_event({"kind": 1, "content": "gm"})
    ```
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from signerlink.core.clock import Clock, SystemClock
from signerlink.core.exceptions import (
    CodecError,
    ConfigurationError,
    ConnectivityError,
    HandshakeTimeoutError,
    SessionExpiredError,
    StorageError,
)
from signerlink.core.logger import Logger
from signerlink.core.metrics import HandshakeMetrics
from signerlink.models.constants import ConnectionMode, ErrorKind
from signerlink.models.identity import EphemeralIdentity, ResolvedIdentity
from signerlink.models.relay import Relay
from signerlink.models.session import PersistedSession
from signerlink.models.uri import AppMetadata, BunkerUri, ClientInitiatedUri, SignerInitiatedUri
from signerlink.utils.transport import NostrSdkTransport, RelayTransport

from .channel import RelayChannelManager
from .codec import EnvelopeCodec
from .configs import ClientConfig
from .handshake import HandshakeCorrelator
from .machine import Attempt, ConnectionStateMachine
from .session import RemoteSession
from .session_store import SessionStore
from .uri import parse_bunker_uri


_FRIENDLY_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.TIMEOUT: "The signer did not respond in time. Approve the request in your signer app and try again.",
    ErrorKind.SIGNER_REJECTED: "The signer rejected the connection request.",
    ErrorKind.RELAY_UNREACHABLE: "Could not reach any relay. Check your connection and try again.",
    ErrorKind.CANCELLED: "The connection attempt was cancelled.",
    ErrorKind.INTERNAL: "Something went wrong while connecting to the signer.",
}


def friendly_error_message(kind: ErrorKind | None) -> str:
    """Return a short user-facing message for a terminal error kind."""
    if kind is None:
        return ""
    return _FRIENDLY_MESSAGES.get(kind, _FRIENDLY_MESSAGES[ErrorKind.INTERNAL])


class RemoteSignerClient:
    """Start, cancel, and retry connection attempts; reconnect from a stored session.

    Args:
        config: Client configuration; defaults apply when omitted.
        transport: Relay transport; defaults to
            [NostrSdkTransport][signerlink.utils.transport.NostrSdkTransport].
        session_store: Session persistence; defaults to the backend selected
            by ``config.session``.
        clock: Time source shared by the state machine and the store.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: RelayTransport | None = None,
        session_store: SessionStore | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._clock = clock or SystemClock()
        self._metrics = HandshakeMetrics(self._config.metrics)
        self._transport = transport or NostrSdkTransport(
            timeout=self._config.relays.connect_timeout
        )
        self._channels = RelayChannelManager(
            self._transport,
            connect_timeout=self._config.relays.connect_timeout,
            metrics=self._metrics,
        )
        self._codec = EnvelopeCodec(self._config.encryption.scheme)
        self._session_store = session_store or SessionStore(
            self._config.session.build_backend(), self._config.session, self._clock
        )
        self._machine = ConnectionStateMachine(
            self._channels,
            self._codec,
            config=self._config.handshake,
            clock=self._clock,
            session_store=self._session_store,
            metrics=self._metrics,
        )
        self._current: Attempt | None = None
        self._session: RemoteSession | None = None
        self._closed = False
        self._logger = Logger("signerlink.client")

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def session_store(self) -> SessionStore:
        return self._session_store

    @property
    def current_attempt(self) -> Attempt | None:
        """The most recently started attempt, live or terminal."""
        return self._current

    @property
    def session(self) -> RemoteSession | None:
        """Session for signer requests once a login succeeded or was resumed.

        ``None`` while no login has completed, after ``logout()`` and after
        ``close()``.
        """
        if self._closed:
            return None
        if self._session is None and self._current is not None:
            result = self._current.result
            if result is not None and result.identity is not None:
                self._session = self._open_session(self._current.identity, result.identity)
        return self._session

    def _open_session(
        self, local_identity: EphemeralIdentity, identity: ResolvedIdentity
    ) -> RemoteSession:
        return RemoteSession(
            self._channels,
            self._codec,
            local_identity,
            identity,
            config=self._config.requests,
            handshake_config=self._config.handshake,
            clock=self._clock,
        )

    async def _drop_session(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.close()

    # -------------------------------------------------------------------------
    # Attempts
    # -------------------------------------------------------------------------

    async def start_client_initiated_connection(
        self,
        relays: Iterable[str | Relay] | None = None,
        metadata: AppMetadata | None = None,
    ) -> Attempt:
        """Show a ``nostrconnect://`` URI and wait for a signer to answer it.

        Raises:
            ConfigurationError: If *relays* is empty or invalid.
        """
        await self._replace_current()
        attempt = self._machine.begin_client_initiated(
            relays if relays is not None else self._config.relays.urls,
            metadata or self._config.metadata.to_metadata(),
            permissions=self._config.permissions,
        )
        self._current = attempt
        return attempt

    async def start_signer_initiated_connection(self, relay: str | Relay | None = None) -> Attempt:
        """Show a single-relay ``bunker://`` invite for the signer to scan.

        Raises:
            ConfigurationError: If *relay* is invalid.
        """
        await self._replace_current()
        attempt = self._machine.begin_signer_initiated(
            relay if relay is not None else self._config.relays.urls[0]
        )
        self._current = attempt
        return attempt

    async def connect_with_bunker_uri(self, uri: str | BunkerUri) -> Attempt:
        """Connect to the signer named by a pasted ``bunker://`` URI.

        Raises:
            ConfigurationError: If *uri* cannot be parsed.
        """
        bunker = uri if isinstance(uri, BunkerUri) else parse_bunker_uri(uri)
        await self._replace_current()
        attempt = self._machine.begin_bunker(bunker)
        self._current = attempt
        return attempt

    async def cancel(self, attempt: Attempt) -> None:
        """Cancel *attempt*. Never writes to the session store."""
        await self._machine.cancel(attempt)

    async def retry(self, attempt: Attempt) -> Attempt:
        """Start a brand-new attempt of the same kind as *attempt*.

        The new attempt gets a fresh identity and URI; *attempt* is left as is
        (cancelled first if it is still live).
        """
        uri = attempt.uri
        if attempt.mode == ConnectionMode.CLIENT_INITIATED and isinstance(uri, ClientInitiatedUri):
            return await self.start_client_initiated_connection(uri.relays, uri.metadata)
        if attempt.mode == ConnectionMode.SIGNER_INITIATED and isinstance(uri, SignerInitiatedUri):
            return await self.start_signer_initiated_connection(uri.relay)
        if attempt.mode == ConnectionMode.BUNKER and isinstance(uri, BunkerUri):
            return await self.connect_with_bunker_uri(uri)
        raise ConfigurationError(f"cannot retry attempt in mode {attempt.mode}")

    async def _replace_current(self) -> None:
        if self._closed:
            raise RuntimeError("client is closed")
        previous = self._current
        if previous is not None and not previous.is_terminal:
            self._logger.info("attempt_superseded", attempt=previous.attempt_id)
            await self._machine.cancel(previous)
        await self._drop_session()

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def fast_reconnect(self) -> ResolvedIdentity | None:
        """Resume the stored session if the signer still answers for it.

        A live attempt is cancelled first. On success
        [session][signerlink.nip46.client.RemoteSignerClient.session] is ready
        for signer requests.

        Returns:
            The resolved identity, or ``None`` when there is no usable
            session. Any probe failure clears the stored session.
        """
        await self._replace_current()
        self._current = None
        try:
            session = await self._session_store.load()
        except StorageError as e:
            self._logger.error("session_load_failed", error=str(e))
            return None
        if session is None:
            return None

        try:
            user_pubkey = await self._probe(session)
        except asyncio.CancelledError:
            raise
        except (
            ConfigurationError,
            ConnectivityError,
            CodecError,
            HandshakeTimeoutError,
            SessionExpiredError,
        ) as e:
            self._logger.info("fast_reconnect_failed", error=str(e) or type(e).__name__)
            await self._discard(session)
            return None

        if user_pubkey != session.remote_pubkey:
            self._logger.warning(
                "fast_reconnect_mismatch", expected=session.remote_pubkey, received=user_pubkey
            )
            await self._discard(session)
            return None

        self._logger.info("fast_reconnect_succeeded", user_pubkey=user_pubkey)
        identity = session.to_identity()
        self._session = self._open_session(session.local_identity, identity)
        return identity

    async def _probe(self, session: PersistedSession) -> str:
        """Ask the stored signer for the user pubkey over the stored relays."""
        correlator = HandshakeCorrelator(signer_pubkey=session.probe_pubkey, skip_connect=True)
        identity = session.local_identity
        since = max(int(self._clock.time()) - self._config.handshake.since_window, 0)
        deadline = self._clock.monotonic() + self._config.handshake.probe_timeout
        poll_interval = self._config.handshake.poll_interval

        async with await self._channels.open_subscription(
            session.relays, identity.public_key_hex, since
        ) as subscription:
            step = correlator.start()
            if step.request is None or step.recipient is None:
                raise SessionExpiredError("stored session has no signer to probe")
            await subscription.publish(self._codec.encrypt(step.request, identity, step.recipient))

            while True:
                now = self._clock.monotonic()
                if now >= deadline:
                    raise HandshakeTimeoutError("signer did not answer the probe")
                message = await subscription.next(timeout=min(deadline - now, poll_interval))
                if message is None:
                    continue
                try:
                    envelope = self._codec.decrypt(message, identity)
                except CodecError as e:
                    self._logger.debug("probe_message_dropped", error=str(e))
                    continue
                step = correlator.feed(message.sender_pubkey, envelope)
                if step.rejected:
                    raise SessionExpiredError(f"signer refused the probe: {step.error}")
                if step.completed and step.user_pubkey is not None:
                    return step.user_pubkey

    async def _discard(self, session: PersistedSession) -> None:
        try:
            await self._session_store.clear()
        except StorageError as e:
            self._logger.error(
                "session_clear_failed", remote_pubkey=session.remote_pubkey, error=str(e)
            )

    async def logout(self) -> None:
        """Cancel any live attempt and forget the stored session."""
        if self._current is not None and not self._current.is_terminal:
            await self._machine.cancel(self._current)
        self._current = None
        await self._drop_session()
        await self._session_store.clear()
        self._logger.info("logged_out")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Cancel any live attempt and close the active session. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._current is not None and not self._current.is_terminal:
            await self._machine.cancel(self._current)
        await self._drop_session()

    async def __aenter__(self) -> RemoteSignerClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
