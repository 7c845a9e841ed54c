"""Connection state machine driving one attempt per task.

States::

    GENERATING -> AWAITING_APPROVAL -> SUCCESS
                                    -> ERROR (TIMEOUT | SIGNER_REJECTED | INTERNAL)
    GENERATING -> ERROR (RELAY_UNREACHABLE)
    any non-terminal -> CANCELLED

Each ``begin_*`` method of
[ConnectionStateMachine][signerlink.nip46.machine.ConnectionStateMachine]
builds a fresh identity and URI synchronously, so the URI can be displayed
immediately, and schedules one ``asyncio.Task`` that opens the subscription
and runs the handshake.

The approval deadline is checked against an injected
[Clock][signerlink.core.clock.Clock] inside the loop
([check_deadline()][signerlink.nip46.machine.ConnectionStateMachine.check_deadline]);
the loop never blocks longer than ``poll_interval`` between checks.

Every terminal transition closes the attempt's subscription exactly once,
before the result becomes observable, and yields exactly one
[AttemptResult][signerlink.models.attempt.AttemptResult].
"""

from __future__ import annotations

import asyncio
import contextlib
import secrets
from collections.abc import Iterable, Sequence

from signerlink.core.clock import Clock, SystemClock
from signerlink.core.exceptions import (
    CodecError,
    DecryptError,
    HandshakeTimeoutError,
    RelayUnreachableError,
    SignerRejectedError,
    StorageError,
)
from signerlink.core.logger import Logger
from signerlink.core.metrics import HandshakeMetrics
from signerlink.models.attempt import AttemptResult
from signerlink.models.constants import AttemptStatus, ConnectionMode, ErrorKind
from signerlink.models.identity import EphemeralIdentity, ResolvedIdentity
from signerlink.models.relay import Relay
from signerlink.models.uri import AppMetadata, BunkerUri, ConnectionUri
from signerlink.utils.keys import generate_identity

from .channel import RelayChannelManager, SubscriptionHandle
from .codec import EnvelopeCodec
from .configs import HandshakeConfig
from .handshake import HandshakeCorrelator, HandshakeStep
from .session_store import SessionStore
from .uri import build_client_initiated_uri, build_signer_initiated_uri, generate_connect_secret


class Attempt:
    """Live state of one connection try.

    Owned by the [ConnectionStateMachine][signerlink.nip46.machine.ConnectionStateMachine];
    a retry creates a new ``Attempt`` and never mutates an old one.

    Attributes:
        attempt_id: Short random id used in logs.
        mode: How the attempt was initiated.
        identity: Ephemeral identity, unique to this attempt.
        uri: URI to display (or the parsed ``bunker://`` the user supplied).
        relays: Normalized relay URLs the attempt listens on.
        deadline: Monotonic time at which the attempt times out.
    """

    def __init__(
        self,
        *,
        mode: ConnectionMode,
        identity: EphemeralIdentity,
        uri: ConnectionUri,
        relays: Sequence[str],
        deadline: float,
        started_at: float,
        secret: str | None = None,
        signer_pubkey: str | None = None,
    ) -> None:
        self.attempt_id = secrets.token_hex(4)
        self.mode = mode
        self.identity = identity
        self.uri = uri
        self.relays = tuple(relays)
        self.deadline = deadline
        self.started_at = started_at
        self.secret = secret
        self._signer_pubkey = signer_pubkey
        self._status = AttemptStatus.GENERATING
        self._result: AttemptResult | None = None
        self._done = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._subscription: SubscriptionHandle | None = None
        self._subscription_closed = False

    @property
    def status(self) -> AttemptStatus:
        return self._status

    @property
    def result(self) -> AttemptResult | None:
        return self._result

    @property
    def signer_pubkey(self) -> str | None:
        """Signer pubkey once the connect phase is complete (or known up front)."""
        return self._signer_pubkey

    @property
    def is_terminal(self) -> bool:
        return self._status.is_terminal

    @property
    def uri_string(self) -> str:
        return self.uri.to_string()

    async def wait(self) -> AttemptResult:
        """Block until the attempt reaches a terminal state."""
        await self._done.wait()
        if self._result is None:
            raise RuntimeError("attempt finished without a result")
        return self._result

    def __repr__(self) -> str:
        return (
            f"Attempt(id={self.attempt_id}, mode={self.mode}, status={self._status}, "
            f"client_pubkey={self.identity.public_key_hex})"
        )


class ConnectionStateMachine:
    """Run attempts: open subscription, correlate handshake, enforce deadline.

    Args:
        channel_manager: Opens relay subscriptions.
        codec: Encrypts and decrypts envelopes.
        config: Timing policy.
        clock: Time source; the deadline check uses ``monotonic()``.
        session_store: Where a successful session is recorded, if anywhere.
        metrics: Optional metrics recorder.
    """

    def __init__(
        self,
        channel_manager: RelayChannelManager,
        codec: EnvelopeCodec | None = None,
        *,
        config: HandshakeConfig | None = None,
        clock: Clock | None = None,
        session_store: SessionStore | None = None,
        metrics: HandshakeMetrics | None = None,
    ) -> None:
        self._channels = channel_manager
        self._codec = codec or EnvelopeCodec()
        self._config = config or HandshakeConfig()
        self._clock = clock or SystemClock()
        self._session_store = session_store
        self._metrics = metrics or HandshakeMetrics()
        self._logger = Logger("signerlink.machine")

    @property
    def config(self) -> HandshakeConfig:
        return self._config

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def begin_client_initiated(
        self,
        relays: Iterable[str | Relay],
        metadata: AppMetadata | None = None,
        *,
        permissions: Iterable[str] = (),
    ) -> Attempt:
        """Start a ``nostrconnect://`` attempt and return it in ``GENERATING``.

        Raises:
            ConfigurationError: If the relay list is empty or invalid.
        """
        identity = generate_identity()
        secret = generate_connect_secret() if self._config.connect_secret else None
        uri = build_client_initiated_uri(
            identity, relays, metadata, secret=secret, permissions=permissions
        )
        attempt = self._new_attempt(
            ConnectionMode.CLIENT_INITIATED, identity, uri, uri.relays, secret=secret
        )
        return self._launch(attempt)

    def begin_signer_initiated(self, relay: str | Relay) -> Attempt:
        """Start a single-relay ``bunker://`` invite attempt.

        Raises:
            ConfigurationError: If *relay* is invalid.
        """
        identity = generate_identity()
        uri = build_signer_initiated_uri(identity, relay)
        attempt = self._new_attempt(ConnectionMode.SIGNER_INITIATED, identity, uri, uri.relays)
        return self._launch(attempt)

    def begin_bunker(self, bunker: BunkerUri) -> Attempt:
        """Start an attempt against a signer-issued ``bunker://`` URI."""
        identity = generate_identity()
        attempt = self._new_attempt(
            ConnectionMode.BUNKER,
            identity,
            bunker,
            bunker.relays,
            secret=bunker.secret,
            signer_pubkey=bunker.signer_pubkey,
        )
        return self._launch(attempt)

    def check_deadline(self, attempt: Attempt, now: float) -> bool:
        """Return True if *attempt* is still live and its deadline has passed."""
        return not attempt.is_terminal and now >= attempt.deadline

    async def cancel(self, attempt: Attempt) -> None:
        """Cancel *attempt* and wait for its cleanup. No-op once terminal."""
        if attempt.is_terminal:
            return
        task = attempt._task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if not attempt.is_terminal:
            # Task was cancelled before it started running
            await self._close_subscription(attempt)
            self._finish(attempt, AttemptResult.failure(ErrorKind.CANCELLED, "cancelled"))

    # -------------------------------------------------------------------------
    # Attempt lifecycle
    # -------------------------------------------------------------------------

    def _new_attempt(
        self,
        mode: ConnectionMode,
        identity: EphemeralIdentity,
        uri: ConnectionUri,
        relays: Sequence[str],
        *,
        secret: str | None = None,
        signer_pubkey: str | None = None,
    ) -> Attempt:
        now = self._clock.monotonic()
        return Attempt(
            mode=mode,
            identity=identity,
            uri=uri,
            relays=relays,
            deadline=now + self._config.approval_timeout,
            started_at=now,
            secret=secret,
            signer_pubkey=signer_pubkey,
        )

    def _launch(self, attempt: Attempt) -> Attempt:
        self._logger.info(
            "attempt_started",
            attempt=attempt.attempt_id,
            mode=attempt.mode,
            client_pubkey=attempt.identity.public_key_hex,
            relay_count=len(attempt.relays),
        )
        attempt._task = asyncio.create_task(self._run(attempt), name=f"attempt-{attempt.attempt_id}")
        return attempt

    async def _run(self, attempt: Attempt) -> None:
        result: AttemptResult | None = None
        try:
            result = await self._drive(attempt)
        except RelayUnreachableError as e:
            result = AttemptResult.failure(ErrorKind.RELAY_UNREACHABLE, str(e))
        except HandshakeTimeoutError as e:
            result = AttemptResult.failure(ErrorKind.TIMEOUT, str(e))
        except SignerRejectedError as e:
            result = AttemptResult.failure(ErrorKind.SIGNER_REJECTED, e.reason)
        except asyncio.CancelledError:
            result = AttemptResult.failure(ErrorKind.CANCELLED, "cancelled")
            raise
        except Exception as e:
            self._logger.exception("attempt_crashed", attempt=attempt.attempt_id, error=str(e))
            result = AttemptResult.failure(ErrorKind.INTERNAL, str(e) or type(e).__name__)
        finally:
            await self._close_subscription(attempt)
            if result is not None:
                self._finish(attempt, result)

    async def _drive(self, attempt: Attempt) -> AttemptResult:
        since = max(int(self._clock.time()) - self._config.since_window, 0)
        subscription = await self._channels.open_subscription(
            attempt.relays, attempt.identity.public_key_hex, since
        )
        attempt._subscription = subscription
        attempt._status = AttemptStatus.AWAITING_APPROVAL
        self._logger.info(
            "attempt_awaiting_approval",
            attempt=attempt.attempt_id,
            relay_count=len(subscription.relays),
        )

        correlator = HandshakeCorrelator(
            signer_pubkey=attempt.signer_pubkey,
            connect_secret=attempt.secret if attempt.mode == ConnectionMode.BUNKER else None,
        )
        await self._send(attempt, subscription, correlator.start())

        while True:
            now = self._clock.monotonic()
            if self.check_deadline(attempt, now):
                raise HandshakeTimeoutError(
                    f"no approval within {self._config.approval_timeout:g} seconds"
                )

            wait = min(attempt.deadline - now, self._config.poll_interval)
            message = await subscription.next(timeout=wait)
            if message is None:
                continue

            try:
                envelope = self._codec.decrypt(
                    message, attempt.identity, expected_secret=attempt.secret
                )
            except CodecError as e:
                reason = "decrypt_failed" if isinstance(e, DecryptError) else "malformed"
                self._logger.debug(
                    "message_dropped", attempt=attempt.attempt_id, reason=reason, error=str(e)
                )
                self._metrics.message_dropped(reason)
                continue

            step = correlator.feed(message.sender_pubkey, envelope)
            if step.rejected:
                raise SignerRejectedError(step.error or "")

            if step.request is not None:
                attempt._signer_pubkey = correlator.signer_pubkey
                self._logger.info(
                    "signer_acknowledged",
                    attempt=attempt.attempt_id,
                    signer_pubkey=correlator.signer_pubkey,
                    relay=message.source_relay,
                )
                await self._send(attempt, subscription, step)

            if step.completed:
                return await self._complete(attempt, subscription, step)

    async def _send(self, attempt: Attempt, subscription: SubscriptionHandle, step: HandshakeStep) -> None:
        if step.request is None or step.recipient is None:
            return
        event = self._codec.encrypt(step.request, attempt.identity, step.recipient)
        accepted = await subscription.publish(event)
        self._logger.info(
            "request_published",
            attempt=attempt.attempt_id,
            method=step.request.method,
            accepted=accepted,
        )

    async def _complete(
        self, attempt: Attempt, subscription: SubscriptionHandle, step: HandshakeStep
    ) -> AttemptResult:
        user_pubkey = step.user_pubkey or ""
        signer_pubkey = attempt.signer_pubkey or user_pubkey
        if step.lenient_match:
            self._logger.info("handshake_lenient_match", attempt=attempt.attempt_id)

        identity = ResolvedIdentity(
            user_pubkey=user_pubkey, signer_pubkey=signer_pubkey, relays=attempt.relays
        )
        result = AttemptResult.success(identity)
        if self._session_store is None:
            return result

        # Handshake completion is the point of no return: a cancel arriving
        # during the save still ends the attempt as SUCCESS with the session stored.
        save = asyncio.ensure_future(
            self._save_session(self._session_store, attempt, user_pubkey, signer_pubkey)
        )
        try:
            await asyncio.shield(save)
        except asyncio.CancelledError:
            await save
            await self._close_subscription(attempt)
            self._finish(attempt, result)
            raise
        return result

    async def _save_session(
        self, store: SessionStore, attempt: Attempt, user_pubkey: str, signer_pubkey: str
    ) -> None:
        try:
            await store.record(
                attempt.identity, user_pubkey, attempt.relays, signer_pubkey=signer_pubkey
            )
        except StorageError as e:
            self._logger.error("session_save_failed", attempt=attempt.attempt_id, error=str(e))

    async def _close_subscription(self, attempt: Attempt) -> None:
        if attempt._subscription_closed:
            return
        attempt._subscription_closed = True
        if attempt._subscription is not None:
            await attempt._subscription.close()

    def _finish(self, attempt: Attempt, result: AttemptResult) -> None:
        if attempt.is_terminal:
            return
        if result.ok:
            attempt._status = AttemptStatus.SUCCESS
        elif result.error_kind == ErrorKind.CANCELLED:
            attempt._status = AttemptStatus.CANCELLED
        else:
            attempt._status = AttemptStatus.ERROR
        attempt._result = result
        attempt._done.set()

        duration = self._clock.monotonic() - attempt.started_at
        outcome = "success" if result.ok else str(result.error_kind)
        self._metrics.attempt_finished(outcome, duration)
        if result.ok:
            self._logger.info(
                "attempt_succeeded", attempt=attempt.attempt_id, user_pubkey=result.user_pubkey
            )
        else:
            self._logger.warning(
                "attempt_failed",
                attempt=attempt.attempt_id,
                error_kind=result.error_kind,
                message=result.message,
            )
