"""Signer requests over an established session.

Once a handshake succeeds (or a stored session passes its liveness probe),
the application talks to the signer through a
[RemoteSession][signerlink.nip46.session.RemoteSession]: it sends correlated
[MethodCall][signerlink.models.envelope.MethodCall] envelopes from the
session's ephemeral identity to the signer pubkey and waits for the reply
with the same id.

Requests are serialized: at most one is outstanding at a time, and each has
its own deadline measured on the injected [Clock][signerlink.core.clock.Clock].
The relay subscription is opened on the first request and kept until
``close()``.

Examples:
    ```python
    session = client.session
    signed = await session.sign_event({"kind": 1, "content": "hello", "tags": []})
    ciphertext = await session.nip04_encrypt(peer_pubkey, "secret note")
    ```
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping, Sequence
from typing import Any

from nostr_sdk import Event, NostrSdkError

from signerlink.core.clock import Clock, SystemClock
from signerlink.core.exceptions import (
    CodecError,
    MalformedResponseError,
    RequestTimeoutError,
    SessionExpiredError,
    SignerRejectedError,
)
from signerlink.core.logger import Logger
from signerlink.models._validation import is_hex
from signerlink.models.constants import PUBKEY_HEX_LENGTH
from signerlink.models.envelope import ACK_RESULT, Ack, ErrorReply, MethodCall, Result
from signerlink.models.identity import EphemeralIdentity, ResolvedIdentity

from .channel import RelayChannelManager, SubscriptionHandle
from .codec import EnvelopeCodec
from .configs import HandshakeConfig, RequestConfig
from .handshake import GET_PUBLIC_KEY_METHOD


SIGN_EVENT_METHOD = "sign_event"
NIP04_ENCRYPT_METHOD = "nip04_encrypt"
NIP04_DECRYPT_METHOD = "nip04_decrypt"
NIP44_ENCRYPT_METHOD = "nip44_encrypt"
NIP44_DECRYPT_METHOD = "nip44_decrypt"


class RemoteSession:
    """Send requests to the signer on behalf of the logged-in user.

    Args:
        channel_manager: Opens the session's relay subscription.
        codec: Encrypts requests and decrypts replies.
        local_identity: Ephemeral identity the session was established with.
        identity: Resolved user and signer pubkeys plus the session relays.
        config: Per-request timeout.
        handshake_config: Supplies ``since_window`` and ``poll_interval``.
        clock: Time source for request deadlines.
    """

    def __init__(
        self,
        channel_manager: RelayChannelManager,
        codec: EnvelopeCodec,
        local_identity: EphemeralIdentity,
        identity: ResolvedIdentity,
        *,
        config: RequestConfig | None = None,
        handshake_config: HandshakeConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._channels = channel_manager
        self._codec = codec
        self._local_identity = local_identity
        self._identity = identity
        self._config = config or RequestConfig()
        self._handshake_config = handshake_config or HandshakeConfig()
        self._clock = clock or SystemClock()
        self._lock = asyncio.Lock()
        self._subscription: SubscriptionHandle | None = None
        self._closed = False
        self._logger = Logger("signerlink.remote")

    @property
    def identity(self) -> ResolvedIdentity:
        return self._identity

    @property
    def user_pubkey(self) -> str:
        return self._identity.user_pubkey

    @property
    def signer_pubkey(self) -> str:
        return self._identity.signer_pubkey

    @property
    def local_identity(self) -> EphemeralIdentity:
        return self._local_identity

    @property
    def closed(self) -> bool:
        return self._closed

    # -------------------------------------------------------------------------
    # Signer methods
    # -------------------------------------------------------------------------

    async def get_public_key(self) -> str:
        """Ask the signer for the user pubkey.

        Raises:
            MalformedResponseError: If the answer is not 64 hex characters.
        """
        result = await self.call(GET_PUBLIC_KEY_METHOD)
        if len(result) != PUBKEY_HEX_LENGTH or not is_hex(result):
            raise MalformedResponseError(f"get_public_key returned {result!r}")
        return result.lower()

    async def sign_event(self, unsigned: Mapping[str, Any]) -> Event:
        """Have the signer sign an event template.

        Args:
            unsigned: ``kind`` plus optional ``content``, ``tags`` and
                ``created_at`` (defaults to now).

        Raises:
            ValueError: If *unsigned* has no ``kind``.
            MalformedResponseError: If the reply is not a valid event signed
                by the user pubkey.
        """
        if "kind" not in unsigned:
            raise ValueError("unsigned event needs a kind")
        template = {
            "kind": int(unsigned["kind"]),
            "content": str(unsigned.get("content", "")),
            "tags": [list(tag) for tag in unsigned.get("tags", [])],
            "created_at": int(unsigned.get("created_at") or self._clock.time()),
        }
        raw = await self.call(SIGN_EVENT_METHOD, [json.dumps(template, separators=(",", ":"))])

        try:
            event = Event.from_json(raw)
        except NostrSdkError as e:
            raise MalformedResponseError(f"sign_event returned an invalid event: {e}") from e
        if not event.verify():
            raise MalformedResponseError("sign_event returned an event with a bad signature")
        if event.author().to_hex() != self.user_pubkey:
            raise MalformedResponseError("sign_event returned an event signed by another key")
        if event.kind().as_u16() != template["kind"]:
            raise MalformedResponseError("sign_event returned an event of another kind")
        return event

    async def nip04_encrypt(self, counterparty_pubkey: str, plaintext: str) -> str:
        return await self.call(NIP04_ENCRYPT_METHOD, [counterparty_pubkey, plaintext])

    async def nip04_decrypt(self, counterparty_pubkey: str, ciphertext: str) -> str:
        return await self.call(NIP04_DECRYPT_METHOD, [counterparty_pubkey, ciphertext])

    async def nip44_encrypt(self, counterparty_pubkey: str, plaintext: str) -> str:
        return await self.call(NIP44_ENCRYPT_METHOD, [counterparty_pubkey, plaintext])

    async def nip44_decrypt(self, counterparty_pubkey: str, ciphertext: str) -> str:
        return await self.call(NIP44_DECRYPT_METHOD, [counterparty_pubkey, ciphertext])

    # -------------------------------------------------------------------------
    # Request/response
    # -------------------------------------------------------------------------

    async def call(self, method: str, params: Sequence[str] = ()) -> str:
        """Send one request and return the signer's ``result`` string.

        Raises:
            SessionExpiredError: If the session is closed.
            SignerRejectedError: If the signer answers with an error.
            RequestTimeoutError: If no reply arrives within the request timeout.
            RelayUnreachableError: If the subscription cannot be opened.
        """
        async with self._lock:
            subscription = await self._ensure_subscription()
            request = MethodCall.new(method, list(params))
            event = self._codec.encrypt(request, self._local_identity, self.signer_pubkey)
            accepted = await subscription.publish(event)
            self._logger.debug(
                "request_published", method=method, request_id=request.id, accepted=accepted
            )
            return await self._await_reply(subscription, request)

    async def _ensure_subscription(self) -> SubscriptionHandle:
        if self._closed:
            raise SessionExpiredError("session is closed")
        if self._subscription is None or self._subscription.closed:
            since = max(int(self._clock.time()) - self._handshake_config.since_window, 0)
            self._subscription = await self._channels.open_subscription(
                self._identity.relays, self._local_identity.public_key_hex, since
            )
        return self._subscription

    async def _await_reply(self, subscription: SubscriptionHandle, request: MethodCall) -> str:
        timeout = self._config.timeout
        deadline = self._clock.monotonic() + timeout
        poll_interval = self._handshake_config.poll_interval

        while True:
            if self._closed:
                raise SessionExpiredError("session closed while waiting for the signer")
            now = self._clock.monotonic()
            if now >= deadline:
                raise RequestTimeoutError(
                    f"signer did not answer {request.method} within {timeout:g} seconds"
                )
            message = await subscription.next(timeout=min(deadline - now, poll_interval))
            if message is None:
                continue
            if message.sender_pubkey != self.signer_pubkey:
                self._logger.debug("reply_dropped", reason="foreign_sender")
                continue
            try:
                envelope = self._codec.decrypt(message, self._local_identity)
            except CodecError as e:
                self._logger.debug("reply_dropped", reason="undecodable", error=str(e))
                continue
            if envelope.id != request.id:
                self._logger.debug("reply_dropped", reason="stale_id", request_id=envelope.id)
                continue

            if isinstance(envelope, ErrorReply):
                self._logger.warning("request_rejected", method=request.method, error=envelope.error)
                raise SignerRejectedError(envelope.error)
            if isinstance(envelope, Result):
                return envelope.result
            if isinstance(envelope, Ack):
                return envelope.secret or ACK_RESULT

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close the relay subscription. Idempotent; later requests fail."""
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            await self._subscription.close()
        self._logger.debug("remote_session_closed", user_pubkey=self.user_pubkey)

    async def __aenter__(self) -> RemoteSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"RemoteSession(user_pubkey={self.user_pubkey}, signer_pubkey={self.signer_pubkey})"
