"""Two-phase NIP-46 handshake correlator.

A pure state holder: it consumes decrypted envelopes and says what to do
next, without performing any I/O.

Phases:

1. ``CONNECT`` -- wait for the signer's acknowledgement: an
   [Ack][signerlink.models.envelope.Ack] (``"ack"`` or an echo of the connect
   secret) or a ``connect`` [MethodCall][signerlink.models.envelope.MethodCall].
   Its sender becomes the *signer* pubkey, which is not assumed to be the
   user's identity. The step asks the caller to publish
   ``{"id", "method": "get_public_key", "params": []}`` to the signer.
2. ``IDENTIFY`` -- wait for a [Result][signerlink.models.envelope.Result] from
   the signer whose ``result`` is 64 hex characters. Matching ids are
   preferred; a bare 64-hex result under another id is accepted as well,
   since some signers do not echo ids.

A non-empty [ErrorReply][signerlink.models.envelope.ErrorReply] in either
phase rejects the handshake. Once complete or rejected, every later envelope
is ignored, so duplicate acks or results never re-fire anything.

For pasted ``bunker://`` URIs the signer pubkey is known up front;
[start()][signerlink.nip46.handshake.HandshakeCorrelator.start] then emits
the ``connect`` request the client sends first. A liveness probe skips the
connect phase entirely.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from signerlink.models._validation import is_hex
from signerlink.models.constants import PUBKEY_HEX_LENGTH
from signerlink.models.envelope import Ack, ErrorReply, MethodCall, RemoteEnvelope, Result


CONNECT_METHOD = "connect"
GET_PUBLIC_KEY_METHOD = "get_public_key"


class HandshakePhase(StrEnum):
    CONNECT = "connect"
    IDENTIFY = "identify"
    COMPLETE = "complete"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class HandshakeStep:
    """Instruction returned by the correlator.

    Attributes:
        request: Envelope the caller must encrypt and publish, if any.
        recipient: Pubkey ``request`` is addressed to.
        user_pubkey: Resolved user pubkey when the handshake just completed.
        error: Signer-supplied reason when the handshake was just rejected.
        lenient_match: True when completion relied on an id mismatch.
    """

    request: MethodCall | None = None
    recipient: str | None = None
    user_pubkey: str | None = None
    error: str | None = None
    lenient_match: bool = False

    @property
    def completed(self) -> bool:
        return self.user_pubkey is not None

    @property
    def rejected(self) -> bool:
        return self.error is not None

    @property
    def ignored(self) -> bool:
        return self.request is None and self.user_pubkey is None and self.error is None


_IGNORED = HandshakeStep()


class HandshakeCorrelator:
    """Correlate inbound envelopes with the connect and identify phases.

    Args:
        signer_pubkey: Known signer pubkey (``bunker://`` flows and probes).
            When set, envelopes from any other sender are ignored.
        connect_secret: Secret carried in the connect request (bunker flow).
        skip_connect: Start directly in the identify phase (liveness probe).
    """

    def __init__(
        self,
        *,
        signer_pubkey: str | None = None,
        connect_secret: str | None = None,
        skip_connect: bool = False,
    ) -> None:
        if skip_connect and signer_pubkey is None:
            raise ValueError("skip_connect requires a known signer_pubkey")
        self._signer_pubkey = signer_pubkey.lower() if signer_pubkey else None
        self._signer_known = signer_pubkey is not None
        self._connect_secret = connect_secret
        self._phase = HandshakePhase.IDENTIFY if skip_connect else HandshakePhase.CONNECT
        self._pending_id: str | None = None
        self._user_pubkey: str | None = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def phase(self) -> HandshakePhase:
        return self._phase

    @property
    def signer_pubkey(self) -> str | None:
        return self._signer_pubkey

    @property
    def user_pubkey(self) -> str | None:
        return self._user_pubkey

    @property
    def pending_request_id(self) -> str | None:
        """Id of the single outstanding request, if any."""
        return self._pending_id

    @property
    def finished(self) -> bool:
        return self._phase in (HandshakePhase.COMPLETE, HandshakePhase.REJECTED)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def start(self) -> HandshakeStep:
        """Return the request the client sends before waiting, if any.

        * bunker flow: ``connect [signer_pubkey, secret?]`` to the signer;
        * probe: ``get_public_key`` to the signer;
        * otherwise: nothing, the signer speaks first.
        """
        if self._signer_pubkey is None or self._pending_id is not None:
            return _IGNORED
        if self._phase == HandshakePhase.IDENTIFY:
            return self._request(GET_PUBLIC_KEY_METHOD, ())
        params = [self._signer_pubkey]
        if self._connect_secret:
            params.append(self._connect_secret)
        return self._request(CONNECT_METHOD, params)

    def feed(self, sender_pubkey: str, envelope: RemoteEnvelope) -> HandshakeStep:
        """Advance the handshake with one decrypted envelope from *sender_pubkey*."""
        if self.finished:
            return _IGNORED

        sender = sender_pubkey.lower()
        if self._signer_known and sender != self._signer_pubkey:
            return _IGNORED

        if isinstance(envelope, ErrorReply):
            if self._phase == HandshakePhase.IDENTIFY and sender != self._signer_pubkey:
                return _IGNORED
            self._phase = HandshakePhase.REJECTED
            self._pending_id = None
            return HandshakeStep(error=envelope.error)

        if self._phase == HandshakePhase.CONNECT:
            return self._feed_connect(sender, envelope)
        return self._feed_identify(sender, envelope)

    def _feed_connect(self, sender: str, envelope: RemoteEnvelope) -> HandshakeStep:
        is_ack = isinstance(envelope, Ack) or (
            isinstance(envelope, MethodCall) and envelope.method == CONNECT_METHOD
        )
        if not is_ack:
            return _IGNORED
        self._signer_pubkey = sender
        self._phase = HandshakePhase.IDENTIFY
        return self._request(GET_PUBLIC_KEY_METHOD, ())

    def _feed_identify(self, sender: str, envelope: RemoteEnvelope) -> HandshakeStep:
        if sender != self._signer_pubkey or not isinstance(envelope, Result):
            return _IGNORED
        if not is_hex(envelope.result, PUBKEY_HEX_LENGTH):
            return _IGNORED

        lenient = envelope.id != self._pending_id
        self._user_pubkey = envelope.result.lower()
        self._phase = HandshakePhase.COMPLETE
        self._pending_id = None
        return HandshakeStep(user_pubkey=self._user_pubkey, lenient_match=lenient)

    def _request(self, method: str, params: Sequence[str]) -> HandshakeStep:
        request = MethodCall.new(method, list(params))
        self._pending_id = request.id
        return HandshakeStep(request=request, recipient=self._signer_pubkey)
