"""Scripted remote signer built from the library's own key and codec helpers."""

from __future__ import annotations

import json

from nostr_sdk import (
    Event,
    EventBuilder,
    Kind,
    PublicKey,
    SecretKey,
    Tag,
    Timestamp,
    nip04_decrypt,
    nip04_encrypt,
)

from signerlink.models.constants import EncryptionScheme
from signerlink.models.envelope import Ack, ErrorReply, MethodCall, RemoteEnvelope, Result
from signerlink.nip46.codec import EnvelopeCodec
from signerlink.nip46.handshake import CONNECT_METHOD, GET_PUBLIC_KEY_METHOD
from signerlink.nip46.session import NIP04_DECRYPT_METHOD, NIP04_ENCRYPT_METHOD, SIGN_EVENT_METHOD
from signerlink.utils.keys import generate_identity, identity_to_keys

from fixtures.transport import FakeTransport


class FakeSigner:
    """Holds a signer keypair and builds encrypted replies addressed to a client.

    Args:
        user_pubkey: Pubkey returned for ``get_public_key``; defaults to the
            signer's own pubkey.
        scheme: Encryption scheme of outbound replies.
    """

    def __init__(
        self,
        user_pubkey: str | None = None,
        *,
        scheme: EncryptionScheme = EncryptionScheme.NIP04,
    ) -> None:
        self.identity = generate_identity()
        self.user_pubkey = user_pubkey or self.identity.public_key_hex
        self.codec = EnvelopeCodec(scheme)
        self.received: list[MethodCall] = []
        self.refused: dict[str, str] = {}

    @property
    def pubkey(self) -> str:
        return self.identity.public_key_hex

    def event(self, envelope: RemoteEnvelope, client_pubkey: str) -> Event:
        return self.codec.encrypt(envelope, self.identity, client_pubkey)

    def read(self, event: Event, relay_url: str = "wss://relay.example.com") -> RemoteEnvelope:
        message = EnvelopeCodec.message_from_event(event, relay_url)
        return self.codec.decrypt(message, self.identity)

    def ack(self, client_pubkey: str, request_id: str = "") -> Event:
        return self.event(Ack(id=request_id), client_pubkey)

    def connect_call(self, client_pubkey: str) -> Event:
        return self.event(MethodCall.new(CONNECT_METHOD, [client_pubkey]), client_pubkey)

    def result(self, client_pubkey: str, request_id: str, value: str | None = None) -> Event:
        return self.event(Result(id=request_id, result=value or self.user_pubkey), client_pubkey)

    def error(self, client_pubkey: str, request_id: str, reason: str) -> Event:
        return self.event(ErrorReply(id=request_id, error=reason), client_pubkey)

    def answer(self, call: MethodCall) -> RemoteEnvelope | None:
        """Reply the signer would send for *call*, or ``None`` for unknown methods.

        ``sign_event`` signs with the signer's own key, so it only yields a
        valid user event when ``user_pubkey`` is the signer's pubkey.
        """
        if call.method in self.refused:
            return ErrorReply(id=call.id, error=self.refused[call.method])
        if call.method == CONNECT_METHOD:
            return Ack(id=call.id)
        if call.method == GET_PUBLIC_KEY_METHOD:
            return Result(id=call.id, result=self.user_pubkey)
        if call.method == SIGN_EVENT_METHOD:
            template = json.loads(call.params[0])
            signed = (
                EventBuilder(Kind(template["kind"]), template["content"])
                .tags([Tag.parse(tag) for tag in template["tags"]])
                .custom_created_at(Timestamp.from_secs(template["created_at"]))
                .sign_with_keys(identity_to_keys(self.identity))
            )
            return Result(id=call.id, result=signed.as_json())
        secret_key = SecretKey.parse(self.identity.secret_key_hex)
        if call.method == NIP04_ENCRYPT_METHOD:
            peer, plaintext = call.params
            return Result(id=call.id, result=nip04_encrypt(secret_key, PublicKey.parse(peer), plaintext))
        if call.method == NIP04_DECRYPT_METHOD:
            peer, ciphertext = call.params
            return Result(id=call.id, result=nip04_decrypt(secret_key, PublicKey.parse(peer), ciphertext))
        return None

    def attach(self, transport: FakeTransport, *, respond: bool = True) -> None:
        """Answer requests addressed to this signer as they are published.

        Replies go out on the relay the request was published to.
        """

        async def _listener(relay_url: str, event: Event) -> None:
            if self.pubkey not in _p_tags(event):
                return
            envelope = self.read(event, relay_url)
            if not isinstance(envelope, MethodCall):
                return
            self.received.append(envelope)
            if not respond:
                return
            reply = self.answer(envelope)
            if reply is not None:
                transport.deliver(self.event(reply, event.author().to_hex()), relay_url)

        transport.listeners.append(_listener)


def _p_tags(event: Event) -> list[str]:
    return [
        parts[1]
        for parts in (tag.as_vec() for tag in event.tags().to_vec())
        if len(parts) >= 2 and parts[0] == "p"
    ]
