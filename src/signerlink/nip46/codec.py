"""Per-pair encrypted envelope codec.

Turns [RemoteEnvelope][signerlink.models.envelope.RemoteEnvelope] values into
signed kind-24133 events and back.

Encryption schemes, both delegated to ``nostr_sdk``:

* **NIP-04** -- ``nip04_encrypt`` / ``nip04_decrypt``; payload
  ``base64(ciphertext) + "?iv=" + base64(iv)``.
* **NIP-44 v2** -- ``nip44_encrypt`` / ``nip44_decrypt``.

Inbound payloads are recognized by shape (a ``?iv=`` suffix means NIP-04),
so a signer may answer in either scheme regardless of the outbound setting.

Every encryption draws a fresh random IV or nonce. Decryption has no side
effects; failures raise [DecryptError][signerlink.core.exceptions.DecryptError]
or [MalformedResponseError][signerlink.core.exceptions.MalformedResponseError]
and the caller drops the message.
"""

from __future__ import annotations

import json

from nostr_sdk import (
    Event,
    EventBuilder,
    Kind,
    Nip44Version,
    NostrSdkError,
    PublicKey,
    SecretKey,
    Tag,
    nip04_decrypt,
    nip04_encrypt,
    nip44_decrypt,
    nip44_encrypt,
)

from signerlink.core.exceptions import DecryptError, MalformedResponseError
from signerlink.models.constants import EncryptionScheme, EventKind
from signerlink.models.envelope import RemoteEnvelope, parse_envelope, to_json
from signerlink.models.identity import EphemeralIdentity
from signerlink.models.message import InboundMessage
from signerlink.utils.keys import derive_shared_secret, identity_to_keys


_NIP04_IV_SEPARATOR = "?iv="


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class EnvelopeCodec:
    """Encrypt, sign, decrypt, and decode NIP-46 envelopes.

    Args:
        scheme: Outbound encryption scheme.
    """

    def __init__(self, scheme: EncryptionScheme = EncryptionScheme.NIP04) -> None:
        self._scheme = EncryptionScheme(scheme)

    @property
    def scheme(self) -> EncryptionScheme:
        return self._scheme

    @staticmethod
    def derive_shared_secret(own_secret: bytes, counterparty_pubkey: bytes) -> bytes:
        """secp256k1 ECDH x-coordinate. Symmetric in the two parties."""
        return derive_shared_secret(own_secret, counterparty_pubkey)

    def encrypt_content(self, plaintext: str, identity: EphemeralIdentity, counterparty_pubkey: str) -> str:
        """Encrypt a plaintext string for *counterparty_pubkey* with the outbound scheme."""
        secret_key = SecretKey.parse(identity.secret_key_hex)
        public_key = PublicKey.parse(counterparty_pubkey)
        if self._scheme == EncryptionScheme.NIP44:
            return nip44_encrypt(secret_key, public_key, plaintext, Nip44Version.V2)
        return nip04_encrypt(secret_key, public_key, plaintext)

    def encrypt(
        self,
        envelope: RemoteEnvelope,
        identity: EphemeralIdentity,
        counterparty_pubkey: str,
    ) -> Event:
        """Serialize, encrypt, and sign *envelope* as a kind-24133 event.

        The event carries a single ``p`` tag addressing *counterparty_pubkey*
        and is signed by *identity*, so its authenticity is verifiable from
        ``identity.public_key``.
        """
        content = self.encrypt_content(to_json(envelope), identity, counterparty_pubkey)
        builder = EventBuilder(Kind(EventKind.NOSTR_CONNECT), content).tags(
            [Tag.parse(["p", counterparty_pubkey])]
        )
        return builder.sign_with_keys(identity_to_keys(identity))

    def decrypt_content(self, message: InboundMessage, identity: EphemeralIdentity) -> str:
        """Return the plaintext of *message*.

        Raises:
            DecryptError: If the payload cannot be decrypted with *identity*.
        """
        payload = message.ciphertext
        try:
            secret_key = SecretKey.parse(identity.secret_key_hex)
            public_key = PublicKey.parse(message.sender_pubkey)
            if _NIP04_IV_SEPARATOR in payload:
                return nip04_decrypt(secret_key, public_key, payload)
            return nip44_decrypt(secret_key, public_key, payload)
        except (ValueError, NostrSdkError) as e:
            raise DecryptError(f"cannot decrypt event {message.event_id}: {e}") from e

    def decrypt(
        self,
        message: InboundMessage,
        identity: EphemeralIdentity,
        *,
        expected_secret: str | None = None,
    ) -> RemoteEnvelope:
        """Decrypt *message* and decode it into a tagged envelope.

        Args:
            message: Inbound relay message.
            identity: The attempt's own identity.
            expected_secret: Connect secret whose echo counts as an ack.

        Raises:
            DecryptError: Decryption failed.
            MalformedResponseError: Plaintext is not a valid envelope.
        """
        plaintext = self.decrypt_content(message, identity)
        try:
            data = json.loads(plaintext)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"event {message.event_id} is not JSON: {e}") from e
        try:
            return parse_envelope(data, expected_secret=expected_secret)
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(f"event {message.event_id}: {e}") from e

    @staticmethod
    def message_from_event(event: Event, source_relay: str) -> InboundMessage:
        """Wrap a raw ``nostr_sdk.Event`` as an [InboundMessage][signerlink.models.message.InboundMessage].

        Raises:
            MalformedResponseError: If the event fields fail validation.
        """
        try:
            return InboundMessage(
                source_relay=source_relay,
                event_id=event.id().to_hex(),
                sender_pubkey=event.author().to_hex(),
                ciphertext=event.content(),
                created_at=event.created_at().as_secs(),
            )
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(f"invalid event: {e}") from e
