"""
Unit tests for identity, session, message, and attempt models.

Tests:
- EphemeralIdentity key validation and repr hygiene
- ResolvedIdentity normalization
- PersistedSession expiry, serialization, and corrupt-record rejection
- InboundMessage / SubscriptionFilter local filtering
- AttemptResult exactly-one invariant
"""

import pytest

from signerlink.models import (
    AttemptResult,
    EphemeralIdentity,
    ErrorKind,
    InboundMessage,
    PersistedSession,
    ResolvedIdentity,
    SubscriptionFilter,
)


SK = bytes(range(1, 33))
PK = bytes(range(33, 65))


def _session(**overrides: object) -> PersistedSession:
    fields: dict[str, object] = {
        "local_identity": EphemeralIdentity(secret_key=SK, public_key=PK),
        "remote_pubkey": "f" * 64,
        "relays": ("wss://relay.example.com",),
        "connected_at": 1_700_000_000,
        "expires_at": 1_700_086_400,
    }
    fields.update(overrides)
    return PersistedSession(**fields)  # type: ignore[arg-type]


# =============================================================================
# Identity
# =============================================================================


class TestEphemeralIdentity:
    """Key material validation."""

    def test_hex_helpers(self) -> None:
        identity = EphemeralIdentity(secret_key=SK, public_key=PK)
        assert identity.secret_key_hex == SK.hex()
        assert identity.public_key_hex == PK.hex()

    def test_repr_hides_secret(self) -> None:
        identity = EphemeralIdentity(secret_key=SK, public_key=PK)
        assert SK.hex() not in repr(identity)
        assert PK.hex() in repr(identity)

    def test_wrong_length(self) -> None:
        with pytest.raises(ValueError, match="32 bytes"):
            EphemeralIdentity(secret_key=SK[:31], public_key=PK)

    def test_wrong_type(self) -> None:
        with pytest.raises(TypeError):
            EphemeralIdentity(secret_key=SK.hex(), public_key=PK)  # type: ignore[arg-type]


class TestResolvedIdentity:
    """Normalization of resolved pubkeys."""

    def test_lowercases(self) -> None:
        resolved = ResolvedIdentity(user_pubkey="F" * 64, signer_pubkey="E" * 64, relays=["wss://a.example.com"])
        assert resolved.user_pubkey == "f" * 64
        assert resolved.signer_pubkey == "e" * 64
        assert resolved.relays == ("wss://a.example.com",)

    def test_invalid_pubkey(self) -> None:
        with pytest.raises(ValueError):
            ResolvedIdentity(user_pubkey="abc", signer_pubkey="e" * 64)


# =============================================================================
# Session
# =============================================================================


class TestPersistedSession:
    """Expiry and serialization."""

    def test_not_expired_before_deadline(self) -> None:
        assert _session().is_expired(1_700_086_399) is False

    def test_expired_at_deadline(self) -> None:
        assert _session().is_expired(1_700_086_400) is True

    def test_probe_pubkey_prefers_signer(self) -> None:
        assert _session(signer_pubkey="e" * 64).probe_pubkey == "e" * 64

    def test_probe_pubkey_falls_back_to_remote(self) -> None:
        assert _session().probe_pubkey == "f" * 64

    def test_to_identity(self) -> None:
        resolved = _session(signer_pubkey="e" * 64).to_identity()
        assert resolved == ResolvedIdentity("f" * 64, "e" * 64, ("wss://relay.example.com",))

    def test_to_dict_stores_secret_verbatim(self) -> None:
        data = _session().to_dict()
        assert data["secret_key"] == SK.hex()
        assert data["public_key"] == PK.hex()
        assert data["relays"] == ["wss://relay.example.com"]

    def test_from_dict_round_trip(self) -> None:
        session = _session(signer_pubkey="e" * 64)
        assert PersistedSession.from_dict(session.to_dict()) == session

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda d: d.pop("secret_key"),
            lambda d: d.update(secret_key="zz"),
            lambda d: d.update(relays=[]),
            lambda d: d.update(expires_at="tomorrow"),
            lambda d: d.update(remote_pubkey=None),
        ],
    )
    def test_from_dict_rejects_corrupt(self, mutate) -> None:
        data = _session().to_dict()
        mutate(data)
        with pytest.raises(ValueError):
            PersistedSession.from_dict(data)

    def test_from_dict_rejects_non_mapping(self) -> None:
        with pytest.raises(ValueError):
            PersistedSession.from_dict("not a session")

    def test_empty_relays_rejected(self) -> None:
        with pytest.raises(ValueError):
            _session(relays=())


# =============================================================================
# Messages
# =============================================================================


class TestInboundMessage:
    """Raw message validation."""

    def test_sender_lowercased(self) -> None:
        message = InboundMessage("wss://a.example.com", "1" * 64, "A" * 64, "ct", 1)
        assert message.sender_pubkey == "a" * 64

    def test_invalid_event_id(self) -> None:
        with pytest.raises(ValueError):
            InboundMessage("wss://a.example.com", "nothex", "a" * 64, "ct", 1)


class TestSubscriptionFilter:
    """Local re-check of relay filters."""

    def test_matches(self) -> None:
        f = SubscriptionFilter(pubkey="a" * 64, since=100)
        assert f.matches(24133, ["a" * 64], 100) is True

    def test_wrong_kind(self) -> None:
        f = SubscriptionFilter(pubkey="a" * 64, since=100)
        assert f.matches(1, ["a" * 64], 200) is False

    def test_too_old(self) -> None:
        f = SubscriptionFilter(pubkey="a" * 64, since=100)
        assert f.matches(24133, ["a" * 64], 99) is False

    def test_not_addressed(self) -> None:
        f = SubscriptionFilter(pubkey="a" * 64, since=100)
        assert f.matches(24133, ["b" * 64], 200) is False

    def test_p_tag_case_insensitive(self) -> None:
        f = SubscriptionFilter(pubkey="A" * 64, since=0)
        assert f.matches(24133, ["a" * 64], 1) is True


# =============================================================================
# Attempt results
# =============================================================================


class TestAttemptResult:
    """Exactly one of identity or error kind."""

    def test_success(self) -> None:
        result = AttemptResult.success(ResolvedIdentity("f" * 64, "e" * 64))
        assert result.ok is True
        assert result.user_pubkey == "f" * 64
        assert result.error_kind is None

    def test_failure(self) -> None:
        result = AttemptResult.failure(ErrorKind.TIMEOUT, "late")
        assert result.ok is False
        assert result.user_pubkey is None
        assert result.error_kind == ErrorKind.TIMEOUT
        assert result.message == "late"

    def test_failure_accepts_string_kind(self) -> None:
        assert AttemptResult.failure("cancelled", "x").error_kind == ErrorKind.CANCELLED  # type: ignore[arg-type]

    def test_neither_rejected(self) -> None:
        with pytest.raises(ValueError):
            AttemptResult()

    def test_both_rejected(self) -> None:
        with pytest.raises(ValueError):
            AttemptResult(identity=ResolvedIdentity("f" * 64, "e" * 64), error_kind=ErrorKind.INTERNAL)
