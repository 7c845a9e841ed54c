"""
Unit tests for nip46.session_store module.

Tests:
- save() / load() / clear()
- record() stamps connected_at and the configured TTL
- Lazy expiry: expired records are deleted on load
- Corrupt records are deleted on load
- Backend failures propagate as StorageError
"""

from typing import Any

import pytest
from fixtures.clock import ManualClock

from signerlink.core.exceptions import StorageError
from signerlink.core.store import MemoryKeyValueStore
from signerlink.models import EphemeralIdentity, PersistedSession
from signerlink.nip46.configs import SessionConfig
from signerlink.nip46.session_store import SessionStore


class _BrokenStore:
    async def get(self, key: str) -> Any | None:
        raise StorageError("backend down")

    async def put(self, key: str, value: Any) -> None:
        raise StorageError("backend down")

    async def delete(self, key: str) -> None:
        raise StorageError("backend down")


# =============================================================================
# Basic operations
# =============================================================================


class TestSaveLoadClear:
    """Single-slot persistence."""

    async def test_empty(self, session_store: SessionStore) -> None:
        assert await session_store.load() is None

    async def test_save_then_load(
        self, session_store: SessionStore, sample_session: PersistedSession
    ) -> None:
        await session_store.save(sample_session)
        assert await session_store.load() == sample_session

    async def test_secret_survives_verbatim(
        self,
        session_store: SessionStore,
        kv_backend: MemoryKeyValueStore,
        sample_session: PersistedSession,
    ) -> None:
        await session_store.save(sample_session)
        raw = await kv_backend.get(session_store.key)
        assert raw["secret_key"] == sample_session.local_identity.secret_key_hex

        loaded = await session_store.load()
        assert loaded is not None
        assert loaded.local_identity.secret_key == sample_session.local_identity.secret_key

    async def test_save_replaces(
        self, session_store: SessionStore, sample_session: PersistedSession
    ) -> None:
        await session_store.save(sample_session)
        newer = PersistedSession(
            local_identity=sample_session.local_identity,
            remote_pubkey="c" * 64,
            relays=sample_session.relays,
            connected_at=sample_session.connected_at,
            expires_at=sample_session.expires_at,
        )
        await session_store.save(newer)

        loaded = await session_store.load()
        assert loaded is not None
        assert loaded.remote_pubkey == "c" * 64

    async def test_clear(
        self,
        session_store: SessionStore,
        kv_backend: MemoryKeyValueStore,
        sample_session: PersistedSession,
    ) -> None:
        await session_store.save(sample_session)
        await session_store.clear()

        assert await session_store.load() is None
        assert session_store.key not in kv_backend

    async def test_clear_when_empty(self, session_store: SessionStore) -> None:
        await session_store.clear()
        assert await session_store.load() is None

    async def test_custom_key(
        self,
        kv_backend: MemoryKeyValueStore,
        clock: ManualClock,
        sample_session: PersistedSession,
    ) -> None:
        store = SessionStore(kv_backend, SessionConfig(key="app.login"), clock)
        await store.save(sample_session)
        assert "app.login" in kv_backend


# =============================================================================
# record()
# =============================================================================


class TestRecord:
    """Session creation after a successful handshake."""

    async def test_stamps_ttl(
        self, kv_backend: MemoryKeyValueStore, identity: EphemeralIdentity
    ) -> None:
        clock = ManualClock(wall_start=1_700_000_000.5)
        store = SessionStore(kv_backend, SessionConfig(ttl=3600), clock)

        session = await store.record(
            identity, "f" * 64, ["wss://relay1.example.com"], signer_pubkey="e" * 64
        )

        assert session.connected_at == 1_700_000_000
        assert session.expires_at == 1_700_003_600
        assert session.signer_pubkey == "e" * 64
        assert session.relays == ("wss://relay1.example.com",)
        assert await store.load() == session


# =============================================================================
# Expiry and corruption
# =============================================================================


class TestLazyCleanup:
    """Unusable records are removed during load."""

    async def test_expired_deleted(
        self,
        session_store: SessionStore,
        kv_backend: MemoryKeyValueStore,
        clock: ManualClock,
        sample_session: PersistedSession,
    ) -> None:
        await session_store.save(sample_session)
        clock.advance(86_400)

        assert await session_store.load() is None
        assert session_store.key not in kv_backend

    async def test_valid_until_expiry(
        self,
        session_store: SessionStore,
        clock: ManualClock,
        sample_session: PersistedSession,
    ) -> None:
        await session_store.save(sample_session)
        clock.advance(86_399)
        assert await session_store.load() == sample_session

    @pytest.mark.parametrize(
        "record",
        [
            "not a dict",
            {"secret_key": "zz"},
            {
                "secret_key": "11" * 32,
                "public_key": "22" * 32,
                "remote_pubkey": "f" * 64,
                "relays": [],
                "connected_at": 1,
                "expires_at": 4_000_000_000,
            },
        ],
    )
    async def test_corrupt_deleted(
        self, session_store: SessionStore, kv_backend: MemoryKeyValueStore, record: Any
    ) -> None:
        await kv_backend.put(session_store.key, record)

        assert await session_store.load() is None
        assert session_store.key not in kv_backend


# =============================================================================
# Backend failures
# =============================================================================


class TestBackendFailures:
    """Storage errors are not swallowed."""

    async def test_load_propagates(self, clock: ManualClock) -> None:
        with pytest.raises(StorageError):
            await SessionStore(_BrokenStore(), SessionConfig(), clock).load()

    async def test_save_propagates(
        self, clock: ManualClock, sample_session: PersistedSession
    ) -> None:
        with pytest.raises(StorageError):
            await SessionStore(_BrokenStore(), SessionConfig(), clock).save(sample_session)
