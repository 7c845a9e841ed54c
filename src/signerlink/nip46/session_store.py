"""Single-slot persisted session with lazy expiry.

[SessionStore][signerlink.nip46.session_store.SessionStore] keeps at most one
[PersistedSession][signerlink.models.session.PersistedSession] in a
[KeyValueStore][signerlink.core.store.KeyValueStore] under one key.

``load()`` returns ``None`` for an absent, corrupt, or expired record and
deletes the corrupt or expired record during the same read. Every
read/expire/delete sequence runs under one ``asyncio.Lock`` so it is atomic
with respect to ``save()`` and ``clear()``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from signerlink.core.clock import Clock, SystemClock
from signerlink.core.logger import Logger
from signerlink.core.store import KeyValueStore, MemoryKeyValueStore
from signerlink.models.identity import EphemeralIdentity
from signerlink.models.session import PersistedSession

from .configs import SessionConfig


class SessionStore:
    """Persist, load, and clear the active remote-signer session.

    Args:
        backend: Key-value capability; defaults to an in-memory store.
        config: Key name and TTL.
        clock: Time source for ``connected_at`` / ``expires_at``.
    """

    def __init__(
        self,
        backend: KeyValueStore | None = None,
        config: SessionConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._backend = backend if backend is not None else MemoryKeyValueStore()
        self._config = config or SessionConfig()
        self._clock = clock or SystemClock()
        self._lock = asyncio.Lock()
        self._logger = Logger("signerlink.session")

    @property
    def backend(self) -> KeyValueStore:
        return self._backend

    @property
    def key(self) -> str:
        return self._config.key

    async def save(self, session: PersistedSession) -> None:
        """Store *session*, replacing any previous one."""
        async with self._lock:
            await self._backend.put(self._config.key, session.to_dict())
        self._logger.info(
            "session_saved",
            remote_pubkey=session.remote_pubkey,
            relay_count=len(session.relays),
            expires_at=session.expires_at,
        )

    async def record(
        self,
        identity: EphemeralIdentity,
        user_pubkey: str,
        relays: Iterable[str],
        *,
        signer_pubkey: str | None = None,
    ) -> PersistedSession:
        """Build a session stamped with the current time and TTL, then save it."""
        now = int(self._clock.time())
        session = PersistedSession(
            local_identity=identity,
            remote_pubkey=user_pubkey,
            signer_pubkey=signer_pubkey,
            relays=tuple(relays),
            connected_at=now,
            expires_at=now + self._config.ttl,
        )
        await self.save(session)
        return session

    async def load(self) -> PersistedSession | None:
        """Return the stored session, or ``None`` if absent, corrupt, or expired."""
        async with self._lock:
            raw = await self._backend.get(self._config.key)
            if raw is None:
                return None

            try:
                session = PersistedSession.from_dict(raw)
            except ValueError as e:
                self._logger.warning("session_corrupt", error=str(e))
                await self._backend.delete(self._config.key)
                return None

            if session.is_expired(self._clock.time()):
                self._logger.info("session_expired", expires_at=session.expires_at)
                await self._backend.delete(self._config.key)
                return None

            return session

    async def clear(self) -> None:
        """Remove the stored session, if any."""
        async with self._lock:
            await self._backend.delete(self._config.key)
        self._logger.info("session_cleared")
