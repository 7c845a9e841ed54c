"""
Pytest configuration and shared fixtures for signerlink tests.

Provides:
- A manually advanced clock
- An in-process relay transport and a scripted remote signer
- Sample identities, relays, and sessions
- Fast handshake timing so attempt tests finish in milliseconds
"""

import logging
import sys
from pathlib import Path

import pytest

# Make the shared test doubles importable as ``fixtures.*``
sys.path.insert(0, str(Path(__file__).parent))

from fixtures.clock import ManualClock
from fixtures.signer import FakeSigner
from fixtures.transport import FakeTransport

from signerlink.core.store import MemoryKeyValueStore
from signerlink.models import EphemeralIdentity, PersistedSession, Relay
from signerlink.nip46.configs import ClientConfig, HandshakeConfig, SessionConfig
from signerlink.nip46.session_store import SessionStore
from signerlink.utils.keys import generate_identity


RELAY_1 = "wss://relay1.example.com"
RELAY_2 = "wss://relay2.example.com"


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Time and transport
# ============================================================================


@pytest.fixture
def clock() -> ManualClock:
    """Manual clock starting at the real wall time."""
    return ManualClock()


@pytest.fixture
def transport() -> FakeTransport:
    """In-process relay transport with every relay reachable."""
    return FakeTransport()


@pytest.fixture
def signer() -> FakeSigner:
    """Remote signer whose user pubkey is 'f' * 64."""
    return FakeSigner("f" * 64)


# ============================================================================
# Sample data
# ============================================================================


@pytest.fixture
def relay_urls() -> list[str]:
    """Two clearnet relays, R1 and R2."""
    return [RELAY_1, RELAY_2]


@pytest.fixture
def relay_clearnet() -> Relay:
    """Standard clearnet wss:// relay."""
    return Relay("wss://relay.example.com")


@pytest.fixture
def identity() -> EphemeralIdentity:
    """A fresh ephemeral identity."""
    return generate_identity()


@pytest.fixture
def sample_session(identity: EphemeralIdentity, clock: ManualClock) -> PersistedSession:
    """A session connected now and valid for one day."""
    now = int(clock.time())
    return PersistedSession(
        local_identity=identity,
        remote_pubkey="f" * 64,
        signer_pubkey="e" * 64,
        relays=(RELAY_1, RELAY_2),
        connected_at=now,
        expires_at=now + 86_400,
    )


# ============================================================================
# Configured components
# ============================================================================


@pytest.fixture
def handshake_config() -> HandshakeConfig:
    """Default timeouts with a 10 ms poll interval."""
    return HandshakeConfig(poll_interval=0.01)


@pytest.fixture
def kv_backend() -> MemoryKeyValueStore:
    """Empty in-memory key-value store."""
    return MemoryKeyValueStore()


@pytest.fixture
def session_store(kv_backend: MemoryKeyValueStore, clock: ManualClock) -> SessionStore:
    """Session store over the in-memory backend and the manual clock."""
    return SessionStore(kv_backend, SessionConfig(), clock)


@pytest.fixture
def client_config(relay_urls: list[str]) -> ClientConfig:
    """Client configuration with two test relays and fast polling."""
    return ClientConfig.from_dict(
        {
            "relays": {"urls": relay_urls},
            "handshake": {"poll_interval": 0.01, "probe_timeout": 5.0},
        }
    )
