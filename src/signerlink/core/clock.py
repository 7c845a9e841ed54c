"""Injectable time source.

Handshake deadlines are compared against ``Clock.monotonic()`` and session
expiry against ``Clock.time()``. Production code uses
[SystemClock][signerlink.core.clock.SystemClock]; tests substitute a manually
advanced clock so timeouts are exercised without real waiting.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Time source consulted by the state machine and the session store."""

    def monotonic(self) -> float:
        """Seconds from an arbitrary origin; never goes backwards."""
        ...

    def time(self) -> float:
        """Unix time in seconds."""
        ...


class SystemClock:
    """[Clock][signerlink.core.clock.Clock] backed by the ``time`` module."""

    def monotonic(self) -> float:
        return time.monotonic()

    def time(self) -> float:
        return time.time()
