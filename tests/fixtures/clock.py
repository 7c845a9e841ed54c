"""Manually advanced clock so deadlines and expiry are tested without waiting."""

from __future__ import annotations

import time


class ManualClock:
    """Clock whose monotonic and wall readings only move on ``advance()``.

    The wall reading starts at the real current time so that events signed by
    nostr-sdk (stamped with the real time) pass the ``since`` filter.
    """

    def __init__(self, monotonic_start: float = 1000.0, wall_start: float | None = None) -> None:
        self._monotonic = monotonic_start
        self._wall = time.time() if wall_start is None else wall_start

    def monotonic(self) -> float:
        return self._monotonic

    def time(self) -> float:
        return self._wall

    def advance(self, seconds: float) -> None:
        self._monotonic += seconds
        self._wall += seconds
