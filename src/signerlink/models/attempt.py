"""Terminal outcome of a connection attempt."""

from __future__ import annotations

from dataclasses import dataclass

from .constants import ErrorKind
from .identity import ResolvedIdentity


@dataclass(frozen=True, slots=True)
class AttemptResult:
    """Exactly one of these is produced per attempt.

    Use the [success()][signerlink.models.attempt.AttemptResult.success] and
    [failure()][signerlink.models.attempt.AttemptResult.failure] constructors.

    Attributes:
        identity: Resolved identity on success, ``None`` on failure.
        error_kind: Failure taxonomy tag, ``None`` on success.
        message: Human-readable failure detail (empty on success).
    """

    identity: ResolvedIdentity | None = None
    error_kind: ErrorKind | None = None
    message: str = ""

    def __post_init__(self) -> None:
        if (self.identity is None) == (self.error_kind is None):
            raise ValueError("AttemptResult must carry either an identity or an error kind")

    @classmethod
    def success(cls, identity: ResolvedIdentity) -> AttemptResult:
        return cls(identity=identity)

    @classmethod
    def failure(cls, error_kind: ErrorKind, message: str) -> AttemptResult:
        return cls(error_kind=ErrorKind(error_kind), message=message)

    @property
    def ok(self) -> bool:
        return self.identity is not None

    @property
    def user_pubkey(self) -> str | None:
        return self.identity.user_pubkey if self.identity else None
