"""Decrypted NIP-46 control messages as a closed tagged variant.

Every plaintext payload is decoded exactly once, at the codec boundary, by
[parse_envelope()][signerlink.models.envelope.parse_envelope] into one of:

* [Ack][signerlink.models.envelope.Ack] -- ``{"id", "result": "ack"}`` or a
  result echoing the connect secret.
* [MethodCall][signerlink.models.envelope.MethodCall] -- ``{"id", "method", "params"}``.
* [Result][signerlink.models.envelope.Result] -- ``{"id", "result"}``.
* [ErrorReply][signerlink.models.envelope.ErrorReply] -- ``{"id", "error"}``
  with a non-empty error string.

Downstream components dispatch on the class and never re-inspect raw JSON.
"""

from __future__ import annotations

import json
import secrets
from dataclasses import dataclass
from typing import Any

from ._validation import validate_str_no_null, validate_str_not_empty


ACK_RESULT = "ack"


def new_request_id() -> str:
    """Return a random request id (16 hex characters)."""
    return secrets.token_hex(8)


@dataclass(frozen=True, slots=True)
class Ack:
    """Connect acknowledgement.

    Attributes:
        id: Request id echoed by the signer (may be empty).
        secret: The connect secret when the ack was an echo of it, else ``None``.
    """

    id: str
    secret: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "result": self.secret or ACK_RESULT}


@dataclass(frozen=True, slots=True)
class MethodCall:
    """A request envelope."""

    id: str
    method: str
    params: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        validate_str_no_null(self.id, "id")
        validate_str_not_empty(self.method, "method")
        object.__setattr__(self, "params", tuple(str(p) for p in self.params))

    @classmethod
    def new(cls, method: str, params: tuple[str, ...] | list[str] = ()) -> MethodCall:
        """Build a request with a freshly generated id."""
        return cls(id=new_request_id(), method=method, params=tuple(params))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "method": self.method, "params": list(self.params)}


@dataclass(frozen=True, slots=True)
class Result:
    """A successful response carrying a string result."""

    id: str
    result: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "result": self.result}


@dataclass(frozen=True, slots=True)
class ErrorReply:
    """A failure response carrying the signer-supplied reason."""

    id: str
    error: str

    def __post_init__(self) -> None:
        if not self.error:
            raise ValueError("error must not be empty")

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "error": self.error}


RemoteEnvelope = Ack | MethodCall | Result | ErrorReply


def to_json(envelope: RemoteEnvelope) -> str:
    """Serialize an envelope to compact JSON."""
    return json.dumps(envelope.to_dict(), separators=(",", ":"))


def _coerce_id(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool) or not isinstance(value, str | int):
        raise ValueError(f"id must be a string, got {type(value).__name__}")
    return str(value)


def parse_envelope(data: Any, *, expected_secret: str | None = None) -> RemoteEnvelope:
    """Decode a JSON-decoded payload into a [RemoteEnvelope][signerlink.models.envelope.RemoteEnvelope].

    Precedence: a non-empty ``error`` wins, then ``method``, then ``result``.
    A ``result`` equal to ``"ack"`` (or to *expected_secret* when given)
    decodes as [Ack][signerlink.models.envelope.Ack].

    Raises:
        ValueError: If *data* is not an object or matches none of the shapes.
    """
    if not isinstance(data, dict):
        raise ValueError(f"envelope must be a JSON object, got {type(data).__name__}")

    request_id = _coerce_id(data.get("id"))

    error = data.get("error")
    if error:
        if not isinstance(error, str):
            error = json.dumps(error)
        return ErrorReply(id=request_id, error=error)

    method = data.get("method")
    if method is not None:
        if not isinstance(method, str) or not method:
            raise ValueError("method must be a non-empty string")
        params = data.get("params") or []
        if not isinstance(params, list):
            raise ValueError("params must be a list")
        return MethodCall(id=request_id, method=method, params=tuple(params))

    if "result" in data:
        result = data["result"]
        if not isinstance(result, str):
            raise ValueError(f"result must be a string, got {type(result).__name__}")
        if result == ACK_RESULT:
            return Ack(id=request_id)
        if expected_secret and result == expected_secret:
            return Ack(id=request_id, secret=result)
        return Result(id=request_id, result=result)

    raise ValueError("envelope has none of error, method, result")
