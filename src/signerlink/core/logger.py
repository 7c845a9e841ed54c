"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module so handshake components can
emit event-style records (``attempt_started relay_count=2``) either as
human-readable key=value pairs or as JSON objects.

Keyword arguments whose name marks them as secret material (``secret_key``,
``sk``, ``nsec``, ``secret``, ...) are replaced with ``<redacted>`` before
any formatting happens, so ephemeral private keys never reach a log sink
through this logger.

The ``StructuredFormatter`` reads the ``structured_kv`` extra field attached
by [Logger][signerlink.core.logger.Logger] and appends it to the message.
Installed on a root handler, it also formats plain ``logging.getLogger()``
records from the models and utils layers.

Examples:
    ```python
    from signerlink.core.logger import Logger

    logger = Logger("signerlink.machine")
    logger.info("attempt_started", mode="client_initiated", relay_count=2)
    # Output: attempt_started mode=client_initiated relay_count=2

    logger.info("session_saved", secret_key="ab12...")
    # Output: session_saved secret_key=<redacted>
    ```
"""

import datetime
import json
import logging
from typing import Any, ClassVar


REDACTED = "<redacted>"

_SECRET_KEYS = frozenset({"secret", "secret_key", "secret_key_hex", "sk", "nsec", "password"})


def redact(kwargs: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *kwargs* with secret-bearing values replaced."""
    return {k: (REDACTED if k.lower() in _SECRET_KEYS else v) for k, v in kwargs.items()}


def _truncate(value: str, max_value_length: int | None) -> str:
    if max_value_length and len(value) > max_value_length:
        return value[:max_value_length] + f"...<truncated {len(value) - max_value_length} chars>"
    return value


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Values are truncated to ``max_value_length`` characters; values containing
    whitespace, equals signs, or quotes are escaped and double-quoted.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value before truncation.
            Pass None to disable truncation.
        prefix: String prepended to the output (default: single space).

    Returns:
        Formatted string, e.g. ' relay=wss://a.example key="two words"'.
        Empty string if kwargs is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for k, v in kwargs.items():
        s = _truncate(str(v), max_value_length)
        if not s or " " in s or "=" in s or '"' in s or "'" in s:
            escaped = s.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{k}="{escaped}"')
        else:
            parts.append(f"{k}={s}")

    return prefix + " ".join(parts)


class StructuredFormatter(logging.Formatter):
    """Formats all log records as ``level name message key=value...``."""

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        extra: dict[str, Any] = getattr(record, "structured_kv", {})
        if extra:
            base += format_kv_pairs(extra)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base


class Logger:
    """Structured logger that appends keyword arguments as extra fields.

    All public methods mirror the standard logging API with an added
    ``**kwargs`` parameter. Secret-bearing keyword arguments are redacted.

    Examples:
        ```python
        logger = Logger("signerlink.channel")
        logger.warning("relay_connect_failed", relay="wss://a.example", error="timeout")
        ```
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
    ) -> None:
        """Initialize a structured logger.

        Args:
            name: Logger name, passed to ``logging.getLogger(name)``.
            json_output: If True, emit JSON objects instead of key=value pairs.
            max_value_length: Maximum character length for individual values
                before truncation. Defaults to 1000.
        """
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = max_value_length

    @property
    def name(self) -> str:
        return self._logger.name

    def _format_json(self, msg: str, level: str, kwargs: dict[str, Any]) -> str:
        record = {
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "level": level,
            "logger": self._logger.name,
            "message": msg,
            **kwargs,
        }
        return json.dumps(record, default=str)

    def _make_extra(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        if not kwargs:
            return {}
        truncated = {
            k: (_truncate(str(v), self._max_value_length) if isinstance(v, str) else v)
            for k, v in kwargs.items()
        }
        return {"structured_kv": truncated}

    def _log(self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        kwargs = redact(kwargs)
        if self._json_output:
            name = logging.getLevelName(level).lower()
            self._logger.log(level, self._format_json(msg, name, kwargs), exc_info=exc_info)
        else:
            self._logger.log(level, msg, extra=self._make_extra(kwargs), exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, kwargs)

    def critical(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.CRITICAL, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log at ERROR level with the current exception traceback attached."""
        self._log(logging.ERROR, msg, kwargs, exc_info=True)
