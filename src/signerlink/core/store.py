"""
Key-value persistence backends for the session store.

[KeyValueStore][signerlink.core.store.KeyValueStore] is the narrow capability
the [SessionStore][signerlink.nip46.session_store.SessionStore] consumes:
``get`` / ``put`` / ``delete`` of JSON-compatible dicts under string keys.

Implementations:

* [MemoryKeyValueStore][signerlink.core.store.MemoryKeyValueStore] -- process
  local, for tests and short-lived embeddings.
* [FileKeyValueStore][signerlink.core.store.FileKeyValueStore] -- a single JSON
  document on disk, written atomically (temp file + ``os.replace``).

Values must be JSON-serializable. Backends return ``None`` for a missing key
and treat deleting a missing key as a no-op.
"""

from __future__ import annotations

import asyncio
import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from .exceptions import QueryError
from .logger import Logger


@runtime_checkable
class KeyValueStore(Protocol):
    """Async key-value persistence capability."""

    async def get(self, key: str) -> Any | None: ...

    async def put(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------


class MemoryKeyValueStore:
    """In-process store. Values are deep-copied on the way in and out."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value)

    async def put(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


# ---------------------------------------------------------------------------
# File
# ---------------------------------------------------------------------------


class FileKeyValueStore:
    """All keys in one JSON object stored at ``path``.

    Blocking file I/O is offloaded with ``asyncio.to_thread()``. A file that
    does not parse as a JSON object is treated as empty and overwritten on
    the next write.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()
        self._logger = Logger("signerlink.store")

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise QueryError(f"Cannot read {self._path}: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            self._logger.warning("store_file_corrupt", path=str(self._path))
            return {}
        if not isinstance(data, dict):
            self._logger.warning("store_file_corrupt", path=str(self._path))
            return {}
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f)
                os.replace(tmp, self._path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise QueryError(f"Cannot write {self._path}: {e}") from e

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
        return data.get(key)

    async def put(self, key: str, value: Any) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            data[key] = value
            await asyncio.to_thread(self._write_all, data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            if key not in data:
                return
            del data[key]
            await asyncio.to_thread(self._write_all, data)

