"""Persistence for cached nomenclature datasets.

A :class:`Store` keeps one record per cache key holding
``{"fetched_at", "ttl_ms", "payload"}``, which is enough to compute
staleness without contacting the API, plus a reserved record with the
:class:`~econt.models.ExportStatus` of the last bulk export.

Two implementations share the encoding logic of the base class:

- :class:`DiskStore` -- durable, backed by :mod:`diskcache`.  Each ``set``
  runs in its own SQLite transaction, so a concurrent reader never
  observes a half-written payload.
- :class:`MemoryStore` -- a locked dict, for tests and short-lived clients.

Entries never expire inside the backend itself: the cache manager decides
freshness from ``fetched_at``/``ttl_ms`` so that stale entries remain
visible to :meth:`Store.list` and available for stale fallback.
"""

from __future__ import annotations

import copy
import pickle
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Sequence

import diskcache
from pydantic import ValidationError

from econt.cache.keys import record_type_for
from econt.exceptions import CacheCorruptError, InvalidUsageError
from econt.models import CacheEntry, CacheStatus, ExportStatus, NomenclatureRecord

Clock = Callable[[], int]
"""Callable returning the current time in epoch milliseconds."""

EXPORT_STATUS_KEY = "__export_status__"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def decode_entry(entry: CacheEntry) -> list[NomenclatureRecord]:
    """Validate a stored payload back into record models.

    Raises:
        CacheCorruptError: If the key names no dataset or any stored record
            fails validation.
    """
    try:
        record_type = record_type_for(entry.key)
        return [record_type.model_validate(item) for item in entry.payload]
    except (InvalidUsageError, ValidationError) as exc:
        raise CacheCorruptError(entry.key, str(exc)) from exc


class Store(ABC):
    """Key/value persistence for :class:`~econt.models.CacheEntry` records.

    Subclasses implement the raw primitives (``_get_raw``, ``_set_raw``,
    ``_delete_raw``, ``_clear_raw``, ``_iter_keys``); this base class owns
    the record encoding, corruption detection and status reporting.

    Args:
        clock: Time source used to stamp ``fetched_at`` and to compute
            ages in :meth:`list`.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or now_ms

    @property
    def clock(self) -> Clock:
        """The time source stamping this store's entries."""
        return self._clock

    # ------------------------------------------------------------------ #
    # Backend primitives
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _get_raw(self, key: str) -> Any: ...

    @abstractmethod
    def _set_raw(self, key: str, value: dict[str, Any]) -> None: ...

    @abstractmethod
    def _delete_raw(self, key: str) -> None: ...

    @abstractmethod
    def _clear_raw(self) -> None: ...

    @abstractmethod
    def _iter_keys(self) -> Iterator[str]: ...

    @property
    def location(self) -> Optional[str]:
        """Human-readable location of the backing medium, if any."""
        return None

    def close(self) -> None:
        """Release backend resources."""

    # ------------------------------------------------------------------ #
    # Entries
    # ------------------------------------------------------------------ #

    def read(self, key: str) -> Optional[CacheEntry]:
        """Return the entry stored under *key*, or ``None`` when absent.

        Raises:
            CacheCorruptError: If a record exists but cannot be decoded.
        """
        raw = self._get_raw(key)
        if raw is None:
            return None
        if not isinstance(raw, dict):
            raise CacheCorruptError(key, f"expected a mapping, found {type(raw).__name__}")
        try:
            return CacheEntry.model_validate({**raw, "key": key})
        except ValidationError as exc:
            raise CacheCorruptError(key, str(exc)) from exc

    def write(
        self,
        key: str,
        payload: Sequence[dict[str, Any]],
        ttl_ms: int,
    ) -> CacheEntry:
        """Replace the entry under *key* with *payload*, stamped with the current time."""
        entry = CacheEntry(
            key=key,
            payload=list(payload),
            fetched_at=self._clock(),
            ttl_ms=ttl_ms,
        )
        self._set_raw(key, entry.model_dump(exclude={"key"}))
        return entry

    def delete(self, key: Optional[str] = None) -> None:
        """Delete one entry, or every entry (and the export status) when *key* is ``None``."""
        if key is None:
            self._clear_raw()
        else:
            self._delete_raw(key)

    def keys(self) -> list[str]:
        """Return the stored dataset keys (the export status record excluded)."""
        return sorted(k for k in self._iter_keys() if k != EXPORT_STATUS_KEY)

    def list(self) -> list[CacheStatus]:
        """Describe every stored entry without modifying anything.

        An entry is reported as corrupt when it cannot be decoded or when
        any of its records fails validation, the same test the cache
        manager applies before serving it.
        """
        now = self._clock()
        statuses: list[CacheStatus] = []
        for key in self.keys():
            try:
                entry = self.read(key)
                if entry is not None:
                    decode_entry(entry)
            except CacheCorruptError:
                statuses.append(CacheStatus(key=key, present=False, corrupt=True))
                continue
            if entry is None:
                # Deleted between listing and reading.
                continue
            statuses.append(
                CacheStatus(
                    key=key,
                    present=True,
                    fetched_at=entry.fetched_at,
                    expires_at=entry.expires_at,
                    age_ms=entry.age_ms(now),
                    expired=entry.is_stale(now),
                    record_count=len(entry.payload),
                )
            )
        return statuses

    # ------------------------------------------------------------------ #
    # Export status
    # ------------------------------------------------------------------ #

    def read_export_status(self) -> ExportStatus:
        """Return the persisted export status (``never`` when none or unreadable)."""
        try:
            raw = self._get_raw(EXPORT_STATUS_KEY)
        except CacheCorruptError:
            return ExportStatus()
        if not isinstance(raw, dict):
            return ExportStatus()
        try:
            return ExportStatus.model_validate(raw)
        except ValidationError:
            return ExportStatus()

    def write_export_status(self, status: ExportStatus) -> None:
        self._set_raw(EXPORT_STATUS_KEY, status.model_dump(mode="json"))


class MemoryStore(Store):
    """Non-durable store holding encoded records in a dict.

    Values are deep-copied on the way in and out so that callers cannot
    mutate stored payloads.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self._data: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _get_raw(self, key: str) -> Any:
        with self._lock:
            value = self._data.get(key)
        return copy.deepcopy(value)

    def _set_raw(self, key: str, value: dict[str, Any]) -> None:
        value = copy.deepcopy(value)
        with self._lock:
            self._data[key] = value

    def _delete_raw(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def _clear_raw(self) -> None:
        with self._lock:
            self._data.clear()

    def _iter_keys(self) -> Iterator[str]:
        with self._lock:
            keys = list(self._data)
        return iter(keys)


class DiskStore(Store):
    """Durable store backed by a :class:`diskcache.Cache` directory.

    Args:
        directory: Directory for the cache database.  Created if missing.
        clock: Time source, see :class:`Store`.

    Example::

        store = DiskStore("./econt-cache")
        store.write("countries", [{"code3": "BGR", "name": "България"}], ttl_ms=86_400_000)
        entry = store.read("countries")
    """

    def __init__(self, directory: str | Path, clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self._directory = Path(directory)
        self._cache = diskcache.Cache(str(self._directory))

    @property
    def location(self) -> Optional[str]:
        return str(self._directory)

    def _get_raw(self, key: str) -> Any:
        try:
            return self._cache.get(key)
        except (pickle.UnpicklingError, EOFError, ValueError, sqlite3.DatabaseError) as exc:
            raise CacheCorruptError(key, f"{type(exc).__name__}: {exc}") from exc

    def _set_raw(self, key: str, value: dict[str, Any]) -> None:
        self._cache.set(key, value)

    def _delete_raw(self, key: str) -> None:
        self._cache.delete(key)

    def _clear_raw(self) -> None:
        self._cache.clear()

    def _iter_keys(self) -> Iterator[str]:
        return (k for k in self._cache.iterkeys() if isinstance(k, str))

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        self._cache.close()
