"""Resolution strategies: where a dataset comes from.

A :class:`Resolver` turns a cache key into the full, unfiltered dataset and
reports which source served it.  The cache manager composes exactly one:

- :class:`CacheBackedResolver` -- read-through over a
  :class:`~econt.cache.store.Store`: serve fresh entries, fetch and store on
  miss, staleness, corruption, or forced refresh.
- :class:`DirectFetchResolver` -- always asks the fetcher; used when the
  cache is disabled.

Resolvers never filter; filtering happens once, in
:meth:`~econt.cache.manager.CacheManager.get`, for every strategy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from econt.cache.fetcher import NomenclatureFetcher
from econt.cache.filters import Criteria
from econt.cache.locks import KeyLocks
from econt.cache.store import Clock, Store, decode_entry
from econt.exceptions import CacheCorruptError, SourceUnavailableError
from econt.models import CacheConfig, CacheEntry, DataSource, NomenclatureRecord
from econt.output import debug, warning


@dataclass(frozen=True)
class Resolution:
    """Unfiltered dataset plus provenance."""

    records: list[NomenclatureRecord]
    source: DataSource
    stale: bool = False


def encode_records(records: list[NomenclatureRecord]) -> list[dict]:
    return [record.model_dump(mode="json") for record in records]


class Resolver(ABC):
    """Strategy interface producing the full dataset for a key."""

    @abstractmethod
    def resolve(
        self,
        key: str,
        force_refresh: bool = False,
        criteria: Optional[Criteria] = None,
    ) -> Resolution: ...


class DirectFetchResolver(Resolver):
    """Resolve every request against the live source.

    Criteria are forwarded so the API can narrow its response; nothing is
    stored.
    """

    def __init__(self, fetcher: NomenclatureFetcher) -> None:
        self._fetcher = fetcher

    def resolve(
        self,
        key: str,
        force_refresh: bool = False,
        criteria: Optional[Criteria] = None,
    ) -> Resolution:
        debug(f"Cache disabled, fetching {key}")
        return Resolution(self._fetcher.fetch(key, criteria), DataSource.API)


class CacheBackedResolver(Resolver):
    """Read-through resolver over a :class:`~econt.cache.store.Store`.

    Fresh entries are served without any lock.  Misses take the key's
    writer lock, re-check the store (another thread may have just
    refreshed it), then fetch the full dataset and replace the entry.

    When a refresh fails and a stale entry exists, the failure propagates
    unless ``config.serve_stale_on_error`` is set, in which case the stale
    records are returned with ``stale=True``.  A forced refresh never falls
    back.
    """

    def __init__(
        self,
        store: Store,
        fetcher: NomenclatureFetcher,
        config: CacheConfig,
        locks: KeyLocks,
        clock: Clock,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._config = config
        self._locks = locks
        self._clock = clock

    def _load(self, key: str) -> Optional[tuple[CacheEntry, list[NomenclatureRecord]]]:
        """Read and decode *key*; corrupt entries are reported and treated as absent."""
        try:
            entry = self._store.read(key)
            if entry is None:
                return None
            return entry, decode_entry(entry)
        except CacheCorruptError as exc:
            debug(f"{exc}; treating as a cache miss")
            return None

    def _fresh(self, loaded: Optional[tuple[CacheEntry, list[NomenclatureRecord]]]) -> bool:
        return loaded is not None and not loaded[0].is_stale(self._clock())

    def resolve(
        self,
        key: str,
        force_refresh: bool = False,
        criteria: Optional[Criteria] = None,
    ) -> Resolution:
        loaded = None
        if not force_refresh:
            loaded = self._load(key)
            if self._fresh(loaded):
                debug(f"Cache hit: {key}")
                return Resolution(loaded[1], DataSource.CACHE)

        with self._locks.hold(key):
            if not force_refresh:
                loaded = self._load(key)
                if self._fresh(loaded):
                    debug(f"Cache hit after wait: {key}")
                    return Resolution(loaded[1], DataSource.CACHE)
                debug(f"Cache {'stale' if loaded else 'miss'}: {key}")
            else:
                debug(f"Forced refresh: {key}")

            try:
                records = self._fetcher.fetch(key)
            except SourceUnavailableError as exc:
                if loaded is not None and self._config.serve_stale_on_error:
                    warning(f"Serving stale {key} after refresh failed: {exc}")
                    return Resolution(loaded[1], DataSource.CACHE, stale=True)
                raise

            self._store.write(key, encode_records(records), self._config.ttl_ms)
            return Resolution(records, DataSource.API)
