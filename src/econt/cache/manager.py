"""Cache manager -- the consumer-facing entry point of the cache.

:class:`CacheManager` composes a resolution strategy (cache-backed or
direct fetch, depending on :attr:`~econt.models.CacheConfig.enabled`) with
the shared filter layer, and exposes status, clear and export operations.
One manager is owned by each :class:`~econt.client.EcontClient`; there is
no process-wide cache state.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from econt.cache.export import ExportOrchestrator, ProgressCallback
from econt.cache.fetcher import NomenclatureFetcher
from econt.cache.filters import Criteria, filter_records, validate_criteria
from econt.cache.keys import parse_key, record_type_for
from econt.cache.locks import KeyLocks
from econt.cache.resolver import CacheBackedResolver, DirectFetchResolver, Resolver
from econt.cache.store import Clock, Store, now_ms
from econt.exceptions import CacheDisabledError
from econt.models import (
    CacheConfig,
    CacheReport,
    DataSource,
    ExportState,
    ExportStatus,
    NomenclatureRecord,
)
from econt.output import debug

R = TypeVar("R", bound=NomenclatureRecord)


@dataclass(frozen=True)
class CacheResult(Generic[R]):
    """Filtered records and the source that served them.

    ``stale`` is only ever ``True`` when ``serve_stale_on_error`` allowed an
    expired entry to answer after a failed refresh.
    """

    records: list[R]
    source: DataSource
    stale: bool = False


class CacheManager:
    """Read-through cache over a nomenclature fetcher.

    Args:
        store: Backing store.  Ignored (and may be ``None``) when caching
            is disabled.
        fetcher: Remote data source.
        config: Cache settings.
        clock: Time source in epoch milliseconds.  Must be the same clock
            the store was built with.

    Example::

        manager = CacheManager(DiskStore(path), ApiFetcher(transport), CacheConfig(enabled=True))
        result = manager.get("offices", {"country_code": "BGR"})
        result.source  # DataSource.CACHE on the second call
    """

    def __init__(
        self,
        store: Optional[Store],
        fetcher: NomenclatureFetcher,
        config: CacheConfig,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config
        self._fetcher = fetcher
        self._clock: Clock = clock or now_ms
        self._locks = KeyLocks()
        self._store = store if config.enabled else None

        self._resolver: Resolver
        if self._store is not None:
            self._resolver = CacheBackedResolver(
                self._store, fetcher, config, self._locks, self._clock
            )
        else:
            self._resolver = DirectFetchResolver(fetcher)

    @property
    def enabled(self) -> bool:
        return self._store is not None

    @property
    def config(self) -> CacheConfig:
        return self._config

    def get(
        self,
        key: str,
        criteria: Optional[Criteria] = None,
        force_refresh: bool = False,
    ) -> CacheResult:
        """Return the records of dataset *key* matching *criteria*.

        Args:
            key: Dataset key (``countries``, ``cities``, ``offices``,
                ``streets:<cityId>``).
            criteria: Filter predicates, see :mod:`econt.cache.filters`.
            force_refresh: Bypass freshness checks and always fetch.

        Raises:
            InvalidUsageError: For an unknown *key*.
            InvalidFilterCriteriaError: For criteria naming unknown fields;
                raised before any fetch.
            SourceUnavailableError: When the fetch fails and no usable
                entry can answer.
        """
        record_type = record_type_for(key)
        validate_criteria(record_type, criteria)

        resolution = self._resolver.resolve(key, force_refresh=force_refresh, criteria=criteria)
        records = filter_records(resolution.records, criteria, record_type)
        debug(f"{key}: {len(records)}/{len(resolution.records)} records from {resolution.source.value}")
        return CacheResult(records=records, source=resolution.source, stale=resolution.stale)

    def get_cache_status(self) -> CacheReport:
        """Snapshot of every cached key and the export state.  Never fetches."""
        if self._store is None:
            return CacheReport(enabled=False, ttl_ms=self._config.ttl_ms)
        return CacheReport(
            enabled=True,
            ttl_ms=self._config.ttl_ms,
            location=self._store.location,
            entries=self._store.list(),
            export=self._store.read_export_status(),
        )

    def clear_cache(self, key: Optional[str] = None) -> None:
        """Delete one entry, or all entries and the export status.

        Clearing a single key after a complete export downgrades the export
        state to ``incomplete``.  A no-op when caching is disabled.
        """
        if self._store is None:
            return
        if key is None:
            debug("Clearing all cache entries")
            self._store.delete()
            return

        parse_key(key)
        debug(f"Clearing cache entry: {key}")
        self._store.delete(key)
        status = self._store.read_export_status()
        if status.state == ExportState.COMPLETE:
            status.state = ExportState.INCOMPLETE
            self._store.write_export_status(status)

    def export_all(
        self,
        cancel: Optional[threading.Event] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ExportStatus:
        """Run a full nomenclature export into the store.

        Raises:
            CacheDisabledError: When caching is disabled.
            ExportAbortedError: When a step fails or *cancel* is set.
        """
        if self._store is None:
            raise CacheDisabledError(
                "Cannot export nomenclatures: the cache is disabled. "
                "Enable it with cache.enabled=true or ECONT_CACHE_ENABLED=1"
            )
        exporter = ExportOrchestrator(
            self._store, self._fetcher, self._config, self._locks, self._clock
        )
        return exporter.export_all(cancel=cancel, progress=progress)
