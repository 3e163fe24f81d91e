"""Bulk export of every nomenclature dataset into the store.

The export runs four steps in dependency order:

1. ``countries``
2. ``cities`` -- fetched globally; their ids drive step 4
3. ``offices`` -- fetched globally
4. ``streets`` -- one request per city, stored as ``streets:<cityId>``

Each step fetches its data completely before writing any of it, and the
store is emptied when the export starts.  After a failure at step *k*,
steps ``1..k-1`` are therefore present and nothing from step *k* onwards
is.  The persisted :class:`~econt.models.ExportStatus` moves from
``in_progress`` to ``complete`` or ``incomplete``; a process that dies
mid-export leaves ``in_progress`` behind, which is never reported as
complete.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from econt.cache.fetcher import NomenclatureFetcher
from econt.cache.keys import CITIES, COUNTRIES, OFFICES, STREETS, streets_key
from econt.cache.locks import KeyLocks
from econt.cache.resolver import encode_records
from econt.cache.store import Clock, Store
from econt.exceptions import ExportAbortedError
from econt.models import CacheConfig, City, ExportState, ExportStatus, NomenclatureRecord
from econt.output import debug

EXPORT_STEPS: tuple[str, ...] = (COUNTRIES, CITIES, OFFICES, STREETS)

ProgressCallback = Callable[[str, int, int], None]
"""Called as ``progress(step, index, total)`` before each step starts."""


class ExportOrchestrator:
    """Populate a store with a full nomenclature snapshot.

    Args:
        store: Destination store.
        fetcher: Source of the datasets.
        config: Cache settings; ``ttl_ms`` stamps every written entry.
        locks: Writer locks shared with the cache manager.
        clock: Time source for the export status timestamps.
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

    def export_all(
        self,
        cancel: Optional[threading.Event] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ExportStatus:
        """Replace the store's contents with a fresh export.

        Args:
            cancel: Checked before each step; when set, the export stops
                and the entries of completed steps are kept.
            progress: Optional callback invoked before each step.

        Returns:
            The final ``complete`` export status.

        Raises:
            ExportAbortedError: If a step fails or the export is cancelled.
                ``__cause__`` holds the underlying failure.
        """
        status = ExportStatus(state=ExportState.IN_PROGRESS, started_at=self._clock())
        self._store.delete()
        self._store.write_export_status(status)

        city_ids: list[int] = []
        total = len(EXPORT_STEPS)

        for index, step in enumerate(EXPORT_STEPS, start=1):
            if cancel is not None and cancel.is_set():
                self._finish(status, ExportState.INCOMPLETE, failed_step=step, cancelled=True)
                raise ExportAbortedError(
                    step, index, completed_steps=len(status.completed_steps), cancelled=True
                )

            if progress is not None:
                progress(step, index, total)
            debug(f"Export step {index}/{total}: {step}")

            written: list[str] = []
            try:
                batches = self._fetch_step(step, city_ids)
                for key, records in batches.items():
                    with self._locks.hold(key):
                        self._store.write(key, encode_records(records), self._config.ttl_ms)
                    written.append(key)
            except Exception as exc:
                for key in written:
                    self._store.delete(key)
                self._finish(status, ExportState.INCOMPLETE, failed_step=step)
                raise ExportAbortedError(
                    step, index, completed_steps=len(status.completed_steps), reason=str(exc)
                ) from exc

            if step == CITIES:
                city_ids = [city.id for city in batches[CITIES] if isinstance(city, City)]
            status.completed_steps.append(step)
            self._store.write_export_status(status)

        return self._finish(status, ExportState.COMPLETE)

    def _fetch_step(
        self,
        step: str,
        city_ids: list[int],
    ) -> dict[str, list[NomenclatureRecord]]:
        """Fetch everything one step writes, keyed by cache key."""
        if step == STREETS:
            keys = [streets_key(city_id) for city_id in city_ids]
            return {key: self._fetcher.fetch(key) for key in keys}
        return {step: self._fetcher.fetch(step)}

    def _finish(
        self,
        status: ExportStatus,
        state: ExportState,
        failed_step: Optional[str] = None,
        cancelled: bool = False,
    ) -> ExportStatus:
        status.state = state
        status.failed_step = failed_step
        status.cancelled = cancelled
        status.finished_at = self._clock()
        self._store.write_export_status(status)
        return status
