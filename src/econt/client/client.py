"""The :class:`EcontClient` facade.

The client constructs and owns every stateful collaborator -- HTTP
transport, cache store, fetcher, and cache manager -- and hands them by
reference to the service namespaces.  Two clients in the same process
never share cache state unless they are pointed at the same store.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Optional

import httpx

from econt.client.transport import Transport
from econt.cache import ApiFetcher, CacheManager, DiskStore, NomenclatureFetcher, Store
from econt.cache.export import ProgressCallback
from econt.cache.store import Clock
from econt.models import CacheReport, ClientConfig, ExportStatus
from econt.services import OfficesService, ShipmentsService, TrackingService


class EcontClient:
    """Typed client for the Econt delivery API.

    Args:
        config: Client configuration.  Defaults to :class:`ClientConfig`
            with keyword *overrides* applied (``username=``, ``password=``,
            ``environment=``, ``cache=``, ...).
        http_client: Pre-built :class:`httpx.Client` for the transport.
        store: Cache store.  When omitted and caching is enabled, a
            :class:`~econt.cache.DiskStore` is opened in
            ``config.cache.directory`` or the XDG cache directory.
        fetcher: Nomenclature source.  Defaults to an
            :class:`~econt.cache.ApiFetcher` over the transport.
        clock: Time source in epoch milliseconds, shared by store and
            cache manager.  Defaults to the injected store's clock.

    Example::

        with EcontClient(username="iasp-dev", password="1Asp-dev",
                         cache={"enabled": True, "directory": "./econt-cache"}) as client:
            client.export_all_data()
            offices = client.offices.list(country_code="BGR")
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        http_client: Optional[httpx.Client] = None,
        store: Optional[Store] = None,
        fetcher: Optional[NomenclatureFetcher] = None,
        clock: Optional[Clock] = None,
        **overrides: Any,
    ) -> None:
        if config is None:
            config = ClientConfig.model_validate(overrides)
        elif overrides:
            config = ClientConfig.model_validate({**config.model_dump(), **overrides})
        self._config = config

        self._transport = Transport(config, http_client=http_client)
        if clock is None and store is not None:
            clock = store.clock
        if store is None and config.cache.enabled:
            store = DiskStore(self._cache_directory(config), clock=clock)
        self._store = store
        self._cache = CacheManager(
            store,
            fetcher or ApiFetcher(self._transport),
            config.cache,
            clock=clock,
        )

        self.offices = OfficesService(self._cache)
        self.shipments = ShipmentsService(self._transport)
        self.tracking = TrackingService(self._transport)

    @classmethod
    def from_config(cls, path: Optional[str | Path] = None, **overrides: Any) -> EcontClient:
        """Build a client from the config file, environment and *overrides*.

        See :func:`~econt.config.resolve_config` for the precedence chain.
        """
        from econt.config import resolve_config

        return cls(resolve_config(path, **overrides))

    @staticmethod
    def _cache_directory(config: ClientConfig) -> Path:
        if config.cache.directory:
            return Path(config.cache.directory).expanduser()
        from econt.config import get_cache_dir

        return get_cache_dir() / "nomenclatures"

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def cache(self) -> CacheManager:
        return self._cache

    # ------------------------------------------------------------------ #
    # Cache operations
    # ------------------------------------------------------------------ #

    def export_all_data(
        self,
        cancel: Optional[threading.Event] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ExportStatus:
        """Export every nomenclature dataset into the cache.

        Raises:
            CacheDisabledError: When caching is disabled.
            ExportAbortedError: When a step fails or *cancel* is set.
        """
        return self._cache.export_all(cancel=cancel, progress=progress)

    def get_cache_status(self) -> CacheReport:
        return self._cache.get_cache_status()

    def clear_cache(self, key: Optional[str] = None) -> None:
        self._cache.clear_cache(key)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def close(self) -> None:
        """Close the HTTP transport and the cache store."""
        self._transport.close()
        if self._store is not None:
            self._store.close()

    def __enter__(self) -> EcontClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
