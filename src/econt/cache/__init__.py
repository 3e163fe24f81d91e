"""Local cache for Econt nomenclature data.

The package keeps slow-changing reference datasets (countries, cities,
offices, streets) on disk so that lookups and filters run without a network
round-trip:

- :class:`Store` / :class:`DiskStore` / :class:`MemoryStore` -- persistence
  of whole datasets with fetch time and TTL.
- :class:`NomenclatureFetcher` / :class:`ApiFetcher` -- the remote source,
  consulted only on miss, staleness, or forced refresh.
- :class:`CacheManager` -- read-through orchestration, status and clearing.
- :func:`filter_records` -- the shared, pure filtering function.
- :class:`ExportOrchestrator` -- the one-shot full export.

The cache is owned by :class:`~econt.client.EcontClient` and controlled by
the ``cache`` section of :class:`~econt.models.ClientConfig`.
"""

from econt.cache.export import EXPORT_STEPS, ExportOrchestrator
from econt.cache.fetcher import ApiFetcher, NomenclatureFetcher
from econt.cache.filters import filter_records
from econt.cache.keys import CITIES, COUNTRIES, OFFICES, STREETS, parse_key, streets_key
from econt.cache.manager import CacheManager, CacheResult
from econt.cache.store import DiskStore, MemoryStore, Store, now_ms

__all__ = [
    "CITIES",
    "COUNTRIES",
    "EXPORT_STEPS",
    "OFFICES",
    "STREETS",
    "ApiFetcher",
    "CacheManager",
    "CacheResult",
    "DiskStore",
    "ExportOrchestrator",
    "MemoryStore",
    "NomenclatureFetcher",
    "Store",
    "filter_records",
    "now_ms",
    "parse_key",
    "streets_key",
]
