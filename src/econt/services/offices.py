"""Nomenclature lookups: countries, cities, offices and streets.

Every method goes through the client's :class:`~econt.cache.CacheManager`,
so the same call is answered from the local cache when it is enabled and
fresh, and from the API otherwise.  Pass ``force_refresh=True`` to bypass
the freshness check.
"""

from __future__ import annotations

from typing import Optional

from econt.cache.keys import CITIES, COUNTRIES, OFFICES, streets_key
from econt.cache.manager import CacheManager
from econt.models import City, Country, Office, Street


class OfficesService:
    """Cache-aware nomenclature namespace, exposed as ``client.offices``."""

    def __init__(self, cache: CacheManager) -> None:
        self._cache = cache

    def list(
        self,
        country_code: Optional[str] = None,
        city_id: Optional[int] = None,
        force_refresh: bool = False,
    ) -> list[Office]:
        """Return offices, optionally narrowed to a country and/or city."""
        criteria = {"country_code": country_code, "city_id": city_id}
        return self._cache.get(OFFICES, criteria, force_refresh=force_refresh).records

    def get(self, office_code: str, force_refresh: bool = False) -> Optional[Office]:
        """Return the office with *office_code*, or ``None`` if there is none."""
        records = self._cache.get(
            OFFICES, {"code": str(office_code)}, force_refresh=force_refresh
        ).records
        return records[0] if records else None

    def get_countries(self, force_refresh: bool = False) -> list[Country]:
        return self._cache.get(COUNTRIES, force_refresh=force_refresh).records

    def get_cities(
        self,
        country_code: Optional[str] = None,
        force_refresh: bool = False,
    ) -> list[City]:
        return self._cache.get(
            CITIES, {"country_code": country_code}, force_refresh=force_refresh
        ).records

    def get_streets(
        self,
        city_id: int,
        name: Optional[str] = None,
        force_refresh: bool = False,
    ) -> list[Street]:
        """Return the streets of *city_id*; *name* filters by case-insensitive substring."""
        return self._cache.get(
            streets_key(city_id), {"name__contains": name}, force_refresh=force_refresh
        ).records
