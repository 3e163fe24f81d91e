"""Fetcher adapter -- the cache's view of the remote nomenclature source.

:class:`NomenclatureFetcher` is the abstract boundary the cache consumes:
one capability per nomenclature type plus :meth:`~NomenclatureFetcher.fetch`,
which dispatches a cache key to the matching capability.

:class:`ApiFetcher` implements it over the Econt ``NomenclaturesService``
endpoints through a :class:`~econt.client.transport.Transport`.  Timeouts
and transport errors are not handled here; they propagate as
:class:`~econt.exceptions.SourceUnavailableError` subclasses.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from econt.cache.filters import Criteria
from econt.cache.keys import CITIES, COUNTRIES, OFFICES, parse_key
from econt.models import City, Country, NomenclatureRecord, Office, Street

if TYPE_CHECKING:
    from econt.client.transport import Transport


_SERVICE = "Nomenclatures/NomenclaturesService"

# Criteria the API can evaluate server-side, mapped to request fields.
_CITY_PARAMS = {"country_code": "countryCode"}
_OFFICE_PARAMS = {"country_code": "countryCode", "city_id": "cityID", "code": "officeCode"}


class NomenclatureFetcher(ABC):
    """Abstract source of nomenclature records.

    Implementations return records in the source's order and raise on any
    failure; they never consult the cache.
    """

    @abstractmethod
    def fetch_countries(self) -> list[Country]: ...

    @abstractmethod
    def fetch_cities(self, criteria: Optional[Criteria] = None) -> list[City]: ...

    @abstractmethod
    def fetch_offices(self, criteria: Optional[Criteria] = None) -> list[Office]: ...

    @abstractmethod
    def fetch_streets(self, city_id: int) -> list[Street]: ...

    def fetch(
        self,
        key: str,
        criteria: Optional[Criteria] = None,
    ) -> list[NomenclatureRecord]:
        """Fetch the dataset named by cache *key*.

        *criteria* is a hint that lets the source narrow the response; the
        caller still filters the result locally.
        """
        dataset, city_id = parse_key(key)
        if dataset == COUNTRIES:
            return list(self.fetch_countries())
        if dataset == CITIES:
            return list(self.fetch_cities(criteria))
        if dataset == OFFICES:
            return list(self.fetch_offices(criteria))
        assert city_id is not None
        return list(self.fetch_streets(city_id))


def _server_params(criteria: Optional[Criteria], mapping: dict[str, str]) -> dict[str, Any]:
    """Translate scalar equality criteria into API request fields."""
    params: dict[str, Any] = {}
    for field, api_name in mapping.items():
        value = (criteria or {}).get(field)
        if value is not None and not isinstance(value, (list, tuple, set, frozenset)):
            params[api_name] = value
    return params


class ApiFetcher(NomenclatureFetcher):
    """Fetch nomenclatures from the Econt API.

    Args:
        transport: The HTTP transport shared with the rest of the client.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    def _call(self, method: str, payload: dict[str, Any], field: str) -> list[dict[str, Any]]:
        data = self._transport.post(f"{_SERVICE}.{method}.json", payload)
        return list(data.get(field) or [])

    def fetch_countries(self) -> list[Country]:
        return [Country.from_api(item) for item in self._call("getCountries", {}, "countries")]

    def fetch_cities(self, criteria: Optional[Criteria] = None) -> list[City]:
        payload = _server_params(criteria, _CITY_PARAMS)
        return [City.from_api(item) for item in self._call("getCities", payload, "cities")]

    def fetch_offices(self, criteria: Optional[Criteria] = None) -> list[Office]:
        payload = _server_params(criteria, _OFFICE_PARAMS)
        return [Office.from_api(item) for item in self._call("getOffices", payload, "offices")]

    def fetch_streets(self, city_id: int) -> list[Street]:
        payload = {"cityID": city_id}
        return [Street.from_api(item) for item in self._call("getStreets", payload, "streets")]
