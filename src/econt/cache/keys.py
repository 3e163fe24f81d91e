"""Dataset keys and the record type stored under each.

A cache key names one whole dataset: ``countries``, ``cities``, ``offices``,
or ``streets:<cityId>`` for the streets of a single city.
"""

from __future__ import annotations

from typing import Optional

from econt.exceptions import InvalidUsageError
from econt.models import City, Country, NomenclatureRecord, Office, Street

COUNTRIES = "countries"
CITIES = "cities"
OFFICES = "offices"
STREETS = "streets"

RECORD_TYPES: dict[str, type[NomenclatureRecord]] = {
    COUNTRIES: Country,
    CITIES: City,
    OFFICES: Office,
    STREETS: Street,
}


def streets_key(city_id: int) -> str:
    """Return the cache key holding the streets of *city_id*."""
    return f"{STREETS}:{int(city_id)}"


def parse_key(key: str) -> tuple[str, Optional[int]]:
    """Split *key* into its dataset name and optional city id.

    Raises:
        InvalidUsageError: For unknown datasets, a ``streets`` key without a
            numeric city id, or a city id on any other dataset.
    """
    dataset, sep, arg = key.partition(":")
    if dataset not in RECORD_TYPES:
        raise InvalidUsageError(
            f"Unknown cache key '{key}'. "
            f"Expected one of: {', '.join(sorted(RECORD_TYPES))}, streets:<cityId>"
        )
    if dataset == STREETS:
        if not sep or not arg.isdigit():
            raise InvalidUsageError(f"Streets key must look like 'streets:<cityId>', got '{key}'")
        return dataset, int(arg)
    if sep:
        raise InvalidUsageError(f"Cache key '{key}' does not take an argument")
    return dataset, None


def record_type_for(key: str) -> type[NomenclatureRecord]:
    """Return the record model stored under *key*."""
    dataset, _ = parse_key(key)
    return RECORD_TYPES[dataset]
