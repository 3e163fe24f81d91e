"""Lookup commands -- nomenclatures and shipment tracking.

Nomenclature commands (``countries``, ``cities``, ``offices``,
``streets``) read through the nomenclature cache when it is enabled, so
they work offline after ``econt cache export``.  ``--refresh`` bypasses the
freshness check.  ``track`` always calls the API.

In ``--json`` mode every command prints the full records; otherwise a
table of the most useful columns is shown.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

import typer

from econt.commands import open_client
from econt.models import City, Country, Office, Street, TrackingInfo
from econt.output import OutputFormat, format_response, get_output, info, print_table, warning


_REFRESH = typer.Option(False, "--refresh", help="Ignore cached data and fetch from the API.")


def _cell(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def _emit(
    records: Sequence,
    headers: list[str],
    row: Callable[[object], list[object]],
    title: str,
) -> None:
    """Print *records* as JSON or as a table built by *row*."""
    if get_output().format == OutputFormat.JSON:
        format_response([r.model_dump(mode="json") for r in records])
        return
    if not records:
        info(f"No {title.lower()} found.")
        return
    print_table(headers, [[_cell(v) for v in row(r)] for r in records], title=title)


def countries_command(ctx: typer.Context, refresh: bool = _REFRESH) -> None:
    """List countries served by Econt.

    Example::

        econt countries
    """
    with open_client(ctx) as client:
        records = client.offices.get_countries(force_refresh=refresh)

    def _row(c: Country) -> list[object]:
        return [c.code3, c.code2, c.name, c.name_en, c.is_eu]

    _emit(records, ["Code", "ISO2", "Name", "Name (EN)", "EU"], _row, "Countries")


def cities_command(
    ctx: typer.Context,
    country: Optional[str] = typer.Option(
        None, "--country", help="ISO 3166-1 alpha-3 country code (e.g. BGR)."
    ),
    refresh: bool = _REFRESH,
) -> None:
    """List cities, optionally for one country.

    Example::

        econt cities --country BGR
    """
    with open_client(ctx) as client:
        records = client.offices.get_cities(country_code=country, force_refresh=refresh)

    def _row(c: City) -> list[object]:
        return [c.id, c.post_code, c.name, c.name_en, c.region_name, c.country_code]

    _emit(records, ["ID", "Post code", "Name", "Name (EN)", "Region", "Country"], _row, "Cities")


def offices_command(
    ctx: typer.Context,
    country: Optional[str] = typer.Option(
        None, "--country", help="ISO 3166-1 alpha-3 country code (e.g. BGR)."
    ),
    city_id: Optional[int] = typer.Option(None, "--city-id", help="Econt city id."),
    refresh: bool = _REFRESH,
) -> None:
    """List offices and parcel lockers.

    Example::

        econt offices --country BGR --city-id 41
    """
    with open_client(ctx) as client:
        records = client.offices.list(
            country_code=country, city_id=city_id, force_refresh=refresh
        )

    def _row(o: Office) -> list[object]:
        return [o.code, o.name, o.city_name, o.full_address, o.is_aps]

    _emit(records, ["Code", "Name", "City", "Address", "Locker"], _row, "Offices")


def streets_command(
    ctx: typer.Context,
    city_id: int = typer.Argument(help="Econt city id."),
    name: Optional[str] = typer.Option(
        None, "--name", help="Case-insensitive substring of the street name."
    ),
    refresh: bool = _REFRESH,
) -> None:
    """List the streets of a city.

    Example::

        econt streets 41 --name vitosha
    """
    with open_client(ctx) as client:
        records = client.offices.get_streets(city_id, name=name, force_refresh=refresh)

    def _row(s: Street) -> list[object]:
        return [s.id, s.name, s.name_en]

    _emit(records, ["ID", "Name", "Name (EN)"], _row, "Streets")


def track_command(
    ctx: typer.Context,
    numbers: list[str] = typer.Argument(help="Shipment numbers to track."),
    lang: str = typer.Option("bg", "--lang", help="Language of status texts (bg or en)."),
) -> None:
    """Show the current status of one or more shipments.

    Example::

        econt track 1051602259316
    """
    with open_client(ctx) as client:
        results = client.tracking.track_multiple(numbers, lang=lang)

    if get_output().format != OutputFormat.JSON:
        for result in results:
            if result.error:
                warning(f"{result.shipment_number}: {result.error}")

    def _row(t: TrackingInfo) -> list[object]:
        status = t.status_en if lang == "en" and t.status_en else t.status
        last = t.events[-1].time if t.events else None
        return [t.shipment_number, status or t.error, t.expected_delivery_date, last]

    _emit(results, ["Shipment", "Status", "Expected", "Last event"], _row, "Shipments")
