"""econt -- typed client for the Econt delivery API.

The package wraps the Econt JSON services (nomenclatures, labels, tracking)
and keeps slow-changing reference data in a local cache so that office and
city lookups run without a network round-trip.

Typical usage::

    from econt import EcontClient

    client = EcontClient(username="...", password="...", cache={"enabled": True})
    client.export_all_data()
    offices = client.offices.list(country_code="BGR")

Modules:
    client: :class:`EcontClient` facade and HTTP transport.
    cache: Store, fetcher, filter layer, cache manager and bulk export.
    services: Offices, shipments and tracking namespaces.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    app: The ``econt`` command-line tool.
"""

__version__ = "0.1.0"

from econt.client import EcontClient  # noqa: E402

__all__ = ["EcontClient", "__version__"]
