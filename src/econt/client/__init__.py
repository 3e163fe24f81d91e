"""Client module for econt.

:class:`EcontClient` is the public entry point: it owns the HTTP
:class:`~econt.client.transport.Transport` and the nomenclature cache, and
exposes the ``offices``, ``shipments`` and ``tracking`` namespaces.

Example::

    from econt.client import EcontClient

    with EcontClient(username="iasp-dev", password="1Asp-dev") as client:
        info = client.tracking.track("1051602259316")
"""

from econt.client.transport import Transport
from econt.client.client import EcontClient

__all__ = ["EcontClient", "Transport"]
