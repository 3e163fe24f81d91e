"""Resource namespaces exposed on :class:`~econt.client.EcontClient`."""

from econt.services.offices import OfficesService
from econt.services.shipments import ShipmentsService
from econt.services.tracking import TrackingService

__all__ = ["OfficesService", "ShipmentsService", "TrackingService"]
