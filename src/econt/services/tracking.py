"""Shipment tracking via ``Shipments/ShipmentService.getShipmentStatuses.json``."""

from __future__ import annotations

from typing import Any, Sequence

from econt.client.transport import Transport
from econt.exceptions import NotFoundError
from econt.models import TrackingInfo

_STATUSES = "Shipments/ShipmentService.getShipmentStatuses.json"


def _error_text(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


class TrackingService:
    """Tracking namespace, exposed as ``client.tracking``."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    def track_multiple(self, shipment_numbers: Sequence[str], lang: str = "bg") -> list[TrackingInfo]:
        """Track several shipments in one request.

        Numbers the API cannot resolve are returned with ``error`` set
        instead of failing the whole batch.  Results follow the order of
        *shipment_numbers*.
        """
        numbers = [str(n) for n in shipment_numbers]
        if not numbers:
            return []
        data = self._transport.post(_STATUSES, {"shipmentNumbers": numbers, "lang": lang})

        results: list[TrackingInfo] = []
        for number, item in zip(numbers, data.get("shipmentStatuses") or []):
            item = item or {}
            if item.get("error"):
                results.append(TrackingInfo(shipment_number=number, error=_error_text(item["error"])))
                continue
            info = TrackingInfo.from_api(item.get("status") or {})
            if not info.shipment_number:
                info = info.model_copy(update={"shipment_number": number})
            results.append(info)
        return results

    def track(self, shipment_number: str, lang: str = "bg") -> TrackingInfo:
        """Track one shipment.

        Raises:
            NotFoundError: If the API reports an error for the number.
        """
        results = self.track_multiple([shipment_number], lang=lang)
        if not results:
            raise NotFoundError(f"No tracking data for shipment {shipment_number}")
        info = results[0]
        if info.error:
            raise NotFoundError(f"Shipment {shipment_number}: {info.error}")
        return info
