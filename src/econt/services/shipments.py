"""Shipment label creation and price calculation.

Both operations call ``Shipments/LabelService.createLabel.json``; the
``mode`` field selects between creating the label (``create``) and only
pricing it (``calculate``).  Nothing here is cached.
"""

from __future__ import annotations

from econt.client.transport import Transport
from econt.exceptions import ServerError
from econt.models import CalculationResult, LabelResult, ShippingLabel

_CREATE_LABEL = "Shipments/LabelService.createLabel.json"


class ShipmentsService:
    """Label namespace, exposed as ``client.shipments``."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    def _submit(self, label: ShippingLabel, mode: str, retry: bool = True) -> dict:
        payload = {"label": label.to_api(), "mode": mode}
        data = self._transport.post(_CREATE_LABEL, payload, retry=retry)
        result = data.get("label")
        if not isinstance(result, dict):
            raise ServerError(f"createLabel ({mode}) returned no label")
        return result

    def create_label(self, label: ShippingLabel) -> LabelResult:
        """Create a shipment and return its number, PDF link and price.

        Sent once: a retried request could create a second shipment.
        """
        return LabelResult.from_api(self._submit(label, "create", retry=False))

    def calculate(self, label: ShippingLabel) -> CalculationResult:
        """Price *label* without creating a shipment."""
        return CalculationResult.from_api(self._submit(label, "calculate"))
