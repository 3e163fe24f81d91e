"""Canonical Pydantic models shared across all econt modules.

This is the single source of truth for data shapes in the project.  The
models fall into four groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`Environment`, :class:`RequestConfig`, :class:`CacheConfig`, and
    :class:`ClientConfig`.

**Nomenclature records** -- immutable reference data returned by the
Econt nomenclature services and persisted by the cache:
    :class:`Country`, :class:`City`, :class:`Office`, and :class:`Street`.
    Each record is parsed from the provider's nested camelCase JSON with
    ``from_api`` and stored in a flat snake_case form that the filter layer
    addresses directly.

**Cache metadata** -- :class:`CacheEntry`, :class:`DataSource`,
:class:`CacheStatus`, :class:`ExportState`, :class:`ExportStatus`, and
:class:`CacheReport`.

**Shipment models** -- request and response shapes for label creation,
price calculation, and tracking.
"""

from __future__ import annotations

import enum
from abc import abstractmethod
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class Environment(str, enum.Enum):
    """Econt API environment the client talks to."""

    DEMO = "demo"
    PRODUCTION = "production"


BASE_URLS: dict[Environment, str] = {
    Environment.DEMO: "https://demo.econt.com/ee/services",
    Environment.PRODUCTION: "https://ee.econt.com/services",
}


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every API call."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(default=3, ge=0, description="Max retry attempts")


class CacheConfig(BaseModel):
    """Nomenclature cache settings.

    Only ``enabled``, ``ttl_ms`` and ``serve_stale_on_error`` influence the
    cache behaviour; ``directory`` is handed to the store unchanged.
    """

    enabled: bool = Field(default=False, description="Enable the nomenclature cache")
    ttl_ms: int = Field(
        default=86_400_000, gt=0, description="Time-to-live of cached datasets in milliseconds"
    )
    directory: Optional[str] = Field(
        default=None, description="Cache directory (defaults to the XDG cache dir)"
    )
    serve_stale_on_error: bool = Field(
        default=False,
        description="Serve an expired entry when the refresh fetch fails",
    )


class ClientConfig(BaseModel):
    """Complete configuration of an :class:`~econt.client.EcontClient`.

    Loaded by :func:`~econt.config.resolve_config`, which layers the config
    file, ``ECONT_*`` environment variables and explicit arguments.
    """

    username: Optional[str] = None
    password: Optional[str] = None
    environment: Environment = Environment.DEMO
    base_url: Optional[str] = Field(
        default=None, description="Override the environment's base URL"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    def resolved_base_url(self) -> str:
        """Return ``base_url`` if set, otherwise the environment's default URL."""
        return (self.base_url or BASE_URLS[self.environment]).rstrip("/")


# --- Nomenclature records ---


class NomenclatureRecord(BaseModel):
    """Base class for cached reference records.

    Records are frozen; the cache never mutates them in place.  Unknown
    keys are ignored so that payloads written by an older release still
    validate.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    @classmethod
    @abstractmethod
    def from_api(cls, data: dict[str, Any]) -> NomenclatureRecord:
        """Build a record from the provider's JSON object.

        Every concrete record type implements this; the base class cannot
        be instantiated.
        """


def _country_code(country: Any) -> Optional[str]:
    if isinstance(country, dict):
        return country.get("code3")
    return None


class Country(NomenclatureRecord):
    """A country served by Econt, keyed by its ISO 3166-1 alpha-3 code."""

    id: Optional[int] = None
    code2: Optional[str] = None
    code3: str
    name: str
    name_en: Optional[str] = None
    is_eu: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Country:
        return cls(
            id=data.get("id"),
            code2=data.get("code2"),
            code3=data.get("code3", ""),
            name=data.get("name", ""),
            name_en=data.get("nameEn"),
            is_eu=bool(data.get("isEU", False)),
        )


class City(NomenclatureRecord):
    """A settlement; ``country_code`` references :attr:`Country.code3`."""

    id: int
    country_code: Optional[str] = None
    post_code: Optional[str] = None
    name: str
    name_en: Optional[str] = None
    region_name: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> City:
        return cls(
            id=data["id"],
            country_code=_country_code(data.get("country")),
            post_code=data.get("postCode"),
            name=data.get("name", ""),
            name_en=data.get("nameEn"),
            region_name=data.get("regionName"),
        )


class Office(NomenclatureRecord):
    """An Econt office or parcel locker (APS).

    The provider nests the location under ``address.city``; it is
    flattened here into ``city_id``, ``city_name`` and ``country_code``.
    """

    id: Optional[int] = None
    code: str
    name: str
    name_en: Optional[str] = None
    is_mps: bool = False
    is_aps: bool = False
    phones: tuple[str, ...] = ()
    emails: tuple[str, ...] = ()
    city_id: Optional[int] = None
    city_name: Optional[str] = None
    country_code: Optional[str] = None
    post_code: Optional[str] = None
    full_address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Office:
        address = data.get("address") or {}
        city = address.get("city") or {}
        location = address.get("location") or {}
        return cls(
            id=data.get("id"),
            code=str(data.get("code", "")),
            name=data.get("name", ""),
            name_en=data.get("nameEn"),
            is_mps=bool(data.get("isMPS", False)),
            is_aps=bool(data.get("isAPS", False)),
            phones=tuple(data.get("phones") or ()),
            emails=tuple(data.get("emails") or ()),
            city_id=city.get("id"),
            city_name=city.get("name"),
            country_code=_country_code(city.get("country")),
            post_code=city.get("postCode"),
            full_address=address.get("fullAddress"),
            latitude=location.get("latitude"),
            longitude=location.get("longitude"),
        )


class Street(NomenclatureRecord):
    """A street within a city; ``city_id`` references :attr:`City.id`."""

    id: int
    city_id: int
    name: str
    name_en: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Street:
        return cls(
            id=data["id"],
            city_id=data["cityID"],
            name=data.get("name", ""),
            name_en=data.get("nameEn"),
        )


# --- Cache metadata ---


class CacheEntry(BaseModel):
    """One persisted dataset: the full payload plus its freshness metadata.

    ``fetched_at`` and ``ttl_ms`` are epoch milliseconds and a duration;
    an entry is stale once ``now >= fetched_at + ttl_ms``.
    """

    key: str
    payload: list[dict[str, Any]]
    fetched_at: int
    ttl_ms: int

    @property
    def expires_at(self) -> int:
        return self.fetched_at + self.ttl_ms

    def is_stale(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at

    def age_ms(self, now_ms: int) -> int:
        return max(0, now_ms - self.fetched_at)


class DataSource(str, enum.Enum):
    """Where a cache lookup was served from."""

    CACHE = "cache"
    API = "api"


class CacheStatus(BaseModel):
    """Read-only description of a single cache key."""

    key: str
    present: bool
    fetched_at: Optional[int] = None
    expires_at: Optional[int] = None
    age_ms: Optional[int] = None
    expired: bool = False
    record_count: int = 0
    corrupt: bool = False


class ExportState(str, enum.Enum):
    """Lifecycle of the bulk nomenclature export."""

    NEVER = "never"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"


class ExportStatus(BaseModel):
    """Persisted progress marker of the last bulk export.

    Written as ``in_progress`` before the first step, so a process that
    dies mid-export leaves a marker that is reported as not complete.
    """

    state: ExportState = ExportState.NEVER
    completed_steps: list[str] = Field(default_factory=list)
    failed_step: Optional[str] = None
    cancelled: bool = False
    started_at: Optional[int] = None
    finished_at: Optional[int] = None


class CacheReport(BaseModel):
    """Snapshot returned by :meth:`~econt.cache.CacheManager.get_cache_status`."""

    enabled: bool
    ttl_ms: int
    location: Optional[str] = None
    entries: list[CacheStatus] = Field(default_factory=list)
    export: ExportStatus = Field(default_factory=ExportStatus)

    @property
    def complete(self) -> bool:
        """``True`` only after an export finished every step."""
        return self.export.state == ExportState.COMPLETE

    def entry(self, key: str) -> Optional[CacheStatus]:
        for status in self.entries:
            if status.key == key:
                return status
        return None


# --- Shipments ---


class ShipmentType(str, enum.Enum):
    """Kinds of shipment accepted by the label service."""

    PACK = "PACK"
    DOCUMENT = "DOCUMENT"
    PALLET = "PALLET"
    CARGO = "CARGO"
    DOCUMENT_PALLET = "DOCUMENTPALLET"


class PaymentMethod(str, enum.Enum):
    """How the sender pays for the shipment."""

    CASH = "cash"
    CREDIT = "credit"


class ClientProfile(BaseModel):
    """Sender or receiver contact details."""

    name: str
    phones: list[str] = Field(default_factory=list)
    email: Optional[str] = None

    def to_api(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "phones": list(self.phones)}
        if self.email:
            data["email"] = self.email
        return data


class AddressCity(BaseModel):
    """City reference embedded in an :class:`Address`."""

    id: Optional[int] = None
    name: Optional[str] = None
    post_code: Optional[str] = None
    country_code: str = "BGR"

    def to_api(self) -> dict[str, Any]:
        data: dict[str, Any] = {"country": {"code3": self.country_code}}
        if self.id is not None:
            data["id"] = self.id
        if self.name:
            data["name"] = self.name
        if self.post_code:
            data["postCode"] = self.post_code
        return data


class Address(BaseModel):
    """Street address for door-to-door pickup or delivery."""

    city: AddressCity
    street: Optional[str] = None
    num: Optional[str] = None
    quarter: Optional[str] = None
    other: Optional[str] = None

    def to_api(self) -> dict[str, Any]:
        data: dict[str, Any] = {"city": self.city.to_api()}
        for field, api_name in (
            ("street", "street"),
            ("num", "num"),
            ("quarter", "quarter"),
            ("other", "other"),
        ):
            value = getattr(self, field)
            if value:
                data[api_name] = value
        return data


class ShippingLabel(BaseModel):
    """Label request for :meth:`~econt.services.ShipmentsService.create_label`.

    Exactly one of ``receiver_address`` / ``receiver_office_code`` should be
    given; the same holds for the sender side.
    """

    sender_client: ClientProfile
    sender_address: Optional[Address] = None
    sender_office_code: Optional[str] = None
    receiver_client: ClientProfile
    receiver_address: Optional[Address] = None
    receiver_office_code: Optional[str] = None
    pack_count: int = Field(default=1, ge=1)
    shipment_type: ShipmentType = ShipmentType.PACK
    weight: float = Field(gt=0, description="Weight in kilograms")
    shipment_description: Optional[str] = None
    order_number: Optional[str] = None
    payment_sender_method: Optional[PaymentMethod] = None
    cd_amount: Optional[float] = Field(default=None, description="Cash on delivery amount")
    cd_type: Optional[str] = Field(default=None, description="Cash on delivery type, e.g. 'get'")
    cd_currency: Optional[str] = None
    sms_notification: bool = False

    def to_api(self) -> dict[str, Any]:
        """Serialise into the ``label`` object of the createLabel request."""
        label: dict[str, Any] = {
            "senderClient": self.sender_client.to_api(),
            "receiverClient": self.receiver_client.to_api(),
            "packCount": self.pack_count,
            "shipmentType": self.shipment_type.value,
            "weight": self.weight,
        }
        if self.sender_address is not None:
            label["senderAddress"] = self.sender_address.to_api()
        if self.sender_office_code:
            label["senderOfficeCode"] = self.sender_office_code
        if self.receiver_address is not None:
            label["receiverAddress"] = self.receiver_address.to_api()
        if self.receiver_office_code:
            label["receiverOfficeCode"] = self.receiver_office_code
        if self.shipment_description:
            label["shipmentDescription"] = self.shipment_description
        if self.order_number:
            label["orderNumber"] = self.order_number
        if self.payment_sender_method is not None:
            label["paymentSenderMethod"] = self.payment_sender_method.value

        services: dict[str, Any] = {}
        if self.cd_amount is not None:
            services["cdAmount"] = self.cd_amount
            services["cdType"] = self.cd_type or "get"
            services["cdCurrency"] = self.cd_currency or "BGN"
        if self.sms_notification:
            services["smsNotification"] = True
        if services:
            label["services"] = services
        return label


class PriceLine(BaseModel):
    """One priced service in a label or calculation response."""

    type: Optional[str] = None
    description: Optional[str] = None
    price: float = 0.0
    currency: Optional[str] = None


def _price_lines(data: dict[str, Any]) -> list[PriceLine]:
    return [
        PriceLine(
            type=item.get("type"),
            description=item.get("description"),
            price=item.get("price") or 0.0,
            currency=item.get("currency"),
        )
        for item in data.get("services") or []
    ]


class CalculationResult(BaseModel):
    """Price quote returned in ``calculate`` mode."""

    total_price: float
    currency: Optional[str] = None
    sender_due_amount: Optional[float] = None
    receiver_due_amount: Optional[float] = None
    breakdown: list[PriceLine] = Field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CalculationResult:
        return cls(
            total_price=data.get("totalPrice") or 0.0,
            currency=data.get("currency"),
            sender_due_amount=data.get("senderDueAmount"),
            receiver_due_amount=data.get("receiverDueAmount"),
            breakdown=_price_lines(data),
        )


class LabelResult(CalculationResult):
    """A created label: the shipment number plus the printable PDF."""

    shipment_number: str
    pdf_url: Optional[str] = None
    barcode_url: Optional[str] = None
    expected_delivery_date: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> LabelResult:
        return cls(
            shipment_number=str(data.get("shipmentNumber", "")),
            pdf_url=data.get("pdfURL"),
            barcode_url=data.get("barcodeURL") or data.get("barcodeUrl"),
            expected_delivery_date=data.get("expectedDeliveryDate"),
            total_price=data.get("totalPrice") or 0.0,
            currency=data.get("currency"),
            sender_due_amount=data.get("senderDueAmount"),
            receiver_due_amount=data.get("receiverDueAmount"),
            breakdown=_price_lines(data),
        )


class TrackingEvent(BaseModel):
    """A single scan event in a shipment's history."""

    time: Optional[str] = None
    event_type: Optional[str] = None
    description: Optional[str] = None
    office_name: Optional[str] = None
    city_name: Optional[str] = None


class TrackingInfo(BaseModel):
    """Current status and event history of one shipment.

    ``error`` is set by :meth:`~econt.services.TrackingService.track_multiple`
    for shipment numbers the API could not resolve.
    """

    shipment_number: str
    status: Optional[str] = None
    status_en: Optional[str] = None
    expected_delivery_date: Optional[str] = None
    events: list[TrackingEvent] = Field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> TrackingInfo:
        events = [
            TrackingEvent(
                time=item.get("time"),
                event_type=item.get("destinationType"),
                description=item.get("destinationDetailsEn") or item.get("destinationDetails"),
                office_name=item.get("officeName"),
                city_name=item.get("cityName"),
            )
            for item in data.get("trackingEvents") or []
        ]
        return cls(
            shipment_number=str(data.get("shipmentNumber", "")),
            status=data.get("shortDeliveryStatus"),
            status_en=data.get("shortDeliveryStatusEn"),
            expected_delivery_date=data.get("expectedDeliveryDate"),
            events=events,
        )
