"""
Pydantic schemas for provider payloads, the canonical vehicle record and
cached lookups.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DataSource(str, Enum):
    SPECS = "checkcardetails"  # specification / history / MOT provider
    VALUATION = "valuation"
    ELECTRIC_RULE = "electric_vehicle_rule"  # zero CO2 / zero tax fallback


# ─── Provider payloads ───────────────────────────────────────────────


class MotTest(BaseModel):
    """One MOT test entry."""

    test_date: str | None = None
    result: str | None = None
    odometer: int | None = None
    odometer_unit: str = "mi"
    expiry_date: str | None = None
    test_number: str | None = None
    advisories: list[str] = Field(default_factory=list)
    failures: list[str] = Field(default_factory=list)


class MileageReading(BaseModel):
    date: str
    mileage: int
    source: str = "MOT"


class WriteOffDetails(BaseModel):
    category: str | None = None
    date: str | None = None
    status: str | None = None
    description: str | None = None


class VehicleDataPayload(BaseModel):
    """Parsed vehiclespecs + ukvehicledata response."""

    make: str | None = None
    model: str | None = None
    variant: str | None = None
    year: int | None = None
    color: str | None = None
    fuel_type: str | None = None
    transmission: str | None = None
    engine_size: float | None = None  # litres
    body_type: str | None = None
    doors: int | None = None
    seats: int | None = None
    gearbox: int | None = None
    emission_class: str | None = None
    co2_emissions: int | float | None = None
    annual_tax: int | float | None = None
    insurance_group: str | None = None
    urban_mpg: float | None = None
    extra_urban_mpg: float | None = None
    combined_mpg: float | None = None
    power_bhp: float | None = None
    torque_nm: float | None = None
    acceleration: float | None = None
    top_speed_mph: float | None = None


class VehicleHistoryPayload(BaseModel):
    """Parsed carhistorycheck response."""

    previous_owners: int | None = None
    v5c_certificate_count: int | None = None
    plate_changes: int | None = None
    colour_changes: int | None = None
    is_stolen: bool | None = None
    is_written_off: bool | None = None
    write_off_category: str | None = None
    write_off_details: WriteOffDetails | None = None
    has_outstanding_finance: bool | None = None
    is_scrapped: bool | None = None
    is_imported: bool | None = None
    is_exported: bool | None = None


class MotHistoryPayload(BaseModel):
    """Parsed mot response. No tests means empty lists, not an error."""

    mot_status: str | None = None
    mot_due_date: str | None = None
    mot_history: list[MotTest] = Field(default_factory=list)
    mileage_history: list[MileageReading] = Field(default_factory=list)

    @property
    def latest_mileage(self) -> int | None:
        if not self.mileage_history:
            return None
        return self.mileage_history[-1].mileage


class SpecPayload(VehicleDataPayload, VehicleHistoryPayload, MotHistoryPayload):
    """The three specification/history resources flattened into one payload."""

    mileage: int | None = None

    @classmethod
    def from_parts(
        cls,
        vehicle: VehicleDataPayload | None = None,
        history: VehicleHistoryPayload | None = None,
        mot: MotHistoryPayload | None = None,
    ) -> "SpecPayload":
        data: dict[str, Any] = {}
        for part in (vehicle, history, mot):
            if part is not None:
                data.update({name: getattr(part, name) for name in type(part).model_fields})
        if mot is not None:
            data["mileage"] = mot.latest_mileage
        return cls(**data)


class ValuationPayload(BaseModel):
    """Parsed vehiclevaluation response."""

    plate: str | None = None
    mileage: int | None = None
    private_price: int | None = None
    retail_price: int | None = None
    trade_price: int | None = None
    part_exchange_price: int | None = None
    confidence: str = "medium"
    vehicle_description: str | None = None


# ─── Canonical record ────────────────────────────────────────────────


class SourcedValue(BaseModel):
    """A field value plus the provider that supplied it."""

    model_config = ConfigDict(frozen=True)

    value: Any = None
    source: DataSource | None = None

    @property
    def present(self) -> bool:
        return self.value is not None


class EstimatedValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    private: int | None = None
    retail: int | None = None
    trade: int | None = None


class Valuation(BaseModel):
    model_config = ConfigDict(frozen=True)

    estimated_value: EstimatedValue = Field(default_factory=EstimatedValue)
    part_exchange: int | None = None
    confidence: str | None = None
    mileage: int | None = None


class DataSources(BaseModel):
    """Which upstream providers actually contributed to a record."""

    model_config = ConfigDict(frozen=True)

    specs: bool = False
    valuation: bool = False


# Every semantic field of the canonical record, in a fixed order.
CANONICAL_FIELDS: tuple[str, ...] = (
    # identity / specification
    "make",
    "model",
    "variant",
    "year",
    "color",
    "fuel_type",
    "transmission",
    "engine_size",
    "body_type",
    "doors",
    "seats",
    "gearbox",
    "emission_class",
    # running costs
    "co2_emissions",
    "annual_tax",
    "insurance_group",
    "urban_mpg",
    "extra_urban_mpg",
    "combined_mpg",
    # performance
    "power_bhp",
    "torque_nm",
    "acceleration",
    "top_speed_mph",
    # ownership / history flags
    "previous_owners",
    "v5c_certificate_count",
    "plate_changes",
    "colour_changes",
    "is_stolen",
    "is_written_off",
    "write_off_category",
    "write_off_details",
    "has_outstanding_finance",
    "is_scrapped",
    "is_imported",
    "is_exported",
    # MOT / mileage
    "mot_status",
    "mot_due_date",
    "mot_history",
    "mileage_history",
    "mileage",
    # valuation
    "valuation",
)


def _absent() -> SourcedValue:
    return SourcedValue()


class CanonicalVehicleRecord(BaseModel):
    """Merged, source-tagged view of one vehicle at one point in time."""

    model_config = ConfigDict(frozen=True)

    plate: str | None = None

    make: SourcedValue = Field(default_factory=_absent)
    model: SourcedValue = Field(default_factory=_absent)
    variant: SourcedValue = Field(default_factory=_absent)
    year: SourcedValue = Field(default_factory=_absent)
    color: SourcedValue = Field(default_factory=_absent)
    fuel_type: SourcedValue = Field(default_factory=_absent)
    transmission: SourcedValue = Field(default_factory=_absent)
    engine_size: SourcedValue = Field(default_factory=_absent)
    body_type: SourcedValue = Field(default_factory=_absent)
    doors: SourcedValue = Field(default_factory=_absent)
    seats: SourcedValue = Field(default_factory=_absent)
    gearbox: SourcedValue = Field(default_factory=_absent)
    emission_class: SourcedValue = Field(default_factory=_absent)

    co2_emissions: SourcedValue = Field(default_factory=_absent)
    annual_tax: SourcedValue = Field(default_factory=_absent)
    insurance_group: SourcedValue = Field(default_factory=_absent)
    urban_mpg: SourcedValue = Field(default_factory=_absent)
    extra_urban_mpg: SourcedValue = Field(default_factory=_absent)
    combined_mpg: SourcedValue = Field(default_factory=_absent)

    power_bhp: SourcedValue = Field(default_factory=_absent)
    torque_nm: SourcedValue = Field(default_factory=_absent)
    acceleration: SourcedValue = Field(default_factory=_absent)
    top_speed_mph: SourcedValue = Field(default_factory=_absent)

    previous_owners: SourcedValue = Field(default_factory=_absent)
    v5c_certificate_count: SourcedValue = Field(default_factory=_absent)
    plate_changes: SourcedValue = Field(default_factory=_absent)
    colour_changes: SourcedValue = Field(default_factory=_absent)
    is_stolen: SourcedValue = Field(default_factory=_absent)
    is_written_off: SourcedValue = Field(default_factory=_absent)
    write_off_category: SourcedValue = Field(default_factory=_absent)
    write_off_details: SourcedValue = Field(default_factory=_absent)
    has_outstanding_finance: SourcedValue = Field(default_factory=_absent)
    is_scrapped: SourcedValue = Field(default_factory=_absent)
    is_imported: SourcedValue = Field(default_factory=_absent)
    is_exported: SourcedValue = Field(default_factory=_absent)

    mot_status: SourcedValue = Field(default_factory=_absent)
    mot_due_date: SourcedValue = Field(default_factory=_absent)
    mot_history: SourcedValue = Field(default_factory=_absent)
    mileage_history: SourcedValue = Field(default_factory=_absent)
    mileage: SourcedValue = Field(default_factory=_absent)

    valuation: SourcedValue = Field(default_factory=_absent)

    data_sources: DataSources = Field(default_factory=DataSources)

    # Set by the orchestrator, never by the merger
    checked_at: datetime | None = None
    cache_id: int | None = None
    from_cache: bool = False

    def field_sources(self) -> dict[str, str]:
        """Map of populated field name -> provider identifier."""
        sources = {}
        for name in CANONICAL_FIELDS:
            field = getattr(self, name)
            if field.present:
                sources[name] = field.source.value
        return sources

    def value_of(self, name: str) -> Any:
        return getattr(self, name).value


# ─── Cache store / API ───────────────────────────────────────────────


class CachedLookup(BaseModel):
    """Row of the vehicle_lookups cache table."""

    id: int
    plate: str
    make: str | None = None
    model: str | None = None
    variant: str | None = None
    colour: str | None = None
    fuel_type: str | None = None
    year: int | None = None
    engine_size: float | None = None
    body_type: str | None = None
    transmission: str | None = None
    doors: int | None = None
    seats: int | None = None
    co2_emissions: float | None = None
    annual_tax: float | None = None
    insurance_group: str | None = None
    urban_mpg: float | None = None
    extra_urban_mpg: float | None = None
    combined_mpg: float | None = None
    previous_owners: int | None = None
    is_written_off: bool | None = None
    write_off_category: str | None = None
    is_stolen: bool | None = None
    has_outstanding_finance: bool | None = None
    private_price: int | None = None
    retail_price: int | None = None
    trade_price: int | None = None
    mileage: int | None = None
    checked_at: datetime
    check_status: str = "success"
    api_provider: str = "enhanced-vehicle-service"
    test_mode: bool = True
    record: CanonicalVehicleRecord | None = None


class LookupResult(BaseModel):
    """Best-effort lookup outcome handed to listing flows."""

    success: bool
    data: CanonicalVehicleRecord | None = None
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None
