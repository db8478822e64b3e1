from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, MutableMapping, TypeAlias


class ProductSource(str, Enum):
    CATALOGUE = "catalogue"
    LEARNED = "learned"
    USER_INPUTTED = "user-inputted"


def _pick(data: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    """Return the first present key; extraction payloads arrive in camelCase."""

    for name in names:
        if name in data and data[name] is not None:
            return data[name]
    return default


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


@dataclass(frozen=True, slots=True)
class RawLineItem:
    """One product line as produced by extraction or manual entry."""

    line_number: int
    product_code: str
    description: str = ""
    raw_description: str = ""
    quantity: int = 1
    consolidated: bool = False
    fixed_time_per_unit: float | None = None

    @property
    def sort_key(self) -> tuple[int, int]:
        # the consolidated line sorts after every real line whatever its number
        return (1 if self.consolidated else 0, self.line_number)

    @staticmethod
    def from_mapping(data: Mapping[str, Any]) -> "RawLineItem":
        return RawLineItem(
            line_number=int(_pick(data, "line_number", "lineNumber", default=0)),
            product_code=str(_pick(data, "product_code", "productCode", "code", default="")),
            description=str(_pick(data, "description", "cleanDescription", default="")),
            raw_description=str(_pick(data, "raw_description", "rawDescription", default="")),
            quantity=int(_pick(data, "quantity", "qty", default=1)),
            consolidated=bool(_pick(data, "consolidated", default=False)),
            fixed_time_per_unit=_optional_float(_pick(data, "fixed_time_per_unit", "fixedTimePerUnit")),
        )

    def as_dict(self) -> MutableMapping[str, object]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class CatalogueEntry:
    """Known installation profile for one canonical product code."""

    key: str
    install_time_hours: float
    waste_volume_m3: float = 0.0
    is_heavy: bool = False
    aliases: frozenset[str] = frozenset()

    def with_alias(self, alias: str) -> "CatalogueEntry":
        return replace(self, aliases=self.aliases | {alias})

    def as_dict(self) -> MutableMapping[str, object]:
        payload: MutableMapping[str, object] = {
            "install_time_hours": self.install_time_hours,
            "waste_volume_m3": self.waste_volume_m3,
            "is_heavy": self.is_heavy,
        }
        if self.aliases:
            payload["aliases"] = sorted(self.aliases)
        return payload

    @staticmethod
    def from_mapping(key: str, data: Mapping[str, Any]) -> "CatalogueEntry":
        aliases = _pick(data, "aliases", default=()) or ()
        if isinstance(aliases, str):
            aliases = [aliases]
        return CatalogueEntry(
            key=str(key),
            install_time_hours=float(_pick(data, "install_time_hours", "installTimeHours", "time", default=0.0)),
            waste_volume_m3=float(_pick(data, "waste_volume_m3", "wasteVolumeM3", "waste", default=0.0)),
            is_heavy=bool(_pick(data, "is_heavy", "isHeavy", default=False)),
            aliases=frozenset(str(alias) for alias in aliases if str(alias).strip()),
        )


@dataclass(frozen=True, slots=True)
class UnresolvedPlaceholder:
    """Lookup outcome for a code that no catalogue layer recognised."""

    product_code: str
    normalized_code: str


CatalogueReference: TypeAlias = CatalogueEntry | UnresolvedPlaceholder


@dataclass(slots=True)
class ResolvedProduct:
    line_number: int
    product_code: str
    description: str
    raw_description: str
    quantity: int
    time_per_unit: float
    waste_per_unit: float
    is_heavy: bool
    source: ProductSource
    is_manually_edited: bool = False
    consolidated: bool = False
    catalogue_key: str | None = None

    @property
    def total_time(self) -> float:
        return self.quantity * self.time_per_unit

    @property
    def total_waste(self) -> float:
        return self.quantity * self.waste_per_unit

    @property
    def sort_key(self) -> tuple[int, int]:
        return (1 if self.consolidated else 0, self.line_number)

    @staticmethod
    def from_line(
        line: RawLineItem,
        entry: CatalogueEntry,
        source: ProductSource,
        *,
        time_per_unit: float | None = None,
    ) -> "ResolvedProduct":
        return ResolvedProduct(
            line_number=line.line_number,
            product_code=line.product_code,
            description=line.description,
            raw_description=line.raw_description,
            quantity=line.quantity,
            time_per_unit=entry.install_time_hours if time_per_unit is None else time_per_unit,
            waste_per_unit=entry.waste_volume_m3,
            is_heavy=entry.is_heavy,
            source=source,
            consolidated=line.consolidated,
            catalogue_key=entry.key,
        )

    @staticmethod
    def from_mapping(data: Mapping[str, Any]) -> "ResolvedProduct":
        source_raw = _pick(data, "source", default=ProductSource.CATALOGUE.value)
        return ResolvedProduct(
            line_number=int(_pick(data, "line_number", "lineNumber", default=0)),
            product_code=str(_pick(data, "product_code", "productCode", default="")),
            description=str(_pick(data, "description", default="")),
            raw_description=str(_pick(data, "raw_description", "rawDescription", default="")),
            quantity=int(_pick(data, "quantity", default=0)),
            time_per_unit=float(_pick(data, "time_per_unit", "timePerUnit", default=0.0)),
            waste_per_unit=float(_pick(data, "waste_per_unit", "wastePerUnit", default=0.0)),
            is_heavy=bool(_pick(data, "is_heavy", "isHeavy", default=False)),
            source=ProductSource(source_raw),
            is_manually_edited=bool(_pick(data, "is_manually_edited", "isManuallyEdited", default=False)),
            consolidated=bool(_pick(data, "consolidated", default=False)),
            catalogue_key=_pick(data, "catalogue_key", "catalogueKey"),
        )

    def as_dict(self) -> MutableMapping[str, object]:
        payload = asdict(self)
        payload["source"] = self.source.value
        payload["total_time"] = self.total_time
        payload["total_waste"] = self.total_waste
        return payload


@dataclass(slots=True)
class UnresolvedProduct:
    """Lines sharing one normalized code that still need a time from the user."""

    line_number: int
    product_code: str
    normalized_code: str
    description: str
    raw_description: str
    quantity: int
    line_numbers: tuple[int, ...] = ()

    def as_dict(self) -> MutableMapping[str, object]:
        payload = asdict(self)
        payload["line_numbers"] = list(self.line_numbers)
        return payload


@dataclass(slots=True)
class ResolutionResult:
    resolved: list[ResolvedProduct] = field(default_factory=list)
    unresolved: list[UnresolvedProduct] = field(default_factory=list)

    def as_dict(self) -> MutableMapping[str, object]:
        return {
            "resolved": [item.as_dict() for item in self.resolved],
            "unresolved": [item.as_dict() for item in self.unresolved],
        }


@dataclass(slots=True)
class QuoteDetails:
    """Quote identity plus nullable overrides; ``None`` lets the engine decide."""

    client: str = ""
    project: str = ""
    delivery_address: str = ""
    quote_ref: str = ""
    prepared_by: str = ""
    uplift_via_stairs: bool = False
    extended_uplift: bool = False
    specialist_reworking: bool = False
    manually_add_supervisor: bool = False
    override_fitter_count: int | None = None
    override_supervisor_count: int | None = None
    override_van_type: str | None = None
    override_waste_volume_m3: float | None = None
    daily_parking_charge: float | None = None
    custom_extended_uplift_days: int | None = None
    custom_extended_uplift_fitters: int | None = None
    uplift_supervisor: bool = False
    out_of_hours_days: int | None = None
    out_of_hours_type: str | None = None
    selected_vehicles: dict[str, int] = field(default_factory=dict)

    @staticmethod
    def from_mapping(data: Mapping[str, Any]) -> "QuoteDetails":
        vehicles = _pick(data, "selected_vehicles", "selectedVehicles", default={}) or {}
        return QuoteDetails(
            client=str(_pick(data, "client", default="")),
            project=str(_pick(data, "project", default="")),
            delivery_address=str(_pick(data, "delivery_address", "deliveryAddress", default="")),
            quote_ref=str(_pick(data, "quote_ref", "quoteRef", default="")),
            prepared_by=str(_pick(data, "prepared_by", "preparedBy", default="")),
            uplift_via_stairs=bool(_pick(data, "uplift_via_stairs", "upliftViaStairs", default=False)),
            extended_uplift=bool(_pick(data, "extended_uplift", "extendedUplift", default=False)),
            specialist_reworking=bool(_pick(data, "specialist_reworking", "specialistReworking", default=False)),
            manually_add_supervisor=bool(
                _pick(data, "manually_add_supervisor", "manuallyAddSupervisor", default=False)
            ),
            override_fitter_count=_optional_int(_pick(data, "override_fitter_count", "overrideFitterCount")),
            override_supervisor_count=_optional_int(
                _pick(data, "override_supervisor_count", "overrideSupervisorCount")
            ),
            override_van_type=_pick(data, "override_van_type", "overrideVanType"),
            override_waste_volume_m3=_optional_float(
                _pick(data, "override_waste_volume_m3", "overrideWasteVolumeM3")
            ),
            daily_parking_charge=_optional_float(_pick(data, "daily_parking_charge", "dailyParkingCharge")),
            custom_extended_uplift_days=_optional_int(
                _pick(data, "custom_extended_uplift_days", "customExtendedUpliftDays")
            ),
            custom_extended_uplift_fitters=_optional_int(
                _pick(data, "custom_extended_uplift_fitters", "customExtendedUpliftFitters")
            ),
            uplift_supervisor=bool(_pick(data, "uplift_supervisor", "upliftSupervisor", default=False)),
            out_of_hours_days=_optional_int(_pick(data, "out_of_hours_days", "outOfHoursDays")),
            out_of_hours_type=_pick(data, "out_of_hours_type", "outOfHoursType"),
            selected_vehicles={str(k): int(v) for k, v in dict(vehicles).items()},
        )

    def as_dict(self) -> MutableMapping[str, object]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class LabourResult:
    total_hours: float
    uplift_percent: float
    hours_after_uplift: float
    duration_buffer_percent: float
    buffered_hours: float


@dataclass(frozen=True, slots=True)
class CrewResult:
    fitters: int
    supervisors: int
    specialists: int
    installation_days: int
    extended_uplift_days: int
    total_days: int
    van_fitters: int
    on_foot_fitters: int
    heavy_items: int
    fitters_overridden: bool = False
    supervisors_overridden: bool = False

    @property
    def crew_size(self) -> int:
        return self.fitters + self.supervisors + self.specialists


@dataclass(frozen=True, slots=True)
class TransportLine:
    vehicle_id: str
    name: str
    quantity: int
    cost_per_day: float
    cost: float


@dataclass(frozen=True, slots=True)
class VehicleResult:
    van_type: str
    crew_seats: int
    capacity_m3: float
    day_rate: float
    van_count: int
    overridden: bool = False
    transport: tuple[TransportLine, ...] = ()


@dataclass(frozen=True, slots=True)
class WasteResult:
    total_volume_m3: float
    vehicle_capacity_m3: float
    loads_required: int
    flagged: bool
    overridden: bool = False


@dataclass(frozen=True, slots=True)
class PriceBreakdown:
    van_cost: float
    fitter_cost: float
    supervisor_cost: float
    labour_cost: float
    reworking_cost: float
    parking_cost: float
    transport_cost: float
    out_of_hours_multiplier: float
    out_of_hours_surcharge: float
    billable_days: int
    subtotal: float
    vat_rate_percent: float
    vat: float
    grand_total: float


@dataclass(frozen=True, slots=True)
class CalculationResults:
    labour: LabourResult
    crew: CrewResult
    vehicle: VehicleResult
    waste: WasteResult
    pricing: PriceBreakdown
    notes: Mapping[str, str]
    product_count: int
    total_quantity: int

    def as_dict(self) -> MutableMapping[str, object]:
        payload = asdict(self)
        payload["crew"]["crew_size"] = self.crew.crew_size
        payload["notes"] = dict(self.notes)
        return payload


__all__ = [
    "CalculationResults",
    "CatalogueEntry",
    "CatalogueReference",
    "CrewResult",
    "LabourResult",
    "PriceBreakdown",
    "ProductSource",
    "QuoteDetails",
    "RawLineItem",
    "ResolutionResult",
    "ResolvedProduct",
    "TransportLine",
    "UnresolvedPlaceholder",
    "UnresolvedProduct",
    "VehicleResult",
    "WasteResult",
]
