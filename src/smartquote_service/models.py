from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from smartquote.catalogue import LearnOutcome
from smartquote.domain.models import (
    CatalogueEntry,
    ProductSource,
    QuoteDetails,
    RawLineItem,
    ResolvedProduct,
    UnresolvedProduct,
)


class LineItemIn(BaseModel):
    """One extracted or manually entered quote line."""

    line_number: int = Field(ge=0)
    product_code: str
    description: str = ""
    raw_description: str = ""
    quantity: int = 1

    def to_domain(self) -> RawLineItem:
        return RawLineItem(
            line_number=self.line_number,
            product_code=self.product_code,
            description=self.description,
            raw_description=self.raw_description,
            quantity=self.quantity,
        )


class ManualEntryIn(BaseModel):
    """Time a user supplied for a code the catalogue does not know."""

    product_code: str = Field(min_length=1)
    install_time_hours: float = Field(ge=0)
    waste_volume_m3: Optional[float] = Field(default=None, ge=0)
    is_heavy: bool = False


class ResolvedProductModel(BaseModel):
    line_number: int
    product_code: str
    description: str = ""
    raw_description: str = ""
    quantity: int
    time_per_unit: float
    waste_per_unit: float = 0.0
    is_heavy: bool = False
    source: ProductSource = ProductSource.CATALOGUE
    is_manually_edited: bool = False
    consolidated: bool = False
    catalogue_key: Optional[str] = None
    total_time: Optional[float] = None
    total_waste: Optional[float] = None

    @classmethod
    def from_domain(cls, product: ResolvedProduct) -> "ResolvedProductModel":
        return cls(**product.as_dict())

    def to_domain(self) -> ResolvedProduct:
        return ResolvedProduct(
            line_number=self.line_number,
            product_code=self.product_code,
            description=self.description,
            raw_description=self.raw_description,
            quantity=self.quantity,
            time_per_unit=self.time_per_unit,
            waste_per_unit=self.waste_per_unit,
            is_heavy=self.is_heavy,
            source=self.source,
            is_manually_edited=self.is_manually_edited,
            consolidated=self.consolidated,
            catalogue_key=self.catalogue_key,
        )


class UnresolvedProductModel(BaseModel):
    line_number: int
    product_code: str
    normalized_code: str
    description: str = ""
    raw_description: str = ""
    quantity: int
    line_numbers: List[int] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, product: UnresolvedProduct) -> "UnresolvedProductModel":
        return cls(**product.as_dict())


class DroppedLineModel(BaseModel):
    line_number: int
    product_code: str
    reason: str


class ResolveRequest(BaseModel):
    lines: List[LineItemIn]
    manual_entries: List[ManualEntryIn] = Field(default_factory=list)


class ResolveResponse(BaseModel):
    resolved: List[ResolvedProductModel] = Field(default_factory=list)
    unresolved: List[UnresolvedProductModel] = Field(default_factory=list)
    dropped: List[DroppedLineModel] = Field(default_factory=list)


class QuoteDetailsModel(BaseModel):
    client: str = ""
    project: str = ""
    delivery_address: str = ""
    quote_ref: str = ""
    prepared_by: str = ""
    uplift_via_stairs: bool = False
    extended_uplift: bool = False
    specialist_reworking: bool = False
    manually_add_supervisor: bool = False
    override_fitter_count: Optional[int] = None
    override_supervisor_count: Optional[int] = None
    override_van_type: Optional[str] = None
    override_waste_volume_m3: Optional[float] = None
    daily_parking_charge: Optional[float] = None
    custom_extended_uplift_days: Optional[int] = None
    custom_extended_uplift_fitters: Optional[int] = None
    uplift_supervisor: bool = False
    out_of_hours_days: Optional[int] = None
    out_of_hours_type: Optional[str] = None
    selected_vehicles: Dict[str, int] = Field(default_factory=dict)

    def to_domain(self) -> QuoteDetails:
        return QuoteDetails(**self.model_dump())


class QuoteRequest(BaseModel):
    """Either already-resolved ``products`` or raw ``lines`` to resolve first."""

    details: QuoteDetailsModel = Field(default_factory=QuoteDetailsModel)
    products: Optional[List[ResolvedProductModel]] = None
    lines: Optional[List[LineItemIn]] = None
    manual_entries: List[ManualEntryIn] = Field(default_factory=list)
    strict: bool = False


class ValidationErrorModel(BaseModel):
    field: str
    message: str


class ValidationResponse(BaseModel):
    valid: bool
    errors: List[ValidationErrorModel] = Field(default_factory=list)
    message: str = ""


class CalculationResponse(BaseModel):
    results: Dict[str, Any]
    products: List[ResolvedProductModel] = Field(default_factory=list)
    unresolved: List[UnresolvedProductModel] = Field(default_factory=list)
    validation: ValidationResponse


class CatalogueEntryModel(BaseModel):
    key: str
    install_time_hours: float
    waste_volume_m3: float = 0.0
    is_heavy: bool = False
    aliases: List[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, entry: CatalogueEntry) -> "CatalogueEntryModel":
        return cls(
            key=entry.key,
            install_time_hours=entry.install_time_hours,
            waste_volume_m3=entry.waste_volume_m3,
            is_heavy=entry.is_heavy,
            aliases=sorted(entry.aliases),
        )


class CatalogueResponse(BaseModel):
    count: int
    entries: List[CatalogueEntryModel] = Field(default_factory=list)
    session_only: List[str] = Field(default_factory=list)


class LearnRequest(BaseModel):
    product_code: str = Field(min_length=1)
    install_time_hours: float = Field(ge=0)
    waste_volume_m3: Optional[float] = Field(default=None, ge=0)
    is_heavy: bool = False


class AliasRequest(BaseModel):
    code: str = Field(min_length=1)


class LearnResponse(BaseModel):
    key: str
    entry: CatalogueEntryModel
    created: bool
    persisted: Optional[bool] = None
    session_only: bool = False
    error: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: LearnOutcome) -> "LearnResponse":
        return cls(
            key=outcome.key,
            entry=CatalogueEntryModel.from_domain(outcome.entry),
            created=outcome.created,
            persisted=outcome.persisted,
            session_only=outcome.session_only,
            error=outcome.error,
        )


class NormalizeResponse(BaseModel):
    input: str
    normalized: str
    rule_ids: List[str] = Field(default_factory=list)
    descriptions: List[str] = Field(default_factory=list)
    rules_version: str
    match: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    ok: bool
    version: str
    catalogue_entries: int
    session_only_entries: int = 0
    rules_path: str = ""


__all__ = [
    "AliasRequest",
    "CalculationResponse",
    "CatalogueEntryModel",
    "CatalogueResponse",
    "DroppedLineModel",
    "HealthResponse",
    "LearnRequest",
    "LearnResponse",
    "LineItemIn",
    "ManualEntryIn",
    "NormalizeResponse",
    "QuoteDetailsModel",
    "QuoteRequest",
    "ResolveRequest",
    "ResolveResponse",
    "ResolvedProductModel",
    "UnresolvedProductModel",
    "ValidationErrorModel",
    "ValidationResponse",
]
