"""Domain records shared by the resolver, calculation engine and services."""

from .models import (
    CalculationResults,
    CatalogueEntry,
    CatalogueReference,
    CrewResult,
    LabourResult,
    PriceBreakdown,
    ProductSource,
    QuoteDetails,
    RawLineItem,
    ResolutionResult,
    ResolvedProduct,
    TransportLine,
    UnresolvedPlaceholder,
    UnresolvedProduct,
    VehicleResult,
    WasteResult,
)

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
