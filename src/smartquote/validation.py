"""Range and required-field checks run before a calculation is trusted.

Validators return lists and never raise; callers decide whether a
non-empty list blocks export. :class:`QuoteValidationError` exists for the
callers that do want to block.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .config.loader import RulesConfig
from .domain.models import QuoteDetails, ResolvedProduct

MAX_NAME_LENGTH = 200
MAX_ADDRESS_LENGTH = 500
MAX_QUANTITY = 10_000
MAX_TIME_PER_UNIT = 100.0
MAX_WASTE_PER_UNIT = 10.0


@dataclass(slots=True)
class ValidationError:
    field: str
    message: str


@dataclass(slots=True)
class ValidationReport:
    errors: List[ValidationError]

    @property
    def valid(self) -> bool:
        return not self.errors


class QuoteValidationError(ValueError):
    """Raised by callers that refuse to proceed with an invalid quote."""

    def __init__(self, errors: Sequence[ValidationError]) -> None:
        self.errors = list(errors)
        super().__init__(format_validation_errors(self.errors))


# (field, label, unit suffix for the max message, upper bound)
_OVERRIDE_BOUNDS = (
    ("override_fitter_count", "Fitter count", "", 100),
    ("override_supervisor_count", "Supervisor count", "", 50),
    ("daily_parking_charge", "Parking charge", "£", 1000),
    ("override_waste_volume_m3", "Waste volume", " m³", 1000),
    ("custom_extended_uplift_days", "Uplift days", "", 365),
    ("custom_extended_uplift_fitters", "Uplift fitters", "", 50),
    ("out_of_hours_days", "Out-of-hours days", "", 365),
)


def _bound_text(unit: str, maximum: int) -> str:
    if unit == "£":
        return f"£{maximum}"
    return f"{maximum}{unit}"


def validate_quote_details(
    details: QuoteDetails,
    rules: Optional[RulesConfig] = None,
    *,
    total_days: Optional[int] = None,
) -> List[ValidationError]:
    errors: List[ValidationError] = []

    if not details.client or not details.client.strip():
        errors.append(ValidationError("client", "Client name is required"))
    elif len(details.client) > MAX_NAME_LENGTH:
        errors.append(ValidationError("client", f"Client name too long (max {MAX_NAME_LENGTH} characters)"))
    if not details.project or not details.project.strip():
        errors.append(ValidationError("project", "Project name is required"))
    elif len(details.project) > MAX_NAME_LENGTH:
        errors.append(ValidationError("project", f"Project name too long (max {MAX_NAME_LENGTH} characters)"))
    if details.delivery_address and len(details.delivery_address) > MAX_ADDRESS_LENGTH:
        errors.append(
            ValidationError("delivery_address", f"Delivery address too long (max {MAX_ADDRESS_LENGTH} characters)")
        )

    for field_name, label, unit, maximum in _OVERRIDE_BOUNDS:
        value = getattr(details, field_name)
        if value is None:
            continue
        if value < 0:
            errors.append(ValidationError(field_name, f"{label} cannot be negative"))
        elif value > maximum:
            errors.append(ValidationError(field_name, f"{label} seems unrealistic (max {_bound_text(unit, maximum)})"))

    ooh_days = details.out_of_hours_days or 0
    if ooh_days > 0 and not details.out_of_hours_type:
        errors.append(ValidationError("out_of_hours_type", "Out-of-hours type is required when out-of-hours days are set"))
    if total_days is not None and ooh_days > total_days:
        errors.append(ValidationError("out_of_hours_days", "Out-of-hours days exceed the total project days"))

    if rules is not None:
        if details.override_van_type and details.override_van_type not in {van.name for van in rules.vans}:
            errors.append(ValidationError("override_van_type", f"Unknown van type '{details.override_van_type}'"))
        if details.out_of_hours_type and details.out_of_hours_type not in rules.out_of_hours_multipliers:
            errors.append(
                ValidationError("out_of_hours_type", f"Unknown out-of-hours type '{details.out_of_hours_type}'")
            )
        if details.prepared_by and rules.preparers and details.prepared_by not in rules.preparers:
            errors.append(ValidationError("prepared_by", f"'{details.prepared_by}' is not a listed preparer"))
        for vehicle_id, quantity in details.selected_vehicles.items():
            if vehicle_id not in rules.vehicles:
                errors.append(ValidationError("selected_vehicles", f"Unknown vehicle '{vehicle_id}'"))
            elif quantity < 0:
                errors.append(ValidationError("selected_vehicles", f"Vehicle quantity for '{vehicle_id}' cannot be negative"))
    return errors


def validate_products(products: Sequence[ResolvedProduct]) -> List[ValidationError]:
    errors: List[ValidationError] = []
    if not products:
        return [ValidationError("products", "At least one product is required")]

    for index, product in enumerate(products):
        line = f"Product line {product.line_number}"
        if not product.product_code or not product.product_code.strip():
            errors.append(ValidationError(f"product_{index}_code", f"{line}: product code is required"))
        quantity = product.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            errors.append(ValidationError(f"product_{index}_quantity", f"{line}: quantity must be a whole number"))
        elif quantity <= 0:
            errors.append(ValidationError(f"product_{index}_quantity", f"{line}: quantity must be greater than 0"))
        elif quantity > MAX_QUANTITY:
            errors.append(
                ValidationError(f"product_{index}_quantity", f"{line}: quantity seems unrealistic (max {MAX_QUANTITY})")
            )
        if product.time_per_unit < 0:
            errors.append(ValidationError(f"product_{index}_time", f"{line}: time cannot be negative"))
        elif product.time_per_unit > MAX_TIME_PER_UNIT:
            errors.append(
                ValidationError(f"product_{index}_time", f"{line}: time per unit seems unrealistic (max 100 hours)")
            )
        if product.waste_per_unit < 0:
            errors.append(ValidationError(f"product_{index}_waste", f"{line}: waste volume cannot be negative"))
        elif product.waste_per_unit > MAX_WASTE_PER_UNIT:
            errors.append(
                ValidationError(f"product_{index}_waste", f"{line}: waste per unit seems unrealistic (max 10 m³)")
            )
    return errors


def validate_all(
    details: QuoteDetails,
    products: Sequence[ResolvedProduct],
    rules: Optional[RulesConfig] = None,
    *,
    total_days: Optional[int] = None,
) -> ValidationReport:
    errors = validate_quote_details(details, rules, total_days=total_days)
    errors.extend(validate_products(products))
    return ValidationReport(errors=errors)


def format_validation_errors(errors: Iterable[ValidationError]) -> str:
    items = list(errors)
    if not items:
        return ""
    if len(items) == 1:
        return items[0].message
    return "Multiple validation errors:\n" + "\n".join(f"• {error.message}" for error in items)


__all__ = [
    "QuoteValidationError",
    "ValidationError",
    "ValidationReport",
    "format_validation_errors",
    "validate_all",
    "validate_products",
    "validate_quote_details",
]
