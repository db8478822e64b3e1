"""Quote calculation: labour, crew, vehicle, waste and price.

``calculate_all`` is a pure function of ``(products, details, rules)``. It
caches nothing and performs no I/O, so callers simply re-run it whenever
any input changes.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Sequence

from ..config.loader import RulesConfig, VanClass
from ..domain.models import (
    CalculationResults,
    CrewResult,
    LabourResult,
    PriceBreakdown,
    QuoteDetails,
    ResolvedProduct,
    TransportLine,
    VehicleResult,
    WasteResult,
)

logger = logging.getLogger(__name__)

_EPSILON = 1e-9


def _ceil(value: float) -> int:
    # float sums like 2.0000000000000004 must not add a whole extra day
    return int(math.ceil(value - _EPSILON)) if value > 0 else 0


def round_to_increment(value: float, increment: float) -> float:
    """Round half-up to the nearest ``increment``."""

    if increment <= 0:
        return value
    return round(math.floor(value / increment + 0.5 + _EPSILON) * increment, 6)


def _money(value: float) -> float:
    return round(value + 0.0, 2)


def calculate_labour(products: Sequence[ResolvedProduct], details: QuoteDetails, rules: RulesConfig) -> LabourResult:
    labour = rules.labour
    total_hours = sum(product.total_time for product in products)

    uplift_percent = 0.0
    if details.uplift_via_stairs:
        uplift_percent += labour.uplift_stairs_percent
    if details.extended_uplift:
        uplift_percent += labour.extended_uplift_percent
    hours_after_uplift = total_hours * (1 + uplift_percent / 100)

    buffer_percent = labour.duration_buffer_percent
    for floor in labour.duration_buffer_floors:
        if hours_after_uplift > floor.above_hours:
            buffer_percent = max(buffer_percent, floor.minimum_percent)

    buffered = round_to_increment(
        hours_after_uplift * (1 + buffer_percent / 100),
        labour.rounding_increment_hours,
    )
    return LabourResult(
        total_hours=round(total_hours, 6),
        uplift_percent=uplift_percent,
        hours_after_uplift=round(hours_after_uplift, 6),
        duration_buffer_percent=buffer_percent,
        buffered_hours=buffered,
    )


def optimal_crew(buffered_hours: float, hours_per_day: float, max_fitters: int) -> tuple[int, int]:
    """Return ``(fitters, days)``: the fewest days within ``max_fitters``, then the fewest fitters."""

    fitter_days = buffered_hours / hours_per_day
    if fitter_days <= 0:
        return 0, 0
    for days in range(1, _ceil(fitter_days) + 1):
        required = _ceil(fitter_days / days)
        if required <= max_fitters:
            return required, days
    return 1, _ceil(fitter_days)


def _days_for(buffered_hours: float, fitters: int, hours_per_day: float) -> int:
    productive = fitters if fitters > 0 else 1
    return _ceil(buffered_hours / (productive * hours_per_day))


def heavy_item_count(products: Iterable[ResolvedProduct]) -> int:
    return sum(product.quantity for product in products if product.is_heavy)


def calculate_crew(
    labour: LabourResult,
    products: Sequence[ResolvedProduct],
    details: QuoteDetails,
    rules: RulesConfig,
    *,
    van: VanClass | None = None,
) -> CrewResult:
    config = rules.labour
    heavy = heavy_item_count(products)

    if details.override_fitter_count is not None:
        fitters = int(details.override_fitter_count)
        installation_days = _days_for(labour.buffered_hours, fitters, config.hours_per_day)
    else:
        fitters, installation_days = optimal_crew(labour.buffered_hours, config.hours_per_day, config.max_fitters)
        if heavy and 0 < fitters < config.heavy_item_min_fitters:
            fitters = min(config.heavy_item_min_fitters, config.max_fitters)
            installation_days = _days_for(labour.buffered_hours, fitters, config.hours_per_day)

    extended_days = details.custom_extended_uplift_days or 0
    if extended_days < 0:
        extended_days = 0
    total_days = installation_days + extended_days

    if details.override_supervisor_count is not None:
        supervisors = int(details.override_supervisor_count)
    else:
        needs_supervisor = total_days > config.supervisor_threshold_days or details.manually_add_supervisor
        supervisors = 1 if needs_supervisor else 0

    seats = van.crew_seats if van is not None else 1
    van_fitters = min(fitters, seats)
    return CrewResult(
        fitters=fitters,
        supervisors=supervisors,
        specialists=1 if details.specialist_reworking else 0,
        installation_days=installation_days,
        extended_uplift_days=extended_days,
        total_days=total_days,
        van_fitters=van_fitters,
        on_foot_fitters=fitters - van_fitters,
        heavy_items=heavy,
        fitters_overridden=details.override_fitter_count is not None,
        supervisors_overridden=details.override_supervisor_count is not None,
    )


def total_waste_volume(products: Sequence[ResolvedProduct], details: QuoteDetails) -> tuple[float, bool]:
    if details.override_waste_volume_m3 is not None:
        return float(details.override_waste_volume_m3), True
    return round(sum(product.total_waste for product in products), 6), False


def select_van(rules: RulesConfig, *, required_seats: int, waste_volume_m3: float) -> VanClass:
    """Cheapest van with enough seats that carries the waste in one load.

    Falls back to the largest seat-compatible van, then to the van with the
    most seats.
    """

    by_rate = sorted(rules.vans, key=lambda van: van.day_rate)
    seated = [van for van in by_rate if van.crew_seats >= required_seats]
    if not seated:
        return max(rules.vans, key=lambda van: van.crew_seats)
    for van in seated:
        if van.capacity_m3 >= waste_volume_m3:
            return van
    return max(seated, key=lambda van: van.capacity_m3)


def _resolve_van(
    products: Sequence[ResolvedProduct],
    details: QuoteDetails,
    rules: RulesConfig,
    waste_volume: float,
) -> tuple[VanClass, bool]:
    if details.override_van_type:
        try:
            return rules.van(details.override_van_type), True
        except KeyError:
            logger.warning(
                "Ignoring unknown van override %s",
                details.override_van_type,
                extra={"event": "calculation.unknown_van_override"},
            )
    required_seats = rules.labour.heavy_item_min_fitters if heavy_item_count(products) else 1
    return select_van(rules, required_seats=required_seats, waste_volume_m3=waste_volume), False


def calculate_waste(volume: float, overridden: bool, van: VanClass, rules: RulesConfig) -> WasteResult:
    loads = _ceil(volume / van.capacity_m3) if volume > 0 else 0
    return WasteResult(
        total_volume_m3=volume,
        vehicle_capacity_m3=van.capacity_m3,
        loads_required=loads,
        flagged=loads > rules.waste.flag_above_loads,
        overridden=overridden,
    )


def _transport_lines(details: QuoteDetails, rules: RulesConfig, billable_days: int) -> List[TransportLine]:
    lines: List[TransportLine] = []
    for vehicle_id, quantity in sorted(details.selected_vehicles.items()):
        vehicle = rules.vehicles.get(vehicle_id)
        if vehicle is None or quantity <= 0:
            continue
        lines.append(
            TransportLine(
                vehicle_id=vehicle_id,
                name=vehicle.name,
                quantity=quantity,
                cost_per_day=vehicle.cost_per_day,
                cost=_money(vehicle.cost_per_day * quantity * billable_days),
            )
        )
    return lines


def calculate_pricing(
    crew: CrewResult,
    van: VanClass,
    van_count: int,
    transport: Sequence[TransportLine],
    details: QuoteDetails,
    rules: RulesConfig,
) -> PriceBreakdown:
    pricing = rules.pricing
    install_days = crew.installation_days
    uplift_days = crew.extended_uplift_days
    billable_days = crew.total_days

    van_cost = van.day_rate * install_days if van_count else 0.0
    fitter_cost = crew.on_foot_fitters * pricing.additional_fitter_day_rate * install_days
    supervisor_cost = crew.supervisors * pricing.supervisor_day_rate * install_days

    if details.extended_uplift and uplift_days > 0:
        if details.custom_extended_uplift_fitters is not None:
            uplift_fitters = details.custom_extended_uplift_fitters
        else:
            uplift_fitters = min(rules.labour.extended_uplift_max_fitters, crew.fitters)
        if uplift_fitters > 0:
            van_cost += van.day_rate * uplift_days
        uplift_on_foot = max(0, uplift_fitters - van.crew_seats)
        fitter_cost += uplift_on_foot * pricing.additional_fitter_day_rate * uplift_days
        if details.uplift_supervisor:
            supervisor_cost += pricing.supervisor_day_rate * uplift_days

    labour_cost = van_cost + fitter_cost + supervisor_cost
    reworking_cost = pricing.specialist_reworking_flat_rate if details.specialist_reworking else 0.0
    parking_rate = (
        details.daily_parking_charge
        if details.daily_parking_charge is not None
        else pricing.default_daily_parking_charge
    )
    parking_cost = parking_rate * billable_days
    transport_cost = sum(line.cost for line in transport)

    multiplier = 1.0
    surcharge = 0.0
    out_of_hours_days = details.out_of_hours_days or 0
    if out_of_hours_days > 0 and details.out_of_hours_type and billable_days > 0:
        multiplier = rules.out_of_hours_multipliers.get(details.out_of_hours_type, 1.0)
        ratio = min(1.0, out_of_hours_days / billable_days)
        # only labour is uplifted; parking, transport and reworking are flat
        surcharge = labour_cost * ratio * (multiplier - 1)

    subtotal = labour_cost + surcharge + reworking_cost + parking_cost + transport_cost
    vat = subtotal * pricing.vat_rate_percent / 100
    return PriceBreakdown(
        van_cost=_money(van_cost),
        fitter_cost=_money(fitter_cost),
        supervisor_cost=_money(supervisor_cost),
        labour_cost=_money(labour_cost),
        reworking_cost=_money(reworking_cost),
        parking_cost=_money(parking_cost),
        transport_cost=_money(transport_cost),
        out_of_hours_multiplier=multiplier,
        out_of_hours_surcharge=_money(surcharge),
        billable_days=billable_days,
        subtotal=_money(subtotal),
        vat_rate_percent=pricing.vat_rate_percent,
        vat=_money(vat),
        grand_total=_money(subtotal + vat),
    )


def build_notes(pricing: PriceBreakdown, details: QuoteDetails, rules: RulesConfig) -> Dict[str, str]:
    parking_rate = (
        details.daily_parking_charge
        if details.daily_parking_charge is not None
        else rules.pricing.default_daily_parking_charge
    )
    if pricing.parking_cost > 0:
        parking = f"Daily charge of £{parking_rate:.2f} applied."
    else:
        parking = "To be confirmed/arranged by client."
    return {
        "parking": parking,
        "mileage": "Mileage to be calculated based on distance from base.",
        "ulez": "ULEZ/Congestion charges will be added if applicable.",
        "delivery": "Standard delivery to ground floor included. Additional charges may apply for complex logistics.",
    }


def calculate_all(
    products: Sequence[ResolvedProduct],
    details: QuoteDetails,
    rules: RulesConfig,
) -> CalculationResults:
    products = list(products)
    labour = calculate_labour(products, details, rules)
    waste_volume, waste_overridden = total_waste_volume(products, details)
    van, van_overridden = _resolve_van(products, details, rules, waste_volume)
    crew = calculate_crew(labour, products, details, rules, van=van)
    van_count = 1 if crew.van_fitters > 0 else 0
    transport = _transport_lines(details, rules, crew.total_days)
    vehicle = VehicleResult(
        van_type=van.name,
        crew_seats=van.crew_seats,
        capacity_m3=van.capacity_m3,
        day_rate=van.day_rate,
        van_count=van_count,
        overridden=van_overridden,
        transport=tuple(transport),
    )
    waste = calculate_waste(waste_volume, waste_overridden, van, rules)
    pricing = calculate_pricing(crew, van, van_count, transport, details, rules)
    return CalculationResults(
        labour=labour,
        crew=crew,
        vehicle=vehicle,
        waste=waste,
        pricing=pricing,
        notes=build_notes(pricing, details, rules),
        product_count=len(products),
        total_quantity=sum(product.quantity for product in products),
    )


__all__ = [
    "calculate_all",
    "calculate_crew",
    "calculate_labour",
    "calculate_pricing",
    "calculate_waste",
    "heavy_item_count",
    "optimal_crew",
    "round_to_increment",
    "select_van",
    "total_waste_volume",
]
