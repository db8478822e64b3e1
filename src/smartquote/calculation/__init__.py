"""Labour, crew, vehicle, waste and price calculation."""

from .engine import (
    calculate_all,
    calculate_crew,
    calculate_labour,
    calculate_pricing,
    calculate_waste,
    optimal_crew,
    round_to_increment,
    select_van,
)

__all__ = [
    "calculate_all",
    "calculate_crew",
    "calculate_labour",
    "calculate_pricing",
    "calculate_waste",
    "optimal_crew",
    "round_to_increment",
    "select_van",
]
