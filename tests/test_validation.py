from dataclasses import replace

import pytest

from smartquote.config.loader import default_rules
from smartquote.domain.models import ProductSource, QuoteDetails, ResolvedProduct
from smartquote.validation import (
    QuoteValidationError,
    ValidationError,
    format_validation_errors,
    validate_all,
    validate_products,
    validate_quote_details,
)


def _product(**overrides) -> ResolvedProduct:
    values = dict(
        line_number=1,
        product_code="DSK-1600",
        description="Desk",
        raw_description="",
        quantity=1,
        time_per_unit=0.75,
        waste_per_unit=0.3,
        is_heavy=False,
        source=ProductSource.CATALOGUE,
    )
    values.update(overrides)
    return ResolvedProduct(**values)


def _details(**overrides) -> QuoteDetails:
    return QuoteDetails(client="Acme", project="Level 3 fit-out", **overrides)


def test_valid_quote_has_no_errors():
    report = validate_all(_details(), [_product()], default_rules())
    assert report.valid
    assert report.errors == []


def test_client_and_project_are_required():
    fields = [error.field for error in validate_quote_details(QuoteDetails(client="  "))]
    assert fields == ["client", "project"]


def test_quantity_bounds():
    assert validate_products([_product(quantity=1)]) == []
    errors = validate_products([_product(quantity=0)])
    assert [error.field for error in errors] == ["product_0_quantity"]
    assert "greater than 0" in errors[0].message


@pytest.mark.parametrize(
    "field_name",
    [
        "override_fitter_count",
        "override_supervisor_count",
        "daily_parking_charge",
        "override_waste_volume_m3",
        "custom_extended_uplift_days",
        "custom_extended_uplift_fitters",
        "out_of_hours_days",
    ],
)
def test_negative_overrides_are_rejected(field_name):
    errors = validate_quote_details(_details(**{field_name: -1}))
    assert any(error.field == field_name and "negative" in error.message for error in errors)


def test_unrealistic_values():
    errors = validate_quote_details(_details(daily_parking_charge=5000))
    assert errors[0].message == "Parking charge seems unrealistic (max £1000)"

    product_errors = validate_products([_product(time_per_unit=250.0, waste_per_unit=-1.0)])
    assert [error.field for error in product_errors] == ["product_0_time", "product_0_waste"]


def test_out_of_hours_checks():
    missing_type = validate_quote_details(_details(out_of_hours_days=2))
    assert [error.field for error in missing_type] == ["out_of_hours_type"]

    too_many = validate_quote_details(
        _details(out_of_hours_days=3, out_of_hours_type="saturday"),
        default_rules(),
        total_days=2,
    )
    assert [error.field for error in too_many] == ["out_of_hours_days"]


def test_unknown_rule_references():
    details = _details(override_van_type="lorry", out_of_hours_type="xmas", out_of_hours_days=1)
    details.selected_vehicles = {"hovercraft": 1}
    messages = [error.message for error in validate_quote_details(details, default_rules())]
    assert "Unknown van type 'lorry'" in messages
    assert "Unknown out-of-hours type 'xmas'" in messages
    assert "Unknown vehicle 'hovercraft'" in messages



def test_prepared_by_must_be_a_listed_preparer():
    rules = default_rules()
    assert validate_quote_details(_details(prepared_by="Estimating Team"), rules) == []
    assert validate_quote_details(_details(), rules) == []

    errors = validate_quote_details(_details(prepared_by="Someone Else"), rules)
    assert errors == [ValidationError("prepared_by", "'Someone Else' is not a listed preparer")]

    # an empty list accepts anyone
    open_rules = replace(rules, preparers=())
    assert validate_quote_details(_details(prepared_by="Someone Else"), open_rules) == []

def test_empty_product_list():
    errors = validate_products([])
    assert errors == [ValidationError("products", "At least one product is required")]


def test_format_validation_errors():
    assert format_validation_errors([]) == ""
    assert format_validation_errors([ValidationError("client", "Client name is required")]) == "Client name is required"
    text = format_validation_errors(
        [ValidationError("client", "Client name is required"), ValidationError("project", "Project name is required")]
    )
    assert text.splitlines() == [
        "Multiple validation errors:",
        "• Client name is required",
        "• Project name is required",
    ]


def test_quote_validation_error_carries_errors():
    report = validate_all(QuoteDetails(), [])
    error = QuoteValidationError(report.errors)
    assert len(error.errors) == 3
    assert str(error).startswith("Multiple validation errors:")
