from smartquote.domain.models import RawLineItem
from smartquote.resolution.standardizer import clean_description, standardize, standardize_lines


def test_clean_description_wins_over_raw():
    line = RawLineItem(line_number=3, product_code="DSK-1", description="  Oak   desk ", raw_description="OAK DESK 1600")
    assert standardize(line) == "Line 3 – Oak desk"


def test_falls_back_to_raw_then_code():
    assert standardize(RawLineItem(line_number=1, product_code="DSK-1", raw_description="Desk")) == "Line 1 – Desk"
    assert standardize(RawLineItem(line_number=2, product_code=" DSK-1 ")) == "Line 2 – DSK-1"


def test_standardizing_twice_is_stable():
    line = RawLineItem(line_number=7, product_code="CHR-1", description="Task chair")
    once = standardize_lines([line])[0]
    twice = standardize_lines([once])[0]
    assert once.description == twice.description == "Line 7 – Task chair"


def test_clean_description_strips_existing_prefix():
    assert clean_description("Line 12 - Pedestal") == "Pedestal"
    assert clean_description(None) == ""
