import pytest

from smartquote.config.loader import PowerConsolidationConfig, default_rules
from smartquote.domain.models import CatalogueEntry, ProductSource, RawLineItem, UnresolvedProduct
from smartquote.resolution.consolidator import consolidate
from smartquote.resolution.resolver import ProductResolver, mark_edited, merge_resolved, resolve


def _entry(key: str, hours: float, waste: float = 0.1, heavy: bool = False) -> CatalogueEntry:
    return CatalogueEntry(key=key, install_time_hours=hours, waste_volume_m3=waste, is_heavy=heavy)


@pytest.fixture()
def catalogue():
    return {
        "FLX 4P": _entry("FLX 4P", 1.5, 0.5),
        "FLX-COWORK-4P-L2400": _entry("FLX-COWORK-4P-L2400", 1.8, 0.6),
        "POWER-MODULE": _entry("POWER-MODULE", 0.2, 0.0),
        "DSK-1600": _entry("DSK-1600", 0.75, 0.3),
    }


@pytest.fixture()
def resolver():
    return ProductResolver.from_rules(default_rules())


def test_end_to_end_power_and_family(catalogue):
    power = PowerConsolidationConfig(predicate=r"^POWER-", exclusion=r"\bcable\s*tray\b")
    lines = [
        RawLineItem(line_number=1, product_code="FLX-4P-2816-A", quantity=3),
        RawLineItem(line_number=2, product_code="POWER-A", quantity=2),
        RawLineItem(line_number=3, product_code="POWER-B", quantity=1),
    ]
    prepared = consolidate(lines, power).all_lines()
    result = resolve(prepared, catalogue)

    assert result.unresolved == []
    assert len(result.resolved) == 2
    flx, combined = result.resolved
    assert flx.catalogue_key == "FLX 4P"
    assert flx.quantity == 3
    assert flx.total_time == pytest.approx(4.5)
    assert combined.product_code == "POWER-MODULE"
    assert combined.consolidated is True
    assert combined.quantity == 3
    assert combined.total_time == pytest.approx(0.6)


def test_partition_accounts_for_every_quantity(resolver, catalogue):
    lines = [
        RawLineItem(line_number=1, product_code="DSK-1600", quantity=2),
        RawLineItem(line_number=2, product_code="abc-1", quantity=1),
        RawLineItem(line_number=3, product_code="ABC 1", quantity=4),
        RawLineItem(line_number=4, product_code="XYZ", quantity=5),
        RawLineItem(line_number=5, product_code="dsk 1600", quantity=1),
    ]
    result = resolver.resolve(lines, catalogue)

    resolved_qty = sum(product.quantity for product in result.resolved)
    unresolved_qty = sum(product.quantity for product in result.unresolved)
    assert resolved_qty + unresolved_qty == sum(line.quantity for line in lines)

    unresolved_codes = {product.normalized_code for product in result.unresolved}
    assert unresolved_codes == {"ABC1", "XYZ"}


def test_unresolved_lines_aggregate_by_normalized_code(resolver, catalogue):
    lines = [
        RawLineItem(line_number=2, product_code="abc-1", quantity=1, description="Widget"),
        RawLineItem(line_number=6, product_code="ABC 1", quantity=4),
    ]
    result = resolver.resolve(lines, catalogue)
    assert result.resolved == []
    assert result.unresolved == [
        UnresolvedProduct(
            line_number=2,
            product_code="abc-1",
            normalized_code="ABC1",
            description="Widget",
            raw_description="",
            quantity=5,
            line_numbers=(2, 6),
        )
    ]


def test_lookup_precedence(resolver, catalogue):
    line = RawLineItem(line_number=1, product_code="DSK-1600", quantity=1)
    session = {"DSK-1600": _entry("DSK-1600", 1.0)}
    manual = {"dsk 1600": _entry("dsk 1600", 2.0)}

    assert resolver.resolve([line], catalogue).resolved[0].source is ProductSource.CATALOGUE

    learned = resolver.resolve([line], catalogue, session).resolved[0]
    assert learned.source is ProductSource.LEARNED
    assert learned.time_per_unit == 1.0

    typed = resolver.resolve([line], catalogue, session, manual).resolved[0]
    assert typed.source is ProductSource.USER_INPUTTED
    assert typed.time_per_unit == 2.0


def test_edit_layers_do_not_use_family_patterns(resolver, catalogue):
    manual = {"FLX 4P": _entry("FLX 4P", 9.0)}
    line = RawLineItem(line_number=1, product_code="FLX-4P-2816-A", quantity=1)
    product = resolver.resolve([line], catalogue, manual_edits=manual).resolved[0]
    assert product.source is ProductSource.CATALOGUE
    assert product.time_per_unit == 1.5


def test_fixed_time_line_resolves_without_catalogue_entry(resolver):
    line = RawLineItem(
        line_number=999,
        product_code="POWER-MODULE",
        quantity=4,
        consolidated=True,
        fixed_time_per_unit=0.2,
    )
    product = resolver.resolve([line], {}).resolved[0]
    assert product.time_per_unit == 0.2
    assert product.waste_per_unit == default_rules().waste.default_volume_per_unit_m3


def test_time_adjustments_apply_after_catalogue_hit(resolver):
    catalogue = {"GLOW-20": _entry("GLOW-20", 0.5)}
    line = RawLineItem(line_number=1, product_code="GLOW-20", raw_description="Glow lamp", quantity=2)
    product = resolver.resolve([line], catalogue).resolved[0]
    assert product.time_per_unit == 0.35
    assert product.total_time == pytest.approx(0.7)


def test_resolved_products_sort_by_line_with_consolidated_last(resolver, catalogue):
    lines = [
        RawLineItem(line_number=999, product_code="POWER-MODULE", consolidated=True, fixed_time_per_unit=0.2),
        RawLineItem(line_number=1000, product_code="DSK-1600"),
        RawLineItem(line_number=4, product_code="FLX 4P"),
    ]
    result = resolver.resolve(lines, catalogue)
    assert [p.line_number for p in result.resolved] == [4, 1000, 999]


def test_residual_resolution_and_merge(resolver, catalogue):
    first = resolver.resolve(
        [
            RawLineItem(line_number=1, product_code="DSK-1600", quantity=1),
            RawLineItem(line_number=2, product_code="NEW-1", quantity=3),
        ],
        catalogue,
    )
    assert [p.product_code for p in first.unresolved] == ["NEW-1"]

    manual = {"NEW-1": _entry("NEW-1", 0.6)}
    second = resolver.resolve_residual(first.unresolved, manual)
    assert second.unresolved == []
    assert second.resolved[0].source is ProductSource.USER_INPUTTED
    assert second.resolved[0].quantity == 3

    merged = merge_resolved(first.resolved, second.resolved)
    assert [p.product_code for p in merged] == ["DSK-1600", "NEW-1"]


def test_merge_prefers_later_group_for_same_line(resolver, catalogue):
    original = resolver.resolve([RawLineItem(line_number=1, product_code="DSK-1600")], catalogue).resolved
    edited = [mark_edited(original[0], time_per_unit=2.0)]
    merged = merge_resolved(original, edited)
    assert len(merged) == 1
    assert merged[0].time_per_unit == 2.0
    assert merged[0].is_manually_edited is True
    assert merged[0].waste_per_unit == original[0].waste_per_unit
