from smartquote.config.loader import PowerConsolidationConfig, default_rules
from smartquote.domain.models import RawLineItem
from smartquote.resolution.consolidator import PowerConsolidator, consolidate


def _line(number: int, code: str, description: str, quantity: int) -> RawLineItem:
    return RawLineItem(line_number=number, product_code=code, raw_description=description, quantity=quantity)


def test_power_quantity_is_conserved():
    lines = [
        _line(1, "DSK-1", "Oak desk", 4),
        _line(2, "POWER-A", "Power module 2x UK", 2),
        _line(3, "PB-6", "Power bar", 1),
        _line(4, "SL-1", "Starter lead 1.5m", 5),
    ]
    result = consolidate(lines, default_rules().power)
    assert result.consolidated is not None
    assert result.consolidated.quantity == 8
    assert sum(line.quantity for line in result.merged) == 8
    assert result.lines == [lines[0]]


def test_consolidated_line_shape():
    config = default_rules().power
    result = consolidate([_line(5, "POWER-A", "Power module", 3)], config)
    line = result.consolidated
    assert line is not None
    assert line.product_code == "POWER-MODULE"
    assert line.line_number == 999
    assert line.consolidated is True
    assert line.fixed_time_per_unit == 0.2
    assert line.description == "Combined Power (all modules, trays excluded)"
    assert result.all_lines()[-1] is line


def test_cable_trays_are_never_merged():
    lines = [_line(1, "CT-1", "Cable tray for power module", 2)]
    result = consolidate(lines, default_rules().power)
    assert result.consolidated is None
    assert result.lines == lines


def test_no_power_lines_leaves_input_unchanged():
    lines = [_line(1, "DSK-1", "Oak desk", 1), _line(2, "CHR-1", "Task chair", 6)]
    result = consolidate(lines, default_rules().power)
    assert result.consolidated is None
    assert result.all_lines() == lines


def test_predicate_is_configurable():
    config = PowerConsolidationConfig(predicate=r"^POWER-", exclusion=r"\bcable\s*tray\b")
    consolidator = PowerConsolidator(config)
    assert consolidator.is_power_line(_line(1, "POWER-B", "", 1))
    assert not consolidator.is_power_line(_line(2, "DSK-1", "Desk with power", 1))
