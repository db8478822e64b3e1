from __future__ import annotations

import copy
import importlib.resources
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, cast

import yaml

CONFIG_ENV_VAR = "SMARTQUOTE_CONFIG"

_CONFIG_FILENAME = "config.yaml"
_DEFAULT_CONFIG_RESOURCE = "default_config.yaml"
_RESOURCE_PACKAGE = "smartquote.resources"

# line fields a time adjustment rule can test
ADJUSTMENT_FIELDS = ("code", "description")


class ConfigError(Exception):
    """Raised when the configuration file is malformed or invalid."""


def _load_default_config() -> Dict[str, Any]:
    resource = importlib.resources.files(_RESOURCE_PACKAGE) / _DEFAULT_CONFIG_RESOURCE
    data = yaml.safe_load(resource.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigError("default_config.yaml must contain a mapping at the top level")
    return cast(Dict[str, Any], data)


_DEFAULT_CONFIG_DATA: Dict[str, Any] = _load_default_config()


def default_config_path() -> Path:
    return Path.home() / ".smartquote" / _CONFIG_FILENAME


@dataclass(frozen=True)
class PricingConfig:
    additional_fitter_day_rate: float = 185.0
    supervisor_day_rate: float = 245.0
    specialist_reworking_flat_rate: float = 740.0
    default_daily_parking_charge: float = 75.0
    vat_rate_percent: float = 20.0


@dataclass(frozen=True)
class VanClass:
    name: str
    crew_seats: int
    capacity_m3: float
    day_rate: float


@dataclass(frozen=True)
class TransportVehicle:
    vehicle_id: str
    name: str
    cost_per_day: float


@dataclass(frozen=True)
class BufferFloor:
    above_hours: float
    minimum_percent: float


@dataclass(frozen=True)
class LabourConfig:
    hours_per_day: float = 8.0
    uplift_stairs_percent: float = 15.0
    extended_uplift_percent: float = 10.0
    duration_buffer_percent: float = 25.0
    duration_buffer_floors: tuple[BufferFloor, ...] = (
        BufferFloor(above_hours=16, minimum_percent=10),
        BufferFloor(above_hours=40, minimum_percent=15),
    )
    rounding_increment_hours: float = 0.25
    max_fitters: int = 8
    heavy_item_min_fitters: int = 2
    supervisor_threshold_days: int = 4
    extended_uplift_max_fitters: int = 6


@dataclass(frozen=True)
class WasteConfig:
    default_volume_per_unit_m3: float = 0.035
    flag_above_loads: int = 1


@dataclass(frozen=True)
class PowerConsolidationConfig:
    predicate: str
    exclusion: str
    product_code: str = "POWER-MODULE"
    description: str = "Combined Power (all modules, trays excluded)"
    time_per_unit_hours: float = 0.2
    line_number: int = 999


@dataclass(frozen=True)
class ScreeningConfig:
    excluded_keywords: tuple[str, ...] = ()
    keep_code_tokens: tuple[str, ...] = ()
    keep_description_tokens: tuple[str, ...] = ()
    insert_keywords: tuple[str, ...] = ()
    insert_keep_token: str = "pedestal"
    clamp_keyword: str = "clamp"
    clamp_code_token: str = "cage"


@dataclass(frozen=True)
class FamilyPatternConfig:
    name: str
    marker: str
    unit: str
    specific_template: str
    generic_templates: tuple[str, ...]
    size_insensitive_capacities: tuple[str, ...] = ()
    size_range: tuple[int, int] = (1000, 5000)
    type: str = "pattern"


@dataclass(frozen=True)
class TimeAdjustmentRule:
    name: str
    when: tuple[tuple[str, ...], ...] = ()
    prefixes: tuple[str, ...] = ()
    fields: tuple[str, ...] = ("code", "description")
    hours: Optional[float] = None
    add_hours: Optional[float] = None
    length_threshold_mm: Optional[int] = None
    hours_per_extra_metre: float = 0.0


@dataclass(frozen=True)
class RulesConfig:
    """Business rules consumed read-only by the resolver and calculation engine."""

    pricing: PricingConfig
    vans: tuple[VanClass, ...]
    vehicles: Mapping[str, TransportVehicle]
    labour: LabourConfig
    waste: WasteConfig
    out_of_hours_multipliers: Mapping[str, float]
    preparers: tuple[str, ...]
    power: PowerConsolidationConfig
    screening: ScreeningConfig
    families: tuple[FamilyPatternConfig, ...]
    time_adjustments: tuple[TimeAdjustmentRule, ...]

    def van(self, name: str) -> VanClass:
        for van in self.vans:
            if van.name == name:
                return van
        raise KeyError(name)


@dataclass
class CatalogueStoreConfig:
    path: Path
    write_attempts: int = 3
    retry_delay_seconds: float = 1.0


@dataclass
class ServiceConfig:
    host: str = "127.0.0.1"
    port: int = 8790


@dataclass
class AppConfig:
    rules: RulesConfig
    catalogue: CatalogueStoreConfig
    service: ServiceConfig = field(default_factory=ServiceConfig)
    _source_path: Optional[Path] = field(default=None, repr=False, compare=False)

    @property
    def source_path(self) -> Optional[Path]:
        return self._source_path

    def with_source(self, path: Path) -> "AppConfig":
        self._source_path = path
        return self


def _default_dict() -> Dict[str, Any]:
    return copy.deepcopy(_DEFAULT_CONFIG_DATA)


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged


def _resolve_config_path(path: Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser().resolve()
    env_override = os.environ.get(CONFIG_ENV_VAR)
    if env_override:
        return Path(env_override).expanduser().resolve()
    return default_config_path()


def _number(section: Mapping[str, Any], key: str, name: str, *, minimum: float | None = 0.0) -> float:
    raw = section.get(key)
    if isinstance(raw, bool):
        raise ConfigError(f"{name}.{key} must be a number")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name}.{key} must be a number") from exc
    if minimum is not None and value < minimum:
        raise ConfigError(f"{name}.{key} must be >= {minimum:g}")
    return value


def _integer(section: Mapping[str, Any], key: str, name: str, *, minimum: int = 0) -> int:
    raw = section.get(key)
    if isinstance(raw, bool):
        raise ConfigError(f"{name}.{key} must be an integer")
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name}.{key} must be an integer") from exc
    if value < minimum:
        raise ConfigError(f"{name}.{key} must be >= {minimum}")
    return value


def _strings(value: Any, name: str) -> tuple[str, ...]:
    if value is None:
        return tuple()
    if isinstance(value, str):
        items = [value]
    else:
        try:
            items = list(value)
        except TypeError as exc:
            raise ConfigError(f"{name} must be a list of strings") from exc
    return tuple(str(item) for item in items if item is not None and str(item) != "")


def _mapping(value: Any, name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"{name} must be a mapping")
    return value


def _coerce_pricing(section: Mapping[str, Any]) -> PricingConfig:
    name = "rules.pricing"
    return PricingConfig(
        additional_fitter_day_rate=_number(section, "additional_fitter_day_rate", name),
        supervisor_day_rate=_number(section, "supervisor_day_rate", name),
        specialist_reworking_flat_rate=_number(section, "specialist_reworking_flat_rate", name),
        default_daily_parking_charge=_number(section, "default_daily_parking_charge", name),
        vat_rate_percent=_number(section, "vat_rate_percent", name),
    )


def _coerce_vans(section: Any) -> tuple[VanClass, ...]:
    if not isinstance(section, list) or not section:
        raise ConfigError("rules.vans must be a non-empty list")
    vans: list[VanClass] = []
    seen: set[str] = set()
    for index, item in enumerate(section):
        name = f"rules.vans[{index}]"
        item = _mapping(item, name)
        van_name = item.get("name")
        if not isinstance(van_name, str) or not van_name.strip():
            raise ConfigError(f"{name}.name must be a non-empty string")
        if van_name in seen:
            raise ConfigError(f"{name}.name '{van_name}' is duplicated")
        seen.add(van_name)
        vans.append(
            VanClass(
                name=van_name.strip(),
                crew_seats=_integer(item, "crew_seats", name, minimum=1),
                capacity_m3=_number(item, "capacity_m3", name),
                day_rate=_number(item, "day_rate", name),
            )
        )
    for van in vans:
        if van.capacity_m3 <= 0:
            raise ConfigError(f"rules.vans '{van.name}' capacity_m3 must be positive")
    return tuple(vans)


def _coerce_vehicles(section: Mapping[str, Any]) -> Dict[str, TransportVehicle]:
    vehicles: Dict[str, TransportVehicle] = {}
    for vehicle_id, item in section.items():
        name = f"rules.vehicles.{vehicle_id}"
        item = _mapping(item, name)
        vehicles[str(vehicle_id)] = TransportVehicle(
            vehicle_id=str(vehicle_id),
            name=str(item.get("name") or vehicle_id),
            cost_per_day=_number(item, "cost_per_day", name),
        )
    return vehicles


def _coerce_labour(section: Mapping[str, Any]) -> LabourConfig:
    name = "rules.labour"
    floors_raw = section.get("duration_buffer_floors") or []
    if not isinstance(floors_raw, list):
        raise ConfigError(f"{name}.duration_buffer_floors must be a list")
    floors = tuple(
        sorted(
            (
                BufferFloor(
                    above_hours=_number(_mapping(item, name), "above_hours", f"{name}.duration_buffer_floors"),
                    minimum_percent=_number(
                        _mapping(item, name), "minimum_percent", f"{name}.duration_buffer_floors"
                    ),
                )
                for item in floors_raw
            ),
            key=lambda floor: floor.above_hours,
        )
    )
    hours_per_day = _number(section, "hours_per_day", name)
    if hours_per_day <= 0:
        raise ConfigError(f"{name}.hours_per_day must be positive")
    increment = _number(section, "rounding_increment_hours", name)
    if increment <= 0:
        raise ConfigError(f"{name}.rounding_increment_hours must be positive")
    return LabourConfig(
        hours_per_day=hours_per_day,
        uplift_stairs_percent=_number(section, "uplift_stairs_percent", name),
        extended_uplift_percent=_number(section, "extended_uplift_percent", name),
        duration_buffer_percent=_number(section, "duration_buffer_percent", name),
        duration_buffer_floors=floors,
        rounding_increment_hours=increment,
        max_fitters=_integer(section, "max_fitters", name, minimum=1),
        heavy_item_min_fitters=_integer(section, "heavy_item_min_fitters", name, minimum=1),
        supervisor_threshold_days=_integer(section, "supervisor_threshold_days", name),
        extended_uplift_max_fitters=_integer(section, "extended_uplift_max_fitters", name),
    )


def _coerce_waste(section: Mapping[str, Any]) -> WasteConfig:
    name = "rules.waste"
    return WasteConfig(
        default_volume_per_unit_m3=_number(section, "default_volume_per_unit_m3", name),
        flag_above_loads=_integer(section, "flag_above_loads", name),
    )


def _coerce_multipliers(section: Mapping[str, Any]) -> Dict[str, float]:
    multipliers: Dict[str, float] = {}
    for key in section:
        value = _number(section, key, "rules.out_of_hours_multipliers")
        if value < 1:
            raise ConfigError(f"rules.out_of_hours_multipliers.{key} must be >= 1")
        multipliers[str(key)] = value
    return multipliers


def _coerce_regex(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{name} must be a non-empty string")
    try:
        re.compile(value)
    except re.error as exc:
        raise ConfigError(f"{name} is not a valid regular expression: {exc}") from exc
    return value


def _coerce_power(section: Mapping[str, Any]) -> PowerConsolidationConfig:
    name = "rules.power"
    code = section.get("product_code") or "POWER-MODULE"
    return PowerConsolidationConfig(
        predicate=_coerce_regex(section.get("predicate"), f"{name}.predicate"),
        exclusion=_coerce_regex(section.get("exclusion"), f"{name}.exclusion"),
        product_code=str(code),
        description=str(section.get("description") or ""),
        time_per_unit_hours=_number(section, "time_per_unit_hours", name),
        line_number=_integer(section, "line_number", name),
    )


def _coerce_screening(section: Mapping[str, Any]) -> ScreeningConfig:
    name = "rules.screening"
    return ScreeningConfig(
        excluded_keywords=_strings(section.get("excluded_keywords"), f"{name}.excluded_keywords"),
        keep_code_tokens=_strings(section.get("keep_code_tokens"), f"{name}.keep_code_tokens"),
        keep_description_tokens=_strings(
            section.get("keep_description_tokens"), f"{name}.keep_description_tokens"
        ),
        insert_keywords=_strings(section.get("insert_keywords"), f"{name}.insert_keywords"),
        insert_keep_token=str(section.get("insert_keep_token") or "pedestal"),
        clamp_keyword=str(section.get("clamp_keyword") or "clamp"),
        clamp_code_token=str(section.get("clamp_code_token") or "cage"),
    )


def _coerce_families(section: Any) -> tuple[FamilyPatternConfig, ...]:
    if section is None:
        return tuple()
    if not isinstance(section, list):
        raise ConfigError("rules.families must be a list")
    families: list[FamilyPatternConfig] = []
    for index, item in enumerate(section):
        name = f"rules.families[{index}]"
        item = _mapping(item, name)
        family_type = str(item.get("type") or "pattern")
        if family_type != "pattern":
            raise ConfigError(f"{name}.type '{family_type}' is not supported")
        for required in ("name", "marker", "unit", "specific_template"):
            if not isinstance(item.get(required), str) or not item.get(required):
                raise ConfigError(f"{name}.{required} must be a non-empty string")
        generic = _strings(item.get("generic_templates"), f"{name}.generic_templates")
        size_range = item.get("size_range") or (1000, 5000)
        try:
            low, high = (int(value) for value in size_range)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{name}.size_range must be two integers") from exc
        if low > high:
            raise ConfigError(f"{name}.size_range lower bound exceeds upper bound")
        families.append(
            FamilyPatternConfig(
                name=str(item["name"]),
                marker=str(item["marker"]),
                unit=str(item["unit"]),
                specific_template=str(item["specific_template"]),
                generic_templates=generic,
                size_insensitive_capacities=_strings(
                    item.get("size_insensitive_capacities"), f"{name}.size_insensitive_capacities"
                ),
                size_range=(low, high),
                type=family_type,
            )
        )
    return tuple(families)


def _coerce_time_adjustments(section: Any) -> tuple[TimeAdjustmentRule, ...]:
    if section is None:
        return tuple()
    if not isinstance(section, list):
        raise ConfigError("rules.time_adjustments must be a list")
    rules: list[TimeAdjustmentRule] = []
    for index, item in enumerate(section):
        name = f"rules.time_adjustments[{index}]"
        item = _mapping(item, name)
        when_raw = item.get("when") or []
        if not isinstance(when_raw, list):
            raise ConfigError(f"{name}.when must be a list of token lists")
        when = tuple(
            tuple(token.upper() for token in _strings(group, f"{name}.when")) for group in when_raw
        )
        prefixes = tuple(token.upper() for token in _strings(item.get("prefixes"), f"{name}.prefixes"))
        if not when and not prefixes:
            raise ConfigError(f"{name} needs 'when' or 'prefixes'")
        fields_ = _strings(item.get("fields") or ADJUSTMENT_FIELDS, f"{name}.fields")
        unknown = set(fields_) - set(ADJUSTMENT_FIELDS)
        if unknown:
            raise ConfigError(f"{name}.fields has unknown entries: {sorted(unknown)}")
        hours = item.get("hours")
        add_hours = item.get("add_hours")
        if (hours is None) == (add_hours is None):
            raise ConfigError(f"{name} needs exactly one of 'hours' or 'add_hours'")
        threshold = item.get("length_threshold_mm")
        rules.append(
            TimeAdjustmentRule(
                name=str(item.get("name") or f"rule_{index}"),
                when=when,
                prefixes=prefixes,
                fields=fields_,
                hours=None if hours is None else _number(item, "hours", name),
                add_hours=None if add_hours is None else _number(item, "add_hours", name),
                length_threshold_mm=None if threshold is None else _integer(item, "length_threshold_mm", name),
                hours_per_extra_metre=float(item.get("hours_per_extra_metre") or 0.0),
            )
        )
    return tuple(rules)


def rules_from_mapping(raw: Mapping[str, Any]) -> RulesConfig:
    """Build a :class:`RulesConfig` from a ``rules`` section merged over defaults."""

    merged = _merge(_default_dict()["rules"], _mapping(raw, "rules"))
    vans = _coerce_vans(merged.get("vans"))
    preparers = _strings(merged.get("preparers"), "rules.preparers")
    return RulesConfig(
        pricing=_coerce_pricing(_mapping(merged.get("pricing"), "rules.pricing")),
        vans=vans,
        vehicles=_coerce_vehicles(_mapping(merged.get("vehicles"), "rules.vehicles")),
        labour=_coerce_labour(_mapping(merged.get("labour"), "rules.labour")),
        waste=_coerce_waste(_mapping(merged.get("waste"), "rules.waste")),
        out_of_hours_multipliers=_coerce_multipliers(
            _mapping(merged.get("out_of_hours_multipliers"), "rules.out_of_hours_multipliers")
        ),
        preparers=preparers,
        power=_coerce_power(_mapping(merged.get("power"), "rules.power")),
        screening=_coerce_screening(_mapping(merged.get("screening"), "rules.screening")),
        families=_coerce_families(merged.get("families")),
        time_adjustments=_coerce_time_adjustments(merged.get("time_adjustments")),
    )


def default_rules() -> RulesConfig:
    return rules_from_mapping({})


def _coerce_catalogue(section: Mapping[str, Any]) -> CatalogueStoreConfig:
    raw_path = section.get("path")
    if not isinstance(raw_path, str) or not raw_path.strip():
        raise ConfigError("catalogue.path must be a non-empty string")
    path = Path(os.path.expandvars(raw_path)).expanduser()
    if path.exists() and path.is_dir():
        raise ConfigError("catalogue.path points to a directory, expected file")
    return CatalogueStoreConfig(
        path=path,
        write_attempts=_integer(section, "write_attempts", "catalogue", minimum=1),
        retry_delay_seconds=_number(section, "retry_delay_seconds", "catalogue"),
    )


def _coerce_service(section: Mapping[str, Any]) -> ServiceConfig:
    host = section.get("host", "127.0.0.1")
    if not isinstance(host, str) or not host:
        raise ConfigError("service.host must be a non-empty string")
    try:
        port = int(section.get("port", 8790))
    except (TypeError, ValueError) as exc:
        raise ConfigError("service.port must be an integer") from exc
    if port <= 0 or port > 65535:
        raise ConfigError("service.port must be between 1 and 65535")
    return ServiceConfig(host=host, port=port)


def _coerce_config(raw: Mapping[str, Any]) -> AppConfig:
    if not isinstance(raw, Mapping):
        raise ConfigError("configuration must contain a mapping at the top level")
    merged = _merge(_default_dict(), raw)
    rules = rules_from_mapping(_mapping(merged.get("rules"), "rules"))
    catalogue = _coerce_catalogue(_mapping(merged.get("catalogue"), "catalogue"))
    service = _coerce_service(_mapping(merged.get("service"), "service"))
    return AppConfig(rules=rules, catalogue=catalogue, service=service)


def read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path} is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return raw


def load_config(path: Path | None = None) -> AppConfig:
    target = _resolve_config_path(path)
    config = _coerce_config(read_config_file(target))
    config.with_source(target)
    return config


def rules_to_dict(rules: RulesConfig) -> Dict[str, Any]:
    return {
        "pricing": {
            "additional_fitter_day_rate": rules.pricing.additional_fitter_day_rate,
            "supervisor_day_rate": rules.pricing.supervisor_day_rate,
            "specialist_reworking_flat_rate": rules.pricing.specialist_reworking_flat_rate,
            "default_daily_parking_charge": rules.pricing.default_daily_parking_charge,
            "vat_rate_percent": rules.pricing.vat_rate_percent,
        },
        "vans": [
            {
                "name": van.name,
                "crew_seats": van.crew_seats,
                "capacity_m3": van.capacity_m3,
                "day_rate": van.day_rate,
            }
            for van in rules.vans
        ],
        "vehicles": {
            vehicle.vehicle_id: {"name": vehicle.name, "cost_per_day": vehicle.cost_per_day}
            for vehicle in rules.vehicles.values()
        },
        "labour": {
            "hours_per_day": rules.labour.hours_per_day,
            "uplift_stairs_percent": rules.labour.uplift_stairs_percent,
            "extended_uplift_percent": rules.labour.extended_uplift_percent,
            "duration_buffer_percent": rules.labour.duration_buffer_percent,
            "duration_buffer_floors": [
                {"above_hours": floor.above_hours, "minimum_percent": floor.minimum_percent}
                for floor in rules.labour.duration_buffer_floors
            ],
            "rounding_increment_hours": rules.labour.rounding_increment_hours,
            "max_fitters": rules.labour.max_fitters,
            "heavy_item_min_fitters": rules.labour.heavy_item_min_fitters,
            "supervisor_threshold_days": rules.labour.supervisor_threshold_days,
            "extended_uplift_max_fitters": rules.labour.extended_uplift_max_fitters,
        },
        "waste": {
            "default_volume_per_unit_m3": rules.waste.default_volume_per_unit_m3,
            "flag_above_loads": rules.waste.flag_above_loads,
        },
        "out_of_hours_multipliers": dict(rules.out_of_hours_multipliers),
        "preparers": list(rules.preparers),
        "power": {
            "predicate": rules.power.predicate,
            "exclusion": rules.power.exclusion,
            "product_code": rules.power.product_code,
            "description": rules.power.description,
            "time_per_unit_hours": rules.power.time_per_unit_hours,
            "line_number": rules.power.line_number,
        },
        "screening": {
            "excluded_keywords": list(rules.screening.excluded_keywords),
            "keep_code_tokens": list(rules.screening.keep_code_tokens),
            "keep_description_tokens": list(rules.screening.keep_description_tokens),
            "insert_keywords": list(rules.screening.insert_keywords),
            "insert_keep_token": rules.screening.insert_keep_token,
            "clamp_keyword": rules.screening.clamp_keyword,
            "clamp_code_token": rules.screening.clamp_code_token,
        },
        "families": [
            {
                "name": family.name,
                "type": family.type,
                "marker": family.marker,
                "unit": family.unit,
                "size_insensitive_capacities": list(family.size_insensitive_capacities),
                "size_range": list(family.size_range),
                "specific_template": family.specific_template,
                "generic_templates": list(family.generic_templates),
            }
            for family in rules.families
        ],
        "time_adjustments": [_time_rule_to_dict(rule) for rule in rules.time_adjustments],
    }


def _time_rule_to_dict(rule: TimeAdjustmentRule) -> Dict[str, Any]:
    data: Dict[str, Any] = {"name": rule.name, "fields": list(rule.fields)}
    if rule.when:
        data["when"] = [list(group) for group in rule.when]
    if rule.prefixes:
        data["prefixes"] = list(rule.prefixes)
    if rule.hours is not None:
        data["hours"] = rule.hours
    if rule.add_hours is not None:
        data["add_hours"] = rule.add_hours
        data["hours_per_extra_metre"] = rule.hours_per_extra_metre
        if rule.length_threshold_mm is not None:
            data["length_threshold_mm"] = rule.length_threshold_mm
    return data


def save_config(config: AppConfig, path: Path | None = None) -> Path:
    target = Path(path).expanduser() if path is not None else (config.source_path or _resolve_config_path())
    data = {
        "catalogue": {
            "path": str(config.catalogue.path),
            "write_attempts": int(config.catalogue.write_attempts),
            "retry_delay_seconds": float(config.catalogue.retry_delay_seconds),
        },
        "service": {
            "host": config.service.host,
            "port": int(config.service.port),
        },
        "rules": rules_to_dict(config.rules),
    }
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)
    config.with_source(target)
    return target


__all__ = [
    "ADJUSTMENT_FIELDS",
    "CONFIG_ENV_VAR",
    "AppConfig",
    "BufferFloor",
    "CatalogueStoreConfig",
    "ConfigError",
    "FamilyPatternConfig",
    "LabourConfig",
    "PowerConsolidationConfig",
    "PricingConfig",
    "RulesConfig",
    "ScreeningConfig",
    "ServiceConfig",
    "TimeAdjustmentRule",
    "TransportVehicle",
    "VanClass",
    "WasteConfig",
    "default_config_path",
    "default_rules",
    "load_config",
    "read_config_file",
    "rules_from_mapping",
    "rules_to_dict",
    "save_config",
]
