"""CLI entry points for SmartQuote."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Mapping

from . import __version__, logging_cfg
from .calculation.engine import calculate_all
from .catalogue import CatalogueService, CatalogueStoreError, LearningEvent, UnknownCatalogueKeyError
from .config.loader import AppConfig, ConfigError, load_config
from .domain.models import QuoteDetails, ResolvedProduct
from .matching.normalizer import CodeNormalizer
from .validation import format_validation_errors, validate_all
from .workflow import QuoteSession


def _load(args: argparse.Namespace) -> tuple[AppConfig, CatalogueService]:
    cfg = load_config(args.config)
    return cfg, CatalogueService.from_config(cfg)


def _read_json(path: Path) -> Any:
    with Path(path).expanduser().open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _line_payloads(data: Any) -> List[Mapping[str, Any]]:
    if isinstance(data, Mapping):
        data = data.get("lines") or []
    if not isinstance(data, list):
        raise ValueError("expected a list of line items or an object with 'lines'")
    return data


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def normalize_cmd(args: argparse.Namespace) -> int:
    result = CodeNormalizer().normalize(args.code)
    print(result.normalized)
    for rule_id, description in zip(result.rule_ids, result.descriptions):
        print(f"  {rule_id}\t{description}")
    return 0


def match_cmd(args: argparse.Namespace) -> int:
    _, service = _load(args)
    result = service.matcher().match(args.code)
    if result is None:
        print(f"No catalogue match for {args.code}")
        return 1
    print(f"{result.key}\t{result.tier.name.lower()}\t{result.via}")
    return 0


def resolve_cmd(args: argparse.Namespace) -> int:
    _, service = _load(args)
    session = QuoteSession(service)
    result = session.load_lines(_line_payloads(_read_json(args.lines)))
    payload = result.as_dict()
    payload["dropped"] = [
        {"line_number": item.line.line_number, "product_code": item.line.product_code, "reason": item.reason}
        for item in session.prepared.dropped
    ]
    _print_json(payload)
    return 0


def calculate_cmd(args: argparse.Namespace) -> int:
    cfg, service = _load(args)
    data = _read_json(args.quote)
    if not isinstance(data, Mapping):
        print("Quote file must contain a JSON object")
        return 1
    session = QuoteSession(service, cfg.rules, details=QuoteDetails.from_mapping(data.get("details") or {}))
    if data.get("products"):
        # already-resolved products skip resolution entirely
        products = [ResolvedProduct.from_mapping(item) for item in data["products"]]
        report = validate_all(session.details, products, cfg.rules)
        if args.strict and not report.valid:
            print(format_validation_errors(report.errors))
            return 2
        _print_json(calculate_all(products, session.details, cfg.rules).as_dict())
        return 0

    resolution = session.load_lines(_line_payloads(data))
    if resolution.unresolved:
        codes = ", ".join(item.product_code for item in resolution.unresolved)
        print(f"Warning: unresolved products excluded from calculation: {codes}", file=sys.stderr)
    if args.strict:
        report = session.validate()
        if not report.valid:
            print(format_validation_errors(report.errors))
            return 2
    _print_json(session.calculate().as_dict())
    return 0


def learn_cmd(args: argparse.Namespace) -> int:
    _, service = _load(args)
    outcome = service.learn(LearningEvent(args.code, args.hours, args.waste, args.heavy))
    verb = "Created" if outcome.created else "Updated"
    print(f"{verb} {outcome.key}: {outcome.entry.install_time_hours}h, {outcome.entry.waste_volume_m3} m3")
    if not outcome.persisted:
        print(f"Warning: catalogue write failed, kept for this session only ({outcome.error})")
        return 1
    return 0


def alias_cmd(args: argparse.Namespace) -> int:
    _, service = _load(args)
    try:
        outcome = service.attach_alias(args.code, args.key)
    except UnknownCatalogueKeyError:
        print(f"Catalogue key {args.key} not found")
        return 1
    print(f"{args.code} -> {outcome.key}")
    return 0 if outcome.persisted else 1


def serve_cmd(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    if args.host is not None:
        cfg.service.host = args.host
    if args.port is not None:
        cfg.service.port = int(args.port)
    from smartquote_service import run as service_run

    return service_run.serve_from_config(cfg)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SmartQuote CLI")
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("--config", type=Path, default=None, help="Path to configuration file")
    parser.add_argument("--log-level", default=None, help="Console log level (default WARNING)")
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this rotating file")
    sub = parser.add_subparsers(dest="command", required=True)

    norm_p = sub.add_parser("normalize", help="Show the normalized form of a product code")
    norm_p.add_argument("code")
    norm_p.set_defaults(func=normalize_cmd)

    match_p = sub.add_parser("match", help="Match a product code against the catalogue")
    match_p.add_argument("code")
    match_p.set_defaults(func=match_cmd)

    resolve_p = sub.add_parser("resolve", help="Resolve a JSON file of line items")
    resolve_p.add_argument("lines", type=Path)
    resolve_p.set_defaults(func=resolve_cmd)

    calc_p = sub.add_parser("calculate", help="Calculate a quote from a JSON file")
    calc_p.add_argument("quote", type=Path)
    calc_p.add_argument("--strict", action="store_true", help="Refuse to calculate an invalid quote")
    calc_p.set_defaults(func=calculate_cmd)

    learn_p = sub.add_parser("learn", help="Record an install time in the catalogue")
    learn_p.add_argument("code")
    learn_p.add_argument("--hours", type=float, required=True)
    learn_p.add_argument("--waste", type=float, default=None)
    learn_p.add_argument("--heavy", action="store_true")
    learn_p.set_defaults(func=learn_cmd)

    alias_p = sub.add_parser("alias", help="Attach a product code to an existing catalogue key")
    alias_p.add_argument("code")
    alias_p.add_argument("key")
    alias_p.set_defaults(func=alias_cmd)

    serve_p = sub.add_parser("serve", help="Run the HTTP service")
    serve_p.add_argument("--host", type=str, default=None)
    serve_p.add_argument("--port", type=int, default=None)
    serve_p.set_defaults(func=serve_cmd)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging_cfg.configure(args.log_level, args.log_file)
    try:
        return args.func(args)
    except ConfigError as exc:
        print(f"Configuration error: {exc}")
        return 1
    except CatalogueStoreError as exc:
        print(f"Catalogue error: {exc}")
        return 1
    except (OSError, ValueError) as exc:
        print(str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())
