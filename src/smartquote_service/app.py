from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Sequence

from fastapi import FastAPI, HTTPException, Query, Request, status

from smartquote import __version__
from smartquote.calculation.engine import calculate_all
from smartquote.catalogue import CatalogueService, LearningEvent
from smartquote.config.loader import AppConfig, RulesConfig, load_config
from smartquote.config.provider import RulesProvider
from smartquote.domain.models import ResolvedProduct, UnresolvedProduct
from smartquote.matching.normalizer import NORMALIZATION_RULES_VERSION, CodeNormalizer
from smartquote.validation import QuoteValidationError, ValidationReport, format_validation_errors, validate_all
from smartquote.workflow import QuoteSession

from .exceptions import install_exception_handlers
from .logging_setup import resolve_log_file
from .middleware_trace import TraceIdMiddleware
from .models import (
    AliasRequest,
    CalculationResponse,
    CatalogueEntryModel,
    CatalogueResponse,
    DroppedLineModel,
    HealthResponse,
    LearnRequest,
    LearnResponse,
    ManualEntryIn,
    NormalizeResponse,
    QuoteRequest,
    ResolveRequest,
    ResolveResponse,
    ResolvedProductModel,
    UnresolvedProductModel,
    ValidationErrorModel,
    ValidationResponse,
)


logger = logging.getLogger(__name__)


def _truthy(raw: str | None) -> bool:
    if raw is None:
        return False
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class _ServiceFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            "%Y-%m-%dT%H:%M:%S%z",
        )

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        base = super().format(record)
        extras: list[str] = []
        for key in ("trace_id", "event", "method", "path", "status", "duration_ms"):
            value = getattr(record, key, None)
            if value is None or (isinstance(value, str) and not value):
                continue
            extras.append(f"{key}={value}")
        if extras:
            return f"{base} {' '.join(extras)}"
        return base


def configure_logging() -> Path | None:
    """Configure service logging from SMARTQUOTE_LOG_* environment variables."""

    level_name = (os.environ.get("SMARTQUOTE_LOG_LEVEL", "WARNING") or "").strip().upper() or "WARNING"
    debug_enabled = _truthy(os.environ.get("SMARTQUOTE_DEBUG"))
    if debug_enabled:
        level_name = "DEBUG"
    level = getattr(logging, level_name, logging.WARNING)

    log_file = resolve_log_file()
    formatter = _ServiceFormatter()
    handlers: list[logging.Handler] = []
    destination: Path | None = log_file

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=5_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    except OSError:
        destination = None
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(level)
        stream_handler.setFormatter(formatter)
        handlers.append(stream_handler)

    if debug_enabled and destination is not None:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing, RotatingFileHandler):
            existing.close()
        root_logger.removeHandler(existing)
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "smartquote_service", "smartquote"):
        target = logging.getLogger(name)
        target.handlers = []
        target.setLevel(level)
        target.propagate = True

    configured_logger = logging.getLogger(__name__)
    if destination is None:
        configured_logger.warning(
            "Logging to console because SMARTQUOTE_LOG_FILE/SMARTQUOTE_LOG_DIR is unavailable."
        )
    else:
        configured_logger.debug("Logging configured for file %s", destination)

    return destination


def _dropped_models(session: QuoteSession) -> List[DroppedLineModel]:
    return [
        DroppedLineModel(line_number=item.line.line_number, product_code=item.line.product_code, reason=item.reason)
        for item in session.prepared.dropped
    ]


def _validation_model(report: ValidationReport) -> ValidationResponse:
    return ValidationResponse(
        valid=report.valid,
        errors=[ValidationErrorModel(field=error.field, message=error.message) for error in report.errors],
        message=format_validation_errors(report.errors),
    )


def create_app(
    config: AppConfig | None = None,
    *,
    catalogue_service: CatalogueService | None = None,
    rules_provider: RulesProvider | None = None,
) -> FastAPI:
    """Return a configured FastAPI application for the quoting service."""

    log_file = configure_logging()
    cfg = config or load_config()
    provider = rules_provider or RulesProvider(cfg.source_path, initial=cfg.rules)
    catalogue = catalogue_service or CatalogueService.from_config(cfg)
    normalizer = CodeNormalizer()

    app = FastAPI(title="SmartQuote", version=__version__)
    app.state.config = cfg
    app.state.rules_provider = provider
    app.state.catalogue = catalogue
    app.state.log_file_path = str(log_file) if isinstance(log_file, Path) else ""
    app.state.normalization_rules_version = NORMALIZATION_RULES_VERSION

    install_exception_handlers(app)
    app.add_middleware(TraceIdMiddleware)

    def _rules() -> RulesConfig:
        return provider.current()

    def _session(details=None, manual_entries: Sequence[ManualEntryIn] = ()) -> QuoteSession:
        session = QuoteSession(catalogue, _rules(), details=details)
        # manual entries are request-scoped; only /catalogue/learn writes to the catalogue
        for entry in manual_entries:
            session.supply_unknown(
                entry.product_code,
                entry.install_time_hours,
                entry.waste_volume_m3,
                entry.is_heavy,
                learn=False,
            )
        return session

    def _products_for(payload: QuoteRequest) -> tuple[QuoteSession, List[ResolvedProduct], List[UnresolvedProduct]]:
        session = _session(payload.details.to_domain(), payload.manual_entries)
        if payload.products is not None:
            return session, [item.to_domain() for item in payload.products], []
        resolution = session.load_lines(line.to_domain() for line in payload.lines or [])
        return session, resolution.resolved, resolution.unresolved

    def _validate(session: QuoteSession, products: List[ResolvedProduct]) -> ValidationReport:
        rules = session.rules
        total_days: Optional[int] = None
        if products:
            total_days = calculate_all(products, session.details, rules).crew.total_days
        return validate_all(session.details, products, rules, total_days=total_days)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(
            ok=True,
            version=__version__,
            catalogue_entries=len(catalogue.get()),
            session_only_entries=len(catalogue.session_only_keys),
            rules_path=str(provider.path or ""),
        )

    @app.get("/normalize", response_model=NormalizeResponse)
    async def normalize(
        code: str = Query(..., description="Raw product code"),
        match: bool = Query(False, description="Also match against the catalogue"),
    ) -> NormalizeResponse:
        result = normalizer.normalize(code)
        matched = None
        if match:
            hit = catalogue.matcher().match(code)
            matched = hit.to_dict() if hit is not None else None
        return NormalizeResponse(
            input=code,
            normalized=result.normalized,
            rule_ids=list(result.rule_ids),
            descriptions=list(result.descriptions),
            rules_version=NORMALIZATION_RULES_VERSION,
            match=matched,
        )

    @app.post("/resolve", response_model=ResolveResponse)
    async def resolve_lines(payload: ResolveRequest) -> ResolveResponse:
        session = _session(manual_entries=payload.manual_entries)
        resolution = session.load_lines(line.to_domain() for line in payload.lines)
        return ResolveResponse(
            resolved=[ResolvedProductModel.from_domain(item) for item in resolution.resolved],
            unresolved=[UnresolvedProductModel.from_domain(item) for item in resolution.unresolved],
            dropped=_dropped_models(session),
        )

    @app.post("/validate", response_model=ValidationResponse)
    async def validate_quote(payload: QuoteRequest) -> ValidationResponse:
        session, products, _ = _products_for(payload)
        return _validation_model(_validate(session, products))

    @app.post("/calculate", response_model=CalculationResponse)
    async def calculate_quote(payload: QuoteRequest, request: Request) -> CalculationResponse:
        session, products, unresolved = _products_for(payload)
        report = _validate(session, products)
        if payload.strict and not report.valid:
            raise QuoteValidationError(report.errors)
        results = calculate_all(products, session.details, session.rules)
        logger.info(
            "Quote calculated",
            extra={
                "event": "quote.calculated",
                "trace_id": getattr(request.state, "trace_id", ""),
                "products": len(products),
                "unresolved": len(unresolved),
            },
        )
        return CalculationResponse(
            results=results.as_dict(),
            products=[ResolvedProductModel.from_domain(item) for item in products],
            unresolved=[UnresolvedProductModel.from_domain(item) for item in unresolved],
            validation=_validation_model(report),
        )

    @app.get("/catalogue", response_model=CatalogueResponse)
    async def list_catalogue(
        prefix: str = Query("", description="Only return keys starting with this text"),
        limit: int = Query(500, ge=1, le=5000),
    ) -> CatalogueResponse:
        snapshot = catalogue.get()
        needle = prefix.strip().upper()
        keys = sorted(key for key in snapshot if key.upper().startswith(needle))
        return CatalogueResponse(
            count=len(keys),
            entries=[CatalogueEntryModel.from_domain(snapshot[key]) for key in keys[:limit]],
            session_only=sorted(catalogue.session_only_keys),
        )

    @app.post("/catalogue/learn", response_model=LearnResponse)
    def learn_product(payload: LearnRequest) -> LearnResponse:
        event = LearningEvent(
            payload.product_code,
            payload.install_time_hours,
            payload.waste_volume_m3,
            payload.is_heavy,
        )
        try:
            outcome = catalogue.learn(event)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return LearnResponse.from_outcome(outcome)

    @app.post("/catalogue/{key}/aliases", response_model=LearnResponse)
    def attach_alias(key: str, payload: AliasRequest) -> LearnResponse:
        return LearnResponse.from_outcome(catalogue.attach_alias(payload.code, key))

    return app


__all__ = ["configure_logging", "create_app"]
