from __future__ import annotations

import logging
import traceback
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from smartquote.catalogue import CatalogueStoreError, UnknownCatalogueKeyError
from smartquote.validation import QuoteValidationError


logger = logging.getLogger(__name__)


def _request_context(request: Request) -> Dict[str, Any]:
    path = getattr(request, "url", None)
    return {
        "trace_id": getattr(getattr(request, "state", object()), "trace_id", ""),
        "path": str(getattr(path, "path", path) or ""),
        "method": getattr(request, "method", ""),
    }


def _payload(reason: str, detail: str, trace_id: str, **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"reason": reason, "detail": detail or reason, "trace_id": trace_id}
    payload.update(extra)
    return payload


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(Exception)
    async def _unhandled_exception(request: Request, exc: Exception):  # type: ignore[override]
        context = _request_context(request)
        status_code = 500
        logger.error(
            "Unhandled exception",
            extra={
                **context,
                "status": status_code,
                "event": "unhandled_exception",
                "exception": traceback.format_exc(),
            },
        )
        return JSONResponse(
            status_code=status_code,
            content=_payload("internal_error", str(exc), context["trace_id"]),
        )

    @app.exception_handler(HTTPException)
    async def _http_exception(request: Request, exc: HTTPException):  # type: ignore[override]
        context = _request_context(request)
        status_code = int(getattr(exc, "status_code", 500))
        level_logger = logger.info if status_code < 500 else logger.error
        level_logger("HTTPException", extra={**context, "status": status_code, "event": "http_exception"})
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse(status_code=status_code, content=_payload(detail or "error", detail, context["trace_id"]))

    @app.exception_handler(QuoteValidationError)
    async def _invalid_quote(request: Request, exc: QuoteValidationError):  # type: ignore[override]
        context = _request_context(request)
        logger.info(
            "Quote rejected by validation",
            extra={**context, "status": 422, "event": "quote_invalid", "errors": len(exc.errors)},
        )
        errors = [{"field": error.field, "message": error.message} for error in exc.errors]
        return JSONResponse(
            status_code=422,
            content=_payload("invalid_quote", str(exc), context["trace_id"], errors=errors),
        )

    @app.exception_handler(UnknownCatalogueKeyError)
    async def _unknown_key(request: Request, exc: UnknownCatalogueKeyError):  # type: ignore[override]
        context = _request_context(request)
        key = exc.args[0] if exc.args else ""
        logger.info("Unknown catalogue key", extra={**context, "status": 404, "event": "catalogue_key_missing"})
        return JSONResponse(
            status_code=404,
            content=_payload("unknown_catalogue_key", f"Catalogue key {key} not found", context["trace_id"]),
        )

    @app.exception_handler(CatalogueStoreError)
    async def _store_unavailable(request: Request, exc: CatalogueStoreError):  # type: ignore[override]
        context = _request_context(request)
        logger.error("Catalogue store failure", extra={**context, "status": 503, "event": "catalogue_unavailable"})
        return JSONResponse(
            status_code=503,
            content=_payload("catalogue_unavailable", str(exc), context["trace_id"]),
        )
