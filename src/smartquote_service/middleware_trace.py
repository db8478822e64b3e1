from __future__ import annotations

import logging
import re
import time
import uuid

from starlette.datastructures import Headers


TRACE_HEADER = "X-Trace-Id"
# trace ids land verbatim in log lines, so callers only get to pick simple tokens
_ACCEPTED_TRACE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")

logger = logging.getLogger(__name__)


def pick_trace_id(raw: str | None) -> str:
    """Reuse a caller's trace id when it is a plain token, else mint a new one."""
    candidate = (raw or "").strip()
    if _ACCEPTED_TRACE_ID.match(candidate):
        return candidate
    return uuid.uuid4().hex


class TraceIdMiddleware:
    """ASGI middleware that tags each request with a trace id.

    The id is stored on ``request.state.trace_id`` for handlers, echoed in the
    ``X-Trace-Id`` response header and written on the access log line.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):  # type: ignore[override]
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        trace_id = pick_trace_id(Headers(scope=scope).get(TRACE_HEADER))
        scope.setdefault("state", {})["trace_id"] = trace_id
        response_status: list[int] = []

        async def send_with_trace(message):
            if message["type"] == "http.response.start":
                response_status.append(int(message.get("status", 0)))
                message.setdefault("headers", []).append(
                    (TRACE_HEADER.lower().encode("latin-1"), trace_id.encode("latin-1"))
                )
            await send(message)

        started = time.perf_counter()
        try:
            await self.app(scope, receive, send_with_trace)
        finally:
            logger.info(
                "access",
                extra={
                    "event": "access",
                    "method": scope.get("method", ""),
                    "path": scope.get("path", ""),
                    "status": response_status[0] if response_status else None,
                    "duration_ms": int((time.perf_counter() - started) * 1000),
                    "trace_id": trace_id,
                },
            )


__all__ = ["TRACE_HEADER", "TraceIdMiddleware", "pick_trace_id"]
