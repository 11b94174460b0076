"""Structured request logging: request_id, route, status, latency, and the object key of video requests."""
import json
import logging
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from catalog_media.core.config import get_settings
from catalog_media.core.logging_redaction import redact_for_log

logger = logging.getLogger("catalog_media.request")


_VIDEO_KEY_PREFIXES = ("/api/videos/stream/", "/api/videos/local/")


def _video_key(path: str) -> str | None:
    for prefix in _VIDEO_KEY_PREFIXES:
        if path.startswith(prefix):
            return path[len(prefix):] or None
    return None


def _safe_extra(request: Request, status_code: int, latency_ms: float) -> dict[str, Any]:
    path = request.url.path
    extra: dict[str, Any] = {
        "request_id": getattr(request.state, "request_id", None),
        "method": request.method,
        "path": path,
        "status_code": status_code,
        "latency_ms": round(latency_ms, 2),
    }
    key = _video_key(path)
    if key:
        extra["video_key"] = key
    return redact_for_log(extra)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assign request_id and log one structured line per request (route, status, latency)."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = (time.perf_counter() - start) * 1000
        extra = _safe_extra(request, response.status_code, latency_ms)
        # Single JSON line when log_json; else standard log with extra
        if get_settings().log_json:
            logger.info(json.dumps({"event": "request", **extra}))
        else:
            logger.info("request %s %s %s %.2fms", request.method, request.url.path, response.status_code, latency_ms, extra=extra)
        response.headers["X-Request-ID"] = request_id
        # Prometheus metrics (skip /metrics and health to avoid noise)
        if request.url.path not in ("/metrics", "/healthz", "/readyz"):
            try:
                from catalog_media.core.metrics import record_request
                record_request(request.method, request.url.path, response.status_code, latency_ms / 1000.0)
            except Exception:
                logger.debug("metrics recording failed", exc_info=True)
        return response
