"""FastAPI app: CORS, security headers, request logging, health, metrics, video routes."""
import logging
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from catalog_media.api.videos import router as videos_router
from catalog_media.core.config import get_settings
from catalog_media.core.deps import get_store, require_metrics_access
from catalog_media.core.metrics import get_metrics
from catalog_media.core.request_logging import RequestLoggingMiddleware

settings = get_settings()
if settings.log_json:
    _request_logger = logging.getLogger("catalog_media.request")
    for h in _request_logger.handlers[:]:
        _request_logger.removeHandler(h)
    h = logging.StreamHandler()
    h.setFormatter(logging.Formatter("%(message)s"))
    _request_logger.addHandler(h)
    _request_logger.setLevel(logging.INFO)

app = FastAPI(title=settings.app_name)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Range"],
)


@app.middleware("http")
async def security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


app.include_router(videos_router, prefix="/api")

if settings.image_backend == "local":
    # Dev image CDN stand-in (see LocalImageBackend)
    app.mount(
        "/dev-images",
        StaticFiles(directory=Path(settings.dev_assets_dir) / "images", check_dir=False),
        name="dev-images",
    )


@app.get("/healthz")
async def healthz():
    """Liveness: no backend calls."""
    return {"status": "ok"}


@app.get("/readyz")
async def readyz(request: Request):
    """Readiness: object store reachable."""
    store = get_store(request)
    if await store.ping():
        return {"status": "ok"}
    return JSONResponse(
        status_code=503,
        content={"status": "unavailable", "detail": "object store unreachable"},
    )


@app.get("/metrics", response_class=Response)
async def metrics(_: None = Depends(require_metrics_access)):
    """Prometheus metrics. Guarded by X-Metrics-Secret when METRICS_SECRET is set."""
    body, content_type = get_metrics()
    return Response(content=body, media_type=content_type)
