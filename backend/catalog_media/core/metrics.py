"""Prometheus metrics: request count by route/status, latency, media uploads, signed-url mints, cleanup."""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total requests",
    ["method", "path", "status_class"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency",
    ["method", "path"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)
UPLOAD_TOTAL = Counter(
    "media_upload_attempts_total",
    "Adapter upload attempts",
    ["medium", "result"],  # image|video, success|failure
)
INGEST_TOTAL = Counter(
    "media_ingest_total",
    "Item-level ingestion calls",
    ["result"],  # success | validation_error | upload_error
)
SIGNED_URL_MINT_TOTAL = Counter(
    "media_signed_url_mint_total",
    "Signed URL mints",
    ["reason"],  # upload | migrate | refresh | request
)
SIGNED_URL_FAILURE_TOTAL = Counter(
    "media_signed_url_failures_total",
    "Signing failures served with a stale URL",
)
CLEANUP_DELETE_TOTAL = Counter(
    "media_cleanup_deletions_total",
    "Object deletions issued by item cleanup",
    ["result"],  # deleted | missing | failed
)


def _status_class(status: int) -> str:
    if status < 200:
        return "1xx"
    if status < 300:
        return "2xx"
    if status < 400:
        return "3xx"
    if status < 500:
        return "4xx"
    return "5xx"


def record_request(method: str, path: str, status_code: int, latency_seconds: float) -> None:
    path = path or "/"
    # Normalize path to avoid high cardinality (object keys are unbounded)
    if path.startswith("/api/videos/stream/"):
        path = "/api/videos/stream/{key}"
    elif path.startswith("/api/videos/local/"):
        path = "/api/videos/local/{key}"
    sc = _status_class(status_code)
    REQUEST_COUNT.labels(method=method, path=path, status_class=sc).inc()
    REQUEST_LATENCY.labels(method=method, path=path).observe(latency_seconds)


def record_upload(medium: str, success: bool) -> None:
    UPLOAD_TOTAL.labels(medium=medium, result="success" if success else "failure").inc()


def record_ingest(result: str) -> None:
    INGEST_TOTAL.labels(result=result).inc()


def record_signed_url_mint(reason: str) -> None:
    SIGNED_URL_MINT_TOTAL.labels(reason=reason).inc()


def record_signed_url_failure() -> None:
    SIGNED_URL_FAILURE_TOTAL.inc()


def record_cleanup_deletion(result: str) -> None:
    CLEANUP_DELETE_TOTAL.labels(result=result).inc()


def get_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
