"""Application settings."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Service config from env."""

    app_name: str = "Catalog Variant Media"
    debug: bool = False
    # Structured logging: set LOG_JSON=1 for one-JSON-object-per-line
    log_json: bool = False
    # If set, /metrics requires the X-Metrics-Secret header
    metrics_secret: str | None = None

    # HMAC key for dev-store stream tokens
    secret_key: str = "dev-secret-change-in-production"
    # Base URL this service is reachable at; used to build dev-store and dev-image URLs
    public_base_url: str = "http://localhost:8000"
    # Storefront origins allowed to call the video endpoints
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Video object store: local (dev disk) or s3 (any S3-compatible endpoint, e.g. Backblaze B2)
    storage_backend: str = "local"  # local | s3
    dev_assets_dir: str = "./dev_assets"
    s3_bucket: str | None = None
    s3_region: str = "eu-central-003"
    s3_endpoint_url: str | None = None
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None
    s3_cache_control: str = "public, max-age=31536000"
    # Backend cap on presigned URL lifetime (S3 SigV4: 7 days)
    object_store_max_sign_seconds: int = 7 * 24 * 3600

    # Signed video URLs: requested lifetime (clamped to the store cap) and refresh margin
    signed_url_ttl_seconds: int = 7 * 24 * 3600
    signed_url_refresh_margin_seconds: int = 24 * 3600
    # Max simultaneous signing requests on read paths
    signed_url_concurrency: int = 8
    # Legacy video values containing one of these hosts are old CDN URLs, even without a scheme
    legacy_url_hosts: str = "cloudinary.com"

    # Image CDN: local (dev disk) or imagekit
    image_backend: str = "local"  # local | imagekit
    imagekit_private_key: str | None = None
    imagekit_upload_url: str = "https://upload.imagekit.io/api/v1/files/upload"
    imagekit_folder: str = "/products"
    # Appended to delivered image URLs (max 1200x1200, automatic quality)
    imagekit_transformation: str = "w-1200,h-1200,c-at_max,q-auto"

    # Upload retries and per-call timeout for both adapters
    image_upload_attempts: int = 3
    image_upload_retry_delay_seconds: float = 1.0
    adapter_timeout_seconds: float = 60.0

    # Upload validation
    image_content_types: str = "image/jpeg,image/png,image/webp,image/gif,image/heic,image/bmp,image/tiff"
    video_content_types: str = "video/mp4,video/quicktime,video/webm"
    max_image_mb: int = 20
    max_video_mb: int = 200

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
