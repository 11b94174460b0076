"""
Variant media records and video references.

Persisted video values come in two shapes:

- legacy: a plain string, either a bare object-store key or a historical URL
  (old CDN-hosted video, image-CDN URL stored by mistake, or an already-signed URL);
- structured: {"key", "signedUrl", "expiresAt", "generatedAt"}.

parse_video_ref / dump_video_ref are the only places that look at raw shapes.
Everything else works with LegacyVideoRef / StoredVideoRef instances.
"""
from datetime import datetime, timezone
from typing import Any, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from catalog_media.core.config import get_settings


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        # Documents written by older code stored naive UTC timestamps
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _legacy_url_hosts() -> tuple[str, ...]:
    raw = get_settings().legacy_url_hosts
    return tuple(h.strip().lower() for h in raw.split(",") if h.strip())


def is_url(value: str) -> bool:
    if value.startswith("//"):
        return True
    if urlparse(value).scheme in ("http", "https"):
        return True
    lowered = value.lower()
    if "x-amz-signature" in lowered or "x-amz-credential" in lowered:
        return True  # already-signed URL
    return any(host in lowered for host in _legacy_url_hosts())


def normalize_color(color: Any) -> str:
    return str(color).strip().lower()


class LegacyVideoRef(BaseModel):
    """Video stored before signed-URL caching existed: bare key or full URL."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    value: str = Field(..., min_length=1)

    @property
    def is_url(self) -> bool:
        return is_url(self.value)


class StoredVideoRef(BaseModel):
    """Object-store key plus the cached signed URL. Only `key` is durable."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    key: str = Field(..., min_length=1)
    signed_url: str | None = Field(default=None, alias="signedUrl")
    expires_at: datetime | None = Field(default=None, alias="expiresAt")
    generated_at: datetime | None = Field(default=None, alias="generatedAt")

    @field_validator("expires_at", "generated_at")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


VideoRef = Union[StoredVideoRef, LegacyVideoRef]


def parse_video_ref(raw: Any) -> VideoRef:
    """Turn a persisted video value into a VideoRef. Raises ValueError for unknown shapes."""
    if isinstance(raw, (StoredVideoRef, LegacyVideoRef)):
        return raw
    if isinstance(raw, str):
        value = raw.strip()
        if not value:
            raise ValueError("Empty video reference")
        return LegacyVideoRef(value=value)
    if isinstance(raw, dict):
        key = raw.get("key")
        if isinstance(key, str) and key.strip():
            return StoredVideoRef.model_validate({**raw, "key": key.strip()})
        raise ValueError("Structured video reference requires a non-empty 'key'")
    raise ValueError(f"Unsupported video reference type: {type(raw).__name__}")


def dump_video_ref(ref: VideoRef) -> str | dict:
    """Persisted shape: plain string for legacy refs, camelCase mapping for structured refs."""
    if isinstance(ref, LegacyVideoRef):
        return ref.value
    return ref.model_dump(mode="json", by_alias=True)


def video_object_key(ref: VideoRef) -> str | None:
    """Durable object-store key of a ref, or None when the value is a URL (nothing to sign or delete)."""
    if isinstance(ref, StoredVideoRef):
        return ref.key
    if ref.is_url:
        return None
    return ref.value


class VariantMediaRecord(BaseModel):
    """Media of one color variant. Images are permanent CDN URLs; videos are VideoRefs."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    color: str = Field(..., min_length=1)
    images: list[str] = Field(default_factory=list)
    videos: list[VideoRef] = Field(default_factory=list)
    stock: int = Field(default=0, ge=0)

    @field_validator("color", mode="before")
    @classmethod
    def _normalize_color(cls, v: Any) -> str:
        return normalize_color(v)

    @field_validator("videos", mode="before")
    @classmethod
    def _parse_videos(cls, v: Any) -> list[VideoRef]:
        if v is None:
            return []
        return [parse_video_ref(x) for x in v]

    @model_validator(mode="after")
    def _require_media(self) -> "VariantMediaRecord":
        if not self.images and not self.videos:
            raise ValueError(f'Variant "{self.color}" must have at least one image or video')
        return self

    @property
    def has_media(self) -> bool:
        return bool(self.images or self.videos)

    def to_document(self) -> dict:
        return {
            "color": self.color,
            "images": list(self.images),
            "videos": [dump_video_ref(v) for v in self.videos],
            "stock": self.stock,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "VariantMediaRecord":
        return cls.model_validate(doc)


def match_by_color(records: list[VariantMediaRecord] | None, color: str) -> VariantMediaRecord | None:
    """Existing record whose normalized color equals `color` (case-insensitive)."""
    wanted = normalize_color(color)
    for record in records or []:
        if record.color == wanted:
            return record
    return None
