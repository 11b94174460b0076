"""
Variant media ingestion: validate, upload images to the image CDN and videos to the object store,
and build one VariantMediaRecord per submitted variant.

The call is all-or-nothing: validation runs before any upload, and an upload that still fails
after retries aborts the whole call. Temp files handed in are removed on every exit path.
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

from catalog_media.core.config import Settings, get_settings
from catalog_media.core.errors import UploadError, ValidationError
from catalog_media.core.metrics import record_ingest, record_signed_url_mint, record_upload
from catalog_media.services.cleanup import AssetCleanupCoordinator
from catalog_media.services.images.base import ImageBackend
from catalog_media.services.media_refs import (
    StoredVideoRef,
    VariantMediaRecord,
    match_by_color,
    normalize_color,
)
from catalog_media.services.storage.base import ObjectStore
from catalog_media.services.upload_validation import sanitize_storage_filename, validate_media

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MediaUpload:
    """A submitted file, usually a temp file written by the request layer."""

    filename: str
    content_type: str
    path: Path
    temporary: bool = True

    @property
    def byte_size(self) -> int:
        try:
            return self.path.stat().st_size
        except OSError:
            return 0

    def read(self) -> bytes:
        return self.path.read_bytes()

    def release(self) -> None:
        if not self.temporary:
            return
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("media.ingest.temp_cleanup_failed", extra={"path": str(self.path), "error": str(e)})


@dataclass
class VariantUpload:
    """Per-index submission: color label, optional image, optional video, optional stock."""

    color: str
    image: MediaUpload | None = None
    video: MediaUpload | None = None
    stock: int | None = None

    def uploads(self) -> list[MediaUpload]:
        return [u for u in (self.image, self.video) if u is not None]


def build_video_key(filename: str) -> str:
    safe = sanitize_storage_filename(filename) or "video.mp4"
    return f"videos/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{safe}"


class VariantMediaIngestor:
    """Uploads per-variant media across the image CDN and the object store."""

    def __init__(
        self,
        image_backend: ImageBackend,
        object_store: ObjectStore,
        settings: Settings | None = None,
        cleanup: AssetCleanupCoordinator | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings or get_settings()
        self._images = image_backend
        self._store = object_store
        self._cleanup = cleanup or AssetCleanupCoordinator(object_store, self._settings)
        self._clock = clock
        self._attempts = max(1, self._settings.image_upload_attempts)
        self._retry_delay = self._settings.image_upload_retry_delay_seconds
        self._timeout = self._settings.adapter_timeout_seconds
        self._sign_seconds = min(self._settings.signed_url_ttl_seconds, object_store.max_sign_seconds)

    async def ingest(
        self,
        variants: list[VariantUpload],
        *,
        default_stock: int = 0,
        existing: list[VariantMediaRecord] | None = None,
    ) -> list[VariantMediaRecord]:
        """Return one record per variant, in submitted order.

        With `existing` (update mode), a medium without a new upload keeps the previous
        record's list for the same normalized color; a new upload replaces that list.
        """
        try:
            self._validate(variants, existing)
            images, videos = await self._upload_all(variants)
            records = [
                self._build_record(v, images.get(i), videos.get(i), existing, default_stock)
                for i, v in enumerate(variants)
            ]
        except ValidationError as e:
            record_ingest("validation_error")
            logger.info("media.ingest.rejected", extra={"color": e.color, "reason": e.message})
            raise
        except UploadError as e:
            record_ingest("upload_error")
            logger.warning("media.ingest.upload_failed", extra={"color": e.color, "reason": e.reason})
            raise
        finally:
            for v in variants:
                for upload in v.uploads():
                    upload.release()
        record_ingest("success")
        return records

    def _validate(self, variants: list[VariantUpload], existing: list[VariantMediaRecord] | None) -> None:
        if not variants:
            raise ValidationError("At least one color variant is required")
        seen: set[str] = set()
        for i, v in enumerate(variants):
            label = str(v.color or "").strip()
            color = normalize_color(label)
            if not color:
                raise ValidationError(f"Color label is required for variant {i}")
            if color in seen:
                raise ValidationError(f'Duplicate color "{label}"', color=label)
            seen.add(color)
            if v.image is None and v.video is None:
                previous = match_by_color(existing, color) if existing is not None else None
                if previous is None or not previous.has_media:
                    raise ValidationError(f'Provide an image or a video for color "{label}"', color=label)
            if v.image is not None:
                validate_media("image", v.image.content_type, v.image.byte_size, label, self._settings)
            if v.video is not None:
                validate_media("video", v.video.content_type, v.video.byte_size, label, self._settings)

    async def _upload_all(self, variants: list[VariantUpload]) -> tuple[dict[int, str], dict[int, StoredVideoRef]]:
        written_keys: list[str] = []
        jobs: list[tuple[int, str]] = []
        coros = []
        for i, v in enumerate(variants):
            label = v.color.strip()
            if v.image is not None:
                jobs.append((i, "image"))
                coros.append(self._upload_image(label, v.image))
            if v.video is not None:
                jobs.append((i, "video"))
                coros.append(self._upload_video(label, v.video, written_keys))

        # Every upload runs to completion before a failure is reported
        outcomes = await asyncio.gather(*coros, return_exceptions=True)

        images: dict[int, str] = {}
        videos: dict[int, StoredVideoRef] = {}
        failures: list[BaseException] = []
        for (i, medium), outcome in zip(jobs, outcomes):
            if isinstance(outcome, BaseException):
                failures.append(outcome)
            elif medium == "image":
                images[i] = outcome
            else:
                videos[i] = outcome
        if not failures:
            return images, videos

        for f in failures:
            if not isinstance(f, Exception):
                raise f  # cancellation
        if images:
            logger.warning("media.ingest.orphaned_images", extra={"urls": list(images.values())})
        if written_keys:
            report = await self._cleanup.delete_keys(written_keys)
            logger.info(
                "media.ingest.rollback",
                extra={"deleted": report.deleted, "missing": report.missing, "failed": report.failed},
            )
        first = failures[0]
        if isinstance(first, UploadError):
            raise first
        raise UploadError(str(first) or first.__class__.__name__) from first

    async def _upload_image(self, color: str, upload: MediaUpload) -> str:
        data = await asyncio.to_thread(upload.read)
        return await self._with_retries(
            "image", color, upload.filename, lambda: self._images.upload(data, upload.filename)
        )

    async def _upload_video(self, color: str, upload: MediaUpload, written_keys: list[str]) -> StoredVideoRef:
        data = await asyncio.to_thread(upload.read)
        key = build_video_key(upload.filename)
        # A timed-out put may still land in the store; roll the key back either way
        written_keys.append(key)
        await self._with_retries(
            "video", color, upload.filename, lambda: self._store.put(data, key, upload.content_type)
        )
        # A video only counts as uploaded once it has a working signed URL
        try:
            url, expires_at = await asyncio.wait_for(self._store.sign(key, self._sign_seconds), self._timeout)
        except Exception as e:
            raise UploadError(f"could not sign {upload.filename}: {e}", color=color) from e
        record_signed_url_mint("upload")
        return StoredVideoRef(key=key, signed_url=url, expires_at=expires_at, generated_at=self._clock())

    async def _with_retries(
        self, medium: str, color: str, filename: str, call: Callable[[], Awaitable[T]]
    ) -> T:
        last: Exception | None = None
        for attempt in range(1, self._attempts + 1):
            try:
                result = await asyncio.wait_for(call(), self._timeout)
            except Exception as e:
                last = e
                record_upload(medium, False)
                logger.warning(
                    "media.ingest.upload_attempt_failed",
                    extra={
                        "medium": medium,
                        "color": color,
                        "upload_filename": filename,
                        "attempt": attempt,
                        "error": str(e) or e.__class__.__name__,
                    },
                )
                if attempt < self._attempts:
                    await asyncio.sleep(self._retry_delay)
                continue
            record_upload(medium, True)
            return result
        reason = getattr(last, "reason", None) or str(last) or last.__class__.__name__
        raise UploadError(f"{filename}: {reason} (after {self._attempts} attempts)", color=color) from last

    @staticmethod
    def _build_record(
        variant: VariantUpload,
        image_url: str | None,
        video: StoredVideoRef | None,
        existing: list[VariantMediaRecord] | None,
        default_stock: int,
    ) -> VariantMediaRecord:
        color = normalize_color(variant.color)
        previous = match_by_color(existing, color) if existing is not None else None
        images = [image_url] if image_url else (list(previous.images) if previous else [])
        videos = [video] if video else (list(previous.videos) if previous else [])
        if variant.stock is not None:
            stock = max(0, int(variant.stock))
        elif previous is not None:
            stock = previous.stock
        else:
            stock = max(0, int(default_stock))
        return VariantMediaRecord(color=color, images=images, videos=videos, stock=stock)
