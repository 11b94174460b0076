"""
Signed-URL access cache for stored videos.

resolve() returns a usable URL for a VideoRef and, when it had to sign, a fresh
StoredVideoRef for the caller to persist. The resolver never touches persistence.

- legacy URL values are returned as-is (nothing to sign);
- legacy bare keys are signed once and upgraded to StoredVideoRef (never downgraded);
- a StoredVideoRef is reused while expires_at is more than the refresh margin away;
- signing failures are logged and the stale ref and last-known URL are returned.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from catalog_media.core.config import Settings, get_settings
from catalog_media.core.logging_redaction import redact_url
from catalog_media.core.metrics import record_signed_url_failure, record_signed_url_mint
from catalog_media.services.media_refs import (
    LegacyVideoRef,
    StoredVideoRef,
    VariantMediaRecord,
    VideoRef,
    parse_video_ref,
)
from catalog_media.services.storage.base import ObjectStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ResolvedVideo:
    ref: VideoRef
    url: str | None
    refreshed: bool


@dataclass
class ResolvedVariants:
    records: list[VariantMediaRecord]
    video_urls: list[list[str | None]]
    changed: bool

    def to_public(self) -> list[dict[str, Any]]:
        """Read-path view: video refs replaced by playable URLs (unavailable ones dropped)."""
        return [
            {
                "color": record.color,
                "images": list(record.images),
                "videos": [u for u in urls if u],
                "stock": record.stock,
            }
            for record, urls in zip(self.records, self.video_urls)
        ]


class SignedUrlResolver:
    def __init__(
        self,
        object_store: ObjectStore,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        settings = settings or get_settings()
        self._store = object_store
        self._clock = clock
        self._ttl = min(settings.signed_url_ttl_seconds, object_store.max_sign_seconds)
        self._margin = timedelta(seconds=settings.signed_url_refresh_margin_seconds)
        self._concurrency = max(1, settings.signed_url_concurrency)
        self._timeout = settings.adapter_timeout_seconds

    def is_fresh(self, ref: StoredVideoRef, now: datetime | None = None) -> bool:
        if not ref.signed_url or ref.expires_at is None:
            return False
        now = now or self._clock()
        return ref.expires_at - now > self._margin

    async def resolve(self, ref: VideoRef | str | dict, semaphore: asyncio.Semaphore | None = None) -> ResolvedVideo:
        ref = parse_video_ref(ref)
        if isinstance(ref, LegacyVideoRef):
            if ref.is_url:
                return ResolvedVideo(ref=ref, url=ref.value, refreshed=False)
            key, stale_url, reason = ref.value, None, "migrate"
        else:
            if self.is_fresh(ref):
                return ResolvedVideo(ref=ref, url=ref.signed_url, refreshed=False)
            key, stale_url, reason = ref.key, ref.signed_url, "refresh"

        try:
            if semaphore is None:
                url, expires_at = await self._sign(key)
            else:
                async with semaphore:
                    url, expires_at = await self._sign(key)
        except Exception as e:
            record_signed_url_failure()
            logger.warning(
                "media.signed_url.refresh_failed",
                extra={
                    "key": key,
                    "reason": reason,
                    "stale_url": redact_url(stale_url) if stale_url else None,
                    "error": str(e) or e.__class__.__name__,
                },
            )
            return ResolvedVideo(ref=ref, url=stale_url, refreshed=False)

        record_signed_url_mint(reason)
        fresh = StoredVideoRef(key=key, signed_url=url, expires_at=expires_at, generated_at=self._clock())
        return ResolvedVideo(ref=fresh, url=url, refreshed=True)

    async def _sign(self, key: str) -> tuple[str, datetime]:
        return await asyncio.wait_for(self._store.sign(key, self._ttl), self._timeout)

    async def resolve_many(
        self, refs: list[VideoRef], semaphore: asyncio.Semaphore | None = None
    ) -> list[ResolvedVideo]:
        """Resolve independently with bounded concurrency; one failure never affects the others."""
        semaphore = semaphore or asyncio.Semaphore(self._concurrency)
        return list(await asyncio.gather(*(self.resolve(r, semaphore) for r in refs)))

    async def resolve_variants(
        self, records: list[VariantMediaRecord], semaphore: asyncio.Semaphore | None = None
    ) -> ResolvedVariants:
        flat = [ref for record in records for ref in record.videos]
        resolved = await self.resolve_many(flat, semaphore)
        out_records: list[VariantMediaRecord] = []
        urls: list[list[str | None]] = []
        changed = False
        pos = 0
        for record in records:
            chunk = resolved[pos:pos + len(record.videos)]
            pos += len(record.videos)
            urls.append([r.url for r in chunk])
            if any(r.refreshed for r in chunk):
                changed = True
                record = record.model_copy(update={"videos": [r.ref for r in chunk]})
            out_records.append(record)
        return ResolvedVariants(records=out_records, video_urls=urls, changed=changed)

    async def resolve_catalog(self, items: dict[str, list[VariantMediaRecord]]) -> dict[str, ResolvedVariants]:
        """Resolve many items (list pages) under one shared concurrency bound."""
        semaphore = asyncio.Semaphore(self._concurrency)
        item_ids = list(items)
        results = await asyncio.gather(*(self.resolve_variants(items[i], semaphore) for i in item_ids))
        return dict(zip(item_ids, results))
