"""Best-effort deletion of an item's video objects. Failures are logged per key and never raised."""
import asyncio
import logging
from dataclasses import dataclass, field

from catalog_media.core.config import Settings, get_settings
from catalog_media.core.metrics import record_cleanup_deletion
from catalog_media.services.media_refs import VariantMediaRecord, video_object_key
from catalog_media.services.storage.base import ObjectStore

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    deleted: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.deleted) + len(self.missing) + len(self.failed)


class AssetCleanupCoordinator:
    """Deletes every object-store key referenced by a variant set, all keys in parallel."""

    def __init__(self, object_store: ObjectStore, settings: Settings | None = None) -> None:
        self._store = object_store
        self._timeout = (settings or get_settings()).adapter_timeout_seconds

    @staticmethod
    def collect_keys(records: list[VariantMediaRecord]) -> list[str]:
        """Keys of structured and key-only legacy videos, de-duplicated in order. URL values have nothing to delete."""
        keys: list[str] = []
        for record in records:
            for ref in record.videos:
                key = video_object_key(ref)
                if key and key not in keys:
                    keys.append(key)
        return keys

    async def cleanup(self, records: list[VariantMediaRecord]) -> CleanupReport:
        return await self.delete_keys(self.collect_keys(records))

    async def delete_keys(self, keys: list[str]) -> CleanupReport:
        report = CleanupReport()
        if not keys:
            return report
        outcomes = await asyncio.gather(*(self._delete_one(k) for k in keys))
        for key, outcome in zip(keys, outcomes):
            getattr(report, outcome).append(key)
        logger.info(
            "media.cleanup.done",
            extra={"deleted": len(report.deleted), "missing": len(report.missing), "failed": len(report.failed)},
        )
        return report

    async def _delete_one(self, key: str) -> str:
        try:
            existed = await asyncio.wait_for(self._store.delete(key), self._timeout)
        except Exception as e:
            # Housekeeping only: the owning record is removed regardless
            logger.warning("media.cleanup.delete_failed", extra={"key": key, "error": str(e) or e.__class__.__name__})
            record_cleanup_deletion("failed")
            return "failed"
        if not existed:
            logger.info("media.cleanup.already_absent", extra={"key": key})
            record_cleanup_deletion("missing")
            return "missing"
        record_cleanup_deletion("deleted")
        return "deleted"
