"""
Glue between the catalog (owner of item records) and the media components.

The catalog implements CatalogStore. Write paths run ingestion and save the records,
read paths resolve video URLs and write back refreshed refs, delete runs cleanup
for every key before the record is removed.
"""
import asyncio
import logging
from abc import ABC, abstractmethod

from catalog_media.core.errors import ItemNotFoundError
from catalog_media.services.cleanup import AssetCleanupCoordinator, CleanupReport
from catalog_media.services.ingestion import VariantMediaIngestor, VariantUpload
from catalog_media.services.media_refs import VariantMediaRecord
from catalog_media.services.signed_urls import ResolvedVariants, SignedUrlResolver

logger = logging.getLogger(__name__)


class CatalogStore(ABC):
    """Persistence of variant records, owned by the catalog."""

    @abstractmethod
    async def load_variants(self, item_id: str) -> list[VariantMediaRecord] | None:
        """Return the item's variants, or None if the item does not exist."""
        ...

    @abstractmethod
    async def save_variants(self, item_id: str, records: list[VariantMediaRecord]) -> None:
        ...

    @abstractmethod
    async def delete_item(self, item_id: str) -> None:
        ...


class CatalogMediaService:
    def __init__(
        self,
        store: CatalogStore,
        ingestor: VariantMediaIngestor,
        resolver: SignedUrlResolver,
        cleanup: AssetCleanupCoordinator,
    ) -> None:
        self._store = store
        self._ingestor = ingestor
        self._resolver = resolver
        self._cleanup = cleanup

    async def create_item_media(
        self, item_id: str, uploads: list[VariantUpload], default_stock: int = 0
    ) -> list[VariantMediaRecord]:
        records = await self._ingestor.ingest(uploads, default_stock=default_stock)
        await self._save_or_rollback(item_id, records, previous=[])
        return records

    async def update_item_media(
        self, item_id: str, uploads: list[VariantUpload], default_stock: int = 0
    ) -> list[VariantMediaRecord]:
        """Re-ingest against the stored variants; objects no longer referenced are deleted afterwards."""
        # The ingestor releases temp files once it has them; until then they are ours
        try:
            existing = await self._store.load_variants(item_id)
            if existing is None:
                raise ItemNotFoundError(item_id)
        except BaseException:
            for v in uploads:
                for upload in v.uploads():
                    upload.release()
            raise
        records = await self._ingestor.ingest(uploads, default_stock=default_stock, existing=existing)
        await self._save_or_rollback(item_id, records, previous=existing)
        kept = set(AssetCleanupCoordinator.collect_keys(records))
        superseded = [k for k in AssetCleanupCoordinator.collect_keys(existing) if k not in kept]
        if superseded:
            await self._cleanup.delete_keys(superseded)
        return records

    async def read_item_media(self, item_id: str, persist: bool = True) -> ResolvedVariants:
        records = await self._store.load_variants(item_id)
        if records is None:
            raise ItemNotFoundError(item_id)
        resolved = await self._resolver.resolve_variants(records)
        if persist and resolved.changed:
            await self._write_back(item_id, resolved)
        return resolved

    async def list_items_media(self, item_ids: list[str], persist: bool = True) -> dict[str, ResolvedVariants]:
        """Resolve many items at once; unknown ids are skipped."""
        loaded = await asyncio.gather(*(self._store.load_variants(i) for i in item_ids))
        items = {i: records for i, records in zip(item_ids, loaded) if records is not None}
        resolved = await self._resolver.resolve_catalog(items)
        if persist:
            await asyncio.gather(
                *(self._write_back(i, r) for i, r in resolved.items() if r.changed)
            )
        return resolved

    async def delete_item(self, item_id: str) -> CleanupReport:
        records = await self._store.load_variants(item_id)
        if records is None:
            raise ItemNotFoundError(item_id)
        report = await self._cleanup.cleanup(records)
        if report.failed:
            logger.warning("media.cleanup.incomplete", extra={"item_id": item_id, "failed": report.failed})
        await self._store.delete_item(item_id)
        return report

    async def _save_or_rollback(
        self, item_id: str, records: list[VariantMediaRecord], previous: list[VariantMediaRecord]
    ) -> None:
        """Save records; on failure delete the objects written for them and re-raise."""
        try:
            await self._store.save_variants(item_id, records)
        except Exception:
            known = set(AssetCleanupCoordinator.collect_keys(previous))
            fresh = [k for k in AssetCleanupCoordinator.collect_keys(records) if k not in known]
            if fresh:
                report = await self._cleanup.delete_keys(fresh)
                logger.warning(
                    "media.save.rollback",
                    extra={"item_id": item_id, "deleted": report.deleted, "failed": report.failed},
                )
            raise

    async def _write_back(self, item_id: str, resolved: ResolvedVariants) -> None:
        # A failed write-back only costs a re-sign on the next read
        try:
            await self._store.save_variants(item_id, resolved.records)
        except Exception as e:
            logger.warning("media.signed_url.write_back_failed", extra={"item_id": item_id, "error": str(e)})
