"""Pytest fixtures: settings, in-memory adapters with call counting and failure injection, catalog store, test client."""
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from catalog_media.core.config import Settings
from catalog_media.core.errors import DeletionError, SigningError, UploadError
from catalog_media.services.catalog_media import CatalogStore
from catalog_media.services.images.base import ImageBackend
from catalog_media.services.ingestion import MediaUpload, VariantUpload
from catalog_media.services.media_refs import VariantMediaRecord
from catalog_media.services.storage.base import ObjectStore


class FakeImageBackend(ImageBackend):
    """Image CDN stand-in: records calls; failures per filename (count, or -1 for always)."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.failures: dict[str, int] = {}

    async def upload(self, data: bytes, filename: str) -> str:
        self.calls.append(filename)
        remaining = self.failures.get(filename, 0)
        if remaining:
            if remaining > 0:
                self.failures[filename] = remaining - 1
            raise UploadError("cdn unavailable")
        return f"https://cdn.test/{filename}"


class FakeObjectStore(ObjectStore):
    """Object store stand-in holding objects in a dict."""

    max_sign_seconds = 7 * 24 * 3600

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.put_calls: list[str] = []
        self.sign_calls: list[tuple[str, int]] = []
        self.delete_calls: list[str] = []
        self.fail_put = False
        self.fail_sign = False
        self.fail_delete: set[str] = set()

    async def put(self, data: bytes, storage_key: str, content_type: str) -> str:
        self.put_calls.append(storage_key)
        if self.fail_put:
            raise UploadError("store unavailable")
        self.objects[storage_key] = data
        return storage_key

    async def sign(self, storage_key: str, duration_seconds: int) -> tuple[str, datetime]:
        self.sign_calls.append((storage_key, duration_seconds))
        if self.fail_sign:
            raise SigningError(storage_key, "store unavailable")
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.clamp_duration(duration_seconds))
        return f"https://store.test/{storage_key}?X-Amz-Signature={len(self.sign_calls)}", expires_at

    async def delete(self, storage_key: str) -> bool:
        self.delete_calls.append(storage_key)
        if storage_key in self.fail_delete:
            raise DeletionError(storage_key, "store unavailable")
        return self.objects.pop(storage_key, None) is not None

    async def head(self, storage_key: str) -> dict:
        if storage_key not in self.objects:
            raise FileNotFoundError(f"Object not found: {storage_key}")
        return {"content_length": len(self.objects[storage_key]), "content_type": None}


class InMemoryCatalogStore(CatalogStore):
    def __init__(self) -> None:
        self.items: dict[str, list[VariantMediaRecord]] = {}
        self.saves: list[str] = []
        self.deleted: list[str] = []

    async def load_variants(self, item_id: str) -> list[VariantMediaRecord] | None:
        return self.items.get(item_id)

    async def save_variants(self, item_id: str, records: list[VariantMediaRecord]) -> None:
        self.saves.append(item_id)
        self.items[item_id] = list(records)

    async def delete_item(self, item_id: str) -> None:
        self.deleted.append(item_id)
        self.items.pop(item_id, None)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        dev_assets_dir=str(tmp_path / "assets"),
        image_upload_retry_delay_seconds=0,
        adapter_timeout_seconds=5,
    )


@pytest.fixture
def image_backend() -> FakeImageBackend:
    return FakeImageBackend()


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def catalog_store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore()


@pytest.fixture
def make_upload(tmp_path: Path):
    """Factory for temp-file uploads: make_upload("a.png") / make_upload("v.mp4", "video/mp4")."""
    upload_dir = tmp_path / "uploads"
    upload_dir.mkdir()

    def _make(filename: str, content_type: str = "image/png", data: bytes = b"x" * 32) -> MediaUpload:
        path = upload_dir / filename
        path.write_bytes(data)
        return MediaUpload(filename=filename, content_type=content_type, path=path)

    return _make


@pytest.fixture
def variant(make_upload):
    """Factory: variant("Red", image="a.png", video="v.mp4", stock=3)."""

    def _variant(color: str, image: str | None = None, video: str | None = None, stock: int | None = None) -> VariantUpload:
        return VariantUpload(
            color=color,
            image=make_upload(image) if image else None,
            video=make_upload(video, "video/mp4") if video else None,
            stock=stock,
        )

    return _variant


@pytest.fixture
async def client(object_store: FakeObjectStore):
    from catalog_media.main import app

    app.state.object_store = object_store
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.state.object_store = None
