"""Local (dev disk) object store: files under dev_assets_dir/videos; signed URLs are backend URLs with HMAC tokens."""
import asyncio
import time
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import quote

from catalog_media.core.config import Settings, get_settings
from catalog_media.core.errors import DeletionError, UploadError
from catalog_media.core.security import create_object_token
from catalog_media.services.storage.base import ObjectStore


class LocalObjectStore(ObjectStore):
    """Dev disk store: sign returns /api/videos/local/{key}?expires=..&token=..; head checks the file."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._root = Path(settings.dev_assets_dir) / "videos"
        self._base_url = settings.public_base_url.rstrip("/")
        self.max_sign_seconds = settings.object_store_max_sign_seconds

    def path_for(self, storage_key: str) -> Path:
        path = (self._root / storage_key).resolve()
        if self._root.resolve() not in path.parents:
            raise ValueError(f"Invalid storage key: {storage_key}")
        return path

    async def put(self, data: bytes, storage_key: str, content_type: str) -> str:
        try:
            path = self.path_for(storage_key)
            path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_bytes, data)
        except (OSError, ValueError) as e:
            raise UploadError(f"write failed for {storage_key}: {e}") from e
        return storage_key

    async def sign(self, storage_key: str, duration_seconds: int) -> tuple[str, datetime]:
        expires_ts = int(time.time()) + self.clamp_duration(duration_seconds)
        token = create_object_token(storage_key, expires_ts)
        url = f"{self._base_url}/api/videos/local/{quote(storage_key)}?expires={expires_ts}&token={token}"
        return url, datetime.fromtimestamp(expires_ts, tz=timezone.utc)

    async def delete(self, storage_key: str) -> bool:
        try:
            path = self.path_for(storage_key)
        except ValueError as e:
            raise DeletionError(storage_key, str(e)) from e
        if not path.is_file():
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise DeletionError(storage_key, str(e)) from e
        return True

    async def head(self, storage_key: str) -> dict:
        path = self.path_for(storage_key)
        if not path.exists() or not path.is_file():
            raise FileNotFoundError(f"Object not found: {storage_key}")
        size = path.stat().st_size
        # Local files don't store content_type
        return {"content_length": size, "content_type": None}
