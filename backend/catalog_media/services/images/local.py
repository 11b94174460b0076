"""Local (dev disk) image backend: files under dev_assets_dir/images, served by the /dev-images static mount."""
import asyncio
import uuid
from pathlib import Path

from catalog_media.core.config import Settings, get_settings
from catalog_media.core.errors import UploadError
from catalog_media.services.images.base import ImageBackend
from catalog_media.services.upload_validation import sanitize_storage_filename


class LocalImageBackend(ImageBackend):
    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.root = Path(settings.dev_assets_dir) / "images"
        self._base_url = settings.public_base_url.rstrip("/")

    async def upload(self, data: bytes, filename: str) -> str:
        safe = sanitize_storage_filename(filename) or "image"
        name = f"{uuid.uuid4().hex}_{safe}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread((self.root / name).write_bytes, data)
        except OSError as e:
            raise UploadError(f"write failed for {filename}: {e}") from e
        return f"{self._base_url}/dev-images/{name}"
