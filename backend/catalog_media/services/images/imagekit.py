"""ImageKit upload API client (multipart upload, basic auth with the private key)."""
from __future__ import annotations

import httpx

from catalog_media.core.config import Settings, get_settings
from catalog_media.core.errors import UploadError
from catalog_media.services.images.base import ImageBackend


class ImageKitBackend(ImageBackend):
    """Uploads to ImageKit and returns the delivery URL with the resize/quality transformation applied."""

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None) -> None:
        settings = settings or get_settings()
        if not settings.imagekit_private_key:
            raise ValueError("ImageKit backend requires imagekit_private_key to be set")
        self._upload_url = settings.imagekit_upload_url
        self._folder = settings.imagekit_folder
        self._transformation = settings.imagekit_transformation
        self._auth = httpx.BasicAuth(settings.imagekit_private_key, "")
        self._timeout = settings.adapter_timeout_seconds
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def upload(self, data: bytes, filename: str) -> str:
        client = self._get_client()
        try:
            r = await client.post(
                self._upload_url,
                auth=self._auth,
                files={"file": (filename, data)},
                data={
                    "fileName": filename,
                    "folder": self._folder,
                    "useUniqueFileName": "true",
                },
            )
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UploadError(f"ImageKit HTTP {e.response.status_code} for {filename}") from e
        except httpx.HTTPError as e:
            raise UploadError(f"ImageKit request failed for {filename}: {e.__class__.__name__}") from e
        try:
            url = r.json().get("url")
        except ValueError as e:
            raise UploadError(f"ImageKit returned a non-JSON response for {filename}") from e
        if not url:
            raise UploadError(f"ImageKit response has no url for {filename}")
        return self._with_transformation(url)

    def _with_transformation(self, url: str) -> str:
        if not self._transformation:
            return url
        sep = "&" if "?" in url else "?"
        return f"{url}{sep}tr={self._transformation}"

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
