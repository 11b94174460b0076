"""S3 object store: put, presigned GET, delete and head. Imported only when STORAGE_BACKEND=s3 (avoids boto3 in local mode).

Works against any S3-compatible endpoint (Backblaze B2 via S3_ENDPOINT_URL, path-style addressing).
boto3 is blocking; every call runs in a worker thread.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from catalog_media.core.config import Settings, get_settings
from catalog_media.core.errors import DeletionError, SigningError, UploadError
from catalog_media.services.storage.base import ObjectStore

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


def _get_client(settings: Settings):
    import boto3
    from botocore.config import Config

    return boto3.client(
        "s3",
        region_name=settings.s3_region,
        endpoint_url=settings.s3_endpoint_url,
        aws_access_key_id=settings.s3_access_key_id,
        aws_secret_access_key=settings.s3_secret_access_key,
        config=Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
            connect_timeout=10,
            read_timeout=int(settings.adapter_timeout_seconds),
            retries={"max_attempts": 2},
        ),
    )


def _error_code(exc: Exception) -> str | None:
    resp = getattr(exc, "response", None)
    return resp.get("Error", {}).get("Code") if isinstance(resp, dict) else None


class S3ObjectStore(ObjectStore):
    """S3 backend via boto3; the client is created once and owns its credentials."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        if not settings.s3_bucket:
            raise ValueError("S3 storage requires s3_bucket to be set")
        self._bucket = settings.s3_bucket
        self._cache_control = settings.s3_cache_control
        self._client = _get_client(settings)
        self.max_sign_seconds = settings.object_store_max_sign_seconds

    async def put(self, data: bytes, storage_key: str, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._bucket,
                Key=storage_key,
                Body=data,
                ContentType=content_type,
                CacheControl=self._cache_control,
                ContentDisposition="inline",
            )
        except Exception as e:
            raise UploadError(f"put_object failed for {storage_key}: {_error_code(e) or e}") from e
        return storage_key

    async def sign(self, storage_key: str, duration_seconds: int) -> tuple[str, datetime]:
        expires_in = self.clamp_duration(duration_seconds)
        issued = datetime.now(timezone.utc)
        try:
            url = await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params={
                    "Bucket": self._bucket,
                    "Key": storage_key,
                    "ResponseContentDisposition": "inline",
                    "ResponseCacheControl": self._cache_control,
                },
                ExpiresIn=expires_in,
            )
        except Exception as e:
            raise SigningError(storage_key, str(_error_code(e) or e)) from e
        return url, issued + timedelta(seconds=expires_in)

    async def delete(self, storage_key: str) -> bool:
        # S3 DeleteObject succeeds for absent keys; head first so callers can tell the difference
        try:
            await self.head(storage_key)
        except FileNotFoundError:
            return False
        except Exception as e:
            raise DeletionError(storage_key, str(_error_code(e) or e)) from e
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self._bucket, Key=storage_key)
        except Exception as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise DeletionError(storage_key, str(_error_code(e) or e)) from e
        return True

    async def head(self, storage_key: str) -> dict:
        try:
            resp = await asyncio.to_thread(self._client.head_object, Bucket=self._bucket, Key=storage_key)
        except Exception as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise FileNotFoundError(f"Object not found: {storage_key}") from e
            raise
        return {
            "content_length": resp.get("ContentLength") or 0,
            "content_type": resp.get("ContentType"),
        }

    async def ping(self) -> bool:
        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=self._bucket)
        except Exception:
            return False
        return True
