"""Object store factory: local (dev disk) or S3. S3 backend is loaded only when STORAGE_BACKEND=s3 (no boto3 in local)."""
from catalog_media.core.config import get_settings
from catalog_media.services.storage.base import ObjectStore
from catalog_media.services.storage.local import LocalObjectStore


def get_object_store() -> ObjectStore:
    """Return the configured object store. Avoids importing boto3 when backend is local."""
    settings = get_settings()
    if settings.storage_backend == "s3":
        from catalog_media.services.storage.s3 import S3ObjectStore
        return S3ObjectStore(settings)
    return LocalObjectStore(settings)
