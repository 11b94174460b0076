"""Object store interface for private video objects: put, sign, delete, head. Implementations: local (dev disk) or S3."""
from abc import ABC, abstractmethod
from datetime import datetime


class ObjectStore(ABC):
    """Abstract private object store. All calls are async; `sign` durations are clamped to `max_sign_seconds`."""

    max_sign_seconds: int

    @abstractmethod
    async def put(self, data: bytes, storage_key: str, content_type: str) -> str:
        """Store data under storage_key and return the key. Raise UploadError on failure."""
        ...

    @abstractmethod
    async def sign(self, storage_key: str, duration_seconds: int) -> tuple[str, datetime]:
        """Return (url, expires_at UTC) granting temporary read access. Raise SigningError on failure."""
        ...

    @abstractmethod
    async def delete(self, storage_key: str) -> bool:
        """Delete the object. Return False if it did not exist. Raise DeletionError on other failures."""
        ...

    @abstractmethod
    async def head(self, storage_key: str) -> dict:
        """Return metadata: content_length (int), content_type (str). Raise FileNotFoundError if missing."""
        ...

    async def ping(self) -> bool:
        """Readiness probe; True when the backend is reachable."""
        return True

    def clamp_duration(self, duration_seconds: int) -> int:
        return max(1, min(int(duration_seconds), self.max_sign_seconds))
