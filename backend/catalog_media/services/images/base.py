"""Image CDN interface: upload bytes, get a permanent public URL back."""
from abc import ABC, abstractmethod


class ImageBackend(ABC):
    @abstractmethod
    async def upload(self, data: bytes, filename: str) -> str:
        """Upload image bytes and return the delivery URL. Raise UploadError on failure."""
        ...

    async def aclose(self) -> None:
        return None
