"""Image backend factory: local (dev disk) or ImageKit."""
from catalog_media.core.config import get_settings
from catalog_media.services.images.base import ImageBackend
from catalog_media.services.images.local import LocalImageBackend


def get_image_backend() -> ImageBackend:
    settings = get_settings()
    if settings.image_backend == "imagekit":
        from catalog_media.services.images.imagekit import ImageKitBackend
        return ImageKitBackend(settings)
    return LocalImageBackend(settings)
