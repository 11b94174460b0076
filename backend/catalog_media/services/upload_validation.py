"""Upload validation: content-type allowlist and max size per medium, safe storage filenames."""
import re

from catalog_media.core.config import Settings, get_settings
from catalog_media.core.errors import ValidationError

_MB = 1024 * 1024


def sanitize_storage_filename(filename: str | None) -> str:
    """Safe suffix for storage keys: no path separators, no control chars, bounded length."""
    if not filename or not filename.strip():
        return ""
    # Remove path components, collapse whitespace, restrict to alphanumeric, dash, underscore, dot
    base = filename.strip().split("/")[-1].split("\\")[-1]
    base = re.sub(r"\s+", "-", base)
    safe = re.sub(r"[^\w\-.]", "_", base)
    return safe[:200] if len(safe) > 200 else safe


def _allowlist(medium: str, settings: Settings) -> set[str]:
    raw = settings.image_content_types if medium == "image" else settings.video_content_types
    return set(s.strip().lower() for s in raw.split(",") if s.strip())


def max_byte_size(medium: str, settings: Settings | None = None) -> int:
    settings = settings or get_settings()
    if medium == "image":
        return settings.max_image_mb * _MB
    return settings.max_video_mb * _MB


def is_content_type_allowed(medium: str, content_type: str | None, settings: Settings | None = None) -> bool:
    if not content_type:
        return False
    return content_type.split(";")[0].strip().lower() in _allowlist(medium, settings or get_settings())


def validate_media(
    medium: str,
    content_type: str | None,
    byte_size: int,
    color: str,
    settings: Settings | None = None,
) -> None:
    """Raise ValidationError naming the variant color if the payload is not acceptable."""
    if medium not in ("image", "video"):
        raise ValueError(f"Invalid medium: {medium}")
    settings = settings or get_settings()
    if not is_content_type_allowed(medium, content_type, settings):
        raise ValidationError(f'Unsupported {medium} type "{content_type}" for color "{color}"', color=color)
    limit = max_byte_size(medium, settings)
    if byte_size <= 0 or byte_size > limit:
        raise ValidationError(
            f'{medium.capitalize()} for color "{color}" must be 1..{limit} bytes, got {byte_size}',
            color=color,
        )
