"""HMAC tokens for dev-store download URLs (local object store stand-in for presigned GETs)."""
import hashlib
import hmac
import time

from catalog_media.core.config import get_settings


def _sign(message: str) -> str:
    return hmac.new(
        get_settings().secret_key.encode(),
        message.encode(),
        hashlib.sha256,
    ).hexdigest()


def create_object_token(storage_key: str, expires_ts: int) -> str:
    """HMAC-signed token binding a storage key to an absolute expiry (unix seconds)."""
    return _sign(f"{storage_key}:{expires_ts}")


def verify_object_token(token: str, storage_key: str, expires_ts: int, now: float | None = None) -> bool:
    """Verify signature and expiry; return True if valid."""
    try:
        expected = _sign(f"{storage_key}:{int(expires_ts)}")
        if not hmac.compare_digest(token, expected):
            return False
        current = time.time() if now is None else now
        if current > int(expires_ts):
            return False
        return True
    except (ValueError, TypeError):
        return False
