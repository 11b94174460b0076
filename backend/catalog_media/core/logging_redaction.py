"""Redact sensitive data from structured logs. Never log credentials, tokens or presigned query strings."""
import re
from typing import Any

# Keys (case-insensitive) that must be redacted in dicts
REDACT_KEYS = frozenset({
    "password", "token", "secret", "authorization", "cookie",
    "api_key", "private_key", "access_key", "signed_url", "signedurl",
})

# Query strings of presigned URLs carry credentials; keep scheme/host/path only
_SIGNED_QUERY = re.compile(r"\?[^\s]*(X-Amz-Signature|X-Amz-Credential|token=)[^\s]*", re.IGNORECASE)


def _redact_key(key: str) -> bool:
    k = key.lower()
    return any(r in k for r in REDACT_KEYS)


def redact_for_log(obj: Any) -> Any:
    """Return a copy of obj safe for logging: sensitive keys replaced with '[REDACTED]'."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return {
            k: "[REDACTED]" if _redact_key(str(k)) else redact_for_log(v)
            for k, v in obj.items()
        }
    if isinstance(obj, (list, tuple)):
        return type(obj)(redact_for_log(x) for x in obj)
    if isinstance(obj, str):
        if _looks_like_secret(obj):
            return "[REDACTED]"
        return redact_url(obj)
    return obj


def redact_url(value: str) -> str:
    """Strip the query string of a presigned or token-bearing URL."""
    return _SIGNED_QUERY.sub("?[REDACTED]", value)


def _looks_like_secret(s: str) -> bool:
    """Heuristic: bearer/basic credentials or JWT-like strings."""
    if len(s) > 64 and re.match(r"^[A-Za-z0-9_-]+\.([A-Za-z0-9_-]+)\.", s):
        return True  # JWT-like
    if s.lower().startswith(("bearer ", "basic ")):
        return True
    return False
