"""Pydantic schemas for the video endpoints."""
from typing import Any

from pydantic import BaseModel, ConfigDict


def _config_forbid(**kwargs):
    return ConfigDict(extra="forbid", **kwargs)


class SignedUrlRequest(BaseModel):
    model_config = _config_forbid()
    # Persisted video value: legacy string or {"key", "signedUrl", "expiresAt", "generatedAt"}
    video: str | dict[str, Any]


class SignedUrlResponse(BaseModel):
    model_config = _config_forbid()
    url: str | None
    video: str | dict[str, Any]
    refreshed: bool
