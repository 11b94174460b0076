"""FastAPI dependencies: process-wide object store, signed-URL resolver, metrics guard."""
import hmac

from fastapi import Depends, Header, HTTPException, Request, status

from catalog_media.core.config import get_settings
from catalog_media.services.signed_urls import SignedUrlResolver
from catalog_media.services.storage import get_object_store
from catalog_media.services.storage.base import ObjectStore


def get_store(request: Request) -> ObjectStore:
    """Object store created once per process and kept on app.state."""
    store = getattr(request.app.state, "object_store", None)
    if store is None:
        store = get_object_store()
        request.app.state.object_store = store
    return store


def get_resolver(store: ObjectStore = Depends(get_store)) -> SignedUrlResolver:
    return SignedUrlResolver(store, get_settings())


def require_metrics_access(
    x_metrics_secret: str | None = Header(None, alias="X-Metrics-Secret"),
) -> None:
    """If metrics_secret is configured, require it in X-Metrics-Secret."""
    secret = get_settings().metrics_secret
    if not secret:
        return None
    if not x_metrics_secret or not hmac.compare_digest(x_metrics_secret, secret):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return None
