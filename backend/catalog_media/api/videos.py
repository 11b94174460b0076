"""Videos: signed-url (POST), stream proxy (GET), dev-store download with HMAC token (GET)."""
import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse, StreamingResponse
from starlette.background import BackgroundTask

from catalog_media.api.schemas import SignedUrlRequest, SignedUrlResponse
from catalog_media.core.config import get_settings
from catalog_media.core.deps import get_resolver, get_store
from catalog_media.core.metrics import record_signed_url_mint
from catalog_media.core.security import verify_object_token
from catalog_media.services.media_refs import dump_video_ref, parse_video_ref
from catalog_media.services.signed_urls import SignedUrlResolver
from catalog_media.services.storage.base import ObjectStore
from catalog_media.services.storage.local import LocalObjectStore

router = APIRouter(prefix="/videos", tags=["videos"])
logger = logging.getLogger(__name__)

# Proxy streams sign short-lived URLs; they are consumed immediately
_STREAM_SIGN_SECONDS = 3600


@router.post("/signed-url", response_model=SignedUrlResponse)
async def signed_url(
    body: SignedUrlRequest,
    resolver: SignedUrlResolver = Depends(get_resolver),
):
    try:
        ref = parse_video_ref(body.video)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    resolved = await resolver.resolve(ref)
    return SignedUrlResponse(url=resolved.url, video=dump_video_ref(resolved.ref), refreshed=resolved.refreshed)


async def _close_upstream(upstream: httpx.Response, client: httpx.AsyncClient) -> None:
    await upstream.aclose()
    await client.aclose()


@router.get("/stream/{key:path}")
async def stream_video(key: str, store: ObjectStore = Depends(get_store)):
    """Sign the key and proxy the object bytes (players that cannot follow presigned redirects)."""
    try:
        url, _ = await store.sign(key, _STREAM_SIGN_SECONDS)
    except Exception as e:
        logger.warning("media.stream.sign_failed", extra={"key": key, "error": str(e)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to stream video")
    record_signed_url_mint("request")

    client = httpx.AsyncClient(timeout=get_settings().adapter_timeout_seconds, follow_redirects=True)
    try:
        upstream = await client.send(client.build_request("GET", url), stream=True)
    except httpx.HTTPError as e:
        await client.aclose()
        logger.warning("media.stream.upstream_failed", extra={"key": key, "error": e.__class__.__name__})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to stream video")
    if upstream.status_code >= 400:
        code = upstream.status_code
        await _close_upstream(upstream, client)
        if code in (403, 404):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to stream video")
    headers = {"Cache-Control": "private, no-store"}
    if "content-length" in upstream.headers:
        headers["Content-Length"] = upstream.headers["content-length"]
    return StreamingResponse(
        upstream.aiter_raw(),
        media_type=upstream.headers.get("content-type") or "video/mp4",
        headers=headers,
        background=BackgroundTask(_close_upstream, upstream, client),
    )


@router.get("/local/{key:path}")
async def local_video(
    key: str,
    expires: int,
    token: str,
    store: ObjectStore = Depends(get_store),
):
    """Dev store: serve the file behind a LocalObjectStore signed URL."""
    if not isinstance(store, LocalObjectStore):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    if not verify_object_token(token, key, expires):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token")
    try:
        path = store.path_for(key)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(
        path,
        media_type="video/mp4",
        headers={
            "Cache-Control": "private, no-store",
            "Content-Disposition": "inline",
        },
    )
