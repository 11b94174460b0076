"""Ingestion: validation before upload, retries, atomic failure, temp cleanup, update-mode merge."""
import asyncio
from datetime import datetime, timezone

import pytest

from catalog_media.core.errors import UploadError, ValidationError
from catalog_media.services.ingestion import VariantMediaIngestor, VariantUpload, build_video_key
from catalog_media.services.media_refs import LegacyVideoRef, StoredVideoRef, VariantMediaRecord


@pytest.fixture
def ingestor(image_backend, object_store, settings):
    return VariantMediaIngestor(image_backend, object_store, settings)


@pytest.mark.asyncio
async def test_mug_scenario_image_only_and_video_only(ingestor, variant, object_store):
    records = await ingestor.ingest([variant("Red", image="imgA.png"), variant("Blue", video="vidB.mp4")])

    assert records[0].color == "red"
    assert records[0].images == ["https://cdn.test/imgA.png"]
    assert records[0].videos == []

    assert records[1].color == "blue"
    assert records[1].images == []
    assert len(records[1].videos) == 1
    video = records[1].videos[0]
    assert isinstance(video, StoredVideoRef)
    assert video.key in object_store.objects
    assert video.signed_url and video.signed_url.startswith("https://store.test/")
    assert video.expires_at is not None and video.generated_at is not None
    # Initial signature uses the store maximum
    assert object_store.sign_calls == [(video.key, object_store.max_sign_seconds)]


@pytest.mark.asyncio
async def test_missing_media_fails_before_any_upload(ingestor, variant, image_backend, object_store):
    variants = [
        variant("Red", image="a.png"),
        variant("Green"),
        variant("Blue", video="b.mp4"),
    ]
    with pytest.raises(ValidationError) as exc:
        await ingestor.ingest(variants)
    assert exc.value.color == "Green"
    assert '"Green"' in str(exc.value)
    assert image_backend.calls == []
    assert object_store.put_calls == []
    assert object_store.sign_calls == []


@pytest.mark.asyncio
async def test_validation_failure_still_removes_temp_files(ingestor, variant):
    red = variant("Red", image="a.png", video="a.mp4")
    with pytest.raises(ValidationError):
        await ingestor.ingest([red, variant("Green")])
    assert not red.image.path.exists()
    assert not red.video.path.exists()


@pytest.mark.asyncio
async def test_success_removes_temp_files(ingestor, variant):
    red = variant("Red", image="a.png", video="a.mp4")
    await ingestor.ingest([red])
    assert not red.image.path.exists()
    assert not red.video.path.exists()


@pytest.mark.asyncio
async def test_non_temporary_upload_is_kept(ingestor, make_upload):
    upload = make_upload("keep.png")
    upload.temporary = False
    await ingestor.ingest([VariantUpload(color="Red", image=upload)])
    assert upload.path.exists()


@pytest.mark.asyncio
async def test_empty_variant_list_is_rejected(ingestor):
    with pytest.raises(ValidationError, match="At least one color"):
        await ingestor.ingest([])


@pytest.mark.asyncio
async def test_duplicate_and_blank_colors_are_rejected(ingestor, variant):
    with pytest.raises(ValidationError, match="Duplicate"):
        await ingestor.ingest([variant("Red", image="a.png"), variant(" red ", image="b.png")])
    with pytest.raises(ValidationError, match="Color label"):
        await ingestor.ingest([variant("  ", image="c.png")])


@pytest.mark.asyncio
async def test_wrong_content_type_is_rejected(ingestor, make_upload, image_backend):
    bad = VariantUpload(color="Red", image=make_upload("a.pdf", "application/pdf"))
    with pytest.raises(ValidationError, match="Unsupported image type"):
        await ingestor.ingest([bad])
    assert image_backend.calls == []


@pytest.mark.asyncio
async def test_oversized_video_is_rejected(image_backend, object_store, settings, make_upload):
    settings.max_video_mb = 1
    ingestor = VariantMediaIngestor(image_backend, object_store, settings)
    big = VariantUpload(color="Red", video=make_upload("big.mp4", "video/mp4", b"x" * (1024 * 1024 + 1)))
    with pytest.raises(ValidationError, match="must be 1.."):
        await ingestor.ingest([big])
    assert object_store.put_calls == []


@pytest.mark.asyncio
async def test_image_upload_retries_transient_failures(ingestor, variant, image_backend):
    image_backend.failures["a.png"] = 2
    records = await ingestor.ingest([variant("Red", image="a.png")])
    assert records[0].images == ["https://cdn.test/a.png"]
    assert image_backend.calls == ["a.png", "a.png", "a.png"]


@pytest.mark.asyncio
async def test_image_upload_gives_up_after_three_attempts(ingestor, variant, image_backend):
    image_backend.failures["a.png"] = -1
    red = variant("Red", image="a.png")
    with pytest.raises(UploadError) as exc:
        await ingestor.ingest([red])
    assert exc.value.color == "Red"
    assert "Red" in str(exc.value)
    assert image_backend.calls == ["a.png"] * 3
    assert not red.image.path.exists()


@pytest.mark.asyncio
async def test_upload_failure_rolls_back_videos_of_other_variants(ingestor, variant, image_backend, object_store):
    image_backend.failures["bad.png"] = -1
    with pytest.raises(UploadError):
        await ingestor.ingest([variant("Blue", video="b.mp4"), variant("Red", image="bad.png")])
    assert len(object_store.put_calls) == 1
    assert object_store.delete_calls == object_store.put_calls
    assert object_store.objects == {}


@pytest.mark.asyncio
async def test_signing_failure_fails_the_video_upload(ingestor, variant, object_store):
    object_store.fail_sign = True
    with pytest.raises(UploadError, match="could not sign"):
        await ingestor.ingest([variant("Blue", video="b.mp4")])
    # The unsigned object is not left behind
    assert object_store.objects == {}


@pytest.mark.asyncio
async def test_slow_adapter_is_bounded_by_timeout(image_backend, object_store, settings, variant):
    settings.adapter_timeout_seconds = 0.05

    async def slow_upload(data, filename):
        await asyncio.sleep(1)
        return "never"

    image_backend.upload = slow_upload
    ingestor = VariantMediaIngestor(image_backend, object_store, settings)
    with pytest.raises(UploadError, match="after 3 attempts"):
        await ingestor.ingest([variant("Red", image="a.png")])


@pytest.mark.asyncio
async def test_stock_defaults_and_clamping(ingestor, variant):
    records = await ingestor.ingest(
        [variant("Red", image="a.png", stock=-5), variant("Blue", image="b.png")],
        default_stock=7,
    )
    assert records[0].stock == 0
    assert records[1].stock == 7


@pytest.mark.asyncio
async def test_order_and_labels_are_preserved(ingestor, variant):
    colors = ["  Navy Blue", "RED", "green "]
    records = await ingestor.ingest([variant(c, image=f"{i}.png") for i, c in enumerate(colors)])
    assert [r.color for r in records] == ["navy blue", "red", "green"]
    assert [r.images for r in records] == [["https://cdn.test/0.png"], ["https://cdn.test/1.png"], ["https://cdn.test/2.png"]]


@pytest.mark.asyncio
async def test_update_only_new_image_for_index_zero(ingestor, variant):
    existing = [
        VariantMediaRecord(color="red", images=["https://cdn.test/old-red.png"], videos=[], stock=2),
        VariantMediaRecord(
            color="blue",
            images=[],
            videos=[
                StoredVideoRef(
                    key="videos/blue.mp4",
                    signed_url="https://store.test/blue",
                    expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
                    generated_at=datetime(2029, 12, 25, tzinfo=timezone.utc),
                )
            ],
            stock=5,
        ),
    ]
    records = await ingestor.ingest(
        [variant("Red", image="new-red.png"), variant("Blue")],
        existing=existing,
    )
    assert records[0].images == ["https://cdn.test/new-red.png"]
    assert records[0].videos == []
    assert records[0].stock == 2
    assert records[1].videos == existing[1].videos
    assert records[1].images == []
    assert records[1].stock == 5


@pytest.mark.asyncio
async def test_update_new_video_replaces_list_and_keeps_images(ingestor, variant):
    existing = [
        VariantMediaRecord(
            color="red",
            images=["https://cdn.test/red.png"],
            videos=[LegacyVideoRef(value="old-red.mp4")],
        )
    ]
    records = await ingestor.ingest([variant("red", video="new.mp4", stock=9)], existing=existing)
    assert records[0].images == ["https://cdn.test/red.png"]
    assert len(records[0].videos) == 1
    assert isinstance(records[0].videos[0], StoredVideoRef)
    assert records[0].stock == 9


@pytest.mark.asyncio
async def test_update_new_color_without_media_is_rejected(ingestor, variant, image_backend):
    existing = [VariantMediaRecord(color="red", images=["https://cdn.test/red.png"])]
    with pytest.raises(ValidationError) as exc:
        await ingestor.ingest([variant("Red"), variant("Purple")], existing=existing)
    assert exc.value.color == "Purple"
    assert image_backend.calls == []


def test_video_keys_are_unique_and_sanitized():
    a = build_video_key("my clip.mp4")
    b = build_video_key("my clip.mp4")
    assert a != b
    assert a.startswith("videos/") and a.endswith("-my-clip.mp4")
    assert "/" not in build_video_key("../../etc/passwd")[len("videos/"):]


@pytest.mark.asyncio
async def test_timed_out_video_put_is_rolled_back(image_backend, object_store, settings, variant):
    settings.adapter_timeout_seconds = 0.05

    async def slow_put(data, storage_key, content_type):
        # The write lands, the acknowledgement does not
        object_store.objects[storage_key] = data
        await asyncio.sleep(1)
        return storage_key

    object_store.put = slow_put
    ingestor = VariantMediaIngestor(image_backend, object_store, settings)
    with pytest.raises(UploadError, match="after 3 attempts"):
        await ingestor.ingest([variant("Blue", video="b.mp4")])
    assert object_store.objects == {}
    assert len(object_store.delete_calls) == 1
