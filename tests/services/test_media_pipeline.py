import io

import pytest
from PIL import Image

from notestage.models import NoteMedium
from notestage.repositories.note_source_repo import NoteSourceRepository
from notestage.services.media import (
    CANONICAL_EXTENSION,
    MEDIA_KEY_PREFIX,
    MediaPipeline,
    MediaUpload,
    UnprocessableMediaError,
    transcode_image,
)


@pytest.fixture()
def source(db_session, make_account):
    alice = make_account("alice")
    return NoteSourceRepository(db_session).create(
        account_id=alice.id, content="with pictures", language="en"
    )


def test_transcode_outputs_webp_with_dimensions(jpeg_bytes) -> None:
    image = transcode_image(jpeg_bytes)

    assert (image.width, image.height) == (64, 48)
    with Image.open(io.BytesIO(image.data)) as decoded:
        assert decoded.format == "WEBP"
        assert decoded.size == (64, 48)


def test_transcode_converts_grayscale_images(make_image) -> None:
    image = transcode_image(make_image("PNG", (10, 12), mode="L"))

    assert (image.width, image.height) == (10, 12)


def test_transcode_rejects_undecodable_data(corrupt_bytes) -> None:
    with pytest.raises(UnprocessableMediaError):
        transcode_image(corrupt_bytes)


@pytest.mark.asyncio
async def test_ingest_stores_blob_and_records_row(db_session, disk, source, png_bytes) -> None:
    medium = await MediaPipeline(db_session, disk).ingest(source.id, 0, png_bytes, "a red box")

    assert medium.key.startswith(MEDIA_KEY_PREFIX)
    assert medium.key.endswith(CANONICAL_EXTENSION)
    assert (medium.width, medium.height) == (40, 30)
    assert medium.alt == "a red box"
    assert disk.exists(medium.key)
    assert db_session.get(NoteMedium, (source.id, 0)) is medium


@pytest.mark.asyncio
async def test_ingest_failure_stores_nothing(db_session, disk, source, corrupt_bytes) -> None:
    with pytest.raises(UnprocessableMediaError):
        await MediaPipeline(db_session, disk).ingest(source.id, 0, corrupt_bytes, "")

    assert db_session.get(NoteMedium, (source.id, 0)) is None
    assert not (disk.root / MEDIA_KEY_PREFIX).exists()


@pytest.mark.asyncio
async def test_ingest_all_skips_bad_uploads_and_keeps_ordinals(
    db_session, disk, source, png_bytes, jpeg_bytes, corrupt_bytes
) -> None:
    uploads = [
        MediaUpload(png_bytes, "first"),
        MediaUpload(corrupt_bytes, "broken"),
        MediaUpload(jpeg_bytes, "third"),
    ]

    media = await MediaPipeline(db_session, disk).ingest_all(source.id, uploads)

    assert [(medium.index, medium.alt) for medium in media] == [(0, "first"), (2, "third")]
    assert len({medium.key for medium in media}) == 2


@pytest.mark.asyncio
async def test_ingest_all_with_no_uploads(db_session, disk, source) -> None:
    assert await MediaPipeline(db_session, disk).ingest_all(source.id, []) == []
