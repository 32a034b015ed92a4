"""Media pipeline: validate, transcode and store note attachments."""

from __future__ import annotations

import asyncio
import io
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from PIL import Image
from sqlalchemy.orm import Session

from notestage.models import NoteMedium
from notestage.services.storage import Disk

logger = logging.getLogger(__name__)

MEDIA_KEY_PREFIX = "note-media/"
CANONICAL_FORMAT = "WEBP"
CANONICAL_MEDIA_TYPE = "image/webp"
CANONICAL_EXTENSION = ".webp"
WEBP_QUALITY = 80


class UnprocessableMediaError(ValueError):
    """Raised when an attachment cannot be decoded or has no known dimensions."""


@dataclass(frozen=True)
class MediaUpload:
    """An attachment as received from the author."""

    blob: bytes
    alt: str = ""


@dataclass(frozen=True)
class TranscodedImage:
    """Canonical-format bytes with their pixel dimensions."""

    data: bytes
    width: int
    height: int


@dataclass(frozen=True)
class StoredBlob:
    """A transcoded attachment that has been written to blob storage."""

    key: str
    width: int
    height: int


def transcode_image(blob: bytes) -> TranscodedImage:
    """Decode ``blob`` and re-encode it as WebP, whatever the input format was.

    Raises:
        UnprocessableMediaError: If the image cannot be decoded or its width or
            height cannot be determined.
    """
    try:
        with Image.open(io.BytesIO(blob)) as image:
            image.load()
            width, height = image.size
            if not width or not height:
                raise UnprocessableMediaError("Image dimensions are unknown")
            if image.mode not in ("RGB", "RGBA"):
                has_alpha = "A" in image.getbands() or "transparency" in image.info
                image = image.convert("RGBA" if has_alpha else "RGB")
            buffer = io.BytesIO()
            image.save(buffer, format=CANONICAL_FORMAT, quality=WEBP_QUALITY)
            width, height = image.size
    except (OSError, SyntaxError, Image.DecompressionBombError) as exc:
        raise UnprocessableMediaError(f"Cannot decode image: {exc}") from exc
    return TranscodedImage(data=buffer.getvalue(), width=width, height=height)


class MediaPipeline:
    """Turn uploaded blobs into stored, canonical-format note media.

    Blob writes are not transactional with the database: a blob may be left
    behind if the surrounding publish later fails.
    """

    def __init__(self, session: Session, disk: Disk) -> None:
        self.session = session
        self.disk = disk

    async def store(self, blob: bytes) -> StoredBlob:
        """Transcode ``blob`` and write it to storage under a fresh opaque key."""
        image = await asyncio.to_thread(transcode_image, blob)
        key = f"{MEDIA_KEY_PREFIX}{uuid.uuid4()}{CANONICAL_EXTENSION}"
        await self.disk.put(key, image.data)
        return StoredBlob(key=key, width=image.width, height=image.height)

    def record(self, source_id: uuid.UUID, index: int, stored: StoredBlob, alt: str) -> NoteMedium:
        """Insert the attachment row for an already stored blob."""
        medium = NoteMedium(
            source_id=source_id,
            index=index,
            key=stored.key,
            alt=alt,
            width=stored.width,
            height=stored.height,
        )
        self.session.add(medium)
        self.session.flush()
        return medium

    async def ingest(self, source_id: uuid.UUID, index: int, blob: bytes, alt: str) -> NoteMedium:
        """Validate, transcode, store and record one attachment.

        Raises:
            UnprocessableMediaError: If the blob has no decodable dimensions;
                nothing is stored in that case.
        """
        stored = await self.store(blob)
        return self.record(source_id, index, stored, alt)

    async def ingest_all(
        self,
        source_id: uuid.UUID,
        uploads: Sequence[MediaUpload],
    ) -> list[NoteMedium]:
        """Ingest every upload, skipping the ones that fail.

        Attachments are transcoded and stored independently of each other;
        rows are then inserted in ordinal order. The ordinal of an attachment is
        its position in ``uploads``, so a skipped attachment leaves a gap.
        """
        results = await asyncio.gather(
            *(self.store(upload.blob) for upload in uploads),
            return_exceptions=True,
        )
        media: list[NoteMedium] = []
        for index, (upload, result) in enumerate(zip(uploads, results, strict=True)):
            if isinstance(result, (UnprocessableMediaError, OSError)):
                logger.warning(
                    "Skipping attachment %d of note source %s: %s", index, source_id, result
                )
                continue
            if isinstance(result, BaseException):
                raise result
            media.append(self.record(source_id, index, result, upload.alt))
        return media
