"""Note source Pydantic schemas."""

from __future__ import annotations

import base64
import binascii
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from notestage.models import PostVisibility
from notestage.schemas.post import PostOut

MAX_CONTENT_LENGTH = 100_000


def _clean_tags(tags: list[str]) -> list[str]:
    cleaned = (tag.strip().lstrip("#") for tag in tags)
    return [tag for tag in cleaned if tag]


class MediaUploadIn(BaseModel):
    """An attachment sent inline as base64."""

    data: str = Field(..., min_length=1, description="Base64-encoded image bytes")
    alt: str = Field("", max_length=1500, description="Alternative text")

    @field_validator("data")
    @classmethod
    def _check_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("data must be valid base64") from exc
        return value

    def decode(self) -> bytes:
        return base64.b64decode(self.data)


class NoteCreate(BaseModel):
    """Schema for publishing a new note."""

    id: uuid.UUID | None = Field(None, description="Client-chosen id; retries with it are no-ops")
    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)
    language: str = Field(..., min_length=2, max_length=35, description="BCP 47 language tag")
    visibility: PostVisibility = PostVisibility.PUBLIC
    tags: list[str] = Field(default_factory=list)
    media: list[MediaUploadIn] = Field(default_factory=list)
    reply_target_id: uuid.UUID | None = None
    widen_visibility: bool = Field(
        False,
        description="Allow a reply to be more visible than the post it replies to",
    )

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, tags: list[str]) -> list[str]:
        return _clean_tags(tags)


class NoteUpdate(BaseModel):
    """Schema for editing a note; omitted fields are left unchanged."""

    content: str | None = Field(None, min_length=1, max_length=MAX_CONTENT_LENGTH)
    language: str | None = Field(None, min_length=2, max_length=35)
    visibility: PostVisibility | None = None
    tags: list[str] | None = None
    widen_visibility: bool = False

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, tags: list[str] | None) -> list[str] | None:
        return None if tags is None else _clean_tags(tags)

    def changed_fields(self) -> dict[str, object]:
        return self.model_dump(exclude_none=True, exclude={"widen_visibility"})


class NoteMediumOut(BaseModel):
    index: int
    key: str
    alt: str
    width: int
    height: int

    model_config = ConfigDict(from_attributes=True)


class NoteSourceOut(BaseModel):
    """Schema for a note source together with its projected post."""

    id: uuid.UUID
    account_id: uuid.UUID
    content: str
    language: str
    visibility: PostVisibility
    tags: list[str]
    published: datetime
    updated: datetime
    media: list[NoteMediumOut] = Field(default_factory=list)
    post: PostOut | None = None

    model_config = ConfigDict(from_attributes=True)
