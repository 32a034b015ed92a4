"""Post-related Pydantic schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from notestage.models import PostType, PostVisibility


class ActorOut(BaseModel):
    """Public profile of a local or remote actor."""

    id: uuid.UUID
    iri: str
    handle: str
    name: str | None = None
    url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class PostMediumOut(BaseModel):
    index: int
    type: str
    url: str
    alt: str | None = None
    width: int | None = None
    height: int | None = None

    model_config = ConfigDict(from_attributes=True)


class MentionOut(BaseModel):
    actor: ActorOut

    model_config = ConfigDict(from_attributes=True)


class PostOut(BaseModel):
    """Schema for a published post returned by the API."""

    id: uuid.UUID
    iri: str
    type: PostType
    visibility: PostVisibility
    actor: ActorOut
    language: str | None = None
    content_html: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)
    url: str | None = None
    sensitive: bool = False
    reply_target_id: uuid.UUID | None = None
    shared_post_id: uuid.UUID | None = None
    quoted_post_id: uuid.UUID | None = None
    replies_count: int = 0
    shares_count: int = 0
    media: list[PostMediumOut] = Field(default_factory=list)
    mentions: list[MentionOut] = Field(default_factory=list)
    published: datetime
    updated: datetime

    model_config = ConfigDict(from_attributes=True)


class PublishResponse(BaseModel):
    """A stored post and whether its activity reached the delivery transport."""

    post: PostOut
    dispatched: bool = Field(..., description="False if the post is stored but was not delivered")
    skipped_media: list[int] = Field(
        default_factory=list,
        description="Ordinals of attachments that could not be processed",
    )
