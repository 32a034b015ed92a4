# src/notestage/models/post.py
"""SQLAlchemy models for published posts and related attributes."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, Text, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notestage.db.session import Base
from notestage.db.time import UTCDateTime, utcnow
from notestage.utils.uuid import generate_uuid_v7

if TYPE_CHECKING:
    from .actor import Actor
    from .note import NoteSource


class PostType(str, enum.Enum):
    """Short-form notes versus long-form articles."""

    NOTE = "Note"
    ARTICLE = "Article"


class PostVisibility(str, enum.Enum):
    """Audience of a post, declared from most to least permissive."""

    PUBLIC = "public"
    UNLISTED = "unlisted"
    FOLLOWERS = "followers"
    DIRECT = "direct"
    NONE = "none"

    @property
    def rank(self) -> int:
        """Return 0 for the most permissive visibility, growing from there."""
        return list(PostVisibility).index(self)

    def clamp_to(self, ceiling: PostVisibility) -> PostVisibility:
        """Return this visibility, narrowed so it is no wider than ``ceiling``."""
        return self if self.rank >= ceiling.rank else ceiling


class Post(Base):
    """Federation-facing projection of a source, or a remote/shared item.

    Local notes keep a 1:1 link to their source through ``note_source_id``;
    the ``iri`` never changes once assigned.
    """

    __tablename__ = "post"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid_v7)
    iri: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    type: Mapped[PostType] = mapped_column(
        SAEnum(PostType, native_enum=False, length=16),
        nullable=False,
        default=PostType.NOTE,
    )
    visibility: Mapped[PostVisibility] = mapped_column(
        SAEnum(PostVisibility, native_enum=False, length=16),
        nullable=False,
        default=PostVisibility.PUBLIC,
    )
    actor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("actor.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    note_source_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("note_source.id", ondelete="CASCADE"),
        unique=True,
        nullable=True,
    )
    shared_post_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("post.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    reply_target_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("post.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    quoted_post_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("post.id", ondelete="SET NULL"),
        nullable=True,
    )
    language: Mapped[str | None] = mapped_column(Text, nullable=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Hashtag name -> tag page URL.
    tags: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    sensitive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    replies_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    shares_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    published: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        index=True,
    )
    updated: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )

    actor: Mapped[Actor] = relationship("Actor")
    note_source: Mapped[NoteSource | None] = relationship(
        "NoteSource",
        back_populates="post",
    )
    shared_post: Mapped[Post | None] = relationship(
        "Post",
        remote_side=[id],
        foreign_keys=[shared_post_id],
        back_populates="shares",
    )
    shares: Mapped[list[Post]] = relationship(
        "Post",
        foreign_keys=[shared_post_id],
        back_populates="shared_post",
    )
    reply_target: Mapped[Post | None] = relationship(
        "Post",
        remote_side=[id],
        foreign_keys=[reply_target_id],
    )
    quoted_post: Mapped[Post | None] = relationship(
        "Post",
        remote_side=[id],
        foreign_keys=[quoted_post_id],
    )
    mentions: Mapped[list[Mention]] = relationship(
        "Mention",
        back_populates="post",
        cascade="all, delete-orphan",
    )
    media: Mapped[list[PostMedium]] = relationship(
        "PostMedium",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="PostMedium.index",
    )


class PostMedium(Base):
    """Media attached to a post, positionally aligned with the source ordinals."""

    __tablename__ = "post_medium"

    post_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("post.id", ondelete="CASCADE"),
        primary_key=True,
    )
    index: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    alt: Mapped[str | None] = mapped_column(Text, nullable=True)
    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)

    post: Mapped[Post] = relationship("Post", back_populates="media")


class Mention(Base):
    """An actor addressed by a post."""

    __tablename__ = "mention"

    post_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("post.id", ondelete="CASCADE"),
        primary_key=True,
    )
    actor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("actor.id", ondelete="CASCADE"),
        primary_key=True,
    )

    post: Mapped[Post] = relationship("Post", back_populates="mentions")
    actor: Mapped[Actor] = relationship("Actor")
