# src/notestage/models/note.py
"""SQLAlchemy models for authoring-time note sources and their media."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, ForeignKey, Integer, Text, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notestage.db.session import Base
from notestage.db.time import UTCDateTime, utcnow
from notestage.utils.uuid import generate_uuid_v7

from .post import PostVisibility

if TYPE_CHECKING:
    from .account import Account
    from .post import Post


class NoteSource(Base):
    """Editable record behind a published note.

    The identifier is assigned once and never reused; rows are never
    physically deleted.
    """

    __tablename__ = "note_source"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid_v7)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("account.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    visibility: Mapped[PostVisibility] = mapped_column(
        SAEnum(PostVisibility, native_enum=False, length=16),
        nullable=False,
        default=PostVisibility.PUBLIC,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    language: Mapped[str] = mapped_column(Text, nullable=False)
    # Unordered tag set, stored sorted for stable output.
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    published: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )
    updated: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )

    account: Mapped[Account] = relationship("Account")
    media: Mapped[list[NoteMedium]] = relationship(
        "NoteMedium",
        back_populates="source",
        order_by="NoteMedium.index",
    )
    post: Mapped[Post | None] = relationship(
        "Post",
        back_populates="note_source",
        uselist=False,
    )


class NoteMedium(Base):
    """An uploaded attachment, already transcoded and stored.

    Width and height are mandatory: attachments whose dimensions cannot be
    determined are rejected before a row is written.
    """

    __tablename__ = "note_medium"

    source_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("note_source.id", ondelete="CASCADE"),
        primary_key=True,
    )
    # Zero-based display position, unique per source.
    index: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    alt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)
    created: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )

    source: Mapped[NoteSource] = relationship("NoteSource", back_populates="media")
