# src/notestage/models/timeline.py
"""SQLAlchemy model for materialized per-account timelines."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notestage.db.session import Base
from notestage.db.time import UTCDateTime

if TYPE_CHECKING:
    from .actor import Actor
    from .post import Post


class TimelineItem(Base):
    """One row per (account, original post).

    A share of a post already on the timeline resurfaces the existing row by
    moving ``appended`` and the sharer fields instead of inserting a new one.
    The table is a read optimization and can be rebuilt from posts and follows.
    """

    __tablename__ = "timeline_item"

    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    post_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("post.id", ondelete="CASCADE"),
        primary_key=True,
    )
    # Set when the post itself reached the timeline, not only through shares.
    original_author_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("actor.id", ondelete="SET NULL"),
        nullable=True,
    )
    last_sharer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("actor.id", ondelete="SET NULL"),
        nullable=True,
    )
    sharers_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    added: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    appended: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        index=True,
    )

    post: Mapped[Post] = relationship("Post")
    last_sharer: Mapped[Actor | None] = relationship("Actor", foreign_keys=[last_sharer_id])
