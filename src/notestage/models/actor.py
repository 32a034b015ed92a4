# src/notestage/models/actor.py
"""SQLAlchemy models for federated actors, their instances and follows."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notestage.db.session import Base
from notestage.db.time import UTCDateTime, utcnow
from notestage.utils.uuid import generate_uuid_v7

if TYPE_CHECKING:
    from .account import Account


class Instance(Base):
    """A server hosting actors, local or remote."""

    __tablename__ = "instance"

    host: Mapped[str] = mapped_column(Text, primary_key=True)
    software: Mapped[str | None] = mapped_column(Text, nullable=True)
    created: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )


class Actor(Base):
    """Protocol-level identity. Local actors point back to their account."""

    __tablename__ = "actor"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid_v7)
    iri: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False, default="Person")
    username: Mapped[str] = mapped_column(Text, nullable=False)
    instance_host: Mapped[str] = mapped_column(
        Text,
        ForeignKey("instance.host"),
        nullable=False,
    )
    account_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("account.id", ondelete="CASCADE"),
        unique=True,
        nullable=True,
    )
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    bio_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    inbox_url: Mapped[str] = mapped_column(Text, nullable=False)
    shared_inbox_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    followers_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )

    account: Mapped[Account | None] = relationship("Account", back_populates="actor")
    instance: Mapped[Instance] = relationship("Instance")
    # Incoming follows: rows whose followee is this actor.
    followers: Mapped[list[Following]] = relationship(
        "Following",
        foreign_keys="Following.followee_id",
        back_populates="followee",
    )

    __table_args__ = (UniqueConstraint("username", "instance_host"),)

    @property
    def handle(self) -> str:
        """Return the fediverse handle, e.g. ``@alice@example.com``."""
        return f"@{self.username}@{self.instance_host}"


class Following(Base):
    """A follow relation. Only accepted follows grant visibility."""

    __tablename__ = "following"

    iri: Mapped[str] = mapped_column(Text, primary_key=True)
    follower_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("actor.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    followee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("actor.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    accepted: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )

    follower: Mapped[Actor] = relationship("Actor", foreign_keys=[follower_id])
    followee: Mapped[Actor] = relationship(
        "Actor",
        foreign_keys=[followee_id],
        back_populates="followers",
    )

    __table_args__ = (UniqueConstraint("follower_id", "followee_id"),)
