# src/notestage/models/account.py
"""SQLAlchemy models for local accounts."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notestage.db.session import Base
from notestage.db.time import UTCDateTime, utcnow
from notestage.utils.uuid import generate_uuid_v7

if TYPE_CHECKING:
    from .actor import Actor


class Account(Base):
    """A local author.

    Usernames can change; the previous one is kept in ``old_username`` together
    with the time of the rename so that old links keep resolving.
    """

    __tablename__ = "account"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid_v7)
    username: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    old_username: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    username_changed: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    bio: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Ordered locale chain, most preferred first.
    locales: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    created: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )
    updated: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )

    actor: Mapped[Actor | None] = relationship(
        "Actor",
        back_populates="account",
        uselist=False,
    )
