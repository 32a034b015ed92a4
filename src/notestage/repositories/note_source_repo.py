"""Data access helpers for note sources (the authoring-time records)."""
from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from notestage.db.time import as_utc, utcnow
from notestage.models import Account, NoteMedium, NoteSource, PostVisibility
from notestage.repositories.query_shapes import note_source_load_options
from notestage.utils.uuid import generate_uuid_v7

__all__ = ["NoteSourceRepository", "UPDATABLE_FIELDS"]

UPDATABLE_FIELDS = frozenset({"content", "language", "visibility", "tags"})
_ONE_TICK = timedelta(microseconds=1)


class NoteSourceRepository:
    """Thin wrapper around database access for note sources."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def create(
        self,
        *,
        account_id: uuid.UUID,
        content: str,
        language: str,
        visibility: PostVisibility = PostVisibility.PUBLIC,
        tags: Iterable[str] = (),
        id: uuid.UUID | None = None,
        published: datetime | None = None,
    ) -> NoteSource | None:
        """Insert a new note source.

        A fresh UUIDv7 is assigned when ``id`` is omitted. Inserting an
        identifier that already exists is a no-op and returns ``None`` so that
        retried creations stay idempotent.
        """
        source_id = id or generate_uuid_v7()
        if self.session.get(NoteSource, source_id) is not None:
            return None

        now = published or utcnow()
        source = NoteSource(
            id=source_id,
            account_id=account_id,
            content=content,
            language=language,
            visibility=visibility,
            tags=sorted(set(tags)),
            published=now,
            updated=now,
        )
        try:
            with self.session.begin_nested():
                self.session.add(source)
        except IntegrityError:
            return None
        return source

    def update(self, source_id: uuid.UUID, **fields: Any) -> NoteSource | None:
        """Merge ``fields`` into a note source and stamp ``updated``.

        The new stamp is strictly later than the previous one, even for edits
        landing within the same clock tick.

        Returns:
            The updated source, or ``None`` if no row matched.

        Raises:
            ValueError: If a field other than the editable ones is supplied.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown note source fields: {', '.join(sorted(unknown))}")

        source = self.session.get(NoteSource, source_id)
        if source is None:
            return None

        for name, value in fields.items():
            if name == "tags":
                value = sorted(set(value))
            setattr(source, name, value)
        source.updated = max(utcnow(), as_utc(source.updated) + _ONE_TICK)
        self.session.flush()
        return source

    def get(
        self,
        username: str,
        source_id: uuid.UUID,
        signed_account: Account | None = None,
    ) -> NoteSource | None:
        """Return a note source scoped to the account currently or formerly named ``username``."""
        account = self.find_account(username)
        if account is None:
            return None

        viewer_actor_id = None
        if signed_account is not None and signed_account.actor is not None:
            viewer_actor_id = signed_account.actor.id

        result = self.session.execute(
            select(NoteSource)
            .options(*note_source_load_options(viewer_actor_id))
            .where(NoteSource.id == source_id, NoteSource.account_id == account.id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    def find_account(self, username: str) -> Account | None:
        """Resolve an account by username, falling back to its most recent old name."""
        account = self.session.execute(
            select(Account).where(Account.username == username)
        ).scalars().first()
        if account is not None:
            return account
        return self.session.execute(
            select(Account)
            .where(Account.old_username == username, Account.username_changed.is_not(None))
            .order_by(Account.username_changed.desc())
            .limit(1)
        ).scalars().first()

    def list_media(self, source_id: uuid.UUID) -> list[NoteMedium]:
        """Return the media of a source in ordinal order."""
        result = self.session.execute(
            select(NoteMedium)
            .where(NoteMedium.source_id == source_id)
            .order_by(NoteMedium.index)
        )
        return list(result.scalars())
