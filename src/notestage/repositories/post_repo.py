"""Data access helpers for working with posts."""
from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from notestage.models import Post
from notestage.repositories.query_shapes import FEED_DEPTH, post_load_options

__all__ = ["PostRepository"]


class PostRepository:
    """Thin wrapper around database access for post entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_by_id(
        self,
        post_id: uuid.UUID,
        viewer_actor_id: uuid.UUID | None = None,
        depth: int = FEED_DEPTH,
    ) -> Post | None:
        """Return a post by identifier with its relations eagerly loaded."""
        result = self.session.execute(
            select(Post)
            .options(*post_load_options(viewer_actor_id, depth))
            .where(Post.id == post_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    def get_by_note_source_id(self, source_id: uuid.UUID) -> Post | None:
        """Return the post projected from a note source, if any."""
        result = self.session.execute(select(Post).where(Post.note_source_id == source_id))
        return result.scalars().first()

    def get_iri(self, post_id: uuid.UUID) -> str | None:
        """Return a post's current address, resolved at call time."""
        return self.session.execute(
            select(Post.iri).where(Post.id == post_id)
        ).scalar_one_or_none()

    def find_share(self, actor_id: uuid.UUID, post_id: uuid.UUID) -> Post | None:
        """Return the share of ``post_id`` made by ``actor_id``, if any."""
        result = self.session.execute(
            select(Post).where(Post.actor_id == actor_id, Post.shared_post_id == post_id)
        )
        return result.scalars().first()

    def update_replies_count(self, post_id: uuid.UUID) -> Post | None:
        """Recount replies of a post and store the result."""
        post = self.session.get(Post, post_id)
        if post is None:
            return None
        post.replies_count = self.session.execute(
            select(func.count()).select_from(Post).where(Post.reply_target_id == post_id)
        ).scalar_one()
        self.session.flush()
        return post

    def update_shares_count(self, post_id: uuid.UUID) -> Post | None:
        """Recount shares of a post and store the result."""
        post = self.session.get(Post, post_id)
        if post is None:
            return None
        post.shares_count = self.session.execute(
            select(func.count()).select_from(Post).where(Post.shared_post_id == post_id)
        ).scalar_one()
        self.session.flush()
        return post
