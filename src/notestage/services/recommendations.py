"""Actor recommendations for the timeline's empty and intro states."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from notestage.models import Actor, Following, Post, PostVisibility

logger = logging.getLogger(__name__)


class Recommender(Protocol):
    """Suggests actors to follow."""

    def recommend(
        self,
        locales: Sequence[str],
        viewer: Actor | None,
        limit: int,
    ) -> list[Actor]: ...


def expand_locales(locales: Sequence[str]) -> list[str]:
    """Return ``locales`` followed by their base languages, without duplicates.

    >>> expand_locales(["en-US", "ko"])
    ['en-US', 'ko', 'en']
    """
    expanded = dict.fromkeys(locales)
    for locale in locales:
        expanded.setdefault(locale.split("-", 1)[0], None)
    return list(expanded)


class ActorRecommender:
    """Recommend local actors who recently posted publicly in the viewer's languages.

    The viewer and the actors they already follow (or asked to follow) are
    excluded. With no locales, every language qualifies.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def recommend(
        self,
        locales: Sequence[str],
        viewer: Actor | None,
        limit: int,
    ) -> list[Actor]:
        last_post = func.max(Post.published).label("last_post")
        stmt = (
            select(Actor, last_post)
            .join(Post, Post.actor_id == Actor.id)
            .where(
                Actor.account_id.is_not(None),
                Post.visibility == PostVisibility.PUBLIC,
                Post.shared_post_id.is_(None),
            )
            .group_by(Actor.id)
            .order_by(last_post.desc())
            .limit(limit)
            .options(selectinload(Actor.account))
        )
        if locales:
            stmt = stmt.where(Post.language.in_(expand_locales(locales)))
        if viewer is not None:
            followed = select(Following.followee_id).where(Following.follower_id == viewer.id)
            stmt = stmt.where(Actor.id != viewer.id, Actor.id.not_in(followed))

        actors = list(self.session.execute(stmt).scalars())
        logger.debug("Recommended actors: %s", [actor.handle for actor in actors])
        return actors
