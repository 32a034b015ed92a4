"""Post visibility rules, as a SQL predicate and as an in-memory check.

Both forms encode the same rule and are applied together on read paths: the
predicate narrows the query, the check re-validates every returned post before
it is rendered. A post is visible to a viewer when

* it is public;
* it is unlisted and was requested directly, or the viewer follows the author;
* it is follower-scoped and the viewer follows the author;
* the viewer is its author; or
* the viewer is mentioned in it.

Only accepted follows count.
"""

from __future__ import annotations

from sqlalchemy import ColumnElement, and_, or_

from notestage.models import Actor, Following, Mention, Post, PostVisibility


def _follows_author(viewer: Actor) -> ColumnElement[bool]:
    return Post.actor.has(
        Actor.followers.any(
            and_(Following.follower_id == viewer.id, Following.accepted.is_not(None))
        )
    )


def post_visibility_filter(
    viewer: Actor | None,
    *,
    direct_request: bool = False,
) -> ColumnElement[bool]:
    """Return a SQL predicate selecting posts ``viewer`` may see.

    Args:
        viewer: The viewing actor, or ``None`` for an anonymous viewer.
        direct_request: True when the post is requested by address rather
            than listed in a feed; unlisted posts are then visible to anyone.
    """
    clauses: list[ColumnElement[bool]] = [Post.visibility == PostVisibility.PUBLIC]
    if direct_request:
        clauses.append(Post.visibility == PostVisibility.UNLISTED)
    if viewer is None:
        return or_(*clauses)

    clauses.extend(
        [
            and_(
                Post.visibility.in_([PostVisibility.UNLISTED, PostVisibility.FOLLOWERS]),
                _follows_author(viewer),
            ),
            Post.actor_id == viewer.id,
            Post.mentions.any(Mention.actor_id == viewer.id),
        ]
    )
    return or_(*clauses)


def is_post_visible_to(
    post: Post,
    viewer: Actor | None,
    *,
    direct_request: bool = False,
) -> bool:
    """Return True if ``viewer`` may see ``post``.

    ``post.actor.followers`` and ``post.mentions`` must be loaded; the follower
    collection may be narrowed to the viewer's own row.
    """
    if post.visibility == PostVisibility.PUBLIC:
        return True
    if post.visibility == PostVisibility.UNLISTED and direct_request:
        return True
    if viewer is None:
        return False
    if post.actor_id == viewer.id:
        return True
    if any(mention.actor_id == viewer.id for mention in post.mentions):
        return True
    if post.visibility in (PostVisibility.UNLISTED, PostVisibility.FOLLOWERS):
        return any(
            following.follower_id == viewer.id and following.accepted is not None
            for following in post.actor.followers
        )
    return False
