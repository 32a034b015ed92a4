"""Depth-bounded eager-loading shapes for posts.

Rendering a post needs a fixed graph of relations: the author (with only the
viewer's follow row, if any), mentions, media, the viewer's own shares, and one
or two levels of reply target / shared post. Each shape is built from the same
function so every read path loads the same, testable graph.
"""

from __future__ import annotations

import uuid

from sqlalchemy import false
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.interfaces import LoaderOption

from notestage.models import Actor, Following, Mention, NoteSource, Post

# Named depths used by the read paths.
FEED_DEPTH = 2
SOURCE_DEPTH = 2
REFERENCE_DEPTH = 0


def _followers_of_viewer(viewer_actor_id: uuid.UUID | None):
    if viewer_actor_id is None:
        return Actor.followers.and_(false())
    return Actor.followers.and_(Following.follower_id == viewer_actor_id)


def _shares_by_viewer(viewer_actor_id: uuid.UUID | None):
    if viewer_actor_id is None:
        return Post.shares.and_(false())
    return Post.shares.and_(Post.actor_id == viewer_actor_id)


def post_load_options(
    viewer_actor_id: uuid.UUID | None = None,
    depth: int = FEED_DEPTH,
) -> list[LoaderOption]:
    """Return loader options for a post and ``depth`` levels of linked posts.

    Args:
        viewer_actor_id: Actor whose follow rows and shares should be loaded;
            ``None`` loads none of them (anonymous viewer).
        depth: How many levels of ``reply_target``/``shared_post`` to follow.
    """
    options: list[LoaderOption] = [
        selectinload(Post.actor).selectinload(_followers_of_viewer(viewer_actor_id)),
        selectinload(Post.mentions).selectinload(Mention.actor),
        selectinload(Post.media),
        selectinload(_shares_by_viewer(viewer_actor_id)),
    ]
    if depth > 0:
        nested = post_load_options(viewer_actor_id, depth - 1)
        options.append(selectinload(Post.reply_target).options(*nested))
        options.append(selectinload(Post.shared_post).options(*nested))
    return options


def note_source_load_options(
    viewer_actor_id: uuid.UUID | None = None,
    depth: int = SOURCE_DEPTH,
) -> list[LoaderOption]:
    """Return loader options for a note source, its media and its post."""
    return [
        selectinload(NoteSource.account),
        selectinload(NoteSource.media),
        selectinload(NoteSource.post).options(*post_load_options(viewer_actor_id, depth)),
    ]
