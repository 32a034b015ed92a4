"""Fan-out of posts into materialized per-account timelines."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from notestage.models import Actor, Following, Mention, Post, PostVisibility, TimelineItem

logger = logging.getLogger(__name__)

_FOLLOWER_VISIBILITIES = (
    PostVisibility.PUBLIC,
    PostVisibility.UNLISTED,
    PostVisibility.FOLLOWERS,
)


def _accepted_followers_of(actor_id: uuid.UUID) -> Select[tuple[uuid.UUID]]:
    return select(Following.follower_id).where(
        Following.followee_id == actor_id,
        Following.accepted.is_not(None),
    )


def timeline_recipients(session: Session, post: Post) -> set[uuid.UUID]:
    """Return the ids of local accounts whose timelines should receive ``post``.

    Recipients are the author's own account, mentioned local accounts and,
    for public, unlisted and follower-scoped posts, local accounts that follow
    the author. Replies reach a follower only if they also follow the reply
    target's author, or are that author.
    """
    recipients: set[uuid.UUID] = set()
    author_account_id = session.execute(
        select(Actor.account_id).where(Actor.id == post.actor_id)
    ).scalar_one_or_none()
    if author_account_id is not None:
        recipients.add(author_account_id)

    mentioned = session.execute(
        select(Actor.account_id)
        .join(Mention, Mention.actor_id == Actor.id)
        .where(Mention.post_id == post.id, Actor.account_id.is_not(None))
    ).scalars()
    recipients.update(mentioned)

    if post.visibility not in _FOLLOWER_VISIBILITIES:
        return recipients

    stmt = select(Actor.account_id).where(
        Actor.id.in_(_accepted_followers_of(post.actor_id)),
        Actor.account_id.is_not(None),
    )
    if post.reply_target_id is not None:
        target_author_id = session.execute(
            select(Post.actor_id).where(Post.id == post.reply_target_id)
        ).scalar_one_or_none()
        if target_author_id is not None:
            stmt = stmt.where(
                Actor.id.in_(_accepted_followers_of(target_author_id))
                | (Actor.id == target_author_id)
            )
    recipients.update(session.execute(stmt).scalars())
    return recipients


def add_post_to_timeline(session: Session, post: Post) -> int:
    """Insert or resurface ``post`` on every recipient's timeline.

    Original posts get one row each. A share lands on the row of the post it
    shares: an existing row is resurfaced by moving ``appended`` and counting
    the sharer instead of adding a second row.

    Returns:
        The number of timelines touched.
    """
    recipients = timeline_recipients(session, post)
    if post.shared_post_id is None:
        for account_id in recipients:
            item = session.get(TimelineItem, (account_id, post.id))
            if item is None:
                session.add(
                    TimelineItem(
                        account_id=account_id,
                        post_id=post.id,
                        original_author_id=post.actor_id,
                        sharers_count=0,
                        added=post.published,
                        appended=post.published,
                    )
                )
            elif item.original_author_id is None:
                item.original_author_id = post.actor_id
    else:
        for account_id in recipients:
            item = session.get(TimelineItem, (account_id, post.shared_post_id))
            if item is None:
                session.add(
                    TimelineItem(
                        account_id=account_id,
                        post_id=post.shared_post_id,
                        last_sharer_id=post.actor_id,
                        sharers_count=1,
                        added=post.published,
                        appended=post.published,
                    )
                )
            else:
                item.appended = post.published
                item.last_sharer_id = post.actor_id
                item.sharers_count += 1
    session.flush()
    logger.debug("Post %s reached %d timelines", post.id, len(recipients))
    return len(recipients)
