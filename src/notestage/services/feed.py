"""Timeline assembly.

Anonymous viewers get a fan-in feed computed from public posts. Signed-in
viewers read their materialized timeline rows (fan-out). Both paths share the
cursor scheme: rows are fetched ``window + 1`` at a time, newest first, and the
extra row's timestamp becomes the next cursor.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import ColumnElement, and_, or_, select
from sqlalchemy.orm import InstrumentedAttribute, Session, aliased, selectinload

from notestage.db.time import as_utc
from notestage.models import Account, Actor, Mention, Post, PostType, PostVisibility, TimelineItem
from notestage.repositories.query_shapes import post_load_options
from notestage.services.recommendations import Recommender, expand_locales
from notestage.services.visibility import is_post_visible_to, post_visibility_filter

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 50
RECOMMENDATION_LIMIT = 50


class TimelineFilter(str, enum.Enum):
    """Mutually exclusive timeline modes."""

    FEDIVERSE = "fediverse"
    LOCAL = "local"
    WITHOUT_SHARES = "withoutShares"
    ARTICLES_ONLY = "articlesOnly"
    MENTIONS_AND_QUOTES = "mentionsAndQuotes"
    RECOMMENDATIONS = "recommendations"

    @property
    def requires_viewer(self) -> bool:
        return self in (TimelineFilter.MENTIONS_AND_QUOTES, TimelineFilter.RECOMMENDATIONS)

    @classmethod
    def parse(cls, value: str | None, *, signed_in: bool) -> TimelineFilter:
        """Parse a query-string value; unknown or unauthorized modes fall back to fediverse."""
        try:
            parsed = cls(value) if value else cls.FEDIVERSE
        except ValueError:
            return cls.FEDIVERSE
        if parsed.requires_viewer and not signed_in:
            return cls.FEDIVERSE
        return parsed


@dataclass(frozen=True)
class FeedEntry:
    """One rendered timeline row."""

    post: Post
    added: datetime
    last_sharer: Actor | None = None
    sharers_count: int = 0


@dataclass
class TimelinePage:
    items: list[FeedEntry]
    next: datetime | None
    intro: bool
    recommended_actors: list[Actor] = field(default_factory=list)


def compile_filter(
    timeline_filter: TimelineFilter,
    viewer: Actor | None = None,
    *,
    materialized: bool,
) -> list[ColumnElement[bool]]:
    """Translate a timeline mode into WHERE clauses.

    ``materialized`` selects the fan-out form, whose rows are timeline items
    joined to their posts.
    """
    if timeline_filter == TimelineFilter.LOCAL:
        if materialized:
            return [Post.note_source_id.is_not(None)]
        return [
            or_(
                Post.note_source_id.is_not(None),
                and_(
                    Post.shared_post_id.is_not(None),
                    Post.actor.has(Actor.account_id.is_not(None)),
                ),
            )
        ]
    if timeline_filter == TimelineFilter.WITHOUT_SHARES:
        if materialized:
            return [TimelineItem.original_author_id.is_not(None)]
        return [Post.shared_post_id.is_(None)]
    if timeline_filter == TimelineFilter.ARTICLES_ONLY:
        return [Post.type == PostType.ARTICLE]
    if timeline_filter == TimelineFilter.MENTIONS_AND_QUOTES and viewer is not None:
        quoted = aliased(Post)
        return [
            or_(
                Post.mentions.any(Mention.actor_id == viewer.id),
                Post.quoted_post_id.in_(select(quoted.id).where(quoted.actor_id == viewer.id)),
            )
        ]
    return []


def _paginate(rows: list, window: int, stamp) -> tuple[list, datetime | None]:
    if len(rows) > window:
        return rows[:window], stamp(rows[window])
    return rows, None


class FeedAssembler:
    """Build a page of a viewer's timeline."""

    def __init__(
        self,
        session: Session,
        recommender: Recommender,
        *,
        recommendation_limit: int = RECOMMENDATION_LIMIT,
    ) -> None:
        self.session = session
        self.recommender = recommender
        self.recommendation_limit = recommendation_limit

    def assemble(
        self,
        viewer: Account | None,
        timeline_filter: TimelineFilter = TimelineFilter.FEDIVERSE,
        *,
        until: datetime | None = None,
        window: int = DEFAULT_WINDOW,
        locales: Sequence[str] = (),
    ) -> TimelinePage:
        if until is not None:
            until = as_utc(until)
        viewer_actor = viewer.actor if viewer is not None else None
        if viewer_actor is None:
            entries, next_cursor = self._fan_in(timeline_filter, until, window, locales)
        elif timeline_filter == TimelineFilter.RECOMMENDATIONS:
            entries, next_cursor = [], None
        else:
            entries, next_cursor = self._fan_out(
                viewer, viewer_actor, timeline_filter, until, window
            )

        visible = [entry for entry in entries if is_post_visible_to(entry.post, viewer_actor)]
        if len(visible) < len(entries):
            logger.warning(
                "Dropped %d timeline entries that failed the visibility re-check",
                len(entries) - len(visible),
            )

        recommended: list[Actor] = []
        if next_cursor is None or timeline_filter == TimelineFilter.RECOMMENDATIONS:
            recommended = self.recommender.recommend(
                locales, viewer_actor, self.recommendation_limit
            )

        return TimelinePage(
            items=visible,
            next=next_cursor,
            intro=timeline_filter != TimelineFilter.RECOMMENDATIONS
            and (viewer is None or not visible),
            recommended_actors=recommended,
        )

    def _fan_in(
        self,
        timeline_filter: TimelineFilter,
        until: datetime | None,
        window: int,
        locales: Sequence[str],
    ) -> tuple[list[FeedEntry], datetime | None]:
        stmt = (
            select(Post)
            .options(*post_load_options())
            .where(
                Post.visibility == PostVisibility.PUBLIC,
                Post.reply_target_id.is_(None),
                *compile_filter(timeline_filter, materialized=False),
            )
            .order_by(Post.published.desc())
            .limit(window + 1)
        )
        if locales:
            stmt = stmt.where(Post.language.in_(expand_locales(locales)))
        if until is not None:
            stmt = stmt.where(Post.published <= until)

        posts, next_cursor = _paginate(
            list(self.session.execute(stmt).scalars()),
            window,
            lambda post: post.published,
        )
        logger.debug("Fan-in page: %d posts, next=%s", len(posts), next_cursor)
        return [FeedEntry(post=post, added=post.published) for post in posts], next_cursor

    def _fan_out(
        self,
        viewer: Account,
        viewer_actor: Actor,
        timeline_filter: TimelineFilter,
        until: datetime | None,
        window: int,
    ) -> tuple[list[FeedEntry], datetime | None]:
        order_column: InstrumentedAttribute[datetime] = (
            TimelineItem.added
            if timeline_filter == TimelineFilter.WITHOUT_SHARES
            else TimelineItem.appended
        )
        stmt = (
            select(TimelineItem)
            .join(Post, Post.id == TimelineItem.post_id)
            .options(
                selectinload(TimelineItem.post).options(*post_load_options(viewer_actor.id)),
                selectinload(TimelineItem.last_sharer),
            )
            .where(
                TimelineItem.account_id == viewer.id,
                post_visibility_filter(viewer_actor),
                *compile_filter(timeline_filter, viewer_actor, materialized=True),
            )
            .order_by(order_column.desc())
            .limit(window + 1)
        )
        if until is not None:
            stmt = stmt.where(order_column <= until)

        attribute = order_column.key
        items, next_cursor = _paginate(
            list(self.session.execute(stmt).scalars()),
            window,
            lambda item: getattr(item, attribute),
        )
        hide_sharers = timeline_filter == TimelineFilter.WITHOUT_SHARES
        entries = [
            FeedEntry(
                post=item.post,
                added=item.added,
                last_sharer=None if hide_sharers else item.last_sharer,
                sharers_count=0 if hide_sharers else item.sharers_count,
            )
            for item in items
        ]
        logger.debug("Fan-out page for %s: %d items, next=%s", viewer.id, len(entries), next_cursor)
        return entries, next_cursor
