"""Sync engine: project note sources into published posts and announce them.

Every publish runs in three phases:

1. write the source record, its media and the projected post in one
   transaction, then commit;
2. reload the post with its relations and build its federation object;
3. emit a post event, which the activity dispatcher turns into a delivery.

A failure in phase 1 leaves nothing behind but stored blobs. A failure in
phase 3 is returned to the caller and never rolls back phase 1.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from urllib.parse import quote

from sqlalchemy.orm import Session

from notestage.db.time import utcnow
from notestage.federation.objects import build_note, build_share
from notestage.models import (
    Account,
    Actor,
    Mention,
    NoteMedium,
    NoteSource,
    Post,
    PostMedium,
    PostType,
    PostVisibility,
)
from notestage.repositories.note_source_repo import NoteSourceRepository
from notestage.repositories.post_repo import PostRepository
from notestage.services.events import PostEventBus, PostEventKind, PostPublished
from notestage.services.markup import MarkupRenderer, MentionExtractor
from notestage.services.media import CANONICAL_MEDIA_TYPE, MediaPipeline, MediaUpload
from notestage.services.storage import Disk
from notestage.services.timeline import add_post_to_timeline
from notestage.utils.uuid import generate_uuid_v7

logger = logging.getLogger(__name__)

SHAREABLE_VISIBILITIES = (PostVisibility.PUBLIC, PostVisibility.UNLISTED)


@dataclass(frozen=True)
class NoteDraft:
    """What an author submits for a new note."""

    account_id: uuid.UUID
    content: str
    language: str
    visibility: PostVisibility = PostVisibility.PUBLIC
    tags: tuple[str, ...] = ()
    id: uuid.UUID | None = None


@dataclass(frozen=True)
class PublishResult:
    """A committed post plus the outcome of announcing it.

    ``dispatch_error`` is set when the post was stored but its activity could
    not be handed to the delivery transport.
    """

    post: Post
    dispatch_error: Exception | None = None
    skipped_media: tuple[int, ...] = field(default_factory=tuple)

    @property
    def dispatched(self) -> bool:
        return self.dispatch_error is None


class SyncEngine:
    """Keep posts consistent with their note sources and announce changes.

    All collaborators are passed in; the engine holds no global state.
    """

    def __init__(
        self,
        session: Session,
        *,
        disk: Disk,
        renderer: MarkupRenderer,
        mentions: MentionExtractor,
        events: PostEventBus,
        origin: str,
    ) -> None:
        self.session = session
        self.disk = disk
        self.renderer = renderer
        self.mentions = mentions
        self.events = events
        self.origin = origin.rstrip("/")
        self.sources = NoteSourceRepository(session)
        self.posts = PostRepository(session)
        self.media = MediaPipeline(session, disk)

    async def publish_new(
        self,
        draft: NoteDraft,
        uploads: Sequence[MediaUpload] = (),
        reply_target: Post | None = None,
        *,
        widen_visibility: bool = False,
    ) -> PublishResult | None:
        """Create a note source, project it into a post and announce it.

        Returns:
            The published post, or ``None`` if a source with the same id
            already exists or the author has no actor.
        """
        source = self.sources.create(
            id=draft.id,
            account_id=draft.account_id,
            content=draft.content,
            language=draft.language,
            visibility=draft.visibility,
            tags=draft.tags,
        )
        if source is None:
            logger.info("Note source %s already exists; nothing published", draft.id)
            return None

        media = await self.media.ingest_all(source.id, uploads)
        stored = {medium.index for medium in media}
        skipped = tuple(index for index in range(len(uploads)) if index not in stored)

        account = self.session.get(Account, source.account_id)
        if account is None or account.actor is None:
            logger.warning("Account %s has no actor; discarding note source", source.account_id)
            self.session.rollback()
            return None

        post, _ = await self.sync_post_from_note_source(
            source,
            account,
            media,
            reply_target_id=reply_target.id if reply_target is not None else None,
            widen_visibility=widen_visibility,
        )
        if reply_target is not None:
            self.posts.update_replies_count(reply_target.id)
        add_post_to_timeline(self.session, post)
        self.session.commit()
        logger.info("Published note %s as post %s", source.id, post.id)

        result = await self._announce(PostEventKind.CREATE, account, post.id, source.updated)
        return PublishResult(
            post=result.post,
            dispatch_error=result.dispatch_error,
            skipped_media=skipped,
        )

    async def publish_update(
        self,
        source_id: uuid.UUID,
        *,
        widen_visibility: bool = False,
        **fields: Any,
    ) -> PublishResult | None:
        """Edit a note source and re-project its post in place.

        The post keeps its id and address. If the source had never been
        projected, the post is created and announced as new instead.

        Returns:
            The refreshed post, or ``None`` if no source matched.

        Raises:
            ValueError: If a non-editable field is supplied.
        """
        source = self.sources.update(source_id, **fields)
        if source is None:
            return None

        account = self.session.get(Account, source.account_id)
        if account is None or account.actor is None:
            logger.warning("Account %s has no actor; edit not projected", source.account_id)
            self.session.rollback()
            return None

        media = self.sources.list_media(source.id)
        post, created = await self.sync_post_from_note_source(
            source,
            account,
            media,
            widen_visibility=widen_visibility,
        )
        if created:
            add_post_to_timeline(self.session, post)
        self.session.commit()
        logger.info("Updated note %s (post %s)", source.id, post.id)

        kind = PostEventKind.CREATE if created else PostEventKind.UPDATE
        return await self._announce(kind, account, post.id, source.updated)

    async def share_post(
        self,
        account: Account,
        post: Post,
        visibility: PostVisibility = PostVisibility.PUBLIC,
    ) -> PublishResult | None:
        """Reshare ``post`` as ``account``.

        Sharing a share reshares its original. Returns ``None`` when the
        account already shared the post or the post is not shareable.
        """
        actor = account.actor
        if actor is None:
            return None
        original = post.shared_post if post.shared_post_id is not None else post
        if original is None or original.visibility not in SHAREABLE_VISIBILITIES:
            return None
        if self.posts.find_share(actor.id, original.id) is not None:
            logger.debug("Actor %s already shared post %s", actor.id, original.id)
            return None

        share_id = generate_uuid_v7()
        now = utcnow()
        share = Post(
            id=share_id,
            iri=f"{self.origin}/@{account.username}/shares/{share_id}",
            type=original.type,
            visibility=visibility,
            actor_id=actor.id,
            shared_post_id=original.id,
            language=original.language,
            tags={},
            sensitive=original.sensitive,
            published=now,
            updated=now,
        )
        self.session.add(share)
        self.session.flush()
        self.posts.update_shares_count(original.id)
        add_post_to_timeline(self.session, share)
        self.session.commit()
        logger.info("Actor %s shared post %s", actor.id, original.id)

        return await self._announce(PostEventKind.SHARE, account, share.id, now)

    async def sync_post_from_note_source(
        self,
        source: NoteSource,
        account: Account,
        media: Iterable[NoteMedium],
        *,
        reply_target_id: uuid.UUID | None = None,
        widen_visibility: bool = False,
    ) -> tuple[Post, bool]:
        """Create or refresh the post projected from ``source``.

        Mentions and media are replaced wholesale. Nothing is committed.

        Returns:
            The post and whether it was newly created.
        """
        actor = account.actor
        if actor is None:
            raise ValueError(f"Account {account.id} has no actor")

        rendered = self.renderer.render(source.content)
        post = self.posts.get_by_note_source_id(source.id)
        created = post is None
        if post is None:
            iri = f"{self.origin}/@{account.username}/{source.id}"
            post = Post(
                id=generate_uuid_v7(),
                iri=iri,
                url=iri,
                type=PostType.NOTE,
                actor_id=actor.id,
                note_source_id=source.id,
                reply_target_id=reply_target_id,
                published=source.published,
            )
            self.session.add(post)

        post.visibility = self._clamped_visibility(
            source.visibility, post.reply_target_id, widen_visibility
        )
        post.language = source.language
        post.content_html = rendered.html
        post.tags = {tag: f"{self.origin}/tags/{quote(tag)}" for tag in source.tags}
        post.updated = source.updated
        self.session.flush()

        mentioned = await self.mentions.extract(rendered.html, session=self.session)
        if post.reply_target_id is not None:
            target = self.session.get(Post, post.reply_target_id)
            if target is not None:
                mentioned.append(target.actor)
        self._replace_mentions(post, mentioned)
        self._replace_media(post, media)
        return post, created

    def _clamped_visibility(
        self,
        visibility: PostVisibility,
        reply_target_id: uuid.UUID | None,
        widen_visibility: bool,
    ) -> PostVisibility:
        if reply_target_id is None or widen_visibility:
            return visibility
        target = self.session.get(Post, reply_target_id)
        if target is None:
            return visibility
        return visibility.clamp_to(target.visibility)

    def _replace_mentions(self, post: Post, actors: Iterable[Actor]) -> None:
        for mention in list(post.mentions):
            self.session.delete(mention)
        self.session.flush()
        self.session.expire(post, ["mentions"])
        actor_ids = dict.fromkeys(actor.id for actor in actors)
        self.session.add_all(Mention(post_id=post.id, actor_id=actor_id) for actor_id in actor_ids)
        self.session.flush()

    def _replace_media(self, post: Post, media: Iterable[NoteMedium]) -> None:
        for medium in list(post.media):
            self.session.delete(medium)
        self.session.flush()
        self.session.expire(post, ["media"])
        self.session.add_all(
            PostMedium(
                post_id=post.id,
                index=medium.index,
                type=CANONICAL_MEDIA_TYPE,
                url=self.disk.get_url(medium.key),
                alt=medium.alt,
                width=medium.width,
                height=medium.height,
            )
            for medium in media
        )
        self.session.flush()

    async def _announce(
        self,
        kind: PostEventKind,
        account: Account,
        post_id: uuid.UUID,
        updated: datetime,
    ) -> PublishResult:
        actor_id = account.actor.id if account.actor is not None else None
        post = self.posts.get_by_id(post_id, actor_id)
        if post is None:
            raise LookupError(f"Post {post_id} vanished after commit")

        if kind == PostEventKind.SHARE:
            original = post.shared_post
            obj = build_share(post, original.iri, original.actor.iri)
        else:
            reply_iri = (
                self.posts.get_iri(post.reply_target_id)
                if post.reply_target_id is not None
                else None
            )
            quote_iri = (
                self.posts.get_iri(post.quoted_post_id)
                if post.quoted_post_id is not None
                else None
            )
            obj = build_note(post, reply_target_iri=reply_iri, quote_iri=quote_iri)

        failures = await self.events.emit(
            PostPublished(
                kind=kind,
                account_id=account.id,
                post_id=post.id,
                object=obj,
                updated=updated,
            )
        )
        return PublishResult(post=post, dispatch_error=failures[0] if failures else None)
