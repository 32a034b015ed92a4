# src/notestage/federation/objects.py
"""
ActivityStreams object graph for outbound federation.

Builders in this module are pure: they read already-loaded ORM rows and return
immutable objects. They never touch the database or the network, so every
address they need (a reply target's, for instance) is passed in by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from notestage.db.time import as_utc, isoformat_utc
from notestage.models import Actor, Post, PostVisibility

AS_CONTEXT = "https://www.w3.org/ns/activitystreams"
PUBLIC_COLLECTION = "https://www.w3.org/ns/activitystreams#Public"
CONTEXT = [
    AS_CONTEXT,
    {
        "sensitive": "as:sensitive",
        "Hashtag": "as:Hashtag",
        "quoteUrl": "as:quoteUrl",
    },
]


@dataclass(frozen=True)
class DocumentObject:
    """An attachment: URL, media type, alt text and pixel dimensions."""

    url: str
    media_type: str
    name: str | None
    width: int | None
    height: int | None

    def to_activitypub(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "type": "Document",
            "mediaType": self.media_type,
            "url": self.url,
        }
        if self.name:
            document["name"] = self.name
        if self.width is not None:
            document["width"] = self.width
        if self.height is not None:
            document["height"] = self.height
        return document


@dataclass(frozen=True)
class TagObject:
    """A ``Mention`` or ``Hashtag`` entry of a note's tag list."""

    type: str
    href: str
    name: str

    def to_activitypub(self) -> dict[str, Any]:
        return {"type": self.type, "href": self.href, "name": self.name}


@dataclass(frozen=True)
class NoteObject:
    """
    A ``Note`` or ``Article`` ready to be wrapped in an activity.

    Attributes:
        id: Resolvable address of the post
        attribution_ids: Addresses of the authors
        to_ids: Direct recipients
        cc_ids: Broad recipients
        in_reply_to: Address of the reply target, if any
    """

    id: str
    type: str
    attribution_ids: tuple[str, ...]
    to_ids: tuple[str, ...]
    cc_ids: tuple[str, ...]
    content: str | None
    published: str
    updated: str | None = None
    url: str | None = None
    language: str | None = None
    name: str | None = None
    summary: str | None = None
    sensitive: bool = False
    in_reply_to: str | None = None
    quote_url: str | None = None
    attachments: tuple[DocumentObject, ...] = field(default_factory=tuple)
    tags: tuple[TagObject, ...] = field(default_factory=tuple)

    def to_activitypub(self, *, with_context: bool = True) -> dict[str, Any]:
        """Return the JSON-LD representation."""
        data: dict[str, Any] = {}
        if with_context:
            data["@context"] = CONTEXT
        data.update(
            {
                "id": self.id,
                "type": self.type,
                "attributedTo": (
                    self.attribution_ids[0]
                    if len(self.attribution_ids) == 1
                    else list(self.attribution_ids)
                ),
                "to": list(self.to_ids),
                "cc": list(self.cc_ids),
                "published": self.published,
                "sensitive": self.sensitive,
            }
        )
        if self.content is not None:
            data["content"] = self.content
            if self.language:
                data["contentMap"] = {self.language: self.content}
        optional = {
            "updated": self.updated,
            "url": self.url,
            "name": self.name,
            "summary": self.summary,
            "inReplyTo": self.in_reply_to,
            "quoteUrl": self.quote_url,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        if self.attachments:
            data["attachment"] = [doc.to_activitypub() for doc in self.attachments]
        if self.tags:
            data["tag"] = [tag.to_activitypub() for tag in self.tags]
        return data


@dataclass(frozen=True)
class ShareObject:
    """A reshare: the sharer's address for it plus the shared object's address."""

    id: str
    actor_id: str
    object_id: str
    to_ids: tuple[str, ...]
    cc_ids: tuple[str, ...]
    published: str


@dataclass(frozen=True)
class Audience:
    """Direct (``to``) and broad (``cc``) recipients of a post."""

    to: tuple[str, ...]
    cc: tuple[str, ...]


def _followers_collection(actor: Actor) -> str:
    return actor.followers_url or f"{actor.iri}/followers"


def _unique(items: list[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(items))


def derive_audience(
    visibility: PostVisibility,
    actor: Actor,
    mentioned_iris: list[str],
) -> Audience:
    """Map a visibility onto ``to``/``cc`` recipient lists."""
    followers = _followers_collection(actor)
    if visibility == PostVisibility.PUBLIC:
        return Audience(to=(PUBLIC_COLLECTION,), cc=_unique([followers, *mentioned_iris]))
    if visibility == PostVisibility.UNLISTED:
        return Audience(to=(followers,), cc=_unique([PUBLIC_COLLECTION, *mentioned_iris]))
    if visibility == PostVisibility.FOLLOWERS:
        return Audience(to=(followers,), cc=_unique(mentioned_iris))
    if visibility == PostVisibility.DIRECT:
        return Audience(to=_unique(mentioned_iris), cc=())
    return Audience(to=(), cc=())


def build_note(
    post: Post,
    reply_target_iri: str | None = None,
    quote_iri: str | None = None,
) -> NoteObject:
    """Build the federation object for a post.

    ``post`` must have ``actor``, ``mentions`` (with their actors) and ``media``
    loaded. The reply target's address is passed in rather than read from the
    relation, because it is resolved fresh by the caller.
    """
    mentioned = [mention.actor for mention in post.mentions]
    audience = derive_audience(post.visibility, post.actor, [actor.iri for actor in mentioned])

    tags = [
        TagObject(type="Mention", href=actor.iri, name=actor.handle)
        for actor in mentioned
    ]
    tags.extend(
        TagObject(type="Hashtag", href=href, name=f"#{name}")
        for name, href in sorted(post.tags.items())
    )

    published = as_utc(post.published)
    updated = as_utc(post.updated)

    return NoteObject(
        id=post.iri,
        type=post.type.value,
        attribution_ids=(post.actor.iri,),
        to_ids=audience.to,
        cc_ids=audience.cc,
        content=post.content_html,
        published=isoformat_utc(published),
        updated=isoformat_utc(updated) if updated > published else None,
        url=post.url,
        language=post.language,
        name=post.name,
        summary=post.summary,
        sensitive=post.sensitive,
        in_reply_to=reply_target_iri,
        quote_url=quote_iri,
        attachments=tuple(
            DocumentObject(
                url=medium.url,
                media_type=medium.type,
                name=medium.alt,
                width=medium.width,
                height=medium.height,
            )
            for medium in post.media
        ),
        tags=tuple(tags),
    )


def build_share(share: Post, shared_post_iri: str, shared_author_iri: str) -> ShareObject:
    """Build the federation object for a reshare.

    ``share`` must have ``actor`` loaded; the original's author is copied in
    so it is notified.
    """
    audience = derive_audience(share.visibility, share.actor, [shared_author_iri])
    return ShareObject(
        id=share.iri,
        actor_id=share.actor.iri,
        object_id=shared_post_iri,
        to_ids=audience.to,
        cc_ids=audience.cc,
        published=isoformat_utc(share.published),
    )


@dataclass(frozen=True)
class Activity:
    """An activity envelope (``Create``, ``Update``, ``Announce``) around an object."""

    id: str
    type: str
    actor_id: str
    object: NoteObject | str
    to_ids: tuple[str, ...]
    cc_ids: tuple[str, ...]
    published: str | None = None

    def to_activitypub(self) -> dict[str, Any]:
        """Return the JSON-LD representation, embedding the object when it is one."""
        data: dict[str, Any] = {
            "@context": CONTEXT,
            "id": self.id,
            "type": self.type,
            "actor": self.actor_id,
            "to": list(self.to_ids),
            "cc": list(self.cc_ids),
        }
        if isinstance(self.object, NoteObject):
            data["object"] = self.object.to_activitypub(with_context=False)
        else:
            data["object"] = self.object
        if self.published is not None:
            data["published"] = self.published
        return data
