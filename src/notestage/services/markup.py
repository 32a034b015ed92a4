"""Markup rendering and mention extraction collaborators."""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Protocol

import markdown
from bs4 import BeautifulSoup, Tag
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from notestage.models import Actor
from notestage.services.cache import KeyValueCache
from notestage.utils.url import compact_url

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "sane_lists"]
MENTION_PATTERN = re.compile(
    r"(?<![\w@/])@([A-Za-z0-9_]+(?:[.-][A-Za-z0-9_]+)*)"
    r"(?:@([A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)+))?"
)
_SKIP_PARENTS = ["a", "code", "pre"]


@dataclass(frozen=True)
class RenderedMarkup:
    """HTML produced from an author's markup."""

    html: str


class MarkupRenderer(Protocol):
    """Turns author markup into HTML."""

    def render(self, markup: str) -> RenderedMarkup: ...


class MentionExtractor(Protocol):
    """Finds the actors addressed by rendered HTML."""

    async def extract(self, html: str, *, session: Session) -> list[Actor]: ...


class MarkdownRenderer:
    """Render Markdown and link ``@user`` / ``@user@host`` handles.

    Handles without a host are taken to be local. Text inside links and code is
    left alone.
    """

    def __init__(self, local_host: str) -> None:
        self.local_host = local_host

    def render(self, markup: str) -> RenderedMarkup:
        html = markdown.markdown(markup, extensions=MARKDOWN_EXTENSIONS)
        soup = BeautifulSoup(html, "html.parser")
        self._compact_link_texts(soup)
        self._link_mentions(soup)
        return RenderedMarkup(html=str(soup))

    @staticmethod
    def _compact_link_texts(soup: BeautifulSoup) -> None:
        # Autolinks show their full URL; shorten the visible text only.
        for link in soup.find_all("a", href=True):
            if link.string is not None and link.string == link["href"]:
                link.string = compact_url(str(link["href"]))

    def _link_mentions(self, soup: BeautifulSoup) -> None:
        for text in list(soup.find_all(string=True)):
            if text.find_parent(_SKIP_PARENTS) is not None:
                continue
            if not MENTION_PATTERN.search(text):
                continue
            fragments: list[str | Tag] = []
            last = 0
            for match in MENTION_PATTERN.finditer(text):
                fragments.append(text[last:match.start()])
                username, host = match.group(1), match.group(2)
                link = soup.new_tag(
                    "a",
                    attrs={
                        "class": "mention",
                        "href": f"acct:{username}@{host or self.local_host}",
                    },
                )
                link.string = match.group(0)
                fragments.append(link)
                last = match.end()
            fragments.append(text[last:])
            text.replace_with(*(fragment for fragment in fragments if fragment))


class HtmlMentionExtractor:
    """Resolve ``a.mention`` links in rendered HTML to known actors.

    ``acct:user@host`` links are matched by handle, HTTP links by actor IRI or
    profile URL. Successful resolutions are cached; unknown actors are skipped.
    """

    def __init__(self, cache: KeyValueCache | None = None, ttl_seconds: int = 3600) -> None:
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    async def extract(self, html: str, *, session: Session) -> list[Actor]:
        soup = BeautifulSoup(html, "html.parser")
        hrefs: list[str] = []
        for link in soup.select("a.mention[href]"):
            href = str(link["href"]).strip()
            if href and href not in hrefs:
                hrefs.append(href)

        actors: list[Actor] = []
        for href in hrefs:
            actor = self._resolve(session, href)
            if actor is None:
                logger.debug("Could not resolve mention %s", href)
                continue
            if all(existing.id != actor.id for existing in actors):
                actors.append(actor)
        return actors

    def _resolve(self, session: Session, href: str) -> Actor | None:
        cache_key = f"mention:{href}"
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                actor = session.get(Actor, uuid.UUID(cached))
                if actor is not None:
                    return actor

        actor = self._lookup(session, href)
        if actor is not None and self.cache is not None:
            self.cache.set(cache_key, str(actor.id), self.ttl_seconds)
        return actor

    @staticmethod
    def _lookup(session: Session, href: str) -> Actor | None:
        if href.startswith("acct:"):
            username, _, host = href[len("acct:"):].lstrip("@").partition("@")
            if not username or not host:
                return None
            stmt = select(Actor).where(Actor.username == username, Actor.instance_host == host)
        elif href.startswith(("http://", "https://")):
            stmt = select(Actor).where(or_(Actor.iri == href, Actor.url == href))
        else:
            return None
        return session.execute(stmt).scalars().first()
