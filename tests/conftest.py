from __future__ import annotations

import io
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("FEDERATION_ORIGIN", "https://notes.example")
os.environ.setdefault("MEDIA_BASE_URL", "https://notes.example/media/")
os.environ.setdefault("REDIS_URL", "redis://localhost:1")

from notestage.api.v1.dependencies import create_access_token
from notestage.db.session import Base, build_engine
from notestage.db.session import get_db as app_get_session
from notestage.db.time import utcnow
from notestage.federation.dispatcher import ActivityDispatcher
from notestage.federation.objects import Activity
from notestage.federation.transport import DeliveryOptions, TransportError
from notestage.main import app as fastapi_app
from notestage.models import (
    Account,
    Actor,
    Following,
    Instance,
    Post,
    PostType,
    PostVisibility,
)
from notestage.services.cache import KeyValueCache
from notestage.services.events import PostEventBus
from notestage.services.markup import HtmlMentionExtractor, MarkdownRenderer
from notestage.services.storage import LocalDisk
from notestage.services.sync import SyncEngine
from notestage.utils.uuid import generate_uuid_v7

ORIGIN = "https://notes.example"
LOCAL_HOST = "notes.example"


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@dataclass
class SentActivity:
    sender: str
    recipients: str
    activity: Activity
    options: DeliveryOptions


@dataclass
class RecordingTransport:
    """Delivery transport that keeps what it was asked to send."""

    sent: list[SentActivity] = field(default_factory=list)
    fail_with: Exception | None = None

    async def send_activity(
        self,
        sender: str,
        recipients: str,
        activity: Activity,
        options: DeliveryOptions,
    ) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(SentActivity(sender, recipients, activity, options))

    async def close(self) -> None:
        return None

    def fail(self, message: str = "relay down") -> None:
        self.fail_with = TransportError(message)


@pytest.fixture()
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture()
def events(transport: RecordingTransport) -> PostEventBus:
    bus = PostEventBus()
    ActivityDispatcher(transport, origin=ORIGIN, canonical_origin="https://alias.example").subscribe(
        bus
    )
    return bus


@pytest.fixture()
def disk(tmp_path) -> LocalDisk:
    return LocalDisk(tmp_path / "media", f"{ORIGIN}/media/")


@pytest.fixture()
def renderer() -> MarkdownRenderer:
    return MarkdownRenderer(LOCAL_HOST)


@pytest.fixture()
def sync_engine(
    db_session: Session,
    disk: LocalDisk,
    renderer: MarkdownRenderer,
    events: PostEventBus,
) -> SyncEngine:
    return SyncEngine(
        db_session,
        disk=disk,
        renderer=renderer,
        mentions=HtmlMentionExtractor(),
        events=events,
        origin=ORIGIN,
    )


def _ensure_instance(session: Session, host: str) -> None:
    if session.get(Instance, host) is None:
        session.add(Instance(host=host, software="notestage" if host == LOCAL_HOST else None))
        session.flush()


@pytest.fixture()
def make_account(db_session: Session) -> Callable[..., Account]:
    """Create a local account together with its actor."""

    def _make(username: str, *, locales: list[str] | None = None) -> Account:
        _ensure_instance(db_session, LOCAL_HOST)
        account = Account(username=username, name=username.title(), locales=locales)
        db_session.add(account)
        db_session.flush()
        db_session.add(
            Actor(
                iri=f"{ORIGIN}/@{username}",
                username=username,
                instance_host=LOCAL_HOST,
                account_id=account.id,
                name=account.name,
                url=f"{ORIGIN}/@{username}",
                inbox_url=f"{ORIGIN}/@{username}/inbox",
                shared_inbox_url=f"{ORIGIN}/inbox",
                followers_url=f"{ORIGIN}/@{username}/followers",
            )
        )
        db_session.commit()
        db_session.refresh(account)
        return account

    return _make


@pytest.fixture()
def make_remote_actor(db_session: Session) -> Callable[..., Actor]:
    def _make(username: str, host: str = "remote.example") -> Actor:
        _ensure_instance(db_session, host)
        actor = Actor(
            iri=f"https://{host}/users/{username}",
            username=username,
            instance_host=host,
            url=f"https://{host}/@{username}",
            inbox_url=f"https://{host}/users/{username}/inbox",
            shared_inbox_url=f"https://{host}/inbox",
            followers_url=f"https://{host}/users/{username}/followers",
        )
        db_session.add(actor)
        db_session.commit()
        return actor

    return _make


@pytest.fixture()
def follow(db_session: Session) -> Callable[..., Following]:
    def _follow(follower: Actor, followee: Actor, *, accepted: bool = True) -> Following:
        following = Following(
            iri=f"{follower.iri}#follows/{followee.id}",
            follower_id=follower.id,
            followee_id=followee.id,
            accepted=utcnow() if accepted else None,
        )
        db_session.add(following)
        db_session.commit()
        return following

    return _follow


@pytest.fixture()
def make_post(db_session: Session) -> Callable[..., Post]:
    """Insert a post directly, bypassing the sync engine."""

    def _make(
        actor: Actor,
        *,
        visibility: PostVisibility = PostVisibility.PUBLIC,
        published: datetime | None = None,
        language: str = "en",
        type: PostType = PostType.NOTE,
        reply_target: Post | None = None,
        shared_post: Post | None = None,
    ) -> Post:
        post_id = generate_uuid_v7()
        when = published or utcnow()
        post = Post(
            id=post_id,
            iri=f"{actor.iri}/posts/{post_id}",
            type=type,
            visibility=visibility,
            actor_id=actor.id,
            language=language,
            content_html="<p>hello</p>",
            tags={},
            reply_target_id=reply_target.id if reply_target is not None else None,
            shared_post_id=shared_post.id if shared_post is not None else None,
            published=when,
            updated=when,
        )
        db_session.add(post)
        db_session.commit()
        return post

    return _make


def image_bytes(
    format: str = "PNG",
    size: tuple[int, int] = (40, 30),
    mode: str = "RGB",
) -> bytes:
    image = Image.new(mode, size, color=(200, 40, 90) if mode == "RGB" else 128)
    buffer = io.BytesIO()
    image.save(buffer, format=format)
    return buffer.getvalue()


@pytest.fixture()
def make_image() -> Callable[..., bytes]:
    return image_bytes


@pytest.fixture()
def png_bytes() -> bytes:
    return image_bytes("PNG", (40, 30))


@pytest.fixture()
def jpeg_bytes() -> bytes:
    return image_bytes("JPEG", (64, 48))


@pytest.fixture()
def corrupt_bytes() -> bytes:
    return b"definitely not an image"


@pytest.fixture()
def base_time() -> datetime:
    return utcnow().replace(microsecond=0) - timedelta(days=1)


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(
    app: FastAPI,
    db_session: Session,
    disk: LocalDisk,
    events: PostEventBus,
) -> Iterator[TestClient]:
    def _get_session_override() -> Iterator[Session]:
        yield db_session

    saved = {name: getattr(app.state, name) for name in ("disk", "events", "cache")}
    app.dependency_overrides[app_get_session] = _get_session_override
    app.state.disk = disk
    app.state.events = events
    app.state.cache = KeyValueCache(None)
    try:
        yield TestClient(app, base_url="http://test")
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        for name, value in saved.items():
            setattr(app.state, name, value)


@pytest.fixture()
def auth_headers() -> Callable[[Account], dict[str, str]]:
    def _headers(account: Account) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(account.id)}"}

    return _headers
