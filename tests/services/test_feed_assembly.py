"""Tests for timeline assembly: fan-in, fan-out, filters and pagination."""

from datetime import timedelta, timezone

import pytest

from notestage.models import Mention, PostType, PostVisibility
from notestage.services.feed import (
    DEFAULT_WINDOW,
    FeedAssembler,
    TimelineFilter,
    compile_filter,
)
from notestage.services.recommendations import ActorRecommender, expand_locales
from notestage.services.sync import NoteDraft
from notestage.services.timeline import add_post_to_timeline


@pytest.fixture()
def assembler(db_session):
    return FeedAssembler(db_session, ActorRecommender(db_session))


def test_anonymous_feed_paginates_public_posts(
    db_session, assembler, make_account, make_post, base_time
) -> None:
    alice = make_account("alice")
    posts = [
        make_post(alice.actor, published=base_time + timedelta(minutes=index))
        for index in range(DEFAULT_WINDOW + 1)
    ]

    first = assembler.assemble(None)

    assert len(first.items) == DEFAULT_WINDOW
    assert [entry.post.id for entry in first.items] == [post.id for post in reversed(posts[1:])]
    assert first.next is not None
    assert first.intro is True
    assert first.recommended_actors == []

    second = assembler.assemble(None, until=first.next)

    assert [entry.post.id for entry in second.items] == [posts[0].id]
    assert second.next is None
    assert [actor.id for actor in second.recommended_actors] == [alice.actor.id]


def test_anonymous_feed_hides_non_public_posts_and_replies(
    assembler, make_account, make_post
) -> None:
    alice = make_account("alice")
    public = make_post(alice.actor)
    make_post(alice.actor, visibility=PostVisibility.UNLISTED)
    make_post(alice.actor, visibility=PostVisibility.FOLLOWERS)
    make_post(alice.actor, visibility=PostVisibility.DIRECT)
    make_post(alice.actor, reply_target=public)

    page = assembler.assemble(None)

    assert [entry.post.id for entry in page.items] == [public.id]


def test_anonymous_feed_filters_by_locale(assembler, make_account, make_post) -> None:
    alice = make_account("alice")
    english = make_post(alice.actor, language="en")
    make_post(alice.actor, language="ko")

    page = assembler.assemble(None, locales=["en-US"])

    assert [entry.post.id for entry in page.items] == [english.id]


def test_anonymous_articles_only(assembler, make_account, make_post) -> None:
    alice = make_account("alice")
    make_post(alice.actor)
    article = make_post(alice.actor, type=PostType.ARTICLE)

    page = assembler.assemble(None, TimelineFilter.ARTICLES_ONLY)

    assert [entry.post.id for entry in page.items] == [article.id]


def test_signed_in_feed_reads_materialized_timeline(
    db_session, assembler, make_account, follow, make_post, base_time
) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    follow(bob.actor, alice.actor)
    posts = [
        make_post(alice.actor, published=base_time + timedelta(minutes=index))
        for index in range(3)
    ]
    for post in posts:
        add_post_to_timeline(db_session, post)
    # Not on bob's timeline: nobody local follows the author.
    make_post(make_account("carol").actor)
    db_session.commit()

    first = assembler.assemble(bob, window=2)
    assert [entry.post.id for entry in first.items] == [posts[2].id, posts[1].id]
    assert first.next is not None
    assert first.intro is False

    second = assembler.assemble(bob, window=2, until=first.next)
    assert [entry.post.id for entry in second.items] == [posts[0].id]
    assert second.next is None


def test_cursor_with_utc_offset_is_compared_as_an_instant(
    assembler, make_account, make_post, base_time
) -> None:
    alice = make_account("alice")
    older = make_post(alice.actor, published=base_time)
    make_post(alice.actor, published=base_time + timedelta(hours=2))
    seoul = timezone(timedelta(hours=9))

    page = assembler.assemble(None, until=(base_time + timedelta(hours=1)).astimezone(seoul))

    assert [entry.post.id for entry in page.items] == [older.id]


def test_fan_out_cursor_with_utc_offset(
    db_session, assembler, make_account, follow, make_post, base_time
) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    follow(bob.actor, alice.actor)
    older = make_post(alice.actor, published=base_time)
    newer = make_post(alice.actor, published=base_time + timedelta(hours=2))
    add_post_to_timeline(db_session, older)
    add_post_to_timeline(db_session, newer)
    db_session.commit()
    pacific = timezone(timedelta(hours=-8))

    page = assembler.assemble(bob, until=(base_time + timedelta(hours=1)).astimezone(pacific))

    assert [entry.post.id for entry in page.items] == [older.id]


def test_next_cursor_is_timezone_aware_utc(
    db_session, assembler, make_account, make_post, base_time
) -> None:
    alice = make_account("alice")
    posts = [
        make_post(alice.actor, published=base_time + timedelta(minutes=index))
        for index in range(3)
    ]
    db_session.expunge_all()

    page = assembler.assemble(None, window=2)

    assert page.next == posts[0].published
    assert page.next.utcoffset() == timedelta(0)


def test_signed_in_feed_rechecks_visibility(
    db_session, assembler, make_account, follow, make_post
) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    following = follow(bob.actor, alice.actor)
    post = make_post(alice.actor, visibility=PostVisibility.FOLLOWERS)
    add_post_to_timeline(db_session, post)
    db_session.commit()

    assert [entry.post.id for entry in assembler.assemble(bob).items] == [post.id]

    db_session.delete(following)
    db_session.commit()
    db_session.expire_all()

    page = assembler.assemble(bob)
    assert page.items == []
    assert page.intro is True


def test_without_shares_hides_share_only_rows(
    db_session, assembler, make_account, follow, make_post
) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    erin = make_account("erin")
    follow(bob.actor, alice.actor)
    follow(bob.actor, erin.actor)
    own = make_post(alice.actor)
    add_post_to_timeline(db_session, own)
    shared_only = make_post(make_account("carol").actor)
    add_post_to_timeline(db_session, make_post(erin.actor, shared_post=shared_only))
    add_post_to_timeline(db_session, make_post(erin.actor, shared_post=own))
    db_session.commit()

    everything = assembler.assemble(bob)
    assert {entry.post.id for entry in everything.items} == {own.id, shared_only.id}
    resurfaced = next(entry for entry in everything.items if entry.post.id == own.id)
    assert resurfaced.sharers_count == 1
    assert resurfaced.last_sharer.id == erin.actor.id

    originals = assembler.assemble(bob, TimelineFilter.WITHOUT_SHARES)
    assert [entry.post.id for entry in originals.items] == [own.id]
    assert originals.items[0].sharers_count == 0
    assert originals.items[0].last_sharer is None


@pytest.mark.asyncio
async def test_local_filter_keeps_locally_authored_posts(
    db_session, assembler, sync_engine, make_account, make_remote_actor, follow, make_post
) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    rita = make_remote_actor("rita")
    follow(bob.actor, alice.actor)
    follow(bob.actor, rita)
    local = await sync_engine.publish_new(
        NoteDraft(account_id=alice.id, content="local", language="en")
    )
    add_post_to_timeline(db_session, make_post(rita))
    db_session.commit()

    page = assembler.assemble(bob, TimelineFilter.LOCAL)

    assert [entry.post.id for entry in page.items] == [local.post.id]


def test_mentions_and_quotes_filter(
    db_session, assembler, make_account, follow, make_post
) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    follow(bob.actor, alice.actor)
    bobs_post = make_post(bob.actor)
    plain = make_post(alice.actor)
    mentioning = make_post(alice.actor)
    db_session.add(Mention(post_id=mentioning.id, actor_id=bob.actor.id))
    quoting = make_post(alice.actor)
    quoting.quoted_post_id = bobs_post.id
    db_session.flush()
    for post in (bobs_post, plain, mentioning, quoting):
        add_post_to_timeline(db_session, post)
    db_session.commit()

    page = assembler.assemble(bob, TimelineFilter.MENTIONS_AND_QUOTES)

    assert {entry.post.id for entry in page.items} == {mentioning.id, quoting.id}


def test_recommendations_mode_lists_actors_only(
    db_session, assembler, make_account, follow, make_post
) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    carol = make_account("carol")
    follow(bob.actor, alice.actor)
    add_post_to_timeline(db_session, make_post(alice.actor))
    make_post(carol.actor)
    make_post(bob.actor)
    db_session.commit()

    page = assembler.assemble(bob, TimelineFilter.RECOMMENDATIONS)

    assert page.items == []
    assert page.next is None
    assert page.intro is False
    assert [actor.id for actor in page.recommended_actors] == [carol.actor.id]


def test_recommendations_respect_locales(db_session, make_account, make_post) -> None:
    alice = make_account("alice")
    bora = make_account("bora")
    make_post(alice.actor, language="en")
    make_post(bora.actor, language="ko")
    make_post(bora.actor, visibility=PostVisibility.FOLLOWERS, language="en")

    actors = ActorRecommender(db_session).recommend(["ko-KR"], None, 10)

    assert [actor.id for actor in actors] == [bora.actor.id]


def test_expand_locales_adds_base_languages() -> None:
    assert expand_locales(["en-US", "ko", "en"]) == ["en-US", "ko", "en"]
    assert expand_locales(["pt-BR", "zh-Hant-TW"]) == ["pt-BR", "zh-Hant-TW", "pt", "zh"]
    assert expand_locales([]) == []


@pytest.mark.parametrize(
    ("value", "signed_in", "expected"),
    [
        (None, False, TimelineFilter.FEDIVERSE),
        ("local", False, TimelineFilter.LOCAL),
        ("withoutShares", True, TimelineFilter.WITHOUT_SHARES),
        ("mentionsAndQuotes", False, TimelineFilter.FEDIVERSE),
        ("mentionsAndQuotes", True, TimelineFilter.MENTIONS_AND_QUOTES),
        ("recommendations", False, TimelineFilter.FEDIVERSE),
        ("bogus", True, TimelineFilter.FEDIVERSE),
    ],
)
def test_timeline_filter_parse(value, signed_in, expected) -> None:
    assert TimelineFilter.parse(value, signed_in=signed_in) == expected


def test_fediverse_filter_adds_no_clauses() -> None:
    assert compile_filter(TimelineFilter.FEDIVERSE, materialized=True) == []
    assert compile_filter(TimelineFilter.MENTIONS_AND_QUOTES, None, materialized=True) == []
