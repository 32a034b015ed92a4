# tests/v1/test_posts_api.py
"""Tests for post read and share endpoints."""

import uuid

from fastapi import status

from notestage.models import PostVisibility


def test_get_post(client, make_account, make_post, auth_headers) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    post = make_post(alice.actor)

    response = client.get(f"/api/v1/posts/{post.id}", headers=auth_headers(bob))

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["id"] == str(post.id)
    assert data["actor"]["iri"] == alice.actor.iri


def test_get_followers_only_post_requires_follow(
    client, make_account, make_post, follow, auth_headers
) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    post = make_post(alice.actor, visibility=PostVisibility.FOLLOWERS)

    hidden = client.get(f"/api/v1/posts/{post.id}", headers=auth_headers(bob))
    follow(bob.actor, alice.actor)
    shown = client.get(f"/api/v1/posts/{post.id}", headers=auth_headers(bob))

    assert hidden.status_code == status.HTTP_404_NOT_FOUND
    assert shown.status_code == status.HTTP_200_OK


def test_get_unknown_post(client, make_account, auth_headers) -> None:
    alice = make_account("alice")

    response = client.get(f"/api/v1/posts/{uuid.uuid4()}", headers=auth_headers(alice))

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_share_post(client, make_account, make_post, auth_headers, transport) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    post = make_post(alice.actor)

    response = client.post(f"/api/v1/posts/{post.id}/shares", headers=auth_headers(bob))

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["dispatched"] is True
    assert data["post"]["shared_post_id"] == str(post.id)
    assert data["post"]["actor"]["handle"] == "@bob@notes.example"
    assert transport.sent[-1].activity.type == "Announce"
    assert transport.sent[-1].activity.object == post.iri


def test_share_post_twice_conflicts(client, make_account, make_post, auth_headers) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    post = make_post(alice.actor)

    client.post(f"/api/v1/posts/{post.id}/shares", headers=auth_headers(bob))
    response = client.post(f"/api/v1/posts/{post.id}/shares", headers=auth_headers(bob))

    assert response.status_code == status.HTTP_409_CONFLICT


def test_share_of_followers_only_post_is_refused(
    client, make_account, make_post, follow, auth_headers
) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    follow(bob.actor, alice.actor)
    post = make_post(alice.actor, visibility=PostVisibility.FOLLOWERS)

    response = client.post(f"/api/v1/posts/{post.id}/shares", headers=auth_headers(bob))

    assert response.status_code == status.HTTP_409_CONFLICT


def test_share_requires_authentication(client, make_account, make_post) -> None:
    alice = make_account("alice")
    post = make_post(alice.actor)

    response = client.post(f"/api/v1/posts/{post.id}/shares")

    assert response.status_code in {status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN}
