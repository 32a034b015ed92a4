# tests/v1/test_notes_api.py
"""Tests for note authoring endpoints."""

import base64
import uuid

from fastapi import status

from notestage.db.time import utcnow
from notestage.models import PostVisibility


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


def test_create_note(client, make_account, auth_headers, transport) -> None:
    alice = make_account("alice")

    response = client.post(
        "/api/v1/@alice/notes",
        json={"content": "Hello *fediverse*", "language": "en", "tags": ["#news", " "]},
        headers=auth_headers(alice),
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["dispatched"] is True
    assert data["skipped_media"] == []
    post = data["post"]
    assert post["iri"].startswith("https://notes.example/@alice/")
    assert post["content_html"] == "<p>Hello <em>fediverse</em></p>"
    assert post["visibility"] == "public"
    assert post["tags"] == {"news": "https://notes.example/tags/news"}
    assert post["actor"]["handle"] == "@alice@notes.example"
    assert [sent.activity.type for sent in transport.sent] == ["Create"]


def test_create_note_retry_conflicts(client, make_account, auth_headers) -> None:
    alice = make_account("alice")
    payload = {"id": str(uuid.uuid4()), "content": "once", "language": "en"}

    first = client.post("/api/v1/@alice/notes", json=payload, headers=auth_headers(alice))
    second = client.post("/api/v1/@alice/notes", json=payload, headers=auth_headers(alice))

    assert first.status_code == status.HTTP_201_CREATED
    assert second.status_code == status.HTTP_409_CONFLICT


def test_create_note_for_someone_else_is_forbidden(client, make_account, auth_headers) -> None:
    make_account("alice")
    bob = make_account("bob")

    response = client.post(
        "/api/v1/@alice/notes",
        json={"content": "impersonation", "language": "en"},
        headers=auth_headers(bob),
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_create_note_requires_authentication(client, make_account) -> None:
    make_account("alice")

    response = client.post("/api/v1/@alice/notes", json={"content": "hi", "language": "en"})

    assert response.status_code in {status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN}


def test_create_note_rejects_invalid_token(client, make_account) -> None:
    make_account("alice")

    response = client.post(
        "/api/v1/@alice/notes",
        json={"content": "hi", "language": "en"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_create_note_validates_payload(client, make_account, auth_headers) -> None:
    alice = make_account("alice")

    response = client.post(
        "/api/v1/@alice/notes",
        json={"content": "", "language": "en", "media": [{"data": "***"}]},
        headers=auth_headers(alice),
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_create_note_with_media_reports_skipped(
    client, make_account, auth_headers, png_bytes, corrupt_bytes
) -> None:
    alice = make_account("alice")

    response = client.post(
        "/api/v1/@alice/notes",
        json={
            "content": "pics",
            "language": "en",
            "media": [
                {"data": _b64(png_bytes), "alt": "box"},
                {"data": _b64(corrupt_bytes)},
            ],
        },
        headers=auth_headers(alice),
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["skipped_media"] == [1]
    assert [(m["index"], m["alt"], m["type"]) for m in data["post"]["media"]] == [
        (0, "box", "image/webp")
    ]


def test_reply_to_invisible_post_is_not_found(
    client, make_account, make_post, auth_headers
) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    hidden = make_post(bob.actor, visibility=PostVisibility.FOLLOWERS)

    response = client.post(
        "/api/v1/@alice/notes",
        json={"content": "reply", "language": "en", "reply_target_id": str(hidden.id)},
        headers=auth_headers(alice),
    )

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_reply_is_clamped_to_target_visibility(
    client, make_account, make_post, follow, auth_headers
) -> None:
    alice = make_account("alice")
    bob = make_account("bob")
    follow(alice.actor, bob.actor)
    target = make_post(bob.actor, visibility=PostVisibility.FOLLOWERS)

    response = client.post(
        "/api/v1/@alice/notes",
        json={"content": "reply", "language": "en", "reply_target_id": str(target.id)},
        headers=auth_headers(alice),
    )

    assert response.status_code == status.HTTP_201_CREATED
    post = response.json()["post"]
    assert post["visibility"] == "followers"
    assert post["reply_target_id"] == str(target.id)


def _create(client, headers, **fields) -> dict:
    payload = {"content": "hello", "language": "en", **fields}
    response = client.post("/api/v1/@alice/notes", json=payload, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()["post"]


def test_get_note_public_and_anonymous(client, make_account, auth_headers) -> None:
    alice = make_account("alice")
    post = _create(client, auth_headers(alice))
    note_id = post["iri"].rsplit("/", 1)[-1]

    response = client.get(f"/api/v1/@alice/notes/{note_id}")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["content"] == "hello"
    assert data["post"]["id"] == post["id"]


def test_get_followers_only_note_hidden_from_strangers(
    client, make_account, auth_headers
) -> None:
    alice = make_account("alice")
    erin = make_account("erin")
    post = _create(client, auth_headers(alice), visibility="followers")
    note_id = post["iri"].rsplit("/", 1)[-1]

    assert client.get(f"/api/v1/@alice/notes/{note_id}").status_code == 404
    assert (
        client.get(f"/api/v1/@alice/notes/{note_id}", headers=auth_headers(erin)).status_code
        == 404
    )
    assert (
        client.get(f"/api/v1/@alice/notes/{note_id}", headers=auth_headers(alice)).status_code
        == 200
    )


def test_get_note_by_previous_username(client, db_session, make_account, auth_headers) -> None:
    alice = make_account("alice")
    post = _create(client, auth_headers(alice))
    note_id = post["iri"].rsplit("/", 1)[-1]
    alice.old_username = "alice"
    alice.username = "alicia"
    alice.username_changed = utcnow()
    db_session.commit()

    assert client.get(f"/api/v1/@alice/notes/{note_id}").status_code == 200
    assert client.get(f"/api/v1/@alicia/notes/{note_id}").status_code == 200
    assert client.get(f"/api/v1/@bob/notes/{note_id}").status_code == 404


def test_update_note(client, make_account, auth_headers, transport) -> None:
    alice = make_account("alice")
    post = _create(client, auth_headers(alice))
    note_id = post["iri"].rsplit("/", 1)[-1]

    response = client.patch(
        f"/api/v1/@alice/notes/{note_id}",
        json={"content": "edited", "visibility": "unlisted"},
        headers=auth_headers(alice),
    )

    assert response.status_code == status.HTTP_200_OK
    updated = response.json()["post"]
    assert updated["id"] == post["id"]
    assert updated["content_html"] == "<p>edited</p>"
    assert updated["visibility"] == "unlisted"
    assert [sent.activity.type for sent in transport.sent] == ["Create", "Update"]


def test_update_missing_note(client, make_account, auth_headers) -> None:
    alice = make_account("alice")

    response = client.patch(
        f"/api/v1/@alice/notes/{uuid.uuid4()}",
        json={"content": "edited"},
        headers=auth_headers(alice),
    )

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_add_media_to_note(client, make_account, auth_headers, png_bytes, transport) -> None:
    alice = make_account("alice")
    post = _create(client, auth_headers(alice))
    note_id = post["iri"].rsplit("/", 1)[-1]

    response = client.post(
        f"/api/v1/@alice/notes/{note_id}/media",
        json={"data": _b64(png_bytes), "alt": "late addition"},
        headers=auth_headers(alice),
    )

    assert response.status_code == status.HTTP_201_CREATED
    medium = response.json()
    assert medium["index"] == 0
    assert (medium["width"], medium["height"]) == (40, 30)

    note = client.get(f"/api/v1/@alice/notes/{note_id}").json()
    assert [m["alt"] for m in note["media"]] == ["late addition"]
    assert [m["alt"] for m in note["post"]["media"]] == ["late addition"]
    assert transport.sent[-1].activity.type == "Update"


def test_add_unreadable_media_is_rejected(
    client, make_account, auth_headers, corrupt_bytes
) -> None:
    alice = make_account("alice")
    post = _create(client, auth_headers(alice))
    note_id = post["iri"].rsplit("/", 1)[-1]

    response = client.post(
        f"/api/v1/@alice/notes/{note_id}/media",
        json={"data": _b64(corrupt_bytes)},
        headers=auth_headers(alice),
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
