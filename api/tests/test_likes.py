from __future__ import annotations

from fastapi.testclient import TestClient

from inkwell import models


def test_like_is_idempotent(client: TestClient, reader, headers_for, make_post) -> None:
    post = make_post()
    url = f"/post/{post.id}/like"

    first = client.put(url, headers=headers_for(reader))
    assert first.status_code == 200
    assert first.json() == {"post_id": post.id, "like_count": 1, "liked": True}

    again = client.put(url, headers=headers_for(reader))
    assert again.json()["like_count"] == 1


def test_unlike(client: TestClient, db, reader, make_profile, headers_for, make_post) -> None:
    post = make_post()
    other = make_profile("reader")
    client.put(f"/post/{post.id}/like", headers=headers_for(reader))
    client.put(f"/post/{post.id}/like", headers=headers_for(other))

    response = client.delete(f"/post/{post.id}/like", headers=headers_for(reader))
    assert response.json() == {"post_id": post.id, "like_count": 1, "liked": False}

    # Unliking twice is a no-op
    assert client.delete(f"/post/{post.id}/like", headers=headers_for(reader)).json()["like_count"] == 1
    assert db.query(models.PostLike).count() == 1


def test_like_status_for_anonymous_and_signed_in(client: TestClient, reader, headers_for, make_post) -> None:
    post = make_post()
    client.put(f"/post/{post.id}/like", headers=headers_for(reader))

    assert client.get(f"/post/{post.id}/likes").json() == {"post_id": post.id, "like_count": 1, "liked": False}
    assert client.get(f"/post/{post.id}/likes", headers=headers_for(reader)).json()["liked"] is True


def test_like_requires_profile(client: TestClient, make_post) -> None:
    post = make_post()
    assert client.put(f"/post/{post.id}/like").status_code == 401


def test_cannot_like_unpublished_post(client: TestClient, reader, headers_for, make_post) -> None:
    draft = make_post(status="draft")
    assert client.put(f"/post/{draft.id}/like", headers=headers_for(reader)).status_code == 404
    assert client.get(f"/post/{draft.id}/likes").status_code == 404


def test_engagement_leaves_updated_at_alone(
    client: TestClient, db, reader, headers_for, make_post
) -> None:
    post = make_post()
    db.expire_all()
    before = db.get(models.Post, post.id).updated_at

    client.get(f"/post/{post.slug}", headers=headers_for(reader))
    client.get(f"/post/{post.slug}")
    client.put(f"/post/{post.id}/like", headers=headers_for(reader))
    client.post(f"/post/{post.id}/comments", headers=headers_for(reader), json={"content": "Nice one"})
    client.delete(f"/post/{post.id}/like", headers=headers_for(reader))

    db.expire_all()
    after = db.get(models.Post, post.id)
    assert after.view_count == 2
    assert after.comment_count == 1
    assert after.updated_at == before
