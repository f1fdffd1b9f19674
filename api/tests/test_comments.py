from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inkwell import models, settings


def _comment(client: TestClient, post_id: int, headers: dict | None = None, **payload):
    payload.setdefault("content", "Great post!")
    return client.post(f"/post/{post_id}/comments", headers=headers or {}, json=payload)


def _comment_count(db: Session, post_id: int) -> int:
    db.expire_all()
    return db.get(models.Post, post_id).comment_count


def test_signed_in_comment_is_approved(client: TestClient, db: Session, reader, headers_for, make_post) -> None:
    post = make_post()
    response = _comment(client, post.id, headers_for(reader))

    assert response.status_code == 201
    body = response.json()
    assert body["is_approved"] is True
    assert body["depth"] == 0
    assert body["author_id"] == str(reader.id)
    assert body["author_label"] == "Reader Person"
    assert _comment_count(db, post.id) == 1


def test_guest_comment_needs_name_and_waits_for_approval(
    client: TestClient, db: Session, editor, headers_for, make_post
) -> None:
    post = make_post()

    assert _comment(client, post.id).status_code == 400

    response = _comment(client, post.id, author_name="Visitor")
    assert response.status_code == 201
    assert response.json()["is_approved"] is False
    assert response.json()["author_label"] == "Visitor"
    assert _comment_count(db, post.id) == 0

    assert client.get(f"/post/{post.id}/comments").json()["items"] == []
    staff_view = client.get(f"/post/{post.id}/comments", headers=headers_for(editor)).json()["items"]
    assert len(staff_view) == 1


def test_profanity_goes_to_moderation_queue(
    client: TestClient, db: Session, reader, editor, headers_for, make_post
) -> None:
    post = make_post()
    pending = _comment(client, post.id, headers_for(reader), content="This is shit").json()
    assert pending["is_approved"] is False

    # Authors still see their own pending comments
    own_view = client.get(f"/post/{post.id}/comments", headers=headers_for(reader)).json()["items"]
    assert [c["id"] for c in own_view] == [pending["id"]]

    queue = client.get("/post/comments/pending", headers=headers_for(editor)).json()["items"]
    assert [c["id"] for c in queue] == [pending["id"]]

    approved = client.post(f"/post/comments/{pending['id']}/approve", headers=headers_for(editor))
    assert approved.status_code == 200
    assert approved.json()["is_approved"] is True
    assert _comment_count(db, post.id) == 1

    entry = db.query(models.AuditLog).filter(models.AuditLog.action == "approve_comment").one()
    assert entry.actor_id == editor.id
    assert entry.target_id == pending["id"]


def test_global_approval_setting_holds_every_comment(
    client: TestClient, reader, headers_for, make_post, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "COMMENTS_REQUIRE_APPROVAL", True)
    post = make_post()
    assert _comment(client, post.id, headers_for(reader)).json()["is_approved"] is False


def test_pending_queue_requires_editor(client: TestClient, author, headers_for) -> None:
    assert client.get("/post/comments/pending", headers=headers_for(author)).status_code == 403


def test_reject_deletes_comment(client: TestClient, db: Session, editor, headers_for, make_post) -> None:
    post = make_post()
    pending = _comment(client, post.id, author_name="Spammer", content="buy stuff").json()

    response = client.post(
        f"/post/comments/{pending['id']}/reject", params={"note": "spam"}, headers=headers_for(editor)
    )
    assert response.status_code == 204
    assert db.query(models.Comment).count() == 0

    entry = db.query(models.AuditLog).filter(models.AuditLog.action == "reject_comment").one()
    assert entry.note == "spam"


def test_cannot_comment_on_unpublished_post(client: TestClient, reader, headers_for, make_post) -> None:
    draft = make_post(status="draft")
    assert _comment(client, draft.id, headers_for(reader)).status_code == 404
    assert _comment(client, 99999, headers_for(reader)).status_code == 404


class TestThreads:
    def test_replies_track_depth(self, client: TestClient, reader, headers_for, make_post) -> None:
        post = make_post()
        headers = headers_for(reader)
        parent_id = None
        for expected_depth in range(settings.MAX_COMMENT_DEPTH + 1):
            response = _comment(client, post.id, headers, parent_id=parent_id)
            assert response.status_code == 201
            assert response.json()["depth"] == expected_depth
            parent_id = response.json()["id"]

        too_deep = _comment(client, post.id, headers, parent_id=parent_id)
        assert too_deep.status_code == 409

    def test_parent_must_belong_to_same_post(self, client: TestClient, reader, headers_for, make_post) -> None:
        first = make_post(title="First")
        second = make_post(title="Second")
        parent = _comment(client, first.id, headers_for(reader)).json()

        response = _comment(client, second.id, headers_for(reader), parent_id=parent["id"])
        assert response.status_code == 400

    def test_cannot_reply_to_someone_elses_pending_comment(
        self, client: TestClient, reader, headers_for, make_post
    ) -> None:
        post = make_post()
        pending = _comment(client, post.id, author_name="Guest").json()
        response = _comment(client, post.id, headers_for(reader), parent_id=pending["id"])
        assert response.status_code == 400

    def test_listing_is_flat_in_creation_order(self, client: TestClient, reader, headers_for, make_post) -> None:
        post = make_post()
        root = _comment(client, post.id, headers_for(reader), content="root").json()
        _comment(client, post.id, headers_for(reader), content="reply", parent_id=root["id"])
        _comment(client, post.id, headers_for(reader), content="second root")

        items = client.get(f"/post/{post.id}/comments").json()["items"]
        assert [c["content"] for c in items] == ["root", "reply", "second root"]
        assert items[1]["parent_id"] == root["id"]

    def test_replies_under_hidden_comments_stay_hidden(
        self, client: TestClient, reader, editor, headers_for, make_post
    ) -> None:
        post = make_post()
        top = _comment(client, post.id, headers_for(reader), content="top").json()
        guest = _comment(client, post.id, author_name="Guest", content="guest", parent_id=top["id"]).json()
        staff = _comment(client, post.id, headers_for(editor), content="staff", parent_id=guest["id"]).json()
        deep = _comment(client, post.id, headers_for(reader), content="deep", parent_id=staff["id"])
        assert staff["is_approved"] is True
        assert deep.status_code == 201
        assert deep.json()["depth"] == 3

        public = client.get(f"/post/{post.id}/comments").json()["items"]
        assert [c["content"] for c in public] == ["top"]
        own = client.get(f"/post/{post.id}/comments", headers=headers_for(reader)).json()["items"]
        assert [c["content"] for c in own] == ["top"]
        full = client.get(f"/post/{post.id}/comments", headers=headers_for(editor)).json()["items"]
        assert [c["content"] for c in full] == ["top", "guest", "staff", "deep"]

    def test_listing_pages_with_cursor(self, client: TestClient, reader, headers_for, make_post) -> None:
        post = make_post()
        for text in ("one", "two", "three"):
            _comment(client, post.id, headers_for(reader), content=text)

        first = client.get(f"/post/{post.id}/comments", params={"limit": 2}).json()
        assert [c["content"] for c in first["items"]] == ["one", "two"]
        assert first["next_cursor"]

        second = client.get(
            f"/post/{post.id}/comments", params={"limit": 2, "cursor": first["next_cursor"]}
        ).json()
        assert [c["content"] for c in second["items"]] == ["three"]
        assert second["next_cursor"] is None

    def test_comment_limit_per_post(self, client: TestClient, reader, headers_for, make_post, monkeypatch) -> None:
        monkeypatch.setattr(settings, "MAX_COMMENTS_PER_POST", 1)
        post = make_post()
        assert _comment(client, post.id, headers_for(reader)).status_code == 201
        assert _comment(client, post.id, headers_for(reader)).status_code == 409


class TestEditing:
    def test_edit_own_comment(self, client: TestClient, reader, headers_for, make_post) -> None:
        post = make_post()
        comment = _comment(client, post.id, headers_for(reader)).json()

        response = client.patch(
            f"/post/comments/{comment['id']}", headers=headers_for(reader), json={"content": "Edited"}
        )
        assert response.status_code == 200
        assert response.json()["content"] == "Edited"
        assert response.json()["updated_at"] is not None

    def test_cannot_edit_others_comment(
        self, client: TestClient, reader, editor, headers_for, make_post
    ) -> None:
        post = make_post()
        comment = _comment(client, post.id, headers_for(reader)).json()
        response = client.patch(
            f"/post/comments/{comment['id']}", headers=headers_for(editor), json={"content": "Mine now"}
        )
        assert response.status_code == 403

    def test_profane_edit_unapproves(self, client: TestClient, db: Session, reader, headers_for, make_post) -> None:
        post = make_post()
        comment = _comment(client, post.id, headers_for(reader)).json()
        assert _comment_count(db, post.id) == 1

        response = client.patch(
            f"/post/comments/{comment['id']}", headers=headers_for(reader), json={"content": "shit"}
        )
        assert response.json()["is_approved"] is False
        assert _comment_count(db, post.id) == 0


class TestDeleting:
    def test_author_deletes_own_comment_with_replies(
        self, client: TestClient, db: Session, reader, author, headers_for, make_post
    ) -> None:
        post = make_post()
        root = _comment(client, post.id, headers_for(reader)).json()
        _comment(client, post.id, headers_for(author), parent_id=root["id"])
        assert _comment_count(db, post.id) == 2

        response = client.delete(f"/post/comments/{root['id']}", headers=headers_for(reader))
        assert response.status_code == 204
        assert db.query(models.Comment).count() == 0
        assert _comment_count(db, post.id) == 0
        assert db.query(models.AuditLog).filter(models.AuditLog.action == "delete_comment").count() == 0

    def test_staff_deletion_is_audited(
        self, client: TestClient, db: Session, reader, editor, headers_for, make_post
    ) -> None:
        post = make_post()
        comment = _comment(client, post.id, headers_for(reader)).json()

        assert client.delete(f"/post/comments/{comment['id']}", headers=headers_for(editor)).status_code == 204
        entry = db.query(models.AuditLog).filter(models.AuditLog.action == "delete_comment").one()
        assert entry.actor_id == editor.id

    def test_other_readers_cannot_delete(
        self, client: TestClient, reader, make_profile, headers_for, make_post
    ) -> None:
        post = make_post()
        comment = _comment(client, post.id, headers_for(reader)).json()
        stranger = make_profile("reader")
        assert client.delete(f"/post/comments/{comment['id']}", headers=headers_for(stranger)).status_code == 403
