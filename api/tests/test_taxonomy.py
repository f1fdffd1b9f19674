from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inkwell import models


def _create_category(client: TestClient, headers: dict, **payload) -> dict:
    response = client.post("/category", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_admin_creates_category_with_derived_slug(client: TestClient, admin, headers_for) -> None:
    body = _create_category(client, headers_for(admin), name="Python Tips", color="#FF0000")
    assert body["slug"] == "python-tips"
    assert body["color"] == "#ff0000"


def test_category_requires_admin(client: TestClient, editor, headers_for) -> None:
    response = client.post("/category", headers=headers_for(editor), json={"name": "News"})
    assert response.status_code == 403


def test_category_color_is_validated(client: TestClient, admin, headers_for) -> None:
    response = client.post("/category", headers=headers_for(admin), json={"name": "News", "color": "red"})
    assert response.status_code == 422


def test_duplicate_category_conflicts(client: TestClient, admin, headers_for) -> None:
    _create_category(client, headers_for(admin), name="News")
    response = client.post("/category", headers=headers_for(admin), json={"name": "News"})
    assert response.status_code == 409


def test_category_list_counts_published_posts(client: TestClient, admin, headers_for, make_post) -> None:
    category = _create_category(client, headers_for(admin), name="Guides")
    make_post(title="Published guide", category_id=category["id"])
    make_post(title="Draft guide", category_id=category["id"], status="draft")

    listing = client.get("/category").json()
    assert [(c["slug"], c["post_count"]) for c in listing] == [("guides", 1)]

    detail = client.get("/category/guides")
    assert detail.status_code == 200
    assert detail.json()["post_count"] == 1
    assert client.get("/category/missing").status_code == 404


def test_update_category(client: TestClient, admin, headers_for) -> None:
    _create_category(client, headers_for(admin), name="Old Name")
    response = client.patch(
        "/category/old-name", headers=headers_for(admin), json={"name": "New Name", "slug": "new-name"}
    )
    assert response.status_code == 200
    assert response.json()["slug"] == "new-name"
    assert client.get("/category/new-name").status_code == 200


def test_deleting_category_uncategorizes_posts(
    client: TestClient, db: Session, admin, headers_for, make_post
) -> None:
    category = _create_category(client, headers_for(admin), name="Temporary")
    post = make_post(category_id=category["id"])

    response = client.delete("/category/temporary", headers=headers_for(admin))
    assert response.status_code == 204

    db.expire_all()
    assert db.get(models.Post, post.id).category_id is None


def test_author_creates_tag_idempotently(client: TestClient, author, headers_for) -> None:
    first = client.post("/tag", headers=headers_for(author), json={"name": "Machine Learning"})
    assert first.status_code == 201
    assert first.json()["slug"] == "machine-learning"

    second = client.post("/tag", headers=headers_for(author), json={"name": "machine learning"})
    assert second.status_code == 201
    assert second.json()["id"] == first.json()["id"]


def test_reader_cannot_create_tag(client: TestClient, reader, headers_for) -> None:
    assert client.post("/tag", headers=headers_for(reader), json={"name": "x"}).status_code == 403


def test_tags_sorted_by_popularity(client: TestClient, make_post) -> None:
    make_post(title="One", tags=["python", "web"])
    make_post(title="Two", tags=["python"])
    make_post(title="Three", tags=["rust"], status="draft")

    popular = client.get("/tag").json()
    assert [(t["slug"], t["post_count"]) for t in popular] == [("python", 2), ("web", 1), ("rust", 0)]

    by_name = client.get("/tag", params={"sort": "name"}).json()
    assert [t["slug"] for t in by_name] == ["python", "rust", "web"]

    assert client.get("/tag/python").json()["post_count"] == 2


def test_deleting_tag_removes_junction_rows(
    client: TestClient, db: Session, admin, headers_for, make_post
) -> None:
    post = make_post(tags=["obsolete", "keep"])

    response = client.delete("/tag/obsolete", headers=headers_for(admin))
    assert response.status_code == 204

    db.expire_all()
    remaining = db.query(models.PostTag).filter(models.PostTag.post_id == post.id).all()
    assert len(remaining) == 1
    assert db.get(models.Post, post.id) is not None
