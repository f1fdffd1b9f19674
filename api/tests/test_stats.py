from __future__ import annotations

from fastapi.testclient import TestClient

from inkwell import settings


def _read(client: TestClient, slug: str, **headers) -> None:
    assert client.get(f"/post/{slug}", headers=headers).status_code == 200


def test_post_stats(client: TestClient, author, reader, headers_for, make_post) -> None:
    post = make_post(title="Measured")
    _read(client, post.slug, **{"User-Agent": "Mozilla/5.0 (iPad; CPU OS 17_0)", "Referer": "https://www.google.com/search?q=x"})
    _read(client, post.slug, **{"Referer": "https://news.ycombinator.com/item?id=1"})
    _read(client, post.slug, **{"User-Agent": "Googlebot/2.1", "X-Forwarded-For": "10.0.0.9"})
    client.put(f"/post/{post.id}/like", headers=headers_for(reader))
    client.post(f"/post/{post.id}/comments", headers=headers_for(reader), json={"content": "Nice one"})

    response = client.get(f"/post/{post.id}/stats", params={"days": 7}, headers=headers_for(author))
    assert response.status_code == 200
    stats = response.json()

    assert stats["total_views"] == 3
    assert stats["window_views"] == 3
    assert stats["unique_viewers"] == 2
    assert stats["views_by_device"] == {"tablet": 1, "desktop": 1, "bot": 1}
    assert stats["top_referrers"] == {"google.com": 1, "news.ycombinator.com": 1}
    assert len(stats["daily_views"]) == 7
    assert stats["daily_views"][-1]["views"] == 3
    assert sum(day["views"] for day in stats["daily_views"][:-1]) == 0
    assert stats["total_likes"] == 1
    assert stats["total_comments"] == 1


def test_post_stats_defaults_and_access(
    client: TestClient, reader, editor, headers_for, make_post
) -> None:
    post = make_post()

    assert client.get(f"/post/{post.id}/stats", headers=headers_for(reader)).status_code == 403

    response = client.get(f"/post/{post.id}/stats", params={"refresh": True}, headers=headers_for(editor))
    assert response.status_code == 200
    assert response.json()["days"] == settings.STATS_DEFAULT_DAYS
    assert response.json()["total_views"] == 0

    assert client.get("/post/9999/stats", headers=headers_for(editor)).status_code == 404


def test_site_overview(client: TestClient, author, editor, headers_for, make_post) -> None:
    popular = make_post(title="Popular")
    quiet = make_post(title="Quiet")
    make_post(title="Unfinished", status="draft")
    for _ in range(2):
        _read(client, popular.slug)
    _read(client, quiet.slug)
    client.post(f"/post/{quiet.id}/comments", json={"content": "hello", "author_name": "Guest"})

    assert client.get("/stats/site", headers=headers_for(author)).status_code == 403

    overview = client.get("/stats/site", params={"days": 3}, headers=headers_for(editor)).json()
    assert overview["published_posts"] == 2
    assert overview["total_views"] == 3
    assert overview["pending_comments"] == 1
    assert [p["title"] for p in overview["top_posts"]] == ["Popular", "Quiet"]
    assert overview["top_posts"][0]["views"] == 2
    assert len(overview["daily_views"]) == 3


def test_author_dashboard(client: TestClient, author, reader, headers_for, make_post) -> None:
    first = make_post(title="First")
    make_post(title="Second", status="draft")
    _read(client, first.slug)
    client.put(f"/post/{first.id}/like", headers=headers_for(reader))

    assert client.get("/stats/me", headers=headers_for(reader)).status_code == 403

    dashboard = client.get("/stats/me", headers=headers_for(author)).json()
    assert [p["title"] for p in dashboard["posts"]] == ["Second", "First"]
    assert dashboard["total_views"] == 1
    assert dashboard["total_likes"] == 1
    assert dashboard["posts"][1]["window_views"] == 1
    assert dashboard["posts"][0]["status"] == "draft"
