from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

from inkwell import models
from inkwell.pagination import apply_cursor_filter, decode_cursor, encode_cursor
from inkwell.services.profanity import needs_moderation
from inkwell.sqids_config import decode_post_sqid, encode_post_id
from inkwell.utils.slugs import slugify, unique_slug, validate_username
from inkwell.utils.view_tracking import (
    DeviceType,
    detect_device_type,
    extract_referrer_domain,
    hash_ip,
)


class TestSlugs:
    @pytest.mark.parametrize(
        ("text", "slug"),
        [
            ("Hello, World!", "hello-world"),
            ("  Crème brûlée  ", "creme-brulee"),
            ("C++ & Rust", "c-rust"),
            ("---", ""),
        ],
    )
    def test_slugify(self, text: str, slug: str) -> None:
        assert slugify(text) == slug

    def test_slugify_truncates_without_trailing_hyphen(self) -> None:
        assert slugify("abc def ghi", max_length=4) == "abc"

    def test_unique_slug(self, db: Session, make_post) -> None:
        make_post(title="Taken")
        make_post(title="Taken")
        assert unique_slug(db, models.Post, "taken") == "taken-3"
        assert unique_slug(db, models.Post, "free") == "free"

    @pytest.mark.parametrize(
        ("username", "ok"),
        [("jane_doe", True), ("ab", False), ("_jane", False), ("Jane", False), ("root", False)],
    )
    def test_validate_username(self, username: str, ok: bool) -> None:
        assert validate_username(username)[0] is ok


class TestCursor:
    def test_decode_rejects_garbage(self) -> None:
        assert decode_cursor(None) is None
        assert decode_cursor("not-base64!!") is None
        assert decode_cursor(encode_cursor(None)) is None

    def test_encode_datetime(self) -> None:
        when = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
        assert decode_cursor(encode_cursor(7, when)) == (7, when.isoformat())

    def test_keyset_filter(self, db: Session, make_post) -> None:
        now = datetime.now(timezone.utc)
        posts = [make_post(title=f"P{i}", published_at=now - timedelta(minutes=i)) for i in range(3)]
        cursor = encode_cursor(posts[0].id, posts[0].published_at)

        query = apply_cursor_filter(db.query(models.Post), models.Post, cursor, "published_at")
        remaining = query.order_by(models.Post.published_at.desc()).all()
        assert [p.title for p in remaining] == ["P1", "P2"]


class TestSqids:
    def test_encode_decode(self) -> None:
        assert decode_post_sqid(encode_post_id(12345)) == 12345

    def test_minimum_length(self) -> None:
        assert len(encode_post_id(1)) >= 4

    def test_rejects_unknown_ids(self) -> None:
        assert decode_post_sqid("") is None
        assert decode_post_sqid("$$$$") is None


class TestViewTracking:
    @pytest.mark.parametrize(
        ("user_agent", "device"),
        [
            (None, DeviceType.DESKTOP),
            ("Mozilla/5.0 (Windows NT 10.0; Win64; x64)", DeviceType.DESKTOP),
            ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148", DeviceType.MOBILE),
            ("Mozilla/5.0 (Linux; Android 14; Pixel 8) Mobile Safari/537.36", DeviceType.MOBILE),
            ("Mozilla/5.0 (Linux; Android 13; SM-X700) Safari/537.36", DeviceType.TABLET),
            ("Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X)", DeviceType.TABLET),
            ("Mozilla/5.0 (compatible; bingbot/2.0)", DeviceType.BOT),
        ],
    )
    def test_detect_device_type(self, user_agent: str | None, device: DeviceType) -> None:
        assert detect_device_type(user_agent) == device

    @pytest.mark.parametrize(
        ("referrer", "domain"),
        [
            ("https://www.google.com/search?q=x", "google.com"),
            ("https://Blog.Example.org/a", "blog.example.org"),
            ("not a url", None),
            (None, None),
        ],
    )
    def test_extract_referrer_domain(self, referrer: str | None, domain: str | None) -> None:
        assert extract_referrer_domain(referrer) == domain

    def test_hash_ip_is_stable_and_opaque(self) -> None:
        assert hash_ip("203.0.113.7") == hash_ip("203.0.113.7")
        assert len(hash_ip("203.0.113.7")) == 64
        assert hash_ip("") == hash_ip("unknown")


class TestModerationRules:
    def test_guests_always_wait(self) -> None:
        assert needs_moderation("hello", None, require_approval=False) is True

    def test_members_skip_queue_unless_required(self, reader) -> None:
        assert needs_moderation("hello", reader, require_approval=False) is False
        assert needs_moderation("hello", reader, require_approval=True) is True

    def test_profanity_is_held(self, reader) -> None:
        assert needs_moderation("what the fuck", reader, require_approval=False) is True
