from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from inkwell import models
from inkwell.errors import ValidationFailed, WorkflowError
from inkwell.services import publishing
from inkwell.services.publishing import compute_reading_time, make_excerpt, resolve_tags
from inkwell.tasks import publish_scheduled_posts, reconcile_post_counters
from inkwell.utils.clock import as_utc, utcnow


class TestHelpers:
    @pytest.mark.parametrize(
        ("content", "minutes"),
        [
            ("", 1),
            ("one two three", 1),
            (" ".join(["w"] * 200), 1),
            (" ".join(["w"] * 201), 2),
            (" ".join(["w"] * 1000), 5),
        ],
    )
    def test_reading_time(self, content: str, minutes: int) -> None:
        assert compute_reading_time(content) == minutes

    def test_excerpt_cuts_at_word_boundary(self) -> None:
        text = "alpha beta gamma delta epsilon"
        assert make_excerpt(text, length=14) == "alpha beta…"

    def test_excerpt_strips_markdown(self) -> None:
        content = "## Title\n\n![cover](x.png) Some `code` and *emphasis*.\n\n```\nblock()\n```"
        assert make_excerpt(content) == "Title Some code and emphasis."

    def test_excerpt_of_empty_body(self) -> None:
        assert make_excerpt("   ") is None

    def test_resolve_tags_reuses_existing(self, db: Session) -> None:
        existing = models.Tag(name="Python", slug="python")
        db.add(existing)
        db.commit()

        tags = resolve_tags(db, ["PYTHON", "Data Science", "data-science"])
        assert [t.slug for t in tags] == ["python", "data-science"]
        assert tags[0] is existing

    def test_resolve_tags_rejects_unsluggable_names(self, db: Session) -> None:
        with pytest.raises(ValidationFailed):
            resolve_tags(db, ["!!!"])


class TestTransitions:
    @pytest.mark.parametrize(
        ("start", "target"),
        [
            ("draft", "published"),
            ("draft", "archived"),
            ("published", "archived"),
            ("published", "draft"),
            ("archived", "published"),
            ("archived", "draft"),
            ("scheduled", "draft"),
            ("scheduled", "published"),
        ],
    )
    def test_allowed(self, db: Session, make_post, start: str, target: str) -> None:
        post = make_post(status=start, published_at=utcnow() + timedelta(days=1) if start == "scheduled" else None)
        post = publishing.change_status(db, post, target)
        assert post.status == target

    @pytest.mark.parametrize(
        ("start", "target"),
        [
            ("draft", "draft"),
            ("published", "published"),
            ("published", "scheduled"),
            ("archived", "scheduled"),
            ("scheduled", "archived"),
        ],
    )
    def test_rejected(self, db: Session, make_post, start: str, target: str) -> None:
        post = make_post(status=start, published_at=utcnow() + timedelta(days=1) if start == "scheduled" else None)
        with pytest.raises(WorkflowError):
            publishing.change_status(db, post, target, utcnow() + timedelta(days=2))

    def test_republishing_keeps_original_date(self, db: Session, make_post) -> None:
        original = utcnow() - timedelta(days=30)
        post = make_post(status="published", published_at=original)
        post = publishing.change_status(db, post, "archived")
        post = publishing.change_status(db, post, "published")
        assert abs(as_utc(post.published_at) - original) < timedelta(seconds=1)

    def test_unscheduling_clears_publish_time(self, db: Session, make_post) -> None:
        post = make_post(status="scheduled", published_at=utcnow() + timedelta(days=1))
        post = publishing.change_status(db, post, "draft")
        assert post.published_at is None

    def test_publishing_scheduled_post_early_stamps_now(self, db: Session, make_post) -> None:
        post = make_post(status="scheduled", published_at=utcnow() + timedelta(days=1))
        post = publishing.change_status(db, post, "published")
        assert as_utc(post.published_at) <= utcnow()


class TestScheduler:
    def _make_due(self, db: Session, post: models.Post) -> None:
        post.published_at = utcnow() - timedelta(minutes=1)
        db.commit()

    def test_publishes_only_due_posts(self, db: Session, make_post) -> None:
        due = make_post(title="Due", status="scheduled", published_at=utcnow() + timedelta(hours=1))
        later = make_post(title="Later", status="scheduled", published_at=utcnow() + timedelta(hours=1))
        self._make_due(db, due)

        assert publishing.publish_due_posts(db) == [due.id]

        db.expire_all()
        assert db.get(models.Post, due.id).status == "published"
        assert db.get(models.Post, later.id).status == "scheduled"

        entry = db.query(models.AuditLog).filter(models.AuditLog.action == "published_post").filter(
            models.AuditLog.target_id == str(due.id), models.AuditLog.actor_id.is_(None)
        ).one()
        assert entry.note == "scheduled -> published"

    def test_nothing_due(self, db: Session, make_post) -> None:
        make_post(status="scheduled", published_at=utcnow() + timedelta(hours=1))
        assert publishing.publish_due_posts(db) == []

    def test_celery_task_runs_the_scheduler(self, db: Session, make_post) -> None:
        post = make_post(status="scheduled", published_at=utcnow() + timedelta(hours=1))
        self._make_due(db, post)

        result = publish_scheduled_posts()

        assert result == {"status": "success", "published": [post.id]}
        db.expire_all()
        assert db.get(models.Post, post.id).status == "published"

    def test_reconcile_task_recounts_from_rows(self, client, db: Session, reader, headers_for, make_post) -> None:
        post = make_post()
        headers = headers_for(reader)
        client.put(f"/post/{post.id}/like", headers=headers)
        client.post(f"/post/{post.id}/comments", headers=headers, json={"content": "Counted"})
        client.post(f"/post/{post.id}/comments", json={"content": "Held back", "author_name": "Guest"})
        client.get(f"/post/{post.slug}", headers=headers)

        db.expire_all()
        stale = db.get(models.Post, post.id)
        assert stale.view_count == 1
        stale.like_count, stale.comment_count, stale.view_count = 7, 9, 0
        db.commit()

        result = reconcile_post_counters.run()

        assert result == {"status": "success", "posts": 1}
        db.expire_all()
        fresh = db.get(models.Post, post.id)
        assert (fresh.like_count, fresh.comment_count, fresh.view_count) == (1, 1, 1)
