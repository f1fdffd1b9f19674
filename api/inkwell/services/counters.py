"""Denormalized post counters (likes, approved comments, views)."""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from .. import models
from ..cache import cache_invalidate

logger = logging.getLogger(__name__)


def count_likes(db: Session, post_id: int) -> int:
    return db.scalar(
        select(func.count()).select_from(models.PostLike).where(models.PostLike.post_id == post_id)
    ) or 0


def count_approved_comments(db: Session, post_id: int) -> int:
    return db.scalar(
        select(func.count())
        .select_from(models.Comment)
        .where(models.Comment.post_id == post_id, models.Comment.is_approved.is_(True))
    ) or 0


def count_views(db: Session, post_id: int) -> int:
    return db.scalar(
        select(func.count()).select_from(models.PostView).where(models.PostView.post_id == post_id)
    ) or 0


def refresh_post_counters(db: Session, post_id: int, include_views: bool = False) -> None:
    """
    Recompute a post's counters from the underlying rows.

    Runs inside the caller's transaction; the caller commits. Views are
    incremented atomically when recorded, so they are only recounted on
    request.
    """
    values = {
        "like_count": count_likes(db, post_id),
        "comment_count": count_approved_comments(db, post_id),
    }
    if include_views:
        values["view_count"] = count_views(db, post_id)

    db.execute(
        update(models.Post)
        .where(models.Post.id == post_id)
        .values(**values, updated_at=models.Post.updated_at)
        .execution_options(synchronize_session=False)
    )
    cache_invalidate(f"post_stats:{post_id}:*")
    logger.debug(f"Refreshed counters for post {post_id}: {values}")
