"""Related posts: shared tags first, then same category, then recency."""

from __future__ import annotations

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session, selectinload

from .. import models
from ..utils.visibility import published_filter


def related_posts(db: Session, post: models.Post, limit: int = 5) -> list[models.Post]:
    tag_ids = [tag.id for tag in post.tags]

    shared_tags = (
        select(func.count())
        .select_from(models.PostTag)
        .where(
            models.PostTag.post_id == models.Post.id,
            models.PostTag.tag_id.in_(tag_ids),
        )
        .correlate(models.Post)
        .scalar_subquery()
    )
    order = [shared_tags.desc()]
    if post.category_id is not None:
        order.append(case((models.Post.category_id == post.category_id, 1), else_=0).desc())
    order += [models.Post.published_at.desc(), models.Post.id.desc()]

    stmt = (
        select(models.Post)
        .where(published_filter(), models.Post.id != post.id)
        .order_by(*order)
        .limit(limit)
        .options(
            selectinload(models.Post.author),
            selectinload(models.Post.category),
            selectinload(models.Post.tags),
        )
    )
    return list(db.execute(stmt).scalars().all())
