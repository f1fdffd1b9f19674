"""Tag endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_role
from ..db import get_db
from ..errors import InkwellError
from ..services.publishing import resolve_tags
from ..utils.audit import log_action
from ..utils.visibility import published_filter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tag", tags=["Tags"])


def _get_tag(db: Session, slug: str) -> models.Tag:
    tag = db.query(models.Tag).filter(models.Tag.slug == slug).first()
    if not tag:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tag not found")
    return tag


def _tag_counts(db: Session):
    """Subquery of (tag_id, post_count) over published posts."""
    return (
        db.query(models.PostTag.tag_id, func.count(models.PostTag.post_id).label("post_count"))
        .join(models.Post, models.Post.id == models.PostTag.post_id)
        .filter(published_filter())
        .group_by(models.PostTag.tag_id)
        .subquery()
    )


def _with_count(tag: models.Tag, count: int | None) -> schemas.TagWithCount:
    item = schemas.TagWithCount.model_validate(tag)
    item.post_count = count or 0
    return item


@router.get("", response_model=list[schemas.TagWithCount])
def list_tags(
    sort: str = Query("popular", pattern="^(popular|name)$"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[schemas.TagWithCount]:
    """
    List tags with their published post counts.

    Sort options:
    - popular: most used first (ties by name)
    - name: alphabetical
    """
    counts = _tag_counts(db)
    post_count = func.coalesce(counts.c.post_count, 0)
    query = db.query(models.Tag, post_count).outerjoin(counts, counts.c.tag_id == models.Tag.id)

    if sort == "popular":
        query = query.order_by(post_count.desc(), models.Tag.name)
    else:
        query = query.order_by(models.Tag.name)

    return [_with_count(tag, count) for tag, count in query.limit(limit).all()]


@router.get("/{slug}", response_model=schemas.TagWithCount)
def get_tag(slug: str, db: Session = Depends(get_db)) -> schemas.TagWithCount:
    tag = _get_tag(db, slug)
    count = (
        db.query(func.count(models.PostTag.post_id))
        .join(models.Post, models.Post.id == models.PostTag.post_id)
        .filter(models.PostTag.tag_id == tag.id, published_filter())
        .scalar()
    )
    return _with_count(tag, count)


@router.post("", response_model=schemas.Tag, status_code=status.HTTP_201_CREATED)
def create_tag(
    payload: schemas.TagCreate,
    db: Session = Depends(get_db),
    author: models.Profile = Depends(require_role("author")),
) -> schemas.Tag:
    """Create a tag, or return the existing one with the same slug."""
    try:
        (tag,) = resolve_tags(db, [payload.name])
    except InkwellError as e:
        raise e.to_http()
    db.commit()
    db.refresh(tag)
    return schemas.Tag.model_validate(tag)


@router.delete("/{slug}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tag(
    slug: str,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_role("admin")),
) -> None:
    """Delete a tag; it is removed from every post carrying it."""
    tag = _get_tag(db, slug)
    log_action(db, admin.id, "delete_tag", target_type="tag", target_id=tag.id, note=tag.slug, commit=False)
    db.delete(tag)
    db.commit()
    logger.info(f"{admin.username} deleted tag '{slug}'")
