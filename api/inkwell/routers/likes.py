"""Post like endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_profile, get_current_profile_optional
from ..db import get_db
from ..services.counters import refresh_post_counters
from ..utils.visibility import can_view_post, is_publicly_visible

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/post", tags=["Likes"])


def _get_likeable_post(db: Session, post_id: int) -> models.Post:
    post = db.get(models.Post, post_id)
    if not post or not is_publicly_visible(post):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


def _like_status(db: Session, post: models.Post, profile: models.Profile | None) -> schemas.LikeStatus:
    liked = False
    if profile is not None:
        liked = db.get(models.PostLike, (post.id, profile.id)) is not None
    return schemas.LikeStatus(post_id=post.id, like_count=post.like_count, liked=liked)


@router.put("/{post_id}/like", response_model=schemas.LikeStatus)
def like_post(
    post_id: int,
    db: Session = Depends(get_db),
    current: models.Profile = Depends(get_current_profile),
) -> schemas.LikeStatus:
    """Like a published post. Liking twice is a no-op."""
    post = _get_likeable_post(db, post_id)

    if db.get(models.PostLike, (post.id, current.id)) is None:
        db.add(models.PostLike(post_id=post.id, user_id=current.id))
        try:
            db.flush()
        except IntegrityError:
            # A concurrent request inserted the same like
            db.rollback()
        else:
            refresh_post_counters(db, post.id)
            db.commit()

    db.refresh(post)
    return _like_status(db, post, current)


@router.delete("/{post_id}/like", response_model=schemas.LikeStatus)
def unlike_post(
    post_id: int,
    db: Session = Depends(get_db),
    current: models.Profile = Depends(get_current_profile),
) -> schemas.LikeStatus:
    """Remove a like. Unliking a post that was not liked is a no-op."""
    post = _get_likeable_post(db, post_id)

    like = db.get(models.PostLike, (post.id, current.id))
    if like is not None:
        db.delete(like)
        db.flush()
        refresh_post_counters(db, post.id)
        db.commit()

    db.refresh(post)
    return _like_status(db, post, current)


@router.get("/{post_id}/likes", response_model=schemas.LikeStatus)
def get_likes(
    post_id: int,
    db: Session = Depends(get_db),
    current: models.Profile | None = Depends(get_current_profile_optional),
) -> schemas.LikeStatus:
    """Like count and whether the caller liked the post."""
    post = db.get(models.Post, post_id)
    if not post or not can_view_post(post, current):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return _like_status(db, post, current)
