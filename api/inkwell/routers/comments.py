"""Comment endpoints: threads on posts and the moderation queue."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas, settings
from ..auth import (
    AnonymousViewer,
    get_current_profile,
    get_current_profile_optional,
    get_viewer,
    require_role,
)
from ..db import get_db
from ..pagination import apply_cursor_filter, create_page_response
from ..services.counters import refresh_post_counters
from ..services.profanity import contains_profanity, needs_moderation
from ..utils.audit import log_action
from ..utils.clock import utcnow
from ..utils.roles import is_staff
from ..utils.visibility import can_view_post, is_publicly_visible, visible_comments_filter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/post", tags=["Comments"])


def _get_comment(db: Session, comment_id: UUID) -> models.Comment:
    comment = db.query(models.Comment).filter(models.Comment.id == comment_id).first()
    if not comment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return comment


def _reload(db: Session, comment_id: UUID) -> models.Comment:
    """Reload a comment with its author so the display label is available."""
    return (
        db.query(models.Comment)
        .options(joinedload(models.Comment.author))
        .filter(models.Comment.id == comment_id)
        .first()
    )


@router.get("/comments/pending", response_model=schemas.Page[schemas.Comment])
def list_pending_comments(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    editor: models.Profile = Depends(require_role("editor")),
) -> schemas.Page[schemas.Comment]:
    """Moderation queue, oldest first."""
    comments = (
        db.query(models.Comment)
        .options(joinedload(models.Comment.author))
        .filter(models.Comment.is_approved.is_(False))
        .order_by(models.Comment.created_at.asc())
        .limit(limit)
        .all()
    )
    return schemas.Page(items=[schemas.Comment.model_validate(c) for c in comments], next_cursor=None)


def _hidden_branches(db: Session, post_id: int, current: models.Profile | None) -> set[UUID]:
    """Ids of comments the caller cannot see, plus everything beneath them."""
    visible = {
        row.id
        for row in db.query(models.Comment.id).filter(
            models.Comment.post_id == post_id, visible_comments_filter(current)
        )
    }
    hidden: set[UUID] = set()
    rows = (
        db.query(models.Comment.id, models.Comment.parent_id)
        .filter(models.Comment.post_id == post_id)
        .order_by(models.Comment.depth, models.Comment.created_at)
    )
    # Parents always sit one level above their replies
    for comment_id, parent_id in rows:
        if comment_id not in visible or parent_id in hidden:
            hidden.add(comment_id)
    return hidden


@router.get("/{post_id}/comments", response_model=schemas.Page[schemas.Comment])
def list_comments(
    post_id: int,
    cursor: str | None = None,
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
    current: models.Profile | None = Depends(get_current_profile_optional),
) -> schemas.Page[schemas.Comment]:
    """
    List comments for a post as a flat list in creation order.

    Clients rebuild threads from ``parent_id`` and ``depth``. Pending
    comments are included only for their author and for editors/admins,
    and a reply is shown only when every comment above it is. Pages are
    keyed on ``created_at``; follow ``next_cursor`` for the rest.
    """
    post = db.get(models.Post, post_id)
    if not post or not can_view_post(post, current):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    query = (
        db.query(models.Comment)
        .options(joinedload(models.Comment.author))
        .filter(models.Comment.post_id == post_id, visible_comments_filter(current))
    )
    hidden = _hidden_branches(db, post_id, current)
    if hidden:
        query = query.filter(models.Comment.id.notin_(hidden))

    query = apply_cursor_filter(query, models.Comment, cursor, "created_at", sort_desc=False)
    comments = (
        query.order_by(models.Comment.created_at.asc(), models.Comment.id.asc()).limit(limit + 1).all()
    )
    page_data = create_page_response(comments, limit, "created_at")

    return schemas.Page(
        items=[schemas.Comment.model_validate(c) for c in page_data["items"]],
        next_cursor=page_data["next_cursor"],
    )


@router.post(
    "/{post_id}/comments",
    response_model=schemas.Comment,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    post_id: int,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    viewer: models.Profile | AnonymousViewer = Depends(get_viewer),
) -> schemas.Comment:
    """
    Comment on a published post, as a signed-in profile or as a guest.

    Guests must give ``author_name`` and always wait for approval. Signed-in
    comments are approved immediately unless approval is globally required
    or the text trips the profanity filter.
    """
    post = db.get(models.Post, post_id)
    if not post or not is_publicly_visible(post):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    author = viewer if isinstance(viewer, models.Profile) else None
    if author is None and not (payload.author_name and payload.author_name.strip()):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="author_name is required for guest comments"
        )

    comment_count = (
        db.query(func.count(models.Comment.id)).filter(models.Comment.post_id == post_id).scalar()
    )
    if comment_count >= settings.MAX_COMMENTS_PER_POST:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Maximum comments per post ({settings.MAX_COMMENTS_PER_POST}) exceeded"
        )

    depth = 0
    if payload.parent_id:
        parent = db.get(models.Comment, payload.parent_id)
        if not parent or parent.post_id != post_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid parent comment")
        if not parent.is_approved and not (author and (author.id == parent.author_id or is_staff(author))):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid parent comment")

        depth = parent.depth + 1
        if depth > settings.MAX_COMMENT_DEPTH:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Maximum comment depth ({settings.MAX_COMMENT_DEPTH}) exceeded"
            )

    approved = not needs_moderation(payload.content, author, settings.COMMENTS_REQUIRE_APPROVAL)

    comment = models.Comment(
        post_id=post_id,
        parent_id=payload.parent_id,
        author_id=author.id if author else None,
        author_name=None if author else payload.author_name.strip(),
        author_ip=viewer.ip if isinstance(viewer, AnonymousViewer) else None,
        depth=depth,
        content=payload.content,
        is_approved=approved,
    )
    db.add(comment)
    db.flush()
    if approved:
        refresh_post_counters(db, post_id)
    db.commit()

    if not approved:
        logger.info(f"Comment {comment.id} on post {post_id} queued for moderation")
    return schemas.Comment.model_validate(_reload(db, comment.id))


@router.patch("/comments/{comment_id}", response_model=schemas.Comment)
def update_comment(
    comment_id: UUID,
    payload: schemas.CommentUpdate,
    db: Session = Depends(get_db),
    current: models.Profile = Depends(get_current_profile),
) -> schemas.Comment:
    """
    Edit one's own comment.

    Guest comments cannot be edited. Edited text is re-checked for
    profanity and goes back to the moderation queue if it fails.
    """
    comment = _get_comment(db, comment_id)
    if comment.author_id is None or comment.author_id != current.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only edit your own comments"
        )

    comment.content = payload.content
    comment.updated_at = utcnow()
    if comment.is_approved and contains_profanity(payload.content):
        comment.is_approved = False
        logger.info(f"Edited comment {comment.id} returned to moderation queue")
    db.flush()
    refresh_post_counters(db, comment.post_id)
    db.commit()

    return schemas.Comment.model_validate(_reload(db, comment.id))


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: UUID,
    db: Session = Depends(get_db),
    current: models.Profile = Depends(get_current_profile),
) -> None:
    """Delete a comment and its replies (comment author, editor or admin)."""
    comment = _get_comment(db, comment_id)
    is_author = comment.author_id is not None and comment.author_id == current.id
    if not is_author and not is_staff(current):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have permission to delete this comment"
        )

    post_id = comment.post_id
    if not is_author:
        log_action(
            db, current.id, "delete_comment", target_type="comment", target_id=comment.id, commit=False
        )
    db.delete(comment)
    db.flush()
    refresh_post_counters(db, post_id)
    db.commit()


@router.post("/comments/{comment_id}/approve", response_model=schemas.Comment)
def approve_comment(
    comment_id: UUID,
    db: Session = Depends(get_db),
    editor: models.Profile = Depends(require_role("editor")),
) -> schemas.Comment:
    comment = _get_comment(db, comment_id)
    if not comment.is_approved:
        comment.is_approved = True
        log_action(
            db, editor.id, "approve_comment", target_type="comment", target_id=comment.id, commit=False
        )
        db.flush()
        refresh_post_counters(db, comment.post_id)
        db.commit()
    return schemas.Comment.model_validate(_reload(db, comment.id))


@router.post("/comments/{comment_id}/reject", status_code=status.HTTP_204_NO_CONTENT)
def reject_comment(
    comment_id: UUID,
    note: str | None = Query(None, max_length=500),
    db: Session = Depends(get_db),
    editor: models.Profile = Depends(require_role("editor")),
) -> None:
    """Reject a comment: it is deleted together with its replies."""
    comment = _get_comment(db, comment_id)
    post_id = comment.post_id
    log_action(
        db, editor.id, "reject_comment", target_type="comment", target_id=comment.id,
        note=note, commit=False,
    )
    db.delete(comment)
    db.flush()
    refresh_post_counters(db, post_id)
    db.commit()
