"""Post endpoints: authoring, workflow, listing and reading."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..auth import get_current_profile, get_current_profile_optional, require_ownership, require_role
from ..db import get_db
from ..errors import InkwellError
from ..pagination import apply_cursor_filter, create_page_response
from ..services import publishing
from ..services.feeds import post_url
from ..services.related import related_posts
from ..sqids_config import decode_post_sqid
from ..utils.audit import log_action
from ..utils.roles import has_role
from ..utils.view_tracking import record_post_view
from ..utils.visibility import apply_published_filter, can_view_post

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/post", tags=["Posts"])
short_links = APIRouter(tags=["Posts"])

# Listing sort -> counter column
COUNTER_SORTS = {
    "views": models.Post.view_count,
    "likes": models.Post.like_count,
    "comments": models.Post.comment_count,
}


def _post_query(db: Session):
    return db.query(models.Post).options(
        selectinload(models.Post.author),
        selectinload(models.Post.category),
        selectinload(models.Post.tags),
    )


def get_post_or_404(db: Session, post_id: int) -> models.Post:
    post = db.get(models.Post, post_id)
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


def _summaries(posts: list[models.Post]) -> list[schemas.PostSummary]:
    return [schemas.PostSummary.model_validate(p) for p in posts]


# ============================================================================
# LISTING
# ============================================================================


@router.get("", response_model=schemas.Page[schemas.PostSummary])
def list_posts(
    category: str | None = None,
    tag: str | None = None,
    author: str | None = None,
    sort: str = Query("published_at", pattern="^(published_at|views|likes|comments)$"),
    cursor: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
) -> schemas.Page[schemas.PostSummary]:
    """
    List published posts, newest first by default.

    Filters take slugs (category, tag) or a username (author). Sorting by
    ``published_at`` is cursor-paginated; counter sorts return a single page.
    """
    query = apply_published_filter(_post_query(db))

    if category:
        query = query.join(models.Category, models.Category.id == models.Post.category_id).filter(
            models.Category.slug == category
        )
    if tag:
        query = (
            query.join(models.PostTag, models.PostTag.post_id == models.Post.id)
            .join(models.Tag, models.Tag.id == models.PostTag.tag_id)
            .filter(models.Tag.slug == tag)
        )
    if author:
        query = query.join(models.Profile, models.Profile.id == models.Post.author_id).filter(
            models.Profile.username == author.lower()
        )

    if sort in COUNTER_SORTS:
        posts = (
            query.order_by(
                COUNTER_SORTS[sort].desc(), models.Post.published_at.desc(), models.Post.id.desc()
            )
            .limit(limit)
            .all()
        )
        return schemas.Page(items=_summaries(posts), next_cursor=None)

    query = apply_cursor_filter(query, models.Post, cursor, "published_at")
    posts = query.order_by(models.Post.published_at.desc(), models.Post.id.desc()).limit(limit + 1).all()
    page_data = create_page_response(posts, limit, "published_at")

    return schemas.Page(items=_summaries(page_data["items"]), next_cursor=page_data["next_cursor"])


@router.get("/mine", response_model=schemas.Page[schemas.PostSummary])
def list_my_posts(
    status_filter: str | None = Query(
        None, alias="status", pattern="^(draft|scheduled|published|archived)$"
    ),
    cursor: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current: models.Profile = Depends(get_current_profile),
) -> schemas.Page[schemas.PostSummary]:
    """The caller's own posts in any status, most recently created first."""
    query = _post_query(db).filter(models.Post.author_id == current.id)
    if status_filter:
        query = query.filter(models.Post.status == status_filter)

    query = apply_cursor_filter(query, models.Post, cursor, "created_at")
    posts = query.order_by(models.Post.created_at.desc(), models.Post.id.desc()).limit(limit + 1).all()
    page_data = create_page_response(posts, limit, "created_at")

    return schemas.Page(items=_summaries(page_data["items"]), next_cursor=page_data["next_cursor"])


# ============================================================================
# AUTHORING
# ============================================================================


@router.post("", response_model=schemas.PostDetail, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: schemas.PostCreate,
    db: Session = Depends(get_db),
    current: models.Profile = Depends(require_role("author")),
) -> schemas.PostDetail:
    """Create a draft. Slug, excerpt and reading time are derived when omitted."""
    try:
        post = publishing.create_post(db, current, payload)
    except InkwellError as e:
        db.rollback()
        raise e.to_http()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Slug already taken")
    return schemas.PostDetail.model_validate(post)


@router.patch("/{post_id}", response_model=schemas.PostDetail)
def update_post(
    post_id: int,
    payload: schemas.PostUpdate,
    db: Session = Depends(get_db),
    current: models.Profile = Depends(get_current_profile),
) -> schemas.PostDetail:
    """Edit a post (author, editor or admin). ``tags`` replaces the whole set."""
    post = get_post_or_404(db, post_id)
    require_ownership(post.author_id, current)

    try:
        post = publishing.update_post(db, post, payload)
    except InkwellError as e:
        db.rollback()
        raise e.to_http()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Slug already taken")
    return schemas.PostDetail.model_validate(post)


@router.post("/{post_id}/status", response_model=schemas.PostDetail)
def change_post_status(
    post_id: int,
    payload: schemas.StatusChange,
    db: Session = Depends(get_db),
    current: models.Profile = Depends(get_current_profile),
) -> schemas.PostDetail:
    """
    Move a post through its lifecycle.

    Allowed transitions:
    - draft -> scheduled | published | archived
    - scheduled -> draft | published
    - published -> archived | draft
    - archived -> draft | published

    Scheduling requires a future ``published_at``.
    """
    post = get_post_or_404(db, post_id)
    require_ownership(post.author_id, current)

    try:
        post = publishing.change_status(db, post, payload.status, payload.published_at, actor=current)
    except InkwellError as e:
        db.rollback()
        raise e.to_http()
    return schemas.PostDetail.model_validate(post)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    post_id: int,
    db: Session = Depends(get_db),
    current: models.Profile = Depends(get_current_profile),
) -> None:
    """Delete a post (author or admin). Tags links, comments, likes and views go with it."""
    post = get_post_or_404(db, post_id)
    if post.author_id != current.id and not has_role(current, "admin"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have permission to delete this post"
        )

    if post.author_id != current.id:
        log_action(
            db, current.id, "delete_post", target_type="post", target_id=post.id,
            note=post.slug, commit=False,
        )
    db.delete(post)
    db.commit()
    logger.info(f"{current.username} deleted post {post_id}")


# ============================================================================
# READING
# ============================================================================


@router.get("/{slug}", response_model=schemas.PostDetail)
def get_post(
    slug: str,
    request: Request,
    db: Session = Depends(get_db),
    current: models.Profile | None = Depends(get_current_profile_optional),
) -> schemas.PostDetail:
    """
    Read a post by slug.

    Unpublished posts are only visible to their author and to editors/admins;
    everyone else gets 404. Each read by someone other than the author
    records a view.
    """
    post = _post_query(db).filter(models.Post.slug == slug).first()
    if not post or not can_view_post(post, current):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    if post.status == "published":
        record_post_view(db, post, request, current)

    return schemas.PostDetail.model_validate(post)


@router.get("/{slug}/related", response_model=list[schemas.PostSummary])
def get_related_posts(
    slug: str,
    limit: int = Query(5, ge=1, le=20),
    db: Session = Depends(get_db),
    current: models.Profile | None = Depends(get_current_profile_optional),
) -> list[schemas.PostSummary]:
    """Published posts sharing the most tags, then the same category, then the newest."""
    post = _post_query(db).filter(models.Post.slug == slug).first()
    if not post or not can_view_post(post, current):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return _summaries(related_posts(db, post, limit))


@short_links.get("/p/{sqid}")
def resolve_short_link(sqid: str, db: Session = Depends(get_db)) -> RedirectResponse:
    """Redirect a short link to the post's canonical URL."""
    post_id = decode_post_sqid(sqid)
    post = None
    if post_id is not None:
        post = apply_published_filter(db.query(models.Post)).filter(models.Post.id == post_id).first()
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return RedirectResponse(url=post_url(post.slug), status_code=status.HTTP_301_MOVED_PERMANENTLY)
