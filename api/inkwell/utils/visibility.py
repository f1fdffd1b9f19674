"""Visibility and access control rules for posts and comments.

These mirror the row-level-security policies installed on PostgreSQL by the
initial migration, so the same rows are visible whether a query runs through
the API or directly against the database with an end-user role.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import and_, or_, true

from .. import models
from .roles import is_staff
from .clock import as_utc, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Query


def is_publicly_visible(post: "models.Post") -> bool:
    """A post is public once published and its go-live time has passed."""
    if post.status != "published":
        return False
    published_at = as_utc(post.published_at)
    return published_at is not None and published_at <= utcnow()


def can_view_post(post: "models.Post", profile: "models.Profile" | None) -> bool:
    """
    Check if a profile can read a post.

    Access is allowed if:
    - The post is published and due, OR
    - The profile is the post author, OR
    - The profile is an editor/admin
    """
    if is_publicly_visible(post):
        return True

    if profile is None:
        return False

    if profile.id == post.author_id:
        return True

    return is_staff(profile)


def published_filter():
    """SQL condition matching publicly visible posts."""
    return and_(
        models.Post.status == "published",
        models.Post.published_at.is_not(None),
        models.Post.published_at <= utcnow(),
    )


def apply_published_filter(query: "Query") -> "Query":
    return query.filter(published_filter())


def visible_posts_filter(profile: "models.Profile" | None):
    """SQL condition for the posts ``profile`` may read."""
    if is_staff(profile):
        return true()
    if profile is None:
        return published_filter()
    return or_(published_filter(), models.Post.author_id == profile.id)


def visible_comments_filter(profile: "models.Profile" | None):
    """
    SQL condition for the comments ``profile`` may read on a visible post.

    Approved comments are public; pending ones are shown to their author
    and to editors/admins.
    """
    if is_staff(profile):
        return true()
    if profile is None:
        return models.Comment.is_approved.is_(True)
    return or_(models.Comment.is_approved.is_(True), models.Comment.author_id == profile.id)
