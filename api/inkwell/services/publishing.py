"""Post authoring and the draft/scheduled/published/archived workflow."""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import models, schemas, settings
from ..errors import SlugConflict, ValidationFailed, WorkflowError
from ..sqids_config import encode_post_id
from ..utils.audit import log_action
from ..utils.clock import as_utc, utcnow
from ..utils.slugs import RESERVED_POST_SLUGS, is_valid_slug, slugify, unique_slug

logger = logging.getLogger(__name__)

# Allowed target statuses per current status
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"scheduled", "published", "archived"}),
    "scheduled": frozenset({"draft", "published"}),
    "published": frozenset({"archived", "draft"}),
    "archived": frozenset({"draft", "published"}),
}

_WORD = re.compile(r"\w+", re.UNICODE)
# Markdown syntax dropped when deriving an excerpt
_MD_IMAGE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_MD_LINK = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_MD_CODE_FENCE = re.compile(r"```.*?```", re.DOTALL)
_MD_MARKUP = re.compile(r"[#>*_`~|]+")
_WHITESPACE = re.compile(r"\s+")


def compute_reading_time(content: str | None) -> int:
    """Whole minutes at ``WORDS_PER_MINUTE``, never less than one."""
    words = len(_WORD.findall(content or ""))
    return max(1, math.ceil(words / settings.WORDS_PER_MINUTE))


def make_excerpt(content: str | None, length: int | None = None) -> str | None:
    """Plain-text prefix of a Markdown body, cut at a word boundary."""
    length = length or settings.EXCERPT_LENGTH
    text = _MD_CODE_FENCE.sub(" ", content or "")
    text = _MD_IMAGE.sub(" ", text)
    text = _MD_LINK.sub(r"\1", text)
    text = _MD_MARKUP.sub("", text)
    text = _WHITESPACE.sub(" ", text).strip()
    if not text:
        return None
    if len(text) <= length:
        return text
    cut = text[:length].rsplit(" ", 1)[0] or text[:length]
    return cut.rstrip(".,;:!?-") + "…"


def resolve_tags(db: Session, names: list[str]) -> list[models.Tag]:
    """
    Map tag names to Tag rows, creating the missing ones.

    Names that slugify to the same value collapse to a single tag.
    """
    if len(names) > settings.MAX_TAGS_PER_POST:
        raise ValidationFailed(f"A post can have at most {settings.MAX_TAGS_PER_POST} tags")

    wanted: dict[str, str] = {}
    for raw in names:
        name = (raw or "").strip()
        slug = slugify(name, max_length=60)
        if not slug:
            raise ValidationFailed(f"Invalid tag name: {raw!r}")
        wanted.setdefault(slug, name[:50])

    if not wanted:
        return []

    existing = {
        tag.slug: tag
        for tag in db.execute(select(models.Tag).where(models.Tag.slug.in_(list(wanted)))).scalars()
    }
    tags = []
    for slug, name in wanted.items():
        tag = existing.get(slug)
        if tag is None:
            tag = models.Tag(name=name, slug=slug)
            db.add(tag)
            logger.info(f"Created tag '{slug}'")
        tags.append(tag)
    return tags


def resolve_category(db: Session, category_id: int | None) -> models.Category | None:
    if category_id is None:
        return None
    category = db.get(models.Category, category_id)
    if category is None:
        raise ValidationFailed(f"Category {category_id} does not exist")
    return category


def _claim_slug(db: Session, requested: str | None, title: str, exclude_id: int | None = None) -> str:
    """
    Explicit slugs must be valid and free; derived slugs get a ``-N`` suffix.
    """
    if requested:
        slug = requested.strip().lower()
        if not is_valid_slug(slug):
            raise ValidationFailed("Slug may only contain lowercase letters, numbers and single hyphens")
        if slug in RESERVED_POST_SLUGS:
            raise ValidationFailed(f"Slug '{slug}' is reserved")
        query = select(models.Post.id).where(models.Post.slug == slug)
        if exclude_id is not None:
            query = query.where(models.Post.id != exclude_id)
        if db.scalar(query) is not None:
            raise SlugConflict(f"Slug '{slug}' is already taken")
        return slug
    return unique_slug(db, models.Post, slugify(title), exclude_id=exclude_id, reserved=RESERVED_POST_SLUGS)


def create_post(db: Session, author: models.Profile, payload: schemas.PostCreate) -> models.Post:
    """Insert a new draft and assign its public short id."""
    post = models.Post(
        author_id=author.id,
        title=payload.title.strip(),
        slug=_claim_slug(db, payload.slug, payload.title),
        content=payload.content,
        excerpt=payload.excerpt or make_excerpt(payload.content),
        cover_image_url=payload.cover_image_url,
        meta_title=payload.meta_title,
        meta_description=payload.meta_description,
        reading_time_minutes=compute_reading_time(payload.content),
        status="draft",
    )
    post.category = resolve_category(db, payload.category_id)
    post.tags = resolve_tags(db, payload.tags)
    db.add(post)
    # The short id is derived from the integer primary key
    db.flush()
    post.public_sqid = encode_post_id(post.id)
    db.commit()
    db.refresh(post)

    logger.info(f"Created draft post {post.id} '{post.slug}' by {author.username}")
    return post


def update_post(db: Session, post: models.Post, payload: schemas.PostUpdate) -> models.Post:
    """Apply a partial update; fields left out of the request are untouched."""
    data = payload.model_dump(exclude_unset=True)

    if "title" in data and data["title"] is not None:
        post.title = data["title"].strip()
    if "slug" in data:
        if data["slug"]:
            post.slug = _claim_slug(db, data["slug"], post.title, exclude_id=post.id)
        else:
            post.slug = _claim_slug(db, None, post.title, exclude_id=post.id)
    if "content" in data and data["content"] is not None:
        post.content = data["content"]
        post.reading_time_minutes = compute_reading_time(post.content)
        if "excerpt" not in data and post.excerpt is None:
            post.excerpt = make_excerpt(post.content)
    if "excerpt" in data:
        post.excerpt = data["excerpt"] or make_excerpt(post.content)
    if "category_id" in data:
        post.category = resolve_category(db, data["category_id"])
    if "tags" in data and data["tags"] is not None:
        post.tags = resolve_tags(db, data["tags"])
    for field in ("cover_image_url", "meta_title", "meta_description"):
        if field in data:
            setattr(post, field, data[field])

    post.updated_at = utcnow()
    db.commit()
    db.refresh(post)
    return post


def change_status(
    db: Session,
    post: models.Post,
    new_status: str,
    published_at: datetime | None = None,
    actor: models.Profile | None = None,
) -> models.Post:
    """
    Move ``post`` to ``new_status`` following ``ALLOWED_TRANSITIONS``.

    Scheduling needs a future ``published_at``. Publishing stamps the
    current time unless the post already went live in the past (so
    re-publishing an archived post keeps its original date).
    """
    current = post.status
    if new_status not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise WorkflowError(f"Cannot move a {current} post to {new_status}")

    now = utcnow()
    if new_status == "scheduled":
        when = as_utc(published_at)
        if when is None or when <= now:
            raise ValidationFailed("Scheduling requires a published_at in the future")
        post.published_at = when
    elif new_status == "published":
        existing = as_utc(post.published_at)
        if existing is None or existing > now:
            post.published_at = now
    elif current == "scheduled" and new_status == "draft":
        # Unscheduling forgets the go-live time
        post.published_at = None

    post.status = new_status
    post.updated_at = now

    log_action(
        db,
        actor.id if actor else None,
        f"{new_status}_post" if new_status != "draft" else "unpublish_post",
        target_type="post",
        target_id=post.id,
        note=f"{current} -> {new_status}",
        commit=False,
    )
    db.commit()
    db.refresh(post)

    logger.info(f"Post {post.id} moved {current} -> {new_status}")
    return post


def publish_due_posts(db: Session) -> list[int]:
    """
    Publish every scheduled post whose go-live time has passed.

    Returns the ids of the posts that went live.
    """
    now = utcnow()
    due = db.execute(
        select(models.Post)
        .where(models.Post.status == "scheduled", models.Post.published_at <= now)
        .order_by(models.Post.published_at)
    ).scalars().all()

    published = []
    for post in due:
        post.status = "published"
        post.updated_at = now
        log_action(
            db, None, "published_post", target_type="post", target_id=post.id,
            note="scheduled -> published", commit=False,
        )
        published.append(post.id)

    if published:
        db.commit()
        logger.info(f"Published {len(published)} scheduled post(s): {published}")
    return published
