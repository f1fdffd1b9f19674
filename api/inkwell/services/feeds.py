"""RSS 2.0 feed and sitemap generation."""

from __future__ import annotations

from email.utils import format_datetime
from xml.sax.saxutils import escape

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from .. import models, settings
from ..utils.clock import as_utc, utcnow
from ..utils.visibility import published_filter


def post_url(slug: str) -> str:
    return f"{settings.SITE_URL}/post/{slug}"


def category_url(slug: str) -> str:
    return f"{settings.SITE_URL}/category/{slug}"


def tag_url(slug: str) -> str:
    return f"{settings.SITE_URL}/tag/{slug}"


def _latest_posts(db: Session, limit: int | None = None) -> list[models.Post]:
    stmt = (
        select(models.Post)
        .where(published_filter())
        .order_by(models.Post.published_at.desc(), models.Post.id.desc())
        .options(selectinload(models.Post.author), selectinload(models.Post.category))
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(db.execute(stmt).scalars().all())


def build_rss(db: Session) -> str:
    """RSS 2.0 document with the latest ``FEED_SIZE`` published posts."""
    posts = _latest_posts(db, settings.FEED_SIZE)
    last_build = as_utc(posts[0].published_at) if posts else utcnow()

    items = []
    for post in posts:
        link = post_url(post.slug)
        author = post.author.display_name or post.author.username
        parts = [
            f"<title>{escape(post.title)}</title>",
            f"<link>{escape(link)}</link>",
            f'<guid isPermaLink="true">{escape(link)}</guid>',
            f"<pubDate>{format_datetime(as_utc(post.published_at))}</pubDate>",
            f"<dc:creator>{escape(author)}</dc:creator>",
        ]
        if post.category is not None:
            parts.append(f"<category>{escape(post.category.name)}</category>")
        if post.excerpt:
            parts.append(f"<description>{escape(post.excerpt)}</description>")
        items.append("<item>" + "".join(parts) + "</item>")

    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/" '
        'xmlns:atom="http://www.w3.org/2005/Atom">'
        "<channel>"
        f"<title>{escape(settings.SITE_TITLE)}</title>"
        f"<link>{escape(settings.SITE_URL)}/</link>"
        f"<description>{escape(settings.SITE_DESCRIPTION)}</description>"
        f'<atom:link href="{escape(settings.SITE_URL)}/feed.xml" rel="self" type="application/rss+xml"/>'
        f"<lastBuildDate>{format_datetime(last_build)}</lastBuildDate>"
        + "".join(items)
        + "</channel></rss>\n"
    )


def _url_entry(loc: str, lastmod=None) -> str:
    entry = f"<url><loc>{escape(loc)}</loc>"
    if lastmod is not None:
        entry += f"<lastmod>{as_utc(lastmod).date().isoformat()}</lastmod>"
    return entry + "</url>"


def build_sitemap(db: Session) -> str:
    """Sitemap 0.9 listing home, every published post, and every category and tag page."""
    entries = [_url_entry(f"{settings.SITE_URL}/")]

    for post in _latest_posts(db):
        entries.append(_url_entry(post_url(post.slug), post.updated_at or post.published_at))

    for (slug,) in db.execute(select(models.Category.slug).order_by(models.Category.slug)):
        entries.append(_url_entry(category_url(slug)))

    tag_slugs = db.execute(
        select(models.Tag.slug)
        .join(models.PostTag, models.PostTag.tag_id == models.Tag.id)
        .join(models.Post, models.Post.id == models.PostTag.post_id)
        .where(published_filter())
        .distinct()
        .order_by(models.Tag.slug)
    )
    for (slug,) in tag_slugs:
        entries.append(_url_entry(tag_url(slug)))

    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        + "".join(entries)
        + "</urlset>\n"
    )
