"""
Statistics aggregation for posts, authors and the whole site.

Computed on demand from the view log and counter columns; per-post and
site-wide results are cached in Redis for 5 minutes when it is available.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .. import models
from ..cache import cache_get, cache_set
from ..utils.clock import utcnow
from ..utils.visibility import published_filter

logger = logging.getLogger(__name__)

# Cache TTL in seconds (5 minutes)
STATS_CACHE_TTL = 300
TOP_REFERRERS = 10
TOP_POSTS = 10


@dataclass
class DailyViewCount:
    date: str  # ISO format date string
    views: int
    unique_viewers: int


@dataclass
class PostStats:
    post_id: int
    days: int
    total_views: int
    unique_viewers: int
    window_views: int
    views_by_device: dict[str, int]
    top_referrers: dict[str, int]
    daily_views: list[DailyViewCount]
    total_likes: int
    total_comments: int
    computed_at: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SiteStats:
    days: int
    published_posts: int
    total_views: int
    window_views: int
    unique_viewers: int
    total_likes: int
    total_comments: int
    pending_comments: int
    top_posts: list[dict] = field(default_factory=list)
    daily_views: list[DailyViewCount] = field(default_factory=list)
    computed_at: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def _window_start(days: int):
    return utcnow() - timedelta(days=days)


def _daily_series(rows, days: int) -> list[DailyViewCount]:
    """Fill a ``(day, views, unique)`` result set into one entry per day, oldest first."""
    by_day = {str(day): (views, unique) for day, views, unique in rows}
    today = utcnow().date()
    series = []
    for offset in range(days - 1, -1, -1):
        day = (today - timedelta(days=offset)).isoformat()
        views, unique = by_day.get(day, (0, 0))
        series.append(DailyViewCount(date=day, views=views, unique_viewers=unique))
    return series


def _daily_views(db: Session, days: int, *conditions) -> list[DailyViewCount]:
    day = func.date(models.PostView.created_at)
    rows = db.execute(
        select(day, func.count(), func.count(func.distinct(models.PostView.viewer_ip_hash)))
        .where(models.PostView.created_at >= _window_start(days), *conditions)
        .group_by(day)
    ).all()
    return _daily_series(rows, days)


class AnalyticsService:
    """Computes and caches statistics."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Per-post
    # ------------------------------------------------------------------

    def get_post_stats(self, post: models.Post, days: int) -> PostStats:
        cache_key = f"post_stats:{post.id}:{days}"
        cached = cache_get(cache_key)
        if cached:
            logger.debug(f"Stats cache hit for post {post.id}")
            cached["daily_views"] = [DailyViewCount(**d) for d in cached["daily_views"]]
            return PostStats(**cached)

        stats = self._compute_post_stats(post, days)
        cache_set(cache_key, stats.to_dict(), ttl=STATS_CACHE_TTL)
        return stats

    def _compute_post_stats(self, post: models.Post, days: int) -> PostStats:
        db = self.db
        View = models.PostView
        of_post = View.post_id == post.id
        since = _window_start(days)

        total_views, unique_viewers = db.execute(
            select(func.count(), func.count(func.distinct(View.viewer_ip_hash))).where(of_post)
        ).one()
        window_views = db.scalar(
            select(func.count()).select_from(View).where(of_post, View.created_at >= since)
        ) or 0

        devices = db.execute(
            select(View.device_type, func.count())
            .where(of_post, View.created_at >= since)
            .group_by(View.device_type)
        ).all()
        referrers = db.execute(
            select(View.referrer_domain, func.count().label("n"))
            .where(of_post, View.created_at >= since, View.referrer_domain.is_not(None))
            .group_by(View.referrer_domain)
            .order_by(func.count().desc(), View.referrer_domain)
            .limit(TOP_REFERRERS)
        ).all()

        total_likes = db.scalar(
            select(func.count()).select_from(models.PostLike).where(models.PostLike.post_id == post.id)
        ) or 0
        total_comments = db.scalar(
            select(func.count())
            .select_from(models.Comment)
            .where(models.Comment.post_id == post.id, models.Comment.is_approved.is_(True))
        ) or 0

        return PostStats(
            post_id=post.id,
            days=days,
            total_views=total_views or 0,
            unique_viewers=unique_viewers or 0,
            window_views=window_views,
            views_by_device={device: count for device, count in devices},
            top_referrers={domain: count for domain, count in referrers},
            daily_views=_daily_views(db, days, of_post),
            total_likes=total_likes,
            total_comments=total_comments,
            computed_at=utcnow().isoformat(),
        )

    # ------------------------------------------------------------------
    # Site-wide
    # ------------------------------------------------------------------

    def get_site_overview(self, days: int) -> SiteStats:
        cache_key = f"site_overview:{days}"
        cached = cache_get(cache_key)
        if cached:
            cached["daily_views"] = [DailyViewCount(**d) for d in cached["daily_views"]]
            return SiteStats(**cached)

        stats = self._compute_site_overview(days)
        cache_set(cache_key, stats.to_dict(), ttl=STATS_CACHE_TTL)
        return stats

    def _compute_site_overview(self, days: int) -> SiteStats:
        db = self.db
        View = models.PostView
        since = _window_start(days)

        published_posts = db.scalar(
            select(func.count()).select_from(models.Post).where(published_filter())
        ) or 0
        total_views = db.scalar(select(func.count()).select_from(View)) or 0
        window_views, unique_viewers = db.execute(
            select(func.count(), func.count(func.distinct(View.viewer_ip_hash)))
            .where(View.created_at >= since)
        ).one()
        total_likes = db.scalar(
            select(func.count()).select_from(models.PostLike).where(models.PostLike.created_at >= since)
        ) or 0
        total_comments = db.scalar(
            select(func.count())
            .select_from(models.Comment)
            .where(models.Comment.created_at >= since, models.Comment.is_approved.is_(True))
        ) or 0
        pending_comments = db.scalar(
            select(func.count()).select_from(models.Comment).where(models.Comment.is_approved.is_(False))
        ) or 0

        views = func.count(View.id).label("views")
        top = db.execute(
            select(models.Post.id, models.Post.slug, models.Post.title, views)
            .join(View, View.post_id == models.Post.id)
            .where(View.created_at >= since)
            .group_by(models.Post.id, models.Post.slug, models.Post.title)
            .order_by(views.desc(), models.Post.id)
            .limit(TOP_POSTS)
        ).all()

        return SiteStats(
            days=days,
            published_posts=published_posts,
            total_views=total_views,
            window_views=window_views or 0,
            unique_viewers=unique_viewers or 0,
            total_likes=total_likes,
            total_comments=total_comments,
            pending_comments=pending_comments,
            top_posts=[
                {"post_id": post_id, "slug": slug, "title": title, "views": count}
                for post_id, slug, title, count in top
            ],
            daily_views=_daily_views(db, days),
            computed_at=utcnow().isoformat(),
        )

    # ------------------------------------------------------------------
    # Author dashboard
    # ------------------------------------------------------------------

    def get_author_dashboard(self, author_id: UUID, days: int) -> dict:
        """Counters and window views for every post of an author, newest first."""
        db = self.db
        View = models.PostView

        window_counts = dict(
            db.execute(
                select(View.post_id, func.count())
                .join(models.Post, models.Post.id == View.post_id)
                .where(models.Post.author_id == author_id, View.created_at >= _window_start(days))
                .group_by(View.post_id)
            ).all()
        )
        posts = db.execute(
            select(models.Post)
            .where(models.Post.author_id == author_id)
            .order_by(models.Post.created_at.desc(), models.Post.id.desc())
        ).scalars().all()

        rows = [
            {
                "post_id": post.id,
                "slug": post.slug,
                "title": post.title,
                "status": post.status,
                "view_count": post.view_count,
                "like_count": post.like_count,
                "comment_count": post.comment_count,
                "window_views": window_counts.get(post.id, 0),
            }
            for post in posts
        ]
        return {
            "days": days,
            "posts": rows,
            "total_views": sum(row["view_count"] for row in rows),
            "total_likes": sum(row["like_count"] for row in rows),
            "total_comments": sum(row["comment_count"] for row in rows),
        }
