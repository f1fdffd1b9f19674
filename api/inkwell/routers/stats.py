"""Statistics endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas, settings
from ..auth import get_current_profile, require_ownership, require_role
from ..cache import cache_delete
from ..db import get_db
from ..services.analytics import AnalyticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["Statistics"])

DaysQuery = Query(settings.STATS_DEFAULT_DAYS, ge=1, le=365)


@router.get("/post/{post_id}/stats", response_model=schemas.PostStatsResponse)
def get_post_statistics(
    post_id: int,
    days: int = DaysQuery,
    refresh: bool = Query(False, description="Force cache refresh"),
    db: Session = Depends(get_db),
    current: models.Profile = Depends(get_current_profile),
) -> schemas.PostStatsResponse:
    """
    Get statistics for a post.

    **Authorization:** the post's author, editors and admins.

    **Response includes:** all-time views and unique viewers, views in the
    window by device and referrer, one entry per day of the window, likes
    and approved comments.
    """
    post = db.get(models.Post, post_id)
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    require_ownership(post.author_id, current)

    if refresh:
        cache_delete(f"post_stats:{post_id}:{days}")

    stats = AnalyticsService(db).get_post_stats(post, days)
    return schemas.PostStatsResponse.model_validate(stats.to_dict())


@router.get("/stats/site", response_model=schemas.SiteOverview)
def get_site_overview(
    days: int = DaysQuery,
    db: Session = Depends(get_db),
    editor: models.Profile = Depends(require_role("editor")),
) -> schemas.SiteOverview:
    """Site-wide totals and top posts (editors and admins)."""
    stats = AnalyticsService(db).get_site_overview(days)
    return schemas.SiteOverview.model_validate(stats.to_dict())


@router.get("/stats/me", response_model=schemas.AuthorDashboard)
def get_author_dashboard(
    days: int = DaysQuery,
    db: Session = Depends(get_db),
    current: models.Profile = Depends(require_role("author")),
) -> schemas.AuthorDashboard:
    """The caller's posts with their counters and views in the window."""
    return schemas.AuthorDashboard.model_validate(AnalyticsService(db).get_author_dashboard(current.id, days))
