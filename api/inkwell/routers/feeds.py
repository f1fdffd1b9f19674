"""RSS feed and sitemap."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..services.feeds import build_rss, build_sitemap

router = APIRouter(prefix="", tags=["Feeds"])


@router.get("/feed.xml", response_class=Response)
def rss_feed(db: Session = Depends(get_db)) -> Response:
    return Response(content=build_rss(db), media_type="application/rss+xml")


@router.get("/sitemap.xml", response_class=Response)
def sitemap(db: Session = Depends(get_db)) -> Response:
    return Response(content=build_sitemap(db), media_type="application/xml")
