"""Search endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..db import get_db
from ..services.search import search_posts

router = APIRouter(prefix="/search", tags=["Search"])


@router.get("", response_model=schemas.SearchResults)
def search(
    q: str = Query("", max_length=200),
    limit: int = Query(20, ge=1, le=50),
    db: Session = Depends(get_db),
) -> schemas.SearchResults:
    """
    Full-text search over published posts (title, excerpt, content).

    Results are ranked with titles weighing most; an empty query returns
    no results.
    """
    hits = search_posts(db, q, limit)
    return schemas.SearchResults(
        query=q.strip(),
        items=[
            schemas.SearchHit(post=schemas.PostSummary.model_validate(post), rank=rank)
            for post, rank in hits
        ],
    )
