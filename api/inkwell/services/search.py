"""Full-text search over published posts.

PostgreSQL uses ``websearch_to_tsquery`` against a weighted tsvector
(title A, excerpt B, content C) backed by the GIN index created in the
initial migration. Other engines fall back to term matching ranked in
Python with the same weights.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, literal_column, select
from sqlalchemy.orm import Session, selectinload

from .. import models
from ..db import is_postgres
from ..utils.clock import as_utc
from ..utils.visibility import published_filter

logger = logging.getLogger(__name__)

SEARCH_CONFIG = "english"
MAX_TERMS = 8
# Rows considered by the fallback ranker
FALLBACK_CANDIDATES = 500

FIELD_WEIGHTS = (("title", 3), ("excerpt", 2), ("content", 1))


def _eager_options():
    return (
        selectinload(models.Post.author),
        selectinload(models.Post.category),
        selectinload(models.Post.tags),
    )


def search_vector():
    """Weighted tsvector expression; must match the migration's GIN index."""
    return literal_column(
        "setweight(to_tsvector('english', coalesce(posts.title, '')), 'A') || "
        "setweight(to_tsvector('english', coalesce(posts.excerpt, '')), 'B') || "
        "setweight(to_tsvector('english', coalesce(posts.content, '')), 'C')"
    )


def split_terms(query: str) -> list[str]:
    seen: list[str] = []
    for term in query.lower().split():
        term = term.strip("\"'")
        if term and term not in seen:
            seen.append(term)
    return seen[:MAX_TERMS]


def score_post(post: models.Post, terms: list[str]) -> float:
    """Weighted count of term occurrences (title x3, excerpt x2, content x1)."""
    score = 0
    for field, weight in FIELD_WEIGHTS:
        text = (getattr(post, field) or "").lower()
        score += weight * sum(text.count(term) for term in terms)
    return float(score)


def _search_postgres(db: Session, query: str, limit: int) -> list[tuple[models.Post, float]]:
    ts_query = func.websearch_to_tsquery(SEARCH_CONFIG, query)
    vector = search_vector()
    rank = func.ts_rank(vector, ts_query).label("rank")
    rows = db.execute(
        select(models.Post, rank)
        .where(published_filter(), vector.op("@@")(ts_query))
        .order_by(rank.desc(), models.Post.published_at.desc())
        .limit(limit)
        .options(*_eager_options())
    ).all()
    return [(post, float(score)) for post, score in rows]


def _search_fallback(db: Session, query: str, limit: int) -> list[tuple[models.Post, float]]:
    terms = split_terms(query)
    if not terms:
        return []

    stmt = select(models.Post).where(published_filter())
    for term in terms:
        stmt = stmt.where(
            models.Post.title.icontains(term, autoescape=True)
            | models.Post.excerpt.icontains(term, autoescape=True)
            | models.Post.content.icontains(term, autoescape=True)
        )
    candidates = db.execute(
        stmt.order_by(models.Post.published_at.desc())
        .limit(FALLBACK_CANDIDATES)
        .options(*_eager_options())
    ).scalars().all()

    scored = [(post, score_post(post, terms)) for post in candidates]
    scored.sort(key=lambda item: (item[1], as_utc(item[0].published_at)), reverse=True)
    return scored[:limit]


def search_posts(db: Session, query: str, limit: int = 20) -> list[tuple[models.Post, float]]:
    """
    Search published posts and return ``(post, rank)`` pairs, best first.

    Blank queries return nothing.
    """
    query = (query or "").strip()
    if not query:
        return []

    if is_postgres():
        results = _search_postgres(db, query, limit)
    else:
        results = _search_fallback(db, query, limit)

    logger.debug(f"Search '{query}' returned {len(results)} result(s)")
    return results
