"""Category endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_role
from ..db import get_db
from ..utils.audit import log_action
from ..utils.slugs import is_valid_slug, slugify
from ..utils.visibility import published_filter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/category", tags=["Categories"])


def _get_category(db: Session, slug: str) -> models.Category:
    category = db.query(models.Category).filter(models.Category.slug == slug).first()
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


def _resolve_slug(requested: str | None, name: str) -> str:
    slug = requested.strip().lower() if requested else slugify(name, max_length=80)
    if not is_valid_slug(slug):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid slug")
    return slug


def _published_count(db: Session, category_id: int) -> int:
    return (
        db.query(func.count(models.Post.id))
        .filter(models.Post.category_id == category_id, published_filter())
        .scalar()
    ) or 0


def _commit_or_conflict(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A category with this name or slug already exists"
        )


@router.get("", response_model=list[schemas.CategoryWithCount])
def list_categories(db: Session = Depends(get_db)) -> list[schemas.CategoryWithCount]:
    """All categories, alphabetically, with their published post counts."""
    counts = dict(
        db.query(models.Post.category_id, func.count(models.Post.id))
        .filter(models.Post.category_id.is_not(None), published_filter())
        .group_by(models.Post.category_id)
        .all()
    )
    categories = db.query(models.Category).order_by(models.Category.name).all()

    results = []
    for category in categories:
        item = schemas.CategoryWithCount.model_validate(category)
        item.post_count = counts.get(category.id, 0)
        results.append(item)
    return results


@router.get("/{slug}", response_model=schemas.CategoryWithCount)
def get_category(slug: str, db: Session = Depends(get_db)) -> schemas.CategoryWithCount:
    category = _get_category(db, slug)
    item = schemas.CategoryWithCount.model_validate(category)
    item.post_count = _published_count(db, category.id)
    return item


@router.post("", response_model=schemas.Category, status_code=status.HTTP_201_CREATED)
def create_category(
    payload: schemas.CategoryCreate,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_role("admin")),
) -> schemas.Category:
    category = models.Category(
        name=payload.name.strip(),
        slug=_resolve_slug(payload.slug, payload.name),
        color=payload.color.lower(),
        description=payload.description,
    )
    db.add(category)
    _commit_or_conflict(db)
    db.refresh(category)

    logger.info(f"{admin.username} created category '{category.slug}'")
    return schemas.Category.model_validate(category)


@router.patch("/{slug}", response_model=schemas.Category)
def update_category(
    slug: str,
    payload: schemas.CategoryUpdate,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_role("admin")),
) -> schemas.Category:
    category = _get_category(db, slug)
    data = payload.model_dump(exclude_unset=True)

    if data.get("name") is not None:
        category.name = data["name"].strip()
    if data.get("slug") is not None:
        category.slug = _resolve_slug(data["slug"], category.name)
    if data.get("color") is not None:
        category.color = data["color"].lower()
    if "description" in data:
        category.description = data["description"]

    _commit_or_conflict(db)
    db.refresh(category)
    return schemas.Category.model_validate(category)


@router.delete("/{slug}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    slug: str,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_role("admin")),
) -> None:
    """Delete a category; its posts become uncategorized."""
    category = _get_category(db, slug)
    log_action(
        db, admin.id, "delete_category", target_type="category", target_id=category.id,
        note=category.slug, commit=False,
    )
    db.delete(category)
    db.commit()
    logger.info(f"{admin.username} deleted category '{slug}'")
