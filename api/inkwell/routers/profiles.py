"""Profile endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import Identity, get_current_identity, get_current_profile, require_role
from ..db import get_db
from ..utils.audit import log_action
from ..utils.clock import utcnow
from ..utils.slugs import validate_username
from ..utils.visibility import published_filter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile", tags=["Profiles"])


def _get_profile_by_username(db: Session, username: str) -> models.Profile:
    profile = db.query(models.Profile).filter(models.Profile.username == username.lower()).first()
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


def _check_username(db: Session, username: str, exclude: models.Profile | None = None) -> str:
    username = username.strip().lower()
    is_valid, error = validate_username(username)
    if not is_valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)

    query = db.query(models.Profile.id).filter(models.Profile.username == username)
    if exclude is not None:
        query = query.filter(models.Profile.id != exclude.id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")
    return username


@router.put("/me", response_model=schemas.ProfilePublic)
def upsert_my_profile(
    payload: schemas.ProfileUpsert,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> schemas.ProfilePublic:
    """
    Create the caller's profile on first login, or update it.

    ``username`` is required when creating. New profiles start as readers.
    """
    profile = db.get(models.Profile, identity.id)
    data = payload.model_dump(exclude_unset=True)

    if profile is None:
        if not payload.username:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="username is required to create a profile"
            )
        profile = models.Profile(id=identity.id, role="reader")
        db.add(profile)
        created = True
    else:
        created = False

    if data.get("username") is not None:
        profile.username = _check_username(db, data["username"], exclude=None if created else profile)

    for field in ("display_name", "bio", "avatar_url", "website"):
        if field in data:
            setattr(profile, field, data[field])
    if not created:
        profile.updated_at = utcnow()

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")
    db.refresh(profile)

    if created:
        logger.info(f"Created profile {profile.username} for identity {identity.id}")
    return schemas.ProfilePublic.model_validate(profile)


@router.get("/me", response_model=schemas.ProfilePublic)
def get_my_profile(
    current: models.Profile = Depends(get_current_profile),
) -> schemas.ProfilePublic:
    return schemas.ProfilePublic.model_validate(current)


@router.get("/{username}", response_model=schemas.ProfileDetail)
def get_profile(
    username: str,
    db: Session = Depends(get_db),
) -> schemas.ProfileDetail:
    """Public profile with the number of published posts."""
    profile = _get_profile_by_username(db, username)
    post_count = (
        db.query(func.count(models.Post.id))
        .filter(models.Post.author_id == profile.id, published_filter())
        .scalar()
    )
    result = schemas.ProfileDetail.model_validate(profile)
    result.post_count = post_count or 0
    return result


@router.patch("/{username}/role", response_model=schemas.ProfilePublic)
def change_role(
    username: str,
    payload: schemas.RoleUpdate,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_role("admin")),
) -> schemas.ProfilePublic:
    """
    Grant or revoke a role (admin only).

    Admins cannot demote themselves, so the site always keeps at least one.
    """
    profile = _get_profile_by_username(db, username)

    if profile.id == admin.id and payload.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admins cannot demote themselves"
        )

    previous = profile.role
    if previous == payload.role:
        return schemas.ProfilePublic.model_validate(profile)

    profile.role = payload.role
    profile.updated_at = utcnow()
    log_action(
        db, admin.id, "change_role", target_type="profile", target_id=profile.id,
        note=f"{previous} -> {payload.role}", commit=False,
    )
    db.commit()
    db.refresh(profile)

    logger.info(f"{admin.username} changed role of {profile.username}: {previous} -> {payload.role}")
    return schemas.ProfilePublic.model_validate(profile)
