"""Media upload endpoints."""

from __future__ import annotations

import logging
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_profile, require_role
from ..db import get_db
from ..errors import InkwellError
from ..media_vault import delete_media, inspect_image, media_url, save_media
from ..pagination import apply_cursor_filter, create_page_response
from ..utils.roles import has_role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/media", tags=["Media"])


@router.post("", response_model=schemas.Media, status_code=status.HTTP_201_CREATED)
async def upload_media(
    image: UploadFile = File(...),
    alt_text: str | None = Form(None, max_length=300),
    db: Session = Depends(get_db),
    current: models.Profile = Depends(require_role("author")),
) -> schemas.Media:
    """
    Upload an image (PNG, JPEG, GIF or WebP).

    Returns the media record; its ``url`` can be used in post Markdown as
    ``![alt](url)`` or as a cover image.
    """
    file_content = await image.read()

    try:
        info = inspect_image(file_content, image.content_type)
    except InkwellError as e:
        raise e.to_http()

    media_id = uuid4()
    try:
        relative_path = save_media(media_id, file_content, info.extension)
    except OSError as e:
        logger.error(f"Failed to store media upload: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save image. Please try again.",
        )

    media = models.Media(
        id=media_id,
        uploader_id=current.id,
        file_path=relative_path,
        url=media_url(relative_path),
        mime_type=info.mime_type,
        size_bytes=len(file_content),
        width=info.width,
        height=info.height,
        alt_text=alt_text,
    )
    db.add(media)
    db.commit()
    db.refresh(media)

    logger.info(f"{current.username} uploaded media {media.id} ({info.mime_type}, {media.size_bytes} bytes)")
    return schemas.Media.model_validate(media)


@router.get("", response_model=schemas.Page[schemas.Media])
def list_media(
    all_uploads: bool = Query(False, alias="all", description="Admins only: list every upload"),
    cursor: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current: models.Profile = Depends(get_current_profile),
) -> schemas.Page[schemas.Media]:
    """The caller's uploads, newest first."""
    query = db.query(models.Media)
    if all_uploads:
        if not has_role(current, "admin"):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    else:
        query = query.filter(models.Media.uploader_id == current.id)

    query = apply_cursor_filter(query, models.Media, cursor, "created_at")
    items = query.order_by(models.Media.created_at.desc(), models.Media.id.desc()).limit(limit + 1).all()
    page_data = create_page_response(items, limit, "created_at")

    return schemas.Page(
        items=[schemas.Media.model_validate(m) for m in page_data["items"]],
        next_cursor=page_data["next_cursor"],
    )


@router.delete("/{media_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_media(
    media_id: UUID,
    db: Session = Depends(get_db),
    current: models.Profile = Depends(get_current_profile),
) -> None:
    """Delete an upload and its file (uploader or admin)."""
    media = db.get(models.Media, media_id)
    if not media:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")
    if media.uploader_id != current.id and not has_role(current, "admin"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have permission to delete this media"
        )

    relative_path = media.file_path
    db.delete(media)
    db.commit()
    delete_media(relative_path)
