"""
View tracking utility module.

Records post views with privacy-preserving metadata: hashed IP and
User-Agent, a coarse device type and the referring domain.
"""

from __future__ import annotations

import hashlib
import logging
import re
from enum import Enum
from urllib.parse import urlparse

from fastapi import Request
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..auth import get_client_ip
from .clock import utcnow

logger = logging.getLogger(__name__)


class DeviceType(str, Enum):
    """Device type classification."""
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    BOT = "bot"


# User-Agent patterns for device detection
MOBILE_PATTERNS = [
    r"iPhone",
    r"iPod",
    r"Android.*Mobile",
    r"Mobile.*Safari",
    r"webOS",
    r"BlackBerry",
    r"Opera Mini",
    r"IEMobile",
    r"Windows Phone",
]

TABLET_PATTERNS = [
    r"iPad",
    r"Android(?!.*Mobile)",
    r"Tablet",
    r"Kindle",
    r"Silk",
]

BOT_PATTERN = r"bot|crawler|spider|slurp|facebookexternalhit|feedfetcher"

_mobile_regex = re.compile("|".join(MOBILE_PATTERNS), re.IGNORECASE)
_tablet_regex = re.compile("|".join(TABLET_PATTERNS), re.IGNORECASE)
_bot_regex = re.compile(BOT_PATTERN, re.IGNORECASE)


def hash_ip(ip: str) -> str:
    """SHA-256 of an IP address (64 hex chars); raw addresses are never stored."""
    if not ip:
        ip = "unknown"
    return hashlib.sha256(ip.encode("utf-8")).hexdigest()


def hash_user_agent(user_agent: str | None) -> str | None:
    if not user_agent:
        return None
    return hashlib.sha256(user_agent.encode("utf-8")).hexdigest()


def detect_device_type(user_agent: str | None) -> DeviceType:
    """
    Detect device type from User-Agent string.

    Crawlers are checked first, then tablets (some tablets also match the
    mobile patterns), then phones; anything else counts as desktop.
    """
    if not user_agent:
        return DeviceType.DESKTOP

    if _bot_regex.search(user_agent):
        return DeviceType.BOT

    if _tablet_regex.search(user_agent):
        return DeviceType.TABLET

    if _mobile_regex.search(user_agent):
        return DeviceType.MOBILE

    return DeviceType.DESKTOP


def extract_referrer_domain(referrer: str | None) -> str | None:
    """
    Extract the domain from a referrer URL.

    Returns e.g. "google.com" for "https://www.google.com/search?q=x",
    or None when the header is missing or not a URL.
    """
    if not referrer:
        return None

    try:
        domain = urlparse(referrer).netloc.lower()
    except ValueError:
        return None

    # Remove www. prefix for consistency
    if domain.startswith("www."):
        domain = domain[4:]

    return domain[:255] or None


def record_post_view(
    db: Session,
    post: models.Post,
    request: Request,
    viewer: models.Profile | None = None,
) -> bool:
    """
    Record a view event for a post and bump its view counter.

    Author views are excluded. Failures are logged and never fail the
    request that triggered them.

    Returns:
        True if a view was recorded
    """
    if viewer is not None and viewer.id == post.author_id:
        logger.debug(f"Skipping view recording for post {post.id} - viewer is the author")
        return False

    user_agent = request.headers.get("User-Agent")
    device_type = detect_device_type(user_agent)

    try:
        db.add(
            models.PostView(
                post_id=post.id,
                viewer_id=viewer.id if viewer else None,
                viewer_ip_hash=hash_ip(get_client_ip(request)),
                user_agent_hash=hash_user_agent(user_agent),
                device_type=device_type.value,
                referrer_domain=extract_referrer_domain(request.headers.get("Referer")),
                created_at=utcnow(),
            )
        )
        # Increment in SQL so concurrent readers never lose a view; updated_at tracks edits only
        db.execute(
            update(models.Post)
            .where(models.Post.id == post.id)
            .values(view_count=models.Post.view_count + 1, updated_at=models.Post.updated_at)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Failed to record view for post {post.id}: {e}", exc_info=True)
        return False

    db.refresh(post)
    logger.info(f"Recorded view for post {post.id}: device={device_type.value}")
    return True
