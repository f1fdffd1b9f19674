"""Slug and username generation and validation utilities."""

from __future__ import annotations

import re
import unicodedata

from sqlalchemy.orm import Session

_NON_SLUG = re.compile(r"[^a-z0-9]+")
_SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_USERNAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_]*$")

# Usernames that would collide with routes or look official
RESERVED_USERNAMES = {"admin", "me", "root", "system", "api", "feed", "sitemap", "inkwell"}

# Post slugs that would be shadowed by fixed routes under /post
RESERVED_POST_SLUGS = {"mine"}


def slugify(text: str, max_length: int = 200) -> str:
    """
    Turn arbitrary text into a URL slug.

    Accents are folded to ASCII, anything that is not a letter or digit
    becomes a single hyphen, and the result is trimmed to ``max_length``
    without leaving a trailing hyphen.
    """
    normalized = unicodedata.normalize("NFKD", text or "")
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    slug = _NON_SLUG.sub("-", ascii_text).strip("-")
    if len(slug) > max_length:
        slug = slug[:max_length].rstrip("-")
    return slug


def is_valid_slug(slug: str) -> bool:
    return bool(slug) and bool(_SLUG_PATTERN.match(slug))


def unique_slug(
    db: Session, model, base: str, exclude_id: int | None = None, reserved: set[str] | frozenset[str] = frozenset()
) -> str:
    """
    Return ``base`` or the first free ``base-N`` for ``model.slug``.

    ``exclude_id`` lets an object keep its own slug when it is re-saved;
    ``reserved`` values are treated as taken.
    """
    base = base or "untitled"
    like = f"{base}-%"
    query = db.query(model.slug).filter((model.slug == base) | (model.slug.like(like)))
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    taken = {row[0] for row in query.all()} | set(reserved)

    if base not in taken:
        return base

    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


def validate_username(username: str, min_length: int = 3, max_length: int = 30) -> tuple[bool, str | None]:
    """
    Validate a username format and return (is_valid, error_message).

    Returns:
        (True, None) if valid
        (False, error_message) if invalid
    """
    if not username:
        return False, "Username cannot be empty"

    if len(username) < min_length:
        return False, f"Username must be at least {min_length} characters"

    if len(username) > max_length:
        return False, f"Username must be at most {max_length} characters"

    if not _USERNAME_PATTERN.match(username):
        return False, (
            "Username can only contain lowercase letters, numbers and underscores, "
            "and must start with a letter or number"
        )

    if username in RESERVED_USERNAMES:
        return False, "Username is reserved"

    return True, None
