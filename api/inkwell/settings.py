"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _str_env(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


# Public site identity (used for feeds, sitemap and canonical links)
SITE_URL: str = _str_env("SITE_URL", "http://localhost:3000").rstrip("/")
SITE_TITLE: str = _str_env("SITE_TITLE", "Inkwell")
SITE_DESCRIPTION: str = _str_env("SITE_DESCRIPTION", "Latest posts")
FEED_SIZE: int = _int_env("FEED_SIZE", 20)

# Comments
MAX_COMMENT_DEPTH: int = _int_env("MAX_COMMENT_DEPTH", 3)
MAX_COMMENTS_PER_POST: int = _int_env("MAX_COMMENTS_PER_POST", 1000)
MAX_COMMENT_LENGTH: int = _int_env("MAX_COMMENT_LENGTH", 5000)
# When set, every new comment waits for an editor, even from signed-in authors
COMMENTS_REQUIRE_APPROVAL: bool = _bool_env("COMMENTS_REQUIRE_APPROVAL", False)

# Posts
MAX_POST_LENGTH: int = _int_env("MAX_POST_LENGTH", 100_000)
MAX_TAGS_PER_POST: int = _int_env("MAX_TAGS_PER_POST", 10)
WORDS_PER_MINUTE: int = _int_env("WORDS_PER_MINUTE", 200)
EXCERPT_LENGTH: int = _int_env("EXCERPT_LENGTH", 200)

# Media uploads
# Configured via .env: MEDIA_MAX_BYTES=5242880  (5 MiB)
MEDIA_MAX_BYTES: int = _int_env("MEDIA_MAX_BYTES", 5 * 1024 * 1024)
MEDIA_LOCATION: str = _str_env("MEDIA_LOCATION", "./media")
MEDIA_BASE_URL: str = _str_env("MEDIA_BASE_URL", "/uploads").rstrip("/")

# Scheduler
SCHEDULER_INTERVAL_SECONDS: int = _int_env("SCHEDULER_INTERVAL_SECONDS", 60)

# Analytics
STATS_DEFAULT_DAYS: int = _int_env("STATS_DEFAULT_DAYS", 30)
