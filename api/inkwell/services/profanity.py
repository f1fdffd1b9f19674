"""Profanity check used by comment auto-moderation."""

from __future__ import annotations

import logging
import os

from better_profanity import profanity

logger = logging.getLogger(__name__)

# Comma-separated words added to the library's default list
EXTRA_WORDS = [w.strip() for w in os.getenv("PROFANITY_EXTRA_WORDS", "").split(",") if w.strip()]

profanity.load_censor_words()
if EXTRA_WORDS:
    profanity.add_censor_words(EXTRA_WORDS)
    logger.info(f"Loaded {len(EXTRA_WORDS)} extra profanity words")


def contains_profanity(text: str | None) -> bool:
    """True if ``text`` contains a word from the censor list."""
    if not text:
        return False
    return profanity.contains_profanity(text)


def needs_moderation(text: str, author: object | None, require_approval: bool) -> bool:
    """
    Decide whether a new or edited comment waits in the moderation queue.

    Guest comments, comments while approval is globally required, and
    anything containing profanity are held; the rest are published at once.
    """
    if author is None or require_approval:
        return True
    return contains_profanity(text)
