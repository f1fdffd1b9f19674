"""Sqids configuration for short post links (``/p/{public_sqid}``)."""

from __future__ import annotations

import os

from sqids import Sqids

# Default is base62; production deployments may set a shuffled alphabet.
SQIDS_ALPHABET = os.getenv("SQIDS_ALPHABET", "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789")

sqids = Sqids(alphabet=SQIDS_ALPHABET, min_length=4)


def encode_post_id(post_id: int) -> str:
    """Encode an integer post ID to its public short id."""
    return sqids.encode([post_id])


def decode_post_sqid(sqid: str) -> int | None:
    """
    Decode a short id back to a post ID.

    Returns None for malformed ids and for non-canonical encodings
    (Sqids accepts several spellings of the same number).
    """
    try:
        decoded = sqids.decode(sqid)
    except ValueError:
        return None

    if len(decoded) != 1:
        return None
    if sqids.encode(decoded) != sqid:
        return None
    return decoded[0]
