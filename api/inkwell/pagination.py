from __future__ import annotations

import base64
import json
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Uuid, and_, or_


# Cursor format: base64-encoded JSON with {id: last_record_id, sort: sort_field_value}
# This allows efficient pagination without OFFSET (which is slow for large datasets)


def encode_cursor(last_id: Any, sort_value: Any = None) -> str:
    """
    Encode a pagination cursor from the last record's ID and sort value.

    Example:
        cursor = encode_cursor(42, "2026-10-18T12:00:00+00:00")
    """
    cursor_data = {"id": last_id}
    if sort_value is not None:
        if isinstance(sort_value, datetime):
            sort_value = sort_value.isoformat()
        cursor_data["sort"] = sort_value

    json_str = json.dumps(cursor_data, default=str)
    return base64.urlsafe_b64encode(json_str.encode()).decode()


def decode_cursor(cursor: str | None) -> tuple[Any, Any] | None:
    """
    Decode a pagination cursor to extract the last record's ID and sort value.

    Returns:
        Tuple of (last_id, sort_value) if cursor is valid, None otherwise
    """
    if not cursor:
        return None

    try:
        decoded = base64.urlsafe_b64decode(cursor.encode()).decode()
        cursor_data = json.loads(decoded)
        last_id = cursor_data.get("id")
        sort_value = cursor_data.get("sort")

        if last_id is None:
            return None

        return (last_id, sort_value)
    except (ValueError, KeyError, AttributeError, json.JSONDecodeError):
        return None


def apply_cursor_filter(query, model_class, cursor: str | None, sort_field: str = "created_at", sort_desc: bool = True):
    """
    Apply keyset filtering to a SQLAlchemy query.

    Adds ``(sort_field, id) < (sort_value, last_id)`` for descending order
    (``>`` for ascending), spelled out with OR/AND so it works on every engine.
    Invalid cursors are ignored.
    """
    cursor_data = decode_cursor(cursor)
    if not cursor_data:
        return query

    last_id, sort_value = cursor_data
    sort_column = getattr(model_class, sort_field)
    id_column = model_class.id

    if isinstance(id_column.type, Uuid):
        try:
            last_id = uuid.UUID(str(last_id))
        except ValueError:
            return query

    if sort_value is None:
        if sort_desc:
            return query.filter(id_column < last_id)
        return query.filter(id_column > last_id)

    try:
        sort_value = datetime.fromisoformat(sort_value)
    except (TypeError, ValueError):
        return query

    if sort_desc:
        return query.filter(
            or_(sort_column < sort_value, and_(sort_column == sort_value, id_column < last_id))
        )
    return query.filter(
        or_(sort_column > sort_value, and_(sort_column == sort_value, id_column > last_id))
    )


def create_page_response(items: list, limit: int, sort_field: str | None = "created_at") -> dict[str, Any]:
    """
    Split a ``limit + 1`` result set into a page and the cursor for the next one.

    Callers fetch one extra row; its presence means another page exists.
    """
    has_more = len(items) > limit
    page_items = items[:limit]

    next_cursor = None
    if has_more and page_items:
        last = page_items[-1]
        sort_value = getattr(last, sort_field) if sort_field else None
        next_cursor = encode_cursor(last.id, sort_value)

    return {"items": page_items, "next_cursor": next_cursor}
