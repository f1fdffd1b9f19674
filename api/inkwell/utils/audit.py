"""Audit logging utility for moderation and publishing actions."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from .. import models


def log_action(
    db: Session,
    actor_id: UUID | None,
    action: str,
    target_type: str | None = None,
    target_id: object | None = None,
    note: str | None = None,
    commit: bool = True,
) -> models.AuditLog:
    """
    Log an action to the audit log.

    Args:
        db: Database session
        actor_id: Profile performing the action (None for the scheduler)
        action: Action name (e.g., "publish_post", "approve_comment", "change_role")
        target_type: Type of target (e.g., "post", "comment", "profile")
        target_id: ID of the target entity; stored as text so int and UUID ids fit
        note: Additional context about the action
        commit: Set to False to keep the entry in the caller's transaction
    """
    audit_entry = models.AuditLog(
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        note=note,
    )
    db.add(audit_entry)
    if commit:
        db.commit()
        db.refresh(audit_entry)
    return audit_entry
