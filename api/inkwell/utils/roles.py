"""Role ladder helpers: reader < author < editor < admin."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .. import models

# Each role includes the privileges of the roles before it
ROLE_RANK = {"reader": 0, "author": 1, "editor": 2, "admin": 3}


def has_role(profile: "models.Profile" | None, role: str) -> bool:
    """True when ``profile`` holds ``role`` or a higher one."""
    if profile is None:
        return False
    return ROLE_RANK.get(profile.role, 0) >= ROLE_RANK[role]


def is_staff(profile: "models.Profile" | None) -> bool:
    """Editors and admins see and moderate everything."""
    return has_role(profile, "editor")
