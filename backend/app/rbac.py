from __future__ import annotations

from fastapi import HTTPException, status

from . import models

# purpose: centralize role checks for mentor and startup endpoints
# status: active


def has_role(user: models.User, *roles: models.UserRole) -> bool:
    if user.role == models.UserRole.ADMIN:
        return True
    return user.role in roles


def check_role(user: models.User, *roles: models.UserRole) -> None:
    """Raise 403 unless ``user`` holds one of ``roles`` (admins always pass)."""

    if not has_role(user, *roles):
        allowed = ", ".join(role.value for role in roles)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"requires role: {allowed}",
        )
