"""Role based permission checks for the chat API.

``viewer`` may read chats, ``member`` may read and post, ``admin`` holds every
permission.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, FrozenSet

from fastapi import Depends, HTTPException, status

from .auth import User, get_current_user


class Permission(str, Enum):
    CHAT_READ = "chat:read"
    CHAT_WRITE = "chat:write"
    ADMIN = "admin:*"


_READ = frozenset({Permission.CHAT_READ})

ROLE_PERMISSIONS: Dict[str, FrozenSet[Permission]] = {
    "viewer": _READ,
    "member": _READ | {Permission.CHAT_WRITE},
    "admin": frozenset({Permission.ADMIN}),
}


def permissions_for(user: User) -> FrozenSet[Permission]:
    granted: FrozenSet[Permission] = frozenset().union(*(ROLE_PERMISSIONS.get(r, frozenset()) for r in user.roles))
    if Permission.ADMIN in granted:
        return frozenset(Permission)
    return granted


def is_authorized(user: User, required: Permission) -> bool:
    return required in permissions_for(user)


def require_permission(required: Permission) -> Callable[[User], User]:
    """Route dependency returning the current user when they hold ``required``."""

    def check(user: User = Depends(get_current_user)) -> User:
        if not is_authorized(user, required):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Missing permission: {required.value}")
        return user

    return check
