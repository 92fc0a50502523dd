from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.pms.errors import Forbidden, Unauthorized
from app.pms.models import User

ADMIN_ROLE_KEYS = ("super_admin", "admin")


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def is_admin(user: User | None) -> bool:
    if not user or not user.is_active:
        return False
    return any(role.key in ADMIN_ROLE_KEYS for role in user.roles)


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise Unauthorized("Authentication required.")
    return u


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user or not user.is_active:
                raise Unauthorized("Authentication required.")
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                raise Forbidden(f"Missing permission: {permission_key}")
            return fn(*args, **kwargs)

        return wrapped

    return decorator
