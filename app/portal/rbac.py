from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, current_app, g, redirect, request, url_for

from app.portal.errors import Forbidden, Unauthorized
from app.portal.models import User

SUPER_ADMIN = "SUPER_ADMIN"
ADMIN = "ADMIN"
TEAM_LEAD = "TEAM_LEAD"
TEAM_MEMBER = "TEAM_MEMBER"
STAFF = "STAFF"
CLIENT = "CLIENT"

ROLES = (SUPER_ADMIN, ADMIN, TEAM_LEAD, TEAM_MEMBER, STAFF, CLIENT)

ADMIN_VIEW = "admin.view"
USERS_VIEW = "users.view"
USERS_MANAGE = "users.manage"
ROLES_VIEW = "roles.view"

PERMISSION_LABELS = {
    ADMIN_VIEW: "Admin: view shell",
    USERS_VIEW: "Users: view",
    USERS_MANAGE: "Users: create, edit, delete",
    ROLES_VIEW: "Roles & permissions: view",
}

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    SUPER_ADMIN: frozenset({ADMIN_VIEW, USERS_VIEW, USERS_MANAGE, ROLES_VIEW}),
    ADMIN: frozenset({ADMIN_VIEW, USERS_VIEW, USERS_MANAGE, ROLES_VIEW}),
    TEAM_LEAD: frozenset({ADMIN_VIEW, USERS_VIEW, ROLES_VIEW}),
    TEAM_MEMBER: frozenset({ADMIN_VIEW, USERS_VIEW}),
    STAFF: frozenset({ADMIN_VIEW}),
    CLIENT: frozenset(),
}


def role_has_permission(role: str | None, permission_key: str) -> bool:
    return permission_key in ROLE_PERMISSIONS.get((role or "").upper(), frozenset())


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    return role_has_permission(user.role, permission_key)


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated → redirect to login.
            if not user or not user.is_active:
                nxt = request.full_path or request.path
                # Avoid trailing '?' from full_path when there is no query string.
                if nxt.endswith("?"):
                    nxt = nxt[:-1]
                return redirect(url_for("auth.login_get", next=nxt))
            # Authenticated but unauthorized → 403
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_api_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """JSON flavour of require_permission: 401 without a session, 403 without the permission."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user or not user.is_active:
                raise Unauthorized()
            if not user_has_permission(user, permission_key):
                current_app.logger.warning(
                    "Forbidden: user=%s role=%s missing_permission=%s", user.id, user.role, permission_key
                )
                raise Forbidden()
            return fn(*args, **kwargs)

        return wrapped

    return decorator
