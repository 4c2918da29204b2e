from flask import Blueprint, g, render_template, request

from app.portal.db import db_session
from app.portal.feature_switch import DASHBOARD_SWITCH, workbench_feature, workbench_rollout
from app.portal.models import User
from app.portal.modules.entities.service import list_users, parse_role_filter, role_counts
from app.portal.rbac import (
    ADMIN_VIEW,
    PERMISSION_LABELS,
    ROLE_PERMISSIONS,
    ROLES,
    ROLES_VIEW,
    USERS_VIEW,
    require_permission,
    user_has_permission,
)

bp = Blueprint("admin", __name__)

USERS_TABS = (
    ("dashboard", "Dashboard"),
    ("entities", "Entities"),
    ("rbac", "Roles & Permissions"),
)
DEFAULT_TAB = "dashboard"


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _selected_tab(raw: str | None) -> str:
    tab = (raw or "").strip().lower()
    return tab if tab in dict(USERS_TABS) else DEFAULT_TAB


@bp.get("/")
@require_permission(ADMIN_VIEW)
def index():
    user = _current_user()
    return render_template(
        "admin/index.html",
        user=user,
        workbench=workbench_feature(user),
        can_view_users=user_has_permission(user, USERS_VIEW),
    )


@bp.get("/users")
@require_permission(USERS_VIEW)
def users():
    """
    Unified users page. Tabs:
    - dashboard: legacy executive dashboard or AdminWorkBench, per rollout verdict
    - entities: people in the tenant, filterable by role
    - rbac: role to permission matrix (read-only unless roles.view)
    """
    user = _current_user()
    tab = _selected_tab(request.args.get("tab"))
    role_filter = parse_role_filter(request.args.get("role"))

    users_list: list[User] = []
    stats = {role: 0 for role in ROLES}
    if user.tenant_id is not None:
        s = db_session()
        users_list = list_users(s, user.tenant_id, role=role_filter)
        stats = role_counts(s, user.tenant_id)

    verdict = workbench_feature(user)
    dashboard_html = ""
    if tab == "dashboard":
        dashboard_html = DASHBOARD_SWITCH.render(
            verdict,
            users=users_list,
            stats=stats,
            role_filter=role_filter,
            config=workbench_rollout().get_config(),
        )

    return render_template(
        "admin/users/index.html",
        tabs=USERS_TABS,
        tab=tab,
        role_filter=role_filter,
        roles=ROLES,
        users=users_list,
        stats=stats,
        dashboard_html=dashboard_html,
        workbench=verdict,
        can_view_roles=user_has_permission(user, ROLES_VIEW),
        role_permissions=ROLE_PERMISSIONS,
        permission_labels=PERMISSION_LABELS,
    )
