"""
Template-level switch between the legacy executive dashboard and AdminWorkBench.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app, g, render_template

from app.portal.env import reader_for_app
from app.portal.feature_flags import RolloutVerdict, WorkbenchRollout
from app.portal.models import User


def workbench_rollout() -> WorkbenchRollout:
    rollout = current_app.extensions.get("workbench_rollout")
    if rollout is None:
        rollout = WorkbenchRollout(reader_for_app(current_app))
        current_app.extensions["workbench_rollout"] = rollout
    return rollout


def workbench_feature(user: User | None) -> RolloutVerdict:
    """Verdict for the current user, evaluated once per (user id, role) within a request."""
    user_id = str(user.id) if user is not None else None
    role = user.role if user is not None else None
    cache: dict[tuple[str | None, str | None], RolloutVerdict] = g.setdefault("workbench_verdicts", {})
    key = (user_id, role)
    if key not in cache:
        cache[key] = workbench_rollout().evaluate(user_id, role)
    return cache[key]


@dataclass(frozen=True)
class FeatureSwitch:
    enabled_template: str
    disabled_template: str

    def select(self, enabled: bool) -> str:
        return self.enabled_template if enabled else self.disabled_template

    def render(self, verdict: RolloutVerdict, **context) -> str:
        return render_template(self.select(verdict.enabled), **context)


DASHBOARD_SWITCH = FeatureSwitch(
    enabled_template="admin/users/_workbench.html",
    disabled_template="admin/users/_dashboard_legacy.html",
)
