"""
Legacy admin routes folded into the unified users page.

Each rule maps a deprecated path to /admin/users with the tab (and role filter)
that page should open on.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from urllib.parse import urlencode

from flask import Blueprint, redirect, request

LEGACY_REDIRECT_STATUS = 301


@dataclass(frozen=True)
class RedirectRule:
    source_path: str
    destination_path: str
    query_params: Mapping[str, str] = field(default_factory=dict)

    @property
    def endpoint(self) -> str:
        return "legacy_" + self.source_path.strip("/").replace("/", "_").replace("-", "_")

    def target(self, incoming: Mapping[str, str] | None = None) -> str:
        params: dict[str, str] = {}
        for key, value in (incoming or {}).items():
            if key not in self.query_params:
                params[key] = value
        params.update(self.query_params)
        if not params:
            return self.destination_path
        return f"{self.destination_path}?{urlencode(params)}"


LEGACY_REDIRECTS: tuple[RedirectRule, ...] = (
    RedirectRule("/admin/permissions", "/admin/users", MappingProxyType({"tab": "rbac"})),
    RedirectRule("/admin/roles", "/admin/users", MappingProxyType({"tab": "rbac"})),
    RedirectRule("/admin/clients", "/admin/users", MappingProxyType({"tab": "dashboard", "role": "CLIENT"})),
    RedirectRule("/admin/team", "/admin/users", MappingProxyType({"tab": "dashboard", "role": "TEAM_MEMBER"})),
)

_RULES_BY_PATH = {rule.source_path: rule for rule in LEGACY_REDIRECTS}


def resolve_redirect(path: str) -> RedirectRule | None:
    return _RULES_BY_PATH.get(path.rstrip("/") or "/")


bp = Blueprint("legacy", __name__)


def _legacy_redirect():
    rule = resolve_redirect(request.path)
    if rule is None:  # pragma: no cover - every registered path has a rule
        return redirect("/admin/users", code=LEGACY_REDIRECT_STATUS)
    return redirect(rule.target(request.args.to_dict()), code=LEGACY_REDIRECT_STATUS)


for _rule in LEGACY_REDIRECTS:
    bp.add_url_rule(_rule.source_path, endpoint=_rule.endpoint, view_func=_legacy_redirect, methods=["GET"])
