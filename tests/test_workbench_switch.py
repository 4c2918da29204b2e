"""Dashboard tab: legacy executive dashboard vs AdminWorkBench."""
import json
import re
from types import SimpleNamespace

import pytest
from flask import g
from werkzeug.security import generate_password_hash

from app.portal import create_app
from app.portal.db import session_scope
from app.portal.feature_flags import BETA_TESTERS_KEY, ENABLED_KEY, ROLLOUT_PERCENTAGE_KEY, TARGET_USERS_KEY
from app.portal.feature_switch import DASHBOARD_SWITCH, FeatureSwitch, workbench_feature
from app.portal.models import Base, Tenant, User

LEGACY = b'data-testid="legacy-dashboard"'
WORKBENCH = b'data-testid="admin-workbench"'


def _make_app(tmp_path, overrides=None):
    app = create_app(overrides)
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    with session_scope(app) as s:
        t = Tenant(slug="accountingfirm", name="Accounting Firm")
        s.add(t)
        s.flush()
        s.add_all(
            [
                User(
                    tenant_id=t.id,
                    email="admin@accountingfirm.com",
                    name="Admin",
                    role="ADMIN",
                    password_hash=generate_password_hash("pw"),
                ),
                User(
                    tenant_id=t.id,
                    email="lead@accountingfirm.com",
                    name="Lead",
                    role="TEAM_LEAD",
                    password_hash=generate_password_hash("pw"),
                ),
            ]
        )
    return app


@pytest.fixture()
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    for k in (ENABLED_KEY, ROLLOUT_PERCENTAGE_KEY, TARGET_USERS_KEY, BETA_TESTERS_KEY):
        monkeypatch.delenv(k, raising=False)
    return monkeypatch


def _dashboard(app, email="admin@accountingfirm.com") -> bytes:
    client = app.test_client()
    client.post("/auth/login", data={"email": email, "password": "pw"})
    r = client.get("/admin/users?tab=dashboard")
    assert r.status_code == 200
    return r.data


def _admin_id(app) -> str:
    with session_scope(app) as s:
        return str(s.query(User).filter(User.email == "admin@accountingfirm.com").one().id)


def test_legacy_dashboard_by_default(env, tmp_path):
    html = _dashboard(_make_app(tmp_path))
    assert LEGACY in html
    assert WORKBENCH not in html


def test_workbench_when_globally_enabled(env, tmp_path):
    env.setenv(ENABLED_KEY, "true")
    html = _dashboard(_make_app(tmp_path))
    assert WORKBENCH in html
    assert LEGACY not in html


def test_runtime_config_enables_workbench(env, tmp_path):
    app = _make_app(tmp_path, {"RUNTIME_ENV": {ENABLED_KEY: "true"}})
    html = _dashboard(app)
    assert WORKBENCH in html
    m = re.search(rb"window.__ENV__ = (\{.*?\});", html)
    assert m is not None
    assert json.loads(m.group(1))[ENABLED_KEY] == "true"


def test_process_env_overrides_runtime_config(env, tmp_path):
    env.setenv(ENABLED_KEY, "false")
    app = _make_app(tmp_path, {"RUNTIME_ENV": {ENABLED_KEY: "true"}})
    assert LEGACY in _dashboard(app)


def test_role_targeting(env, tmp_path):
    env.setenv(ENABLED_KEY, "true")
    env.setenv(TARGET_USERS_KEY, "admins")
    app = _make_app(tmp_path)
    assert WORKBENCH in _dashboard(app, "admin@accountingfirm.com")
    assert LEGACY in _dashboard(app, "lead@accountingfirm.com")


def test_beta_tester_list(env, tmp_path):
    env.setenv(ENABLED_KEY, "true")
    app = _make_app(tmp_path)
    env.setenv(BETA_TESTERS_KEY, _admin_id(app))
    assert WORKBENCH in _dashboard(app, "admin@accountingfirm.com")
    assert LEGACY in _dashboard(app, "lead@accountingfirm.com")


def test_flag_change_applies_without_restart(env, tmp_path):
    app = _make_app(tmp_path)
    assert LEGACY in _dashboard(app)
    env.setenv(ENABLED_KEY, "true")
    assert WORKBENCH in _dashboard(app)


def test_other_tabs_do_not_render_dashboard(env, tmp_path):
    env.setenv(ENABLED_KEY, "true")
    app = _make_app(tmp_path)
    client = app.test_client()
    client.post("/auth/login", data={"email": "admin@accountingfirm.com", "password": "pw"})
    r = client.get("/admin/users?tab=entities")
    assert WORKBENCH not in r.data
    assert LEGACY not in r.data
    assert b"admin@accountingfirm.com</td>" in r.data


def test_switch_selects_exactly_one_template():
    switch = FeatureSwitch(enabled_template="new.html", disabled_template="old.html")
    assert switch.select(True) == "new.html"
    assert switch.select(False) == "old.html"
    assert DASHBOARD_SWITCH.select(True) != DASHBOARD_SWITCH.select(False)


def test_verdict_memoized_per_identity(env, tmp_path):
    env.setenv(ENABLED_KEY, "true")
    app = _make_app(tmp_path)
    rollout = app.extensions["workbench_rollout"]
    calls = []
    original = rollout.evaluate

    def counting(user_id, role=None):
        calls.append((user_id, role))
        return original(user_id, role)

    env.setattr(rollout, "evaluate", counting)

    with app.test_request_context("/admin/users"):
        admin = SimpleNamespace(id=1, role="ADMIN")
        first = workbench_feature(admin)
        assert workbench_feature(admin) is first
        assert calls == [("1", "ADMIN")]

        promoted = SimpleNamespace(id=1, role="CLIENT")
        workbench_feature(promoted)
        assert calls == [("1", "ADMIN"), ("1", "CLIENT")]

        assert workbench_feature(None).enabled is False
        assert ("1", "ADMIN") in g.workbench_verdicts
