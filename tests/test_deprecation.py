from datetime import datetime, timezone

from flask import Flask, Response
from werkzeug.http import parse_date

from app.portal.deprecation import (
    SUNSET_WINDOW,
    DeprecationNotice,
    add_deprecation_headers,
    deprecated,
    init_deprecation,
    notice_for_endpoint,
)
from app.portal.redirects import LEGACY_REDIRECTS, resolve_redirect

NOTICE = DeprecationNotice(successor="/api/admin/users", message="This endpoint is deprecated.")


def test_headers_for_fixed_clock():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    headers = NOTICE.headers(now)
    assert headers == {
        "Deprecation": "true",
        "Sunset": "Wed, 01 Apr 2026 00:00:00 GMT",
        "Link": '</api/admin/users>; rel="successor"',
        "X-API-Warn": "This endpoint is deprecated.",
    }


def test_sunset_defaults_to_ninety_days_from_now():
    before = datetime.now(timezone.utc)
    sunset = parse_date(NOTICE.headers()["Sunset"])
    assert sunset is not None
    delta = sunset - before
    assert SUNSET_WINDOW.total_seconds() - 5 <= delta.total_seconds() <= SUNSET_WINDOW.total_seconds() + 5


def test_add_headers_keeps_status_and_body():
    resp = Response('{"error": "x"}', status=404, mimetype="application/json")
    out = add_deprecation_headers(resp, NOTICE)
    assert out is resp
    assert out.status_code == 404
    assert out.get_data(as_text=True) == '{"error": "x"}'
    assert out.headers["Deprecation"] == "true"
    assert "Sunset" in out.headers


def test_decorator_marks_view_and_hook_applies_to_errors():
    app = Flask(__name__)
    init_deprecation(app)

    @app.get("/old")
    @deprecated(successor="/new", message="Use /new.")
    def old():
        return {"error": "gone"}, 410

    @app.get("/boom")
    @deprecated(successor="/new", message="Use /new.")
    def boom():
        raise RuntimeError("kaboom")

    @app.get("/current")
    def current():
        return {"ok": True}

    assert notice_for_endpoint(app, "old") == DeprecationNotice("/new", "Use /new.")
    assert notice_for_endpoint(app, "current") is None
    assert notice_for_endpoint(app, None) is None

    client = app.test_client()
    r = client.get("/old")
    assert r.status_code == 410
    assert r.headers["Deprecation"] == "true"
    assert r.headers["Link"] == '</new>; rel="successor"'
    assert r.headers["X-API-Warn"] == "Use /new."

    r = client.get("/boom")
    assert r.status_code == 500
    assert r.headers["Deprecation"] == "true"

    r = client.get("/current")
    assert "Deprecation" not in r.headers


def test_unsupported_method_on_deprecated_path_keeps_headers():
    app = Flask(__name__)
    init_deprecation(app)

    @app.get("/old")
    @deprecated(successor="/new", message="Use /new.")
    def old():
        return {"ok": True}

    @app.get("/current")
    def current():
        return {"ok": True}

    client = app.test_client()
    r = client.put("/old")
    assert r.status_code == 405
    assert r.headers["Deprecation"] == "true"
    assert r.headers["Link"] == '</new>; rel="successor"'

    r = client.put("/current")
    assert r.status_code == 405
    assert "Deprecation" not in r.headers

    assert client.get("/missing").status_code == 404


def test_redirect_rules():
    assert {rule.source_path for rule in LEGACY_REDIRECTS} == {
        "/admin/permissions",
        "/admin/roles",
        "/admin/clients",
        "/admin/team",
    }
    assert resolve_redirect("/admin/permissions").target() == "/admin/users?tab=rbac"
    assert resolve_redirect("/admin/clients/").target() == "/admin/users?tab=dashboard&role=CLIENT"
    assert resolve_redirect("/admin/team").target({"role": "CLIENT", "q": "smith"}) == (
        "/admin/users?q=smith&tab=dashboard&role=TEAM_MEMBER"
    )
    assert resolve_redirect("/admin/users") is None
