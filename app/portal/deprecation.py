from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from flask import Flask, Response, current_app, request
from werkzeug.exceptions import HTTPException, MethodNotAllowed
from werkzeug.http import http_date

SUNSET_WINDOW = timedelta(days=90)


@dataclass(frozen=True)
class DeprecationNotice:
    successor: str
    message: str

    def headers(self, now: datetime | None = None) -> dict[str, str]:
        now = now or datetime.now(timezone.utc)
        return {
            "Deprecation": "true",
            "Sunset": http_date(now + SUNSET_WINDOW),
            "Link": f'<{self.successor}>; rel="successor"',
            "X-API-Warn": self.message,
        }


def add_deprecation_headers(response: Response, notice: DeprecationNotice, now: datetime | None = None) -> Response:
    for name, value in notice.headers(now).items():
        response.headers[name] = value
    return response


def deprecated(successor: str, message: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Mark a view as deprecated. Headers are attached by the after_request hook
    installed in init_deprecation(), so error responses carry them as well.
    """
    notice = DeprecationNotice(successor=successor, message=message)

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        fn.deprecation_notice = notice  # type: ignore[attr-defined]
        return fn

    return decorator


def notice_for_endpoint(app: Flask, endpoint: str | None) -> DeprecationNotice | None:
    if not endpoint:
        return None
    view = app.view_functions.get(endpoint)
    return getattr(view, "deprecation_notice", None)


def _path_endpoint(app: Flask) -> str | None:
    """
    Endpoint owning the request path when routing failed only on the method
    (405), so rejected verbs on a deprecated path still get the notice.
    """
    exc = request.routing_exception
    if not isinstance(exc, MethodNotAllowed) or not exc.valid_methods:
        return None
    adapter = app.create_url_adapter(request)
    if adapter is None:
        return None
    try:
        rule, _ = adapter.match(method=exc.valid_methods[0], return_rule=True)
    except HTTPException:
        return None
    return rule.endpoint


def init_deprecation(app: Flask) -> None:
    @app.after_request
    def _deprecation_headers(response: Response) -> Response:
        endpoint = request.endpoint or _path_endpoint(current_app)
        notice = notice_for_endpoint(current_app, endpoint)
        if notice is not None:
            add_deprecation_headers(response, notice)
        return response
