from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from flask import Blueprint, current_app, g, request
from sqlalchemy.exc import SQLAlchemyError

from app.portal.auth import current_identity
from app.portal.db import db_session
from app.portal.deprecation import deprecated
from app.portal.errors import InternalError, NotFound, Ok, Unauthorized, ValidationError, to_response
from app.portal.models import User
from app.portal.modules.entities.service import (
    create_client,
    delete_client,
    get_client,
    get_user,
    list_clients,
    list_users,
    parse_role_filter,
    update_client,
    validate_client_payload,
)
from app.portal.rbac import USERS_MANAGE, USERS_VIEW, require_api_permission

bp = Blueprint("entities", __name__)

CLIENTS_SUCCESSOR = "/api/admin/users?role=CLIENT"
CLIENTS_WARNING = "This endpoint is deprecated. Please use /api/admin/users with role=CLIENT filter instead."
CLIENT_SUCCESSOR = "/api/admin/users"
CLIENT_WARNING = "This endpoint is deprecated. Please use /api/admin/users instead."


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise Unauthorized()
    return u


def _tenant_id() -> int:
    identity = current_identity()
    if identity is None:
        raise Unauthorized()
    if identity.tenant_id is None:
        raise ValidationError("Tenant context missing")
    return identity.tenant_id


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _parse_id(raw: str, message: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise NotFound(message) from None


@contextmanager
def _persistence(failure_message: str) -> Generator[None, None, None]:
    """Turn database failures into a generic 500; the cause is only logged."""
    try:
        yield
    except SQLAlchemyError as e:
        db_session().rollback()
        current_app.logger.exception(
            "%s %s failed (request_id=%s): %s", request.method, request.path, getattr(g, "request_id", None), e
        )
        raise InternalError(failure_message) from e


# ---------- Deprecated: clients ----------
@bp.get("/entities/clients")
@deprecated(successor=CLIENTS_SUCCESSOR, message=CLIENTS_WARNING)
@require_api_permission(USERS_VIEW)
def clients_list():
    tenant_id = _tenant_id()
    with _persistence("Failed to list clients"):
        clients = list_clients(db_session(), tenant_id)
    return to_response(Ok({"clients": [c.to_dict() for c in clients]}))


@bp.post("/entities/clients")
@deprecated(successor=CLIENTS_SUCCESSOR, message=CLIENTS_WARNING)
@require_api_permission(USERS_MANAGE)
def clients_create():
    tenant_id = _tenant_id()
    payload = _json_body()
    errors = validate_client_payload(payload)
    if errors:
        raise ValidationError("Name and email are required", detail=errors)

    s = db_session()
    with _persistence("Failed to create client"):
        client = create_client(s, tenant_id, payload, _current_user())
        s.commit()
    return to_response(Ok(client.to_dict(), status=201))


@bp.get("/entities/clients/<client_id>")
@deprecated(successor=CLIENT_SUCCESSOR, message=CLIENT_WARNING)
@require_api_permission(USERS_VIEW)
def client_detail(client_id: str):
    tenant_id = _tenant_id()
    cid = _parse_id(client_id, "Client not found")
    with _persistence("Failed to fetch client"):
        client = get_client(db_session(), tenant_id, cid)
    return to_response(Ok(client.to_dict()))


@bp.patch("/entities/clients/<client_id>")
@deprecated(successor=CLIENT_SUCCESSOR, message=CLIENT_WARNING)
@require_api_permission(USERS_MANAGE)
def client_update(client_id: str):
    tenant_id = _tenant_id()
    cid = _parse_id(client_id, "Client not found")
    payload = _json_body()
    errors = validate_client_payload(payload, partial=True)
    if errors:
        raise ValidationError("Invalid client payload", detail=errors)

    s = db_session()
    with _persistence("Failed to update client"):
        client = update_client(s, tenant_id, cid, payload, _current_user())
        s.commit()
    return to_response(Ok(client.to_dict()))


@bp.delete("/entities/clients/<client_id>")
@deprecated(successor=CLIENT_SUCCESSOR, message=CLIENT_WARNING)
@require_api_permission(USERS_MANAGE)
def client_delete(client_id: str):
    tenant_id = _tenant_id()
    cid = _parse_id(client_id, "Client not found")
    s = db_session()
    with _persistence("Failed to delete client"):
        delete_client(s, tenant_id, cid, _current_user())
        s.commit()
    return to_response(Ok({"success": True}))


# ---------- Unified users ----------
@bp.get("/users")
@require_api_permission(USERS_VIEW)
def users_list():
    tenant_id = _tenant_id()
    raw_role = request.args.get("role")
    role = parse_role_filter(raw_role)
    if raw_role and role is None:
        raise ValidationError("Unknown role", detail={"role": f"Unknown role {raw_role!r}."})
    with _persistence("Failed to list users"):
        users = list_users(db_session(), tenant_id, role=role)
    return to_response(Ok({"users": [u.to_dict() for u in users], "role": role}))


@bp.get("/users/<user_id>")
@require_api_permission(USERS_VIEW)
def user_detail(user_id: str):
    tenant_id = _tenant_id()
    uid = _parse_id(user_id, "User not found")
    with _persistence("Failed to fetch user"):
        user = get_user(db_session(), tenant_id, uid)
    if user is None:
        raise NotFound("User not found")
    return to_response(Ok(user.to_dict()))
