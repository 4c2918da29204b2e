from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from app.portal.audit import record_event
from app.portal.db import tenant_query
from app.portal.errors import Conflict, NotFound
from app.portal.models import User
from app.portal.rbac import CLIENT, ROLES

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def validate_client_payload(payload: dict, *, partial: bool = False) -> dict[str, str]:
    """Per-field errors for a client create (or partial update) payload."""
    errors: dict[str, str] = {}
    name = _clean(payload.get("name"))
    email = _clean(payload.get("email"))

    if not partial or "name" in payload:
        if not name:
            errors["name"] = "Name is required."
        elif len(name) > 255:
            errors["name"] = "Name must be at most 255 characters."

    if not partial or "email" in payload:
        if not email:
            errors["email"] = "Email is required."
        elif not _EMAIL_RE.match(email):
            errors["email"] = "Email is not valid."
    return errors


def parse_role_filter(raw: str | None) -> str | None:
    role = (raw or "").strip().upper()
    return role if role in ROLES else None


def list_users(s: "Session", tenant_id: int, role: str | None = None) -> list[User]:
    q = tenant_query(s, User, tenant_id)
    if role:
        q = q.filter(User.role == role)
    return q.order_by(User.created_at.desc(), User.id.desc()).all()


def get_user(s: "Session", tenant_id: int, user_id: int) -> User | None:
    return tenant_query(s, User, tenant_id).filter(User.id == user_id).one_or_none()


def list_clients(s: "Session", tenant_id: int) -> list[User]:
    return list_users(s, tenant_id, role=CLIENT)


def get_client(s: "Session", tenant_id: int, client_id: int) -> User:
    client = tenant_query(s, User, tenant_id).filter(User.id == client_id, User.role == CLIENT).one_or_none()
    if client is None:
        raise NotFound("Client not found")
    return client


def _email_taken(s: "Session", tenant_id: int, email: str, *, exclude_id: int | None = None) -> bool:
    q = tenant_query(s, User, tenant_id).filter(User.email == email)
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    return s.query(q.exists()).scalar()


def role_counts(s: "Session", tenant_id: int) -> dict[str, int]:
    counts = {role: 0 for role in ROLES}
    rows = (
        s.query(User.role, func.count(User.id))
        .filter(User.tenant_id == tenant_id)
        .group_by(User.role)
        .all()
    )
    for role, n in rows:
        counts[role] = n
    return counts


def create_client(s: "Session", tenant_id: int, payload: dict, actor: User) -> User:
    email = _clean(payload.get("email")).lower()
    if _email_taken(s, tenant_id, email):
        raise Conflict("Email already exists")

    now = datetime.utcnow()
    client = User(
        tenant_id=tenant_id,
        name=_clean(payload.get("name")),
        email=email,
        role=CLIENT,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    s.add(client)
    try:
        s.flush()
    except IntegrityError as e:
        raise Conflict("Email already exists") from e

    record_event(
        s,
        actor=actor,
        action="client.create",
        entity_type="User",
        entity_id=str(client.id),
        tenant_id=tenant_id,
        metadata={"name": client.name, "email": client.email},
    )
    return client


def update_client(s: "Session", tenant_id: int, client_id: int, payload: dict, actor: User) -> User:
    client = get_client(s, tenant_id, client_id)
    changes: dict[str, dict[str, Any]] = {}

    name = _clean(payload.get("name"))
    email = _clean(payload.get("email")).lower()

    if email and email != client.email:
        if _email_taken(s, tenant_id, email, exclude_id=client.id):
            raise Conflict("Email already in use")
        changes["email"] = {"old": client.email, "new": email}
        client.email = email
    if name and name != client.name:
        changes["name"] = {"old": client.name, "new": name}
        client.name = name

    if changes:
        client.updated_at = datetime.utcnow()
        try:
            s.flush()
        except IntegrityError as e:
            raise Conflict("Email already in use") from e
        record_event(
            s,
            actor=actor,
            action="client.update",
            entity_type="User",
            entity_id=str(client.id),
            tenant_id=tenant_id,
            metadata={"changes": changes},
        )
    return client


def delete_client(s: "Session", tenant_id: int, client_id: int, actor: User) -> None:
    client = get_client(s, tenant_id, client_id)
    record_event(
        s,
        actor=actor,
        action="client.delete",
        entity_type="User",
        entity_id=str(client.id),
        tenant_id=tenant_id,
        metadata={"email": client.email},
    )
    s.delete(client)
    s.flush()
