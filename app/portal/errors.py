from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from flask import Response, jsonify


class ApiError(Exception):
    status_code = 500
    kind = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, detail: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def as_err(self) -> "Err":
        return Err(kind=self.kind, message=self.message, status=self.status_code, detail=self.detail)


class Unauthorized(ApiError):
    status_code = 401
    kind = "unauthorized"
    default_message = "Unauthorized"


class Forbidden(ApiError):
    status_code = 403
    kind = "forbidden"
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = 404
    kind = "not_found"
    default_message = "Not found"


class Conflict(ApiError):
    status_code = 409
    kind = "conflict"
    default_message = "Conflict"


class ValidationError(ApiError):
    status_code = 400
    kind = "validation_error"
    default_message = "Invalid request"


class InternalError(ApiError):
    pass


@dataclass(frozen=True)
class Ok:
    payload: Any
    status: int = 200


@dataclass(frozen=True)
class Err:
    kind: str
    message: str
    status: int
    detail: dict[str, Any] | None = None


Result = Union[Ok, Err]


def to_response(result: Result) -> tuple[Response, int]:
    if isinstance(result, Ok):
        return jsonify(result.payload), result.status
    body: dict[str, Any] = {"error": result.message}
    if result.detail:
        body["details"] = result.detail
    return jsonify(body), result.status
