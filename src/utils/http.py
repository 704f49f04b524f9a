"""
API Gateway HTTP API helpers shared by the resource handlers.

``api_handler`` keeps error handling in one place: handlers return a
``HandlerResult`` and raise ``AppError`` subclasses; everything else is
logged and turned into a 500.
"""

from __future__ import annotations

import functools
import json
import re
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

from models.actor import Actor, Role
from models.response import ApiResponse
from utils.error_handling import AppError, ValidationError, to_response
from utils.logging_config import get_logger

logger = get_logger(__name__)

_CLAIM_LIST_SPLIT = re.compile(r"[\s,]+")


@dataclass
class HandlerResult:
    """What a handler produced, before JSON formatting."""

    message: str
    data: Any = None
    status_code: int = 200


def json_response(status: int, body: Dict[str, Any]) -> Dict[str, Any]:
    """Format a JSON API Gateway HTTP API response."""
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def _jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, (list, tuple)):
        return [_jsonable(item) for item in data]
    return data


def correlation_id_for(event: Dict[str, Any]) -> str:
    return (event.get("requestContext") or {}).get("requestId") or str(uuid.uuid4())


def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    try:
        body = json.loads(event.get("body") or "{}")
    except json.JSONDecodeError as exc:
        raise ValidationError("Request body is not valid JSON") from exc
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def path_param(event: Dict[str, Any], name: str) -> str:
    value = (event.get("pathParameters") or {}).get(name)
    if not value:
        raise ValidationError(f"{name} is required")
    return value


def query_param(event: Dict[str, Any], name: str) -> Optional[str]:
    return (event.get("queryStringParameters") or {}).get(name)


def expected_version(event: Dict[str, Any]) -> Optional[int]:
    """Document version from an ``If-Match`` header, if the client sent one."""
    headers = {key.lower(): value for key, value in (event.get("headers") or {}).items()}
    raw = headers.get("if-match")
    if raw is None:
        return None
    try:
        return int(raw.strip().strip('"').removeprefix("W/").strip('"'))
    except ValueError as exc:
        raise ValidationError("If-Match must carry a document version number") from exc


def actor_from_event(event: Dict[str, Any]) -> Optional[Actor]:
    """
    Build the acting user from the authorizer claims.

    Supports JWT authorizers (``authorizer.jwt.claims``) and Lambda
    authorizers (``authorizer.lambda``). Returns None when unauthenticated.
    """
    authorizer = (event.get("requestContext") or {}).get("authorizer") or {}
    claims = (authorizer.get("jwt") or {}).get("claims") or authorizer.get("lambda") or {}
    user_id = claims.get("sub")
    if not user_id:
        return None

    areas = claims.get("custom:areas") or []
    if isinstance(areas, str):
        # JWT authorizers flatten array claims to "[North South]"
        areas = [area for area in _CLAIM_LIST_SPLIT.split(areas.strip().strip("[]")) if area]

    is_active = claims.get("custom:is_active", True)
    if isinstance(is_active, str):
        is_active = is_active.lower() != "false"

    role = claims.get("custom:role", Role.EMPLOYEE.value)
    return Actor(
        user_id=user_id,
        name=claims.get("name") or claims.get("email") or user_id,
        role=role if role in (Role.ADMIN.value, Role.EMPLOYEE.value) else Role.EMPLOYEE,
        assigned_areas=areas,
        collector_name=claims.get("custom:collector_name"),
        is_active=is_active,
    )


def api_handler(func: Callable[[Dict[str, Any], Any], HandlerResult]):
    """Wrap a resource handler with JSON formatting and error mapping."""

    @functools.wraps(func)
    def wrapper(event, context):
        correlation_id = correlation_id_for(event)
        try:
            result = func(event, context)
        except AppError as error:
            logger.warning(
                "Request failed",
                extra={
                    "correlation_id": correlation_id,
                    "handler": func.__name__,
                    "status_code": error.status_code,
                    "error": error.message,
                },
            )
            return to_response(error, correlation_id)
        except Exception:
            logger.exception(
                "Unhandled handler error",
                extra={"correlation_id": correlation_id, "handler": func.__name__},
            )
            return json_response(
                500, {"message": "Internal server error", "correlation_id": correlation_id}
            )

        response = ApiResponse(
            message=result.message,
            data=_jsonable(result.data),
            correlation_id=correlation_id,
        )
        return {
            "statusCode": result.status_code,
            "headers": {"Content-Type": "application/json"},
            "body": response.model_dump_json(),
        }

    return wrapper
