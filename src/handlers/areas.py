"""
Area handlers.

Routes:
    GET    /areas          (?active_only=true)
    POST   /areas
    GET    /areas/{id}
    PUT    /areas/{id}     (If-Match: <version>)
    DELETE /areas/{id}     (?permanent=true; If-Match: <version>)
"""

from __future__ import annotations

from typing import Optional

from models.area import AreaInput, AreaUpdate
from utils.http import (
    HandlerResult,
    actor_from_event,
    api_handler,
    expected_version,
    parse_body,
    path_param,
    query_param,
)
from utils.validators import parse_payload

_area_service: Optional["AreaService"] = None


def _get_area_service():
    """Lazy-load AreaService."""
    global _area_service
    if _area_service is None:
        from services.area_service import AreaService
        _area_service = AreaService.from_environment()
    return _area_service


def _flag(event, name: str) -> bool:
    return (query_param(event, name) or "").lower() == "true"


@api_handler
def list_handler(event, context):
    areas = _get_area_service().list_areas(
        actor_from_event(event), active_only=_flag(event, "active_only")
    )
    return HandlerResult("Areas retrieved", areas)


@api_handler
def create_handler(event, context):
    payload = parse_payload(AreaInput, parse_body(event))
    area = _get_area_service().create_area(actor_from_event(event), payload)
    return HandlerResult("Area created", area, status_code=201)


@api_handler
def get_handler(event, context):
    area = _get_area_service().get_area(actor_from_event(event), path_param(event, "id"))
    return HandlerResult("Area retrieved", area)


@api_handler
def update_handler(event, context):
    payload = parse_payload(AreaUpdate, parse_body(event))
    area = _get_area_service().update_area(
        actor_from_event(event),
        path_param(event, "id"),
        payload,
        expected_version=expected_version(event),
    )
    return HandlerResult("Area updated", area)


@api_handler
def delete_handler(event, context):
    permanent = _flag(event, "permanent")
    area = _get_area_service().delete_area(
        actor_from_event(event),
        path_param(event, "id"),
        permanent=permanent,
        expected_version=expected_version(event),
    )
    return HandlerResult("Area deleted" if permanent else "Area deactivated", area)
