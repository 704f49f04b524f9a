"""
Package catalog handlers.

Routes:
    GET    /packages          (?active_only=true)
    POST   /packages
    GET    /packages/{id}
    PUT    /packages/{id}     (If-Match: <version>)
    DELETE /packages/{id}     (If-Match: <version>)
"""

from __future__ import annotations

from typing import Optional

from models.package import PackageInput, PackageUpdate
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

_package_service: Optional["PackageService"] = None


def _get_package_service():
    """Lazy-load PackageService."""
    global _package_service
    if _package_service is None:
        from services.package_service import PackageService
        _package_service = PackageService.from_environment()
    return _package_service


@api_handler
def list_handler(event, context):
    active_only = (query_param(event, "active_only") or "").lower() == "true"
    packages = _get_package_service().list_packages(actor_from_event(event), active_only=active_only)
    return HandlerResult("Packages retrieved", packages)


@api_handler
def create_handler(event, context):
    payload = parse_payload(PackageInput, parse_body(event))
    package = _get_package_service().create_package(actor_from_event(event), payload)
    return HandlerResult("Package created", package, status_code=201)


@api_handler
def get_handler(event, context):
    package = _get_package_service().get_package(actor_from_event(event), path_param(event, "id"))
    return HandlerResult("Package retrieved", package)


@api_handler
def update_handler(event, context):
    payload = parse_payload(PackageUpdate, parse_body(event))
    package = _get_package_service().update_package(
        actor_from_event(event),
        path_param(event, "id"),
        payload,
        expected_version=expected_version(event),
    )
    return HandlerResult("Package updated", package)


@api_handler
def delete_handler(event, context):
    _get_package_service().delete_package(
        actor_from_event(event), path_param(event, "id"), expected_version=expected_version(event)
    )
    return HandlerResult("Package deleted")
