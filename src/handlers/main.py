"""
Single entrypoint Lambda that routes HTTP API requests to thin handler modules.

Routes are matched in order against ``METHOD /path`` templates; ``{name}``
segments become ``pathParameters`` for the target handler. Literal routes
must be listed before parameterized siblings (``/requests/summary`` before
``/requests/{id}``, ``/payments/summary`` before ``/payments/{id}``).
"""

import re
from typing import Dict, Optional, Pattern, Tuple
from types import ModuleType

from utils.http import correlation_id_for, json_response
from utils.logging_config import get_logger

from . import (
    action_requests,
    areas,
    customers,
    health_check,
    packages,
    payments,
    vc_inventory,
)

logger = get_logger(__name__)

_PARAM = re.compile(r"\{([a-z_]+)\}")


def _compile(template: str) -> Pattern:
    return re.compile("^" + _PARAM.sub(r"(?P<\1>[^/]+)", template) + "/?$")


def _match(pattern: Pattern, path: str) -> Optional[Dict[str, str]]:
    found = pattern.match(path)
    return found.groupdict() if found else None


def lambda_handler(event, context):
    """
    Entry point invoked by API Gateway HTTP API.

    Handlers are looked up by name at call time so they can be swapped out
    in tests.
    """
    http = event.get("requestContext", {}).get("http", {})
    method = http.get("method", "").upper()
    path = http.get("path", "") or event.get("rawPath", "")
    route_key = f"{method} {path}"

    route_table: Tuple[Tuple[str, str, ModuleType, str], ...] = (
        ("GET", "/health", health_check, "lambda_handler"),
        ("GET", "/customers", customers, "list_handler"),
        ("POST", "/customers", customers, "create_handler"),
        ("POST", "/customers/{id}/connections", customers, "add_connection_handler"),
        ("DELETE", "/customers/{id}/connections/{connection_id}", customers, "remove_connection_handler"),
        ("GET", "/customers/{id}", customers, "get_handler"),
        ("PUT", "/customers/{id}", customers, "update_handler"),
        ("DELETE", "/customers/{id}", customers, "delete_handler"),
        ("GET", "/vc-inventory", vc_inventory, "list_handler"),
        ("POST", "/vc-inventory", vc_inventory, "create_handler"),
        ("POST", "/vc-inventory/bulk", vc_inventory, "bulk_create_handler"),
        ("POST", "/vc-inventory/{id}/status", vc_inventory, "change_status_handler"),
        ("POST", "/vc-inventory/{id}/reassign", vc_inventory, "reassign_handler"),
        ("GET", "/vc-inventory/{id}", vc_inventory, "get_handler"),
        ("DELETE", "/vc-inventory/{id}", vc_inventory, "delete_handler"),
        ("GET", "/requests", action_requests, "list_handler"),
        ("POST", "/requests", action_requests, "submit_handler"),
        ("GET", "/requests/summary", action_requests, "summary_handler"),
        ("POST", "/requests/{id}/resolve", action_requests, "resolve_handler"),
        ("GET", "/requests/{id}", action_requests, "get_handler"),
        ("GET", "/packages", packages, "list_handler"),
        ("POST", "/packages", packages, "create_handler"),
        ("GET", "/packages/{id}", packages, "get_handler"),
        ("PUT", "/packages/{id}", packages, "update_handler"),
        ("DELETE", "/packages/{id}", packages, "delete_handler"),
        ("GET", "/payments", payments, "list_handler"),
        ("POST", "/payments", payments, "collect_handler"),
        ("GET", "/payments/summary", payments, "summary_handler"),
        ("GET", "/payments/{id}", payments, "get_handler"),
        ("GET", "/areas", areas, "list_handler"),
        ("POST", "/areas", areas, "create_handler"),
        ("GET", "/areas/{id}", areas, "get_handler"),
        ("PUT", "/areas/{id}", areas, "update_handler"),
        ("DELETE", "/areas/{id}", areas, "delete_handler"),
    )

    for route_method, template, module, attr in route_table:
        if route_method != method:
            continue
        params = _match(_compile(template), path)
        if params is None:
            continue
        if params:
            event = {**event, "pathParameters": {**(event.get("pathParameters") or {}), **params}}
        return getattr(module, attr)(event, context)

    logger.info(
        "Route not found",
        extra={"route": route_key, "correlation_id": correlation_id_for(event)},
    )
    return json_response(404, {"message": "Route not found", "route": route_key})
