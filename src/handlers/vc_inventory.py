"""
VC inventory handlers.

Routes:
    GET    /vc-inventory             (?vc_number= | ?customer_id=&active_only=true)
    POST   /vc-inventory
    POST   /vc-inventory/bulk
    GET    /vc-inventory/{id}
    DELETE /vc-inventory/{id}
    POST   /vc-inventory/{id}/status
    POST   /vc-inventory/{id}/reassign
"""

from __future__ import annotations

from typing import Optional

from models.vc_inventory import (
    VCBulkCreateInput,
    VCCreateInput,
    VCReassignInput,
    VCStatusChangeInput,
)
from utils.error_handling import NotFoundError
from utils.http import (
    HandlerResult,
    actor_from_event,
    api_handler,
    expected_version,
    parse_body,
    path_param,
    query_param,
)
from utils.permissions import require_authenticated
from utils.validators import parse_payload

_vc_service: Optional["VCInventoryService"] = None


def _get_vc_service():
    """Lazy-load VCInventoryService."""
    global _vc_service
    if _vc_service is None:
        from services.vc_inventory_service import VCInventoryService
        _vc_service = VCInventoryService.from_environment()
    return _vc_service


def _flag(value: Optional[str]) -> bool:
    return (value or "").lower() in ("1", "true", "yes")


@api_handler
def list_handler(event, context):
    actor = actor_from_event(event)
    service = _get_vc_service()

    vc_number = query_param(event, "vc_number")
    if vc_number:
        require_authenticated(actor, "view VC")
        item = service.find_by_vc_number(vc_number)
        if item is None:
            raise NotFoundError(f"VC number {vc_number} not found")
        return HandlerResult("VC retrieved", item)

    customer_id = query_param(event, "customer_id")
    if customer_id:
        items = service.list_vcs_for_customer(
            actor, customer_id, active_only=_flag(query_param(event, "active_only"))
        )
        return HandlerResult("VCs retrieved", items)

    return HandlerResult("VCs retrieved", service.list_vcs(actor))


@api_handler
def create_handler(event, context):
    payload = parse_payload(VCCreateInput, parse_body(event))
    item = _get_vc_service().create_vc(actor_from_event(event), payload)
    return HandlerResult("VC created", item, status_code=201)


@api_handler
def bulk_create_handler(event, context):
    payload = parse_payload(VCBulkCreateInput, parse_body(event))
    result = _get_vc_service().bulk_create(
        actor_from_event(event),
        payload.vc_numbers,
        package_id=payload.package_id,
        package_name=payload.package_name,
    )
    message = f"{len(result.success)} VCs created, {len(result.failed)} failed"
    return HandlerResult(message, result, status_code=201)


@api_handler
def get_handler(event, context):
    item = _get_vc_service().get_vc(actor_from_event(event), path_param(event, "id"))
    return HandlerResult("VC retrieved", item)


@api_handler
def delete_handler(event, context):
    _get_vc_service().delete_vc(
        actor_from_event(event), path_param(event, "id"), expected_version=expected_version(event)
    )
    return HandlerResult("VC deleted")


@api_handler
def change_status_handler(event, context):
    payload = parse_payload(VCStatusChangeInput, parse_body(event))
    item = _get_vc_service().change_status(
        actor_from_event(event),
        path_param(event, "id"),
        payload.status,
        reason=payload.reason,
        expected_version=expected_version(event),
    )
    return HandlerResult("VC status updated", item)


@api_handler
def reassign_handler(event, context):
    payload = parse_payload(VCReassignInput, parse_body(event))
    item = _get_vc_service().reassign(
        actor_from_event(event),
        path_param(event, "id"),
        payload.customer_id,
        payload.customer_name,
        expected_version=expected_version(event),
    )
    return HandlerResult("VC reassigned", item)
