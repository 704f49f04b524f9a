"""
Action request handlers.

Routes:
    GET  /requests                 (?status=pending|approved|rejected&search=)
    POST /requests
    GET  /requests/summary
    GET  /requests/{id}
    POST /requests/{id}/resolve    (If-Match: <version>)
"""

from __future__ import annotations

from typing import Optional

from models.action_request import RequestStatus, ResolveActionRequest, SubmitActionRequest
from utils.error_handling import ValidationError
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

_request_service: Optional["ActionRequestService"] = None


def _get_request_service():
    """Lazy-load ActionRequestService."""
    global _request_service
    if _request_service is None:
        from services.action_request_service import ActionRequestService
        _request_service = ActionRequestService.from_environment()
    return _request_service


def _status_filter(value: Optional[str]) -> Optional[RequestStatus]:
    if not value or value == "all":
        return None
    try:
        return RequestStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown request status {value}") from exc


@api_handler
def list_handler(event, context):
    requests = _get_request_service().list_requests(
        actor_from_event(event),
        status=_status_filter(query_param(event, "status")),
        search=query_param(event, "search"),
    )
    return HandlerResult("Action requests retrieved", requests)


@api_handler
def submit_handler(event, context):
    payload = parse_payload(SubmitActionRequest, parse_body(event))
    request = _get_request_service().submit(actor_from_event(event), payload)
    return HandlerResult("Action request submitted", request, status_code=201)


@api_handler
def summary_handler(event, context):
    summary = _get_request_service().summarize_requests(actor_from_event(event))
    return HandlerResult("Action request summary", summary)


@api_handler
def get_handler(event, context):
    request = _get_request_service().get_request(actor_from_event(event), path_param(event, "id"))
    return HandlerResult("Action request retrieved", request)


@api_handler
def resolve_handler(event, context):
    payload = parse_payload(ResolveActionRequest, parse_body(event))
    request = _get_request_service().resolve(
        actor_from_event(event),
        path_param(event, "id"),
        payload,
        expected_version=expected_version(event),
    )
    return HandlerResult(f"Action request {request.status.value}", request)
