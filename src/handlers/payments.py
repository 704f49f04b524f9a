"""
Payment collection handlers.

Routes:
    GET  /payments           (?customer_id=&from=&to=, ISO dates)
    POST /payments
    GET  /payments/summary   (?from=&to=)
    GET  /payments/{id}
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from models.payment import PaymentInput
from utils.error_handling import ValidationError
from utils.http import (
    HandlerResult,
    actor_from_event,
    api_handler,
    parse_body,
    path_param,
    query_param,
)
from utils.validators import parse_payload

_payment_service: Optional["PaymentService"] = None


def _get_payment_service():
    """Lazy-load PaymentService."""
    global _payment_service
    if _payment_service is None:
        from services.payment_service import PaymentService
        _payment_service = PaymentService.from_environment()
    return _payment_service


def _date_param(event, name: str) -> Optional[datetime]:
    raw = query_param(event, name)
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be an ISO date") from exc
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@api_handler
def list_handler(event, context):
    payments = _get_payment_service().list_payments(
        actor_from_event(event),
        customer_id=query_param(event, "customer_id"),
        start=_date_param(event, "from"),
        end=_date_param(event, "to"),
    )
    return HandlerResult("Payments retrieved", payments)


@api_handler
def collect_handler(event, context):
    payload = parse_payload(PaymentInput, parse_body(event))
    payment = _get_payment_service().collect_payment(actor_from_event(event), payload)
    return HandlerResult(f"Payment collected: {payment.receipt_number}", payment, status_code=201)


@api_handler
def summary_handler(event, context):
    summary = _get_payment_service().summarize(
        actor_from_event(event), start=_date_param(event, "from"), end=_date_param(event, "to")
    )
    return HandlerResult("Payment summary", summary)


@api_handler
def get_handler(event, context):
    payment = _get_payment_service().get_payment(actor_from_event(event), path_param(event, "id"))
    return HandlerResult("Payment retrieved", payment)
