"""
Payment collection.

Collecting a payment stores a receipt and lowers the customer's outstanding
balance in the same transaction. The amount settles older dues
(``previous_outstanding``) before the current bill, connection by connection:
only the named VC when the collector gives one, otherwise the primary first.
Balances never go below zero.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from models.actor import Actor
from models.customer import Connection, Customer, utcnow
from models.payment import CollectionTotals, Payment, PaymentInput, PaymentSummary
from repositories.dynamodb_repo import DynamoDbRepository, TransactionWriter
from services.customer_service import CustomerService, apply_legacy_fields
from utils.config import AppConfig
from utils.error_handling import NotFoundError, ValidationError
from utils.logging_config import get_logger
from utils.permissions import require_area_access, require_authenticated

logger = get_logger(__name__)

CUSTOMER_INDEX = "customer_id-index"
AREA_INDEX = "customer_area-index"


def generate_receipt_number(at: Optional[datetime] = None) -> str:
    at = at or utcnow()
    return f"RCP-{int(at.timestamp() * 1000)}-{uuid.uuid4().hex[:4].upper()}"


def _settle(previous: float, current: float, amount: float) -> Tuple[float, float, float]:
    """Pay ``amount`` off (previous, current); returns the new pair and what is left."""
    from_previous = min(max(previous, 0.0), amount)
    amount -= from_previous
    from_current = min(max(current, 0.0), amount)
    return previous - from_previous, current - from_current, amount - from_current


def _payment_order(customer: Customer, vc_number: Optional[str]) -> List[Connection]:
    if vc_number:
        target = customer.find_connection(vc_number)
        if target is None:
            raise ValidationError(f"VC {vc_number} does not belong to customer {customer.id}")
        return [target]
    return sorted(customer.connections, key=lambda c: (not c.is_primary, c.index))


def apply_payment(
    customer: Customer, amount: float, vc_number: Optional[str] = None
) -> Tuple[Customer, float]:
    """Return the customer with ``amount`` applied and the part of it that was applied."""
    if not customer.connections:
        if vc_number and vc_number != customer.vc_number:
            raise ValidationError(f"VC {vc_number} does not belong to customer {customer.id}")
        previous, current, left = _settle(
            customer.previous_outstanding, customer.current_outstanding, amount
        )
        updated = customer.model_copy(
            update={"previous_outstanding": previous, "current_outstanding": current}
        )
        return apply_legacy_fields(updated), amount - left

    left = amount
    paid = {}
    for connection in _payment_order(customer, vc_number):
        if left <= 0:
            break
        previous, current, left = _settle(
            connection.previous_outstanding, connection.current_outstanding, left
        )
        paid[connection.id] = {"previous_outstanding": previous, "current_outstanding": current}

    connections = [
        c.model_copy(update=paid[c.id]) if c.id in paid else c for c in customer.connections
    ]
    updated = customer.model_copy(update={"connections": connections})
    return apply_legacy_fields(updated), amount - left


def total_outstanding(customer: Customer) -> float:
    return customer.previous_outstanding + customer.current_outstanding


def summarize_payments(payments: Iterable[Payment]) -> PaymentSummary:
    summary = PaymentSummary()
    for payment in payments:
        summary.total_payments += 1
        summary.total_amount += payment.amount_paid
        for bucket, key in (
            (summary.by_method, payment.payment_method.value),
            (summary.by_collector, payment.collected_by),
        ):
            totals = bucket.setdefault(key, CollectionTotals())
            totals.count += 1
            totals.amount += payment.amount_paid
    return summary


class PaymentService:
    """Collect payments and report on collections."""

    def __init__(
        self,
        repository: Optional[DynamoDbRepository] = None,
        customers: Optional[CustomerService] = None,
    ):
        self.repository = repository or DynamoDbRepository(
            AppConfig.from_environment().payments_table
        )
        self.customers = customers or CustomerService()

    @classmethod
    def from_environment(cls) -> "PaymentService":
        config = AppConfig.from_environment()
        return cls(
            DynamoDbRepository.connect(
                config.payments_table,
                attempts=config.bootstrap_attempts,
                backoff_base=config.bootstrap_backoff_seconds,
            ),
            customers=CustomerService.from_environment(),
        )

    def collect_payment(self, actor: Optional[Actor], payload: PaymentInput) -> Payment:
        """Record a receipt and reduce the customer's balance atomically."""
        actor = require_authenticated(actor, "collect payment")
        customer = self.customers.fetch(payload.customer_id)
        require_area_access(actor, customer.collector_name, "collect payment")

        updated, applied = apply_payment(customer, payload.amount_paid, payload.vc_number)
        payment = Payment(
            receipt_number=payload.receipt_number or generate_receipt_number(),
            customer_id=customer.id,
            customer_name=customer.name,
            customer_area=customer.collector_name,
            vc_number=payload.vc_number,
            amount_paid=payload.amount_paid,
            applied_amount=applied,
            outstanding_before=total_outstanding(customer),
            outstanding_after=total_outstanding(updated),
            payment_method=payload.payment_method,
            paid_at=payload.paid_at or utcnow(),
            collected_by=actor.name,
            collected_by_id=actor.user_id,
            notes=payload.notes,
        )

        writer = TransactionWriter()
        stored = writer.save(self.repository, payment, None)
        if applied > 0:
            writer.save(self.customers.repository, updated, customer.version)
        writer.commit()

        logger.info(
            "Payment collected",
            extra={
                "receipt_number": stored.receipt_number,
                "customer_id": customer.id,
                "amount_paid": stored.amount_paid,
                "applied_amount": applied,
                "collected_by": actor.user_id,
            },
        )
        return stored

    def get_payment(self, actor: Optional[Actor], payment_id: str) -> Payment:
        actor = require_authenticated(actor, "view payment")
        payment = self.repository.get_model(Payment, payment_id)
        if payment is None:
            raise NotFoundError(f"Payment {payment_id} not found")
        require_area_access(actor, payment.customer_area, "view payment")
        return payment

    def list_payments(
        self,
        actor: Optional[Actor],
        customer_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Payment]:
        """Newest first. Employees see the payments of their areas."""
        actor = require_authenticated(actor, "list payments")
        if customer_id:
            customer = self.customers.fetch(customer_id)
            require_area_access(actor, customer.collector_name, "list payments")
            items = self.repository.query_index(CUSTOMER_INDEX, "customer_id", customer_id)
        elif actor.is_admin:
            items = self.repository.scan()
        else:
            items = []
            for area in actor.areas:
                items.extend(self.repository.query_index(AREA_INDEX, "customer_area", area))

        payments = [Payment.model_validate(item) for item in items]
        if start is not None:
            payments = [p for p in payments if p.paid_at >= start]
        if end is not None:
            payments = [p for p in payments if p.paid_at <= end]
        return sorted(payments, key=lambda p: p.paid_at, reverse=True)

    def summarize(
        self,
        actor: Optional[Actor],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> PaymentSummary:
        return summarize_payments(self.list_payments(actor, start=start, end=end))
