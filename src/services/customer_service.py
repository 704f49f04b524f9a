"""
Customer Service.

Single write path for customer documents. Every create/update goes through
``normalize_connections`` and ``apply_legacy_fields`` so the top-level
VC/package/status/outstanding fields always mirror the connections:

* VC number, package, package amount and status come from the primary
  connection (a custom plan overrides the plan name and price);
* ``is_active`` is ``status == active``;
* outstanding balances are the sums over all connections;
* customers without connections keep their own legacy fields.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Tuple

from models.actor import Actor
from models.customer import (
    Connection,
    ConnectionInput,
    Customer,
    CustomerInput,
    CustomerStatus,
    LegacyFields,
    new_id,
    utcnow,
)
from models.package import Package
from repositories.dynamodb_repo import DynamoDbRepository
from utils.config import AppConfig
from utils.error_handling import ConflictError, NotFoundError, ValidationError
from utils.logging_config import get_logger
from utils.permissions import require_admin, require_area_access, require_authenticated

logger = get_logger(__name__)

COLLECTOR_INDEX = "collector_name-index"


def normalize_connections(connections: List[Connection]) -> List[Connection]:
    """Re-index connections and make sure exactly one is primary."""
    seen = set()
    for connection in connections:
        if connection.vc_number in seen:
            raise ValidationError(f"Duplicate VC number {connection.vc_number} on customer")
        seen.add(connection.vc_number)

    primaries = [connection for connection in connections if connection.is_primary]
    if len(primaries) > 1:
        raise ValidationError("Only one connection can be marked primary")

    normalized = []
    for position, connection in enumerate(connections):
        is_primary = connection.is_primary or (not primaries and position == 0)
        normalized.append(
            connection.model_copy(update={"index": position, "is_primary": is_primary})
        )
    return normalized


def derive_legacy_fields(customer: Customer) -> LegacyFields:
    """Compute the denormalized top-level fields of ``customer``."""
    if not customer.connections:
        return LegacyFields(
            vc_number=customer.vc_number,
            current_package=customer.current_package,
            package_amount=customer.package_amount,
            status=customer.status,
            is_active=customer.status == CustomerStatus.ACTIVE,
            previous_outstanding=customer.previous_outstanding,
            current_outstanding=customer.current_outstanding,
            number_of_connections=1 if customer.vc_number else 0,
        )

    primary = customer.primary_connection or customer.connections[0]
    return LegacyFields(
        vc_number=primary.vc_number,
        current_package=primary.effective_plan_name,
        package_amount=primary.effective_plan_price,
        status=primary.status,
        is_active=primary.status == CustomerStatus.ACTIVE,
        previous_outstanding=sum(c.previous_outstanding for c in customer.connections),
        current_outstanding=sum(c.current_outstanding for c in customer.connections),
        number_of_connections=len(customer.connections),
    )


def apply_legacy_fields(customer: Customer) -> Customer:
    """Return a copy of ``customer`` with normalized connections and synced top-level fields."""
    normalized = customer.model_copy(
        update={"connections": normalize_connections(customer.connections)}
    )
    return normalized.model_copy(update=derive_legacy_fields(normalized).model_dump())


def stamp_status_dates(
    previous_status: CustomerStatus, customer: Customer, at: datetime
) -> Customer:
    """Record activation/deactivation dates when the top-level status flips."""
    if customer.status == previous_status:
        return customer
    if customer.status == CustomerStatus.ACTIVE:
        return customer.model_copy(update={"activation_date": at})
    if customer.status == CustomerStatus.INACTIVE:
        return customer.model_copy(update={"deactivation_date": at})
    return customer


def locate_connection(customer: Customer, vc_number: str) -> Optional[Connection]:
    """Primary connection if it carries ``vc_number``, else a secondary by VC match."""
    primary = customer.primary_connection
    if primary is not None and primary.vc_number == vc_number:
        return primary
    return customer.find_connection(vc_number)


def describe_vc(customer: Customer, vc_number: str) -> Tuple[CustomerStatus, Optional[str]]:
    """Current status and plan name of one of the customer's VCs."""
    if not customer.connections:
        if customer.vc_number != vc_number:
            raise NotFoundError(f"VC {vc_number} not found on customer {customer.id}")
        return customer.status, customer.current_package
    target = locate_connection(customer, vc_number)
    if target is None:
        raise NotFoundError(f"VC {vc_number} not found on customer {customer.id}")
    return target.status, target.effective_plan_name


def with_connection_status(
    customer: Customer, vc_number: str, status: CustomerStatus, at: datetime
) -> Customer:
    """
    Set the status of the connection carrying ``vc_number``.

    Only a change on the primary connection (or a customer without
    connections) reaches the top-level status.
    """
    if not customer.connections:
        if customer.vc_number != vc_number:
            raise NotFoundError(f"VC {vc_number} not found on customer {customer.id}")
        updated = customer.model_copy(update={"status": status})
    else:
        target = locate_connection(customer, vc_number)
        if target is None:
            raise NotFoundError(f"VC {vc_number} not found on customer {customer.id}")
        connections = [
            c.model_copy(update={"status": status}) if c.id == target.id else c
            for c in customer.connections
        ]
        updated = customer.model_copy(update={"connections": connections})
    return stamp_status_dates(customer.status, apply_legacy_fields(updated), at)


def with_connection_plan(customer: Customer, vc_number: str, package: Package) -> Customer:
    """Move the connection carrying ``vc_number`` onto a catalog package."""
    if not customer.connections:
        if customer.vc_number != vc_number:
            raise NotFoundError(f"VC {vc_number} not found on customer {customer.id}")
        updated = customer.model_copy(
            update={
                "current_package": package.name,
                "package_amount": package.price,
                "custom_plan": None,
            }
        )
        return apply_legacy_fields(updated)

    target = locate_connection(customer, vc_number)
    if target is None:
        raise NotFoundError(f"VC {vc_number} not found on customer {customer.id}")
    plan = {
        "plan_name": package.name,
        "plan_price": package.price,
        "is_custom_plan": False,
        "custom_plan": None,
    }
    connections = [
        c.model_copy(update=plan) if c.id == target.id else c for c in customer.connections
    ]
    return apply_legacy_fields(customer.model_copy(update={"connections": connections}))


def _build_connection(payload: ConnectionInput, default_status: CustomerStatus) -> Connection:
    return Connection(
        id=payload.id or new_id(),
        vc_number=payload.vc_number,
        plan_name=payload.plan_name,
        plan_price=payload.plan_price,
        is_custom_plan=payload.is_custom_plan,
        custom_plan=payload.custom_plan,
        status=payload.status or default_status,
        previous_outstanding=payload.previous_outstanding,
        current_outstanding=payload.current_outstanding,
        is_primary=payload.is_primary,
    )


def _legacy_connection(customer: Customer) -> Connection:
    """Turn a single-VC customer's top-level fields into its primary connection."""
    return Connection(
        vc_number=customer.vc_number,
        plan_name=customer.current_package or "",
        plan_price=customer.package_amount,
        is_custom_plan=customer.custom_plan is not None,
        custom_plan=customer.custom_plan,
        status=customer.status,
        previous_outstanding=customer.previous_outstanding,
        current_outstanding=customer.current_outstanding,
        is_primary=True,
    )


class CustomerService:
    """Customer CRUD with area-scoped access."""

    def __init__(self, repository: Optional[DynamoDbRepository] = None):
        self.repository = repository or DynamoDbRepository(
            AppConfig.from_environment().customers_table
        )

    @classmethod
    def from_environment(cls) -> "CustomerService":
        config = AppConfig.from_environment()
        return cls(
            DynamoDbRepository.connect(
                config.customers_table,
                attempts=config.bootstrap_attempts,
                backoff_base=config.bootstrap_backoff_seconds,
            )
        )

    def fetch(self, customer_id: str) -> Customer:
        """Load a customer without permission checks."""
        customer = self.repository.get_model(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        return customer

    def _build(self, payload: CustomerInput, base: Optional[Customer] = None) -> Customer:
        fields = payload.model_dump(exclude={"connections", "join_date"})
        connections = [_build_connection(c, payload.status) for c in payload.connections]
        if base is None:
            customer = Customer(
                **fields,
                join_date=payload.join_date or date.today(),
                connections=connections,
            )
        else:
            customer = Customer(
                **fields,
                id=base.id,
                join_date=payload.join_date or base.join_date,
                connections=connections,
                activation_date=base.activation_date,
                deactivation_date=base.deactivation_date,
                version=base.version,
                created_at=base.created_at,
            )
        return apply_legacy_fields(customer)

    def create_customer(self, actor: Optional[Actor], payload: CustomerInput) -> Customer:
        actor = require_area_access(actor, payload.collector_name, "create customer")
        customer = self._build(payload)
        if customer.status == CustomerStatus.ACTIVE:
            customer = customer.model_copy(update={"activation_date": customer.created_at})
        stored = self.repository.save(customer)
        logger.info(
            "Customer created",
            extra={
                "customer_id": stored.id,
                "connections": stored.number_of_connections,
                "actor": actor.user_id,
            },
        )
        return stored

    def get_customer(self, actor: Optional[Actor], customer_id: str) -> Customer:
        require_authenticated(actor, "view customer")
        customer = self.fetch(customer_id)
        require_area_access(actor, customer.collector_name, "view customer")
        return customer

    def list_customers(self, actor: Optional[Actor]) -> List[Customer]:
        """Admins see everyone; employees see the customers of their areas."""
        actor = require_authenticated(actor, "list customers")
        if actor.is_admin:
            items = self.repository.scan()
        else:
            items = []
            for area in actor.areas:
                items.extend(self.repository.query_index(COLLECTOR_INDEX, "collector_name", area))
        customers = [Customer.model_validate(item) for item in items]
        return sorted(customers, key=lambda c: c.name.lower())

    def search_customers(self, actor: Optional[Actor], term: str) -> List[Customer]:
        """Case-insensitive match on name, phone or any VC number."""
        needle = (term or "").strip().lower()
        customers = self.list_customers(actor)
        if not needle:
            return customers

        def matches(customer: Customer) -> bool:
            haystack = [customer.name, customer.phone, customer.vc_number or ""]
            haystack.extend(c.vc_number for c in customer.connections)
            return any(needle in value.lower() for value in haystack)

        return [customer for customer in customers if matches(customer)]

    def _load_for_write(
        self, actor: Optional[Actor], customer_id: str, expected_version: Optional[int], operation: str
    ) -> Customer:
        require_authenticated(actor, operation)
        current = self.fetch(customer_id)
        require_area_access(actor, current.collector_name, operation)
        if expected_version is not None and expected_version != current.version:
            raise ConflictError()
        return current

    def update_customer(
        self,
        actor: Optional[Actor],
        customer_id: str,
        payload: CustomerInput,
        expected_version: Optional[int] = None,
    ) -> Customer:
        current = self._load_for_write(actor, customer_id, expected_version, "update customer")
        # Moving a customer needs access to the destination area too.
        require_area_access(actor, payload.collector_name, "update customer")

        updated = stamp_status_dates(current.status, self._build(payload, base=current), utcnow())
        stored = self.repository.save(updated, expected_version=current.version)
        logger.info(
            "Customer updated",
            extra={"customer_id": customer_id, "version": stored.version, "actor": actor.user_id},
        )
        return stored

    def delete_customer(
        self, actor: Optional[Actor], customer_id: str, expected_version: Optional[int] = None
    ) -> None:
        require_admin(actor, "delete customer")
        current = self.fetch(customer_id)
        self.repository.delete(customer_id, expected_version=expected_version or current.version)
        logger.info("Customer deleted", extra={"customer_id": customer_id, "actor": actor.user_id})

    def add_connection(
        self,
        actor: Optional[Actor],
        customer_id: str,
        payload: ConnectionInput,
        expected_version: Optional[int] = None,
    ) -> Customer:
        current = self._load_for_write(actor, customer_id, expected_version, "add connection")

        connections = list(current.connections)
        if not connections and current.vc_number:
            connections.append(_legacy_connection(current))
        if any(c.vc_number == payload.vc_number for c in connections):
            raise ValidationError(f"VC number {payload.vc_number} already exists on customer")

        connection = _build_connection(payload, current.status)
        if connection.is_primary:
            connections = [c.model_copy(update={"is_primary": False}) for c in connections]
        connections.append(connection)

        updated = apply_legacy_fields(current.model_copy(update={"connections": connections}))
        updated = stamp_status_dates(current.status, updated, utcnow())
        stored = self.repository.save(updated, expected_version=current.version)
        logger.info(
            "Connection added",
            extra={"customer_id": customer_id, "vc_number": payload.vc_number},
        )
        return stored

    def remove_connection(
        self,
        actor: Optional[Actor],
        customer_id: str,
        connection_id: str,
        expected_version: Optional[int] = None,
    ) -> Customer:
        """Drop a connection; the first remaining one becomes primary if needed."""
        current = self._load_for_write(actor, customer_id, expected_version, "remove connection")
        remaining = [c for c in current.connections if c.id != connection_id]
        if len(remaining) == len(current.connections):
            raise NotFoundError(f"Connection {connection_id} not found on customer {customer_id}")

        updated = apply_legacy_fields(current.model_copy(update={"connections": remaining}))
        updated = stamp_status_dates(current.status, updated, utcnow())
        stored = self.repository.save(updated, expected_version=current.version)
        logger.info(
            "Connection removed",
            extra={"customer_id": customer_id, "connection_id": connection_id},
        )
        return stored
